# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Ed25519 key material for Solana accounts.

Solana identities are plain Ed25519 keys. A private key starts life as a
32-byte seed; the signing algorithm expands it into a 64-byte secret key made
of the seed followed by the public key. Wallet tooling (the Solana CLI
``id.json`` file, Phantom exports) always passes the 64-byte form around,
while hierarchical derivation produces the 32-byte seed. This module wraps
PyNaCl so both forms round-trip and length mistakes fail loudly instead of
producing a truncated or padded key.

The module includes:
- PrivateKey: seed-based signing key with 64-byte secret key export
- PublicKey: verification key with base58 (address) encoding
- Signature: 64-byte detached signature

Examples:
    Expanding a derived seed::

        private_key = PrivateKey.from_seed(seed32)
        print(private_key.public_key())       # base58 address
        keypair = private_key.to_keypair()    # solders Keypair for signing

    Restoring from a 64-byte secret key::

        private_key = PrivateKey.from_secret_key(secret64)
        assert private_key.secret_key() == secret64
"""

from __future__ import annotations

import unittest

import base58
from nacl.exceptions import BadSignatureError
from nacl.signing import SigningKey, VerifyKey
from solders.keypair import Keypair
from solders.pubkey import Pubkey


class InvalidKeyLength(ValueError):
    """Key material does not have the length the algorithm requires."""

    expected: int
    actual: int

    def __init__(self, kind: str, expected: int, actual: int):
        super().__init__(f"{kind} must be {expected} bytes, got {actual}")
        self.expected = expected
        self.actual = actual


class InvalidPrivateKey(ValueError):
    """The public half of a 64-byte secret key does not match its seed."""


class PrivateKey:
    """Ed25519 private key backed by a NaCl ``SigningKey``.

    Attributes:
        SEED_LENGTH: Length of the seed the key is expanded from (32).
        SECRET_KEY_LENGTH: Length of the expanded secret key (64).
        key: The underlying NaCl SigningKey instance.
    """

    SEED_LENGTH: int = 32
    SECRET_KEY_LENGTH: int = 64

    key: SigningKey

    def __init__(self, key: SigningKey):
        self.key = key

    def __eq__(self, other: object):
        if not isinstance(other, PrivateKey):
            return NotImplemented
        return self.key == other.key

    def __repr__(self) -> str:
        return f"PrivateKey(public_key={self.public_key()})"

    @staticmethod
    def from_seed(seed: bytes) -> PrivateKey:
        """Expand a 32-byte seed with the standard ed25519 keypair-from-seed.

        Raises:
            InvalidKeyLength: If ``seed`` is not exactly 32 bytes.
        """
        seed = bytes(seed)
        if len(seed) != PrivateKey.SEED_LENGTH:
            raise InvalidKeyLength("seed", PrivateKey.SEED_LENGTH, len(seed))
        return PrivateKey(SigningKey(seed))

    @staticmethod
    def from_secret_key(secret_key: bytes) -> PrivateKey:
        """Rebuild a key from its 64-byte ``seed || public key`` form.

        Raises:
            InvalidKeyLength: If ``secret_key`` is not exactly 64 bytes.
            InvalidPrivateKey: If the embedded public key does not belong to
                the embedded seed.
        """
        secret_key = bytes(secret_key)
        if len(secret_key) != PrivateKey.SECRET_KEY_LENGTH:
            raise InvalidKeyLength(
                "secret key", PrivateKey.SECRET_KEY_LENGTH, len(secret_key)
            )
        private_key = PrivateKey.from_seed(secret_key[: PrivateKey.SEED_LENGTH])
        if private_key.public_key().to_bytes() != secret_key[PrivateKey.SEED_LENGTH :]:
            raise InvalidPrivateKey("public key does not match the private key seed")
        return private_key

    @staticmethod
    def from_base58(value: str) -> PrivateKey:
        """Parse a base58 encoded 64-byte secret key (Phantom export format)."""
        return PrivateKey.from_secret_key(base58.b58decode(value))

    @staticmethod
    def random() -> PrivateKey:
        return PrivateKey(SigningKey.generate())

    def seed(self) -> bytes:
        return self.key.encode()

    def secret_key(self) -> bytes:
        """The 64-byte secret key expected by Solana tooling."""
        return self.seed() + self.public_key().to_bytes()

    def public_key(self) -> PublicKey:
        return PublicKey(self.key.verify_key)

    def sign(self, data: bytes) -> Signature:
        return Signature(self.key.sign(data).signature)

    def to_keypair(self) -> Keypair:
        """Convert to a ``solders`` keypair for transaction signing."""
        return Keypair.from_bytes(self.secret_key())


class PublicKey:
    """Ed25519 public key; its base58 encoding is the Solana address."""

    LENGTH: int = 32

    key: VerifyKey

    def __init__(self, key: VerifyKey):
        self.key = key

    def __eq__(self, other: object):
        if not isinstance(other, PublicKey):
            return NotImplemented
        return self.key == other.key

    def __str__(self) -> str:
        return base58.b58encode(self.to_bytes()).decode()

    @staticmethod
    def from_str(value: str) -> PublicKey:
        key = base58.b58decode(value)
        if len(key) != PublicKey.LENGTH:
            raise InvalidKeyLength("public key", PublicKey.LENGTH, len(key))
        return PublicKey(VerifyKey(key))

    def verify(self, data: bytes, signature: Signature) -> bool:
        try:
            self.key.verify(data, signature.data())
        except BadSignatureError:
            return False
        return True

    def to_bytes(self) -> bytes:
        return self.key.encode()

    def to_pubkey(self) -> Pubkey:
        return Pubkey.from_bytes(self.to_bytes())


class Signature:
    LENGTH: int = 64

    signature: bytes

    def __init__(self, signature: bytes):
        if len(signature) != Signature.LENGTH:
            raise InvalidKeyLength("signature", Signature.LENGTH, len(signature))
        self.signature = signature

    def __eq__(self, other: object):
        if not isinstance(other, Signature):
            return NotImplemented
        return self.signature == other.signature

    def __str__(self) -> str:
        return base58.b58encode(self.signature).decode()

    def data(self) -> bytes:
        return self.signature


class Test(unittest.TestCase):
    def test_sign_and_verify(self):
        in_value = b"test_message"

        private_key = PrivateKey.random()
        public_key = private_key.public_key()

        signature = private_key.sign(in_value)
        self.assertTrue(public_key.verify(in_value, signature))
        self.assertFalse(public_key.verify(b"other_message", signature))

    def test_secret_key_round_trip(self):
        private_key = PrivateKey.random()
        secret_key = private_key.secret_key()

        self.assertEqual(len(secret_key), 64)
        self.assertEqual(secret_key[:32], private_key.seed())
        self.assertEqual(PrivateKey.from_secret_key(secret_key), private_key)

    def test_seed_length(self):
        with self.assertRaises(InvalidKeyLength):
            PrivateKey.from_seed(b"\x01" * 31)
        with self.assertRaises(InvalidKeyLength):
            PrivateKey.from_seed(b"\x01" * 64)

    def test_secret_key_length(self):
        with self.assertRaises(InvalidKeyLength):
            PrivateKey.from_secret_key(b"\x01" * 32)

    def test_mismatched_public_half(self):
        secret_key = PrivateKey.random().seed() + PrivateKey.random().public_key().to_bytes()
        with self.assertRaises(InvalidPrivateKey):
            PrivateKey.from_secret_key(secret_key)

    def test_matches_solders(self):
        seed = bytes(range(32))
        private_key = PrivateKey.from_seed(seed)
        keypair = Keypair.from_seed(seed)

        self.assertEqual(private_key.public_key().to_pubkey(), keypair.pubkey())
        self.assertEqual(str(private_key.public_key()), str(keypair.pubkey()))
        self.assertEqual(private_key.secret_key(), bytes(keypair))

    def test_public_key_from_str(self):
        public_key = PrivateKey.random().public_key()
        self.assertEqual(PublicKey.from_str(str(public_key)), public_key)


if __name__ == "__main__":
    unittest.main()
