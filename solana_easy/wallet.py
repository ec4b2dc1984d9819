# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Recoverable Solana wallets.

A :class:`Wallet` is built exactly once, from one of four origins, and never
changes afterwards:

- ``generate``: fresh 24-word mnemonic, then derivation along a path
- ``restore_from_mnemonic``: an existing mnemonic, then derivation
- ``restore_from_seed``: a 32-byte ed25519 seed, no mnemonic or path
- ``restore_from_private_key``: a 64-byte secret key, only the keypair

Given the same mnemonic, passphrase and path, derivation always reproduces
the same keypair, which is what makes a written-down phrase a backup.

Examples:
    Create and restore::

        wallet = Wallet.generate()
        restored = Wallet.restore_from_mnemonic(wallet.mnemonic)
        assert restored.public_key == wallet.public_key

    Use a non-default path for every wallet built by a factory::

        factory = WalletFactory(DerivationPath.LEGACY.value)
        wallet = factory.restore_from_mnemonic(phrase)
"""

from __future__ import annotations

import json
import os
import tempfile
import unittest
from dataclasses import FrozenInstanceError, dataclass
from typing import Any, Dict, List, Mapping, Optional, Union

import base58
from solders.keypair import Keypair
from solders.pubkey import Pubkey

from .derivation import (
    DEFAULT_DERIVATION_PATH,
    DERIVATION_PATHS,
    DerivationPath,
    InvalidMnemonic,
    derive_path,
    generate_mnemonic,
    mnemonic_to_seed,
    normalize_mnemonic,
)
from .ed25519 import InvalidKeyLength, InvalidPrivateKey, PrivateKey, Signature

PathLike = Union[DerivationPath, str]

# Owner read/write only; stored wallets hold the secret key.
SECRET_FILE_MODE = 0o600


def _resolve_path(path: Optional[PathLike]) -> str:
    if path is None:
        return DEFAULT_DERIVATION_PATH.value
    if isinstance(path, DerivationPath):
        return path.value
    return path


class Wallet:
    """An immutable Solana identity and the material it was derived from.

    Attributes other than the keypair are optional and depend on how the
    wallet was built. ``master_seed`` is the 64-byte BIP-39 seed, ``seed`` the
    32-byte sub-seed the keypair is expanded from. The passphrase is consumed
    by derivation and never kept.
    """

    __slots__ = ("_private_key", "_mnemonic", "_derivation_path", "_master_seed", "_seed")

    def __init__(
        self,
        private_key: PrivateKey,
        mnemonic: Optional[str] = None,
        derivation_path: Optional[str] = None,
        master_seed: Optional[bytes] = None,
        seed: Optional[bytes] = None,
    ):
        self._private_key = private_key
        self._mnemonic = mnemonic
        self._derivation_path = derivation_path
        self._master_seed = master_seed
        self._seed = seed

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Wallet):
            return NotImplemented
        return self._private_key == other._private_key

    def __repr__(self) -> str:
        return f"Wallet(public_key={self.public_key_string})"

    @staticmethod
    def generate(passphrase: str = "", path: Optional[PathLike] = None) -> Wallet:
        """Create a wallet from a freshly generated 24-word mnemonic."""
        return Wallet._from_mnemonic(generate_mnemonic(), passphrase, path)

    @staticmethod
    def restore_from_mnemonic(
        mnemonic: str, passphrase: str = "", path: Optional[PathLike] = None
    ) -> Wallet:
        """Rebuild a wallet from its recovery phrase.

        The phrase is normalized first, so stray whitespace or capitalised
        words from a copy-paste do not change the result.

        Raises:
            InvalidMnemonic: If the phrase fails checksum or wordlist checks.
            InvalidDerivationPath: If ``path`` cannot be parsed.
        """
        return Wallet._from_mnemonic(normalize_mnemonic(mnemonic), passphrase, path)

    @staticmethod
    def restore_from_seed(seed: bytes) -> Wallet:
        """Expand a 32-byte ed25519 seed directly, bypassing derivation."""
        private_key = PrivateKey.from_seed(seed)
        return Wallet(private_key, seed=private_key.seed())

    @staticmethod
    def restore_from_private_key(private_key: Union[bytes, List[int]]) -> Wallet:
        """Import a 64-byte ``seed || public key`` secret key.

        Raises:
            InvalidKeyLength: If the key is not 64 bytes.
            InvalidPrivateKey: If the public half does not match the seed half.
        """
        return Wallet(PrivateKey.from_secret_key(bytes(private_key)))

    @staticmethod
    def _from_mnemonic(
        mnemonic: str, passphrase: str, path: Optional[PathLike]
    ) -> Wallet:
        derivation_path = _resolve_path(path)
        master_seed = mnemonic_to_seed(mnemonic, passphrase)
        seed = derive_path(derivation_path, master_seed)
        return Wallet(
            PrivateKey.from_seed(seed),
            mnemonic=mnemonic,
            derivation_path=derivation_path,
            master_seed=master_seed,
            seed=seed,
        )

    @property
    def mnemonic(self) -> Optional[str]:
        return self._mnemonic

    @property
    def derivation_path(self) -> Optional[str]:
        return self._derivation_path

    @property
    def master_seed(self) -> Optional[bytes]:
        return self._master_seed

    @property
    def seed(self) -> Optional[bytes]:
        return self._seed

    @property
    def keypair(self) -> Keypair:
        return self._private_key.to_keypair()

    @property
    def public_key(self) -> Pubkey:
        return self._private_key.public_key().to_pubkey()

    @property
    def public_key_string(self) -> str:
        return str(self._private_key.public_key())

    @property
    def private_key(self) -> bytes:
        """The 64-byte secret key."""
        return self._private_key.secret_key()

    @property
    def private_key_string(self) -> str:
        """Secret key as the JSON byte array the Solana CLI keeps in ``id.json``."""
        return "[" + ",".join(str(byte) for byte in self.private_key) + "]"

    @property
    def private_key_base58(self) -> str:
        """Secret key in the base58 form browser wallets import."""
        return base58.b58encode(self.private_key).decode()

    @property
    def derivation_paths(self) -> Mapping[str, str]:
        return DERIVATION_PATHS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mnemonic": self._mnemonic,
            "public_key": self.public_key_string,
            "public_key_bytes": list(bytes(self.public_key)),
            "private_key": self.private_key_string,
        }

    def sign(self, message: bytes) -> Signature:
        return self._private_key.sign(message)

    def verify(self, message: bytes, signature: Union[Signature, bytes]) -> bool:
        if not isinstance(signature, Signature):
            signature = Signature(bytes(signature))
        return self._private_key.public_key().verify(message, signature)

    def store(self, path: str):
        """Write the wallet to a JSON file.

        The mnemonic and path are kept for reference only; loading always
        rebuilds from the secret key, since the passphrase is not stored.
        """
        data = {
            "public_key": self.public_key_string,
            "private_key": self.private_key_base58,
            "mnemonic": self._mnemonic,
            "derivation_path": self._derivation_path,
            "seed": None if self._seed is None else self._seed.hex(),
        }
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, SECRET_FILE_MODE)
        with os.fdopen(fd, "w") as file:
            json.dump(data, file)

    @staticmethod
    def load(path: str) -> Wallet:
        with open(path) as file:
            data = json.load(file)
        private_key = PrivateKey.from_base58(data["private_key"])
        if str(private_key.public_key()) != data["public_key"]:
            raise InvalidPrivateKey(f"Stored public key does not match key in {path}")
        seed = data.get("seed")
        return Wallet(
            private_key,
            mnemonic=data.get("mnemonic"),
            derivation_path=data.get("derivation_path"),
            seed=None if seed is None else bytes.fromhex(seed),
        )

    @staticmethod
    def load_keypair_file(path: str) -> Wallet:
        """Read a Solana CLI keypair file (a JSON array of 64 byte values)."""
        with open(os.path.expanduser(path)) as file:
            data = json.load(file)
        if not isinstance(data, list):
            raise ValueError(
                f"{path} is not a keypair file, expected a JSON array of "
                f"{PrivateKey.SECRET_KEY_LENGTH} byte values"
            )
        return Wallet.restore_from_private_key(bytes(data))


@dataclass(frozen=True)
class WalletFactory:
    """Builds wallets with a fixed default derivation path."""

    derivation_path: str = DEFAULT_DERIVATION_PATH.value

    @property
    def derivation_paths(self) -> Mapping[str, str]:
        return DERIVATION_PATHS

    def generate(self, passphrase: str = "", path: Optional[PathLike] = None) -> Wallet:
        return Wallet.generate(passphrase, path or self.derivation_path)

    def restore_from_mnemonic(
        self, mnemonic: str, passphrase: str = "", path: Optional[PathLike] = None
    ) -> Wallet:
        return Wallet.restore_from_mnemonic(
            mnemonic, passphrase, path or self.derivation_path
        )

    def restore_from_seed(self, seed: bytes) -> Wallet:
        return Wallet.restore_from_seed(seed)

    def restore_from_private_key(self, private_key: Union[bytes, List[int]]) -> Wallet:
        return Wallet.restore_from_private_key(private_key)


class Test(unittest.TestCase):
    PHRASE = " ".join(["abandon"] * 11 + ["about"])

    def test_generate_and_restore(self):
        wallet = Wallet.generate()
        self.assertEqual(len(wallet.mnemonic.split(" ")), 24)
        self.assertEqual(wallet.derivation_path, "m/44'/501'/0'/0'")

        restored = Wallet.restore_from_mnemonic(wallet.mnemonic)
        self.assertEqual(restored.public_key, wallet.public_key)
        self.assertEqual(restored.private_key, wallet.private_key)

    def test_restore_is_deterministic(self):
        first = Wallet.restore_from_mnemonic(self.PHRASE, "pass")
        second = Wallet.restore_from_mnemonic(self.PHRASE, "pass")
        self.assertEqual(first.private_key, second.private_key)
        self.assertEqual(len(first.master_seed), 64)
        self.assertEqual(len(first.seed), 32)
        self.assertEqual(first.private_key[:32], first.seed)

    def test_passphrase_changes_key(self):
        plain = Wallet.restore_from_mnemonic(self.PHRASE)
        protected = Wallet.restore_from_mnemonic(self.PHRASE, "secret")
        self.assertNotEqual(plain.master_seed, protected.master_seed)
        self.assertNotEqual(plain.public_key, protected.public_key)

    def test_distinct_paths_give_distinct_keys(self):
        keys = {
            Wallet.restore_from_mnemonic(self.PHRASE, path=path).public_key_string
            for path in DerivationPath
        }
        self.assertEqual(len(keys), 3)

    def test_normalized_input(self):
        messy = "  " + self.PHRASE.upper().replace(" ", "   ") + "\n"
        self.assertEqual(
            Wallet.restore_from_mnemonic(messy).public_key,
            Wallet.restore_from_mnemonic(self.PHRASE).public_key,
        )
        self.assertEqual(Wallet.restore_from_mnemonic(messy).mnemonic, self.PHRASE)

    def test_restore_rejects_invalid_mnemonic(self):
        # Valid words, wrong checksum word.
        bad_checksum = " ".join(["abandon"] * 12)
        with self.assertRaises(InvalidMnemonic):
            Wallet.restore_from_mnemonic(bad_checksum)
        with self.assertRaises(InvalidMnemonic):
            Wallet.restore_from_mnemonic(self.PHRASE.replace("about", "aboutt"))
        with self.assertRaises(ValueError):
            WalletFactory().restore_from_mnemonic(bad_checksum, "passphrase")

    def test_restore_from_seed(self):
        seed = bytes(range(32))
        wallet = Wallet.restore_from_seed(seed)
        self.assertIsNone(wallet.mnemonic)
        self.assertIsNone(wallet.derivation_path)
        self.assertEqual(wallet.seed, seed)
        self.assertEqual(wallet.public_key, Keypair.from_seed(seed).pubkey())

        derived = Wallet.restore_from_mnemonic(self.PHRASE)
        self.assertEqual(Wallet.restore_from_seed(derived.seed), derived)

        with self.assertRaises(InvalidKeyLength):
            Wallet.restore_from_seed(b"\x00" * 16)

    def test_restore_from_private_key(self):
        secret_key = bytes(Keypair())
        wallet = Wallet.restore_from_private_key(secret_key)
        self.assertEqual(wallet.private_key, secret_key)
        self.assertIsNone(wallet.mnemonic)
        self.assertIsNone(wallet.seed)
        self.assertEqual(bytes(wallet.keypair), secret_key)

        with self.assertRaises(InvalidKeyLength):
            Wallet.restore_from_private_key(secret_key[:63])
        with self.assertRaises(InvalidPrivateKey):
            Wallet.restore_from_private_key(secret_key[:32] + bytes(Keypair().pubkey()))

    def test_key_encodings(self):
        wallet = Wallet.restore_from_mnemonic(self.PHRASE)
        self.assertEqual(json.loads(wallet.private_key_string), list(wallet.private_key))
        self.assertEqual(base58.b58decode(wallet.private_key_base58), wallet.private_key)
        self.assertEqual(wallet.public_key_string, str(wallet.keypair.pubkey()))

        data = wallet.to_dict()
        self.assertEqual(data["mnemonic"], self.PHRASE)
        self.assertEqual(data["public_key"], wallet.public_key_string)
        self.assertEqual(bytes(data["public_key_bytes"]), bytes(wallet.public_key))

    def test_immutable(self):
        wallet = Wallet.generate()
        with self.assertRaises(AttributeError):
            wallet.mnemonic = self.PHRASE  # type: ignore[misc]
        with self.assertRaises(AttributeError):
            wallet.extra = 1  # type: ignore[attr-defined]

    def test_sign_and_verify(self):
        wallet = Wallet.generate()
        signature = wallet.sign(b"hello")
        self.assertTrue(wallet.verify(b"hello", signature))
        self.assertTrue(wallet.verify(b"hello", signature.data()))
        self.assertFalse(wallet.verify(b"other", signature))

    def test_load_and_store(self):
        (file, path) = tempfile.mkstemp()
        os.close(file)
        start = Wallet.restore_from_mnemonic(self.PHRASE)
        start.store(path)
        load = Wallet.load(path)
        os.remove(path)

        self.assertEqual(start, load)
        self.assertEqual(load.mnemonic, start.mnemonic)
        self.assertEqual(load.seed, start.seed)
        self.assertIsNone(load.master_seed)

    def test_load_keypair_file(self):
        (file, path) = tempfile.mkstemp()
        keypair = Keypair()
        with os.fdopen(file, "w") as handle:
            json.dump(list(bytes(keypair)), handle)
        wallet = Wallet.load_keypair_file(path)
        os.remove(path)
        self.assertEqual(wallet.public_key, keypair.pubkey())

    def test_load_keypair_file_wrong_format(self):
        (file, path) = tempfile.mkstemp()
        with os.fdopen(file, "w") as handle:
            json.dump({"private_key": "abc"}, handle)
        self.addCleanup(os.remove, path)
        with self.assertRaises(ValueError) as context:
            Wallet.load_keypair_file(path)
        self.assertNotIsInstance(context.exception, InvalidKeyLength)
        self.assertIn("JSON array", str(context.exception))

    @unittest.skipIf(os.name == "nt", "POSIX file modes")
    def test_store_is_owner_only(self):
        with tempfile.TemporaryDirectory() as directory:
            path = os.path.join(directory, "wallet.json")
            Wallet.generate().store(path)
            self.assertEqual(os.stat(path).st_mode & 0o777, SECRET_FILE_MODE)

    def test_factory_default_path(self):
        factory = WalletFactory(DerivationPath.LEGACY.value)
        wallet = factory.restore_from_mnemonic(self.PHRASE)
        self.assertEqual(wallet.derivation_path, "m/501'/0'/0/0")
        self.assertEqual(
            wallet, Wallet.restore_from_mnemonic(self.PHRASE, path=DerivationPath.LEGACY)
        )
        self.assertEqual(factory.derivation_paths["bip44"], "m/44'/501'/0'")
        with self.assertRaises(FrozenInstanceError):
            factory.derivation_path = "m/0'"  # type: ignore[misc]


if __name__ == "__main__":
    unittest.main()
