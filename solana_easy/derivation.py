# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Mnemonic handling and hierarchical key derivation for Solana wallets.

A recoverable Solana identity is produced in three standard steps:

1. A BIP-39 mnemonic (plus optional passphrase) is stretched into a 64-byte
   seed with PBKDF2-HMAC-SHA512.
2. Hierarchical child-key derivation (SLIP-0010 over ed25519, or BIP-32
   for paths with unhardened components) walks a derivation path from that
   master seed down to a 32-byte sub-seed.
3. The sub-seed is expanded into an ed25519 keypair (see ``ed25519``).

Steps 1 and 3 are delegated to the ``mnemonic`` and ``PyNaCl`` packages. This
module owns the path table, path parsing, mnemonic normalization/validation,
and the hierarchical walk.

Examples:
    Derive the default Solana sub-seed::

        phrase = generate_mnemonic()
        master = mnemonic_to_seed(phrase, passphrase="")
        sub_seed = derive_path(DerivationPath.BIP44_CHANGE.value, master)

    Look up a named path::

        path = DerivationPath.from_name("legacy").value   # "m/501'/0'/0/0"
"""

from __future__ import annotations

import hashlib
import hmac
import struct
import unittest
from enum import Enum
from types import MappingProxyType
from typing import List, Mapping, Tuple

from ecdsa import SECP256k1, SigningKey
from mnemonic import Mnemonic

HARDENED_OFFSET = 0x80000000
ED25519_CURVE_KEY = b"ed25519 seed"
SECP256K1_CURVE_KEY = b"Bitcoin seed"

ENTROPY_BITS = 256
WORDLIST_LANGUAGE = "english"


class InvalidMnemonic(ValueError):
    """The phrase is not a valid BIP-39 mnemonic (unknown word or bad checksum)."""


class InvalidDerivationPath(ValueError):
    """The derivation path string could not be parsed."""


class DerivationPath(Enum):
    """Named derivation paths recognised for Solana accounts.

    LEGACY is the non-standard path used by early Solana wallets, BIP44 the
    account-level path and BIP44_CHANGE the path including the change level,
    which is the default everywhere in this package.
    """

    LEGACY = "m/501'/0'/0/0"
    BIP44 = "m/44'/501'/0'"
    BIP44_CHANGE = "m/44'/501'/0'/0'"

    @staticmethod
    def from_name(name: str) -> DerivationPath:
        try:
            return _PATHS_BY_NAME[name]
        except KeyError:
            raise InvalidDerivationPath(
                f"Unknown derivation path name {name!r}, expected one of "
                f"{', '.join(_PATHS_BY_NAME)}"
            ) from None


_PATHS_BY_NAME = {
    "legacy": DerivationPath.LEGACY,
    "bip44": DerivationPath.BIP44,
    "bip44Change": DerivationPath.BIP44_CHANGE,
}

DEFAULT_DERIVATION_PATH = DerivationPath.BIP44_CHANGE

# Read-only view of the table above, name -> path string.
DERIVATION_PATHS: Mapping[str, str] = MappingProxyType(
    {name: path.value for name, path in _PATHS_BY_NAME.items()}
)


def parse_path(path: str) -> List[int]:
    """Split ``m/44'/501'/0'`` into child indices.

    A trailing ``'``, ``h`` or ``H`` marks a hardened component; hardened
    indices are returned with ``HARDENED_OFFSET`` added.
    """
    parts = path.strip().split("/")
    if not parts or parts[0] != "m":
        raise InvalidDerivationPath(f"Derivation path must start with 'm': {path!r}")

    indices = []
    for part in parts[1:]:
        hardened = part[-1:] in ("'", "h", "H")
        component = part[:-1] if hardened else part
        if not component.isdigit():
            raise InvalidDerivationPath(f"Invalid path component {part!r} in {path!r}")
        index = int(component)
        if index >= HARDENED_OFFSET:
            raise InvalidDerivationPath(f"Path component {part!r} out of range")
        indices.append(index + HARDENED_OFFSET if hardened else index)
    return indices


def is_hardened(index: int) -> bool:
    return index >= HARDENED_OFFSET


def master_key(seed: bytes) -> Tuple[bytes, bytes]:
    """SLIP-0010 master secret key and chain code for the ed25519 curve."""
    digest = hmac.new(ED25519_CURVE_KEY, seed, hashlib.sha512).digest()
    return digest[:32], digest[32:]


def child_key(key: bytes, chain_code: bytes, index: int) -> Tuple[bytes, bytes]:
    """Hardened SLIP-0010 child derivation."""
    data = b"\x00" + key + struct.pack(">L", index | HARDENED_OFFSET)
    digest = hmac.new(chain_code, data, hashlib.sha512).digest()
    return digest[:32], digest[32:]


def secp256k1_master_key(seed: bytes) -> Tuple[bytes, bytes]:
    """BIP-32 master secret key and chain code."""
    digest = hmac.new(SECP256K1_CURVE_KEY, seed, hashlib.sha512).digest()
    return digest[:32], digest[32:]


def secp256k1_child_key(
    key: bytes, chain_code: bytes, index: int
) -> Tuple[bytes, bytes]:
    """BIP-32 private child derivation, hardened or not."""
    if is_hardened(index):
        data = b"\x00" + key
    else:
        verifying_key = SigningKey.from_string(key, curve=SECP256k1).get_verifying_key()
        data = verifying_key.to_string("compressed")
    digest = hmac.new(chain_code, data + struct.pack(">L", index), hashlib.sha512)
    digest_bytes = digest.digest()
    child = (
        int.from_bytes(digest_bytes[:32], "big") + int.from_bytes(key, "big")
    ) % SECP256k1.order
    return child.to_bytes(32, "big"), digest_bytes[32:]


def derive_path(path: str, seed: bytes) -> bytes:
    """Walk ``path`` from ``seed`` and return the 32-byte child secret key.

    Fully hardened paths use SLIP-0010 over ed25519. SLIP-0010 cannot express
    unhardened children on ed25519, so a path containing one (the legacy
    ``m/501'/0'/0/0``) is walked with BIP-32 over secp256k1 instead, which is
    how the wallets that introduced that path derived it. Either way the
    resulting 32 bytes are used as an ed25519 seed.
    """
    indices = parse_path(path)
    if all(is_hardened(index) for index in indices):
        key, chain_code = master_key(seed)
        for index in indices:
            key, chain_code = child_key(key, chain_code, index)
        return key

    key, chain_code = secp256k1_master_key(seed)
    for index in indices:
        key, chain_code = secp256k1_child_key(key, chain_code, index)
    return key


def normalize_mnemonic(mnemonic: str) -> str:
    """Trim, collapse whitespace runs to one space and lowercase every word."""
    return " ".join(mnemonic.split()).lower()


def generate_mnemonic() -> str:
    """A fresh 24-word English mnemonic from 256 bits of OS entropy."""
    return Mnemonic(WORDLIST_LANGUAGE).generate(strength=ENTROPY_BITS)


def validate_mnemonic(mnemonic: str) -> bool:
    try:
        return Mnemonic(WORDLIST_LANGUAGE).check(mnemonic)
    except (ValueError, LookupError):
        # Older releases raise on words missing from the wordlist.
        return False


def mnemonic_to_seed(mnemonic: str, passphrase: str = "") -> bytes:
    """BIP-39 seed for a checksum-valid mnemonic.

    Raises:
        InvalidMnemonic: If the phrase fails wordlist or checksum validation.
            No seed is ever produced for such a phrase.
    """
    if not validate_mnemonic(mnemonic):
        raise InvalidMnemonic("Mnemonic failed BIP-39 checksum validation")
    return Mnemonic.to_seed(mnemonic, passphrase=passphrase or "")


class Test(unittest.TestCase):
    # SLIP-0010 test vector 1 for ed25519.
    SLIP10_SEED = bytes.fromhex("000102030405060708090a0b0c0d0e0f")

    def test_slip10_master(self):
        key, chain_code = master_key(self.SLIP10_SEED)
        self.assertEqual(
            key.hex(),
            "2b4be7f19ee27bbf30c667b642d5f4aa69fd169872f8fc3059c08ebae2eb19e7",
        )
        self.assertEqual(
            chain_code.hex(),
            "90046a93de5380a72b5e45010748567d5ea02bbf6522f979e05c0d8d8ca9fffb",
        )

    def test_slip10_first_child(self):
        self.assertEqual(
            derive_path("m/0'", self.SLIP10_SEED).hex(),
            "68e0fe46dfb67e368c75379acec591dad19df3cde26e63b93a8e704f1dade7a3",
        )

    def test_bip32_unhardened_child(self):
        # BIP-32 test vector 1, chain m/0H/1.
        self.assertEqual(
            derive_path("m/0'/1", self.SLIP10_SEED).hex(),
            "3c6cb8d0f6a264c91ea8b5030fadaa8e538b020f0a387421a12de9319dc93368",
        )

    def test_legacy_path_differs_from_hardened_variant(self):
        self.assertNotEqual(
            derive_path("m/501'/0'/0/0", self.SLIP10_SEED),
            derive_path("m/501'/0'/0'/0'", self.SLIP10_SEED),
        )

    def test_parse_path(self):
        hardened = HARDENED_OFFSET
        self.assertEqual(
            parse_path("m/44'/501'/0'/0'"),
            [44 + hardened, 501 + hardened, hardened, hardened],
        )
        self.assertEqual(parse_path("m/44h/501H/1"), [44 + hardened, 501 + hardened, 1])
        self.assertEqual(parse_path("m"), [])

    def test_parse_path_errors(self):
        for path in ["", "44'/501'", "m/abc", "m//0", "m/2147483648'"]:
            with self.assertRaises(InvalidDerivationPath):
                parse_path(path)

    def test_named_paths(self):
        self.assertEqual(DERIVATION_PATHS["legacy"], "m/501'/0'/0/0")
        self.assertEqual(DERIVATION_PATHS["bip44"], "m/44'/501'/0'")
        self.assertEqual(DERIVATION_PATHS["bip44Change"], "m/44'/501'/0'/0'")
        self.assertIs(DerivationPath.from_name("bip44"), DerivationPath.BIP44)
        with self.assertRaises(InvalidDerivationPath):
            DerivationPath.from_name("deprecated")
        with self.assertRaises(TypeError):
            DERIVATION_PATHS["custom"] = "m/0'"  # type: ignore[index]

    def test_normalize_mnemonic(self):
        phrase = "  Word1  word2\tword3\n "
        normalized = normalize_mnemonic(phrase)
        self.assertEqual(normalized, "word1 word2 word3")
        self.assertEqual(normalize_mnemonic(normalized), normalized)

    def test_bip39_seed(self):
        phrase = " ".join(["abandon"] * 11 + ["about"])
        self.assertEqual(
            mnemonic_to_seed(phrase, "TREZOR").hex(),
            "c55257c360c07c72029aebc1b53c05ed0362ada38ead3e3e9efa3708e53495531f09a6987599d18264c1e1c92f2cf141630c7a3c4ab7c81b2f001698e7463b04",
        )

    def test_invalid_mnemonic(self):
        with self.assertRaises(InvalidMnemonic):
            mnemonic_to_seed(" ".join(["abandon"] * 12))
        with self.assertRaises(InvalidMnemonic):
            mnemonic_to_seed("not a real mnemonic phrase at all")

    def test_generate_mnemonic(self):
        phrase = generate_mnemonic()
        self.assertEqual(len(phrase.split(" ")), 24)
        self.assertTrue(validate_mnemonic(phrase))


if __name__ == "__main__":
    unittest.main()
