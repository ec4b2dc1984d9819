# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Resolution of the identities accepted at public client boundaries.

Client methods accept whatever the caller happens to hold: a ``Pubkey``, a
base58 address, a ``solders`` ``Keypair`` or a :class:`~solana_easy.wallet.Wallet`.
These helpers turn that into the one concrete type the method needs, once,
and reject anything else with ``TypeError``.
"""

from __future__ import annotations

import unittest
from typing import Union

from solders.keypair import Keypair
from solders.pubkey import Pubkey
from typing_extensions import Protocol, runtime_checkable


@runtime_checkable
class HasPublicKey(Protocol):
    @property
    def public_key(self) -> Pubkey:
        ...


@runtime_checkable
class HasKeypair(Protocol):
    @property
    def keypair(self) -> Keypair:
        ...


PublicKeyLike = Union[Pubkey, str, Keypair, HasPublicKey]
KeypairLike = Union[Keypair, HasKeypair]


def to_public_key(value: PublicKeyLike) -> Pubkey:
    if isinstance(value, Pubkey):
        return value
    if isinstance(value, str):
        return Pubkey.from_string(value)
    if isinstance(value, Keypair):
        return value.pubkey()
    if isinstance(value, HasPublicKey):
        public_key = value.public_key
        if isinstance(public_key, Pubkey):
            return public_key
    raise TypeError(f"Cannot resolve a public key from {type(value).__name__}")


def to_keypair(value: KeypairLike) -> Keypair:
    if isinstance(value, Keypair):
        return value
    if isinstance(value, HasKeypair):
        keypair = value.keypair
        if isinstance(keypair, Keypair):
            return keypair
    raise TypeError(f"Cannot resolve a keypair from {type(value).__name__}")


class Test(unittest.TestCase):
    def test_to_public_key(self):
        from .wallet import Wallet

        keypair = Keypair()
        wallet = Wallet.restore_from_private_key(bytes(keypair))
        expected = keypair.pubkey()

        self.assertEqual(to_public_key(expected), expected)
        self.assertEqual(to_public_key(str(expected)), expected)
        self.assertEqual(to_public_key(keypair), expected)
        self.assertEqual(to_public_key(wallet), expected)
        with self.assertRaises(TypeError):
            to_public_key(12)  # type: ignore[arg-type]

    def test_to_keypair(self):
        from .wallet import Wallet

        keypair = Keypair()
        wallet = Wallet.restore_from_private_key(bytes(keypair))

        self.assertEqual(to_keypair(keypair), keypair)
        self.assertEqual(to_keypair(wallet).pubkey(), keypair.pubkey())
        with self.assertRaises(TypeError):
            to_keypair(keypair.pubkey())  # type: ignore[arg-type]
        with self.assertRaises(TypeError):
            to_keypair(str(keypair.pubkey()))  # type: ignore[arg-type]


if __name__ == "__main__":
    unittest.main()
