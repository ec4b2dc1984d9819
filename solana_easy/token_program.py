# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
SPL Token program: instruction builders and account layouts.

Instruction data follows the token program's packed format, a one byte
instruction tag followed by little-endian fields. Optional public keys in
instruction data use a one byte presence tag, while the same field in account
state is a ``COption`` with a four byte tag and a fixed slot.

Every builder that needs an authority accepts ``multi_signers``. When given,
the authority is a multisig account and is passed read-only, followed by the
signing members.
"""

from __future__ import annotations

import unittest
from dataclasses import dataclass
from enum import IntEnum
from typing import List, Optional, Sequence

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID

from .layout import PUBKEY_LENGTH, Deserializer, Serializer

TOKEN_PROGRAM_ID = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
ASSOCIATED_TOKEN_PROGRAM_ID = Pubkey.from_string(
    "ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL"
)
# Mint of wrapped SOL.
NATIVE_MINT = Pubkey.from_string("So11111111111111111111111111111111111111112")

MINT_SIZE = 82
ACCOUNT_SIZE = 165


class TokenInstruction(IntEnum):
    TRANSFER = 3
    APPROVE = 4
    REVOKE = 5
    SET_AUTHORITY = 6
    MINT_TO = 7
    BURN = 8
    CLOSE_ACCOUNT = 9
    INITIALIZE_MINT2 = 20


class AuthorityType(IntEnum):
    MINT_TOKENS = 0
    FREEZE_ACCOUNT = 1
    ACCOUNT_OWNER = 2
    CLOSE_ACCOUNT = 3

    @staticmethod
    def from_name(name: str) -> AuthorityType:
        """Accept ``MintTokens`` style names or the short ``mint``/``freeze``/
        ``owner``/``close`` aliases."""
        try:
            return _AUTHORITY_TYPES_BY_NAME[name]
        except KeyError:
            raise ValueError(
                f"Unknown authority type {name!r}, expected one of "
                f"{', '.join(_AUTHORITY_TYPES_BY_NAME)}"
            ) from None


_AUTHORITY_TYPES_BY_NAME = {
    "MintTokens": AuthorityType.MINT_TOKENS,
    "FreezeAccount": AuthorityType.FREEZE_ACCOUNT,
    "AccountOwner": AuthorityType.ACCOUNT_OWNER,
    "CloseAccount": AuthorityType.CLOSE_ACCOUNT,
    "mint": AuthorityType.MINT_TOKENS,
    "freeze": AuthorityType.FREEZE_ACCOUNT,
    "owner": AuthorityType.ACCOUNT_OWNER,
    "close": AuthorityType.CLOSE_ACCOUNT,
}


class AccountState(IntEnum):
    UNINITIALIZED = 0
    INITIALIZED = 1
    FROZEN = 2


def get_associated_token_address(
    owner: Pubkey, mint: Pubkey, program_id: Pubkey = TOKEN_PROGRAM_ID
) -> Pubkey:
    """Deterministic token account address of ``owner`` for ``mint``."""
    address, _ = Pubkey.find_program_address(
        [bytes(owner), bytes(program_id), bytes(mint)], ASSOCIATED_TOKEN_PROGRAM_ID
    )
    return address


def _authority_metas(
    authority: Pubkey, multi_signers: Sequence[Pubkey]
) -> List[AccountMeta]:
    if not multi_signers:
        return [AccountMeta(authority, is_signer=True, is_writable=False)]
    return [AccountMeta(authority, is_signer=False, is_writable=False)] + [
        AccountMeta(signer, is_signer=True, is_writable=False)
        for signer in multi_signers
    ]


def _instruction(
    accounts: List[AccountMeta], data: bytes, program_id: Pubkey
) -> Instruction:
    return Instruction(program_id, data, accounts)


def _amount_data(tag: TokenInstruction, amount: int) -> bytes:
    ser = Serializer()
    ser.u8(tag)
    ser.u64(amount)
    return ser.output()


def initialize_mint(
    mint: Pubkey,
    decimals: int,
    mint_authority: Pubkey,
    freeze_authority: Optional[Pubkey] = None,
    program_id: Pubkey = TOKEN_PROGRAM_ID,
) -> Instruction:
    """``InitializeMint2``, which needs no rent sysvar account."""
    ser = Serializer()
    ser.u8(TokenInstruction.INITIALIZE_MINT2)
    ser.u8(decimals)
    ser.pubkey(mint_authority)
    ser.option(freeze_authority, Serializer.pubkey)
    return _instruction(
        [AccountMeta(mint, is_signer=False, is_writable=True)], ser.output(), program_id
    )


def transfer(
    source: Pubkey,
    destination: Pubkey,
    owner: Pubkey,
    amount: int,
    multi_signers: Sequence[Pubkey] = (),
    program_id: Pubkey = TOKEN_PROGRAM_ID,
) -> Instruction:
    accounts = [
        AccountMeta(source, is_signer=False, is_writable=True),
        AccountMeta(destination, is_signer=False, is_writable=True),
    ] + _authority_metas(owner, multi_signers)
    return _instruction(
        accounts, _amount_data(TokenInstruction.TRANSFER, amount), program_id
    )


def mint_to(
    mint: Pubkey,
    destination: Pubkey,
    authority: Pubkey,
    amount: int,
    multi_signers: Sequence[Pubkey] = (),
    program_id: Pubkey = TOKEN_PROGRAM_ID,
) -> Instruction:
    accounts = [
        AccountMeta(mint, is_signer=False, is_writable=True),
        AccountMeta(destination, is_signer=False, is_writable=True),
    ] + _authority_metas(authority, multi_signers)
    return _instruction(
        accounts, _amount_data(TokenInstruction.MINT_TO, amount), program_id
    )


def burn(
    account: Pubkey,
    mint: Pubkey,
    owner: Pubkey,
    amount: int,
    multi_signers: Sequence[Pubkey] = (),
    program_id: Pubkey = TOKEN_PROGRAM_ID,
) -> Instruction:
    accounts = [
        AccountMeta(account, is_signer=False, is_writable=True),
        AccountMeta(mint, is_signer=False, is_writable=True),
    ] + _authority_metas(owner, multi_signers)
    return _instruction(accounts, _amount_data(TokenInstruction.BURN, amount), program_id)


def close_account(
    account: Pubkey,
    destination: Pubkey,
    owner: Pubkey,
    multi_signers: Sequence[Pubkey] = (),
    program_id: Pubkey = TOKEN_PROGRAM_ID,
) -> Instruction:
    """Close a token account with zero balance, moving its rent to ``destination``."""
    accounts = [
        AccountMeta(account, is_signer=False, is_writable=True),
        AccountMeta(destination, is_signer=False, is_writable=True),
    ] + _authority_metas(owner, multi_signers)
    return _instruction(accounts, bytes([TokenInstruction.CLOSE_ACCOUNT]), program_id)


def set_authority(
    account: Pubkey,
    current_authority: Pubkey,
    authority_type: AuthorityType,
    new_authority: Optional[Pubkey],
    multi_signers: Sequence[Pubkey] = (),
    program_id: Pubkey = TOKEN_PROGRAM_ID,
) -> Instruction:
    """Change or, with ``new_authority=None``, permanently remove an authority."""
    ser = Serializer()
    ser.u8(TokenInstruction.SET_AUTHORITY)
    ser.u8(authority_type)
    ser.option(new_authority, Serializer.pubkey)
    accounts = [
        AccountMeta(account, is_signer=False, is_writable=True)
    ] + _authority_metas(current_authority, multi_signers)
    return _instruction(accounts, ser.output(), program_id)


def approve(
    source: Pubkey,
    delegate: Pubkey,
    owner: Pubkey,
    amount: int,
    multi_signers: Sequence[Pubkey] = (),
    program_id: Pubkey = TOKEN_PROGRAM_ID,
) -> Instruction:
    accounts = [
        AccountMeta(source, is_signer=False, is_writable=True),
        AccountMeta(delegate, is_signer=False, is_writable=False),
    ] + _authority_metas(owner, multi_signers)
    return _instruction(
        accounts, _amount_data(TokenInstruction.APPROVE, amount), program_id
    )


def revoke(
    source: Pubkey,
    owner: Pubkey,
    multi_signers: Sequence[Pubkey] = (),
    program_id: Pubkey = TOKEN_PROGRAM_ID,
) -> Instruction:
    accounts = [
        AccountMeta(source, is_signer=False, is_writable=True)
    ] + _authority_metas(owner, multi_signers)
    return _instruction(accounts, bytes([TokenInstruction.REVOKE]), program_id)


def create_associated_token_account(
    payer: Pubkey,
    owner: Pubkey,
    mint: Pubkey,
    idempotent: bool = True,
    program_id: Pubkey = TOKEN_PROGRAM_ID,
) -> Instruction:
    """Create ``owner``'s associated token account for ``mint``.

    The idempotent variant succeeds when the account already exists.
    """
    accounts = [
        AccountMeta(payer, is_signer=True, is_writable=True),
        AccountMeta(
            get_associated_token_address(owner, mint, program_id),
            is_signer=False,
            is_writable=True,
        ),
        AccountMeta(owner, is_signer=False, is_writable=False),
        AccountMeta(mint, is_signer=False, is_writable=False),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(program_id, is_signer=False, is_writable=False),
    ]
    data = bytes([1]) if idempotent else bytes([0])
    return Instruction(ASSOCIATED_TOKEN_PROGRAM_ID, data, accounts)


@dataclass
class Mint:
    mint_authority: Optional[Pubkey]
    supply: int
    decimals: int
    is_initialized: bool
    freeze_authority: Optional[Pubkey]

    @staticmethod
    def from_bytes(data: bytes) -> Mint:
        return Mint.deserialize(Deserializer(data))

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Mint:
        return Mint(
            mint_authority=deserializer.coption(Deserializer.pubkey),
            supply=deserializer.u64(),
            decimals=deserializer.u8(),
            is_initialized=deserializer.bool(),
            freeze_authority=deserializer.coption(Deserializer.pubkey),
        )

    def serialize(self, serializer: Serializer):
        serializer.coption(self.mint_authority, Serializer.pubkey, PUBKEY_LENGTH)
        serializer.u64(self.supply)
        serializer.u8(self.decimals)
        serializer.bool(self.is_initialized)
        serializer.coption(self.freeze_authority, Serializer.pubkey, PUBKEY_LENGTH)


@dataclass
class TokenAccount:
    mint: Pubkey
    owner: Pubkey
    amount: int
    delegate: Optional[Pubkey]
    state: AccountState
    # Rent-exempt reserve when the account holds wrapped SOL.
    is_native: Optional[int]
    delegated_amount: int
    close_authority: Optional[Pubkey]

    @staticmethod
    def from_bytes(data: bytes) -> TokenAccount:
        return TokenAccount.deserialize(Deserializer(data))

    @staticmethod
    def deserialize(deserializer: Deserializer) -> TokenAccount:
        return TokenAccount(
            mint=deserializer.pubkey(),
            owner=deserializer.pubkey(),
            amount=deserializer.u64(),
            delegate=deserializer.coption(Deserializer.pubkey),
            state=AccountState(deserializer.u8()),
            is_native=deserializer.coption(Deserializer.u64),
            delegated_amount=deserializer.u64(),
            close_authority=deserializer.coption(Deserializer.pubkey),
        )

    def serialize(self, serializer: Serializer):
        serializer.pubkey(self.mint)
        serializer.pubkey(self.owner)
        serializer.u64(self.amount)
        serializer.coption(self.delegate, Serializer.pubkey, PUBKEY_LENGTH)
        serializer.u8(self.state)
        serializer.coption(self.is_native, Serializer.u64, 8)
        serializer.u64(self.delegated_amount)
        serializer.coption(self.close_authority, Serializer.pubkey, PUBKEY_LENGTH)

    @property
    def is_frozen(self) -> bool:
        return self.state == AccountState.FROZEN


class Test(unittest.TestCase):
    def setUp(self):
        self.keys = [Pubkey.new_unique() for _ in range(4)]

    def test_associated_token_address(self):
        owner, mint = self.keys[0], self.keys[1]
        expected, _ = Pubkey.find_program_address(
            [bytes(owner), bytes(TOKEN_PROGRAM_ID), bytes(mint)],
            ASSOCIATED_TOKEN_PROGRAM_ID,
        )
        self.assertEqual(get_associated_token_address(owner, mint), expected)
        self.assertFalse(get_associated_token_address(owner, mint).is_on_curve())

    def test_initialize_mint(self):
        mint, authority, freeze = self.keys[:3]
        instruction = initialize_mint(mint, 6, authority, freeze)
        self.assertEqual(
            bytes(instruction.data),
            bytes([20, 6]) + bytes(authority) + b"\x01" + bytes(freeze),
        )
        self.assertEqual(instruction.accounts[0].pubkey, mint)
        self.assertTrue(instruction.accounts[0].is_writable)

        without_freeze = initialize_mint(mint, 0, authority)
        self.assertEqual(len(bytes(without_freeze.data)), 2 + 32 + 1)

    def test_amount_instructions(self):
        source, destination, owner, mint = self.keys
        self.assertEqual(
            bytes(transfer(source, destination, owner, 1000).data),
            b"\x03" + (1000).to_bytes(8, "little"),
        )
        self.assertEqual(bytes(mint_to(mint, destination, owner, 5).data)[0], 7)
        self.assertEqual(bytes(burn(source, mint, owner, 5).data)[0], 8)
        self.assertEqual(bytes(approve(source, destination, owner, 5).data)[0], 4)
        self.assertEqual(bytes(revoke(source, owner).data), b"\x05")
        self.assertEqual(bytes(close_account(source, destination, owner).data), b"\x09")

    def test_multisig_authority(self):
        source, destination, owner, _ = self.keys
        signers = [Pubkey.new_unique(), Pubkey.new_unique()]
        instruction = transfer(source, destination, owner, 1, multi_signers=signers)
        metas = instruction.accounts
        self.assertEqual(len(metas), 5)
        self.assertFalse(metas[2].is_signer)
        self.assertTrue(all(meta.is_signer for meta in metas[3:]))

    def test_set_authority(self):
        account, current, new, _ = self.keys
        instruction = set_authority(account, current, AuthorityType.MINT_TOKENS, new)
        self.assertEqual(bytes(instruction.data), bytes([6, 0, 1]) + bytes(new))
        removal = set_authority(account, current, AuthorityType.from_name("close"), None)
        self.assertEqual(bytes(removal.data), bytes([6, 3, 0]))

    def test_authority_type_names(self):
        self.assertIs(AuthorityType.from_name("MintTokens"), AuthorityType.MINT_TOKENS)
        self.assertIs(AuthorityType.from_name("owner"), AuthorityType.ACCOUNT_OWNER)
        with self.assertRaises(ValueError):
            AuthorityType.from_name("minter")

    def test_create_associated_token_account(self):
        payer, owner, mint, _ = self.keys
        instruction = create_associated_token_account(payer, owner, mint)
        self.assertEqual(instruction.program_id, ASSOCIATED_TOKEN_PROGRAM_ID)
        self.assertEqual(bytes(instruction.data), b"\x01")
        self.assertEqual(
            instruction.accounts[1].pubkey, get_associated_token_address(owner, mint)
        )

    def test_mint_layout(self):
        authority = self.keys[0]
        ser = Serializer()
        Mint(authority, 10**9, 9, True, None).serialize(ser)
        data = ser.output()
        self.assertEqual(len(data), MINT_SIZE)

        mint = Mint.from_bytes(data)
        self.assertEqual(mint.mint_authority, authority)
        self.assertEqual(mint.supply, 10**9)
        self.assertEqual(mint.decimals, 9)
        self.assertIsNone(mint.freeze_authority)

    def test_token_account_layout(self):
        mint, owner, delegate, _ = self.keys
        ser = Serializer()
        TokenAccount(
            mint, owner, 500, delegate, AccountState.FROZEN, None, 20, None
        ).serialize(ser)
        data = ser.output()
        self.assertEqual(len(data), ACCOUNT_SIZE)

        account = TokenAccount.from_bytes(data)
        self.assertEqual(account.owner, owner)
        self.assertEqual(account.amount, 500)
        self.assertEqual(account.delegate, delegate)
        self.assertTrue(account.is_frozen)
        self.assertIsNone(account.is_native)


if __name__ == "__main__":
    unittest.main()
