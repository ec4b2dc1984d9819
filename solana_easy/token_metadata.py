# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Metaplex Token Metadata program: NFT metadata and master editions.

Metadata and master edition accounts live at program derived addresses of the
mint, so they can be found from the mint alone. Instruction data and account
state are Borsh encoded: u32 length prefixed strings and u8 tagged options.

Examples:
    Attach metadata to a freshly minted NFT::

        data = DataV2(name="My NFT", symbol="MNFT", uri=metadata_url)
        instruction = create_metadata_account_v3(
            mint, mint_authority=owner, payer=owner, update_authority=owner, data=data
        )
"""

from __future__ import annotations

import unittest
from dataclasses import dataclass, field
from typing import List, Optional

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID

from .layout import Deserializer, Serializer
from .token_program import TOKEN_PROGRAM_ID

TOKEN_METADATA_PROGRAM_ID = Pubkey.from_string(
    "metaqbxxUerdq28cj1RbAWkYQm3ybzjb6a8bt518x1s"
)

CREATE_METADATA_ACCOUNT_V3 = 33
CREATE_MASTER_EDITION_V3 = 17

MAX_NAME_LENGTH = 32
MAX_SYMBOL_LENGTH = 10
MAX_URI_LENGTH = 200
MAX_SELLER_FEE_BASIS_POINTS = 10_000


def get_metadata_address(mint: Pubkey) -> Pubkey:
    address, _ = Pubkey.find_program_address(
        [b"metadata", bytes(TOKEN_METADATA_PROGRAM_ID), bytes(mint)],
        TOKEN_METADATA_PROGRAM_ID,
    )
    return address


def get_master_edition_address(mint: Pubkey) -> Pubkey:
    address, _ = Pubkey.find_program_address(
        [b"metadata", bytes(TOKEN_METADATA_PROGRAM_ID), bytes(mint), b"edition"],
        TOKEN_METADATA_PROGRAM_ID,
    )
    return address


@dataclass
class Creator:
    address: Pubkey
    share: int
    verified: bool = False

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Creator:
        address = deserializer.pubkey()
        verified = deserializer.bool()
        return Creator(address, deserializer.u8(), verified)

    def serialize(self, serializer: Serializer):
        serializer.pubkey(self.address)
        serializer.bool(self.verified)
        serializer.u8(self.share)


@dataclass
class Collection:
    key: Pubkey
    verified: bool = False

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Collection:
        verified = deserializer.bool()
        return Collection(deserializer.pubkey(), verified)

    def serialize(self, serializer: Serializer):
        serializer.bool(self.verified)
        serializer.pubkey(self.key)


@dataclass
class DataV2:
    """On-chain part of NFT metadata; everything else lives at ``uri``."""

    name: str
    symbol: str
    uri: str
    seller_fee_basis_points: int = 0
    creators: Optional[List[Creator]] = None
    collection: Optional[Collection] = None

    def __post_init__(self):
        for label, value, limit in (
            ("name", self.name, MAX_NAME_LENGTH),
            ("symbol", self.symbol, MAX_SYMBOL_LENGTH),
            ("uri", self.uri, MAX_URI_LENGTH),
        ):
            if len(value.encode()) > limit:
                raise ValueError(f"Metadata {label} longer than {limit} bytes")
        if not 0 <= self.seller_fee_basis_points <= MAX_SELLER_FEE_BASIS_POINTS:
            raise ValueError("seller_fee_basis_points must be between 0 and 10000")
        if self.creators and sum(c.share for c in self.creators) != 100:
            raise ValueError("Creator shares must add up to 100")

    def serialize(self, serializer: Serializer):
        serializer.str(self.name)
        serializer.str(self.symbol)
        serializer.str(self.uri)
        serializer.u16(self.seller_fee_basis_points)
        serializer.option(
            self.creators,
            lambda ser, creators: ser.sequence(creators, Serializer.struct),
        )
        serializer.option(self.collection, Serializer.struct)
        # Uses
        serializer.option(None, Serializer.struct)


def create_metadata_account_v3(
    mint: Pubkey,
    mint_authority: Pubkey,
    payer: Pubkey,
    update_authority: Pubkey,
    data: DataV2,
    is_mutable: bool = True,
) -> Instruction:
    ser = Serializer()
    ser.u8(CREATE_METADATA_ACCOUNT_V3)
    ser.struct(data)
    ser.bool(is_mutable)
    # Collection details, only used by collection parent NFTs.
    ser.option(None, Serializer.struct)
    accounts = [
        AccountMeta(get_metadata_address(mint), is_signer=False, is_writable=True),
        AccountMeta(mint, is_signer=False, is_writable=False),
        AccountMeta(mint_authority, is_signer=True, is_writable=False),
        AccountMeta(payer, is_signer=True, is_writable=True),
        AccountMeta(update_authority, is_signer=True, is_writable=False),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    return Instruction(TOKEN_METADATA_PROGRAM_ID, ser.output(), accounts)


def create_master_edition_v3(
    mint: Pubkey,
    update_authority: Pubkey,
    mint_authority: Pubkey,
    payer: Pubkey,
    max_supply: Optional[int] = None,
) -> Instruction:
    """Turn ``mint`` into a master edition.

    The program takes over the mint and freeze authorities, so no further
    tokens can be minted. ``max_supply`` bounds the number of printed
    editions; ``None`` means unlimited.
    """
    ser = Serializer()
    ser.u8(CREATE_MASTER_EDITION_V3)
    ser.option(max_supply, Serializer.u64)
    accounts = [
        AccountMeta(get_master_edition_address(mint), is_signer=False, is_writable=True),
        AccountMeta(mint, is_signer=False, is_writable=True),
        AccountMeta(update_authority, is_signer=True, is_writable=False),
        AccountMeta(mint_authority, is_signer=True, is_writable=False),
        AccountMeta(payer, is_signer=True, is_writable=True),
        AccountMeta(get_metadata_address(mint), is_signer=False, is_writable=True),
        AccountMeta(TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
        AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
    ]
    return Instruction(TOKEN_METADATA_PROGRAM_ID, ser.output(), accounts)


@dataclass
class Metadata:
    """Decoded metadata account. Strings have their zero padding removed."""

    update_authority: Pubkey
    mint: Pubkey
    name: str
    symbol: str
    uri: str
    seller_fee_basis_points: int
    creators: Optional[List[Creator]]
    primary_sale_happened: bool
    is_mutable: bool
    edition_nonce: Optional[int] = None
    token_standard: Optional[int] = None
    collection: Optional[Collection] = None
    extra: bytes = field(default=b"", repr=False)

    # Account discriminator of metadata accounts.
    KEY = 4

    @staticmethod
    def from_bytes(data: bytes) -> Metadata:
        der = Deserializer(data)
        key = der.u8()
        if key != Metadata.KEY:
            raise ValueError(f"Not a metadata account (key {key})")
        update_authority = der.pubkey()
        mint = der.pubkey()
        name = der.str().rstrip("\x00")
        symbol = der.str().rstrip("\x00")
        uri = der.str().rstrip("\x00")
        seller_fee_basis_points = der.u16()
        creators = der.option(lambda d: d.sequence(Creator.deserialize))
        primary_sale_happened = der.bool()
        is_mutable = der.bool()
        metadata = Metadata(
            update_authority,
            mint,
            name,
            symbol,
            uri,
            seller_fee_basis_points,
            creators,
            primary_sale_happened,
            is_mutable,
        )
        # Older accounts end here; newer ones append optional fields.
        if der.remaining() > 0:
            metadata.edition_nonce = der.option(Deserializer.u8)
        if der.remaining() > 0:
            metadata.token_standard = der.option(Deserializer.u8)
        if der.remaining() > 0:
            metadata.collection = der.option(Collection.deserialize)
        metadata.extra = der.fixed_bytes(der.remaining())
        return metadata


class Test(unittest.TestCase):
    def test_addresses(self):
        mint = Pubkey.new_unique()
        metadata, _ = Pubkey.find_program_address(
            [b"metadata", bytes(TOKEN_METADATA_PROGRAM_ID), bytes(mint)],
            TOKEN_METADATA_PROGRAM_ID,
        )
        self.assertEqual(get_metadata_address(mint), metadata)
        self.assertNotEqual(get_master_edition_address(mint), metadata)

    def test_create_metadata_data(self):
        mint, owner = Pubkey.new_unique(), Pubkey.new_unique()
        data = DataV2("A", "B", "C", 500, [Creator(owner, 100, True)])
        instruction = create_metadata_account_v3(mint, owner, owner, owner, data)
        expected = (
            bytes([33])
            + b"\x01\x00\x00\x00A"
            + b"\x01\x00\x00\x00B"
            + b"\x01\x00\x00\x00C"
            + (500).to_bytes(2, "little")
            + b"\x01"
            + b"\x01\x00\x00\x00"
            + bytes(owner)
            + b"\x01"
            + bytes([100])
            + b"\x00"
            + b"\x00"
            + b"\x01"
            + b"\x00"
        )
        self.assertEqual(bytes(instruction.data), expected)
        self.assertEqual(instruction.accounts[0].pubkey, get_metadata_address(mint))

    def test_master_edition_data(self):
        mint, owner = Pubkey.new_unique(), Pubkey.new_unique()
        instruction = create_master_edition_v3(mint, owner, owner, owner, 1)
        self.assertEqual(
            bytes(instruction.data), bytes([17, 1]) + (1).to_bytes(8, "little")
        )
        unlimited = create_master_edition_v3(mint, owner, owner, owner)
        self.assertEqual(bytes(unlimited.data), bytes([17, 0]))

    def test_data_validation(self):
        owner = Pubkey.new_unique()
        with self.assertRaises(ValueError):
            DataV2("x" * 33, "S", "U")
        with self.assertRaises(ValueError):
            DataV2("N", "S", "U", seller_fee_basis_points=10_001)
        with self.assertRaises(ValueError):
            DataV2("N", "S", "U", creators=[Creator(owner, 50)])

    def test_parse_metadata(self):
        update_authority, mint = Pubkey.new_unique(), Pubkey.new_unique()
        ser = Serializer()
        ser.u8(Metadata.KEY)
        ser.pubkey(update_authority)
        ser.pubkey(mint)
        ser.str("Name".ljust(32, "\x00"))
        ser.str("SYM".ljust(10, "\x00"))
        ser.str("https://arweave.net/abc".ljust(200, "\x00"))
        ser.u16(250)
        ser.option(
            [Creator(update_authority, 100, True)],
            lambda s, creators: s.sequence(creators, Serializer.struct),
        )
        ser.bool(False)
        ser.bool(True)
        ser.option(255, Serializer.u8)
        ser.option(0, Serializer.u8)
        ser.option(None, Serializer.struct)
        data = ser.output() + b"\x00" * 64

        metadata = Metadata.from_bytes(data)
        self.assertEqual(metadata.name, "Name")
        self.assertEqual(metadata.symbol, "SYM")
        self.assertEqual(metadata.uri, "https://arweave.net/abc")
        self.assertEqual(metadata.seller_fee_basis_points, 250)
        self.assertEqual(metadata.creators[0].address, update_authority)
        self.assertTrue(metadata.creators[0].verified)
        self.assertTrue(metadata.is_mutable)
        self.assertEqual(metadata.edition_nonce, 255)
        self.assertEqual(metadata.token_standard, 0)
        self.assertIsNone(metadata.collection)

    def test_not_metadata(self):
        with self.assertRaises(ValueError):
            Metadata.from_bytes(b"\x01" + b"\x00" * 100)


if __name__ == "__main__":
    unittest.main()
