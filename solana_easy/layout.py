# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Little-endian binary layouts for Solana instruction data and account state.

Solana programs do not share one canonical encoding. The system and stake
programs use bincode (u32 enum tags), the SPL token program uses a packed
C-like layout with ``COption`` fields (u32 presence tag), and Metaplex uses
Borsh (u32 length prefixes, u8 option tags). All of them are little-endian
fixed-width integers, so a single serializer covers the three with a couple
of extra helpers.

The module contains:
- Deserializer class for reading account data
- Serializer class for writing instruction data
- Helper functions for encoding values

Examples:
    Encoding SPL ``MintTo`` instruction data::

        from solana_easy.layout import Serializer

        ser = Serializer()
        ser.u8(7)             # instruction tag
        ser.u64(1_000_000)    # amount in base units
        data = ser.output()

    Reading a Metaplex string field::

        der = Deserializer(account_data)
        name = der.str().rstrip("\\x00")
"""

from __future__ import annotations

import io
import typing
import unittest

from solders.pubkey import Pubkey

MAX_U8 = 2**8 - 1
MAX_U16 = 2**16 - 1
MAX_U32 = 2**32 - 1
MAX_U64 = 2**64 - 1
MIN_I64 = -(2**63)
MAX_I64 = 2**63 - 1

PUBKEY_LENGTH = 32


class LayoutError(Exception):
    """Data did not fit the requested layout."""


class Deserializer:
    """Reads little-endian values from account or instruction data.

    The deserializer keeps a cursor into the input. Account layouts are often
    padded (Metaplex metadata accounts are allocated with spare room), so
    running out of fields before the end of the buffer is allowed; reading
    past the end is not.

    Examples:
        Parsing an SPL mint header::

            der = Deserializer(data)
            mint_authority = der.coption(Deserializer.pubkey)
            supply = der.u64()
            decimals = der.u8()
    """

    _input: io.BytesIO
    _length: int

    def __init__(self, data: bytes):
        self._length = len(data)
        self._input = io.BytesIO(data)

    def remaining(self) -> int:
        """Number of unread bytes left in the stream."""
        return self._length - self._input.tell()

    def skip(self, length: int):
        self._read(length)

    def bool(self) -> bool:
        value = self.u8()
        if value == 0:
            return False
        elif value == 1:
            return True
        else:
            raise LayoutError(f"Unexpected boolean value: {value}")

    def to_bytes(self) -> bytes:
        """Read a u32-length prefixed byte array (Borsh ``Vec<u8>``)."""
        return self._read(self.u32())

    def fixed_bytes(self, length: int) -> bytes:
        return self._read(length)

    def pubkey(self) -> Pubkey:
        return Pubkey.from_bytes(self._read(PUBKEY_LENGTH))

    def option(
        self, value_decoder: typing.Callable[[Deserializer], typing.Any]
    ) -> typing.Optional[typing.Any]:
        """Read a Borsh ``Option<T>``: a u8 tag followed by the value when set."""
        if self.bool():
            return value_decoder(self)
        return None

    def coption(
        self, value_decoder: typing.Callable[[Deserializer], typing.Any]
    ) -> typing.Optional[typing.Any]:
        """Read an SPL ``COption<T>``.

        The value slot is always present in the account, even when the u32
        tag says it is unset, so it is consumed either way.
        """
        tag = self.u32()
        value = value_decoder(self)
        if tag == 0:
            return None
        if tag != 1:
            raise LayoutError(f"Unexpected COption tag: {tag}")
        return value

    def sequence(
        self,
        value_decoder: typing.Callable[[Deserializer], typing.Any],
    ) -> typing.List[typing.Any]:
        length = self.u32()
        values = []
        while len(values) < length:
            values.append(value_decoder(self))
        return values

    def str(self) -> str:
        return self.to_bytes().decode()

    def struct(self, struct: typing.Any) -> typing.Any:
        return struct.deserialize(self)

    def u8(self) -> int:
        return self._read_int(1)

    def u16(self) -> int:
        return self._read_int(2)

    def u32(self) -> int:
        return self._read_int(4)

    def u64(self) -> int:
        return self._read_int(8)

    def i64(self) -> int:
        return int.from_bytes(self._read(8), byteorder="little", signed=True)

    def _read(self, length: int) -> bytes:
        value = self._input.read(length)
        if value is None or len(value) < length:
            actual_length = 0 if value is None else len(value)
            error = (
                f"Unexpected end of input. Requested: {length}, found: {actual_length}"
            )
            raise LayoutError(error)
        return value

    def _read_int(self, length: int) -> int:
        return int.from_bytes(self._read(length), byteorder="little", signed=False)


class Serializer:
    """Writes little-endian values for instruction data.

    Examples:
        SPL ``InitializeMint2``::

            ser = Serializer()
            ser.u8(20)
            ser.u8(decimals)
            ser.pubkey(mint_authority)
            ser.option(freeze_authority, Serializer.pubkey)
            data = ser.output()
    """

    _output: io.BytesIO

    def __init__(self):
        self._output = io.BytesIO()

    def output(self) -> bytes:
        return self._output.getvalue()

    def bool(self, value: bool):
        self.u8(int(value))

    def to_bytes(self, value: bytes):
        self.u32(len(value))
        self._output.write(value)

    def fixed_bytes(self, value):
        self._output.write(value)

    def pubkey(self, value: Pubkey):
        self._output.write(bytes(value))

    def option(
        self,
        value: typing.Optional[typing.Any],
        value_encoder: typing.Callable[[Serializer, typing.Any], None],
    ):
        if value is None:
            self.u8(0)
        else:
            self.u8(1)
            value_encoder(self, value)

    def coption(
        self,
        value: typing.Optional[typing.Any],
        value_encoder: typing.Callable[[Serializer, typing.Any], None],
        width: int,
    ):
        """Write an SPL ``COption<T>`` whose value slot is ``width`` bytes."""
        if value is None:
            self.u32(0)
            self.fixed_bytes(b"\x00" * width)
        else:
            self.u32(1)
            value_encoder(self, value)

    def sequence(
        self,
        values: typing.List[typing.Any],
        value_encoder: typing.Callable[[Serializer, typing.Any], None],
    ):
        self.u32(len(values))
        for value in values:
            self.fixed_bytes(encoder(value, value_encoder))

    def str(self, value: str):
        self.to_bytes(value.encode())

    def struct(self, value: typing.Any):
        value.serialize(self)

    def u8(self, value: int):
        if value < 0 or value > MAX_U8:
            raise LayoutError(f"Cannot encode {value} into u8")

        self._write_int(value, 1)

    def u16(self, value: int):
        if value < 0 or value > MAX_U16:
            raise LayoutError(f"Cannot encode {value} into u16")

        self._write_int(value, 2)

    def u32(self, value: int):
        if value < 0 or value > MAX_U32:
            raise LayoutError(f"Cannot encode {value} into u32")

        self._write_int(value, 4)

    def u64(self, value: int):
        if value < 0 or value > MAX_U64:
            raise LayoutError(f"Cannot encode {value} into u64")

        self._write_int(value, 8)

    def i64(self, value: int):
        if value < MIN_I64 or value > MAX_I64:
            raise LayoutError(f"Cannot encode {value} into i64")

        self._output.write(value.to_bytes(8, "little", signed=True))

    def _write_int(self, value: int, length: int):
        self._output.write(value.to_bytes(length, "little", signed=False))


def encoder(
    value: typing.Any, encoder: typing.Callable[[Serializer, typing.Any], typing.Any]
) -> bytes:
    """Encode a single value with ``encoder`` and return the bytes."""
    ser = Serializer()
    encoder(ser, value)
    return ser.output()


class Test(unittest.TestCase):
    def test_u64_is_little_endian(self):
        ser = Serializer()
        ser.u64(1)
        self.assertEqual(ser.output(), b"\x01" + b"\x00" * 7)

    def test_u8_range(self):
        ser = Serializer()
        with self.assertRaises(LayoutError):
            ser.u8(256)
        with self.assertRaises(LayoutError):
            ser.u8(-1)

    def test_i64_negative(self):
        ser = Serializer()
        ser.i64(-2)
        der = Deserializer(ser.output())
        self.assertEqual(der.i64(), -2)

    def test_str_has_u32_prefix(self):
        ser = Serializer()
        ser.str("abc")
        self.assertEqual(ser.output(), b"\x03\x00\x00\x00abc")

    def test_option(self):
        key = Pubkey.from_bytes(bytes(range(32)))
        ser = Serializer()
        ser.option(key, Serializer.pubkey)
        ser.option(None, Serializer.pubkey)
        data = ser.output()
        self.assertEqual(len(data), 1 + 32 + 1)

        der = Deserializer(data)
        self.assertEqual(der.option(Deserializer.pubkey), key)
        self.assertIsNone(der.option(Deserializer.pubkey))
        self.assertEqual(der.remaining(), 0)

    def test_coption_keeps_slot_when_unset(self):
        ser = Serializer()
        ser.coption(None, Serializer.pubkey, PUBKEY_LENGTH)
        ser.u8(9)
        data = ser.output()
        self.assertEqual(len(data), 4 + 32 + 1)

        der = Deserializer(data)
        self.assertIsNone(der.coption(Deserializer.pubkey))
        self.assertEqual(der.u8(), 9)

    def test_coption_bad_tag(self):
        der = Deserializer(b"\x02\x00\x00\x00" + b"\x00" * 32)
        with self.assertRaises(LayoutError):
            der.coption(Deserializer.pubkey)

    def test_sequence(self):
        ser = Serializer()
        ser.sequence([1, 2, 3], Serializer.u16)
        der = Deserializer(ser.output())
        self.assertEqual(der.sequence(Deserializer.u16), [1, 2, 3])

    def test_struct(self):
        class Point:
            def __init__(self, x: int, y: int):
                self.x = x
                self.y = y

            @staticmethod
            def deserialize(deserializer: Deserializer) -> Point:
                return Point(deserializer.u32(), deserializer.u32())

            def serialize(self, serializer: Serializer):
                serializer.u32(self.x)
                serializer.u32(self.y)

        ser = Serializer()
        ser.struct(Point(3, 4))
        self.assertEqual(ser.output(), b"\x03\x00\x00\x00\x04\x00\x00\x00")
        point = Deserializer(ser.output()).struct(Point)
        self.assertEqual((point.x, point.y), (3, 4))

    def test_bool_error(self):
        der = Deserializer(b"\x20")
        with self.assertRaises(LayoutError):
            der.bool()

    def test_truncated_input(self):
        der = Deserializer(b"\x01\x02")
        with self.assertRaises(LayoutError):
            der.u32()


if __name__ == "__main__":
    unittest.main()
