"""Memo program instruction: attach arbitrary UTF-8 data to a transaction."""

from __future__ import annotations

import unittest
from typing import Sequence, Union

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

MEMO_PROGRAM_ID = Pubkey.from_string("MemoSq4gqABAXKb96qnH8TysNcWxMyWCqXgDLGmfcHr")


def create_memo(
    data: Union[str, bytes], signers: Sequence[Pubkey] = (), encoding: str = "utf-8"
) -> Instruction:
    """Memo instruction; every key in ``signers`` must sign the transaction.

    The memo program rejects data that is not valid UTF-8, so ``bytes`` are
    checked here rather than on chain.
    """
    payload = data.encode(encoding) if isinstance(data, str) else bytes(data)
    payload.decode("utf-8")
    accounts = [
        AccountMeta(signer, is_signer=True, is_writable=False) for signer in signers
    ]
    return Instruction(MEMO_PROGRAM_ID, payload, accounts)


class Test(unittest.TestCase):
    def test_memo(self):
        signer = Pubkey.new_unique()
        instruction = create_memo("hello ☀", [signer])
        self.assertEqual(instruction.program_id, MEMO_PROGRAM_ID)
        self.assertEqual(bytes(instruction.data), "hello ☀".encode())
        self.assertTrue(instruction.accounts[0].is_signer)

    def test_invalid_utf8(self):
        with self.assertRaises(UnicodeDecodeError):
            create_memo(b"\xff\xfe")


if __name__ == "__main__":
    unittest.main()
