# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Accumulates instructions and their signers into one signed transaction.

Operations in :mod:`solana_easy.spl_client` either send immediately or append
to a caller supplied :class:`TransactionBuilder`, so several operations can be
batched atomically. The builder tracks every keypair an appended instruction
needs; nothing is attached to it through side channels.

Examples:
    Batch two transfers::

        builder = TransactionBuilder(payer)
        builder.add(transfer(TransferParams(...)))
        builder.add(transfer(TransferParams(...)))
        transaction = builder.build(blockhash)
"""

from __future__ import annotations

import unittest
from typing import Iterable, List

from solders.hash import Hash
from solders.instruction import Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction


class TransactionBuilder:
    """Ordered instructions plus the de-duplicated keypairs that sign them.

    The fee payer is always the first signer. Keypairs added with an
    instruction are only used for signing when the compiled message lists
    them as required signers, so passing an authority that turns out not to
    need signing is harmless.
    """

    fee_payer: Keypair
    instructions: List[Instruction]
    signers: List[Keypair]

    def __init__(self, fee_payer: Keypair):
        self.fee_payer = fee_payer
        self.instructions = []
        self.signers = [fee_payer]

    def __len__(self) -> int:
        return len(self.instructions)

    def add(self, instruction: Instruction, *signers: Keypair) -> TransactionBuilder:
        self.instructions.append(instruction)
        for signer in signers:
            self._add_signer(signer)
        return self

    def extend(
        self, instructions: Iterable[Instruction], *signers: Keypair
    ) -> TransactionBuilder:
        for instruction in instructions:
            self.add(instruction)
        for signer in signers:
            self._add_signer(signer)
        return self

    def message(self, recent_blockhash: Hash) -> Message:
        return Message.new_with_blockhash(
            self.instructions, self.fee_payer.pubkey(), recent_blockhash
        )

    def build(self, recent_blockhash: Hash) -> Transaction:
        """Compile and sign.

        Raises:
            ValueError: If the builder is empty or a required signer is
                missing from the accumulated keypairs.
        """
        if not self.instructions:
            raise ValueError("Cannot build a transaction without instructions")

        message = self.message(recent_blockhash)
        required = message.account_keys[: message.header.num_required_signatures]
        by_key = {signer.pubkey(): signer for signer in self.signers}
        missing = [str(key) for key in required if key not in by_key]
        if missing:
            raise ValueError(f"Missing signers for {', '.join(missing)}")
        return Transaction([by_key[key] for key in required], message, recent_blockhash)

    def _add_signer(self, signer: Keypair):
        public_key = signer.pubkey()
        if all(existing.pubkey() != public_key for existing in self.signers):
            self.signers.append(signer)


def _required_signers(transaction: Transaction) -> List[Pubkey]:
    message = transaction.message
    return list(message.account_keys[: message.header.num_required_signatures])


class Test(unittest.TestCase):
    BLOCKHASH = Hash.default()

    def test_single_transfer(self):
        payer = Keypair()
        receiver = Keypair().pubkey()
        builder = TransactionBuilder(payer)
        builder.add(
            transfer(
                TransferParams(
                    from_pubkey=payer.pubkey(), to_pubkey=receiver, lamports=1_000
                )
            )
        )
        transaction = builder.build(self.BLOCKHASH)

        self.assertEqual(_required_signers(transaction), [payer.pubkey()])
        self.assertEqual(len(transaction.signatures), 1)
        transaction.verify()

    def test_signers_are_deduplicated(self):
        payer = Keypair()
        other = Keypair()
        builder = TransactionBuilder(payer)
        params = TransferParams(
            from_pubkey=other.pubkey(), to_pubkey=payer.pubkey(), lamports=5
        )
        builder.add(transfer(params), other, payer)
        builder.add(transfer(params), other)

        self.assertEqual(len(builder), 2)
        self.assertEqual(builder.signers, [payer, other])
        transaction = builder.build(self.BLOCKHASH)
        self.assertEqual(
            _required_signers(transaction), [payer.pubkey(), other.pubkey()]
        )
        transaction.verify()

    def test_unneeded_signer_is_ignored(self):
        payer = Keypair()
        builder = TransactionBuilder(payer)
        builder.add(
            transfer(
                TransferParams(
                    from_pubkey=payer.pubkey(), to_pubkey=Keypair().pubkey(), lamports=1
                )
            ),
            Keypair(),
        )
        self.assertEqual(len(builder.build(self.BLOCKHASH).signatures), 1)

    def test_missing_signer(self):
        payer = Keypair()
        builder = TransactionBuilder(payer)
        builder.add(
            transfer(
                TransferParams(
                    from_pubkey=Keypair().pubkey(), to_pubkey=payer.pubkey(), lamports=1
                )
            )
        )
        with self.assertRaises(ValueError):
            builder.build(self.BLOCKHASH)

    def test_empty(self):
        with self.assertRaises(ValueError):
            TransactionBuilder(Keypair()).build(self.BLOCKHASH)


if __name__ == "__main__":
    unittest.main()
