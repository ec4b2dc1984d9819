# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Fund a fresh wallet from the faucet and send SOL to another one, first
directly and then twice in a single batched transaction with a memo.
"""

import asyncio
from decimal import Decimal

from solana_easy.async_client import ClientConfig
from solana_easy.spl_client import SplClient
from solana_easy.wallet import Wallet

from .common import CLUSTER, RPC_URL


async def main():
    client = await SplClient.connect(CLUSTER, ClientConfig(), url=RPC_URL)

    alice = Wallet.generate()
    bob = Wallet.generate()

    print("\n=== Addresses ===")
    print(f"Alice: {alice.public_key_string}")
    print(f"Bob: {bob.public_key_string}")

    await client.airdrop(alice, 1)

    print("\n=== Initial Balances ===")
    [alice_balance, bob_balance] = await asyncio.gather(
        client.get_sol_balance(alice), client.get_sol_balance(bob)
    )
    print(f"Alice: {alice_balance}")
    print(f"Bob: {bob_balance}")

    signature = await client.transfer_sol(alice, bob, Decimal("0.1"))
    print(f"\nTransfer: {client.get_transaction_link(signature)}")

    # Two transfers and a memo, committed atomically
    builder = client.begin_transaction(alice)
    await client.transfer_sol(alice, bob, Decimal("0.01"), builder)
    await client.transfer_sol(alice, bob, Decimal("0.02"), builder)
    await client.transfer_data(alice, "solana-easy batch", builder)
    signature = await client.end_transaction(builder)
    print(f"Batch: {client.get_transaction_link(signature)}")

    print("\n=== Final Balances ===")
    [alice_balance, bob_balance] = await asyncio.gather(
        client.get_sol_balance(alice), client.get_sol_balance(bob)
    )
    print(f"Alice: {alice_balance}")
    print(f"Bob: {bob_balance}")
    print(f"Transaction fee: {await client.get_transaction_cost(alice)} SOL")

    await client.close()


if __name__ == "__main__":
    asyncio.run(main())
