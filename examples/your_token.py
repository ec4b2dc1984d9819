# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Create a fungible token, mint it, send some to another wallet, burn a
little and finally give up the mint authority.
"""

import asyncio
from decimal import Decimal

from solana_easy.async_client import ClientConfig
from solana_easy.spl_client import SplClient
from solana_easy.token_program import AuthorityType, get_associated_token_address
from solana_easy.wallet import Wallet

from .common import CLUSTER, RPC_URL


async def main():
    client = await SplClient.connect(CLUSTER, ClientConfig(), url=RPC_URL)

    alice = Wallet.generate()
    bob = Wallet.generate()
    await client.airdrop(alice, 1)

    token = await client.create_token(alice, decimals=6)
    print(f"Token: {client.get_account_link(token.mint)}")

    await client.mint(token.mint, alice, Decimal("1000"))
    await client.transfer_token(token.mint, alice, bob, Decimal("250.5"))
    await client.burn(token.mint, alice, Decimal("0.5"))

    alice_account = get_associated_token_address(alice.public_key, token.mint)
    bob_account = get_associated_token_address(bob.public_key, token.mint)
    print("\n=== Token Balances ===")
    print(f"Alice: {await client.get_token_account_balance(alice_account)}")
    print(f"Bob: {await client.get_token_account_balance(bob_account)}")

    await client.set_authority_of_token_account(
        token.mint, alice, None, AuthorityType.MINT_TOKENS
    )
    mint_info = await client.get_token_info(token.mint)
    print(f"\nSupply: {mint_info.supply}, mint authority: {mint_info.mint_authority}")

    await client.close()


if __name__ == "__main__":
    asyncio.run(main())
