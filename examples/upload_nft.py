# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Estimate the storage cost of an image, upload it with its metadata to
Arweave and mint an NFT pointing at it.

Usage::

    python -m examples.upload_nft image.png arweave-wallet.json
"""

import asyncio
import os
import sys

from solana_easy.arweave import ArweaveClient, ArweaveWallet, StorageCostCalculator
from solana_easy.async_client import ClientConfig
from solana_easy.spl_client import SplClient
from solana_easy.wallet import Wallet

from .common import ARWEAVE_CONFIG, CLUSTER, RPC_URL


async def main(image_path: str, arweave_wallet_path: str):
    arweave = ArweaveClient(ARWEAVE_CONFIG)
    arweave_wallet = ArweaveWallet.load(arweave_wallet_path)
    print(f"Arweave wallet: {arweave_wallet.address}")
    print(f"Arweave balance: {await arweave.get_balance(arweave_wallet.address)} AR")

    calculator = StorageCostCalculator(arweave)
    cost = await calculator.calculate([os.path.getsize(image_path)])
    print(f"Storage cost: {cost.arweave} AR ({cost.solana} SOL)")
    await calculator.close()

    client = await SplClient.connect(CLUSTER, ClientConfig(), url=RPC_URL)
    owner = Wallet.generate()
    await client.airdrop(owner, 1)

    metadata = {
        "name": "solana-easy NFT",
        "symbol": "EASY",
        "description": "Minted by the solana-easy examples",
        "seller_fee_basis_points": 500,
    }
    result = await client.mint_and_upload_nft(
        owner, image_path, metadata, arweave_wallet, arweave_client=arweave
    )
    print(f"Image: {result.file.url}")
    print(f"Metadata: {result.metadata.url}")
    print(f"NFT: {client.get_account_link(result.nft.mint)}")

    onchain = await client.get_nft_metadata(result.nft.mint)
    print(f"On-chain name: {onchain.name}, uri: {onchain.uri}")

    await arweave.close()
    await client.close()


if __name__ == "__main__":
    asyncio.run(main(sys.argv[1], sys.argv[2]))
