# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
solana-easy: a convenience layer over the Solana JSON-RPC API and Arweave.

Recover wallets from a mnemonic, move SOL and SPL tokens, create and mint
fungible tokens and NFTs, stake, and store NFT media on Arweave without
assembling instructions by hand.

Quick Start:
    Restore a wallet and send SOL on devnet::

        import asyncio
        from decimal import Decimal

        from solana_easy.async_client import Cluster
        from solana_easy.spl_client import SplClient
        from solana_easy.wallet import Wallet

        async def main():
            wallet = Wallet.restore_from_mnemonic("...")
            client = await SplClient.connect(Cluster.DEVNET)
            await client.airdrop(wallet)
            signature = await client.transfer_sol(wallet, "...", Decimal("0.1"))
            print(client.get_transaction_link(signature))
            await client.close()

        asyncio.run(main())

Module Organization:
    Keys:
    - **derivation**: BIP-39 mnemonics and SLIP-0010/BIP-32 path derivation
    - **wallet**: Immutable recoverable wallets and ``WalletFactory``
    - **ed25519**: Key and signature wrappers over PyNaCl
    - **signer**: Resolution of keys, keypairs and wallets at API boundaries

    Chain:
    - **async_client**: Async JSON-RPC client, clusters and configuration
    - **transactions**: ``TransactionBuilder`` for batched instructions
    - **layout**: Little-endian instruction data and account layouts
    - **token_program**, **stake_program**, **memo**, **token_metadata**:
      Instruction builders and account parsers per on-chain program
    - **spl_client**: High-level token, NFT and staking operations

    Off-chain:
    - **arweave**: Arweave wallets, transactions, uploads and storage cost
    - **token_list**: Public SPL token list
    - **cli**: ``python -m solana_easy.cli``
"""
