# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Command-line interface for wallet management and SOL transfers.

Examples:
    Create a wallet and save it::

        python -m solana_easy.cli create-wallet --output wallet.json

    Fund it on devnet and check the balance::

        python -m solana_easy.cli airdrop --address <address> --amount 1
        python -m solana_easy.cli balance --address <address>

    Send SOL from a saved wallet or a Solana CLI ``id.json``::

        python -m solana_easy.cli transfer-sol \
            --wallet-path ~/.config/solana/id.json \
            --to <address> --amount 0.1 --cluster devnet
"""

from __future__ import annotations

import argparse
import asyncio
import io
import json
import os
import sys
import tempfile
import unittest
from decimal import Decimal, InvalidOperation
from typing import List, Optional
from unittest import mock

from solders.pubkey import Pubkey

from .async_client import ClientConfig, Cluster
from .derivation import DerivationPath, parse_path
from .spl_client import SplClient
from .wallet import Wallet


def derivation_path(indata: str) -> str:
    """Accept a named path (``legacy``, ``bip44``, ``bip44Change``) or a raw one."""
    try:
        if indata.startswith("m"):
            parse_path(indata)
            return indata
        return DerivationPath.from_name(indata).value
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e))


def amount(indata: str) -> Decimal:
    try:
        value = Decimal(indata)
    except InvalidOperation:
        raise argparse.ArgumentTypeError(f"Invalid amount {indata!r}")
    if value <= 0:
        raise argparse.ArgumentTypeError("Amount must be positive")
    return value


def public_key(indata: str) -> Pubkey:
    try:
        return Pubkey.from_string(indata)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid address {indata!r}")


def load_wallet(path: str) -> Wallet:
    """Read a wallet saved by this tool or a Solana CLI keypair file."""
    with open(os.path.expanduser(path)) as file:
        data = json.load(file)
    if isinstance(data, list):
        return Wallet.load_keypair_file(path)
    return Wallet.load(os.path.expanduser(path))


def print_wallet(wallet: Wallet, output: Optional[str]):
    print(f"Public key: {wallet.public_key_string}")
    if wallet.derivation_path:
        print(f"Derivation path: {wallet.derivation_path}")
    if output:
        wallet.store(output)
        print(f"Wallet saved to {output}")
    elif wallet.mnemonic:
        print(f"Mnemonic: {wallet.mnemonic}")


async def connect(parsed_args: argparse.Namespace) -> SplClient:
    return await SplClient.connect(
        parsed_args.cluster, ClientConfig(), url=parsed_args.rpc_url
    )


async def main(args: List[str]):
    parser = argparse.ArgumentParser(description="Solana wallet CLI")
    parser.add_argument(
        "command",
        type=str,
        help="The command to execute",
        choices=["create-wallet", "restore-wallet", "balance", "airdrop", "transfer-sol"],
    )
    parser.add_argument(
        "--cluster",
        help="Cluster name or alias (devnet, testnet, mainnet-beta, dev, test, main)",
        type=Cluster.from_name,
        default=os.getenv("SOLANA_CLUSTER", "devnet"),
    )
    parser.add_argument(
        "--rpc-url",
        help="RPC endpoint, defaults to the public endpoint of --cluster",
        type=str,
        default=os.getenv("SOLANA_RPC_URL"),
    )
    parser.add_argument(
        "--path",
        help="Derivation path or one of legacy, bip44, bip44Change",
        type=derivation_path,
    )
    parser.add_argument("--passphrase", help="BIP-39 passphrase", type=str, default="")
    parser.add_argument("--mnemonic", help="Mnemonic to restore from", type=str)
    parser.add_argument("--output", help="File to save the wallet to", type=str)
    parser.add_argument("--address", help="Account address", type=public_key)
    parser.add_argument("--to", help="Receiving address", type=public_key)
    parser.add_argument("--amount", help="Amount in SOL", type=amount)
    parser.add_argument(
        "--wallet-path", help="Wallet file or Solana CLI keypair file", type=str
    )
    parsed_args = parser.parse_args(args)

    if parsed_args.command == "create-wallet":
        print_wallet(
            Wallet.generate(parsed_args.passphrase, parsed_args.path),
            parsed_args.output,
        )
        return

    if parsed_args.command == "restore-wallet":
        if parsed_args.mnemonic is None:
            parser.error("Missing required argument '--mnemonic'")
        try:
            wallet = Wallet.restore_from_mnemonic(
                parsed_args.mnemonic, parsed_args.passphrase, parsed_args.path
            )
        except ValueError as e:
            parser.error(str(e))
        print_wallet(wallet, parsed_args.output)
        return

    if parsed_args.command in ("balance", "airdrop"):
        if parsed_args.address is None:
            parser.error("Missing required argument '--address'")
        if parsed_args.command == "airdrop" and parsed_args.cluster == Cluster.MAINNET:
            parser.error("Airdrops are only available on devnet and testnet")
        client = await connect(parsed_args)
        try:
            if parsed_args.command == "airdrop":
                signature = await client.airdrop(
                    parsed_args.address, parsed_args.amount or 1
                )
                print(client.get_transaction_link(signature))
            balance = await client.get_sol_balance(parsed_args.address)
            print(f"Balance: {balance} SOL")
        finally:
            await client.close()
        return

    if parsed_args.command == "transfer-sol":
        if parsed_args.wallet_path is None:
            parser.error("Missing required argument '--wallet-path'")
        if parsed_args.to is None:
            parser.error("Missing required argument '--to'")
        if parsed_args.amount is None:
            parser.error("Missing required argument '--amount'")
        try:
            wallet = load_wallet(parsed_args.wallet_path)
        except FileNotFoundError:
            parser.error(f"Wallet file not found: {parsed_args.wallet_path}")
        except ValueError as e:
            parser.error(f"Failed to load wallet: {e}")

        client = await connect(parsed_args)
        try:
            signature = await client.transfer_sol(
                wallet, parsed_args.to, parsed_args.amount
            )
            print(client.get_transaction_link(signature))
        finally:
            await client.close()


class Test(unittest.IsolatedAsyncioTestCase):
    MNEMONIC = " ".join(["abandon"] * 11 + ["about"])

    async def run_cli(self, *args: str) -> str:
        with mock.patch("sys.stdout", new_callable=io.StringIO) as stdout:
            await main(list(args))
        return stdout.getvalue()

    async def test_create_wallet_output(self):
        (file, path) = tempfile.mkstemp()
        os.close(file)
        self.addCleanup(os.remove, path)

        output = await self.run_cli("create-wallet", "--output", path)
        wallet = Wallet.load(path)
        self.assertIn(wallet.public_key_string, output)
        self.assertNotIn("Mnemonic", output)

    async def test_restore_wallet(self):
        output = await self.run_cli(
            "restore-wallet", "--mnemonic", self.MNEMONIC, "--path", "bip44"
        )
        expected = Wallet.restore_from_mnemonic(
            self.MNEMONIC, path=DerivationPath.BIP44.value
        )
        self.assertIn(expected.public_key_string, output)
        self.assertIn(DerivationPath.BIP44.value, output)

    async def test_invalid_arguments(self):
        with mock.patch("sys.stderr", new_callable=io.StringIO):
            with self.assertRaises(SystemExit):
                await main(["restore-wallet"])
            with self.assertRaises(SystemExit):
                await main(["restore-wallet", "--mnemonic", "not a mnemonic"])
            with self.assertRaises(SystemExit):
                await main(["transfer-sol", "--amount", "-1"])
            with self.assertRaises(SystemExit):
                await main(["airdrop", "--address", "x"])
            with self.assertRaises(SystemExit):
                await main(["balance", "--path", "unknown"])

    async def test_cluster_from_environment(self):
        client = mock.Mock(spec=SplClient)
        client.get_sol_balance = mock.AsyncMock(return_value=Decimal(0))
        client.close = mock.AsyncMock()
        address = str(Pubkey.new_unique())
        with mock.patch.object(
            SplClient, "connect", mock.AsyncMock(return_value=client)
        ) as connect:
            with mock.patch.dict(os.environ, {"SOLANA_CLUSTER": "test"}):
                await self.run_cli("balance", "--address", address)
            self.assertEqual(connect.await_args.args[0], Cluster.TESTNET)

            with mock.patch.dict(os.environ, {"SOLANA_CLUSTER": "nope"}):
                with mock.patch("sys.stderr", new_callable=io.StringIO) as stderr:
                    with self.assertRaises(SystemExit):
                        await main(["create-wallet"])
                self.assertIn("--cluster", stderr.getvalue())
                # An explicit --cluster wins over a bad environment value.
                await self.run_cli("balance", "--address", address, "--cluster", "dev")
            self.assertEqual(connect.await_args.args[0], Cluster.DEVNET)

    async def test_load_keypair_file(self):
        wallet = Wallet.generate()
        (file, path) = tempfile.mkstemp()
        os.write(file, json.dumps(list(wallet.private_key)).encode())
        os.close(file)
        self.addCleanup(os.remove, path)
        self.assertEqual(load_wallet(path).public_key, wallet.public_key)

    async def test_balance(self):
        address = Pubkey.new_unique()
        client = mock.Mock(spec=SplClient)
        client.get_sol_balance = mock.AsyncMock(return_value=Decimal("2.5"))
        client.close = mock.AsyncMock()
        with mock.patch.object(SplClient, "connect", mock.AsyncMock(return_value=client)):
            output = await self.run_cli("balance", "--address", str(address))
        self.assertIn("Balance: 2.5 SOL", output)
        client.get_sol_balance.assert_awaited_once_with(address)
        client.close.assert_awaited_once()


def run():
    asyncio.run(main(sys.argv[1:]))


if __name__ == "__main__":
    run()
