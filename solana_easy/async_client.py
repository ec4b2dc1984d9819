# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Asynchronous JSON-RPC client for Solana clusters.

:class:`RpcClient` speaks JSON-RPC 2.0 over a pooled ``httpx.AsyncClient``
and returns plain Python values (lamports as ``int``, account data as
``bytes``, blockhashes as ``solders`` ``Hash``). Failures surface as
exceptions: transport and HTTP errors as :class:`ApiError`, JSON-RPC errors
as :class:`RpcError`, missing accounts as :class:`AccountNotFound`, and
transactions that fail or never confirm as :class:`TransactionFailed` and
:class:`TransactionTimeout`.

Examples:
    Query a balance on devnet::

        client = RpcClient(Cluster.DEVNET.url)
        lamports = await client.get_balance(public_key)
        await client.close()

    Submit and wait::

        signature = await client.send_and_confirm_transaction(transaction)
"""

from __future__ import annotations

import asyncio
import base64
import json
import logging
import unittest
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction

from .metadata import Metadata

LAMPORTS_PER_SOL = 1_000_000_000

# Commitment levels in increasing order of finality.
COMMITMENT_LEVELS = ("processed", "confirmed", "finalized")


class Cluster(Enum):
    """Public Solana clusters and their RPC endpoints."""

    DEVNET = "devnet"
    TESTNET = "testnet"
    MAINNET = "mainnet-beta"

    @property
    def url(self) -> str:
        return f"https://api.{self.value}.solana.com"

    @property
    def chain_id(self) -> int:
        """Chain id used by the public token list."""
        return {Cluster.MAINNET: 101, Cluster.TESTNET: 102, Cluster.DEVNET: 103}[self]

    @staticmethod
    def from_name(name: str) -> Cluster:
        """Accept either the cluster name or its short alias (dev/test/main)."""
        aliases = {"dev": Cluster.DEVNET, "test": Cluster.TESTNET, "main": Cluster.MAINNET}
        if name in aliases:
            return aliases[name]
        try:
            return Cluster(name)
        except ValueError:
            raise ValueError(
                f"Unknown cluster {name!r}, expected one of "
                f"{', '.join([c.value for c in Cluster] + list(aliases))}"
            ) from None


@dataclass(frozen=True)
class ClientConfig:
    """Common configuration for clients, particularly for submitting transactions.

    ``transaction_wait_in_seconds`` bounds :meth:`RpcClient.confirm_transaction`
    and ``poll_interval`` is the pause between signature status polls.
    """

    commitment: str = "confirmed"
    transaction_wait_in_seconds: float = 30
    poll_interval: float = 0.5
    http2: bool = True
    api_key: Optional[str] = None
    timeout: float = 60.0


@dataclass(frozen=True)
class AccountInfo:
    lamports: int
    owner: Pubkey
    data: bytes
    executable: bool
    rent_epoch: int


class RpcClient:
    """Client for a single Solana JSON-RPC endpoint."""

    client: httpx.AsyncClient
    client_config: ClientConfig
    base_url: str
    _request_id: int

    def __init__(
        self,
        base_url: str,
        client_config: ClientConfig = ClientConfig(),
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        # Default limits
        limits = httpx.Limits()
        # No pool timeout, requests wait for a connection as long as others progress.
        timeout = httpx.Timeout(client_config.timeout, pool=None)
        headers = {Metadata.CLIENT_HEADER: Metadata.get_client_header_val()}
        self.client = httpx.AsyncClient(
            http2=client_config.http2,
            limits=limits,
            timeout=timeout,
            headers=headers,
            transport=transport,
        )
        self.client_config = client_config
        self._request_id = 0
        if client_config.api_key:
            self.client.headers["Authorization"] = f"Bearer {client_config.api_key}"

    async def close(self):
        await self.client.aclose()

    #
    # Accounts
    #

    async def get_balance(self, public_key: Pubkey) -> int:
        """Balance in lamports."""
        result = await self._call(
            "getBalance", [str(public_key), self._commitment_config()]
        )
        return result["value"]

    async def get_account_info(self, public_key: Pubkey) -> AccountInfo:
        """Raw account state.

        :raises AccountNotFound: If the account holds no lamports and no data.
        """
        result = await self._call(
            "getAccountInfo",
            [str(public_key), self._commitment_config(encoding="base64")],
        )
        value = result["value"]
        if value is None:
            raise AccountNotFound(f"Account {public_key} not found", public_key)
        return AccountInfo(
            lamports=value["lamports"],
            owner=Pubkey.from_string(value["owner"]),
            data=base64.b64decode(value["data"][0]),
            executable=value["executable"],
            rent_epoch=value["rentEpoch"],
        )

    async def get_parsed_account_info(self, public_key: Pubkey) -> Dict[str, Any]:
        """Account state as the node's ``jsonParsed`` rendering."""
        result = await self._call(
            "getAccountInfo",
            [str(public_key), self._commitment_config(encoding="jsonParsed")],
        )
        if result["value"] is None:
            raise AccountNotFound(f"Account {public_key} not found", public_key)
        return result["value"]

    async def account_exists(self, public_key: Pubkey) -> bool:
        try:
            await self.get_account_info(public_key)
        except AccountNotFound:
            return False
        return True

    async def get_minimum_balance_for_rent_exemption(self, size: int) -> int:
        return await self._call(
            "getMinimumBalanceForRentExemption", [size, self._commitment_config()]
        )

    async def request_airdrop(self, public_key: Pubkey, lamports: int) -> str:
        return await self._call(
            "requestAirdrop", [str(public_key), lamports, self._commitment_config()]
        )

    #
    # Tokens
    #

    async def get_parsed_token_accounts_by_owner(
        self,
        owner: Pubkey,
        mint: Optional[Pubkey] = None,
        program_id: Optional[Pubkey] = None,
    ) -> List[Dict[str, Any]]:
        """Token accounts of ``owner`` filtered by exactly one of mint or program."""
        if (mint is None) == (program_id is None):
            raise ValueError("Exactly one of mint or program_id must be given")
        token_filter = (
            {"mint": str(mint)} if mint is not None else {"programId": str(program_id)}
        )
        result = await self._call(
            "getTokenAccountsByOwner",
            [
                str(owner),
                token_filter,
                self._commitment_config(encoding="jsonParsed"),
            ],
        )
        return result["value"]

    async def get_token_account_balance(self, public_key: Pubkey) -> Dict[str, Any]:
        """``amount`` (base units, string), ``decimals`` and ``uiAmountString``."""
        result = await self._call(
            "getTokenAccountBalance", [str(public_key), self._commitment_config()]
        )
        return result["value"]

    async def get_token_largest_accounts(self, mint: Pubkey) -> List[Dict[str, Any]]:
        result = await self._call(
            "getTokenLargestAccounts", [str(mint), self._commitment_config()]
        )
        return result["value"]

    #
    # Cluster state
    #

    async def get_latest_blockhash(self) -> Tuple[Hash, int]:
        """Recent blockhash and the last block height it stays valid for."""
        result = await self._call("getLatestBlockhash", [self._commitment_config()])
        value = result["value"]
        return Hash.from_string(value["blockhash"]), value["lastValidBlockHeight"]

    async def get_fee_for_message(self, message: Message) -> Optional[int]:
        """Fee in lamports, ``None`` when the blockhash in ``message`` expired."""
        encoded = base64.b64encode(bytes(message)).decode()
        result = await self._call(
            "getFeeForMessage", [encoded, self._commitment_config()]
        )
        return result["value"]

    async def get_vote_accounts(self) -> Dict[str, List[Dict[str, Any]]]:
        return await self._call("getVoteAccounts", [self._commitment_config()])

    async def get_epoch_info(self) -> Dict[str, Any]:
        return await self._call("getEpochInfo", [self._commitment_config()])

    #
    # Transactions
    #

    async def send_transaction(
        self, transaction: Transaction, skip_preflight: bool = False
    ) -> str:
        encoded = base64.b64encode(bytes(transaction)).decode()
        signature = await self._call(
            "sendTransaction",
            [
                encoded,
                {
                    "encoding": "base64",
                    "skipPreflight": skip_preflight,
                    "preflightCommitment": self.client_config.commitment,
                },
            ],
        )
        logging.info(f"Submitted transaction {signature}")
        return signature

    async def get_signature_statuses(
        self, signatures: Sequence[str]
    ) -> List[Optional[Dict[str, Any]]]:
        result = await self._call(
            "getSignatureStatuses",
            [list(signatures), {"searchTransactionHistory": False}],
        )
        return result["value"]

    async def confirm_transaction(
        self, signature: str, commitment: Optional[str] = None
    ) -> Dict[str, Any]:
        """Poll until ``signature`` reaches ``commitment`` (default from config).

        :raises TransactionFailed: If the transaction landed with an error.
        :raises TransactionTimeout: If it did not reach the commitment within
            ``transaction_wait_in_seconds``.
        """
        target = COMMITMENT_LEVELS.index(commitment or self.client_config.commitment)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.client_config.transaction_wait_in_seconds
        while True:
            status = (await self.get_signature_statuses([signature]))[0]
            if status is not None:
                if status.get("err") is not None:
                    raise TransactionFailed(signature, status["err"])
                reached = status.get("confirmationStatus") or "finalized"
                if COMMITMENT_LEVELS.index(reached) >= target:
                    return status
            if loop.time() >= deadline:
                raise TransactionTimeout(
                    signature, self.client_config.transaction_wait_in_seconds
                )
            await asyncio.sleep(self.client_config.poll_interval)

    async def send_and_confirm_transaction(
        self, transaction: Transaction, skip_preflight: bool = False
    ) -> str:
        signature = await self.send_transaction(transaction, skip_preflight)
        await self.confirm_transaction(signature)
        return signature

    async def _call(self, method: str, params: Optional[List[Any]] = None) -> Any:
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": [] if params is None else params,
        }
        logging.debug(f"RPC request {self._request_id}: {method}")
        response = await self.client.post(self.base_url, json=payload)
        if response.status_code >= 400:
            raise ApiError(f"{response.text} - {method}", response.status_code)
        body = response.json()
        if body.get("error") is not None:
            error = body["error"]
            raise RpcError(
                error.get("message", "Unknown RPC error"),
                error.get("code"),
                error.get("data"),
                response.status_code,
            )
        return body["result"]

    def _commitment_config(self, **extra: Any) -> Dict[str, Any]:
        config: Dict[str, Any] = {"commitment": self.client_config.commitment}
        config.update(extra)
        return config


class ApiError(Exception):
    """The API returned a non-success status code, e.g., >= 400"""

    status_code: int

    def __init__(self, message: str, status_code: int):
        # Call the base class constructor with the parameters it needs
        super().__init__(message)
        self.status_code = status_code


class RpcError(ApiError):
    """The node answered with a JSON-RPC error object."""

    code: Optional[int]
    data: Any

    def __init__(self, message: str, code: Optional[int], data: Any, status_code: int):
        super().__init__(f"{message} (code {code})", status_code)
        self.code = code
        self.data = data


class AccountNotFound(Exception):
    """The account was not found"""

    account: Pubkey

    def __init__(self, message: str, account: Pubkey):
        super().__init__(message)
        self.account = account


class TransactionFailed(Exception):
    """The transaction was processed but its execution failed."""

    signature: str
    err: Any

    def __init__(self, signature: str, err: Any):
        super().__init__(f"Transaction {signature} failed: {err}")
        self.signature = signature
        self.err = err


class TransactionTimeout(Exception):
    """The transaction did not reach the requested commitment in time."""

    signature: str

    def __init__(self, signature: str, seconds: float):
        super().__init__(f"Transaction {signature} not confirmed after {seconds}s")
        self.signature = signature


class Test(unittest.IsolatedAsyncioTestCase):
    def client(self, handler, **config) -> RpcClient:
        return RpcClient(
            "http://localhost:8899",
            ClientConfig(poll_interval=0, **config),
            transport=httpx.MockTransport(handler),
        )

    @staticmethod
    def result(request: httpx.Request, result: Any) -> httpx.Response:
        request_id = json.loads(request.content)["id"]
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": request_id, "result": result})

    async def test_get_balance_request_shape(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return self.result(request, {"context": {"slot": 1}, "value": 42})

        client = self.client(handler)
        public_key = Keypair().pubkey()
        self.assertEqual(await client.get_balance(public_key), 42)
        await client.close()

        body = json.loads(seen[0].content)
        self.assertEqual(body["method"], "getBalance")
        self.assertEqual(body["params"], [str(public_key), {"commitment": "confirmed"}])
        self.assertTrue(seen[0].headers["solana-client"].startswith("py/solana-easy/"))

    async def test_get_account_info(self):
        owner = Keypair().pubkey()
        value = {
            "lamports": 10,
            "owner": str(owner),
            "data": [base64.b64encode(b"\x01\x02").decode(), "base64"],
            "executable": False,
            "rentEpoch": 3,
        }
        client = self.client(
            lambda request: self.result(request, {"context": {}, "value": value})
        )
        info = await client.get_account_info(Keypair().pubkey())
        self.assertEqual(info.data, b"\x01\x02")
        self.assertEqual(info.owner, owner)
        self.assertTrue(await client.account_exists(owner))
        await client.close()

    async def test_account_not_found(self):
        client = self.client(
            lambda request: self.result(request, {"context": {}, "value": None})
        )
        with self.assertRaises(AccountNotFound):
            await client.get_account_info(Keypair().pubkey())
        self.assertFalse(await client.account_exists(Keypair().pubkey()))
        await client.close()

    async def test_rpc_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                200,
                json={
                    "jsonrpc": "2.0",
                    "id": 1,
                    "error": {"code": -32602, "message": "Invalid param"},
                },
            )

        client = self.client(handler)
        with self.assertRaises(RpcError) as context:
            await client.get_balance(Keypair().pubkey())
        self.assertEqual(context.exception.code, -32602)
        await client.close()

    async def test_http_error(self):
        client = self.client(lambda request: httpx.Response(429, text="slow down"))
        with self.assertRaises(ApiError) as context:
            await client.get_epoch_info()
        self.assertEqual(context.exception.status_code, 429)
        await client.close()

    async def test_send_and_confirm(self):
        statuses = iter(
            [
                None,
                {"confirmationStatus": "processed", "err": None},
                {"confirmationStatus": "confirmed", "err": None},
            ]
        )

        def handler(request: httpx.Request) -> httpx.Response:
            method = json.loads(request.content)["method"]
            if method == "sendTransaction":
                return self.result(request, "sig")
            return self.result(request, {"context": {}, "value": [next(statuses)]})

        payer = Keypair()
        transaction = Transaction.new_signed_with_payer(
            [
                transfer(
                    TransferParams(
                        from_pubkey=payer.pubkey(), to_pubkey=payer.pubkey(), lamports=1
                    )
                )
            ],
            payer.pubkey(),
            [payer],
            Hash.default(),
        )
        client = self.client(handler)
        self.assertEqual(await client.send_and_confirm_transaction(transaction), "sig")
        await client.close()

    async def test_confirm_failed(self):
        status = {
            "confirmationStatus": "processed",
            "err": {"InstructionError": [0, {"Custom": 1}]},
        }
        client = self.client(
            lambda request: self.result(request, {"context": {}, "value": [status]})
        )
        with self.assertRaises(TransactionFailed):
            await client.confirm_transaction("sig")
        await client.close()

    async def test_confirm_timeout(self):
        client = self.client(
            lambda request: self.result(request, {"context": {}, "value": [None]}),
            transaction_wait_in_seconds=0,
        )
        with self.assertRaises(TransactionTimeout):
            await client.confirm_transaction("sig")
        await client.close()

    def test_cluster_names(self):
        self.assertIs(Cluster.from_name("dev"), Cluster.DEVNET)
        self.assertIs(Cluster.from_name("mainnet-beta"), Cluster.MAINNET)
        self.assertEqual(Cluster.TESTNET.url, "https://api.testnet.solana.com")
        self.assertEqual(Cluster.DEVNET.chain_id, 103)
        with self.assertRaises(ValueError):
            Cluster.from_name("localnet")


if __name__ == "__main__":
    unittest.main()
