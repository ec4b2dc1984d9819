# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""Registered SPL tokens from the public Solana token list."""

from __future__ import annotations

import logging
import unittest
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import httpx

from .async_client import ApiError, Cluster

TOKEN_LIST_URL = (
    "https://raw.githubusercontent.com/solana-labs/token-list/main/"
    "src/tokens/solana.tokenlist.json"
)


@dataclass
class TokenInfo:
    chain_id: int
    address: str
    symbol: str
    name: str
    decimals: int
    logo_uri: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    extensions: Dict[str, Any] = field(default_factory=dict)

    @staticmethod
    def from_json(data: Dict[str, Any]) -> TokenInfo:
        return TokenInfo(
            chain_id=data["chainId"],
            address=data["address"],
            symbol=data["symbol"],
            name=data["name"],
            decimals=data["decimals"],
            logo_uri=data.get("logoURI"),
            tags=data.get("tags") or [],
            extensions=data.get("extensions") or {},
        )


class TokenListClient:
    client: httpx.AsyncClient
    url: str

    def __init__(
        self,
        url: str = TOKEN_LIST_URL,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(timeout), transport=transport
        )

    async def close(self):
        await self.client.aclose()

    async def get_tokens(
        self, tags: Optional[Sequence[str]] = None, cluster: Cluster = Cluster.MAINNET
    ) -> List[TokenInfo]:
        """Tokens registered on ``cluster`` carrying every tag in ``tags``."""
        response = await self.client.get(self.url)
        if response.status_code >= 400:
            raise ApiError(response.text, response.status_code)
        tokens = [TokenInfo.from_json(token) for token in response.json()["tokens"]]
        logging.debug(f"Fetched {len(tokens)} tokens from {self.url}")
        wanted = set(tags or [])
        return [
            token
            for token in tokens
            if token.chain_id == cluster.chain_id and wanted.issubset(token.tags)
        ]


class Test(unittest.IsolatedAsyncioTestCase):
    TOKENS = {
        "tokens": [
            {
                "chainId": 101,
                "address": "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
                "symbol": "USDC",
                "name": "USD Coin",
                "decimals": 6,
                "logoURI": "https://example.com/usdc.png",
                "tags": ["stablecoin"],
                "extensions": {"coingeckoId": "usd-coin"},
            },
            {
                "chainId": 101,
                "address": "So11111111111111111111111111111111111111112",
                "symbol": "SOL",
                "name": "Wrapped SOL",
                "decimals": 9,
            },
            {
                "chainId": 103,
                "address": "Gh9ZwEmdLJ8DscKNTkTqPbNwLNNBjuSzaG9Vp2KGtKJr",
                "symbol": "USDC",
                "name": "USD Coin Dev",
                "decimals": 6,
                "tags": ["stablecoin"],
            },
        ]
    }

    async def asyncSetUp(self):
        self.client = TokenListClient(
            transport=httpx.MockTransport(
                lambda request: httpx.Response(200, json=self.TOKENS)
            )
        )

    async def asyncTearDown(self):
        await self.client.close()

    async def test_filter_by_cluster(self):
        tokens = await self.client.get_tokens()
        self.assertEqual([t.symbol for t in tokens], ["USDC", "SOL"])
        self.assertEqual(tokens[0].extensions["coingeckoId"], "usd-coin")

        devnet = await self.client.get_tokens(cluster=Cluster.DEVNET)
        self.assertEqual([t.name for t in devnet], ["USD Coin Dev"])

    async def test_filter_by_tags(self):
        tokens = await self.client.get_tokens(tags=["stablecoin"])
        self.assertEqual([t.address for t in tokens], [self.TOKENS["tokens"][0]["address"]])
        self.assertEqual(await self.client.get_tokens(tags=["stablecoin", "lp"]), [])

    async def test_http_error(self):
        client = TokenListClient(
            transport=httpx.MockTransport(lambda request: httpx.Response(503))
        )
        with self.assertRaises(ApiError):
            await client.get_tokens()
        await client.close()


if __name__ == "__main__":
    unittest.main()
