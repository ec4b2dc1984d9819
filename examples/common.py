# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Common configuration for the solana-easy examples.

Environment Variables:
    SOLANA_CLUSTER: Cluster name or alias (devnet, testnet, mainnet-beta,
        dev, test, main). Defaults to devnet.
    SOLANA_RPC_URL: RPC endpoint. Defaults to the public endpoint of the
        cluster.
    ARWEAVE_HOST: Arweave gateway host. Defaults to arweave.net.
"""

import os

from solana_easy.arweave import ArweaveConfig
from solana_easy.async_client import Cluster

CLUSTER = Cluster.from_name(os.getenv("SOLANA_CLUSTER", "devnet"))

RPC_URL = os.getenv("SOLANA_RPC_URL", CLUSTER.url)

ARWEAVE_CONFIG = ArweaveConfig(host=os.getenv("ARWEAVE_HOST", "arweave.net"))
