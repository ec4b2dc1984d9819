"""
solana-easy examples.

Each example runs against devnet by default; see :mod:`examples.common` for
the environment variables that select another endpoint::

    python -m examples.transfer_sol
    python -m examples.wallet_recovery
    python -m examples.your_token
    python -m examples.upload_nft path/to/image.png path/to/arweave-wallet.json
"""
