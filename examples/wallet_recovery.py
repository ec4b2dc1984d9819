# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Generate a wallet, then recover it from its mnemonic on every named
derivation path, from its seed and from its secret key.
"""

from solana_easy.derivation import DerivationPath
from solana_easy.wallet import Wallet, WalletFactory


def main():
    wallet = Wallet.generate()
    print(f"Mnemonic: {wallet.mnemonic}")
    print(f"Public key: {wallet.public_key_string}")

    print("\n=== Derivation paths ===")
    for name, path in wallet.derivation_paths.items():
        derived = Wallet.restore_from_mnemonic(wallet.mnemonic, path=path)
        print(f"{name:12} {path:18} {derived.public_key_string}")

    restored = Wallet.restore_from_mnemonic(wallet.mnemonic)
    assert restored.public_key == wallet.public_key

    from_seed = Wallet.restore_from_seed(wallet.seed)
    assert from_seed.public_key == wallet.public_key

    from_private_key = Wallet.restore_from_private_key(wallet.private_key)
    assert from_private_key.private_key == wallet.private_key

    print("\n=== Key formats ===")
    print(f"Solana CLI: {wallet.private_key_string}")
    print(f"Phantom: {wallet.private_key_base58}")

    legacy = WalletFactory(DerivationPath.LEGACY.value).restore_from_mnemonic(
        wallet.mnemonic
    )
    print(f"\nLegacy path key: {legacy.public_key_string}")


if __name__ == "__main__":
    main()
