# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
High-level client for everyday SOL, SPL token, NFT and staking operations.

:class:`SplClient` wraps an :class:`~solana_easy.async_client.RpcClient` and
assembles the instructions for each operation, so applications never touch
instruction layouts. Amounts are given in UI units (``Decimal``, ``int`` or
a numeric string) and scaled by the mint's decimals with exact decimal
arithmetic.

Operations that move funds either send immediately and return the
transaction signature, or, when given a :class:`TransactionBuilder`, append
their instructions to it and return the builder so several operations can be
committed atomically with :meth:`SplClient.end_transaction`.

Examples:
    Send SOL on devnet::

        client = await SplClient.connect(Cluster.DEVNET)
        await client.airdrop(sender)
        signature = await client.transfer_sol(sender, receiver, Decimal("0.5"))
        await client.close()

    Batch two transfers::

        builder = client.begin_transaction(sender)
        await client.transfer_sol(sender, alice, 1, builder)
        await client.transfer_sol(sender, bob, 1, builder)
        await client.end_transaction(builder)
"""

from __future__ import annotations

import logging
import os
import tempfile
import unittest
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional, Sequence, Union
from unittest import mock

from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import (
    CreateAccountParams,
    TransferParams,
    create_account,
)
from solders.system_program import transfer as system_transfer
from solders.transaction import Transaction

from . import stake_program, token_metadata, token_program
from .arweave import ArweaveClient, ArweaveConfig, ArweaveWallet, UploadResult
from .async_client import (
    LAMPORTS_PER_SOL,
    AccountInfo,
    ClientConfig,
    Cluster,
    RpcClient,
)
from .layout import Serializer
from .memo import create_memo
from .signer import KeypairLike, PublicKeyLike, to_keypair, to_public_key
from .stake_program import StakeState, StakeStatus
from .token_metadata import Creator, DataV2, Metadata
from .token_program import (
    MINT_SIZE,
    NATIVE_MINT,
    TOKEN_PROGRAM_ID,
    AuthorityType,
    Mint,
    get_associated_token_address,
)
from .transactions import TransactionBuilder

Amount = Union[Decimal, int, str]

BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"


def to_base_units(amount: Amount, decimals: int) -> int:
    """Scale a UI amount to integer base units.

    :raises ValueError: If the amount is not a number, is negative or has
        more fractional digits than ``decimals`` allows.
    """
    try:
        scaled = Decimal(str(amount)).scaleb(decimals)
    except InvalidOperation:
        raise ValueError(f"Invalid amount {amount!r}") from None
    if not scaled.is_finite():
        raise ValueError(f"Invalid amount {amount!r}")
    if scaled < 0:
        raise ValueError(f"Amount must not be negative: {amount}")
    if scaled != scaled.to_integral_value():
        raise ValueError(f"{amount} has more than {decimals} decimal places")
    return int(scaled)


def from_base_units(amount: Union[int, str], decimals: int) -> Decimal:
    return Decimal(int(amount)).scaleb(-decimals)


@dataclass
class TokenAccountResult:
    address: Pubkey
    # Signature of the creating transaction, None when the account existed.
    signature: Optional[str]


@dataclass
class CreateTokenResult:
    mint: Pubkey
    signature: str


@dataclass
class CreateNftResult:
    mint: Pubkey
    token_signature: str
    mint_signature: str
    authority_signature: str


@dataclass
class MintNftResult:
    mint: Pubkey
    metadata: Pubkey
    master_edition: Pubkey
    signature: str


@dataclass
class UploadNftResult:
    nft: MintNftResult
    file: UploadResult
    metadata: UploadResult


@dataclass
class StakeAccountResult:
    stake_account: Keypair
    signature: str


class SplClient:
    """Operations on one cluster through one RPC client."""

    rpc_client: RpcClient
    cluster: Cluster
    arweave_config: ArweaveConfig

    def __init__(
        self,
        rpc_client: RpcClient,
        cluster: Cluster,
        arweave_config: ArweaveConfig = ArweaveConfig(),
    ):
        self.rpc_client = rpc_client
        self.cluster = cluster
        self.arweave_config = arweave_config

    @staticmethod
    async def connect(
        cluster: Union[Cluster, str] = Cluster.DEVNET,
        client_config: ClientConfig = ClientConfig(),
        url: Optional[str] = None,
    ) -> SplClient:
        """Client for a public cluster, or for ``url`` labelled as ``cluster``."""
        if isinstance(cluster, str):
            cluster = Cluster.from_name(cluster)
        return SplClient(RpcClient(url or cluster.url, client_config), cluster)

    async def close(self):
        await self.rpc_client.close()

    #
    # Transactions
    #

    def begin_transaction(self, fee_payer: KeypairLike) -> TransactionBuilder:
        return TransactionBuilder(to_keypair(fee_payer))

    async def end_transaction(self, builder: TransactionBuilder) -> str:
        """Sign with every signer the builder collected, send and confirm."""
        blockhash, _ = await self.rpc_client.get_latest_blockhash()
        transaction = builder.build(blockhash)
        signature = await self.rpc_client.send_and_confirm_transaction(transaction)
        logging.info(
            f"Confirmed transaction {signature} with {len(builder)} instructions"
        )
        return signature

    async def _finish(
        self, builder: TransactionBuilder, supplied: Optional[TransactionBuilder]
    ) -> Union[str, TransactionBuilder]:
        if supplied is not None:
            return supplied
        return await self.end_transaction(builder)

    async def airdrop(self, public_key: PublicKeyLike, sol: Amount = 1) -> str:
        """Request test SOL; only devnet and testnet have a faucet."""
        if self.cluster == Cluster.MAINNET:
            raise ValueError("Airdrops are not available on mainnet-beta")
        signature = await self.rpc_client.request_airdrop(
            to_public_key(public_key), to_base_units(sol, 9)
        )
        await self.rpc_client.confirm_transaction(signature)
        logging.info(f"Airdropped {sol} SOL to {to_public_key(public_key)}")
        return signature

    @staticmethod
    def generate_keypair(prefix: Optional[str] = None) -> Keypair:
        """New random keypair whose address starts with ``prefix``.

        Each extra prefix character multiplies the expected number of
        attempts by 58.
        """
        if prefix and any(char not in BASE58_ALPHABET for char in prefix):
            raise ValueError(f"{prefix!r} is not a base58 prefix")
        keypair = Keypair()
        while prefix and not str(keypair.pubkey()).startswith(prefix):
            keypair = Keypair()
        return keypair

    async def transfer_sol(
        self,
        sender: KeypairLike,
        receiver: PublicKeyLike,
        sol: Amount,
        builder: Optional[TransactionBuilder] = None,
    ) -> Union[str, TransactionBuilder]:
        """
        Transfer SOL between two system accounts.

        :param sender: Account paying, and fee payer when no builder is given
        :param receiver: Address receiving the SOL
        :param sol: Amount in SOL
        :param builder: Append to this builder instead of sending
        :return: The signature, or ``builder`` when one was given
        """
        sender = to_keypair(sender)
        tx = builder if builder is not None else self.begin_transaction(sender)
        tx.add(
            system_transfer(
                TransferParams(
                    from_pubkey=sender.pubkey(),
                    to_pubkey=to_public_key(receiver),
                    lamports=to_base_units(sol, 9),
                )
            ),
            sender,
        )
        return await self._finish(tx, builder)

    async def transfer_token(
        self,
        mint: PublicKeyLike,
        sender: KeypairLike,
        receiver: PublicKeyLike,
        amount: Amount,
        builder: Optional[TransactionBuilder] = None,
        multi_signers: Sequence[KeypairLike] = (),
    ) -> Union[str, TransactionBuilder]:
        """
        Transfer tokens between the associated token accounts of two wallets.

        The receiver's associated account is created in the same transaction,
        paid for by the sender, when it does not exist yet.

        :param mint: The token being transferred
        :param sender: Owner of the source account
        :param receiver: Wallet receiving the tokens
        :param amount: Amount in UI units
        """
        sender = to_keypair(sender)
        mint = to_public_key(mint)
        receiver = to_public_key(receiver)
        tx = builder if builder is not None else self.begin_transaction(sender)
        tx.add(
            token_program.create_associated_token_account(
                sender.pubkey(), receiver, mint
            ),
            sender,
        )
        await self.raw_transfer_token(
            mint,
            sender,
            get_associated_token_address(sender.pubkey(), mint),
            get_associated_token_address(receiver, mint),
            amount,
            tx,
            multi_signers,
        )
        return await self._finish(tx, builder)

    async def raw_transfer_token(
        self,
        mint: PublicKeyLike,
        owner: KeypairLike,
        source: PublicKeyLike,
        destination: PublicKeyLike,
        amount: Amount,
        builder: Optional[TransactionBuilder] = None,
        multi_signers: Sequence[KeypairLike] = (),
    ) -> Union[str, TransactionBuilder]:
        """Transfer between two explicit token accounts."""
        owner = to_keypair(owner)
        signers = [to_keypair(signer) for signer in multi_signers]
        mint_info = await self.get_token_info(mint)
        tx = builder if builder is not None else self.begin_transaction(owner)
        tx.add(
            token_program.transfer(
                to_public_key(source),
                to_public_key(destination),
                owner.pubkey(),
                to_base_units(amount, mint_info.decimals),
                [signer.pubkey() for signer in signers],
            ),
            owner,
            *signers,
        )
        return await self._finish(tx, builder)

    async def transfer_data(
        self,
        sender: KeypairLike,
        data: Union[str, bytes],
        builder: Optional[TransactionBuilder] = None,
        encoding: str = "utf-8",
    ) -> Union[str, TransactionBuilder]:
        """Record ``data`` on chain with a memo signed by ``sender``."""
        sender = to_keypair(sender)
        tx = builder if builder is not None else self.begin_transaction(sender)
        tx.add(create_memo(data, [sender.pubkey()], encoding), sender)
        return await self._finish(tx, builder)

    #
    # Accounts and tokens
    #

    async def account_exists(self, public_key: PublicKeyLike) -> bool:
        return await self.rpc_client.account_exists(to_public_key(public_key))

    async def get_token_account_info(
        self, wallet: PublicKeyLike, mint: Optional[PublicKeyLike] = None
    ) -> List[Dict[str, Any]]:
        """Parsed token accounts of ``wallet``, for one mint or all of them."""
        if mint is not None:
            return await self.rpc_client.get_parsed_token_accounts_by_owner(
                to_public_key(wallet), mint=to_public_key(mint)
            )
        return await self.rpc_client.get_parsed_token_accounts_by_owner(
            to_public_key(wallet), program_id=TOKEN_PROGRAM_ID
        )

    async def token_account_exists(
        self, wallet: PublicKeyLike, mint: PublicKeyLike
    ) -> bool:
        return len(await self.get_token_account_info(wallet, mint)) > 0

    async def get_or_create_token_account(
        self, wallet: KeypairLike, mint: PublicKeyLike
    ) -> TokenAccountResult:
        """Associated token account of ``wallet``, created (and paid for by
        ``wallet``) when missing."""
        wallet = to_keypair(wallet)
        mint = to_public_key(mint)
        address = get_associated_token_address(wallet.pubkey(), mint)
        if await self.rpc_client.account_exists(address):
            return TokenAccountResult(address, None)

        tx = self.begin_transaction(wallet)
        tx.add(
            token_program.create_associated_token_account(
                wallet.pubkey(), wallet.pubkey(), mint
            )
        )
        return TokenAccountResult(address, await self.end_transaction(tx))

    async def create_token(
        self,
        owner: KeypairLike,
        decimals: int = 9,
        has_freeze_authority: bool = False,
        token: Optional[KeypairLike] = None,
    ) -> CreateTokenResult:
        """
        Create a new token mint with ``owner`` as mint authority.

        :param owner: Pays for the mint account and controls minting
        :param decimals: Decimal places of the UI amount
        :param has_freeze_authority: Make ``owner`` the freeze authority too
        :param token: Keypair for the mint address; random when omitted
        """
        owner = to_keypair(owner)
        token = to_keypair(token) if token is not None else Keypair()
        rent = await self.rpc_client.get_minimum_balance_for_rent_exemption(MINT_SIZE)
        tx = self.begin_transaction(owner)
        tx.add(
            create_account(
                CreateAccountParams(
                    from_pubkey=owner.pubkey(),
                    to_pubkey=token.pubkey(),
                    lamports=rent,
                    space=MINT_SIZE,
                    owner=TOKEN_PROGRAM_ID,
                )
            ),
            token,
        )
        tx.add(
            token_program.initialize_mint(
                token.pubkey(),
                decimals,
                owner.pubkey(),
                owner.pubkey() if has_freeze_authority else None,
            )
        )
        signature = await self.end_transaction(tx)
        logging.info(f"Created token {token.pubkey()} with {decimals} decimals")
        return CreateTokenResult(token.pubkey(), signature)

    async def get_token_info(self, mint: PublicKeyLike) -> Mint:
        account = await self.rpc_client.get_account_info(to_public_key(mint))
        return Mint.from_bytes(account.data)

    async def get_sol_balance(self, public_key: PublicKeyLike) -> Decimal:
        lamports = await self.rpc_client.get_balance(to_public_key(public_key))
        return from_base_units(lamports, 9)

    async def get_token_account_balance(self, token_account: PublicKeyLike) -> Decimal:
        value = await self.rpc_client.get_token_account_balance(
            to_public_key(token_account)
        )
        return from_base_units(value["amount"], value["decimals"])

    async def mint(
        self,
        mint: PublicKeyLike,
        owner: KeypairLike,
        amount: Amount,
        receiver: Optional[PublicKeyLike] = None,
        multi_signers: Sequence[KeypairLike] = (),
    ) -> str:
        """Mint ``amount`` into the associated account of ``receiver``
        (default ``owner``), creating it when needed."""
        owner = to_keypair(owner)
        mint = to_public_key(mint)
        receiver = to_public_key(receiver) if receiver is not None else owner.pubkey()
        tx = self.begin_transaction(owner)
        tx.add(token_program.create_associated_token_account(owner.pubkey(), receiver, mint))
        return await self._mint_into(
            tx, mint, owner, amount, get_associated_token_address(receiver, mint), multi_signers
        )

    async def raw_mint(
        self,
        mint: PublicKeyLike,
        owner: KeypairLike,
        amount: Amount,
        receiver_token_account: Optional[PublicKeyLike] = None,
        multi_signers: Sequence[KeypairLike] = (),
    ) -> str:
        """Mint into an explicit token account (default ``owner``'s own)."""
        owner = to_keypair(owner)
        mint = to_public_key(mint)
        if receiver_token_account is None:
            destination = (await self.get_or_create_token_account(owner, mint)).address
        else:
            destination = to_public_key(receiver_token_account)
        return await self._mint_into(
            self.begin_transaction(owner), mint, owner, amount, destination, multi_signers
        )

    async def _mint_into(
        self,
        tx: TransactionBuilder,
        mint: Pubkey,
        owner: Keypair,
        amount: Amount,
        destination: Pubkey,
        multi_signers: Sequence[KeypairLike],
    ) -> str:
        signers = [to_keypair(signer) for signer in multi_signers]
        mint_info = await self.get_token_info(mint)
        tx.add(
            token_program.mint_to(
                mint,
                destination,
                owner.pubkey(),
                to_base_units(amount, mint_info.decimals),
                [signer.pubkey() for signer in signers],
            ),
            *signers,
        )
        return await self.end_transaction(tx)

    async def burn(
        self,
        mint: PublicKeyLike,
        wallet: KeypairLike,
        amount: Amount,
        multi_signers: Sequence[KeypairLike] = (),
    ) -> str:
        """Burn from ``wallet``'s associated token account."""
        wallet = to_keypair(wallet)
        mint = to_public_key(mint)
        signers = [to_keypair(signer) for signer in multi_signers]
        mint_info = await self.get_token_info(mint)
        tx = self.begin_transaction(wallet)
        tx.add(
            token_program.burn(
                get_associated_token_address(wallet.pubkey(), mint),
                mint,
                wallet.pubkey(),
                to_base_units(amount, mint_info.decimals),
                [signer.pubkey() for signer in signers],
            ),
            *signers,
        )
        return await self.end_transaction(tx)

    async def close_token_account(
        self,
        mint: PublicKeyLike,
        wallet: KeypairLike,
        multi_signers: Sequence[KeypairLike] = (),
    ) -> str:
        """Close ``wallet``'s empty associated account, refunding its rent."""
        wallet = to_keypair(wallet)
        signers = [to_keypair(signer) for signer in multi_signers]
        tx = self.begin_transaction(wallet)
        tx.add(
            token_program.close_account(
                get_associated_token_address(wallet.pubkey(), to_public_key(mint)),
                wallet.pubkey(),
                wallet.pubkey(),
                [signer.pubkey() for signer in signers],
            ),
            *signers,
        )
        return await self.end_transaction(tx)

    async def set_authority_of_token_account(
        self,
        account: PublicKeyLike,
        current_authority: KeypairLike,
        new_authority: Optional[PublicKeyLike],
        authority_type: Union[AuthorityType, str],
        multi_signers: Sequence[KeypairLike] = (),
    ) -> str:
        """
        Hand an authority of a mint or token account to someone else.

        :param account: Mint for mint/freeze authorities, token account for
            owner/close authorities
        :param new_authority: ``None`` removes the authority for good
        :param authority_type: ``AuthorityType`` or a name such as
            ``"MintTokens"`` or ``"mint"``
        """
        current_authority = to_keypair(current_authority)
        if isinstance(authority_type, str):
            authority_type = AuthorityType.from_name(authority_type)
        signers = [to_keypair(signer) for signer in multi_signers]
        tx = self.begin_transaction(current_authority)
        tx.add(
            token_program.set_authority(
                to_public_key(account),
                current_authority.pubkey(),
                authority_type,
                to_public_key(new_authority) if new_authority is not None else None,
                [signer.pubkey() for signer in signers],
            ),
            *signers,
        )
        return await self.end_transaction(tx)

    async def approve(
        self,
        mint: PublicKeyLike,
        owner: KeypairLike,
        delegate: PublicKeyLike,
        amount: Amount,
        token_account: Optional[PublicKeyLike] = None,
        multi_signers: Sequence[KeypairLike] = (),
    ) -> str:
        """Let ``delegate`` spend up to ``amount`` from the owner's account."""
        owner = to_keypair(owner)
        mint = to_public_key(mint)
        source = (
            to_public_key(token_account)
            if token_account is not None
            else get_associated_token_address(owner.pubkey(), mint)
        )
        signers = [to_keypair(signer) for signer in multi_signers]
        mint_info = await self.get_token_info(mint)
        tx = self.begin_transaction(owner)
        tx.add(
            token_program.approve(
                source,
                to_public_key(delegate),
                owner.pubkey(),
                to_base_units(amount, mint_info.decimals),
                [signer.pubkey() for signer in signers],
            ),
            *signers,
        )
        return await self.end_transaction(tx)

    async def revoke(
        self,
        mint: PublicKeyLike,
        owner: KeypairLike,
        token_account: Optional[PublicKeyLike] = None,
        multi_signers: Sequence[KeypairLike] = (),
    ) -> str:
        owner = to_keypair(owner)
        source = (
            to_public_key(token_account)
            if token_account is not None
            else get_associated_token_address(owner.pubkey(), to_public_key(mint))
        )
        signers = [to_keypair(signer) for signer in multi_signers]
        tx = self.begin_transaction(owner)
        tx.add(
            token_program.revoke(
                source, owner.pubkey(), [signer.pubkey() for signer in signers]
            ),
            *signers,
        )
        return await self.end_transaction(tx)

    async def get_transaction_cost(
        self, keypair: KeypairLike, lamports: int = 10
    ) -> Decimal:
        """Fee in SOL of a minimal self-transfer signed by ``keypair``."""
        public_key = to_keypair(keypair).pubkey()
        blockhash, _ = await self.rpc_client.get_latest_blockhash()
        message = Message.new_with_blockhash(
            [
                system_transfer(
                    TransferParams(
                        from_pubkey=public_key, to_pubkey=public_key, lamports=lamports
                    )
                )
            ],
            public_key,
            blockhash,
        )
        fee = await self.rpc_client.get_fee_for_message(message)
        if fee is None:
            raise ValueError("Blockhash expired before the fee could be computed")
        return from_base_units(fee, 9)

    @staticmethod
    def get_wrapped_sol_token() -> Pubkey:
        return NATIVE_MINT

    @staticmethod
    def get_wrapped_sol_account(wallet: PublicKeyLike) -> Pubkey:
        return get_associated_token_address(to_public_key(wallet), NATIVE_MINT)

    #
    # Staking
    #

    async def get_validators(self) -> Dict[str, List[Dict[str, Any]]]:
        """``current`` and ``delinquent`` vote accounts."""
        return await self.rpc_client.get_vote_accounts()

    async def create_stake_account(
        self,
        wallet: KeypairLike,
        sol: Amount,
        stake_account: Optional[KeypairLike] = None,
    ) -> StakeAccountResult:
        """
        Create a stake account holding ``sol`` plus its rent-exempt reserve.

        ``wallet`` pays and becomes both staker and withdrawer.
        """
        wallet = to_keypair(wallet)
        stake = to_keypair(stake_account) if stake_account is not None else Keypair()
        rent = await self.rpc_client.get_minimum_balance_for_rent_exemption(
            stake_program.STAKE_ACCOUNT_SIZE
        )
        tx = self.begin_transaction(wallet)
        tx.extend(
            stake_program.create_stake_account(
                wallet.pubkey(),
                stake.pubkey(),
                stake_program.Authorized(wallet.pubkey(), wallet.pubkey()),
                to_base_units(sol, 9) + rent,
            ),
            stake,
        )
        signature = await self.end_transaction(tx)
        logging.info(f"Created stake account {stake.pubkey()}")
        return StakeAccountResult(stake, signature)

    async def get_stake_account_balance(self, stake_account: PublicKeyLike) -> int:
        """Balance in lamports, reserve included."""
        return await self.rpc_client.get_balance(to_public_key(stake_account))

    async def get_stake_account_status(
        self, stake_account: PublicKeyLike
    ) -> StakeStatus:
        account = await self.rpc_client.get_account_info(to_public_key(stake_account))
        epoch_info = await self.rpc_client.get_epoch_info()
        return StakeState.from_bytes(account.data).status(epoch_info["epoch"])

    async def delegate_stake(
        self, stake_account: PublicKeyLike, wallet: KeypairLike, validator: PublicKeyLike
    ) -> str:
        """Delegate to the vote account ``validator``."""
        wallet = to_keypair(wallet)
        tx = self.begin_transaction(wallet)
        tx.add(
            stake_program.delegate_stake(
                to_public_key(stake_account), wallet.pubkey(), to_public_key(validator)
            )
        )
        return await self.end_transaction(tx)

    async def deactivate_stake(
        self, stake_account: PublicKeyLike, wallet: KeypairLike
    ) -> str:
        wallet = to_keypair(wallet)
        tx = self.begin_transaction(wallet)
        tx.add(stake_program.deactivate(to_public_key(stake_account), wallet.pubkey()))
        return await self.end_transaction(tx)

    async def withdraw_stake(
        self,
        stake_account: PublicKeyLike,
        wallet: KeypairLike,
        lamports: Optional[int] = None,
    ) -> str:
        """Withdraw to ``wallet``; the whole balance unless ``lamports`` is given."""
        wallet = to_keypair(wallet)
        stake_account = to_public_key(stake_account)
        if lamports is None:
            lamports = await self.get_stake_account_balance(stake_account)
        tx = self.begin_transaction(wallet)
        tx.add(
            stake_program.withdraw(
                stake_account, wallet.pubkey(), wallet.pubkey(), lamports
            )
        )
        return await self.end_transaction(tx)

    #
    # NFTs
    #

    async def create_nft(
        self, owner: KeypairLike, nft: Optional[KeypairLike] = None
    ) -> CreateNftResult:
        """Bare NFT: a 0-decimal mint with supply 1 and no mint authority."""
        token = await self.create_token(owner, 0, False, nft)
        mint_signature = await self.mint(token.mint, owner, 1)
        authority_signature = await self.set_authority_of_token_account(
            token.mint, owner, None, AuthorityType.MINT_TOKENS
        )
        return CreateNftResult(
            token.mint, token.signature, mint_signature, authority_signature
        )

    async def mint_nft(
        self,
        owner: KeypairLike,
        uri: str,
        name: str,
        symbol: str = "",
        seller_fee_basis_points: int = 0,
        creators: Optional[List[Creator]] = None,
        max_supply: Optional[int] = 1,
        nft: Optional[KeypairLike] = None,
    ) -> MintNftResult:
        """
        Mint an NFT with Metaplex metadata pointing at ``uri``.

        One transaction creates the mint, mints the single token to the
        owner, writes the metadata account and the master edition. The
        master edition takes over the mint authority, so the supply stays 1.
        """
        owner = to_keypair(owner)
        nft = to_keypair(nft) if nft is not None else Keypair()
        mint = nft.pubkey()
        data = DataV2(name, symbol, uri, seller_fee_basis_points, creators)
        rent = await self.rpc_client.get_minimum_balance_for_rent_exemption(MINT_SIZE)

        tx = self.begin_transaction(owner)
        tx.add(
            create_account(
                CreateAccountParams(
                    from_pubkey=owner.pubkey(),
                    to_pubkey=mint,
                    lamports=rent,
                    space=MINT_SIZE,
                    owner=TOKEN_PROGRAM_ID,
                )
            ),
            nft,
        )
        tx.add(token_program.initialize_mint(mint, 0, owner.pubkey(), owner.pubkey()))
        tx.add(
            token_program.create_associated_token_account(
                owner.pubkey(), owner.pubkey(), mint
            )
        )
        tx.add(
            token_program.mint_to(
                mint, get_associated_token_address(owner.pubkey(), mint), owner.pubkey(), 1
            )
        )
        tx.add(
            token_metadata.create_metadata_account_v3(
                mint, owner.pubkey(), owner.pubkey(), owner.pubkey(), data
            )
        )
        tx.add(
            token_metadata.create_master_edition_v3(
                mint, owner.pubkey(), owner.pubkey(), owner.pubkey(), max_supply
            )
        )
        signature = await self.end_transaction(tx)
        logging.info(f"Minted NFT {mint}")
        return MintNftResult(
            mint,
            token_metadata.get_metadata_address(mint),
            token_metadata.get_master_edition_address(mint),
            signature,
        )

    async def mint_and_upload_nft(
        self,
        owner: KeypairLike,
        file_path: str,
        metadata: Dict[str, Any],
        arweave_wallet: Optional[ArweaveWallet] = None,
        content_type: Optional[str] = None,
        arweave_client: Optional[ArweaveClient] = None,
    ) -> UploadNftResult:
        """
        Upload ``file_path`` and its JSON metadata to Arweave, then mint.

        :param metadata: Metaplex JSON metadata; ``name`` is required and
            ``image`` is replaced with the uploaded file URL
        :param arweave_wallet: Funded wallet paying for storage
        :param arweave_client: Client to upload with; one is created from
            ``arweave_config`` and closed afterwards when omitted
        """
        if "name" not in metadata:
            raise ValueError("NFT metadata needs a name")
        client = arweave_client or ArweaveClient(self.arweave_config)
        try:
            file_result = await client.upload_file(
                file_path, arweave_wallet, content_type=content_type
            )
            wallet = ArweaveWallet.from_jwk(file_result.wallet)
            document = dict(metadata)
            document["image"] = file_result.url
            properties = dict(document.get("properties") or {})
            properties["files"] = [
                {"uri": file_result.url, "type": content_type or "image"}
            ]
            document["properties"] = properties
            metadata_result = await client.upload_metadata(document, wallet)
        finally:
            if arweave_client is None:
                await client.close()

        nft = await self.mint_nft(
            owner,
            metadata_result.url,
            metadata["name"],
            metadata.get("symbol", ""),
            metadata.get("seller_fee_basis_points", 0),
        )
        return UploadNftResult(nft, file_result, metadata_result)

    async def get_nft_metadata(self, mint: PublicKeyLike) -> Metadata:
        address = token_metadata.get_metadata_address(to_public_key(mint))
        account = await self.rpc_client.get_account_info(address)
        return Metadata.from_bytes(account.data)

    async def get_nft_account_info(self, mint: PublicKeyLike) -> Dict[str, Any]:
        """Parsed token account currently holding the NFT."""
        largest = await self.rpc_client.get_token_largest_accounts(to_public_key(mint))
        if not largest:
            raise ValueError(f"No token accounts hold {mint}")
        return await self.rpc_client.get_parsed_account_info(
            Pubkey.from_string(largest[0]["address"])
        )

    #
    # Explorer links
    #

    def get_account_link(self, public_key: PublicKeyLike) -> str:
        return (
            f"https://solscan.io/account/{to_public_key(public_key)}"
            f"?cluster={self.cluster.value}"
        )

    def get_transaction_link(self, signature: str) -> str:
        return f"https://solscan.io/tx/{signature}?cluster={self.cluster.value}"

    @staticmethod
    def get_chart_link(mint: PublicKeyLike) -> str:
        return f"https://birdeye.so/token/{to_public_key(mint)}"


def _program_ids(transaction: Transaction) -> List[Pubkey]:
    message = transaction.message
    return [
        message.account_keys[instruction.program_id_index]
        for instruction in message.instructions
    ]


class Test(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self.rpc = RpcClient("http://localhost:8899")
        self.client = SplClient(self.rpc, Cluster.DEVNET)
        self.sent: List[Transaction] = []
        self.owner = Keypair()

        async def send_and_confirm(transaction: Transaction) -> str:
            transaction.verify()
            self.sent.append(transaction)
            return f"sig{len(self.sent)}"

        patches = {
            "get_latest_blockhash": mock.AsyncMock(return_value=(Hash.default(), 10)),
            "send_and_confirm_transaction": mock.AsyncMock(side_effect=send_and_confirm),
            "get_minimum_balance_for_rent_exemption": mock.AsyncMock(
                return_value=1_461_600
            ),
        }
        for name, value in patches.items():
            patcher = mock.patch.object(self.rpc, name, value)
            patcher.start()
            self.addCleanup(patcher.stop)

    async def asyncTearDown(self):
        await self.client.close()

    def mock_mint(self, decimals: int):
        ser = Serializer()
        Mint(self.owner.pubkey(), 0, decimals, True, None).serialize(ser)
        account = AccountInfo(1, TOKEN_PROGRAM_ID, ser.output(), False, 0)
        patcher = mock.patch.object(
            self.rpc, "get_account_info", mock.AsyncMock(return_value=account)
        )
        patcher.start()
        self.addCleanup(patcher.stop)

    def test_base_units(self):
        self.assertEqual(to_base_units("1.5", 9), 1_500_000_000)
        self.assertEqual(to_base_units(Decimal("0.000001"), 6), 1)
        self.assertEqual(to_base_units(3, 0), 3)
        self.assertEqual(from_base_units("1500000", 6), Decimal("1.5"))
        with self.assertRaises(ValueError):
            to_base_units("0.0000001", 6)
        with self.assertRaises(ValueError):
            to_base_units(-1, 6)
        for invalid in ("abc", "", "NaN", "Infinity"):
            with self.assertRaises(ValueError):
                to_base_units(invalid, 6)

    async def test_transfer_sol(self):
        receiver = Keypair().pubkey()
        signature = await self.client.transfer_sol(self.owner, receiver, "0.25")
        self.assertEqual(signature, "sig1")
        instruction = self.sent[0].message.instructions[0]
        self.assertEqual(
            bytes(instruction.data)[4:], (250_000_000).to_bytes(8, "little")
        )

    async def test_batched_transfers(self):
        builder = self.client.begin_transaction(self.owner)
        result = await self.client.transfer_sol(self.owner, Keypair().pubkey(), 1, builder)
        self.assertIs(result, builder)
        await self.client.transfer_data(self.owner, "note", builder)
        self.assertEqual(self.sent, [])

        await self.client.end_transaction(builder)
        self.assertEqual(len(self.sent), 1)
        self.assertEqual(len(self.sent[0].message.instructions), 2)

    async def test_transfer_token(self):
        self.mock_mint(6)
        mint = Keypair().pubkey()
        receiver = Keypair().pubkey()
        await self.client.transfer_token(mint, self.owner, receiver, "2.5")

        transaction = self.sent[0]
        self.assertEqual(
            _program_ids(transaction),
            [token_program.ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID],
        )
        data = bytes(transaction.message.instructions[1].data)
        self.assertEqual(data, bytes([3]) + (2_500_000).to_bytes(8, "little"))
        self.assertIn(
            get_associated_token_address(receiver, mint),
            transaction.message.account_keys,
        )

    async def test_transfer_token_into_builder(self):
        self.mock_mint(0)
        builder = self.client.begin_transaction(self.owner)
        result = await self.client.transfer_token(
            Keypair().pubkey(), self.owner, Keypair().pubkey(), 1, builder
        )
        self.assertIs(result, builder)
        self.assertEqual(len(builder), 2)
        self.assertEqual(self.sent, [])

    async def test_airdrop_not_on_mainnet(self):
        client = SplClient(self.rpc, Cluster.MAINNET)
        with self.assertRaises(ValueError):
            await client.airdrop(self.owner.pubkey())

    async def test_create_token(self):
        token = Keypair()
        result = await self.client.create_token(self.owner, 6, True, token)
        self.assertEqual(result.mint, token.pubkey())
        transaction = self.sent[0]
        self.assertEqual(len(transaction.signatures), 2)
        data = bytes(transaction.message.instructions[1].data)
        self.assertEqual(data[:2], bytes([20, 6]))
        self.assertEqual(data[-33:], b"\x01" + bytes(self.owner.pubkey()))

    async def test_get_or_create_existing(self):
        with mock.patch.object(
            self.rpc, "account_exists", mock.AsyncMock(return_value=True)
        ):
            result = await self.client.get_or_create_token_account(
                self.owner, Keypair().pubkey()
            )
        self.assertIsNone(result.signature)
        self.assertEqual(self.sent, [])

    async def test_balances(self):
        with mock.patch.object(
            self.rpc, "get_balance", mock.AsyncMock(return_value=1_500_000_000)
        ):
            self.assertEqual(
                await self.client.get_sol_balance(self.owner), Decimal("1.5")
            )
        with mock.patch.object(
            self.rpc,
            "get_token_account_balance",
            mock.AsyncMock(return_value={"amount": "12345", "decimals": 2}),
        ):
            self.assertEqual(
                await self.client.get_token_account_balance(Keypair().pubkey()),
                Decimal("123.45"),
            )

    async def test_mint_into_associated_account(self):
        self.mock_mint(2)
        mint = Keypair().pubkey()
        receiver = Keypair().pubkey()
        await self.client.mint(mint, self.owner, "1.25", receiver)
        transaction = self.sent[0]
        self.assertEqual(
            _program_ids(transaction),
            [token_program.ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID],
        )
        self.assertEqual(
            bytes(transaction.message.instructions[1].data),
            bytes([7]) + (125).to_bytes(8, "little"),
        )
        self.assertIn(
            get_associated_token_address(receiver, mint),
            transaction.message.account_keys,
        )

    async def test_raw_mint_with_multisig(self):
        self.mock_mint(3)
        destination = Keypair().pubkey()
        cosigner = Keypair()
        await self.client.raw_mint(
            Keypair().pubkey(), self.owner, "2", destination, [cosigner]
        )
        transaction = self.sent[0]
        self.assertEqual(len(transaction.message.instructions), 1)
        self.assertEqual(
            bytes(transaction.message.instructions[0].data),
            bytes([7]) + (2000).to_bytes(8, "little"),
        )
        self.assertEqual(len(transaction.signatures), 2)
        self.assertIn(destination, transaction.message.account_keys)

    async def test_burn(self):
        self.mock_mint(2)
        mint = Keypair().pubkey()
        await self.client.burn(mint, self.owner, "1.5")
        transaction = self.sent[0]
        self.assertEqual(
            bytes(transaction.message.instructions[0].data),
            bytes([8]) + (150).to_bytes(8, "little"),
        )
        self.assertIn(
            get_associated_token_address(self.owner.pubkey(), mint),
            transaction.message.account_keys,
        )

    async def test_close_token_account(self):
        mint = Keypair().pubkey()
        await self.client.close_token_account(mint, self.owner)
        transaction = self.sent[0]
        self.assertEqual(bytes(transaction.message.instructions[0].data), bytes([9]))
        self.assertIn(
            get_associated_token_address(self.owner.pubkey(), mint),
            transaction.message.account_keys,
        )

    async def test_approve_and_revoke(self):
        self.mock_mint(0)
        mint = Keypair().pubkey()
        delegate = Keypair().pubkey()
        await self.client.approve(mint, self.owner, delegate, 5)
        approval = self.sent[0]
        self.assertEqual(
            bytes(approval.message.instructions[0].data),
            bytes([4]) + (5).to_bytes(8, "little"),
        )
        self.assertIn(delegate, approval.message.account_keys)

        token_account = Keypair().pubkey()
        await self.client.revoke(mint, self.owner, token_account)
        revocation = self.sent[1]
        self.assertEqual(bytes(revocation.message.instructions[0].data), bytes([5]))
        self.assertIn(token_account, revocation.message.account_keys)

    async def test_set_authority_unknown_name(self):
        with self.assertRaises(ValueError):
            await self.client.set_authority_of_token_account(
                Keypair().pubkey(), self.owner, None, "minter"
            )
        self.assertEqual(self.sent, [])

    async def test_set_authority_by_name(self):
        mint = Keypair().pubkey()
        await self.client.set_authority_of_token_account(mint, self.owner, None, "mint")
        data = bytes(self.sent[0].message.instructions[0].data)
        self.assertEqual(data, bytes([6, 0, 0]))

    async def test_transaction_cost(self):
        with mock.patch.object(
            self.rpc, "get_fee_for_message", mock.AsyncMock(return_value=5000)
        ):
            cost = await self.client.get_transaction_cost(self.owner)
        self.assertEqual(cost, Decimal("0.000005"))

    async def test_create_stake_account(self):
        result = await self.client.create_stake_account(self.owner, 1)
        transaction = self.sent[0]
        self.assertEqual(
            _program_ids(transaction)[1], stake_program.STAKE_PROGRAM_ID
        )
        create_data = bytes(transaction.message.instructions[0].data)
        self.assertEqual(
            create_data[4:12], (1_000_000_000 + 1_461_600).to_bytes(8, "little")
        )
        self.assertIn(result.stake_account.pubkey(), transaction.message.account_keys)

    async def test_stake_status(self):
        ser = Serializer()
        ser.u32(StakeState.STAKE)
        ser.u64(2_282_880)
        stake_program.Authorized(self.owner.pubkey(), self.owner.pubkey()).serialize(ser)
        stake_program.Lockup().serialize(ser)
        ser.pubkey(Keypair().pubkey())
        ser.u64(1_000_000_000)
        ser.u64(4)
        ser.u64(2**64 - 1)
        ser.fixed_bytes(b"\x00" * 8)
        account = AccountInfo(1, stake_program.STAKE_PROGRAM_ID, ser.output(), False, 0)
        with mock.patch.object(
            self.rpc, "get_account_info", mock.AsyncMock(return_value=account)
        ), mock.patch.object(
            self.rpc, "get_epoch_info", mock.AsyncMock(return_value={"epoch": 9})
        ):
            status = await self.client.get_stake_account_status(Keypair().pubkey())
        self.assertEqual(status, StakeStatus.ACTIVE)

    async def test_withdraw_full_balance(self):
        with mock.patch.object(self.rpc, "get_balance", mock.AsyncMock(return_value=42)):
            await self.client.withdraw_stake(Keypair().pubkey(), self.owner)
        data = bytes(self.sent[0].message.instructions[0].data)
        self.assertEqual(data, b"\x04\x00\x00\x00" + (42).to_bytes(8, "little"))

    async def test_mint_nft(self):
        result = await self.client.mint_nft(self.owner, "https://arweave.net/x", "N", "S")
        self.assertEqual(
            _program_ids(self.sent[0])[-2:],
            [token_metadata.TOKEN_METADATA_PROGRAM_ID] * 2,
        )
        self.assertEqual(len(self.sent[0].signatures), 2)
        self.assertEqual(
            result.metadata, token_metadata.get_metadata_address(result.mint)
        )

    async def test_mint_and_upload_nft(self):
        (file, path) = tempfile.mkstemp(suffix=".png")
        os.write(file, b"\x89PNG")
        os.close(file)
        self.addCleanup(os.remove, path)

        wallet = ArweaveWallet.generate(key_size=2048)
        arweave = mock.Mock(spec=ArweaveClient)
        image = UploadResult("img", "https://arweave.net/img", 200, wallet.to_jwk(), wallet.address)
        document = UploadResult("doc", "https://arweave.net/doc", 200, wallet.to_jwk(), wallet.address)
        arweave.upload_file = mock.AsyncMock(return_value=image)
        arweave.upload_metadata = mock.AsyncMock(return_value=document)

        result = await self.client.mint_and_upload_nft(
            self.owner, path, {"name": "N", "symbol": "S"}, wallet, "image/png", arweave
        )
        uploaded = arweave.upload_metadata.call_args[0][0]
        self.assertEqual(uploaded["image"], "https://arweave.net/img")
        self.assertEqual(uploaded["properties"]["files"][0]["type"], "image/png")
        self.assertEqual(result.metadata.url, "https://arweave.net/doc")
        self.assertEqual(result.nft.signature, "sig1")

    async def test_nft_account_info(self):
        holder = Keypair().pubkey()
        parsed = mock.AsyncMock(return_value={"data": {"parsed": {}}})
        with mock.patch.object(
            self.rpc,
            "get_token_largest_accounts",
            mock.AsyncMock(return_value=[{"address": str(holder), "amount": "1"}]),
        ), mock.patch.object(self.rpc, "get_parsed_account_info", parsed):
            await self.client.get_nft_account_info(Keypair().pubkey())
        parsed.assert_awaited_once_with(holder)

    def test_generate_keypair(self):
        self.assertTrue(str(SplClient.generate_keypair("a").pubkey()).startswith("a"))
        with self.assertRaises(ValueError):
            SplClient.generate_keypair("0")

    def test_links(self):
        key = Keypair().pubkey()
        self.assertEqual(
            self.client.get_account_link(key),
            f"https://solscan.io/account/{key}?cluster=devnet",
        )
        self.assertEqual(
            self.client.get_transaction_link("abc"),
            "https://solscan.io/tx/abc?cluster=devnet",
        )
        self.assertEqual(SplClient.get_chart_link(key), f"https://birdeye.so/token/{key}")
        self.assertEqual(
            SplClient.get_wrapped_sol_account(key),
            get_associated_token_address(key, NATIVE_MINT),
        )


if __name__ == "__main__":
    unittest.main()
