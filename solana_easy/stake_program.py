# Copyright © Aptos Foundation
# SPDX-License-Identifier: Apache-2.0

"""
Native stake program: instruction builders and the stake account layout.

The stake program encodes instructions and state with bincode, so every enum
starts with a u32 tag. Only the lifecycle used by the high-level client is
covered: create and initialize, delegate, deactivate and withdraw.
"""

from __future__ import annotations

import unittest
from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import List, Optional

from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey
from solders.system_program import CreateAccountParams, create_account
from solders.sysvar import CLOCK, RENT, STAKE_HISTORY

from .layout import MAX_U64, Deserializer, Serializer

STAKE_PROGRAM_ID = Pubkey.from_string("Stake11111111111111111111111111111111111111")
STAKE_CONFIG_ID = Pubkey.from_string("StakeConfig11111111111111111111111111111111")

STAKE_ACCOUNT_SIZE = 200


class StakeInstruction(IntEnum):
    INITIALIZE = 0
    DELEGATE_STAKE = 2
    WITHDRAW = 4
    DEACTIVATE = 5


@dataclass
class Authorized:
    staker: Pubkey
    withdrawer: Pubkey

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Authorized:
        return Authorized(deserializer.pubkey(), deserializer.pubkey())

    def serialize(self, serializer: Serializer):
        serializer.pubkey(self.staker)
        serializer.pubkey(self.withdrawer)


@dataclass
class Lockup:
    """Funds cannot be withdrawn before ``unix_timestamp`` and ``epoch``
    unless ``custodian`` signs. The zero value means no lockup."""

    unix_timestamp: int = 0
    epoch: int = 0
    custodian: Pubkey = field(default_factory=Pubkey.default)

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Lockup:
        return Lockup(deserializer.i64(), deserializer.u64(), deserializer.pubkey())

    def serialize(self, serializer: Serializer):
        serializer.i64(self.unix_timestamp)
        serializer.u64(self.epoch)
        serializer.pubkey(self.custodian)


def initialize(
    stake: Pubkey, authorized: Authorized, lockup: Optional[Lockup] = None
) -> Instruction:
    ser = Serializer()
    ser.u32(StakeInstruction.INITIALIZE)
    ser.struct(authorized)
    ser.struct(lockup or Lockup())
    accounts = [
        AccountMeta(stake, is_signer=False, is_writable=True),
        AccountMeta(RENT, is_signer=False, is_writable=False),
    ]
    return Instruction(STAKE_PROGRAM_ID, ser.output(), accounts)


def create_stake_account(
    from_pubkey: Pubkey,
    stake: Pubkey,
    authorized: Authorized,
    lamports: int,
    lockup: Optional[Lockup] = None,
) -> List[Instruction]:
    """Allocate a stake account owned by the stake program and initialize it.

    ``lamports`` must already include the rent-exempt reserve.
    """
    return [
        create_account(
            CreateAccountParams(
                from_pubkey=from_pubkey,
                to_pubkey=stake,
                lamports=lamports,
                space=STAKE_ACCOUNT_SIZE,
                owner=STAKE_PROGRAM_ID,
            )
        ),
        initialize(stake, authorized, lockup),
    ]


def delegate_stake(stake: Pubkey, authority: Pubkey, vote: Pubkey) -> Instruction:
    ser = Serializer()
    ser.u32(StakeInstruction.DELEGATE_STAKE)
    accounts = [
        AccountMeta(stake, is_signer=False, is_writable=True),
        AccountMeta(vote, is_signer=False, is_writable=False),
        AccountMeta(CLOCK, is_signer=False, is_writable=False),
        AccountMeta(STAKE_HISTORY, is_signer=False, is_writable=False),
        AccountMeta(STAKE_CONFIG_ID, is_signer=False, is_writable=False),
        AccountMeta(authority, is_signer=True, is_writable=False),
    ]
    return Instruction(STAKE_PROGRAM_ID, ser.output(), accounts)


def deactivate(stake: Pubkey, authority: Pubkey) -> Instruction:
    ser = Serializer()
    ser.u32(StakeInstruction.DEACTIVATE)
    accounts = [
        AccountMeta(stake, is_signer=False, is_writable=True),
        AccountMeta(CLOCK, is_signer=False, is_writable=False),
        AccountMeta(authority, is_signer=True, is_writable=False),
    ]
    return Instruction(STAKE_PROGRAM_ID, ser.output(), accounts)


def withdraw(
    stake: Pubkey, authority: Pubkey, to: Pubkey, lamports: int
) -> Instruction:
    ser = Serializer()
    ser.u32(StakeInstruction.WITHDRAW)
    ser.u64(lamports)
    accounts = [
        AccountMeta(stake, is_signer=False, is_writable=True),
        AccountMeta(to, is_signer=False, is_writable=True),
        AccountMeta(CLOCK, is_signer=False, is_writable=False),
        AccountMeta(STAKE_HISTORY, is_signer=False, is_writable=False),
        AccountMeta(authority, is_signer=True, is_writable=False),
    ]
    return Instruction(STAKE_PROGRAM_ID, ser.output(), accounts)


class StakeStatus(str, Enum):
    INACTIVE = "inactive"
    ACTIVATING = "activating"
    ACTIVE = "active"
    DEACTIVATING = "deactivating"


@dataclass
class Meta:
    rent_exempt_reserve: int
    authorized: Authorized
    lockup: Lockup

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Meta:
        return Meta(
            deserializer.u64(),
            Authorized.deserialize(deserializer),
            Lockup.deserialize(deserializer),
        )


@dataclass
class Delegation:
    voter: Pubkey
    stake: int
    activation_epoch: int
    deactivation_epoch: int

    @staticmethod
    def deserialize(deserializer: Deserializer) -> Delegation:
        delegation = Delegation(
            voter=deserializer.pubkey(),
            stake=deserializer.u64(),
            activation_epoch=deserializer.u64(),
            deactivation_epoch=deserializer.u64(),
        )
        # Deprecated warmup/cooldown rate (f64).
        deserializer.skip(8)
        return delegation


@dataclass
class StakeState:
    """Decoded stake account. ``meta`` is set once initialized and
    ``delegation`` once delegated."""

    kind: int
    meta: Optional[Meta] = None
    delegation: Optional[Delegation] = None

    UNINITIALIZED = 0
    INITIALIZED = 1
    STAKE = 2
    REWARDS_POOL = 3

    @staticmethod
    def from_bytes(data: bytes) -> StakeState:
        der = Deserializer(data)
        kind = der.u32()
        if kind in (StakeState.INITIALIZED, StakeState.STAKE):
            meta = Meta.deserialize(der)
            delegation = Delegation.deserialize(der) if kind == StakeState.STAKE else None
            return StakeState(kind, meta, delegation)
        return StakeState(kind)

    def status(self, current_epoch: int) -> StakeStatus:
        """Activation status at ``current_epoch``.

        Warmup and cooldown are treated as completing at the next epoch
        boundary; the network-wide rate limit that can stretch them over
        several epochs is not modelled.
        """
        delegation = self.delegation
        if delegation is None:
            return StakeStatus.INACTIVE
        if delegation.deactivation_epoch != MAX_U64:
            if (
                delegation.activation_epoch == delegation.deactivation_epoch
                or current_epoch > delegation.deactivation_epoch
            ):
                return StakeStatus.INACTIVE
            return StakeStatus.DEACTIVATING
        if delegation.activation_epoch == MAX_U64 or current_epoch > delegation.activation_epoch:
            return StakeStatus.ACTIVE
        return StakeStatus.ACTIVATING


class Test(unittest.TestCase):
    @staticmethod
    def stake_account(activation_epoch: int, deactivation_epoch: int) -> bytes:
        owner = Pubkey.new_unique()
        ser = Serializer()
        ser.u32(StakeState.STAKE)
        ser.u64(2_282_880)
        Authorized(owner, owner).serialize(ser)
        Lockup().serialize(ser)
        ser.pubkey(Pubkey.new_unique())
        ser.u64(1_000_000_000)
        ser.u64(activation_epoch)
        ser.u64(deactivation_epoch)
        ser.fixed_bytes(b"\x00" * 8)
        ser.u64(0)
        ser.u8(0)
        data = ser.output()
        return data + b"\x00" * (STAKE_ACCOUNT_SIZE - len(data))

    def test_initialize_data(self):
        stake, owner = Pubkey.new_unique(), Pubkey.new_unique()
        instruction = initialize(stake, Authorized(owner, owner))
        data = bytes(instruction.data)
        self.assertEqual(len(data), 4 + 64 + 8 + 8 + 32)
        self.assertEqual(data[:4], b"\x00\x00\x00\x00")
        self.assertEqual(data[4:36], bytes(owner))
        self.assertEqual(instruction.accounts[1].pubkey, RENT)

    def test_create_stake_account(self):
        payer, stake = Pubkey.new_unique(), Pubkey.new_unique()
        instructions = create_stake_account(
            payer, stake, Authorized(payer, payer), 3_000_000
        )
        self.assertEqual(len(instructions), 2)
        self.assertEqual(instructions[1].program_id, STAKE_PROGRAM_ID)

    def test_lifecycle_instructions(self):
        stake, authority, vote = (Pubkey.new_unique() for _ in range(3))
        delegate = delegate_stake(stake, authority, vote)
        self.assertEqual(bytes(delegate.data), b"\x02\x00\x00\x00")
        self.assertEqual(delegate.accounts[4].pubkey, STAKE_CONFIG_ID)
        self.assertTrue(delegate.accounts[5].is_signer)

        self.assertEqual(bytes(deactivate(stake, authority).data), b"\x05\x00\x00\x00")
        self.assertEqual(
            bytes(withdraw(stake, authority, authority, 7).data),
            b"\x04\x00\x00\x00" + (7).to_bytes(8, "little"),
        )

    def test_parse_and_status(self):
        state = StakeState.from_bytes(self.stake_account(10, MAX_U64))
        self.assertEqual(state.kind, StakeState.STAKE)
        self.assertEqual(state.meta.rent_exempt_reserve, 2_282_880)
        self.assertEqual(state.delegation.stake, 1_000_000_000)

        self.assertEqual(state.status(10), StakeStatus.ACTIVATING)
        self.assertEqual(state.status(11), StakeStatus.ACTIVE)

        deactivated = StakeState.from_bytes(self.stake_account(10, 20))
        self.assertEqual(deactivated.status(20), StakeStatus.DEACTIVATING)
        self.assertEqual(deactivated.status(21), StakeStatus.INACTIVE)

        cancelled = StakeState.from_bytes(self.stake_account(10, 10))
        self.assertEqual(cancelled.status(10), StakeStatus.INACTIVE)

    def test_initialized_is_inactive(self):
        owner = Pubkey.new_unique()
        ser = Serializer()
        ser.u32(StakeState.INITIALIZED)
        ser.u64(1)
        Authorized(owner, owner).serialize(ser)
        Lockup().serialize(ser)
        state = StakeState.from_bytes(ser.output())
        self.assertIsNone(state.delegation)
        self.assertEqual(state.status(5), StakeStatus.INACTIVE)


if __name__ == "__main__":
    unittest.main()
