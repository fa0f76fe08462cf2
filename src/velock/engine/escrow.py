"""Reference vote-escrow and reward source used by the treasury.

Only the accounting contract is modelled: locked principal, the week-aligned
unlock time and the maturity gate on withdrawal. Vote weight and decay are not
computed here.
"""

import logging
from dataclasses import dataclass
from typing import Dict

from ..errors import EscrowError
from .access import CallContext
from .ledger import Address, Chain, Participant

logger = logging.getLogger(__name__)

WEEK = 7 * 86400
MAXTIME = 4 * 365 * 86400


def round_to_week(timestamp: int, week: int = WEEK) -> int:
    """Round ``timestamp`` down to the start of its escrow week."""
    return timestamp // week * week


@dataclass
class LockedBalance:
    """Locked position of one account."""
    amount: int = 0
    end: int = 0  # Week-aligned unlock timestamp


class VotingEscrow(Participant):
    """Time-locked escrow of the deposit token."""

    _STATE_FIELDS = ("locked",)

    def __init__(
        self,
        chain: Chain,
        token: str,
        address: Address = "escrow",
        week: int = WEEK,
        max_time: int = MAXTIME
    ):
        """
        Initialize escrow.

        Args:
            chain: Shared chain context
            token: Deposit token held in escrow
            address: Escrow address on the ledger
            week: Unlock-time granularity in seconds
            max_time: Longest allowed lock in seconds
        """
        self.chain = chain
        self.token = token
        self.address = address
        self.week = week
        self.max_time = max_time
        self.locked: Dict[Address, LockedBalance] = {}
        chain.register(self)

    def locked_end(self, account: Address) -> int:
        return self.locked.get(account, LockedBalance()).end

    def locked_amount(self, account: Address) -> int:
        return self.locked.get(account, LockedBalance()).amount

    def create_lock(self, ctx: CallContext, value: int, unlock_time: int) -> None:
        """Lock ``value`` tokens of the caller until ``unlock_time`` (rounded down to a week)."""
        now = self.chain.now
        unlock_time = round_to_week(unlock_time, self.week)
        current = self.locked.get(ctx.caller, LockedBalance())
        if value <= 0:
            raise EscrowError("need non-zero value")
        if current.amount != 0:
            raise EscrowError("withdraw old tokens first", details={"account": ctx.caller})
        if unlock_time <= now:
            raise EscrowError("can only lock until time in the future", details={"unlock_time": unlock_time})
        if unlock_time > now + self.max_time:
            raise EscrowError("voting lock can be 4 years max", details={"unlock_time": unlock_time})
        self.chain.ledger.transfer(self.token, ctx.caller, self.address, value)
        self.locked[ctx.caller] = LockedBalance(amount=value, end=unlock_time)

    def increase_amount(self, ctx: CallContext, value: int) -> None:
        current = self._active_lock(ctx.caller)
        if value <= 0:
            raise EscrowError("need non-zero value")
        self.chain.ledger.transfer(self.token, ctx.caller, self.address, value)
        current.amount += value

    def increase_unlock_time(self, ctx: CallContext, unlock_time: int) -> None:
        current = self._active_lock(ctx.caller)
        unlock_time = round_to_week(unlock_time, self.week)
        if unlock_time <= current.end:
            raise EscrowError("can only increase lock duration", details={"unlock_time": unlock_time})
        if unlock_time > self.chain.now + self.max_time:
            raise EscrowError("voting lock can be 4 years max", details={"unlock_time": unlock_time})
        current.end = unlock_time

    def withdraw(self, ctx: CallContext) -> int:
        """Return the caller's whole locked amount once the lock has expired."""
        current = self.locked.get(ctx.caller, LockedBalance())
        if current.amount == 0:
            raise EscrowError("nothing locked", details={"account": ctx.caller})
        if self.chain.now < current.end:
            raise EscrowError("the lock didn't expire", details={"end": current.end})
        amount = current.amount
        self.locked[ctx.caller] = LockedBalance()
        self.chain.ledger.transfer(self.token, self.address, ctx.caller, amount)
        return amount

    def _active_lock(self, account: Address) -> LockedBalance:
        current = self.locked.get(account)
        if current is None or current.amount == 0:
            raise EscrowError("no existing lock found", details={"account": account})
        if current.end <= self.chain.now:
            raise EscrowError("cannot add to expired lock", details={"end": current.end})
        return current


class FeeDistributor(Participant):
    """Reward source: accrues reward token per account and pays it on claim."""

    _STATE_FIELDS = ("claimable",)

    def __init__(self, chain: Chain, token: str, address: Address = "fee_distributor"):
        self.chain = chain
        self.token = token
        self.address = address
        self.claimable: Dict[Address, int] = {}
        chain.register(self)

    def accrue(self, account: Address, amount: int) -> None:
        """Fund ``amount`` of reward for ``account`` (minted into the distributor)."""
        self.chain.ledger.mint(self.token, self.address, amount)
        self.claimable[account] = self.claimable.get(account, 0) + amount

    def claim(self, ctx: CallContext) -> int:
        amount = self.claimable.pop(ctx.caller, 0)
        if amount:
            self.chain.ledger.transfer(self.token, self.address, ctx.caller, amount)
        return amount
