"""Lock coordinator - authenticated facade over the vote escrow.

The coordinator owns the treasury's single escrow lock. The depositor may
create and grow it, the accumulator may claim rewards earned by it, and
governance may do everything including releasing the principal after expiry.
"""

import logging
from enum import Enum
from typing import Optional

from ..errors import InvalidState, ZeroAddress
from .access import AccessPolicy, CallContext, GovernanceSeat, Role
from .escrow import LockedBalance, round_to_week
from .events import ConfigurationChanged, LockCreated, LockIncreased, Released, RewardsClaimed
from .interfaces import Escrow, RewardSource
from .ledger import Address, Chain, Participant

logger = logging.getLogger(__name__)

LOCKER_POLICY = AccessPolicy({
    "create_lock": (Role.GOVERNANCE, Role.DEPOSITOR),
    "increase_lock": (Role.GOVERNANCE, Role.DEPOSITOR),
    "increase_amount": (Role.GOVERNANCE, Role.DEPOSITOR),
    "increase_unlock_time": (Role.GOVERNANCE, Role.DEPOSITOR),
    "claim_rewards": (Role.GOVERNANCE, Role.ACCUMULATOR),
    "release": (Role.GOVERNANCE,),
    "set_depositor": (Role.GOVERNANCE,),
    "set_accumulator": (Role.GOVERNANCE,),
    "set_governance": (Role.GOVERNANCE,),
})


class LockState(str, Enum):
    UNSET = "unset"
    ACTIVE = "active"
    EXPIRED = "expired"
    WITHDRAWN = "withdrawn"


class LockCoordinator(Participant):
    """Holds the treasury lock in the escrow on behalf of the depositor."""

    _STATE_FIELDS = ("depositor", "accumulator", "_created", "_withdrawn")

    def __init__(
        self,
        chain: Chain,
        escrow: Escrow,
        token: str,
        governance: Address,
        address: Address = "locker"
    ):
        """
        Initialize coordinator.

        Args:
            chain: Shared chain context
            escrow: Vote escrow holding the lock
            token: Deposit token locked in the escrow
            governance: Initial governance address
            address: Coordinator address on the ledger
        """
        self.chain = chain
        self.escrow = escrow
        self.token = token
        self.address = address
        self.seat = GovernanceSeat(chain, "locker", governance)
        self.depositor: Optional[Address] = None
        self.accumulator: Optional[Address] = None
        self._created = False
        self._withdrawn = False
        chain.register(self)

    @property
    def governance(self) -> Address:
        return self.seat.governance

    @property
    def locked(self) -> LockedBalance:
        return LockedBalance(
            amount=self.escrow.locked_amount(self.address),
            end=self.escrow.locked_end(self.address),
        )

    @property
    def lock_state(self) -> LockState:
        if self._withdrawn:
            return LockState.WITHDRAWN
        if not self._created:
            return LockState.UNSET
        if self.chain.now >= self.escrow.locked_end(self.address):
            return LockState.EXPIRED
        return LockState.ACTIVE

    def create_lock(self, ctx: CallContext, amount: int, unlock_time: int) -> None:
        """
        Create the treasury lock from tokens already held by the coordinator.

        Raises:
            InvalidState: If a lock was ever created before
        """
        self._authorize(ctx, "create_lock")
        with self.chain.atomic():
            if self.lock_state != LockState.UNSET:
                raise InvalidState(f"lock is {self.lock_state.value}, cannot create")
            self.escrow.create_lock(self._self_ctx(), amount, unlock_time)
            self._created = True
            duration = self.escrow.locked_end(self.address) - self.chain.now
            self.chain.emit(LockCreated(amount=amount, duration=duration))
            logger.info("Lock created: amount=%d unlock=%d", amount, self.escrow.locked_end(self.address))

    def increase_lock(self, ctx: CallContext, amount: int, desired_unlock_time: int) -> bool:
        """
        Top up the lock and/or push its unlock time out.

        The extension only happens when ``desired_unlock_time`` rounded down to
        the escrow week lands strictly after the current unlock time; any other
        request is dropped without error.

        Args:
            ctx: Call context
            amount: Principal to add (0 for none)
            desired_unlock_time: Requested unlock time (0 for none)

        Returns:
            True if the unlock time was extended
        """
        self._authorize(ctx, "increase_lock")
        with self.chain.atomic():
            if amount > 0:
                self.escrow.increase_amount(self._self_ctx(), amount)
            extended = False
            if desired_unlock_time > 0:
                bucket = round_to_week(desired_unlock_time, self.escrow.week)
                current_end = self.escrow.locked_end(self.address)
                if bucket > current_end:
                    self.escrow.increase_unlock_time(self._self_ctx(), desired_unlock_time)
                    extended = True
                else:
                    logger.debug("Extension to %d ignored, lock already ends %d", bucket, current_end)
            self.chain.emit(LockIncreased(amount=amount, unlock_time=desired_unlock_time))
            logger.info("Lock increased: amount=%d extended=%s", amount, extended)
            return extended

    def increase_amount(self, ctx: CallContext, amount: int) -> None:
        self._authorize(ctx, "increase_amount")
        with self.chain.atomic():
            self.escrow.increase_amount(self._self_ctx(), amount)
            self.chain.emit(LockIncreased(amount=amount, unlock_time=0))

    def increase_unlock_time(self, ctx: CallContext, unlock_time: int) -> None:
        self._authorize(ctx, "increase_unlock_time")
        with self.chain.atomic():
            self.escrow.increase_unlock_time(self._self_ctx(), unlock_time)
            self.chain.emit(LockIncreased(amount=0, unlock_time=unlock_time))

    def claim_rewards(
        self,
        ctx: CallContext,
        source: RewardSource,
        reward_token: str,
        recipient: Optional[Address] = None
    ) -> int:
        """
        Claim the lock's rewards from ``source``.

        Args:
            ctx: Call context
            source: Reward source to claim from
            reward_token: Token paid by the source
            recipient: Where to forward the claimed amount; kept here when None

        Returns:
            Amount claimed
        """
        self._authorize(ctx, "claim_rewards")
        with self.chain.atomic():
            claimed = source.claim(self._self_ctx())
            if recipient and claimed:
                self.chain.ledger.transfer(reward_token, self.address, recipient, claimed)
            self.chain.emit(RewardsClaimed(token=reward_token, amount=claimed, recipient=recipient))
            logger.info("Claimed %d %s for %s", claimed, reward_token, recipient or self.address)
            return claimed

    def release(self, ctx: CallContext, recipient: Address) -> int:
        """Withdraw the expired lock and send the coordinator's whole balance to ``recipient``."""
        self._authorize(ctx, "release")
        if not recipient:
            raise ZeroAddress("release recipient must be set")
        with self.chain.atomic():
            self.escrow.withdraw(self._self_ctx())
            self._withdrawn = True
            balance = self.chain.ledger.balance_of(self.token, self.address)
            if balance:
                self.chain.ledger.transfer(self.token, self.address, recipient, balance)
            self.chain.emit(Released(recipient=recipient, amount=balance))
            logger.info("Released %d %s to %s", balance, self.token, recipient)
            return balance

    def set_depositor(self, ctx: CallContext, depositor: Address) -> None:
        self._authorize(ctx, "set_depositor")
        self.depositor = depositor
        self.chain.emit(ConfigurationChanged("locker", "depositor", depositor))

    def set_accumulator(self, ctx: CallContext, accumulator: Address) -> None:
        self._authorize(ctx, "set_accumulator")
        self.accumulator = accumulator
        self.chain.emit(ConfigurationChanged("locker", "accumulator", accumulator))

    def set_governance(self, ctx: CallContext, governance: Address) -> None:
        """Hand governance over immediately."""
        self._authorize(ctx, "set_governance")
        with self.chain.atomic():
            self.seat.propose(governance)
            self.seat.accept(CallContext(governance))

    def _authorize(self, ctx: CallContext, operation: str) -> Role:
        return LOCKER_POLICY.authorize(ctx, operation, {
            Role.GOVERNANCE: self.seat.governance,
            Role.DEPOSITOR: self.depositor,
            Role.ACCUMULATOR: self.accumulator,
        })

    def _self_ctx(self) -> CallContext:
        return CallContext(self.address)
