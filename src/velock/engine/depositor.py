"""Deposit router - buffers or locks deposits and mints receipt tokens 1:1.

Key Concepts:
- Immediate deposits go straight to the coordinator together with anything
  the router is holding, and collect the accrued incentive
- Deferred deposits stay in the router (the pending pool) and give up a
  small cut that pays whoever later sweeps the pool into the lock
- Pending pool conservation: principal + incentive = router token balance
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..errors import InvalidAmount, ZeroAddress, ZeroAmount
from .access import AccessPolicy, CallContext, GovernanceSeat, Role
from .escrow import round_to_week
from .events import ConfigurationChanged, Deposited, IncentiveReceived
from .interfaces import GaugeSink, Minter
from .ledger import Address, Chain, Participant
from .locker import LockCoordinator

logger = logging.getLogger(__name__)

DENOMINATOR = 10_000
MAX_LOCK_INCENTIVE = 30  # 0.3%
MAX_LOCK_DURATION = 4 * 365 * 86400

ROUTER_POLICY = AccessPolicy({
    "deposit": (Role.ANYONE,),
    "deposit_all": (Role.ANYONE,),
    "sweep_pending": (Role.ANYONE,),
    "create_lock": (Role.ANYONE,),
    "set_lock_incentive_percent": (Role.GOVERNANCE,),
    "set_gauge": (Role.GOVERNANCE,),
    "set_minter_operator": (Role.GOVERNANCE,),
    "transfer_governance": (Role.GOVERNANCE,),
    "accept_governance": (Role.FUTURE_GOVERNANCE,),
})


@dataclass(frozen=True)
class PendingPool:
    """Tokens held by the router awaiting a sweep."""
    principal: int
    incentive: int

    @property
    def total(self) -> int:
        return self.principal + self.incentive


@dataclass(frozen=True)
class SweepResult:
    """Amounts moved by one sweep."""
    locked: int
    incentive_paid: int


class DepositRouter(Participant):
    """Entry point for depositors."""

    _STATE_FIELDS = ("incentive_token", "lock_incentive_percent", "total_received", "total_minted")

    def __init__(
        self,
        chain: Chain,
        locker: LockCoordinator,
        minter: Minter,
        token: str,
        governance: Address,
        gauge: Optional[GaugeSink] = None,
        lock_incentive_percent: int = 10,
        address: Address = "depositor"
    ):
        """
        Initialize router.

        Args:
            chain: Shared chain context
            locker: Coordinator that owns the escrow lock
            minter: Receipt token minter (the router must be its operator)
            token: Deposit token
            governance: Initial governance address
            gauge: Optional gauge receiving staked receipt tokens
            lock_incentive_percent: Cut of deferred deposits, out of 10 000
            address: Router address on the ledger
        """
        self.chain = chain
        self.locker = locker
        self.minter = minter
        self.token = token
        self.address = address
        self.gauge = gauge
        self.seat = GovernanceSeat(chain, "depositor", governance)
        self.incentive_token = 0
        self.lock_incentive_percent = 0
        self.total_received = 0
        self.total_minted = 0
        chain.register(self)
        if 0 <= lock_incentive_percent <= MAX_LOCK_INCENTIVE:
            self.lock_incentive_percent = lock_incentive_percent

    @property
    def governance(self) -> Address:
        return self.seat.governance

    @property
    def receipt_token(self) -> str:
        return self.minter.token

    def pending_pool(self) -> PendingPool:
        held = self.chain.ledger.balance_of(self.token, self.address)
        return PendingPool(principal=held - self.incentive_token, incentive=self.incentive_token)

    def create_lock(self, ctx: CallContext, amount: int) -> None:
        """Bootstrap the treasury lock with ``amount`` of the caller's tokens."""
        self._authorize(ctx, "create_lock")
        if amount <= 0:
            raise ZeroAmount("initial lock amount must be positive")
        with self.chain.atomic():
            self.chain.ledger.transfer_from(self.token, self.address, ctx.caller, self.locker.address, amount)
            self.locker.create_lock(self._self_ctx(), amount, self.chain.now + MAX_LOCK_DURATION)

    def deposit(self, ctx: CallContext, amount: int, lock: bool, stake: bool, user: Address) -> int:
        """
        Deposit ``amount`` tokens and mint receipt tokens for ``user``.

        Args:
            ctx: Call context (the caller pays the tokens)
            amount: Deposit amount
            lock: Lock now (True) or leave in the pending pool (False)
            stake: Stake the receipt tokens in the gauge for ``user`` when a gauge is set
            user: Receiver of the receipt tokens

        Returns:
            Receipt tokens minted

        Raises:
            ZeroAmount: If amount is zero
            ZeroAddress: If user is unset
        """
        self._authorize(ctx, "deposit")
        if amount == 0:
            raise ZeroAmount("deposit amount must be positive")
        if amount < 0:
            raise InvalidAmount(f"deposit amount must be positive, got {amount}")
        if not user:
            raise ZeroAddress("deposit recipient must be set")

        with self.chain.atomic():
            ledger = self.chain.ledger
            self.total_received += amount
            if lock:
                ledger.transfer_from(self.token, self.address, ctx.caller, self.locker.address, amount)
                held = ledger.balance_of(self.token, self.address)
                if held:
                    ledger.transfer(self.token, self.address, self.locker.address, held)
                self._lock_token(held + amount)
                if self.incentive_token:
                    amount += self.incentive_token
                    self.chain.emit(IncentiveReceived(caller=ctx.caller, amount=self.incentive_token))
                    self.incentive_token = 0
            else:
                ledger.transfer_from(self.token, self.address, ctx.caller, self.address, amount)
                if self.lock_incentive_percent > 0:
                    call_incentive = amount * self.lock_incentive_percent // DENOMINATOR
                    amount -= call_incentive
                    self.incentive_token += call_incentive

            self._mint_receipt(user, amount, stake)
            self.chain.emit(Deposited(caller=ctx.caller, user=user, amount=amount, lock=lock, stake=stake))
            logger.info("Deposit by %s for %s: minted=%d lock=%s stake=%s", ctx.caller, user, amount, lock, stake)
            return amount

    def deposit_all(self, ctx: CallContext, lock: bool, stake: bool, user: Address) -> int:
        """Deposit the caller's whole token balance."""
        self._authorize(ctx, "deposit_all")
        amount = self.chain.ledger.balance_of(self.token, ctx.caller)
        return self.deposit(ctx, amount, lock, stake, user)

    def sweep_pending(self, ctx: CallContext) -> SweepResult:
        """
        Lock everything the router holds and pay the accrued incentive to the caller.

        Safe to call with nothing pending; it then moves nothing.
        """
        self._authorize(ctx, "sweep_pending")
        with self.chain.atomic():
            ledger = self.chain.ledger
            held = ledger.balance_of(self.token, self.address)
            if held:
                ledger.transfer(self.token, self.address, self.locker.address, held)
                self._lock_token(held)

            incentive = self.incentive_token
            if incentive:
                self.incentive_token = 0
                self.minter.mint(self._self_ctx(), ctx.caller, incentive)
                self.total_minted += incentive
                self.chain.emit(IncentiveReceived(caller=ctx.caller, amount=incentive))

            if held or incentive:
                logger.info("Swept %d into lock, paid %d incentive to %s", held, incentive, ctx.caller)
            return SweepResult(locked=held, incentive_paid=incentive)

    def set_lock_incentive_percent(self, ctx: CallContext, value: int) -> bool:
        """
        Set the deferred-deposit cut; values outside [0, 30] are ignored.

        Returns:
            True if the value was applied
        """
        self._authorize(ctx, "set_lock_incentive_percent")
        if not 0 <= value <= MAX_LOCK_INCENTIVE:
            logger.debug("Ignoring lock incentive %d outside [0, %d]", value, MAX_LOCK_INCENTIVE)
            return False
        self.lock_incentive_percent = value
        self.chain.emit(ConfigurationChanged("depositor", "lock_incentive_percent", value))
        return True

    def set_gauge(self, ctx: CallContext, gauge: Optional[GaugeSink]) -> None:
        self._authorize(ctx, "set_gauge")
        self.gauge = gauge
        self.chain.emit(ConfigurationChanged("depositor", "gauge", gauge.address if gauge else None))

    def set_minter_operator(self, ctx: CallContext, operator: Address) -> None:
        """Hand the receipt minter operator seat to ``operator``."""
        self._authorize(ctx, "set_minter_operator")
        with self.chain.atomic():
            self.minter.set_operator(self._self_ctx(), operator)
            self.chain.emit(ConfigurationChanged("depositor", "minter_operator", operator))

    def transfer_governance(self, ctx: CallContext, candidate: Address) -> None:
        self._authorize(ctx, "transfer_governance")
        self.seat.propose(candidate)

    def accept_governance(self, ctx: CallContext) -> None:
        self._authorize(ctx, "accept_governance")
        self.seat.accept(ctx)

    def _lock_token(self, amount: int) -> None:
        unlock_time = self.chain.now + MAX_LOCK_DURATION
        can_extend = round_to_week(unlock_time, self.locker.escrow.week) > self.locker.locked.end
        self.locker.increase_lock(self._self_ctx(), amount, unlock_time if can_extend else 0)

    def _mint_receipt(self, user: Address, amount: int, stake: bool) -> None:
        if stake and self.gauge is not None:
            self.minter.mint(self._self_ctx(), self.address, amount)
            self.chain.ledger.approve(self.receipt_token, self.address, self.gauge.address, amount)
            self.gauge.deposit(self._self_ctx(), amount, user)
        else:
            self.minter.mint(self._self_ctx(), user, amount)
        self.total_minted += amount

    def _authorize(self, ctx: CallContext, operation: str) -> Role:
        return ROUTER_POLICY.authorize(ctx, operation, {
            Role.GOVERNANCE: self.seat.governance,
            Role.FUTURE_GOVERNANCE: self.seat.future_governance,
        })

    def _self_ctx(self) -> CallContext:
        return CallContext(self.address)
