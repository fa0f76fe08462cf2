"""Reward accumulator - harvests the lock's rewards and splits them.

Key Concepts:
- Fees are charged on a snapshot of the accumulator balance, per receiver in
  list order, then the caller fee; rounding dust goes to the gauge with the rest
- Fee rates are fractions of DENOMINATOR (1e18 = 100%)
- Ordering is fixed: strategy fees are pulled before the snapshot, the local
  charge runs before the fee receiver split, and the gauge gets what is left
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from ..errors import FeeTooHigh, InvalidConfiguration, InvalidSplit, ZeroAddress
from .access import AccessPolicy, CallContext, GovernanceSeat, Role
from .events import ConfigurationChanged, FeeCharged, Harvested, RewardNotified
from .interfaces import (
    FeeReceiverLike,
    GaugeSink,
    RewardSource,
    SecondaryDistributorLike,
    StrategyLike,
)
from .ledger import Address, Chain, Participant
from .locker import LockCoordinator

logger = logging.getLogger(__name__)

DENOMINATOR = 10**18

ACCUMULATOR_POLICY = AccessPolicy({
    "harvest": (Role.ANYONE,),
    "notify_reward": (Role.ANYONE,),
    "notify_all": (Role.ANYONE,),
    "set_fee_split": (Role.GOVERNANCE,),
    "set_claimer_fee": (Role.GOVERNANCE,),
    "set_gauge": (Role.GOVERNANCE,),
    "set_strategy": (Role.GOVERNANCE,),
    "set_fee_receiver": (Role.GOVERNANCE,),
    "set_distributor": (Role.GOVERNANCE,),
    "add_token": (Role.GOVERNANCE,),
    "transfer_governance": (Role.GOVERNANCE,),
    "accept_governance": (Role.FUTURE_GOVERNANCE,),
})


@dataclass(frozen=True)
class FeeSplit:
    """Ordered (receiver, rate) pairs; rates are fractions of DENOMINATOR."""
    receivers: Tuple[Address, ...] = ()
    fees: Tuple[int, ...] = ()

    @property
    def total(self) -> int:
        return sum(self.fees)

    def pairs(self) -> List[Tuple[Address, int]]:
        return list(zip(self.receivers, self.fees))


@dataclass
class HarvestReport:
    """Outcome of one harvest / notification."""
    token: str
    claimed: int = 0
    strategy_fees: int = 0
    charges: List[Tuple[Address, int]] = field(default_factory=list)
    claimer: Optional[Address] = None
    claimer_fee: int = 0
    fee_receiver_split: bool = False
    forwarded: int = 0
    downstream_notified: bool = False

    @property
    def total_charged(self) -> int:
        return sum(amount for _, amount in self.charges) + self.claimer_fee


class RewardAccumulator(Participant):
    """Claims rewards through the coordinator, charges fees, forwards the rest to the gauge."""

    _STATE_FIELDS = ("fee_split", "claimer_fee", "extra_tokens")

    def __init__(
        self,
        chain: Chain,
        locker: LockCoordinator,
        reward_source: RewardSource,
        reward_token: str,
        governance: Address,
        gauge: Optional[GaugeSink] = None,
        claimer_fee: int = 0,
        address: Address = "accumulator"
    ):
        """
        Initialize accumulator.

        Args:
            chain: Shared chain context
            locker: Coordinator holding the lock that earns rewards
            reward_source: Where the lock's rewards are claimed from
            reward_token: The single token the fee model applies to
            governance: Initial governance address
            gauge: Gauge that receives net rewards
            claimer_fee: Caller fee as a fraction of 1e18
            address: Accumulator address on the ledger
        """
        self.chain = chain
        self.locker = locker
        self.reward_source = reward_source
        self.reward_token = reward_token
        self.address = address
        self.gauge = gauge
        self.strategy: Optional[StrategyLike] = None
        self.fee_receiver: Optional[FeeReceiverLike] = None
        self.distributor: Optional[SecondaryDistributorLike] = None
        self.seat = GovernanceSeat(chain, "accumulator", governance)
        self.fee_split = FeeSplit()
        self.claimer_fee = 0
        self.extra_tokens: List[str] = []
        chain.register(self)
        if claimer_fee:
            self._check_rates([claimer_fee])
            self._check_total(self.fee_split.total, claimer_fee)
            self.claimer_fee = claimer_fee

    @property
    def governance(self) -> Address:
        return self.seat.governance

    @property
    def future_governance(self) -> Optional[Address]:
        return self.seat.future_governance

    def harvest(self, ctx: CallContext, notify_downstream: bool, pull_strategy_fees: bool) -> HarvestReport:
        """
        Claim rewards from the lock and distribute them.

        Args:
            ctx: Call context (receives the claimer fee)
            notify_downstream: Also push the secondary incentive token to the gauge
            pull_strategy_fees: Realize strategy fees first and run the fee receiver split

        Returns:
            HarvestReport for the reward token
        """
        self._authorize(ctx, "harvest")
        with self.chain.atomic():
            claimed = self.locker.claim_rewards(
                self._self_ctx(), self.reward_source, self.reward_token, self.address
            )
            strategy_fees = 0
            if pull_strategy_fees and self.strategy is not None:
                strategy_fees = self.strategy.claim_protocol_fees(self._self_ctx())
            report = self._notify(ctx, self.reward_token, notify_downstream, pull_strategy_fees)
            report.claimed = claimed
            report.strategy_fees = strategy_fees
            self.chain.emit(Harvested(
                token=report.token,
                claimed=claimed,
                strategy_fees=strategy_fees,
                charges=tuple(report.charges),
                claimer=ctx.caller,
                claimer_fee=report.claimer_fee,
                forwarded=report.forwarded,
            ))
            logger.info(
                "Harvest by %s: claimed=%d strategy=%d charged=%d forwarded=%d",
                ctx.caller, claimed, strategy_fees, report.total_charged, report.forwarded,
            )
            return report

    def notify_reward(
        self,
        ctx: CallContext,
        token: str,
        notify_downstream: bool,
        pull_strategy_fees: bool
    ) -> HarvestReport:
        """Charge fees on the accumulator's ``token`` balance and forward the rest to the gauge."""
        self._authorize(ctx, "notify_reward")
        with self.chain.atomic():
            return self._notify(ctx, token, notify_downstream, pull_strategy_fees)

    def notify_all(self, ctx: CallContext, notify_downstream: bool, pull_strategy_fees: bool) -> List[HarvestReport]:
        """Notify the reward token and every extra token; the downstream push runs once at the end."""
        self._authorize(ctx, "notify_all")
        with self.chain.atomic():
            tokens = [self.reward_token] + [t for t in self.extra_tokens if t != self.reward_token]
            reports = [self._notify(ctx, token, False, pull_strategy_fees) for token in tokens]
            if notify_downstream:
                reports[-1].downstream_notified = self._distribute_downstream()
            return reports

    def set_fee_split(self, ctx: CallContext, receivers: Sequence[Address], fees: Sequence[int]) -> None:
        """
        Replace the whole fee split.

        Raises:
            InvalidSplit: If the lists are empty or differ in length
            InvalidConfiguration: If a rate is negative
            FeeTooHigh: If the rates plus the claimer fee exceed DENOMINATOR
        """
        self._authorize(ctx, "set_fee_split")
        if len(receivers) == 0 or len(receivers) != len(fees):
            raise InvalidSplit(
                "fee split needs matching non-empty receiver and fee lists",
                details={"receivers": len(receivers), "fees": len(fees)},
            )
        if any(not r for r in receivers):
            raise ZeroAddress("fee receivers must be set")
        self._check_rates(fees)
        self._check_total(sum(fees), self.claimer_fee)
        self.fee_split = FeeSplit(receivers=tuple(receivers), fees=tuple(fees))
        self.chain.emit(ConfigurationChanged("accumulator", "fee_split", self.fee_split.pairs()))

    def set_claimer_fee(self, ctx: CallContext, claimer_fee: int) -> None:
        self._authorize(ctx, "set_claimer_fee")
        self._check_rates([claimer_fee])
        self._check_total(self.fee_split.total, claimer_fee)
        self.claimer_fee = claimer_fee
        self.chain.emit(ConfigurationChanged("accumulator", "claimer_fee", claimer_fee))

    def set_gauge(self, ctx: CallContext, gauge: Optional[GaugeSink]) -> None:
        self._authorize(ctx, "set_gauge")
        self.gauge = gauge
        self.chain.emit(ConfigurationChanged("accumulator", "gauge", gauge.address if gauge else None))

    def set_strategy(self, ctx: CallContext, strategy: Optional[StrategyLike]) -> None:
        self._authorize(ctx, "set_strategy")
        self.strategy = strategy
        self.chain.emit(ConfigurationChanged("accumulator", "strategy", getattr(strategy, "address", None)))

    def set_fee_receiver(self, ctx: CallContext, fee_receiver: Optional[FeeReceiverLike]) -> None:
        self._authorize(ctx, "set_fee_receiver")
        self.fee_receiver = fee_receiver
        self.chain.emit(ConfigurationChanged("accumulator", "fee_receiver", getattr(fee_receiver, "address", None)))

    def set_distributor(self, ctx: CallContext, distributor: Optional[SecondaryDistributorLike]) -> None:
        self._authorize(ctx, "set_distributor")
        self.distributor = distributor
        self.chain.emit(ConfigurationChanged("accumulator", "distributor", getattr(distributor, "address", None)))

    def add_token(self, ctx: CallContext, token: str) -> None:
        self._authorize(ctx, "add_token")
        if token not in self.extra_tokens:
            self.extra_tokens.append(token)

    def transfer_governance(self, ctx: CallContext, candidate: Address) -> None:
        self._authorize(ctx, "transfer_governance")
        self.seat.propose(candidate)

    def accept_governance(self, ctx: CallContext) -> None:
        self._authorize(ctx, "accept_governance")
        self.seat.accept(ctx)

    def _notify(self, ctx: CallContext, token: str, notify_downstream: bool, pull_strategy_fees: bool) -> HarvestReport:
        ledger = self.chain.ledger
        report = self._charge_fee(ctx, token, ledger.balance_of(token, self.address))

        if self.fee_receiver is not None and pull_strategy_fees:
            self.fee_receiver.split(self._self_ctx(), token)
            report.fee_receiver_split = True

        amount = ledger.balance_of(token, self.address)
        if amount and self.gauge is not None:
            ledger.approve(token, self.address, self.gauge.address, amount)
            self.gauge.deposit_reward_token(self._self_ctx(), token, amount)
            report.forwarded = amount
            self.chain.emit(RewardNotified(token=token, amount=amount))
        elif not amount:
            logger.debug("Nothing to forward for %s", token)

        if notify_downstream:
            report.downstream_notified = self._distribute_downstream()
        return report

    def _charge_fee(self, ctx: CallContext, token: str, amount: int) -> HarvestReport:
        report = HarvestReport(token=token)
        if amount == 0 or token != self.reward_token:
            return report
        ledger = self.chain.ledger
        for receiver, rate in self.fee_split.pairs():
            fee = amount * rate // DENOMINATOR
            if fee:
                ledger.transfer(token, self.address, receiver, fee)
                self.chain.emit(FeeCharged(token=token, receiver=receiver, amount=fee))
            report.charges.append((receiver, fee))
        claimer_fee = amount * self.claimer_fee // DENOMINATOR
        if claimer_fee:
            ledger.transfer(token, self.address, ctx.caller, claimer_fee)
            self.chain.emit(FeeCharged(token=token, receiver=ctx.caller, amount=claimer_fee))
        report.claimer = ctx.caller
        report.claimer_fee = claimer_fee
        return report

    def _distribute_downstream(self) -> bool:
        if self.distributor is None or self.gauge is None:
            return False
        self.distributor.distribute(self._self_ctx(), self.gauge)
        return True

    @staticmethod
    def _check_rates(rates: Sequence[int]) -> None:
        for rate in rates:
            if rate < 0:
                raise InvalidConfiguration(f"fee rate {rate} is negative", details={"rate": rate})
            if rate > DENOMINATOR:
                raise FeeTooHigh(f"fee rate {rate} above {DENOMINATOR}", details={"rate": rate})

    @staticmethod
    def _check_total(split_total: int, claimer_fee: int) -> None:
        if split_total + claimer_fee > DENOMINATOR:
            raise FeeTooHigh(
                f"fee split ({split_total}) plus claimer fee ({claimer_fee}) exceeds {DENOMINATOR}"
            )

    def _authorize(self, ctx: CallContext, operation: str) -> Role:
        return ACCUMULATOR_POLICY.authorize(ctx, operation, {
            Role.GOVERNANCE: self.seat.governance,
            Role.FUTURE_GOVERNANCE: self.seat.future_governance,
        })

    def _self_ctx(self) -> CallContext:
        return CallContext(self.address)
