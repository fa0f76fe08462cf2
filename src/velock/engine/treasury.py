"""Treasury aggregate - one object owning the chain, the core and its collaborators."""

import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

from ..config.schema import Config
from .access import CallContext
from .accumulator import RewardAccumulator
from .collaborators import (
    FeeReceiverSplitter,
    LiquidityGauge,
    ReceiptMinter,
    SecondaryDistributor,
    Strategy,
)
from .depositor import DepositRouter
from .escrow import FeeDistributor, VotingEscrow
from .ledger import Chain
from .locker import LockCoordinator

logger = logging.getLogger(__name__)


@dataclass
class TreasurySnapshot:
    """Observable treasury state at a point in time."""
    t: int
    lock_state: str
    locked_amount: int
    unlock_time: int
    pending_principal: int
    pending_incentive: int
    receipt_supply: int
    total_received: int
    gauge_staked: int
    gauge_rewards: Dict[str, int] = field(default_factory=dict)
    fee_receivers: Dict[str, int] = field(default_factory=dict)


@dataclass
class Treasury:
    """Every component of one treasury, wired together."""
    config: Config
    chain: Chain
    escrow: VotingEscrow
    reward_source: FeeDistributor
    minter: ReceiptMinter
    gauge: LiquidityGauge
    locker: LockCoordinator
    router: DepositRouter
    accumulator: RewardAccumulator
    strategy: Optional[Strategy] = None
    fee_receiver: Optional[FeeReceiverSplitter] = None
    distributor: Optional[SecondaryDistributor] = None

    @property
    def governance(self) -> CallContext:
        return CallContext(self.config.governance.address)

    def units(self, tokens: float) -> int:
        """Convert whole tokens to integer base units."""
        return int(round(tokens * 10 ** self.config.tokens.decimals))

    def fund(self, holder: str, amount: int) -> None:
        """Give ``holder`` deposit tokens and approve the router to pull them."""
        ledger = self.chain.ledger
        token = self.config.tokens.deposit
        ledger.mint(token, holder, amount)
        current = ledger.allowance(token, holder, self.router.address)
        ledger.approve(token, holder, self.router.address, current + amount)

    def snapshot(self) -> TreasurySnapshot:
        ledger = self.chain.ledger
        tokens = self.config.tokens
        pool = self.router.pending_pool()
        locked = self.locker.locked
        receivers = {r: ledger.balance_of(tokens.reward, r) for r in self.accumulator.fee_split.receivers}
        return TreasurySnapshot(
            t=self.chain.now,
            lock_state=self.locker.lock_state.value,
            locked_amount=locked.amount,
            unlock_time=locked.end,
            pending_principal=pool.principal,
            pending_incentive=pool.incentive,
            receipt_supply=ledger.total_supply.get(tokens.receipt, 0),
            total_received=self.router.total_received,
            gauge_staked=self.gauge.total_staked,
            gauge_rewards=dict(self.gauge.rewards_received),
            fee_receivers=receivers,
        )


def build_treasury(config: Config, chain: Optional[Chain] = None) -> Treasury:
    """
    Build and wire a treasury from configuration.

    Args:
        config: Workbench configuration
        chain: Existing chain context (a fresh one at ``simulation.start_time`` by default)

    Returns:
        Treasury with all roles assigned; the lock itself is not created yet
    """
    chain = chain or Chain(start_time=config.simulation.start_time)
    tokens = config.tokens
    gov = config.governance.address
    gov_ctx = CallContext(gov)

    escrow = VotingEscrow(
        chain, tokens.deposit,
        week=config.escrow.week_seconds,
        max_time=config.escrow.max_lock_seconds,
    )
    reward_source = FeeDistributor(chain, tokens.reward)
    locker = LockCoordinator(chain, escrow, tokens.deposit, governance=gov)
    minter = ReceiptMinter(chain, tokens.receipt, operator="depositor")
    gauge = LiquidityGauge(chain, tokens.receipt, admin=gov)

    router = DepositRouter(
        chain, locker, minter, tokens.deposit,
        governance=gov,
        gauge=gauge if config.depositor.gauge_enabled else None,
        lock_incentive_percent=config.depositor.lock_incentive_percent,
    )
    accumulator = RewardAccumulator(
        chain, locker, reward_source, tokens.reward,
        governance=gov,
        gauge=gauge,
        claimer_fee=config.accumulator.claimer_fee,
    )
    locker.set_depositor(gov_ctx, router.address)
    locker.set_accumulator(gov_ctx, accumulator.address)
    gauge.add_reward(gov_ctx, tokens.reward, accumulator.address)

    if config.accumulator.fee_split:
        accumulator.set_fee_split(
            gov_ctx,
            [entry.receiver for entry in config.accumulator.fee_split],
            [entry.fee for entry in config.accumulator.fee_split],
        )

    strategy = None
    if config.accumulator.strategy_enabled:
        strategy = Strategy(chain, tokens.reward, fee_recipient=accumulator.address)
        accumulator.set_strategy(gov_ctx, strategy)

    fee_receiver = None
    if config.accumulator.fee_receiver_enabled:
        fee_receiver = FeeReceiverSplitter(
            chain, [(entry.receiver, entry.weight) for entry in config.accumulator.fee_receiver_split]
        )
        accumulator.set_fee_receiver(gov_ctx, fee_receiver)

    distributor = None
    if config.accumulator.distributor_enabled:
        distributor = SecondaryDistributor(chain, tokens.incentive)
        gauge.add_reward(gov_ctx, tokens.incentive, distributor.address)
        accumulator.set_distributor(gov_ctx, distributor)

    logger.info("Treasury built (config %s)", config.compute_hash())
    return Treasury(
        config=config,
        chain=chain,
        escrow=escrow,
        reward_source=reward_source,
        minter=minter,
        gauge=gauge,
        locker=locker,
        router=router,
        accumulator=accumulator,
        strategy=strategy,
        fee_receiver=fee_receiver,
        distributor=distributor,
    )
