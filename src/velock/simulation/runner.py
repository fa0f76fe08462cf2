"""Simulation runner - drive a treasury through a seeded multi-epoch scenario.

Key Features:
- Deposits arrive as a Poisson count per epoch with log-normal sizes
- Each deposit locks immediately or joins the pending pool
- A keeper sweeps the pending pool once it crosses the configured threshold
- Rewards accrue to the lock every epoch and are harvested on schedule
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import numpy as np

from ..config.schema import Config
from ..engine.access import CallContext
from ..engine.accumulator import HarvestReport
from ..engine.treasury import Treasury, TreasurySnapshot, build_treasury
from ..validation.sanity_checks import SanityChecker, ValidationWarning

logger = logging.getLogger(__name__)

KEEPER = "keeper"
HARVESTER = "harvester"
USER_POOL_SIZE = 200


@dataclass
class SimulationResult:
    """Complete simulation result."""
    config: Config
    snapshots: List[TreasurySnapshot]
    metrics_over_time: List[Dict[str, Any]]
    harvests: List[HarvestReport]
    final_metrics: Dict[str, Any]
    warnings: List[ValidationWarning] = field(default_factory=list)


class SimulationRunner:
    """Runs one scenario against a freshly built treasury."""

    def __init__(self, config: Config, treasury: Optional[Treasury] = None):
        """
        Initialize simulation runner.

        Args:
            config: Simulation configuration
            treasury: Pre-built treasury (built from config by default)
        """
        self.config = config
        self.treasury = treasury or build_treasury(config)
        self.rng = np.random.default_rng(config.simulation.random_seed)
        self.checker = SanityChecker(self.treasury)

    def run(self) -> SimulationResult:
        """
        Run the full scenario.

        Returns:
            SimulationResult with one snapshot per epoch plus the initial state
        """
        sim = self.config.simulation
        treasury = self.treasury

        initial = treasury.units(sim.initial_lock)
        treasury.fund(self.config.governance.address, initial)
        treasury.router.create_lock(treasury.governance, initial)

        snapshots = [treasury.snapshot()]
        metrics_over_time: List[Dict[str, Any]] = []
        harvests: List[HarvestReport] = []

        for epoch in range(sim.epochs):
            metrics = self._step(epoch, harvests)
            treasury.chain.advance(sim.epoch_seconds)
            snapshot = treasury.snapshot()
            snapshots.append(snapshot)
            metrics.update({
                't': snapshot.t,
                'locked_amount': snapshot.locked_amount,
                'pending_principal': snapshot.pending_principal,
                'pending_incentive': snapshot.pending_incentive,
                'receipt_supply': snapshot.receipt_supply,
            })
            metrics_over_time.append(metrics)

        warnings = self.checker.check_state() + self.checker.check_history(snapshots)
        for warning in warnings:
            logger.warning("%s: %s", warning.category, warning.message)

        return SimulationResult(
            config=self.config,
            snapshots=snapshots,
            metrics_over_time=metrics_over_time,
            harvests=harvests,
            final_metrics=self._final_metrics(snapshots, harvests),
            warnings=warnings,
        )

    def _step(self, epoch: int, harvests: List[HarvestReport]) -> Dict[str, Any]:
        sim = self.config.simulation
        treasury = self.treasury
        metrics: Dict[str, Any] = {
            'epoch': epoch,
            'deposits': 0,
            'deposited': 0,
            'locked_now': 0,
            'swept': 0,
            'incentive_paid': 0,
            'claimed': 0,
            'charged': 0,
            'forwarded': 0,
        }

        for _ in range(int(self.rng.poisson(sim.deposits_per_epoch))):
            user = f"user_{int(self.rng.integers(0, USER_POOL_SIZE))}"
            size = float(self.rng.lognormal(math.log(sim.deposit_size_median), sim.deposit_size_sigma))
            lock = bool(self.rng.random() < sim.lock_probability)
            stake = bool(self.rng.random() < sim.stake_probability)
            amount = treasury.units(size)
            if amount <= 0:
                continue
            treasury.fund(user, amount)
            treasury.router.deposit(CallContext(user), amount, lock, stake, user)
            metrics['deposits'] += 1
            metrics['deposited'] += amount
            if lock:
                metrics['locked_now'] += amount

        if treasury.router.pending_pool().total >= treasury.units(sim.sweep_threshold):
            sweep = treasury.router.sweep_pending(CallContext(KEEPER))
            metrics['swept'] = sweep.locked
            metrics['incentive_paid'] = sweep.incentive_paid

        treasury.reward_source.accrue(treasury.locker.address, treasury.units(sim.reward_per_epoch))
        if treasury.strategy is not None:
            treasury.strategy.accrue_fees(treasury.units(sim.strategy_fees_per_epoch))
        if treasury.distributor is not None:
            treasury.distributor.fund(treasury.units(sim.incentive_per_epoch))

        if (epoch + 1) % sim.harvest_interval == 0:
            report = treasury.accumulator.harvest(
                CallContext(HARVESTER),
                notify_downstream=treasury.distributor is not None,
                pull_strategy_fees=True,
            )
            harvests.append(report)
            metrics['claimed'] = report.claimed + report.strategy_fees
            metrics['charged'] = report.total_charged
            metrics['forwarded'] = report.forwarded

        return metrics

    def _final_metrics(self, snapshots: List[TreasurySnapshot], harvests: List[HarvestReport]) -> Dict[str, Any]:
        final = snapshots[-1]
        decimals = 10 ** self.config.tokens.decimals
        claimed = sum(h.claimed + h.strategy_fees for h in harvests)
        forwarded = sum(h.forwarded for h in harvests)
        return {
            'final_locked': final.locked_amount / decimals,
            'final_pending': (final.pending_principal + final.pending_incentive) / decimals,
            'final_receipt_supply': final.receipt_supply / decimals,
            'unlock_time': final.unlock_time,
            'total_claimed': claimed / decimals,
            'total_forwarded': forwarded / decimals,
            'forwarded_share': forwarded / claimed if claimed else 0.0,
            'harvests': len(harvests),
            'config_hash': self.config.compute_hash(),
        }
