"""Sanity checks on treasury state and simulation history."""

from dataclasses import dataclass
from typing import TYPE_CHECKING, List, Optional

from ..engine.accumulator import DENOMINATOR as FEE_DENOMINATOR
from ..engine.depositor import MAX_LOCK_INCENTIVE
from ..engine.treasury import Treasury, TreasurySnapshot

if TYPE_CHECKING:
    from ..simulation.runner import SimulationResult


@dataclass
class ValidationWarning:
    """A validation warning with severity and message."""
    severity: str  # "warning" or "error"
    category: str  # e.g., "conservation", "configuration", "monotonicity"
    message: str
    details: Optional[str] = None


class SanityChecker:
    """Run invariant checks against a live treasury."""

    def __init__(self, treasury: Treasury):
        """Initialize with the treasury to inspect."""
        self.treasury = treasury

    def check_state(self) -> List[ValidationWarning]:
        """
        Check the treasury's current state.

        Returns:
            List of validation warnings (empty when every invariant holds)
        """
        warnings = []
        treasury = self.treasury
        ledger = treasury.chain.ledger
        router = treasury.router
        tokens = treasury.config.tokens

        # Pending pool: principal + incentive is exactly what the router holds
        held = ledger.balance_of(tokens.deposit, router.address)
        pool = router.pending_pool()
        if pool.principal < 0:
            warnings.append(ValidationWarning(
                severity="error",
                category="conservation",
                message="Accrued incentive exceeds tokens held by the router",
                details=f"held={held}, incentive={pool.incentive}"
            ))

        # Receipt supply: minted == received - unpaid incentive
        expected_minted = router.total_received - router.incentive_token
        if router.total_minted != expected_minted:
            warnings.append(ValidationWarning(
                severity="error",
                category="conservation",
                message="Receipt tokens minted do not match net deposits",
                details=f"minted={router.total_minted}, expected={expected_minted}"
            ))

        is_valid, error_msg = ledger.validate_conservation()
        if not is_valid:
            warnings.append(ValidationWarning(
                severity="error",
                category="conservation",
                message="Token ledger supply does not match balances",
                details=error_msg
            ))

        accumulator = treasury.accumulator
        fee_total = accumulator.fee_split.total + accumulator.claimer_fee
        if fee_total > FEE_DENOMINATOR:
            warnings.append(ValidationWarning(
                severity="error",
                category="configuration",
                message="Fee split plus claimer fee exceeds 100%",
                details=f"total={fee_total}"
            ))
        elif fee_total > FEE_DENOMINATOR // 2:
            warnings.append(ValidationWarning(
                severity="warning",
                category="configuration",
                message="More than half of every harvest is charged before reaching the gauge",
                details=f"total={fee_total / FEE_DENOMINATOR:.2%}"
            ))

        if not 0 <= router.lock_incentive_percent <= MAX_LOCK_INCENTIVE:
            warnings.append(ValidationWarning(
                severity="error",
                category="configuration",
                message="Lock incentive outside [0, 30] / 10 000",
                details=f"value={router.lock_incentive_percent}"
            ))

        return warnings

    def check_history(self, snapshots: List[TreasurySnapshot]) -> List[ValidationWarning]:
        """Check that the lock only ever grows and its unlock time never moves back."""
        warnings = []
        for prev, curr in zip(snapshots, snapshots[1:]):
            if curr.lock_state == "withdrawn":
                break
            if curr.locked_amount < prev.locked_amount:
                warnings.append(ValidationWarning(
                    severity="error",
                    category="monotonicity",
                    message=f"Locked amount decreased at t={curr.t}",
                    details=f"{prev.locked_amount} -> {curr.locked_amount}"
                ))
            if curr.unlock_time < prev.unlock_time:
                warnings.append(ValidationWarning(
                    severity="error",
                    category="monotonicity",
                    message=f"Unlock time moved back at t={curr.t}",
                    details=f"{prev.unlock_time} -> {curr.unlock_time}"
                ))
        return warnings


def validate_simulation_results(result: "SimulationResult", treasury: Treasury) -> List[ValidationWarning]:
    """
    Validate a finished simulation.

    Args:
        result: Simulation result
        treasury: Treasury the simulation ran against

    Returns:
        List of validation warnings
    """
    checker = SanityChecker(treasury)
    warnings = checker.check_state() + checker.check_history(result.snapshots)

    for report in result.harvests:
        if report.total_charged + report.forwarded > report.claimed + report.strategy_fees:
            warnings.append(ValidationWarning(
                severity="warning",
                category="conservation",
                message="Harvest paid out more than it claimed",
                details=f"claimed={report.claimed}, charged={report.total_charged}, forwarded={report.forwarded}"
            ))
    return warnings

