"""Accrual-and-settlement engine: lock coordinator, deposit router, reward accumulator."""

from .access import AccessPolicy, CallContext, GovernanceSeat, Role
from .accumulator import FeeSplit, HarvestReport, RewardAccumulator
from .depositor import DepositRouter, PendingPool, SweepResult
from .ledger import Chain, TokenLedger
from .locker import LockCoordinator, LockState
from .treasury import Treasury, TreasurySnapshot, build_treasury

__all__ = [
    "AccessPolicy",
    "CallContext",
    "Chain",
    "DepositRouter",
    "FeeSplit",
    "GovernanceSeat",
    "HarvestReport",
    "LockCoordinator",
    "LockState",
    "PendingPool",
    "RewardAccumulator",
    "Role",
    "SweepResult",
    "TokenLedger",
    "Treasury",
    "TreasurySnapshot",
    "build_treasury"
]
