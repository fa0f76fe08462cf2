"""Facts appended to the chain event log by treasury operations."""

from dataclasses import dataclass
from typing import Any, Optional, Tuple


@dataclass(frozen=True)
class LockCreated:
    amount: int
    duration: int  # Seconds between creation and unlock time


@dataclass(frozen=True)
class LockIncreased:
    amount: int
    unlock_time: int  # Requested unlock time, 0 when no extension was asked


@dataclass(frozen=True)
class Released:
    recipient: str
    amount: int


@dataclass(frozen=True)
class RewardsClaimed:
    token: str
    amount: int
    recipient: Optional[str]


@dataclass(frozen=True)
class Deposited:
    caller: str
    user: str
    amount: int  # Receipt tokens minted for the user
    lock: bool
    stake: bool


@dataclass(frozen=True)
class IncentiveReceived:
    caller: str
    amount: int


@dataclass(frozen=True)
class FeeCharged:
    token: str
    receiver: str
    amount: int


@dataclass(frozen=True)
class RewardNotified:
    token: str
    amount: int


@dataclass(frozen=True)
class Harvested:
    token: str
    claimed: int
    strategy_fees: int
    charges: Tuple[Tuple[str, int], ...]  # (receiver, amount) in split order
    claimer: str
    claimer_fee: int
    forwarded: int


@dataclass(frozen=True)
class GovernanceProposed:
    component: str
    candidate: str


@dataclass(frozen=True)
class GovernanceChanged:
    component: str
    governance: str


@dataclass(frozen=True)
class ConfigurationChanged:
    component: str
    name: str
    value: Any
