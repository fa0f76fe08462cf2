"""Pydantic schema for configuration validation."""

import hashlib
import json
from typing import Any, Dict, List, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

FEE_DENOMINATOR = 10**18
INCENTIVE_DENOMINATOR = 10_000


class Tokens(BaseModel):
    """Token symbols used by the treasury."""
    deposit: str = Field(default="CRV", description="Token accepted and locked")
    receipt: str = Field(default="sdCRV", description="Liquid receipt token minted 1:1")
    reward: str = Field(default="crvUSD", description="Token paid by the reward source")
    incentive: str = Field(default="SDT", description="Protocol incentive token pushed by the secondary distributor")
    decimals: int = Field(default=18, ge=0, le=36, description="Decimals shared by all tokens")


class Escrow(BaseModel):
    """Vote escrow parameters."""
    week_seconds: int = Field(default=7 * 86400, gt=0, description="Unlock-time granularity")
    max_lock_seconds: int = Field(default=4 * 365 * 86400, gt=0, description="Longest lock")

    @model_validator(mode="after")
    def validate_window(self):
        """The maximum lock must span at least one week."""
        if self.max_lock_seconds < self.week_seconds:
            raise ValueError("max_lock_seconds must be at least one week")
        return self


class Depositor(BaseModel):
    """Deposit router parameters."""
    lock_incentive_percent: int = Field(
        default=10, ge=0, le=30,
        description="Cut of deferred deposits paid to the sweeper, out of 10 000"
    )
    gauge_enabled: bool = Field(default=True, description="Stake receipt tokens in the gauge when asked")


class FeeSplitEntry(BaseModel):
    """One fee receiver and its rate (fraction of 1e18)."""
    receiver: str = Field(min_length=1)
    fee: int = Field(ge=0, le=FEE_DENOMINATOR)


class FeeReceiverEntry(BaseModel):
    """One second-stage receiver and its weight (fraction of 10 000)."""
    receiver: str = Field(min_length=1)
    weight: int = Field(ge=0, le=INCENTIVE_DENOMINATOR)


class Accumulator(BaseModel):
    """Reward accumulator parameters."""
    claimer_fee: int = Field(default=10**16, ge=0, le=FEE_DENOMINATOR, description="Caller fee, 1e18 = 100%")
    fee_split: List[FeeSplitEntry] = Field(default_factory=list, description="Ordered fee split")
    strategy_enabled: bool = Field(default=True, description="Realize strategy fees before splitting")
    fee_receiver_enabled: bool = Field(default=False, description="Run the second-stage fee receiver split")
    fee_receiver_split: List[FeeReceiverEntry] = Field(default_factory=list)
    distributor_enabled: bool = Field(default=True, description="Push the incentive token to the gauge")

    @model_validator(mode="after")
    def validate_fee_total(self):
        """Split rates plus the claimer fee must not exceed 100%."""
        total = sum(entry.fee for entry in self.fee_split) + self.claimer_fee
        if total > FEE_DENOMINATOR:
            raise ValueError(
                f"Fee split plus claimer fee should sum to <= {FEE_DENOMINATOR}, got {total}"
            )
        weights = sum(entry.weight for entry in self.fee_receiver_split)
        if weights > INCENTIVE_DENOMINATOR:
            raise ValueError(f"Fee receiver weights should sum to <= {INCENTIVE_DENOMINATOR}, got {weights}")
        return self


class Governance(BaseModel):
    """Initial role holders."""
    address: str = Field(default="governance", min_length=1)


class Simulation(BaseModel):
    """Scenario parameters (token amounts are whole tokens)."""
    epochs: int = Field(default=52, gt=0, description="Number of epochs to simulate")
    epoch_seconds: int = Field(default=7 * 86400, gt=0, description="Epoch length")
    start_time: int = Field(default=1_700_000_000, ge=0, description="Chain start timestamp")
    random_seed: int = Field(default=42, description="Random seed for reproducibility")
    initial_lock: float = Field(default=1_000_000.0, gt=0, description="Tokens used to create the lock")
    deposits_per_epoch: float = Field(default=20.0, ge=0, description="Mean number of deposits per epoch")
    deposit_size_median: float = Field(default=2_500.0, gt=0, description="Median deposit size")
    deposit_size_sigma: float = Field(default=1.0, ge=0, description="Log-normal sigma of deposit size")
    lock_probability: float = Field(default=0.3, ge=0, le=1, description="Share of deposits locked immediately")
    stake_probability: float = Field(default=0.6, ge=0, le=1, description="Share of deposits staked in the gauge")
    sweep_threshold: float = Field(default=50_000.0, ge=0, description="Pending pool size that triggers a keeper sweep")
    reward_per_epoch: float = Field(default=40_000.0, ge=0, description="Rewards accrued to the lock per epoch")
    strategy_fees_per_epoch: float = Field(default=2_000.0, ge=0, description="Protocol fees realized by the strategy")
    incentive_per_epoch: float = Field(default=5_000.0, ge=0, description="Incentive tokens funded per epoch")
    harvest_interval: int = Field(default=1, gt=0, description="Epochs between harvests")

    @field_validator("epochs", "harvest_interval", mode="before")
    @classmethod
    def coerce_int(cls, v):
        """Accept whole floats from YAML/JSON."""
        if v is None:
            return v
        return int(v)


class Logging(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["text", "json"] = "text"


class Config(BaseModel):
    """Complete configuration for the locker treasury workbench."""
    tokens: Tokens = Field(default_factory=Tokens)
    escrow: Escrow = Field(default_factory=Escrow)
    depositor: Depositor = Field(default_factory=Depositor)
    accumulator: Accumulator = Field(default_factory=Accumulator)
    governance: Governance = Field(default_factory=Governance)
    simulation: Simulation = Field(default_factory=Simulation)
    logging: Logging = Field(default_factory=Logging)

    def compute_hash(self) -> str:
        """Compute config hash for reproducibility."""
        config_dict = self.model_dump()
        config_str = json.dumps(config_dict, sort_keys=True)
        return hashlib.sha256(config_str.encode()).hexdigest()[:16]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Config':
        """Create config from dictionary."""
        return cls(**data)

    def to_dict(self) -> Dict[str, Any]:
        """Convert config to dictionary."""
        return self.model_dump()
