"""Error taxonomy for the locker treasury.

Every failure aborts the enclosing operation; ``Chain.atomic`` restores the
pre-call state before the exception leaves the public entry point.
"""

import json
from typing import Any, Dict, Mapping, Optional


class TreasuryError(Exception):
    """Base class for treasury errors."""

    code: str = "TREASURY_ERROR"

    def __init__(self, message: str = "", *, details: Optional[Mapping[str, Any]] = None) -> None:
        self.message = message or self.__class__.__name__
        self.details = dict(details or {})
        super().__init__(self.__str__())

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}

    def __str__(self) -> str:
        if self.details:
            packed = json.dumps(self.details, sort_keys=True, default=str, separators=(",", ":"))
            return f"{self.code}: {self.message} [{packed}]"
        return f"{self.code}: {self.message}"


class Unauthorized(TreasuryError):
    """Caller does not hold a role allowed to run the operation."""
    code = "UNAUTHORIZED"


class InvalidAmount(TreasuryError, ValueError):
    code = "INVALID_AMOUNT"


class ZeroAmount(InvalidAmount):
    code = "ZERO_AMOUNT"


class InvalidAddress(TreasuryError, ValueError):
    code = "INVALID_ADDRESS"


class ZeroAddress(InvalidAddress):
    code = "ZERO_ADDRESS"


class InvalidConfiguration(TreasuryError, ValueError):
    code = "INVALID_CONFIGURATION"


class InvalidSplit(InvalidConfiguration):
    """Fee split lists are empty or of different lengths."""
    code = "INVALID_SPLIT"


class FeeTooHigh(InvalidConfiguration):
    """Fee rates add up to more than the denominator."""
    code = "FEE_TOO_HIGH"


class InvalidState(TreasuryError):
    code = "INVALID_STATE"


class UpstreamFailure(TreasuryError):
    """A collaborator call (token transfer, escrow, gauge, ...) failed."""
    code = "UPSTREAM_FAILURE"


class InsufficientBalance(UpstreamFailure):
    code = "INSUFFICIENT_BALANCE"


class InsufficientAllowance(UpstreamFailure):
    code = "INSUFFICIENT_ALLOWANCE"


class EscrowError(UpstreamFailure):
    code = "ESCROW_ERROR"
