"""Caller identity, role table and governance handover."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Iterable, Mapping, Optional

from ..errors import Unauthorized, ZeroAddress
from .events import GovernanceChanged, GovernanceProposed
from .ledger import Address, Chain, Participant

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallContext:
    """Identity of whoever invokes an operation."""
    caller: Address


class Role(str, Enum):
    GOVERNANCE = "governance"
    DEPOSITOR = "depositor"
    ACCUMULATOR = "accumulator"
    FUTURE_GOVERNANCE = "future_governance"
    ANYONE = "anyone"


class AccessPolicy:
    """Operation -> allowed roles lookup.

    Each role is held by exactly one address; a caller passes when it equals
    the holder of any allowed role. ``Role.ANYONE`` opens an operation to every
    caller.
    """

    def __init__(self, table: Mapping[str, Iterable[Role]]):
        self._table: Dict[str, FrozenSet[Role]] = {op: frozenset(roles) for op, roles in table.items()}

    def allowed_roles(self, operation: str) -> FrozenSet[Role]:
        return self._table.get(operation, frozenset())

    def authorize(self, ctx: CallContext, operation: str, holders: Mapping[Role, Optional[Address]]) -> Role:
        """
        Check ``ctx.caller`` against the roles allowed for ``operation``.

        Args:
            ctx: Call context
            operation: Operation name as listed in the policy table
            holders: Current holder address of each role

        Returns:
            The role that granted access

        Raises:
            Unauthorized: If the caller holds none of the allowed roles
        """
        allowed = self.allowed_roles(operation)
        if Role.ANYONE in allowed:
            return Role.ANYONE
        for role in sorted(allowed, key=lambda r: r.value):
            holder = holders.get(role)
            if holder is not None and holder == ctx.caller:
                return role
        raise Unauthorized(
            f"{ctx.caller} may not call {operation}",
            details={"operation": operation, "allowed": sorted(r.value for r in allowed)},
        )


class GovernanceSeat(Participant):
    """Pending-then-accept ownership transfer.

    ``propose`` records a future governance address; ``accept`` must be
    called by that address to take over. Components that want an immediate
    handover call both in one operation.
    """

    _STATE_FIELDS = ("governance", "future_governance")

    def __init__(self, chain: Chain, owner: str, governance: Address):
        if not governance:
            raise ZeroAddress("governance must be set")
        self.chain = chain
        self.owner = owner
        self.governance: Address = governance
        self.future_governance: Optional[Address] = None
        chain.register(self)

    def propose(self, candidate: Address) -> None:
        if not candidate:
            raise ZeroAddress("future governance must be set")
        self.future_governance = candidate
        self.chain.emit(GovernanceProposed(self.owner, candidate))

    def accept(self, ctx: CallContext) -> None:
        if self.future_governance is None or ctx.caller != self.future_governance:
            raise Unauthorized(
                f"{ctx.caller} is not the future governance of {self.owner}",
                details={"future_governance": self.future_governance},
            )
        self.governance = ctx.caller
        self.future_governance = None
        self.chain.emit(GovernanceChanged(self.owner, ctx.caller))
        logger.info("%s governance handed to %s", self.owner, ctx.caller)
