"""Token ledger and chain context - deterministic tracking of every token flow.

Key Concepts:
- Amounts are integers in the token's smallest unit (no floats)
- Every holder is identified by an address string
- ``Chain.atomic()`` snapshots the ledger and all registered participants so a
  failed operation leaves no partial effect behind
"""

import copy
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..errors import InsufficientAllowance, InsufficientBalance, InvalidAmount

logger = logging.getLogger(__name__)

Address = str


@dataclass
class TokenLedger:
    """Balances, allowances and supply for every token in the system.

    Conservation Identity (per token):
    total_supply[token] = sum(balances[token].values())
    """
    balances: Dict[str, Dict[Address, int]] = field(default_factory=dict)
    allowances: Dict[str, Dict[Tuple[Address, Address], int]] = field(default_factory=dict)
    total_supply: Dict[str, int] = field(default_factory=dict)

    def balance_of(self, token: str, holder: Address) -> int:
        """Return ``holder``'s balance of ``token`` (zero when unknown)."""
        return self.balances.get(token, {}).get(holder, 0)

    def allowance(self, token: str, owner: Address, spender: Address) -> int:
        return self.allowances.get(token, {}).get((owner, spender), 0)

    def mint(self, token: str, to: Address, amount: int) -> None:
        """
        Create ``amount`` new units of ``token`` for ``to``.

        Args:
            token: Token symbol
            to: Recipient address
            amount: Amount to create (non-negative)
        """
        _check_amount(amount)
        book = self.balances.setdefault(token, {})
        book[to] = book.get(to, 0) + amount
        self.total_supply[token] = self.total_supply.get(token, 0) + amount

    def burn(self, token: str, holder: Address, amount: int) -> None:
        _check_amount(amount)
        self._debit(token, holder, amount)
        self.total_supply[token] = self.total_supply.get(token, 0) - amount

    def transfer(self, token: str, sender: Address, recipient: Address, amount: int) -> None:
        """
        Move ``amount`` of ``token`` from ``sender`` to ``recipient``.

        Raises:
            InsufficientBalance: If ``sender`` holds less than ``amount``
        """
        _check_amount(amount)
        self._debit(token, sender, amount)
        book = self.balances.setdefault(token, {})
        book[recipient] = book.get(recipient, 0) + amount

    def approve(self, token: str, owner: Address, spender: Address, amount: int) -> None:
        _check_amount(amount)
        self.allowances.setdefault(token, {})[(owner, spender)] = amount

    def transfer_from(
        self,
        token: str,
        spender: Address,
        owner: Address,
        recipient: Address,
        amount: int
    ) -> None:
        """
        Move ``amount`` of ``owner``'s tokens on behalf of ``spender``.

        Raises:
            InsufficientAllowance: If ``owner`` approved less than ``amount``
            InsufficientBalance: If ``owner`` holds less than ``amount``
        """
        _check_amount(amount)
        allowed = self.allowance(token, owner, spender)
        if allowed < amount:
            raise InsufficientAllowance(
                f"{spender} may move {allowed} {token} of {owner}, needs {amount}",
                details={"token": token, "owner": owner, "spender": spender},
            )
        self.transfer(token, owner, recipient, amount)
        self.allowances[token][(owner, spender)] = allowed - amount

    def validate_conservation(self) -> Tuple[bool, Optional[str]]:
        """
        Validate that every token's supply equals the sum of its balances.

        Returns:
            (is_valid, error_message)
        """
        for token, book in self.balances.items():
            held = sum(book.values())
            supply = self.total_supply.get(token, 0)
            if held != supply:
                return False, f"Conservation violation for {token}: supply={supply}, held={held}"
        return True, None

    def _debit(self, token: str, holder: Address, amount: int) -> None:
        have = self.balance_of(token, holder)
        if have < amount:
            raise InsufficientBalance(
                f"{holder} holds {have} {token}, needs {amount}",
                details={"token": token, "holder": holder},
            )
        self.balances.setdefault(token, {})[holder] = have - amount


def _check_amount(amount: int) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
        raise InvalidAmount(f"token amounts must be non-negative integers, got {amount!r}")


class Participant:
    """Mixin for components whose state is restored when an operation fails.

    Subclasses list their mutable attributes in ``_STATE_FIELDS``; references
    to other components must stay out of that list.
    """

    _STATE_FIELDS: Tuple[str, ...] = ()

    def snapshot(self) -> Dict[str, Any]:
        return {name: copy.deepcopy(getattr(self, name)) for name in self._STATE_FIELDS}

    def restore(self, state: Dict[str, Any]) -> None:
        for name, value in state.items():
            setattr(self, name, value)


class Chain:
    """Execution context shared by every component: ledger, clock and event log."""

    def __init__(self, start_time: int = 0):
        """
        Initialize chain context.

        Args:
            start_time: Initial timestamp in seconds
        """
        self.ledger = TokenLedger()
        self.now = start_time
        self.events: List[Any] = []
        self._participants: List[Participant] = []
        self._depth = 0

    def register(self, participant: Participant) -> None:
        self._participants.append(participant)

    def advance(self, seconds: int) -> int:
        """Move the clock forward and return the new timestamp."""
        if seconds < 0:
            raise InvalidAmount(f"time only moves forward, got {seconds}")
        self.now += seconds
        return self.now

    def emit(self, event: Any) -> None:
        self.events.append(event)

    @contextmanager
    def atomic(self) -> Iterator["Chain"]:
        """
        Run the enclosed block with all-or-nothing semantics.

        Only the outermost scope snapshots; an exception at any depth restores
        the ledger, the event log and every participant, then propagates.
        """
        if self._depth:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        ledger_state = copy.deepcopy(self.ledger)
        event_count = len(self.events)
        states = [(p, p.snapshot()) for p in self._participants]
        self._depth = 1
        try:
            yield self
        except Exception:
            self.ledger = ledger_state
            del self.events[event_count:]
            for participant, state in states:
                participant.restore(state)
            logger.debug("Rolled back operation at t=%d", self.now)
            raise
        finally:
            self._depth = 0
