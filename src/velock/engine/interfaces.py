"""Capabilities the treasury expects from its collaborators."""

from typing import Protocol

from .access import CallContext
from .ledger import Address


class Escrow(Protocol):
    address: Address
    week: int

    def create_lock(self, ctx: CallContext, value: int, unlock_time: int) -> None: ...

    def increase_amount(self, ctx: CallContext, value: int) -> None: ...

    def increase_unlock_time(self, ctx: CallContext, unlock_time: int) -> None: ...

    def locked_end(self, account: Address) -> int: ...

    def locked_amount(self, account: Address) -> int: ...

    def withdraw(self, ctx: CallContext) -> int: ...


class RewardSource(Protocol):
    def claim(self, ctx: CallContext) -> int: ...


class Minter(Protocol):
    token: str
    operator: Address

    def mint(self, ctx: CallContext, to: Address, amount: int) -> None: ...

    def set_operator(self, ctx: CallContext, operator: Address) -> None: ...


class GaugeSink(Protocol):
    address: Address

    def deposit_reward_token(self, ctx: CallContext, token: str, amount: int) -> None: ...

    def deposit(self, ctx: CallContext, amount: int, on_behalf_of: Address) -> None: ...


class SecondaryDistributorLike(Protocol):
    def distribute(self, ctx: CallContext, gauge: GaugeSink) -> int: ...


class StrategyLike(Protocol):
    def claim_protocol_fees(self, ctx: CallContext) -> int: ...


class FeeReceiverLike(Protocol):
    def split(self, ctx: CallContext, token: str) -> int: ...
