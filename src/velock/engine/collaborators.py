"""Reference implementations of the treasury's downstream collaborators.

These model only what the core relies on: who may mint receipt tokens, where
forwarded rewards end up and how the optional strategy / fee receiver /
secondary distributor move balances.
"""

import logging
from typing import Dict, List, Optional, Sequence, Tuple

from ..errors import InvalidConfiguration, Unauthorized, UpstreamFailure, ZeroAddress
from .access import CallContext
from .ledger import Address, Chain, Participant

logger = logging.getLogger(__name__)

BPS_DENOMINATOR = 10_000


class ReceiptMinter(Participant):
    """Mints the liquid receipt token; a single operator holds the right to mint."""

    _STATE_FIELDS = ("operator",)

    def __init__(self, chain: Chain, token: str, operator: Address, address: Address = "receipt_minter"):
        self.chain = chain
        self.token = token
        self.operator = operator
        self.address = address
        chain.register(self)

    def mint(self, ctx: CallContext, to: Address, amount: int) -> None:
        if ctx.caller != self.operator:
            raise Unauthorized(f"{ctx.caller} is not the {self.token} operator")
        self.chain.ledger.mint(self.token, to, amount)

    def set_operator(self, ctx: CallContext, operator: Address) -> None:
        if ctx.caller != self.operator:
            raise Unauthorized(f"{ctx.caller} is not the {self.token} operator")
        if not operator:
            raise ZeroAddress("operator must be set")
        self.operator = operator


class LiquidityGauge(Participant):
    """Staking gauge for the receipt token that also receives reward notifications."""

    _STATE_FIELDS = ("reward_distributors", "rewards_received", "staked")

    def __init__(self, chain: Chain, staking_token: str, admin: Address, address: Address = "gauge"):
        """
        Initialize gauge.

        Args:
            chain: Shared chain context
            staking_token: Token users stake (the receipt token)
            admin: Address allowed to register reward tokens
            address: Gauge address on the ledger
        """
        self.chain = chain
        self.staking_token = staking_token
        self.admin = admin
        self.address = address
        self.reward_distributors: Dict[str, Address] = {}
        self.rewards_received: Dict[str, int] = {}
        self.staked: Dict[Address, int] = {}
        chain.register(self)

    @property
    def total_staked(self) -> int:
        return sum(self.staked.values())

    def add_reward(self, ctx: CallContext, token: str, distributor: Address) -> None:
        if ctx.caller != self.admin:
            raise Unauthorized(f"{ctx.caller} is not the gauge admin")
        self.reward_distributors[token] = distributor

    def deposit_reward_token(self, ctx: CallContext, token: str, amount: int) -> None:
        """Pull ``amount`` of ``token`` from its registered distributor."""
        distributor = self.reward_distributors.get(token)
        if distributor is None:
            raise UpstreamFailure(f"{token} is not a gauge reward", details={"token": token})
        if ctx.caller != distributor:
            raise Unauthorized(f"{ctx.caller} is not the {token} reward distributor")
        self.chain.ledger.transfer_from(token, self.address, ctx.caller, self.address, amount)
        self.rewards_received[token] = self.rewards_received.get(token, 0) + amount

    def deposit(self, ctx: CallContext, amount: int, on_behalf_of: Address) -> None:
        self.chain.ledger.transfer_from(self.staking_token, self.address, ctx.caller, self.address, amount)
        self.staked[on_behalf_of] = self.staked.get(on_behalf_of, 0) + amount


class SecondaryDistributor:
    """Pushes its whole balance of the protocol incentive token to a gauge."""

    def __init__(self, chain: Chain, token: str, address: Address = "secondary_distributor"):
        self.chain = chain
        self.token = token
        self.address = address

    def fund(self, amount: int) -> None:
        self.chain.ledger.mint(self.token, self.address, amount)

    def distribute(self, ctx: CallContext, gauge) -> int:
        amount = self.chain.ledger.balance_of(self.token, self.address)
        if amount == 0:
            return 0
        self.chain.ledger.approve(self.token, self.address, gauge.address, amount)
        gauge.deposit_reward_token(CallContext(self.address), self.token, amount)
        logger.debug("Distributed %d %s to %s", amount, self.token, gauge.address)
        return amount


class Strategy(Participant):
    """Holds protocol fees in the reward token until they are realized."""

    _STATE_FIELDS = ("fee_recipient",)

    def __init__(
        self,
        chain: Chain,
        token: str,
        fee_recipient: Optional[Address] = None,
        address: Address = "strategy"
    ):
        self.chain = chain
        self.token = token
        self.fee_recipient = fee_recipient
        self.address = address
        chain.register(self)

    def accrue_fees(self, amount: int) -> None:
        self.chain.ledger.mint(self.token, self.address, amount)

    def claim_protocol_fees(self, ctx: CallContext) -> int:
        """Send every accrued fee to the fee recipient and return the amount."""
        if not self.fee_recipient:
            raise ZeroAddress("strategy fee recipient is not set")
        amount = self.chain.ledger.balance_of(self.token, self.address)
        if amount:
            self.chain.ledger.transfer(self.token, self.address, self.fee_recipient, amount)
        return amount


class FeeReceiverSplitter(Participant):
    """Second-stage splitter: divides its own balance of a token by weight."""

    _STATE_FIELDS = ("receivers",)

    def __init__(
        self,
        chain: Chain,
        receivers: Sequence[Tuple[Address, int]] = (),
        address: Address = "fee_receiver"
    ):
        self.chain = chain
        self.address = address
        self.receivers: List[Tuple[Address, int]] = []
        chain.register(self)
        if receivers:
            self.set_receivers(receivers)

    def set_receivers(self, receivers: Sequence[Tuple[Address, int]]) -> None:
        negative = [receiver for receiver, weight in receivers if weight < 0]
        if negative:
            raise InvalidConfiguration(f"negative receiver weights for {negative}", details={"receivers": negative})
        total = sum(weight for _, weight in receivers)
        if total > BPS_DENOMINATOR:
            raise InvalidConfiguration(f"receiver weights sum to {total}, above {BPS_DENOMINATOR}")
        self.receivers = list(receivers)

    def split(self, ctx: CallContext, token: str) -> int:
        balance = self.chain.ledger.balance_of(token, self.address)
        sent = 0
        for receiver, weight in self.receivers:
            share = balance * weight // BPS_DENOMINATOR
            if share:
                self.chain.ledger.transfer(token, self.address, receiver, share)
                sent += share
        return sent
