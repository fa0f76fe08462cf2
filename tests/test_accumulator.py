"""Unit tests for the reward accumulator.

These tests verify:
- Fees are charged per receiver in order on a snapshot of the balance
- Rounding dust is forwarded to the gauge with the remainder
- Strategy fees are realized before the split and the fee receiver runs after it
- Fee-bound and split validation reject bad settings without side effects
- A failing collaborator rolls the whole harvest back
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from velock.config.schema import Accumulator, Config, FeeReceiverEntry, FeeSplitEntry
from velock.engine.access import CallContext
from velock.engine.accumulator import DENOMINATOR, RewardAccumulator
from velock.engine.collaborators import FeeReceiverSplitter
from velock.engine.events import FeeCharged, Harvested, RewardNotified
from velock.engine.treasury import build_treasury
from velock.errors import (
    FeeTooHigh,
    InvalidConfiguration,
    InvalidSplit,
    Unauthorized,
    UpstreamFailure,
    ZeroAddress,
)

GOV = CallContext("governance")
HARVESTER = CallContext("harvester")
ALICE = CallContext("alice")

DAO_FEE = 6 * 10**17
LIQUIDITY_FEE = 3 * 10**17
CLAIMER_FEE = 10**16


def make_treasury(**accumulator):
    accumulator.setdefault("claimer_fee", CLAIMER_FEE)
    accumulator.setdefault("fee_split", [
        FeeSplitEntry(receiver="dao", fee=DAO_FEE),
        FeeSplitEntry(receiver="liquidity", fee=LIQUIDITY_FEE),
    ])
    return build_treasury(Config(accumulator=Accumulator(**accumulator)))


def balance(treasury, holder, token="crvUSD"):
    return treasury.chain.ledger.balance_of(token, holder)


class TestFeeSplit:
    """Tests for the local fee charge."""

    def test_split_on_round_amount(self):
        treasury = make_treasury()
        treasury.reward_source.accrue(treasury.locker.address, 1_000_000)

        report = treasury.accumulator.harvest(HARVESTER, notify_downstream=False, pull_strategy_fees=False)

        assert report.claimed == 1_000_000
        assert report.charges == [("dao", 600_000), ("liquidity", 300_000)]
        assert report.claimer == "harvester"
        assert report.claimer_fee == 10_000
        assert report.forwarded == 90_000
        assert balance(treasury, "dao") == 600_000
        assert balance(treasury, "liquidity") == 300_000
        assert balance(treasury, "harvester") == 10_000
        assert treasury.gauge.rewards_received["crvUSD"] == 90_000
        assert balance(treasury, treasury.accumulator.address) == 0

    def test_rounding_dust_is_forwarded(self):
        treasury = make_treasury()
        treasury.reward_source.accrue(treasury.locker.address, 1_001)

        report = treasury.accumulator.harvest(HARVESTER, notify_downstream=False, pull_strategy_fees=False)

        assert report.charges == [("dao", 600), ("liquidity", 300)]
        assert report.claimer_fee == 10
        assert report.forwarded == 91
        assert report.total_charged + report.forwarded == 1_001

    def test_fee_events_in_list_order(self):
        treasury = make_treasury()
        treasury.reward_source.accrue(treasury.locker.address, 1_000_000)
        treasury.accumulator.harvest(HARVESTER, notify_downstream=False, pull_strategy_fees=False)

        charged = [e.receiver for e in treasury.chain.events if isinstance(e, FeeCharged)]
        assert charged == ["dao", "liquidity", "harvester"]
        assert treasury.chain.events[-1] == Harvested(
            token="crvUSD",
            claimed=1_000_000,
            strategy_fees=0,
            charges=(("dao", 600_000), ("liquidity", 300_000)),
            claimer="harvester",
            claimer_fee=10_000,
            forwarded=90_000,
        )

    def test_other_token_is_not_charged(self):
        treasury = make_treasury()
        treasury.gauge.add_reward(GOV, "OTHER", treasury.accumulator.address)
        treasury.chain.ledger.mint("OTHER", treasury.accumulator.address, 5_000)

        report = treasury.accumulator.notify_reward(HARVESTER, "OTHER", False, False)

        assert report.charges == []
        assert report.claimer_fee == 0
        assert report.forwarded == 5_000
        assert treasury.gauge.rewards_received["OTHER"] == 5_000
        assert balance(treasury, "harvester", "OTHER") == 0

    def test_notify_all_covers_extra_tokens(self):
        treasury = make_treasury()
        treasury.gauge.add_reward(GOV, "OTHER", treasury.accumulator.address)
        treasury.accumulator.add_token(GOV, "OTHER")
        treasury.chain.ledger.mint("crvUSD", treasury.accumulator.address, 1_000)
        treasury.chain.ledger.mint("OTHER", treasury.accumulator.address, 700)

        reports = treasury.accumulator.notify_all(HARVESTER, notify_downstream=False, pull_strategy_fees=False)

        assert [r.token for r in reports] == ["crvUSD", "OTHER"]
        assert reports[0].forwarded == 90
        assert reports[1].forwarded == 700

    def test_nothing_to_forward_skips_gauge(self):
        treasury = make_treasury()

        report = treasury.accumulator.harvest(HARVESTER, notify_downstream=False, pull_strategy_fees=False)

        assert report.claimed == 0
        assert report.forwarded == 0
        assert "crvUSD" not in treasury.gauge.rewards_received
        assert not any(isinstance(e, RewardNotified) for e in treasury.chain.events)

    def test_full_charge_leaves_nothing(self):
        treasury = make_treasury(
            fee_split=[FeeSplitEntry(receiver="dao", fee=DENOMINATOR - CLAIMER_FEE)]
        )
        treasury.reward_source.accrue(treasury.locker.address, 1_000_000)

        report = treasury.accumulator.harvest(HARVESTER, notify_downstream=False, pull_strategy_fees=False)

        assert report.forwarded == 0
        assert balance(treasury, "dao") == 990_000
        assert balance(treasury, "harvester") == 10_000

    def test_without_gauge_rewards_stay(self):
        treasury = make_treasury()
        treasury.accumulator.set_gauge(GOV, None)
        treasury.reward_source.accrue(treasury.locker.address, 1_000_000)

        report = treasury.accumulator.harvest(HARVESTER, notify_downstream=True, pull_strategy_fees=False)

        assert report.forwarded == 0
        assert report.downstream_notified is False
        assert balance(treasury, treasury.accumulator.address) == 90_000


class TestHarvestOrdering:
    """Tests for strategy fees, the fee receiver and the downstream push."""

    def test_strategy_fees_join_the_split(self):
        treasury = make_treasury()
        treasury.reward_source.accrue(treasury.locker.address, 1_000_000)
        treasury.strategy.accrue_fees(50_000)

        report = treasury.accumulator.harvest(HARVESTER, notify_downstream=False, pull_strategy_fees=True)

        assert report.strategy_fees == 50_000
        assert balance(treasury, "dao") == 630_000
        assert report.forwarded == 94_500
        assert balance(treasury, treasury.strategy.address) == 0

    def test_strategy_fees_left_when_not_pulled(self):
        treasury = make_treasury()
        treasury.reward_source.accrue(treasury.locker.address, 1_000_000)
        treasury.strategy.accrue_fees(50_000)

        report = treasury.accumulator.harvest(HARVESTER, notify_downstream=False, pull_strategy_fees=False)

        assert report.strategy_fees == 0
        assert balance(treasury, "dao") == 600_000
        assert balance(treasury, treasury.strategy.address) == 50_000

    def test_fee_receiver_runs_after_local_charge(self):
        treasury = make_treasury(
            fee_split=[FeeSplitEntry(receiver="fee_receiver", fee=2 * 10**17)],
            fee_receiver_enabled=True,
            fee_receiver_split=[
                FeeReceiverEntry(receiver="treasury_a", weight=5_000),
                FeeReceiverEntry(receiver="treasury_b", weight=5_000),
            ],
        )
        treasury.reward_source.accrue(treasury.locker.address, 1_000_000)

        report = treasury.accumulator.harvest(HARVESTER, notify_downstream=False, pull_strategy_fees=True)

        assert report.fee_receiver_split is True
        assert balance(treasury, "treasury_a") == 100_000
        assert balance(treasury, "treasury_b") == 100_000
        assert report.forwarded == 790_000

    def test_fee_receiver_skipped_without_pull(self):
        treasury = make_treasury(
            fee_split=[FeeSplitEntry(receiver="fee_receiver", fee=2 * 10**17)],
            fee_receiver_enabled=True,
            fee_receiver_split=[FeeReceiverEntry(receiver="treasury_a", weight=10_000)],
        )
        treasury.reward_source.accrue(treasury.locker.address, 1_000_000)

        report = treasury.accumulator.harvest(HARVESTER, notify_downstream=False, pull_strategy_fees=False)

        assert report.fee_receiver_split is False
        assert balance(treasury, "fee_receiver") == 200_000
        assert balance(treasury, "treasury_a") == 0

    def test_collaborators_called_in_order(self, monkeypatch):
        """Strategy, then fee receiver (after the charge), then gauge, then the distributor."""
        treasury = make_treasury(
            fee_receiver_enabled=True,
            fee_receiver_split=[FeeReceiverEntry(receiver="treasury_a", weight=10_000)],
        )
        treasury.reward_source.accrue(treasury.locker.address, 1_000_000)
        treasury.strategy.accrue_fees(1_000)
        treasury.distributor.fund(5_000)
        calls = []

        def record(name, fn):
            def wrapper(*args, **kwargs):
                calls.append((name, balance(treasury, "dao")))
                return fn(*args, **kwargs)
            return wrapper

        monkeypatch.setattr(treasury.strategy, "claim_protocol_fees",
                            record("strategy", treasury.strategy.claim_protocol_fees))
        monkeypatch.setattr(treasury.fee_receiver, "split",
                            record("fee_receiver", treasury.fee_receiver.split))
        monkeypatch.setattr(treasury.gauge, "deposit_reward_token",
                            record("gauge", treasury.gauge.deposit_reward_token))
        monkeypatch.setattr(treasury.distributor, "distribute",
                            record("distributor", treasury.distributor.distribute))

        treasury.accumulator.harvest(HARVESTER, notify_downstream=True, pull_strategy_fees=True)

        names = [name for name, _ in calls]
        assert names[:4] == ["strategy", "fee_receiver", "gauge", "distributor"]
        assert calls[0][1] == 0
        assert calls[1][1] == 600_600

    def test_downstream_push(self):
        treasury = make_treasury()
        treasury.distributor.fund(5_000)

        report = treasury.accumulator.harvest(HARVESTER, notify_downstream=True, pull_strategy_fees=False)

        assert report.downstream_notified is True
        assert treasury.gauge.rewards_received["SDT"] == 5_000

    def test_no_downstream_push_unless_asked(self):
        treasury = make_treasury()
        treasury.distributor.fund(5_000)

        treasury.accumulator.harvest(HARVESTER, notify_downstream=False, pull_strategy_fees=False)

        assert "SDT" not in treasury.gauge.rewards_received
        assert balance(treasury, treasury.distributor.address, "SDT") == 5_000

    def test_failing_fee_receiver_rolls_back(self, monkeypatch):
        treasury = make_treasury(
            fee_receiver_enabled=True,
            fee_receiver_split=[FeeReceiverEntry(receiver="treasury_a", weight=10_000)],
        )
        treasury.reward_source.accrue(treasury.locker.address, 1_000_000)
        events = len(treasury.chain.events)

        def fail(ctx, token):
            raise UpstreamFailure("fee receiver unavailable")

        monkeypatch.setattr(treasury.fee_receiver, "split", fail)

        with pytest.raises(UpstreamFailure):
            treasury.accumulator.harvest(HARVESTER, notify_downstream=False, pull_strategy_fees=True)

        assert treasury.reward_source.claimable[treasury.locker.address] == 1_000_000
        assert balance(treasury, "dao") == 0
        assert balance(treasury, treasury.accumulator.address) == 0
        assert len(treasury.chain.events) == events


class TestAccumulatorConfiguration:
    """Tests for governance settings and their validation."""

    def test_mismatched_split_rejected(self):
        treasury = make_treasury()
        before = treasury.accumulator.fee_split

        with pytest.raises(InvalidSplit):
            treasury.accumulator.set_fee_split(GOV, ["dao", "other"], [10**17])
        with pytest.raises(InvalidSplit):
            treasury.accumulator.set_fee_split(GOV, [], [])

        assert treasury.accumulator.fee_split == before

    def test_unset_receiver_rejected(self):
        treasury = make_treasury()
        with pytest.raises(ZeroAddress):
            treasury.accumulator.set_fee_split(GOV, [""], [10**17])

    def test_split_above_bound_rejected(self):
        treasury = make_treasury()
        before = treasury.accumulator.fee_split

        with pytest.raises(FeeTooHigh):
            treasury.accumulator.set_fee_split(GOV, ["dao"], [DENOMINATOR - CLAIMER_FEE + 1])

        assert treasury.accumulator.fee_split == before
        treasury.accumulator.set_fee_split(GOV, ["dao"], [DENOMINATOR - CLAIMER_FEE])
        assert treasury.accumulator.fee_split.receivers == ("dao",)

    def test_claimer_fee_bound(self):
        treasury = make_treasury()

        with pytest.raises(FeeTooHigh):
            treasury.accumulator.set_claimer_fee(GOV, DENOMINATOR + 1)
        with pytest.raises(FeeTooHigh):
            treasury.accumulator.set_claimer_fee(GOV, 10**17 + 1)
        assert treasury.accumulator.claimer_fee == CLAIMER_FEE

        treasury.accumulator.set_claimer_fee(GOV, 10**17)
        assert treasury.accumulator.claimer_fee == 10**17

    def test_negative_claimer_fee_rejected(self):
        """A negative caller fee must not free up room for a split above 100%."""
        treasury = make_treasury()

        with pytest.raises(InvalidConfiguration) as exc_info:
            treasury.accumulator.set_claimer_fee(GOV, -5 * 10**17)
        assert exc_info.type is InvalidConfiguration
        assert treasury.accumulator.claimer_fee == CLAIMER_FEE

        with pytest.raises(FeeTooHigh):
            treasury.accumulator.set_fee_split(GOV, ["dao"], [14 * 10**17])
        assert treasury.accumulator.fee_split.fees == (DAO_FEE, LIQUIDITY_FEE)

    def test_negative_split_rate_rejected(self):
        treasury = make_treasury()
        before = treasury.accumulator.fee_split

        with pytest.raises(InvalidConfiguration) as exc_info:
            treasury.accumulator.set_fee_split(GOV, ["a", "b"], [-1, 5 * 10**17])
        assert exc_info.type is InvalidConfiguration
        assert treasury.accumulator.fee_split == before

        treasury.reward_source.accrue(treasury.locker.address, 1_000_000)
        report = treasury.accumulator.harvest(HARVESTER, notify_downstream=False, pull_strategy_fees=False)
        assert report.forwarded == 90_000

    def test_negative_claimer_fee_rejected_at_construction(self):
        treasury = make_treasury()
        with pytest.raises(InvalidConfiguration):
            RewardAccumulator(
                treasury.chain, treasury.locker, treasury.reward_source, "crvUSD",
                governance="governance", claimer_fee=-1, address="accumulator_2",
            )

    def test_negative_receiver_weight_rejected(self):
        treasury = make_treasury(
            fee_receiver_enabled=True,
            fee_receiver_split=[FeeReceiverEntry(receiver="treasury_a", weight=10_000)],
        )

        with pytest.raises(InvalidConfiguration):
            treasury.fee_receiver.set_receivers([("treasury_a", -1), ("treasury_b", 5_000)])
        assert treasury.fee_receiver.receivers == [("treasury_a", 10_000)]

        with pytest.raises(InvalidConfiguration):
            FeeReceiverSplitter(treasury.chain, [("treasury_a", -10_000)], address="fee_receiver_2")

    def test_setters_are_governance_only(self):
        treasury = make_treasury()
        with pytest.raises(Unauthorized):
            treasury.accumulator.set_fee_split(ALICE, ["alice"], [10**17])
        with pytest.raises(Unauthorized):
            treasury.accumulator.set_claimer_fee(ALICE, 0)
        with pytest.raises(Unauthorized):
            treasury.accumulator.set_gauge(ALICE, None)
        assert treasury.accumulator.gauge is treasury.gauge

    def test_governance_handover(self):
        treasury = make_treasury()
        treasury.accumulator.transfer_governance(GOV, "new_gov")
        assert treasury.accumulator.future_governance == "new_gov"
        assert treasury.accumulator.governance == "governance"

        with pytest.raises(Unauthorized):
            treasury.accumulator.accept_governance(ALICE)

        treasury.accumulator.accept_governance(CallContext("new_gov"))
        assert treasury.accumulator.governance == "new_gov"
        assert treasury.accumulator.future_governance is None
        treasury.accumulator.set_claimer_fee(CallContext("new_gov"), 0)
        assert treasury.accumulator.claimer_fee == 0
