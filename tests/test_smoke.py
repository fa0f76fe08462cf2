"""Smoke tests for core velock modules.

These tests verify basic functionality without deep validation.
Run these first to catch obvious breakage.
"""

import json
import logging
import pytest
import sys
import os

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from pydantic import ValidationError
from typer.testing import CliRunner

from velock.cli import app
from velock.config.loader import config_from_dict, load_config
from velock.config.schema import Config
from velock.engine.treasury import build_treasury
from velock.errors import InvalidConfiguration
from velock.logging_config import JsonFormatter
from velock.reporting.charts import create_harvest_split_chart, create_lock_chart, create_pending_pool_chart
from velock.reporting.export import export_csv, export_json, snapshots_frame
from velock.simulation.runner import SimulationResult, SimulationRunner
from velock.validation.sanity_checks import SanityChecker, validate_simulation_results


def short_config(epochs: int = 8) -> Config:
    return load_config(overrides={"simulation": {"epochs": epochs}})


class TestConfigLoading:
    """Smoke tests for configuration loading."""

    def test_load_default_config(self):
        """Config loads without errors."""
        config = load_config()
        assert config is not None
        assert isinstance(config, Config)

    def test_config_has_required_sections(self):
        """Config contains all expected sections."""
        config = load_config()
        assert hasattr(config, 'tokens')
        assert hasattr(config, 'escrow')
        assert hasattr(config, 'depositor')
        assert hasattr(config, 'accumulator')
        assert hasattr(config, 'governance')
        assert hasattr(config, 'simulation')
        assert hasattr(config, 'logging')

    def test_defaults_file_values(self):
        config = load_config()
        assert config.depositor.lock_incentive_percent == 10
        assert [e.receiver for e in config.accumulator.fee_split] == ['dao', 'liquidity_fee']
        assert config.accumulator.claimer_fee == 10**16

    def test_config_hash_is_deterministic(self):
        """Same config produces same hash."""
        config1 = load_config()
        config2 = load_config()
        assert config1.compute_hash() == config2.compute_hash()

    def test_config_hash_tracks_changes(self):
        config1 = load_config()
        config2 = load_config()
        config2.simulation.random_seed += 1
        assert config1.compute_hash() != config2.compute_hash()

    def test_fee_total_above_one_rejected(self):
        data = load_config().to_dict()
        data['accumulator']['fee_split'] = [{'receiver': 'dao', 'fee': 10**18}]
        with pytest.raises(ValidationError):
            config_from_dict(data)

    def test_incentive_above_band_rejected(self):
        with pytest.raises(ValidationError):
            config_from_dict({'depositor': {'lock_incentive_percent': 31}})

    def test_escrow_window_rejected(self):
        with pytest.raises(ValidationError):
            config_from_dict({'escrow': {'week_seconds': 100, 'max_lock_seconds': 99}})

    def test_empty_yaml_uses_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")
        assert load_config(str(path)).compute_hash() == Config().compute_hash()

    def test_load_accepts_path_objects(self, tmp_path):
        path = tmp_path / "scenario.yaml"
        path.write_text("simulation:\n  epochs: 3\n")
        config = load_config(path)
        assert config.simulation.epochs == 3
        assert config.simulation.random_seed == Config().simulation.random_seed

    def test_partial_sections_merge_onto_base(self):
        base = load_config()
        config = config_from_dict({'simulation': {'epochs': 3}}, base=base)
        assert config.simulation.epochs == 3
        assert config.simulation.sweep_threshold == base.simulation.sweep_threshold
        assert [e.receiver for e in config.accumulator.fee_split] == ['dao', 'liquidity_fee']
        assert base.simulation.epochs == 52

    def test_merged_lists_are_replaced(self):
        base = load_config()
        config = config_from_dict(
            {'accumulator': {'fee_split': [{'receiver': 'dao', 'fee': 10**17}]}}, base=base
        )
        assert [e.receiver for e in config.accumulator.fee_split] == ['dao']
        assert config.accumulator.claimer_fee == base.accumulator.claimer_fee

    def test_overrides_are_validated(self):
        with pytest.raises(ValidationError):
            load_config(overrides={'depositor': {'lock_incentive_percent': 31}})

    def test_non_mapping_file_rejected(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- 1\n- 2\n")
        with pytest.raises(InvalidConfiguration):
            load_config(path)


class TestTreasuryWiring:
    """Smoke tests for the built treasury."""

    def test_roles_assigned(self):
        treasury = build_treasury(load_config())
        assert treasury.locker.depositor == treasury.router.address
        assert treasury.locker.accumulator == treasury.accumulator.address
        assert treasury.minter.operator == treasury.router.address
        assert treasury.gauge.reward_distributors['crvUSD'] == treasury.accumulator.address
        assert treasury.gauge.reward_distributors['SDT'] == treasury.distributor.address
        assert treasury.strategy.fee_recipient == treasury.accumulator.address
        assert treasury.fee_receiver is None

    def test_fresh_treasury_is_clean(self):
        treasury = build_treasury(load_config())
        assert SanityChecker(treasury).check_state() == []
        snapshot = treasury.snapshot()
        assert snapshot.lock_state == 'unset'
        assert snapshot.receipt_supply == 0


class TestSimulation:
    """Smoke tests for the scenario runner."""

    def test_short_run(self):
        result = SimulationRunner(short_config()).run()
        assert isinstance(result, SimulationResult)
        assert len(result.snapshots) == 9
        assert len(result.metrics_over_time) == 8
        assert len(result.harvests) == 8
        assert not any(w.severity == 'error' for w in result.warnings)

    def test_lock_grows_and_pool_matches_receipts(self):
        runner = SimulationRunner(short_config())
        result = runner.run()
        final = result.snapshots[-1]
        assert final.locked_amount >= result.snapshots[0].locked_amount
        assert final.receipt_supply == runner.treasury.router.total_minted
        assert validate_simulation_results(result, runner.treasury) == []

    def test_same_seed_same_result(self):
        first = SimulationRunner(short_config(4)).run()
        second = SimulationRunner(short_config(4)).run()
        assert first.final_metrics == second.final_metrics

    def test_forwarded_share(self):
        result = SimulationRunner(short_config()).run()
        # 10% + 5% + 1% charged on every harvest
        assert result.final_metrics['forwarded_share'] == pytest.approx(0.84, abs=1e-6)


class TestReporting:
    """Smoke tests for export and charts."""

    def test_export_csv_and_json(self, tmp_path):
        result = SimulationRunner(short_config(3)).run()
        csv_path = tmp_path / "run.csv"
        json_path = tmp_path / "run.json"

        export_csv(result, str(csv_path))
        export_json(result, str(json_path))

        frame = snapshots_frame(result)
        assert len(frame) == 4
        assert 'locked' in frame.columns
        assert csv_path.read_text().startswith('t,')
        payload = json.loads(json_path.read_text())
        assert payload['config_hash'] == result.config.compute_hash()
        assert len(payload['harvests']) == 3

    def test_charts_build(self):
        result = SimulationRunner(short_config(3)).run()
        decimals = result.config.tokens.decimals
        assert create_lock_chart(result.snapshots, decimals).data
        assert create_pending_pool_chart(result.snapshots, decimals).data
        assert create_harvest_split_chart(result.harvests, decimals).data


class TestCli:
    """Smoke tests for the command line."""

    def test_check_config(self, tmp_path):
        path = tmp_path / "scenario.yaml"
        path.write_text("simulation:\n  epochs: 4\n")
        result = CliRunner().invoke(app, ["check-config", str(path)])
        assert result.exit_code == 0
        assert result.stdout.startswith("ok ")

    def test_check_config_rejects_bad_file(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("depositor:\n  lock_incentive_percent: 99\n")
        result = CliRunner().invoke(app, ["check-config", str(path)])
        assert result.exit_code == 2


class TestLogging:
    def test_json_formatter(self):
        record = logging.LogRecord("velock.engine", logging.INFO, __file__, 1, "swept %d", (5,), None)
        payload = json.loads(JsonFormatter().format(record))
        assert payload['message'] == "swept 5"
        assert payload['level'] == "INFO"
        assert payload['logger'] == "velock.engine"
