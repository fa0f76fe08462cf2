"""Export functionality for CSV and JSON."""

import json
from dataclasses import asdict

import pandas as pd

from ..simulation.runner import SimulationResult


def snapshots_frame(result: SimulationResult) -> pd.DataFrame:
    """Flatten snapshots and per-epoch metrics into one DataFrame."""
    decimals = 10 ** result.config.tokens.decimals
    data = []
    for snapshot in result.snapshots:
        data.append({
            't': snapshot.t,
            'lock_state': snapshot.lock_state,
            'locked': snapshot.locked_amount / decimals,
            'unlock_time': snapshot.unlock_time,
            'pending_principal': snapshot.pending_principal / decimals,
            'pending_incentive': snapshot.pending_incentive / decimals,
            'receipt_supply': snapshot.receipt_supply / decimals,
            'gauge_staked': snapshot.gauge_staked / decimals,
        })

    # Snapshot 0 is the state before the first epoch
    for i, metrics in enumerate(result.metrics_over_time, start=1):
        if i < len(data):
            data[i].update({k: v for k, v in metrics.items() if k not in data[i]})

    return pd.DataFrame(data)


def export_csv(result: SimulationResult, filepath: str):
    """Export simulation results to CSV."""
    snapshots_frame(result).to_csv(filepath, index=False)


def export_json(result: SimulationResult, filepath: str):
    """Export simulation results to JSON."""
    export_data = {
        'config': result.config.to_dict(),
        'config_hash': result.config.compute_hash(),
        'snapshots': [asdict(snapshot) for snapshot in result.snapshots],
        'harvests': [
            {**asdict(report), 'total_charged': report.total_charged}
            for report in result.harvests
        ],
        'metrics_over_time': result.metrics_over_time,
        'final_metrics': result.final_metrics,
        'warnings': [asdict(w) for w in result.warnings],
    }

    with open(filepath, 'w') as f:
        json.dump(export_data, f, indent=2, default=str)
