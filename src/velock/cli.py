"""
velock command line.

Examples
--------
# Run the default scenario and print the final metrics
velock simulate

# Custom config, shorter horizon, export results
velock simulate --config scenario.yaml --epochs 12 --csv run.csv --json run.json

# Validate a config file without running it
velock check-config scenario.yaml
"""

import json
from pathlib import Path
from typing import Optional

import typer
from pydantic import ValidationError

from .config.loader import load_config
from .errors import InvalidConfiguration
from .logging_config import configure_logging
from .reporting.export import export_csv, export_json
from .simulation.runner import SimulationRunner

app = typer.Typer(
    name="velock",
    add_completion=False,
    no_args_is_help=True,
    help="Simulate a liquid locker treasury: deposits, sweeps and reward harvests.",
)


@app.command()
def simulate(
    config: Optional[Path] = typer.Option(None, "--config", "-c", help="YAML config (defaults to the bundled scenario)"),
    epochs: Optional[int] = typer.Option(None, "--epochs", help="Override simulation.epochs"),
    seed: Optional[int] = typer.Option(None, "--seed", help="Override simulation.random_seed"),
    csv: Optional[Path] = typer.Option(None, "--csv", help="Write per-epoch snapshots to CSV"),
    json_out: Optional[Path] = typer.Option(None, "--json", help="Write the full result to JSON"),
) -> None:
    """Run one scenario and print its final metrics."""
    overrides = {}
    if epochs is not None:
        overrides["epochs"] = epochs
    if seed is not None:
        overrides["random_seed"] = seed
    cfg = load_config(config, overrides={"simulation": overrides} if overrides else None)
    configure_logging(cfg.logging.format, cfg.logging.level)

    result = SimulationRunner(cfg).run()
    if csv:
        export_csv(result, str(csv))
    if json_out:
        export_json(result, str(json_out))

    typer.echo(json.dumps(result.final_metrics, indent=2))
    for warning in result.warnings:
        typer.echo(f"[{warning.severity}] {warning.category}: {warning.message}", err=True)
    if any(w.severity == "error" for w in result.warnings):
        raise typer.Exit(code=1)


@app.command("check-config")
def check_config(path: Path = typer.Argument(..., exists=True, dir_okay=False, help="YAML config file")) -> None:
    """Validate a config file and print its hash."""
    try:
        cfg = load_config(path)
    except (ValidationError, InvalidConfiguration) as exc:
        typer.echo(str(exc), err=True)
        raise typer.Exit(code=2)
    typer.echo(f"ok {cfg.compute_hash()}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
