"""Scenario simulation."""

from .runner import SimulationResult, SimulationRunner

__all__ = [
    "SimulationResult",
    "SimulationRunner"
]
