"""Sandbox data models."""

from .simulation import (
    ActionType,
    SimulationMetrics,
    SimulationPoint,
    SimulationResult,
    SimulationStep,
)

__all__ = [
    "ActionType",
    "SimulationMetrics",
    "SimulationPoint",
    "SimulationResult",
    "SimulationStep",
]
