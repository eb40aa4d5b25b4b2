"""Sandbox for scripted vault scenarios."""

from .engine import VaultSimulator
from .models import ActionType, SimulationMetrics, SimulationPoint, SimulationResult, SimulationStep
from .persistence import SnapshotStorage
from .report import render_result, render_snapshot

__all__ = [
    "VaultSimulator",
    "ActionType",
    "SimulationMetrics",
    "SimulationPoint",
    "SimulationResult",
    "SimulationStep",
    "SnapshotStorage",
    "render_result",
    "render_snapshot",
]
