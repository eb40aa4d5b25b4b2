"""Persistence for market snapshots and simulation results."""

from .storage import DecimalEncoder, SnapshotStorage

__all__ = ["DecimalEncoder", "SnapshotStorage"]
