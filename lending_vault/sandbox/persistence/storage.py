"""Market snapshot and simulation result storage."""

import json
import logging
import re
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Any, Dict, List, Optional

from config.settings import Settings, get_settings
from lending_vault.core.models import MarketSnapshot
from lending_vault.sandbox.models import SimulationResult

logger = logging.getLogger(__name__)


class DecimalEncoder(json.JSONEncoder):
    """Encodes Decimal amounts and datetimes as strings."""

    def default(self, obj):
        if isinstance(obj, (Decimal, datetime)):
            return obj.isoformat() if isinstance(obj, datetime) else str(obj)
        return super().default(obj)


def _write_json(path: Path, data: Dict[str, Any]) -> None:
    path.write_text(json.dumps(data, cls=DecimalEncoder, indent=2))


def _read_json(path: Path) -> Optional[Dict[str, Any]]:
    if not path.exists():
        return None
    return json.loads(path.read_text())


class SnapshotStorage:
    """
    JSON file store for market snapshots and simulation results.

    Layout:
        storage_dir/
            snapshots/{market}/{timestamp}.json
            results/{name}_{saved_at}.json

    Integer amounts are stored as strings so WAD values survive JSON.
    """

    def __init__(self, storage_dir: Optional[Path] = None, settings: Optional[Settings] = None):
        """
        Args:
            storage_dir: Base directory (default: ``settings.storage_dir``)
            settings: Settings used when no directory is given
        """
        if storage_dir is None:
            storage_dir = (settings or get_settings()).ensure_storage_dir()

        self.storage_dir = Path(storage_dir)
        self.snapshots_dir = self.storage_dir / "snapshots"
        self.results_dir = self.storage_dir / "results"
        for directory in (self.snapshots_dir, self.results_dir):
            directory.mkdir(parents=True, exist_ok=True)

    @staticmethod
    def _safe_name(name: str) -> str:
        safe = re.sub(r"[^a-zA-Z0-9]+", "_", name).strip("_").lower()
        return safe or "market"

    def _snapshot_path(self, market: str, snapshot_id: str) -> Path:
        return self.snapshots_dir / self._safe_name(market) / f"{snapshot_id}.json"

    # Snapshots

    def save_snapshot(self, snapshot: MarketSnapshot) -> str:
        """
        Store a snapshot and return its id.

        The id is the snapshot timestamp; later snapshots of the same market
        and second get a "_1", "_2", ... suffix.
        """
        snapshot_id = str(snapshot.timestamp)
        path = self._snapshot_path(snapshot.market, snapshot_id)
        suffix = 0
        while path.exists():
            suffix += 1
            snapshot_id = f"{snapshot.timestamp}_{suffix}"
            path = self._snapshot_path(snapshot.market, snapshot_id)
        path.parent.mkdir(parents=True, exist_ok=True)

        data = snapshot.to_dict()
        data["_saved_at"] = datetime.now(timezone.utc)
        _write_json(path, data)

        logger.info(f"Saved snapshot {snapshot.market}/{snapshot_id}")
        return snapshot_id

    def load_snapshot(self, market: str, snapshot_id: str) -> Optional[MarketSnapshot]:
        data = _read_json(self._snapshot_path(market, snapshot_id))
        if data is None:
            logger.warning(f"No snapshot {market}/{snapshot_id}")
            return None
        data.pop("_saved_at", None)
        return MarketSnapshot.from_dict(data)

    def list_snapshots(self, market: str) -> List[Dict[str, Any]]:
        """
        Summaries of a market's snapshots, newest first.

        Each summary holds the id, timestamp, total debt value, surplus and
        save time.
        """
        market_dir = self.snapshots_dir / self._safe_name(market)
        if not market_dir.exists():
            return []

        summaries = []
        for path in market_dir.glob("*.json"):
            data = _read_json(path) or {}
            summaries.append({
                "id": path.stem,
                "timestamp": data.get("timestamp"),
                "total_debt_value": data.get("total_debt_value"),
                "surplus": data.get("surplus"),
                "saved_at": data.get("_saved_at"),
            })

        return sorted(
            summaries,
            key=lambda s: (s.get("timestamp") or 0, int(s["id"].partition("_")[2] or 0)),
            reverse=True,
        )

    def get_latest_snapshot(self, market: str) -> Optional[MarketSnapshot]:
        summaries = self.list_snapshots(market)
        return self.load_snapshot(market, summaries[0]["id"]) if summaries else None

    def delete_snapshot(self, market: str, snapshot_id: str) -> bool:
        """Remove a snapshot; False if there was none."""
        path = self._snapshot_path(market, snapshot_id)
        if not path.exists():
            return False
        path.unlink()
        logger.info(f"Deleted snapshot {market}/{snapshot_id}")
        return True

    # Simulation results

    def save_result(self, result: SimulationResult) -> str:
        """Store a simulation result and return its id."""
        stamp = datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_%f")
        result_id = f"{self._safe_name(result.name)}_{stamp}"

        data = result.to_dict()
        data["_id"] = result_id
        _write_json(self.results_dir / f"{result_id}.json", data)

        logger.info(f"Saved simulation result {result_id}")
        return result_id

    def load_result_data(self, result_id: str) -> Optional[Dict[str, Any]]:
        """Raw data of a saved result, or None."""
        data = _read_json(self.results_dir / f"{result_id}.json")
        if data is None:
            logger.warning(f"No simulation result {result_id}")
        return data
