"""Best-effort history of completed scale operations."""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from .client import ConvexClient

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 100


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="seconds")


@dataclass(frozen=True)
class HistoryRecord:
    """Summary of one successful single-document scale."""

    filename: str
    source_width: float
    target_width: float
    scale: float
    original_size: int
    output_size: int
    created_at: str = field(default_factory=_utc_now)

    def to_payload(self) -> Dict[str, Any]:
        """Return the record with the field names used by the Convex backend."""
        return {
            "originalFilename": self.filename,
            "sourceWidth": round(self.source_width),
            "targetWidth": round(self.target_width),
            "scale": round(self.scale, 4),
            "originalSize": self.original_size,
            "scaledSize": self.output_size,
            "createdAt": self.created_at,
        }

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "HistoryRecord":
        """Build a record from a Convex row or a JSON-lines entry."""
        if "originalFilename" in payload:
            return cls(
                filename=payload["originalFilename"],
                source_width=float(payload["sourceWidth"]),
                target_width=float(payload["targetWidth"]),
                scale=float(payload["scale"]),
                original_size=int(payload["originalSize"]),
                output_size=int(payload["scaledSize"]),
                created_at=str(payload.get("createdAt") or payload.get("_creationTime") or ""),
            )
        return cls(
            filename=payload["filename"],
            source_width=float(payload["source_width"]),
            target_width=float(payload["target_width"]),
            scale=float(payload["scale"]),
            original_size=int(payload["original_size"]),
            output_size=int(payload["output_size"]),
            created_at=str(payload.get("created_at", "")),
        )


class HistoryStore(Protocol):
    """Append-only storage for history records."""

    def append(self, record: HistoryRecord) -> None:
        ...

    def recent(self, limit: int = DEFAULT_HISTORY_LIMIT) -> List[HistoryRecord]:
        ...


class ConvexHistoryStore:
    """History kept in the Convex deployment the worker reports to."""

    def __init__(
        self,
        client: ConvexClient,
        worker_token: Optional[str] = None,
        lock: Optional[threading.Lock] = None,
    ) -> None:
        """Share ``lock`` with any other user of ``client`` on other threads."""
        self.client = client
        self.worker_token = worker_token
        self._lock = lock or threading.Lock()

    def _args(self, args: Dict[str, Any]) -> Dict[str, Any]:
        if self.worker_token:
            args["workerToken"] = self.worker_token
        return args

    def append(self, record: HistoryRecord) -> None:
        """Store one record with the ``history:record`` mutation."""
        with self._lock:
            self.client.mutation("history:record", self._args(record.to_payload()))

    def recent(self, limit: int = DEFAULT_HISTORY_LIMIT) -> List[HistoryRecord]:
        """Return up to ``limit`` records, newest first."""
        with self._lock:
            rows = self.client.query("history:list", self._args({"limit": limit})) or []
        return [HistoryRecord.from_payload(row) for row in rows]


class JsonlHistoryStore:
    """History kept as one JSON object per line in a local file."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._lock = threading.Lock()

    def append(self, record: HistoryRecord) -> None:
        line = json.dumps(asdict(record), ensure_ascii=False, sort_keys=True)
        with self._lock:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")

    def recent(self, limit: int = DEFAULT_HISTORY_LIMIT) -> List[HistoryRecord]:
        """Return up to ``limit`` records, newest first; unreadable lines are skipped."""
        if not self.path.exists():
            return []
        records: List[HistoryRecord] = []
        with self.path.open("r", encoding="utf-8") as handle:
            for number, line in enumerate(handle, start=1):
                if not line.strip():
                    continue
                try:
                    records.append(HistoryRecord.from_payload(json.loads(line)))
                except (ValueError, KeyError, TypeError) as error:
                    logger.warning("Skipping history line %d in %s: %s", number, self.path, error)
        records.reverse()
        return records[: max(limit, 0)]


def record_history(store: Optional[HistoryStore], record: HistoryRecord) -> bool:
    """Append ``record`` to ``store`` without ever raising; returns True on success."""
    if store is None:
        return False
    try:
        store.append(record)
    except Exception as error:  # noqa: BLE001
        logger.warning("Failed to save history for %s (ignored): %s", record.filename, error)
        return False
    return True
