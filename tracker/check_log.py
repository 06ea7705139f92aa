"""Check history: an append-only log of every certificate check and uptime probe."""

import csv
import io
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Optional

from tracker.json_store import JsonListStore


class CheckKind(str, Enum):
    CERTIFICATE = "certificate"
    UPTIME = "uptime"


@dataclass(frozen=True)
class CheckEvent:
    kind: CheckKind
    target: str
    ok: bool
    status_code: Optional[int] = None
    response_time_ms: Optional[int] = None
    error: Optional[str] = None
    detail: str = ""
    snapshot_path: Optional[str] = None
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    event_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    def to_dict(self) -> dict:
        return {
            "event_id": self.event_id,
            "kind": self.kind.value,
            "target": self.target,
            "timestamp": self.timestamp.isoformat(),
            "ok": self.ok,
            "status_code": self.status_code,
            "response_time_ms": self.response_time_ms,
            "error": self.error,
            "detail": self.detail,
            "snapshot_path": self.snapshot_path,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CheckEvent":
        return cls(
            event_id=data.get("event_id", ""),
            kind=CheckKind(data["kind"]),
            target=data.get("target", ""),
            timestamp=datetime.fromisoformat(data["timestamp"]),
            ok=bool(data.get("ok")),
            status_code=data.get("status_code"),
            response_time_ms=data.get("response_time_ms"),
            error=data.get("error"),
            detail=data.get("detail", ""),
            snapshot_path=data.get("snapshot_path"),
        )


MAX_EVENTS = 50000

CSV_FIELDS = [
    "timestamp", "kind", "target", "ok", "status_code",
    "response_time_ms", "error", "detail", "snapshot_path", "event_id",
]


class CheckLog:
    """JSON-file-backed check history, newest first."""

    def __init__(self, path: str | Path, max_events: int = MAX_EVENTS):
        self._store = JsonListStore(path)
        self.max_events = max_events

    def append(self, event: CheckEvent) -> CheckEvent:
        """Record an event; the oldest events beyond the cap are dropped.

        Raises:
            PersistenceFailure: if the log cannot be written.
        """
        def prepend(data):
            data.insert(0, event.to_dict())
            return data[:self.max_events]

        self._store.update(prepend)
        return event

    def query(
        self,
        start: datetime = None,
        end: datetime = None,
        target: str = None,
        kind: CheckKind = None,
        limit: int = None,
    ) -> list[CheckEvent]:
        """Events with ``start <= timestamp <= end``, newest first."""
        if isinstance(kind, str):
            kind = CheckKind(kind)
        events = []
        for item in self._store.load():
            try:
                event = CheckEvent.from_dict(item)
            except (KeyError, ValueError):
                continue
            if start and event.timestamp < start:
                continue
            if end and event.timestamp > end:
                continue
            if target and event.target.lower() != target.lower():
                continue
            if kind and event.kind != kind:
                continue
            events.append(event)
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit] if limit else events

    def uptime_percentage(
        self, target: str, start: datetime = None, end: datetime = None,
        kind: CheckKind = CheckKind.UPTIME,
    ) -> Optional[float]:
        """Share of ok events in the window, or None when there are none."""
        events = self.query(start=start, end=end, target=target, kind=kind)
        if not events:
            return None
        ok = sum(1 for e in events if e.ok)
        return round(ok / len(events) * 100, 2)

    def export_csv(
        self,
        start: datetime = None,
        end: datetime = None,
        target: str = None,
        kind: CheckKind = None,
    ) -> str:
        """CSV text of the matching events, oldest first."""
        output = io.StringIO()
        writer = csv.DictWriter(output, fieldnames=CSV_FIELDS)
        writer.writeheader()
        for event in reversed(self.query(start=start, end=end, target=target, kind=kind)):
            row = event.to_dict()
            writer.writerow({name: "" if row[name] is None else row[name] for name in CSV_FIELDS})
        return output.getvalue()
