"""Uptime monitor record: down/up transitions and the alarm lifecycle."""

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


def _now() -> datetime:
    return datetime.now(timezone.utc)


def ensure_url(target: str) -> str:
    """Bare host names are probed over HTTPS."""
    target = (target or "").strip()
    if not target:
        return ""
    if target.startswith(("http://", "https://")):
        return target
    return f"https://{target}"


@dataclass
class UptimeMonitorRecord:
    """One monitored HTTP(S) endpoint."""

    url: str
    name: str = ""
    monitor_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])

    is_down: bool = False
    down_since: Optional[datetime] = None
    last_checked_at: Optional[datetime] = None
    last_status_code: Optional[int] = None
    last_response_time_ms: Optional[int] = None
    last_error: Optional[str] = None
    last_snapshot_path: Optional[str] = None
    check_count: int = 0

    alarm_active: bool = False
    acknowledged: bool = False
    acknowledged_at: Optional[datetime] = None
    acknowledged_by: Optional[str] = None

    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    @property
    def alarm_pending(self) -> bool:
        return self.alarm_active and not self.acknowledged

    def apply_probe(
        self,
        ok: bool,
        status_code: int = None,
        response_time_ms: int = None,
        error: str = None,
        snapshot_path: str = None,
        now: datetime = None,
    ) -> None:
        """Record one probe.

        ``down_since`` is only set on an up -> down transition and is never
        cleared on recovery. The alarm raised by a new outage stays active
        through recovery until acknowledged.
        """
        now = now or _now()
        was_down = self.is_down
        if not ok:
            if not was_down:
                self.down_since = now
                self.alarm_active = True
                self.acknowledged = False
                self.acknowledged_at = None
                self.acknowledged_by = None
            elif not self.acknowledged:
                self.alarm_active = True

        self.is_down = not ok
        self.last_checked_at = now
        self.last_status_code = status_code
        self.last_response_time_ms = response_time_ms
        self.last_error = error
        if snapshot_path:
            self.last_snapshot_path = snapshot_path
        self.check_count += 1
        self.updated_at = now

    def acknowledge(self, actor: str, now: datetime = None) -> None:
        now = now or _now()
        self.alarm_active = False
        self.acknowledged = True
        self.acknowledged_at = now
        self.acknowledged_by = actor
        self.updated_at = now

    def to_dict(self) -> dict:
        def fmt_dt(dt):
            return dt.isoformat() if dt else None

        return {
            "monitor_id": self.monitor_id,
            "url": self.url,
            "name": self.name,
            "is_down": self.is_down,
            "down_since": fmt_dt(self.down_since),
            "last_checked_at": fmt_dt(self.last_checked_at),
            "last_status_code": self.last_status_code,
            "last_response_time_ms": self.last_response_time_ms,
            "last_error": self.last_error,
            "last_snapshot_path": self.last_snapshot_path,
            "check_count": self.check_count,
            "alarm_active": self.alarm_active,
            "acknowledged": self.acknowledged,
            "acknowledged_at": fmt_dt(self.acknowledged_at),
            "acknowledged_by": self.acknowledged_by,
            "created_at": fmt_dt(self.created_at),
            "updated_at": fmt_dt(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "UptimeMonitorRecord":
        def parse_dt(val):
            if not val:
                return None
            return datetime.fromisoformat(val)

        return cls(
            monitor_id=data.get("monitor_id") or uuid.uuid4().hex[:12],
            url=data["url"],
            name=data.get("name", ""),
            is_down=data.get("is_down", False),
            down_since=parse_dt(data.get("down_since")),
            last_checked_at=parse_dt(data.get("last_checked_at")),
            last_status_code=data.get("last_status_code"),
            last_response_time_ms=data.get("last_response_time_ms"),
            last_error=data.get("last_error"),
            last_snapshot_path=data.get("last_snapshot_path"),
            check_count=data.get("check_count", 0),
            alarm_active=data.get("alarm_active", False),
            acknowledged=data.get("acknowledged", False),
            acknowledged_at=parse_dt(data.get("acknowledged_at")),
            acknowledged_by=data.get("acknowledged_by"),
            created_at=parse_dt(data.get("created_at")) or _now(),
            updated_at=parse_dt(data.get("updated_at")) or _now(),
        )
