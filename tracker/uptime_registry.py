"""Uptime monitor registry, keyed by URL."""

import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from sslcert.errors import RecordNotFound
from tracker.json_store import JsonListStore
from tracker.uptime import UptimeMonitorRecord, ensure_url

logger = logging.getLogger(__name__)


class UptimeRegistry:
    """Monitored endpoints; lookups accept either the URL or the monitor id.

    Shared by the monitor pass and API request threads, so every access
    to the monitor map holds ``_lock``.
    """

    def __init__(self, storage_path: str | Path):
        self._store = JsonListStore(storage_path)
        self._lock = threading.RLock()
        self._monitors: dict[str, UptimeMonitorRecord] = {}
        self._load()

    def get(self, ref: str) -> Optional[UptimeMonitorRecord]:
        url = ensure_url(ref)
        with self._lock:
            if url in self._monitors:
                return self._monitors[url]
            for monitor in self._monitors.values():
                if monitor.monitor_id == ref:
                    return monitor
        return None

    def require(self, ref: str) -> UptimeMonitorRecord:
        monitor = self.get(ref)
        if monitor is None:
            raise RecordNotFound(f"no uptime monitor for {ref}", ref)
        return monitor

    def list_all(self) -> list[UptimeMonitorRecord]:
        """Monitors in the order they were added."""
        with self._lock:
            return sorted(self._monitors.values(), key=lambda m: m.created_at)

    def __len__(self) -> int:
        return len(self._monitors)

    def add(self, target: str, name: str = "") -> UptimeMonitorRecord:
        """Register ``target``; returns the existing monitor if already registered."""
        url = ensure_url(target)
        if not url:
            raise ValueError("url must not be empty")
        with self._lock:
            monitor = self._monitors.get(url)
            if monitor is None:
                monitor = UptimeMonitorRecord(url=url, name=name or url)
                self._monitors[url] = monitor
                logger.info("Monitoring uptime of %s", url)
            elif name:
                monitor.name = name
                monitor.updated_at = datetime.now(timezone.utc)
            self._save()
        return monitor

    def remove(self, ref: str) -> bool:
        with self._lock:
            monitor = self.get(ref)
            if monitor is None:
                return False
            del self._monitors[monitor.url]
            self._save()
        return True

    def acknowledge(self, ref: str, actor: str, now: datetime = None) -> UptimeMonitorRecord:
        with self._lock:
            monitor = self.require(ref)
            monitor.acknowledge(actor, now=now)
            self._save()
        return monitor

    def save(self) -> None:
        """Persist after a monitor has been updated in place."""
        self._save()

    def summary(self) -> dict:
        monitors = self.list_all()
        return {
            "total": len(monitors),
            "down": sum(1 for m in monitors if m.is_down),
            "up": sum(1 for m in monitors if m.last_checked_at and not m.is_down),
            "unchecked": sum(1 for m in monitors if m.last_checked_at is None),
            "alarms": sum(1 for m in monitors if m.alarm_pending),
        }

    def _save(self) -> None:
        with self._lock:
            self._store.save([m.to_dict() for m in self._monitors.values()])

    def _load(self) -> None:
        for item in self._store.load():
            try:
                monitor = UptimeMonitorRecord.from_dict(item)
            except (KeyError, ValueError) as exc:
                logger.warning("Skipping malformed uptime monitor: %s", exc)
                continue
            self._monitors[monitor.url] = monitor
