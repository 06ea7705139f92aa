"""Uptime monitoring passes over the registered endpoints."""

import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional

from sslcert.errors import PassInProgress, PersistenceFailure
from tracker.check_log import CheckEvent, CheckKind, CheckLog
from tracker.uptime import UptimeMonitorRecord
from tracker.uptime_registry import UptimeRegistry
from uptime.probe import HttpProbe
from uptime.snapshots import SnapshotStore

logger = logging.getLogger(__name__)


class UptimeMonitor:
    """Probe endpoints serially; one pass at a time."""

    def __init__(
        self,
        registry: UptimeRegistry,
        probe: HttpProbe,
        snapshots: SnapshotStore,
        check_log: Optional[CheckLog] = None,
    ):
        self.registry = registry
        self.probe = probe
        self.snapshots = snapshots
        self.check_log = check_log
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def _exclusive(self, operation: str):
        if not self._lock.acquire(blocking=False):
            raise PassInProgress(f"cannot {operation}: an uptime pass is already running")
        try:
            yield
        finally:
            self._lock.release()

    def add_target(self, url: str, name: str = "") -> UptimeMonitorRecord:
        return self.registry.add(url, name=name)

    def remove(self, ref: str) -> bool:
        return self.registry.remove(ref)

    def get(self, ref: str) -> UptimeMonitorRecord:
        return self.registry.require(ref)

    def list_monitors(self) -> list[UptimeMonitorRecord]:
        return self.registry.list_all()

    def acknowledge(self, ref: str, actor: str) -> UptimeMonitorRecord:
        return self.registry.acknowledge(ref, actor)

    def summary(self) -> dict:
        summary = self.registry.summary()
        summary["pass_running"] = self.busy
        return summary

    def check_one(self, ref: str) -> UptimeMonitorRecord:
        """Probe one registered endpoint now.

        Raises:
            RecordNotFound: if nothing is registered under ``ref``.
            PassInProgress: if a pass is running.
        """
        monitor = self.registry.require(ref)
        with self._exclusive(f"check {monitor.url}"):
            return self._check(monitor)

    def run_once(self) -> dict:
        """Probe every endpoint in turn; one failure never stops the pass."""
        with self._exclusive("run an uptime pass"):
            monitors = self.registry.list_all()
            logger.info("Starting uptime pass over %d endpoint(s)", len(monitors))
            down, failed = [], []
            for monitor in monitors:
                try:
                    self._check(monitor)
                except Exception:
                    logger.exception("Uptime check of %s failed", monitor.url)
                    failed.append(monitor.url)
                    continue
                if monitor.is_down:
                    down.append(monitor.url)
            logger.info(
                "Finished uptime pass: %d down, %d failed", len(down), len(failed),
            )
            return {"targets": len(monitors), "down": down, "failed": failed}

    def history(
        self,
        ref: str,
        start: datetime = None,
        end: datetime = None,
        limit: int = None,
    ) -> dict:
        """Probe events and uptime percentage for one endpoint over a window."""
        monitor = self.registry.require(ref)
        if self.check_log is None:
            return {"monitor": monitor.to_dict(), "events": [], "uptime_percentage": None}
        events = self.check_log.query(
            start=start, end=end, target=monitor.url, kind=CheckKind.UPTIME,
        )
        return {
            "monitor": monitor.to_dict(),
            "events": [e.to_dict() for e in (events[:limit] if limit else events)],
            "uptime_percentage": self.check_log.uptime_percentage(
                monitor.url, start=start, end=end,
            ),
        }

    def _check(self, monitor: UptimeMonitorRecord) -> UptimeMonitorRecord:
        now = datetime.now(timezone.utc)
        result = self.probe.probe(monitor.url)

        snapshot_path = None
        if not result.ok:
            snapshot_path = self.snapshots.save(monitor.monitor_id, result.body, now=now)

        was_down = monitor.is_down
        monitor.apply_probe(
            result.ok,
            status_code=result.status_code,
            response_time_ms=result.response_time_ms,
            error=result.error,
            snapshot_path=snapshot_path,
            now=now,
        )
        if monitor.is_down and not was_down:
            logger.warning("%s is DOWN: %s", monitor.url, result.error)
        elif was_down and not monitor.is_down:
            logger.info("%s recovered (HTTP %s)", monitor.url, result.status_code)

        if self.check_log is not None:
            event = CheckEvent(
                kind=CheckKind.UPTIME,
                target=monitor.url,
                ok=result.ok,
                status_code=result.status_code,
                response_time_ms=result.response_time_ms,
                error=result.error,
                detail="up" if result.ok else "down",
                snapshot_path=snapshot_path,
                timestamp=now,
            )
            try:
                self.check_log.append(event)
            except PersistenceFailure as exc:
                logger.error("Could not record probe of %s: %s", monitor.url, exc.message)

        self.registry.save()
        return monitor
