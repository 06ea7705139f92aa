"""Tests for uptime passes."""

import tempfile
import unittest
from pathlib import Path

import httpx

from sslcert.errors import PassInProgress, RecordNotFound
from tracker.check_log import CheckLog
from tracker.uptime_registry import UptimeRegistry
from uptime.monitor import UptimeMonitor
from uptime.probe import HttpProbe
from uptime.snapshots import SnapshotStore


class ScriptedServer:
    """Answers each request with the next scripted status code."""

    def __init__(self, statuses):
        self.statuses = list(statuses)
        self.requests = []

    def __call__(self, request):
        self.requests.append(str(request.url))
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if status is None:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(status, content=f"status {status}".encode())


class TestUptimeMonitor(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.data_dir = Path(self._tmp.name)
        self.registry = UptimeRegistry(self.data_dir / "uptime.json")
        self.check_log = CheckLog(self.data_dir / "events.json")
        self.snapshots = SnapshotStore(self.data_dir / "snapshots")
        self.server = ScriptedServer([200])
        self.monitor = UptimeMonitor(
            self.registry,
            HttpProbe(timeout=5, transport=httpx.MockTransport(self.server)),
            self.snapshots,
            check_log=self.check_log,
        )

    def tearDown(self):
        self._tmp.cleanup()

    def test_outage_and_recovery(self):
        self.server.statuses = [500, 500, 500, 200]
        target = self.monitor.add_target("https://shop.example")

        with self.assertLogs("uptime.monitor", level="WARNING"):
            self.monitor.check_one(target.monitor_id)
        down_since = target.down_since
        self.assertTrue(target.is_down)
        self.assertTrue(target.alarm_active)
        self.assertIsNotNone(target.last_snapshot_path)

        self.monitor.check_one(target.monitor_id)
        self.monitor.check_one(target.monitor_id)
        self.assertEqual(target.down_since, down_since)

        self.monitor.check_one(target.monitor_id)
        self.assertFalse(target.is_down)
        self.assertEqual(target.last_status_code, 200)
        self.assertEqual(target.down_since, down_since)
        self.assertTrue(target.alarm_active)
        self.assertEqual(target.check_count, 4)

        history = self.monitor.history(target.monitor_id)
        self.assertEqual(len(history["events"]), 4)
        self.assertEqual(history["uptime_percentage"], 25.0)
        self.assertTrue(history["events"][0]["ok"])
        self.assertIsNotNone(history["events"][-1]["snapshot_path"])

    def test_snapshot_holds_failing_body(self):
        self.server.statuses = [503]
        target = self.monitor.add_target("shop.example")
        self.monitor.check_one("https://shop.example")
        snapshot = self.snapshots.resolve(target.last_snapshot_path)
        self.assertEqual(snapshot.read_bytes(), b"status 503")

    def test_connection_failure_snapshot_is_empty(self):
        self.server.statuses = [None]
        target = self.monitor.add_target("https://shop.example")
        self.monitor.check_one(target.url)
        self.assertEqual(target.last_error, "connection refused")
        self.assertEqual(self.snapshots.resolve(target.last_snapshot_path).read_bytes(), b"")

    def test_run_once(self):
        self.monitor.add_target("https://a.example")
        self.monitor.add_target("https://b.example")
        self.server.statuses = [200, 500]
        summary = self.monitor.run_once()
        self.assertEqual(summary["targets"], 2)
        self.assertEqual(summary["down"], ["https://b.example"])
        self.assertEqual(summary["failed"], [])
        self.assertEqual(self.registry.summary()["down"], 1)

    def test_state_is_persisted(self):
        self.server.statuses = [500]
        target = self.monitor.add_target("https://shop.example")
        self.monitor.check_one(target.monitor_id)
        reloaded = UptimeRegistry(self.data_dir / "uptime.json").get(target.monitor_id)
        self.assertTrue(reloaded.is_down)
        self.assertEqual(reloaded.last_status_code, 500)

    def test_check_unknown_target(self):
        with self.assertRaises(RecordNotFound):
            self.monitor.check_one("missing.example")

    def test_pass_in_progress(self):
        target = self.monitor.add_target("https://shop.example")
        self.monitor._lock.acquire()
        try:
            with self.assertRaises(PassInProgress):
                self.monitor.check_one(target.monitor_id)
            with self.assertRaises(PassInProgress):
                self.monitor.run_once()
            self.assertTrue(self.monitor.summary()["pass_running"])
        finally:
            self.monitor._lock.release()

    def test_acknowledge(self):
        self.server.statuses = [500]
        target = self.monitor.add_target("https://shop.example")
        self.monitor.check_one(target.monitor_id)
        self.monitor.acknowledge(target.monitor_id, "alice")
        self.assertFalse(target.alarm_active)
        self.assertEqual(self.monitor.summary()["alarms"], 0)


if __name__ == "__main__":
    unittest.main()
