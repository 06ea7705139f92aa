"""Tests for failure snapshots."""

import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path
from unittest.mock import patch

from uptime.snapshots import SnapshotStore

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


class TestSnapshotStore(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.data_dir = Path(self._tmp.name)
        self.store = SnapshotStore(self.data_dir / "snapshots")

    def tearDown(self):
        self._tmp.cleanup()

    def test_save_returns_relative_path(self):
        rel = self.store.save("abc123", b"<h1>down</h1>", now=T0)
        self.assertEqual(rel, f"snapshots/abc123/snapshot-{int(T0.timestamp() * 1000)}.html")
        self.assertEqual(self.store.resolve(rel).read_bytes(), b"<h1>down</h1>")

    def test_empty_body(self):
        rel = self.store.save("abc123", b"", now=T0)
        self.assertEqual(self.store.resolve(rel).read_bytes(), b"")

    def test_write_failure_returns_none(self):
        with patch.object(Path, "write_bytes", side_effect=PermissionError("denied")):
            with self.assertLogs("uptime.snapshots", level="WARNING"):
                self.assertIsNone(self.store.save("abc123", b"x", now=T0))


if __name__ == "__main__":
    unittest.main()
