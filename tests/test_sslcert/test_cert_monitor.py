"""Tests for certificate monitoring passes."""

import tempfile
import threading
import unittest
from pathlib import Path

from certfactory import (
    FakeDiscovery,
    FakeInspector,
    FakeReloader,
    FakeRenewalTool,
    inspection_error,
    make_certificate,
    make_info,
    write_live_certificate,
)
from sslcert.errors import PassInProgress, RecordNotFound
from sslcert.live_store import LiveCertificateStore
from sslcert.monitor import CertificateMonitor
from sslcert.renewal import RenewalDriver
from tracker.certificate import CertStatus
from tracker.certificate_registry import CertificateRegistry
from tracker.check_log import CheckKind, CheckLog


class SequenceInspector(FakeInspector):
    """Outcomes given as lists are returned in order; the last one repeats."""

    def inspect(self, domain):
        outcome = self.outcomes.get(domain)
        if isinstance(outcome, list):
            self.calls.append(domain)
            value = outcome.pop(0) if len(outcome) > 1 else outcome[0]
            if isinstance(value, BaseException):
                raise value
            return value
        return super().inspect(domain)


class MonitorTestCase(unittest.TestCase):

    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        root = Path(self._tmp.name)
        self.live_dir = root / "live"
        self.registry = CertificateRegistry(root / "certificates.json", default_threshold=30)
        self.check_log = CheckLog(root / "events.json")
        self.inspector = SequenceInspector()
        self.discovery = FakeDiscovery()
        self.tool = FakeRenewalTool()
        self.reloader = FakeReloader()
        self.sleeps = []
        self.renewal = RenewalDriver(
            self.tool, self.inspector, LiveCertificateStore(self.live_dir), self.reloader,
        )
        self.monitor = CertificateMonitor(
            self.registry, self.inspector, self.discovery, self.renewal,
            check_log=self.check_log, pause_seconds=0.5, sleep=self.sleeps.append,
        )

    def tearDown(self):
        self._tmp.cleanup()


class TestSingleCheck(MonitorTestCase):

    def test_expiring_certificate_raises_alarm(self):
        self.inspector.outcomes["example.com"] = make_info(days_left=10)
        self.registry.add("example.com", auto_renew=False)
        record = self.monitor.check("example.com")
        self.assertEqual(record.status, CertStatus.EXPIRING_SOON)
        self.assertEqual(record.days_until_expiry, 10)
        self.assertTrue(record.alarm_active)
        self.assertEqual(record.check_count, 1)
        self.assertEqual(self.tool.renewed, [])

    def test_expiring_certificate_is_auto_renewed(self):
        write_live_certificate(self.live_dir, "example.com", make_certificate())
        self.inspector.outcomes["example.com"] = [make_info(days_left=10), make_info(days_left=90)]
        record = self.monitor.check("example.com")
        self.assertEqual(self.tool.renewed, ["example.com"])
        self.assertEqual(record.status, CertStatus.VALID)
        self.assertEqual(record.days_until_expiry, 90)
        self.assertEqual(record.renewal_count, 1)
        self.assertIsNotNone(record.last_renewed_at)
        # The alarm raised by the expiring observation stays until acknowledged.
        self.assertTrue(record.alarm_active)

    def test_expired_certificate_is_not_auto_renewed(self):
        write_live_certificate(self.live_dir, "old.example", make_certificate(san=("old.example",)))
        self.inspector.outcomes["old.example"] = make_info(("old.example",), days_left=-3)
        record = self.monitor.check("old.example")
        self.assertEqual(record.status, CertStatus.EXPIRED)
        self.assertTrue(record.alarm_active)
        self.assertEqual(self.tool.renewed, [])

    def test_auto_renew_failure_is_recorded(self):
        write_live_certificate(self.live_dir, "example.com", make_certificate())
        self.tool.fail = True
        self.inspector.outcomes["example.com"] = make_info(days_left=5)
        record = self.monitor.check("example.com")
        self.assertEqual(record.status, CertStatus.EXPIRING_SOON)
        self.assertEqual(record.last_renewal_error, "challenge failed")
        self.assertEqual(record.renewal_count, 0)

    def test_unchanged_certificate_is_not_counted_as_renewed(self):
        write_live_certificate(self.live_dir, "example.com", make_certificate())
        self.inspector.outcomes["example.com"] = make_info(days_left=10)
        for _ in range(3):
            record = self.monitor.check("example.com")
        self.assertEqual(self.tool.renewed, ["example.com"] * 3)
        self.assertEqual(record.status, CertStatus.EXPIRING_SOON)
        self.assertEqual(record.renewal_count, 0)
        self.assertIsNone(record.last_renewed_at)
        self.assertIn("not replaced", record.last_renewal_error)
        self.assertTrue(record.alarm_active)

    def test_auto_renew_without_tool(self):
        self.tool.available = False
        self.inspector.outcomes["example.com"] = make_info(days_left=5)
        record = self.monitor.check("example.com")
        self.assertIn("not available", record.last_renewal_error)

    def test_all_strategies_failing_records_error(self):
        self.inspector.outcomes["broken.example"] = inspection_error("broken.example")
        record = self.monitor.check("broken.example")
        self.assertEqual(record.status, CertStatus.ERROR)
        self.assertTrue(record.last_error)
        self.assertIn("network", record.last_error)
        self.assertIsNone(record.days_until_expiry)
        self.assertTrue(record.alarm_active)

    def test_missing_certificate_is_not_found(self):
        record = self.monitor.check("nothing.example")
        self.assertEqual(record.status, CertStatus.NOT_FOUND)
        self.assertIn("nothing.example", self.registry)

    def test_covered_names_share_the_observation(self):
        self.inspector.outcomes["example.com"] = make_info(
            ("example.com", "www.example.com", "*.example.com"), days_left=60,
        )
        self.monitor.check("example.com")
        sibling = self.registry.get("www.example.com")
        self.assertIsNotNone(sibling)
        self.assertEqual(sibling.status, CertStatus.VALID)
        self.assertEqual(sibling.check_count, 0)
        self.assertNotIn("*.example.com", self.registry)
        self.assertEqual(self.inspector.calls, ["example.com"])

    def test_check_is_logged(self):
        self.inspector.outcomes["example.com"] = make_info(days_left=60)
        self.monitor.check("example.com")
        events = self.check_log.query(kind=CheckKind.CERTIFICATE)
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0].target, "example.com")
        self.assertTrue(events[0].ok)
        self.assertEqual(events[0].detail, "valid")


class TestPasses(MonitorTestCase):

    def test_check_all_covers_stored_domains(self):
        for domain in ("a.example", "b.example", "c.example"):
            self.registry.add(domain)
            self.inspector.outcomes[domain] = make_info((domain,), days_left=60)
        summary = self.monitor.check_all()
        self.assertEqual(summary["domains"], 3)
        self.assertEqual(summary["checked"], 3)
        self.assertEqual(summary["failed"], [])
        self.assertEqual(summary["statuses"]["valid"], 3)
        self.assertEqual(self.sleeps, [0.5, 0.5])

    def test_unexpected_error_does_not_stop_pass(self):
        self.registry.add("bad.example")
        self.registry.add("good.example")
        self.inspector.outcomes["bad.example"] = RuntimeError("boom")
        self.inspector.outcomes["good.example"] = make_info(("good.example",))
        with self.assertLogs("sslcert.monitor", level="ERROR"):
            summary = self.monitor.check_all()
        self.assertEqual(summary["failed"], ["bad.example"])
        self.assertEqual(summary["checked"], 1)
        self.assertEqual(self.registry.get("good.example").status, CertStatus.VALID)

    def test_run_once_merges_discovered_and_stored(self):
        self.registry.add("stored.example")
        self.discovery.domains = {"found.example", "STORED.example"}
        self.inspector.outcomes["found.example"] = make_info(("found.example",))
        summary = self.monitor.run_once()
        self.assertEqual(summary["domains"], 2)
        self.assertEqual(summary["discovered"], 2)
        self.assertCountEqual(self.inspector.calls, ["stored.example", "found.example"])
        self.assertIn("found.example", self.registry)

    def test_discover_checks_only_discovered(self):
        self.registry.add("stored.example")
        self.discovery.domains = {"found.example"}
        summary = self.monitor.discover()
        self.assertEqual(summary["discovered"], ["found.example"])
        self.assertEqual(self.inspector.calls, ["found.example"])

    def test_second_pass_is_rejected(self):
        self.monitor._lock.acquire()
        try:
            self.assertTrue(self.monitor.busy)
            with self.assertRaises(PassInProgress):
                self.monitor.check_all()
            with self.assertRaises(PassInProgress):
                self.monitor.check("example.com")
        finally:
            self.monitor._lock.release()
        self.assertFalse(self.monitor.busy)

    def test_pass_blocks_concurrent_caller(self):
        started = threading.Event()
        release = threading.Event()
        errors = []

        class SlowInspector(FakeInspector):
            def inspect(inner, domain):
                started.set()
                release.wait(5)
                return make_info((domain,))

        self.monitor.inspector = SlowInspector()
        self.registry.add("slow.example")
        worker = threading.Thread(target=self.monitor.check_all)
        worker.start()
        started.wait(5)
        try:
            self.monitor.run_once()
        except PassInProgress as exc:
            errors.append(exc)
        release.set()
        worker.join(5)
        self.assertEqual(len(errors), 1)


class TestOperatorActions(MonitorTestCase):

    def test_add_domain_checks_immediately(self):
        self.inspector.outcomes["example.com"] = make_info()
        record = self.monitor.add_domain("example.com", renewal_threshold=14)
        self.assertEqual(record.status, CertStatus.VALID)
        self.assertEqual(record.renewal_threshold, 14)

    def test_add_domain_during_pass_defers_check(self):
        self.monitor._lock.acquire()
        try:
            record = self.monitor.add_domain("example.com")
        finally:
            self.monitor._lock.release()
        self.assertEqual(record.check_count, 0)
        self.assertEqual(self.inspector.calls, [])

    def test_renew_requires_monitored_domain(self):
        with self.assertRaises(RecordNotFound):
            self.monitor.renew("unknown.example")

    def test_manual_renew_of_valid_certificate(self):
        write_live_certificate(self.live_dir, "example.com", make_certificate())
        self.inspector.outcomes["example.com"] = make_info(days_left=80)
        self.registry.add("example.com")
        result = self.monitor.renew("example.com")
        self.assertTrue(result.success)
        record = self.registry.get("example.com")
        self.assertEqual(record.renewal_count, 1)
        self.assertEqual(record.days_until_expiry, 80)

    def test_generate_checks_new_domain(self):
        self.inspector.outcomes["new.example"] = make_info(("new.example",))
        result = self.monitor.generate("new.example", "ops@example.com")
        self.assertTrue(result.success)
        self.assertEqual(self.tool.issued, [("new.example", "ops@example.com")])
        self.assertEqual(self.registry.get("new.example").status, CertStatus.VALID)

    def test_generate_falls_back_to_www_variant(self):
        self.inspector.outcomes["www.new.example"] = make_info(("www.new.example",))
        self.monitor.generate("new.example")
        self.assertEqual(self.inspector.calls, ["new.example", "www.new.example"])
        self.assertEqual(self.registry.get("www.new.example").status, CertStatus.VALID)

    def test_failed_generate_adds_nothing(self):
        self.tool.fail = True
        result = self.monitor.generate("new.example")
        self.assertFalse(result.success)
        self.assertNotIn("new.example", self.registry)

    def test_acknowledge_and_summary(self):
        self.inspector.outcomes["example.com"] = make_info(days_left=-1)
        self.monitor.check("example.com")
        self.assertEqual(self.monitor.summary()["alarms"], 1)
        record = self.monitor.acknowledge("example.com", "alice")
        self.assertFalse(record.alarm_active)
        summary = self.monitor.summary()
        self.assertEqual(summary["alarms"], 0)
        self.assertEqual(summary["expired"], 1)
        self.assertTrue(summary["certbot_available"])
        self.assertEqual(summary["certbot_path"], "/usr/bin/fake-certbot")
        self.assertFalse(summary["pass_running"])


if __name__ == "__main__":
    unittest.main()
