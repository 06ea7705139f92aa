"""Certificate monitoring passes: inspect, record, and renew when due."""

import logging
import threading
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Optional

from config.settings import CERT_CHECK_PAUSE_SECONDS
from sslcert.discovery import DomainDiscovery
from sslcert.errors import (
    InspectionError,
    PassInProgress,
    PersistenceFailure,
    ToolUnavailable,
)
from sslcert.inspector import CertificateInspector
from sslcert.renewal import RenewalDriver, RenewalResult
from sslcert.utils.helpers import normalize_domain, www_variant
from tracker.certificate import CertificateRecord, CertStatus
from tracker.certificate_registry import CertificateRegistry
from tracker.check_log import CheckEvent, CheckKind, CheckLog

logger = logging.getLogger(__name__)


class CertificateMonitor:
    """Runs certificate checks one domain at a time, one pass at a time.

    Every public operation that inspects or renews takes the pass lock
    without blocking; a second caller gets ``PassInProgress`` instead of
    queueing behind a running pass.
    """

    def __init__(
        self,
        registry: CertificateRegistry,
        inspector: CertificateInspector,
        discovery: DomainDiscovery,
        renewal: RenewalDriver,
        check_log: Optional[CheckLog] = None,
        pause_seconds: float = CERT_CHECK_PAUSE_SECONDS,
        sleep=time.sleep,
    ):
        self.registry = registry
        self.inspector = inspector
        self.discovery = discovery
        self.renewal = renewal
        self.check_log = check_log
        self.pause_seconds = pause_seconds
        self._sleep = sleep
        self._lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    @contextmanager
    def _exclusive(self, operation: str):
        if not self._lock.acquire(blocking=False):
            raise PassInProgress(f"cannot {operation}: a certificate pass is already running")
        try:
            yield
        finally:
            self._lock.release()

    # ---- Checks ----

    def check(self, domain: str) -> CertificateRecord:
        """Inspect one domain now, renewing it if it is due."""
        with self._exclusive(f"check {domain}"):
            return self._check_domain(domain)

    def check_all(self) -> dict:
        """Re-check every stored domain."""
        with self._exclusive("check all certificates"):
            return self._run_pass(self.registry.domains(), "scheduled")

    def run_once(self) -> dict:
        """Discover domains and check them together with every stored domain."""
        with self._exclusive("run a full certificate pass"):
            discovered = self.discovery.discover()
            domains = self._merge(self.registry.domains(), sorted(discovered))
            summary = self._run_pass(domains, "full")
            summary["discovered"] = len(discovered)
            return summary

    def discover(self) -> dict:
        """Run discovery and check only the domains it found."""
        with self._exclusive("discover certificates"):
            discovered = sorted(self.discovery.discover())
            summary = self._run_pass(discovered, "discovery")
            summary["discovered"] = discovered
            return summary

    # ---- Renewal ----

    def renew(self, domain: str) -> RenewalResult:
        """Operator-triggered renewal, allowed at any status.

        Raises:
            RecordNotFound: if the domain is not monitored.
            ToolUnavailable: if the ACME client is missing.
        """
        with self._exclusive(f"renew {domain}"):
            record = self.registry.require(domain)
            result = self.renewal.renew(record.domain, previous_valid_to=record.valid_to)
            self.registry.record_renewal(record.domain, result)
            return result

    def generate(self, domain: str, email: str = "") -> RenewalResult:
        """Issue a first certificate, then check the new domain.

        Raises:
            ToolUnavailable: if the ACME client is missing.
        """
        with self._exclusive(f"generate a certificate for {domain}"):
            result = self.renewal.generate(domain, email)
            if not result.success:
                return result
            self.registry.add(domain)
            record = self._check_domain(domain)
            if record.status == CertStatus.NOT_FOUND:
                alternate = www_variant(domain)
                logger.info("%s still not found after issuance; checking %s", domain, alternate)
                self._check_domain(alternate)
            return result

    # ---- Administration ----

    def add_domain(
        self,
        domain: str,
        auto_renew: bool = None,
        renewal_threshold: int = None,
        check: bool = True,
    ) -> CertificateRecord:
        """Start monitoring a domain and check it immediately when possible."""
        record = self.registry.add(domain, auto_renew=auto_renew, renewal_threshold=renewal_threshold)
        if check:
            try:
                with self._exclusive(f"check {domain}"):
                    record = self._check_domain(domain)
            except PassInProgress:
                logger.info("Pass in progress; %s will be checked on the next pass", domain)
        return record

    def update_settings(self, domain: str, auto_renew: bool = None,
                        renewal_threshold: int = None) -> CertificateRecord:
        return self.registry.update_settings(
            domain, auto_renew=auto_renew, renewal_threshold=renewal_threshold,
        )

    def remove(self, domain: str) -> bool:
        return self.registry.remove(domain)

    def acknowledge(self, domain: str, actor: str) -> CertificateRecord:
        return self.registry.acknowledge(domain, actor)

    def get(self, domain: str) -> CertificateRecord:
        return self.registry.require(domain)

    def list_records(self) -> list[CertificateRecord]:
        return self.registry.list_all()

    def summary(self) -> dict:
        summary = self.registry.summary()
        summary["certbot_available"] = self.renewal.tool_available()
        summary["certbot_path"] = self.renewal.tool_path()
        summary["pass_running"] = self.busy
        return summary

    # ---- Internals ----

    def _check_domain(self, domain: str) -> CertificateRecord:
        now = datetime.now(timezone.utc)
        try:
            outcome = self.inspector.inspect(domain)
        except InspectionError as exc:
            logger.warning("Could not inspect %s: %s", domain, exc.message)
            outcome = exc

        record = self.registry.upsert_check_result(domain, outcome, now=now)
        self._log_event(record, now)
        logger.info("Checked %s: %s (%s days left)", record.domain, record.status.value,
                    record.days_until_expiry)

        if record.should_auto_renew():
            self._auto_renew(record)
        return record

    def _auto_renew(self, record: CertificateRecord) -> RenewalResult:
        logger.info("Auto-renewing %s (expires in %s days)", record.domain, record.days_until_expiry)
        try:
            result = self.renewal.renew(record.domain, previous_valid_to=record.valid_to)
        except ToolUnavailable as exc:
            logger.warning("Cannot auto-renew %s: %s", record.domain, exc.message)
            result = RenewalResult(False, record.domain, error=exc.message)
        self.registry.record_renewal(record.domain, result)
        return result

    def _log_event(self, record: CertificateRecord, now: datetime) -> None:
        if self.check_log is None:
            return
        event = CheckEvent(
            kind=CheckKind.CERTIFICATE,
            target=record.domain,
            ok=record.status == CertStatus.VALID,
            error=record.last_error,
            detail=record.status.value,
            timestamp=now,
        )
        try:
            self.check_log.append(event)
        except PersistenceFailure as exc:
            logger.error("Could not record check of %s: %s", record.domain, exc.message)

    def _run_pass(self, domains: list[str], label: str) -> dict:
        logger.info("Starting %s certificate pass over %d domain(s)", label, len(domains))
        statuses = {status.value: 0 for status in CertStatus}
        failed = []
        for index, domain in enumerate(domains):
            if index and self.pause_seconds:
                self._sleep(self.pause_seconds)
            try:
                record = self._check_domain(domain)
            except Exception:
                logger.exception("Certificate check of %s failed", domain)
                failed.append(domain)
                continue
            statuses[record.status.value] += 1

        logger.info(
            "Finished %s certificate pass: %d checked, %d failed",
            label, len(domains) - len(failed), len(failed),
        )
        return {
            "domains": len(domains),
            "checked": len(domains) - len(failed),
            "failed": failed,
            "statuses": statuses,
        }

    @staticmethod
    def _merge(*groups) -> list[str]:
        seen = set()
        merged = []
        for group in groups:
            for domain in group:
                key = normalize_domain(domain)
                if key and key not in seen:
                    seen.add(key)
                    merged.append(domain)
        return merged
