"""Certificate registry: persistent records keyed by normalised domain."""

import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from config.settings import CERT_RENEWAL_THRESHOLD_DAYS
from sslcert.certinfo import CertInfo
from sslcert.errors import InspectionError, RecordNotFound
from sslcert.utils.helpers import normalize_domain
from tracker.certificate import CertificateRecord, CertStatus
from tracker.json_store import JsonListStore

logger = logging.getLogger(__name__)


class CertificateRegistry:
    """All monitored domains, one record per normalised name.

    Monitor passes and API request threads share one registry; every
    access to the record map holds ``_lock``.
    """

    def __init__(
        self,
        storage_path: str | Path,
        default_threshold: int = CERT_RENEWAL_THRESHOLD_DAYS,
    ):
        self._store = JsonListStore(storage_path)
        self._lock = threading.RLock()
        self.default_threshold = default_threshold
        self._records: dict[str, CertificateRecord] = {}
        self._load()

    # ---- Queries ----

    def get(self, domain: str) -> Optional[CertificateRecord]:
        with self._lock:
            return self._records.get(normalize_domain(domain))

    def require(self, domain: str) -> CertificateRecord:
        record = self.get(domain)
        if record is None:
            raise RecordNotFound(f"{domain} is not monitored", domain)
        return record

    def list_all(self) -> list[CertificateRecord]:
        """All records sorted by domain."""
        with self._lock:
            return [self._records[k] for k in sorted(self._records)]

    def domains(self) -> list[str]:
        return [r.domain for r in self.list_all()]

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, domain: str) -> bool:
        return normalize_domain(domain) in self._records

    # ---- CRUD ----

    def add(
        self,
        domain: str,
        auto_renew: bool = None,
        renewal_threshold: int = None,
    ) -> CertificateRecord:
        """Start monitoring ``domain``; settings of an existing record are updated."""
        renewal_threshold = self._threshold(renewal_threshold)
        with self._lock:
            record = self._ensure(domain)
            self._apply_settings(record, auto_renew, renewal_threshold)
            self._save()
        return record

    def update_settings(
        self,
        domain: str,
        auto_renew: bool = None,
        renewal_threshold: int = None,
    ) -> CertificateRecord:
        """Change renewal settings.

        Raises:
            RecordNotFound: if the domain is not monitored.
            ValueError: if the threshold is negative.
        """
        with self._lock:
            record = self.require(domain)
            self._apply_settings(record, auto_renew, renewal_threshold)
            record.updated_at = datetime.now(timezone.utc)
            self._save()
        return record

    def remove(self, domain: str) -> bool:
        key = normalize_domain(domain)
        with self._lock:
            if key not in self._records:
                return False
            del self._records[key]
            self._save()
        return True

    # ---- State transitions ----

    def upsert_check_result(
        self,
        domain: str,
        outcome: CertInfo | InspectionError,
        threshold: int = None,
        now: datetime = None,
    ) -> CertificateRecord:
        """Apply one inspection outcome and persist it.

        A successful inspection is also written to every other non-wildcard
        name the certificate covers, creating records as needed. Returns the
        record for ``domain``.

        Raises:
            PersistenceFailure: if the registry cannot be saved.
        """
        now = now or datetime.now(timezone.utc)
        with self._lock:
            record = self._ensure(domain)
            if threshold is not None:
                self._apply_settings(record, None, threshold)

            if isinstance(outcome, InspectionError):
                record.apply_failure(outcome.message, not_found=outcome.not_found, now=now)
            else:
                record.apply_inspection(outcome, now=now)
                for name in outcome.monitorable_domains():
                    if normalize_domain(name) == record.key:
                        continue
                    sibling = self._ensure(name)
                    sibling.apply_inspection(outcome, now=now, counted=False)

            self._save()
        return record

    def record_renewal(self, domain: str, result, now: datetime = None) -> CertificateRecord:
        """Persist a RenewalResult on the domain's record."""
        with self._lock:
            record = self.require(domain)
            record.apply_renewal(result.success, info=result.cert_info, error=result.error, now=now)
            if result.success and result.cert_info is not None:
                for name in result.cert_info.monitorable_domains():
                    sibling = self.get(name)
                    if sibling is not None and sibling is not record:
                        sibling.apply_inspection(result.cert_info, now=now, counted=False)
            self._save()
        return record

    def acknowledge(self, domain: str, actor: str, now: datetime = None) -> CertificateRecord:
        with self._lock:
            record = self.require(domain)
            record.acknowledge(actor, now=now)
            self._save()
        return record

    # ---- Stats ----

    def summary(self) -> dict:
        records = self.list_all()
        counts = {status.value: 0 for status in CertStatus}
        for record in records:
            counts[record.status.value] += 1
        return {
            "total": len(records),
            "valid": counts[CertStatus.VALID.value],
            "expiring_soon": counts[CertStatus.EXPIRING_SOON.value],
            "expired": counts[CertStatus.EXPIRED.value],
            "not_found": counts[CertStatus.NOT_FOUND.value],
            "errors": counts[CertStatus.ERROR.value],
            "alarms": sum(1 for r in records if r.alarm_pending),
            "auto_renew": sum(1 for r in records if r.auto_renew),
        }

    # ---- Internals ----

    def _ensure(self, domain: str) -> CertificateRecord:
        key = normalize_domain(domain)
        if not key:
            raise ValueError("domain must not be empty")
        record = self._records.get(key)
        if record is None:
            record = CertificateRecord(
                domain=domain.strip().rstrip("."),
                renewal_threshold=self.default_threshold,
            )
            self._records[key] = record
            logger.info("Monitoring new domain %s", record.domain)
        return record

    @staticmethod
    def _threshold(value) -> Optional[int]:
        if value is None:
            return None
        try:
            value = int(value)
        except (TypeError, ValueError):
            raise ValueError(f"renewal_threshold must be an integer, got {value!r}") from None
        if value < 0:
            raise ValueError("renewal_threshold must be zero or positive")
        return value

    @classmethod
    def _apply_settings(cls, record: CertificateRecord, auto_renew, renewal_threshold) -> None:
        renewal_threshold = cls._threshold(renewal_threshold)
        if auto_renew is not None:
            record.auto_renew = bool(auto_renew)
        if renewal_threshold is not None:
            record.renewal_threshold = renewal_threshold

    def _save(self) -> None:
        with self._lock:
            self._store.save([r.to_dict() for r in self._records.values()])

    def _load(self) -> None:
        for item in self._store.load():
            try:
                record = CertificateRecord.from_dict(item)
            except (KeyError, ValueError) as exc:
                logger.warning("Skipping malformed certificate record: %s", exc)
                continue
            self._records[record.key] = record
