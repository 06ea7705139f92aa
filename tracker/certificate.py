"""Certificate record model: expiry classification and the alarm lifecycle."""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from config.settings import CERT_RENEWAL_THRESHOLD_DAYS
from sslcert.certinfo import CertInfo
from sslcert.utils.helpers import extract_ca_name, normalize_domain

SECONDS_PER_DAY = 86400


class CertStatus(str, Enum):
    """Validity state of a monitored domain's certificate."""

    VALID = "valid"
    EXPIRING_SOON = "expiring_soon"
    EXPIRED = "expired"
    NOT_FOUND = "not_found"
    ERROR = "error"

    @property
    def alarm_worthy(self) -> bool:
        return self in ALARM_STATUSES


ALARM_STATUSES = frozenset({
    CertStatus.EXPIRING_SOON,
    CertStatus.EXPIRED,
    CertStatus.NOT_FOUND,
    CertStatus.ERROR,
})


def days_until_expiry(valid_to: datetime, now: datetime) -> int:
    """Whole days left, rounded up: 10.2 days -> 11, -0.5 days -> 0."""
    return math.ceil((valid_to - now).total_seconds() / SECONDS_PER_DAY)


def classify(days: int, threshold: int) -> CertStatus:
    if days < 0:
        return CertStatus.EXPIRED
    if days <= threshold:
        return CertStatus.EXPIRING_SOON
    return CertStatus.VALID


def is_new_occurrence(previous: Optional[CertStatus], status: CertStatus) -> bool:
    """Whether an alarm-worthy ``status`` starts a new alarm after ``previous``.

    Coming from valid (or no previous check) is new, and so is any change
    to expired, not_found or error. Repeating a status or easing back to
    expiring_soon continues the same occurrence.
    """
    if previous is None or not previous.alarm_worthy:
        return True
    return status != previous and status != CertStatus.EXPIRING_SOON


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class CertificateRecord:
    """One monitored domain and the latest observation of its certificate."""

    domain: str
    status: CertStatus = CertStatus.NOT_FOUND

    # Validity, from the last successful inspection
    valid_from: Optional[datetime] = None
    valid_to: Optional[datetime] = None
    days_until_expiry: Optional[int] = None
    issuer: str = ""
    subject: str = ""
    ca_name: str = ""
    serial_number: str = ""
    covered_domains: list[str] = field(default_factory=list)
    certificate_path: str = ""

    # Settings
    auto_renew: bool = True
    renewal_threshold: int = CERT_RENEWAL_THRESHOLD_DAYS

    # Alarm lifecycle
    alarm_active: bool = False
    acknowledged: bool = False
    acknowledged_at: Optional[datetime] = None
    acknowledged_by: Optional[str] = None

    # Audit
    check_count: int = 0
    renewal_count: int = 0
    last_checked_at: Optional[datetime] = None
    last_error: Optional[str] = None
    last_renewed_at: Optional[datetime] = None
    last_renewal_error: Optional[str] = None
    created_at: datetime = field(default_factory=_now)
    updated_at: datetime = field(default_factory=_now)

    @property
    def key(self) -> str:
        return normalize_domain(self.domain)

    @property
    def is_expired(self) -> bool:
        return self.status == CertStatus.EXPIRED

    @property
    def is_expiring_soon(self) -> bool:
        return self.status == CertStatus.EXPIRING_SOON

    @property
    def alarm_pending(self) -> bool:
        """An alarm nobody has acknowledged yet."""
        return self.alarm_active and not self.acknowledged

    def should_auto_renew(self) -> bool:
        """Scheduled renewal only for expiring (not yet expired) certificates."""
        return self.auto_renew and self.status == CertStatus.EXPIRING_SOON

    # ---- Transitions ----

    def apply_inspection(self, info: CertInfo, now: datetime = None, counted: bool = True) -> None:
        """Take a successful inspection; ``counted=False`` for co-covered names."""
        now = now or _now()
        self._apply_validity(info, now)
        self.last_error = None
        self._transition(classify(self.days_until_expiry, self.renewal_threshold), now, counted)

    def apply_failure(self, message: str, not_found: bool = False, now: datetime = None) -> None:
        now = now or _now()
        self.days_until_expiry = None
        self.last_error = message
        self._transition(CertStatus.NOT_FOUND if not_found else CertStatus.ERROR, now, True)
        # A failed inspection always raises the alarm, acknowledged or not.
        self.alarm_active = True

    def apply_renewal(self, success: bool, info: CertInfo = None, error: str = "",
                      now: datetime = None) -> None:
        now = now or _now()
        if success:
            self.last_renewed_at = now
            self.last_renewal_error = None
            self.renewal_count += 1
            if info is not None:
                self._apply_validity(info, now)
                self.last_error = None
                self._transition(classify(self.days_until_expiry, self.renewal_threshold), now, False)
        else:
            self.last_renewal_error = error or "renewal failed"
            self.alarm_active = True
        self.updated_at = now

    def acknowledge(self, actor: str, now: datetime = None) -> None:
        now = now or _now()
        self.alarm_active = False
        self.acknowledged = True
        self.acknowledged_at = now
        self.acknowledged_by = actor
        self.updated_at = now

    def _apply_validity(self, info: CertInfo, now: datetime) -> None:
        self.valid_from = info.valid_from
        self.valid_to = info.valid_to
        self.days_until_expiry = days_until_expiry(info.valid_to, now)
        self.issuer = info.issuer
        self.subject = info.subject
        self.ca_name = extract_ca_name(info.issuer)
        self.serial_number = info.serial_number
        self.covered_domains = list(info.domains)
        if info.certificate_path:
            self.certificate_path = info.certificate_path

    def _transition(self, status: CertStatus, now: datetime, counted: bool) -> None:
        # A first observation has no previous status.
        previous = self.status if self.last_checked_at is not None else None
        if status.alarm_worthy:
            if is_new_occurrence(previous, status):
                self.alarm_active = True
                self.acknowledged = False
                self.acknowledged_at = None
                self.acknowledged_by = None
            elif not self.acknowledged:
                self.alarm_active = True
        self.status = status
        if counted:
            self.check_count += 1
        self.last_checked_at = now
        self.updated_at = now

    # ---- Serialization ----

    def to_dict(self) -> dict:
        def fmt_dt(dt):
            return dt.isoformat() if dt else None

        return {
            "domain": self.domain,
            "status": self.status.value,
            "is_expired": self.is_expired,
            "is_expiring_soon": self.is_expiring_soon,
            "valid_from": fmt_dt(self.valid_from),
            "valid_to": fmt_dt(self.valid_to),
            "days_until_expiry": self.days_until_expiry,
            "issuer": self.issuer,
            "subject": self.subject,
            "ca_name": self.ca_name,
            "serial_number": self.serial_number,
            "covered_domains": self.covered_domains,
            "certificate_path": self.certificate_path,
            "auto_renew": self.auto_renew,
            "renewal_threshold": self.renewal_threshold,
            "alarm_active": self.alarm_active,
            "acknowledged": self.acknowledged,
            "acknowledged_at": fmt_dt(self.acknowledged_at),
            "acknowledged_by": self.acknowledged_by,
            "check_count": self.check_count,
            "renewal_count": self.renewal_count,
            "last_checked_at": fmt_dt(self.last_checked_at),
            "last_error": self.last_error,
            "last_renewed_at": fmt_dt(self.last_renewed_at),
            "last_renewal_error": self.last_renewal_error,
            "created_at": fmt_dt(self.created_at),
            "updated_at": fmt_dt(self.updated_at),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CertificateRecord":
        def parse_dt(val):
            if not val:
                return None
            return datetime.fromisoformat(val)

        return cls(
            domain=data["domain"],
            status=CertStatus(data.get("status", "not_found")),
            valid_from=parse_dt(data.get("valid_from")),
            valid_to=parse_dt(data.get("valid_to")),
            days_until_expiry=data.get("days_until_expiry"),
            issuer=data.get("issuer", ""),
            subject=data.get("subject", ""),
            ca_name=data.get("ca_name", ""),
            serial_number=data.get("serial_number", ""),
            covered_domains=data.get("covered_domains", []),
            certificate_path=data.get("certificate_path", ""),
            auto_renew=data.get("auto_renew", True),
            renewal_threshold=data.get("renewal_threshold", CERT_RENEWAL_THRESHOLD_DAYS),
            alarm_active=data.get("alarm_active", False),
            acknowledged=data.get("acknowledged", False),
            acknowledged_at=parse_dt(data.get("acknowledged_at")),
            acknowledged_by=data.get("acknowledged_by"),
            check_count=data.get("check_count", 0),
            renewal_count=data.get("renewal_count", 0),
            last_checked_at=parse_dt(data.get("last_checked_at")),
            last_error=data.get("last_error"),
            last_renewed_at=parse_dt(data.get("last_renewed_at")),
            last_renewal_error=data.get("last_renewal_error"),
            created_at=parse_dt(data.get("created_at")) or _now(),
            updated_at=parse_dt(data.get("updated_at")) or _now(),
        )
