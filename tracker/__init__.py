"""
Monitoring State Module.

Persistent records for monitored certificates and uptime endpoints,
their status and alarm transitions, and the append-only check history.
"""

from tracker.certificate import CertificateRecord, CertStatus
from tracker.certificate_registry import CertificateRegistry
from tracker.check_log import CheckEvent, CheckKind, CheckLog
from tracker.uptime import UptimeMonitorRecord
from tracker.uptime_registry import UptimeRegistry

__all__ = [
    "CertificateRecord",
    "CertStatus",
    "CertificateRegistry",
    "CheckEvent",
    "CheckKind",
    "CheckLog",
    "UptimeMonitorRecord",
    "UptimeRegistry",
]
