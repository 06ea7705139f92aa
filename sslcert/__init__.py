"""
SSL Certificate Inspection and Renewal Module.

Reads certificate metadata from live hosts, the openssl CLI or the local
Let's Encrypt tree, discovers domains worth monitoring, and drives certbot
renewals. The monitoring passes themselves live in ``sslcert.monitor``.
"""

from sslcert.certinfo import CertInfo
from sslcert.discovery import DomainDiscovery
from sslcert.errors import (
    InspectionError,
    MonitorError,
    PassInProgress,
    PersistenceFailure,
    RecordNotFound,
    RenewalFailure,
    ToolUnavailable,
)
from sslcert.inspector import CertificateInspector
from sslcert.live_store import LiveCertificateStore
from sslcert.renewal import CertbotTool, RenewalDriver, RenewalResult, WebServerReloader

__all__ = [
    "CertInfo", "CertificateInspector", "LiveCertificateStore", "DomainDiscovery",
    "CertbotTool", "RenewalDriver", "RenewalResult", "WebServerReloader",
    "MonitorError", "InspectionError", "ToolUnavailable", "RenewalFailure",
    "PersistenceFailure", "PassInProgress", "RecordNotFound",
]
