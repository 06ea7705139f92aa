"""Backend service wiring for the web API, the CLI and the scheduler."""

from dataclasses import dataclass
from pathlib import Path

from flask import current_app

from config.settings import (
    ACME_EMAIL,
    CERT_CHECK_PAUSE_SECONDS,
    CERT_RENEWAL_THRESHOLD_DAYS,
    CERTIFICATES_FILE,
    CHECK_EVENTS_FILE,
    DATA_DIR,
    HTTP_TIMEOUT_SECONDS,
    LETSENCRYPT_LIVE_DIR,
    NGINX_CONFIG_PATHS,
    SNAPSHOTS_DIRNAME,
    UPTIME_MONITORS_FILE,
)

EXTENSION_KEY = "certwatch"


@dataclass
class Services:
    """The long-lived objects shared by every request and job."""

    certificate_monitor: "CertificateMonitor"
    uptime_monitor: "UptimeMonitor"
    check_log: "CheckLog"
    snapshots: "SnapshotStore"
    data_dir: Path


def build_services(
    data_dir: str | Path = None,
    live_dir: str | Path = None,
    proxy_config_paths: list = None,
    inspector=None,
    renewal_tool=None,
    reloader=None,
    probe=None,
    pause_seconds: float = None,
) -> Services:
    """Create the monitors; any collaborator can be replaced (tests pass fakes)."""
    from sslcert.discovery import DomainDiscovery
    from sslcert.inspector import CertificateInspector
    from sslcert.live_store import LiveCertificateStore
    from sslcert.monitor import CertificateMonitor
    from sslcert.renewal import CertbotTool, RenewalDriver, WebServerReloader
    from tracker.certificate_registry import CertificateRegistry
    from tracker.check_log import CheckLog
    from tracker.uptime_registry import UptimeRegistry
    from uptime.monitor import UptimeMonitor
    from uptime.probe import HttpProbe
    from uptime.snapshots import SnapshotStore

    data_dir = Path(data_dir) if data_dir else DATA_DIR
    store = LiveCertificateStore(live_dir or LETSENCRYPT_LIVE_DIR)
    inspector = inspector or CertificateInspector.default(store)
    check_log = CheckLog(data_dir / CHECK_EVENTS_FILE)
    snapshots = SnapshotStore(data_dir / SNAPSHOTS_DIRNAME, relative_to=data_dir)

    renewal = RenewalDriver(
        tool=renewal_tool or CertbotTool(),
        inspector=inspector,
        store=store,
        reloader=reloader or WebServerReloader(),
        email=ACME_EMAIL,
    )
    certificate_monitor = CertificateMonitor(
        registry=CertificateRegistry(
            data_dir / CERTIFICATES_FILE, default_threshold=CERT_RENEWAL_THRESHOLD_DAYS,
        ),
        inspector=inspector,
        discovery=DomainDiscovery(
            store,
            NGINX_CONFIG_PATHS if proxy_config_paths is None else proxy_config_paths,
        ),
        renewal=renewal,
        check_log=check_log,
        pause_seconds=CERT_CHECK_PAUSE_SECONDS if pause_seconds is None else pause_seconds,
    )
    uptime_monitor = UptimeMonitor(
        registry=UptimeRegistry(data_dir / UPTIME_MONITORS_FILE),
        probe=probe or HttpProbe(timeout=HTTP_TIMEOUT_SECONDS),
        snapshots=snapshots,
        check_log=check_log,
    )
    return Services(certificate_monitor, uptime_monitor, check_log, snapshots, data_dir)


def build_scheduler(services: Services):
    from web.scheduler import MonitorScheduler
    return MonitorScheduler(services.certificate_monitor, services.uptime_monitor)


def get_services() -> Services:
    return current_app.extensions[EXTENSION_KEY]


def get_certificate_monitor():
    return get_services().certificate_monitor


def get_uptime_monitor():
    return get_services().uptime_monitor


def get_check_log():
    return get_services().check_log


def get_scheduler():
    return current_app.extensions.get(f"{EXTENSION_KEY}.scheduler")
