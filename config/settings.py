"""Project-wide settings and defaults."""

import os
from pathlib import Path

# Base paths
PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = Path(os.environ.get("CERTWATCH_DATA_DIR", str(PROJECT_ROOT / "data")))

# File names inside the data directory
CERTIFICATES_FILE = "certificates.json"
UPTIME_MONITORS_FILE = "uptime_monitors.json"
CHECK_EVENTS_FILE = "check_events.json"
SNAPSHOTS_DIRNAME = "snapshots"

# Certificate monitoring
CERT_RENEWAL_THRESHOLD_DAYS = int(os.environ.get("CERT_RENEWAL_THRESHOLD_DAYS", "30"))
CERT_CHECK_INTERVAL_HOURS = int(os.environ.get("CERT_CHECK_INTERVAL_HOURS", "24"))
CERT_STARTUP_DELAY_SECONDS = int(os.environ.get("CERT_STARTUP_DELAY_SECONDS", "10"))
CERT_CHECK_PAUSE_SECONDS = float(os.environ.get("CERT_CHECK_PAUSE_SECONDS", "1"))
TLS_TIMEOUT_SECONDS = int(os.environ.get("TLS_TIMEOUT_SECONDS", "10"))
OPENSSL_TIMEOUT_SECONDS = int(os.environ.get("OPENSSL_TIMEOUT_SECONDS", "15"))

# Uptime monitoring
UPTIME_CHECK_INTERVAL_MINUTES = int(os.environ.get("UPTIME_CHECK_INTERVAL_MINUTES", "5"))
UPTIME_STARTUP_DELAY_SECONDS = int(os.environ.get("UPTIME_STARTUP_DELAY_SECONDS", "5"))
HTTP_TIMEOUT_SECONDS = int(os.environ.get("HTTP_TIMEOUT_SECONDS", "12"))

# Let's Encrypt / ACME
LETSENCRYPT_LIVE_DIR = Path(os.environ.get("LETSENCRYPT_LIVE_DIR", "/etc/letsencrypt/live"))
CERTBOT_PATH = os.environ.get("CERTBOT_PATH", "/usr/bin/certbot")
CERTBOT_USE_SUDO = os.environ.get("CERTBOT_USE_SUDO", "true").lower() == "true"
CERTBOT_STAGING = os.environ.get("CERTBOT_STAGING", "false").lower() == "true"
ACME_EMAIL = os.environ.get("ACME_EMAIL", "")
ACME_TIMEOUT_SECONDS = int(os.environ.get("ACME_TIMEOUT_SECONDS", "300"))

# Front-end web server
NGINX_CONFIG_PATHS = [
    Path(p) for p in os.environ.get(
        "NGINX_CONFIG_PATHS",
        "/etc/nginx/sites-available:/etc/nginx/conf.d:/etc/nginx/nginx.conf",
    ).split(os.pathsep) if p
]
WEBSERVER_RELOAD_COMMAND = os.environ.get("WEBSERVER_RELOAD_COMMAND", "systemctl reload nginx").split()
RELOAD_TIMEOUT_SECONDS = int(os.environ.get("RELOAD_TIMEOUT_SECONDS", "10"))

# Scheduler
SCHEDULER_ENABLED = os.environ.get("SCHEDULER_ENABLED", "true").lower() == "true"

# Logging
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
