"""Domain discovery from the live-certificate tree and reverse-proxy configs."""

import logging
import re
from pathlib import Path

from sslcert.live_store import LiveCertificateStore
from sslcert.utils.helpers import is_wildcard, normalize_domain

logger = logging.getLogger(__name__)

SERVER_NAME_PATTERN = re.compile(
    r"^[^#\n]*?\bserver_name\s+([^;#]+);", re.IGNORECASE | re.MULTILINE
)
_IGNORED_NAMES = {"_", "default_server", "default", "localhost"}
_SKIPPED_SUFFIXES = ("~", ".bak", ".swp", ".orig")


def extract_server_names(content: str) -> list[str]:
    """Return host tokens from every ``server_name`` directive.

    Wildcards, regex names, variables and catch-all placeholders are skipped.
    """
    names = []
    for match in SERVER_NAME_PATTERN.finditer(content):
        for token in match.group(1).split():
            token = token.strip()
            if (
                not token
                or token.lower() in _IGNORED_NAMES
                or is_wildcard(token)
                or token.startswith(("~", ".", "$"))
                or "*" in token
            ):
                continue
            names.append(token)
    return names


class DomainDiscovery:
    """Enumerate candidate domains to monitor."""

    def __init__(self, store: LiveCertificateStore, proxy_config_paths: list[Path]):
        self.store = store
        self.proxy_config_paths = [Path(p) for p in proxy_config_paths]

    def discover(self) -> set[str]:
        """Union of both sources; each degrades to empty on failure."""
        domains = self.scan_certificate_store() | self.scan_proxy_configs()
        logger.info("Discovered %d domain(s)", len(domains))
        return domains

    def scan_certificate_store(self) -> set[str]:
        """Every non-wildcard name covered by a stored certificate."""
        domains = set()
        try:
            identities = self.store.identities()
        except OSError as exc:
            logger.warning("Cannot list certificates in %s: %s", self.store.live_dir, exc)
            return domains

        for cert_path in identities:
            try:
                info = self.store.read(cert_path)
            except (OSError, ValueError) as exc:
                hint = normalize_domain(LiveCertificateStore.cert_name(cert_path))
                logger.warning(
                    "Could not parse %s (%s); using directory name %s as a hint",
                    cert_path, exc, hint,
                )
                domains.add(hint)
                continue
            domains.update(normalize_domain(d) for d in info.monitorable_domains())
        return domains

    def scan_proxy_configs(self) -> set[str]:
        """Host names from ``server_name`` directives in the proxy config paths."""
        domains = set()
        for config_path in self.proxy_config_paths:
            try:
                if config_path.is_file():
                    files = [config_path]
                elif config_path.is_dir():
                    files = sorted(
                        f for f in config_path.iterdir()
                        if f.is_file() and not f.name.endswith(_SKIPPED_SUFFIXES)
                    )
                else:
                    continue
            except OSError as exc:
                logger.warning("Cannot read proxy config path %s: %s", config_path, exc)
                continue

            for config_file in files:
                try:
                    content = config_file.read_text(errors="replace")
                except OSError as exc:
                    logger.warning("Skipping unreadable proxy config %s: %s", config_file, exc)
                    continue
                domains.update(normalize_domain(n) for n in extract_server_names(content))
        return domains
