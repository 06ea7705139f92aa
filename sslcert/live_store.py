"""Read-only access to the ACME client's live certificate directory tree.

Layout: ``<live_dir>/<cert-name>/fullchain.pem``, one directory per issued
identity. The directory name is only a hint; the certificate's own SAN list
decides which domains it covers.
"""

import logging
from pathlib import Path
from typing import Optional

from sslcert.certinfo import CertInfo, load_pem_file
from sslcert.utils.helpers import normalize_domain, www_variant

logger = logging.getLogger(__name__)


class LiveCertificateStore:
    """Locate and parse certificates under a live-certificate directory."""

    CERT_FILENAME = "fullchain.pem"

    def __init__(self, live_dir: str | Path):
        self.live_dir = Path(live_dir)

    def path_for(self, cert_name: str) -> Path:
        return self.live_dir / cert_name / self.CERT_FILENAME

    def identities(self) -> list[Path]:
        """Return every ``fullchain.pem`` under the live directory.

        Raises:
            OSError: if the directory exists but cannot be listed.
        """
        if not self.live_dir.is_dir():
            return []
        found = []
        for entry in sorted(self.live_dir.iterdir()):
            cert_path = entry / self.CERT_FILENAME
            if entry.is_dir() and cert_path.is_file():
                found.append(cert_path)
        return found

    def read(self, cert_path: str | Path) -> CertInfo:
        return load_pem_file(cert_path, source="filesystem")

    def find_certificate_path(self, domain: str) -> Optional[Path]:
        """Find the certificate covering ``domain``.

        Tries ``<live>/<domain>``, then the ``www.`` variant, then scans
        every stored certificate's domain set.
        """
        key = normalize_domain(domain)
        if not key:
            return None
        for candidate in (key, www_variant(key)):
            cert_path = self.path_for(candidate)
            if cert_path.is_file():
                return cert_path

        for cert_path in self.identities():
            try:
                info = self.read(cert_path)
            except (OSError, ValueError) as exc:
                logger.debug("Skipping unreadable certificate %s: %s", cert_path, exc)
                continue
            if info.covers(key):
                return cert_path
        return None

    @staticmethod
    def cert_name(cert_path: str | Path) -> str:
        """The ACME client's certificate name: the identity's directory name."""
        return Path(cert_path).parent.name
