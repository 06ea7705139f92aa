"""Certificate inspection: ordered fallback strategies, first success wins.

1. ``network``    - TLS handshake with SNI, chain validation disabled.
2. ``openssl``    - ``openssl s_client`` against the same host:port.
3. ``filesystem`` - the local live-certificate directory.
"""

import logging
import socket
import ssl as _ssl
import subprocess

from config.settings import OPENSSL_TIMEOUT_SECONDS, TLS_TIMEOUT_SECONDS
from sslcert.certinfo import CertInfo, from_der, parse_openssl_output
from sslcert.errors import InspectionError, StrategyError
from sslcert.live_store import LiveCertificateStore
from sslcert.utils.helpers import parse_pem_chain

logger = logging.getLogger(__name__)

_DNS_FAILURE_MARKERS = (
    "getaddrinfo",
    "name or service not known",
    "nodename nor servname",
    "no address associated",
)


class InspectionStrategy:
    """One way of reading a domain's certificate."""

    name = "strategy"

    def inspect(self, domain: str) -> CertInfo:
        """Return the certificate for ``domain`` or raise StrategyError."""
        raise NotImplementedError


class NetworkStrategy(InspectionStrategy):
    """Read the peer certificate presented on ``domain:port``."""

    name = "network"

    def __init__(self, port: int = 443, timeout: int = TLS_TIMEOUT_SECONDS):
        self.port = port
        self.timeout = timeout

    def inspect(self, domain: str) -> CertInfo:
        # No verification: expired and self-signed certs must still yield metadata.
        context = _ssl.SSLContext(_ssl.PROTOCOL_TLS_CLIENT)
        context.check_hostname = False
        context.verify_mode = _ssl.CERT_NONE

        try:
            with socket.create_connection((domain, self.port), timeout=self.timeout) as sock:
                with context.wrap_socket(sock, server_hostname=domain) as tls:
                    der = tls.getpeercert(binary_form=True)
        except socket.gaierror as exc:
            raise StrategyError(f"cannot resolve {domain}: {exc}", domain, not_found=True) from exc
        except TimeoutError as exc:
            raise StrategyError(f"timed out after {self.timeout}s", domain) from exc
        except OSError as exc:
            raise StrategyError(f"TLS connection failed: {exc}", domain) from exc

        if not der:
            raise StrategyError("server presented no certificate", domain, not_found=True)
        try:
            return from_der(der, self.name)
        except ValueError as exc:
            raise StrategyError(f"unparseable peer certificate: {exc}", domain) from exc


class OpenSSLStrategy(InspectionStrategy):
    """Fetch the certificate with the openssl CLI and parse its text dump."""

    name = "openssl"

    def __init__(
        self,
        port: int = 443,
        timeout: int = OPENSSL_TIMEOUT_SECONDS,
        binary: str = "openssl",
    ):
        self.port = port
        self.timeout = timeout
        self.binary = binary

    def _run(self, args: list[str], stdin: str, domain: str) -> subprocess.CompletedProcess:
        try:
            return subprocess.run(
                [self.binary, *args],
                input=stdin,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except FileNotFoundError as exc:
            raise StrategyError(f"{self.binary} is not installed", domain) from exc
        except subprocess.TimeoutExpired as exc:
            raise StrategyError(
                f"{self.binary} {args[0]} timed out after {self.timeout}s", domain
            ) from exc

    def inspect(self, domain: str) -> CertInfo:
        fetched = self._run(
            [
                "s_client",
                "-servername", domain,
                "-connect", f"{domain}:{self.port}",
                "-showcerts",
            ],
            "",
            domain,
        )
        blocks = parse_pem_chain(fetched.stdout)
        if not blocks:
            stderr = fetched.stderr.strip()
            lowered = stderr.lower()
            not_found = any(marker in lowered for marker in _DNS_FAILURE_MARKERS)
            message = stderr.splitlines()[-1] if stderr else "no certificate in s_client output"
            raise StrategyError(message, domain, not_found=not_found)

        dumped = self._run(
            ["x509", "-noout", "-subject", "-issuer", "-startdate", "-enddate", "-serial", "-text"],
            blocks[0],
            domain,
        )
        if dumped.returncode != 0:
            raise StrategyError(
                dumped.stderr.strip() or f"x509 exited with {dumped.returncode}", domain
            )
        try:
            return parse_openssl_output(dumped.stdout, source=self.name)
        except ValueError as exc:
            raise StrategyError(str(exc), domain) from exc


class FilesystemStrategy(InspectionStrategy):
    """Read the certificate from the live-certificate directory."""

    name = "filesystem"

    def __init__(self, store: LiveCertificateStore):
        self.store = store

    def inspect(self, domain: str) -> CertInfo:
        try:
            cert_path = self.store.find_certificate_path(domain)
        except OSError as exc:
            raise StrategyError(f"cannot scan {self.store.live_dir}: {exc}", domain) from exc
        if cert_path is None:
            raise StrategyError(
                f"no certificate under {self.store.live_dir} covers {domain}",
                domain,
                not_found=True,
            )
        try:
            return self.store.read(cert_path)
        except (OSError, ValueError) as exc:
            raise StrategyError(f"cannot parse {cert_path}: {exc}", domain) from exc


class CertificateInspector:
    """Run strategies in order, short-circuiting on the first success."""

    def __init__(self, strategies: list[InspectionStrategy]):
        self.strategies = list(strategies)

    @classmethod
    def default(cls, store: LiveCertificateStore) -> "CertificateInspector":
        return cls([NetworkStrategy(), OpenSSLStrategy(), FilesystemStrategy(store)])

    def inspect(self, domain: str) -> CertInfo:
        """Inspect ``domain``.

        Raises:
            InspectionError: aggregating every strategy's failure when none succeed.
        """
        failures = []
        for strategy in self.strategies:
            try:
                info = strategy.inspect(domain)
            except StrategyError as exc:
                logger.debug("%s inspection of %s failed: %s", strategy.name, domain, exc.message)
                failures.append((strategy.name, exc))
                continue
            if failures:
                logger.info(
                    "Inspected %s via %s after %d failed strateg%s",
                    domain, strategy.name, len(failures), "y" if len(failures) == 1 else "ies",
                )
            return info
        raise InspectionError(domain, failures)
