"""Let's Encrypt renewal and issuance via the certbot CLI."""

import logging
import shutil
import subprocess
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from config.settings import (
    ACME_TIMEOUT_SECONDS,
    CERTBOT_PATH,
    CERTBOT_STAGING,
    CERTBOT_USE_SUDO,
    RELOAD_TIMEOUT_SECONDS,
    WEBSERVER_RELOAD_COMMAND,
)
from sslcert.certinfo import CertInfo
from sslcert.errors import InspectionError, RenewalFailure, ToolUnavailable
from sslcert.inspector import CertificateInspector
from sslcert.live_store import LiveCertificateStore

logger = logging.getLogger(__name__)


@dataclass
class RenewalResult:
    """Outcome of a renew or generate operation."""

    success: bool
    domain: str
    cert_name: str = ""
    cert_info: Optional[CertInfo] = None
    output: str = ""
    error: str = ""
    reloaded: bool = False

    def to_dict(self) -> dict:
        return {
            "success": self.success,
            "domain": self.domain,
            "cert_name": self.cert_name,
            "cert_info": self.cert_info.to_dict() if self.cert_info else None,
            "output": self.output,
            "error": self.error,
            "reloaded": self.reloaded,
        }


class RenewalTool:
    """An external ACME client."""

    name = "acme"

    def locate(self) -> Optional[str]:
        """Path to the executable, or None when it is not installed."""
        raise NotImplementedError

    def is_available(self) -> bool:
        return self.locate() is not None

    def renew(self, cert_name: str) -> str:
        """Renew the named certificate; returns tool output or raises RenewalFailure."""
        raise NotImplementedError

    def issue(self, domain: str, email: str = "") -> str:
        """Issue a first certificate; returns tool output or raises RenewalFailure."""
        raise NotImplementedError


class CertbotTool(RenewalTool):
    """Wraps the certbot CLI."""

    name = "certbot"

    def __init__(
        self,
        certbot_path: str = CERTBOT_PATH,
        use_sudo: bool = CERTBOT_USE_SUDO,
        staging: bool = CERTBOT_STAGING,
        timeout: int = ACME_TIMEOUT_SECONDS,
    ):
        self.certbot_path = certbot_path
        self.use_sudo = use_sudo
        self.staging = staging
        self.timeout = timeout

    def locate(self) -> Optional[str]:
        if self.certbot_path and Path(self.certbot_path).is_file():
            return self.certbot_path
        return shutil.which("certbot")

    def _command(self, *args: str) -> list[str]:
        path = self.locate()
        if path is None:
            raise ToolUnavailable("certbot is not installed or not on PATH")
        cmd = ["sudo", "-n", path] if self.use_sudo else [path]
        cmd.extend(args)
        if self.staging:
            cmd.append("--staging")
        return cmd

    def _run(self, cmd: list[str], domain: str) -> str:
        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise RenewalFailure(f"certbot timed out after {self.timeout}s", domain) from exc
        except FileNotFoundError as exc:
            raise ToolUnavailable(f"cannot execute {cmd[0]}", domain) from exc

        if result.returncode != 0:
            raise RenewalFailure(
                result.stderr.strip() or result.stdout.strip()
                or f"certbot exited with {result.returncode}",
                domain,
            )
        return result.stdout.strip()

    def renew(self, cert_name: str) -> str:
        cmd = self._command(
            "renew",
            "--cert-name", cert_name,
            "--non-interactive",
            "--no-random-sleep-on-renew",
            "--quiet",
        )
        return self._run(cmd, cert_name)

    def issue(self, domain: str, email: str = "") -> str:
        contact = ["--email", email] if email else ["--register-unsafely-without-email"]
        try:
            return self._run(self._certonly("--nginx", domain, contact), domain)
        except RenewalFailure as exc:
            logger.info("certbot nginx plugin failed for %s (%s); trying standalone", domain, exc.message)
        return self._run(self._certonly("--standalone", domain, contact), domain)

    def _certonly(self, plugin: str, domain: str, contact: list[str]) -> list[str]:
        return self._command(
            "certonly", plugin,
            "-d", domain,
            "--non-interactive",
            "--agree-tos",
            *contact,
            "--quiet",
        )


class WebServerReloader:
    """Reload the front-end web server so it serves renewed certificates."""

    def __init__(
        self,
        command: list[str] = None,
        use_sudo: bool = CERTBOT_USE_SUDO,
        timeout: int = RELOAD_TIMEOUT_SECONDS,
    ):
        self.command = list(command or WEBSERVER_RELOAD_COMMAND)
        self.use_sudo = use_sudo
        self.timeout = timeout

    def reload(self) -> bool:
        """Run the reload command; failure is logged, never raised."""
        if not self.command:
            return False
        cmd = ["sudo", "-n", *self.command] if self.use_sudo else list(self.command)
        try:
            result = subprocess.run(cmd, capture_output=True, text=True, timeout=self.timeout)
        except (subprocess.TimeoutExpired, OSError) as exc:
            logger.warning("Could not reload web server: %s", exc)
            return False
        if result.returncode != 0:
            logger.warning("Web server reload exited %d: %s", result.returncode, result.stderr.strip())
            return False
        logger.info("Web server reloaded")
        return True


class RenewalDriver:
    """Renew or issue certificates, reload the server and confirm by re-inspection."""

    def __init__(
        self,
        tool: RenewalTool,
        inspector: CertificateInspector,
        store: LiveCertificateStore,
        reloader: WebServerReloader,
        email: str = "",
    ):
        self.tool = tool
        self.inspector = inspector
        self.store = store
        self.reloader = reloader
        self.email = email

    def tool_available(self) -> bool:
        return self.tool.is_available()

    def tool_path(self) -> Optional[str]:
        return self.tool.locate()

    def _require_tool(self, domain: str) -> None:
        if not self.tool.is_available():
            raise ToolUnavailable(f"{self.tool.name} is not available", domain)

    def renew(self, domain: str, previous_valid_to: datetime = None) -> RenewalResult:
        """Renew the stored certificate covering ``domain``.

        The renewal only counts as successful once re-inspection shows a
        certificate, and one that expires later than ``previous_valid_to``
        when that is known.

        Raises:
            ToolUnavailable: the ACME client is not installed.
        """
        self._require_tool(domain)
        try:
            cert_path = self.store.find_certificate_path(domain)
        except OSError as exc:
            return RenewalResult(False, domain, error=f"cannot scan {self.store.live_dir}: {exc}")
        if cert_path is None:
            return RenewalResult(False, domain, error=f"no stored certificate covers {domain}")

        cert_name = self.store.cert_name(cert_path)
        logger.info("Renewing %s (certificate %s)", domain, cert_name)
        try:
            output = self.tool.renew(cert_name)
        except RenewalFailure as exc:
            logger.error("Renewal failed for %s: %s", domain, exc.message)
            return RenewalResult(False, domain, cert_name=cert_name, error=exc.message)

        result = RenewalResult(
            True, domain, cert_name=cert_name, output=output, reloaded=self.reloader.reload(),
        )
        try:
            result.cert_info = self.inspector.inspect(domain)
        except InspectionError as exc:
            logger.warning("Renewed %s but re-inspection failed: %s", domain, exc.message)
            result.success = False
            result.error = f"re-inspection failed: {exc.message}"
            return result

        valid_to = result.cert_info.valid_to
        if previous_valid_to is not None and valid_to <= previous_valid_to:
            logger.warning("%s reported success for %s but the certificate still expires %s",
                           self.tool.name, domain, valid_to.isoformat())
            result.success = False
            result.error = f"certificate was not replaced; it still expires {valid_to.isoformat()}"
        return result

    def generate(self, domain: str, email: str = "") -> RenewalResult:
        """Issue a first certificate for ``domain``.

        Raises:
            ToolUnavailable: the ACME client is not installed.
        """
        self._require_tool(domain)
        try:
            existing = self.store.find_certificate_path(domain)
        except OSError:
            existing = None
        if existing is not None:
            return RenewalResult(
                False, domain,
                cert_name=self.store.cert_name(existing),
                error=f"a certificate for {domain} already exists",
            )

        logger.info("Generating certificate for %s", domain)
        try:
            output = self.tool.issue(domain, email or self.email)
        except RenewalFailure as exc:
            logger.error("Certificate generation failed for %s: %s", domain, exc.message)
            return RenewalResult(False, domain, error=exc.message)

        return RenewalResult(True, domain, output=output, reloaded=self.reloader.reload())
