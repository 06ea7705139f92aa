"""HTTP(S) liveness probe."""

import logging
import time
from dataclasses import dataclass
from typing import Optional

import httpx

from config.settings import HTTP_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


@dataclass
class ProbeResult:
    """Result of one GET against a monitored URL."""

    url: str
    ok: bool
    status_code: Optional[int] = None
    response_time_ms: Optional[int] = None
    error: Optional[str] = None
    body: bytes = b""


class HttpProbe:
    """GET a URL with a bounded timeout; only 2xx counts as up."""

    def __init__(self, timeout: float = HTTP_TIMEOUT_SECONDS, transport: httpx.BaseTransport = None):
        self.timeout = timeout
        self.transport = transport

    def probe(self, url: str) -> ProbeResult:
        start = time.monotonic()
        try:
            with httpx.Client(
                timeout=self.timeout, follow_redirects=True, transport=self.transport,
            ) as client:
                response = client.get(url)
        except httpx.TimeoutException:
            return ProbeResult(
                url, False, response_time_ms=self._elapsed(start),
                error=f"Request timed out after {self.timeout}s",
            )
        except httpx.HTTPError as exc:
            return ProbeResult(
                url, False, response_time_ms=self._elapsed(start),
                error=str(exc) or type(exc).__name__,
            )

        ok = response.is_success
        return ProbeResult(
            url,
            ok,
            status_code=response.status_code,
            response_time_ms=self._elapsed(start),
            error=None if ok else f"HTTP {response.status_code}",
            body=response.content,
        )

    @staticmethod
    def _elapsed(start: float) -> int:
        return int((time.monotonic() - start) * 1000)
