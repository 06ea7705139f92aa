"""Exceptions raised by the certificate and uptime monitors."""


class MonitorError(Exception):
    """Base exception for monitor operations."""

    def __init__(self, message: str, domain: str = None):
        self.message = message
        self.domain = domain
        super().__init__(message)


class StrategyError(MonitorError):
    """A single inspection strategy could not read the certificate."""

    def __init__(self, message: str, domain: str = None, not_found: bool = False):
        super().__init__(message, domain)
        self.not_found = not_found


class InspectionError(MonitorError):
    """Every inspection strategy failed for a domain."""

    def __init__(self, domain: str, failures: list[tuple[str, StrategyError]]):
        self.failures = failures
        detail = "; ".join(f"{name}: {exc.message}" for name, exc in failures)
        super().__init__(detail or "no inspection strategies configured", domain)

    @property
    def not_found(self) -> bool:
        """True when every strategy reported that no certificate exists."""
        return bool(self.failures) and all(exc.not_found for _, exc in self.failures)


class ToolUnavailable(MonitorError):
    """A required external CLI tool is not installed."""


class RenewalFailure(MonitorError):
    """The ACME client exited non-zero, timed out or could not locate the certificate."""


class PersistenceFailure(MonitorError):
    """A store could not be written."""


class PassInProgress(MonitorError):
    """Another check pass already holds the monitor."""


class RecordNotFound(MonitorError):
    """No record exists for the requested key."""
