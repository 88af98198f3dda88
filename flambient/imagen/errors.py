"""
Remote editing service error types.

Transient errors (timeouts, connection resets, 5xx, 429) are retried inside
the client and only surface once retries are exhausted. Fatal errors
(4xx, explicit failed status) propagate immediately.
"""

from typing import Optional


class ImagenError(Exception):
    """Base exception for all remote editing failures."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class TransientImagenError(ImagenError):
    """Timeouts, dropped connections and retryable server responses."""
    pass


class FatalImagenError(ImagenError):
    """Authentication, validation or malformed-response failures."""
    pass


class ImagenConfigurationError(ImagenError):
    """Raised when the client is missing required configuration."""

    def __init__(self, reason: str):
        super().__init__(f"Imagen client misconfigured: {reason}")


class RemoteEditFailedError(FatalImagenError):
    """Raised when the service reports a failed edit or export."""

    def __init__(self, phase: str, status: str, detail: Optional[str] = None):
        self.phase = phase
        self.status = status
        self.detail = detail
        message = f"Remote {phase} failed with status '{status}'"
        if detail:
            message += f": {detail}"
        super().__init__(message)


class PollingTimeoutError(ImagenError):
    """Raised when a remote operation does not finish within the attempt budget."""

    def __init__(self, phase: str, attempts: int, interval: float):
        self.phase = phase
        self.attempts = attempts
        self.interval = interval
        super().__init__(
            f"Remote {phase} did not finish after {attempts} checks "
            f"({attempts * interval / 60:.0f} minutes)"
        )
