"""Error taxonomy shared by every provider adapter.

Every failure a provider call can produce is one of three kinds:

- ``Connection``: the transport could not establish or keep the connection
  (DNS, TCP, TLS).
- ``Timeout``: the configured connect or request timeout elapsed.
- ``Response``: everything else, including request validation failures,
  non-2xx HTTP statuses, malformed bodies and empty content.
"""
from __future__ import annotations

from typing import Optional

# Timeouts in seconds
DEFAULT_TIMEOUT = 25
CONNECTION_TIMEOUT = 8
DEEPSEEK_TIMEOUT = 35
STREAMING_READ_TIMEOUT = 120


class ApiError(Exception):
    """Base class for classified provider errors."""

    kind = "Api"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind} error: {self.message}"

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ApiError):
            return NotImplemented
        return type(self) is type(other) and self.message == other.message

    def __hash__(self) -> int:
        return hash((type(self).__name__, self.message))


class ApiConnectionError(ApiError):
    """Transport could not establish or maintain the connection."""

    kind = "Connection"


class ApiTimeoutError(ApiError):
    """Connect or request timeout elapsed."""

    kind = "Timeout"

    def __init__(self, message: str, timeout: Optional[float] = None):
        super().__init__(message)
        self.timeout = timeout

    @classmethod
    def after(cls, timeout: float) -> "ApiTimeoutError":
        return cls(f"Request timed out after {timeout:g}s", timeout=timeout)


class ApiResponseError(ApiError):
    """Validation failure, bad HTTP status or unusable response body."""

    kind = "Response"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.body = body

    @classmethod
    def from_status(cls, status_code: int, reason: str, body: str) -> "ApiResponseError":
        status_text = f"{status_code} {reason}".strip()
        return cls(f"HTTP {status_text}: {body}", status_code=status_code, body=body)
