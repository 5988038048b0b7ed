"""Error taxonomy for a single streaming completion.

Every error here is terminal for the invocation that raised it.  Nothing is
retried inside the engine; the caller decides whether to continue its loop.
"""

from __future__ import annotations


class StreamError(Exception):
    """Base class for streaming completion failures."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConnectionFailed(StreamError):
    """The endpoint could not be reached (bad URL, DNS, TCP or TLS)."""


class RequestFailed(StreamError):
    """Writing the request or reading the response failed mid-flight."""


class HttpError(StreamError):
    """The provider answered with status >= 400."""

    def __init__(self, status: int, message: str) -> None:
        super().__init__(message)
        self.status = status

    def __str__(self) -> str:
        return f"HTTP {self.status}: {self.message}"


class ApiError(StreamError):
    """The provider reported a semantic error instead of a completion."""
