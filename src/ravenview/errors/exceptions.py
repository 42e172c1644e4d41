"""Custom exception hierarchy for ravenview."""

from __future__ import annotations

from typing import Any


class RavenViewError(Exception):
    """Base exception for all ravenview errors."""

    def __init__(self, message: str = "", **kwargs: Any) -> None:
        super().__init__(message)
        self.message = message


class InvalidArgumentError(RavenViewError, ValueError):
    """Malformed input to a ravenview operation. Fatal, never retried.

    Examples: non-positive concurrency, empty raven uuid, bad date string.
    """


class TaskFailure(RavenViewError):
    """A captured processor failure being re-raised by its caller."""

    def __init__(
        self,
        message: str = "",
        index: int | None = None,
        original: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.index = index
        self.original = original


class BatchCancelledError(RavenViewError):
    """A concurrency batch stopped early because its cancel event was set."""

    def __init__(self, message: str = "", completed: int = 0, total: int = 0) -> None:
        super().__init__(message)
        self.completed = completed
        self.total = total


class TransportFailure(RavenViewError):
    """Network-level failure with no HTTP response at all. Not retried."""

    def __init__(
        self,
        message: str = "",
        method: str | None = None,
        url: str | None = None,
        original: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.method = method
        self.url = url
        self.original = original


class RefreshFailure(RavenViewError):
    """The token refresh capability failed.

    Swallowed by the request executor, which returns the original 401 instead.
    """

    def __init__(self, message: str = "", original: Exception | None = None) -> None:
        super().__init__(message)
        self.original = original


class ApiError(RavenViewError):
    """The vendor API answered with a non-success status."""

    def __init__(
        self,
        message: str = "",
        http_status: int | None = None,
        body: str = "",
    ) -> None:
        super().__init__(message)
        self.http_status = http_status
        self.body = body


class AuthorizationExpiredError(ApiError):
    """A 401 survived refresh-and-retry; the session has ended."""

    def __init__(self, message: str = "", body: str = "") -> None:
        super().__init__(message, http_status=401, body=body)


class ResponseParseError(RavenViewError):
    """A success response whose body could not be interpreted."""

    def __init__(self, message: str = "", body: str = "") -> None:
        super().__init__(message)
        self.body = body
