"""Error handling — exception hierarchy and response classification."""

from ravenview.errors.exceptions import (
    ApiError,
    AuthorizationExpiredError,
    BatchCancelledError,
    InvalidArgumentError,
    RavenViewError,
    RefreshFailure,
    ResponseParseError,
    TaskFailure,
    TransportFailure,
)

__all__ = [
    "RavenViewError",
    "InvalidArgumentError",
    "TaskFailure",
    "BatchCancelledError",
    "TransportFailure",
    "RefreshFailure",
    "ApiError",
    "AuthorizationExpiredError",
    "ResponseParseError",
]
