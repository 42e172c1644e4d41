"""Audit — exchange log entries, secret masking, in-memory sink."""

from ravenview.audit.log import (
    MASK,
    ApiLog,
    ApiLogEntry,
    LoggedRequest,
    LoggedResponse,
    LogSink,
    build_log_entry,
    log_exchange,
)

__all__ = [
    "MASK",
    "ApiLog",
    "ApiLogEntry",
    "LoggedRequest",
    "LoggedResponse",
    "LogSink",
    "build_log_entry",
    "log_exchange",
]
