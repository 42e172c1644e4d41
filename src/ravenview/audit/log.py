"""API audit log: append-only record of every HTTP exchange, secrets masked."""

from __future__ import annotations

import itertools
import json
import logging
from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

MASK = "********"
TOKEN_ENDPOINT = "/auth/token"

_SENSITIVE_HEADERS = frozenset({"authorization"})

_log_ids = itertools.count()


class LoggedRequest(BaseModel):
    method: str = "GET"
    headers: dict[str, str] = Field(default_factory=dict)
    body: str | None = None


class LoggedResponse(BaseModel):
    ok: bool
    status: int
    status_text: str = ""
    body: str = ""


class ApiLogEntry(BaseModel):
    """A single request/response exchange, as shown to an operator."""

    id: int
    timestamp: str
    endpoint: str
    request: LoggedRequest
    response: LoggedResponse


LogSink = Callable[[ApiLogEntry], None]


class ApiLog:
    """Append-only, queryable exchange log. Usable directly as a LogSink."""

    def __init__(self) -> None:
        self._entries: list[ApiLogEntry] = []

    def __call__(self, entry: ApiLogEntry) -> None:
        self.append(entry)

    def append(self, entry: ApiLogEntry) -> None:
        self._entries.append(entry)

    @property
    def entries(self) -> list[ApiLogEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def query_by_endpoint(self, endpoint: str) -> list[ApiLogEntry]:
        return [e for e in self._entries if e.endpoint == endpoint]

    def query_by_status(self, status: int) -> list[ApiLogEntry]:
        return [e for e in self._entries if e.response.status == status]

    def query_failures(self) -> list[ApiLogEntry]:
        return [e for e in self._entries if not e.response.ok]


# ── Masking ──


def mask_headers(headers: Mapping[str, str] | None) -> dict[str, str]:
    """Copy headers, wholly replacing credential-bearing values."""
    if not headers:
        return {}
    return {
        key: MASK if key.lower() in _SENSITIVE_HEADERS else value
        for key, value in headers.items()
    }


def mask_request_body(endpoint: str, body: str | None) -> str | None:
    """Replace ``api_key.secret`` in a token request body."""
    if not body or not _is_token_endpoint(endpoint):
        return body

    data = _load_json(body)
    if data is None:
        return body

    api_key = data.get("api_key")
    if isinstance(api_key, dict) and api_key.get("secret"):
        api_key["secret"] = MASK
    return json.dumps(data, indent=2)


def mask_response_body(endpoint: str, body: str) -> str:
    """Replace ``token`` in a token response body."""
    if not body or not _is_token_endpoint(endpoint):
        return body

    data = _load_json(body)
    if data is None:
        return body

    if data.get("token"):
        data["token"] = MASK
    return json.dumps(data, indent=2)


def _is_token_endpoint(endpoint: str) -> bool:
    return endpoint.split("?", 1)[0].rstrip("/") == TOKEN_ENDPOINT


def _load_json(body: str) -> dict[str, Any] | None:
    try:
        data = json.loads(body)
    except ValueError:
        # Unparseable bodies are logged as-is
        return None
    return data if isinstance(data, dict) else None


# ── Entry construction ──


def build_log_entry(
    endpoint: str,
    method: str,
    request_headers: Mapping[str, str] | None,
    request_body: str | None,
    status: int,
    response_body: str,
    status_text: str = "",
) -> ApiLogEntry:
    """Build a masked ApiLogEntry from the raw pieces of one exchange."""
    return ApiLogEntry(
        id=next(_log_ids),
        timestamp=datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
        endpoint=endpoint,
        request=LoggedRequest(
            method=method.upper(),
            headers=mask_headers(request_headers),
            body=mask_request_body(endpoint, request_body),
        ),
        response=LoggedResponse(
            ok=200 <= status < 300,
            status=status,
            status_text=status_text,
            body=mask_response_body(endpoint, response_body),
        ),
    )


def log_exchange(
    sink: LogSink | None,
    endpoint: str,
    method: str,
    request_headers: Mapping[str, str] | None,
    request_body: str | None,
    status: int,
    response_body: str,
    status_text: str = "",
) -> ApiLogEntry:
    """Build an entry and hand it to *sink*. Sink errors never reach the caller."""
    entry = build_log_entry(
        endpoint,
        method,
        request_headers,
        request_body,
        status,
        response_body,
        status_text=status_text,
    )
    if sink is not None:
        try:
            sink(entry)
        except Exception as e:
            logger.warning("Audit sink failed for %s %s: %s", method, endpoint, e)
    return entry
