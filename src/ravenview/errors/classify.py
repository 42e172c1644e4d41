"""Map surfaced HTTP responses onto the exception hierarchy."""

from __future__ import annotations

import json
import logging
from collections.abc import Callable
from typing import Any, TypeVar

import httpx
from pydantic import ValidationError

from ravenview.errors.exceptions import (
    ApiError,
    AuthorizationExpiredError,
    ResponseParseError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def raise_for_api_status(response: httpx.Response, action: str) -> None:
    """Raise if *response* is not a 2xx.

    A 401 reaching this point has already been through refresh-and-retry,
    so it means the session is over.
    """
    if response.is_success:
        return

    body = response.text
    message = f"Failed to {action}: {response.status_code} {body}"
    if response.status_code == 401:
        raise AuthorizationExpiredError(message, body=body)
    raise ApiError(message, http_status=response.status_code, body=body)


def parse_json_body(response: httpx.Response, action: str) -> Any:
    """Decode a success body as JSON, raising ResponseParseError on garbage."""
    body = response.text
    try:
        return json.loads(body)
    except ValueError as exc:
        logger.debug("Unparseable body while trying to %s: %r", action, body[:200])
        raise ResponseParseError(
            f"Failed to {action}: response was not valid JSON",
            body=body,
        ) from exc


def parse_api_body(response: httpx.Response, action: str, parser: Callable[[Any], T]) -> T:
    """Decode a success body and run *parser* over it.

    A body of the wrong shape surfaces as ResponseParseError, like a body
    that is not JSON at all.
    """
    data = parse_json_body(response, action)
    try:
        return parser(data)
    except (KeyError, TypeError, AttributeError, ValueError, ValidationError) as exc:
        logger.debug("Unexpected payload shape while trying to %s: %s", action, exc)
        raise ResponseParseError(
            f"Failed to {action}: unexpected response shape ({exc.__class__.__name__}: {exc})",
            body=response.text,
        ) from exc
