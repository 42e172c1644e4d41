"""Authenticated request execution with one-shot refresh-and-retry on 401."""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from urllib.parse import urlsplit

import httpx
from pydantic import BaseModel, Field

from ravenview.audit.log import LogSink, log_exchange
from ravenview.auth.credentials import CredentialsHolder, RefreshFunction
from ravenview.errors.exceptions import TransportFailure

logger = logging.getLogger(__name__)

_UNAUTHORIZED = 401


class RequestDescriptor(BaseModel):
    """One HTTP request, minus its Authorization header."""

    method: str = "GET"
    url: str
    headers: dict[str, str] = Field(default_factory=dict)
    body: str | None = None
    endpoint: str | None = None  # audit label; defaults to path + query
    follow_redirects: bool = True

    @property
    def log_endpoint(self) -> str:
        if self.endpoint:
            return self.endpoint
        parts = urlsplit(self.url)
        return parts.path + (f"?{parts.query}" if parts.query else "")

    def with_bearer(self, token: str) -> RequestDescriptor:
        """Copy with ``Authorization: Bearer <token>`` attached."""
        headers = {k: v for k, v in self.headers.items() if k.lower() != "authorization"}
        headers["Authorization"] = f"Bearer {token}"
        return self.model_copy(update={"headers": headers})


Transport = Callable[[RequestDescriptor], Awaitable[httpx.Response]]


class HttpxTransport:
    """Transport backed by an ``httpx.AsyncClient``. The executor wraps its errors."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def __call__(self, request: RequestDescriptor) -> httpx.Response:
        response = await self._client.request(
            request.method,
            request.url,
            headers=request.headers,
            content=request.body.encode("utf-8") if request.body is not None else None,
            follow_redirects=request.follow_redirects,
        )
        await response.aread()
        return response


class AuthenticatingRequestExecutor:
    """Sends a request with the session's bearer token.

    On a 401 the refresh capability is called once. If it yields a token the
    request is re-sent exactly once and that second response is returned,
    whatever its status. If refresh fails, the original 401 is returned so
    the caller has a single channel (the response) to inspect.
    """

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    async def execute(
        self,
        request: RequestDescriptor,
        credentials: CredentialsHolder,
        refresh: RefreshFunction,
        log_sink: LogSink | None = None,
    ) -> httpx.Response:
        response = await self._send(request, credentials.token, log_sink)
        if response.status_code != _UNAUTHORIZED:
            return response

        logger.warning(
            "API call unauthorized (401) for %s %s. Attempting to refresh token.",
            request.method,
            request.log_endpoint,
        )
        try:
            new_token = await refresh()
        except Exception as e:
            logger.error(
                "Token refresh failed; returning the original 401 response: %s", e
            )
            return response

        credentials.replace(new_token)
        return await self._send(request, new_token, log_sink)

    async def _send(
        self,
        request: RequestDescriptor,
        token: str,
        log_sink: LogSink | None,
    ) -> httpx.Response:
        outgoing = request.with_bearer(token)
        try:
            response = await self._transport(outgoing)
        except httpx.TransportError as exc:
            raise TransportFailure(
                f"{request.method} {request.url} failed: {exc}",
                method=request.method,
                url=request.url,
                original=exc,
            ) from exc

        log_exchange(
            log_sink,
            request.log_endpoint,
            request.method,
            outgoing.headers,
            request.body,
            response.status_code,
            response.text,
            status_text=response.reason_phrase,
        )
        return response


async def execute_authenticated(
    request: RequestDescriptor,
    credentials: CredentialsHolder,
    refresh: RefreshFunction,
    log_sink: LogSink | None = None,
    *,
    transport: Transport | None = None,
) -> httpx.Response:
    """One-off form of ``AuthenticatingRequestExecutor.execute``.

    Without a *transport*, a throwaway ``httpx.AsyncClient`` is used.
    """
    if transport is not None:
        return await AuthenticatingRequestExecutor(transport).execute(
            request, credentials, refresh, log_sink
        )

    async with httpx.AsyncClient() as client:
        executor = AuthenticatingRequestExecutor(HttpxTransport(client))
        return await executor.execute(request, credentials, refresh, log_sink)
