from __future__ import annotations

from collections.abc import Callable
from typing import Any

import httpx
import pytest

from ravenview.audit.log import ApiLog
from ravenview.auth.credentials import CredentialsHolder
from ravenview.auth.executor import RequestDescriptor

API_URL = "https://api.example.test/v1"
API_PREFIX = "/v1"

ResponseSpec = httpx.Response | Exception | Callable[[httpx.Request], httpx.Response]


class ScriptedTransport:
    """Transport stub: replays responses in order; the last one repeats."""

    def __init__(self, *responses: httpx.Response | Exception) -> None:
        self._responses = list(responses)
        self.requests: list[RequestDescriptor] = []

    async def __call__(self, request: RequestDescriptor) -> httpx.Response:
        self.requests.append(request)
        response = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(response, Exception):
            raise response
        return response

    @property
    def tokens_sent(self) -> list[str]:
        return [r.headers["Authorization"].removeprefix("Bearer ") for r in self.requests]


class FakeRavenApi:
    """Routes httpx requests by (method, path) to scripted responses.

    Paths are relative to the API root; absolute paths on other hosts
    (storage, NHTSA) are registered as-is.
    """

    def __init__(self) -> None:
        self._routes: dict[tuple[str, str], list[ResponseSpec]] = {}
        self.requests: list[httpx.Request] = []

    def add(self, method: str, path: str, *responses: ResponseSpec) -> None:
        self._routes[(method, path)] = list(responses)

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method and self._path(r) == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self._routes.get((request.method, self._path(request)))
        if not queue:
            return httpx.Response(404, json={"error": f"no route for {request.url}"})
        spec = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(spec, Exception):
            raise spec
        if callable(spec) and not isinstance(spec, httpx.Response):
            return spec(request)
        # Fresh copy so a repeating route never hands out a consumed response
        return httpx.Response(spec.status_code, headers=spec.headers, content=spec.content)

    @staticmethod
    def _path(request: httpx.Request) -> str:
        path = request.url.path
        if request.url.host == "api.example.test" and path.startswith(API_PREFIX):
            return path[len(API_PREFIX):]
        return path


def json_response(status: int, data: Any = None, **kwargs: Any) -> httpx.Response:
    if data is None:
        return httpx.Response(status, **kwargs)
    return httpx.Response(status, json=data, **kwargs)


@pytest.fixture
def fake_api() -> FakeRavenApi:
    return FakeRavenApi()


@pytest.fixture
async def http_client(fake_api):
    client = httpx.AsyncClient(transport=httpx.MockTransport(fake_api.handler))
    yield client
    await client.aclose()


@pytest.fixture
def api_log() -> ApiLog:
    return ApiLog()


@pytest.fixture
def credentials() -> CredentialsHolder:
    return CredentialsHolder(API_URL, "token-1")


@pytest.fixture
def token_refresher():
    """Refresh stub handing out token-2, token-3, ... and counting calls."""

    class Refresher:
        def __init__(self) -> None:
            self.calls = 0

        async def __call__(self) -> str:
            self.calls += 1
            return f"token-{self.calls + 1}"

    return Refresher()
