"""Tests for credentials holder and single-flight refresh."""

import asyncio

import httpx
import pydantic
import pytest

from ravenview.auth.credentials import Credentials, CredentialsHolder, SingleFlightRefresh
from ravenview.auth.executor import AuthenticatingRequestExecutor, RequestDescriptor
from tests.conftest import API_URL, ScriptedTransport


class TestCredentials:
    def test_frozen(self):
        creds = Credentials(base_url=API_URL, access_token="t")
        with pytest.raises(pydantic.ValidationError):
            creds.access_token = "other"

    def test_repr_hides_token(self):
        creds = Credentials(base_url=API_URL, access_token="super-secret")
        assert "super-secret" not in repr(creds)


class TestCredentialsHolder:
    def test_strips_trailing_slash(self):
        holder = CredentialsHolder(f"{API_URL}/", "t")
        assert holder.base_url == API_URL

    def test_replace_swaps_whole_value(self):
        holder = CredentialsHolder(API_URL, "old")
        before = holder.current

        after = holder.replace("new")

        assert holder.current is after
        assert after.access_token == "new"
        assert after.base_url == API_URL
        assert before.access_token == "old"


class TestSingleFlightRefresh:
    async def test_concurrent_callers_share_one_refresh(self):
        calls = 0
        gate = asyncio.Event()

        async def refresh() -> str:
            nonlocal calls
            calls += 1
            await gate.wait()
            return f"token-{calls}"

        single = SingleFlightRefresh(refresh)
        waiters = [asyncio.create_task(single()) for _ in range(5)]
        await asyncio.sleep(0)
        assert single.in_flight
        gate.set()

        tokens = await asyncio.gather(*waiters)

        assert calls == 1
        assert tokens == ["token-1"] * 5
        assert not single.in_flight

    async def test_sequential_calls_refresh_again(self):
        calls = 0

        async def refresh() -> str:
            nonlocal calls
            calls += 1
            return f"token-{calls}"

        single = SingleFlightRefresh(refresh)
        assert await single() == "token-1"
        assert await single() == "token-2"

    async def test_failure_shared_then_cleared(self):
        attempts = 0

        async def refresh() -> str:
            nonlocal attempts
            attempts += 1
            await asyncio.sleep(0.001)
            if attempts == 1:
                raise RuntimeError("idp down")
            return "recovered"

        single = SingleFlightRefresh(refresh)
        results = await asyncio.gather(single(), single(), return_exceptions=True)

        assert all(isinstance(r, RuntimeError) for r in results)
        assert attempts == 1
        assert await single() == "recovered"

    async def test_parallel_401s_refresh_once_with_wrapper(self):
        calls = 0

        async def refresh() -> str:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.005)
            return "token-2"

        async def transport(request: RequestDescriptor) -> httpx.Response:
            await asyncio.sleep(0)
            ok = request.headers["Authorization"] == "Bearer token-2"
            return httpx.Response(200 if ok else 401)

        holder = CredentialsHolder(API_URL, "token-1")
        executor = AuthenticatingRequestExecutor(transport)
        single = SingleFlightRefresh(refresh)
        request = RequestDescriptor(url=f"{API_URL}/ravens")

        responses = await asyncio.gather(
            *(executor.execute(request, holder, single) for _ in range(4))
        )

        assert [r.status_code for r in responses] == [200] * 4
        assert calls == 1

    async def test_parallel_401s_refresh_independently_without_wrapper(self):
        calls = 0

        async def refresh() -> str:
            nonlocal calls
            calls += 1
            return f"token-{calls + 1}"

        holder = CredentialsHolder(API_URL, "token-1")
        transport = ScriptedTransport(httpx.Response(401))
        executor = AuthenticatingRequestExecutor(transport)
        request = RequestDescriptor(url=f"{API_URL}/ravens")

        await asyncio.gather(*(executor.execute(request, holder, refresh) for _ in range(3)))

        assert calls == 3
