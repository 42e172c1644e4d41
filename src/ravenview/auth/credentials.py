"""Session credentials and token-refresh capabilities."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from pydantic import BaseModel, ConfigDict

logger = logging.getLogger(__name__)

RefreshFunction = Callable[[], Awaitable[str]]


class Credentials(BaseModel):
    """API root plus the bearer token in force. Immutable."""

    model_config = ConfigDict(frozen=True)

    base_url: str
    access_token: str

    def __repr__(self) -> str:
        return f"Credentials(base_url={self.base_url!r}, access_token='***')"


class CredentialsHolder:
    """Shared handle on the current Credentials.

    A refresh swaps in a whole new Credentials value; readers see either the
    old or the new token, never a mix.
    """

    def __init__(self, base_url: str, access_token: str) -> None:
        self._current = Credentials(base_url=base_url.rstrip("/"), access_token=access_token)

    @property
    def current(self) -> Credentials:
        return self._current

    @property
    def token(self) -> str:
        return self._current.access_token

    @property
    def base_url(self) -> str:
        return self._current.base_url

    def replace(self, access_token: str) -> Credentials:
        """Install a new token and return the new Credentials."""
        self._current = self._current.model_copy(update={"access_token": access_token})
        return self._current


class SingleFlightRefresh:
    """Collapses concurrent refresh calls onto one in-flight task.

    Callers arriving while a refresh is running await that same task and
    get its token (or its exception). Once it settles the next call starts
    a fresh refresh.
    """

    def __init__(self, refresh: RefreshFunction) -> None:
        self._refresh = refresh
        self._inflight: asyncio.Task[str] | None = None

    @property
    def in_flight(self) -> bool:
        return self._inflight is not None

    async def __call__(self) -> str:
        task = self._inflight
        if task is None:
            task = asyncio.ensure_future(self._refresh())
            self._inflight = task
            task.add_done_callback(self._clear)
        else:
            logger.debug("Joining in-flight token refresh")
        # shield: one cancelled waiter must not cancel the refresh for the rest
        return await asyncio.shield(task)

    def _clear(self, task: asyncio.Task[str]) -> None:
        if self._inflight is task:
            self._inflight = None
