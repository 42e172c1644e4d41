"""Login session: token acquisition, refresh, and the bound API client."""

from __future__ import annotations

import logging

import httpx

from ravenview.api.client import RavenApiClient
from ravenview.audit.log import ApiLog
from ravenview.auth.credentials import (
    CredentialsHolder,
    RefreshFunction,
    SingleFlightRefresh,
)
from ravenview.config.defaults import DEFAULT_NHTSA_URL, DEFAULT_REQUEST_TIMEOUT
from ravenview.errors.exceptions import RavenViewError, RefreshFailure
from ravenview.types import ApiCredentials

logger = logging.getLogger(__name__)


class RavenSession:
    """One operator login against one API root.

    ``refresh()`` re-runs the key/secret exchange. If that fails the session
    is cleared and RefreshFailure is raised; the request executor turns that
    into a surfaced 401.
    """

    def __init__(
        self,
        api_credentials: ApiCredentials,
        http_client: httpx.AsyncClient | None = None,
        api_log: ApiLog | None = None,
        single_flight_refresh: bool = False,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        nhtsa_url: str = DEFAULT_NHTSA_URL,
    ) -> None:
        self._api_credentials = api_credentials
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._api_log = api_log if api_log is not None else ApiLog()
        self._nhtsa_url = nhtsa_url
        self._refresh_fn: RefreshFunction = (
            SingleFlightRefresh(self.refresh) if single_flight_refresh else self.refresh
        )
        self._credentials: CredentialsHolder | None = None
        self._client: RavenApiClient | None = None

    @property
    def api_log(self) -> ApiLog:
        return self._api_log

    @property
    def logged_in(self) -> bool:
        return self._credentials is not None

    @property
    def credentials(self) -> CredentialsHolder | None:
        return self._credentials

    @property
    def client(self) -> RavenApiClient:
        if self._client is None:
            raise RavenViewError("Session is not logged in; call login() first")
        return self._client

    async def login(self) -> RavenApiClient:
        """Fetch a first token and bind a client to it."""
        token = await self._fetch_token()
        api_url = self._api_credentials.api_url
        self._credentials = CredentialsHolder(api_url, token)
        self._client = RavenApiClient(
            self._credentials,
            self._refresh_fn,
            log_sink=self._api_log,
            http_client=self._http,
            nhtsa_url=self._nhtsa_url,
        )
        logger.info("Logged in to %s", api_url)
        return self._client

    async def refresh(self) -> str:
        """Obtain a new token; clears the session if that is impossible."""
        try:
            token = await self._fetch_token()
        except Exception as exc:
            logger.error("Token refresh failed, ending session: %s", exc)
            self.clear()
            raise RefreshFailure(f"Token refresh failed: {exc}", original=exc) from exc
        logger.info("Token refreshed")
        return token

    def clear(self) -> None:
        """End the session; ``client`` raises until the next ``login()``."""
        self._credentials = None
        self._client = None

    async def close(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> RavenSession:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def _fetch_token(self) -> str:
        creds = self._api_credentials
        return await RavenApiClient.get_token(
            creds.api_url,
            creds.api_key,
            creds.api_secret,
            http_client=self._http,
            log_sink=self._api_log,
        )
