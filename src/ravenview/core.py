"""Top-level entry point: RavenView batch operations over a session."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Any

from ravenview.api.client import RavenApiClient
from ravenview.concurrency.limiter import TaskResult, capture_errors, run_with_concurrency
from ravenview.config.defaults import (
    DEFAULT_DETAILS_CONCURRENCY,
    DEFAULT_GEOFENCE_CONCURRENCY,
    DEFAULT_MEDIA_CONCURRENCY,
    DEFAULT_MESSAGE_CONCURRENCY,
    DEFAULT_NHTSA_URL,
    DEFAULT_REQUEST_TIMEOUT,
)
from ravenview.errors.exceptions import InvalidArgumentError
from ravenview.session import RavenSession
from ravenview.types import (
    ApiCredentials,
    BulkResult,
    Geofence,
    GeofenceRow,
    MediaContent,
    RavenDetails,
    RavenSummary,
)

logger = logging.getLogger(__name__)


class RavenView:
    """Fleet operations with explicit failure policies.

    Fail-fast batches (fleet load, bulk geofence upload) abort on the first
    error. Partial-success batches (media, driver messages) wrap their
    processor with ``capture_errors`` and report per-item outcomes.
    """

    def __init__(
        self,
        session: RavenSession,
        media_concurrency: int = DEFAULT_MEDIA_CONCURRENCY,
        geofence_concurrency: int = DEFAULT_GEOFENCE_CONCURRENCY,
        message_concurrency: int = DEFAULT_MESSAGE_CONCURRENCY,
        details_concurrency: int = DEFAULT_DETAILS_CONCURRENCY,
    ) -> None:
        self._session = session
        self._media_concurrency = media_concurrency
        self._geofence_concurrency = geofence_concurrency
        self._message_concurrency = message_concurrency
        self._details_concurrency = details_concurrency

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> RavenView:
        """Build from a merged config dict (see ``load_config_hierarchy``)."""
        missing = [k for k in ("api_url", "api_key", "api_secret") if not config.get(k)]
        if missing:
            raise InvalidArgumentError(f"Missing API configuration: {', '.join(missing)}")

        session = RavenSession(
            ApiCredentials(
                api_url=config["api_url"],
                api_key=config["api_key"],
                api_secret=config["api_secret"],
            ),
            single_flight_refresh=bool(config.get("single_flight_refresh", False)),
            timeout=config.get("request_timeout", DEFAULT_REQUEST_TIMEOUT),
            nhtsa_url=config.get("nhtsa_url", DEFAULT_NHTSA_URL),
        )
        return cls(
            session,
            media_concurrency=config.get("media_concurrency", DEFAULT_MEDIA_CONCURRENCY),
            geofence_concurrency=config.get("geofence_concurrency", DEFAULT_GEOFENCE_CONCURRENCY),
            message_concurrency=config.get("message_concurrency", DEFAULT_MESSAGE_CONCURRENCY),
            details_concurrency=config.get("details_concurrency", DEFAULT_DETAILS_CONCURRENCY),
        )

    @property
    def session(self) -> RavenSession:
        return self._session

    @property
    def client(self) -> RavenApiClient:
        return self._session.client

    async def __aenter__(self) -> RavenView:
        try:
            await self._session.login()
        except BaseException:
            await self._session.close()
            raise
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self._session.close()

    async def fetch_fleet(self, include_vehicle_info: bool = True) -> list[RavenDetails]:
        """List every raven with its details, in list order. Fail-fast."""
        client = self.client
        summaries = await client.get_ravens()
        if not summaries:
            return []

        async def load(summary: RavenSummary) -> RavenDetails:
            raven = await client.get_raven(summary)
            if include_vehicle_info:
                raven.vehicle_info = await client.get_vehicle_info(raven.vehicle_vin)
            return raven

        return await run_with_concurrency(summaries, load, self._details_concurrency)

    async def fetch_event_media(
        self,
        raven_uuid: str,
        media_ids: Sequence[str],
        cancel_event: asyncio.Event | None = None,
    ) -> list[TaskResult[MediaContent]]:
        """Download media; one failed item never aborts the rest."""
        client = self.client

        async def fetch(media_id: str) -> MediaContent:
            return await client.get_media_content(raven_uuid, media_id)

        results = await run_with_concurrency(
            media_ids,
            capture_errors(fetch),
            self._media_concurrency,
            cancel_event=cancel_event,
        )
        failed = sum(1 for r in results if not r.ok)
        if failed:
            logger.warning("%d of %d media downloads failed", failed, len(results))
        return results

    async def bulk_create_geofences(self, rows: Sequence[GeofenceRow]) -> list[Geofence]:
        """Create geofences from upload rows. The first failure aborts the batch."""
        client = self.client

        async def create(row: GeofenceRow) -> Geofence:
            return await client.create_geofence(row.form, row.shape)

        created = await run_with_concurrency(rows, create, self._geofence_concurrency)
        logger.info("Created %d geofences", len(created))
        return created

    async def bulk_send_driver_message(
        self,
        raven_uuids: Sequence[str],
        message: str,
        duration_minutes: int,
    ) -> BulkResult:
        """Send one driver message to many ravens and count the outcomes."""
        client = self.client
        duration_seconds = duration_minutes * 60

        async def send(uuid: str) -> str:
            await client.set_driver_message(uuid, message, duration_seconds)
            return uuid

        results = await run_with_concurrency(
            raven_uuids, capture_errors(send), self._message_concurrency
        )

        bulk = BulkResult()
        for result in results:
            if result.ok:
                bulk.success += 1
            else:
                bulk.error += 1
                bulk.failed_ids.append(raven_uuids[result.index])
                logger.error(
                    "Failed to send message to %s: %s", raven_uuids[result.index], result.error
                )
        return bulk
