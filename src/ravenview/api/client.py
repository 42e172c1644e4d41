"""Async client for the Raven vendor REST API."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any
from urllib.parse import urlencode, urljoin, urlsplit

import httpx
from pydantic import ValidationError

from ravenview.api import parsers
from ravenview.audit.log import TOKEN_ENDPOINT, LogSink, log_exchange
from ravenview.auth.credentials import CredentialsHolder, RefreshFunction
from ravenview.auth.executor import (
    AuthenticatingRequestExecutor,
    HttpxTransport,
    RequestDescriptor,
)
from ravenview.config.defaults import DEFAULT_NHTSA_URL, DEFAULT_REQUEST_TIMEOUT
from ravenview.errors.classify import parse_api_body, parse_json_body, raise_for_api_status
from ravenview.errors.exceptions import (
    ApiError,
    AuthorizationExpiredError,
    InvalidArgumentError,
    ResponseParseError,
    TransportFailure,
)
from ravenview.types import (
    Geofence,
    GeofenceFormData,
    GeofenceShape,
    MediaContent,
    RavenDetails,
    RavenEvent,
    RavenSettings,
    RavenSummary,
    VehicleInfo,
)

logger = logging.getLogger(__name__)

_JSON_HEADERS = {"Content-Type": "application/json", "Accept": "application/json"}
_ACCEPT_JSON = {"Accept": "application/json"}

# Applied to every geofence created from this client
_GEOFENCE_STYLE = {
    "fill-color": "#3388ff",
    "stroke-color": "#3388ff",
    "fill-opacity": 0.2,
    "stroke-opacity": 0.8,
    "weight": 3,
}


class RavenApiClient:
    """Typed wrapper over the vendor endpoints.

    Every authenticated call goes through AuthenticatingRequestExecutor, so a
    401 triggers one refresh-and-retry. A 401 that survives that raises
    AuthorizationExpiredError; other non-2xx statuses raise ApiError.
    """

    def __init__(
        self,
        credentials: CredentialsHolder,
        refresh: RefreshFunction,
        log_sink: LogSink | None = None,
        http_client: httpx.AsyncClient | None = None,
        executor: AuthenticatingRequestExecutor | None = None,
        nhtsa_url: str = DEFAULT_NHTSA_URL,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
    ) -> None:
        self._credentials = credentials
        self._refresh = refresh
        self._log_sink = log_sink
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._executor = executor or AuthenticatingRequestExecutor(HttpxTransport(self._http))
        self._nhtsa_url = nhtsa_url.rstrip("/")

    @property
    def credentials(self) -> CredentialsHolder:
        return self._credentials

    async def close(self) -> None:
        if self._owns_client:
            await self._http.aclose()

    async def __aenter__(self) -> RavenApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    # ── Authentication ──

    @staticmethod
    async def get_token(
        api_url: str,
        api_key: str,
        api_secret: str,
        http_client: httpx.AsyncClient,
        log_sink: LogSink | None = None,
    ) -> str:
        """Exchange an API key/secret pair for a bearer token."""
        url = f"{api_url.rstrip('/')}{TOKEN_ENDPOINT}"
        body = json.dumps({"api_key": {"key": api_key, "secret": api_secret}})
        headers = {"Content-Type": "application/json"}

        try:
            response = await http_client.post(url, content=body.encode("utf-8"), headers=headers)
        except httpx.TransportError as exc:
            raise TransportFailure(
                f"POST {url} failed: {exc}", method="POST", url=url, original=exc
            ) from exc

        log_exchange(
            log_sink,
            TOKEN_ENDPOINT,
            "POST",
            headers,
            body,
            response.status_code,
            response.text,
            status_text=response.reason_phrase,
        )

        if not response.is_success:
            raise ApiError(
                f"Failed to get token: {response.status_code} {response.text}",
                http_status=response.status_code,
                body=response.text,
            )

        data = parse_json_body(response, "get token")
        token = data.get("token") if isinstance(data, dict) else None
        if not isinstance(token, str) or not token:
            raise ResponseParseError("Token response did not contain a 'token' field")
        return token

    # ── Ravens ──

    async def get_ravens(self) -> list[RavenSummary]:
        response = await self._request("GET", "/ravens", "get ravens list")
        return parse_api_body(response, "get ravens list", parsers.parse_raven_summaries)

    async def get_raven_details(self, uuid: str) -> dict[str, Any]:
        """Detail fields for one raven, ready for ``parsers.merge_details``."""
        _require(uuid, "uuid")
        action = f"get details for raven {uuid}"
        response = await self._request("GET", f"/ravens/{uuid}", action)
        return parse_api_body(response, action, parsers.parse_raven_details)

    async def get_raven(self, summary: RavenSummary) -> RavenDetails:
        details = await self.get_raven_details(summary.uuid)
        try:
            return parsers.merge_details(summary, details)
        except ValidationError as exc:
            raise ResponseParseError(
                f"Failed to get details for raven {summary.uuid}: unexpected field types ({exc})"
            ) from exc

    async def get_raven_events(
        self,
        uuid: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[RavenEvent]:
        _require(uuid, "uuid")
        action = f"get events for raven {uuid}"
        params = parsers.day_bounds_params(start, end)
        response = await self._request("GET", f"/ravens/{uuid}/events", action, params=params)
        return parse_api_body(response, action, parsers.parse_events)

    async def get_raven_settings(self, uuid: str) -> RavenSettings:
        _require(uuid, "uuid")
        action = f"get settings for raven {uuid}"
        response = await self._request("GET", f"/ravens/{uuid}/settings", action)
        return parse_json_body(response, action)

    async def update_raven_settings(self, uuid: str, settings: RavenSettings) -> RavenSettings:
        """PATCH settings; an empty response body echoes the submitted settings."""
        _require(uuid, "uuid")
        action = f"update settings for raven {uuid}"
        response = await self._request(
            "PATCH", f"/ravens/{uuid}/settings", action, json_body=settings
        )
        if not response.text:
            return settings
        return parse_json_body(response, action)

    async def set_driver_message(self, uuid: str, message: str, duration_seconds: int) -> None:
        _require(uuid, "uuid")
        if duration_seconds <= 0:
            raise InvalidArgumentError(f"duration_seconds must be > 0, got {duration_seconds}")
        await self._request(
            "POST",
            f"/ravens/{uuid}/driver-message",
            f"set driver message for raven {uuid}",
            json_body={"message": message, "duration": duration_seconds},
        )

    async def clear_driver_message(self, uuid: str) -> None:
        _require(uuid, "uuid")
        await self._request(
            "DELETE",
            f"/ravens/{uuid}/driver-message",
            f"clear driver message for raven {uuid}",
        )

    async def get_trip_share_url(self, uuid: str) -> str:
        _require(uuid, "uuid")
        action = f"generate trip share link for raven {uuid}"
        response = await self._request("GET", f"/ravens/{uuid}/trip-share", action)
        data = parse_json_body(response, action)
        url = data.get("url") if isinstance(data, dict) else None
        if not isinstance(url, str):
            raise ResponseParseError(
                f"Failed to parse trip share URL from API response: {response.text}",
                body=response.text,
            )
        return url

    async def get_media_content(self, uuid: str, media_id: str) -> MediaContent:
        """Download event media.

        The content endpoint answers with a redirect to pre-signed storage;
        the second hop is fetched without credentials.
        """
        _require(uuid, "uuid")
        _require(media_id, "media_id")
        path = f"/ravens/{uuid}/media/{media_id}/content"
        response = await self._execute("GET", path, follow_redirects=False)

        if not 300 <= response.status_code < 400:
            if response.status_code == 401:
                raise AuthorizationExpiredError(
                    f"Failed to fetch media {media_id}: 401 {response.text}", body=response.text
                )
            raise ApiError(
                f"API did not provide a media redirect: {response.text or response.reason_phrase}",
                http_status=response.status_code,
                body=response.text,
            )

        location = response.headers.get("location")
        if not location:
            raise ApiError(
                "API responded with a redirect but did not provide a Location header.",
                http_status=response.status_code,
            )

        logger.debug("Following media redirect for %s/%s", uuid, media_id)
        try:
            media = await self._http.get(location)
        except httpx.TransportError as exc:
            raise TransportFailure(
                f"Media fetch failed: {exc}", method="GET", url=location, original=exc
            ) from exc

        if not media.is_success:
            raise ApiError(
                f"Error from media storage: {media.reason_phrase} ({media.status_code})",
                http_status=media.status_code,
                body=media.text,
            )

        return MediaContent(
            media_id=media_id,
            content_type=media.headers.get("content-type", "application/octet-stream"),
            data=media.content,
        )

    # ── Geofences ──

    async def get_geofences(self) -> list[Geofence]:
        response = await self._request("GET", "/geofences", "get geofences")
        return parse_api_body(response, "get geofences", parsers.parse_geofences)

    async def create_geofence(self, form: GeofenceFormData, shape: GeofenceShape) -> Geofence:
        """Create a geofence, then fetch it back from wherever the API put it.

        The API either answers 201 with a Location header or 200 with a
        ``geofence_id`` in the body.
        """
        payload = {
            "name": form.name,
            "description": form.description,
            "geojson": parsers.shape_to_geojson_string(shape, form.description),
            "start": datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z"),
            "end": parsers.end_of_day_iso(form.end),
            "notification": form.notification,
            "style": json.dumps(_GEOFENCE_STYLE),
        }
        response = await self._request("POST", "/geofences", "create geofence", json_body=payload)

        base = self._credentials.base_url
        if response.status_code == 201:
            location = response.headers.get("location")
            if not location:
                raise ResponseParseError(
                    "Geofence created (201), but API did not return a Location header."
                )
            location_url = urljoin(f"{base}/", location)
        elif response.status_code == 200 and response.text:
            data = parse_json_body(response, "read created geofence id")
            geofence_id = data.get("geofence_id") if isinstance(data, dict) else None
            if not geofence_id:
                raise ResponseParseError(
                    "Geofence created (200), but API response did not contain a geofence_id.",
                    body=response.text,
                )
            location_url = f"{base}/geofences/{geofence_id}"
        else:
            raise ResponseParseError(
                f"Geofence creation returned an unhandled success status: {response.status_code}"
            )

        parts = urlsplit(location_url)
        endpoint = parts.path + (f"?{parts.query}" if parts.query else "")
        descriptor = RequestDescriptor(
            method="GET",
            url=location_url,
            headers=dict(_ACCEPT_JSON),
            endpoint=endpoint,
        )
        fetched = await self._executor.execute(
            descriptor,
            self._credentials,
            self._refresh,
            self._log_sink,
        )
        raise_for_api_status(fetched, f"fetch created geofence at {location_url}")

        geofence = parsers.parse_geofence(parse_json_body(fetched, "read created geofence"))
        if geofence is None:
            raise ResponseParseError(
                "Successfully fetched new geofence, but failed to parse it.", body=fetched.text
            )
        return geofence

    async def update_geofence(
        self,
        geofence: Geofence,
        shape: GeofenceShape | None = None,
    ) -> Geofence:
        """PATCH a geofence's fields; *shape* replaces its geometry when given."""
        payload: dict[str, Any] = {
            "name": geofence.name,
            "description": geofence.description,
            "end": geofence.end,
            "notification": geofence.notification,
        }
        if shape is not None:
            payload["geojson"] = parsers.shape_to_geojson_string(shape, geofence.description)

        action = f"update geofence {geofence.uuid}"
        response = await self._request(
            "PATCH", f"/geofences/{geofence.uuid}", action, json_body=payload
        )
        updated = parsers.parse_geofence(parse_json_body(response, action))
        if updated is None:
            raise ResponseParseError(
                "Failed to parse updated geofence from API response.", body=response.text
            )
        return updated

    async def delete_geofence(self, geofence_uuid: str) -> None:
        _require(geofence_uuid, "geofence_uuid")
        await self._request(
            "DELETE", f"/geofences/{geofence_uuid}", f"delete geofence {geofence_uuid}"
        )

    # ── Third-party lookups ──

    async def get_vehicle_info(self, vin: str | None) -> VehicleInfo | None:
        """Decode make/model/year from NHTSA. Any failure yields None."""
        vin17 = parsers.normalize_vin(vin)
        if vin17 is None:
            return None

        try:
            response = await self._http.get(
                f"{self._nhtsa_url}/DecodeVin/{vin17}", params={"format": "json"}
            )
            if not response.is_success:
                logger.error("NHTSA API error for VIN %s: %s", vin17, response.reason_phrase)
                return None
            return parsers.parse_vin_decode(response.json())
        except (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.error("Failed to fetch vehicle info for VIN %s (used %s): %s", vin, vin17, e)
            return None

    # ── Plumbing ──

    async def _execute(
        self,
        method: str,
        path: str,
        params: dict[str, str] | None = None,
        json_body: Any = None,
        follow_redirects: bool = True,
    ) -> httpx.Response:
        query = urlencode(params) if params else ""
        endpoint = f"{path}?{query}" if query else path
        descriptor = RequestDescriptor(
            method=method,
            url=f"{self._credentials.base_url}{endpoint}",
            headers=dict(_JSON_HEADERS if json_body is not None else _ACCEPT_JSON),
            body=json.dumps(json_body) if json_body is not None else None,
            endpoint=endpoint,
            follow_redirects=follow_redirects,
        )
        return await self._executor.execute(
            descriptor, self._credentials, self._refresh, self._log_sink
        )

    async def _request(
        self,
        method: str,
        path: str,
        action: str,
        params: dict[str, str] | None = None,
        json_body: Any = None,
    ) -> httpx.Response:
        response = await self._execute(method, path, params=params, json_body=json_body)
        raise_for_api_status(response, action)
        return response


def _require(value: str, name: str) -> None:
    if not value:
        raise InvalidArgumentError(f"{name} must be a non-empty string")
