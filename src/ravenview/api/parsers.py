"""Translate vendor API payloads into ravenview models, and back."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime, time
from typing import Any

from ravenview.errors.exceptions import InvalidArgumentError
from ravenview.types import (
    Camera,
    Geofence,
    GeofenceShape,
    Location,
    ObdSnapshot,
    RavenDetails,
    RavenEvent,
    RavenSummary,
    ShapeData,
    ShapeType,
    VehicleInfo,
)

logger = logging.getLogger(__name__)

UNINITIALIZED_VIN = "UNINITIALIZED"
VIN_LENGTH = 17


def epoch_to_iso(seconds: float) -> str:
    """Epoch seconds → ISO-8601 UTC with millisecond precision and a Z suffix."""
    dt = datetime.fromtimestamp(seconds, tz=UTC)
    return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


# ── Ravens ──


def parse_raven_summaries(data: dict[str, Any]) -> list[RavenSummary]:
    """Map a ``GET /ravens`` body to summaries."""
    return [
        RavenSummary(
            uuid=raw["uuid"],
            name=raw.get("car_persona") or "Unnamed Vehicle",
            serial_number=raw.get("enclosure_serial_no"),
            vehicle_vin=raw.get("vin"),
            imei=raw.get("imei"),
            iccid=raw.get("iccid"),
            thing_name=raw.get("thing_name"),
            vehicle_id=raw.get("vehicle_id"),
        )
        for raw in data.get("results") or []
    ]


def parse_raven_details(data: dict[str, Any]) -> dict[str, Any]:
    """Map a ``GET /ravens/{uuid}`` body to RavenDetails fields.

    Returns only the fields the detail endpoint knows about, so callers can
    merge them over a RavenSummary. Location is dropped unless its timestamp
    is numeric. The OBD snapshot is kept only when at least one supported
    reading carries a valid timestamp; it is stamped with the newest one.
    """
    vehicle = data.get("vehicle") or {}
    details: dict[str, Any] = {
        "uuid": data.get("ravenUuid"),
        "serial_number": data.get("serialNo"),
        "online": data.get("online"),
        "engine_on": data.get("engineOn"),
        "unplugged": data.get("unplugged"),
        "vehicle_vin": vehicle.get("vin"),
    }

    location = data.get("lastLocation")
    if isinstance(location, dict) and _is_number(location.get("timestamp")):
        details["last_known_location"] = Location(
            latitude=location["latitude"],
            longitude=location["longitude"],
            timestamp=epoch_to_iso(location["timestamp"]),
        )

    if vehicle:
        snapshot = _parse_obd(vehicle)
        if snapshot is not None:
            details["last_known_obd_snapshot"] = snapshot

    return {k: v for k, v in details.items() if v is not None}


def _parse_obd(vehicle: dict[str, Any]) -> ObdSnapshot | None:
    readings: dict[str, float] = {}
    newest = 0.0

    for source, target in (("odometer", "odometer_km"), ("fuelLevel", "fuel_level_percentage")):
        reading = vehicle.get(source)
        if not isinstance(reading, dict) or not reading.get("supported"):
            continue
        if not _is_number(reading.get("value")):
            continue
        readings[target] = reading["value"]
        if _is_number(reading.get("timestamp")):
            newest = max(newest, reading["timestamp"])

    if not readings or newest <= 0:
        return None
    return ObdSnapshot(timestamp=epoch_to_iso(newest), **readings)


def merge_details(summary: RavenSummary, details: dict[str, Any]) -> RavenDetails:
    """Overlay detail fields on a summary; the summary uuid always wins."""
    merged = {**summary.model_dump(), **details, "uuid": summary.uuid}
    return RavenDetails(**merged)


# ── Events ──


def parse_events(data: dict[str, Any]) -> list[RavenEvent]:
    """Map a ``GET /ravens/{uuid}/events`` body to events."""
    return [parse_event(raw) for raw in data.get("results") or []]


def parse_event(raw: dict[str, Any]) -> RavenEvent:
    media = raw.get("media") or []
    road = [m["mediaId"] for m in media if m.get("camera") == Camera.ROAD and m.get("mediaId")]
    cabin = [m["mediaId"] for m in media if m.get("camera") == Camera.CABIN and m.get("mediaId")]

    fields: dict[str, Any] = {k: v for k, v in raw.items() if k not in RavenEvent.model_fields}
    fields.update(
        event_type=raw.get("type", ""),
        event_timestamp=epoch_to_iso(raw["timestamp"]),
        road_media_ids=road or None,
        cabin_media_ids=cabin or None,
    )

    coordinates = raw.get("coordinates")
    if isinstance(coordinates, list) and len(coordinates) == 2:
        fields["longitude"], fields["latitude"] = coordinates

    return RavenEvent(**fields)


def day_bounds_params(start: datetime | None, end: datetime | None) -> dict[str, str]:
    """Query params for an event range; *end* is widened to the end of its day."""
    params: dict[str, str] = {}
    if start is not None:
        params["start_timestamp"] = str(int(start.timestamp()))
    if end is not None:
        end_of_day = datetime.combine(end.date(), time(23, 59, 59, 999000), tzinfo=end.tzinfo)
        params["end_timestamp"] = str(int(end_of_day.timestamp()))
    return params


# ── Geofences ──


def parse_geofence(raw: dict[str, Any]) -> Geofence | None:
    """Map a raw geofence to a Geofence, or None if its shape is unusable.

    ``geojson`` arrives as a JSON string from list calls and as an object
    from create/update calls.
    """
    try:
        geojson = raw.get("geojson")
        if isinstance(geojson, str):
            geojson = json.loads(geojson or "{}")
        geojson = geojson or {}

        geometry = geojson.get("geometry") or {}
        properties = geojson.get("properties") or {}
        coords = geometry.get("coordinates")

        if geometry.get("type") == "Point" and isinstance(coords, list) and len(coords) == 2:
            shape_type = ShapeType.CIRCLE
            shape_data = ShapeData(center=(coords[1], coords[0]), radius=properties.get("radius"))
        elif geometry.get("type") == "Polygon" and isinstance(coords, list):
            shape_type = ShapeType.POLYGON
            shape_data = ShapeData(
                coordinates=[[(point[1], point[0]) for point in ring] for ring in coords]
            )
        else:
            logger.warning("Could not determine shape type for geofence: %s", raw)
            return None

        return Geofence(
            uuid=raw.get("geofence_id") or raw["uuid"],
            name=raw.get("name", ""),
            description=raw.get("description") or "",
            start=raw.get("start"),
            end=raw.get("end"),
            notification=raw.get("notification") or "",
            shape_type=shape_type,
            shape_data=shape_data,
        )
    except Exception as e:
        logger.error("Failed to parse geofence data %s: %s", raw, e)
        return None


def parse_geofences(data: dict[str, Any]) -> list[Geofence]:
    """Map a ``GET /geofences`` body, dropping entries that do not parse."""
    parsed = (parse_geofence(raw) for raw in data.get("results") or [])
    return [g for g in parsed if g is not None]


def shape_to_geojson_string(shape: GeofenceShape, address: str) -> str:
    """Serialise a shape the way the API stores it.

    Coordinates flip from [lat, lon] to GeoJSON's [lon, lat]; circles are a
    Point with the radius carried in ``properties``.
    """
    data = shape.shape_data
    properties: dict[str, Any] = {"address": address}

    if shape.shape_type == ShapeType.CIRCLE:
        if data.center is None or data.radius is None:
            raise InvalidArgumentError("Circle geofence needs both center and radius")
        lat, lon = data.center
        geometry = {"type": "Point", "coordinates": [lon, lat]}
        properties["radius"] = data.radius
    else:
        if not data.coordinates:
            raise InvalidArgumentError("Polygon geofence needs at least one ring")
        geometry = {
            "type": "Polygon",
            "coordinates": [[[lon, lat] for lat, lon in ring] for ring in data.coordinates],
        }

    return json.dumps({"geometry": geometry, "properties": properties})


def end_of_day_iso(date_string: str) -> str | None:
    """``YYYY-MM-DD`` → last millisecond of that UTC day; ``""`` means no expiry."""
    if not date_string:
        return None
    try:
        day = datetime.strptime(date_string, "%Y-%m-%d").date()
    except ValueError as exc:
        raise InvalidArgumentError(f"Expected YYYY-MM-DD, got {date_string!r}") from exc
    end = datetime.combine(day, time(23, 59, 59, 999000), tzinfo=UTC)
    return end.isoformat(timespec="milliseconds").replace("+00:00", "Z")


# ── Vehicle info ──


def normalize_vin(vin: str | None) -> str | None:
    """First 17 characters of a usable VIN, or None."""
    if not vin or vin == UNINITIALIZED_VIN:
        return None
    return vin[:VIN_LENGTH]


def parse_vin_decode(data: dict[str, Any]) -> VehicleInfo | None:
    """Pick make/model/year out of an NHTSA DecodeVin response."""
    results = data.get("Results") or []
    if not results:
        return None

    def value(variable: str) -> str | None:
        for row in results:
            if row.get("Variable") == variable:
                return row.get("Value") or None
        return None

    make, model, year = value("Make"), value("Model"), value("Model Year")
    if not make or not model or not year:
        return None
    return VehicleInfo(make=make, model=model, year=year)
