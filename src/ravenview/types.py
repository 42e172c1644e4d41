"""Shared Pydantic models for ravenview."""

from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

# ── Enums ──


class ShapeType(StrEnum):
    POLYGON = "POLYGON"
    CIRCLE = "CIRCLE"


class Camera(StrEnum):
    ROAD = "ROAD"
    CABIN = "CABIN"


# ── Config models ──


class ApiCredentials(BaseModel):
    """What an operator types in: API root plus key/secret pair."""

    api_url: str
    api_key: str
    api_secret: str

    def __repr__(self) -> str:
        return f"ApiCredentials(api_url={self.api_url!r}, api_key={self.api_key!r})"


# ── Vehicle models ──


class VehicleInfo(BaseModel):
    make: str
    model: str
    year: str


class Location(BaseModel):
    latitude: float
    longitude: float
    timestamp: str


class ObdSnapshot(BaseModel):
    timestamp: str
    odometer_km: float | None = None
    fuel_level_percentage: float | None = None


class RavenSummary(BaseModel):
    uuid: str
    name: str = "Unnamed Vehicle"
    serial_number: str | None = None
    imei: str | None = None
    iccid: str | None = None
    thing_name: str | None = None
    vehicle_vin: str | None = None
    vehicle_id: str | None = None


class RavenDetails(RavenSummary):
    online: bool | None = None
    engine_on: bool | None = None
    unplugged: bool | None = None
    last_known_location: Location | None = None
    last_known_obd_snapshot: ObdSnapshot | None = None
    vehicle_info: VehicleInfo | None = None


class RavenEvent(BaseModel):
    """A device event; vendor fields beyond the typed ones are kept as extras."""

    model_config = ConfigDict(extra="allow")

    event_type: str
    event_timestamp: str
    road_media_ids: list[str] | None = None
    cabin_media_ids: list[str] | None = None
    latitude: float | None = None
    longitude: float | None = None


class MediaContent(BaseModel):
    media_id: str
    content_type: str = "application/octet-stream"
    data: bytes


# ── Geofence models ──


class ShapeData(BaseModel):
    """Geofence geometry in [lat, lon] order."""

    coordinates: list[list[tuple[float, float]]] | None = None
    center: tuple[float, float] | None = None
    radius: float | None = None


class GeofenceShape(BaseModel):
    shape_type: ShapeType
    shape_data: ShapeData


class Geofence(BaseModel):
    uuid: str
    name: str
    description: str = ""
    shape_type: ShapeType
    shape_data: ShapeData = Field(default_factory=ShapeData)
    start: str | None = None
    end: str | None = None
    notification: str = ""  # "ENTER", "EXIT", "ENTER,EXIT" or ""


class GeofenceFormData(BaseModel):
    name: str
    description: str = ""
    end: str = ""  # YYYY-MM-DD, or "" for no expiry
    notification: str = ""


class GeofenceRow(BaseModel):
    """One row of a bulk geofence upload."""

    form: GeofenceFormData
    shape: GeofenceShape


# ── Runtime models ──


class BulkResult(BaseModel):
    success: int = 0
    error: int = 0
    failed_ids: list[str] = Field(default_factory=list)


RavenSettings = dict[str, Any]
