"""Normalized position record handed to the downstream sink."""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

from aisfeed._constants import PROTOCOL_NAME

KEY_TYPE = "type"
KEY_MMSI = "MMSI"
KEY_TRUE_HEADING = "trueHeading"


class NormalizedPosition(BaseModel):
    """Position record in the tracking pipeline's own shape.

    Parameters
    ----------
    protocol : str
        Source protocol tag, always ``"AIS"``.
    device_id : int
        Downstream target the fix belongs to.
    server_time : datetime
        Time the report was processed.
    device_time : datetime
        Time reported by the source.
    fix_time : datetime
        Time of the position fix.
    valid : bool
        Fix validity flag.
    latitude, longitude : float
        Coordinates in degrees.
    speed : float
        Speed over ground in knots.
    course : float
        Course over ground in degrees.
    altitude : float
        Always ``0`` for surface vessels.
    attributes : dict
        Protocol specific extras (type tag, MMSI, true heading).
    """

    model_config = ConfigDict(frozen=True)

    protocol: str = PROTOCOL_NAME
    device_id: int
    server_time: datetime
    device_time: datetime
    fix_time: datetime
    valid: bool = True
    latitude: float
    longitude: float
    speed: float = 0.0
    course: float = 0.0
    altitude: float = 0.0
    attributes: dict[str, Any] = Field(default_factory=dict)

    @field_validator("server_time", "device_time", "fix_time")
    @classmethod
    def _ensure_tz_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=UTC)
        return value
