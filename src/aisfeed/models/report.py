"""Normalized AIS position report."""

from __future__ import annotations

from datetime import datetime
from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, field_validator


class GpsCoordinates(NamedTuple):
    latitude: float
    longitude: float


class PositionReport(BaseModel):
    """A validated position fix for one vessel.

    Parameters
    ----------
    identifier : str
        Vessel MMSI.
    latitude : float
        Latitude in degrees.
    longitude : float
        Longitude in degrees.
    speed_over_ground : float
        SOG in knots.
    course_over_ground : float
        COG in degrees.
    true_heading : int
        True heading in degrees (``511`` means not available).
    timestamp : datetime or None
        Fix time reported by the service, ``None`` when the vendor
        timestamp could not be parsed.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    identifier: str
    latitude: float
    longitude: float
    speed_over_ground: float = 0.0
    course_over_ground: float = 0.0
    true_heading: int = 0
    timestamp: datetime | None = None

    @field_validator("identifier")
    @classmethod
    def _normalize_identifier(cls, value: str) -> str:
        identifier = value.strip()
        if not identifier:
            raise ValueError("identifier must be non-empty")
        return identifier

    @property
    def coordinates(self) -> GpsCoordinates:
        return GpsCoordinates(self.latitude, self.longitude)
