"""Inbound aisstream message envelope.

Only the fields needed for position tracking are modelled; everything else
in the vendor payload is ignored.
"""

from __future__ import annotations

import math
from typing import Any

from pydantic import Field, field_validator

from aisfeed.models._base import AisBaseModel, coerce_identifier


class MetaData(AisBaseModel):
    """``MetaData`` block carried by every stream message."""

    mmsi: str | None = Field(default=None, alias="MMSI")
    # Left raw; parse_ais_timestamp decides what is usable.
    time_utc: Any = Field(default=None, alias="time_utc")

    @field_validator("mmsi", mode="before")
    @classmethod
    def _coerce_mmsi(cls, value: Any) -> str | None:
        return coerce_identifier(value)


class PositionReportPayload(AisBaseModel):
    """``Message.PositionReport`` block (AIS message types 1, 2 and 3)."""

    latitude: float
    longitude: float
    sog: float = 0.0
    cog: float = 0.0
    true_heading: int = 0

    @field_validator("true_heading", mode="before")
    @classmethod
    def _truncate_heading(cls, value: Any) -> Any:
        if value is None:
            return 0
        if isinstance(value, float) and math.isfinite(value):
            return int(value)
        return value


class MessageBody(AisBaseModel):
    position_report: PositionReportPayload | None = None


class AisStreamEnvelope(AisBaseModel):
    """Top-level stream message."""

    meta_data: MetaData | None = None
    message: MessageBody | None = None
    message_type: str | None = None

    @property
    def position_report(self) -> PositionReportPayload | None:
        if self.message is None:
            return None
        return self.message.position_report

    @property
    def mmsi(self) -> str | None:
        return self.meta_data.mmsi if self.meta_data is not None else None
