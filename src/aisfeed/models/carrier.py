"""Tracked carrier registry record."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from aisfeed.models._base import AisEnum


class CarrierType(AisEnum):
    VESSEL = 0


class Carrier(BaseModel):
    """A downstream target bound to an external identifier.

    Several carriers may share the same ``carrier_id`` (the MMSI); each one
    receives its own copy of every position report.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: int
    carrier_id: str = Field(alias="carrierId")
    type: CarrierType = CarrierType.VESSEL
    created_at: datetime | None = Field(default=None, alias="createdAt")

    @field_validator("carrier_id", mode="before")
    @classmethod
    def _normalize_carrier_id(cls, value: object) -> str:
        text = str(value).strip() if value is not None else ""
        if not text:
            raise ValueError("carrier_id must be non-empty")
        return text

    @field_validator("type", mode="before")
    @classmethod
    def _coerce_type(cls, value: object) -> CarrierType:
        if value is None:
            return CarrierType.VESSEL
        if isinstance(value, CarrierType):
            return value
        try:
            return CarrierType(int(value))  # type: ignore[arg-type]
        except (TypeError, ValueError):
            return CarrierType.VESSEL
