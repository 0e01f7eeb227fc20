"""Outbound subscription frame."""

from __future__ import annotations

from collections.abc import Iterable

from pydantic import BaseModel, ConfigDict, Field

from aisfeed._constants import POSITION_REPORT_TYPE, WHOLE_GLOBE_BOUNDING_BOX

BoundingBox = list[list[float]]


def _whole_globe() -> list[BoundingBox]:
    return [[list(corner) for corner in box] for box in WHOLE_GLOBE_BOUNDING_BOX]


class SubscriptionMessage(BaseModel):
    """Subscription request understood by the stream service.

    Sending a new frame over an open socket replaces the server-side filter
    state; it is never a delta.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    api_key: str = Field(alias="APIKey")
    bounding_boxes: list[BoundingBox] = Field(default_factory=_whole_globe, alias="BoundingBoxes")
    filters_ship_mmsi: list[str] = Field(default_factory=list, alias="FiltersShipMMSI")
    filter_message_types: list[str] = Field(
        default_factory=lambda: [POSITION_REPORT_TYPE],
        alias="FilterMessageTypes",
    )

    @classmethod
    def for_identifiers(cls, api_key: str, identifiers: Iterable[str]) -> SubscriptionMessage:
        """Build the frame for *identifiers* with the whole-globe box."""
        return cls(api_key=api_key, filters_ship_mmsi=sorted(set(identifiers)))

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)
