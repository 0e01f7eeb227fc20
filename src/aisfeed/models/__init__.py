"""Data models for aisstream payloads and tracking records."""

from aisfeed.models._base import AisBaseModel, AisEnum, parse_ais_timestamp
from aisfeed.models.carrier import Carrier, CarrierType
from aisfeed.models.envelope import AisStreamEnvelope, MessageBody, MetaData, PositionReportPayload
from aisfeed.models.position import NormalizedPosition
from aisfeed.models.report import GpsCoordinates, PositionReport
from aisfeed.models.subscription import SubscriptionMessage

__all__ = [
    "AisBaseModel",
    "AisEnum",
    "AisStreamEnvelope",
    "Carrier",
    "CarrierType",
    "GpsCoordinates",
    "MessageBody",
    "MetaData",
    "NormalizedPosition",
    "PositionReport",
    "PositionReportPayload",
    "SubscriptionMessage",
    "parse_ais_timestamp",
]
