"""aisfeed - Async ingestion of aisstream.io position reports."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("aisfeed")
except PackageNotFoundError:
    __version__ = "0+local"
from aisfeed.config import AisStreamConfig
from aisfeed.dispatcher import PositionDispatcher, build_position
from aisfeed.exceptions import (
    AisStreamConfigError,
    AisStreamConnectionError,
    AisStreamError,
    AisStreamSubscriptionError,
)
from aisfeed.manager import ConnectionManager, ConnectionState
from aisfeed.models import (
    Carrier,
    CarrierType,
    NormalizedPosition,
    PositionReport,
    SubscriptionMessage,
)
from aisfeed.parser import NotAPosition, ParseError, parse_frame
from aisfeed.registry import CarrierRegistry, InMemoryCarrierRegistry, PositionSink
from aisfeed.stream import AisStreamClient
from aisfeed.sync import SubscriptionSync
from aisfeed.tracker import AisTracker

__all__ = [
    "__version__",
    "AisStreamClient",
    "AisStreamConfig",
    "AisStreamConfigError",
    "AisStreamConnectionError",
    "AisStreamError",
    "AisStreamSubscriptionError",
    "AisTracker",
    "Carrier",
    "CarrierRegistry",
    "CarrierType",
    "ConnectionManager",
    "ConnectionState",
    "InMemoryCarrierRegistry",
    "NormalizedPosition",
    "NotAPosition",
    "ParseError",
    "PositionDispatcher",
    "PositionReport",
    "PositionSink",
    "SubscriptionMessage",
    "SubscriptionSync",
    "build_position",
    "parse_frame",
]
