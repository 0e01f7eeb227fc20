"""Stream frame parsing.

Turns one raw WebSocket frame into a :class:`PositionReport`, or explains why
it could not.  Nothing here performs I/O or raises: malformed input must
never abort the read loop of a live connection.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

from pydantic import ValidationError

from aisfeed.models._base import parse_ais_timestamp
from aisfeed.models.envelope import AisStreamEnvelope
from aisfeed.models.report import PositionReport


@dataclass(frozen=True)
class NotAPosition:
    """Well-formed message that carries no position report."""

    identifier: str | None = None
    message_type: str | None = None


@dataclass(frozen=True)
class ParseError:
    """Frame that could not be decoded."""

    reason: str
    excerpt: str = ""


ParseResult = PositionReport | NotAPosition | ParseError

_EXCERPT_LEN = 200


def _excerpt(text: str) -> str:
    return text if len(text) <= _EXCERPT_LEN else f"{text[:_EXCERPT_LEN]}…"


def parse_frame(frame: str | bytes | bytearray) -> ParseResult:
    """Decode a raw stream frame.

    Binary frames are UTF-8 decoded first.  Unknown envelope fields are
    ignored.  A position report whose ``time_utc`` cannot be parsed is
    still returned, with ``timestamp=None``.
    """
    if isinstance(frame, (bytes, bytearray)):
        try:
            text = bytes(frame).decode("utf-8")
        except UnicodeDecodeError as exc:
            return ParseError(f"binary frame is not valid UTF-8: {exc}")
    else:
        text = frame

    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        return ParseError(f"invalid JSON: {exc.msg} at position {exc.pos}", _excerpt(text))
    except (ValueError, RecursionError) as exc:
        return ParseError(f"invalid JSON: {exc}", _excerpt(text))
    if not isinstance(payload, dict):
        return ParseError(f"expected a JSON object, got {type(payload).__name__}", _excerpt(text))

    try:
        envelope = AisStreamEnvelope.model_validate(payload)
    except ValidationError as exc:
        return ParseError(f"invalid envelope: {exc.error_count()} validation error(s)", _excerpt(text))

    position = envelope.position_report
    if position is None:
        return NotAPosition(identifier=envelope.mmsi, message_type=envelope.message_type)

    identifier = envelope.mmsi
    if identifier is None:
        return ParseError("position report without MMSI", _excerpt(text))

    time_utc = envelope.meta_data.time_utc if envelope.meta_data is not None else None
    return PositionReport(
        identifier=identifier,
        latitude=position.latitude,
        longitude=position.longitude,
        speed_over_ground=position.sog,
        course_over_ground=position.cog,
        true_heading=position.true_heading,
        timestamp=parse_ais_timestamp(time_utc),
    )
