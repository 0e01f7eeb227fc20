"""Base model, enum and timestamp helpers for aisstream payloads.

Every inbound vendor model inherits from :class:`AisBaseModel` which
provides:

* ``alias_generator=to_pascal`` so the vendor's PascalCase keys map
  automatically to snake_case fields.
* ``extra="ignore"`` so new vendor fields never break decoding.

Enums inherit from :class:`AisEnum`, whose ``_missing_`` hook resolves
unmapped values to the first member instead of raising ``ValueError``.
"""

from __future__ import annotations

import enum
import logging
import re
from datetime import UTC, datetime, timedelta, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_pascal

_logger = logging.getLogger(__name__)

# yyyy-MM-dd HH:mm:ss[.fraction] <offset> UTC
# e.g. "2022-12-29 18:22:32.318353 +0000 UTC" or "2024-01-15 10:30:00 Z UTC"
_AIS_TIMESTAMP_RE = re.compile(
    r"^(?P<date>\d{4}-\d{2}-\d{2}) (?P<time>\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d{0,9}))?"
    r" (?P<offset>Z|[+-]\d{2}:?\d{2}) UTC$"
)


def _parse_offset(text: str) -> timezone:
    if text == "Z":
        return UTC
    sign = -1 if text[0] == "-" else 1
    digits = text[1:].replace(":", "")
    hours, minutes = int(digits[:2]), int(digits[2:])
    return timezone(sign * timedelta(hours=hours, minutes=minutes))


def parse_ais_timestamp(value: Any) -> datetime | None:
    """Convert an aisstream ``time_utc`` string to an aware UTC datetime.

    Fractions beyond microsecond precision are truncated.  Returns ``None``
    when the value is absent or does not match the vendor format.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if not isinstance(value, str):
        _logger.warning("Failed to parse timestamp: %r (not a string)", value)
        return None

    match = _AIS_TIMESTAMP_RE.match(value.strip())
    if match is None:
        _logger.warning("Failed to parse timestamp: %r", value)
        return None

    fraction = (match.group("fraction") or "")[:6].ljust(6, "0")
    try:
        naive = datetime.strptime(f"{match.group('date')} {match.group('time')}", "%Y-%m-%d %H:%M:%S")
        tz = _parse_offset(match.group("offset"))
    except ValueError as exc:
        _logger.warning("Failed to parse timestamp: %r - %s", value, exc)
        return None
    return naive.replace(microsecond=int(fraction), tzinfo=tz).astimezone(UTC)


def coerce_identifier(value: Any) -> str | None:
    """Normalize an MMSI carried as string or number to a stripped string."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    text = str(value).strip()
    return text or None


class AisEnum(enum.IntEnum):
    """Base for registry enums.

    Values without a mapped member resolve to the first declared member
    instead of raising ``ValueError``.
    """

    @classmethod
    def _missing_(cls, value: object) -> AisEnum:
        return next(iter(cls))


class AisBaseModel(BaseModel):
    """Base for aisstream wire models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_pascal,
    )
