"""Collaborator interfaces and an in-process carrier registry.

The stream core only talks to its host through the two structural
interfaces below.  Production hosts back them with their own storage and
processing pipeline; :class:`InMemoryCarrierRegistry` covers embedding and
tests.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import Protocol

from aisfeed.models.carrier import Carrier, CarrierType
from aisfeed.models.position import NormalizedPosition


class CarrierRegistry(Protocol):
    """Source of truth for what should be tracked and where fixes go."""

    async def list_desired_identifiers(self) -> Iterable[str]:
        ...

    async def lookup_targets(self, identifier: str) -> Sequence[int]:
        ...


class PositionSink(Protocol):
    """Downstream consumer of normalized positions.

    Called concurrently from several dispatcher workers.
    """

    async def deliver(self, record: NormalizedPosition) -> None:
        ...


class InMemoryCarrierRegistry:
    """Thread-safe carrier registry kept in memory."""

    def __init__(self, carriers: Iterable[Carrier] = ()) -> None:
        self._lock = threading.Lock()
        self._carriers: dict[int, Carrier] = {}
        self._next_id = 1
        for carrier in carriers:
            self._store(carrier)

    def _store(self, carrier: Carrier) -> None:
        self._carriers[carrier.id] = carrier
        self._next_id = max(self._next_id, carrier.id + 1)

    def add(self, carrier_id: str, *, carrier_type: CarrierType = CarrierType.VESSEL) -> Carrier:
        """Register a new carrier for *carrier_id* and return it."""
        with self._lock:
            carrier = Carrier(
                id=self._next_id,
                carrier_id=carrier_id,
                type=carrier_type,
                created_at=datetime.now(UTC),
            )
            self._store(carrier)
            return carrier

    def remove(self, target_id: int) -> Carrier | None:
        with self._lock:
            return self._carriers.pop(target_id, None)

    def remove_identifier(self, carrier_id: str) -> list[Carrier]:
        """Drop every carrier bound to *carrier_id*."""
        key = carrier_id.strip()
        with self._lock:
            removed = [c for c in self._carriers.values() if c.carrier_id == key]
            for carrier in removed:
                del self._carriers[carrier.id]
            return removed

    def carriers(self) -> list[Carrier]:
        with self._lock:
            return sorted(self._carriers.values(), key=lambda c: c.id)

    async def list_desired_identifiers(self) -> frozenset[str]:
        with self._lock:
            return frozenset(c.carrier_id for c in self._carriers.values())

    async def lookup_targets(self, identifier: str) -> list[int]:
        key = identifier.strip()
        with self._lock:
            return sorted(c.id for c in self._carriers.values() if c.carrier_id == key)
