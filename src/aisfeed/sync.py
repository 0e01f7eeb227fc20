"""Periodic reconciliation of the registry with the live subscription."""

from __future__ import annotations

import asyncio
import contextlib
import logging

from aisfeed._constants import SYNC_INTERVAL_S
from aisfeed.manager import ConnectionManager
from aisfeed.registry import CarrierRegistry

_logger = logging.getLogger(__name__)


class SubscriptionSync:
    """Feeds the registry's desired identifiers into the connection manager.

    A cycle runs at :meth:`start` and then every *interval* seconds until
    :meth:`stop`.  A failing cycle is logged and skipped; the next one runs
    on schedule.
    """

    def __init__(
        self,
        registry: CarrierRegistry,
        manager: ConnectionManager,
        *,
        interval: float = SYNC_INTERVAL_S,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self._registry = registry
        self._manager = manager
        self._interval = interval
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            return
        _logger.debug("Starting subscription sync every %ss", self._interval)
        self._task = asyncio.create_task(self._run(), name="aisfeed-subscription-sync")

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        _logger.debug("Subscription sync stopped")

    async def sync_once(self) -> bool:
        """Run one reconciliation cycle.  Returns ``False`` when it was skipped."""
        try:
            desired = await self._registry.list_desired_identifiers()
        except Exception:
            _logger.error("Error during AIS Stream subscription sync", exc_info=True)
            return False

        try:
            await self._manager.apply(desired)
        except Exception:
            _logger.error("Error applying AIS Stream subscription", exc_info=True)
            return False
        return True

    async def prune(self, identifier: str) -> None:
        """Drop *identifier* from the live subscription if it is tracked."""
        key = identifier.strip()
        current = self._manager.current_identifiers
        if key not in current:
            return
        _logger.debug("Removing untracked MMSI %s from AIS Stream subscription", key)
        try:
            await self._manager.apply(current - {key})
        except Exception:
            _logger.error("Error pruning MMSI %s from AIS Stream subscription", key, exc_info=True)

    async def _run(self) -> None:
        while True:
            await self.sync_once()
            await asyncio.sleep(self._interval)
