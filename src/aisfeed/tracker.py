"""Start/stop boundary that wires the stream components together."""

from __future__ import annotations

import asyncio
import concurrent.futures
import logging
from typing import Any

import aiohttp

from aisfeed.config import AisStreamConfig
from aisfeed.dispatcher import PositionDispatcher
from aisfeed.manager import ClientFactory, ConnectionManager, ConnectionState
from aisfeed.registry import CarrierRegistry, PositionSink
from aisfeed.sync import SubscriptionSync

_logger = logging.getLogger(__name__)


class AisTracker:
    """Tracks the registry's carriers on the AIS stream.

    Usage::

        async with AisTracker(config, registry, sink) as tracker:
            ...

    An incomplete configuration disables tracking instead of failing:
    :meth:`start` logs and returns, and everything else is a no-op.
    """

    def __init__(
        self,
        config: AisStreamConfig,
        registry: CarrierRegistry,
        sink: PositionSink,
        *,
        session: aiohttp.ClientSession | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._config = config
        self._registry = registry
        self._sink = sink
        self._external_session = session is not None
        self._http_session = session
        self._client_factory = client_factory
        self._loop: asyncio.AbstractEventLoop | None = None
        self._dispatcher: PositionDispatcher | None = None
        self._manager: ConnectionManager | None = None
        self._sync: SubscriptionSync | None = None
        self._started = False
        self._stopped = False

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> AisTracker:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def is_running(self) -> bool:
        return self._started and not self._stopped

    @property
    def state(self) -> ConnectionState:
        if self._manager is None:
            return ConnectionState.STOPPED if self._stopped else ConnectionState.IDLE
        return self._manager.state

    @property
    def tracked_identifiers(self) -> frozenset[str]:
        if self._manager is None:
            return frozenset()
        return self._manager.current_identifiers

    @property
    def dispatcher(self) -> PositionDispatcher | None:
        return self._dispatcher

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        if self._started or self._stopped:
            return
        if not self._config.is_configured:
            _logger.debug("AIS Stream not properly configured. AIS tracking disabled.")
            return

        self._started = True
        self._loop = asyncio.get_running_loop()
        if self._http_session is None and self._client_factory is None:
            self._http_session = aiohttp.ClientSession()

        self._dispatcher = PositionDispatcher(
            self._registry,
            self._sink,
            workers=self._config.dispatch_workers,
            queue_size=self._config.dispatch_queue_size,
            on_unresolved=self._prune if self._config.prune_unresolved else None,
        )
        self._manager = ConnectionManager(
            self._config,
            on_report=self._dispatcher.submit,
            session=self._http_session,
            client_factory=self._client_factory,
        )
        self._sync = SubscriptionSync(self._registry, self._manager, interval=self._config.sync_interval)

        self._dispatcher.start()
        self._sync.start()
        _logger.info("AIS tracking started against %s", self._config.server_uri)

    async def stop(self) -> None:
        """Stop syncing, close the stream, drain the dispatcher.  Idempotent."""
        if self._stopped:
            return
        self._stopped = True
        if not self._started:
            return

        _logger.debug("Stopping AIS tracking")
        if self._sync is not None:
            await self._sync.stop()
        if self._manager is not None:
            await self._manager.shutdown()
        if self._dispatcher is not None:
            await self._dispatcher.stop(self._config.shutdown_grace)
        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
            self._http_session = None
        self._loop = None
        _logger.info("AIS tracking stopped")

    def request_stop(self) -> concurrent.futures.Future[None]:
        """Schedule :meth:`stop` on the tracker's loop from any thread.

        Do not block on the returned future from the loop thread itself.
        """
        loop = self._loop
        if loop is None or loop.is_closed():
            done: concurrent.futures.Future[None] = concurrent.futures.Future()
            done.set_result(None)
            return done
        return asyncio.run_coroutine_threadsafe(self.stop(), loop)

    async def refresh(self) -> bool:
        """Run one sync cycle now.  Returns ``False`` when tracking is not running."""
        if self._sync is None or not self.is_running:
            return False
        return await self._sync.sync_once()

    async def _prune(self, identifier: str) -> None:
        if self._sync is not None:
            await self._sync.prune(identifier)
