"""Connection policy for the AIS stream.

Owns:
- the authoritative set of tracked identifiers
- the decision between connecting, resubscribing in place and tearing down
- bounded retry-with-delay reconnection
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import threading
from collections.abc import Callable, Coroutine, Iterable
from enum import StrEnum
from typing import Any, Protocol

import aiohttp

from aisfeed.config import AisStreamConfig
from aisfeed.exceptions import AisStreamError, AisStreamSubscriptionError
from aisfeed.models.report import PositionReport
from aisfeed.stream import AisStreamClient

_logger = logging.getLogger(__name__)


class ConnectionState(StrEnum):
    IDLE = "idle"
    CONNECTING = "connecting"
    OPEN = "open"
    RECONNECTING = "reconnecting"
    STOPPED = "stopped"


class ClientFactory(Protocol):
    def __call__(
        self,
        *,
        identifiers: Callable[[], frozenset[str]],
        on_report: Callable[[PositionReport], None],
        on_closed: Callable[[AisStreamClient], None],
    ) -> AisStreamClient:
        ...


class IdentifierSet:
    """Thread-safe holder for the current identifier set.

    The set is only ever replaced wholesale; readers always get an
    immutable snapshot.
    """

    def __init__(self, initial: Iterable[str] = ()) -> None:
        self._lock = threading.Lock()
        self._items: frozenset[str] = frozenset(initial)

    def snapshot(self) -> frozenset[str]:
        with self._lock:
            return self._items

    def replace(self, items: Iterable[str]) -> frozenset[str]:
        new_items = frozenset(items)
        with self._lock:
            self._items = new_items
        return new_items

    def clear(self) -> None:
        with self._lock:
            self._items = frozenset()

    def __contains__(self, item: object) -> bool:
        return item in self.snapshot()

    def __len__(self) -> int:
        return len(self.snapshot())


def normalize_identifiers(values: Iterable[Any]) -> frozenset[str]:
    """Strip identifiers and drop blanks."""
    result: set[str] = set()
    for value in values:
        if value is None:
            continue
        text = str(value).strip()
        if text:
            result.add(text)
    return frozenset(result)


class ConnectionManager:
    """Keeps at most one stream connection in line with the desired set.

    :meth:`apply` is the single entry point.  It and every state transition
    run under one :class:`asyncio.Lock`.  Connection attempts run as
    background tasks so a slow handshake never blocks :meth:`apply`.
    """

    def __init__(
        self,
        config: AisStreamConfig,
        *,
        on_report: Callable[[PositionReport], None],
        session: aiohttp.ClientSession | None = None,
        client_factory: ClientFactory | None = None,
    ) -> None:
        self._config = config
        self._on_report = on_report
        self._session = session
        self._client_factory = client_factory
        self._identifiers = IdentifierSet()
        self._lock = asyncio.Lock()
        self._state = ConnectionState.IDLE
        self._client: AisStreamClient | None = None
        self._attempt_task: asyncio.Task[None] | None = None
        self._attempt_no = 0
        self._shutdown = False
        self._background: set[asyncio.Task[Any]] = set()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def current_identifiers(self) -> frozenset[str]:
        return self._identifiers.snapshot()

    @property
    def is_configured(self) -> bool:
        return self._config.is_configured

    @property
    def is_connected(self) -> bool:
        client = self._client
        return client is not None and client.is_open

    @property
    def attempt(self) -> int:
        """Number of the current (or last) connection attempt."""
        return self._attempt_no

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def apply(self, desired: Iterable[str]) -> None:
        """Bring the connection in line with *desired*."""
        if not self._config.is_configured:
            _logger.debug("AIS Stream not properly configured. Skipping AIS Stream subscription.")
            return

        wanted = normalize_identifiers(desired)
        async with self._lock:
            if self._shutdown:
                _logger.debug("Connection manager is shut down; ignoring %d carrier(s)", len(wanted))
                return

            if not wanted:
                self._identifiers.clear()
                if self._client is not None or self._attempt_task is not None:
                    _logger.debug("No carriers to track. Shutting down AIS Stream connection.")
                    await self._teardown()
                    self._set_state(ConnectionState.IDLE)
                return

            client = self._client
            if client is None or not client.is_open:
                self._identifiers.replace(wanted)
                if self._attempt_task is not None:
                    _logger.debug("Connection attempt pending; it will subscribe %d carrier(s)", len(wanted))
                    return
                if client is not None:
                    # Closed but its loss has not been processed yet.
                    self._client = None
                    await client.close()
                _logger.debug(
                    "Client not running but carriers exist. Starting AIS Stream connection for %d carriers",
                    len(wanted),
                )
                self._start_attempt(1, delay=0.0)
                return

            current = self._identifiers.snapshot()
            if wanted == current:
                _logger.debug("No changes detected in carrier list")
                return

            _logger.debug(
                "Carrier list changed. Updating subscriptions. Current: %d, New: %d",
                len(current),
                len(wanted),
            )
            self._identifiers.replace(wanted)
            await self._resubscribe(client, wanted)

    async def shutdown(self) -> None:
        """Cancel pending retries, close the socket, clear state.  Idempotent."""
        async with self._lock:
            if self._shutdown:
                return
            self._shutdown = True
            _logger.debug("Shutting down AIS Stream connection manager")
            await self._teardown()
            self._identifiers.clear()
            self._set_state(ConnectionState.STOPPED)

        current = asyncio.current_task()
        pending = [task for task in self._background if task is not current and not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        _logger.debug("AIS Stream connection manager shutdown complete")

    # ------------------------------------------------------------------
    # Connection attempts (lock held unless noted)
    # ------------------------------------------------------------------

    def _set_state(self, state: ConnectionState) -> None:
        if state != self._state:
            _logger.debug("Connection state %s -> %s", self._state, state)
            self._state = state

    def _new_client(self) -> AisStreamClient:
        kwargs: dict[str, Any] = {
            "identifiers": self._identifiers.snapshot,
            "on_report": self._on_report,
            "on_closed": self._handle_connection_lost,
        }
        if self._client_factory is not None:
            return self._client_factory(**kwargs)
        if self._session is None:
            raise AisStreamError("ConnectionManager needs an aiohttp session or a client factory")
        return AisStreamClient(self._config, self._session, **kwargs)

    def _start_attempt(self, attempt: int, *, delay: float) -> None:
        self._attempt_no = attempt
        self._set_state(ConnectionState.CONNECTING if attempt == 1 else ConnectionState.RECONNECTING)
        self._attempt_task = asyncio.create_task(
            self._run_attempt(attempt, delay),
            name=f"aisfeed-connect-{attempt}",
        )

    def _schedule_retry(self, attempt: int) -> None:
        next_attempt = attempt + 1
        if next_attempt > self._config.max_retry_attempts:
            _logger.error(
                "Max retry attempts (%d) reached for MMSI: %s",
                self._config.max_retry_attempts,
                sorted(self._identifiers.snapshot()),
            )
            self._attempt_task = None
            self._client = None
            self._identifiers.clear()
            self._set_state(ConnectionState.STOPPED)
            return

        _logger.debug(
            "Scheduling reconnection (attempt %d/%d) in %s seconds",
            next_attempt,
            self._config.max_retry_attempts,
            self._config.reconnect_delay,
        )
        self._start_attempt(next_attempt, delay=self._config.reconnect_delay)

    async def _run_attempt(self, attempt: int, delay: float) -> None:
        """Body of one connection attempt; runs without holding the lock while connecting."""
        if delay > 0:
            await asyncio.sleep(delay)

        me = asyncio.current_task()
        async with self._lock:
            if self._shutdown or self._attempt_task is not me:
                return
            try:
                client = self._new_client()
            except AisStreamError:
                _logger.error("Cannot create AIS Stream client (attempt %d)", attempt, exc_info=True)
                self._schedule_retry(attempt)
                return
            self._client = client

        _logger.debug("Connecting to AIS Stream (attempt %d/%d)", attempt, self._config.max_retry_attempts)
        try:
            await client.connect()
        except Exception:
            _logger.error(
                "Failed to connect to AIS Stream for MMSI: %s (attempt %d)",
                sorted(self._identifiers.snapshot()),
                attempt,
                exc_info=True,
            )
            async with self._lock:
                if self._attempt_task is me and not self._shutdown:
                    if self._client is client:
                        self._client = None
                    self._schedule_retry(attempt)
            return

        stale = False
        async with self._lock:
            if self._shutdown or self._attempt_task is not me or self._client is not client:
                stale = True
            else:
                self._attempt_task = None
                self._set_state(ConnectionState.OPEN)
                _logger.info("Successfully connected to AIS Stream (attempt %d)", attempt)
                wanted = self._identifiers.snapshot()
                if wanted != client.subscribed_identifiers:
                    await self._resubscribe(client, wanted)
        if stale:
            await client.close()

    async def _resubscribe(self, client: AisStreamClient, wanted: frozenset[str]) -> None:
        try:
            await client.update_subscription(wanted)
        except AisStreamSubscriptionError:
            # The client reports the lost socket through on_closed.
            _logger.warning("Subscription update failed; waiting for reconnect", exc_info=True)
            return
        _logger.debug("Updated AIS Stream subscriptions. Now tracking %d carriers", len(wanted))

    async def _teardown(self) -> None:
        task = self._attempt_task
        self._attempt_task = None
        if task is not None and task is not asyncio.current_task() and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        client = self._client
        self._client = None
        if client is not None:
            await client.close()

    # ------------------------------------------------------------------
    # Remote close
    # ------------------------------------------------------------------

    def _handle_connection_lost(self, client: AisStreamClient) -> None:
        self._spawn(self._on_connection_lost(client))

    async def _on_connection_lost(self, client: AisStreamClient) -> None:
        async with self._lock:
            if self._shutdown or client is not self._client:
                _logger.debug("Ignoring close of a connection that is no longer current")
                return
            _logger.warning("AIS Stream connection closed by remote peer (attempt %d)", self._attempt_no)
            self._client = None
            await client.close()
            if self._attempt_task is not None:
                # Lost before the attempt finished; that attempt is void.
                self._attempt_task.cancel()
                self._attempt_task = None
            self._schedule_retry(self._attempt_no)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
