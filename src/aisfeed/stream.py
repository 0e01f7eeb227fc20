"""Single-connection WebSocket client for the AIS stream service."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable, Iterable

import aiohttp

from aisfeed._redact import redact_for_log
from aisfeed.config import AisStreamConfig
from aisfeed.exceptions import AisStreamConnectionError, AisStreamError, AisStreamSubscriptionError
from aisfeed.models.report import PositionReport
from aisfeed.models.subscription import SubscriptionMessage
from aisfeed.parser import NotAPosition, parse_frame

_logger = logging.getLogger(__name__)

_SEND_ERRORS = (aiohttp.ClientError, OSError, RuntimeError)


class AisStreamClient:
    """One WebSocket connection attempt to the stream service.

    Lifecycle: construct → :meth:`connect` → eventually closed.  An instance
    is never reused after its socket closes; the manager builds a new one
    for every attempt.

    ``on_closed`` fires exactly once when the socket goes away without a
    local :meth:`close` (peer close, network drop, failed resubscribe).
    """

    def __init__(
        self,
        config: AisStreamConfig,
        session: aiohttp.ClientSession,
        *,
        identifiers: Callable[[], frozenset[str]],
        on_report: Callable[[PositionReport], None],
        on_closed: Callable[[AisStreamClient], None],
    ) -> None:
        self._config = config
        self._session = session
        self._identifiers = identifiers
        self._on_report = on_report
        self._on_closed = on_closed
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader: asyncio.Task[None] | None = None
        self._used = False
        self._closing = False
        self._closed_notified = False
        self._subscribed: frozenset[str] = frozenset()

    @property
    def is_open(self) -> bool:
        ws = self._ws
        return ws is not None and not ws.closed and not self._closing

    @property
    def subscribed_identifiers(self) -> frozenset[str]:
        """Identifiers carried by the last subscription frame sent."""
        return self._subscribed

    async def connect(self) -> None:
        """Open the socket, subscribe, and start reading frames.

        Raises :class:`AisStreamConnectionError` when the handshake fails,
        times out, or the subscription frame cannot be sent.
        """
        if self._used:
            raise AisStreamError("AisStreamClient instances are single-use")
        self._used = True

        uri = self._config.server_uri
        heartbeat = self._config.heartbeat or None
        try:
            async with asyncio.timeout(self._config.connect_timeout):
                ws = await self._session.ws_connect(uri, heartbeat=heartbeat, autoping=True)
        except TimeoutError as exc:
            raise AisStreamConnectionError(
                f"Connection to {uri} timed out after {self._config.connect_timeout}s",
                uri=uri,
            ) from exc
        except aiohttp.ClientError as exc:
            raise AisStreamConnectionError(f"Connection to {uri} failed: {exc}", uri=uri) from exc

        self._ws = ws
        identifiers = self._identifiers()
        _logger.debug("WebSocket connected for %d MMSI(s)", len(identifiers))

        try:
            await self._send_subscription(ws, identifiers)
        except _SEND_ERRORS as exc:
            _logger.error("Error sending subscription message for MMSI: %s", sorted(identifiers), exc_info=True)
            self._closing = True
            with contextlib.suppress(*_SEND_ERRORS):
                await ws.close()
            raise AisStreamConnectionError(f"Subscription to {uri} failed: {exc}", uri=uri) from exc

        self._reader = asyncio.create_task(self._read_loop(ws), name="aisfeed-stream-reader")

    async def update_subscription(self, identifiers: Iterable[str]) -> None:
        """Replace the server-side MMSI filter over the open socket."""
        wanted = frozenset(identifiers)
        ws = self._ws
        if ws is None or not self.is_open:
            raise AisStreamSubscriptionError("Cannot update subscription: socket is not open")
        try:
            await self._send_subscription(ws, wanted)
        except _SEND_ERRORS as exc:
            _logger.error("Error sending subscription message for MMSI: %s", sorted(wanted), exc_info=True)
            # The reader sees the close and reports the connection as lost.
            with contextlib.suppress(*_SEND_ERRORS):
                await ws.close()
            raise AisStreamSubscriptionError(f"Subscription update failed: {exc}") from exc

    async def close(self) -> None:
        """Close the socket without triggering ``on_closed``.  Idempotent."""
        self._closing = True
        ws = self._ws
        if ws is not None and not ws.closed:
            try:
                await ws.close()
            except _SEND_ERRORS:
                _logger.debug("WebSocket close failed", exc_info=True)

        reader = self._reader
        if reader is not None and reader is not asyncio.current_task() and not reader.done():
            reader.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await reader

    async def _send_subscription(self, ws: aiohttp.ClientWebSocketResponse, identifiers: frozenset[str]) -> None:
        message = SubscriptionMessage.for_identifiers(self._config.api_key, identifiers)
        await ws.send_str(message.to_json())
        self._subscribed = identifiers
        _logger.debug("Subscription message sent: %s", redact_for_log(message.model_dump(by_alias=True)))

    async def _read_loop(self, ws: aiohttp.ClientWebSocketResponse) -> None:
        try:
            async for msg in ws:
                if msg.type in (aiohttp.WSMsgType.TEXT, aiohttp.WSMsgType.BINARY):
                    try:
                        self._handle_frame(msg.data)
                    except Exception:
                        _logger.error("Failed to handle AIS Stream frame", exc_info=True)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    _logger.error("WebSocket error: %s", ws.exception())
        except Exception:
            _logger.error("WebSocket reader failed", exc_info=True)
        finally:
            _logger.debug(
                "WebSocket closed - Code: %s, Remote: %s",
                ws.close_code,
                not self._closing,
            )
            if not ws.closed:
                # Reader is gone; close the socket with it.
                with contextlib.suppress(*_SEND_ERRORS):
                    await ws.close()
            self._notify_closed()

    def _handle_frame(self, data: str | bytes) -> None:
        result = parse_frame(data)
        if isinstance(result, PositionReport):
            _logger.debug("Received AIS position report: %s", result)
            try:
                self._on_report(result)
            except Exception:
                _logger.error("Report callback failed for MMSI: %s", result.identifier, exc_info=True)
        elif isinstance(result, NotAPosition):
            _logger.debug("Received non-position report message for MMSI: %s", result.identifier)
        else:
            _logger.error("Error parsing AIS message: %s %s", result.reason, result.excerpt)

    def _notify_closed(self) -> None:
        if self._closing or self._closed_notified:
            return
        self._closed_notified = True
        try:
            self._on_closed(self)
        except Exception:
            _logger.error("Connection-closed callback failed", exc_info=True)
