"""Worker pool that resolves position reports and hands them downstream."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

from aisfeed._constants import DISPATCH_QUEUE_SIZE, DISPATCH_WORKERS, PROTOCOL_NAME, SHUTDOWN_GRACE_S
from aisfeed.models.position import KEY_MMSI, KEY_TRUE_HEADING, KEY_TYPE, NormalizedPosition
from aisfeed.models.report import PositionReport
from aisfeed.registry import CarrierRegistry, PositionSink

_logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def build_position(report: PositionReport, target_id: int, *, now: datetime | None = None) -> NormalizedPosition:
    """Map a report to the downstream record for one target.

    When the report carries no usable timestamp, device and fix time fall
    back to the processing time.
    """
    server_time = now if now is not None else _utcnow()
    fix_time = report.timestamp if report.timestamp is not None else server_time
    return NormalizedPosition(
        protocol=PROTOCOL_NAME,
        device_id=target_id,
        server_time=server_time,
        device_time=fix_time,
        fix_time=fix_time,
        valid=True,
        latitude=report.latitude,
        longitude=report.longitude,
        speed=report.speed_over_ground,
        course=report.course_over_ground,
        altitude=0.0,
        attributes={
            KEY_TYPE: PROTOCOL_NAME,
            KEY_MMSI: report.identifier,
            KEY_TRUE_HEADING: report.true_heading,
        },
    )


class PositionDispatcher:
    """Bounded pool of asyncio workers fed by a bounded queue.

    :meth:`submit` never waits: the stream reader calls it inline for every
    report.  Each report is processed in isolation; a failure is logged and
    does not affect other reports.
    """

    def __init__(
        self,
        registry: CarrierRegistry,
        sink: PositionSink,
        *,
        workers: int = DISPATCH_WORKERS,
        queue_size: int = DISPATCH_QUEUE_SIZE,
        on_unresolved: Callable[[str], Awaitable[None]] | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        if workers < 1:
            raise ValueError("workers must be >= 1")
        self._registry = registry
        self._sink = sink
        self._worker_count = workers
        self._queue: asyncio.Queue[PositionReport] = asyncio.Queue(maxsize=queue_size)
        self._on_unresolved = on_unresolved
        self._clock = clock
        self._workers: list[asyncio.Task[None]] = []
        self._accepting = False
        self._stopped = False

    @property
    def is_running(self) -> bool:
        return self._accepting

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    def start(self) -> None:
        if self._workers or self._stopped:
            return
        self._workers = [
            asyncio.create_task(self._worker(), name=f"aisfeed-dispatch-{index}") for index in range(self._worker_count)
        ]
        self._accepting = True
        _logger.info("AIS message dispatcher started with %d workers", self._worker_count)

    def submit(self, report: PositionReport) -> bool:
        """Queue *report* for processing.  Returns ``False`` if it was dropped."""
        if not self._accepting:
            _logger.warning("Dispatcher not running; dropping report for MMSI: %s", report.identifier)
            return False
        try:
            self._queue.put_nowait(report)
        except asyncio.QueueFull:
            _logger.warning("Dispatch queue full; dropping report for MMSI: %s", report.identifier)
            return False
        return True

    async def stop(self, grace: float = SHUTDOWN_GRACE_S) -> None:
        """Stop accepting work, drain for up to *grace* seconds, then cancel.  Idempotent."""
        if self._stopped:
            return
        self._stopped = True
        self._accepting = False
        workers, self._workers = self._workers, []
        if not workers:
            return

        _logger.info("Shutting down AIS message dispatcher")
        try:
            async with asyncio.timeout(grace):
                await self._queue.join()
        except TimeoutError:
            _logger.warning("Dispatcher did not drain within %ss; cancelling workers", grace)

        for worker in workers:
            worker.cancel()
        await asyncio.gather(*workers, return_exceptions=True)

        dropped = 0
        while not self._queue.empty():
            self._queue.get_nowait()
            self._queue.task_done()
            dropped += 1
        if dropped:
            _logger.warning("Dropped %d queued report(s) on shutdown", dropped)
        _logger.info("AIS message dispatcher shutdown complete")

    async def process(self, report: PositionReport) -> int:
        """Resolve and deliver one report.  Returns the number of records delivered."""
        try:
            targets = await self._registry.lookup_targets(report.identifier)
            if not targets:
                _logger.warning("Carrier with MMSI %s not tracked.", report.identifier)
                if self._on_unresolved is not None:
                    await self._on_unresolved(report.identifier)
                return 0

            now = self._clock()
            for target in targets:
                await self._sink.deliver(build_position(report, target, now=now))
                _logger.debug("Position queued for processing for device %s (MMSI: %s)", target, report.identifier)
            return len(targets)
        except Exception:
            _logger.error(
                "Unexpected error processing AIS position message for MMSI: %s",
                report.identifier,
                exc_info=True,
            )
            return 0

    async def _worker(self) -> None:
        while True:
            report = await self._queue.get()
            try:
                await self.process(report)
            finally:
                self._queue.task_done()
