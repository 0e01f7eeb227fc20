from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable

import pytest

from aisfeed.config import AisStreamConfig
from aisfeed.exceptions import AisStreamConnectionError, AisStreamSubscriptionError
from aisfeed.models.position import NormalizedPosition
from aisfeed.models.report import PositionReport


class FakeStreamClient:
    """Stands in for AisStreamClient; records every side effect on its hub."""

    def __init__(
        self,
        hub: FakeClientHub,
        *,
        identifiers: Callable[[], frozenset[str]],
        on_report: Callable[[PositionReport], None],
        on_closed: Callable[[FakeStreamClient], None],
    ) -> None:
        self.hub = hub
        self._identifiers = identifiers
        self.on_report = on_report
        self._on_closed = on_closed
        self.is_open = False
        self.closed_locally = False
        self.subscribed_identifiers: frozenset[str] = frozenset()
        self.updates: list[frozenset[str]] = []

    async def connect(self) -> None:
        self.hub.connect_calls += 1
        if self.hub.fail_connect:
            raise AisStreamConnectionError("connection refused", uri="wss://test.invalid/stream")
        self.is_open = True
        self.subscribed_identifiers = self._identifiers()
        self.hub.subscriptions.append(self.subscribed_identifiers)

    async def update_subscription(self, identifiers: Iterable[str]) -> None:
        if not self.is_open:
            raise AisStreamSubscriptionError("socket is not open")
        self.subscribed_identifiers = frozenset(identifiers)
        self.updates.append(self.subscribed_identifiers)
        self.hub.subscriptions.append(self.subscribed_identifiers)

    async def close(self) -> None:
        if self.is_open:
            self.hub.local_closes += 1
        self.is_open = False
        self.closed_locally = True

    def drop(self) -> None:
        """Simulate the peer closing the socket."""
        self.is_open = False
        self._on_closed(self)

    def feed(self, report: PositionReport) -> None:
        self.on_report(report)


class FakeClientHub:
    """Client factory handed to ConnectionManager / AisTracker."""

    def __init__(self, *, fail_connect: bool = False) -> None:
        self.fail_connect = fail_connect
        self.clients: list[FakeStreamClient] = []
        self.connect_calls = 0
        self.local_closes = 0
        self.subscriptions: list[frozenset[str]] = []

    def __call__(self, *, identifiers, on_report, on_closed) -> FakeStreamClient:  # type: ignore[no-untyped-def]
        client = FakeStreamClient(self, identifiers=identifiers, on_report=on_report, on_closed=on_closed)
        self.clients.append(client)
        return client

    @property
    def latest(self) -> FakeStreamClient:
        return self.clients[-1]

    @property
    def update_count(self) -> int:
        return sum(len(c.updates) for c in self.clients)


class RecordingSink:
    def __init__(self) -> None:
        self.records: list[NormalizedPosition] = []

    async def deliver(self, record: NormalizedPosition) -> None:
        self.records.append(record)


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.01)


@pytest.fixture
def stream_config() -> AisStreamConfig:
    return AisStreamConfig(
        server_uri="wss://test.invalid/stream",
        api_key="test-key",
        connect_timeout=1.0,
        reconnect_delay=0.0,
        max_retry_attempts=3,
        heartbeat=0.0,
        shutdown_grace=0.5,
    )


@pytest.fixture
def hub() -> FakeClientHub:
    return FakeClientHub()


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
