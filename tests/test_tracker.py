"""End-to-end behaviour of the wired tracker against a fake stream client."""

from __future__ import annotations

import asyncio
import dataclasses
import json
import logging
from datetime import UTC, datetime

import pytest
from conftest import FakeClientHub, RecordingSink, wait_for

from aisfeed.config import AisStreamConfig
from aisfeed.manager import ConnectionState
from aisfeed.models.report import PositionReport
from aisfeed.parser import parse_frame
from aisfeed.registry import InMemoryCarrierRegistry
from aisfeed.tracker import AisTracker


def _position(mmsi: str) -> PositionReport:
    result = parse_frame(
        json.dumps(
            {
                "MessageType": "PositionReport",
                "MetaData": {"MMSI": mmsi, "time_utc": "2024-01-15 10:30:00 Z UTC"},
                "Message": {
                    "PositionReport": {
                        "Latitude": 10.0,
                        "Longitude": 20.0,
                        "Sog": 5.2,
                        "Cog": 90.0,
                        "TrueHeading": 88,
                    }
                },
            }
        )
    )
    assert isinstance(result, PositionReport)
    return result


async def _started(
    config: AisStreamConfig, registry: InMemoryCarrierRegistry, sink: RecordingSink, hub: FakeClientHub
) -> AisTracker:
    tracker = AisTracker(config, registry, sink, client_factory=hub)
    await tracker.start()
    await wait_for(lambda: tracker.state == ConnectionState.OPEN)
    return tracker


@pytest.mark.asyncio
async def test_position_reaches_sink(
    stream_config: AisStreamConfig, hub: FakeClientHub, sink: RecordingSink
) -> None:
    registry = InMemoryCarrierRegistry()
    carrier = registry.add("123456789")

    async with AisTracker(stream_config, registry, sink, client_factory=hub) as tracker:
        await wait_for(lambda: tracker.state == ConnectionState.OPEN)
        assert tracker.tracked_identifiers == frozenset({"123456789"})

        hub.latest.feed(_position("123456789"))
        await wait_for(lambda: len(sink.records) == 1)

    (record,) = sink.records
    assert record.device_id == carrier.id
    assert (record.latitude, record.longitude) == (10.0, 20.0)
    assert record.speed == pytest.approx(5.2)
    assert record.course == 90.0
    assert record.attributes["trueHeading"] == 88
    assert record.fix_time == datetime(2024, 1, 15, 10, 30, tzinfo=UTC)
    assert tracker.state == ConnectionState.STOPPED


@pytest.mark.asyncio
async def test_registry_changes_resubscribe_on_one_connection(
    stream_config: AisStreamConfig, hub: FakeClientHub, sink: RecordingSink
) -> None:
    registry = InMemoryCarrierRegistry()
    registry.add("A")
    tracker = await _started(stream_config, registry, sink, hub)

    registry.add("B")
    assert await tracker.refresh()
    registry.remove_identifier("A")
    assert await tracker.refresh()

    assert len(hub.clients) == 1
    assert hub.latest.updates == [frozenset({"A", "B"}), frozenset({"B"})]
    assert hub.local_closes == 0
    assert tracker.tracked_identifiers == frozenset({"B"})
    await tracker.stop()


@pytest.mark.asyncio
async def test_unresolvable_identifier_delivers_nothing(
    stream_config: AisStreamConfig, hub: FakeClientHub, sink: RecordingSink, caplog: pytest.LogCaptureFixture
) -> None:
    registry = InMemoryCarrierRegistry()
    registry.add("123456789")
    tracker = await _started(stream_config, registry, sink, hub)

    with caplog.at_level(logging.WARNING, logger="aisfeed"):
        hub.latest.feed(_position("999999999"))
        await wait_for(lambda: any("not tracked" in r.getMessage() for r in caplog.records))
        await tracker.stop()

    assert sink.records == []
    warnings = [r.getMessage() for r in caplog.records if r.levelno == logging.WARNING]
    assert warnings == ["Carrier with MMSI 999999999 not tracked."]


@pytest.mark.asyncio
async def test_unresolved_tracked_identifier_is_pruned(
    stream_config: AisStreamConfig, hub: FakeClientHub, sink: RecordingSink
) -> None:
    registry = InMemoryCarrierRegistry()
    registry.add("A")
    registry.add("B")
    tracker = await _started(stream_config, registry, sink, hub)

    registry.remove_identifier("B")
    hub.latest.feed(_position("B"))
    await wait_for(lambda: tracker.tracked_identifiers == frozenset({"A"}))

    assert hub.latest.subscribed_identifiers == frozenset({"A"})
    await tracker.stop()


@pytest.mark.asyncio
async def test_prune_can_be_disabled(
    stream_config: AisStreamConfig, hub: FakeClientHub, sink: RecordingSink
) -> None:
    config = dataclasses.replace(stream_config, prune_unresolved=False)
    registry = InMemoryCarrierRegistry()
    registry.add("A")
    registry.add("B")
    tracker = await _started(config, registry, sink, hub)

    registry.remove_identifier("B")
    hub.latest.feed(_position("B"))
    await asyncio.sleep(0.05)

    assert tracker.tracked_identifiers == frozenset({"A", "B"})
    await tracker.stop()


@pytest.mark.asyncio
async def test_incomplete_config_disables_tracking(hub: FakeClientHub, sink: RecordingSink) -> None:
    registry = InMemoryCarrierRegistry()
    registry.add("A")
    tracker = AisTracker(AisStreamConfig(api_key="key"), registry, sink, client_factory=hub)

    await tracker.start()

    assert not tracker.is_running
    assert tracker.state == ConnectionState.IDLE
    assert await tracker.refresh() is False
    assert hub.clients == []
    await tracker.stop()
    assert tracker.state == ConnectionState.STOPPED


@pytest.mark.asyncio
async def test_request_stop_from_another_thread(
    stream_config: AisStreamConfig, hub: FakeClientHub, sink: RecordingSink
) -> None:
    registry = InMemoryCarrierRegistry()
    registry.add("A")
    tracker = await _started(stream_config, registry, sink, hub)

    future = await asyncio.to_thread(tracker.request_stop)
    await asyncio.wrap_future(future)

    assert not tracker.is_running
    assert hub.latest.closed_locally
    assert tracker.state == ConnectionState.STOPPED
    assert tracker.request_stop().done()


@pytest.mark.asyncio
async def test_stop_is_idempotent(stream_config: AisStreamConfig, hub: FakeClientHub, sink: RecordingSink) -> None:
    registry = InMemoryCarrierRegistry()
    registry.add("A")
    tracker = await _started(stream_config, registry, sink, hub)

    await tracker.stop()
    await tracker.stop()
    await tracker.start()

    assert hub.local_closes == 1
    assert not tracker.is_running
