#!/usr/bin/env python3
"""Live probe for the aisstream.io position feed.

Tracks the MMSIs given on the command line through the full aisfeed
pipeline (subscription, parsing, dispatch) and prints every normalized
record the sink receives.

Needs ``AISSTREAM_API_KEY`` in the environment.  ``AISSTREAM_SERVER_URI``
defaults to the public endpoint.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys
import time
from dataclasses import dataclass
from pathlib import Path

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from aisfeed import AisStreamConfig, AisTracker, InMemoryCarrierRegistry, NormalizedPosition  # noqa: E402
from aisfeed._constants import DEFAULT_SERVER_URI  # noqa: E402

_LOG = logging.getLogger("stream_probe")


@dataclass
class ProbeStats:
    started_at: float
    total_records: int = 0
    first_record_at: float | None = None
    last_record_at: float | None = None

    def on_record(self, now: float) -> float | None:
        previous = self.last_record_at
        self.total_records += 1
        if self.first_record_at is None:
            self.first_record_at = now
        self.last_record_at = now
        return None if previous is None else now - previous


class PrintingSink:
    """Sink that prints every record it receives."""

    def __init__(self, stats: ProbeStats, *, as_json: bool) -> None:
        self._stats = stats
        self._as_json = as_json

    async def deliver(self, record: NormalizedPosition) -> None:
        now = time.time()
        delta = self._stats.on_record(now)
        gap_text = "first" if delta is None else f"{delta:.1f}s"
        if self._as_json:
            print(record.model_dump_json(indent=2))
            return
        print(
            f"[probe] rec#{self._stats.total_records} gap={gap_text} "
            f"mmsi={record.attributes.get('MMSI')} device={record.device_id} "
            f"lat={record.latitude:.5f} lon={record.longitude:.5f} "
            f"sog={record.speed:.1f}kn cog={record.course:.1f} "
            f"fix={record.fix_time.isoformat()}",
        )


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Live probe for the aisstream.io position feed.",
    )
    parser.add_argument(
        "mmsi",
        nargs="+",
        help="MMSI(s) to track.",
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=0,
        help="Maximum runtime in seconds (0 = run until Ctrl+C).",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Pretty-print each normalized record as JSON.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    return parser.parse_args()


def _print_summary(stats: ProbeStats) -> None:
    runtime = time.time() - stats.started_at
    print("[probe] Summary")
    print(f"[probe]   runtime_s     : {runtime:.1f}")
    print(f"[probe]   total_records : {stats.total_records}")
    if stats.first_record_at is not None:
        first_record = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(stats.first_record_at))
        print(f"[probe]   first_record  : {first_record}")
    if stats.last_record_at is not None:
        last_record = time.strftime("%Y-%m-%d %H:%M:%S", time.localtime(stats.last_record_at))
        print(f"[probe]   last_record   : {last_record}")


async def _run(args: argparse.Namespace, config: AisStreamConfig, stats: ProbeStats) -> None:
    registry = InMemoryCarrierRegistry()
    for mmsi in args.mmsi:
        carrier = registry.add(mmsi)
        print(f"[probe] tracking MMSI {carrier.carrier_id} as device {carrier.id}")

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, stop_event.set)

    sink = PrintingSink(stats, as_json=args.json)
    async with AisTracker(config, registry, sink) as tracker:
        _LOG.debug("Tracker state: %s", tracker.state)
        try:
            async with asyncio.timeout(args.duration or None):
                await stop_event.wait()
        except TimeoutError:
            _LOG.info("Duration of %ss reached", args.duration)


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    config = AisStreamConfig.from_env()
    if not config.server_uri:
        config = AisStreamConfig.from_env(server_uri=DEFAULT_SERVER_URI)
    if not config.is_configured:
        print("[probe] AISSTREAM_API_KEY is not set", file=sys.stderr)
        return 2

    stats = ProbeStats(started_at=time.time())
    try:
        asyncio.run(_run(args, config, stats))
    except Exception as exc:  # pragma: no cover - network/system interaction
        print(f"[probe] Probe failed: {exc}", file=sys.stderr)
        return 1
    finally:
        _print_summary(stats)
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
