"""Shared test fixtures."""

from __future__ import annotations

import pytest

from trailwatch.core.history import HikerHistory
from trailwatch.core.monitor import HikerMonitor, MonitorSettings
from trailwatch.core.notifications import NotificationLedger
from trailwatch.core.stats import MonitorStats
from trailwatch.core.tracks import TrackRegistry
from trailwatch.sources.live import QueuePositionSource


class RecordingSink:
    """NotificationSink that keeps every delivered event."""

    def __init__(self) -> None:
        self.events = []

    async def deliver(self, event) -> None:
        self.events.append(event)


class FakeClock:
    def __init__(self, start_ms: int = 1_700_000_000_000) -> None:
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def stats():
    return MonitorStats()


@pytest.fixture
def sink():
    return RecordingSink()


@pytest.fixture
def tracks():
    return TrackRegistry()


@pytest.fixture
def ledger():
    return NotificationLedger()


@pytest.fixture
def live_source(stats):
    return QueuePositionSource(max_size=100, stats=stats)


@pytest.fixture
def monitor(live_source, tracks, sink, stats, ledger, clock):
    return HikerMonitor(
        source=live_source,
        tracks=tracks,
        sink=sink,
        stats=stats,
        ledger=ledger,
        history=HikerHistory(max_points=100),
        settings=MonitorSettings(),
        clock=clock,
    )
