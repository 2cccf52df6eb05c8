"""Tests for per-hiker position history."""

from __future__ import annotations

import pytest

from trailwatch.core.geo import distance
from trailwatch.core.history import HikerHistory
from trailwatch.core.models import GeoPoint, PositionLogEntry

A = GeoPoint(3.1385, 101.6865)
B = GeoPoint(3.1390, 101.6870)
C = GeoPoint(3.1395, 101.6875)


def _entry(point, t_ms):
    return PositionLogEntry(point=point, timestamp_ms=t_ms)


def test_empty_history():
    history = HikerHistory()
    assert history.entries("h1") == []
    assert history.latest("h1") is None
    assert history.track_distance_m("h1") == 0
    assert history.track_duration_ms("h1") == 0
    assert not history.has_history("h1")


def test_bounded_per_hiker():
    history = HikerHistory(max_points=3)
    for t in range(5):
        history.add("h1", _entry(A, t))
    history.add("h2", _entry(B, 0))
    assert [e.timestamp_ms for e in history.entries("h1")] == [2, 3, 4]
    assert len(history.entries("h2")) == 1
    assert sorted(history.hiker_ids()) == ["h1", "h2"]


def test_latest_is_by_timestamp_not_arrival():
    history = HikerHistory()
    history.add("h1", _entry(A, 2_000))
    history.add("h1", _entry(B, 1_000))
    assert history.latest("h1").point == A


def test_window_is_inclusive():
    history = HikerHistory()
    for t in (1_000, 2_000, 3_000, 4_000):
        history.add("h1", _entry(A, t))
    assert [e.timestamp_ms for e in history.window("h1", 2_000, 3_000)] == [2_000, 3_000]


def test_last_n():
    history = HikerHistory()
    for t in range(4):
        history.add("h1", _entry(A, t))
    assert [e.timestamp_ms for e in history.last("h1", 2)] == [2, 3]
    assert history.last("h1", 0) == []


def test_distance_and_duration_follow_time_order():
    history = HikerHistory()
    history.add("h1", _entry(C, 3_000))
    history.add("h1", _entry(A, 1_000))
    history.add("h1", _entry(B, 2_000))
    assert history.track_distance_m("h1") == pytest.approx(distance(A, B) + distance(B, C))
    assert history.track_duration_ms("h1") == 2_000


def test_clear():
    history = HikerHistory()
    history.add("h1", _entry(A, 0))
    history.add("h2", _entry(A, 0))
    history.clear("h1")
    assert not history.has_history("h1")
    assert history.has_history("h2")
    history.clear_all()
    assert history.hiker_ids() == []
