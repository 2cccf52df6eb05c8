"""Tests for speed-windowed movement classification."""

from __future__ import annotations

import math
import random

import pytest

from trailwatch.core.geo import EARTH_RADIUS_M
from trailwatch.core.models import GeoPoint, MovementState, PositionLogEntry
from trailwatch.core.movement import average_speed_m_per_min, classify_movement

START = GeoPoint(3.139, 101.6869)
MINUTE = 60_000

_TIER = {MovementState.RESTING: 0, MovementState.ACTIVE: 1, MovementState.MOVING: 2}


def north_of(p: GeoPoint, meters: float) -> GeoPoint:
    """Point exactly ``meters`` north of ``p`` along the meridian."""
    return GeoPoint(p.lat + math.degrees(meters / EARTH_RADIUS_M), p.lon)


def entry(point: GeoPoint, t_ms: int) -> PositionLogEntry:
    return PositionLogEntry(point=point, timestamp_ms=t_ms, battery_percent=80.0)


def walk(step_m: float, step_ms: int, steps: int) -> list[PositionLogEntry]:
    return [entry(north_of(START, i * step_m), i * step_ms) for i in range(steps)]


def test_no_entries_is_unknown():
    assert classify_movement([]) == MovementState.UNKNOWN


def test_single_entry_is_unknown():
    assert classify_movement([entry(START, 0)]) == MovementState.UNKNOWN


def test_three_logs_fifty_meters_apart_is_moving():
    logs = walk(50, 5 * MINUTE, 3)
    assert average_speed_m_per_min(logs) == pytest.approx(10.0)
    assert classify_movement(logs) == MovementState.MOVING


def test_order_of_input_does_not_matter():
    logs = walk(50, 5 * MINUTE, 3)
    shuffled = logs[:]
    random.Random(7).shuffle(shuffled)
    assert classify_movement(shuffled) == MovementState.MOVING
    assert classify_movement(list(reversed(logs))) == MovementState.MOVING


def test_slow_walk_is_active():
    logs = walk(15, 5 * MINUTE, 3)  # 3 m/min
    assert classify_movement(logs) == MovementState.ACTIVE


def test_stationary_is_resting():
    logs = [entry(START, i * MINUTE) for i in range(5)]
    assert classify_movement(logs) == MovementState.RESTING


def test_stale_history_is_resting_not_unknown():
    logs = [entry(START, 0), entry(north_of(START, 500), 20 * MINUTE)]
    assert classify_movement(logs) == MovementState.RESTING


def test_only_last_ten_minutes_count():
    # A fast walk long ago, then standing still for the last ten minutes.
    old = [entry(north_of(START, 1000), 0)]
    recent = [entry(START, 15 * MINUTE + i * MINUTE) for i in range(11)]
    assert classify_movement(old + recent) == MovementState.RESTING


def test_jitter_below_noise_floor_is_ignored():
    # 0.9 m in 6 seconds would be 9 m/min without the noise floor.
    logs = [entry(START, 0), entry(north_of(START, 0.9), 6_000)]
    assert average_speed_m_per_min(logs) == 0.0
    assert classify_movement(logs) == MovementState.RESTING


def test_duplicate_timestamps_contribute_nothing():
    far = entry(north_of(START, 5000), 5 * MINUTE)
    near = entry(north_of(START, 50), 5 * MINUTE)
    # Stable sort keeps `far` ahead of `near`, so the far jump is the
    # zero-time pair and must be skipped.
    logs = [entry(START, 0), far, near]
    assert average_speed_m_per_min(logs) == pytest.approx(10.0)


@pytest.mark.parametrize("separations", [[0, 5, 15, 19, 20, 25, 49, 50, 51, 100, 5000]])
def test_more_distance_never_lowers_the_tier(separations):
    tiers = []
    for meters in separations:
        logs = [entry(START, 0), entry(north_of(START, meters), 10 * MINUTE)]
        tiers.append(_TIER[classify_movement(logs)])
    assert tiers == sorted(tiers)
    assert tiers[0] == 0 and tiers[-1] == 2
