"""Movement classification from a hiker's recent position log.

GPS fixes from hiking devices arrive irregularly and jitter by several
meters even when the device is lying still. Classification therefore
averages speed over a 10-minute window and ignores sub-meter totals.
"""

from __future__ import annotations

from typing import Iterable

from trailwatch.core.geo import distance
from trailwatch.core.models import MovementState, PositionLogEntry

# Only entries this close to the newest one are considered.
TIME_WINDOW_MS = 10 * 60 * 1000

# Average speeds (meters per minute) at or above which a tier applies.
MOVING_THRESHOLD_M_PER_MIN = 5.0
ACTIVE_THRESHOLD_M_PER_MIN = 2.0

# Total window distance below this is treated as GPS noise.
NOISE_FLOOR_M = 1.0


def _recent_window(entries: Iterable[PositionLogEntry]) -> list[PositionLogEntry]:
    """Entries within TIME_WINDOW_MS of the newest, newest first."""
    ordered = sorted(entries, key=lambda e: e.timestamp_ms, reverse=True)
    if not ordered:
        return []
    latest = ordered[0].timestamp_ms
    return [e for e in ordered if latest - e.timestamp_ms <= TIME_WINDOW_MS]


def average_speed_m_per_min(entries: Iterable[PositionLogEntry]) -> float:
    """Average speed over the recent window, 0.0 when it can't be measured."""
    window = _recent_window(entries)
    total_distance = 0.0
    total_minutes = 0.0
    for newer, older in zip(window, window[1:]):
        dt_ms = newer.timestamp_ms - older.timestamp_ms
        # Duplicate timestamps contribute neither distance nor time.
        if dt_ms <= 0:
            continue
        total_distance += distance(newer.point, older.point)
        total_minutes += dt_ms / 60_000
    if total_minutes <= 0 or total_distance < NOISE_FLOOR_M:
        return 0.0
    return total_distance / total_minutes


def classify_movement(entries: Iterable[PositionLogEntry]) -> MovementState:
    """Classify one hiker's log as Moving, Active, Resting or Unknown.

    Fewer than two entries overall is Unknown. A single fresh entry with
    only stale history is Resting: the device is alive but not going
    anywhere.
    """
    entries = list(entries)
    if len(entries) < 2:
        return MovementState.UNKNOWN
    if len(_recent_window(entries)) < 2:
        return MovementState.RESTING

    speed = average_speed_m_per_min(entries)
    if speed >= MOVING_THRESHOLD_M_PER_MIN:
        return MovementState.MOVING
    if speed >= ACTIVE_THRESHOLD_M_PER_MIN:
        return MovementState.ACTIVE
    return MovementState.RESTING
