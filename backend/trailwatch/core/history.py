"""Per-hiker position history.

Keeps the most recent ``max_points`` log entries for each hiker, in
arrival order. Arrival order is not time order; consumers that care sort
by ``timestamp_ms`` themselves.
"""

from __future__ import annotations

from collections import deque
from typing import TYPE_CHECKING

from trailwatch.core.geo import distance

if TYPE_CHECKING:
    from trailwatch.core.models import PositionLogEntry

DEFAULT_MAX_POINTS = 1000


class HikerHistory:
    def __init__(self, max_points: int = DEFAULT_MAX_POINTS) -> None:
        self._max_points = max_points
        self._logs: dict[str, deque[PositionLogEntry]] = {}

    def add(self, hiker_id: str, entry: PositionLogEntry) -> None:
        log = self._logs.get(hiker_id)
        if log is None:
            log = deque(maxlen=self._max_points)
            self._logs[hiker_id] = log
        log.append(entry)

    def entries(self, hiker_id: str) -> list[PositionLogEntry]:
        return list(self._logs.get(hiker_id, ()))

    def latest(self, hiker_id: str) -> PositionLogEntry | None:
        """Entry with the newest timestamp (not the last to arrive)."""
        log = self._logs.get(hiker_id)
        if not log:
            return None
        return max(log, key=lambda e: e.timestamp_ms)

    def window(self, hiker_id: str, since_ms: int, until_ms: int) -> list[PositionLogEntry]:
        return [
            e for e in self._logs.get(hiker_id, ())
            if since_ms <= e.timestamp_ms <= until_ms
        ]

    def last(self, hiker_id: str, count: int) -> list[PositionLogEntry]:
        if count <= 0:
            return []
        return list(self._logs.get(hiker_id, ()))[-count:]

    def track_distance_m(self, hiker_id: str) -> float:
        """Total path length walked, in time order."""
        ordered = sorted(self._logs.get(hiker_id, ()), key=lambda e: e.timestamp_ms)
        return sum(distance(a.point, b.point) for a, b in zip(ordered, ordered[1:]))

    def track_duration_ms(self, hiker_id: str) -> int:
        log = self._logs.get(hiker_id)
        if not log:
            return 0
        stamps = [e.timestamp_ms for e in log]
        return max(stamps) - min(stamps)

    def has_history(self, hiker_id: str) -> bool:
        return bool(self._logs.get(hiker_id))

    def hiker_ids(self) -> list[str]:
        return list(self._logs)

    def clear(self, hiker_id: str) -> None:
        self._logs.pop(hiker_id, None)

    def clear_all(self) -> None:
        self._logs.clear()
