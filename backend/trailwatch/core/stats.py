"""Monitor statistics and active-hiker tracking.

Tracks in-memory counters and a sliding window of hikers that reported
recently. No framework dependencies.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass


@dataclass
class HikerActivity:
    """Tracks a single hiker's recent reporting."""
    last_seen: float          # time.monotonic() timestamp
    source: str               # "live" or "simulated"
    reports_sent: int = 0


class MonitorStats:
    """Thread-safe monitor statistics with active-hiker tracking.

    A hiker counts as active if its last report arrived within
    ``active_window_seconds`` (default 600s, one movement window).
    """

    def __init__(self, active_window_seconds: float = 600.0) -> None:
        self._lock = threading.Lock()
        self._started_at = time.time()
        self._active_window = active_window_seconds

        # Counters
        self.reports_received: int = 0
        self.reports_rejected: int = 0
        self.ticks: int = 0
        self.tick_failures: int = 0
        self.events_emitted: int = 0
        self.sink_errors: int = 0
        self.unsafe_hikers: int = 0
        self.sos_active: int = 0

        # hiker_id → HikerActivity
        self._hikers: dict[str, HikerActivity] = {}

    def record_report(self, hiker_id: str, source: str) -> None:
        now = time.monotonic()
        with self._lock:
            self.reports_received += 1
            hiker = self._hikers.get(hiker_id)
            if hiker is not None:
                hiker.last_seen = now
                hiker.source = source
                hiker.reports_sent += 1
            else:
                self._hikers[hiker_id] = HikerActivity(
                    last_seen=now, source=source, reports_sent=1,
                )

    def record_rejected(self, count: int = 1) -> None:
        with self._lock:
            self.reports_rejected += count

    def record_tick(self, unsafe: int, sos_active: int) -> None:
        with self._lock:
            self.ticks += 1
            self.unsafe_hikers = unsafe
            self.sos_active = sos_active

    def record_tick_failure(self) -> None:
        with self._lock:
            self.tick_failures += 1

    def record_events(self, count: int) -> None:
        with self._lock:
            self.events_emitted += count

    def record_sink_error(self) -> None:
        with self._lock:
            self.sink_errors += 1

    def _prune_stale_hikers(self, now: float) -> None:
        """Remove hikers not seen within the active window. Caller holds lock."""
        cutoff = now - self._active_window
        stale = [hid for hid, h in self._hikers.items() if h.last_seen < cutoff]
        for hid in stale:
            del self._hikers[hid]

    def snapshot(self) -> dict:
        """Return a JSON-serializable snapshot of all stats."""
        now_mono = time.monotonic()
        with self._lock:
            self._prune_stale_hikers(now_mono)

            live = sum(1 for h in self._hikers.values() if h.source == "live")
            simulated = sum(1 for h in self._hikers.values() if h.source == "simulated")

            return {
                "uptime_seconds": round(time.time() - self._started_at, 1),
                "reports_received": self.reports_received,
                "reports_rejected": self.reports_rejected,
                "ticks": self.ticks,
                "tick_failures": self.tick_failures,
                "events_emitted": self.events_emitted,
                "sink_errors": self.sink_errors,
                "unsafe_hikers": self.unsafe_hikers,
                "sos_active": self.sos_active,
                "active_hikers": {
                    "total": len(self._hikers),
                    "live": live,
                    "simulated": simulated,
                    "window_seconds": self._active_window,
                },
            }
