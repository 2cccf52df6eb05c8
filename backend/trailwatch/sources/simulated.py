"""Simulated position source.

Generates plausible hiker traffic around a base location for demos and
tests. Reports are built as the same raw payloads the field devices send
and go through the same parser, so downstream code cannot tell the two
sources apart.

The first six hikers are fixed personas (healthy, SOS, low battery,
resting, inactive, critical battery) so every dashboard state shows up
right away; the rest are random.
"""

from __future__ import annotations

import math
import random
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from trailwatch.core.models import GeoPoint, SosState
from trailwatch.core.sos import NORMAL_STATE
from trailwatch.ingest.parsing import parse_report

if TYPE_CHECKING:
    from trailwatch.core.models import PositionReport

log = structlog.get_logger()

DEFAULT_BASE = GeoPoint(lat=3.139, lon=101.6869)

# Approximate: 1 degree latitude ≈ 111,000 m
_M_PER_DEG = 111_000.0

_NAMES = (
    "Alice Johnson", "Bob Smith", "Charlie Brown", "Diana Wilson",
    "Edward Davis", "Fiona Miller", "George Wilson", "Hannah Taylor",
    "Ian Anderson", "Julia Martinez", "Kevin Lee", "Lisa Garcia",
    "Michael Chen", "Nancy Rodriguez", "Oliver Thompson", "Paula White",
    "Quinn Jackson", "Rachel Green", "Samuel King", "Tina Lewis",
)

# (battery, moving, active, sos) for the leading personas.
_PERSONAS = (
    (85.0, True, True, False),   # healthy
    (45.0, False, True, True),   # SOS
    (20.0, True, True, False),   # low battery
    (60.0, False, True, False),  # resting
    (30.0, False, False, False), # inactive
    (8.0, True, True, False),    # critical battery
)


@dataclass
class SimHiker:
    hiker_id: str
    name: str
    lat: float
    lon: float
    bearing: float
    speed_m_per_min: float
    battery: float
    moving: bool = True
    active: bool = True
    sos: SosState = field(default_factory=SosState)


class SimulatedPositionSource:
    """PositionSource producing synthetic hikers on a simulated clock."""

    name = "simulated"

    def __init__(
        self,
        hikers_count: int = 10,
        *,
        auto_sos: bool = True,
        base: GeoPoint = DEFAULT_BASE,
        spread_deg: float = 0.01,
        step_ms: int = 30_000,
        seed: int | None = None,
        start_ms: int | None = None,
    ) -> None:
        self._rng = random.Random(seed)
        self._auto_sos = auto_sos
        self._base = base
        self._spread = spread_deg
        self._step_ms = step_ms
        self._clock_ms = start_ms if start_ms is not None else int(time.time() * 1000)
        self.hikers = self._generate(hikers_count)

    def _generate(self, count: int) -> list[SimHiker]:
        hikers = []
        for i in range(count):
            lat = self._base.lat + (self._rng.random() - 0.5) * self._spread
            lon = self._base.lon + (self._rng.random() - 0.5) * self._spread
            if i < len(_PERSONAS):
                battery, moving, active, sos = _PERSONAS[i]
            else:
                battery = float(self._rng.randint(50, 99))
                moving = self._rng.random() < 0.5
                active, sos = True, False
            hikers.append(SimHiker(
                hiker_id=f"sim_hiker_{i + 1}",
                name=_NAMES[i % len(_NAMES)],
                lat=lat,
                lon=lon,
                bearing=self._rng.uniform(0, 360),
                speed_m_per_min=self._rng.uniform(20, 80),
                battery=battery,
                moving=moving,
                active=active,
                sos=SosState(raised=True) if sos else NORMAL_STATE,
            ))
        return hikers

    def _move(self, hiker: SimHiker, minutes: float) -> None:
        """Walk a hiker along its bearing, with random turns."""
        hiker.bearing = (hiker.bearing + self._rng.uniform(-15, 15)) % 360
        distance_m = hiker.speed_m_per_min * minutes
        bearing_rad = math.radians(hiker.bearing)

        dlat = (distance_m * math.cos(bearing_rad)) / _M_PER_DEG
        dlon = (distance_m * math.sin(bearing_rad)) / (_M_PER_DEG * math.cos(math.radians(hiker.lat)))

        # Keep hikers inside the simulated area.
        half = self._spread / 2
        hiker.lat = max(self._base.lat - half, min(self._base.lat + half, hiker.lat + dlat))
        hiker.lon = max(self._base.lon - half, min(self._base.lon + half, hiker.lon + dlon))

    def _step(self, hiker: SimHiker) -> None:
        rng = self._rng
        if hiker.active and not hiker.sos.raised:
            if hiker.moving or rng.random() < 0.3:
                self._move(hiker, self._step_ms / 60_000)
            if rng.random() < 0.1:
                hiker.moving = not hiker.moving

        if rng.random() < 0.05:
            hiker.battery = max(0.0, hiker.battery - rng.randint(1, 2))

        if self._auto_sos and hiker.active and not hiker.sos.raised and rng.random() < 0.005:
            hiker.sos = SosState(raised=True)
            log.info("sim_sos_raised", hiker=hiker.hiker_id)
        elif hiker.sos.raised and hiker.sos.handled and rng.random() < 0.1:
            # Rescue reached the hiker.
            hiker.sos = NORMAL_STATE
            log.info("sim_sos_resolved", hiker=hiker.hiker_id)

    def _to_raw(self, hiker: SimHiker) -> dict:
        sos = hiker.sos
        return {
            "node_id": hiker.hiker_id,
            "name": hiker.name,
            "latitude": round(hiker.lat, 7),
            "longitude": round(hiker.lon, 7),
            "battery": hiker.battery,
            "timestamp": self._clock_ms,
            "active": hiker.active,
            "sos_status": sos.raised,
            "sos_handled": sos.handled,
            "sos_handled_time": sos.handled_at_ms,
            "sos_emergency": sos.emergency_dispatched,
            "sos_emergency_time": sos.emergency_at_ms,
        }

    async def poll(self) -> list[PositionReport]:
        """Advance the simulated clock one step and report every hiker."""
        self._clock_ms += self._step_ms
        reports = []
        for hiker in self.hikers:
            self._step(hiker)
            reports.append(parse_report(self._to_raw(hiker), self._clock_ms))
        return reports

    async def publish_sos(self, hiker_id: str, state: SosState) -> None:
        for hiker in self.hikers:
            if hiker.hiker_id == hiker_id:
                hiker.sos = state
                log.debug("sim_sos_applied", hiker=hiker_id, raised=state.raised,
                          handled=state.handled)
                return
        log.warning("sim_sos_unknown_hiker", hiker=hiker_id)

    @property
    def clock_ms(self) -> int:
        return self._clock_ms
