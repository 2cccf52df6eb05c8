"""TrailWatch — core internal data models.

These are plain dataclasses with no framework dependencies.
Raw reports are converted into these at the ingestion boundary.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


@dataclass(frozen=True)
class GeoPoint:
    lat: float
    lon: float


@dataclass(frozen=True)
class PositionLogEntry:
    point: GeoPoint
    timestamp_ms: int
    battery_percent: float = 100.0
    sos_raised: bool = False


class MovementState(str, Enum):
    UNKNOWN = "Unknown"
    MOVING = "Moving"
    ACTIVE = "Active"
    RESTING = "Resting"
    SOS = "SOS"
    INACTIVE = "Inactive"


@dataclass(frozen=True)
class SosState:
    """Emergency state of one hiker.

    Only ``trailwatch.core.sos`` builds new values of this type;
    everything else treats it as read-only.
    """
    raised: bool = False
    handled: bool = False
    handled_at_ms: int | None = None
    emergency_dispatched: bool = False
    emergency_at_ms: int | None = None


@dataclass(frozen=True)
class SafetyTrack:
    id: str
    name: str
    points: tuple[GeoPoint, ...] = ()
    corridor_half_width_m: float = 50.0
    enabled: bool = True


@dataclass(frozen=True)
class HikerSnapshot:
    id: str
    name: str
    position: GeoPoint
    movement_state: MovementState
    battery_percent: float
    last_update_ms: int
    sos: SosState = field(default_factory=SosState)


@dataclass(frozen=True)
class SafetyVerdict:
    hiker_id: str
    is_safe: bool
    distance_m: float
    closest_track_id: str | None = None


class ConditionKind(str, Enum):
    SOS = "sos"
    LOW_BATTERY = "low_battery"
    OFF_TRACK = "off_track"


class EventKind(str, Enum):
    SOS = "sos"
    LOW_BATTERY = "low_battery"
    OFF_TRACK = "off_track"
    BACK_ON_TRACK = "back_on_track"


@dataclass(frozen=True)
class NotificationEvent:
    hiker_id: str
    kind: EventKind
    message: str
    timestamp_ms: int
    data: dict = field(default_factory=dict)


@dataclass(frozen=True)
class PositionReport:
    """One parsed report, identical in shape for live and simulated sources."""
    hiker_id: str
    name: str
    entry: PositionLogEntry
    active: bool = True
    remote_sos: SosState = field(default_factory=SosState)
