"""Safety tracks — corridor geometry and the administrator track set.

A track is a polyline of waypoints with a corridor half-width. Distance
queries go through Geo-Math; the corridor polygon is only used for
display/export and is never part of the safety decision.
"""

from __future__ import annotations

import math
import time
import uuid
from dataclasses import replace
from typing import Any, Iterable

import structlog

from trailwatch.core.geo import distance, distance_to_segment, meters_per_degree
from trailwatch.core.models import GeoPoint, SafetyTrack
from trailwatch.errors import InvalidTrackError

log = structlog.get_logger()

# Demo trail near the default map center.
_SAMPLE_TRACK_POINTS = (
    GeoPoint(3.1385, 101.6865),
    GeoPoint(3.1390, 101.6870),
    GeoPoint(3.1395, 101.6875),
    GeoPoint(3.1400, 101.6880),
    GeoPoint(3.1405, 101.6885),
)


def nearest_distance(track: SafetyTrack, point: GeoPoint) -> float:
    """Distance in meters from ``point`` to the closest part of ``track``.

    A track without points is unreachable (``inf``); a single-point track
    degrades to the distance to that point.
    """
    pts = track.points
    if not pts:
        return math.inf
    if len(pts) == 1:
        return distance(point, pts[0])
    best = math.inf
    for start, end in zip(pts, pts[1:]):
        d = distance_to_segment(point, start, end)
        if d < best:
            best = d
    return best


def _unit_normal_m(start: GeoPoint, end: GeoPoint, at_lat: float) -> tuple[float, float] | None:
    """Left-hand unit normal of start→end in local meters, or None if degenerate."""
    m_lat, m_lon = meters_per_degree(at_lat)
    dx = (end.lon - start.lon) * m_lon
    dy = (end.lat - start.lat) * m_lat
    length = math.hypot(dx, dy)
    if length < 1e-6:
        return None
    return -dy / length, dx / length


def corridor_polygon(track: SafetyTrack) -> list[GeoPoint]:
    """Closed polygon around the track: left side forward, right side back.

    Each waypoint is pushed ``corridor_half_width_m`` along the normal of
    its outgoing segment (the last waypoint uses its incoming segment).
    Waypoints on zero-length segments are skipped.
    """
    pts = track.points
    if len(pts) < 2:
        return []

    half = track.corridor_half_width_m
    left: list[GeoPoint] = []
    right: list[GeoPoint] = []
    for i, p in enumerate(pts):
        if i < len(pts) - 1:
            normal = _unit_normal_m(p, pts[i + 1], p.lat)
        else:
            normal = _unit_normal_m(pts[i - 1], p, p.lat)
        if normal is None:
            continue
        m_lat, m_lon = meters_per_degree(p.lat)
        if m_lon <= 0:
            continue
        nx, ny = normal
        d_lat = ny * half / m_lat
        d_lon = nx * half / m_lon
        left.append(GeoPoint(p.lat + d_lat, p.lon + d_lon))
        right.append(GeoPoint(p.lat - d_lat, p.lon - d_lon))

    polygon = left + right[::-1]
    if len(polygon) > 2:
        polygon.append(polygon[0])
    return polygon


def _check_point(p: GeoPoint) -> None:
    if not (-90.0 <= p.lat <= 90.0 and -180.0 <= p.lon <= 180.0):
        raise InvalidTrackError(f"waypoint out of range: ({p.lat}, {p.lon})")


def make_track(
    name: str,
    points: Iterable[GeoPoint],
    corridor_half_width_m: float,
    *,
    enabled: bool = True,
    track_id: str | None = None,
) -> SafetyTrack:
    """Build a validated SafetyTrack, generating an id if none is given."""
    pts = tuple(points)
    for p in pts:
        _check_point(p)
    if not corridor_half_width_m > 0:
        raise InvalidTrackError(f"corridor half-width must be > 0, got {corridor_half_width_m}")
    if track_id is None:
        track_id = f"track_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"
    return SafetyTrack(
        id=track_id,
        name=name,
        points=pts,
        corridor_half_width_m=float(corridor_half_width_m),
        enabled=enabled,
    )


def track_from_dict(raw: dict[str, Any]) -> SafetyTrack:
    """Parse a track definition as written in config.yaml.

    Points may be ``{lat, lon}`` mappings or ``[lat, lon]`` pairs.
    """
    points = []
    for item in raw.get("points", []):
        try:
            if isinstance(item, dict):
                points.append(GeoPoint(float(item["lat"]), float(item["lon"])))
            else:
                lat, lon = item
                points.append(GeoPoint(float(lat), float(lon)))
        except (KeyError, TypeError, ValueError) as exc:
            raise InvalidTrackError(f"bad waypoint {item!r} in track {raw.get('name')!r}") from exc
    try:
        width = float(raw.get("corridor_half_width_m", 50.0))
    except (TypeError, ValueError) as exc:
        raise InvalidTrackError(f"bad corridor width in track {raw.get('name')!r}") from exc
    return make_track(
        name=str(raw.get("name", "")),
        points=points,
        corridor_half_width_m=width,
        enabled=bool(raw.get("enabled", True)),
        track_id=raw.get("id"),
    )


class TrackRegistry:
    """Administrator-managed set of safety tracks.

    One instance per monitoring context; evaluations read ``snapshot()``
    so edits never race a running evaluation.
    """

    def __init__(self, tracks: Iterable[SafetyTrack] = ()) -> None:
        self._tracks: list[SafetyTrack] = list(tracks)

    def add(
        self,
        name: str,
        points: Iterable[GeoPoint],
        corridor_half_width_m: float,
        *,
        enabled: bool = True,
    ) -> SafetyTrack:
        track = make_track(name, points, corridor_half_width_m, enabled=enabled)
        self._tracks.append(track)
        log.info("track_added", track_id=track.id, name=name, points=len(track.points))
        return track

    def update(self, track_id: str, **changes: Any) -> SafetyTrack | None:
        """Apply field changes to a track. Returns None if it doesn't exist."""
        for i, track in enumerate(self._tracks):
            if track.id == track_id:
                if "points" in changes:
                    changes["points"] = tuple(changes["points"])
                updated = replace(track, **changes)
                # Re-validate through make_track.
                updated = make_track(
                    updated.name,
                    updated.points,
                    updated.corridor_half_width_m,
                    enabled=updated.enabled,
                    track_id=updated.id,
                )
                self._tracks[i] = updated
                log.info("track_updated", track_id=track_id, fields=sorted(changes))
                return updated
        return None

    def remove(self, track_id: str) -> bool:
        for i, track in enumerate(self._tracks):
            if track.id == track_id:
                del self._tracks[i]
                log.info("track_removed", track_id=track_id)
                return True
        return False

    def get(self, track_id: str) -> SafetyTrack | None:
        for track in self._tracks:
            if track.id == track_id:
                return track
        return None

    def tracks(self) -> list[SafetyTrack]:
        return list(self._tracks)

    def enabled_tracks(self) -> list[SafetyTrack]:
        return [t for t in self._tracks if t.enabled]

    def replace_all(self, tracks: Iterable[SafetyTrack]) -> None:
        """Swap in a new track set (e.g. after settings were reloaded)."""
        self._tracks = list(tracks)

    def snapshot(self) -> tuple[SafetyTrack, ...]:
        return tuple(self._tracks)

    def add_sample_track(self) -> SafetyTrack:
        """Add the demo trail used when no tracks are configured."""
        track = make_track(
            "Main Hiking Trail",
            _SAMPLE_TRACK_POINTS,
            corridor_half_width_m=50.0,
            track_id=f"sample_track_{int(time.time() * 1000)}",
        )
        self._tracks.append(track)
        return track

    def __len__(self) -> int:
        return len(self._tracks)
