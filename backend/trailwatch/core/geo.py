"""Geo math — great-circle distance and point-to-segment distance.

Pure functions over GeoPoint. The segment projection is computed on raw
lat/lon treated as planar coordinates; only the final distance is
geodesic. Good enough for corridors up to a few kilometers wide.
"""

from __future__ import annotations

import math

from trailwatch.core.models import GeoPoint

# Earth radius in meters (for Haversine).
EARTH_RADIUS_M = 6_371_000.0

# Approximate meters per degree of latitude.
METERS_PER_DEGREE_LAT = 111_320.0


def distance(a: GeoPoint, b: GeoPoint) -> float:
    """Great-circle distance in meters between two points."""
    phi1 = math.radians(a.lat)
    phi2 = math.radians(b.lat)
    d_phi = math.radians(b.lat - a.lat)
    d_lambda = math.radians(b.lon - a.lon)
    h = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    # Rounding can push h a hair past 1 for antipodal points.
    h = min(1.0, h)
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def projection_param(p: GeoPoint, start: GeoPoint, end: GeoPoint) -> float | None:
    """Planar projection parameter of ``p`` on start→end, clamped to [0, 1].

    Returns None for a zero-length segment.
    """
    dx = end.lon - start.lon
    dy = end.lat - start.lat
    len_sq = dx * dx + dy * dy
    if len_sq == 0:
        return None
    t = ((p.lon - start.lon) * dx + (p.lat - start.lat) * dy) / len_sq
    return max(0.0, min(1.0, t))


def distance_to_segment(p: GeoPoint, start: GeoPoint, end: GeoPoint) -> float:
    """Distance in meters from ``p`` to the segment start→end."""
    t = projection_param(p, start, end)
    if t is None:
        return distance(p, start)
    closest = GeoPoint(
        lat=start.lat + t * (end.lat - start.lat),
        lon=start.lon + t * (end.lon - start.lon),
    )
    return distance(p, closest)


def meters_per_degree(lat: float) -> tuple[float, float]:
    """(meters per degree latitude, meters per degree longitude) at ``lat``."""
    return METERS_PER_DEGREE_LAT, METERS_PER_DEGREE_LAT * math.cos(math.radians(lat))
