"""Safety check — is a hiker inside the corridor of the nearest track?

Policy, kept as found in the field deployment:
- no tracks (or none enabled) means no constraint, so everyone is safe;
- a track's own half-width can widen the global threshold, never narrow it.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Iterable

from trailwatch.core.models import SafetyVerdict
from trailwatch.core.tracks import nearest_distance

if TYPE_CHECKING:
    from trailwatch.core.models import GeoPoint, HikerSnapshot, SafetyTrack

# Default global deviation threshold (meters).
DEFAULT_DEVIATION_THRESHOLD_M = 50.0


def check_hiker_safety(
    hiker_id: str,
    position: GeoPoint,
    tracks: Iterable[SafetyTrack],
    threshold_m: float = DEFAULT_DEVIATION_THRESHOLD_M,
) -> SafetyVerdict:
    """Verdict for one hiker against the enabled tracks."""
    enabled = [t for t in tracks if t.enabled]
    if not enabled:
        return SafetyVerdict(hiker_id=hiker_id, is_safe=True, distance_m=0.0)

    closest: SafetyTrack | None = None
    min_distance = math.inf
    for track in enabled:
        d = nearest_distance(track, position)
        if d < min_distance:
            min_distance = d
            closest = track

    if closest is None:
        # Every enabled track is pointless (no waypoints): nothing to be near.
        return SafetyVerdict(hiker_id=hiker_id, is_safe=False, distance_m=math.inf)

    effective = max(threshold_m, closest.corridor_half_width_m)
    return SafetyVerdict(
        hiker_id=hiker_id,
        is_safe=min_distance <= effective,
        distance_m=min_distance,
        closest_track_id=closest.id,
    )


def evaluate_all(
    hikers: Iterable[HikerSnapshot],
    tracks: Iterable[SafetyTrack],
    threshold_m: float = DEFAULT_DEVIATION_THRESHOLD_M,
) -> list[SafetyVerdict]:
    """Unsafe verdicts only, in hiker order."""
    tracks = tuple(tracks)
    unsafe = []
    for hiker in hikers:
        verdict = check_hiker_safety(hiker.id, hiker.position, tracks, threshold_m)
        if not verdict.is_safe:
            unsafe.append(verdict)
    return unsafe
