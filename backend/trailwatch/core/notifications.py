"""Notification deduplication.

Remembers which (hiker, condition) pairs have already been alerted on so
that re-evaluating an unchanged condition does not alert again. An entry
disappears the moment its condition is observed false.
"""

from __future__ import annotations

from trailwatch.core.models import ConditionKind


class NotificationLedger:
    """Active-alert ledger keyed by (hiker_id, condition kind)."""

    def __init__(self) -> None:
        self._active: set[tuple[str, ConditionKind]] = set()

    def should_notify(self, hiker_id: str, kind: ConditionKind, currently_true: bool) -> bool:
        """True exactly once per false→true transition of the condition."""
        key = (hiker_id, kind)
        if not currently_true:
            self._active.discard(key)
            return False
        if key in self._active:
            return False
        self._active.add(key)
        return True

    def is_active(self, hiker_id: str, kind: ConditionKind) -> bool:
        return (hiker_id, kind) in self._active

    def clear(self, hiker_id: str, kind: ConditionKind | None = None) -> None:
        """Forget one condition for a hiker, or all of them."""
        if kind is not None:
            self._active.discard((hiker_id, kind))
            return
        self._active = {key for key in self._active if key[0] != hiker_id}

    def active_keys(self) -> set[tuple[str, ConditionKind]]:
        return set(self._active)
