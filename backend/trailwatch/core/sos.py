"""SOS lifecycle — per-hiker emergency state machine.

Phases: Normal → Raised → Handled → EmergencyDispatched, back to Normal
only through ``reset()``. Every transition is idempotent: calling it when
its effect is already in place (or its precondition doesn't hold) returns
False and leaves the state untouched.

``reconcile`` merges an operator's local action with the state reported
by the data source: the local override wins until the source catches up.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable

import structlog

from trailwatch.core.models import ConditionKind, SosState

if TYPE_CHECKING:
    from trailwatch.core.notifications import NotificationLedger

log = structlog.get_logger()

NORMAL_STATE = SosState()


class SosPhase(str, Enum):
    NORMAL = "Normal"
    RAISED = "Raised"
    HANDLED = "Handled"
    EMERGENCY_DISPATCHED = "EmergencyDispatched"


def _now_ms() -> int:
    return int(time.time() * 1000)


def phase_of(state: SosState) -> SosPhase:
    if not state.raised:
        return SosPhase.NORMAL
    if state.emergency_dispatched:
        return SosPhase.EMERGENCY_DISPATCHED
    if state.handled:
        return SosPhase.HANDLED
    return SosPhase.RAISED


def status_text(state: SosState) -> str:
    """Operator-facing summary of the SOS state."""
    if not state.raised:
        return "No SOS Active"
    if state.handled:
        return "Help On The Way"
    return "Pending Response"


def sos_state_from_flags(
    raised: bool,
    handled: bool = False,
    handled_at_ms: int | None = None,
    emergency_dispatched: bool = False,
    emergency_at_ms: int | None = None,
) -> SosState:
    """Build a SosState from loosely-typed source flags, enforcing invariants.

    Handled/dispatched flags are dropped when no SOS is raised, and a
    dispatch always implies handled (borrowing the dispatch timestamp).
    """
    if not raised:
        return NORMAL_STATE
    if emergency_dispatched:
        if not handled:
            handled = True
            handled_at_ms = emergency_at_ms
    else:
        emergency_at_ms = None
    if not handled:
        handled_at_ms = None
    return SosState(
        raised=True,
        handled=handled,
        handled_at_ms=handled_at_ms,
        emergency_dispatched=emergency_dispatched,
        emergency_at_ms=emergency_at_ms,
    )


class SosLifecycle:
    """State machine for one hiker's SOS.

    Callers must not drive the same hiker's lifecycle from two threads at
    once; transitions are idempotent but not commutative.
    """

    def __init__(
        self,
        hiker_id: str,
        state: SosState = NORMAL_STATE,
        *,
        ledger: NotificationLedger | None = None,
        clock: Callable[[], int] = _now_ms,
    ) -> None:
        self.hiker_id = hiker_id
        self._state = state
        self._ledger = ledger
        self._clock = clock

    @property
    def state(self) -> SosState:
        return self._state

    @property
    def phase(self) -> SosPhase:
        return phase_of(self._state)

    def status_text(self) -> str:
        return status_text(self._state)

    def raise_sos(self) -> bool:
        if self._state.raised:
            return False
        self._state = SosState(raised=True)
        log.info("sos_raised", hiker=self.hiker_id)
        return True

    def mark_handled(self) -> bool:
        if not self._state.raised or self._state.handled:
            return False
        now = self._clock()
        self._state = SosState(
            raised=True,
            handled=True,
            handled_at_ms=now,
            emergency_dispatched=self._state.emergency_dispatched,
            emergency_at_ms=self._state.emergency_at_ms,
        )
        log.info("sos_handled", hiker=self.hiker_id, at_ms=now)
        return True

    def dispatch_emergency(self) -> bool:
        if not self._state.raised or self._state.emergency_dispatched:
            return False
        now = self._clock()
        handled_at = self._state.handled_at_ms if self._state.handled else now
        self._state = SosState(
            raised=True,
            handled=True,
            handled_at_ms=handled_at,
            emergency_dispatched=True,
            emergency_at_ms=now,
        )
        log.info("sos_emergency_dispatched", hiker=self.hiker_id, at_ms=now)
        return True

    def reset(self) -> bool:
        if not self._state.raised:
            return False
        self._state = NORMAL_STATE
        if self._ledger is not None:
            self._ledger.clear(self.hiker_id, ConditionKind.SOS)
        log.info("sos_reset", hiker=self.hiker_id)
        return True


@dataclass(frozen=True)
class Reconciliation:
    effective: SosState
    override: SosState | None


def _remote_reached(override: SosState, remote: SosState) -> bool:
    """Has the source caught up with (or moved past) the local override?"""
    phase = phase_of(override)
    if phase is SosPhase.NORMAL:
        return not remote.raised
    if not remote.raised:
        # Resolved at the source after the local action; nothing left to hold.
        return phase is not SosPhase.RAISED
    if phase is SosPhase.RAISED:
        return True
    if phase is SosPhase.HANDLED:
        return remote.handled
    return remote.emergency_dispatched


def reconcile(local_override: SosState | None, remote: SosState) -> Reconciliation:
    """Effective SOS state given an optional local override.

    The override wins until the remote state confirms it; from then on the
    remote state is effective and the override is dropped.
    """
    if local_override is None:
        return Reconciliation(effective=remote, override=None)
    if _remote_reached(local_override, remote):
        return Reconciliation(effective=remote, override=None)
    return Reconciliation(effective=local_override, override=local_override)
