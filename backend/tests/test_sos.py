"""Tests for the SOS state machine and local/remote reconciliation."""

from __future__ import annotations

import itertools

import pytest

from trailwatch.core.models import ConditionKind, SosState
from trailwatch.core.notifications import NotificationLedger
from trailwatch.core.sos import (
    NORMAL_STATE,
    SosLifecycle,
    SosPhase,
    reconcile,
    sos_state_from_flags,
    status_text,
)


class TickingClock:
    def __init__(self) -> None:
        self.now = 1_000

    def __call__(self) -> int:
        self.now += 1_000
        return self.now


RAISED = SosState(raised=True)
HANDLED = SosState(raised=True, handled=True, handled_at_ms=5_000)
DISPATCHED = SosState(raised=True, handled=True, handled_at_ms=5_000,
                      emergency_dispatched=True, emergency_at_ms=6_000)


def assert_consistent(state: SosState) -> None:
    if not state.raised:
        assert state == NORMAL_STATE
    if state.handled:
        assert state.raised
        assert state.handled_at_ms is not None
    else:
        assert state.handled_at_ms is None
    if state.emergency_dispatched:
        assert state.handled
        assert state.emergency_at_ms is not None
    else:
        assert state.emergency_at_ms is None


@pytest.fixture
def lifecycle():
    return SosLifecycle("h1", clock=TickingClock())


def test_starts_normal(lifecycle):
    assert lifecycle.phase is SosPhase.NORMAL
    assert lifecycle.status_text() == "No SOS Active"


def test_raise_is_idempotent(lifecycle):
    assert lifecycle.raise_sos() is True
    state = lifecycle.state
    assert lifecycle.raise_sos() is False
    assert lifecycle.state == state
    assert lifecycle.phase is SosPhase.RAISED
    assert lifecycle.status_text() == "Pending Response"


def test_handle_requires_raised(lifecycle):
    assert lifecycle.mark_handled() is False
    assert lifecycle.dispatch_emergency() is False
    assert lifecycle.reset() is False
    assert lifecycle.state == NORMAL_STATE


def test_handle_then_dispatch_keeps_handled_time(lifecycle):
    lifecycle.raise_sos()
    assert lifecycle.mark_handled() is True
    handled_at = lifecycle.state.handled_at_ms
    assert lifecycle.mark_handled() is False
    assert lifecycle.status_text() == "Help On The Way"

    assert lifecycle.dispatch_emergency() is True
    state = lifecycle.state
    assert state.handled_at_ms == handled_at
    assert state.emergency_at_ms > handled_at
    assert lifecycle.phase is SosPhase.EMERGENCY_DISPATCHED
    assert lifecycle.dispatch_emergency() is False
    assert lifecycle.state == state


def test_dispatch_without_handle_implies_handled(lifecycle):
    lifecycle.raise_sos()
    assert lifecycle.dispatch_emergency() is True
    state = lifecycle.state
    assert state.handled is True
    assert state.handled_at_ms == state.emergency_at_ms
    # Already handled through the dispatch.
    assert lifecycle.mark_handled() is False


def test_reset_returns_to_normal_and_clears_sos_alert():
    ledger = NotificationLedger()
    ledger.should_notify("h1", ConditionKind.SOS, True)
    ledger.should_notify("h1", ConditionKind.LOW_BATTERY, True)
    lifecycle = SosLifecycle("h1", RAISED, ledger=ledger, clock=TickingClock())

    assert lifecycle.reset() is True
    assert lifecycle.state == NORMAL_STATE
    assert not ledger.is_active("h1", ConditionKind.SOS)
    assert ledger.is_active("h1", ConditionKind.LOW_BATTERY)
    # A new SOS after a reset alerts again.
    assert lifecycle.raise_sos() is True
    assert ledger.should_notify("h1", ConditionKind.SOS, True) is True


OPERATIONS = ("raise_sos", "mark_handled", "dispatch_emergency", "reset")


@pytest.mark.parametrize("sequence", list(itertools.product(OPERATIONS, repeat=4)))
def test_every_sequence_keeps_state_consistent(sequence):
    lifecycle = SosLifecycle("h1", clock=TickingClock())
    for name in sequence:
        before = lifecycle.state
        changed = getattr(lifecycle, name)()
        assert changed == (lifecycle.state != before)
        assert_consistent(lifecycle.state)


@pytest.mark.parametrize("state, text", [
    (NORMAL_STATE, "No SOS Active"),
    (RAISED, "Pending Response"),
    (HANDLED, "Help On The Way"),
    (DISPATCHED, "Help On The Way"),
])
def test_status_text(state, text):
    assert status_text(state) == text


def test_from_flags_drops_flags_without_sos():
    assert sos_state_from_flags(False, handled=True, handled_at_ms=10,
                                emergency_dispatched=True, emergency_at_ms=20) == NORMAL_STATE


def test_from_flags_dispatch_implies_handled():
    state = sos_state_from_flags(True, emergency_dispatched=True, emergency_at_ms=20)
    assert state.handled is True
    assert state.handled_at_ms == 20
    assert_consistent(state)


def test_from_flags_drops_stray_timestamps():
    state = sos_state_from_flags(True, handled=False, handled_at_ms=10, emergency_at_ms=20)
    assert state == RAISED


def test_reconcile_without_override_uses_remote():
    result = reconcile(None, RAISED)
    assert result.effective == RAISED
    assert result.override is None


def test_local_handle_wins_until_remote_confirms():
    held = reconcile(HANDLED, RAISED)
    assert held.effective == HANDLED
    assert held.override == HANDLED

    confirmed_remote = SosState(raised=True, handled=True, handled_at_ms=5_500)
    confirmed = reconcile(HANDLED, confirmed_remote)
    assert confirmed.effective == confirmed_remote
    assert confirmed.override is None


def test_local_reset_wins_while_remote_still_raised():
    held = reconcile(NORMAL_STATE, RAISED)
    assert held.effective == NORMAL_STATE
    assert held.override == NORMAL_STATE

    cleared = reconcile(NORMAL_STATE, NORMAL_STATE)
    assert cleared.override is None


def test_local_dispatch_waits_for_remote_dispatch():
    assert reconcile(DISPATCHED, HANDLED).effective == DISPATCHED
    assert reconcile(DISPATCHED, DISPATCHED).override is None


def test_override_dropped_when_remote_resolves():
    result = reconcile(HANDLED, NORMAL_STATE)
    assert result.effective == NORMAL_STATE
    assert result.override is None


def test_local_raise_held_until_remote_raises():
    assert reconcile(RAISED, NORMAL_STATE).effective == RAISED
    assert reconcile(RAISED, HANDLED).effective == HANDLED
