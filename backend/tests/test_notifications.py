"""Tests for the notification ledger."""

from __future__ import annotations

from trailwatch.core.models import ConditionKind
from trailwatch.core.notifications import NotificationLedger


def test_notifies_once_per_rising_edge():
    ledger = NotificationLedger()
    observed = [True, True, False, True, True, True, False, False, True]
    fired = [ledger.should_notify("h1", ConditionKind.LOW_BATTERY, c) for c in observed]
    assert fired == [True, False, False, True, False, False, False, False, True]


def test_conditions_are_independent():
    ledger = NotificationLedger()
    assert ledger.should_notify("h1", ConditionKind.SOS, True)
    assert ledger.should_notify("h1", ConditionKind.OFF_TRACK, True)
    assert ledger.should_notify("h2", ConditionKind.SOS, True)
    assert not ledger.should_notify("h1", ConditionKind.SOS, True)
    assert ledger.active_keys() == {
        ("h1", ConditionKind.SOS),
        ("h1", ConditionKind.OFF_TRACK),
        ("h2", ConditionKind.SOS),
    }


def test_false_observation_clears_entry():
    ledger = NotificationLedger()
    ledger.should_notify("h1", ConditionKind.OFF_TRACK, True)
    assert ledger.is_active("h1", ConditionKind.OFF_TRACK)
    assert ledger.should_notify("h1", ConditionKind.OFF_TRACK, False) is False
    assert not ledger.is_active("h1", ConditionKind.OFF_TRACK)


def test_clear_one_kind_or_whole_hiker():
    ledger = NotificationLedger()
    for kind in ConditionKind:
        ledger.should_notify("h1", kind, True)
    ledger.should_notify("h2", ConditionKind.SOS, True)

    ledger.clear("h1", ConditionKind.SOS)
    assert not ledger.is_active("h1", ConditionKind.SOS)
    assert ledger.is_active("h1", ConditionKind.LOW_BATTERY)

    ledger.clear("h1")
    assert ledger.active_keys() == {("h2", ConditionKind.SOS)}


def test_active_keys_is_a_copy():
    ledger = NotificationLedger()
    keys = ledger.active_keys()
    keys.add(("h1", ConditionKind.SOS))
    assert ledger.active_keys() == set()
