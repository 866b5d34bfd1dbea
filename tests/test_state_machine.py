"""Tests for the appointment lifecycle state machine."""

import pytest

from pgcdc_quickstart.state_machine import (
    INITIAL_STATUSES,
    TERMINAL_STATUSES,
    TRANSITIONS,
    AppointmentStatus,
    InvalidTransitionError,
    can_transition,
    is_terminal,
    status_values,
    validate_transition,
)


class TestTransitions:
    @pytest.mark.parametrize("current,target", [
        ("scheduled", "confirmed"),
        ("scheduled", "cancelled"),
        ("scheduled", "no_show"),
        ("confirmed", "checked_in"),
        ("confirmed", "cancelled"),
        ("confirmed", "no_show"),
        ("checked_in", "in_progress"),
        ("checked_in", "cancelled"),
        ("in_progress", "completed"),
    ])
    def test_legal_edges(self, current, target):
        assert can_transition(current, target)
        assert validate_transition(current, target) == AppointmentStatus(target)

    @pytest.mark.parametrize("current,target", [
        ("scheduled", "completed"),
        ("scheduled", "in_progress"),
        ("confirmed", "scheduled"),
        ("checked_in", "no_show"),
        ("in_progress", "cancelled"),
        ("completed", "scheduled"),
        ("cancelled", "confirmed"),
        ("no_show", "checked_in"),
    ])
    def test_illegal_edges(self, current, target):
        assert not can_transition(current, target)
        with pytest.raises(InvalidTransitionError) as exc:
            validate_transition(current, target)
        assert exc.value.current == AppointmentStatus(current)
        assert exc.value.target == AppointmentStatus(target)

    def test_terminal_statuses_have_no_way_out(self):
        for status in TERMINAL_STATUSES:
            assert is_terminal(status)
            assert TRANSITIONS[status] == set()

    def test_every_status_has_an_entry(self):
        assert set(TRANSITIONS) == set(AppointmentStatus)

    def test_unknown_status_is_rejected(self):
        with pytest.raises(ValueError):
            can_transition("scheduled", "rescheduled")


class TestStatusValues:
    def test_initial_statuses(self):
        assert INITIAL_STATUSES == {AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED}

    def test_values_in_lifecycle_order(self):
        assert status_values() == [
            "scheduled", "confirmed", "checked_in", "in_progress",
            "completed", "cancelled", "no_show",
        ]

    def test_status_compares_to_plain_string(self):
        assert AppointmentStatus.NO_SHOW == "no_show"
