"""State machine for the appointment lifecycle."""

from enum import Enum


class AppointmentStatus(str, Enum):
    """Statuses an appointment can hold (mirrors the CHECK constraint)."""
    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


class AppointmentType(str, Enum):
    ROUTINE = "routine"
    URGENT = "urgent"
    FOLLOW_UP = "follow_up"
    ANNUAL = "annual"


class InvalidTransitionError(Exception):
    """Raised when an appointment is moved along an edge that doesn't exist."""

    def __init__(self, current: "AppointmentStatus", target: "AppointmentStatus"):
        self.current = AppointmentStatus(current)
        self.target = AppointmentStatus(target)
        super().__init__(f"cannot move appointment from {self.current.value} to {self.target.value}")


# Statuses a new appointment may be booked in
INITIAL_STATUSES = frozenset({AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED})

TERMINAL_STATUSES = frozenset({
    AppointmentStatus.COMPLETED,
    AppointmentStatus.CANCELLED,
    AppointmentStatus.NO_SHOW,
})

TRANSITIONS = {
    AppointmentStatus.SCHEDULED: {
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    },
    AppointmentStatus.CONFIRMED: {
        AppointmentStatus.CHECKED_IN,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    },
    AppointmentStatus.CHECKED_IN: {
        AppointmentStatus.IN_PROGRESS,
        AppointmentStatus.CANCELLED,
    },
    AppointmentStatus.IN_PROGRESS: {
        AppointmentStatus.COMPLETED,
    },
    AppointmentStatus.COMPLETED: set(),
    AppointmentStatus.CANCELLED: set(),
    AppointmentStatus.NO_SHOW: set(),
}


def can_transition(current, target) -> bool:
    """Check whether an appointment in `current` may move to `target`."""
    return AppointmentStatus(target) in TRANSITIONS[AppointmentStatus(current)]


def validate_transition(current, target) -> AppointmentStatus:
    """Return the target status, or raise InvalidTransitionError."""
    if not can_transition(current, target):
        raise InvalidTransitionError(current, target)
    return AppointmentStatus(target)


def is_terminal(status) -> bool:
    return AppointmentStatus(status) in TERMINAL_STATUSES


def status_values() -> list[str]:
    """All status strings, in lifecycle order."""
    return [s.value for s in AppointmentStatus]
