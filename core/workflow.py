"""
Application status workflow.

Applications move forward along pending -> reviewed -> shortlisted -> hired.
Steps may be skipped but never undone, and rejected is reachable from any
non-terminal status. Hired and rejected are terminal.
"""

from enum import Enum


class ApplicationStatus(str, Enum):
    """Lifecycle status of a job application."""

    PENDING = "pending"
    REVIEWED = "reviewed"
    SHORTLISTED = "shortlisted"
    REJECTED = "rejected"
    HIRED = "hired"


class InvalidStatusTransition(ValueError):
    """Raised when a requested status change is not allowed."""

    def __init__(self, current: ApplicationStatus, requested: ApplicationStatus):
        self.current = current
        self.requested = requested
        if is_terminal(current):
            reason = f"'{current.value}' is a final status"
        elif current == requested:
            reason = f"application is already '{current.value}'"
        else:
            reason = "applications cannot move back to an earlier stage"
        super().__init__(
            f"Cannot change status from '{current.value}' to '{requested.value}': {reason}"
        )


INITIAL_STATUS = ApplicationStatus.PENDING

PROGRESSION: tuple[ApplicationStatus, ...] = (
    ApplicationStatus.PENDING,
    ApplicationStatus.REVIEWED,
    ApplicationStatus.SHORTLISTED,
    ApplicationStatus.HIRED,
)

TERMINAL_STATUSES: frozenset[ApplicationStatus] = frozenset(
    {ApplicationStatus.HIRED, ApplicationStatus.REJECTED}
)


def _build_transitions() -> dict[ApplicationStatus, tuple[ApplicationStatus, ...]]:
    table: dict[ApplicationStatus, tuple[ApplicationStatus, ...]] = {}
    for status in ApplicationStatus:
        if status in TERMINAL_STATUSES:
            table[status] = ()
            continue
        index = PROGRESSION.index(status)
        table[status] = PROGRESSION[index + 1:] + (ApplicationStatus.REJECTED,)
    return table


TRANSITIONS: dict[ApplicationStatus, tuple[ApplicationStatus, ...]] = _build_transitions()


def is_terminal(status: ApplicationStatus) -> bool:
    return status in TERMINAL_STATUSES


def allowed_transitions(current: ApplicationStatus) -> tuple[ApplicationStatus, ...]:
    """Statuses reachable from `current`, happy path first, rejected last."""
    return TRANSITIONS[ApplicationStatus(current)]


def can_transition(current: ApplicationStatus, requested: ApplicationStatus) -> bool:
    return ApplicationStatus(requested) in TRANSITIONS[ApplicationStatus(current)]


def validate_transition(
    current: ApplicationStatus,
    requested: ApplicationStatus,
) -> ApplicationStatus:
    """
    Return the requested status when the move is legal.

    Raises:
        InvalidStatusTransition: when the move regresses, repeats the
            current status or leaves a terminal status.
    """
    current = ApplicationStatus(current)
    requested = ApplicationStatus(requested)
    if not can_transition(current, requested):
        raise InvalidStatusTransition(current, requested)
    return requested
