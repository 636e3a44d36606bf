"""Tests for the application status workflow."""

import pytest

from core.workflow import (
    INITIAL_STATUS,
    ApplicationStatus,
    InvalidStatusTransition,
    allowed_transitions,
    can_transition,
    is_terminal,
    validate_transition,
)

S = ApplicationStatus

LEGAL = [
    (S.PENDING, S.REVIEWED),
    (S.PENDING, S.SHORTLISTED),
    (S.PENDING, S.HIRED),
    (S.PENDING, S.REJECTED),
    (S.REVIEWED, S.SHORTLISTED),
    (S.REVIEWED, S.HIRED),
    (S.REVIEWED, S.REJECTED),
    (S.SHORTLISTED, S.HIRED),
    (S.SHORTLISTED, S.REJECTED),
]


class TestTransitions:
    """Test the transition table."""

    def test_initial_status(self):
        """New applications start pending."""
        assert INITIAL_STATUS == S.PENDING

    @pytest.mark.parametrize("current,requested", LEGAL)
    def test_legal_moves(self, current, requested):
        """Forward moves and rejection from open statuses are allowed."""
        assert can_transition(current, requested) is True
        assert validate_transition(current, requested) == requested

    @pytest.mark.parametrize(
        "current,requested",
        [(c, r) for c in S for r in S if (c, r) not in LEGAL],
    )
    def test_everything_else_is_rejected(self, current, requested):
        """Regressions, no-ops and moves out of terminal statuses raise."""
        assert can_transition(current, requested) is False
        with pytest.raises(InvalidStatusTransition) as exc_info:
            validate_transition(current, requested)
        assert exc_info.value.current == current
        assert exc_info.value.requested == requested

    def test_allowed_transitions_order(self):
        """Happy path first, rejected last."""
        assert allowed_transitions(S.PENDING) == (S.REVIEWED, S.SHORTLISTED, S.HIRED, S.REJECTED)
        assert allowed_transitions(S.SHORTLISTED) == (S.HIRED, S.REJECTED)

    def test_terminal_statuses(self):
        """Hired and rejected have no exits."""
        assert is_terminal(S.HIRED) and is_terminal(S.REJECTED)
        assert not is_terminal(S.PENDING)
        assert allowed_transitions(S.HIRED) == ()
        assert allowed_transitions(S.REJECTED) == ()

    def test_accepts_plain_strings(self):
        """Stored string values are coerced."""
        assert validate_transition("pending", "reviewed") == S.REVIEWED


class TestTransitionErrors:
    """Test the error messages."""

    def test_terminal_message(self):
        """Leaving a terminal status names it final."""
        with pytest.raises(InvalidStatusTransition, match="final status"):
            validate_transition(S.HIRED, S.REJECTED)

    def test_same_status_message(self):
        """Repeating the current status says so."""
        with pytest.raises(InvalidStatusTransition, match="already 'reviewed'"):
            validate_transition(S.REVIEWED, S.REVIEWED)

    def test_regression_message(self):
        """Going backwards names the rule."""
        with pytest.raises(InvalidStatusTransition, match="earlier stage"):
            validate_transition(S.SHORTLISTED, S.PENDING)

    def test_is_value_error(self):
        """Callers catching ValueError also catch transition errors."""
        assert issubclass(InvalidStatusTransition, ValueError)
