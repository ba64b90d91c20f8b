"""Tests for issue status transition validation."""
import pytest
from campusfix_core.models import IssueStatus
from campusfix_core.state_machine import (
    is_transition_valid,
    validate_transition,
    validate_reopen,
    StateTransitionError,
    get_allowed_transitions
)


class TestStateTransitions:
    """Test state machine transition validation."""

    def test_valid_forward_transitions(self):
        """Test that each single forward step is allowed."""
        # Open → Assigned
        assert is_transition_valid(IssueStatus.OPEN, IssueStatus.ASSIGNED)
        validate_transition(IssueStatus.OPEN, IssueStatus.ASSIGNED)  # Should not raise

        # Assigned → In Progress
        assert is_transition_valid(IssueStatus.ASSIGNED, IssueStatus.IN_PROGRESS)
        validate_transition(IssueStatus.ASSIGNED, IssueStatus.IN_PROGRESS)

        # In Progress → Resolved
        assert is_transition_valid(IssueStatus.IN_PROGRESS, IssueStatus.RESOLVED)
        validate_transition(IssueStatus.IN_PROGRESS, IssueStatus.RESOLVED)

        # Resolved → Closed
        assert is_transition_valid(IssueStatus.RESOLVED, IssueStatus.CLOSED)
        validate_transition(IssueStatus.RESOLVED, IssueStatus.CLOSED)

    def test_noop_transitions_allowed(self):
        """Test that no-op transitions (same status) are always allowed."""
        for status in IssueStatus:
            assert is_transition_valid(status, status)
            validate_transition(status, status)  # Should not raise

    def test_skipping_steps_blocked(self):
        """Test that jumping ahead (Open → Resolved) is blocked."""
        assert not is_transition_valid(IssueStatus.OPEN, IssueStatus.RESOLVED)

        with pytest.raises(StateTransitionError) as exc_info:
            validate_transition(IssueStatus.OPEN, IssueStatus.RESOLVED)

        error = exc_info.value
        assert error.current_status == IssueStatus.OPEN
        assert error.requested_status == IssueStatus.RESOLVED
        assert "intermediate status" in str(error).lower()

    def test_backward_moves_blocked(self):
        """Test that going back (In Progress → Assigned) needs the reopen action."""
        assert not is_transition_valid(IssueStatus.IN_PROGRESS, IssueStatus.ASSIGNED)

        with pytest.raises(StateTransitionError) as exc_info:
            validate_transition(IssueStatus.RESOLVED, IssueStatus.OPEN)

        assert "cannot move backwards" in str(exc_info.value).lower()

    def test_closed_is_final(self):
        """Test that closed issues cannot be updated to any other status."""
        for status in IssueStatus:
            if status != IssueStatus.CLOSED:
                assert not is_transition_valid(IssueStatus.CLOSED, status)

                with pytest.raises(StateTransitionError) as exc_info:
                    validate_transition(IssueStatus.CLOSED, status)

                assert "closed issues are final" in str(exc_info.value).lower()

    def test_get_allowed_transitions(self):
        """Test getting allowed transitions from each state."""
        assert get_allowed_transitions(IssueStatus.OPEN) == [IssueStatus.ASSIGNED]
        assert get_allowed_transitions(IssueStatus.RESOLVED) == [IssueStatus.CLOSED]

        # Closed has no allowed transitions (no-op excluded)
        assert get_allowed_transitions(IssueStatus.CLOSED) == []

    def test_state_transition_error_attributes(self):
        """Test that StateTransitionError contains all required attributes."""
        with pytest.raises(StateTransitionError) as exc_info:
            validate_transition(IssueStatus.OPEN, IssueStatus.CLOSED)

        error = exc_info.value
        assert error.current_status == IssueStatus.OPEN
        assert error.requested_status == IssueStatus.CLOSED
        assert isinstance(error.allowed_transitions, list)


class TestReopen:
    """Test the explicit reopen action."""

    @pytest.mark.parametrize("status", [IssueStatus.RESOLVED, IssueStatus.CLOSED])
    def test_reopen_allowed(self, status):
        validate_reopen(status)  # Should not raise

    @pytest.mark.parametrize("status", [IssueStatus.OPEN, IssueStatus.ASSIGNED, IssueStatus.IN_PROGRESS])
    def test_reopen_blocked_for_active_issues(self, status):
        with pytest.raises(StateTransitionError) as exc_info:
            validate_reopen(status)

        assert exc_info.value.requested_status == IssueStatus.OPEN
        assert "only resolved or closed" in str(exc_info.value).lower()


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
