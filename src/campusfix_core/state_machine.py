"""State machine validation for issue lifecycle status transitions.

Enforces the resolution workflow:
- Issues move strictly forward (open → assigned → in-progress → resolved → closed)
- Intermediate states cannot be skipped
- Backward moves go through the explicit reopen action only
- Provides clear error messages for blocked transitions
"""
import logging

from .models import IssueStatus

logger = logging.getLogger("campusfix-core.state_machine")


class StateTransitionError(Exception):
    """Raised when an invalid state transition is attempted."""

    def __init__(
        self,
        message: str,
        current_status: IssueStatus,
        requested_status: IssueStatus,
        allowed_transitions: list[IssueStatus]
    ):
        super().__init__(message)
        self.current_status = current_status
        self.requested_status = requested_status
        self.allowed_transitions = allowed_transitions


# State machine transition matrix
# Maps current status → list of allowed next statuses
TRANSITION_MATRIX: dict[IssueStatus, list[IssueStatus]] = {
    IssueStatus.OPEN: [
        IssueStatus.OPEN,           # No-op (allowed)
        IssueStatus.ASSIGNED,       # Forward: routed to a person/department
    ],
    IssueStatus.ASSIGNED: [
        IssueStatus.ASSIGNED,       # No-op (allowed)
        IssueStatus.IN_PROGRESS,    # Forward: work started
    ],
    IssueStatus.IN_PROGRESS: [
        IssueStatus.IN_PROGRESS,    # No-op (allowed)
        IssueStatus.RESOLVED,       # Forward: fix applied
    ],
    IssueStatus.RESOLVED: [
        IssueStatus.RESOLVED,       # No-op (allowed)
        IssueStatus.CLOSED,         # Forward: confirmed and archived
    ],
    IssueStatus.CLOSED: [
        IssueStatus.CLOSED,         # No-op (allowed)
        # Terminal for updates - use reopen to bring it back to open
    ],
}

# Statuses the explicit reopen action accepts
REOPENABLE_STATUSES: frozenset[IssueStatus] = frozenset({IssueStatus.RESOLVED, IssueStatus.CLOSED})


def is_transition_valid(
    current_status: IssueStatus,
    new_status: IssueStatus
) -> bool:
    """
    Check if a status transition is valid.

    Args:
        current_status: Current lifecycle status
        new_status: Requested new lifecycle status

    Returns:
        True if transition is allowed, False otherwise
    """
    allowed_transitions = TRANSITION_MATRIX.get(current_status, [])
    return new_status in allowed_transitions


def validate_transition(
    current_status: IssueStatus,
    new_status: IssueStatus
) -> None:
    """
    Validate a status transition and raise exception if invalid.

    Args:
        current_status: Current lifecycle status
        new_status: Requested new lifecycle status

    Raises:
        StateTransitionError: If the transition is not allowed
    """
    # No-op transitions are always allowed (setting same status)
    if current_status == new_status:
        logger.debug(f"No-op transition: {current_status.value} → {new_status.value}")
        return

    if not is_transition_valid(current_status, new_status):
        allowed_transitions = TRANSITION_MATRIX.get(current_status, [])
        allowed_names = [s.value for s in allowed_transitions if s != current_status]

        error_msg = (
            f"Invalid status transition: {current_status.value} → {new_status.value}. "
        )
        if allowed_names:
            error_msg += f"From {current_status.value}, you can only transition to: {', '.join(allowed_names)}."
        else:
            error_msg += f"No transitions are allowed from {current_status.value}."

        # Add helpful guidance based on the attempted transition
        if current_status == IssueStatus.CLOSED:
            error_msg += " Closed issues are final. Use the reopen action to bring an issue back to open."
        elif _order(new_status) < _order(current_status):
            error_msg += " Issues cannot move backwards. Use the reopen action for resolved issues."
        else:
            error_msg += " Issues must pass through every intermediate status."

        logger.warning(f"Blocked transition: {error_msg}")
        raise StateTransitionError(
            message=error_msg,
            current_status=current_status,
            requested_status=new_status,
            allowed_transitions=allowed_transitions
        )

    logger.debug(f"Valid transition: {current_status.value} → {new_status.value}")


def validate_reopen(current_status: IssueStatus) -> None:
    """
    Validate the explicit reopen action (resolved/closed → open).

    Raises:
        StateTransitionError: If the issue is not resolved or closed
    """
    if current_status in REOPENABLE_STATUSES:
        return

    error_msg = (
        f"Cannot reopen an issue in status {current_status.value}. "
        f"Only resolved or closed issues can be reopened."
    )
    logger.warning(f"Blocked reopen: {error_msg}")
    raise StateTransitionError(
        message=error_msg,
        current_status=current_status,
        requested_status=IssueStatus.OPEN,
        allowed_transitions=get_allowed_transitions(current_status),
    )


def get_allowed_transitions(current_status: IssueStatus) -> list[IssueStatus]:
    """
    Get list of allowed transitions from current status.

    Args:
        current_status: Current lifecycle status

    Returns:
        List of allowed next statuses (excluding no-op same status)
    """
    all_transitions = TRANSITION_MATRIX.get(current_status, [])
    # Filter out the no-op transition (same status)
    return [s for s in all_transitions if s != current_status]


def _order(status: IssueStatus) -> int:
    return list(TRANSITION_MATRIX).index(status)
