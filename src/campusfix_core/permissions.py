"""Role and ownership checks applied by callers of the issue ledger.

Students only see their own issues; staff and admins see everything.
Only staff/admin may change issues, and only admins may delete them.
"""
import logging

from . import schemas
from .models import UserRole

logger = logging.getLogger("campusfix-core.permissions")


class PermissionDeniedError(Exception):
    """Raised when the caller's role or ownership does not allow an action."""


def can_view_issue(caller: schemas.CallerIdentity, issue: schemas.Issue) -> bool:
    """Staff see every issue; students only the ones they reported."""
    return caller.is_staff or issue.reporter_id == caller.user_id


def check_can_view_issue(caller: schemas.CallerIdentity, issue: schemas.Issue) -> None:
    """
    Raises:
        PermissionDeniedError: If a student asks for someone else's issue
    """
    if not can_view_issue(caller, issue):
        logger.warning(f"User {caller.user_id} denied access to issue {issue.id}")
        raise PermissionDeniedError("Unauthorized to view this issue")


def require_staff(caller: schemas.CallerIdentity, action: str = "perform this action") -> None:
    """
    Raises:
        PermissionDeniedError: If the caller is not staff or admin
    """
    if not caller.is_staff:
        logger.warning(f"User {caller.user_id} ({caller.role.value}) denied: {action}")
        raise PermissionDeniedError(f"Staff/Admin access required to {action}")


def require_admin(caller: schemas.CallerIdentity, action: str = "perform this action") -> None:
    """
    Raises:
        PermissionDeniedError: If the caller is not an admin
    """
    if caller.role != UserRole.ADMIN:
        logger.warning(f"User {caller.user_id} ({caller.role.value}) denied: {action}")
        raise PermissionDeniedError(f"Admin access required to {action}")
