"""Issue API endpoints."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from campusfix_core import gamification, issues, schemas
from campusfix_core.kv_store import KeyValueStore
from campusfix_core.models import IssueStatus
from campusfix_core.permissions import (
    PermissionDeniedError,
    check_can_view_issue,
    require_admin,
    require_staff,
)
from campusfix_core.state_machine import StateTransitionError

from ..dependencies import get_current_identity, get_store

logger = logging.getLogger("campusfix-core.api.issues")

router = APIRouter(tags=["issues"])


def _get_issue_or_404(store: KeyValueStore, issue_id: str) -> schemas.Issue:
    try:
        return issues.get_issue(store, issue_id)
    except issues.IssueNotFoundError:
        raise HTTPException(status_code=404, detail=f"Issue not found: {issue_id}")


@router.post("/", response_model=schemas.Issue, status_code=201)
def create_issue(
    draft: schemas.IssueCreate,
    caller: schemas.CallerIdentity = Depends(get_current_identity),
    store: KeyValueStore = Depends(get_store),
):
    """
    Report a new issue.

    The reporter earns points, progress and streak credit for the report.
    Gamification left unfinished by an earlier failed report is completed
    first.

    - **title**, **description**, **category**, **room**, **building**: required
    - **location**, **floor**, **image_ref**, **tags**: optional
    - **priority**: low, medium, high, critical (default: medium)
    - **sentiment**: low, medium, high (default: medium)
    """
    try:
        gamification.resume_pending_jobs(store, caller.user_id)
    except Exception as e:
        logger.warning(f"Could not resume pending gamification for {caller.user_id}: {e}", exc_info=True)

    try:
        issue = issues.create_issue(store, draft, caller)
    except issues.IssueValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error(f"Error creating issue: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to create issue: {e}")

    try:
        gamification.process_issue_reported(store, caller.user_id, issue.id)
    except Exception as e:
        # The issue stays recorded; finished steps stay committed
        logger.error(f"Gamification failed for issue {issue.id}: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail=f"Failed to create issue: {e}")

    return issue


@router.get("/", response_model=list[schemas.Issue])
def list_issues(
    status: Optional[IssueStatus] = Query(None, description="Filter by status (staff only)"),
    department: Optional[str] = Query(None, description="Filter by assigned department (staff only)"),
    caller: schemas.CallerIdentity = Depends(get_current_identity),
    store: KeyValueStore = Depends(get_store),
):
    """
    List issues.

    Staff and admins see every issue (newest first) and may filter by status
    or department; status wins when both are given. Students see only the
    issues they reported.
    """
    if caller.is_staff:
        result = issues.list_all_issues(store, status=status, department=department)
        logger.info(f"Staff {caller.user_id} listed {len(result)} issues")
        return result

    result = issues.list_issues_by_reporter(store, caller.user_id)
    result.sort(key=lambda issue: issue.created_at, reverse=True)
    logger.info(f"Student {caller.user_id} listed {len(result)} own issues")
    return result


@router.get("/{issue_id}", response_model=schemas.Issue)
def get_issue(
    issue_id: str,
    caller: schemas.CallerIdentity = Depends(get_current_identity),
    store: KeyValueStore = Depends(get_store),
):
    """Get one issue. Students may only read their own issues."""
    issue = _get_issue_or_404(store, issue_id)
    try:
        check_can_view_issue(caller, issue)
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    return issue


@router.put("/{issue_id}", response_model=schemas.Issue)
def update_issue(
    issue_id: str,
    issue_update: schemas.IssueUpdate,
    caller: schemas.CallerIdentity = Depends(get_current_identity),
    store: KeyValueStore = Depends(get_store),
):
    """
    Update an issue (staff/admin only).

    Status must follow open → assigned → in-progress → resolved → closed,
    one step at a time. Use POST /{issue_id}/reopen to go back to open.
    """
    try:
        require_staff(caller, "update issues")
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))

    try:
        updated, previous_status = issues.update_issue_with_previous_status(store, issue_id, issue_update)
    except issues.IssueNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StateTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))

    if previous_status != IssueStatus.RESOLVED and updated.status == IssueStatus.RESOLVED:
        gamification.increment_resolved_count(
            store, updated.reporter_id, award_id=f"{issue_id}:resolved:{updated.resolved_at.isoformat()}",
        )

    logger.info(f"Staff {caller.user_id} updated issue {issue_id}")
    return updated


@router.post("/{issue_id}/reopen", response_model=schemas.Issue)
def reopen_issue(
    issue_id: str,
    caller: schemas.CallerIdentity = Depends(get_current_identity),
    store: KeyValueStore = Depends(get_store),
):
    """Reopen a resolved or closed issue (staff/admin only)."""
    try:
        require_staff(caller, "reopen issues")
        return issues.reopen_issue(store, issue_id)
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))
    except issues.IssueNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except StateTransitionError as e:
        raise HTTPException(status_code=409, detail=str(e))


@router.post("/{issue_id}/upvote", response_model=schemas.Issue)
def upvote_issue(
    issue_id: str,
    caller: schemas.CallerIdentity = Depends(get_current_identity),
    store: KeyValueStore = Depends(get_store),
):
    """Upvote an issue (any authenticated user)."""
    try:
        return issues.upvote_issue(store, issue_id)
    except issues.IssueNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.delete("/{issue_id}", status_code=204)
def delete_issue(
    issue_id: str,
    caller: schemas.CallerIdentity = Depends(get_current_identity),
    store: KeyValueStore = Depends(get_store),
):
    """Permanently delete an issue (admin only)."""
    try:
        require_admin(caller, "delete issues")
    except PermissionDeniedError as e:
        raise HTTPException(status_code=403, detail=str(e))

    if not issues.delete_issue(store, issue_id):
        raise HTTPException(status_code=404, detail=f"Issue not found: {issue_id}")
    logger.info(f"Admin {caller.user_id} deleted issue {issue_id}")
