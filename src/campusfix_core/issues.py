"""Issue ledger: issue records and their lifecycle in the key-value store.

Keys:
- ``issue:<id>`` holds the issue record
- ``user-issue:<userId>:<id>`` is the per-reporter index (value: issue id)
"""
import logging
from datetime import datetime
from typing import Optional
from uuid import uuid4

from . import schemas
from .config import get_settings
from .kv_store import KeyValueStore, update_with_retry
from .models import IssueStatus, utcnow
from .state_machine import validate_transition, validate_reopen

logger = logging.getLogger("campusfix-core.issues")

ISSUE_PREFIX = "issue:"
REPORTER_INDEX_PREFIX = "user-issue:"

# Draft fields that must be present and non-blank
REQUIRED_FIELDS = ("title", "description", "category", "room", "building")


class IssueNotFoundError(Exception):
    """Raised when an issue id does not exist."""

    def __init__(self, issue_id: str):
        super().__init__(f"Issue not found: {issue_id}")
        self.issue_id = issue_id


class IssueValidationError(ValueError):
    """Raised when an issue draft is missing required fields."""

    def __init__(self, missing_fields: list[str]):
        super().__init__(f"Missing required fields: {', '.join(missing_fields)}")
        self.missing_fields = missing_fields


def issue_key(issue_id: str) -> str:
    return f"{ISSUE_PREFIX}{issue_id}"


def reporter_index_key(user_id: str, issue_id: str) -> str:
    return f"{REPORTER_INDEX_PREFIX}{user_id}:{issue_id}"


def _normalize_tags(tags: list[str]) -> list[str]:
    """Strip, drop blanks and de-duplicate while keeping first-seen order."""
    return list(dict.fromkeys(tag.strip() for tag in tags if tag and tag.strip()))


def validate_draft(draft: schemas.IssueCreate) -> None:
    """
    Check that every required field of a draft is present.

    Raises:
        IssueValidationError: Listing all missing fields at once
    """
    missing = []
    for field in REQUIRED_FIELDS:
        value = getattr(draft, field)
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(field)
    if missing:
        logger.info(f"Rejected issue draft, missing: {missing}")
        raise IssueValidationError(missing)


def create_issue(
    store: KeyValueStore,
    draft: schemas.IssueCreate,
    reporter: schemas.CallerIdentity,
    now: Optional[datetime] = None,
) -> schemas.Issue:
    """
    Record a new issue reported by ``reporter``.

    Status is always ``open`` and upvotes start at 0 whatever the draft says.

    Args:
        store: Key-value store
        draft: Submitted issue fields
        reporter: Identity of the reporting user
        now: Creation time (defaults to current UTC time)

    Returns:
        The stored Issue

    Raises:
        IssueValidationError: If required fields are missing
    """
    validate_draft(draft)
    now = now or utcnow()

    issue = schemas.Issue(
        id=str(uuid4()),
        reporter_id=reporter.user_id,
        reporter_name=reporter.name,
        reporter_email=reporter.email,
        title=draft.title.strip(),
        description=draft.description.strip(),
        category=draft.category.value,
        location=draft.location,
        room=draft.room.strip(),
        building=draft.building.strip(),
        floor=draft.floor,
        status=IssueStatus.OPEN,
        priority=draft.priority,
        sentiment=draft.sentiment,
        image_ref=draft.image_ref,
        created_at=now,
        updated_at=now,
        upvotes=0,
        tags=_normalize_tags(draft.tags),
    )

    store.set(issue_key(issue.id), issue.model_dump(mode="json"))
    store.set(reporter_index_key(reporter.user_id, issue.id), issue.id)

    logger.info(f"Created issue {issue.id} in {issue.room}/{issue.building} by {reporter.user_id}: {issue.title}")
    return issue


def get_issue(store: KeyValueStore, issue_id: str) -> schemas.Issue:
    """
    Get an issue by id.

    Raises:
        IssueNotFoundError: If the issue does not exist
    """
    value = store.get(issue_key(issue_id))
    if not value:
        raise IssueNotFoundError(issue_id)
    return schemas.Issue.model_validate(value)


def update_issue(
    store: KeyValueStore,
    issue_id: str,
    update: schemas.IssueUpdate,
    now: Optional[datetime] = None,
    enforce_transitions: Optional[bool] = None,
) -> schemas.Issue:
    """Merge staff changes into an issue; see ``update_issue_with_previous_status``."""
    updated, _ = update_issue_with_previous_status(store, issue_id, update, now, enforce_transitions)
    return updated


def update_issue_with_previous_status(
    store: KeyValueStore,
    issue_id: str,
    update: schemas.IssueUpdate,
    now: Optional[datetime] = None,
    enforce_transitions: Optional[bool] = None,
) -> tuple[schemas.Issue, IssueStatus]:
    """
    Merge staff changes into an issue.

    Only the fields declared on IssueUpdate can change. ``updated_at`` is
    always refreshed and never moves backwards. Entering ``resolved`` stamps
    ``resolved_at``.

    Args:
        store: Key-value store
        issue_id: Issue to update
        update: Fields to change (unset fields are left alone)
        now: Update time (defaults to current UTC time)
        enforce_transitions: Validate status changes (defaults to settings)

    Returns:
        The updated Issue and the status it had in the version this update
        replaced, so callers can tell which request moved it

    Raises:
        IssueNotFoundError: If the issue does not exist
        StateTransitionError: If the status change skips or reverses a step
    """
    settings = get_settings()
    if enforce_transitions is None:
        enforce_transitions = settings.enforce_status_transitions
    changes = update.model_dump(exclude_unset=True)
    if "tags" in changes and changes["tags"] is not None:
        changes["tags"] = _normalize_tags(changes["tags"])

    previous_status = None

    def apply(current: Optional[dict]) -> dict:
        nonlocal previous_status
        if not current:
            raise IssueNotFoundError(issue_id)
        issue = schemas.Issue.model_validate(current)
        previous_status = issue.status
        timestamp = now or utcnow()
        fields = dict(changes)

        new_status = fields.get("status")
        if new_status is not None and new_status != issue.status:
            if enforce_transitions:
                validate_transition(issue.status, new_status)
            else:
                logger.warning(
                    f"Transition check disabled: accepting {issue.status.value} → {new_status.value} "
                    f"for issue {issue_id}"
                )
            if new_status == IssueStatus.RESOLVED:
                fields["resolved_at"] = timestamp

        merged = issue.model_copy(update={k: v for k, v in fields.items() if v is not None})
        merged.updated_at = max(timestamp, issue.updated_at)
        return merged.model_dump(mode="json")

    stored = update_with_retry(store, issue_key(issue_id), apply, settings.store_max_retries)
    updated = schemas.Issue.model_validate(stored)
    logger.info(f"Updated issue {issue_id}: {sorted(changes)}")
    return updated, previous_status


def reopen_issue(
    store: KeyValueStore,
    issue_id: str,
    now: Optional[datetime] = None,
) -> schemas.Issue:
    """
    Move a resolved or closed issue back to ``open``.

    Raises:
        IssueNotFoundError: If the issue does not exist
        StateTransitionError: If the issue is not resolved or closed
    """
    settings = get_settings()

    def apply(current: Optional[dict]) -> dict:
        if not current:
            raise IssueNotFoundError(issue_id)
        issue = schemas.Issue.model_validate(current)
        validate_reopen(issue.status)
        timestamp = now or utcnow()
        reopened = issue.model_copy(update={
            "status": IssueStatus.OPEN,
            "resolved_at": None,
            "updated_at": max(timestamp, issue.updated_at),
        })
        return reopened.model_dump(mode="json")

    stored = update_with_retry(store, issue_key(issue_id), apply, settings.store_max_retries)
    logger.info(f"Reopened issue {issue_id}")
    return schemas.Issue.model_validate(stored)


def list_issues_by_reporter(store: KeyValueStore, user_id: str) -> list[schemas.Issue]:
    """
    Get every issue reported by ``user_id``.

    Order is not guaranteed; callers sort as needed. Index entries whose
    issue has disappeared are skipped.
    """
    issues = []
    for _, issue_id in store.scan_by_prefix(f"{REPORTER_INDEX_PREFIX}{user_id}:"):
        value = store.get(issue_key(issue_id))
        if value:
            issues.append(schemas.Issue.model_validate(value))
    return issues


def list_all_issues(
    store: KeyValueStore,
    status: Optional[IssueStatus] = None,
    department: Optional[str] = None,
) -> list[schemas.Issue]:
    """
    Get all issues, newest first.

    Args:
        store: Key-value store
        status: Only issues in this status (takes precedence over department)
        department: Only issues assigned to this department

    Returns:
        Issues sorted by created_at descending
    """
    issues = [
        schemas.Issue.model_validate(value)
        for _, value in store.scan_by_prefix(ISSUE_PREFIX)
        if value and value.get("id")
    ]
    issues.sort(key=lambda issue: issue.created_at, reverse=True)

    if status is not None:
        return [issue for issue in issues if issue.status == status]
    if department:
        return [issue for issue in issues if issue.assigned_department == department]
    return issues


def upvote_issue(
    store: KeyValueStore,
    issue_id: str,
    now: Optional[datetime] = None,
) -> schemas.Issue:
    """
    Add one upvote to an issue.

    The increment is a versioned compare-and-set, so concurrent upvotes are
    retried rather than lost.

    Raises:
        IssueNotFoundError: If the issue does not exist
    """
    settings = get_settings()

    def apply(current: Optional[dict]) -> dict:
        if not current:
            raise IssueNotFoundError(issue_id)
        issue = schemas.Issue.model_validate(current)
        timestamp = now or utcnow()
        return issue.model_copy(update={
            "upvotes": issue.upvotes + 1,
            "updated_at": max(timestamp, issue.updated_at),
        }).model_dump(mode="json")

    stored = update_with_retry(store, issue_key(issue_id), apply, settings.store_max_retries)
    upvoted = schemas.Issue.model_validate(stored)
    logger.info(f"Upvoted issue {issue_id} (now {upvoted.upvotes})")
    return upvoted


def delete_issue(store: KeyValueStore, issue_id: str) -> bool:
    """
    Administrative delete of an issue and its reporter index entry.

    Returns:
        True if deleted, False if the issue did not exist
    """
    value = store.get(issue_key(issue_id))
    if not value:
        return False

    issue = schemas.Issue.model_validate(value)
    store.delete(issue_key(issue_id))
    store.delete(reporter_index_key(issue.reporter_id, issue_id))
    logger.info(f"Deleted issue {issue_id}")
    return True
