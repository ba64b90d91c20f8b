"""Rule-based maintenance predictions derived from issue history.

Three independent passes over the same issue list:

1. Recurring pattern: rooms with 3+ issues, by their dominant category
2. Maintenance follow-up: recently resolved Equipment/Electrical issues
3. Trending category: the category dominating high/critical reports

Results are ranked ("high" priority first, then confidence) and capped.
Confidence values are fixed arithmetic on issue counts, not probabilities.
"""
import enum
import logging
from collections import Counter
from datetime import datetime
from typing import Optional

from . import schemas
from .config import get_settings
from .issues import list_all_issues
from .kv_store import KeyValueStore
from .models import (
    IssueCategory,
    IssuePriority,
    IssueStatus,
    PredictionPriority,
    PredictionType,
    utcnow,
)

logger = logging.getLogger("campusfix-core.predictions")

MAX_PREDICTIONS = 5

RECURRING_MIN_ISSUES = 3
RECURRING_HIGH_PRIORITY_ISSUES = 5
RECURRING_BASE_CONFIDENCE = 60
RECURRING_CONFIDENCE_PER_ISSUE = 10
RECURRING_MAX_CONFIDENCE = 95

FOLLOWUP_LIMIT = 3
FOLLOWUP_CONFIDENCE = 70
FOLLOWUP_CATEGORIES = (IssueCategory.EQUIPMENT.value, IssueCategory.ELECTRICAL.value)

TRENDING_MIN_ISSUES = 2
TRENDING_CONFIDENCE = 85


class FollowupRule(str, enum.Enum):
    """Which issues qualify for a maintenance follow-up prediction.

    STRICT: resolved AND category in (Equipment, Electrical)
    LEGACY: (resolved AND Equipment) OR any Electrical issue, which is what
            the first dashboards computed
    """

    STRICT = "strict"
    LEGACY = "legacy"


def _most_common(counts: Counter) -> tuple[str, int]:
    """Highest count; ties go to the category seen first."""
    return max(counts.items(), key=lambda item: item[1])


def recurring_pattern_predictions(
    issues: list[schemas.Issue],
    now: datetime,
) -> list[schemas.Prediction]:
    """One prediction per (room, building) with at least 3 issues."""
    by_location: dict[tuple[str, str], list[schemas.Issue]] = {}
    for issue in issues:
        by_location.setdefault((issue.room, issue.building), []).append(issue)

    predictions = []
    for (room, building), location_issues in by_location.items():
        size = len(location_issues)
        if size < RECURRING_MIN_ISSUES:
            continue

        category, category_count = _most_common(Counter(issue.category for issue in location_issues))
        predictions.append(schemas.Prediction(
            id=f"pred-{room}-{building}-{category}",
            type=PredictionType.RECURRING_PATTERN,
            title=f"Potential {category} issue in {room}",
            description=(
                f"This location has had {size} issues, {category_count} related to {category}. "
                f"Proactive inspection recommended."
            ),
            room=room,
            building=building,
            category=category,
            confidence=min(RECURRING_MAX_CONFIDENCE, RECURRING_BASE_CONFIDENCE + RECURRING_CONFIDENCE_PER_ISSUE * size),
            priority=PredictionPriority.HIGH if size >= RECURRING_HIGH_PRIORITY_ISSUES else PredictionPriority.MEDIUM,
            based_on_issues=size,
            created_at=now,
        ))
    return predictions


def _needs_followup(issue: schemas.Issue, rule: FollowupRule) -> bool:
    resolved = issue.status == IssueStatus.RESOLVED
    if rule == FollowupRule.LEGACY:
        return (resolved and issue.category == IssueCategory.EQUIPMENT.value) \
            or issue.category == IssueCategory.ELECTRICAL.value
    return resolved and issue.category in FOLLOWUP_CATEGORIES


def followup_predictions(
    issues: list[schemas.Issue],
    now: datetime,
    rule: FollowupRule = FollowupRule.STRICT,
) -> list[schemas.Prediction]:
    """Low-priority follow-up inspections for the first 3 qualifying issues."""
    candidates = [issue for issue in issues if _needs_followup(issue, rule)][:FOLLOWUP_LIMIT]
    return [
        schemas.Prediction(
            id=f"pred-followup-{issue.id}",
            type=PredictionType.MAINTENANCE_FOLLOWUP,
            title=f"Follow-up inspection: {issue.title}",
            description=f"{issue.category} issues often recur. Schedule preventive maintenance check.",
            room=issue.room,
            building=issue.building,
            category=issue.category,
            confidence=FOLLOWUP_CONFIDENCE,
            priority=PredictionPriority.LOW,
            based_on_issues=1,
            created_at=now,
        )
        for issue in candidates
    ]


def trending_category_predictions(
    issues: list[schemas.Issue],
    now: datetime,
) -> list[schemas.Prediction]:
    """A campus-wide alert when one category dominates high/critical reports."""
    urgent = Counter(
        issue.category
        for issue in issues
        if issue.priority in (IssuePriority.HIGH, IssuePriority.CRITICAL)
    )
    if not urgent:
        return []

    category, count = _most_common(urgent)
    if count < TRENDING_MIN_ISSUES:
        return []

    return [schemas.Prediction(
        id=f"pred-trending-{category}",
        type=PredictionType.TRENDING_CATEGORY,
        title=f"{category} issues trending upward",
        description=(
            f"Campus-wide increase in {category} issues detected. {count} high-priority cases recently. "
            f"Consider department-wide inspection."
        ),
        room="Multiple Locations",
        building="Campus-wide",
        category=category,
        confidence=TRENDING_CONFIDENCE,
        priority=PredictionPriority.HIGH,
        based_on_issues=count,
        created_at=now,
    )]


def rank_predictions(predictions: list[schemas.Prediction]) -> list[schemas.Prediction]:
    """High priority first, then confidence descending; ties keep pass order."""
    return sorted(
        predictions,
        key=lambda p: (0 if p.priority == PredictionPriority.HIGH else 1, -p.confidence),
    )


def generate_predictions(
    issues: list[schemas.Issue],
    now: Optional[datetime] = None,
    followup_rule: Optional[FollowupRule] = None,
    limit: int = MAX_PREDICTIONS,
) -> list[schemas.Prediction]:
    """
    Run every heuristic pass and return the top predictions.

    Args:
        issues: Issue snapshot (newest first)
        now: Timestamp stamped on each prediction
        followup_rule: Follow-up matching rule (defaults to settings)
        limit: Maximum number of predictions returned

    Returns:
        Ranked predictions, at most ``limit``
    """
    now = now or utcnow()
    if followup_rule is None:
        followup_rule = FollowupRule(get_settings().prediction_followup_rule)

    predictions = (
        recurring_pattern_predictions(issues, now)
        + followup_predictions(issues, now, followup_rule)
        + trending_category_predictions(issues, now)
    )
    ranked = rank_predictions(predictions)[:limit]
    logger.info(f"Generated {len(predictions)} predictions from {len(issues)} issues, returning {len(ranked)}")
    return ranked


def get_predictions(store: KeyValueStore, now: Optional[datetime] = None) -> list[schemas.Prediction]:
    """Predictions over the whole ledger."""
    return generate_predictions(list_all_issues(store), now)
