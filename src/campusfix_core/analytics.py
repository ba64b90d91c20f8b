"""Staff dashboard analytics computed from the live issue set.

Nothing here is cached: every request rebuilds the snapshot from the
ledger. The trend formulas match the numbers historical dashboards were
built on, so "in progress" and "avg resolution" are point-in-time ratios
rather than true period-over-period deltas.
"""
import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Optional

from . import schemas
from .issues import list_all_issues
from .kv_store import KeyValueStore
from .models import IssueStatus, IssuePriority, utcnow

logger = logging.getLogger("campusfix-core.analytics")

RECENT_ISSUES_LIMIT = 10
# Average resolution below this many hours counts as a good trend
GOOD_RESOLUTION_HOURS = 3


def percent_change(current: int, previous: int) -> str:
    """
    Signed percentage change formatted to one decimal.

    A zero ``previous`` yields "100" when ``current`` is positive, else "0".
    """
    if previous > 0:
        return f"{(current - previous) / previous * 100:.1f}"
    return "100" if current > 0 else "0"


def _hours_between(start: datetime, end: datetime) -> float:
    return (end - start).total_seconds() / 3600


def average_resolution_hours(issues: list[schemas.Issue]) -> float:
    """Mean of updated_at - created_at (hours) over resolved issues; 0 if none."""
    resolved = [issue for issue in issues if issue.status == IssueStatus.RESOLVED]
    if not resolved:
        return 0.0
    return sum(_hours_between(issue.created_at, issue.updated_at) for issue in resolved) / len(resolved)


def compute_trends(issues: list[schemas.Issue], now: datetime) -> schemas.AnalyticsTrends:
    """Build the four dashboard trend indicators."""
    yesterday = now - timedelta(hours=24)
    two_days_ago = now - timedelta(hours=48)
    last_week = now - timedelta(days=7)
    two_weeks_ago = now - timedelta(days=14)

    created_last_24h = sum(1 for i in issues if i.created_at >= yesterday)
    created_previous_24h = sum(1 for i in issues if two_days_ago <= i.created_at < yesterday)

    in_progress = [i for i in issues if i.status == IssueStatus.IN_PROGRESS]
    in_progress_last_24h = sum(1 for i in in_progress if i.updated_at >= yesterday)

    resolved = [i for i in issues if i.status == IssueStatus.RESOLVED]
    resolved_this_week = sum(1 for i in resolved if i.updated_at >= last_week)
    resolved_last_week = sum(1 for i in resolved if two_weeks_ago <= i.updated_at < last_week)

    pending_value = percent_change(created_last_24h, created_previous_24h)

    if in_progress and in_progress_last_24h > 0:
        in_progress_value = f"{in_progress_last_24h / len(in_progress) * 100 - 100:.1f}"
    else:
        in_progress_value = "0"

    resolved_value = percent_change(resolved_this_week, resolved_last_week)

    avg_hours = average_resolution_hours(issues)

    return schemas.AnalyticsTrends(
        pending=schemas.TrendValue(
            value=pending_value,
            is_positive=float(pending_value) < 0,  # Fewer new reports is better
            comparison=f"{created_last_24h} today vs {created_previous_24h} yesterday",
        ),
        in_progress=schemas.TrendValue(
            value=in_progress_value,
            is_positive=float(in_progress_value) > 0,
            comparison=f"{in_progress_last_24h} started in last 24h",
        ),
        resolved=schemas.TrendValue(
            value=resolved_value,
            is_positive=float(resolved_value) > 0,
            comparison=f"{resolved_this_week} this week vs {resolved_last_week} last week",
        ),
        avg_resolution=schemas.TrendValue(
            value=f"{avg_hours:.1f}" if avg_hours > 0 else "0",
            is_positive=avg_hours < GOOD_RESOLUTION_HOURS,
            comparison=f"Average: {avg_hours:.1f} hours",
        ),
    )


def compute_analytics(
    issues: list[schemas.Issue],
    now: Optional[datetime] = None,
) -> schemas.AnalyticsSnapshot:
    """
    Aggregate statistics over a full issue list.

    Args:
        issues: Every issue, newest first (as returned by the ledger)
        now: Reference time for the trend windows

    Returns:
        AnalyticsSnapshot
    """
    now = now or utcnow()

    status_counts: Counter = Counter()
    priority_counts: Counter = Counter()
    category_counts: Counter = Counter()
    for issue in issues:
        status_counts[issue.status.value] += 1
        priority_counts[issue.priority.value] += 1
        category_counts[issue.category] += 1

    snapshot = schemas.AnalyticsSnapshot(
        total_issues=len(issues),
        open_issues=status_counts[IssueStatus.OPEN.value],
        assigned_issues=status_counts[IssueStatus.ASSIGNED.value],
        in_progress_issues=status_counts[IssueStatus.IN_PROGRESS.value],
        resolved_issues=status_counts[IssueStatus.RESOLVED.value],
        closed_issues=status_counts[IssueStatus.CLOSED.value],
        high_priority_issues=priority_counts[IssuePriority.HIGH.value] + priority_counts[IssuePriority.CRITICAL.value],
        critical_issues=priority_counts[IssuePriority.CRITICAL.value],
        avg_resolution_time=round(average_resolution_hours(issues), 1),
        status_breakdown=dict(status_counts),
        priority_breakdown=dict(priority_counts),
        category_breakdown=dict(category_counts),
        trends=compute_trends(issues, now),
        recent_issues=issues[:RECENT_ISSUES_LIMIT],
    )
    logger.debug(f"Computed analytics over {len(issues)} issues")
    return snapshot


def get_analytics(store: KeyValueStore, now: Optional[datetime] = None) -> schemas.AnalyticsSnapshot:
    """Snapshot of the whole ledger as of ``now``."""
    return compute_analytics(list_all_issues(store), now)
