"""Gamification engine: points, levels, badges, achievements and streaks.

State lives in ``gamification:<userId>`` and is created lazily. Every
mutation is a versioned compare-and-set through ``update_with_retry``, so
two requests touching the same user retry instead of overwriting each
other. Point awards are audited under ``points-log:<userId>:<key>``, keyed by
the award id when the award has one.

Issue creation triggers ``process_issue_reported``, which runs
count → points → streak and records finished steps in
``gamification-job:<issueId>`` so a retried request resumes where the
previous attempt stopped. Jobs left unfinished by a failed request are
picked up by ``resume_pending_jobs`` on the reporter's next report.
"""
import logging
from datetime import datetime
from typing import Callable, Optional

from . import schemas
from .catalog import get_catalog, find_badge, badge_for_issue_count, streak_badges
from .config import get_settings
from .kv_store import KeyValueStore, update_with_retry
from .models import utcnow

logger = logging.getLogger("campusfix-core.gamification")

GAMIFICATION_PREFIX = "gamification:"
POINTS_LOG_PREFIX = "points-log:"
JOB_PREFIX = "gamification-job:"

POINTS_PER_LEVEL = 100
BADGE_BONUS_POINTS = 50
ISSUE_REPORTED_POINTS = 10
ISSUE_REPORTED_REASON = "Issue reported"

# Steps of the issue-reported chain, in execution order
JOB_STEPS = ("count", "points", "streak")


class AchievementNotFoundError(Exception):
    """Raised when an achievement id is not tracked for the user."""

    def __init__(self, achievement_id: str):
        super().__init__(f"Achievement not found: {achievement_id}")
        self.achievement_id = achievement_id


def profile_key(user_id: str) -> str:
    return f"{GAMIFICATION_PREFIX}{user_id}"


def compute_level(points: int) -> int:
    """Level derived from points: one level per 100 points, starting at 1."""
    return points // POINTS_PER_LEVEL + 1


def new_profile(user_id: str, now: Optional[datetime] = None) -> schemas.UserGamification:
    """Canonical starting state: 0 points, level 1, catalog achievements at 0."""
    return schemas.UserGamification(
        user_id=user_id,
        points=0,
        level=1,
        badges=[],
        achievements=[
            schemas.Achievement(
                id=definition.id,
                name=definition.name,
                description=definition.description,
                progress=0,
                target=definition.target,
            )
            for definition in get_catalog().achievements
        ],
        streak=0,
        last_activity_date=None,
        total_issues_reported=0,
        total_issues_resolved=0,
        updated_at=now or utcnow(),
    )


def _sync_achievements(profile: schemas.UserGamification) -> None:
    """Add trackers for catalog achievements the stored profile predates."""
    tracked = {achievement.id for achievement in profile.achievements}
    for definition in get_catalog().achievements:
        if definition.id not in tracked:
            profile.achievements.append(schemas.Achievement(
                id=definition.id,
                name=definition.name,
                description=definition.description,
                target=definition.target,
            ))


def _mutate_profile(
    store: KeyValueStore,
    user_id: str,
    mutate: Callable[[schemas.UserGamification], Optional[schemas.UserGamification]],
    now: Optional[datetime] = None,
) -> schemas.UserGamification:
    """Run ``mutate`` on the user's profile with optimistic retries.

    ``mutate`` returns None to signal "nothing to change"; the profile is
    still created if it did not exist yet.
    """
    def apply(current: Optional[dict]) -> Optional[dict]:
        timestamp = now or utcnow()
        profile = schemas.UserGamification.model_validate(current) if current else new_profile(user_id, timestamp)
        _sync_achievements(profile)
        result = mutate(profile)
        if result is None:
            return None if current else profile.model_dump(mode="json")
        result.updated_at = max(timestamp, profile.updated_at)
        return result.model_dump(mode="json")

    stored = update_with_retry(store, profile_key(user_id), apply, get_settings().store_max_retries)
    return schemas.UserGamification.model_validate(stored)


def ensure_profile(
    store: KeyValueStore,
    user_id: str,
    now: Optional[datetime] = None,
) -> schemas.UserGamification:
    """
    Get the user's gamification record, creating the seed record if absent.

    Args:
        store: Key-value store
        user_id: User to look up
        now: Creation time for a new record

    Returns:
        UserGamification
    """
    value = store.get(profile_key(user_id))
    if value:
        return schemas.UserGamification.model_validate(value)

    profile = new_profile(user_id, now)
    if store.compare_and_set(profile_key(user_id), profile.model_dump(mode="json"), 0):
        logger.info(f"Initialized gamification profile for {user_id}")
        return profile

    # Lost the creation race; someone else's record wins
    return schemas.UserGamification.model_validate(store.get(profile_key(user_id)))


def _append_points_log(
    store: KeyValueStore,
    user_id: str,
    points: int,
    reason: str,
    now: datetime,
    award_id: Optional[str] = None,
) -> str:
    """Write an audit entry.

    With an ``award_id`` the entry lives under that id and an existing entry
    is left alone. Otherwise it takes the first free microsecond timestamp key.
    """
    entry = schemas.PointsLogEntry(user_id=user_id, points=points, reason=reason, timestamp=now)
    if award_id is not None:
        key = f"{POINTS_LOG_PREFIX}{user_id}:{award_id}"
        store.compare_and_set(key, entry.model_dump(mode="json"), 0)
        return key

    stamp = int(now.timestamp() * 1_000_000)
    while True:
        key = f"{POINTS_LOG_PREFIX}{user_id}:{stamp}"
        if store.compare_and_set(key, entry.model_dump(mode="json"), 0):
            return key
        stamp += 1


def award_points(
    store: KeyValueStore,
    user_id: str,
    amount: int,
    reason: str,
    now: Optional[datetime] = None,
    award_id: Optional[str] = None,
) -> schemas.UserGamification:
    """
    Add points to a user and recompute their level.

    An ``award_id`` makes the award idempotent: the id is stored on the
    profile in the same write as the points, and a repeat call only makes
    sure the points-log entry exists.

    Args:
        store: Key-value store
        user_id: User receiving the points
        amount: Non-negative number of points
        reason: Audit reason recorded in the points log
        now: Award time
        award_id: Optional idempotency key for this award

    Returns:
        Updated UserGamification

    Raises:
        ValueError: If amount is negative
    """
    if amount < 0:
        raise ValueError(f"Points can only be awarded, not removed (got {amount})")
    now = now or utcnow()

    def add(profile: schemas.UserGamification) -> Optional[schemas.UserGamification]:
        if award_id is not None:
            if award_id in profile.processed_awards:
                return None
            profile.processed_awards.append(award_id)
        profile.points += amount
        profile.level = compute_level(profile.points)
        return profile

    profile = _mutate_profile(store, user_id, add, now)
    _append_points_log(store, user_id, amount, reason, now, award_id)
    logger.info(f"Awarded {amount} points to {user_id} ({reason}): total {profile.points}, level {profile.level}")
    return profile


def award_badge(
    store: KeyValueStore,
    user_id: str,
    badge_id: str,
    now: Optional[datetime] = None,
) -> schemas.UserGamification:
    """
    Give a catalog badge to a user, plus the badge bonus.

    The badge and its bonus points are written together. Awarding a badge
    the user already holds, or an id missing from the catalog, changes
    nothing.

    Returns:
        Updated UserGamification
    """
    definition = find_badge(get_catalog(), badge_id)
    if definition is None:
        logger.warning(f"Ignoring unknown badge '{badge_id}' for {user_id}")
        return ensure_profile(store, user_id, now)

    now = now or utcnow()
    award_id = f"badge:{badge_id}"
    reason = f"Badge earned: {definition.name}"
    awarded = False

    def add_badge(profile: schemas.UserGamification) -> Optional[schemas.UserGamification]:
        nonlocal awarded
        awarded = False
        if profile.has_badge(badge_id):
            return None
        profile.badges.append(schemas.Badge(
            id=definition.id,
            name=definition.name,
            description=definition.description,
            icon=definition.icon,
            earned_at=now,
        ))
        profile.points += BADGE_BONUS_POINTS
        profile.level = compute_level(profile.points)
        profile.processed_awards.append(award_id)
        awarded = True
        return profile

    profile = _mutate_profile(store, user_id, add_badge, now)
    if award_id in profile.processed_awards:
        _append_points_log(store, user_id, BADGE_BONUS_POINTS, reason, now, award_id)
    if awarded:
        logger.info(f"User {user_id} earned badge '{badge_id}': total {profile.points}, level {profile.level}")
    return profile


def update_streak(
    store: KeyValueStore,
    user_id: str,
    now: Optional[datetime] = None,
) -> schemas.UserGamification:
    """
    Record activity for today and maintain the consecutive-day streak.

    Same calendar day (UTC) as the last activity: no change. Exactly one day
    later: streak + 1. Anything else, including first activity: streak = 1.
    Reaching a streak badge threshold awards that badge.

    Returns:
        Updated UserGamification
    """
    now = now or utcnow()
    today = now.date()

    def bump(profile: schemas.UserGamification) -> Optional[schemas.UserGamification]:
        last = profile.last_activity_date
        if last is not None and last.date() == today:
            return None
        if last is not None and (today - last.date()).days == 1:
            profile.streak += 1
        else:
            profile.streak = 1
        profile.last_activity_date = now
        return profile

    profile = _mutate_profile(store, user_id, bump, now)
    logger.debug(f"Streak for {user_id}: {profile.streak}")

    for badge in streak_badges(get_catalog()):
        if profile.streak >= badge.streak_days and not profile.has_badge(badge.id):
            profile = award_badge(store, user_id, badge.id, now)
    return profile


def _apply_progress(
    achievement: schemas.Achievement,
    progress: int,
    now: datetime,
) -> None:
    if achievement.completed:
        return
    achievement.progress = max(0, min(progress, achievement.target))
    if achievement.progress >= achievement.target:
        achievement.completed = True
        achievement.completed_at = now


def update_achievement_progress(
    store: KeyValueStore,
    user_id: str,
    achievement_id: str,
    progress: int,
    now: Optional[datetime] = None,
) -> schemas.UserGamification:
    """
    Set progress on one achievement, clamped to its target.

    Completion is stamped the first time the target is reached and is never
    undone.

    Raises:
        AchievementNotFoundError: If the achievement is not tracked
    """
    now = now or utcnow()

    def progress_one(profile: schemas.UserGamification) -> schemas.UserGamification:
        achievement = next((a for a in profile.achievements if a.id == achievement_id), None)
        if achievement is None:
            raise AchievementNotFoundError(achievement_id)
        _apply_progress(achievement, progress, now)
        return profile

    return _mutate_profile(store, user_id, progress_one, now)


def increment_issue_count(
    store: KeyValueStore,
    user_id: str,
    now: Optional[datetime] = None,
    award_id: Optional[str] = None,
) -> schemas.UserGamification:
    """
    Count one more reported issue for the user.

    Awards the count badge whose threshold equals the new total, then moves
    every achievement tracker to the new total. With an ``award_id`` that
    was already counted, the total is left alone and only the badge and
    progress follow-ups run again (both are idempotent).

    Returns:
        Updated UserGamification
    """
    now = now or utcnow()

    def increment(profile: schemas.UserGamification) -> Optional[schemas.UserGamification]:
        if award_id is not None:
            if award_id in profile.processed_awards:
                return None
            profile.processed_awards.append(award_id)
        profile.total_issues_reported += 1
        return profile

    profile = _mutate_profile(store, user_id, increment, now)
    new_count = profile.total_issues_reported

    badge = badge_for_issue_count(get_catalog(), new_count)
    if badge is not None:
        award_badge(store, user_id, badge.id, now)

    def progress_all(profile: schemas.UserGamification) -> schemas.UserGamification:
        for achievement in profile.achievements:
            _apply_progress(achievement, new_count, now)
        return profile

    profile = _mutate_profile(store, user_id, progress_all, now)
    logger.info(f"User {user_id} has reported {new_count} issues")
    return profile


def increment_resolved_count(
    store: KeyValueStore,
    user_id: str,
    now: Optional[datetime] = None,
    award_id: Optional[str] = None,
) -> schemas.UserGamification:
    """Count one more resolved issue for the reporter, once per ``award_id``."""
    def increment(profile: schemas.UserGamification) -> Optional[schemas.UserGamification]:
        if award_id is not None:
            if award_id in profile.processed_awards:
                return None
            profile.processed_awards.append(award_id)
        profile.total_issues_resolved += 1
        return profile

    return _mutate_profile(store, user_id, increment, now)


def get_points_log(
    store: KeyValueStore,
    user_id: str,
    limit: Optional[int] = None,
) -> list[schemas.PointsLogEntry]:
    """Points audit log for a user, newest first."""
    entries = [
        schemas.PointsLogEntry.model_validate(value)
        for _, value in store.scan_by_prefix(f"{POINTS_LOG_PREFIX}{user_id}:")
        if value
    ]
    entries.sort(key=lambda entry: entry.timestamp, reverse=True)
    return entries[:limit] if limit is not None else entries


def get_leaderboard(store: KeyValueStore, limit: int = 10) -> list[schemas.LeaderboardEntry]:
    """
    Top users by points.

    Ties keep store scan order. Names are not resolved here.

    Args:
        store: Key-value store
        limit: Maximum number of entries

    Returns:
        At most ``limit`` entries, points descending
    """
    profiles = [
        schemas.UserGamification.model_validate(value)
        for _, value in store.scan_by_prefix(GAMIFICATION_PREFIX)
        if value and value.get("user_id")
    ]
    profiles.sort(key=lambda profile: profile.points, reverse=True)
    return [
        schemas.LeaderboardEntry(user_id=profile.user_id, points=profile.points, level=profile.level)
        for profile in profiles[:max(limit, 0)]
    ]


def _job_key(issue_id: str) -> str:
    return f"{JOB_PREFIX}{issue_id}"


def _load_or_create_job(
    store: KeyValueStore,
    user_id: str,
    issue_id: str,
    now: datetime,
) -> schemas.GamificationJob:
    value = store.get(_job_key(issue_id))
    if value:
        return schemas.GamificationJob.model_validate(value)
    job = schemas.GamificationJob(user_id=user_id, issue_id=issue_id, created_at=now)
    if store.compare_and_set(_job_key(issue_id), job.model_dump(mode="json"), 0):
        return job
    return schemas.GamificationJob.model_validate(store.get(_job_key(issue_id)))


def _mark_job(
    store: KeyValueStore,
    issue_id: str,
    step: Optional[str] = None,
    completed_at: Optional[datetime] = None,
) -> None:
    def apply(current: Optional[dict]) -> dict:
        job = schemas.GamificationJob.model_validate(current)
        if step and step not in job.completed_steps:
            job.completed_steps.append(step)
        if completed_at:
            job.completed_at = completed_at
        return job.model_dump(mode="json")

    update_with_retry(store, _job_key(issue_id), apply, get_settings().store_max_retries)


def process_issue_reported(
    store: KeyValueStore,
    user_id: str,
    issue_id: str,
    now: Optional[datetime] = None,
) -> schemas.UserGamification:
    """
    Run the gamification side effects of a newly reported issue.

    Steps run in order (issue count, +10 points, streak) and each is
    persisted on its own. Finished steps are recorded against the issue, so
    calling this again for the same issue only runs what is left; a fully
    processed issue is a no-op. The count and points steps carry award ids
    derived from the issue, so a step that failed halfway never applies
    twice.

    Args:
        store: Key-value store
        user_id: Reporter
        issue_id: The issue that was created
        now: Event time

    Returns:
        The reporter's UserGamification after processing
    """
    now = now or utcnow()
    job = _load_or_create_job(store, user_id, issue_id, now)
    if job.completed_at is not None:
        logger.info(f"Gamification for issue {issue_id} already processed, skipping")
        return ensure_profile(store, user_id, now)

    actions = {
        "count": lambda: increment_issue_count(store, user_id, now, award_id=f"{issue_id}:count"),
        "points": lambda: award_points(
            store, user_id, ISSUE_REPORTED_POINTS, ISSUE_REPORTED_REASON, now, award_id=f"{issue_id}:points",
        ),
        "streak": lambda: update_streak(store, user_id, now),
    }
    for step in JOB_STEPS:
        if step in job.completed_steps:
            logger.info(f"Gamification step '{step}' for issue {issue_id} already done, resuming")
            continue
        actions[step]()
        _mark_job(store, issue_id, step=step)

    _mark_job(store, issue_id, completed_at=now)
    return ensure_profile(store, user_id, now)


def list_pending_jobs(store: KeyValueStore, user_id: str) -> list[schemas.GamificationJob]:
    """Unfinished issue-reported jobs of one user, oldest first."""
    jobs = [
        schemas.GamificationJob.model_validate(value)
        for _, value in store.scan_by_prefix(JOB_PREFIX)
        if value and value.get("user_id") == user_id
    ]
    jobs = [job for job in jobs if job.completed_at is None]
    jobs.sort(key=lambda job: job.created_at)
    return jobs


def resume_pending_jobs(
    store: KeyValueStore,
    user_id: str,
    now: Optional[datetime] = None,
) -> int:
    """
    Finish issue-reported jobs an earlier request left incomplete.

    Args:
        store: Key-value store
        user_id: Reporter whose jobs are resumed
        now: Event time for the resumed steps

    Returns:
        Number of jobs that were resumed
    """
    pending = list_pending_jobs(store, user_id)
    for job in pending:
        logger.info(f"Resuming gamification for issue {job.issue_id} (done: {job.completed_steps})")
        process_issue_reported(store, user_id, job.issue_id, now)
    return len(pending)
