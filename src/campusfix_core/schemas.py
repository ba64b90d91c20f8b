"""Pydantic schemas for stored records, requests and responses."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, ConfigDict, model_validator

from .models import (
    IssueStatus,
    IssuePriority,
    IssueCategory,
    Sentiment,
    UserRole,
    PredictionType,
    PredictionPriority,
)


# Identity

class CallerIdentity(BaseModel):
    """Identity handed over by the identity provider (trusted as-is)."""

    user_id: str = Field(..., min_length=1)
    role: UserRole = UserRole.STUDENT
    name: Optional[str] = None
    email: Optional[str] = None

    @property
    def is_staff(self) -> bool:
        return self.role in (UserRole.STAFF, UserRole.ADMIN)


# User Profile Schemas

class UserProfileCreate(BaseModel):
    """Schema for registering a profile for an authenticated identity."""

    email: str = Field(..., min_length=3, max_length=320)
    name: str = Field(..., min_length=1, max_length=200)
    role: UserRole = UserRole.STUDENT
    department: Optional[str] = None
    student_id: Optional[str] = None
    phone: Optional[str] = None
    avatar: Optional[str] = None


class UserProfile(UserProfileCreate):
    """Stored user profile (``user:<id>``)."""

    id: str
    created_at: datetime
    updated_at: datetime


# Issue Schemas

class IssueCreate(BaseModel):
    """Issue draft submitted by a reporter.

    Required fields (title, description, category, room, building) are
    checked by the issue ledger so that every entry point gets the same
    validation error.
    """

    title: Optional[str] = Field(None, max_length=200)
    description: Optional[str] = None
    category: Optional[IssueCategory] = None
    location: Optional[str] = None
    room: Optional[str] = None
    building: Optional[str] = None
    floor: Optional[str] = None
    priority: IssuePriority = IssuePriority.MEDIUM
    sentiment: Sentiment = Sentiment.MEDIUM
    image_ref: Optional[str] = None
    tags: list[str] = Field(default_factory=list)


class IssueUpdate(BaseModel):
    """Fields staff may change on an existing issue.

    Anything not listed here (id, reporter, timestamps, upvotes) is rejected.
    """

    model_config = ConfigDict(extra="forbid")

    status: Optional[IssueStatus] = None
    priority: Optional[IssuePriority] = None
    sentiment: Optional[Sentiment] = None
    assigned_to: Optional[str] = None
    assigned_department: Optional[str] = None
    resolution_notes: Optional[str] = None
    tags: Optional[list[str]] = None


class Issue(BaseModel):
    """Stored issue record (``issue:<id>``)."""

    id: str
    reporter_id: str
    reporter_name: Optional[str] = None
    reporter_email: Optional[str] = None
    title: str
    description: str
    category: str
    location: Optional[str] = None
    room: str
    building: str
    floor: Optional[str] = None
    status: IssueStatus = IssueStatus.OPEN
    priority: IssuePriority = IssuePriority.MEDIUM
    sentiment: Sentiment = Sentiment.MEDIUM
    image_ref: Optional[str] = None
    assigned_to: Optional[str] = None
    assigned_department: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    resolved_at: Optional[datetime] = None
    resolution_notes: Optional[str] = None
    upvotes: int = Field(0, ge=0)
    tags: list[str] = Field(default_factory=list)


# Catalog Schemas

class BadgeDefinition(BaseModel):
    """Catalog entry for a badge.

    ``issue_count`` and ``streak_days`` are optional thresholds that the
    gamification engine uses to award the badge automatically.
    """

    id: str
    name: str
    description: str
    icon: str
    issue_count: Optional[int] = Field(None, ge=1)
    streak_days: Optional[int] = Field(None, ge=1)


class AchievementDefinition(BaseModel):
    """Catalog entry for a progress tracker."""

    id: str
    name: str
    description: str
    target: int = Field(..., ge=1)


class Catalog(BaseModel):
    """Badge and achievement catalogs."""

    badges: list[BadgeDefinition]
    achievements: list[AchievementDefinition]

    @model_validator(mode="after")
    def check_unique_ids(self) -> "Catalog":
        for label, entries in (("badge", self.badges), ("achievement", self.achievements)):
            ids = [entry.id for entry in entries]
            duplicates = sorted({i for i in ids if ids.count(i) > 1})
            if duplicates:
                raise ValueError(f"Duplicate {label} ids in catalog: {', '.join(duplicates)}")
        return self


# Gamification Schemas

class Badge(BaseModel):
    """A badge held by a user."""

    id: str
    name: str
    description: str
    icon: str
    earned_at: datetime


class Achievement(BaseModel):
    """Progress tracker towards a numeric target."""

    id: str
    name: str
    description: str
    progress: int = Field(0, ge=0)
    target: int = Field(..., ge=1)
    completed: bool = False
    completed_at: Optional[datetime] = None


class UserGamification(BaseModel):
    """Per-user gamification state (``gamification:<userId>``)."""

    user_id: str
    points: int = Field(0, ge=0)
    level: int = Field(1, ge=1)
    badges: list[Badge] = Field(default_factory=list)
    achievements: list[Achievement] = Field(default_factory=list)
    streak: int = Field(0, ge=0)
    last_activity_date: Optional[datetime] = None
    total_issues_reported: int = Field(0, ge=0)
    total_issues_resolved: int = Field(0, ge=0)
    # Award ids already applied to this record; repeats are no-ops
    processed_awards: list[str] = Field(default_factory=list)
    updated_at: datetime

    def has_badge(self, badge_id: str) -> bool:
        return any(badge.id == badge_id for badge in self.badges)


class PointsLogEntry(BaseModel):
    """Immutable audit entry (``points-log:<userId>:<timestamp or award id>``)."""

    user_id: str
    points: int
    reason: str
    timestamp: datetime


class GamificationJob(BaseModel):
    """Progress record for the issue-reported side-effect chain."""

    user_id: str
    issue_id: str
    completed_steps: list[str] = Field(default_factory=list)
    created_at: datetime
    completed_at: Optional[datetime] = None


class LeaderboardEntry(BaseModel):
    """Single leaderboard row."""

    user_id: str
    points: int
    level: int
    name: Optional[str] = None


# Analytics Schemas

class TrendValue(BaseModel):
    """One dashboard trend indicator."""

    value: str
    is_positive: bool
    comparison: str


class AnalyticsTrends(BaseModel):
    """Trend indicators shown on the staff dashboard."""

    pending: TrendValue
    in_progress: TrendValue
    resolved: TrendValue
    avg_resolution: TrendValue


class AnalyticsSnapshot(BaseModel):
    """Computed view over the full issue set (never persisted)."""

    total_issues: int
    open_issues: int
    assigned_issues: int
    in_progress_issues: int
    resolved_issues: int
    closed_issues: int
    high_priority_issues: int
    critical_issues: int
    avg_resolution_time: float
    status_breakdown: dict[str, int]
    priority_breakdown: dict[str, int]
    category_breakdown: dict[str, int]
    trends: AnalyticsTrends
    recent_issues: list[Issue]


# Prediction Schemas

class Prediction(BaseModel):
    """Heuristic maintenance alert (never persisted)."""

    id: str
    type: PredictionType
    title: str
    description: str
    room: str
    building: str
    category: str
    confidence: int = Field(..., ge=0, le=100)
    priority: PredictionPriority
    based_on_issues: int = Field(..., ge=1)
    created_at: datetime
