"""SQLAlchemy table for the key-value store and shared domain enums."""
from datetime import datetime, timezone
import enum

from sqlalchemy import Column, String, Integer, DateTime, JSON
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base

# Base class for all models
Base = declarative_base()


class KVEntry(Base):
    """A single key/value pair.

    ``version`` starts at 1 on insert and is bumped on every write; it backs
    the optimistic compare-and-set used for counters.
    """

    __tablename__ = "kv_entries"

    key = Column(String(512), primary_key=True)
    value = Column(JSON().with_variant(JSONB(), "postgresql"), nullable=True)
    version = Column(Integer, nullable=False, default=1)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self) -> str:
        return f"<KVEntry {self.key} v{self.version}>"


class IssueStatus(str, enum.Enum):
    """Issue lifecycle status.

    Forward path: open -> assigned -> in-progress -> resolved -> closed.
    Resolved and closed issues may be reopened explicitly.
    """

    OPEN = "open"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in-progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class IssuePriority(str, enum.Enum):
    """Issue priority enum."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Sentiment(str, enum.Enum):
    """Coarse urgency derived from the report text."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class IssueCategory(str, enum.Enum):
    """Fixed category vocabulary for reported issues."""

    EQUIPMENT = "Equipment"
    ELECTRICAL = "Electrical"
    PLUMBING = "Plumbing"
    HVAC = "HVAC"
    FURNITURE = "Furniture"
    CLEANLINESS = "Cleanliness"
    SAFETY = "Safety"
    NETWORK = "Network"
    OTHER = "Other"


class UserRole(str, enum.Enum):
    """Caller role as reported by the identity provider."""

    STUDENT = "student"
    STAFF = "staff"
    ADMIN = "admin"


class PredictionType(str, enum.Enum):
    """Kinds of heuristic maintenance alerts."""

    RECURRING_PATTERN = "recurring_pattern"
    MAINTENANCE_FOLLOWUP = "maintenance_followup"
    TRENDING_CATEGORY = "trending_category"


class PredictionPriority(str, enum.Enum):
    """Priority attached to a prediction."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def utcnow() -> datetime:
    """Timezone-aware current UTC time used for every domain timestamp."""
    return datetime.now(timezone.utc)
