"""Database engine and key-value store factory."""
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .config import get_settings
from .kv_store import SqlKeyValueStore
from .models import Base


def build_engine(database_url: str) -> Engine:
    """Create an engine for ``database_url``.

    In-memory SQLite needs a single shared connection so every session sees
    the same tables.
    """
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)

    # Conservative pool settings for hosted Postgres
    return create_engine(
        database_url,
        pool_pre_ping=True,          # Verify connections before using
        pool_size=3,                 # Base pool of 3 connections
        max_overflow=7,              # Allow up to 10 total connections
        pool_recycle=3600,           # Recycle connections every hour
        pool_timeout=30,             # Timeout after 30 seconds
    )


def create_store(database_url: Optional[str] = None, create_tables: bool = True) -> SqlKeyValueStore:
    """Build a SqlKeyValueStore bound to ``database_url`` (settings default).

    Args:
        database_url: SQLAlchemy URL; falls back to ``Settings.database_url``
        create_tables: Create ``kv_entries`` if missing (Alembic owns it in production)

    Returns:
        SqlKeyValueStore: Ready-to-use store
    """
    settings = get_settings()
    engine = build_engine(database_url or settings.database_url)
    if create_tables:
        Base.metadata.create_all(engine)
    session_factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    return SqlKeyValueStore(session_factory)
