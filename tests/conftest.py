"""Shared fixtures: an in-memory store, fixed clocks and API clients."""
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from campusfix_core import schemas
from campusfix_core.api.main import create_app
from campusfix_core.database import create_store
from campusfix_core.models import IssueCategory, UserRole


@pytest.fixture
def store():
    """Fresh in-memory SQLite key-value store."""
    return create_store("sqlite://")


@pytest.fixture
def now():
    """Fixed reference time (UTC, mid-day so day arithmetic is unambiguous)."""
    return datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def student():
    return schemas.CallerIdentity(user_id="student-1", role=UserRole.STUDENT, name="Sam Student", email="sam@campus.edu")


@pytest.fixture
def other_student():
    return schemas.CallerIdentity(user_id="student-2", role=UserRole.STUDENT, name="Olive Other", email="olive@campus.edu")


@pytest.fixture
def staff():
    return schemas.CallerIdentity(user_id="staff-1", role=UserRole.STAFF, name="Fran Facilities", email="fran@campus.edu")


@pytest.fixture
def make_draft():
    """Factory for valid issue drafts."""
    def _make(**overrides) -> schemas.IssueCreate:
        fields = {
            "title": "Projector not working",
            "description": "The projector flickers and shuts off",
            "category": IssueCategory.EQUIPMENT,
            "room": "301",
            "building": "A",
        }
        fields.update(overrides)
        return schemas.IssueCreate(**fields)
    return _make


@pytest.fixture
def make_issue(now):
    """Factory for Issue records built in memory (no store involved)."""
    counter = {"n": 0}

    def _make(hours_ago: float = 0, updated_hours_ago: float = None, **overrides) -> schemas.Issue:
        counter["n"] += 1
        created = now - timedelta(hours=hours_ago)
        updated = now - timedelta(hours=updated_hours_ago) if updated_hours_ago is not None else created
        fields = {
            "id": f"issue-{counter['n']}",
            "reporter_id": "student-1",
            "title": f"Issue {counter['n']}",
            "description": "Something is broken",
            "category": IssueCategory.EQUIPMENT.value,
            "room": "301",
            "building": "A",
            "created_at": created,
            "updated_at": updated,
        }
        fields.update(overrides)
        return schemas.Issue(**fields)
    return _make


@pytest.fixture
def client(store):
    """TestClient bound to an app serving the in-memory store."""
    return TestClient(create_app(store))


@pytest.fixture
def register(client):
    """Register a profile through the API and return request headers for it."""
    def _register(user_id: str, role: str = "student", name: str = None) -> dict:
        headers = {"X-User-Id": user_id}
        response = client.post(
            "/api/v1/users/",
            json={"email": f"{user_id}@campus.edu", "name": name or user_id.title(), "role": role},
            headers=headers,
        )
        assert response.status_code == 201, response.text
        return headers
    return _register
