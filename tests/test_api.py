"""Tests for the HTTP API."""
from campusfix_core import gamification

ISSUES = "/api/v1/issues/"

DRAFT = {
    "title": "Flickering lights",
    "description": "Lights flicker in the back row",
    "category": "Electrical",
    "room": "301",
    "building": "A",
    "priority": "high",
}


def _create(client, headers, **overrides):
    response = client.post(ISSUES, json={**DRAFT, **overrides}, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()


class TestService:
    """Root and health endpoints."""

    def test_health(self, client):
        assert client.get("/health").json() == {"status": "healthy"}

    def test_root(self, client):
        assert client.get("/").json()["name"] == "CampusFix Core API"


class TestIdentity:
    """Caller identity resolution."""

    def test_missing_header(self, client):
        response = client.get(ISSUES)
        assert response.status_code == 401

    def test_unknown_profile(self, client):
        response = client.get(ISSUES, headers={"X-User-Id": "ghost"})
        assert response.status_code == 404
        assert response.json()["detail"] == "User profile not found"

    def test_profile_me(self, client, register):
        headers = register("student-1", name="Sam")
        response = client.get("/api/v1/users/me", headers=headers)

        assert response.status_code == 200
        assert response.json()["name"] == "Sam"
        assert response.json()["role"] == "student"

    def test_duplicate_email(self, client, register):
        register("student-1")
        response = client.post(
            "/api/v1/users/",
            json={"email": "student-1@campus.edu", "name": "Imposter"},
            headers={"X-User-Id": "student-2"},
        )
        assert response.status_code == 400

    def test_student_cannot_escalate_role(self, client, register):
        headers = register("student-1")
        response = client.post(
            "/api/v1/users/",
            json={"email": "student-1@campus.edu", "name": "Sam", "role": "admin"},
            headers=headers,
        )

        assert response.status_code == 201
        assert response.json()["role"] == "student"
        assert client.get("/api/v1/admin/analytics", headers=headers).status_code == 403
        assert client.delete(f"{ISSUES}any-issue", headers=headers).status_code == 403


class TestIssueEndpoints:
    """Issue lifecycle over HTTP."""

    def test_create_runs_gamification(self, client, register):
        headers = register("student-1")
        issue = _create(client, headers)

        assert issue["status"] == "open"
        assert issue["upvotes"] == 0
        assert issue["reporter_name"] == "Student-1"

        profile = client.get("/api/v1/gamification/", headers=headers).json()
        assert profile["total_issues_reported"] == 1
        assert profile["points"] == 60
        assert profile["streak"] == 1
        assert [badge["id"] for badge in profile["badges"]] == ["first-report"]

        log = client.get("/api/v1/gamification/points-log", headers=headers).json()
        assert sorted(entry["points"] for entry in log) == [10, 50]

    def test_create_missing_fields(self, client, register):
        headers = register("student-1")
        response = client.post(ISSUES, json={"title": "Broken"}, headers=headers)

        assert response.status_code == 400
        assert "Missing required fields" in response.json()["detail"]

    def test_create_unknown_category(self, client, register):
        headers = register("student-1")
        response = client.post(ISSUES, json={**DRAFT, "category": "Dragons"}, headers=headers)
        assert response.status_code == 422

    def test_students_list_own_issues(self, client, register):
        sam = register("student-1")
        olive = register("student-2")
        staff = register("staff-1", role="staff")
        mine = _create(client, sam)
        _create(client, olive)

        assert [i["id"] for i in client.get(ISSUES, headers=sam).json()] == [mine["id"]]
        assert len(client.get(ISSUES, headers=staff).json()) == 2
        assert client.get(ISSUES, params={"status": "resolved"}, headers=staff).json() == []

    def test_student_cannot_read_others_issue(self, client, register):
        sam = register("student-1")
        olive = register("student-2")
        issue = _create(client, sam)

        assert client.get(f"{ISSUES}{issue['id']}", headers=sam).status_code == 200
        response = client.get(f"{ISSUES}{issue['id']}", headers=olive)
        assert response.status_code == 403
        assert response.json()["detail"] == "Unauthorized to view this issue"

    def test_get_missing_issue(self, client, register):
        headers = register("staff-1", role="staff")
        assert client.get(f"{ISSUES}nope", headers=headers).status_code == 404

    def test_update_workflow(self, client, register):
        sam = register("student-1")
        staff = register("staff-1", role="staff")
        issue = _create(client, sam)
        url = f"{ISSUES}{issue['id']}"

        assert client.put(url, json={"status": "assigned"}, headers=sam).status_code == 403
        assert client.put(url, json={"status": "resolved"}, headers=staff).status_code == 409

        for status in ("assigned", "in-progress", "resolved"):
            response = client.put(url, json={"status": status}, headers=staff)
            assert response.status_code == 200, response.text

        resolved = response.json()
        assert resolved["status"] == "resolved"
        assert resolved["resolved_at"] is not None

        profile = client.get("/api/v1/gamification/", headers=sam).json()
        assert profile["total_issues_resolved"] == 1

        reopened = client.post(f"{url}/reopen", headers=staff)
        assert reopened.status_code == 200
        assert reopened.json()["status"] == "open"
        assert client.post(f"{url}/reopen", headers=staff).status_code == 409

    def test_update_rejects_protected_fields(self, client, register):
        sam = register("student-1")
        staff = register("staff-1", role="staff")
        issue = _create(client, sam)

        response = client.put(f"{ISSUES}{issue['id']}", json={"upvotes": 100}, headers=staff)
        assert response.status_code == 422

    def test_repeated_resolve_counts_once(self, client, register):
        sam = register("student-1")
        staff = register("staff-1", role="staff")
        issue = _create(client, sam)

        for status in ("assigned", "in-progress", "resolved", "resolved"):
            response = client.put(f"{ISSUES}{issue['id']}", json={"status": status}, headers=staff)
            assert response.status_code == 200, response.text

        profile = client.get("/api/v1/gamification/", headers=sam).json()
        assert profile["total_issues_resolved"] == 1

    def test_failed_gamification_finished_on_next_report(self, client, register, store, monkeypatch):
        sam = register("student-1")

        def broken(*args, **kwargs):
            raise RuntimeError("store unavailable")

        real_update_streak = gamification.update_streak
        monkeypatch.setattr(gamification, "update_streak", broken)
        response = client.post(ISSUES, json=DRAFT, headers=sam)
        assert response.status_code == 500
        monkeypatch.setattr(gamification, "update_streak", real_update_streak)

        _create(client, sam)

        profile = client.get("/api/v1/gamification/", headers=sam).json()
        assert profile["total_issues_reported"] == 2
        assert profile["points"] == 2 * gamification.ISSUE_REPORTED_POINTS + gamification.BADGE_BONUS_POINTS
        assert profile["streak"] == 1
        assert gamification.list_pending_jobs(store, "student-1") == []

    def test_upvote(self, client, register):
        sam = register("student-1")
        olive = register("student-2")
        issue = _create(client, sam)

        client.post(f"{ISSUES}{issue['id']}/upvote", headers=olive)
        response = client.post(f"{ISSUES}{issue['id']}/upvote", headers=sam)

        assert response.json()["upvotes"] == 2
        assert client.post(f"{ISSUES}nope/upvote", headers=sam).status_code == 404

    def test_delete_admin_only(self, client, register):
        sam = register("student-1")
        staff = register("staff-1", role="staff")
        admin = register("admin-1", role="admin")
        issue = _create(client, sam)
        url = f"{ISSUES}{issue['id']}"

        assert client.delete(url, headers=staff).status_code == 403
        assert client.delete(url, headers=admin).status_code == 204
        assert client.delete(url, headers=admin).status_code == 404
        assert client.get(ISSUES, headers=sam).json() == []


class TestDashboardEndpoints:
    """Leaderboard, analytics and predictions."""

    def test_leaderboard_names(self, client, register, store):
        sam = register("student-1", name="Sam")
        _create(client, sam)
        gamification.award_points(store, "departed-user", 500, "Legacy")

        board = client.get("/api/v1/gamification/leaderboard", params={"limit": 5}, headers=sam).json()

        assert [(row["name"], row["points"]) for row in board] == [("Unknown User", 500), ("Sam", 60)]

    def test_analytics_staff_only(self, client, register):
        sam = register("student-1")
        staff = register("staff-1", role="staff")
        for _ in range(3):
            _create(client, sam)

        assert client.get("/api/v1/admin/analytics", headers=sam).status_code == 403

        snapshot = client.get("/api/v1/admin/analytics", headers=staff).json()
        assert snapshot["total_issues"] == 3
        assert snapshot["high_priority_issues"] == 3
        assert snapshot["category_breakdown"] == {"Electrical": 3}
        assert snapshot["trends"]["pending"]["value"] == "100"

    def test_predictions(self, client, register):
        sam = register("student-1")
        staff = register("staff-1", role="staff")
        for _ in range(3):
            _create(client, sam)

        assert client.get("/api/v1/admin/predictions", headers=sam).status_code == 403

        result = client.get("/api/v1/admin/predictions", headers=staff).json()
        assert {p["type"] for p in result} == {"recurring_pattern", "trending_category"}
        assert result[0]["type"] == "trending_category"

    def test_user_lookup(self, client, register):
        sam = register("student-1", name="Sam")
        staff = register("staff-1", role="staff")

        assert client.get("/api/v1/admin/users/student-1", headers=sam).status_code == 403
        assert client.get("/api/v1/admin/users/student-1", headers=staff).json()["name"] == "Sam"
        assert client.get("/api/v1/admin/users/ghost", headers=staff).status_code == 404

    def test_user_listing_and_email_lookup(self, client, register):
        sam = register("student-1", name="Sam")
        staff = register("staff-1", role="staff")

        assert client.get("/api/v1/admin/users", headers=sam).status_code == 403
        assert len(client.get("/api/v1/admin/users", headers=staff).json()) == 2
        staff_only = client.get("/api/v1/admin/users", params={"role": "staff"}, headers=staff).json()
        assert [profile["id"] for profile in staff_only] == ["staff-1"]

        found = client.get("/api/v1/admin/users/by-email/Student-1@Campus.edu", headers=staff)
        assert found.json()["id"] == "student-1"
        assert client.get("/api/v1/admin/users/by-email/ghost@campus.edu", headers=staff).status_code == 404
        assert client.get("/api/v1/admin/users/by-email/student-1@campus.edu", headers=sam).status_code == 403
