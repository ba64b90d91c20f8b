"""Tests for the MCP tool definitions, handlers and formatters."""
import asyncio
import json

import httpx
import pytest

from campusfix_mcp import formatters, handlers, tools

ISSUE = {
    "id": "abc",
    "reporter_id": "student-1",
    "reporter_name": "Sam",
    "title": "Flickering lights",
    "description": "Back row lights flicker",
    "category": "Electrical",
    "room": "301",
    "building": "A",
    "status": "in-progress",
    "priority": "high",
    "upvotes": 2,
    "tags": ["lights"],
    "created_at": "2026-03-10T12:00:00Z",
    "updated_at": "2026-03-10T13:00:00Z",
}


def _call(handler, arguments, responder):
    """Run an async handler against a mocked API."""
    async def run():
        transport = httpx.MockTransport(responder)
        async with httpx.AsyncClient(transport=transport, base_url="http://api/api/v1") as client:
            return await handler(arguments, client)
    return asyncio.run(run())


class TestTools:
    """Tool registry."""

    def test_every_tool_has_a_handler(self):
        names = {tool.name for tool in tools.get_tools()}

        assert names == set(handlers.HANDLERS)
        assert names == {
            "list_issues", "get_issue", "update_issue_status",
            "get_analytics", "get_predictions", "get_leaderboard",
        }


class TestFormatters:
    """Markdown formatting."""

    def test_issue(self):
        text = formatters.format_issue(ISSUE)

        assert "**Flickering lights**" in text
        assert "Room: 301, A" in text
        assert "Reporter: Sam" in text
        assert "Tags: lights" in text

    def test_issue_summary(self):
        summary = formatters.format_issue_summary(ISSUE)
        assert summary.startswith("🟡 [in-progress]")
        assert "ID: abc" in summary

    def test_leaderboard(self):
        assert formatters.format_leaderboard([]) == "No users on the leaderboard yet."
        text = formatters.format_leaderboard([
            {"user_id": "u1", "name": "Sam", "points": 120, "level": 2},
            {"user_id": "u2", "name": None, "points": 10, "level": 1},
        ])
        assert "1. Sam - 120 pts (level 2)" in text
        assert "2. u2 - 10 pts (level 1)" in text

    def test_breakdown_sorted(self):
        text = formatters.format_breakdown("By category", {"HVAC": 1, "Electrical": 4})
        assert text.index("Electrical") < text.index("HVAC")


class TestHandlers:
    """Handlers call the API and format the reply."""

    def test_list_issues_passes_filters(self):
        seen = {}

        def responder(request):
            seen["url"] = str(request.url)
            return httpx.Response(200, json=[ISSUE])

        content = _call(handlers.handle_list_issues, {"status": "in-progress", "department": None}, responder)

        assert seen["url"] == "http://api/api/v1/issues/?status=in-progress"
        assert content[0].text.startswith("Found 1 issues")

    def test_update_status_puts_body(self):
        seen = {}

        def responder(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={**ISSUE, "status": "resolved"})

        content = _call(
            handlers.handle_update_issue_status,
            {"issue_id": "abc", "status": "resolved", "resolution_notes": "Rewired"},
            responder,
        )

        assert seen == {
            "method": "PUT",
            "path": "/api/v1/issues/abc",
            "body": {"status": "resolved", "resolution_notes": "Rewired"},
        }
        assert "now resolved" in content[0].text

    def test_update_status_reopen(self):
        seen = {}

        def responder(request):
            seen["path"] = request.url.path
            return httpx.Response(200, json={**ISSUE, "status": "open"})

        content = _call(handlers.handle_update_issue_status, {"issue_id": "abc", "reopen": True}, responder)

        assert seen["path"] == "/api/v1/issues/abc/reopen"
        assert content[0].text.startswith("Reopened issue")

    def test_http_errors_propagate(self):
        def responder(request):
            return httpx.Response(409, json={"detail": "Invalid status transition"})

        with pytest.raises(httpx.HTTPStatusError) as exc_info:
            _call(handlers.handle_get_issue, {"issue_id": "abc"}, responder)

        assert exc_info.value.response.status_code == 409
