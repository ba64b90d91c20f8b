"""MCP tool definitions for CampusFix."""

from mcp.types import Tool

ISSUE_STATUSES = ["open", "assigned", "in-progress", "resolved", "closed"]


def get_tools() -> list[Tool]:
    """Get the list of all MCP tools for campus issue management."""
    return [
        # ============================================================================
        # Issue Tools
        # ============================================================================
        Tool(
            name="list_issues",
            description="List campus facility issues, newest first. "
                       "Staff see every issue and may filter by status or department; "
                       "students see only their own reports. "
                       "Common pattern: list_issues(status='open') → get_issue() → update_issue_status().",
            inputSchema={
                "type": "object",
                "properties": {
                    "status": {
                        "type": "string",
                        "enum": ISSUE_STATUSES,
                        "description": "Only issues in this status (takes precedence over department)"
                    },
                    "department": {
                        "type": "string",
                        "description": "Only issues assigned to this department"
                    }
                }
            }
        ),
        Tool(
            name="get_issue",
            description="Get full details of one issue. "
                       "Errors: 404 (not found), 403 (another student's issue).",
            inputSchema={
                "type": "object",
                "properties": {
                    "issue_id": {
                        "type": "string",
                        "description": "UUID of the issue"
                    }
                },
                "required": ["issue_id"]
            }
        ),
        Tool(
            name="update_issue_status",
            description="Move an issue one step along open → assigned → in-progress → resolved → closed "
                       "(staff only). Set reopen=true to send a resolved or closed issue back to open. "
                       "Errors: 409 (skipped or backward step), 403 (not staff).",
            inputSchema={
                "type": "object",
                "properties": {
                    "issue_id": {
                        "type": "string",
                        "description": "UUID of the issue"
                    },
                    "status": {
                        "type": "string",
                        "enum": ISSUE_STATUSES,
                        "description": "Next status"
                    },
                    "assigned_to": {
                        "type": "string",
                        "description": "Person handling the issue"
                    },
                    "assigned_department": {
                        "type": "string",
                        "description": "Department handling the issue"
                    },
                    "resolution_notes": {
                        "type": "string",
                        "description": "What was done to fix the issue"
                    },
                    "reopen": {
                        "type": "boolean",
                        "description": "Reopen a resolved or closed issue instead of updating it"
                    }
                },
                "required": ["issue_id"]
            }
        ),
        # ============================================================================
        # Dashboard Tools
        # ============================================================================
        Tool(
            name="get_analytics",
            description="Staff dashboard: status, priority and category counts, average resolution time "
                       "and day-over-day trends.",
            inputSchema={"type": "object", "properties": {}}
        ),
        Tool(
            name="get_predictions",
            description="Top 5 maintenance predictions: recurring problems per room, stale high-priority "
                       "issues needing follow-up, and categories trending this week.",
            inputSchema={"type": "object", "properties": {}}
        ),
        Tool(
            name="get_leaderboard",
            description="Top reporters by gamification points.",
            inputSchema={
                "type": "object",
                "properties": {
                    "limit": {
                        "type": "integer",
                        "description": "Number of entries (default: 10, max: 100)"
                    }
                }
            }
        ),
    ]
