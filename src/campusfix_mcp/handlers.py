"""MCP tool handlers.

All handlers follow a consistent pattern:
- Accept: arguments dict and an httpx.AsyncClient bound to the API
- Return: list[TextContent]
- Use formatters for consistent output
- Let httpx errors propagate to the server, which reports them to the assistant
"""
import logging

import httpx
from mcp.types import TextContent

from . import formatters

logger = logging.getLogger("campusfix-mcp.handlers")


# ============================================================================
# Issue Handlers
# ============================================================================

async def handle_list_issues(
    arguments: dict,
    client: httpx.AsyncClient,
) -> list[TextContent]:
    """List issues, optionally filtered by status or department."""
    params = {k: v for k, v in arguments.items() if v is not None}
    response = await client.get("/issues/", params=params)
    response.raise_for_status()
    result = response.json()
    logger.info(f"Successfully listed {len(result)} issues")

    if not result:
        return [TextContent(type="text", text="No issues found.")]

    items_text = "\n".join([formatters.format_issue_summary(item) for item in result])
    return [TextContent(type="text", text=f"Found {len(result)} issues\n{items_text}")]


async def handle_get_issue(
    arguments: dict,
    client: httpx.AsyncClient,
) -> list[TextContent]:
    """Get complete issue details."""
    issue_id = arguments["issue_id"]
    response = await client.get(f"/issues/{issue_id}")
    response.raise_for_status()
    result = response.json()
    logger.info(f"Successfully retrieved issue {issue_id}: {result['title']}")

    return [TextContent(type="text", text=formatters.format_issue(result))]


async def handle_update_issue_status(
    arguments: dict,
    client: httpx.AsyncClient,
) -> list[TextContent]:
    """Advance an issue's status (or reopen it) and record assignment details."""
    arguments = dict(arguments)
    issue_id = arguments.pop("issue_id")

    if arguments.pop("reopen", False):
        response = await client.post(f"/issues/{issue_id}/reopen")
        response.raise_for_status()
        result = response.json()
        logger.info(f"Successfully reopened issue {issue_id}")
        text = f"Reopened issue: {result['title']}\n\n{formatters.format_issue(result)}"
        return [TextContent(type="text", text=text)]

    body = {k: v for k, v in arguments.items() if v is not None}
    response = await client.put(f"/issues/{issue_id}", json=body)
    response.raise_for_status()
    result = response.json()
    logger.info(f"Successfully updated issue {issue_id} to {result['status']}")

    text = f"Updated issue: {result['title']} (now {result['status']})\n\n{formatters.format_issue(result)}"
    return [TextContent(type="text", text=text)]


# ============================================================================
# Dashboard Handlers
# ============================================================================

async def handle_get_analytics(
    arguments: dict,
    client: httpx.AsyncClient,
) -> list[TextContent]:
    """Staff dashboard snapshot."""
    response = await client.get("/admin/analytics")
    response.raise_for_status()
    result = response.json()
    logger.info(f"Successfully retrieved analytics over {result['total_issues']} issues")

    return [TextContent(type="text", text=formatters.format_analytics(result))]


async def handle_get_predictions(
    arguments: dict,
    client: httpx.AsyncClient,
) -> list[TextContent]:
    """Maintenance predictions, highest priority first."""
    response = await client.get("/admin/predictions")
    response.raise_for_status()
    result = response.json()
    logger.info(f"Successfully retrieved {len(result)} predictions")

    if not result:
        return [TextContent(type="text", text="No maintenance predictions right now.")]

    items_text = "\n\n".join([formatters.format_prediction(item) for item in result])
    return [TextContent(type="text", text=f"{len(result)} maintenance predictions\n\n{items_text}")]


async def handle_get_leaderboard(
    arguments: dict,
    client: httpx.AsyncClient,
) -> list[TextContent]:
    """Top reporters by points."""
    params = {k: v for k, v in arguments.items() if v is not None}
    response = await client.get("/gamification/leaderboard", params=params)
    response.raise_for_status()
    result = response.json()
    logger.info(f"Successfully retrieved leaderboard with {len(result)} entries")

    return [TextContent(type="text", text=formatters.format_leaderboard(result))]


HANDLERS = {
    "list_issues": handle_list_issues,
    "get_issue": handle_get_issue,
    "update_issue_status": handle_update_issue_status,
    "get_analytics": handle_get_analytics,
    "get_predictions": handle_get_predictions,
    "get_leaderboard": handle_get_leaderboard,
}
