"""Shared formatting functions for MCP responses."""

STATUS_EMOJI = {
    "open": "🔴",
    "assigned": "🟠",
    "in-progress": "🟡",
    "resolved": "🟢",
    "closed": "⚪",
}

PRIORITY_EMOJI = {
    "low": "⬇️",
    "medium": "➡️",
    "high": "⬆️",
    "critical": "🚨",
}


def format_issue_summary(issue: dict) -> str:
    """One-line issue summary for lists."""
    emoji = STATUS_EMOJI.get(issue['status'], '❔')
    return (f"{emoji} [{issue['status']}] **{issue['title']}** "
            f"({issue['category']}, {issue['priority']}) - Room {issue['room']}, {issue['building']} "
            f"| ID: {issue['id']}")


def format_issue(issue: dict) -> str:
    """Format an issue with full details."""
    emoji = STATUS_EMOJI.get(issue['status'], '❔')
    priority = PRIORITY_EMOJI.get(issue['priority'], '')

    reporter = issue.get('reporter_name') or issue['reporter_id']
    location_info = f"\nLocation: {issue['location']}" if issue.get('location') else ""
    floor_info = f"\nFloor: {issue['floor']}" if issue.get('floor') else ""
    assigned_info = f"\nAssigned to: {issue['assigned_to']}" if issue.get('assigned_to') else ""
    dept_info = f"\nDepartment: {issue['assigned_department']}" if issue.get('assigned_department') else ""
    tags_info = f"\nTags: {', '.join(issue['tags'])}" if issue.get('tags') else ""
    resolved_info = f"\nResolved: {issue['resolved_at']}" if issue.get('resolved_at') else ""
    notes_info = f"\nResolution notes: {issue['resolution_notes']}" if issue.get('resolution_notes') else ""

    return f"""{emoji} **{issue['title']}**
ID: {issue['id']}
Status: {issue['status']}
Priority: {priority} {issue['priority']}
Category: {issue['category']}
Room: {issue['room']}, {issue['building']}{floor_info}{location_info}
Reporter: {reporter}
Upvotes: {issue['upvotes']}{assigned_info}{dept_info}{tags_info}
Created: {issue['created_at']}
Updated: {issue['updated_at']}{resolved_info}{notes_info}

{issue['description']}"""


def format_breakdown(title: str, breakdown: dict) -> str:
    """Format a count breakdown as a bullet list, largest first."""
    if not breakdown:
        return f"**{title}**: none"
    rows = sorted(breakdown.items(), key=lambda item: item[1], reverse=True)
    lines = "\n".join(f"- {key}: {count}" for key, count in rows)
    return f"**{title}**\n{lines}"


def format_trend(label: str, trend: dict) -> str:
    """Format one dashboard trend indicator."""
    arrow = "▲" if trend['is_positive'] else "▼"
    return f"- {label}: {arrow} {trend['value']}% ({trend['comparison']})"


def format_analytics(snapshot: dict) -> str:
    """Format the staff dashboard snapshot."""
    trends = snapshot['trends']
    trend_lines = "\n".join([
        format_trend("Pending", trends['pending']),
        format_trend("In progress", trends['in_progress']),
        format_trend("Resolved", trends['resolved']),
        format_trend("Avg resolution", trends['avg_resolution']),
    ])

    return f"""**Campus Maintenance Dashboard**
Total issues: {snapshot['total_issues']}
Open: {snapshot['open_issues']} | Assigned: {snapshot['assigned_issues']} | In progress: {snapshot['in_progress_issues']}
Resolved: {snapshot['resolved_issues']} | Closed: {snapshot['closed_issues']}
High priority: {snapshot['high_priority_issues']} | Critical: {snapshot['critical_issues']}
Average resolution time: {snapshot['avg_resolution_time']} hours

**Trends**
{trend_lines}

{format_breakdown("By category", snapshot['category_breakdown'])}

{format_breakdown("By priority", snapshot['priority_breakdown'])}"""


def format_prediction(prediction: dict) -> str:
    """Format a maintenance prediction."""
    return f"""**{prediction['title']}** ({prediction['type']})
Priority: {prediction['priority']} | Confidence: {prediction['confidence']}%
Where: {prediction['room']}, {prediction['building']} | Category: {prediction['category']}
Based on {prediction['based_on_issues']} issue(s)
{prediction['description']}"""


def format_leaderboard(entries: list[dict]) -> str:
    """Format leaderboard rows as a ranked list."""
    if not entries:
        return "No users on the leaderboard yet."
    lines = [
        f"{rank}. {entry.get('name') or entry['user_id']} - {entry['points']} pts (level {entry['level']})"
        for rank, entry in enumerate(entries, start=1)
    ]
    return "**Leaderboard**\n" + "\n".join(lines)
