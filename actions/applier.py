"""
Applies routing suggestions (assignee, priority) to a Jira issue.

In auto mode the field is updated and an explanatory comment posted; in
suggestion mode only the proposal comment is posted. Each REST call is
independent: a failure is logged and the remaining calls still run.
"""

import logging
from typing import Any, Dict, List

from models.data_models import RoutingSuggestions
from models.routing_config import RoutingConfiguration
from tracker.jira_client import JiraClient

logger = logging.getLogger(__name__)


def _percent(confidence: float) -> int:
    return round(confidence * 100)


def build_suggestion_comments(
    suggestions: RoutingSuggestions,
    assigned: bool,
    priority_set: bool,
) -> List[str]:
    """Comment text per suggestion: what was applied, or what is proposed."""
    comments = []

    assignee = suggestions.assignee
    if assignee:
        if assigned:
            comments.append(
                f"AI Auto-Assignment: Assigned to {assignee.display_name} "
                f"({_percent(assignee.confidence)}% confidence)\n"
                f"Reason: {assignee.reason}"
            )
        else:
            comments.append(
                f"AI Suggestion: Consider assigning to {assignee.display_name} "
                f"({_percent(assignee.confidence)}% confidence)\n"
                f"Reason: {assignee.reason}"
            )

    priority = suggestions.priority
    if priority:
        if priority_set:
            comments.append(
                f"AI Priority: Set to {priority.name} "
                f"({_percent(priority.confidence)}% confidence)\n"
                f"Reason: {priority.reason}"
            )
        else:
            comments.append(
                f"AI Priority Suggestion: Consider setting priority to {priority.name} "
                f"({_percent(priority.confidence)}% confidence)\n"
                f"Reason: {priority.reason}"
            )

    return comments


def apply_suggestions(
    jira: JiraClient,
    issue_key: str,
    suggestions: RoutingSuggestions,
    config: RoutingConfiguration,
) -> Dict[str, Any]:
    """
    Apply or propose routing suggestions.

    Returns:
        Dict with ``fields`` (names written to Jira) and ``comments``
        (number of comments posted)
    """
    updates: Dict[str, Any] = {}
    if suggestions.assignee and config.auto_assign:
        updates["assignee"] = {"accountId": suggestions.assignee.account_id}
    if suggestions.priority and config.auto_set_priority:
        updates["priority"] = {"id": suggestions.priority.id}

    applied_fields: List[str] = []
    if updates:
        try:
            jira.update_issue(issue_key, updates)
            applied_fields = list(updates)
            logger.info(f"✓ Applied {', '.join(applied_fields)} to {issue_key}")
        except Exception as e:
            logger.error(f"✗ Failed to update {issue_key} ({', '.join(updates)}): {e}")

    posted = 0
    comments = build_suggestion_comments(
        suggestions,
        assigned="assignee" in applied_fields,
        priority_set="priority" in applied_fields,
    )
    for comment in comments:
        try:
            jira.add_comment(issue_key, comment)
            posted += 1
        except Exception as e:
            logger.error(f"✗ Failed to comment on {issue_key}: {e}")

    return {"fields": applied_fields, "comments": posted}
