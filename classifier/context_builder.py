"""
Context builder for triage and routing.

Turns raw Jira issue JSON into the flat structures the prompts consume.
``prepare_issue_content`` and ``build_routing_context`` are pure functions;
the two fetch helpers talk to Jira through ``JiraClient``.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from models.routing_config import RoutingConfiguration
from tracker.jira_client import JiraClient, jql_quote

logger = logging.getLogger(__name__)

SIMILAR_ISSUE_FIELDS = ["assignee", "components", "resolution", "resolutiondate", "summary", "issuetype"]
RESOLVED_STATUSES = "status in (Done, Resolved, Closed)"


def adf_to_text(value: Any) -> str:
    """
    Flatten an Atlassian Document Format node (or plain string) to text.

    Block-level nodes are separated by newlines; unknown nodes contribute
    whatever text their children hold.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, list):
        return "".join(adf_to_text(node) for node in value)
    if not isinstance(value, dict):
        return str(value)

    node_type = value.get("type")
    if node_type == "text":
        return value.get("text", "")
    if node_type == "hardBreak":
        return "\n"
    if node_type in ("mention", "emoji"):
        return value.get("attrs", {}).get("text", "")

    inner = adf_to_text(value.get("content", []))
    if node_type in ("paragraph", "heading", "listItem", "codeBlock", "blockquote"):
        return inner + "\n"
    if node_type == "doc":
        return inner.strip("\n")
    return inner


def _names(items: Optional[List[Dict[str, Any]]]) -> List[str]:
    return [item.get("name") for item in items or [] if item.get("name")]


def find_similar_issues(
    client: JiraClient,
    issue: Dict[str, Any],
    max_results: int = 10,
    days: int = 30,
) -> List[Dict[str, Any]]:
    """
    Find recently resolved issues that look like this one.

    Same project, then the same components when the issue has any,
    otherwise the same issue type. Newest resolution first.

    Returns:
        List of raw issue dicts, or [] if the search fails
    """
    fields = issue.get("fields", {})
    filters = [f"project = {jql_quote(fields['project']['key'])}"]

    component_names = _names(fields.get("components"))
    if component_names:
        quoted = ", ".join(jql_quote(name) for name in component_names)
        filters.append(f"component in ({quoted})")
    else:
        filters.append(f"issuetype = {jql_quote(fields['issuetype']['name'])}")

    filters.append(RESOLVED_STATUSES)
    filters.append(f"resolved >= -{days}d")
    jql = " AND ".join(filters) + " ORDER BY resolved DESC"

    try:
        similar = client.search_issues(jql, max_results=max_results, fields=SIMILAR_ISSUE_FIELDS)
        logger.debug(f"Found {len(similar)} similar issues for {issue.get('key')}")
        return similar
    except Exception as e:
        logger.error(f"Error finding similar issues for {issue.get('key')}: {e}")
        return []


def build_enhanced_issue_data(
    client: JiraClient,
    issue_key: str,
    config: RoutingConfiguration,
) -> Dict[str, Any]:
    """
    Fetch the issue with everything routing and triage need.

    Issue and assignable-user failures propagate so the caller can abort;
    a failed similar-issue search only yields an empty history.
    """
    issue = client.get_issue(issue_key, expand="changelog,renderedFields")
    project_key = issue["fields"]["project"]["key"]
    assignable_users = client.search_assignable_users(project_key, max_results=100)
    similar_issues = find_similar_issues(
        client,
        issue,
        max_results=config.max_similar_issues,
        days=config.similar_issue_time_range,
    )

    logger.info(
        f"Built context for {issue_key}: {len(assignable_users)} assignable users, "
        f"{len(similar_issues)} similar issues"
    )
    return {
        **issue,
        "assignableUsers": assignable_users,
        "similarIssues": similar_issues,
        "enhancedAt": datetime.now(timezone.utc).isoformat(),
    }


def prepare_issue_content(issue_data: Dict[str, Any]) -> Dict[str, Any]:
    """Flatten issue fields into the text the triage prompts use."""
    fields = issue_data.get("fields", {})

    comments = issue_data.get("comments")
    if comments is None:
        comments = (fields.get("comment") or {}).get("comments", [])

    return {
        "summary": fields.get("summary") or "",
        "description": adf_to_text(fields.get("description")),
        "issue_type": (fields.get("issuetype") or {}).get("name", ""),
        "reporter": (fields.get("reporter") or {}).get("displayName", ""),
        "comments": [{"body": adf_to_text(c.get("body"))} for c in comments],
        "labels": list(fields.get("labels") or []),
        "environment": adf_to_text(fields.get("environment")),
        "affected_versions": _names(fields.get("versions")),
        "fix_versions": _names(fields.get("fixVersions")),
        "custom_fields": {k: v for k, v in fields.items() if k.startswith("customfield_")},
    }


def build_routing_context(issue_data: Dict[str, Any], triage: Optional[Any] = None) -> Dict[str, Any]:
    """
    Denormalize issue, team, history and triage into the routing prompt context.

    Args:
        issue_data: Output of ``build_enhanced_issue_data``
        triage: Optional ``TriageResult``
    """
    fields = issue_data.get("fields", {})

    similar = []
    for item in issue_data.get("similarIssues", []):
        item_fields = item.get("fields", {})
        similar.append({
            "key": item.get("key"),
            "assignee": (item_fields.get("assignee") or {}).get("displayName", "Unassigned"),
            "components": _names(item_fields.get("components")),
            "resolution": (item_fields.get("resolution") or {}).get("name", "Unresolved"),
            "resolutionDate": item_fields.get("resolutiondate"),
        })

    triage_context = None
    if triage is not None:
        triage_context = {
            **triage.summary(),
            "recommendations": [r.to_record() for r in triage.recommendations],
        }

    return {
        "issue": {
            "key": issue_data.get("key"),
            "summary": fields.get("summary") or "",
            "description": adf_to_text(fields.get("description")),
            "issueType": (fields.get("issuetype") or {}).get("name", ""),
            "priority": (fields.get("priority") or {}).get("name", "None"),
            "components": _names(fields.get("components")),
            "labels": list(fields.get("labels") or []),
            "project": {
                "key": (fields.get("project") or {}).get("key"),
                "name": (fields.get("project") or {}).get("name"),
            },
        },
        "team": {
            "assignableUsers": [
                {
                    "accountId": user.get("accountId"),
                    "displayName": user.get("displayName"),
                    "emailAddress": user.get("emailAddress"),
                }
                for user in issue_data.get("assignableUsers", [])
            ],
        },
        "history": {"similarIssues": similar},
        "triage": triage_context,
    }
