"""
Team workload aggregation for the workload dashboard.

All numbers come from Jira searches or the stored activity history:
efficiency is the share of a member's recent work they resolved in the
last 30 days, and members without any history report None rather than a
made-up value. Per-user failures are logged and skipped.
"""

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from storage.kv_store import KeyValueStore
from tracker.jira_client import JiraClient, jql_quote

logger = logging.getLogger(__name__)

MAX_USERS = 10
STORY_POINTS_FIELD = "customfield_10016"
OVERLOADED_AT = 7
UNDERUTILIZED_AT = 2
REBALANCE_THRESHOLD = 5
ISSUES_TO_MOVE = 2
HISTORY_WINDOW_DAYS = 30
STATUS_COLORS = {"Optimal": "#36B37E", "Overloaded": "#FF5630", "Underutilized": "#FFAB00"}


def _parse_jira_datetime(value: Optional[str]) -> Optional[datetime]:
    """Parse Jira timestamps like 2024-05-01T10:20:30.000+0000."""
    if not value:
        return None
    for fmt in ("%Y-%m-%dT%H:%M:%S.%f%z", "%Y-%m-%dT%H:%M:%S%z"):
        try:
            return datetime.strptime(value, fmt)
        except ValueError:
            continue
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def workload_status(active_issues: int) -> str:
    if active_issues >= OVERLOADED_AT:
        return "overloaded"
    if active_issues <= UNDERUTILIZED_AT:
        return "underutilized"
    return "optimal"


def parse_time_range(time_range: Optional[str], default: int = 30) -> int:
    """'30d' -> 30. Anything unparseable or non-positive gives the default."""
    try:
        days = int(str(time_range).strip().lower().rstrip("d"))
    except (TypeError, ValueError):
        return default
    return days if days > 0 else default


class WorkloadService:
    """Computes workload views for one project."""

    def __init__(self, jira: JiraClient, store: Optional[KeyValueStore] = None):
        self.jira = jira
        self.store = store

    def _open_issues(self, project_key: str, account_id: Optional[str] = None, max_results: int = 50) -> List[Dict[str, Any]]:
        jql = f"project = {jql_quote(project_key)} AND statusCategory != Done"
        if account_id:
            jql = f"assignee = {jql_quote(account_id)} AND " + jql
        return self.jira.search_issues(
            jql,
            max_results=max_results,
            fields=[STORY_POINTS_FIELD, "issuetype", "components", "assignee", "status", "priority"],
        )

    def _recently_resolved(self, project_key: str, account_id: str) -> List[Dict[str, Any]]:
        jql = (
            f"assignee = {jql_quote(account_id)} AND project = {jql_quote(project_key)} "
            f"AND resolved >= -{HISTORY_WINDOW_DAYS}d"
        )
        return self.jira.search_issues(jql, max_results=100, fields=["created", "resolutiondate", "components"])

    def _member_workload(self, project_key: str, user: Dict[str, Any]) -> Dict[str, Any]:
        account_id = user["accountId"]
        open_issues = self._open_issues(project_key, account_id)
        resolved = self._recently_resolved(project_key, account_id)

        total_points = sum(
            (issue.get("fields") or {}).get(STORY_POINTS_FIELD) or 0 for issue in open_issues
        )

        durations = []
        for issue in resolved:
            fields = issue.get("fields") or {}
            created = _parse_jira_datetime(fields.get("created"))
            done = _parse_jira_datetime(fields.get("resolutiondate"))
            if created and done:
                durations.append((done - created).total_seconds() / 86400)
        avg_completion_days = round(sum(durations) / len(durations), 1) if durations else None

        handled = len(resolved) + len(open_issues)
        efficiency = round(len(resolved) / handled * 100) if resolved else None

        component_counts = Counter(
            component.get("name")
            for issue in resolved + open_issues
            for component in (issue.get("fields") or {}).get("components") or []
            if component.get("name")
        )

        return {
            "userId": account_id,
            "displayName": user.get("displayName"),
            "email": user.get("emailAddress"),
            "activeIssues": len(open_issues),
            "totalPoints": total_points,
            "resolvedLast30Days": len(resolved),
            "avgCompletionDays": avg_completion_days,
            "efficiency": efficiency,
            "expertise": [name for name, _ in component_counts.most_common(2)],
            "status": workload_status(len(open_issues)),
        }

    def get_team_workload(self, project_key: str) -> List[Dict[str, Any]]:
        """Workload of the first ten assignable users of a project."""
        users = self.jira.search_assignable_users(project_key, max_results=50)
        workload = []
        for user in users[:MAX_USERS]:
            try:
                workload.append(self._member_workload(project_key, user))
            except Exception as e:
                logger.error(f"Error fetching workload for {user.get('displayName')}: {e}")
        logger.info(f"Workload computed for {len(workload)} users in {project_key}")
        return workload

    def get_team_stats(self, project_key: str) -> Dict[str, Any]:
        open_issues = self._open_issues(project_key, max_results=200)
        type_counts = Counter(
            ((issue.get("fields") or {}).get("issuetype") or {}).get("name", "Unknown")
            for issue in open_issues
        )

        members = self.get_team_workload(project_key)
        status_counts = Counter(member["status"] for member in members)
        efficiencies = [m["efficiency"] for m in members if m["efficiency"] is not None]

        return {
            "totalTeamMembers": len(self.jira.search_assignable_users(project_key, max_results=50)),
            "totalActiveIssues": len(open_issues),
            "avgTeamEfficiency": round(sum(efficiencies) / len(efficiencies), 1) if efficiencies else None,
            "workloadDistribution": [
                {"name": name, "value": status_counts.get(name.lower(), 0), "color": color}
                for name, color in STATUS_COLORS.items()
            ],
            "issueTypes": [{"name": name, "count": count} for name, count in type_counts.most_common()],
        }

    def get_rebalancing_suggestions(self, project_key: str) -> List[Dict[str, Any]]:
        """
        Suggest moving work off members with more than five open issues.

        Targets are the two least-loaded assignable members. Confidence
        grows with how far the member is over the threshold, capped at 95.
        """
        open_issues = self._open_issues(project_key, max_results=100)
        load: Dict[str, Dict[str, Any]] = {}
        for issue in open_issues:
            assignee = (issue.get("fields") or {}).get("assignee")
            if not assignee:
                continue
            entry = load.setdefault(assignee["accountId"], {
                "name": assignee.get("displayName") or assignee["accountId"],
                "issues": [],
            })
            entry["issues"].append(issue["key"])

        users = self.jira.search_assignable_users(project_key, max_results=50)
        suggestions = []
        for account_id, entry in sorted(load.items(), key=lambda item: -len(item[1]["issues"])):
            count = len(entry["issues"])
            if count <= REBALANCE_THRESHOLD:
                continue

            candidates = sorted(
                (u for u in users if u.get("accountId") != account_id),
                key=lambda u: (len(load.get(u.get("accountId"), {}).get("issues", [])), u.get("displayName") or ""),
            )
            to_users = [u.get("displayName") for u in candidates[:2]]
            if not to_users:
                continue

            affected = entry["issues"][-ISSUES_TO_MOVE:]
            suggestions.append({
                "id": len(suggestions) + 1,
                "type": "reassign",
                "priority": "high",
                "title": f"Redistribute {entry['name']}'s Overload",
                "description": (
                    f"{entry['name']} has {count} active issues. Suggest moving "
                    f"{len(affected)} issues to less loaded team members."
                ),
                "fromUser": entry["name"],
                "toUsers": to_users,
                "affectedIssues": affected,
                "expectedImpact": f"Reduce {entry['name']}'s workload by {round(len(affected) / count * 100)}%",
                "confidence": min(95, 70 + 5 * (count - REBALANCE_THRESHOLD)),
            })

        logger.info(f"Generated {len(suggestions)} rebalancing suggestions for {project_key}")
        return suggestions

    def execute_reassignment(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Reassign the affected issues round-robin across the target users.

        Raises:
            ValueError: If no issues or no target users are given
        """
        affected = payload.get("affectedIssues") or []
        to_users = payload.get("toUsers") or []
        from_user = payload.get("fromUser") or "previous assignee"
        if not affected:
            raise ValueError("No issues specified for reassignment")
        if not to_users:
            raise ValueError("No target users specified for reassignment")

        account_ids: Dict[str, str] = {}
        for name in to_users:
            try:
                matches = self.jira.search_users(name, max_results=5)
            except Exception as e:
                logger.error(f"Error finding user {name}: {e}")
                continue
            match = next((u for u in matches if u.get("displayName") == name), None)
            if match:
                account_ids[name] = match["accountId"]

        results = []
        for index, issue_key in enumerate(affected):
            target = to_users[index % len(to_users)]
            account_id = account_ids.get(target)
            if not account_id:
                results.append({
                    "issueKey": issue_key,
                    "success": False,
                    "error": f"Could not find account ID for user: {target}",
                })
                continue

            try:
                self.jira.assign_issue(issue_key, account_id)
            except Exception as e:
                logger.error(f"✗ Failed to reassign {issue_key}: {e}")
                results.append({"issueKey": issue_key, "success": False, "error": str(e)})
                continue

            try:
                self.jira.add_comment(
                    issue_key,
                    f"AI Workload Rebalancing: Issue reassigned from {from_user} to {target} "
                    f"to balance team workload. Confidence: {payload.get('confidence', 'N/A')}%",
                )
            except Exception as e:
                logger.error(f"Failed to add comment to {issue_key}: {e}")

            logger.info(f"✓ Reassigned {issue_key} to {target}")
            results.append({
                "issueKey": issue_key,
                "success": True,
                "assignedTo": target,
                "message": f"Successfully reassigned {issue_key} to {target}",
            })

        successful = sum(1 for r in results if r["success"])
        return {
            "success": successful > 0,
            "suggestionId": payload.get("suggestionId"),
            "results": results,
            "message": f"Successfully reassigned {successful}/{len(results)} issues",
            "summary": {"total": len(results), "successful": successful, "failed": len(results) - successful},
        }

    def get_historical_workload(self, time_range: str = "30d") -> List[Dict[str, Any]]:
        """
        Weekly buckets of routed issues and accepted suggestions from the
        stored activity history, oldest first.
        """
        days = parse_time_range(time_range)
        now = datetime.now(timezone.utc)

        routed: List[datetime] = []
        accepted: List[datetime] = []
        if self.store is not None:
            for _, value in self.store.query("activity:", limit=10000):
                stamp = _parse_jira_datetime(value.get("timestamp")) if isinstance(value, dict) else None
                if stamp:
                    routed.append(stamp)
            for _, value in self.store.query("user_action:", limit=10000):
                if not isinstance(value, dict) or not value.get("action", "").startswith("apply_"):
                    continue
                stamp = _parse_jira_datetime(value.get("timestamp"))
                if stamp:
                    accepted.append(stamp)

        history = []
        for offset in range(days, -1, -7):
            end = now - timedelta(days=offset)
            start = end - timedelta(days=7)
            history.append({
                "date": end.date().isoformat(),
                "issues": sum(1 for t in routed if start < t <= end),
                "acceptedSuggestions": sum(1 for t in accepted if start < t <= end),
            })
        return history
