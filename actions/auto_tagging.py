"""
Auto-tagging - applies triage results to a Jira issue.

Priority, components, ``ai-*`` labels and custom fields are written in a
single field update, and only when the overall triage confidence clears
the configured threshold. A summary comment is posted either way.
"""

import logging
from typing import Any, Dict, List, Optional

from models.data_models import ComponentSuggestions, TriageResult
from models.routing_config import RoutingConfiguration
from storage.activity_log import ActivityLogger
from tracker.jira_client import JiraClient

logger = logging.getLogger(__name__)

PRIORITY_CONFIDENCE_MIN = 0.7
COMPONENT_CONFIDENCE_MIN = 0.6

# Triage level -> Jira priority names to try, in order
PRIORITY_NAME_CANDIDATES = {
    "critical": ["highest", "critical", "blocker"],
    "high": ["high", "major"],
    "medium": ["medium", "normal"],
    "low": ["low", "lowest", "trivial", "minor"],
}


def map_priority_level(level: str, priorities: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Pick the Jira priority for a triage level; first available priority if nothing matches."""
    by_name = {p.get("name", "").lower(): p for p in priorities}
    for candidate in PRIORITY_NAME_CANDIDATES.get(level, ["medium"]):
        if candidate in by_name:
            return by_name[candidate]
    return priorities[0] if priorities else None


def match_components(
    suggestions: ComponentSuggestions,
    project_components: List[Dict[str, Any]],
    current_components: List[Dict[str, Any]],
) -> Optional[List[Dict[str, Any]]]:
    """
    Match suggested names against project components (exact or substring,
    case-insensitive) and merge them with the current components.

    Returns:
        The merged component list, or None if nothing new matched
    """
    current_ids = {c.get("id") for c in current_components}
    to_add: List[Dict[str, Any]] = []

    for suggested in suggestions.suggested_components:
        wanted = suggested.lower()
        match = next(
            (c for c in project_components if c.get("name", "").lower() == wanted),
            None,
        ) or next(
            (c for c in project_components if wanted in c.get("name", "").lower()),
            None,
        )
        if match and match.get("id") not in current_ids:
            to_add.append({"id": match["id"], "name": match["name"]})
            current_ids.add(match["id"])

    if not to_add:
        return None
    return [{"id": c.get("id"), "name": c.get("name")} for c in current_components] + to_add


def build_triage_labels(triage: TriageResult) -> List[str]:
    """All labels a triage result implies, in a stable order without duplicates."""
    labels = [
        f"ai-category-{triage.categorization.type}",
        f"ai-priority-{triage.priority.level}",
    ]
    if triage.sentiment.tone != "neutral":
        labels.append(f"ai-sentiment-{triage.sentiment.tone}")
    if triage.urgency.level != "medium":
        labels.append(f"ai-urgency-{triage.urgency.level}")
    if triage.sentiment.escalation_risk in ("high", "critical"):
        labels.append("ai-escalation-risk")
    if triage.sentiment.language_flags.has_angry_language:
        labels.append("ai-customer-frustrated")
    if triage.sentiment.language_flags.has_urgent_language:
        labels.append("ai-urgent-language")

    labels.extend(triage.categorization.suggested_labels)
    labels.extend(triage.components.suggested_labels)

    # Jira labels cannot contain spaces
    return list(dict.fromkeys(label.strip().replace(" ", "-") for label in labels if label.strip()))


def build_triage_comment(triage: TriageResult, notifications: List[str]) -> str:
    confidence = round(triage.confidence * 100)
    lines = [f"AI Ticket Triage Analysis ({confidence}% confidence)", ""]

    if notifications:
        lines.append("Applied Changes:")
        lines.extend(f"• {n}" for n in notifications)
        lines.append("")

    category = triage.categorization.type
    if triage.categorization.subtype:
        category += f" ({triage.categorization.subtype})"
    sentiment = triage.sentiment.tone
    if triage.sentiment.escalation_risk != "low":
        sentiment += f" - Escalation Risk: {triage.sentiment.escalation_risk}"

    lines.append("Analysis Summary:")
    lines.append(f"• Category: {category}")
    lines.append(f"• Priority: {triage.priority.level.upper()}")
    lines.append(f"• Urgency: {triage.urgency.level}")
    lines.append(f"• Sentiment: {sentiment}")
    lines.append("")

    if triage.recommendations:
        lines.append("Recommendations:")
        lines.extend(f"• {r.message}" for r in triage.recommendations)
        lines.append("")

    if triage.categorization.reasoning:
        lines.append(f"Categorization Reasoning: {triage.categorization.reasoning}")
        lines.append("")
    if triage.priority.reasoning:
        lines.append(f"Priority Reasoning: {triage.priority.reasoning}")
        lines.append("")

    lines.append(f"Analysis completed at {triage.timestamp}")
    return "\n".join(lines)


class AutoTaggingManager:
    """Applies triage suggestions to Jira according to the routing configuration."""

    def __init__(
        self,
        config: RoutingConfiguration,
        jira_client: JiraClient,
        activity_logger: Optional[ActivityLogger] = None,
    ):
        self.config = config
        self.jira = jira_client
        self.activity_logger = activity_logger

    def apply_triage_suggestions(
        self,
        issue_key: str,
        triage: TriageResult,
        issue: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """
        Apply a triage result to an issue.

        Args:
            issue_key: Issue to update
            triage: Triage result for that issue
            issue: Raw issue JSON if already fetched (current labels/components)

        Returns:
            Dict with ``applied`` (bool), ``updates`` (fields written) and
            ``notifications`` (human-readable change list)
        """
        logger.info(f"Applying triage suggestions to {issue_key} (confidence: {triage.confidence:.2f})")

        updates: Dict[str, Any] = {}
        notifications: List[str] = []

        if triage.confidence >= self.config.min_confidence_threshold:
            if issue is None:
                issue = self._get_issue(issue_key)
            fields = (issue or {}).get("fields", {})

            if self.config.auto_set_priority and triage.priority.confidence >= PRIORITY_CONFIDENCE_MIN:
                priority = self._resolve_priority(triage.priority.level)
                if priority:
                    updates["priority"] = {"id": priority["id"]}
                    notifications.append(f"Priority set to {priority.get('name', triage.priority.level.upper())}")

            if self.config.auto_set_components and triage.components.confidence >= COMPONENT_CONFIDENCE_MIN:
                components = self._resolve_components(triage.components, fields)
                if components:
                    updates["components"] = components
                    added = [c["name"] for c in components[len(fields.get("components") or []):]]
                    notifications.append(f"Added components: {', '.join(added)}")

            if self.config.auto_set_labels:
                current_labels = list(fields.get("labels") or [])
                new_labels = [l for l in build_triage_labels(triage) if l not in current_labels]
                if new_labels:
                    updates["labels"] = current_labels + new_labels
                    notifications.append(f"Added labels: {', '.join(new_labels)}")

            updates.update(self._custom_field_updates(triage))
        else:
            logger.info(
                f"Triage confidence below threshold for {issue_key} "
                f"({triage.confidence:.2f} < {self.config.min_confidence_threshold:.2f}), not applying changes"
            )

        applied = False
        if updates:
            try:
                self.jira.update_issue(issue_key, updates)
                applied = True
                logger.info(f"✓ Applied triage updates to {issue_key}: {', '.join(updates)}")
            except Exception as e:
                logger.error(f"✗ Failed to apply triage updates to {issue_key}: {e}")
                notifications = []

        try:
            self.jira.add_comment(issue_key, build_triage_comment(triage, notifications))
        except Exception as e:
            logger.error(f"Error adding triage comment to {issue_key}: {e}")

        applied_fields = list(updates) if applied else []
        if self.activity_logger:
            self.activity_logger.log_triage_activity(issue_key, triage, applied_fields)

        return {
            "applied": applied,
            "updates": updates if applied else {},
            "notifications": notifications,
        }

    def _get_issue(self, issue_key: str) -> Optional[Dict[str, Any]]:
        try:
            return self.jira.get_issue(issue_key)
        except Exception as e:
            logger.error(f"Error getting issue details for {issue_key}: {e}")
            return None

    def _resolve_priority(self, level: str) -> Optional[Dict[str, Any]]:
        try:
            priorities = self.jira.get_priorities()
        except Exception as e:
            logger.error(f"Error getting priorities: {e}")
            return None
        return map_priority_level(level, priorities)

    def _resolve_components(
        self,
        suggestions: ComponentSuggestions,
        fields: Dict[str, Any],
    ) -> Optional[List[Dict[str, Any]]]:
        if not suggestions.suggested_components or not fields.get("project"):
            return None
        project_key = fields["project"]["key"]
        try:
            project_components = self.jira.get_project_components(project_key)
        except Exception as e:
            logger.error(f"Error getting project components for {project_key}: {e}")
            return None
        return match_components(suggestions, project_components, fields.get("components") or [])

    def _custom_field_updates(self, triage: TriageResult) -> Dict[str, Any]:
        custom = self.config.custom_fields
        updates: Dict[str, Any] = {}
        if custom.ai_confidence_field:
            updates[custom.ai_confidence_field] = round(triage.confidence * 100)
        if custom.triage_timestamp_field:
            updates[custom.triage_timestamp_field] = triage.timestamp
        if custom.sentiment_score_field:
            updates[custom.sentiment_score_field] = triage.sentiment.score
        if custom.escalation_risk_field:
            updates[custom.escalation_risk_field] = {"value": triage.sentiment.escalation_risk}
        return updates
