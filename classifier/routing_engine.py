"""
Routing engine - assignee and priority suggestions for an issue.

One model call per issue. The response is filtered against the issue's
assignable users and the standard Jira priorities, then anything under
the configured confidence threshold is dropped. When the model call fails
a history-based fallback goes through the same threshold check.
"""

import logging
from typing import Any, Dict, Optional

from classifier import prompt_template
from classifier.context_builder import build_routing_context
from classifier.llm_client import LLMClient
from classifier.response_parser import decode_routing
from models.data_models import (
    AssigneeSuggestion,
    PrioritySuggestion,
    RoutingSuggestions,
    TriageResult,
)
from models.routing_config import RoutingConfiguration

logger = logging.getLogger(__name__)


class RoutingEngine:
    """Generates assignee and priority suggestions."""

    def __init__(self, config: RoutingConfiguration, llm_client: Optional[LLMClient]):
        self.config = config
        self.llm_client = llm_client

    def generate_suggestions(
        self,
        issue_data: Dict[str, Any],
        triage: Optional[TriageResult] = None,
    ) -> RoutingSuggestions:
        issue_key = issue_data.get("key", "Unknown")
        logger.info(f"Generating routing suggestions for {issue_key}...")

        try:
            if self.llm_client is None:
                raise RuntimeError("No LLM client configured")

            context = build_routing_context(issue_data, triage)
            temperature, max_tokens = prompt_template.SAMPLING["routing"]
            response_text = self.llm_client.send_json_prompt(
                prompt_template.ROUTING_SYSTEM,
                prompt_template.build_routing_prompt(context),
                temperature=temperature,
                max_tokens=max_tokens,
            )
            suggestions = decode_routing(response_text, issue_data.get("assignableUsers", []))

        except Exception as e:
            logger.error(f"Error generating suggestions for {issue_key}: {e}")
            suggestions = self.generate_fallback_suggestions(issue_data)

        suggestions = self.validate_suggestions(suggestions)
        logger.info(
            f"✓ Suggestions for {issue_key}: "
            f"assignee={suggestions.assignee.display_name if suggestions.assignee else None}, "
            f"priority={suggestions.priority.name if suggestions.priority else None}"
        )
        return suggestions

    def validate_suggestions(self, suggestions: RoutingSuggestions) -> RoutingSuggestions:
        """Drop any suggestion whose confidence is under the configured threshold."""
        threshold = self.config.min_confidence_threshold
        assignee = suggestions.assignee
        priority = suggestions.priority

        if assignee and assignee.confidence < threshold:
            logger.info(
                f"Assignee suggestion below confidence threshold "
                f"({assignee.confidence:.2f} < {threshold:.2f})"
            )
            assignee = None

        if priority and priority.confidence < threshold:
            logger.info(
                f"Priority suggestion below confidence threshold "
                f"({priority.confidence:.2f} < {threshold:.2f})"
            )
            priority = None

        return RoutingSuggestions(assignee=assignee, priority=priority)

    def generate_fallback_suggestions(self, issue_data: Dict[str, Any]) -> RoutingSuggestions:
        """
        Suggestions without a model.

        Assignee: whoever resolved the most recent similar issue, if still
        assignable. Priority: High for bugs/defects, Medium for
        stories/features, nothing otherwise.
        """
        logger.info(f"Generating fallback suggestions for {issue_data.get('key', 'Unknown')}")

        assignee = None
        similar_issues = issue_data.get("similarIssues") or []
        if similar_issues:
            recent = (similar_issues[0].get("fields") or {}).get("assignee")
            if recent:
                assignable_ids = {u.get("accountId") for u in issue_data.get("assignableUsers") or []}
                if recent.get("accountId") in assignable_ids:
                    assignee = AssigneeSuggestion(
                        account_id=recent["accountId"],
                        display_name=recent.get("displayName") or recent["accountId"],
                        confidence=0.5,
                        reason="Fallback: Recently handled similar issue",
                    )

        priority = None
        issue_type = ((issue_data.get("fields") or {}).get("issuetype") or {}).get("name", "").lower()
        if "bug" in issue_type or "defect" in issue_type:
            priority = PrioritySuggestion(
                name="High",
                id="2",
                confidence=0.6,
                reason="Fallback: Bug issues typically have high priority",
            )
        elif "story" in issue_type or "feature" in issue_type:
            priority = PrioritySuggestion(
                name="Medium",
                id="3",
                confidence=0.6,
                reason="Fallback: Feature requests typically have medium priority",
            )

        return RoutingSuggestions(assignee=assignee, priority=priority)
