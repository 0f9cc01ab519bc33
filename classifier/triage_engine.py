"""
Ticket triage engine - five independent model analyses per issue.

Categorization, priority, sentiment, urgency and component suggestion are
submitted to a thread pool together and awaited together. Each analysis
catches its own failure and substitutes its keyword fallback, so one bad
model response never costs the others.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable, Dict, List, Optional

from classifier import fallbacks, prompt_template, response_parser
from classifier.context_builder import prepare_issue_content
from classifier.llm_client import LLMClient
from models.data_models import (
    Categorization,
    ComponentSuggestions,
    PriorityAnalysis,
    Recommendation,
    SentimentAnalysis,
    TriageResult,
    UrgencyAssessment,
)
from tracker.jira_client import JiraClient

logger = logging.getLogger(__name__)


def calculate_overall_confidence(analyses: List[Any]) -> float:
    """Arithmetic mean of the analyses' confidences; 0.5 when there are none."""
    scores = [a.confidence for a in analyses if isinstance(getattr(a, "confidence", None), (int, float))]
    if not scores:
        return 0.5
    return sum(scores) / len(scores)


def generate_recommendations(
    categorization: Categorization,
    priority: PriorityAnalysis,
    sentiment: SentimentAnalysis,
    urgency: UrgencyAssessment,
) -> List[Recommendation]:
    """Independent rule checks; several recommendations may apply at once."""
    recommendations = []

    if priority.level == "critical" or urgency.level == "immediate":
        recommendations.append(Recommendation(
            type="escalation",
            message="This issue requires immediate attention - consider escalating to senior team members",
            action="escalate",
        ))

    if sentiment.escalation_risk == "high" or sentiment.language_flags.has_angry_language:
        recommendations.append(Recommendation(
            type="customer_care",
            message="Customer appears frustrated - prioritize communication and updates",
            action="prioritize_communication",
        ))

    if categorization.type == "security":
        recommendations.append(Recommendation(
            type="security",
            message="Security issue detected - follow security incident response procedures",
            action="security_protocol",
        ))

    if categorization.type == "bug" and priority.level == "critical":
        recommendations.append(Recommendation(
            type="hotfix",
            message="Critical bug - consider hotfix deployment path",
            action="hotfix_process",
        ))

    return recommendations


class TriageEngine:
    """
    Runs the five triage analyses for an issue.

    ``llm_client`` may be None (no API key configured); every analysis
    then uses its fallback.
    """

    def __init__(self, llm_client: Optional[LLMClient], jira_client: Optional[JiraClient] = None):
        self.llm_client = llm_client
        self.jira_client = jira_client

    def _ask(self, kind: str, system: str, prompt: str) -> str:
        if self.llm_client is None:
            raise RuntimeError("No LLM client configured")
        temperature, max_tokens = prompt_template.SAMPLING[kind]
        return self.llm_client.send_json_prompt(system, prompt, temperature=temperature, max_tokens=max_tokens)

    def _run(self, kind: str, analysis: Callable[[], Any], fallback: Callable[[], Any]) -> Any:
        try:
            return analysis()
        except Exception as e:
            logger.warning(f"✗ {kind} analysis failed, using fallback: {e}")
            return fallback()

    def categorize_issue(self, content: Dict[str, Any]) -> Categorization:
        return self._run(
            "categorization",
            lambda: response_parser.decode_categorization(self._ask(
                "categorization",
                prompt_template.CATEGORIZATION_SYSTEM,
                prompt_template.build_categorization_prompt(content),
            )),
            lambda: fallbacks.fallback_categorization(content),
        )

    def analyze_priority(self, content: Dict[str, Any]) -> PriorityAnalysis:
        return self._run(
            "priority",
            lambda: response_parser.decode_priority(self._ask(
                "priority",
                prompt_template.PRIORITY_SYSTEM,
                prompt_template.build_priority_prompt(content),
            )),
            lambda: fallbacks.fallback_priority(content),
        )

    def analyze_sentiment(self, content: Dict[str, Any]) -> SentimentAnalysis:
        return self._run(
            "sentiment",
            lambda: response_parser.decode_sentiment(self._ask(
                "sentiment",
                prompt_template.SENTIMENT_SYSTEM,
                prompt_template.build_sentiment_prompt(content),
            )),
            lambda: fallbacks.fallback_sentiment(content),
        )

    def assess_urgency(self, content: Dict[str, Any]) -> UrgencyAssessment:
        return self._run(
            "urgency",
            lambda: response_parser.decode_urgency(self._ask(
                "urgency",
                prompt_template.URGENCY_SYSTEM,
                prompt_template.build_urgency_prompt(content),
            )),
            lambda: fallbacks.fallback_urgency(content),
        )

    def suggest_components(self, content: Dict[str, Any], issue_data: Dict[str, Any]) -> ComponentSuggestions:
        def analysis() -> ComponentSuggestions:
            project_components = self._get_project_components(issue_data)
            return response_parser.decode_components(self._ask(
                "components",
                prompt_template.COMPONENTS_SYSTEM,
                prompt_template.build_components_prompt(content, project_components),
            ))

        return self._run("components", analysis, lambda: fallbacks.fallback_components(content))

    def _get_project_components(self, issue_data: Dict[str, Any]) -> List[Dict[str, Any]]:
        if self.jira_client is None:
            return []
        project_key = issue_data["fields"]["project"]["key"]
        try:
            return self.jira_client.get_project_components(project_key)
        except Exception as e:
            logger.error(f"Error fetching project components for {project_key}: {e}")
            return []

    def perform_triage(self, issue_data: Dict[str, Any]) -> TriageResult:
        """
        Triage one issue.

        Args:
            issue_data: Enhanced issue data (raw Jira issue plus context)

        Returns:
            TriageResult. Any failure outside the individual analyses yields
            the all-fallback result.
        """
        issue_key = issue_data.get("key", "Unknown")
        logger.info(f"Starting triage analysis for {issue_key}...")

        try:
            content = prepare_issue_content(issue_data)

            with ThreadPoolExecutor(max_workers=5, thread_name_prefix="triage") as pool:
                categorization_future = pool.submit(self.categorize_issue, content)
                priority_future = pool.submit(self.analyze_priority, content)
                sentiment_future = pool.submit(self.analyze_sentiment, content)
                urgency_future = pool.submit(self.assess_urgency, content)
                components_future = pool.submit(self.suggest_components, content, issue_data)

                categorization = categorization_future.result()
                priority = priority_future.result()
                sentiment = sentiment_future.result()
                urgency = urgency_future.result()
                components = components_future.result()

            result = TriageResult(
                issue_key=issue_key,
                categorization=categorization,
                priority=priority,
                sentiment=sentiment,
                urgency=urgency,
                components=components,
                confidence=calculate_overall_confidence([categorization, priority, sentiment, urgency]),
                recommendations=generate_recommendations(categorization, priority, sentiment, urgency),
            )

            logger.info(
                f"✓ Triaged {issue_key} (category: {categorization.type}, priority: {priority.level}, "
                f"sentiment: {sentiment.tone}, urgency: {urgency.level}, confidence: {result.confidence:.2f})"
            )
            return result

        except Exception as e:
            logger.error(f"Error performing triage for {issue_key}: {e}")
            return self.generate_fallback_triage(issue_data)

    def generate_fallback_triage(self, issue_data: Dict[str, Any]) -> TriageResult:
        """All-fallback triage built from whatever issue text is readable."""
        fields = issue_data.get("fields") or {}
        content = {
            "summary": fields.get("summary") or "",
            "description": fields.get("description") if isinstance(fields.get("description"), str) else "",
        }
        return TriageResult(
            issue_key=issue_data.get("key", "Unknown"),
            categorization=fallbacks.fallback_categorization(content),
            priority=fallbacks.fallback_priority(content),
            sentiment=fallbacks.fallback_sentiment(content),
            urgency=fallbacks.fallback_urgency(content),
            components=fallbacks.fallback_components(content),
            confidence=fallbacks.FALLBACK_CONFIDENCE,
            recommendations=[],
        )
