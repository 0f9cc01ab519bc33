"""
Decode model responses into typed analysis records.

The model is asked for snake_case JSON with its own key names
(``category``, ``sentiment_score``, ``angry_language``...). Each decoder
maps those keys onto the corresponding model and lets the model's field
validators fill in defaults, so a partial response still yields a complete
record. A response with no JSON at all raises ``json.JSONDecodeError`` and
the caller substitutes its fallback.
"""

import json
from typing import Any, Dict, List, Optional

from models.data_models import (
    JIRA_PRIORITY_IDS,
    AssigneeSuggestion,
    Categorization,
    ComponentSuggestions,
    PriorityAnalysis,
    PrioritySuggestion,
    RoutingSuggestions,
    SentimentAnalysis,
    UrgencyAssessment,
)


def parse_json_response(response_text: str) -> Dict[str, Any]:
    """
    Parse JSON from LLM response.

    Handles cases where LLM includes extra text before/after JSON.

    Args:
        response_text: Raw response from LLM

    Returns:
        Parsed JSON as dict

    Raises:
        json.JSONDecodeError: If no valid JSON object found
    """
    if not response_text:
        raise json.JSONDecodeError("Empty response", response_text or "", 0)

    # Try to parse directly first
    try:
        parsed = json.loads(response_text)
    except json.JSONDecodeError:
        parsed = None

    # Try to extract JSON from markdown code blocks
    if parsed is None and "```json" in response_text:
        start = response_text.find("```json") + 7
        end = response_text.find("```", start)
        if end > start:
            # A broken fenced block can still hold a usable object further on
            try:
                parsed = json.loads(response_text[start:end].strip())
            except json.JSONDecodeError:
                parsed = None

    # Try to extract JSON object (find first { and last })
    if parsed is None:
        start = response_text.find("{")
        end = response_text.rfind("}")
        if start >= 0 and end > start:
            parsed = json.loads(response_text[start:end + 1])

    if not isinstance(parsed, dict):
        raise json.JSONDecodeError("No JSON object found in response", response_text, 0)
    return parsed


def decode_categorization(response_text: str) -> Categorization:
    data = parse_json_response(response_text)
    return Categorization(
        type=data.get("category"),
        subtype=data.get("subcategory"),
        confidence=data.get("confidence"),
        reasoning=data.get("reasoning"),
        suggested_labels=data.get("suggested_labels"),
    )


def decode_priority(response_text: str) -> PriorityAnalysis:
    data = parse_json_response(response_text)
    return PriorityAnalysis(
        level=data.get("priority"),
        score=data.get("score"),
        confidence=data.get("confidence"),
        reasoning=data.get("reasoning"),
        impact_assessment={
            "users_affected": data.get("users_affected"),
            "business_impact": data.get("business_impact"),
            "technical_complexity": data.get("complexity"),
        },
    )


def decode_sentiment(response_text: str) -> SentimentAnalysis:
    data = parse_json_response(response_text)
    return SentimentAnalysis(
        tone=data.get("sentiment"),
        score=data.get("sentiment_score"),
        confidence=data.get("confidence"),
        emotions=data.get("emotions"),
        escalation_risk=data.get("escalation_risk"),
        urgency_indicators=data.get("urgency_indicators"),
        language_flags={
            "has_angry_language": data.get("angry_language"),
            "has_urgent_language": data.get("urgent_language"),
            "has_complimentary_language": data.get("complimentary_language"),
            "has_confused_language": data.get("confused_language"),
        },
    )


def decode_urgency(response_text: str) -> UrgencyAssessment:
    data = parse_json_response(response_text)
    return UrgencyAssessment(
        level=data.get("urgency"),
        score=data.get("urgency_score"),
        confidence=data.get("confidence"),
        reasoning=data.get("reasoning"),
        timeframe=data.get("expected_timeframe"),
        business_justification=data.get("business_justification"),
        keywords=data.get("urgency_keywords"),
    )


def decode_components(response_text: str) -> ComponentSuggestions:
    data = parse_json_response(response_text)
    return ComponentSuggestions(
        suggested_components=data.get("components"),
        suggested_labels=data.get("labels"),
        confidence=data.get("confidence"),
        reasoning=data.get("reasoning"),
    )


def decode_routing(response_text: str, assignable_users: List[Dict[str, Any]]) -> RoutingSuggestions:
    """
    Decode an assignee/priority response.

    The assignee is kept only when its account id belongs to an assignable
    user (display name taken from Jira, not the model). The priority is
    kept only when it names one of the five standard Jira priorities.
    """
    data = parse_json_response(response_text)

    assignee: Optional[AssigneeSuggestion] = None
    raw_assignee = data.get("assignee")
    if isinstance(raw_assignee, dict):
        account_id = raw_assignee.get("accountId")
        user = next((u for u in assignable_users if u.get("accountId") == account_id), None)
        if user:
            assignee = AssigneeSuggestion(
                account_id=account_id,
                display_name=user.get("displayName") or account_id,
                confidence=raw_assignee.get("confidence"),
                reason=raw_assignee.get("reason") or "AI recommendation based on issue analysis",
            )

    priority: Optional[PrioritySuggestion] = None
    raw_priority = data.get("priority")
    if isinstance(raw_priority, dict) and raw_priority.get("name") in JIRA_PRIORITY_IDS:
        priority = PrioritySuggestion(
            name=raw_priority["name"],
            id=JIRA_PRIORITY_IDS[raw_priority["name"]],
            confidence=raw_priority.get("confidence"),
            reason=raw_priority.get("reason") or "AI recommendation based on issue analysis",
        )

    return RoutingSuggestions(assignee=assignee, priority=priority)
