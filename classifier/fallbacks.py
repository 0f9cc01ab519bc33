"""
Keyword heuristics used when a model call fails.

Every fallback is deterministic and reports confidence 0.3, so the same
issue text always produces the same fallback analysis.
"""

from typing import Any, Dict

from models.data_models import (
    Categorization,
    ComponentSuggestions,
    LanguageFlags,
    PriorityAnalysis,
    SentimentAnalysis,
    UrgencyAssessment,
)

FALLBACK_CONFIDENCE = 0.3

CATEGORY_KEYWORDS = [
    ("bug", ("bug", "error", "issue")),
    ("feature", ("feature", "enhancement")),
    ("support", ("support", "help")),
]
PRIORITY_KEYWORDS = ("urgent", "critical")
URGENT_LANGUAGE_KEYWORDS = ("urgent", "asap", "critical")
URGENCY_KEYWORDS = ("urgent", "critical", "asap", "immediately", "down", "outage")


def _text(content: Dict[str, Any]) -> str:
    return f"{content.get('summary', '')} {content.get('description', '')}".lower()


def _contains_any(text: str, keywords) -> bool:
    return any(keyword in text for keyword in keywords)


def fallback_categorization(content: Dict[str, Any]) -> Categorization:
    """Categorize by summary keywords: bug, then feature, then support, else task."""
    summary = (content.get("summary") or "").lower()
    category = "task"
    for candidate, keywords in CATEGORY_KEYWORDS:
        if _contains_any(summary, keywords):
            category = candidate
            break

    return Categorization(
        type=category,
        confidence=FALLBACK_CONFIDENCE,
        reasoning="Fallback categorization based on keyword analysis",
    )


def fallback_priority(content: Dict[str, Any]) -> PriorityAnalysis:
    level = "high" if _contains_any(_text(content), PRIORITY_KEYWORDS) else "medium"
    return PriorityAnalysis(
        level=level,
        score=4 if level == "high" else 3,
        confidence=FALLBACK_CONFIDENCE,
        reasoning=f"Fallback {level} priority assigned by keyword analysis",
    )


def fallback_sentiment(content: Dict[str, Any]) -> SentimentAnalysis:
    return SentimentAnalysis(
        tone="neutral",
        score=0.0,
        confidence=FALLBACK_CONFIDENCE,
        escalation_risk="low",
        language_flags=LanguageFlags(
            has_urgent_language=_contains_any(_text(content), URGENT_LANGUAGE_KEYWORDS),
        ),
    )


def fallback_urgency(content: Dict[str, Any]) -> UrgencyAssessment:
    text = _text(content)
    matched = [keyword for keyword in URGENCY_KEYWORDS if keyword in text]
    level = "high" if matched else "medium"
    return UrgencyAssessment(
        level=level,
        score=4 if matched else 3,
        confidence=FALLBACK_CONFIDENCE,
        reasoning=f"Fallback {level} urgency assigned by keyword analysis",
        keywords=matched,
    )


def fallback_components(content: Dict[str, Any]) -> ComponentSuggestions:
    return ComponentSuggestions(confidence=FALLBACK_CONFIDENCE)
