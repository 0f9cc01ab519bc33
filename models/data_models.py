"""Data models for triage analyses, routing suggestions and activity records.

Every field on the analysis models carries its own defaulting rule, so a
partial or sloppy model response still produces a complete record:
confidences are clamped to [0, 1] (0.5 when missing), enumerations fall
back to a middle value and lists fall back to empty.
"""

import math
from datetime import datetime, timezone
from typing import Annotated, Any, Callable, Dict, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel

CATEGORY_TYPES = [
    "bug", "feature", "improvement", "task", "support",
    "security", "performance", "documentation", "technical-debt",
]
PRIORITY_LEVELS = ["critical", "high", "medium", "low"]
SENTIMENT_TONES = ["positive", "neutral", "negative"]
ESCALATION_RISKS = ["low", "medium", "high", "critical"]
URGENCY_LEVELS = ["immediate", "high", "medium", "low"]
JIRA_PRIORITY_IDS = {"Highest": "1", "High": "2", "Medium": "3", "Low": "4", "Lowest": "5"}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def clamp_confidence(value: Any) -> float:
    """Clamp a model-provided confidence into [0, 1]; 0.5 when unusable."""
    if isinstance(value, bool):
        return 0.5
    try:
        number = float(value)
    except (TypeError, ValueError, OverflowError):
        return 0.5
    if math.isnan(number):
        return 0.5
    return max(0.0, min(1.0, number))


def _choice(allowed: List[str], default: str) -> Callable[[Any], str]:
    def pick(value: Any) -> str:
        if isinstance(value, str) and value.strip().lower() in allowed:
            return value.strip().lower()
        return default
    return pick


def _bounded_number(low: float, high: float, default: float, cast=float) -> Callable[[Any], Any]:
    def bound(value: Any) -> Any:
        if isinstance(value, bool):
            return default
        try:
            number = float(value)
        except (TypeError, ValueError, OverflowError):
            return default
        if math.isnan(number):
            return default
        return cast(max(low, min(high, number)))
    return bound


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


def _as_optional_text(value: Any) -> Optional[str]:
    if value is None or value == "":
        return None
    return value if isinstance(value, str) else str(value)


def _as_text_list(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if not isinstance(value, list):
        return []
    return [item if isinstance(item, str) else str(item) for item in value if item is not None]


def _as_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return False


Confidence = Annotated[float, BeforeValidator(clamp_confidence)]
Text = Annotated[str, BeforeValidator(_as_text)]
OptionalText = Annotated[Optional[str], BeforeValidator(_as_optional_text)]
TextList = Annotated[List[str], BeforeValidator(_as_text_list)]
Flag = Annotated[bool, BeforeValidator(_as_flag)]


class CamelModel(BaseModel):
    """Base model that serializes with camelCase keys for storage and the UI."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_record(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


# ---------------------------------------------------------------------------
# Routing suggestions
# ---------------------------------------------------------------------------

class AssigneeSuggestion(CamelModel):
    account_id: str
    display_name: str
    confidence: Confidence = 0.5
    reason: Text = ""


class PrioritySuggestion(CamelModel):
    name: str
    id: str
    confidence: Confidence = 0.5
    reason: Text = ""


class RoutingSuggestions(CamelModel):
    """Assignee and priority proposals for one issue. Either may be absent."""

    assignee: Optional[AssigneeSuggestion] = None
    priority: Optional[PrioritySuggestion] = None

    def is_empty(self) -> bool:
        return self.assignee is None and self.priority is None


# ---------------------------------------------------------------------------
# Triage analyses
# ---------------------------------------------------------------------------

class Categorization(CamelModel):
    type: Annotated[str, BeforeValidator(_choice(CATEGORY_TYPES, "task"))] = "task"
    subtype: OptionalText = None
    confidence: Confidence = 0.5
    reasoning: Text = ""
    suggested_labels: TextList = Field(default_factory=list)


class ImpactAssessment(CamelModel):
    users_affected: Annotated[str, BeforeValidator(lambda v: _as_text(v) or "unknown")] = "unknown"
    business_impact: Annotated[str, BeforeValidator(lambda v: _as_text(v) or "medium")] = "medium"
    technical_complexity: Annotated[str, BeforeValidator(lambda v: _as_text(v) or "medium")] = "medium"


class PriorityAnalysis(CamelModel):
    level: Annotated[str, BeforeValidator(_choice(PRIORITY_LEVELS, "medium"))] = "medium"
    score: Annotated[int, BeforeValidator(_bounded_number(1, 5, 3, int))] = 3
    confidence: Confidence = 0.5
    reasoning: Text = ""
    impact_assessment: ImpactAssessment = Field(default_factory=ImpactAssessment)


class LanguageFlags(CamelModel):
    has_angry_language: Flag = False
    has_urgent_language: Flag = False
    has_complimentary_language: Flag = False
    has_confused_language: Flag = False


class SentimentAnalysis(CamelModel):
    tone: Annotated[str, BeforeValidator(_choice(SENTIMENT_TONES, "neutral"))] = "neutral"
    score: Annotated[float, BeforeValidator(_bounded_number(-1.0, 1.0, 0.0))] = 0.0
    confidence: Confidence = 0.5
    emotions: TextList = Field(default_factory=list)
    escalation_risk: Annotated[str, BeforeValidator(_choice(ESCALATION_RISKS, "low"))] = "low"
    urgency_indicators: TextList = Field(default_factory=list)
    language_flags: LanguageFlags = Field(default_factory=LanguageFlags)


class UrgencyAssessment(CamelModel):
    level: Annotated[str, BeforeValidator(_choice(URGENCY_LEVELS, "medium"))] = "medium"
    score: Annotated[int, BeforeValidator(_bounded_number(1, 5, 3, int))] = 3
    confidence: Confidence = 0.5
    reasoning: Text = ""
    timeframe: Text = ""
    business_justification: Text = ""
    keywords: TextList = Field(default_factory=list)


class ComponentSuggestions(CamelModel):
    suggested_components: TextList = Field(default_factory=list)
    suggested_labels: TextList = Field(default_factory=list)
    confidence: Confidence = 0.5
    reasoning: Text = ""


class Recommendation(CamelModel):
    type: str
    message: str
    action: str


class TriageResult(CamelModel):
    """Combined triage outcome for one issue. Immutable once produced."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    issue_key: str
    timestamp: str = Field(default_factory=_now)
    categorization: Categorization
    priority: PriorityAnalysis
    sentiment: SentimentAnalysis
    urgency: UrgencyAssessment
    components: ComponentSuggestions
    confidence: Confidence
    recommendations: List[Recommendation] = Field(default_factory=list)

    def summary(self) -> Dict[str, Any]:
        """Compact view used by the routing prompt and activity log."""
        return {
            "category": self.categorization.type,
            "priority": self.priority.level,
            "urgency": self.urgency.level,
            "sentiment": {
                "tone": self.sentiment.tone,
                "escalationRisk": self.sentiment.escalation_risk,
                "hasAngryLanguage": self.sentiment.language_flags.has_angry_language,
                "hasUrgentLanguage": self.sentiment.language_flags.has_urgent_language,
            },
            "confidence": self.confidence,
            "recommendationsCount": len(self.recommendations),
        }


# ---------------------------------------------------------------------------
# Activity, feedback and analytics records (append-only in the store)
# ---------------------------------------------------------------------------

class ActivityRecord(CamelModel):
    issue_key: str
    timestamp: str = Field(default_factory=_now)
    suggestions: RoutingSuggestions
    config: Dict[str, Any] = Field(default_factory=dict)
    triage: Optional[Dict[str, Any]] = None


class TriageActivityRecord(CamelModel):
    issue_key: str
    timestamp: str = Field(default_factory=_now)
    triage_results: Dict[str, Any]
    applied_updates: List[str] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)


class UserAction(CamelModel):
    issue_key: str
    action: str
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: str = Field(default_factory=_now)


class FeedbackRecord(CamelModel):
    issue_key: str
    suggestion_type: str
    suggestion: Dict[str, Any] = Field(default_factory=dict)
    feedback: Annotated[str, BeforeValidator(_choice(["positive", "negative", "neutral"], "neutral"))] = "neutral"
    timestamp: str = Field(default_factory=_now)
    user_id: Optional[str] = None


class AnalyticsCounters(CamelModel):
    total_triaged: int = 0
    by_category: Dict[str, int] = Field(default_factory=dict)
    by_priority: Dict[str, int] = Field(default_factory=dict)
    by_sentiment: Dict[str, int] = Field(default_factory=dict)
    by_urgency: Dict[str, int] = Field(default_factory=dict)
    last_updated: str = Field(default_factory=_now)
