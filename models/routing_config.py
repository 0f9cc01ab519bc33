"""
Runtime routing configuration.

This is the record the admin UI edits and the event handler reads on every
issue. It is stored as camelCase JSON in the key-value store and validated
here. Validation never rejects a record: invalid values are silently
replaced by the field default so a bad save can't take routing down.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, ValidationInfo, field_validator
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)

ALLOWED_MODELS = ["openai-gpt3.5", "openai-gpt4", "anthropic-claude", "google-gemini"]
DEFAULT_MODEL = "openai-gpt3.5"
DEFAULT_CONFIDENCE_THRESHOLD = 0.6
MAX_SIMILAR_ISSUES_CAP = 50
CONFIG_VERSION = "1.0.0"
LOG_LEVELS = ["debug", "info", "warn", "warning", "error"]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def coerce_bool(value: Any, default: bool) -> bool:
    """Keep real booleans, accept "true"/"false" strings, otherwise use the default."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return default


def _is_number(value: Any) -> bool:
    """Finite int or float; bools, NaN and infinities do not count."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return isinstance(value, int) or math.isfinite(value)


class ProviderConfig(BaseModel):
    """Credentials and limits for one LLM provider."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    api_key: Optional[str] = None
    models: List[str] = Field(default_factory=list)
    rate_limits: Dict[str, int] = Field(default_factory=dict)


class CustomFieldMapping(BaseModel):
    """Optional Jira custom field ids that receive triage metadata."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    ai_confidence_field: Optional[str] = None
    triage_timestamp_field: Optional[str] = None
    sentiment_score_field: Optional[str] = None
    escalation_risk_field: Optional[str] = None


def default_model_configs() -> Dict[str, ProviderConfig]:
    return {
        "openai": ProviderConfig(
            models=["openai-gpt3.5", "openai-gpt4"],
            rate_limits={"requestsPerMinute": 60, "tokensPerMinute": 10000},
        ),
        "anthropic": ProviderConfig(
            models=["anthropic-claude"],
            rate_limits={"requestsPerMinute": 50},
        ),
        "google": ProviderConfig(
            models=["google-gemini"],
            rate_limits={"requestsPerMinute": 60},
        ),
    }


class RoutingConfiguration(BaseModel):
    """Routing and triage settings, merged onto defaults on every read."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        protected_namespaces=(),
        extra="ignore",
    )

    # Core features
    enabled: bool = True
    auto_assign: bool = False
    auto_set_priority: bool = False
    auto_set_components: bool = False
    auto_set_labels: bool = True
    allow_reassignment: bool = False
    enable_triage: bool = True

    # AI model
    selected_model: str = DEFAULT_MODEL
    min_confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD
    model_configs: Dict[str, ProviderConfig] = Field(default_factory=default_model_configs)

    # Scope (empty = everything)
    project_filter: List[str] = Field(default_factory=list)
    issue_type_filter: List[str] = Field(default_factory=list)
    component_filter: List[str] = Field(default_factory=list)

    # Advanced
    max_similar_issues: int = 10
    similar_issue_time_range: int = 30
    enable_feedback_learning: bool = True
    custom_fields: CustomFieldMapping = Field(default_factory=CustomFieldMapping)

    # Analytics and logging
    enable_analytics: bool = True
    log_level: str = "info"
    retention_days: int = 90

    # Metadata
    created_at: str = Field(default_factory=_now)
    updated_at: str = Field(default_factory=_now)
    version: str = CONFIG_VERSION

    @field_validator(
        "enabled", "auto_assign", "auto_set_priority", "auto_set_components",
        "auto_set_labels", "allow_reassignment", "enable_triage",
        "enable_feedback_learning", "enable_analytics",
        mode="before",
    )
    @classmethod
    def _coerce_flag(cls, value: Any, info: ValidationInfo) -> bool:
        return coerce_bool(value, cls.model_fields[info.field_name].default)

    @field_validator("selected_model", mode="before")
    @classmethod
    def _restrict_model(cls, value: Any) -> str:
        if value not in ALLOWED_MODELS:
            logger.warning(f"Invalid model selected ({value!r}), defaulting to {DEFAULT_MODEL}")
            return DEFAULT_MODEL
        return value

    @field_validator("min_confidence_threshold", mode="before")
    @classmethod
    def _validate_threshold(cls, value: Any) -> float:
        if _is_number(value) and 0 <= value <= 1:
            return float(value)
        return DEFAULT_CONFIDENCE_THRESHOLD

    @field_validator("max_similar_issues", "similar_issue_time_range", "retention_days", mode="before")
    @classmethod
    def _positive_int(cls, value: Any, info: ValidationInfo) -> int:
        if not _is_number(value) or value < 1:
            return cls.model_fields[info.field_name].default
        value = int(value)
        if info.field_name == "max_similar_issues":
            return min(value, MAX_SIMILAR_ISSUES_CAP)
        return value

    @field_validator("project_filter", "issue_type_filter", "component_filter", mode="before")
    @classmethod
    def _as_list(cls, value: Any) -> List[str]:
        if not isinstance(value, list):
            return []
        return [str(item) for item in value if item is not None]

    @field_validator("model_configs", mode="before")
    @classmethod
    def _merge_model_configs(cls, value: Any) -> Dict[str, ProviderConfig]:
        merged = default_model_configs()
        if not isinstance(value, dict):
            return merged
        for provider, overrides in value.items():
            if isinstance(overrides, ProviderConfig):
                overrides = overrides.model_dump(by_alias=True)
            if not isinstance(overrides, dict):
                continue
            overrides = {(to_camel(k) if "_" in k else k): v for k, v in overrides.items()}
            base = merged.get(provider, ProviderConfig()).model_dump(by_alias=True)
            try:
                merged[provider] = ProviderConfig.model_validate({**base, **overrides})
            except ValidationError:
                logger.warning(f"Ignoring invalid model config for provider {provider!r}")
        return merged

    @field_validator("custom_fields", mode="before")
    @classmethod
    def _validate_custom_fields(cls, value: Any) -> Any:
        if isinstance(value, CustomFieldMapping):
            return value
        if not isinstance(value, dict):
            return CustomFieldMapping()
        try:
            return CustomFieldMapping.model_validate(value)
        except ValidationError:
            return CustomFieldMapping()

    @field_validator("log_level", mode="before")
    @classmethod
    def _validate_log_level(cls, value: Any) -> str:
        if isinstance(value, str) and value.lower() in LOG_LEVELS:
            return value.lower()
        return "info"

    @field_validator("created_at", "updated_at", "version", mode="before")
    @classmethod
    def _as_text(cls, value: Any, info: ValidationInfo) -> str:
        if isinstance(value, str) and value:
            return value
        if info.field_name == "version":
            return CONFIG_VERSION
        return _now()

    def to_record(self) -> Dict[str, Any]:
        """Serialize to the camelCase record stored in the key-value store."""
        return self.model_dump(by_alias=True, mode="json")

    @classmethod
    def from_record(cls, record: Optional[Dict[str, Any]]) -> "RoutingConfiguration":
        """Validate a stored (possibly partial or stale) record onto defaults."""
        return cls.model_validate(record or {})


def default_configuration() -> RoutingConfiguration:
    """The one canonical default configuration."""
    return RoutingConfiguration()


def provider_for_model(model_name: str) -> str:
    """Map an allow-listed model id to its provider key."""
    if model_name.startswith("openai-"):
        return "openai"
    if model_name.startswith("anthropic-"):
        return "anthropic"
    if model_name.startswith("google-"):
        return "google"
    return "unknown"
