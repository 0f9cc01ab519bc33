"""
API routes for the task router.

Each route is one procedure of the admin page, the issue panel, the triage
dashboard or the workload dashboard. Procedure failures are reported in the
response body (``{error, details}`` or ``{success: false, error}``) rather
than as HTTP errors, which is what the UI panels expect.
"""

import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field, ValidationError

from classifier.context_builder import build_enhanced_issue_data
from classifier.llm_client import create_llm_client
from classifier.routing_engine import RoutingEngine
from models.data_models import RoutingSuggestions
from routing.event_handler import handle_issue_event
from routing.services import Services, build_services
from routing.workload import WorkloadService
from storage.kv_store import suggestions_key
from utils.config_loader import load_config
from utils.logger import setup_logger

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["routing"])


@lru_cache(maxsize=1)
def get_services() -> Services:
    """Build the shared services once per process from the .env configuration."""
    config = load_config()
    setup_logger(config.log_level)
    return build_services(config)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _cached_suggestions(services: Services, issue_key: str) -> Optional[RoutingSuggestions]:
    """Suggestions stored by the last routing pass, or None if absent or unreadable."""
    cached = services.store.get(suggestions_key(issue_key))
    if cached is None:
        return None
    try:
        return RoutingSuggestions.model_validate(cached)
    except ValidationError as e:
        logger.warning(f"Ignoring unreadable cached suggestions for {issue_key}: {e}")
        return None


class SimpleConfig(BaseModel):
    """Admin page configuration shape."""
    selectedModel: Optional[str] = None
    autoAssign: Optional[bool] = None
    autoPriority: Optional[bool] = None
    enableSuggestions: Optional[bool] = None
    confidenceThreshold: Optional[float] = None


class ApplySuggestionRequest(BaseModel):
    """Request body for applying one suggestion from the issue panel."""
    issueKey: str
    suggestionType: Literal["assignee", "priority"]
    suggestion: Dict[str, Any]


class FeedbackRequest(BaseModel):
    """Request body for suggestion feedback."""
    issueKey: str
    suggestionType: str
    feedback: Literal["positive", "negative", "neutral"] = "neutral"
    suggestion: Optional[Dict[str, Any]] = None
    userId: Optional[str] = None


class ReassignmentRequest(BaseModel):
    """Request body for executing a rebalancing suggestion."""
    suggestionId: Optional[int] = None
    fromUser: Optional[str] = None
    toUsers: List[str] = Field(default_factory=list)
    affectedIssues: List[str] = Field(default_factory=list)
    confidence: Optional[int] = None


# ----------------------------------------------------------------------
# Events
# ----------------------------------------------------------------------

@router.post("/events/issue")
def issue_event(event: Dict[str, Any], services: Services = Depends(get_services)):
    """Issue created/updated webhook. Always answers 200 with the outcome."""
    return handle_issue_event(event, services)


# ----------------------------------------------------------------------
# Configuration
# ----------------------------------------------------------------------

@router.get("/config")
def get_configuration(services: Services = Depends(get_services)):
    """Full configuration (API keys redacted), its summary and usage analytics."""
    try:
        return {
            "configuration": services.config_provider.export(),
            "summary": services.config_provider.summary(),
            "analytics": services.activity.get_analytics(),
            "timestamp": _now(),
        }
    except Exception as e:
        logger.error(f"Error getting configuration: {e}")
        return {"error": "Failed to load configuration", "details": str(e)}


@router.put("/config")
def update_configuration(updates: Dict[str, Any], services: Services = Depends(get_services)):
    try:
        config = services.config_provider.update(updates)
        return {
            "success": True,
            "configuration": services.config_provider.export(),
            "message": "Configuration updated successfully",
            "updatedAt": config.updated_at,
        }
    except Exception as e:
        logger.error(f"Error updating configuration: {e}")
        return {"success": False, "error": str(e)}


@router.get("/config/simple")
def get_simple_config(services: Services = Depends(get_services)):
    config = services.config_provider.get()
    return {
        "selectedModel": config.selected_model,
        "autoAssign": config.auto_assign,
        "autoPriority": config.auto_set_priority,
        "enableSuggestions": config.enabled,
        "confidenceThreshold": config.min_confidence_threshold,
    }


@router.put("/config/simple")
def save_simple_config(payload: SimpleConfig, services: Services = Depends(get_services)):
    """Map the admin page fields onto the stored configuration record."""
    mapping = {
        "selectedModel": payload.selectedModel,
        "autoAssign": payload.autoAssign,
        "autoSetPriority": payload.autoPriority,
        "enabled": payload.enableSuggestions,
        "minConfidenceThreshold": payload.confidenceThreshold,
    }
    updates = {key: value for key, value in mapping.items() if value is not None}
    try:
        services.config_provider.update(updates)
        return {"success": True, "message": "Configuration saved successfully"}
    except Exception as e:
        logger.error(f"Error saving simple config: {e}")
        return {"success": False, "error": str(e)}


# ----------------------------------------------------------------------
# Issue panel
# ----------------------------------------------------------------------

@router.get("/issues/{issue_key}/suggestions")
def get_issue_suggestions(issue_key: str, services: Services = Depends(get_services)):
    """
    Suggestions for the issue panel.

    Cached suggestions from the last routing pass are returned when present,
    filtered against the current confidence threshold; otherwise they are
    generated now and cached.
    """
    try:
        config = services.config_provider.get()
        if not config.enabled:
            return {"enabled": False, "message": "AI routing is currently disabled"}

        issue = services.jira.get_issue(issue_key, expand="changelog")
        assignee = (issue.get("fields") or {}).get("assignee")
        if assignee and not config.allow_reassignment:
            return {
                "enabled": True,
                "hasAssignee": True,
                "assignee": assignee.get("displayName"),
                "message": "Issue is already assigned",
            }

        suggestions = _cached_suggestions(services, issue_key)
        if suggestions is None:
            try:
                llm_client = create_llm_client(config, services.credentials)
            except ValueError as e:
                logger.warning(f"No LLM available for {config.selected_model}, using fallbacks: {e}")
                llm_client = None
            issue_data = build_enhanced_issue_data(services.jira, issue_key, config)
            suggestions = RoutingEngine(config, llm_client).generate_suggestions(issue_data)
            services.store.set(suggestions_key(issue_key), suggestions.to_record())
        else:
            # The threshold may have been raised since these were cached
            suggestions = RoutingEngine(config, None).validate_suggestions(suggestions)

        return {
            "enabled": True,
            "issueKey": issue_key,
            "suggestions": suggestions.to_record(),
            "config": {
                "autoAssign": config.auto_assign,
                "autoSetPriority": config.auto_set_priority,
                "selectedModel": config.selected_model,
            },
            "recentActivity": services.activity.get_recent_activity(issue_key),
            "timestamp": _now(),
        }
    except Exception as e:
        logger.error(f"Error generating suggestions for {issue_key}: {e}")
        return {"error": "Failed to generate suggestions", "details": str(e)}


@router.post("/suggestions/apply")
def apply_suggestion(request: ApplySuggestionRequest, services: Services = Depends(get_services)):
    suggestion = request.suggestion
    try:
        if request.suggestionType == "assignee":
            services.jira.update_issue(request.issueKey, {"assignee": {"accountId": suggestion.get("accountId")}})
        else:
            services.jira.update_issue(request.issueKey, {"priority": {"id": suggestion.get("id")}})

        services.activity.log_user_action(
            request.issueKey, f"apply_{request.suggestionType}_suggestion", suggestion
        )
        logger.info(f"✓ Applied {request.suggestionType} suggestion to {request.issueKey}")
        return {"success": True, "appliedSuggestion": suggestion, "timestamp": _now()}
    except Exception as e:
        logger.error(f"✗ Error applying suggestion to {request.issueKey}: {e}")
        return {"success": False, "error": str(e)}


@router.post("/feedback")
def provide_feedback(request: FeedbackRequest, services: Services = Depends(get_services)):
    try:
        services.activity.record_feedback(
            request.issueKey,
            request.suggestionType,
            request.feedback,
            suggestion=request.suggestion,
            user_id=request.userId,
        )
        return {"success": True, "message": "Thank you for your feedback!"}
    except Exception as e:
        logger.error(f"Error recording feedback for {request.issueKey}: {e}")
        return {"success": False, "error": str(e)}


# ----------------------------------------------------------------------
# Triage dashboard
# ----------------------------------------------------------------------

@router.get("/analytics/triage")
def get_triage_analytics(services: Services = Depends(get_services)):
    try:
        return services.activity.get_triage_counters()
    except Exception as e:
        logger.error(f"Error getting triage analytics: {e}")
        return {"error": "Failed to load analytics data", "details": str(e)}


@router.get("/analytics/triage/recent")
def get_recent_triage_activity(
    limit: int = Query(20, ge=1, le=100, description="Number of records to return"),
    services: Services = Depends(get_services),
):
    try:
        return services.activity.get_recent_triage_activity(limit)
    except Exception as e:
        logger.error(f"Error getting recent triage activity: {e}")
        return []


@router.get("/analytics/triage/summary")
def get_triage_stats_summary(
    timeframe: str = Query("7d", description="1d, 7d or 30d"),
    services: Services = Depends(get_services),
):
    try:
        return services.activity.get_triage_stats_summary(timeframe)
    except Exception as e:
        logger.error(f"Error getting triage stats summary: {e}")
        return {"error": "Failed to generate statistics summary", "details": str(e)}


# ----------------------------------------------------------------------
# Workload dashboard
# ----------------------------------------------------------------------

@router.get("/workload/team")
def get_team_workload(
    project: str = Query(..., description="Jira project key"),
    services: Services = Depends(get_services),
):
    try:
        return WorkloadService(services.jira, services.store).get_team_workload(project)
    except Exception as e:
        logger.error(f"Error getting team workload for {project}: {e}")
        return {"error": "Failed to load team workload", "details": str(e)}


@router.get("/workload/stats")
def get_team_stats(
    project: str = Query(..., description="Jira project key"),
    services: Services = Depends(get_services),
):
    try:
        return WorkloadService(services.jira, services.store).get_team_stats(project)
    except Exception as e:
        logger.error(f"Error getting team stats for {project}: {e}")
        return {"error": "Failed to load team stats", "details": str(e)}


@router.get("/workload/rebalancing")
def get_rebalancing_suggestions(
    project: str = Query(..., description="Jira project key"),
    services: Services = Depends(get_services),
):
    try:
        return WorkloadService(services.jira, services.store).get_rebalancing_suggestions(project)
    except Exception as e:
        logger.error(f"Error getting rebalancing suggestions for {project}: {e}")
        return {"error": "Failed to generate rebalancing suggestions", "details": str(e)}


@router.post("/workload/reassign")
def execute_reassignment(request: ReassignmentRequest, services: Services = Depends(get_services)):
    try:
        return WorkloadService(services.jira, services.store).execute_reassignment(request.model_dump())
    except Exception as e:
        logger.error(f"Error executing reassignment: {e}")
        return {"success": False, "error": str(e)}


@router.get("/workload/history")
def get_historical_workload(
    time_range: str = Query("30d", description="Window such as 7d or 30d"),
    services: Services = Depends(get_services),
):
    try:
        return WorkloadService(services.jira, services.store).get_historical_workload(time_range)
    except Exception as e:
        logger.error(f"Error getting historical workload: {e}")
        return {"error": "Failed to load historical workload", "details": str(e)}
