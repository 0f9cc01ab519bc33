"""
Issue event handler - the single entry point for routing an issue.

One pass per event: filter, build context, triage, suggest, apply, log.
Nothing here is retried and nothing is raised back to the caller; a
webhook delivery must never fail because routing did.
"""

import logging
from typing import Any, Dict, Optional

from actions.applier import apply_suggestions
from actions.auto_tagging import AutoTaggingManager
from classifier.context_builder import build_enhanced_issue_data
from classifier.llm_client import LLMClient, create_llm_client
from classifier.routing_engine import RoutingEngine
from classifier.triage_engine import TriageEngine
from models.routing_config import RoutingConfiguration
from routing.services import Services
from storage.kv_store import suggestions_key

logger = logging.getLogger(__name__)

DELETED_EVENTS = ("jira:issue_deleted", "avi:jira:deleted:issue")


def _outcome(status: str, issue_key: Optional[str], reason: str = "", **extra: Any) -> Dict[str, Any]:
    return {"status": status, "issueKey": issue_key, "reason": reason, **extra}


def should_process_issue(
    issue: Dict[str, Any],
    config: RoutingConfiguration,
    app_account_id: Optional[str] = None,
) -> bool:
    """Scope checks on the event's issue. Empty filters match everything."""
    fields = issue.get("fields") or {}

    if fields.get("assignee") and not config.allow_reassignment:
        return False

    if config.project_filter:
        if (fields.get("project") or {}).get("key") not in config.project_filter:
            return False

    if config.issue_type_filter:
        if (fields.get("issuetype") or {}).get("name") not in config.issue_type_filter:
            return False

    if config.component_filter:
        names = {c.get("name") for c in fields.get("components") or []}
        if not names.intersection(config.component_filter):
            return False

    # Skip issues created by the router itself
    if app_account_id and (fields.get("creator") or {}).get("accountId") == app_account_id:
        return False

    return True


def _llm_client_for(config: RoutingConfiguration, services: Services) -> Optional[LLMClient]:
    try:
        return create_llm_client(config, services.credentials)
    except ValueError as e:
        logger.warning(f"No LLM available for {config.selected_model}, using fallbacks: {e}")
        return None


def handle_issue_event(event: Dict[str, Any], services: Services) -> Dict[str, Any]:
    """
    Route one issue lifecycle event.

    Args:
        event: Webhook payload with ``issue`` and ``webhookEvent``/``eventType``
        services: Shared collaborators

    Returns:
        Outcome record with ``status`` skipped / processed / failed
    """
    issue = event.get("issue") or {}
    issue_key = issue.get("key")
    event_type = event.get("webhookEvent") or event.get("eventType") or "unknown"

    try:
        logger.info(f"Processing {event_type} event for {issue_key}")

        if not issue_key:
            return _outcome("skipped", None, "Event has no issue")
        if event_type in DELETED_EVENTS:
            return _outcome("skipped", issue_key, "Issue deleted")

        config = services.config_provider.get()
        if not config.enabled:
            logger.info("AI routing is disabled, skipping event")
            return _outcome("skipped", issue_key, "Routing disabled")

        app_account_id = services.credentials.jira_app_account_id if services.credentials else None
        if not should_process_issue(issue, config, app_account_id):
            logger.info(f"Issue {issue_key} does not need processing")
            return _outcome("skipped", issue_key, "Filtered out")

        llm_client = _llm_client_for(config, services)
        issue_data = build_enhanced_issue_data(services.jira, issue_key, config)

        triage = None
        triage_outcome = None
        if config.enable_triage:
            triage = TriageEngine(llm_client, services.jira).perform_triage(issue_data)
            tagger = AutoTaggingManager(config, services.jira, services.activity)
            triage_outcome = tagger.apply_triage_suggestions(issue_key, triage, issue=issue_data)

        suggestions = RoutingEngine(config, llm_client).generate_suggestions(issue_data, triage)
        applied = apply_suggestions(services.jira, issue_key, suggestions, config)

        try:
            services.store.set(suggestions_key(issue_key), suggestions.to_record())
        except Exception as e:
            logger.error(f"Failed to cache suggestions for {issue_key}: {e}")
        services.activity.log_routing_activity(issue_key, suggestions, config, triage)

        logger.info(f"✓ Successfully processed {issue_key}")
        return _outcome(
            "processed",
            issue_key,
            suggestions=suggestions.to_record(),
            applied=applied,
            triage=triage_outcome,
        )

    except Exception as e:
        logger.error(f"✗ Error processing issue event for {issue_key}: {e}", exc_info=True)
        return _outcome("failed", issue_key, str(e))
