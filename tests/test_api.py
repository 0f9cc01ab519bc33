"""
Tests for the task router API endpoints.

These tests use FastAPI's TestClient with the shared services replaced by
an in-memory store and a mock Jira client, so no server, Jira site or
Supabase project is needed.
"""

from unittest.mock import patch

import pytest
from fastapi.testclient import TestClient

from backend.app import app
from backend.routes import get_services
from storage.kv_store import suggestions_key


@pytest.fixture
def client(services):
    """Create FastAPI test client wired to the test services."""
    app.dependency_overrides[get_services] = lambda: services
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestIssueEvents:
    def test_event_without_issue_is_skipped(self, client):
        response = client.post("/api/events/issue", json={"webhookEvent": "jira:issue_created"})
        assert response.status_code == 200
        assert response.json()["status"] == "skipped"

    def test_assigned_issue_is_filtered(self, client, make_issue):
        issue = make_issue(assignee={"accountId": "acc-bob", "displayName": "Bob"})
        response = client.post("/api/events/issue", json={"webhookEvent": "jira:issue_created", "issue": issue})
        assert response.json()["reason"] == "Filtered out"


class TestConfiguration:
    def test_get_configuration(self, client):
        data = client.get("/api/config").json()

        assert data["configuration"]["enabled"] is True
        assert data["configuration"]["selectedModel"] == "openai-gpt3.5"
        assert "summary" in data
        assert data["analytics"]["totalSuggestions"] == 0
        assert "timestamp" in data

    def test_update_configuration(self, client, services):
        response = client.put("/api/config", json={"autoAssign": True, "projectFilter": ["PROJ"]})
        data = response.json()

        assert data["success"] is True
        assert data["configuration"]["autoAssign"] is True
        assert services.config_provider.get().project_filter == ["PROJ"]

    def test_update_redacts_stored_keys(self, client):
        client.put("/api/config", json={"modelConfigs": {"openai": {"apiKey": "sk-secret"}}})
        data = client.get("/api/config").json()
        assert data["configuration"]["modelConfigs"]["openai"]["apiKey"] != "sk-secret"

    def test_simple_config_defaults(self, client):
        assert client.get("/api/config/simple").json() == {
            "selectedModel": "openai-gpt3.5",
            "autoAssign": False,
            "autoPriority": False,
            "enableSuggestions": True,
            "confidenceThreshold": 0.6,
        }

    def test_simple_config_save_maps_fields(self, client, services):
        response = client.put(
            "/api/config/simple",
            json={"autoAssign": True, "autoPriority": True, "confidenceThreshold": 0.8},
        )
        assert response.json() == {"success": True, "message": "Configuration saved successfully"}

        config = services.config_provider.get()
        assert config.auto_assign is True
        assert config.auto_set_priority is True
        assert config.min_confidence_threshold == 0.8
        # Fields left out keep their values
        assert config.enabled is True


class TestIssueSuggestions:
    def test_routing_disabled(self, client, services):
        services.config_provider.update({"enabled": False})
        data = client.get("/api/issues/PROJ-1/suggestions").json()
        assert data == {"enabled": False, "message": "AI routing is currently disabled"}

    def test_already_assigned(self, client, services, make_issue):
        services.jira.get_issue.return_value = make_issue(
            assignee={"accountId": "acc-bob", "displayName": "Bob"}
        )

        data = client.get("/api/issues/PROJ-1/suggestions").json()

        assert data == {
            "enabled": True,
            "hasAssignee": True,
            "assignee": "Bob",
            "message": "Issue is already assigned",
        }
        services.jira.search_assignable_users.assert_not_called()

    def test_serves_cached_suggestions(self, client, services, make_issue):
        cached = {"assignee": None, "priority": {"name": "High", "id": "2", "confidence": 0.9, "reason": "Outage"}}
        services.store.set(suggestions_key("PROJ-1"), cached)
        services.jira.get_issue.return_value = make_issue()

        data = client.get("/api/issues/PROJ-1/suggestions").json()

        assert data["suggestions"] == cached
        assert data["config"] == {"autoAssign": False, "autoSetPriority": False, "selectedModel": "openai-gpt3.5"}
        assert data["recentActivity"] == []
        services.jira.search_assignable_users.assert_not_called()

    @patch('routing.event_handler.create_llm_client')
    @patch('backend.routes.create_llm_client')
    def test_cached_suggestions_respect_raised_threshold(self, mock_route_llm, mock_event_llm, client, services, make_issue):
        mock_route_llm.side_effect = ValueError("No API key configured")
        mock_event_llm.side_effect = ValueError("No API key configured")
        issue = make_issue(key="PROJ-7", issue_type="Bug")
        services.jira.get_issue.return_value = issue
        client.post("/api/events/issue", json={"webhookEvent": "jira:issue_created", "issue": issue})
        assert services.store.get(suggestions_key("PROJ-7"))["priority"]["confidence"] == 0.6

        client.put("/api/config/simple", json={"confidenceThreshold": 0.9})
        data = client.get("/api/issues/PROJ-7/suggestions").json()

        assert data["suggestions"] == {"assignee": None, "priority": None}

    def test_unreadable_cache_is_regenerated(self, client, services, make_issue):
        services.store.set(suggestions_key("PROJ-1"), ["not", "a", "record"])
        services.jira.get_issue.return_value = make_issue(issue_type="Story")

        with patch('backend.routes.create_llm_client', side_effect=ValueError("No API key configured")):
            data = client.get("/api/issues/PROJ-1/suggestions").json()

        assert data["suggestions"]["priority"]["name"] == "Medium"
        assert services.store.get(suggestions_key("PROJ-1"))["priority"]["id"] == "3"

    @patch('backend.routes.create_llm_client')
    def test_generates_and_caches_when_missing(self, mock_create, client, services, make_issue):
        mock_create.side_effect = ValueError("No API key configured")
        services.jira.get_issue.return_value = make_issue(issue_type="Bug")

        data = client.get("/api/issues/PROJ-1/suggestions").json()

        assert data["suggestions"]["priority"]["name"] == "High"
        assert services.store.get(suggestions_key("PROJ-1")) == data["suggestions"]

    def test_jira_failure_reported_in_body(self, client, services):
        services.jira.get_issue.side_effect = Exception("404 Client Error")

        response = client.get("/api/issues/PROJ-404/suggestions")

        assert response.status_code == 200
        assert response.json() == {"error": "Failed to generate suggestions", "details": "404 Client Error"}


class TestApplyAndFeedback:
    def test_apply_priority_suggestion(self, client, services):
        response = client.post("/api/suggestions/apply", json={
            "issueKey": "PROJ-1",
            "suggestionType": "priority",
            "suggestion": {"name": "High", "id": "2"},
        })

        assert response.json()["success"] is True
        services.jira.update_issue.assert_called_once_with("PROJ-1", {"priority": {"id": "2"}})
        actions = services.store.query("user_action:PROJ-1:apply_priority_suggestion:")
        assert len(actions) == 1

    def test_apply_assignee_suggestion(self, client, services):
        client.post("/api/suggestions/apply", json={
            "issueKey": "PROJ-1",
            "suggestionType": "assignee",
            "suggestion": {"accountId": "acc-alice", "displayName": "Alice"},
        })
        services.jira.update_issue.assert_called_once_with("PROJ-1", {"assignee": {"accountId": "acc-alice"}})

    def test_apply_failure(self, client, services):
        services.jira.update_issue.side_effect = Exception("403 Forbidden")
        response = client.post("/api/suggestions/apply", json={
            "issueKey": "PROJ-1",
            "suggestionType": "priority",
            "suggestion": {"id": "2"},
        })
        assert response.json() == {"success": False, "error": "403 Forbidden"}

    def test_apply_rejects_unknown_type(self, client):
        response = client.post("/api/suggestions/apply", json={
            "issueKey": "PROJ-1",
            "suggestionType": "labels",
            "suggestion": {},
        })
        assert response.status_code == 422

    def test_feedback(self, client, services):
        response = client.post("/api/feedback", json={
            "issueKey": "PROJ-1",
            "suggestionType": "assignee",
            "feedback": "positive",
            "userId": "acc-carol",
        })

        assert response.json() == {"success": True, "message": "Thank you for your feedback!"}
        stored = services.store.query("feedback:PROJ-1:assignee:")
        assert len(stored) == 1
        assert stored[0][1]["feedback"] == "positive"


class TestTriageAnalytics:
    def test_counters_start_empty(self, client):
        data = client.get("/api/analytics/triage").json()
        assert data["totalTriaged"] == 0
        assert data["byCategory"] == {}

    def test_recent_and_summary(self, client):
        assert client.get("/api/analytics/triage/recent?limit=5").json() == []
        summary = client.get("/api/analytics/triage/summary?timeframe=1d").json()
        assert summary["totalTriaged"] == 0
        assert summary["timeframe"] == "1d"


class TestWorkloadEndpoints:
    def test_team_requires_project(self, client):
        assert client.get("/api/workload/team").status_code == 422

    def test_rebalancing_error_body(self, client, services):
        services.jira.search_issues.side_effect = Exception("Jira unavailable")

        data = client.get("/api/workload/rebalancing?project=PROJ").json()

        assert data == {"error": "Failed to generate rebalancing suggestions", "details": "Jira unavailable"}

    def test_reassign_without_issues(self, client):
        data = client.post("/api/workload/reassign", json={"fromUser": "Alice", "toUsers": ["Bob"]}).json()
        assert data["success"] is False

    def test_history(self, client):
        data = client.get("/api/workload/history?time_range=7d").json()
        assert len(data) == 2
