"""Shared pytest fixtures and configuration."""

from unittest.mock import Mock

import pytest

from models.config_models import CredentialsConfig
from routing.services import Services
from storage.activity_log import ActivityLogger
from storage.configuration import ConfigurationProvider
from storage.kv_store import InMemoryKeyValueStore


@pytest.fixture
def test_env(monkeypatch):
    """
    Set valid test environment variables so config can be loaded during
    tests without requiring real credentials.
    """
    monkeypatch.setenv("JIRA_BASE_URL", "https://acme.atlassian.net")
    monkeypatch.setenv("JIRA_EMAIL", "bot@acme.test")
    monkeypatch.setenv("JIRA_API_TOKEN", "jira_test_token_1234567890")
    monkeypatch.setenv("KV_BACKEND", "supabase")
    monkeypatch.setenv("SUPABASE_URL", "https://test-project.supabase.co")
    monkeypatch.setenv("SUPABASE_KEY", "test_supabase_key_1234567890")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")

    return {
        "jira_base_url": "https://acme.atlassian.net",
        "jira_email": "bot@acme.test",
        "jira_api_token": "jira_test_token_1234567890",
        "supabase_url": "https://test-project.supabase.co",
        "supabase_key": "test_supabase_key_1234567890",
        "log_level": "DEBUG",
    }


@pytest.fixture
def invalid_env(monkeypatch):
    """Set up invalid/missing environment variables for testing validation."""
    monkeypatch.setenv("JIRA_BASE_URL", "")
    monkeypatch.setenv("JIRA_EMAIL", "")
    monkeypatch.setenv("JIRA_API_TOKEN", "")
    monkeypatch.setenv("SUPABASE_URL", "")
    monkeypatch.setenv("SUPABASE_KEY", "")


@pytest.fixture
def credentials():
    """Credentials for the in-memory backend with an OpenAI key."""
    return CredentialsConfig(
        jira_base_url="https://acme.atlassian.net",
        jira_email="bot@acme.test",
        jira_api_token="jira_test_token",
        jira_app_account_id="app-account",
        kv_backend="memory",
        openai_api_key="sk-test",
    )


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def mock_jira():
    """Mock JiraClient with empty, successful responses."""
    jira = Mock()
    jira.get_issue.return_value = {"key": "PROJ-1", "fields": {}}
    jira.search_assignable_users.return_value = []
    jira.search_issues.return_value = []
    jira.search_users.return_value = []
    jira.get_priorities.return_value = []
    jira.get_project_components.return_value = []
    jira.update_issue.return_value = None
    jira.assign_issue.return_value = None
    jira.add_comment.return_value = {"id": "10000"}
    return jira


@pytest.fixture
def services(credentials, store, mock_jira):
    """Services wired to the in-memory store and a mock Jira client."""
    return Services(
        credentials=credentials,
        store=store,
        config_provider=ConfigurationProvider(store, credentials),
        activity=ActivityLogger(store),
        jira=mock_jira,
    )


def _make_issue(key="PROJ-1", summary="Something is wrong", description="", issue_type="Task",
                assignee=None, components=None, labels=None, project="PROJ", creator=None):
    return {
        "key": key,
        "fields": {
            "summary": summary,
            "description": description,
            "issuetype": {"name": issue_type},
            "project": {"key": project},
            "assignee": assignee,
            "components": components or [],
            "labels": labels or [],
            "priority": {"name": "Medium", "id": "3"},
            "reporter": {"displayName": "Reporter"},
            "creator": creator,
        },
    }


@pytest.fixture
def make_issue():
    """Factory for Jira issue payloads as returned by the REST API."""
    return _make_issue
