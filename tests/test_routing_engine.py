"""Tests for the routing engine (assignee and priority suggestions)."""

import json
from unittest.mock import Mock

import pytest

from classifier.routing_engine import RoutingEngine
from models.data_models import AssigneeSuggestion, PrioritySuggestion, RoutingSuggestions
from models.routing_config import RoutingConfiguration

USERS = [
    {"accountId": "u-1", "displayName": "Alice Doe"},
    {"accountId": "u-2", "displayName": "Bob Roe"},
]


@pytest.fixture
def issue_data(make_issue):
    def build(issue_type="Bug", similar=None, users=USERS):
        data = make_issue(summary="Checkout fails", issue_type=issue_type)
        data["assignableUsers"] = users
        data["similarIssues"] = similar or []
        return data
    return build


def _llm_returning(payload):
    llm = Mock()
    llm.send_json_prompt.return_value = json.dumps(payload)
    return llm


class TestGenerateSuggestions:
    def test_model_suggestions(self, issue_data):
        llm = _llm_returning({
            "assignee": {"accountId": "u-1", "confidence": 0.9, "reason": "Owns checkout"},
            "priority": {"name": "Highest", "confidence": 0.8, "reason": "Revenue impact"},
        })
        suggestions = RoutingEngine(RoutingConfiguration(), llm).generate_suggestions(issue_data())

        assert suggestions.assignee.account_id == "u-1"
        assert suggestions.assignee.display_name == "Alice Doe"
        assert suggestions.priority.id == "1"
        _, kwargs = llm.send_json_prompt.call_args
        assert kwargs == {"temperature": 0.3, "max_tokens": 1000}

    def test_low_confidence_suggestions_dropped(self, issue_data):
        llm = _llm_returning({
            "assignee": {"accountId": "u-1", "confidence": 0.5},
            "priority": {"name": "High", "confidence": 0.75},
        })
        suggestions = RoutingEngine(RoutingConfiguration(), llm).generate_suggestions(issue_data())

        assert suggestions.assignee is None
        assert suggestions.priority.name == "High"

    def test_model_error_bug_gets_high_priority_and_no_assignee(self, issue_data):
        llm = Mock()
        llm.send_json_prompt.side_effect = Exception("timeout")
        suggestions = RoutingEngine(RoutingConfiguration(), llm).generate_suggestions(issue_data("Bug"))

        assert suggestions.assignee is None
        assert suggestions.priority.name == "High"
        assert suggestions.priority.id == "2"
        assert suggestions.priority.confidence == 0.6

    def test_model_error_story_gets_medium_priority(self, issue_data):
        llm = Mock()
        llm.send_json_prompt.side_effect = Exception("timeout")
        suggestions = RoutingEngine(RoutingConfiguration(), llm).generate_suggestions(issue_data("Story"))
        assert suggestions.priority.name == "Medium"

    def test_model_error_other_type_gives_empty_set(self, issue_data):
        suggestions = RoutingEngine(RoutingConfiguration(), None).generate_suggestions(issue_data("Task"))
        assert suggestions.is_empty()

    def test_fallback_respects_threshold(self, issue_data):
        config = RoutingConfiguration(min_confidence_threshold=0.9)
        suggestions = RoutingEngine(config, None).generate_suggestions(issue_data("Bug"))
        assert suggestions.is_empty()


class TestFallbackSuggestions:
    def test_recent_similar_assignee_suggested(self, issue_data):
        similar = [{"key": "PROJ-0", "fields": {"assignee": {"accountId": "u-2", "displayName": "Bob Roe"}}}]
        suggestions = RoutingEngine(RoutingConfiguration(), None).generate_fallback_suggestions(
            issue_data("Bug", similar=similar)
        )
        assert suggestions.assignee.account_id == "u-2"
        assert suggestions.assignee.confidence == 0.5

    def test_similar_assignee_no_longer_assignable(self, issue_data):
        similar = [{"key": "PROJ-0", "fields": {"assignee": {"accountId": "gone", "displayName": "Former"}}}]
        suggestions = RoutingEngine(RoutingConfiguration(), None).generate_fallback_suggestions(
            issue_data("Bug", similar=similar)
        )
        assert suggestions.assignee is None


class TestValidateSuggestions:
    def test_threshold_is_inclusive(self):
        engine = RoutingEngine(RoutingConfiguration(min_confidence_threshold=0.6), None)
        suggestions = engine.validate_suggestions(RoutingSuggestions(
            assignee=AssigneeSuggestion(account_id="u-1", display_name="Alice", confidence=0.6),
            priority=PrioritySuggestion(name="Low", id="4", confidence=0.59),
        ))
        assert suggestions.assignee is not None
        assert suggestions.priority is None
