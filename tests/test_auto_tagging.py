"""Tests for applying triage results to Jira issues."""

from unittest.mock import Mock

import pytest

from actions.auto_tagging import (
    AutoTaggingManager,
    build_triage_comment,
    build_triage_labels,
    map_priority_level,
    match_components,
)
from models.data_models import (
    Categorization,
    ComponentSuggestions,
    PriorityAnalysis,
    Recommendation,
    SentimentAnalysis,
    TriageResult,
    UrgencyAssessment,
)
from models.routing_config import RoutingConfiguration

PRIORITIES = [
    {"id": "1", "name": "Highest"},
    {"id": "2", "name": "High"},
    {"id": "3", "name": "Medium"},
    {"id": "4", "name": "Low"},
]


def _triage(confidence=0.8, priority_confidence=0.9, components=None, **sentiment):
    return TriageResult(
        issue_key="PROJ-1",
        categorization=Categorization(type="bug", suggested_labels=["database"], reasoning="Outage report"),
        priority=PriorityAnalysis(level="high", confidence=priority_confidence, reasoning="Production impact"),
        sentiment=SentimentAnalysis(**sentiment),
        urgency=UrgencyAssessment(level="immediate"),
        components=components or ComponentSuggestions(),
        confidence=confidence,
        recommendations=[Recommendation(type="escalation", message="Escalate now", action="escalate")],
    )


class TestHelpers:
    @pytest.mark.parametrize("level,expected", [
        ("critical", "Highest"),
        ("high", "High"),
        ("medium", "Medium"),
        ("low", "Low"),
    ])
    def test_map_priority_level(self, level, expected):
        assert map_priority_level(level, PRIORITIES)["name"] == expected

    def test_map_priority_level_falls_back_to_first(self):
        assert map_priority_level("critical", [{"id": "9", "name": "P0"}])["id"] == "9"
        assert map_priority_level("high", []) is None

    def test_match_components_exact_then_substring(self):
        project = [{"id": "10", "name": "Database"}, {"id": "11", "name": "Web Frontend"}]
        suggestions = ComponentSuggestions(suggested_components=["database", "frontend", "Mobile"])

        merged = match_components(suggestions, project, [{"id": "12", "name": "API"}])

        assert [c["name"] for c in merged] == ["API", "Database", "Web Frontend"]

    def test_match_components_nothing_new(self):
        project = [{"id": "10", "name": "Database"}]
        suggestions = ComponentSuggestions(suggested_components=["Database"])
        assert match_components(suggestions, project, [{"id": "10", "name": "Database"}]) is None

    def test_labels(self):
        triage = _triage(
            tone="negative",
            escalation_risk="high",
            language_flags={"has_angry_language": True},
            components=ComponentSuggestions(suggested_labels=["data loss", "database"]),
        )
        assert build_triage_labels(triage) == [
            "ai-category-bug",
            "ai-priority-high",
            "ai-sentiment-negative",
            "ai-urgency-immediate",
            "ai-escalation-risk",
            "ai-customer-frustrated",
            "database",
            "data-loss",
        ]

    def test_comment(self):
        comment = build_triage_comment(_triage(), ["Priority set to High"])
        assert comment.startswith("AI Ticket Triage Analysis (80% confidence)")
        assert "• Priority set to High" in comment
        assert "• Priority: HIGH" in comment
        assert "• Escalate now" in comment
        assert "Priority Reasoning: Production impact" in comment


class TestAutoTaggingManager:
    def _manager(self, mock_jira, activity=None, **config):
        mock_jira.get_priorities.return_value = PRIORITIES
        return AutoTaggingManager(RoutingConfiguration(**config), mock_jira, activity)

    def test_applies_priority_and_labels_in_one_update(self, mock_jira, make_issue):
        manager = self._manager(mock_jira, auto_set_priority=True)
        outcome = manager.apply_triage_suggestions("PROJ-1", _triage(), issue=make_issue(labels=["existing"]))

        assert outcome["applied"] is True
        mock_jira.update_issue.assert_called_once()
        fields = mock_jira.update_issue.call_args[0][1]
        assert fields["priority"] == {"id": "2"}
        assert fields["labels"][0] == "existing"
        assert "ai-category-bug" in fields["labels"]
        assert "Priority set to High" in outcome["notifications"]
        mock_jira.add_comment.assert_called_once()

    def test_low_priority_confidence_skips_priority(self, mock_jira, make_issue):
        manager = self._manager(mock_jira, auto_set_priority=True)
        manager.apply_triage_suggestions("PROJ-1", _triage(priority_confidence=0.6), issue=make_issue())
        assert "priority" not in mock_jira.update_issue.call_args[0][1]

    def test_below_threshold_only_comments(self, mock_jira, make_issue):
        activity = Mock()
        manager = self._manager(mock_jira, activity, auto_set_priority=True)

        outcome = manager.apply_triage_suggestions("PROJ-1", _triage(confidence=0.4), issue=make_issue())

        assert outcome == {"applied": False, "updates": {}, "notifications": []}
        mock_jira.update_issue.assert_not_called()
        mock_jira.add_comment.assert_called_once()
        activity.log_triage_activity.assert_called_once()
        assert activity.log_triage_activity.call_args[0][2] == []

    def test_components_when_enabled(self, mock_jira, make_issue):
        mock_jira.get_project_components.return_value = [{"id": "10", "name": "Database"}]
        manager = self._manager(mock_jira, auto_set_components=True, auto_set_labels=False)
        triage = _triage(components=ComponentSuggestions(suggested_components=["Database"], confidence=0.7))

        outcome = manager.apply_triage_suggestions("PROJ-1", triage, issue=make_issue())

        assert outcome["updates"] == {"components": [{"id": "10", "name": "Database"}]}
        assert outcome["notifications"] == ["Added components: Database"]

    def test_custom_fields(self, mock_jira, make_issue):
        manager = self._manager(
            mock_jira,
            auto_set_labels=False,
            custom_fields={"aiConfidenceField": "customfield_1", "escalationRiskField": "customfield_2"},
        )
        outcome = manager.apply_triage_suggestions("PROJ-1", _triage(escalation_risk="high"), issue=make_issue())
        assert outcome["updates"] == {"customfield_1": 80, "customfield_2": {"value": "high"}}

    def test_update_failure_still_comments(self, mock_jira, make_issue):
        mock_jira.update_issue.side_effect = Exception("400 Bad Request")
        activity = Mock()
        manager = self._manager(mock_jira, activity, auto_set_priority=True)

        outcome = manager.apply_triage_suggestions("PROJ-1", _triage(), issue=make_issue())

        assert outcome["applied"] is False
        assert outcome["notifications"] == []
        mock_jira.add_comment.assert_called_once()
        assert "Applied Changes" not in mock_jira.add_comment.call_args[0][1]
        assert activity.log_triage_activity.call_args[0][2] == []

    def test_comment_failure_is_logged_only(self, mock_jira, make_issue):
        mock_jira.add_comment.side_effect = Exception("403 Forbidden")
        manager = self._manager(mock_jira)
        outcome = manager.apply_triage_suggestions("PROJ-1", _triage(), issue=make_issue())
        assert outcome["applied"] is True

    def test_fetches_issue_when_not_given(self, mock_jira, make_issue):
        mock_jira.get_issue.return_value = make_issue(labels=["old"])
        self._manager(mock_jira).apply_triage_suggestions("PROJ-1", _triage())
        mock_jira.get_issue.assert_called_once_with("PROJ-1")
        assert mock_jira.update_issue.call_args[0][1]["labels"][0] == "old"
