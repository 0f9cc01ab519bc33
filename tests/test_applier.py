"""Tests for applying routing suggestions to Jira."""

from actions.applier import apply_suggestions, build_suggestion_comments
from models.data_models import AssigneeSuggestion, PrioritySuggestion, RoutingSuggestions
from models.routing_config import RoutingConfiguration


def _suggestions(assignee=True, priority=True):
    return RoutingSuggestions(
        assignee=AssigneeSuggestion(
            account_id="acc-alice",
            display_name="Alice",
            confidence=0.82,
            reason="Owns the database component",
        ) if assignee else None,
        priority=PrioritySuggestion(
            name="High",
            id="2",
            confidence=0.9,
            reason="Production outage",
        ) if priority else None,
    )


class TestBuildSuggestionComments:
    def test_applied_wording(self):
        comments = build_suggestion_comments(_suggestions(), assigned=True, priority_set=True)
        assert comments == [
            "AI Auto-Assignment: Assigned to Alice (82% confidence)\nReason: Owns the database component",
            "AI Priority: Set to High (90% confidence)\nReason: Production outage",
        ]

    def test_proposal_wording(self):
        comments = build_suggestion_comments(_suggestions(), assigned=False, priority_set=False)
        assert comments[0].startswith("AI Suggestion: Consider assigning to Alice (82% confidence)")
        assert comments[1].startswith("AI Priority Suggestion: Consider setting priority to High")

    def test_no_suggestions(self):
        assert build_suggestion_comments(RoutingSuggestions(), assigned=False, priority_set=False) == []


class TestApplySuggestions:
    def test_auto_mode_updates_once_and_comments(self, mock_jira):
        config = RoutingConfiguration(auto_assign=True, auto_set_priority=True)

        result = apply_suggestions(mock_jira, "PROJ-1", _suggestions(), config)

        mock_jira.update_issue.assert_called_once_with(
            "PROJ-1", {"assignee": {"accountId": "acc-alice"}, "priority": {"id": "2"}}
        )
        assert result == {"fields": ["assignee", "priority"], "comments": 2}
        first_comment = mock_jira.add_comment.call_args_list[0][0][1]
        assert first_comment.startswith("AI Auto-Assignment")

    def test_suggestion_mode_only_comments(self, mock_jira):
        result = apply_suggestions(mock_jira, "PROJ-1", _suggestions(priority=False), RoutingConfiguration())

        mock_jira.update_issue.assert_not_called()
        assert result == {"fields": [], "comments": 1}
        assert mock_jira.add_comment.call_args[0][1].startswith("AI Suggestion: Consider assigning")

    def test_mixed_mode(self, mock_jira):
        config = RoutingConfiguration(auto_assign=False, auto_set_priority=True)

        result = apply_suggestions(mock_jira, "PROJ-1", _suggestions(), config)

        mock_jira.update_issue.assert_called_once_with("PROJ-1", {"priority": {"id": "2"}})
        assert result["fields"] == ["priority"]
        texts = [c[0][1] for c in mock_jira.add_comment.call_args_list]
        assert texts[0].startswith("AI Suggestion")
        assert texts[1].startswith("AI Priority: Set to High")

    def test_update_failure_falls_back_to_proposals(self, mock_jira):
        mock_jira.update_issue.side_effect = Exception("400 Bad Request")
        config = RoutingConfiguration(auto_assign=True, auto_set_priority=True)

        result = apply_suggestions(mock_jira, "PROJ-1", _suggestions(), config)

        assert result == {"fields": [], "comments": 2}
        texts = [c[0][1] for c in mock_jira.add_comment.call_args_list]
        assert texts[0].startswith("AI Suggestion")
        assert texts[1].startswith("AI Priority Suggestion")

    def test_comment_failure_is_not_counted(self, mock_jira):
        mock_jira.add_comment.side_effect = [Exception("403 Forbidden"), {"id": "10001"}]

        result = apply_suggestions(mock_jira, "PROJ-1", _suggestions(), RoutingConfiguration())

        assert result["comments"] == 1
        assert mock_jira.add_comment.call_count == 2
