"""Tests for the Jira REST client."""

from unittest.mock import Mock

import pytest
import requests

from tracker.jira_client import JiraClient, jql_quote, text_to_adf


def _response(status=200, body=None):
    response = Mock()
    response.status_code = status
    response.ok = 200 <= status < 300
    response.content = b"" if body is None else b"{}"
    response.json.return_value = body
    response.text = "error body"
    if not response.ok:
        response.raise_for_status.side_effect = requests.HTTPError(f"{status} error")
    return response


@pytest.fixture
def client():
    jira = JiraClient("https://acme.atlassian.net/", "bot@acme.test", "token")
    jira.session = Mock()
    return jira


class TestTextToAdf:
    def test_one_paragraph_per_line(self):
        doc = text_to_adf("first\n\nthird")
        assert doc["type"] == "doc"
        assert doc["version"] == 1
        assert len(doc["content"]) == 3
        assert doc["content"][0]["content"] == [{"type": "text", "text": "first"}]
        assert doc["content"][1]["content"] == []


class TestJqlQuote:
    def test_plain_value(self):
        assert jql_quote("PROJ") == '"PROJ"'

    def test_escapes_quotes_and_backslashes(self):
        assert jql_quote('Front "end"') == r'"Front \"end\""'
        assert jql_quote("C:\\temp") == r'"C:\\temp"'

    def test_backslash_before_quote_stays_literal(self):
        assert jql_quote('a\\"b') == r'"a\\\"b"'


class TestJiraClientInit:
    def test_init_sets_auth_and_headers(self):
        jira = JiraClient("https://acme.atlassian.net/", "bot@acme.test", "token")
        assert jira.base_url == "https://acme.atlassian.net"
        assert jira.session.auth == ("bot@acme.test", "token")
        assert jira.session.headers["Accept"] == "application/json"


class TestReads:
    def test_get_issue_with_expand(self, client):
        client.session.request.return_value = _response(body={"key": "PROJ-1"})

        assert client.get_issue("PROJ-1", expand="changelog") == {"key": "PROJ-1"}
        client.session.request.assert_called_once_with(
            "GET",
            "https://acme.atlassian.net/rest/api/3/issue/PROJ-1",
            params={"expand": "changelog"},
            json=None,
            timeout=30,
        )

    def test_search_issues_uses_jql_endpoint(self, client):
        client.session.request.return_value = _response(body={"issues": [{"key": "PROJ-2"}]})

        issues = client.search_issues('project = "PROJ"', max_results=5, fields=["summary", "assignee"])

        assert issues == [{"key": "PROJ-2"}]
        args, kwargs = client.session.request.call_args
        assert args[1].endswith("/rest/api/3/search/jql")
        assert kwargs["params"] == {"jql": 'project = "PROJ"', "maxResults": 5, "fields": "summary,assignee"}

    def test_search_assignable_users(self, client):
        client.session.request.return_value = _response(body=[{"accountId": "u-1"}])
        assert client.search_assignable_users("PROJ") == [{"accountId": "u-1"}]
        assert client.session.request.call_args[1]["params"] == {"project": "PROJ", "maxResults": 100}

    def test_error_raises_http_error(self, client):
        client.session.request.return_value = _response(status=404)
        with pytest.raises(requests.HTTPError):
            client.get_issue("NOPE-1")


class TestMutations:
    def test_update_issue(self, client):
        client.session.request.return_value = _response(status=204)

        client.update_issue("PROJ-1", {"priority": {"id": "2"}})

        args, kwargs = client.session.request.call_args
        assert args == ("PUT", "https://acme.atlassian.net/rest/api/3/issue/PROJ-1")
        assert kwargs["json"] == {"fields": {"priority": {"id": "2"}}}

    def test_assign_issue(self, client):
        client.session.request.return_value = _response(status=204)
        client.assign_issue("PROJ-1", "u-1")
        args, kwargs = client.session.request.call_args
        assert args[1].endswith("/issue/PROJ-1/assignee")
        assert kwargs["json"] == {"accountId": "u-1"}

    def test_add_comment_sends_adf(self, client):
        client.session.request.return_value = _response(status=201, body={"id": "100"})

        assert client.add_comment("PROJ-1", "Hello") == {"id": "100"}
        body = client.session.request.call_args[1]["json"]["body"]
        assert body["content"][0]["content"][0]["text"] == "Hello"
