"""Jira Cloud REST API v3 client.

Thin wrapper around ``requests``: every call raises ``requests.HTTPError``
on a non-2xx response after logging the status. There is no retry; callers
decide whether a failure aborts their flow or is logged and skipped.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30


def text_to_adf(text: str) -> Dict[str, Any]:
    """Wrap plain text in an Atlassian Document Format document, one paragraph per line."""
    content = []
    for line in text.split("\n"):
        paragraph: Dict[str, Any] = {"type": "paragraph", "content": []}
        if line:
            paragraph["content"].append({"type": "text", "text": line})
        content.append(paragraph)
    return {"type": "doc", "version": 1, "content": content}


def jql_quote(value: Any) -> str:
    """Quote a value as a JQL string literal, escaping backslashes and double quotes."""
    escaped = str(value).replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


class JiraClient:
    """Minimal Jira Cloud client authenticated with an account email and API token."""

    def __init__(self, base_url: str, email: str, api_token: str, timeout: int = DEFAULT_TIMEOUT):
        """Initialize Jira API client.

        Args:
            base_url: Site URL, e.g. https://acme.atlassian.net
            email: Account email used for basic auth
            api_token: API token for that account
            timeout: Per-request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = requests.Session()
        self.session.auth = (email, api_token)
        self.session.headers.update({
            "Accept": "application/json",
            "Content-Type": "application/json",
        })

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """Send a request and return the decoded JSON body (None for 204).

        Raises:
            requests.HTTPError: On any non-2xx response
        """
        url = f"{self.base_url}{path}"
        response = self.session.request(method, url, params=params, json=json, timeout=self.timeout)

        if not response.ok:
            logger.error(
                f"Jira {method} {path} failed: {response.status_code} - "
                f"{response.text[:200]}"
            )
            response.raise_for_status()

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_issue(self, issue_key: str, expand: Optional[str] = None) -> Dict[str, Any]:
        params = {"expand": expand} if expand else None
        return self._request("GET", f"/rest/api/3/issue/{issue_key}", params=params)

    def search_assignable_users(self, project_key: str, max_results: int = 100) -> List[Dict[str, Any]]:
        return self._request(
            "GET",
            "/rest/api/3/user/assignable/search",
            params={"project": project_key, "maxResults": max_results},
        ) or []

    def search_issues(
        self,
        jql: str,
        max_results: int = 50,
        fields: Optional[List[str]] = None,
    ) -> List[Dict[str, Any]]:
        """Run a JQL search and return the matching issues (first page only)."""
        params: Dict[str, Any] = {"jql": jql, "maxResults": max_results}
        if fields:
            params["fields"] = ",".join(fields)
        logger.debug(f"JQL search: {jql}")
        data = self._request("GET", "/rest/api/3/search/jql", params=params) or {}
        return data.get("issues", [])

    def get_project_components(self, project_key: str) -> List[Dict[str, Any]]:
        return self._request("GET", f"/rest/api/3/project/{project_key}/components") or []

    def get_priorities(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/rest/api/3/priority") or []

    def search_users(self, query: str, max_results: int = 10) -> List[Dict[str, Any]]:
        return self._request(
            "GET",
            "/rest/api/3/user/search",
            params={"query": query, "maxResults": max_results},
        ) or []

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def update_issue(self, issue_key: str, fields: Dict[str, Any]) -> None:
        self._request("PUT", f"/rest/api/3/issue/{issue_key}", json={"fields": fields})
        logger.debug(f"Updated {issue_key} fields: {', '.join(fields)}")

    def assign_issue(self, issue_key: str, account_id: Optional[str]) -> None:
        self._request("PUT", f"/rest/api/3/issue/{issue_key}/assignee", json={"accountId": account_id})
        logger.debug(f"Assigned {issue_key} to {account_id}")

    def add_comment(self, issue_key: str, text: str) -> Dict[str, Any]:
        return self._request(
            "POST",
            f"/rest/api/3/issue/{issue_key}/comment",
            json={"body": text_to_adf(text)},
        )
