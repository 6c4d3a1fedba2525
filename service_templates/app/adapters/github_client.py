"""
GitHub client for template review issues.
"""

import httpx
from typing import Dict, Any, List, Optional

from shared.logging import get_logger
from shared.errors import ExternalServiceError
from shared.circuit_breaker import get_circuit_breaker, CircuitBreakerOpenException
from shared.retry import retry_on_exception, RetryConfig, RetryError

REVIEW_ISSUE_LABEL = "add-template"
REVIEW_ISSUE_LABELS = [REVIEW_ISSUE_LABEL, "template-registry-api"]


class GitHubClient:
    """Client for review issues in the template submission repository."""

    def __init__(self, github_api_url: str, org: str, repository: str,
                 access_token: Optional[str] = None, timeout: float = 10.0):
        self.github_api_url = github_api_url.rstrip("/")
        self.org = org
        self.repository = repository
        self.access_token = access_token
        self.timeout = timeout
        self.logger = get_logger("templates.github_client")
        self.circuit_breaker = get_circuit_breaker(
            "github",
            failure_threshold=5,
            recovery_timeout=60.0
        )

    @property
    def can_create_issues(self) -> bool:
        return bool(self.access_token)

    @property
    def issues_url(self) -> str:
        return f"{self.github_api_url}/repos/{self.org}/{self.repository}/issues"

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "application/vnd.github+json"}
        if self.access_token:
            headers["Authorization"] = f"Bearer {self.access_token}"
        return headers

    @retry_on_exception((httpx.TransportError,), config=RetryConfig(max_attempts=3, base_delay=0.5))
    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.request(method, url, headers=self._headers(), **kwargs)

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            response = await self.circuit_breaker.call(self._send, method, url, **kwargs)
        except (RetryError, CircuitBreakerOpenException) as e:
            self.logger.error("GitHub unavailable", url=url, error=str(e))
            raise ExternalServiceError("github", "GitHub unavailable", details={"error": str(e)})

        if response.status_code not in (200, 201):
            self.logger.error("GitHub request failed", url=url, status_code=response.status_code)
            raise ExternalServiceError(
                "github",
                f'Error fetching "{url}". Response code is {response.status_code}',
                details={"status_code": response.status_code}
            )
        return response

    async def create_review_issue(self, template_name: str, github_repo_url: str) -> int:
        """Open a review issue for a submitted template and return its number."""
        response = await self._request(
            "POST",
            self.issues_url,
            json={
                "title": f"Add {template_name}",
                "labels": REVIEW_ISSUE_LABELS,
                "body": f"### Link to GitHub repo\n{github_repo_url}\n### npm package name\n{template_name}",
            }
        )
        number = response.json()["number"]
        self.logger.info("Review issue created", template_name=template_name, issue=number)
        return number

    async def get_open_review_issues(self) -> List[Dict[str, Any]]:
        """Open review issues, most recently updated first."""
        response = await self._request(
            "GET",
            self.issues_url,
            params={"state": "open", "labels": REVIEW_ISSUE_LABEL, "sort": "updated-desc"}
        )
        return response.json()

    def review_url(self, issue_number: int) -> str:
        """Browser URL of a review issue."""
        return f"https://github.com/{self.org}/{self.repository}/issues/{issue_number}"


class ReviewIssueLookup:
    """Open review issues fetched at most once for the lifetime of one request."""

    def __init__(self, github_client: GitHubClient):
        self.github_client = github_client
        self._issues: Optional[List[Dict[str, Any]]] = None

    async def review_url_for(self, template_name: str) -> Optional[str]:
        """URL of the open review issue whose body ends with the template name."""
        if self._issues is None:
            self._issues = await self.github_client.get_open_review_issues()
        for issue in self._issues:
            if (issue.get("body") or "").endswith(template_name):
                return issue.get("html_url")
        return None
