"""
GitHub API client for the patch reviewer.
Handles commit range comparison and pull request review comments.
"""

from typing import Any, Dict

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from patch_reviewer.custom_exceptions import GitHubAPIError, MissingConfigurationError
from patch_reviewer.logging_config import get_logger
from patch_reviewer.models import CommitRange

logger = get_logger(__name__)

DEFAULT_API_URL = "https://api.github.com"
DEFAULT_TIMEOUT = 60


class GitHubClient:
    """Thin wrapper around the GitHub REST endpoints the reviewer needs."""

    def __init__(self, token: str, base_url: str = DEFAULT_API_URL,
                 timeout: float = DEFAULT_TIMEOUT, max_retries: int = 3):
        """
        Initialize GitHub client.

        Args:
            token: GitHub token
            base_url: GitHub API base URL
            timeout: Per-request timeout in seconds
            max_retries: Retries for idempotent requests on 429/5xx responses
        """
        if not token:
            raise MissingConfigurationError("GITHUB_TOKEN")

        self.token = token.strip()
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.max_retries = max_retries
        self.session = self._create_session()

    def __repr__(self) -> str:
        return f"GitHubClient(base_url={self.base_url!r})"

    def _create_session(self) -> requests.Session:
        """Create requests session with retry strategy and authentication."""
        session = requests.Session()

        # POST is left out of the retried methods so a comment is never posted twice
        retry_strategy = Retry(
            total=self.max_retries,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        session.headers.update({
            "Authorization": f"Bearer {self.token}",
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "patch-reviewer"
        })

        return session

    def _request(self, method: str, endpoint: str, **kwargs) -> Dict[str, Any]:
        """
        Make an authenticated request and return the decoded JSON body.

        Raises:
            GitHubAPIError: On transport failures and non-2xx responses
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        logger.debug(f"GitHub API {method} {url}")

        try:
            response = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"GitHub API request failed: {e}", context={"endpoint": endpoint})
            raise GitHubAPIError(endpoint, response_text=str(e)) from e

        if response.status_code >= 400:
            logger.error(f"GitHub API error: {response.status_code}",
                         context={"endpoint": endpoint, "response": response.text[:500]})
            raise GitHubAPIError(endpoint, response.status_code, response.text[:500])

        return response.json()

    def compare_commits(self, owner: str, repo: str, base: str, head: str) -> Dict[str, Any]:
        """
        Compare two refs with three-dot semantics.

        Returns:
            The compare payload; ``files`` holds ``{filename, patch}`` entries
            and ``commits`` the ordered commits of the range.
        """
        commit_range = CommitRange(owner=owner, repo=repo, base=base, head=head)
        logger.info(f"Comparing {commit_range.basehead} in {commit_range.full_name}")
        return self._request("GET", f"/repos/{commit_range.full_name}/compare/{commit_range.basehead}")

    def create_review_comment(self, owner: str, repo: str, pull_number: int, commit_id: str,
                              path: str, body: str, position: int) -> Dict[str, Any]:
        """Post an inline review comment at a diff position of a commit."""
        data = {
            "commit_id": commit_id,
            "path": path,
            "body": body,
            "position": position,
        }
        logger.info(f"Posting review comment on PR #{pull_number} in {owner}/{repo}",
                    context={"path": path, "position": position, "commit_id": commit_id})
        return self._request("POST", f"/repos/{owner}/{repo}/pulls/{pull_number}/comments", json=data)

    def get_pull_request(self, owner: str, repo: str, pull_number: int) -> Dict[str, Any]:
        """Fetch pull request details, used to fill in missing base/head refs."""
        return self._request("GET", f"/repos/{owner}/{repo}/pulls/{pull_number}")
