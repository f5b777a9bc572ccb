"""
GitHub API client for SecureScan.
"""
import logging
import time
from typing import Any, Dict, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from .models import Repository, PullRequest

# Longest we will wait for a rate limit window to reset
MAX_RATE_LIMIT_SLEEP = 60


class GitHubAPIError(Exception):
    """Raised when the GitHub API returns an error or can't be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class GitHubAPI:
    """GitHub API client with rate limiting and retry logic."""

    BASE_URL = "https://api.github.com"

    def __init__(self, token: Optional[str] = None, base_url: Optional[str] = None,
                 max_retries: int = 3, timeout: int = 30):
        """Initialize the GitHub API client.

        Args:
            token: GitHub personal access token; public repositories can be
                resolved without one
            base_url: API root, for GitHub Enterprise
            max_retries: Maximum number of retries for failed requests
            timeout: Per-request timeout in seconds
        """
        self.token = token
        self.base_url = (base_url or self.BASE_URL).rstrip('/')
        self.max_retries = max_retries
        self.timeout = timeout
        self.session = self._create_session()
        self.logger = logging.getLogger(__name__)

    def _create_session(self) -> requests.Session:
        """Create a requests session with retry logic and authentication."""
        session = requests.Session()
        retries = Retry(
            total=self.max_retries,
            backoff_factor=1,
            status_forcelist=[500, 502, 503, 504, 429],
            allowed_methods=["GET"]
        )
        session.mount("https://", HTTPAdapter(max_retries=retries))
        session.headers.update({
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "SecureScan/1.0.0"
        })
        if self.token:
            session.headers["Authorization"] = f"token {self.token}"
        return session

    def _handle_rate_limit(self, response: requests.Response) -> bool:
        """Sleep through a short rate limit window. Returns True to retry."""
        if response.status_code == 403 and response.headers.get('X-RateLimit-Remaining') == '0':
            reset_time = int(response.headers.get('X-RateLimit-Reset', 0))
            sleep_time = max(0, reset_time - time.time() + 5)  # Add 5s buffer
            if sleep_time > MAX_RATE_LIMIT_SLEEP:
                return False
            self.logger.warning("Rate limit reached. Sleeping for %.1f seconds", sleep_time)
            time.sleep(sleep_time)
            return True
        return False

    def _make_request(self, method: str, endpoint: str, **kwargs) -> requests.Response:
        """Make a request to the GitHub API with rate limit handling."""
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        kwargs.setdefault('timeout', self.timeout)

        try:
            response = self.session.request(method, url, **kwargs)
            if self._handle_rate_limit(response):
                response = self.session.request(method, url, **kwargs)
        except requests.RequestException as e:
            raise GitHubAPIError(f"GitHub request failed: {type(e).__name__}") from e

        if not response.ok:
            self.logger.debug("GitHub %s %s returned %d", method, endpoint, response.status_code)
            raise GitHubAPIError(f"GitHub API returned {response.status_code}",
                                 status_code=response.status_code)
        return response

    def get_repository(self, owner: str, repo: str) -> Repository:
        """Fetch repository metadata."""
        response = self._make_request('GET', f'repos/{owner}/{repo}')
        return Repository.from_api(response.json())

    def get_authenticated_user(self) -> Dict[str, Any]:
        """Return ``{"login", "name"}`` for the token's user."""
        data = self._make_request('GET', 'user').json()
        return {"login": data.get('login'), "name": data.get('name')}

    def create_pull_request(self, owner: str, repo: str, title: str, body: str,
                            head: str, base: str) -> PullRequest:
        """Open a pull request from ``head`` into ``base``."""
        response = self._make_request(
            'POST',
            f'repos/{owner}/{repo}/pulls',
            json={"title": title, "body": body, "head": head, "base": base},
        )
        data = response.json()
        return PullRequest(number=data['number'], url=data['url'], html_url=data['html_url'])
