"""
Gitea API Client

Handles Gitea API authentication and communication.
Provides methods for PR metadata, raw diff retrieval and review posting.
"""

import logging
from typing import Dict, List, Optional

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..models.review import ReviewComment


logger = logging.getLogger(__name__)


class GiteaAPIError(Exception):
    """Gitea API related errors"""
    def __init__(self, message: str, status_code: Optional[int] = None, response_data: Optional[Dict] = None):
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data


class GiteaClient:
    """
    Gitea API client with authentication, retries and error handling.

    Provides methods for:
    - Pull request metadata retrieval
    - Unified diff retrieval
    - Review comment posting
    """

    def __init__(self, token: str, base_url: str, timeout_seconds: int = 30):
        """
        Initialize Gitea client.

        Args:
            token: Gitea access token
            base_url: Gitea API base URL (e.g. https://gitea.example.com/api/v1)
            timeout_seconds: Per-request timeout
        """
        if not token:
            raise ValueError("Gitea token is required")
        if not base_url:
            raise ValueError("Gitea API URL is required")

        self.token = token
        self.base_url = base_url.rstrip('/')
        self.timeout_seconds = timeout_seconds
        self.session = self._create_session()

    def _create_session(self) -> requests.Session:
        """Create requests session with retry strategy and authentication."""
        session = requests.Session()

        retry_strategy = Retry(
            total=3,
            backoff_factor=1,
            status_forcelist=[429, 500, 502, 503, 504],
            allowed_methods=["GET"],
        )
        adapter = HTTPAdapter(max_retries=retry_strategy)
        session.mount("http://", adapter)
        session.mount("https://", adapter)

        session.headers.update({
            'Authorization': f'token {self.token}',
            'Accept': 'application/json',
            'User-Agent': 'Gitea-PR-Reviewer/1.0'
        })

        return session

    def _make_request(self, method: str, endpoint: str, **kwargs) -> requests.Response:
        """
        Make authenticated request to Gitea API.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: API endpoint (without base URL)
            **kwargs: Additional arguments for requests

        Returns:
            Response object

        Raises:
            GiteaAPIError: For transport failures and non-2xx responses
        """
        url = f"{self.base_url}/{endpoint.lstrip('/')}"
        kwargs.setdefault('timeout', self.timeout_seconds)

        try:
            response = self.session.request(method, url, **kwargs)
        except requests.RequestException as e:
            logger.error(f"Request failed: {e}")
            raise GiteaAPIError(f"Request failed: {str(e)}")

        if not response.ok:
            try:
                error_data = response.json() if response.content else {}
            except ValueError:
                error_data = {'message': response.text}
            raise GiteaAPIError(
                f"Gitea API error: {response.status_code} - {error_data.get('message', 'Unknown error')}",
                status_code=response.status_code,
                response_data=error_data
            )

        return response

    def get_pull_request(self, owner: str, repo: str, pr_number: int) -> Dict:
        """
        Get pull request information.

        Args:
            owner: Repository owner
            repo: Repository name
            pr_number: Pull request number

        Returns:
            Pull request data (``title``, ``body``, ...)
        """
        logger.info(f"Fetching PR {owner}/{repo}#{pr_number}")

        response = self._make_request('GET', f'/repos/{owner}/{repo}/pulls/{pr_number}')
        return response.json()

    def get_pull_request_diff(self, owner: str, repo: str, pr_number: int) -> str:
        """
        Get the unified diff of a pull request.

        Args:
            owner: Repository owner
            repo: Repository name
            pr_number: Pull request number

        Returns:
            Raw diff text
        """
        logger.info(f"Fetching diff for {owner}/{repo}#{pr_number}")

        response = self._make_request(
            'GET',
            f'/repos/{owner}/{repo}/pulls/{pr_number}.diff',
            headers={'Accept': 'text/plain'},
        )
        return response.text

    def create_review(
        self,
        owner: str,
        repo: str,
        pr_number: int,
        comments: List[ReviewComment],
        body: str = "",
    ) -> Dict:
        """
        Post line comments as a single pull request review.

        Args:
            owner: Repository owner
            repo: Repository name
            pr_number: Pull request number
            comments: Line-anchored review comments
            body: Optional review summary

        Returns:
            Created review data
        """
        logger.info(f"Posting review with {len(comments)} comments to {owner}/{repo}#{pr_number}")

        payload = {
            'body': body,
            'event': 'COMMENT',
            'comments': [
                {
                    'path': comment.path,
                    'body': comment.body,
                    'new_position': comment.line,
                }
                for comment in comments
            ],
        }

        response = self._make_request('POST', f'/repos/{owner}/{repo}/pulls/{pr_number}/reviews', json=payload)
        return response.json()
