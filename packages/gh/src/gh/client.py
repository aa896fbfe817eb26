"""Async client for the GitHub REST endpoints the workshop builder uses."""

import logging
import os
import subprocess
from typing import Any

import httpx
from tenacity import (
    before_sleep_log,
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)

from .errors import GitHubNotFoundError, from_http_error
from .models import GitHubContent, GitHubRepository, PagesBuild

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3
DEFAULT_MIN_WAIT = 1
DEFAULT_MAX_WAIT = 10

# Transport failures worth another attempt; 5xx responses are checked separately.
TRANSIENT_ERRORS = (
    httpx.TimeoutException,
    httpx.NetworkError,
)

PREVIEW_ACCEPT = "application/vnd.github.mercy-preview+json"


def get_token_from_gh_cli() -> str | None:
    """Ask an authenticated ``gh`` install for its token, if there is one."""
    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
    except (subprocess.TimeoutExpired, FileNotFoundError) as e:
        logger.debug("gh cli unavailable: %s", e)
        return None
    token = result.stdout.strip()
    if result.returncode == 0 and token:
        logger.info("Token taken from gh cli")
        return token
    return None


def get_token(token: str | None = None, use_gh_cli: bool = False) -> str | None:
    """
    Resolve the token to authenticate with.

    An explicit token wins, then GH_TOKEN or GITHUB_TOKEN from the
    environment, then ``gh auth token`` when the caller allows it.
    """
    if token:
        logger.debug("Token passed explicitly")
        return token

    for name in ("GH_TOKEN", "GITHUB_TOKEN"):
        if os.environ.get(name):
            logger.info("Token taken from %s", name)
            return os.environ[name]

    return get_token_from_gh_cli() if use_gh_cli else None


def _is_retryable(error: BaseException) -> bool:
    if isinstance(error, TRANSIENT_ERRORS):
        return True
    return (
        isinstance(error, httpx.HTTPStatusError)
        and error.response.status_code >= 500
    )


def create_retry_decorator(max_retries: int = DEFAULT_MAX_RETRIES):
    """Build the tenacity policy shared by every request."""
    return retry(
        retry=retry_if_exception(_is_retryable),
        stop=stop_after_attempt(max_retries),
        wait=wait_exponential(multiplier=1, min=DEFAULT_MIN_WAIT, max=DEFAULT_MAX_WAIT),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )


class GitHubClient:
    """Async GitHub REST API client with retry support."""

    BASE_URL = "https://api.github.com"

    def __init__(
        self,
        token: str | None = None,
        base_url: str | None = None,
        timeout: float = 30.0,
        use_gh_cli: bool = False,
        max_retries: int = DEFAULT_MAX_RETRIES,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        """
        Args:
            token: personal access token; falls back to the environment
            base_url: API root, github.com unless overridden
            timeout: per-request timeout in seconds
            use_gh_cli: allow reading the token from ``gh auth token``
            max_retries: attempts per request before giving up
            transport: replacement httpx transport, e.g. a MockTransport
        """
        self.base_url = (base_url or self.BASE_URL).rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.transport = transport
        self.headers = {
            "Accept": "application/vnd.github.v3+json",
            "User-Agent": "workshop-builder-github-client",
        }

        resolved = get_token(token, use_gh_cli=use_gh_cli)
        if resolved:
            self.headers["Authorization"] = f"token {resolved}"
        else:
            logger.warning("No GitHub token found, requests are rate limited")
        logger.info("GitHub client ready, base_url=%s, max_retries=%d", self.base_url, max_retries)

    def _url(self, endpoint: str) -> str:
        if endpoint.startswith(("http://", "https://")):
            return endpoint
        return f"{self.base_url}{endpoint}"

    async def _request(
        self,
        method: str,
        endpoint: str,
        accept: str | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        """Make HTTP request to GitHub API with retry."""
        url = self._url(endpoint)
        headers = dict(self.headers)
        if accept:
            headers["Accept"] = accept

        @create_retry_decorator(self.max_retries)
        async def do_request() -> httpx.Response:
            logger.debug("Request: %s %s", method, url)
            async with httpx.AsyncClient(
                timeout=self.timeout, headers=headers, transport=self.transport
            ) as client:
                response = await client.request(method, url, **kwargs)
                logger.debug(
                    "Response: %s %s (status=%d)",
                    method,
                    url,
                    response.status_code,
                )
                if response.status_code >= 500:
                    logger.warning("Server error %d, will retry", response.status_code)
                response.raise_for_status()
                return response

        try:
            return await do_request()
        except httpx.HTTPError as e:
            raise from_http_error(e) from e

    async def get_item(self, url: str) -> dict[str, Any]:
        """Fetch any API resource (file, directory, repository) by URL."""
        logger.info("Pulling item: %s", url)
        response = await self._request("GET", url, accept=PREVIEW_ACCEPT)
        return response.json()

    async def list_directory(self, url: str) -> list[GitHubContent]:
        """
        List a contents directory.

        A missing directory is an empty listing: not every repository has
        every directory.
        """
        logger.info("Listing directory: %s", url)
        try:
            response = await self._request("GET", url)
        except GitHubNotFoundError:
            logger.debug("Directory not found, treating as empty: %s", url)
            return []
        data = response.json()

        # Handle single file response
        if isinstance(data, dict):
            logger.debug("Single file response: %s", data.get("name"))
            return [GitHubContent(**data)]

        logger.debug("Directory listing: %d items", len(data))
        return [GitHubContent(**item) for item in data]

    async def search_repositories(self, query: str) -> list[GitHubRepository]:
        """Search repositories with a GitHub search query string."""
        logger.info("Searching repositories: q=%s", query)
        response = await self._request(
            "GET", "/search/repositories", accept=PREVIEW_ACCEPT, params={"q": query}
        )
        items = response.json().get("items", [])
        logger.debug("Search returned %d repositories", len(items))
        return [GitHubRepository(**item) for item in items]

    async def generate_repository(self, template: str, name: str) -> GitHubRepository:
        """Create a public repository for the authenticated user from a template."""
        logger.info("Generating repository %s from template %s", name, template)
        response = await self._request(
            "POST",
            f"/repos/{template}/generate",
            accept="application/vnd.github.baptiste-preview+json",
            json={"name": name, "private": False},
        )
        return GitHubRepository(**response.json())

    async def put_file(
        self, url: str, content: str, message: str, sha: str | None = None
    ) -> dict[str, Any]:
        """
        Create or replace a file and return its fresh contents record.

        Args:
            url: Contents API URL of the file
            content: Base64 encoded file content
            message: Commit message
            sha: Blob sha of the file being replaced (None for new files)

        Returns:
            The file as re-fetched after the commit
        """
        payload: dict[str, Any] = {"content": content, "message": message}
        if sha:
            payload["sha"] = sha
        logger.info("Writing file: %s (sha=%s)", url, sha)
        response = await self._request("PUT", url, accept=PREVIEW_ACCEPT, json=payload)
        return await self.get_item(response.json()["content"]["url"])

    async def delete_file(self, url: str, sha: str, message: str) -> None:
        """Delete a file; GitHub requires the current blob sha."""
        logger.info("Deleting file: %s (sha=%s)", url, sha)
        await self._request("DELETE", url, json={"message": message, "sha": sha})

    async def get_topics(self, repository_url: str) -> list[str]:
        """Get the topic tags of a repository."""
        response = await self._request(
            "GET", f"{repository_url}/topics", accept=PREVIEW_ACCEPT
        )
        return response.json().get("names", [])

    async def replace_topics(self, repository_url: str, names: list[str]) -> list[str]:
        """Replace the topic tags of a repository."""
        logger.info("Setting topics on %s: %s", repository_url, ", ".join(names))
        response = await self._request(
            "PUT", f"{repository_url}/topics", accept=PREVIEW_ACCEPT, json={"names": names}
        )
        return response.json().get("names", [])

    async def get_latest_pages_build(self, repository_url: str) -> PagesBuild:
        """Get the most recent GitHub Pages build."""
        logger.debug("Fetching latest pages build: %s", repository_url)
        response = await self._request("GET", f"{repository_url}/pages/builds/latest")
        return PagesBuild(**response.json())
