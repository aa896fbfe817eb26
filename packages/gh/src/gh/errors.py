"""GitHub API errors."""

from __future__ import annotations

from typing import Any

import httpx


class GitHubError(Exception):
    """Base exception for failed GitHub requests."""

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.message = message
        self.status = status

    @classmethod
    def from_body(cls, body: Any) -> "GitHubError":
        """Rebuild an error from a failed gateway response body."""
        if isinstance(body, dict):
            status = body.get("status")
            message = body.get("message") or "GitHub request failed"
        else:
            status = None
            message = str(body) if body else "GitHub request failed"
        return error_for_status(status, message)

    def to_body(self) -> dict[str, Any]:
        return {"message": self.message, "status": self.status}


class GitHubNotFoundError(GitHubError):
    """Raised when the requested resource does not exist."""


class GitHubConflictError(GitHubError):
    """
    Raised when a write is rejected by GitHub.

    Usually the sha precondition on a contents write no longer matches
    the file on the remote side (somebody else changed it).
    """


class GitHubRateLimitError(GitHubError):
    """Raised when the upstream service enforces a rate limit."""

    def __init__(
        self,
        message: str,
        status: int | None = None,
        retry_after: int | float | None = None,
    ):
        super().__init__(message, status)
        self.retry_after = retry_after


def error_for_status(status: int | None, message: str) -> GitHubError:
    """Map an HTTP status to the matching error type."""
    if status == 404:
        return GitHubNotFoundError(message, status)
    if status in (409, 412, 422):
        return GitHubConflictError(message, status)
    if status == 429:
        return GitHubRateLimitError(message, status)
    return GitHubError(message, status)


def from_http_error(error: httpx.HTTPError) -> GitHubError:
    """Translate an httpx error into a GitHubError carrying the API message."""
    if not isinstance(error, httpx.HTTPStatusError):
        return GitHubError(f"{type(error).__name__}: {error}")

    response = error.response
    try:
        detail = response.json().get("message", "")
    except ValueError:
        detail = response.text
    message = f"{response.reason_phrase} ({response.status_code}): {detail}".rstrip(": ")

    if response.status_code == 403 and response.headers.get("x-ratelimit-remaining") == "0":
        reset = response.headers.get("retry-after")
        return GitHubRateLimitError(
            message, response.status_code, float(reset) if reset else None
        )
    return error_for_status(response.status_code, message)
