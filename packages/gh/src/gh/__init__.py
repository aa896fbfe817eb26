"""GitHub API client utilities."""

from .client import GitHubClient, get_token
from .errors import (
    GitHubConflictError,
    GitHubError,
    GitHubNotFoundError,
    GitHubRateLimitError,
)
from .gateway import Gateway, GatewayResponse, GitHubGateway, Task
from .models import GitHubContent, GitHubOwner, GitHubRepository, PagesBuild

__all__ = [
    "GitHubClient",
    "GitHubContent",
    "GitHubOwner",
    "GitHubRepository",
    "PagesBuild",
    "GitHubError",
    "GitHubNotFoundError",
    "GitHubConflictError",
    "GitHubRateLimitError",
    "Gateway",
    "GatewayResponse",
    "GitHubGateway",
    "Task",
    "get_token",
]
