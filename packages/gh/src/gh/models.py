"""GitHub API data models."""

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class GitHubOwner(BaseModel):
    """Repository owner."""

    model_config = ConfigDict(extra="allow")

    login: str


class GitHubContent(BaseModel):
    """GitHub content item (file or directory)."""

    model_config = ConfigDict(extra="allow")

    name: str
    path: str
    sha: str
    size: int = 0
    url: str
    html_url: str | None = None
    download_url: str | None = None
    type: Literal["file", "dir", "symlink", "submodule"] = "file"
    content: str | None = None  # Base64 encoded content for files
    encoding: str | None = None  # Usually "base64" for files


class GitHubRepository(BaseModel):
    """Repository as returned by the repos and search endpoints."""

    model_config = ConfigDict(extra="allow")

    url: str
    name: str
    full_name: str | None = None
    owner: GitHubOwner
    topics: list[str] = Field(default_factory=list)
    description: str | None = None
    is_template: bool = False


class PagesBuild(BaseModel):
    """Latest GitHub Pages build."""

    model_config = ConfigDict(extra="allow")

    status: str
    created_at: str | None = None
    error: dict[str, Any] | None = None
