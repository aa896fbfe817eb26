"""GitHub contents URL helpers.

Every file URL is ``<repository url>/contents/<path>``, so a repository URL is
always a prefix of its files' URLs. ``file_in_repository`` is the one place
that relies on that.
"""

import re
from urllib.parse import urlsplit, urlunsplit

from gh import GitHubClient

from .exceptions import InvalidURLError

GITHUB_API = GitHubClient.BASE_URL
INSTALLED_DIR = "installed"

CONTENTS_URL = re.compile(
    r"^(?P<repository>.+?/repos/(?P<slug>[^/]+/[^/]+))/contents/(?P<path>.+)$"
)
SPLIT_EXTENSION = re.compile(r"^(?P<name>.+?)(?P<ext>\.[^./]*)?$")
NUMERIC_SUFFIX = re.compile(r"_(?P<n>[0-9]+)$")


def strip_ref(url: str) -> str:
    """Drop the query string (``?ref=branch``) and fragment from a URL."""
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))


def file_in_repository(file_url: str, repository_url: str) -> bool:
    """Whether a file URL belongs to a repository URL."""
    if not repository_url or not file_url.startswith(repository_url):
        return False
    rest = file_url[len(repository_url):]
    return rest == "" or rest[0] in "/?#"


def contents_url(repository_url: str, path: str) -> str:
    return f"{repository_url}/contents/{path.lstrip('/')}"


def repository_url(slug: str, api_base: str = GITHUB_API) -> str:
    return f"{api_base.rstrip('/')}/repos/{slug}"


def repository_slug(file_url: str, path: str | None = None) -> str:
    """
    Extract ``owner/name`` from a file URL.

    Raises:
        InvalidURLError: if the URL is not a contents URL (for ``path``)
    """
    match = CONTENTS_URL.match(file_url)
    if not match or (path is not None and match.group("path") != path):
        raise InvalidURLError(f"{file_url} does not appear to be a valid GitHub URL")
    return match.group("slug")


def installed_path(slug: str, dependency: str) -> str:
    """Repository path of an installed copy: ``installed/<owner>/<name>/<path>``."""
    return f"{INSTALLED_DIR}/{slug}/{dependency.lstrip('/')}"


def split_extension(path: str) -> tuple[str, str]:
    match = SPLIT_EXTENSION.match(path)
    return match.group("name"), match.group("ext") or ""


def increment_suffix(path: str) -> str:
    """``a/b.md`` -> ``a/b_1.md`` -> ``a/b_2.md``."""
    name, ext = split_extension(path)
    match = NUMERIC_SUFFIX.search(name)
    if match:
        name = f"{name[:match.start()]}_{int(match.group('n')) + 1}"
    else:
        name = f"{name}_1"
    return f"{name}{ext}"


def numbered_path(path: str, number: int) -> str:
    """``a/b.md`` with 2 -> ``a/b_2.md``."""
    name, ext = split_extension(path)
    return f"{name}_{number}{ext}"
