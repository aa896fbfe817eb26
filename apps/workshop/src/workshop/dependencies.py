"""Find and rewrite the local assets a markdown file depends on.

A matcher pulls raw reference targets out of a body (``../fig/a.png``).
Targets are resolved against the file's directory into repository-root
paths (``/fig/a.png``), which is the form stored in ``dependencies`` and
``missingDependencies``.
"""

import logging
import posixpath
import re
from typing import Protocol

from markdown_it import MarkdownIt

from .models import File

logger = logging.getLogger(__name__)

INSTALLED_FILE = "{{% include installedFile.lqd path='{path}' %}}"

# https://stackoverflow.com/a/58345920
IMAGE_LINK = re.compile(
    r"\[?(!)(?P<alt>\[[^\]\[]*\[?[^\]\[]*\]?[^\]\[]*)\]\((?P<url>[^\s]+?)"
    r"(?:\s+([\"'])(?P<title>.*?)\4)?\)",
    re.MULTILINE,
)
EXTERNAL = re.compile(r"^(?:[a-zA-Z][a-zA-Z0-9+.\-]*:|//|#)")
DOCUMENT_EXTENSIONS = frozenset({"", ".md", ".markdown", ".html", ".htm"})


def is_local(target: str) -> bool:
    """Whether a reference target points inside the repository."""
    return bool(target) and not EXTERNAL.match(target)


def _unique(targets: list[str]) -> list[str]:
    seen: list[str] = []
    for target in targets:
        if is_local(target) and target not in seen:
            seen.append(target)
    return seen


class DependencyMatcher(Protocol):
    """Finds asset reference targets in a markdown body."""

    def find(self, body: str) -> list[str]: ...


class ImageLinkMatcher:
    """Markdown image syntax: ``![alt](target "title")``."""

    def find(self, body: str) -> list[str]:
        return _unique([m.group("url") for m in IMAGE_LINK.finditer(body)])


class MarkdownAssetMatcher:
    """
    Images plus hyperlinks to downloadable files, found with markdown-it.

    Links whose target looks like a page (``.md``, ``.html``, no extension)
    are not assets and are left alone.
    """

    def __init__(self, include_links: bool = True):
        self.md = MarkdownIt()
        self.include_links = include_links

    def find(self, body: str) -> list[str]:
        targets: list[str] = []
        for token in self.md.parse(body):
            for child in token.children or []:
                if child.type == "image":
                    targets.append(str(child.attrGet("src") or ""))
                elif self.include_links and child.type == "link_open":
                    href = str(child.attrGet("href") or "")
                    extension = posixpath.splitext(href.split("#")[0].split("?")[0])[1]
                    if extension.lower() not in DOCUMENT_EXTENSIONS:
                        targets.append(href)
        return _unique(targets)


MATCHERS: dict[str, type] = {
    "images": ImageLinkMatcher,
    "assets": MarkdownAssetMatcher,
}


def get_matcher(name: str) -> DependencyMatcher:
    try:
        return MATCHERS[name]()
    except KeyError:
        raise ValueError(
            f"Unknown dependency matcher {name!r}, expected one of: {', '.join(MATCHERS)}"
        ) from None


def resolve(target: str, file_path: str) -> str:
    """Resolve a reference target to a repository-root path starting with ``/``."""
    target = target.split("#")[0].split("?")[0]
    if target.startswith("/"):
        resolved = posixpath.normpath(target)
    else:
        directory = posixpath.dirname(file_path)
        resolved = posixpath.normpath(posixpath.join("/", directory, target))
    # normpath keeps a leading "//"
    return "/" + resolved.lstrip("/")


def find_dependencies(file: File, matcher: DependencyMatcher | None = None) -> list[str]:
    """Distinct dependency paths of a file, in order of first appearance."""
    matcher = matcher or ImageLinkMatcher()
    paths: list[str] = []
    for target in matcher.find(file.body):
        path = resolve(target, file.path)
        if path not in paths:
            paths.append(path)
    logger.debug("Dependencies of %s: %s", file.path, paths)
    return paths


def installed_reference(path: str) -> str:
    return INSTALLED_FILE.format(path=path)


def rewrite_installed_reference(
    body: str,
    path: str,
    file_path: str,
    matcher: DependencyMatcher | None = None,
) -> str:
    """
    Point every reference to ``path`` at its installed copy.

    Only targets found by the matcher are rewritten, and an installed
    reference is never itself a match, so repeated rewrites do not nest.
    """
    matcher = matcher or ImageLinkMatcher()
    replacement = installed_reference(path)
    for target in matcher.find(body):
        if resolve(target, file_path) != path:
            continue
        pattern = re.compile(r"\]\(" + re.escape(target) + r"(?=[\s)])")
        body = pattern.sub(lambda m: "](" + replacement, body)
    return body
