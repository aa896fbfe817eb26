"""Tests for contents URL helpers."""

import pytest

from workshop.exceptions import InvalidURLError
from workshop.urls import (
    contents_url,
    file_in_repository,
    increment_suffix,
    installed_path,
    repository_slug,
    repository_url,
    strip_ref,
)

REPO = "https://api.github.com/repos/them/source"


def test_strip_ref():
    assert strip_ref(f"{REPO}/contents/a.md?ref=gh-pages") == f"{REPO}/contents/a.md"


@pytest.mark.parametrize(
    "file_url, expected",
    [
        (f"{REPO}/contents/a.md", True),
        (f"{REPO}?ref=main", True),
        (REPO, True),
        (f"{REPO}-fork/contents/a.md", False),
        ("https://api.github.com/repos/them/other/contents/a.md", False),
    ],
)
def test_file_in_repository(file_url, expected):
    assert file_in_repository(file_url, REPO) is expected


def test_repository_slug():
    assert repository_slug(f"{REPO}/contents/_episodes/a.md", "_episodes/a.md") == "them/source"
    assert repository_slug(f"{REPO}/contents/_episodes/a.md") == "them/source"


@pytest.mark.parametrize(
    "url, path",
    [
        ("https://example.org/them/source/a.md", None),
        (f"{REPO}/contents/_episodes/a.md", "other.md"),
    ],
)
def test_repository_slug_rejects_unexpected_urls(url, path):
    with pytest.raises(InvalidURLError, match="valid GitHub URL"):
        repository_slug(url, path)


def test_installed_path():
    assert installed_path("them/source", "/fig/a.png") == "installed/them/source/fig/a.png"


def test_round_trip_urls():
    assert contents_url(repository_url("them/source"), "/fig/a.png") == f"{REPO}/contents/fig/a.png"


@pytest.mark.parametrize(
    "path, expected",
    [
        ("a/b.md", "a/b_1.md"),
        ("a/b_1.md", "a/b_2.md"),
        ("a/b_9.md", "a/b_10.md"),
        ("a.dir/README", "a.dir/README_1"),
        ("a/b.tar.gz", "a/b.tar_1.gz"),
    ],
)
def test_increment_suffix(path, expected):
    assert increment_suffix(path) == expected
