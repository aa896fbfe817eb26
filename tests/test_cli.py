"""Tests for the workshop CLI, run against the in-memory gateway."""

import pytest
from click.testing import CliRunner

from workshop.cli import cli
from workshop.config import WorkshopSettings

from .conftest import MAIN, OTHER


@pytest.fixture
def invoke(gateway, tmp_path):
    """Run one CLI command; the cache file carries state between commands."""
    runner = CliRunner()
    cache = tmp_path / "cache.json"

    def run(*args, input=None):
        obj = {"gateway": gateway, "settings": WorkshopSettings(cache_file=str(cache))}
        return runner.invoke(cli, ["--cache", str(cache), *args], obj=obj, input=input)

    return run


class TestCli:

    def test_status_without_main_repository(self, invoke):
        result = invoke("status")
        assert result.exit_code == 0
        assert "No main repository loaded." in result.output

    def test_load_then_status(self, invoke):
        result = invoke("load", MAIN)
        assert result.exit_code == 0, result.output
        assert "Loaded me/workshop: 3 files" in result.output

        result = invoke("status")
        assert "Main repository: me/workshop" in result.output
        assert "_episodes/intro.md" in result.output
        assert "Changed: 0" in result.output

    def test_edit_and_save(self, invoke, gateway):
        invoke("load", MAIN)

        result = invoke("edit", "_episodes/intro.md", "-", input="---\ntitle: New\n---\nText\n")
        assert "_episodes/intro.md: changed" in result.output
        assert "modified: _episodes/intro.md" in invoke("status").output

        result = invoke("save")
        assert result.exit_code == 0
        assert "Saved 1, failed 0" in result.output
        assert gateway.text(f"{MAIN}/contents/_episodes/intro.md") == "---\ntitle: New\n---\nText\n"

    def test_search_fetch_and_install(self, invoke):
        invoke("load", MAIN)
        assert "them/source" in invoke("search").output
        invoke("fetch", OTHER)

        result = invoke("install", f"{OTHER}/contents/_episodes/pictures.md")

        assert result.exit_code == 0, result.output
        assert "Installed _episodes/pictures.md from them/source" in result.output
        assert "2 dependencies installed, 0 missing" in result.output

        result = invoke("delete", "_episodes/pictures.md")
        assert "Deleted: them/source/fig/plot.png" in result.output
        assert f"Deleted: {MAIN}/contents/_episodes/pictures.md" in result.output

    def test_duplicate_and_reorder(self, invoke):
        invoke("load", MAIN)

        result = invoke("duplicate", "_episodes/intro.md")
        assert "Duplicated to _episodes/intro_1.md (unsaved)" in result.output

        result = invoke("reorder", "1")
        assert "100000  _episodes/intro.md" in result.output
        assert "200000  _episodes/intro_1.md" in result.output

    def test_programmer_error_exits_nonzero(self, invoke):
        invoke("load", MAIN)
        result = invoke("install", f"{MAIN}/contents/_episodes/intro.md")
        assert result.exit_code == 1
        assert "Error: Cannot install File into its own Repository" in result.output

    def test_remote_error_exits_nonzero(self, invoke):
        result = invoke("load", "https://api.github.com/repos/me/missing")
        assert result.exit_code == 1
        assert "Error:" in result.output

    def test_build_status(self, invoke):
        invoke("load", MAIN)
        result = invoke("build-status")
        assert "Build: built" in result.output
