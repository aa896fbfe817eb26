"""Tests for deleting files and their orphaned dependencies."""

import asyncio

import pytest

from gh import Task
from workshop import codec
from workshop.deletion import delete_file
from workshop.exceptions import WorkshopError

from .conftest import MAIN, OTHER

PICTURES = f"{MAIN}/contents/_episodes/pictures.md"
MORE = f"{MAIN}/contents/_episodes/more.md"
PLOT_COPY = f"{MAIN}/contents/installed/them/source/fig/plot.png"
LOGO_COPY = f"{MAIN}/contents/installed/them/source/img/logo.png"


@pytest.fixture
def installed(loaded, installer):
    """Two installed files from the same origin sharing /fig/plot.png."""
    loaded.add_file(
        f"{OTHER}/contents/_episodes/more.md",
        codec.encode("---\ntitle: More\n---\n![again](../fig/plot.png)\n"),
        "s",
        "_episodes/more.md",
    )

    async def install_both():
        await installer.install(f"{OTHER}/contents/_episodes/pictures.md")
        await installer.install(f"{OTHER}/contents/_episodes/more.md")

    asyncio.run(install_both())
    return loaded


def names(entries):
    return [e.file_name for e in entries]


class TestOrphanSafety:

    def test_shared_asset_survives_first_delete(self, installed, sync, gateway):
        report = asyncio.run(delete_file(sync, PICTURES))

        assert names(report.deleted) == ["them/source/img/logo.png", PICTURES]
        assert names(report.skipped) == ["them/source/fig/plot.png"]
        assert report.failed == []
        assert PLOT_COPY in gateway.files
        assert LOGO_COPY not in gateway.files
        assert PICTURES not in gateway.files
        assert not installed.has_file(PICTURES)

    def test_shared_asset_goes_with_last_user(self, installed, sync, gateway):
        asyncio.run(delete_file(sync, PICTURES))
        report = asyncio.run(delete_file(sync, MORE))

        assert names(report.deleted) == ["them/source/fig/plot.png", MORE]
        assert report.skipped == []
        assert PLOT_COPY not in gateway.files
        assert len(installed.busy) == 0

    def test_keep_dependencies(self, installed, sync, gateway):
        report = asyncio.run(delete_file(sync, PICTURES, delete_dependencies=False))

        assert names(report.deleted) == [PICTURES]
        assert LOGO_COPY in gateway.files
        assert len(gateway.calls_for(Task.DELETE_FILE)) == 1

    def test_file_without_dependencies(self, loaded, sync, gateway):
        url = f"{MAIN}/contents/_episodes/intro.md"
        sha = loaded.file(url).sha
        report = asyncio.run(delete_file(sync, url))

        assert names(report.deleted) == [url]
        [payload] = gateway.calls_for(Task.DELETE_FILE)
        assert payload["sha"] == sha


class TestPartialFailure:

    def test_failed_file_delete_records_deleted_dependencies(self, loaded, installer, sync, gateway):
        asyncio.run(installer.install(f"{OTHER}/contents/_episodes/pictures.md"))
        gateway.fail(Task.DELETE_FILE, PICTURES)

        report = asyncio.run(delete_file(sync, PICTURES))

        assert names(report.failed) == [PICTURES]
        assert names(report.deleted) == ["them/source/fig/plot.png", "them/source/img/logo.png"]
        file = loaded.file(PICTURES)
        assert file.yaml["dependencies"] == []
        assert file.yaml["missingDependencies"] == ["/fig/plot.png", "/img/logo.png"]
        assert file.yaml["originalRepository"] == "them/source"
        assert len(loaded.errors) == 1
        assert not loaded.is_busy(PICTURES)

    def test_failed_dependency_delete_stays_recorded(self, loaded, installer, sync, gateway):
        asyncio.run(installer.install(f"{OTHER}/contents/_episodes/pictures.md"))
        gateway.fail(Task.DELETE_FILE, LOGO_COPY)

        report = asyncio.run(delete_file(sync, PICTURES))

        assert names(report.failed) == ["them/source/img/logo.png"]
        assert names(report.deleted) == ["them/source/fig/plot.png", PICTURES]
        assert LOGO_COPY in gateway.files
        assert not loaded.has_file(PICTURES)


class TestRejections:

    def test_only_main_repository_files(self, loaded, sync):
        with pytest.raises(WorkshopError, match="main repository"):
            asyncio.run(delete_file(sync, f"{OTHER}/contents/_config.yml"))

    def test_busy_file_is_skipped(self, loaded, sync, gateway):
        url = f"{MAIN}/contents/notes.md"
        loaded.busy.set_busy(url, True)
        assert asyncio.run(delete_file(sync, url)) is None
        assert gateway.calls_for(Task.DELETE_FILE) == []
