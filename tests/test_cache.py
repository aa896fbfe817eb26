"""Tests for the local store snapshot and settings."""

import datetime
import json

from workshop import codec
from workshop.cache import load_snapshot, save_snapshot
from workshop.config import WorkshopSettings
from workshop.ordering import rewrite_episode_orders
from workshop.store import WorkshopStore

from .conftest import MAIN


class TestSnapshot:

    def test_round_trip_keeps_edits_and_main_flag(self, loaded, tmp_path):
        intro = f"{MAIN}/contents/_episodes/intro.md"
        loaded.set_file_content(intro, "---\ntitle: Edited\n---\nNew\n")
        loaded.add_template(f"{MAIN}-template", "me", "template", ["ukrn-wb-template"])
        loaded.busy.set_busy(intro, True)
        loaded.add_error("boom")

        path = tmp_path / "cache" / "workshop.json"
        save_snapshot(loaded, path)
        restored = load_snapshot(path).restore(WorkshopStore())

        assert restored.main_repository().url == MAIN
        assert restored.file(intro).yaml == {"title": "Edited"}
        assert restored.file(intro).has_changed
        assert set(restored.files) == set(loaded.files)
        assert set(restored.templates) == {f"{MAIN}-template"}
        assert len(restored.busy) == 0
        assert restored.errors == []

    def test_front_matter_types_survive_reload(self, tmp_path):
        store = WorkshopStore()
        store.add_repository(MAIN, "me", "workshop", is_main=True)
        url = f"{MAIN}/contents/_episodes/dated.md"
        text = "---\nday: 1\norder: 5\ndate: 2024-01-01\n---\nBody\n"
        store.add_file(url, codec.encode(text), "s", "_episodes/dated.md")

        path = tmp_path / "workshop.json"
        save_snapshot(store, path)
        restored = load_snapshot(path).restore(WorkshopStore())

        assert restored.file(url).yaml["date"] == datetime.date(2024, 1, 1)
        assert restored.file(url).body == "Body\n"
        assert not restored.file(url).has_changed

        rewrite_episode_orders(restored, 1)
        content = restored.file(url).content
        assert "date: 2024-01-01\n" in content
        assert "order: 100000\n" in content

    def test_missing_file(self, tmp_path):
        snapshot = load_snapshot(tmp_path / "none.json")
        assert snapshot.files == {}

    def test_other_version_is_ignored(self, tmp_path):
        path = tmp_path / "old.json"
        path.write_text(json.dumps({"version": 0, "files": {"x": {}}}), encoding="utf-8")
        assert load_snapshot(path).files == {}


class TestSettings:

    def test_defaults(self):
        settings = WorkshopSettings()
        assert settings.order_step == 100000
        assert "open-data" in settings.topic_list
        assert settings.commit_message.format(path="a.md") == "a.md update by Workshop Builder"

    def test_from_env(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        monkeypatch.setenv("WORKSHOP_TOPIC_LIST", "open-data, astronomy,")
        monkeypatch.setenv("WORKSHOP_ORDER_STEP", "10")
        monkeypatch.setenv("WORKSHOP_DEPENDENCY_MATCHER", "assets")

        settings = WorkshopSettings.from_env()

        assert settings.topic_list == ["open-data", "astronomy"]
        assert settings.order_step == 10
        assert settings.dependency_matcher == "assets"
