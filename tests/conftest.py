"""
Shared pytest fixtures.

``FakeGateway`` keeps remote repositories and files in memory and answers
gateway tasks the way ``gh.GitHubGateway`` does, so the store operations run
end to end without the network. Every request yields to the event loop once,
like a real remote call would.
"""

import asyncio
import hashlib
from typing import Any

import pytest

from gh import GatewayResponse, Task
from workshop import codec
from workshop.config import WorkshopSettings
from workshop.installer import Installer
from workshop.store import WorkshopStore
from workshop.sync import WorkshopSync

API = "https://api.github.com"
MAIN = f"{API}/repos/me/workshop"
OTHER = f"{API}/repos/them/source"

CONFIG = "---\nworkshop_id: ws1\ntitle: Test workshop\ntopic: open-data\n---\n"
EPISODE = "---\ntitle: Intro\nday: 1\norder: {order}\n---\nWelcome.\n"
FOREIGN_EPISODE = (
    "---\ntitle: Pictures\nday: 1\norder: 1\n---\n"
    "![plot](../fig/plot.png)\n"
    "![logo](../img/logo.png \"Logo\")\n"
    "![remote](https://example.org/remote.png)\n"
)


def _sha(text: str) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()


class FakeGateway:
    """In-memory gateway recording every request."""

    def __init__(self) -> None:
        self.repositories: dict[str, dict[str, Any]] = {}
        self.files: dict[str, dict[str, Any]] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.failures: dict[tuple[str, str], dict[str, Any]] = {}

    # ============ Setup ============

    def add_repository(self, url: str, topics: tuple[str, ...] = ()) -> dict[str, Any]:
        owner, name = url.rsplit("/", 2)[-2:]
        repository = {
            "url": url,
            "name": name,
            "full_name": f"{owner}/{name}",
            "owner": {"login": owner},
            "topics": list(topics),
            "description": f"{name} description",
        }
        self.repositories[url] = repository
        return repository

    def add_file(self, repository_url: str, path: str, text: str) -> dict[str, Any]:
        url = f"{repository_url}/contents/{path}"
        record = {
            "url": url,
            "path": path,
            "name": path.rsplit("/", 1)[-1],
            "type": "file",
            "sha": _sha(text),
            "content": codec.encode(text),
        }
        self.files[url] = record
        return record

    def fail(self, task: Task, url: str, status: int = 500, message: str = "Server Error") -> None:
        """Make every ``task`` request for ``url`` fail."""
        self.failures[(task.value, url)] = {"message": message, "status": status}

    def calls_for(self, task: Task) -> list[dict[str, Any]]:
        return [payload for name, payload in self.calls if name == task.value]

    def text(self, url: str) -> str:
        return codec.decode(self.files[url]["content"])

    # ============ Gateway ============

    async def request(self, task: str, payload: dict[str, Any]) -> GatewayResponse:
        task = task.value if isinstance(task, Task) else task
        self.calls.append((task, payload))
        await asyncio.sleep(0)

        failure = self.failures.get((task, payload.get("url", "")))
        if failure is not None:
            return GatewayResponse(ok=False, body=failure)
        handler = getattr(self, f"_{task}", None)
        if handler is None:
            return GatewayResponse(ok=False, body={"message": f"Unrecognised task: {task}"})
        try:
            return GatewayResponse(ok=True, body=handler(payload))
        except KeyError as e:
            return GatewayResponse(ok=False, body={"message": f"Not Found: {e}", "status": 404})
        except ValueError as e:
            return GatewayResponse(ok=False, body={"message": str(e), "status": 409})

    def _pull_item(self, payload: dict[str, Any]) -> dict[str, Any]:
        url = payload["url"]
        if url in self.repositories:
            return dict(self.repositories[url])
        return dict(self.files[url])

    def _list_directory(self, payload: dict[str, Any]) -> list[dict[str, Any]]:
        prefix = payload["url"].rstrip("/") + "/"
        return [
            {k: v for k, v in f.items() if k != "content"}
            for url, f in self.files.items()
            if url.startswith(prefix) and "/" not in url[len(prefix):]
        ]

    def _find_repositories(self, payload: dict[str, Any]) -> list[dict[str, Any]]:
        wanted = set(payload.get("topics") or [])
        owner = payload.get("owner")
        return [
            dict(r)
            for r in self.repositories.values()
            if wanted <= set(r["topics"]) and (not owner or r["owner"]["login"] == owner)
        ]

    def _create_repository(self, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{API}/repos/me/{payload['name']}"
        if url in self.repositories:
            raise ValueError("name already exists on this account")
        repository = self.add_repository(url, ("ukrn-open-research", "ukrn-workshop"))
        self.add_file(url, "_config.yml", CONFIG)
        return dict(repository)

    def _push_file(self, payload: dict[str, Any]) -> dict[str, Any]:
        url = payload["url"]
        existing = self.files.get(url)
        if existing is not None and existing["sha"] != payload.get("sha"):
            raise ValueError(f"{payload['path']} does not match {payload.get('sha')}")
        repository_url = url.split("/contents/")[0]
        return dict(self.add_file(repository_url, payload["path"], codec.decode(payload["content"])))

    def _delete_file(self, payload: dict[str, Any]) -> dict[str, Any]:
        url = payload["url"]
        existing = self.files[url]
        if payload.get("sha") and payload["sha"] != existing["sha"]:
            raise ValueError(f"{url} does not match {payload['sha']}")
        del self.files[url]
        return {"url": url}

    def _copy_file(self, payload: dict[str, Any]) -> dict[str, Any]:
        new_url = payload["new_url"]
        if new_url in self.files and payload.get("return_existing"):
            return dict(self.files[new_url])
        source = self.files[payload["url"]]
        repository_url, path = new_url.split("/contents/")
        return dict(self.add_file(repository_url, path, codec.decode(source["content"])))

    def _get_topics(self, payload: dict[str, Any]) -> list[str]:
        return list(self.repositories[payload["url"]]["topics"])

    def _set_topics(self, payload: dict[str, Any]) -> list[str]:
        repository = self.repositories[payload["url"]]
        switches = dict(payload["topics"])
        for topic in repository["topics"]:
            switches.setdefault(topic, True)
        repository["topics"] = [t for t, enabled in switches.items() if enabled]
        return list(repository["topics"])

    def _get_last_build(self, payload: dict[str, Any]) -> dict[str, Any]:
        if payload["url"] not in self.repositories:
            raise KeyError(payload["url"])
        return {"status": "built", "created_at": "2024-01-01T00:00:00Z", "error": {"message": None}}


# ============ Fixtures ============

@pytest.fixture
def gateway():
    """Remote side with a main workshop and a foreign repository to install from."""
    fake = FakeGateway()
    fake.add_repository(MAIN, ("ukrn-open-research", "ukrn-workshop"))
    fake.add_file(MAIN, "_config.yml", CONFIG)
    fake.add_file(MAIN, "_episodes/intro.md", EPISODE.format(order=100000))
    fake.add_file(MAIN, "notes.md", "Some notes\n")

    fake.add_repository(OTHER, ("ukrn-open-research", "ukrn-workshop", "open-data"))
    fake.add_file(OTHER, "_config.yml", CONFIG)
    fake.add_file(OTHER, "_episodes/pictures.md", FOREIGN_EPISODE)
    fake.add_file(OTHER, "fig/plot.png", "PNG plot")
    fake.add_file(OTHER, "img/logo.png", "PNG logo")
    return fake


@pytest.fixture
def settings():
    return WorkshopSettings()


@pytest.fixture
def store(settings):
    return WorkshopStore(topic_list=settings.topic_list)


@pytest.fixture
def sync(store, gateway, settings):
    return WorkshopSync(store, gateway, settings)


@pytest.fixture
def installer(sync):
    return Installer(sync)


@pytest.fixture
def loaded(sync, store):
    """Store with the main repository and the foreign repository fetched."""

    async def load():
        await sync.load_repository(MAIN)
        await sync.find_repository_files(MAIN)
        store.add_repository(OTHER, "them", "source")
        await sync.find_repository_files(OTHER)

    asyncio.run(load())
    return store
