"""Task gateway over the GitHub client.

Callers name a task and hand over a JSON-like payload; the gateway performs
the GitHub calls and answers with ``GatewayResponse(ok, body)``. A failed
call answers ``ok=False`` with ``{"message", "status"}`` as the body.
"""

import logging
from enum import Enum
from typing import Any, Awaitable, Callable, Protocol

from pydantic import BaseModel

from .client import GitHubClient
from .errors import GitHubError, GitHubNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_SEARCH_TOPIC = "ukrn-open-research"
DEFAULT_WORKSHOP_TOPICS = ("ukrn-open-research", "ukrn-workshop")
DEFAULT_COMMIT_MESSAGE = "{path} update by Workshop Builder"


class Task(str, Enum):
    """Tasks understood by the gateway."""

    PULL_ITEM = "pull_item"
    LIST_DIRECTORY = "list_directory"
    FIND_REPOSITORIES = "find_repositories"
    CREATE_REPOSITORY = "create_repository"
    PUSH_FILE = "push_file"
    DELETE_FILE = "delete_file"
    COPY_FILE = "copy_file"
    GET_TOPICS = "get_topics"
    SET_TOPICS = "set_topics"
    GET_LAST_BUILD = "get_last_build"


class GatewayResponse(BaseModel):
    """Uniform gateway answer."""

    ok: bool
    body: Any = None


class Gateway(Protocol):
    """Anything that can run a named remote task."""

    async def request(self, task: str, payload: dict[str, Any]) -> GatewayResponse: ...


Handler = Callable[[dict[str, Any]], Awaitable[Any]]


class GitHubGateway:
    """Gateway backed by the GitHub REST API."""

    def __init__(
        self,
        client: GitHubClient,
        search_topic: str = DEFAULT_SEARCH_TOPIC,
        workshop_topics: tuple[str, ...] = DEFAULT_WORKSHOP_TOPICS,
        commit_message: str = DEFAULT_COMMIT_MESSAGE,
    ):
        self.client = client
        self.search_topic = search_topic
        self.workshop_topics = list(workshop_topics)
        self.commit_message = commit_message
        self._handlers: dict[str, Handler] = {
            Task.PULL_ITEM.value: self.pull_item,
            Task.LIST_DIRECTORY.value: self.list_directory,
            Task.FIND_REPOSITORIES.value: self.find_repositories,
            Task.CREATE_REPOSITORY.value: self.create_repository,
            Task.PUSH_FILE.value: self.push_file,
            Task.DELETE_FILE.value: self.delete_file,
            Task.COPY_FILE.value: self.copy_file,
            Task.GET_TOPICS.value: self.get_topics,
            Task.SET_TOPICS.value: self.set_topics,
            Task.GET_LAST_BUILD.value: self.get_last_build,
        }

    async def request(self, task: str, payload: dict[str, Any]) -> GatewayResponse:
        """Run a named task."""
        task = task.value if isinstance(task, Task) else task
        handler = self._handlers.get(task)
        if handler is None:
            logger.error("Unrecognised gateway task requested: %s", task)
            return GatewayResponse(
                ok=False, body={"message": f"Unrecognised task: {task}", "status": None}
            )
        logger.info("Gateway task: %s", task)
        try:
            body = await handler(payload)
        except GitHubError as e:
            logger.error("Gateway task %s failed: %s", task, e)
            return GatewayResponse(ok=False, body=e.to_body())
        return GatewayResponse(ok=True, body=body)

    def _message(self, path: str) -> str:
        return self.commit_message.format(path=path)

    async def pull_item(self, payload: dict[str, Any]) -> Any:
        return await self.client.get_item(payload["url"])

    async def list_directory(self, payload: dict[str, Any]) -> list[dict[str, Any]]:
        items = await self.client.list_directory(payload["url"])
        return [item.model_dump() for item in items]

    async def find_repositories(self, payload: dict[str, Any]) -> list[dict[str, Any]]:
        terms = ["fork:true", f"topic:{payload.get('base_topic') or self.search_topic}"]
        if payload.get("owner"):
            terms.append(f"user:{payload['owner']}")
        terms.extend(f"topic:{t}" for t in payload.get("topics") or [])
        repositories = await self.client.search_repositories(" ".join(terms))
        return [r.model_dump() for r in repositories]

    async def create_repository(self, payload: dict[str, Any]) -> dict[str, Any]:
        repository = await self.client.generate_repository(payload["template"], payload["name"])
        repository.topics = await self.client.replace_topics(
            repository.url, self.workshop_topics
        )
        return repository.model_dump()

    async def push_file(self, payload: dict[str, Any]) -> dict[str, Any]:
        return await self.client.put_file(
            payload["url"],
            payload["content"],
            payload.get("message") or self._message(payload.get("path", "")),
            sha=payload.get("sha"),
        )

    async def delete_file(self, payload: dict[str, Any]) -> dict[str, Any]:
        url = payload["url"]
        sha = payload.get("sha")
        if not sha:
            current = await self.client.get_item(url)
            sha = current["sha"]
        message = payload.get("message") or f"Remove {payload.get('path') or url}"
        await self.client.delete_file(url, sha, message)
        return {"url": url}

    async def copy_file(self, payload: dict[str, Any]) -> dict[str, Any]:
        """
        Copy a file to ``new_url``.

        With ``return_existing`` an existing target is returned untouched,
        otherwise it is overwritten.
        """
        new_url = payload["new_url"]
        existing_sha = None
        try:
            existing = await self.client.get_item(new_url)
        except GitHubNotFoundError:
            existing = None
        if existing is not None:
            if payload.get("return_existing"):
                logger.debug("Copy target already exists: %s", new_url)
                return existing
            existing_sha = existing.get("sha")

        source = await self.client.get_item(payload["url"])
        content = "".join((source.get("content") or "").split())
        return await self.client.put_file(
            new_url, content, self._message(source.get("path", new_url)), sha=existing_sha
        )

    async def get_topics(self, payload: dict[str, Any]) -> list[str]:
        return await self.client.get_topics(payload["url"])

    async def set_topics(self, payload: dict[str, Any]) -> list[str]:
        """
        Apply ``{topic: enabled}`` switches.

        Topics already on the repository but absent from the switches are
        kept, so customised topics are never dropped.
        """
        switches = dict(payload["topics"])
        for topic in await self.client.get_topics(payload["url"]):
            switches.setdefault(topic, True)
        names = [t for t, enabled in switches.items() if enabled]
        await self.client.replace_topics(payload["url"], names)
        return await self.client.get_topics(payload["url"])

    async def get_last_build(self, payload: dict[str, Any]) -> dict[str, Any]:
        build = await self.client.get_latest_pages_build(payload["url"])
        return build.model_dump()
