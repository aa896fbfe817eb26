"""Remote operations that keep the store in step with GitHub.

Every operation that writes to a remote resource holds that resource's busy
flag while it runs. If the flag is already held the operation returns None
without calling the gateway. Gateway failures are recorded on the store and
also answered with None; nothing here retries on its own.
"""

import logging
from typing import Any, Iterable

from gh import Gateway, GitHubError, GitHubNotFoundError, Task

from . import codec
from .concurrency import settle_all
from .config import WorkshopSettings
from .dependencies import DependencyMatcher, get_matcher
from .exceptions import (
    InvalidContentError,
    MainRepositoryError,
    UnknownTopicError,
    WorkshopError,
)
from .models import BuildStatus, File, Repository, RepositoryView, Template
from .store import CONFIG_PATH, NOTES_PATH, UNKNOWN_TOPIC, WorkshopStore, topic_intro_path
from .urls import contents_url, strip_ref

logger = logging.getLogger(__name__)

EPISODE_DIRS = ("_episodes", "_episodes_rmd")

CREATE_REPOSITORY_FLAG = "createRepository"
FIND_REPOSITORIES_FLAG = "findRepositories"
FIND_TEMPLATES_FLAG = "findTemplates"


class WorkshopSync:
    """Store operations that talk to the gateway."""

    def __init__(
        self,
        store: WorkshopStore,
        gateway: Gateway,
        settings: WorkshopSettings | None = None,
        matcher: DependencyMatcher | None = None,
    ):
        self.store = store
        self.gateway = gateway
        self.settings = settings or WorkshopSettings()
        self.matcher = matcher or get_matcher(self.settings.dependency_matcher)
        if not self.store.topic_list:
            self.store.topic_list = list(self.settings.topic_list)

    async def request(self, task: Task, payload: dict[str, Any]) -> Any:
        """
        Run a gateway task and return its body.

        Raises:
            GitHubError: if the gateway reports a failure
        """
        response = await self.gateway.request(task.value, payload)
        if not response.ok:
            raise GitHubError.from_body(response.body)
        return response.body

    def _require_main(self, action: str) -> Repository:
        main = self.store.main_repository()
        if main is None:
            raise MainRepositoryError(f"Cannot {action} without a main repository")
        return main

    def _add_repository_json(self, data: dict[str, Any], is_main: bool = False) -> Repository:
        return self.store.add_repository(
            url=data["url"],
            owner_login=(data.get("owner") or {}).get("login", ""),
            name=data.get("name", ""),
            topics=data.get("topics") or [],
            is_main=is_main,
        )

    def _add_file_json(self, data: dict[str, Any], overwrite: bool = True) -> File:
        return self.store.add_file(
            url=data["url"],
            content=data.get("content") or "",
            sha=data.get("sha"),
            path=data["path"],
            overwrite=overwrite,
        )

    # ============ Files ============

    async def push_file(self, url: str) -> File | None:
        """
        Write a file to GitHub and replace the local copy with the pushed version.

        The stored sha is sent as the write precondition, so a file changed
        on GitHub since it was pulled is rejected and recorded as an error.
        """
        file = self.store.file(url)
        with self.store.busy.guard(url) as acquired:
            if not acquired:
                return None
            try:
                pushed = await self.request(
                    Task.PUSH_FILE,
                    {
                        "url": file.url,
                        "path": file.path,
                        "content": codec.encode(file.content),
                        "sha": file.sha,
                        "message": self.settings.commit_message.format(path=file.path),
                    },
                )
            except GitHubError as e:
                self.store.add_error(e)
                return None
            file = self._add_file_json(pushed, overwrite=True)
            logger.info("Pushed %s (sha=%s)", file.path, file.sha)

        if file.path == CONFIG_PATH:
            await self._sync_config_topic(file)
        return file

    async def _sync_config_topic(self, config: File) -> None:
        main = self.store.main_repository()
        topic = config.yaml.get("topic")
        if main is None or not topic or topic in main.topics:
            return
        if topic not in self.store.topic_list:
            logger.warning("Config topic %s is not a known topic, not tagging", topic)
            return
        await self.set_topics([topic])

    async def pull_url(self, url: str) -> Any | None:
        """Fetch an item from GitHub and return it as-is."""
        with self.store.busy.guard(url) as acquired:
            if not acquired:
                return None
            try:
                return await self.request(Task.PULL_ITEM, {"url": url})
            except GitHubError as e:
                self.store.add_error(e)
                return None

    async def upload_asset(self, path: str, content: str) -> bool:
        """
        Upload Base64 content to ``path`` in the main repository, replacing any existing file.

        Returns:
            True on success, False on failure
        """
        if not codec.is_base64(content):
            raise InvalidContentError("Asset content must be a valid Base64-encoded string")
        main = self._require_main("upload an asset")
        path = path.lstrip("/")
        url = contents_url(main.url, path)
        with self.store.busy.guard(url) as acquired:
            if not acquired:
                return False
            sha = None
            try:
                existing = await self.request(Task.PULL_ITEM, {"url": url})
                sha = existing.get("sha")
            except GitHubNotFoundError:
                logger.debug("No existing asset at %s", path)
            except GitHubError as e:
                logger.warning("Could not read existing asset %s: %s", path, e)
            try:
                await self.request(
                    Task.PUSH_FILE,
                    {
                        "url": url,
                        "path": path,
                        "content": content,
                        "sha": sha,
                        "message": self.settings.commit_message.format(path=path),
                    },
                )
            except GitHubError as e:
                self.store.add_error(e)
                return False
        logger.info("Uploaded asset %s", path)
        return True

    async def save_repository_changes(self) -> dict[str, int]:
        """Push every changed file in the main repository."""
        main = self.store.repository()
        if main is None:
            raise MainRepositoryError("Cannot save changes without a main repository")
        changed = [f.url for f in main.files if f.has_changed]
        logger.info("Saving %d changed files", len(changed))
        settled = await settle_all((url, self.push_file(url)) for url in changed)
        for url, error in settled.failures.items():
            self.store.add_error(error)
        failures = len(settled.failures) + sum(
            1 for pushed in settled.successes.values() if pushed is None
        )
        return {"successes": len(changed) - failures, "failures": failures}

    # ============ Repositories ============

    async def load_repository(self, url: str) -> RepositoryView | None:
        """Fetch a repository from GitHub and make it the main repository."""
        url = strip_ref(url)
        with self.store.busy.guard(url) as acquired:
            if not acquired:
                return None
            try:
                data = await self.request(Task.PULL_ITEM, {"url": url})
            except GitHubError as e:
                self.store.add_error(e)
                return None
            repository = self._add_repository_json(data)
            self.store.set_main_repository(repository.url)
        return self.store.repository(repository.url)

    async def create_repository(self, name: str, template: str) -> RepositoryView | None:
        """Generate a new main repository from a template and pull its files."""
        if not name:
            raise WorkshopError("Cannot create a repository without a name")
        if not template:
            raise WorkshopError("Cannot create a repository without a template")
        if self.store.main_repository() is not None:
            raise MainRepositoryError(
                "Cannot have multiple main repositories. "
                "Please delete the existing main repository before adding another."
            )
        with self.store.busy.guard(CREATE_REPOSITORY_FLAG) as acquired:
            if not acquired:
                return None
            try:
                data = await self.request(
                    Task.CREATE_REPOSITORY, {"name": name, "template": template}
                )
            except GitHubError as e:
                self.store.add_error(e)
                return None
            repository = self._add_repository_json(data, is_main=True)
            logger.info("Created repository %s from %s", repository.name, template)
            await self.find_repository_files(repository.url)
        return self.store.repository()

    async def find_repositories(
        self, topics: Iterable[str] | None = None, owner: str | None = None
    ) -> list[RepositoryView] | None:
        """Search GitHub for workshop repositories; the main repository is never replaced."""
        with self.store.busy.guard(FIND_REPOSITORIES_FLAG) as acquired:
            if not acquired:
                return None
            try:
                found = await self.request(
                    Task.FIND_REPOSITORIES,
                    {"topics": list(topics or []), "owner": owner},
                )
            except GitHubError as e:
                self.store.add_error(e)
                return None
            main = self.store.main_repository()
            main_url = main.url if main else ""
            urls = []
            for data in found:
                url = strip_ref(data["url"])
                urls.append(url)
                if url != main_url:
                    self._add_repository_json(data)
        logger.info("Found %d repositories", len(urls))
        return [self.store.repository(url) for url in urls]

    async def find_templates(self) -> list[Template] | None:
        """Search GitHub for template repositories."""
        with self.store.busy.guard(FIND_TEMPLATES_FLAG) as acquired:
            if not acquired:
                return None
            try:
                found = await self.request(
                    Task.FIND_REPOSITORIES, {"topics": [self.settings.template_topic]}
                )
            except GitHubError as e:
                self.store.add_error(e)
                return None
            templates = [
                self.store.add_template(
                    url=data["url"],
                    owner_login=(data.get("owner") or {}).get("login", ""),
                    name=data.get("name", ""),
                    topics=data.get("topics") or [],
                    description=data.get("description"),
                )
                for data in found
            ]
        return templates

    def _extra_file_paths(self) -> list[str]:
        intros = [topic_intro_path(t) for t in [*self.store.topic_list, UNKNOWN_TOPIC]]
        return [*intros, NOTES_PATH, CONFIG_PATH]

    async def find_repository_files(
        self,
        url: str,
        include_episodes: bool = True,
        include_extra_files: bool = True,
        overwrite: bool = True,
    ) -> RepositoryView | None:
        """
        Pull a repository's episodes and customisable files into the store.

        Listings and pulls fan out; whatever succeeds is stored even if
        other items fail.
        """
        self.store.repository(url)
        with self.store.busy.guard(url) as acquired:
            if not acquired:
                return None

            targets: list[str] = []
            if include_episodes:
                listings = await settle_all(
                    (d, self.request(Task.LIST_DIRECTORY, {"url": contents_url(url, d)}))
                    for d in EPISODE_DIRS
                )
                for directory, error in listings.failures.items():
                    self.store.add_error(error)
                for directory, items in listings.successes.items():
                    for item in items:
                        if item.get("type") == "file" and not item["name"].startswith((".", "_")):
                            targets.append(strip_ref(item["url"]))
                    logger.debug("Listed %s: %d items", directory, len(items))
            extra: list[str] = []
            if include_extra_files:
                extra = [contents_url(url, p) for p in self._extra_file_paths()]
                targets.extend(t for t in extra if t not in targets)

            if not overwrite:
                targets = [t for t in targets if not self.store.has_file(t)]

            pulled = await settle_all(
                (target, self.request(Task.PULL_ITEM, {"url": target})) for target in targets
            )
            for target, error in pulled.failures.items():
                if target in extra and isinstance(error, GitHubNotFoundError):
                    logger.debug("Optional file not present: %s", target)
                else:
                    self.store.add_error(error)
            for target, data in pulled.successes.items():
                self._add_file_json(data, overwrite=True)
            logger.info(
                "Fetched %d files from %s (%d failed)",
                len(pulled.successes),
                url,
                len(pulled.failures),
            )
        return self.store.repository(url)

    async def set_topics(self, topics: Iterable[str]) -> list[RepositoryView] | None:
        """
        Set the open research topics of the main repository.

        Topics from the topic list that are not given are switched off;
        other tags on the repository are left alone.
        """
        topics = [t for t in topics if t]
        main = self._require_main("set topics")
        unknown = [t for t in topics if t not in self.store.topic_list]
        if unknown:
            raise UnknownTopicError(f"Cannot set unknown topics: {', '.join(unknown)}")

        with self.store.busy.guard(main.url) as acquired:
            if not acquired:
                return None
            switches = {t: t in topics for t in self.store.topic_list}
            try:
                names = await self.request(
                    Task.SET_TOPICS, {"url": main.url, "topics": switches}
                )
            except GitHubError as e:
                self.store.add_error(e)
                return None
            self.store.update_topics(main.url, names)
        return await self.find_repositories(topics=topics)

    async def get_build_status(self) -> BuildStatus | None:
        """Fetch the latest pages build of the main repository."""
        main = self._require_main("check the build status")
        try:
            data = await self.request(Task.GET_LAST_BUILD, {"url": main.url})
        except GitHubError as e:
            self.store.add_error(e)
            return None
        self.store.build_status = BuildStatus(**data)
        logger.info("Build status: %s", self.store.build_status.status)
        return self.store.build_status
