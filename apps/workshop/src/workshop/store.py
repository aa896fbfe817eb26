"""In-memory mirror of GitHub repositories and their files.

The store holds plain records keyed by URL. Repository contents are not
stored: a repository's files are the files whose URL starts with the
repository URL, collected on demand by ``repository()``.
"""

import logging
import re
from typing import Any, Callable, Iterable

from . import codec
from .busy import BusyFlags
from .exceptions import (
    FileConflictError,
    MainRepositoryError,
    UnknownItemError,
)
from .models import (
    BuildStatus,
    ExtraFiles,
    File,
    Repository,
    RepositoryView,
    Template,
)
from .urls import file_in_repository, numbered_path, strip_ref

logger = logging.getLogger(__name__)

CONFIG_PATH = "_config.yml"
NOTES_PATH = "notes.md"
EPISODES_PREFIX = "_episodes"
UNKNOWN_TOPIC = "unknown-topic"
SETUP_FILE = re.compile(r"^_includes/install_instructions/(?P<name>[^/.]+)\.html$")
OPTIONAL_INTRO = re.compile(r"^_includes/intro/optional/(?P<name>[^/.]+)\.md$")


def topic_intro_path(topic: str) -> str:
    return f"_includes/intro/topic-intros/{topic}.md"


def _as_number(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return float("inf")


def episode_sort_key(file: File) -> tuple[float, float]:
    return _as_number(file.yaml.get("day")), _as_number(file.yaml.get("order"))


class WorkshopStore:
    """Repositories, files and templates loaded from GitHub."""

    def __init__(self, topic_list: Iterable[str] = ()):
        self.repositories: dict[str, Repository] = {}
        self.files: dict[str, File] = {}
        self.templates: dict[str, Template] = {}
        self.errors: list[Exception | str] = []
        self.busy = BusyFlags()
        self.build_status: BuildStatus | None = None
        self.topic_list = list(topic_list)

    # ============ Errors ============

    def add_error(self, error: Exception | str) -> None:
        logger.error("%s", error)
        self.errors.append(error)

    @property
    def last_error(self) -> Exception | str | None:
        return self.errors[-1] if self.errors else None

    # ============ Busy flags ============

    def is_busy(self, key: str) -> bool:
        return self.busy.is_busy(key)

    # ============ Repositories ============

    def add_repository(
        self,
        url: str,
        owner_login: str = "",
        name: str = "",
        topics: Iterable[str] = (),
        is_main: bool = False,
    ) -> Repository:
        """
        Insert or replace a repository.

        Raises:
            MainRepositoryError: if another repository is already main
        """
        url = strip_ref(url)
        if is_main:
            main = self.main_repository()
            if main is not None and main.url != url:
                raise MainRepositoryError(
                    "Cannot have multiple main repositories. "
                    "Please delete the existing main repository before adding another."
                )
        repository = Repository(
            url=url,
            owner_login=owner_login,
            name=name,
            topics=list(topics or []),
            is_main=is_main,
        )
        self.repositories[url] = repository
        logger.debug("Repository stored: %s (main=%s)", url, is_main)
        return repository

    def remove_repository(self, url: str) -> None:
        if url not in self.repositories:
            raise UnknownItemError(f"Cannot remove unknown repository: {url}")
        del self.repositories[url]

    def set_main_repository(self, url: str) -> None:
        """Move the main flag to the repository at ``url``."""
        if url not in self.repositories:
            raise UnknownItemError(f"Cannot set unknown repository as main: {url}")
        self.repositories = {
            u: r.model_copy(update={"is_main": u == url})
            for u, r in self.repositories.items()
        }
        logger.info("Main repository: %s", url)

    def update_topics(self, url: str, topics: Iterable[str]) -> Repository:
        if url not in self.repositories:
            raise UnknownItemError(f"Store has no repository with URL: {url}")
        repository = self.repositories[url].model_copy(update={"topics": list(topics)})
        self.repositories[url] = repository
        return repository

    def main_repository(self) -> Repository | None:
        for repository in self.repositories.values():
            if repository.is_main:
                return repository
        return None

    def repository(self, url: str | None = None) -> RepositoryView | None:
        """
        Return a repository with its files; the main repository if no URL is given.

        Returns None only when no URL is given and there is no main repository.
        """
        if not url:
            main = self.main_repository()
            if main is None:
                return None
            url = main.url
        if url not in self.repositories:
            raise UnknownItemError(f"Store has no repository with URL: {url}")
        repository = self.repositories[url]

        files = self.files_in_repository(url)
        config = next((f for f in files if f.path == CONFIG_PATH), None)
        episodes = sorted(
            (
                f for f in files
                if f.path.startswith(EPISODES_PREFIX) and "hidden" not in f.rules
            ),
            key=episode_sort_key,
        )
        episode_template = next((f for f in files if "template" in f.rules), None)

        return RepositoryView(
            **repository.model_dump(),
            files=files,
            config=config,
            episodes=episodes,
            episode_template=episode_template,
            extra_files=self._extra_files(files, config),
            busy=self.is_busy(url),
        )

    def repositories_by_filter(
        self, predicate: Callable[[Repository], bool]
    ) -> list[RepositoryView]:
        return [
            self.repository(r.url) for r in list(self.repositories.values()) if predicate(r)
        ]

    def _extra_files(self, files: list[File], config: File | None) -> ExtraFiles:
        extra = ExtraFiles()
        if config is not None:
            topic = config.yaml.get("topic")
            by_path = {f.path: f for f in files}
            for candidate in (topic, UNKNOWN_TOPIC):
                if candidate and topic_intro_path(candidate) in by_path:
                    extra.intro = by_path[topic_intro_path(candidate)]
                    break
            setup_names = config.yaml.get("setup_files") or []
            optional_names = config.yaml.get("optional_intro_sections") or []
            for f in files:
                setup = SETUP_FILE.match(f.path)
                if setup and setup.group("name") in setup_names:
                    extra.setup_files.append(f)
                optional = OPTIONAL_INTRO.match(f.path)
                if optional and optional.group("name") in optional_names:
                    extra.optional_intro_sections.append(f)
        extra.notes = next((f for f in files if f.path == NOTES_PATH), None)
        return extra

    # ============ Templates ============

    def add_template(
        self,
        url: str,
        owner_login: str = "",
        name: str = "",
        topics: Iterable[str] = (),
        description: str | None = None,
    ) -> Template:
        url = strip_ref(url)
        template = Template(
            url=url,
            owner_login=owner_login,
            name=name,
            topics=list(topics or []),
            description=description,
        )
        self.templates[url] = template
        return template

    # ============ Files ============

    def file(self, url: str) -> File:
        if url not in self.files:
            raise UnknownItemError(f"Store has no file with URL: {url}")
        return self.files[url]

    def has_file(self, url: str) -> bool:
        return url in self.files

    def files_by_filter(self, predicate: Callable[[File], bool]) -> list[File]:
        return [f for f in self.files.values() if predicate(f)]

    def files_in_repository(self, url: str) -> list[File]:
        return self.files_by_filter(lambda f: file_in_repository(f.url, url))

    def has_changed(self, url: str) -> bool:
        if url not in self.files:
            raise UnknownItemError(f"Cannot read has_changed of unknown file: {url}")
        return self.files[url].has_changed

    def add_file(
        self,
        url: str,
        content: str,
        sha: str | None,
        path: str,
        remote_content: str | None = None,
        overwrite: bool = False,
    ) -> File:
        """
        Store a file from Base64 encoded content.

        ``remote_content`` defaults to the content itself, i.e. the file is
        considered in sync with GitHub.

        Raises:
            FileConflictError: if the URL is taken and ``overwrite`` is False
            InvalidContentError: if content is not valid Base64
        """
        url = strip_ref(url)
        if url in self.files and not overwrite:
            raise FileConflictError(
                "Attempt to overwrite existing file. "
                f"To overwrite files specify overwrite=True: {url}"
            )
        text = codec.decode(content)
        remote = codec.decode(remote_content) if remote_content is not None else None
        decomposed = codec.decompose(text)
        file = File(
            url=url,
            path=path,
            content=text,
            remote_content=remote if remote else text,
            sha=sha,
            yaml=decomposed.yaml,
            body=decomposed.body,
            yaml_parse_error=decomposed.yaml_parse_error,
        )
        self.files[url] = file
        logger.debug("File stored: %s (sha=%s)", url, sha)
        return file

    def set_file_content(self, url: str, content: str) -> File:
        if url not in self.files:
            raise UnknownItemError(f"Attempt to update content of unknown file: {url}")
        decomposed = codec.decompose(content)
        file = self.files[url].model_copy(
            update={
                "content": content,
                "yaml": decomposed.yaml,
                "body": decomposed.body,
                "yaml_parse_error": decomposed.yaml_parse_error,
            }
        )
        self.files[url] = file
        return file

    def set_file_content_from_yaml(
        self, url: str, yaml: dict[str, Any], body: str | None = None
    ) -> File:
        """Rebuild content from front matter and body (the current body if omitted)."""
        if url not in self.files:
            raise UnknownItemError(f"Attempt to update content of unknown file: {url}")
        if body is None:
            body = self.files[url].body
        return self.set_file_content(url, codec.compose(yaml, body))

    def duplicate_file(self, url: str) -> File:
        """Copy a file to the first free ``<name>_<n>.<ext>`` path as an unsynced file."""
        if url not in self.files:
            raise UnknownItemError(f"Cannot duplicate unknown file: {url}")
        file = self.files[url]
        prefix = file.url[: len(file.url) - len(file.path)] if file.url.endswith(file.path) else None
        if prefix is None:
            raise UnknownItemError(f"Cannot locate path {file.path} in URL {file.url}")

        number = 0
        while True:
            number += 1
            new_path = numbered_path(file.path, number)
            new_url = prefix + new_path
            if new_url not in self.files:
                break

        decomposed = codec.decompose(file.content)
        copy = file.model_copy(
            update={
                "url": new_url,
                "path": new_path,
                "remote_content": "",
                "sha": None,
                "yaml": decomposed.yaml,
                "body": decomposed.body,
                "yaml_parse_error": decomposed.yaml_parse_error,
            }
        )
        self.files[new_url] = copy
        logger.info("Duplicated %s -> %s", file.path, new_path)
        return copy

    def remove_file(self, url: str) -> None:
        if url not in self.files:
            raise UnknownItemError(f"Cannot remove unknown file: {url}")
        del self.files[url]
        logger.debug("File removed: %s", url)

    # ============ Config ============

    def list_config_errors(self, url: str) -> dict[str, str]:
        """Problems with a ``_config.yml`` file, keyed by field."""
        config = self.file(url)
        if config.yaml_parse_error and not config.yaml:
            return {"yaml": "The config must have YAML content signified by ---"}
        errors: dict[str, str] = {}
        if not config.yaml.get("workshop_id"):
            errors["id"] = "The workshop must have an identifier"
        if not config.yaml.get("title"):
            errors["title"] = "The title cannot be blank"
        if not config.yaml.get("topic"):
            errors["topic"] = "The topic cannot be empty"
        return errors

    def is_config_valid(self, url: str) -> bool:
        return not self.list_config_errors(url)
