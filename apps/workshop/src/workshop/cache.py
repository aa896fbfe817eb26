"""Local snapshot of the store, kept between CLI invocations."""

import json
import logging
from datetime import datetime
from pathlib import Path

from pydantic import BaseModel, Field

from . import codec
from .models import File, Repository, Template
from .store import WorkshopStore

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1

# Rebuilt from content on restore; JSON would turn YAML dates into strings.
DERIVED_FILE_FIELDS = {"yaml", "body", "yaml_parse_error"}


class Snapshot(BaseModel):
    """Repositories, files and templates as last seen. Busy flags and errors are not kept."""

    version: int = SNAPSHOT_VERSION
    saved_at: datetime | None = None
    repositories: dict[str, Repository] = Field(default_factory=dict)
    files: dict[str, File] = Field(default_factory=dict)
    templates: dict[str, Template] = Field(default_factory=dict)

    @classmethod
    def from_store(cls, store: WorkshopStore) -> "Snapshot":
        return cls(
            saved_at=datetime.now(),
            repositories=dict(store.repositories),
            files=dict(store.files),
            templates=dict(store.templates),
        )

    def restore(self, store: WorkshopStore) -> WorkshopStore:
        store.repositories = dict(self.repositories)
        store.files = {
            url: file.model_copy(update=codec.decompose(file.content)._asdict())
            for url, file in self.files.items()
        }
        store.templates = dict(self.templates)
        return store


def load_snapshot(path: Path) -> Snapshot:
    """Load a snapshot; a missing or outdated file gives an empty one."""
    if not path.exists():
        return Snapshot()
    with path.open("r", encoding="utf-8") as f:
        data = json.load(f)
    if data.get("version") != SNAPSHOT_VERSION:
        logger.warning("Ignoring cache %s with version %s", path, data.get("version"))
        return Snapshot()
    snapshot = Snapshot(**data)
    logger.debug(
        "Loaded cache %s: %d repositories, %d files",
        path,
        len(snapshot.repositories),
        len(snapshot.files),
    )
    return snapshot


def save_snapshot(store: WorkshopStore, path: Path) -> Snapshot:
    """Save the store."""
    snapshot = Snapshot.from_store(store)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = snapshot.model_dump(
        mode="json", exclude={"files": {"__all__": DERIVED_FILE_FIELDS}}
    )
    with path.open("w", encoding="utf-8") as f:
        json.dump(data, f, ensure_ascii=False, indent=2, default=str)
    logger.debug("Saved cache %s", path)
    return snapshot
