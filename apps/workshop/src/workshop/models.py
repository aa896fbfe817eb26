"""Workshop data models."""

from typing import Any

from pydantic import BaseModel, Field

RULES_KEY = "ukrn_wb_rules"
ORIGINAL_REPOSITORY_KEY = "originalRepository"
DEPENDENCIES_KEY = "dependencies"
MISSING_DEPENDENCIES_KEY = "missingDependencies"


def _paths(value: Any) -> list[str]:
    if not isinstance(value, list):
        return []
    return [str(v) for v in value]


class DependencyRecord(BaseModel):
    """Install bookkeeping kept in an installed file's front matter."""

    original_repository: str | None = None
    dependencies: list[str] = Field(default_factory=list)
    missing_dependencies: list[str] = Field(default_factory=list)

    @classmethod
    def from_yaml(cls, data: dict[str, Any]) -> "DependencyRecord":
        original = data.get(ORIGINAL_REPOSITORY_KEY)
        return cls(
            original_repository=str(original) if original else None,
            dependencies=_paths(data.get(DEPENDENCIES_KEY)),
            missing_dependencies=_paths(data.get(MISSING_DEPENDENCIES_KEY)),
        )

    def apply(self, data: dict[str, Any]) -> dict[str, Any]:
        """Return a copy of ``data`` carrying this record."""
        updated = dict(data)
        updated[MISSING_DEPENDENCIES_KEY] = list(self.missing_dependencies)
        updated[DEPENDENCIES_KEY] = list(self.dependencies)
        if self.original_repository is not None:
            updated[ORIGINAL_REPOSITORY_KEY] = self.original_repository
        return updated


class File(BaseModel):
    """A file mirrored from a GitHub repository."""

    url: str
    path: str
    content: str
    remote_content: str | None = None  # last content known on GitHub
    sha: str | None = None  # None until the file exists on GitHub
    yaml: dict[str, Any] = Field(default_factory=dict)
    body: str = ""
    yaml_parse_error: str | None = None

    @property
    def has_changed(self) -> bool:
        return self.content != self.remote_content

    @property
    def rules(self) -> list[str]:
        rules = self.yaml.get(RULES_KEY) or []
        return [rules] if isinstance(rules, str) else list(rules)

    @property
    def dependency_record(self) -> DependencyRecord:
        return DependencyRecord.from_yaml(self.yaml)


class Repository(BaseModel):
    """A GitHub repository."""

    url: str
    owner_login: str = ""
    name: str = ""
    topics: list[str] = Field(default_factory=list)
    is_main: bool = False


class Template(BaseModel):
    """A template repository new workshops are generated from."""

    url: str
    owner_login: str = ""
    name: str = ""
    topics: list[str] = Field(default_factory=list)
    description: str | None = None


class ExtraFiles(BaseModel):
    """Customisable non-episode files."""

    intro: File | None = None
    setup_files: list[File] = Field(default_factory=list)
    optional_intro_sections: list[File] = Field(default_factory=list)
    notes: File | None = None


class RepositoryView(Repository):
    """A repository together with the files derived from the store."""

    files: list[File] = Field(default_factory=list)
    config: File | None = None
    episodes: list[File] = Field(default_factory=list)
    episode_template: File | None = None
    extra_files: ExtraFiles = Field(default_factory=ExtraFiles)
    busy: bool = False


class DeleteEntry(BaseModel):
    """One file touched by a delete."""

    file_name: str
    deleted: bool = False
    skipped: bool = False


class DeleteReport(BaseModel):
    """Tally of a delete: which files went, which stayed on purpose, which failed."""

    deleted: list[DeleteEntry] = Field(default_factory=list)
    skipped: list[DeleteEntry] = Field(default_factory=list)
    failed: list[DeleteEntry] = Field(default_factory=list)


class BuildStatus(BaseModel):
    """Last known GitHub Pages build of the main repository."""

    status: str
    created_at: str | None = None
    error: dict[str, Any] | None = None
