"""Delete main repository files together with their orphaned dependencies."""

import logging

from gh import GitHubError, Task

from .concurrency import settle_all
from .exceptions import WorkshopError
from .models import DeleteEntry, DeleteReport, DependencyRecord
from .store import WorkshopStore
from .sync import WorkshopSync
from .urls import contents_url, file_in_repository, installed_path

logger = logging.getLogger(__name__)


def is_shared_dependency(
    store: WorkshopStore, main_url: str, url: str, original_repository: str, path: str
) -> bool:
    """Whether another installed file from the same origin still uses ``path``."""
    for other in store.files_in_repository(main_url):
        if other.url == url:
            continue
        record = other.dependency_record
        if record.original_repository == original_repository and path in record.dependencies:
            return True
    return False


def _qualified(original_repository: str, path: str) -> str:
    return f"{original_repository}/{path.lstrip('/')}"


async def delete_file(
    sync: WorkshopSync, url: str, delete_dependencies: bool = True
) -> DeleteReport | None:
    """
    Delete a main repository file from GitHub and from the store.

    Installed dependencies that no other installed file from the same
    original repository uses are deleted too. If deleting the file itself
    fails, the file stays in the store and the dependencies that did get
    deleted are moved to ``missingDependencies``.

    Returns:
        The tally, or None if the file is busy

    Raises:
        WorkshopError: if the file is not in the main repository
        UnknownItemError: if there is no such file
    """
    store = sync.store
    main = store.main_repository()
    if main is None or not file_in_repository(url, main.url):
        raise WorkshopError("Only files in the main repository can be removed")
    file = store.file(url)
    record = file.dependency_record
    origin = record.original_repository

    with store.busy.guard(url) as acquired:
        if not acquired:
            return None

        report = DeleteReport()
        deleted_paths: list[str] = []
        if delete_dependencies and origin and record.dependencies:
            to_delete = []
            for path in record.dependencies:
                if is_shared_dependency(store, main.url, url, origin, path):
                    logger.info("Keeping %s: used by another installed file", path)
                    report.skipped.append(
                        DeleteEntry(file_name=_qualified(origin, path), skipped=True)
                    )
                else:
                    to_delete.append(path)

            settled = await settle_all(
                (
                    path,
                    sync.request(
                        Task.DELETE_FILE,
                        {
                            "url": contents_url(main.url, installed_path(origin, path)),
                            "path": installed_path(origin, path),
                        },
                    ),
                )
                for path in to_delete
            )
            for path in to_delete:
                if path in settled.successes:
                    deleted_paths.append(path)
                    report.deleted.append(
                        DeleteEntry(file_name=_qualified(origin, path), deleted=True)
                    )
                else:
                    logger.warning(
                        "Could not delete dependency %s: %s", path, settled.failures[path]
                    )
                    report.failed.append(DeleteEntry(file_name=_qualified(origin, path)))

        try:
            await sync.request(
                Task.DELETE_FILE, {"url": url, "sha": file.sha, "path": file.path}
            )
        except GitHubError as e:
            store.add_error(e)
            report.failed.append(DeleteEntry(file_name=url))
            if deleted_paths:
                current = store.file(url)
                current_record = current.dependency_record
                updated = DependencyRecord(
                    original_repository=origin,
                    dependencies=[
                        p for p in current_record.dependencies if p not in deleted_paths
                    ],
                    missing_dependencies=current_record.missing_dependencies + [
                        p for p in deleted_paths
                        if p not in current_record.missing_dependencies
                    ],
                )
                store.set_file_content_from_yaml(url, updated.apply(current.yaml))
            return report

        store.remove_file(url)
        report.deleted.append(DeleteEntry(file_name=url, deleted=True))
        logger.info(
            "Deleted %s (%d dependencies deleted, %d kept, %d failed)",
            file.path,
            len(report.deleted) - 1,
            len(report.skipped),
            len(report.failed),
        )
    return report
