"""Install files from other repositories into the main repository.

An installed file is a copy of a foreign file at the same path in the main
repository. The assets it references are copied to
``installed/<owner>/<name>/<path>`` and its references rewritten to the
installed-file include. Its front matter records where it came from
(``originalRepository``) and which assets are installed (``dependencies``)
or still to do (``missingDependencies``).
"""

import logging

from gh import Task

from . import codec
from .concurrency import settle_all
from .dependencies import find_dependencies, rewrite_installed_reference
from .exceptions import InstallError
from .models import DependencyRecord, File
from .sync import WorkshopSync
from .urls import (
    contents_url,
    file_in_repository,
    increment_suffix,
    installed_path,
    repository_slug,
    repository_url,
)

logger = logging.getLogger(__name__)


class Installer:
    """Copies files and their assets into the main repository."""

    def __init__(self, sync: WorkshopSync):
        self.sync = sync
        self.store = sync.store

    def _free_path(self, main_url: str, path: str) -> str:
        taken = {f.url for f in self.store.files_in_repository(main_url)}
        while contents_url(main_url, path) in taken:
            path = increment_suffix(path)
        return path

    async def install(self, url: str) -> File | None:
        """
        Install the file at ``url`` into the main repository and push it.

        The original record is dropped once the copy is pushed. If the push
        fails the unpushed copy stays in the store next to the original.

        Raises:
            UnknownItemError: if there is no such file
            InstallError: if there is no main repository or the file is already in it
            InvalidURLError: if the file URL is not a GitHub contents URL
        """
        main = self.store.main_repository()
        if main is None:
            raise InstallError("Cannot install a file without a main repository")
        source = self.store.file(url)
        if file_in_repository(source.url, main.url):
            raise InstallError("Cannot install File into its own Repository")
        slug = repository_slug(source.url, source.path)

        new_path = self._free_path(main.url, source.path)
        new_url = contents_url(main.url, new_path)

        with self.store.busy.guard(url) as acquired:
            if not acquired:
                return None
            with self.store.busy.guard(new_url) as claimed:
                if not claimed:
                    return None
                self.store.add_file(new_url, codec.encode(source.content), None, new_path)
                record = DependencyRecord(
                    original_repository=slug,
                    dependencies=[],
                    missing_dependencies=find_dependencies(source, self.sync.matcher),
                )
                self.store.set_file_content_from_yaml(
                    new_url, record.apply(self.store.file(new_url).yaml)
                )
                logger.info(
                    "Installing %s from %s (%d dependencies)",
                    new_path,
                    slug,
                    len(record.missing_dependencies),
                )
                await self._install_dependencies(new_url)

            pushed = await self.sync.push_file(new_url)
            if pushed is None:
                logger.warning("Install of %s not pushed; keeping original %s", new_url, url)
                return None
            self.store.remove_file(url)
        return pushed

    async def _copy_dependency(self, main_url: str, slug: str, path: str) -> dict:
        return await self.sync.request(
            Task.COPY_FILE,
            {
                "url": contents_url(repository_url(slug, self.sync.settings.api_base), path),
                "new_url": contents_url(main_url, installed_path(slug, path)),
                "return_existing": True,
            },
        )

    async def install_dependencies(self, url: str) -> File | None:
        """
        Copy a file's missing dependencies from its original repository.

        Best effort: assets that fail stay in ``missingDependencies`` and
        calling this again retries only those.

        Returns:
            The updated file, or None if the file is busy

        Raises:
            UnknownItemError: if there is no such file
            InstallError: if the file does not record an original repository
        """
        with self.store.busy.guard(url) as acquired:
            if not acquired:
                return None
            return await self._install_dependencies(url)

    async def _install_dependencies(self, url: str) -> File:
        # The caller holds the busy flag for ``url``.
        file = self.store.file(url)
        record = file.dependency_record
        if not record.original_repository:
            raise InstallError(f"{url} has no originalRepository to install dependencies from")
        main = self.store.main_repository()
        if main is None:
            raise InstallError("Cannot install dependencies without a main repository")
        slug = record.original_repository

        settled = await settle_all(
            (path, self._copy_dependency(main.url, slug, path))
            for path in record.missing_dependencies
        )
        for path, error in settled.failures.items():
            logger.warning("Could not install dependency %s from %s: %s", path, slug, error)
        installed = [p for p in record.missing_dependencies if p in settled.successes]
        if not installed:
            return self.store.file(url)

        file = self.store.file(url)
        record = file.dependency_record
        body = file.body
        for path in installed:
            body = rewrite_installed_reference(body, path, file.path, self.sync.matcher)
        updated = DependencyRecord(
            original_repository=slug,
            dependencies=record.dependencies + [
                p for p in installed if p not in record.dependencies
            ],
            missing_dependencies=[
                p for p in record.missing_dependencies if p not in installed
            ],
        )
        logger.info("Installed %d of %d dependencies for %s",
                    len(installed), len(installed) + len(updated.missing_dependencies),
                    file.path)
        return self.store.set_file_content_from_yaml(url, updated.apply(file.yaml), body)
