"""Exceptions raised for invalid use of the workshop store.

Remote failures are not raised from here: they arrive as ``gh.GitHubError``
and are recorded on the store by the operation that hit them.
"""

from __future__ import annotations


class WorkshopError(Exception):
    """Base exception for invalid workshop operations."""


class UnknownItemError(WorkshopError, KeyError):
    """Raised when a URL does not name a known file, repository or template."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else ""


class FileConflictError(WorkshopError):
    """Raised when adding a file would silently replace an existing one."""


class MainRepositoryError(WorkshopError):
    """Raised when the main repository rules are violated."""


class InvalidContentError(WorkshopError, ValueError):
    """Raised when encoded file content is not valid Base64."""


class InvalidURLError(WorkshopError, ValueError):
    """Raised when a URL does not have the expected GitHub contents shape."""


class InstallError(WorkshopError):
    """Raised when a file cannot be installed into the main repository."""


class UnknownTopicError(WorkshopError, ValueError):
    """Raised when setting topics outside the configured topic list."""
