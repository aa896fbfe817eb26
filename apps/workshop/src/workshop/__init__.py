"""Workshop builder: an editable local mirror of GitHub workshop repositories."""

from .config import WorkshopSettings
from .deletion import delete_file
from .exceptions import (
    FileConflictError,
    InstallError,
    InvalidContentError,
    InvalidURLError,
    MainRepositoryError,
    UnknownItemError,
    UnknownTopicError,
    WorkshopError,
)
from .installer import Installer
from .models import DeleteReport, DependencyRecord, File, Repository, RepositoryView, Template
from .ordering import rewrite_episode_orders
from .store import WorkshopStore
from .sync import WorkshopSync

__all__ = [
    # Store
    "WorkshopStore",
    "WorkshopSync",
    "WorkshopSettings",
    # Installer
    "Installer",
    "delete_file",
    "rewrite_episode_orders",
    # Models
    "File",
    "Repository",
    "RepositoryView",
    "Template",
    "DependencyRecord",
    "DeleteReport",
    # Errors
    "WorkshopError",
    "UnknownItemError",
    "FileConflictError",
    "MainRepositoryError",
    "InvalidContentError",
    "InvalidURLError",
    "InstallError",
    "UnknownTopicError",
]
