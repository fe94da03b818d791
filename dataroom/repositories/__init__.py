"""Data access repositories."""

from .base import BaseRepository
from .folder_repository import FolderRepository, DataroomDocumentRepository
from .trash_repository import TrashRepository
from .access_repository import (
    AccessControlRepository,
    DataroomRepository,
    LinkRepository,
    PermissionGroupRepository,
    ViewerGroupRepository,
)

__all__ = [
    "BaseRepository",
    "FolderRepository",
    "DataroomDocumentRepository",
    "TrashRepository",
    "AccessControlRepository",
    "DataroomRepository",
    "LinkRepository",
    "PermissionGroupRepository",
    "ViewerGroupRepository",
]
