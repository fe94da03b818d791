"""Pydantic schemas for request/response validation."""

from .folder import (
    FolderCreate,
    FolderRename,
    FolderMoveRequest,
    FolderMoveResponse,
    FolderResponse,
    FolderContents,
    ReorderRequest,
    DocumentPlacementCreate,
    DocumentPlacementResponse,
    DocumentMoveRequest,
    TreeNode,
    SoftDeleteResponse,
)
from .trash import TrashItemResponse, TrashMoveRequest, RestoreResponse, PurgeResponse
from .permission import (
    ApplyPermissionsRequest,
    ApplyPermissionsResponse,
    GroupPermissionsRequest,
    AccessControlEntryResponse,
    AccessibleDocumentsResponse,
)

__all__ = [
    "FolderCreate",
    "FolderRename",
    "FolderMoveRequest",
    "FolderMoveResponse",
    "FolderResponse",
    "FolderContents",
    "ReorderRequest",
    "DocumentPlacementCreate",
    "DocumentPlacementResponse",
    "DocumentMoveRequest",
    "TreeNode",
    "SoftDeleteResponse",
    "TrashItemResponse",
    "TrashMoveRequest",
    "RestoreResponse",
    "PurgeResponse",
    "ApplyPermissionsRequest",
    "ApplyPermissionsResponse",
    "GroupPermissionsRequest",
    "AccessControlEntryResponse",
    "AccessibleDocumentsResponse",
]
