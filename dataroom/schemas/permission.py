"""Access control schemas."""

from pydantic import BaseModel, Field
from typing import Optional, List

from ..models.enums import ItemType, PermissionStrategy


class ApplyPermissionsRequest(BaseModel):
    document_ids: List[str] = Field(..., min_length=1)
    strategy: PermissionStrategy
    folder_path: Optional[str] = None


class ApplyPermissionsResponse(BaseModel):
    strategy: PermissionStrategy
    document_count: int
    entries_written: int
    entries_cleared: int


class PermissionEntry(BaseModel):
    item_id: str
    item_type: ItemType
    can_view: bool
    can_download: bool = False


class GroupPermissionsRequest(BaseModel):
    entries: List[PermissionEntry] = Field(..., min_length=1)


class AccessControlEntryResponse(BaseModel):
    id: str
    group_id: str
    group_kind: str
    item_id: str
    item_type: ItemType
    can_view: bool
    can_download: bool
    pending: bool

    class Config:
        from_attributes = True


class AccessibleDocumentsResponse(BaseModel):
    """Placement ids visible through one link, sorted."""
    document_ids: List[str]
