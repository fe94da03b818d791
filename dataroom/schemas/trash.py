"""Trash schemas."""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List

from ..models.enums import ItemType


class TrashItemResponse(BaseModel):
    """A trashed folder or document; children are filled for tree listings."""
    id: str
    item_type: ItemType
    item_id: str
    parent_id: Optional[str] = None
    name: str
    trash_path: str
    deleted_by: Optional[str] = None
    deleted_at: Optional[datetime] = None
    purge_at: datetime
    children: List['TrashItemResponse'] = []

    class Config:
        from_attributes = True


class TrashMoveRequest(BaseModel):
    """Restore trash items under another live folder (None = dataroom root)."""
    trash_item_ids: List[str] = Field(..., min_length=1)
    folder_id: Optional[str] = None


class RestoreResponse(BaseModel):
    restored_count: int


class PurgeResponse(BaseModel):
    purged_count: int
