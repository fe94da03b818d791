"""Folder, document placement and tree schemas."""

from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import Optional, List

from ..models.enums import ItemType


def _normalize_path(v: Optional[str]) -> Optional[str]:
    """'' and '/' mean the dataroom root (None); otherwise '/a/b' form."""
    if v is None:
        return None
    v = v.strip().strip('/')
    while '//' in v:
        v = v.replace('//', '/')
    return f"/{v}" if v else None


class FolderCreate(BaseModel):
    """Schema for creating a folder under an existing parent path."""
    name: str = Field(..., min_length=1, max_length=255)
    parent_path: Optional[str] = None
    order_index: Optional[int] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Folder name cannot be empty")
        return v

    @field_validator('parent_path')
    @classmethod
    def normalize_parent_path(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_path(v)


class FolderRename(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Folder name cannot be empty")
        return v


class FolderMoveRequest(BaseModel):
    """Reparent folders under destination_path (empty or '/' = dataroom root)."""
    folder_ids: List[str] = Field(..., min_length=1)
    destination_path: Optional[str] = None

    @field_validator('destination_path')
    @classmethod
    def normalize_destination(cls, v: Optional[str]) -> Optional[str]:
        return _normalize_path(v)


class FolderMoveResponse(BaseModel):
    updated_count: int
    new_path: str


class ReorderItem(BaseModel):
    id: str
    type: ItemType
    order_index: Optional[int] = None


class ReorderRequest(BaseModel):
    """New order_index values for siblings; null sorts last."""
    items: List[ReorderItem] = Field(..., min_length=1)


class ReorderResponse(BaseModel):
    updated_count: int


class FolderResponse(BaseModel):
    """Schema for folder response."""
    id: str
    dataroom_id: str
    parent_id: Optional[str] = None
    name: str
    path: str
    order_index: Optional[int] = None
    hierarchical_index: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class DocumentPlacementCreate(BaseModel):
    """Place an existing team document into the dataroom."""
    document_id: str = Field(..., min_length=1, max_length=50)
    name: str = Field(..., min_length=1, max_length=255)
    folder_id: Optional[str] = None
    order_index: Optional[int] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Document name cannot be empty")
        return v


class DocumentMoveRequest(BaseModel):
    document_ids: List[str] = Field(..., min_length=1)
    folder_id: Optional[str] = None


class DocumentMoveResponse(BaseModel):
    updated_count: int


class DocumentPlacementResponse(BaseModel):
    id: str
    dataroom_id: str
    document_id: str
    name: str
    folder_id: Optional[str] = None
    order_index: Optional[int] = None
    hierarchical_index: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class FolderContents(BaseModel):
    """Direct children of one folder (or of the root), in display order."""
    path: Optional[str] = None
    folders: List[FolderResponse]
    documents: List[DocumentPlacementResponse]


class TreeNode(BaseModel):
    """Schema for tree navigation."""
    id: str
    name: str
    type: ItemType
    path: Optional[str] = None
    order_index: Optional[int] = None
    hierarchical_index: Optional[str] = None
    children: List['TreeNode'] = []


class SoftDeleteResponse(BaseModel):
    captured_count: int
