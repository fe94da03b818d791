"""Trash items: soft-deleted folders and documents kept for restore.

Trash rows form a hierarchy parallel to the live tree: ``parent_id`` holds
the id of the folder the item lived in when it was trashed, so the
children of a trashed folder are the trash rows whose ``parent_id`` equals
that folder's id.
"""

from sqlalchemy import Column, Index, String, DateTime, ForeignKey
from sqlalchemy.sql import func
from ..database import Base


class TrashItem(Base):

    __tablename__ = "trash_items"
    __table_args__ = (
        Index("ix_trash_items_dataroom_parent", "dataroom_id", "parent_id"),
        Index("ix_trash_items_purge_at", "purge_at"),
    )

    id = Column(String(50), primary_key=True)
    dataroom_id = Column(String(50), ForeignKey("datarooms.id", ondelete="CASCADE"), nullable=False)
    item_type = Column(String(20), nullable=False)
    item_id = Column(String(50), nullable=False)
    parent_id = Column(String(50), nullable=True)
    name = Column(String(255), nullable=False)
    trash_path = Column(String(1000), nullable=False)

    # Original records; purging the live row removes its trash row too.
    dataroom_folder_id = Column(
        String(50), ForeignKey("dataroom_folders.id", ondelete="CASCADE"), nullable=True
    )
    dataroom_document_id = Column(
        String(50), ForeignKey("dataroom_documents.id", ondelete="CASCADE"), nullable=True
    )

    deleted_by = Column(String(50), nullable=True)
    deleted_at = Column(DateTime(timezone=True), server_default=func.now())
    purge_at = Column(DateTime(timezone=True), nullable=False)
