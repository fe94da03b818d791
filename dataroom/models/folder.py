"""Dataroom folder tree and document placements.

Folders are addressed two ways: ``parent_id`` is the authoritative tree
pointer and ``path`` is the materialized path (``/a/b``) used for lookups.
Documents never carry a path; they point at their folder by id, so folder
moves and renames leave placements valid.
"""

from sqlalchemy import Column, Index, Integer, String, DateTime, ForeignKey, text
from sqlalchemy.sql import func
from ..database import Base


class DataroomFolder(Base):

    __tablename__ = "dataroom_folders"
    __table_args__ = (
        # Path is unique among live folders only; a trashed folder keeps its
        # path so restore can detect a newer folder occupying it.
        Index(
            "uq_dataroom_folders_live_path",
            "dataroom_id",
            "path",
            unique=True,
            postgresql_where=text("removed_at IS NULL"),
            sqlite_where=text("removed_at IS NULL"),
        ),
        Index("ix_dataroom_folders_parent_id", "parent_id"),
    )

    id = Column(String(50), primary_key=True)
    dataroom_id = Column(String(50), ForeignKey("datarooms.id", ondelete="CASCADE"), nullable=False)
    parent_id = Column(String(50), ForeignKey("dataroom_folders.id", ondelete="CASCADE"), nullable=True)
    name = Column(String(255), nullable=False)
    path = Column(String(1000), nullable=False)
    order_index = Column(Integer, nullable=True)

    # Soft delete (NULL = live, timestamp = in trash)
    removed_at = Column(DateTime(timezone=True), nullable=True, default=None)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class DataroomDocument(Base):
    """Placement of a team document inside a dataroom folder (NULL folder = root)."""

    __tablename__ = "dataroom_documents"
    __table_args__ = (
        Index("ix_dataroom_documents_dataroom_id", "dataroom_id"),
        Index("ix_dataroom_documents_folder_id", "folder_id"),
    )

    id = Column(String(50), primary_key=True)
    dataroom_id = Column(String(50), ForeignKey("datarooms.id", ondelete="CASCADE"), nullable=False)
    document_id = Column(String(50), nullable=False)
    name = Column(String(255), nullable=False)
    folder_id = Column(String(50), ForeignKey("dataroom_folders.id", ondelete="CASCADE"), nullable=True)
    order_index = Column(Integer, nullable=True)

    removed_at = Column(DateTime(timezone=True), nullable=True, default=None)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
