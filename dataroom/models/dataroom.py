"""Dataroom and Link models."""

from sqlalchemy import Column, Index, String, Boolean, DateTime, ForeignKey
from sqlalchemy.sql import func
from ..database import Base
from .enums import AudienceType


class Dataroom(Base):
    """Container scoping folders, documents and groups for one team."""

    __tablename__ = "datarooms"
    __table_args__ = (
        Index("ix_datarooms_team_id", "team_id"),
    )

    id = Column(String(50), primary_key=True)
    team_id = Column(String(50), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Link(Base):
    """Shareable entry point to a dataroom.

    A link resolves visibility through at most one group: the permission
    group when set, otherwise the viewer group. A link with neither sees
    nothing.
    """

    __tablename__ = "links"
    __table_args__ = (
        Index("ix_links_dataroom_id", "dataroom_id"),
    )

    id = Column(String(50), primary_key=True)
    dataroom_id = Column(String(50), ForeignKey("datarooms.id", ondelete="CASCADE"), nullable=False)
    permission_group_id = Column(
        String(50), ForeignKey("permission_groups.id", ondelete="SET NULL"), nullable=True
    )
    group_id = Column(String(50), ForeignKey("viewer_groups.id", ondelete="SET NULL"), nullable=True)
    audience_type = Column(String(20), nullable=False, default=AudienceType.GENERAL.value)
    email_authenticated = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
