"""Viewers, viewer groups, permission groups, and access control entries."""

from sqlalchemy import (
    Column, Index, String, Boolean, DateTime, ForeignKey, JSON, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from ..database import Base


class Viewer(Base):
    """External identity (email) scoped to a team. No account required."""

    __tablename__ = "viewers"
    __table_args__ = (
        UniqueConstraint("team_id", "email", name="uq_viewers_team_email"),
    )

    id = Column(String(50), primary_key=True)
    team_id = Column(String(50), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    email = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class ViewerGroup(Base):
    """Named set of viewers sharing one visibility profile.

    Admission: ``allow_all`` admits everyone; otherwise an explicit member
    email or a listed ``@domain`` suffix is required.
    """

    __tablename__ = "viewer_groups"
    __table_args__ = (
        Index("ix_viewer_groups_dataroom_id", "dataroom_id"),
    )

    id = Column(String(50), primary_key=True)
    dataroom_id = Column(String(50), ForeignKey("datarooms.id", ondelete="CASCADE"), nullable=False)
    team_id = Column(String(50), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    allow_all = Column(Boolean, nullable=False, default=False)
    domains = Column(JSON, default=list)
    default_can_view = Column(Boolean, nullable=False, default=False)
    default_can_download = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    memberships = relationship(
        "ViewerGroupMembership", back_populates="group", cascade="all, delete-orphan"
    )


class ViewerGroupMembership(Base):

    __tablename__ = "viewer_group_memberships"
    __table_args__ = (
        UniqueConstraint("group_id", "viewer_id", name="uq_viewer_group_membership"),
    )

    id = Column(String(50), primary_key=True)
    group_id = Column(String(50), ForeignKey("viewer_groups.id", ondelete="CASCADE"), nullable=False)
    viewer_id = Column(String(50), ForeignKey("viewers.id", ondelete="CASCADE"), nullable=False)

    group = relationship("ViewerGroup", back_populates="memberships")
    viewer = relationship("Viewer")


class PermissionGroup(Base):
    """Link-scoped group used when a link carries its own permission set."""

    __tablename__ = "permission_groups"
    __table_args__ = (
        Index("ix_permission_groups_dataroom_id", "dataroom_id"),
    )

    id = Column(String(50), primary_key=True)
    dataroom_id = Column(String(50), ForeignKey("datarooms.id", ondelete="CASCADE"), nullable=False)
    team_id = Column(String(50), ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    name = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class AccessControlEntry(Base):
    """One allow/deny row binding a group to a single folder or document.

    ``group_id`` points at either table; ``group_kind`` says which.
    ``pending`` rows await manual review and never grant visibility.
    """

    __tablename__ = "access_control_entries"
    __table_args__ = (
        UniqueConstraint("group_id", "item_id", name="uq_access_control_group_item"),
        Index("ix_access_control_item", "item_id", "item_type"),
    )

    id = Column(String(50), primary_key=True)
    group_id = Column(String(50), nullable=False)
    group_kind = Column(String(20), nullable=False)
    item_id = Column(String(50), nullable=False)
    item_type = Column(String(20), nullable=False)
    can_view = Column(Boolean, nullable=False, default=False)
    can_download = Column(Boolean, nullable=False, default=False)
    pending = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
