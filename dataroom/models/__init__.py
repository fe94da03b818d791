"""Database models."""

from .enums import ItemType, GroupKind, AudienceType, PermissionStrategy
from .user import User, Team, TeamMember, AuditLog
from .dataroom import Dataroom, Link
from .folder import DataroomFolder, DataroomDocument
from .trash import TrashItem
from .access import (
    Viewer,
    ViewerGroup,
    ViewerGroupMembership,
    PermissionGroup,
    AccessControlEntry,
)

__all__ = [
    "ItemType", "GroupKind", "AudienceType", "PermissionStrategy",
    "User", "Team", "TeamMember", "AuditLog",
    "Dataroom", "Link",
    "DataroomFolder", "DataroomDocument",
    "TrashItem",
    "Viewer", "ViewerGroup", "ViewerGroupMembership",
    "PermissionGroup", "AccessControlEntry",
]
