"""Closed vocabularies shared by models, services and schemas."""

from enum import Enum


class ItemType(str, Enum):
    """Kind of dataroom item an entry refers to."""
    FOLDER = "FOLDER"
    DOCUMENT = "DOCUMENT"


class GroupKind(str, Enum):
    """Which group table an access control entry belongs to."""
    VIEWER_GROUP = "VIEWER_GROUP"
    PERMISSION_GROUP = "PERMISSION_GROUP"


class AudienceType(str, Enum):
    GENERAL = "GENERAL"
    GROUP = "GROUP"


class PermissionStrategy(str, Enum):
    """How newly placed documents get their access control entries."""
    INHERIT_FROM_PARENT = "INHERIT_FROM_PARENT"
    ASK_EVERY_TIME = "ASK_EVERY_TIME"
    HIDDEN_BY_DEFAULT = "HIDDEN_BY_DEFAULT"
