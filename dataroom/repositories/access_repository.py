"""Repositories for datarooms, links, groups and access control entries."""

import uuid
from typing import Iterable, List, Optional

from sqlalchemy.orm import Query

from ..exceptions import DataroomNotFoundError, GroupNotFoundError, LinkNotFoundError
from ..models.access import (
    AccessControlEntry,
    PermissionGroup,
    Viewer,
    ViewerGroup,
    ViewerGroupMembership,
)
from ..models.dataroom import Dataroom, Link
from ..models.enums import GroupKind
from .base import BaseRepository


class DataroomRepository(BaseRepository[Dataroom]):
    model_class = Dataroom
    not_found_error = DataroomNotFoundError

    def get_for_team(self, team_id: str, dataroom_id: str) -> Dataroom:
        """Dataroom owned by the team; other teams' datarooms look missing."""
        dataroom = (
            self.db.query(Dataroom)
            .filter(Dataroom.id == dataroom_id, Dataroom.team_id == team_id)
            .first()
        )
        if not dataroom:
            raise DataroomNotFoundError(dataroom_id)
        return dataroom


class LinkRepository(BaseRepository[Link]):
    model_class = Link
    not_found_error = LinkNotFoundError


class ViewerGroupRepository(BaseRepository[ViewerGroup]):
    model_class = ViewerGroup
    not_found_error = GroupNotFoundError

    def get_all(self, dataroom_id: str) -> List[ViewerGroup]:
        return self.db.query(ViewerGroup).filter(ViewerGroup.dataroom_id == dataroom_id).all()

    def has_member(self, group_id: str, email: str) -> bool:
        return (
            self.db.query(ViewerGroupMembership)
            .join(Viewer, Viewer.id == ViewerGroupMembership.viewer_id)
            .filter(ViewerGroupMembership.group_id == group_id, Viewer.email == email)
            .first()
            is not None
        )


class PermissionGroupRepository(BaseRepository[PermissionGroup]):
    model_class = PermissionGroup
    not_found_error = GroupNotFoundError

    def get_all(self, dataroom_id: str) -> List[PermissionGroup]:
        return (
            self.db.query(PermissionGroup)
            .filter(PermissionGroup.dataroom_id == dataroom_id)
            .all()
        )


class AccessControlRepository:
    """Access control entries. At most one row exists per (group, item)."""

    def __init__(self, db):
        self.db = db

    def _query(self, group_id: str) -> Query:
        return self.db.query(AccessControlEntry).filter(AccessControlEntry.group_id == group_id)

    def get_for_group(self, group_id: str, item_type: Optional[str] = None) -> List[AccessControlEntry]:
        query = self._query(group_id)
        if item_type is not None:
            query = query.filter(AccessControlEntry.item_type == item_type)
        return query.all()

    def get(self, group_id: str, item_id: str) -> Optional[AccessControlEntry]:
        return self._query(group_id).filter(AccessControlEntry.item_id == item_id).first()

    def get_for_items(self, item_ids: Iterable[str]) -> List[AccessControlEntry]:
        ids = list(item_ids)
        if not ids:
            return []
        return self.db.query(AccessControlEntry).filter(AccessControlEntry.item_id.in_(ids)).all()

    def upsert(
        self,
        group_id: str,
        group_kind: GroupKind,
        item_id: str,
        item_type: str,
        can_view: bool,
        can_download: bool = False,
        pending: bool = False,
    ) -> AccessControlEntry:
        """Create or overwrite the single row for (group, item)."""
        entry = self.get(group_id, item_id)
        if entry is None:
            entry = AccessControlEntry(
                id=uuid.uuid4().hex,
                group_id=group_id,
                group_kind=group_kind.value,
                item_id=item_id,
                item_type=item_type,
            )
            self.db.add(entry)
        entry.can_view = can_view
        entry.can_download = can_download
        entry.pending = pending
        self.db.flush()
        return entry

    def delete_for_items(self, item_ids: Iterable[str]) -> int:
        ids = list(item_ids)
        if not ids:
            return 0
        return (
            self.db.query(AccessControlEntry)
            .filter(AccessControlEntry.item_id.in_(ids))
            .delete(synchronize_session="fetch")
        )
