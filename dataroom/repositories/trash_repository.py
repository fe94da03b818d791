"""Repository for trash items."""

from datetime import datetime
from typing import Iterable, List, Optional

from ..exceptions import TrashItemNotFoundError
from ..models.trash import TrashItem
from .base import BaseRepository


class TrashRepository(BaseRepository[TrashItem]):
    """Data access layer for trash items."""

    model_class = TrashItem
    not_found_error = TrashItemNotFoundError

    def add_all(self, items: List[TrashItem]) -> List[TrashItem]:
        self.db.add_all(items)
        self.db.flush()
        return items

    def get_all(self, dataroom_id: str) -> List[TrashItem]:
        """Every trash row of a dataroom in one round trip."""
        return (
            self.db.query(TrashItem)
            .filter(TrashItem.dataroom_id == dataroom_id)
            .order_by(TrashItem.deleted_at.desc(), TrashItem.name)
            .all()
        )

    def get_children(self, dataroom_id: str, parent_id: Optional[str]) -> List[TrashItem]:
        query = self.db.query(TrashItem).filter(TrashItem.dataroom_id == dataroom_id)
        if parent_id is None:
            query = query.filter(TrashItem.parent_id.is_(None))
        else:
            query = query.filter(TrashItem.parent_id == parent_id)
        return query.all()

    def get_many(self, dataroom_id: str, trash_ids: Iterable[str]) -> List[TrashItem]:
        ids = list(trash_ids)
        if not ids:
            return []
        return (
            self.db.query(TrashItem)
            .filter(TrashItem.dataroom_id == dataroom_id, TrashItem.id.in_(ids))
            .all()
        )

    def get_by_item_id(self, dataroom_id: str, item_id: str) -> Optional[TrashItem]:
        return (
            self.db.query(TrashItem)
            .filter(TrashItem.dataroom_id == dataroom_id, TrashItem.item_id == item_id)
            .first()
        )

    def get_expired(self, now: datetime) -> List[TrashItem]:
        return self.db.query(TrashItem).filter(TrashItem.purge_at <= now).all()

    def delete_for_items(self, dataroom_id: str, item_ids: Iterable[str]) -> int:
        """Drop every trash row (duplicates included) for the given live item ids."""
        ids = list(item_ids)
        if not ids:
            return 0
        return (
            self.db.query(TrashItem)
            .filter(TrashItem.dataroom_id == dataroom_id, TrashItem.item_id.in_(ids))
            .delete(synchronize_session="fetch")
        )
