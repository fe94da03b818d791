"""Trash subsystem: soft-delete capture, hierarchy traversal, restore, purge.

A soft delete marks the live rows ``removed_at`` and writes one TrashItem
per captured row. Trash rows keep the id of the folder they lived in as
``parent_id``, which makes them a tree parallel to the live one: the
children of a trashed folder are the trash rows whose ``parent_id`` is that
folder's id.

All trash rows of a dataroom are loaded in a single query and the hierarchy
is walked in memory, so deep trees cost one round trip instead of one per
folder. The traversal result is keyed by live item id, which makes it
idempotent when the same node is reached twice.
"""

import logging
import uuid
from collections import defaultdict
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..database import transaction
from ..exceptions import (
    DataroomException,
    HierarchyLoopError,
    RestoreConflictError,
    TrashItemNotFoundError,
)
from ..models.access import AccessControlEntry
from ..models.enums import ItemType
from ..models.folder import DataroomDocument, DataroomFolder
from ..models.trash import TrashItem
from ..repositories.folder_repository import DataroomDocumentRepository, FolderRepository
from ..repositories.trash_repository import TrashRepository
from .folder_service import check_subtree_depth, last_segment

logger = logging.getLogger(__name__)

LOCATION_GONE = "Cannot restore item because its original location no longer exists"


def get_trash_items_in_folder_hierarchy(
    root: TrashItem, trash_rows: List[TrashItem]
) -> Dict[str, TrashItem]:
    """Collect ``root`` and every trash row below it, keyed by live item id.

    Only folder-typed items are expanded. Reaching an item id that is
    already collected is a no-op, except when that id is an ancestor of the
    current node: then the stored parent chain loops and
    ``HierarchyLoopError`` is raised instead of recursing forever.
    """
    by_parent: Dict[str, List[TrashItem]] = defaultdict(list)
    for row in trash_rows:
        if row.parent_id is not None:
            by_parent[row.parent_id].append(row)

    result: Dict[str, TrashItem] = {root.item_id: root}
    stack = [(root, frozenset())]
    while stack:
        item, ancestors = stack.pop()
        if item.item_type != ItemType.FOLDER.value:
            continue
        lineage = ancestors | {item.item_id}
        for child in by_parent.get(item.item_id, []):
            if child.item_id in lineage:
                raise HierarchyLoopError(child.item_id)
            if child.item_id in result:
                continue
            result[child.item_id] = child
            stack.append((child, lineage))
    return result


class TrashService:
    """Soft delete and recovery of folders and documents.

    Public methods:
        soft_delete_folder / soft_delete_document -- capture into trash
        get_hierarchy   -- trash rows under one trash item (identity keyed)
        list_trash      -- root entries or the nested trash tree
        restore         -- back to the original location
        restore_to      -- under a different live folder
        purge / purge_expired -- permanent removal
    """

    def __init__(self, db: Session):
        self.db = db
        self.folder_repo = FolderRepository(db)
        self.doc_repo = DataroomDocumentRepository(db)
        self.trash_repo = TrashRepository(db)

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    def soft_delete_folder(
        self, dataroom_id: str, folder_id: str, deleted_by: Optional[str] = None
    ) -> int:
        """Trash a folder with its whole live subtree.

        Returns the number of captured rows: N descendant folders + M
        documents + 1.
        """
        with transaction(self.db):
            root = self.folder_repo.get_for_update(dataroom_id, folder_id)
            folders = self._live_subtree(root)
            documents = self.doc_repo.get_in_folders(dataroom_id, [f.id for f in folders])
            paths = {f.id: f.path for f in folders}

            now = datetime.now(timezone.utc)
            purge_at = now + timedelta(days=settings.trash_retention_days)
            items = []
            for folder in folders:
                folder.removed_at = now
                items.append(TrashItem(
                    id=uuid.uuid4().hex,
                    dataroom_id=dataroom_id,
                    item_type=ItemType.FOLDER.value,
                    item_id=folder.id,
                    parent_id=folder.parent_id,
                    name=folder.name,
                    trash_path=folder.path,
                    dataroom_folder_id=folder.id,
                    deleted_by=deleted_by,
                    deleted_at=now,
                    purge_at=purge_at,
                ))
            for document in documents:
                document.removed_at = now
                items.append(self._document_item(document, paths[document.folder_id], now,
                                                 purge_at, deleted_by))
            self.trash_repo.add_all(items)

        logger.info(
            "Folder moved to trash",
            extra={"dataroom_id": dataroom_id, "folder_id": folder_id,
                   "captured_count": len(items)},
        )
        return len(items)

    def soft_delete_document(
        self, dataroom_id: str, dataroom_document_id: str, deleted_by: Optional[str] = None
    ) -> int:
        with transaction(self.db):
            document = self.doc_repo.get_scoped(dataroom_id, dataroom_document_id)
            folder_path = ""
            if document.folder_id:
                folder_path = self.folder_repo.get_any(document.folder_id).path

            now = datetime.now(timezone.utc)
            purge_at = now + timedelta(days=settings.trash_retention_days)
            document.removed_at = now
            self.trash_repo.add_all(
                [self._document_item(document, folder_path, now, purge_at, deleted_by)]
            )

        logger.info(
            "Document moved to trash",
            extra={"dataroom_id": dataroom_id, "dataroom_document_id": dataroom_document_id},
        )
        return 1

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_hierarchy(self, dataroom_id: str, trash_id: str) -> List[TrashItem]:
        root = self.trash_repo.get_scoped(dataroom_id, trash_id)
        rows = self.trash_repo.get_all(dataroom_id)
        return list(get_trash_items_in_folder_hierarchy(root, rows).values())

    def list_trash(
        self, dataroom_id: str, path: Optional[str] = None, root_only: bool = True
    ) -> List[Dict[str, Any]]:
        """Trash entries at the top level, or below the trashed folder at ``path``.

        With ``root_only`` False every entry carries its nested children.
        """
        rows = self.trash_repo.get_all(dataroom_id)
        by_parent: Dict[Optional[str], List[TrashItem]] = defaultdict(list)
        trashed_folders = {r.item_id for r in rows if r.item_type == ItemType.FOLDER.value}
        for row in rows:
            parent = row.parent_id if row.parent_id in trashed_folders else None
            by_parent[parent].append(row)

        if path:
            normalized = "/" + path.strip("/")
            anchor = next(
                (r for r in rows
                 if r.item_type == ItemType.FOLDER.value and r.trash_path == normalized),
                None,
            )
            if anchor is None:
                raise TrashItemNotFoundError(normalized)
            top = by_parent.get(anchor.item_id, [])
        else:
            top = by_parent.get(None, [])

        visited = set()

        def to_dict(row: TrashItem, nested: bool) -> Dict[str, Any]:
            visited.add(row.id)
            children = []
            if nested and row.item_type == ItemType.FOLDER.value:
                children = [to_dict(c, True) for c in _ordered(by_parent.get(row.item_id, []))
                            if c.id not in visited]
            return {
                "id": row.id,
                "item_type": row.item_type,
                "item_id": row.item_id,
                "parent_id": row.parent_id,
                "name": row.name,
                "trash_path": row.trash_path,
                "deleted_by": row.deleted_by,
                "deleted_at": row.deleted_at,
                "purge_at": row.purge_at,
                "children": children,
            }

        return [to_dict(row, not root_only) for row in _ordered(top)]

    # ------------------------------------------------------------------
    # Restore
    # ------------------------------------------------------------------

    def restore(self, dataroom_id: str, trash_id: str) -> int:
        """Bring a trash item and everything captured under it back to life.

        Raises:
            RestoreConflictError: the original parent is gone, or a live item
                now occupies a restored path (folders) or name (documents).
        """
        with transaction(self.db):
            root = self.trash_repo.get_scoped(dataroom_id, trash_id)
            items = list(get_trash_items_in_folder_hierarchy(
                root, self.trash_repo.get_all(dataroom_id)).values())

            if root.parent_id is not None:
                parent = self.folder_repo.get_by_id_optional(root.parent_id)
                if parent is None or parent.dataroom_id != dataroom_id:
                    raise RestoreConflictError(LOCATION_GONE, trash_item_id=trash_id)

            for item in items:
                self._check_original_slot(dataroom_id, item, trash_id)

            self._revive(items)
            self.trash_repo.delete_for_items(dataroom_id, [i.item_id for i in items])

        logger.info(
            "Trash item restored",
            extra={"dataroom_id": dataroom_id, "trash_item_id": trash_id,
                   "restored_count": len(items)},
        )
        return len(items)

    def restore_to(
        self, dataroom_id: str, trash_ids: List[str], folder_id: Optional[str] = None
    ) -> int:
        """Restore trash items under a different live folder (None = root).

        Folder paths are recomputed for the restored subtree. Every
        collision is checked before anything changes.
        """
        with transaction(self.db):
            target = self.folder_repo.get_scoped(dataroom_id, folder_id) if folder_id else None
            target_path = target.path if target else ""
            target_id = target.id if target else None

            unique_ids = list(dict.fromkeys(trash_ids))
            roots = self.trash_repo.get_many(dataroom_id, unique_ids)
            found = {r.id for r in roots}
            missing = [t for t in unique_ids if t not in found]
            if missing:
                raise TrashItemNotFoundError(missing[0])

            rows = self.trash_repo.get_all(dataroom_id)
            hierarchies = {r.id: get_trash_items_in_folder_hierarchy(r, rows) for r in roots}
            # A selected item already covered by another selected folder moves with it.
            covered = {
                item_id
                for root in roots
                for item_id in hierarchies[root.id]
                if item_id != root.item_id
            }
            roots = [r for r in roots if r.item_id not in covered]

            claimed_paths = set()
            claimed_names = set()
            subtrees = {}
            for root in roots:
                if root.item_type == ItemType.FOLDER.value:
                    folder = self.folder_repo.get_any(root.item_id)
                    new_path = f"{target_path}/{last_segment(folder.path)}"
                    if new_path in claimed_paths or \
                            self.folder_repo.get_by_path(dataroom_id, new_path) is not None:
                        raise RestoreConflictError(
                            f"A folder already exists at path '{new_path}'", trash_item_id=root.id)
                    subtrees[root.id] = self.folder_repo.get_descendants_any(folder)
                    check_subtree_depth(folder, subtrees[root.id], new_path, "folder_id")
                    claimed_paths.add(new_path)
                else:
                    if root.name in claimed_names or \
                            self.doc_repo.find_live_by_name(dataroom_id, target_id, root.name):
                        raise RestoreConflictError(
                            f"A document named '{root.name}' already exists here",
                            trash_item_id=root.id)
                    claimed_names.add(root.name)

            restored = 0
            for root in roots:
                items = list(hierarchies[root.id].values())
                if root.item_type == ItemType.FOLDER.value:
                    folder = self.folder_repo.get_any(root.item_id)
                    self.folder_repo.rewrite_subtree(
                        folder, f"{target_path}/{last_segment(folder.path)}", subtrees[root.id])
                    folder.parent_id = target_id
                else:
                    self.doc_repo.get_any(root.item_id).folder_id = target_id
                self._revive(items)
                self.trash_repo.delete_for_items(dataroom_id, [i.item_id for i in items])
                restored += len(items)

        logger.info(
            "Trash items restored to folder",
            extra={"dataroom_id": dataroom_id, "folder_id": folder_id, "restored_count": restored},
        )
        return restored

    # ------------------------------------------------------------------
    # Purge
    # ------------------------------------------------------------------

    def purge(self, dataroom_id: str, trash_id: str) -> int:
        """Permanently delete a trash item, its captured subtree and their ACL rows."""
        with transaction(self.db):
            root = self.trash_repo.get_scoped(dataroom_id, trash_id)
            items = get_trash_items_in_folder_hierarchy(root, self.trash_repo.get_all(dataroom_id))
            count = self._purge_items(dataroom_id, list(items.values()))

        logger.info(
            "Trash item purged",
            extra={"dataroom_id": dataroom_id, "trash_item_id": trash_id, "purged_count": count},
        )
        return count

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Purge every trash item whose ``purge_at`` has passed.

        Each expired item is purged in its own transaction; one failure is
        logged and does not block the rest.
        """
        now = now or datetime.now(timezone.utc)
        # Snapshot ids: purged rows are gone once their transaction commits.
        expired = [(r.id, r.item_id, r.dataroom_id) for r in self.trash_repo.get_expired(now)]
        handled = set()
        total = 0
        for trash_id, item_id, dataroom_id in expired:
            if item_id in handled:
                continue
            try:
                with transaction(self.db):
                    current = self.trash_repo.get_by_id_optional(trash_id)
                    if current is None:
                        continue
                    items = get_trash_items_in_folder_hierarchy(
                        current, self.trash_repo.get_all(dataroom_id))
                    total += self._purge_items(dataroom_id, list(items.values()))
                    handled.update(items)
            except DataroomException as e:
                logger.warning(
                    "Failed to purge expired trash item",
                    extra={"trash_item_id": trash_id, "error": e.message},
                )
        if total:
            logger.info("Purged expired trash", extra={"purged_count": total})
        return total

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _live_subtree(self, root: DataroomFolder) -> List[DataroomFolder]:
        """Root plus every live descendant folder, breadth first."""
        result = [root]
        seen = {root.id}
        frontier = [root.id]
        while frontier:
            children = self.folder_repo.get_children_of_many(root.dataroom_id, frontier)
            frontier = []
            for child in children:
                if child.id in seen:
                    raise HierarchyLoopError(child.id)
                seen.add(child.id)
                result.append(child)
                frontier.append(child.id)
        return result

    def _document_item(
        self,
        document: DataroomDocument,
        folder_path: str,
        now: datetime,
        purge_at: datetime,
        deleted_by: Optional[str],
    ) -> TrashItem:
        return TrashItem(
            id=uuid.uuid4().hex,
            dataroom_id=document.dataroom_id,
            item_type=ItemType.DOCUMENT.value,
            item_id=document.id,
            parent_id=document.folder_id,
            name=document.name,
            trash_path=f"{folder_path}/{document.name}",
            dataroom_document_id=document.id,
            deleted_by=deleted_by,
            deleted_at=now,
            purge_at=purge_at,
        )

    def _check_original_slot(self, dataroom_id: str, item: TrashItem, trash_id: str) -> None:
        if item.item_type == ItemType.FOLDER.value:
            folder = self.folder_repo.get_any(item.item_id)
            if folder is not None and self.folder_repo.get_by_path(dataroom_id, folder.path):
                raise RestoreConflictError(
                    f"A folder already exists at path '{folder.path}'", trash_item_id=trash_id)
        else:
            document = self.doc_repo.get_any(item.item_id)
            if document is not None and self.doc_repo.find_live_by_name(
                    dataroom_id, document.folder_id, document.name):
                raise RestoreConflictError(
                    f"A document named '{document.name}' already exists here",
                    trash_item_id=trash_id)

    def _revive(self, items: List[TrashItem]) -> None:
        for item in items:
            if item.item_type == ItemType.FOLDER.value:
                row = self.folder_repo.get_any(item.item_id)
            else:
                row = self.doc_repo.get_any(item.item_id)
            if row is not None:
                row.removed_at = None
        self.db.flush()

    def _purge_items(self, dataroom_id: str, items: List[TrashItem]) -> int:
        folder_ids = [i.item_id for i in items if i.item_type == ItemType.FOLDER.value]
        document_ids = [i.item_id for i in items if i.item_type == ItemType.DOCUMENT.value]
        item_ids = folder_ids + document_ids

        self.db.query(AccessControlEntry).filter(
            AccessControlEntry.item_id.in_(item_ids)
        ).delete(synchronize_session="fetch")
        self.trash_repo.delete_for_items(dataroom_id, item_ids)
        if document_ids:
            self.db.query(DataroomDocument).filter(
                DataroomDocument.id.in_(document_ids)
            ).delete(synchronize_session="fetch")
        if folder_ids:
            self.db.query(DataroomFolder).filter(
                DataroomFolder.id.in_(folder_ids)
            ).delete(synchronize_session="fetch")
        self.db.flush()
        return len(items)


def _ordered(rows: List[TrashItem]) -> List[TrashItem]:
    """Folders first, then by name."""
    return sorted(rows, key=lambda r: (r.item_type != ItemType.FOLDER.value, r.name.casefold()))
