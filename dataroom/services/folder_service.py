"""Deep module for the path-addressed folder store: create, rename, move,
reorder, listing and tree building, plus document placement.

``parent_id`` is the authoritative tree pointer; ``path`` is a materialized
copy kept in sync on every structural change. Renames and moves rewrite the
path prefix of the whole subtree (including trashed descendants, so a later
restore lands where the live tree now is) inside the caller's transaction.
"""

import logging
import re
import unicodedata
import uuid
from typing import Dict, Any, List, Optional, Set, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..database import transaction
from ..exceptions import (
    DocumentNotFoundError,
    FolderCycleError,
    FolderNotFoundError,
    HierarchyLoopError,
    PathConflictError,
    ValidationError,
)
from ..models.enums import ItemType
from ..models.folder import DataroomDocument, DataroomFolder
from ..repositories.folder_repository import DataroomDocumentRepository, FolderRepository
from .hierarchical_index import (
    calculate_hierarchical_indexes,
    document_node,
    folder_node,
    sibling_sort_key,
)

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """Lower-case ASCII slug: 'Q3 Reports (final)' -> 'q3-reports-final'."""
    ascii_name = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode()
    return _NON_ALNUM.sub("-", ascii_name.lower()).strip("-")


def parent_path_of(path: str) -> str:
    """'/a/b' -> '/a'; '/a' -> '' (root)."""
    return path.rsplit("/", 1)[0]


def last_segment(path: str) -> str:
    return path.rsplit("/", 1)[-1]


def folder_depth(path: str) -> int:
    """'/a' -> 1, '/a/b' -> 2; the root is 0."""
    return path.count("/")


def check_subtree_depth(
    folder: DataroomFolder, descendants: List[DataroomFolder], new_path: str, field: str
) -> None:
    """Reject placing ``folder`` at ``new_path`` when its subtree would nest too deep."""
    height = max((folder_depth(d.path) for d in descendants), default=folder_depth(folder.path))
    height -= folder_depth(folder.path)
    if folder_depth(new_path) + height > settings.max_folder_depth:
        raise ValidationError(
            f"Folders cannot be nested deeper than {settings.max_folder_depth} levels",
            field=field,
        )


def normalize_folder_path(path: Optional[str]) -> Optional[str]:
    """None, '' and '/' address the root; anything else becomes '/a/b'."""
    if path is None:
        return None
    stripped = "/".join(part for part in path.strip().split("/") if part)
    return f"/{stripped}" if stripped else None


class FolderService:
    """Folder tree operations behind a narrow interface.

    Public methods:
        create_folder     -- new folder under an existing parent path
        get_folder / get_folder_by_path
        list_children     -- folders + documents of one level, display order
        get_tree          -- nested tree with hierarchical indexes
        rename_folder     -- cascades the new segment to every descendant
        move_folders      -- transactional reparent with cycle guard
        reorder           -- assign order_index to siblings
        add_document / move_documents
    """

    def __init__(self, db: Session):
        self.db = db
        self.folder_repo = FolderRepository(db)
        self.doc_repo = DataroomDocumentRepository(db)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_folder(self, dataroom_id: str, folder_id: str) -> DataroomFolder:
        return self.folder_repo.get_scoped(dataroom_id, folder_id)

    def get_folder_by_path(self, dataroom_id: str, path: str) -> DataroomFolder:
        normalized = normalize_folder_path(path)
        folder = self.folder_repo.get_by_path(dataroom_id, normalized) if normalized else None
        if folder is None:
            raise FolderNotFoundError(path)
        return folder

    def compute_indexes(self, dataroom_id: str) -> Dict[str, str]:
        folders = self.folder_repo.get_all(dataroom_id)
        documents = self.doc_repo.get_all(dataroom_id)
        return calculate_hierarchical_indexes(
            [document_node(d) for d in documents],
            [folder_node(f) for f in folders],
        )

    def list_children(
        self, dataroom_id: str, path: Optional[str] = None
    ) -> Tuple[List[DataroomFolder], List[DataroomDocument], Dict[str, str]]:
        """Direct children of ``path`` ordered by order_index (nulls last) then name."""
        normalized = normalize_folder_path(path)
        parent_id = self.get_folder_by_path(dataroom_id, normalized).id if normalized else None

        folders = sorted(
            self.folder_repo.get_children(dataroom_id, parent_id),
            key=lambda f: sibling_sort_key(folder_node(f)),
        )
        documents = sorted(
            self.doc_repo.get_in_folder(dataroom_id, parent_id),
            key=lambda d: sibling_sort_key(document_node(d)),
        )
        return folders, documents, self.compute_indexes(dataroom_id)

    def get_tree(self, dataroom_id: str) -> List[Dict[str, Any]]:
        """Nested folders and documents with their display indexes."""
        folders = self.folder_repo.get_all(dataroom_id)
        documents = self.doc_repo.get_all(dataroom_id)
        indexes = calculate_hierarchical_indexes(
            [document_node(d) for d in documents],
            [folder_node(f) for f in folders],
        )
        folder_ids = {f.id for f in folders}

        nodes: Dict[str, Dict[str, Any]] = {}
        children: Dict[Optional[str], List[Tuple[Any, Dict[str, Any]]]] = {}

        for f in folders:
            node = {
                "id": f.id,
                "name": f.name,
                "type": ItemType.FOLDER.value,
                "path": f.path,
                "order_index": f.order_index,
                "hierarchical_index": indexes.get(f.id),
                "children": [],
            }
            nodes[f.id] = node
            parent = f.parent_id if f.parent_id in folder_ids else None
            children.setdefault(parent, []).append((sibling_sort_key(folder_node(f)), node))

        for d in documents:
            node = {
                "id": d.id,
                "name": d.name,
                "type": ItemType.DOCUMENT.value,
                "path": None,
                "order_index": d.order_index,
                "hierarchical_index": indexes.get(d.id),
                "children": [],
            }
            parent = d.folder_id if d.folder_id in folder_ids else None
            children.setdefault(parent, []).append((sibling_sort_key(document_node(d)), node))

        for parent_id, entries in children.items():
            entries.sort(key=lambda e: e[0])
            if parent_id is not None:
                nodes[parent_id]["children"] = [node for _, node in entries]

        return [node for _, node in children.get(None, [])]

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_folder(
        self,
        dataroom_id: str,
        name: str,
        parent_path: Optional[str] = None,
        order_index: Optional[int] = None,
    ) -> DataroomFolder:
        """Create ``name`` under ``parent_path`` (None = root).

        Raises:
            ValidationError: name has no usable characters, or the folder
                would nest deeper than ``max_folder_depth``.
            FolderNotFoundError: parent path does not exist.
            PathConflictError: a live folder already holds the path.
        """
        slug = slugify(name)
        if not slug:
            raise ValidationError("Folder name must contain letters or digits", field="name")

        with transaction(self.db):
            parent = None
            normalized_parent = normalize_folder_path(parent_path)
            if normalized_parent:
                parent = self.folder_repo.get_by_path(dataroom_id, normalized_parent)
                if parent is None:
                    raise FolderNotFoundError(normalized_parent)

            path = f"{parent.path if parent else ''}/{slug}"
            if folder_depth(path) > settings.max_folder_depth:
                raise ValidationError(
                    f"Folders cannot be nested deeper than {settings.max_folder_depth} levels",
                    field="parent_path",
                )
            if self.folder_repo.get_by_path(dataroom_id, path) is not None:
                raise PathConflictError(path)

            folder = DataroomFolder(
                id=uuid.uuid4().hex,
                dataroom_id=dataroom_id,
                parent_id=parent.id if parent else None,
                name=name.strip(),
                path=path,
                order_index=order_index,
            )
            try:
                self.folder_repo.add(folder)
            except IntegrityError:
                # Lost a race with a concurrent create of the same path.
                raise PathConflictError(path)

        logger.info(
            "Folder created",
            extra={"dataroom_id": dataroom_id, "folder_id": folder.id, "path": path},
        )
        return folder

    def rename_folder(self, dataroom_id: str, folder_id: str, new_name: str) -> DataroomFolder:
        """Rename a folder and rewrite the path prefix of its whole subtree."""
        slug = slugify(new_name)
        if not slug:
            raise ValidationError("Folder name must contain letters or digits", field="name")

        with transaction(self.db):
            folder = self.folder_repo.get_for_update(dataroom_id, folder_id)
            new_path = f"{parent_path_of(folder.path)}/{slug}"
            rewritten = 0
            if new_path != folder.path:
                if self.folder_repo.get_by_path(dataroom_id, new_path) is not None:
                    raise PathConflictError(new_path)
                rewritten = self.folder_repo.rewrite_subtree(folder, new_path)
            folder.name = new_name.strip()
            self.db.flush()

        logger.info(
            "Folder renamed",
            extra={"dataroom_id": dataroom_id, "folder_id": folder_id, "path": new_path,
                   "rewritten": rewritten},
        )
        return folder

    def move_folders(
        self,
        dataroom_id: str,
        folder_ids: List[str],
        destination_path: Optional[str],
    ) -> Dict[str, Any]:
        """Reparent every folder in ``folder_ids`` under ``destination_path``.

        All moves succeed or none do. The cycle guard walks the stored
        ``parent_id`` chain of the destination inside the transaction, with
        the destination row locked, so it never trusts a stale read.

        Returns:
            {"updated_count": int, "new_path": str}
        """
        if not folder_ids:
            raise ValidationError("folder_ids must not be empty", field="folder_ids")

        normalized = normalize_folder_path(destination_path)
        with transaction(self.db):
            destination = None
            if normalized:
                destination = self.folder_repo.get_by_path(dataroom_id, normalized)
                if destination is None:
                    raise FolderNotFoundError(normalized)
                destination = self.folder_repo.get_for_update(dataroom_id, destination.id)

            ancestry = self._ancestry(destination) if destination else set()
            dest_path = destination.path if destination else ""
            dest_id = destination.id if destination else None

            updated = 0
            for folder_id in dict.fromkeys(folder_ids):
                folder = self.folder_repo.get_for_update(dataroom_id, folder_id)
                if folder.id in ancestry:
                    raise FolderCycleError(folder.id, normalized or "/")
                if folder.parent_id == dest_id:
                    continue

                new_path = f"{dest_path}/{last_segment(folder.path)}"
                if self.folder_repo.get_by_path(dataroom_id, new_path) is not None:
                    raise PathConflictError(new_path)

                descendants = self.folder_repo.get_descendants_any(folder)
                check_subtree_depth(folder, descendants, new_path, "destination_path")
                self.folder_repo.rewrite_subtree(folder, new_path, descendants)
                folder.parent_id = dest_id
                self.db.flush()
                updated += 1

        logger.info(
            "Folders moved",
            extra={"dataroom_id": dataroom_id, "updated_count": updated,
                   "destination": normalized or "/"},
        )
        return {"updated_count": updated, "new_path": normalized or "/"}

    def reorder(self, dataroom_id: str, items: List[Dict[str, Any]]) -> int:
        """Apply ``order_index`` values; items are {"id", "type", "order_index"}."""
        with transaction(self.db):
            for item in items:
                if item["type"] == ItemType.FOLDER:
                    target = self.folder_repo.get_scoped(dataroom_id, item["id"])
                else:
                    target = self.doc_repo.get_scoped(dataroom_id, item["id"])
                target.order_index = item.get("order_index")
            self.db.flush()
        return len(items)

    def add_document(
        self,
        dataroom_id: str,
        document_id: str,
        name: str,
        folder_id: Optional[str] = None,
        order_index: Optional[int] = None,
    ) -> DataroomDocument:
        with transaction(self.db):
            if folder_id:
                self.folder_repo.get_scoped(dataroom_id, folder_id)
            placement = DataroomDocument(
                id=uuid.uuid4().hex,
                dataroom_id=dataroom_id,
                document_id=document_id,
                name=name.strip(),
                folder_id=folder_id or None,
                order_index=order_index,
            )
            self.doc_repo.add(placement)

        logger.info(
            "Document placed",
            extra={"dataroom_id": dataroom_id, "dataroom_document_id": placement.id,
                   "folder_id": placement.folder_id},
        )
        return placement

    def move_documents(
        self, dataroom_id: str, document_ids: List[str], folder_id: Optional[str]
    ) -> int:
        """Move placements to ``folder_id`` (None = root). Paths are untouched."""
        with transaction(self.db):
            if folder_id:
                self.folder_repo.get_scoped(dataroom_id, folder_id)
            unique_ids = list(dict.fromkeys(document_ids))
            documents = self.doc_repo.get_many(dataroom_id, unique_ids)
            found = {d.id for d in documents}
            missing = [doc_id for doc_id in unique_ids if doc_id not in found]
            if missing:
                raise DocumentNotFoundError(missing[0])
            for document in documents:
                document.folder_id = folder_id or None
            self.db.flush()
        return len(documents)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _ancestry(self, folder: DataroomFolder) -> Set[str]:
        """Ids of ``folder`` and all its ancestors, walking stored parent_id.

        Raises HierarchyLoopError when the chain revisits a node.
        """
        chain: Set[str] = set()
        current: Optional[DataroomFolder] = folder
        while current is not None:
            if current.id in chain:
                raise HierarchyLoopError(current.id)
            chain.add(current.id)
            if current.parent_id is None:
                break
            current = self.folder_repo.get_any(current.parent_id)
        return chain
