"""Repositories for the live folder tree and document placements.

Default queries only see live rows (``removed_at IS NULL``); the trash
subsystem uses the ``*_any`` helpers to reach removed rows.
"""

from typing import Iterable, List, Optional

from sqlalchemy.orm import Query

from ..exceptions import DocumentNotFoundError, FolderNotFoundError, HierarchyLoopError
from ..models.folder import DataroomDocument, DataroomFolder
from .base import BaseRepository


class FolderRepository(BaseRepository[DataroomFolder]):
    """Data access layer for dataroom folders."""

    model_class = DataroomFolder
    not_found_error = FolderNotFoundError

    def _base_query(self) -> Query:
        return self.db.query(DataroomFolder).filter(DataroomFolder.removed_at.is_(None))

    def add(self, folder: DataroomFolder) -> DataroomFolder:
        self.db.add(folder)
        self.db.flush()
        return folder

    def get_any(self, folder_id: str) -> Optional[DataroomFolder]:
        """Lookup regardless of soft-delete state."""
        return self.db.query(DataroomFolder).filter(DataroomFolder.id == folder_id).first()

    def get_for_update(self, dataroom_id: str, folder_id: str) -> DataroomFolder:
        """Lock a live folder row for the rest of the transaction (no-op on SQLite)."""
        folder = (
            self._base_query()
            .filter(DataroomFolder.id == folder_id, DataroomFolder.dataroom_id == dataroom_id)
            .with_for_update()
            .first()
        )
        if not folder:
            raise FolderNotFoundError(folder_id)
        return folder

    def get_by_path(self, dataroom_id: str, path: str) -> Optional[DataroomFolder]:
        return (
            self._base_query()
            .filter(DataroomFolder.dataroom_id == dataroom_id, DataroomFolder.path == path)
            .first()
        )

    def get_children(self, dataroom_id: str, parent_id: Optional[str]) -> List[DataroomFolder]:
        query = self._base_query().filter(DataroomFolder.dataroom_id == dataroom_id)
        if parent_id is None:
            query = query.filter(DataroomFolder.parent_id.is_(None))
        else:
            query = query.filter(DataroomFolder.parent_id == parent_id)
        return query.all()

    def get_children_of_many(self, dataroom_id: str, parent_ids: Iterable[str]) -> List[DataroomFolder]:
        """Live children of several folders in one query (one tree level)."""
        ids = list(parent_ids)
        if not ids:
            return []
        return (
            self._base_query()
            .filter(DataroomFolder.dataroom_id == dataroom_id, DataroomFolder.parent_id.in_(ids))
            .all()
        )

    def get_all(self, dataroom_id: str) -> List[DataroomFolder]:
        return self._base_query().filter(DataroomFolder.dataroom_id == dataroom_id).all()

    def get_many(self, dataroom_id: str, folder_ids: Iterable[str]) -> List[DataroomFolder]:
        ids = list(folder_ids)
        if not ids:
            return []
        return (
            self._base_query()
            .filter(DataroomFolder.dataroom_id == dataroom_id, DataroomFolder.id.in_(ids))
            .all()
        )

    def get_children_any_of_many(self, dataroom_id: str, parent_ids: Iterable[str]) -> List[DataroomFolder]:
        """Children (live or trashed) of several folders in one query."""
        ids = list(parent_ids)
        if not ids:
            return []
        return (
            self.db.query(DataroomFolder)
            .filter(DataroomFolder.dataroom_id == dataroom_id, DataroomFolder.parent_id.in_(ids))
            .all()
        )

    def get_descendants_any(self, folder: DataroomFolder) -> List[DataroomFolder]:
        """Every folder (live or trashed) below ``folder``, following parent_id.

        One query per tree level, parents before children. Raises
        HierarchyLoopError when a folder is reached twice.
        """
        result: List[DataroomFolder] = []
        seen = {folder.id}
        frontier = [folder.id]
        while frontier:
            children = self.get_children_any_of_many(folder.dataroom_id, frontier)
            frontier = []
            for child in children:
                if child.id in seen:
                    raise HierarchyLoopError(child.id)
                seen.add(child.id)
                result.append(child)
                frontier.append(child.id)
        return result

    def rewrite_subtree(
        self,
        folder: DataroomFolder,
        new_path: str,
        descendants: Optional[List[DataroomFolder]] = None,
    ) -> int:
        """Give ``folder`` a new path and carry every descendant prefix along.

        Each descendant path is rebuilt from its parent's new path, parents
        first, so every row ends up as ``parent.path + "/" + segment``.
        Returns the number of descendant rows rewritten.
        """
        if descendants is None:
            descendants = self.get_descendants_any(folder)
        folder.path = new_path
        new_paths = {folder.id: new_path}
        for descendant in descendants:
            segment = descendant.path.rsplit("/", 1)[-1]
            descendant.path = f"{new_paths[descendant.parent_id]}/{segment}"
            new_paths[descendant.id] = descendant.path
        self.db.flush()
        return len(descendants)


class DataroomDocumentRepository(BaseRepository[DataroomDocument]):
    """Data access layer for document placements."""

    model_class = DataroomDocument
    not_found_error = DocumentNotFoundError

    def _base_query(self) -> Query:
        return self.db.query(DataroomDocument).filter(DataroomDocument.removed_at.is_(None))

    def add(self, document: DataroomDocument) -> DataroomDocument:
        self.db.add(document)
        self.db.flush()
        return document

    def get_any(self, document_id: str) -> Optional[DataroomDocument]:
        return self.db.query(DataroomDocument).filter(DataroomDocument.id == document_id).first()

    def get_in_folder(self, dataroom_id: str, folder_id: Optional[str]) -> List[DataroomDocument]:
        query = self._base_query().filter(DataroomDocument.dataroom_id == dataroom_id)
        if folder_id is None:
            query = query.filter(DataroomDocument.folder_id.is_(None))
        else:
            query = query.filter(DataroomDocument.folder_id == folder_id)
        return query.all()

    def get_in_folders(self, dataroom_id: str, folder_ids: Iterable[str]) -> List[DataroomDocument]:
        ids = list(folder_ids)
        if not ids:
            return []
        return (
            self._base_query()
            .filter(DataroomDocument.dataroom_id == dataroom_id, DataroomDocument.folder_id.in_(ids))
            .all()
        )

    def get_all(self, dataroom_id: str) -> List[DataroomDocument]:
        return self._base_query().filter(DataroomDocument.dataroom_id == dataroom_id).all()

    def get_many(self, dataroom_id: str, document_ids: Iterable[str]) -> List[DataroomDocument]:
        ids = list(document_ids)
        if not ids:
            return []
        return (
            self._base_query()
            .filter(DataroomDocument.dataroom_id == dataroom_id, DataroomDocument.id.in_(ids))
            .all()
        )

    def find_live_by_name(
        self, dataroom_id: str, folder_id: Optional[str], name: str
    ) -> Optional[DataroomDocument]:
        query = self._base_query().filter(
            DataroomDocument.dataroom_id == dataroom_id,
            DataroomDocument.name == name,
        )
        if folder_id is None:
            query = query.filter(DataroomDocument.folder_id.is_(None))
        else:
            query = query.filter(DataroomDocument.folder_id == folder_id)
        return query.first()
