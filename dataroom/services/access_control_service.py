"""Access control engine: which documents a link's group may see.

Resolution is fail-closed everywhere. For one group and one document:

1. an explicit document entry decides (pending entries never grant);
2. otherwise the nearest ancestor folder with an explicit entry decides
   (this is what the INHERIT_FROM_PARENT strategy relies on);
3. otherwise the document is hidden.

A viewer group with ``allow_all`` sees every live document. A link with no
group, or an unknown link, sees nothing.
"""

import logging
from typing import Dict, List, Optional, Set, Tuple, Union

from sqlalchemy.orm import Session

from ..database import transaction
from ..exceptions import (
    DocumentNotFoundError,
    FolderNotFoundError,
    ForbiddenError,
    GroupNotFoundError,
    ValidationError,
)
from ..models.access import AccessControlEntry, PermissionGroup, ViewerGroup
from ..models.dataroom import Link
from ..models.enums import AudienceType, GroupKind, ItemType, PermissionStrategy
from ..models.folder import DataroomFolder
from ..repositories.access_repository import (
    AccessControlRepository,
    LinkRepository,
    PermissionGroupRepository,
    ViewerGroupRepository,
)
from ..repositories.folder_repository import DataroomDocumentRepository, FolderRepository
from .folder_service import normalize_folder_path

logger = logging.getLogger(__name__)


def coerce_strategy(value: Union[str, PermissionStrategy]) -> PermissionStrategy:
    try:
        return PermissionStrategy(value)
    except ValueError:
        raise ValidationError(
            f"Unknown permission strategy: {value}", field="strategy"
        ) from None


class AccessControlService:
    """Viewer groups, permission groups and their per-item entries.

    Public methods:
        get_filtered_accessible_document_ids -- visible set for a link
        resolve_document_visibility          -- visible set for a group
        apply_permissions                    -- strategy for new documents
        apply_default_permissions            -- viewer-group defaults
        set_group_permissions                -- explicit upserts
        check_group_admission                -- may this email use the link
    """

    def __init__(self, db: Session):
        self.db = db
        self.acl_repo = AccessControlRepository(db)
        self.link_repo = LinkRepository(db)
        self.viewer_group_repo = ViewerGroupRepository(db)
        self.permission_group_repo = PermissionGroupRepository(db)
        self.folder_repo = FolderRepository(db)
        self.doc_repo = DataroomDocumentRepository(db)

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def get_filtered_accessible_document_ids(
        self, dataroom_id: str, link_id: Optional[str]
    ) -> Set[str]:
        """Placement ids visible through ``link_id``; empty when anything is missing."""
        if not link_id:
            return set()
        link = self.link_repo.get_by_id_optional(link_id)
        if link is None or link.dataroom_id != dataroom_id:
            return set()
        group_id = link.permission_group_id or link.group_id
        if not group_id:
            return set()
        return self.resolve_document_visibility(dataroom_id, group_id)

    def resolve_document_visibility(self, dataroom_id: str, group_id: str) -> Set[str]:
        documents = self.doc_repo.get_all(dataroom_id)

        viewer_group = self.viewer_group_repo.get_by_id_optional(group_id)
        if viewer_group is not None and viewer_group.dataroom_id == dataroom_id \
                and viewer_group.allow_all:
            return {d.id for d in documents}

        entries = {e.item_id: e for e in self.acl_repo.get_for_group(group_id)}
        if not entries:
            return set()
        folders = {f.id: f for f in self.folder_repo.get_all(dataroom_id)}
        folder_cache: Dict[str, bool] = {}

        visible = set()
        for document in documents:
            entry = entries.get(document.id)
            if entry is not None and entry.item_type == ItemType.DOCUMENT.value:
                allowed = _grants(entry)
            else:
                allowed = self._inherited(document.folder_id, folders, entries, folder_cache)
            if allowed:
                visible.add(document.id)
        return visible

    def _inherited(
        self,
        folder_id: Optional[str],
        folders: Dict[str, DataroomFolder],
        entries: Dict[str, AccessControlEntry],
        cache: Dict[str, bool],
    ) -> bool:
        """Decision of the nearest ancestor folder carrying an entry."""
        chain: List[str] = []
        seen: Set[str] = set()
        decision = False
        current = folder_id
        while current is not None and current in folders:
            if current in cache:
                decision = cache[current]
                break
            if current in seen:
                # Malformed chain: deny.
                break
            chain.append(current)
            seen.add(current)
            entry = entries.get(current)
            if entry is not None and entry.item_type == ItemType.FOLDER.value:
                decision = _grants(entry)
                break
            current = folders[current].parent_id
        for visited in chain:
            cache[visited] = decision
        return decision

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def apply_permissions(
        self,
        dataroom_id: str,
        document_ids: List[str],
        strategy: Union[str, PermissionStrategy],
        folder_path: Optional[str] = None,
    ) -> Dict[str, int]:
        """Apply an inheritance strategy to placements in one transaction.

        INHERIT_FROM_PARENT removes explicit document entries so the parent
        folder's entries decide; root-level documents have no parent folder
        and get a view-only row for every group instead. ASK_EVERY_TIME
        writes pending deny rows for every group. HIDDEN_BY_DEFAULT writes
        deny rows for every group.

        ``folder_path``, when given, must be the live folder holding every
        listed document.

        Returns:
            {"document_count", "entries_written", "entries_cleared"}
        """
        strategy = coerce_strategy(strategy)
        if not document_ids:
            raise ValidationError("document_ids must not be empty", field="document_ids")

        with transaction(self.db):
            unique_ids = list(dict.fromkeys(document_ids))
            documents = self.doc_repo.get_many(dataroom_id, unique_ids)
            found = {d.id for d in documents}
            missing = [doc_id for doc_id in unique_ids if doc_id not in found]
            if missing:
                raise DocumentNotFoundError(missing[0])

            normalized = normalize_folder_path(folder_path)
            if normalized:
                folder = self.folder_repo.get_by_path(dataroom_id, normalized)
                if folder is None:
                    raise FolderNotFoundError(normalized)
                if any(d.folder_id != folder.id for d in documents):
                    raise ValidationError(
                        "All documents must be placed in folder_path", field="folder_path"
                    )

            written = 0
            cleared = 0
            if strategy is PermissionStrategy.INHERIT_FROM_PARENT:
                by_id = {d.id: d for d in documents}
                root_ids = [doc_id for doc_id in unique_ids if by_id[doc_id].folder_id is None]
                cleared = self.acl_repo.delete_for_items(
                    [doc_id for doc_id in unique_ids if by_id[doc_id].folder_id is not None]
                )
                for group_id, kind in self._groups(dataroom_id):
                    for doc_id in root_ids:
                        self.acl_repo.upsert(group_id, kind, doc_id, ItemType.DOCUMENT.value,
                                             can_view=True, can_download=False)
                        written += 1
            elif strategy is PermissionStrategy.ASK_EVERY_TIME:
                for group_id, kind in self._groups(dataroom_id):
                    for doc_id in unique_ids:
                        self.acl_repo.upsert(group_id, kind, doc_id, ItemType.DOCUMENT.value,
                                             can_view=False, pending=True)
                        written += 1
            elif strategy is PermissionStrategy.HIDDEN_BY_DEFAULT:
                for group_id, kind in self._groups(dataroom_id):
                    for doc_id in unique_ids:
                        self.acl_repo.upsert(group_id, kind, doc_id, ItemType.DOCUMENT.value,
                                             can_view=False)
                        written += 1
            else:
                raise ValidationError(f"Unhandled strategy: {strategy}", field="strategy")

        logger.info(
            "Permissions applied",
            extra={"dataroom_id": dataroom_id, "strategy": strategy.value,
                   "document_count": len(unique_ids), "entries_written": written,
                   "entries_cleared": cleared},
        )
        return {
            "document_count": len(unique_ids),
            "entries_written": written,
            "entries_cleared": cleared,
        }

    def apply_default_permissions(self, dataroom_id: str, document_ids: List[str]) -> int:
        """Write each opted-in viewer group's default view/download flags."""
        written = 0
        with transaction(self.db):
            for group in self.viewer_group_repo.get_all(dataroom_id):
                if not (group.default_can_view or group.default_can_download):
                    continue
                for doc_id in dict.fromkeys(document_ids):
                    self.acl_repo.upsert(
                        group.id, GroupKind.VIEWER_GROUP, doc_id, ItemType.DOCUMENT.value,
                        can_view=group.default_can_view,
                        can_download=group.default_can_download,
                    )
                    written += 1
        return written

    def set_group_permissions(
        self, dataroom_id: str, group_id: str, entries: List[dict]
    ) -> List[AccessControlEntry]:
        """Upsert explicit entries for one group; resolves pending rows.

        ``entries`` items are {"item_id", "item_type", "can_view", "can_download"};
        the last entry for an item wins.
        """
        _, kind = self._get_group(dataroom_id, group_id)

        by_item = {}
        for entry in entries:
            by_item[entry["item_id"]] = entry

        with transaction(self.db):
            folder_ids = [i for i, e in by_item.items() if e["item_type"] == ItemType.FOLDER]
            doc_ids = [i for i, e in by_item.items() if e["item_type"] == ItemType.DOCUMENT]
            found_folders = {f.id for f in self.folder_repo.get_many(dataroom_id, folder_ids)}
            for folder_id in folder_ids:
                if folder_id not in found_folders:
                    raise FolderNotFoundError(folder_id)
            found_docs = {d.id for d in self.doc_repo.get_many(dataroom_id, doc_ids)}
            for doc_id in doc_ids:
                if doc_id not in found_docs:
                    raise DocumentNotFoundError(doc_id)

            rows = [
                self.acl_repo.upsert(
                    group_id, kind, item_id, ItemType(entry["item_type"]).value,
                    can_view=bool(entry["can_view"]),
                    can_download=bool(entry.get("can_download", False)),
                    pending=False,
                )
                for item_id, entry in by_item.items()
            ]

        logger.info(
            "Group permissions updated",
            extra={"dataroom_id": dataroom_id, "group_id": group_id, "entry_count": len(rows)},
        )
        return rows

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    def check_group_admission(self, link: Link, email: str) -> None:
        """Raise ForbiddenError unless ``email`` may use ``link``.

        General links admit everyone. Group links admit when the viewer
        group allows all, lists the email as a member, or lists its domain.
        """
        if link.audience_type != AudienceType.GROUP.value and not link.group_id:
            return
        group = self.viewer_group_repo.get_by_id_optional(link.group_id) if link.group_id else None
        if group is None:
            raise ForbiddenError("Email not allowed to access this link")

        email = email.strip().lower()
        if group.allow_all or self.viewer_group_repo.has_member(group.id, email):
            return
        domain = email.rsplit("@", 1)[-1]
        allowed_domains = {d.strip().lstrip("@").lower() for d in (group.domains or [])}
        if domain in allowed_domains:
            return
        logger.warning(
            "Viewer group admission refused",
            extra={"link_id": link.id, "group_id": group.id},
        )
        raise ForbiddenError("Email not allowed to access this link")

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _groups(self, dataroom_id: str) -> List[Tuple[str, GroupKind]]:
        groups = [(g.id, GroupKind.VIEWER_GROUP) for g in self.viewer_group_repo.get_all(dataroom_id)]
        groups += [
            (g.id, GroupKind.PERMISSION_GROUP)
            for g in self.permission_group_repo.get_all(dataroom_id)
        ]
        return groups

    def _get_group(
        self, dataroom_id: str, group_id: str
    ) -> Tuple[Union[ViewerGroup, PermissionGroup], GroupKind]:
        group = self.viewer_group_repo.get_by_id_optional(group_id)
        if group is not None and group.dataroom_id == dataroom_id:
            return group, GroupKind.VIEWER_GROUP
        permission_group = self.permission_group_repo.get_by_id_optional(group_id)
        if permission_group is not None and permission_group.dataroom_id == dataroom_id:
            return permission_group, GroupKind.PERMISSION_GROUP
        raise GroupNotFoundError(group_id)


def _grants(entry: AccessControlEntry) -> bool:
    return bool(entry.can_view) and not entry.pending
