"""Tests for TrashService: capture, hierarchy traversal, restore and purge."""

from datetime import datetime, timedelta, timezone

import pytest

from dataroom.core.config import settings
from dataroom.exceptions import (
    FolderNotFoundError,
    HierarchyLoopError,
    RestoreConflictError,
    TrashItemNotFoundError,
    ValidationError,
)
from dataroom.models import AccessControlEntry, DataroomDocument, DataroomFolder, TrashItem
from dataroom.services.folder_service import FolderService
from dataroom.services.trash_service import TrashService, get_trash_items_in_folder_hierarchy
from tests.conftest import DATAROOM_ID


@pytest.fixture()
def folders(db, dataroom):
    return FolderService(db)


@pytest.fixture()
def trash(db, dataroom):
    return TrashService(db)


@pytest.fixture()
def tree(folders):
    """/a, /a/b and document d1 inside /a/b."""
    a = folders.create_folder(DATAROOM_ID, "A")
    b = folders.create_folder(DATAROOM_ID, "B", parent_path="/a")
    d1 = folders.add_document(DATAROOM_ID, "doc-1", "d1.pdf", folder_id=b.id)
    return a, b, d1


def _live_snapshot(db):
    db.expire_all()
    folders = {
        (f.id, f.parent_id, f.path)
        for f in db.query(DataroomFolder).filter(DataroomFolder.removed_at.is_(None))
    }
    documents = {
        (d.id, d.folder_id, d.name)
        for d in db.query(DataroomDocument).filter(DataroomDocument.removed_at.is_(None))
    }
    return folders, documents


def _trash_row(item_id, parent_id, item_type="FOLDER", name=None):
    return TrashItem(
        id=f"t-{item_id}",
        dataroom_id=DATAROOM_ID,
        item_type=item_type,
        item_id=item_id,
        parent_id=parent_id,
        name=name or item_id,
        trash_path=f"/{item_id}",
        purge_at=datetime.now(timezone.utc),
    )


class TestSoftDelete:

    def test_captures_whole_subtree(self, trash, tree, db):
        a, b, d1 = tree

        captured = trash.soft_delete_folder(DATAROOM_ID, a.id, deleted_by="user-1")

        assert captured == 3
        rows = db.query(TrashItem).all()
        assert {r.item_id for r in rows} == {a.id, b.id, d1.id}
        assert all(r.deleted_by == "user-1" for r in rows)

    def test_count_is_descendants_plus_documents_plus_one(self, folders, trash):
        root = folders.create_folder(DATAROOM_ID, "Root")
        folders.create_folder(DATAROOM_ID, "One", parent_path="/root")
        folders.create_folder(DATAROOM_ID, "Two", parent_path="/root")
        deep = folders.create_folder(DATAROOM_ID, "Deep", parent_path="/root/two")
        folders.add_document(DATAROOM_ID, "doc-1", "a.pdf", folder_id=root.id)
        folders.add_document(DATAROOM_ID, "doc-2", "b.pdf", folder_id=deep.id)

        assert trash.soft_delete_folder(DATAROOM_ID, root.id) == 3 + 2 + 1

    def test_trashed_folder_leaves_live_tree(self, folders, trash, tree):
        a, _, _ = tree

        trash.soft_delete_folder(DATAROOM_ID, a.id)

        folders_list, documents, _ = folders.list_children(DATAROOM_ID)
        assert folders_list == []
        assert documents == []
        with pytest.raises(FolderNotFoundError):
            folders.get_folder(DATAROOM_ID, a.id)

    def test_document_delete_captures_one(self, trash, tree, db):
        _, b, d1 = tree

        assert trash.soft_delete_document(DATAROOM_ID, d1.id) == 1

        row = db.query(TrashItem).one()
        assert row.item_type == "DOCUMENT"
        assert row.parent_id == b.id
        assert row.trash_path == "/a/b/d1.pdf"

    def test_path_is_free_after_delete(self, folders, trash, tree):
        a, _, _ = tree
        trash.soft_delete_folder(DATAROOM_ID, a.id)

        again = folders.create_folder(DATAROOM_ID, "A")
        assert again.path == "/a"

    def test_missing_folder(self, trash, dataroom):
        with pytest.raises(FolderNotFoundError):
            trash.soft_delete_folder(DATAROOM_ID, "nope")


class TestHierarchy:

    def test_collects_nested_rows(self, trash, tree):
        a, b, d1 = tree
        trash.soft_delete_folder(DATAROOM_ID, a.id)
        root = trash.trash_repo.get_by_item_id(DATAROOM_ID, a.id)

        items = trash.get_hierarchy(DATAROOM_ID, root.id)

        assert sorted(i.item_id for i in items) == sorted([a.id, b.id, d1.id])

    def test_same_input_same_result(self):
        rows = [
            _trash_row("a", None),
            _trash_row("b", "a"),
            _trash_row("c", "a"),
            _trash_row("d", "b", item_type="DOCUMENT"),
        ]
        first = get_trash_items_in_folder_hierarchy(rows[0], rows)
        second = get_trash_items_in_folder_hierarchy(rows[0], rows)

        assert set(first) == set(second) == {"a", "b", "c", "d"}
        assert len(first) == 4

    def test_duplicate_rows_collapse_by_item_id(self):
        rows = [
            _trash_row("a", None),
            _trash_row("b", "a"),
            TrashItem(id="t-b-again", dataroom_id=DATAROOM_ID, item_type="FOLDER",
                      item_id="b", parent_id="a", name="b", trash_path="/a/b",
                      purge_at=datetime.now(timezone.utc)),
        ]
        result = get_trash_items_in_folder_hierarchy(rows[0], rows)
        assert sorted(result) == ["a", "b"]

    def test_documents_are_not_expanded(self):
        rows = [
            _trash_row("d", None, item_type="DOCUMENT"),
            _trash_row("x", "d"),
        ]
        assert list(get_trash_items_in_folder_hierarchy(rows[0], rows)) == ["d"]

    def test_loop_raises(self):
        rows = [
            _trash_row("a", "b"),
            _trash_row("b", "a"),
        ]
        with pytest.raises(HierarchyLoopError):
            get_trash_items_in_folder_hierarchy(rows[0], rows)


class TestListTrash:

    def test_root_only_lists_top_entries(self, trash, tree):
        a, _, _ = tree
        trash.soft_delete_folder(DATAROOM_ID, a.id)

        entries = trash.list_trash(DATAROOM_ID)

        assert [e["item_id"] for e in entries] == [a.id]
        assert entries[0]["children"] == []

    def test_nested_listing(self, trash, tree):
        a, b, d1 = tree
        trash.soft_delete_folder(DATAROOM_ID, a.id)

        entries = trash.list_trash(DATAROOM_ID, root_only=False)

        child = entries[0]["children"][0]
        assert child["item_id"] == b.id
        assert [c["item_id"] for c in child["children"]] == [d1.id]

    def test_listing_by_trashed_path(self, trash, tree):
        a, b, _ = tree
        trash.soft_delete_folder(DATAROOM_ID, a.id)

        entries = trash.list_trash(DATAROOM_ID, path="/a")

        assert [e["item_id"] for e in entries] == [b.id]

    def test_unknown_path(self, trash, dataroom):
        with pytest.raises(TrashItemNotFoundError):
            trash.list_trash(DATAROOM_ID, path="/missing")


class TestRestore:

    def test_restore_rebuilds_identical_tree(self, trash, tree, db):
        a, b, _ = tree
        before = _live_snapshot(db)
        trash.soft_delete_folder(DATAROOM_ID, a.id)
        root = trash.trash_repo.get_by_item_id(DATAROOM_ID, a.id)

        restored = trash.restore(DATAROOM_ID, root.id)

        assert restored == 3
        assert _live_snapshot(db) == before
        assert db.get(DataroomFolder, b.id).path == "/a/b"
        assert db.query(TrashItem).count() == 0

    def test_restore_single_document(self, trash, tree, db):
        _, b, d1 = tree
        trash.soft_delete_document(DATAROOM_ID, d1.id)
        row = trash.trash_repo.get_by_item_id(DATAROOM_ID, d1.id)

        assert trash.restore(DATAROOM_ID, row.id) == 1
        db.expire_all()
        assert db.get(DataroomDocument, d1.id).removed_at is None
        assert db.get(DataroomDocument, d1.id).folder_id == b.id

    def test_restore_after_parent_rename_lands_in_new_path(self, folders, trash, tree, db):
        a, b, _ = tree
        trash.soft_delete_folder(DATAROOM_ID, b.id)
        folders.rename_folder(DATAROOM_ID, a.id, "Renamed")
        row = trash.trash_repo.get_by_item_id(DATAROOM_ID, b.id)

        trash.restore(DATAROOM_ID, row.id)

        db.expire_all()
        assert db.get(DataroomFolder, b.id).path == "/renamed/b"

    def test_path_taken_is_conflict(self, folders, trash, tree, db):
        a, _, _ = tree
        trash.soft_delete_folder(DATAROOM_ID, a.id)
        folders.create_folder(DATAROOM_ID, "A")
        row = trash.trash_repo.get_by_item_id(DATAROOM_ID, a.id)

        with pytest.raises(RestoreConflictError):
            trash.restore(DATAROOM_ID, row.id)
        assert db.query(TrashItem).count() == 3

    def test_parent_gone_is_conflict(self, trash, tree):
        a, b, _ = tree
        trash.soft_delete_folder(DATAROOM_ID, b.id)
        trash.soft_delete_folder(DATAROOM_ID, a.id)
        row = trash.trash_repo.get_by_item_id(DATAROOM_ID, b.id)

        with pytest.raises(RestoreConflictError) as exc_info:
            trash.restore(DATAROOM_ID, row.id)
        assert "original location" in exc_info.value.message

    def test_document_name_taken_is_conflict(self, folders, trash, tree):
        _, b, d1 = tree
        trash.soft_delete_document(DATAROOM_ID, d1.id)
        folders.add_document(DATAROOM_ID, "doc-9", "d1.pdf", folder_id=b.id)
        row = trash.trash_repo.get_by_item_id(DATAROOM_ID, d1.id)

        with pytest.raises(RestoreConflictError):
            trash.restore(DATAROOM_ID, row.id)

    def test_unknown_trash_item(self, trash, dataroom):
        with pytest.raises(TrashItemNotFoundError):
            trash.restore(DATAROOM_ID, "nope")


class TestRestoreTo:

    def test_restore_folder_under_new_parent(self, folders, trash, tree, db):
        a, b, d1 = tree
        target = folders.create_folder(DATAROOM_ID, "Target")
        trash.soft_delete_folder(DATAROOM_ID, b.id)
        row = trash.trash_repo.get_by_item_id(DATAROOM_ID, b.id)

        restored = trash.restore_to(DATAROOM_ID, [row.id], target.id)

        assert restored == 2
        db.expire_all()
        moved = db.get(DataroomFolder, b.id)
        assert (moved.parent_id, moved.path, moved.removed_at) == (target.id, "/target/b", None)
        assert db.get(DataroomDocument, d1.id).folder_id == b.id

    def test_restore_to_root(self, trash, tree, db):
        _, b, _ = tree
        trash.soft_delete_folder(DATAROOM_ID, b.id)
        row = trash.trash_repo.get_by_item_id(DATAROOM_ID, b.id)

        trash.restore_to(DATAROOM_ID, [row.id], None)

        db.expire_all()
        assert db.get(DataroomFolder, b.id).path == "/b"

    def test_nested_selection_counted_once(self, folders, trash, tree):
        a, b, _ = tree
        target = folders.create_folder(DATAROOM_ID, "Target")
        trash.soft_delete_folder(DATAROOM_ID, a.id)
        root = trash.trash_repo.get_by_item_id(DATAROOM_ID, a.id)
        nested = trash.trash_repo.get_by_item_id(DATAROOM_ID, b.id)

        assert trash.restore_to(DATAROOM_ID, [root.id, nested.id], target.id) == 3

    def test_collision_changes_nothing(self, folders, trash, tree, db):
        _, b, d1 = tree
        target = folders.create_folder(DATAROOM_ID, "Target")
        folders.create_folder(DATAROOM_ID, "B", parent_path="/target")
        trash.soft_delete_document(DATAROOM_ID, d1.id)
        trash.soft_delete_folder(DATAROOM_ID, b.id)
        doc_row = trash.trash_repo.get_by_item_id(DATAROOM_ID, d1.id)
        folder_row = trash.trash_repo.get_by_item_id(DATAROOM_ID, b.id)

        with pytest.raises(RestoreConflictError):
            trash.restore_to(DATAROOM_ID, [doc_row.id, folder_row.id], target.id)

        db.expire_all()
        assert db.get(DataroomDocument, d1.id).removed_at is not None
        assert db.query(TrashItem).count() == 2

    def test_unknown_trash_item(self, trash, dataroom):
        with pytest.raises(TrashItemNotFoundError):
            trash.restore_to(DATAROOM_ID, ["nope"], None)


class TestPurge:

    def test_purge_removes_rows_and_entries(self, trash, tree, db):
        a, b, d1 = tree
        db.add(AccessControlEntry(id="ace-1", group_id="g-1", group_kind="VIEWER_GROUP",
                                  item_id=d1.id, item_type="DOCUMENT", can_view=True))
        db.commit()
        trash.soft_delete_folder(DATAROOM_ID, a.id)
        row = trash.trash_repo.get_by_item_id(DATAROOM_ID, a.id)

        assert trash.purge(DATAROOM_ID, row.id) == 3

        assert db.query(TrashItem).count() == 0
        assert db.query(DataroomFolder).count() == 0
        assert db.query(DataroomDocument).count() == 0
        assert db.query(AccessControlEntry).count() == 0

    def test_purge_expired_only_touches_due_items(self, folders, trash, db):
        old = folders.create_folder(DATAROOM_ID, "Old")
        fresh = folders.create_folder(DATAROOM_ID, "Fresh")
        old_id, fresh_id = old.id, fresh.id
        trash.soft_delete_folder(DATAROOM_ID, old.id)
        trash.soft_delete_folder(DATAROOM_ID, fresh.id)
        db.query(TrashItem).filter(TrashItem.item_id == old.id).update(
            {"purge_at": datetime.now(timezone.utc) - timedelta(days=1)})
        db.commit()

        purged = trash.purge_expired()

        assert purged == 1
        assert [r.item_id for r in db.query(TrashItem).all()] == [fresh_id]
        assert db.get(DataroomFolder, old_id) is None

    def test_purge_expired_with_nothing_due(self, trash, tree):
        a, _, _ = tree
        trash.soft_delete_folder(DATAROOM_ID, a.id)
        assert trash.purge_expired() == 0


class TestTrashedPathReused:
    """A trashed folder keeps its path while a new live folder takes it."""

    def test_renaming_new_folder_leaves_trashed_one_alone(self, folders, trash, tree, db):
        a, b, _ = tree
        trash.soft_delete_folder(DATAROOM_ID, a.id)
        new_a = folders.create_folder(DATAROOM_ID, "A")
        folders.rename_folder(DATAROOM_ID, new_a.id, "C")
        row = trash.trash_repo.get_by_item_id(DATAROOM_ID, a.id)

        trash.restore(DATAROOM_ID, row.id)

        paths = {folder_id: path for folder_id, _, path in _live_snapshot(db)[0]}
        assert paths == {a.id: "/a", b.id: "/a/b", new_a.id: "/c"}

    def test_moving_new_folder_leaves_trashed_one_alone(self, folders, trash, tree, db):
        a, b, _ = tree
        trash.soft_delete_folder(DATAROOM_ID, a.id)
        new_a = folders.create_folder(DATAROOM_ID, "A")
        folders.create_folder(DATAROOM_ID, "Dest")

        folders.move_folders(DATAROOM_ID, [new_a.id], "/dest")

        db.expire_all()
        assert db.get(DataroomFolder, a.id).path == "/a"
        assert db.get(DataroomFolder, b.id).path == "/a/b"
        assert db.get(DataroomFolder, new_a.id).path == "/dest/a"

    def test_restore_to_leaves_live_namesake_alone(self, folders, trash, tree, db):
        a, b, _ = tree
        dest = folders.create_folder(DATAROOM_ID, "Dest")
        trash.soft_delete_folder(DATAROOM_ID, a.id)
        new_a = folders.create_folder(DATAROOM_ID, "A")
        x = folders.create_folder(DATAROOM_ID, "X", parent_path="/a")
        row = trash.trash_repo.get_by_item_id(DATAROOM_ID, a.id)

        trash.restore_to(DATAROOM_ID, [row.id], folder_id=dest.id)

        paths = {folder_id: path for folder_id, _, path in _live_snapshot(db)[0]}
        assert paths[new_a.id] == "/a"
        assert paths[x.id] == "/a/x"
        assert paths[a.id] == "/dest/a"
        assert paths[b.id] == "/dest/a/b"


class TestDeepTrees:

    def _chain(self, folders, depth):
        created = []
        parent_path = None
        for _ in range(depth):
            folder = folders.create_folder(DATAROOM_ID, "F", parent_path=parent_path)
            created.append(folder)
            parent_path = folder.path
        return created

    def test_long_chain_is_not_mistaken_for_a_loop(self, folders, trash, db, monkeypatch):
        monkeypatch.setattr(settings, "max_folder_depth", 100)
        chain = self._chain(folders, 70)
        monkeypatch.setattr(settings, "max_folder_depth", 64)
        before = _live_snapshot(db)

        assert trash.soft_delete_folder(DATAROOM_ID, chain[0].id) == 70
        row = trash.trash_repo.get_by_item_id(DATAROOM_ID, chain[0].id)
        assert trash.restore(DATAROOM_ID, row.id) == 70

        assert _live_snapshot(db) == before

    def test_restore_to_rejects_too_deep_result(self, folders, trash, db, monkeypatch):
        monkeypatch.setattr(settings, "max_folder_depth", 3)
        chain = self._chain(folders, 3)
        holder = folders.create_folder(DATAROOM_ID, "Holder", parent_path="/f")
        trash.soft_delete_folder(DATAROOM_ID, chain[1].id)
        row = trash.trash_repo.get_by_item_id(DATAROOM_ID, chain[1].id)

        with pytest.raises(ValidationError) as exc_info:
            trash.restore_to(DATAROOM_ID, [row.id], folder_id=holder.id)

        assert exc_info.value.details == {"field": "folder_id"}
        assert db.query(TrashItem).count() == 2
