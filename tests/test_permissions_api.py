"""Tests for apply-permissions, group entries and link visibility endpoints."""

import pytest

from dataroom.models import AccessControlEntry
from tests.conftest import BASE_URL, make_link, make_viewer_group


@pytest.fixture()
def documents(client, dataroom):
    folder = client.post(f"{BASE_URL}/folders", json={"name": "Finance"}).json()["id"]
    ids = [
        client.post(f"{BASE_URL}/documents",
                    json={"document_id": f"doc-{n}", "name": f"{n}.pdf", "folder_id": folder}).json()["id"]
        for n in range(2)
    ]
    return folder, ids


class TestApplyPermissions:

    def test_hidden_by_default(self, client, db, documents):
        _, (d1, _) = documents
        make_viewer_group(db, name="G1")
        make_viewer_group(db, name="G2")

        resp = client.post(f"{BASE_URL}/apply-permissions",
                           json={"document_ids": [d1], "strategy": "HIDDEN_BY_DEFAULT"})

        assert resp.status_code == 200
        assert resp.json() == {
            "strategy": "HIDDEN_BY_DEFAULT",
            "document_count": 1,
            "entries_written": 2,
            "entries_cleared": 0,
        }
        rows = db.query(AccessControlEntry).all()
        assert len(rows) == 2
        assert not any(r.can_view for r in rows)

    def test_unknown_strategy_returns_422(self, client, documents):
        _, (d1, _) = documents
        resp = client.post(f"{BASE_URL}/apply-permissions",
                           json={"document_ids": [d1], "strategy": "hiddenByDefault"})
        assert resp.status_code == 422

    def test_missing_ids_returns_422(self, client, documents):
        resp = client.post(f"{BASE_URL}/apply-permissions",
                           json={"document_ids": [], "strategy": "HIDDEN_BY_DEFAULT"})
        assert resp.status_code == 422

    def test_wrong_folder_path_returns_400(self, client, db, documents):
        _, (d1, _) = documents
        client.post(f"{BASE_URL}/folders", json={"name": "Other"})
        resp = client.post(f"{BASE_URL}/apply-permissions", json={
            "document_ids": [d1], "strategy": "ASK_EVERY_TIME", "folder_path": "/other",
        })
        assert resp.status_code == 400
        assert resp.json()["details"] == {"field": "folder_path"}

    def test_unknown_document_returns_404(self, client, documents):
        resp = client.post(f"{BASE_URL}/apply-permissions",
                           json={"document_ids": ["missing"], "strategy": "INHERIT_FROM_PARENT"})
        assert resp.status_code == 404


class TestAccessibleDocuments:

    def test_link_without_group_is_empty(self, client, db, documents):
        link = make_link(db)
        resp = client.get(f"{BASE_URL}/links/{link.id}/accessible-documents")
        assert resp.status_code == 200
        assert resp.json() == {"document_ids": []}

    def test_folder_grant_through_group_entries(self, client, db, documents):
        folder, ids = documents
        group = make_viewer_group(db)
        link = make_link(db, group_id=group.id)

        resp = client.put(f"{BASE_URL}/groups/{group.id}/permissions", json={"entries": [
            {"item_id": folder, "item_type": "FOLDER", "can_view": True},
        ]})
        assert resp.status_code == 200
        assert resp.json()[0]["group_kind"] == "VIEWER_GROUP"

        visible = client.get(f"{BASE_URL}/links/{link.id}/accessible-documents").json()
        assert visible == {"document_ids": sorted(ids)}

    def test_unknown_group_returns_404(self, client, documents):
        folder, _ = documents
        resp = client.put(f"{BASE_URL}/groups/missing/permissions", json={"entries": [
            {"item_id": folder, "item_type": "FOLDER", "can_view": True},
        ]})
        assert resp.status_code == 404
        assert resp.json()["error"] == "GROUP_NOT_FOUND"
