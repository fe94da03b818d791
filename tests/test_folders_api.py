"""Tests for folder, placement and tree endpoints."""

from dataroom.models import AuditLog
from dataroom.services import audit_service
from tests.conftest import BASE_URL, DATAROOM_ID, TEAM_ID


def create_folder(client, name, parent_path=None, **extra):
    body = {"name": name, "parent_path": parent_path, **extra}
    return client.post(f"{BASE_URL}/folders", json=body)


class TestCreateAndList:

    def test_create_returns_path_and_index(self, client, dataroom):
        resp = create_folder(client, "Legal Docs")
        assert resp.status_code == 201
        data = resp.json()
        assert data["path"] == "/legal-docs"
        assert data["name"] == "Legal Docs"
        assert data["hierarchical_index"] == "1"

    def test_create_nested(self, client, dataroom):
        create_folder(client, "Legal")
        resp = create_folder(client, "Contracts", parent_path="/legal/")
        assert resp.status_code == 201
        assert resp.json()["path"] == "/legal/contracts"
        assert resp.json()["hierarchical_index"] == "1.1"

    def test_duplicate_path_returns_409(self, client, dataroom):
        create_folder(client, "Legal")
        resp = create_folder(client, "LEGAL")
        assert resp.status_code == 409
        assert resp.json()["error"] == "PATH_CONFLICT"

    def test_missing_parent_returns_404(self, client, dataroom):
        resp = create_folder(client, "Child", parent_path="/nope")
        assert resp.status_code == 404
        assert resp.json()["error"] == "FOLDER_NOT_FOUND"

    def test_blank_name_returns_422(self, client, dataroom):
        resp = create_folder(client, "   ")
        assert resp.status_code == 422

    def test_unsluggable_name_returns_400(self, client, dataroom):
        resp = create_folder(client, "???")
        assert resp.status_code == 400
        assert resp.json()["details"] == {"field": "name"}

    def test_list_by_path(self, client, dataroom):
        create_folder(client, "Finance")
        create_folder(client, "Q2", parent_path="/finance", order_index=2)
        create_folder(client, "Q1", parent_path="/finance", order_index=1)

        resp = client.get(f"{BASE_URL}/folders", params={"path": "/finance"})

        assert resp.status_code == 200
        data = resp.json()
        assert [f["name"] for f in data["folders"]] == ["Q1", "Q2"]
        assert [f["hierarchical_index"] for f in data["folders"]] == ["1.1", "1.2"]

    def test_list_root(self, client, dataroom):
        create_folder(client, "A")
        resp = client.get(f"{BASE_URL}/folders")
        assert [f["path"] for f in resp.json()["folders"]] == ["/a"]

    def test_create_is_audited(self, client, dataroom, db):
        folder_id = create_folder(client, "Legal").json()["id"]
        entries = audit_service.get_by_resource(db, DATAROOM_ID, "folder", folder_id)
        assert audit_service.get_by_resource(db, "other-room", "folder", folder_id) == []
        assert [e.action for e in entries] == ["create"]

    def test_unknown_dataroom_returns_404(self, client, dataroom):
        resp = client.post(f"/api/teams/{TEAM_ID}/datarooms/other/folders", json={"name": "A"})
        assert resp.status_code == 404
        assert resp.json()["error"] == "DATAROOM_NOT_FOUND"

    def test_other_team_dataroom_returns_404(self, client, dataroom):
        resp = client.get(f"/api/teams/team-2/datarooms/{dataroom.id}/folders")
        assert resp.status_code == 404


class TestRenameAndMove:

    def test_rename_cascades(self, client, dataroom):
        folder_id = create_folder(client, "Old").json()["id"]
        create_folder(client, "Child", parent_path="/old")

        resp = client.put(f"{BASE_URL}/folders/{folder_id}/rename", json={"name": "New"})

        assert resp.status_code == 200
        assert resp.json()["path"] == "/new"
        listing = client.get(f"{BASE_URL}/folders", params={"path": "/new"}).json()
        assert [f["path"] for f in listing["folders"]] == ["/new/child"]

    def test_move_response_shape(self, client, dataroom):
        a = create_folder(client, "A").json()["id"]
        b = create_folder(client, "B").json()["id"]
        create_folder(client, "Archive")

        resp = client.post(f"{BASE_URL}/folders/move",
                           json={"folder_ids": [a, b], "destination_path": "/archive"})

        assert resp.status_code == 200
        assert resp.json() == {"updated_count": 2, "new_path": "/archive"}

    def test_move_into_descendant_returns_409(self, client, dataroom):
        a = create_folder(client, "A").json()["id"]
        create_folder(client, "B", parent_path="/a")

        resp = client.post(f"{BASE_URL}/folders/move",
                           json={"folder_ids": [a], "destination_path": "/a/b"})

        assert resp.status_code == 409
        assert resp.json()["error"] == "FOLDER_CYCLE"

    def test_move_requires_ids(self, client, dataroom):
        resp = client.post(f"{BASE_URL}/folders/move", json={"folder_ids": [], "destination_path": "/"})
        assert resp.status_code == 422

    def test_move_is_audited(self, client, dataroom, db):
        a = create_folder(client, "A").json()["id"]
        client.post(f"{BASE_URL}/folders/move", json={"folder_ids": [a], "destination_path": None})
        assert db.query(AuditLog).filter(AuditLog.action == "move").count() == 1


class TestTreeAndReorder:

    def test_tree_contains_documents(self, client, dataroom):
        folder_id = create_folder(client, "Finance").json()["id"]
        client.post(f"{BASE_URL}/documents",
                    json={"document_id": "doc-1", "name": "Budget.xlsx", "folder_id": folder_id})

        resp = client.get(f"{BASE_URL}/folders/tree")

        assert resp.status_code == 200
        tree = resp.json()
        assert tree[0]["name"] == "Finance"
        assert tree[0]["children"][0]["type"] == "DOCUMENT"
        assert tree[0]["children"][0]["hierarchical_index"] == "1.1"

    def test_reorder(self, client, dataroom):
        first = create_folder(client, "First").json()["id"]
        second = create_folder(client, "Second").json()["id"]

        resp = client.post(f"{BASE_URL}/folders/reorder", json={"items": [
            {"id": second, "type": "FOLDER", "order_index": 0},
            {"id": first, "type": "FOLDER", "order_index": 1},
        ]})

        assert resp.json() == {"updated_count": 2}
        assert client.get(f"{BASE_URL}/folders/{second}").json()["hierarchical_index"] == "1"


class TestDocumentsAndSoftDelete:

    def test_add_document_applies_group_defaults(self, client, dataroom, db):
        from dataroom.models import AccessControlEntry
        from tests.conftest import make_viewer_group

        make_viewer_group(db, default_can_view=True)
        resp = client.post(f"{BASE_URL}/documents", json={"document_id": "doc-1", "name": "Deck.pdf"})

        assert resp.status_code == 201
        assert db.query(AccessControlEntry).filter(
            AccessControlEntry.item_id == resp.json()["id"]).count() == 1

    def test_failed_defaults_roll_back_placement(self, client, dataroom, db, monkeypatch):
        from dataroom.exceptions import DatabaseError
        from dataroom.models import DataroomDocument
        from dataroom.services.access_control_service import AccessControlService

        def fail(self, dataroom_id, document_ids):
            raise DatabaseError("Database operation failed")

        monkeypatch.setattr(AccessControlService, "apply_default_permissions", fail)
        resp = client.post(f"{BASE_URL}/documents", json={"document_id": "doc-1", "name": "Deck.pdf"})

        assert resp.status_code == 500
        assert db.query(DataroomDocument).count() == 0
        assert db.query(AuditLog).count() == 0

    def test_move_documents(self, client, dataroom):
        folder_id = create_folder(client, "Finance").json()["id"]
        doc_id = client.post(f"{BASE_URL}/documents",
                             json={"document_id": "doc-1", "name": "Deck.pdf"}).json()["id"]

        resp = client.post(f"{BASE_URL}/documents/move",
                           json={"document_ids": [doc_id], "folder_id": folder_id})

        assert resp.json() == {"updated_count": 1}
        listing = client.get(f"{BASE_URL}/folders", params={"path": "/finance"}).json()
        assert [d["id"] for d in listing["documents"]] == [doc_id]

    def test_soft_delete_folder_reports_captured_count(self, client, dataroom):
        folder_id = create_folder(client, "A").json()["id"]
        create_folder(client, "B", parent_path="/a")
        client.post(f"{BASE_URL}/documents",
                    json={"document_id": "doc-1", "name": "d1.pdf", "folder_id": folder_id})

        resp = client.delete(f"{BASE_URL}/folders/{folder_id}")

        assert resp.status_code == 200
        assert resp.json() == {"captured_count": 3}
        assert client.get(f"{BASE_URL}/folders/{folder_id}").status_code == 404

    def test_soft_delete_document(self, client, dataroom):
        doc_id = client.post(f"{BASE_URL}/documents",
                             json={"document_id": "doc-1", "name": "Deck.pdf"}).json()["id"]
        resp = client.delete(f"{BASE_URL}/documents/{doc_id}")
        assert resp.json() == {"captured_count": 1}
