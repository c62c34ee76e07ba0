"""Tests for the /api/folders endpoints."""


class TestCreateFolder:

    def test_create_returns_201_with_folder(self, client):
        resp = client.post("/api/folders", json={"name": "Projects", "icon": "📂"})

        assert resp.status_code == 201
        folder = resp.json()
        assert folder["name"] == "Projects"
        assert folder["icon"] == "📂"
        assert folder["parent_id"] is None
        assert isinstance(folder["id"], int)

    def test_empty_name_is_400_and_creates_nothing(self, client):
        for body in ({"name": ""}, {"name": "   "}, {}):
            resp = client.post("/api/folders", json=body)
            assert resp.status_code == 400
            assert resp.json() == {"error": "Folder name is required"}

        assert client.get("/api/folders").json() == []

    def test_wrongly_typed_name_is_400(self, client):
        resp = client.post("/api/folders", json={"name": ["not", "a", "string"]})
        assert resp.status_code == 400

    def test_nested_folder(self, client, make_folder):
        parent = make_folder("Parent")
        child = make_folder("Child", parent_id=parent["id"])
        assert child["parent_id"] == parent["id"]

    def test_unknown_parent_is_400(self, client):
        resp = client.post("/api/folders", json={"name": "x", "parent_id": 4242})
        assert resp.status_code == 400


class TestReadFolders:

    def test_get_by_id(self, client, make_folder):
        folder = make_folder("Inbox")
        resp = client.get(f"/api/folders/{folder['id']}")
        assert resp.status_code == 200
        assert resp.json()["name"] == "Inbox"

    def test_get_missing_is_404(self, client):
        resp = client.get("/api/folders/999")
        assert resp.status_code == 404
        assert resp.json() == {"error": "Folder not found"}

    def test_list_sorted_by_name(self, client, make_folder):
        for name in ["b", "c", "a"]:
            make_folder(name)
        assert [f["name"] for f in client.get("/api/folders").json()] == ["a", "b", "c"]

    def test_list_sort_desc(self, client, make_folder):
        for name in ["b", "c", "a"]:
            make_folder(name)
        resp = client.get("/api/folders", params={"sort": "name", "order": "desc"})
        assert [f["name"] for f in resp.json()] == ["c", "b", "a"]

    def test_children(self, client, make_folder):
        parent = make_folder("Parent")
        make_folder("Zed", parent_id=parent["id"])
        make_folder("Amy", parent_id=parent["id"])
        make_folder("Elsewhere")

        resp = client.get(f"/api/folders/{parent['id']}/children")
        assert [f["name"] for f in resp.json()] == ["Amy", "Zed"]


class TestUpdateFolder:

    def test_update(self, client, make_folder):
        folder = make_folder("Old")
        resp = client.put(f"/api/folders/{folder['id']}", json={"name": "New", "icon": "🔥"})
        assert resp.status_code == 200
        assert resp.json()["name"] == "New"
        assert resp.json()["icon"] == "🔥"

    def test_update_requires_name(self, client, make_folder):
        folder = make_folder("Old")
        resp = client.put(f"/api/folders/{folder['id']}", json={"name": ""})
        assert resp.status_code == 400
        assert client.get(f"/api/folders/{folder['id']}").json()["name"] == "Old"

    def test_update_missing_is_404(self, client):
        resp = client.put("/api/folders/999", json={"name": "x"})
        assert resp.status_code == 404

    def test_cannot_move_into_own_subtree(self, client, make_folder):
        root = make_folder("Root")
        child = make_folder("Child", parent_id=root["id"])

        into_self = client.put(f"/api/folders/{root['id']}", json={"name": "Root", "parent_id": root["id"]})
        into_child = client.put(f"/api/folders/{root['id']}", json={"name": "Root", "parent_id": child["id"]})

        assert into_self.status_code == 400
        assert into_child.status_code == 400
        assert client.get(f"/api/folders/{root['id']}").json()["parent_id"] is None

    def test_move_to_root(self, client, make_folder):
        root = make_folder("Root")
        child = make_folder("Child", parent_id=root["id"])
        resp = client.put(f"/api/folders/{child['id']}", json={"name": "Child", "parent_id": None})
        assert resp.json()["parent_id"] is None


class TestDeleteFolder:

    def test_delete_cascades_and_unfiles_notes(self, client, make_folder, make_note):
        root = make_folder("Root")
        child = make_folder("Child", parent_id=root["id"])
        keep = make_folder("Keep")
        note_in_root = make_note("in root", folder_id=root["id"])
        note_in_child = make_note("in child", folder_id=child["id"])
        note_elsewhere = make_note("elsewhere", folder_id=keep["id"])

        resp = client.delete(f"/api/folders/{root['id']}")
        assert resp.status_code == 200
        assert resp.json() == {"success": True}

        assert client.get(f"/api/folders/{child['id']}").status_code == 404
        assert [f["id"] for f in client.get("/api/folders").json()] == [keep["id"]]
        assert client.get(f"/api/notes/{note_in_root['id']}").json()["folder_id"] is None
        assert client.get(f"/api/notes/{note_in_child['id']}").json()["folder_id"] is None
        assert client.get(f"/api/notes/{note_elsewhere['id']}").json()["folder_id"] == keep["id"]

    def test_delete_missing_is_404(self, client):
        resp = client.delete("/api/folders/999")
        assert resp.status_code == 404
