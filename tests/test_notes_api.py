"""Tests for the /api/notes endpoints."""

import pytest


class TestCreateNote:

    def test_title_only_gets_defaults(self, client):
        resp = client.post("/api/notes", json={"title": "X"})

        assert resp.status_code == 201
        note = resp.json()
        assert note["title"] == "X"
        assert note["content"] == ""
        assert note["tags"] == ""
        assert note["folder_id"] is None
        assert note["is_archived"] is False
        assert note["version"] == 1
        assert resp.headers["ETag"] == '"1"'

    @pytest.mark.parametrize("body", [{}, {"title": ""}, {"title": "  "}, {"content": "body only"}])
    def test_missing_title_is_400(self, client, body):
        resp = client.post("/api/notes", json=body)
        assert resp.status_code == 400
        assert resp.json() == {"error": "Title is required"}
        assert client.get("/api/notes").json() == []

    def test_tags_string_is_normalized(self, make_note):
        note = make_note(tags="work ,ideas,, work")
        assert note["tags"] == "work, ideas"

    def test_tags_accepts_list(self, make_note):
        note = make_note(tags=["a", "b"])
        assert note["tags"] == "a, b"

    def test_unknown_folder_is_400(self, client):
        resp = client.post("/api/notes", json={"title": "x", "folder_id": 999})
        assert resp.status_code == 400

    def test_html_content_round_trips(self, client, make_note):
        html = '<h1>Title</h1><pre><code class="language-python">print(1)</code></pre>'
        note = make_note(content=html)
        assert client.get(f"/api/notes/{note['id']}").json()["content"] == html


class TestGetNote:

    def test_missing_is_404(self, client):
        resp = client.get("/api/notes/12345")
        assert resp.status_code == 404
        assert resp.json() == {"error": "Note not found"}


class TestListNotes:

    def test_folder_filter_exact(self, client, make_folder, make_note):
        a = make_folder("A")
        b = make_folder("B")
        in_a = make_note("in a", folder_id=a["id"])
        make_note("in b", folder_id=b["id"])
        make_note("loose")

        resp = client.get("/api/notes", params={"folder_id": a["id"]})
        assert [n["id"] for n in resp.json()] == [in_a["id"]]

    def test_folder_filter_empty_folder_is_empty_list(self, client, make_folder, make_note):
        empty = make_folder("Empty")
        make_note("somewhere else")

        resp = client.get("/api/notes", params={"folder_id": empty["id"]})
        assert resp.status_code == 200
        assert resp.json() == []

        resp = client.get("/api/notes", params={"folder_id": 9999})
        assert resp.status_code == 200
        assert resp.json() == []

    def test_no_folder_filter(self, client, make_folder, make_note):
        folder = make_folder("F")
        make_note("filed", folder_id=folder["id"])
        loose_1 = make_note("loose 1")
        loose_2 = make_note("loose 2")

        resp = client.get("/api/notes", params={"no_folder": "true"})
        assert {n["id"] for n in resp.json()} == {loose_1["id"], loose_2["id"]}

    def test_tag_filter(self, client, make_note):
        tagged = make_note("tagged", tags="work, urgent")
        make_note("other", tags="home")
        make_note("prefix trap", tags="workshop")

        resp = client.get("/api/notes", params={"tag": "work"})
        assert [n["id"] for n in resp.json()] == [tagged["id"]]

    def test_search(self, client, make_note):
        hit = make_note("Meeting notes", content="<p>agenda</p>")
        make_note("Other", content="<p>nothing</p>")

        resp = client.get("/api/notes", params={"q": "agenda"})
        assert [n["id"] for n in resp.json()] == [hit["id"]]

    def test_newest_first(self, client, make_note):
        first = make_note("first")
        second = make_note("second")
        client.put(f"/api/notes/{first['id']}", json={"title": "first, edited"})

        assert [n["id"] for n in client.get("/api/notes").json()] == [first["id"], second["id"]]


class TestUpdateNote:

    def test_update_fields(self, client, make_note):
        note = make_note("Old", content="a", tags="x")
        resp = client.put(f"/api/notes/{note['id']}", json={"title": "New", "content": "b", "tags": "y"})

        assert resp.status_code == 200
        updated = resp.json()
        assert (updated["title"], updated["content"], updated["tags"]) == ("New", "b", "y")
        assert updated["version"] == 2
        assert resp.headers["ETag"] == '"2"'

    def test_content_and_tags_default_to_empty(self, client, make_note):
        note = make_note("T", content="body", tags="x")
        updated = client.put(f"/api/notes/{note['id']}", json={"title": "T"}).json()
        assert updated["content"] == ""
        assert updated["tags"] == ""

    def test_requires_title(self, client, make_note):
        note = make_note("Keep")
        resp = client.put(f"/api/notes/{note['id']}", json={"title": "", "content": "x"})
        assert resp.status_code == 400
        assert client.get(f"/api/notes/{note['id']}").json()["title"] == "Keep"

    def test_missing_is_404(self, client):
        resp = client.put("/api/notes/999", json={"title": "x"})
        assert resp.status_code == 404

    def test_folder_kept_when_omitted_cleared_when_null(self, client, make_folder, make_note):
        folder = make_folder("F")
        note = make_note("n", folder_id=folder["id"])

        kept = client.put(f"/api/notes/{note['id']}", json={"title": "n"}).json()
        assert kept["folder_id"] == folder["id"]

        cleared = client.put(f"/api/notes/{note['id']}", json={"title": "n", "folder_id": None}).json()
        assert cleared["folder_id"] is None

    def test_move_to_folder(self, client, make_folder, make_note):
        folder = make_folder("F")
        note = make_note("n")
        moved = client.put(f"/api/notes/{note['id']}", json={"title": "n", "folder_id": folder["id"]})
        assert moved.json()["folder_id"] == folder["id"]

    def test_stale_if_match_is_409(self, client, make_note):
        note = make_note("v1")
        client.put(f"/api/notes/{note['id']}", json={"title": "from tab A"}, headers={"If-Match": '"1"'})

        resp = client.put(
            f"/api/notes/{note['id']}", json={"title": "from tab B"}, headers={"If-Match": '"1"'}
        )
        assert resp.status_code == 409
        assert client.get(f"/api/notes/{note['id']}").json()["title"] == "from tab A"

    def test_stale_body_version_is_409(self, client, make_note):
        note = make_note("v1")
        client.put(f"/api/notes/{note['id']}", json={"title": "v2"})
        resp = client.put(f"/api/notes/{note['id']}", json={"title": "v3", "version": 1})
        assert resp.status_code == 409

    def test_without_version_last_write_wins(self, client, make_note):
        note = make_note("v1")
        client.put(f"/api/notes/{note['id']}", json={"title": "A"})
        resp = client.put(f"/api/notes/{note['id']}", json={"title": "B"})
        assert resp.status_code == 200
        assert resp.json()["title"] == "B"

    def test_bad_if_match_is_400(self, client, make_note):
        note = make_note("n")
        resp = client.put(f"/api/notes/{note['id']}", json={"title": "x"}, headers={"If-Match": "abc"})
        assert resp.status_code == 400


class TestDeleteNote:

    def test_delete(self, client, make_note):
        note = make_note("bye")
        resp = client.delete(f"/api/notes/{note['id']}")
        assert resp.status_code == 200
        assert resp.json() == {"message": "Note deleted successfully"}
        assert client.get(f"/api/notes/{note['id']}").status_code == 404

    def test_delete_missing_is_404(self, client):
        assert client.delete("/api/notes/999").status_code == 404


class TestArchive:

    def test_archive_hides_and_unarchive_restores(self, client, make_note):
        note = make_note("n", tags="t")

        archived = client.post(f"/api/notes/{note['id']}/archive")
        assert archived.status_code == 200
        assert archived.json()["is_archived"] is True
        assert client.get("/api/notes").json() == []
        assert [n["id"] for n in client.get("/api/notes", params={"archived": "true"}).json()] == [note["id"]]

        restored = client.post(f"/api/notes/{note['id']}/unarchive")
        assert restored.json()["is_archived"] is False
        assert [n["id"] for n in client.get("/api/notes").json()] == [note["id"]]

    def test_archive_missing_is_404(self, client):
        assert client.post("/api/notes/999/archive").status_code == 404


class TestNoteTags:

    def test_linked_tags(self, client, make_note):
        note = make_note("n", tags="beta, alpha")
        resp = client.get(f"/api/notes/{note['id']}/tags")
        assert [t["name"] for t in resp.json()] == ["alpha", "beta"]
        assert all(t["id"] is not None for t in resp.json())
