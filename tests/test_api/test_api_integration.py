"""End-to-end HTTP tests against a fully started app."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fastapi.testclient import TestClient


class TestHealth:
    def test_health_ok(self, client: TestClient) -> None:
        resp = client.get("/api/health")
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "ok"
        assert body["database"] == "ok"


class TestAuthFlow:
    def test_unauthenticated_request_rejected(self, client: TestClient) -> None:
        resp = client.get("/api/v1/sync/state")
        assert resp.status_code == 401
        assert resp.headers["www-authenticate"] == "Bearer"
        assert resp.json()["error"] == "unauthorized"

    def test_bogus_token_rejected(self, client: TestClient) -> None:
        resp = client.get("/api/v1/notes", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    def test_challenge_and_verify(self, client: TestClient, public_key: str, sign) -> None:
        resp = client.post("/api/v1/auth/challenge", json={"public_key": public_key})
        assert resp.status_code == 200
        issued = resp.json()
        assert issued["public_key"] == public_key
        assert issued["expires_at"] > 0

        resp = client.post(
            "/api/v1/auth/verify",
            json={
                "challenge": issued["challenge"],
                "public_key": public_key,
                "signature": sign(issued["challenge"]),
            },
        )
        assert resp.status_code == 200
        token = resp.json()["token"]
        resp = client.get("/api/v1/files", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 200

    def test_replayed_challenge_rejected(self, client: TestClient, public_key: str, sign) -> None:
        challenge = client.post(
            "/api/v1/auth/challenge", json={"public_key": public_key}
        ).json()["challenge"]
        payload = {"challenge": challenge, "public_key": public_key, "signature": sign(challenge)}
        assert client.post("/api/v1/auth/verify", json=payload).status_code == 200
        resp = client.post("/api/v1/auth/verify", json=payload)
        assert resp.status_code == 401

    def test_blank_key_is_bad_request(self, client: TestClient) -> None:
        resp = client.post("/api/v1/auth/challenge", json={"public_key": ""})
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_input"

    def test_missing_field_is_bad_request(self, client: TestClient) -> None:
        resp = client.post("/api/v1/auth/verify", json={"challenge": "x"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_input"


class TestFiles:
    def test_put_get_delete(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        resp = client.put(
            "/api/v1/files/docs/hello.txt",
            content=b"hello world",
            headers={**auth_headers, "X-File-Mtime": "1600000000000"},
        )
        assert resp.status_code == 200
        record = resp.json()
        assert record["path"] == "docs/hello.txt"
        assert record["size"] == 11
        assert record["mtime"] == 1_600_000_000_000

        resp = client.get("/api/v1/files/docs/hello.txt", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.content == b"hello world"
        assert resp.headers["content-type"].startswith("text/plain")

        resp = client.delete("/api/v1/files/docs/hello.txt", headers=auth_headers)
        assert resp.status_code == 204
        assert resp.content == b""

        resp = client.get("/api/v1/files/docs/hello.txt", headers=auth_headers)
        assert resp.status_code == 404
        assert resp.json() == {"error": "not_found", "message": "File not found"}

    def test_list_files(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        client.put("/api/v1/files/a.bin", content=b"\x00", headers=auth_headers)
        resp = client.get("/api/v1/files", headers=auth_headers)
        assert resp.status_code == 200
        assert [f["path"] for f in resp.json()] == ["a.bin"]

    def test_traversal_is_server_error_without_details(
        self, client: TestClient, auth_headers: dict[str, str]
    ) -> None:
        resp = client.put("/api/v1/files/..%2F..%2Fescape.txt", content=b"x", headers=auth_headers)
        assert resp.status_code == 500
        assert resp.json() == {"error": "content_error", "message": "Storage operation failed"}


class TestSync:
    def test_incremental_sync(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        client.put("/api/v1/files/one.txt", content=b"1", headers=auth_headers)
        state = client.get("/api/v1/sync/state", headers=auth_headers).json()
        assert [f["path"] for f in state["files"]] == ["one.txt"]

        since = state["server_time"] - 1
        client.delete("/api/v1/files/one.txt", headers=auth_headers)
        resp = client.get("/api/v1/sync/state", params={"since": since}, headers=auth_headers)
        assert resp.status_code == 200
        changed = {f["path"]: f["is_deleted"] for f in resp.json()["files"]}
        assert changed == {"one.txt": True}

    def test_negative_since_rejected(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        resp = client.get("/api/v1/sync/state", params={"since": -5}, headers=auth_headers)
        assert resp.status_code == 400


class TestNotes:
    def test_note_crud(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        resp = client.post(
            "/api/v1/notes",
            json={"title": "T", "content": "hello", "tags": ["a", "b"]},
            headers=auth_headers,
        )
        assert resp.status_code == 201
        note = resp.json()
        note_id = note["id"]
        assert (note["title"], note["content"], note["tags"]) == ("T", "hello", ["a", "b"])

        resp = client.put(f"/api/v1/notes/{note_id}", json={"tags": ["c"]}, headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json()["tags"] == ["c"]
        assert resp.json()["content"] == "hello"

        resp = client.get(f"/api/v1/notes/{note_id}", headers=auth_headers)
        assert resp.json()["title"] == "T"

        assert client.delete(f"/api/v1/notes/{note_id}", headers=auth_headers).status_code == 204
        assert client.get(f"/api/v1/notes/{note_id}", headers=auth_headers).status_code == 404

    def test_listing_tags_and_search(
        self, client: TestClient, auth_headers: dict[str, str]
    ) -> None:
        for title, body, tags in [
            ("Groceries", "apples and pears", ["home", "x"]),
            ("Standup", "blockers and apples", ["work", "x"]),
        ]:
            client.post(
                "/api/v1/notes",
                json={"title": title, "content": body, "tags": tags},
                headers=auth_headers,
            )

        listing = client.get("/api/v1/notes", headers=auth_headers).json()
        assert listing["total"] == 2
        assert all("preview" in n for n in listing["notes"])

        tags = client.get("/api/v1/notes/tags", headers=auth_headers).json()["tags"]
        assert tags[0] == {"name": "x", "count": 2}

        by_tag = client.get("/api/v1/notes", params={"tag": "work"}, headers=auth_headers).json()
        assert [n["title"] for n in by_tag["notes"]] == ["Standup"]

        found = client.get("/api/v1/notes/search", params={"q": "pears"}, headers=auth_headers)
        assert [n["title"] for n in found.json()["notes"]] == ["Groceries"]

        query = client.get("/api/v1/notes", params={"q": "apples"}, headers=auth_headers).json()
        assert query["total"] == 2

    def test_tag_and_query_together_rejected(
        self, client: TestClient, auth_headers: dict[str, str]
    ) -> None:
        resp = client.get("/api/v1/notes", params={"tag": "a", "q": "b"}, headers=auth_headers)
        assert resp.status_code == 400
        assert resp.json()["error"] == "invalid_input"

    def test_create_requires_title(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        resp = client.post("/api/v1/notes", json={"content": "x"}, headers=auth_headers)
        assert resp.status_code == 400

    def test_unknown_note(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        resp = client.get("/api/v1/notes/does-not-exist", headers=auth_headers)
        assert resp.status_code == 404


class TestStartupScan:
    def test_existing_content_indexed_on_startup(self, settings, authorized_keys_file) -> None:
        from fastapi.testclient import TestClient as _TestClient

        from notedrive.main import create_app

        settings.files_root.mkdir(parents=True, exist_ok=True)
        settings.notes_root.mkdir(parents=True, exist_ok=True)
        (settings.files_root / "preexisting.txt").write_bytes(b"data")
        (settings.notes_root / "idea.md").write_text("# Big Idea\n\ndetails", encoding="utf-8")

        with _TestClient(create_app(settings)) as test_client:
            store = test_client.app.state.index_store
            assert store.get_file("preexisting.txt") is not None
            note = store.get_note("idea")
            assert note is not None
            assert note.title == "Big Idea"
        _ = authorized_keys_file
