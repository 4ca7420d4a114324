"""Tests for mapping core failures to HTTP responses."""

from __future__ import annotations

from typing import TYPE_CHECKING
from unittest.mock import patch

from notedrive.exceptions import ContentError, NotFoundError, StorageError

if TYPE_CHECKING:
    from fastapi.testclient import TestClient


class TestErrorMapping:
    def test_storage_error_hides_details(
        self, client: TestClient, auth_headers: dict[str, str]
    ) -> None:
        note_service = client.app.state.note_service
        with patch.object(
            note_service, "list_tags", side_effect=StorageError("disk I/O error", table="tags")
        ):
            resp = client.get("/api/v1/notes/tags", headers=auth_headers)
        assert resp.status_code == 500
        assert resp.json() == {"error": "storage_error", "message": "Index operation failed"}
        assert "disk" not in resp.text

    def test_content_error_is_500(self, client: TestClient, auth_headers: dict[str, str]) -> None:
        file_service = client.app.state.file_service
        with patch.object(file_service, "get", side_effect=ContentError("unreadable", path="x")):
            resp = client.get("/api/v1/files/x", headers=auth_headers)
        assert resp.status_code == 500
        assert resp.json()["error"] == "content_error"

    def test_not_found_message_forwarded(
        self, client: TestClient, auth_headers: dict[str, str]
    ) -> None:
        sync_service = client.app.state.sync_service
        with patch.object(
            sync_service, "get_sync_state", side_effect=NotFoundError("Nothing here")
        ):
            resp = client.get("/api/v1/sync/state", headers=auth_headers)
        assert resp.status_code == 404
        assert resp.json() == {"error": "not_found", "message": "Nothing here"}

    def test_delete_unknown_file_is_404(
        self, client: TestClient, auth_headers: dict[str, str]
    ) -> None:
        resp = client.delete("/api/v1/files/never-written.txt", headers=auth_headers)
        assert resp.status_code == 404

    def test_health_reports_degraded_database(self, client: TestClient) -> None:
        store = client.app.state.index_store
        with patch.object(store, "ping", side_effect=StorageError("down")):
            resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "degraded"
        assert resp.json()["database"] == "error"
