"""Shared API dependencies: settings, services and bearer-token auth."""

from __future__ import annotations

from typing import Annotated

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from notedrive.config import Settings
from notedrive.exceptions import UnauthorizedError
from notedrive.services.auth_service import AuthManager
from notedrive.services.file_service import FileService
from notedrive.services.index_store import IndexStore
from notedrive.services.note_service import NoteService
from notedrive.services.sync_service import SyncService

security = HTTPBearer(auto_error=False)


def get_settings(request: Request) -> Settings:
    """Get application settings from app state."""
    settings: Settings = request.app.state.settings
    return settings


def get_index_store(request: Request) -> IndexStore:
    store: IndexStore = request.app.state.index_store
    return store


def get_auth_manager(request: Request) -> AuthManager:
    auth_manager: AuthManager = request.app.state.auth_manager
    return auth_manager


def get_file_service(request: Request) -> FileService:
    file_service: FileService = request.app.state.file_service
    return file_service


def get_note_service(request: Request) -> NoteService:
    note_service: NoteService = request.app.state.note_service
    return note_service


def get_sync_service(request: Request) -> SyncService:
    sync_service: SyncService = request.app.state.sync_service
    return sync_service


def require_auth(
    auth_manager: Annotated[AuthManager, Depends(get_auth_manager)],
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)] = None,
) -> str:
    """Require a live bearer token. Returns the token."""
    if credentials is None:
        raise UnauthorizedError("Not authenticated")
    if not auth_manager.validate_token(credentials.credentials):
        raise UnauthorizedError("Invalid or expired token")
    return credentials.credentials
