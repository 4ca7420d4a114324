"""File metadata and sync schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict


class FileRecordResponse(BaseModel):
    """Index record for one file path. Tombstones have ``is_deleted`` set."""

    model_config = ConfigDict(from_attributes=True)

    path: str
    hash: str
    size: int
    mtime: int
    created_at: int
    updated_at: int
    is_deleted: bool = False


class SyncStateResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    server_time: int
    files: list[FileRecordResponse]
