"""File storage API endpoints."""

from __future__ import annotations

import logging
import mimetypes
from typing import Annotated

from fastapi import APIRouter, Depends, Header, Request, Response, status
from starlette.concurrency import run_in_threadpool

from notedrive.api.deps import get_file_service, require_auth
from notedrive.schemas.file import FileRecordResponse
from notedrive.services.file_service import FileService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/files", tags=["files"], dependencies=[Depends(require_auth)])


@router.get("", response_model=list[FileRecordResponse])
def list_files(
    file_service: Annotated[FileService, Depends(get_file_service)],
) -> list[FileRecordResponse]:
    """All file records, tombstones included."""
    return [FileRecordResponse.model_validate(record) for record in file_service.list_files()]


@router.get("/{path:path}")
def download_file(
    path: str,
    file_service: Annotated[FileService, Depends(get_file_service)],
) -> Response:
    content = file_service.get(path)
    media_type = mimetypes.guess_type(path)[0] or "application/octet-stream"
    return Response(content=content, media_type=media_type)


@router.put("/{path:path}", response_model=FileRecordResponse)
async def upload_file(
    path: str,
    request: Request,
    file_service: Annotated[FileService, Depends(get_file_service)],
    x_file_mtime: Annotated[int | None, Header(ge=0)] = None,
) -> FileRecordResponse:
    """Store the raw request body at *path*.

    ``X-File-Mtime`` (milliseconds) sets the recorded modification time.
    """
    content = await request.body()
    record = await run_in_threadpool(file_service.put, path, content, x_file_mtime)
    return FileRecordResponse.model_validate(record)


@router.delete("/{path:path}", status_code=status.HTTP_204_NO_CONTENT)
def delete_file(
    path: str,
    file_service: Annotated[FileService, Depends(get_file_service)],
) -> Response:
    file_service.delete(path)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
