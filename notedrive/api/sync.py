"""Sync API endpoint."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from notedrive.api.deps import get_sync_service, require_auth
from notedrive.schemas.file import SyncStateResponse
from notedrive.services.sync_service import SyncService

router = APIRouter(prefix="/api/v1/sync", tags=["sync"], dependencies=[Depends(require_auth)])


@router.get("/state", response_model=SyncStateResponse)
def get_sync_state(
    sync_service: Annotated[SyncService, Depends(get_sync_service)],
    since: Annotated[int | None, Query(ge=0)] = None,
) -> SyncStateResponse:
    """Full file index, or only records updated after ``since`` (ms)."""
    return SyncStateResponse.model_validate(sync_service.get_sync_state(since))
