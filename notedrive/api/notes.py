"""Notes API endpoints."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Response, status

from notedrive.api.deps import get_note_service, require_auth
from notedrive.schemas.note import (
    NoteCreate,
    NoteListResponse,
    NoteResponse,
    NoteUpdate,
    TagListResponse,
    TagResponse,
)
from notedrive.services.note_service import (
    DEFAULT_PAGE_SIZE,
    ListOptions,
    NoteDetail,
    NoteService,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/notes", tags=["notes"], dependencies=[Depends(require_auth)])

MAX_PAGE_SIZE = 500


def _note_response(detail: NoteDetail) -> NoteResponse:
    return NoteResponse(
        id=detail.id,
        title=detail.title,
        content=detail.body,
        tags=detail.tags,
        created_at=detail.created_at,
        updated_at=detail.updated_at,
    )


@router.get("", response_model=NoteListResponse)
def list_notes(
    note_service: Annotated[NoteService, Depends(get_note_service)],
    tag: str | None = None,
    q: str | None = None,
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = DEFAULT_PAGE_SIZE,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> NoteListResponse:
    """List notes filtered by tag or full-text query (not both)."""
    listing = note_service.list(ListOptions(tag=tag, search=q, limit=limit, offset=offset))
    return NoteListResponse.model_validate(listing)


@router.post("", response_model=NoteResponse, status_code=status.HTTP_201_CREATED)
def create_note(
    body: NoteCreate,
    note_service: Annotated[NoteService, Depends(get_note_service)],
) -> NoteResponse:
    detail = note_service.create_note(body.title, body.content, body.tags)
    return _note_response(detail)


@router.get("/tags", response_model=TagListResponse)
def list_tags(
    note_service: Annotated[NoteService, Depends(get_note_service)],
) -> TagListResponse:
    """Tags of live notes, most used first."""
    return TagListResponse(
        tags=[TagResponse.model_validate(info) for info in note_service.list_tags()]
    )


@router.get("/search", response_model=NoteListResponse)
def search_notes(
    note_service: Annotated[NoteService, Depends(get_note_service)],
    q: Annotated[str, Query(max_length=500)],
    limit: Annotated[int, Query(ge=1, le=MAX_PAGE_SIZE)] = DEFAULT_PAGE_SIZE,
    offset: Annotated[int, Query(ge=0)] = 0,
) -> NoteListResponse:
    return NoteListResponse.model_validate(note_service.search(q, limit=limit, offset=offset))


@router.get("/{note_id:path}", response_model=NoteResponse)
def get_note(
    note_id: str,
    note_service: Annotated[NoteService, Depends(get_note_service)],
) -> NoteResponse:
    return _note_response(note_service.get_note(note_id))


@router.put("/{note_id:path}", response_model=NoteResponse)
def update_note(
    note_id: str,
    body: NoteUpdate,
    note_service: Annotated[NoteService, Depends(get_note_service)],
) -> NoteResponse:
    detail = note_service.update_note(
        note_id, title=body.title, body=body.content, tags=body.tags
    )
    return _note_response(detail)


@router.delete("/{note_id:path}", status_code=status.HTTP_204_NO_CONTENT)
def delete_note(
    note_id: str,
    note_service: Annotated[NoteService, Depends(get_note_service)],
) -> Response:
    note_service.delete_note(note_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
