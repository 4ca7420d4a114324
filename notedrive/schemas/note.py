"""Note-related schemas."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class NoteCreate(BaseModel):
    """Request to create a new note."""

    title: str = Field(min_length=1, max_length=500)
    content: str = Field(default="", max_length=500_000)
    tags: list[str] = Field(default_factory=list)


class NoteUpdate(BaseModel):
    """Partial update. Omitted fields keep their current values."""

    title: str | None = Field(default=None, min_length=1, max_length=500)
    content: str | None = Field(default=None, max_length=500_000)
    tags: list[str] | None = None


class NoteResponse(BaseModel):
    """Full note. ``content`` is the markdown body without front matter."""

    id: str
    title: str
    content: str
    tags: list[str]
    created_at: int
    updated_at: int


class NoteSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    title: str
    tags: list[str]
    preview: str
    created_at: int
    updated_at: int


class NoteListResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    notes: list[NoteSummaryResponse]
    total: int


class TagResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    name: str
    count: int


class TagListResponse(BaseModel):
    tags: list[TagResponse]
