"""Note, tag and full-text search models."""

from __future__ import annotations

from sqlalchemy import BigInteger, Boolean, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from notedrive.models.base import Base


class Note(Base):
    """Indexed note metadata (content lives in the notes store)."""

    __tablename__ = "notes"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    path: Mapped[str] = mapped_column(Text, nullable=False, unique=True)
    title: Mapped[str] = mapped_column(Text, nullable=False)
    hash: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    updated_at: Mapped[int] = mapped_column(BigInteger, nullable=False)
    is_deleted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    tags: Mapped[list[NoteTag]] = relationship(
        back_populates="note", cascade="all, delete-orphan"
    )

    __table_args__ = (Index("idx_notes_updated", "updated_at"),)


class Tag(Base):
    """Distinct tag name. Counts are always aggregated from ``note_tags``."""

    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(Text, nullable=False, unique=True)

    note_tags: Mapped[list[NoteTag]] = relationship(
        back_populates="tag", cascade="all, delete-orphan"
    )


class NoteTag(Base):
    """Association between notes and tags."""

    __tablename__ = "note_tags"

    note_id: Mapped[str] = mapped_column(
        String, ForeignKey("notes.id", ondelete="CASCADE"), primary_key=True
    )
    tag_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True
    )

    note: Mapped[Note] = relationship(back_populates="tags")
    tag: Mapped[Tag] = relationship(back_populates="note_tags")

    __table_args__ = (Index("idx_note_tags_tag", "tag_id"),)


class NotesFTS(Base):
    """Full-text search virtual table for notes.

    This model represents the FTS5 virtual table.
    It is created with raw SQL, see ``IndexStore.ensure_schema``.
    """

    __tablename__ = "notes_fts"
    __table_args__ = {"info": {"is_virtual": True}}

    rowid: Mapped[int] = mapped_column(Integer, primary_key=True)
    note_id: Mapped[str] = mapped_column(Text)
    title: Mapped[str] = mapped_column(Text)
    body: Mapped[str] = mapped_column(Text)
