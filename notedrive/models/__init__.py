"""SQLAlchemy ORM models for notedrive."""

from notedrive.models.auth import AuthChallenge, AuthToken
from notedrive.models.base import Base
from notedrive.models.file import FileEntry
from notedrive.models.note import Note, NotesFTS, NoteTag, Tag

__all__ = [
    "AuthChallenge",
    "AuthToken",
    "Base",
    "FileEntry",
    "Note",
    "NoteTag",
    "NotesFTS",
    "Tag",
]
