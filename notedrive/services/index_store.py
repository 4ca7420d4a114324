"""Index store: the authoritative metadata index.

Holds file metadata, note metadata and tags, the note full-text index and
authentication state. Every public method runs in its own transaction, so a
caller observes either the complete write or the prior state. Engine failures
surface as ``StorageError``.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, select, text, update
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from notedrive.exceptions import NotFoundError, StorageError
from notedrive.models.auth import AuthChallenge, AuthToken
from notedrive.models.base import Base
from notedrive.models.file import FileEntry
from notedrive.models.note import Note, NoteTag, Tag
from notedrive.services.datetime_service import now_ms

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator

    from sqlalchemy.orm import Session, sessionmaker

logger = logging.getLogger(__name__)

_CREATE_FTS_SQL = text(
    "CREATE VIRTUAL TABLE IF NOT EXISTS notes_fts USING fts5("
    "note_id UNINDEXED, title, body, tokenize='porter unicode61')"
)

_FTS_DELETE_SQL = text("DELETE FROM notes_fts WHERE note_id = :note_id")

_FTS_INSERT_SQL = text(
    "INSERT INTO notes_fts(note_id, title, body) VALUES (:note_id, :title, :body)"
)

_FTS_SEARCH_SQL = text("""
    SELECT n.id
    FROM notes_fts fts
    JOIN notes n ON n.id = fts.note_id
    WHERE notes_fts MATCH :query
    AND n.is_deleted = 0
    ORDER BY rank
""")


@dataclass(frozen=True)
class FileRecord:
    """Index state of one file path."""

    path: str
    hash: str
    size: int
    mtime: int
    created_at: int
    updated_at: int
    is_deleted: bool = False


@dataclass(frozen=True)
class NoteRecord:
    """Index state of one note. ``tags`` has set semantics."""

    id: str
    path: str
    title: str
    hash: str
    created_at: int
    updated_at: int
    tags: frozenset[str] = frozenset()
    is_deleted: bool = False

    @property
    def sorted_tags(self) -> list[str]:
        return sorted(self.tags)


@dataclass(frozen=True)
class TagInfo:
    name: str
    count: int


def build_fts_query(query: str) -> str | None:
    """Quote each term of a free-text query for FTS5 MATCH.

    Terms are implicitly AND-ed. Returns None for a blank query.
    """
    terms = query.split()
    if not terms:
        return None
    return " ".join('"' + term.replace('"', '""') + '"' for term in terms)


def _to_file_record(row: FileEntry) -> FileRecord:
    return FileRecord(
        path=row.path,
        hash=row.hash,
        size=row.size,
        mtime=row.mtime,
        created_at=row.created_at,
        updated_at=row.updated_at,
        is_deleted=row.is_deleted,
    )


def _to_note_record(row: Note, tags: Iterable[str]) -> NoteRecord:
    return NoteRecord(
        id=row.id,
        path=row.path,
        title=row.title,
        hash=row.hash,
        created_at=row.created_at,
        updated_at=row.updated_at,
        tags=frozenset(tags),
        is_deleted=row.is_deleted,
    )


class IndexStore:
    """SQLite-backed metadata index.

    ``clock`` returns the current time in milliseconds; it stamps tombstones,
    token bookkeeping and expiry checks.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock

    @contextmanager
    def _transaction(self, operation: str, **context: Any) -> Iterator[Session]:
        """Run one unit of work; wrap engine failures into StorageError."""
        try:
            with self._session_factory() as session, session.begin():
                yield session
        except SQLAlchemyError as exc:
            logger.error("Index operation %s failed (%s): %s", operation, context, exc)
            raise StorageError(
                f"Index operation '{operation}' failed", operation=operation, **context
            ) from exc

    # ── Schema ───────────────────────────────────────

    def ensure_schema(self) -> None:
        """Create all tables and the FTS5 virtual table if they don't exist."""
        tables = [t for t in Base.metadata.sorted_tables if not t.info.get("is_virtual")]
        with self._transaction("ensure_schema") as session:
            Base.metadata.create_all(session.connection(), tables=tables)
            session.execute(_CREATE_FTS_SQL)
        logger.debug("Database schema initialized")

    def ping(self) -> None:
        with self._transaction("ping") as session:
            session.execute(text("SELECT 1"))

    # ── Files ────────────────────────────────────────

    def get_file(self, path: str) -> FileRecord | None:
        with self._transaction("get_file", path=path) as session:
            row = session.execute(
                select(FileEntry).where(FileEntry.path == path)
            ).scalar_one_or_none()
            return _to_file_record(row) if row is not None else None

    def list_files(self, since: int | None = None) -> list[FileRecord]:
        """List all file records, or only those with ``updated_at > since``."""
        stmt = select(FileEntry)
        if since is not None:
            stmt = stmt.where(FileEntry.updated_at > since)
        stmt = stmt.order_by(FileEntry.updated_at.asc(), FileEntry.path.asc())
        with self._transaction("list_files", since=since) as session:
            return [_to_file_record(row) for row in session.execute(stmt).scalars().all()]

    def upsert_file(self, record: FileRecord) -> None:
        """Insert or overwrite the row for ``record.path`` with every supplied field."""
        values = {
            "path": record.path,
            "hash": record.hash,
            "size": record.size,
            "mtime": record.mtime,
            "created_at": record.created_at,
            "updated_at": record.updated_at,
            "is_deleted": record.is_deleted,
        }
        stmt = sqlite_insert(FileEntry).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[FileEntry.path],
            set_={key: stmt.excluded[key] for key in values if key != "path"},
        )
        with self._transaction("upsert_file", path=record.path) as session:
            session.execute(stmt)

    def mark_file_deleted(self, path: str) -> None:
        """Tombstone a file row. Raises NotFoundError if the row does not exist."""
        stmt = (
            update(FileEntry)
            .where(FileEntry.path == path)
            .values(is_deleted=True, updated_at=self._clock())
            .execution_options(synchronize_session=False)
        )
        with self._transaction("mark_file_deleted", path=path) as session:
            result = session.execute(stmt)
            if result.rowcount == 0:  # type: ignore[attr-defined]
                raise NotFoundError("File not found", path=path)

    # ── Notes ────────────────────────────────────────

    @staticmethod
    def _tags_for(session: Session, note_ids: list[str]) -> dict[str, set[str]]:
        """Batch-load tag names for the given note ids."""
        tags_map: dict[str, set[str]] = {note_id: set() for note_id in note_ids}
        if not note_ids:
            return tags_map
        stmt = (
            select(NoteTag.note_id, Tag.name)
            .join(Tag, Tag.id == NoteTag.tag_id)
            .where(NoteTag.note_id.in_(note_ids))
        )
        for note_id, name in session.execute(stmt).all():
            tags_map[note_id].add(name)
        return tags_map

    def _load_notes(self, session: Session, rows: list[Note]) -> list[NoteRecord]:
        tags_map = self._tags_for(session, [row.id for row in rows])
        return [_to_note_record(row, tags_map[row.id]) for row in rows]

    def get_note(self, note_id: str) -> NoteRecord | None:
        with self._transaction("get_note", note_id=note_id) as session:
            row = session.get(Note, note_id)
            if row is None:
                return None
            return self._load_notes(session, [row])[0]

    def get_note_by_path(self, path: str) -> NoteRecord | None:
        with self._transaction("get_note_by_path", path=path) as session:
            row = session.execute(select(Note).where(Note.path == path)).scalar_one_or_none()
            if row is None:
                return None
            return self._load_notes(session, [row])[0]

    def list_notes(self) -> list[NoteRecord]:
        """List live notes, most recently updated first."""
        stmt = (
            select(Note)
            .where(Note.is_deleted.is_(False))
            .order_by(Note.updated_at.desc(), Note.id.asc())
        )
        with self._transaction("list_notes") as session:
            return self._load_notes(session, list(session.execute(stmt).scalars().all()))

    def list_notes_by_tag(self, tag: str) -> list[NoteRecord]:
        """List live notes carrying *tag*, most recently updated first."""
        stmt = (
            select(Note)
            .join(NoteTag, NoteTag.note_id == Note.id)
            .join(Tag, Tag.id == NoteTag.tag_id)
            .where(Tag.name == tag, Note.is_deleted.is_(False))
            .order_by(Note.updated_at.desc(), Note.id.asc())
        )
        with self._transaction("list_notes_by_tag", tag=tag) as session:
            return self._load_notes(session, list(session.execute(stmt).scalars().all()))

    def search_notes(self, query: str) -> list[NoteRecord]:
        """Full-text search over live notes, best match first."""
        fts_query = build_fts_query(query)
        if fts_query is None:
            return []
        with self._transaction("search_notes", query=query) as session:
            ids = [r[0] for r in session.execute(_FTS_SEARCH_SQL, {"query": fts_query}).all()]
            if not ids:
                return []
            rows = session.execute(select(Note).where(Note.id.in_(ids))).scalars().all()
            by_id = {row.id: row for row in rows}
            ordered = [by_id[note_id] for note_id in dict.fromkeys(ids) if note_id in by_id]
            return self._load_notes(session, ordered)

    @staticmethod
    def _replace_note_tags(session: Session, note_id: str, tags: Iterable[str]) -> None:
        """Replace all tag associations of a note."""
        session.execute(delete(NoteTag).where(NoteTag.note_id == note_id))
        for name in sorted(set(tags)):
            session.execute(sqlite_insert(Tag).values(name=name).on_conflict_do_nothing())
            tag_id = session.execute(select(Tag.id).where(Tag.name == name)).scalar_one()
            session.execute(sqlite_insert(NoteTag).values(note_id=note_id, tag_id=tag_id))

    def upsert_note(self, record: NoteRecord) -> None:
        """Insert or overwrite a note row and its tag set in one transaction."""
        values = {
            "id": record.id,
            "path": record.path,
            "title": record.title,
            "hash": record.hash,
            "created_at": record.created_at,
            "updated_at": record.updated_at,
            "is_deleted": record.is_deleted,
        }
        stmt = sqlite_insert(Note).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Note.id],
            set_={key: stmt.excluded[key] for key in values if key != "id"},
        )
        with self._transaction("upsert_note", note_id=record.id) as session:
            session.execute(stmt)
            self._replace_note_tags(session, record.id, record.tags)

    def delete_note(self, note_id: str) -> None:
        """Tombstone a note and drop it from the search index.

        Raises NotFoundError if the note row does not exist.
        """
        stmt = (
            update(Note)
            .where(Note.id == note_id)
            .values(is_deleted=True, updated_at=self._clock())
            .execution_options(synchronize_session=False)
        )
        with self._transaction("delete_note", note_id=note_id) as session:
            result = session.execute(stmt)
            if result.rowcount == 0:  # type: ignore[attr-defined]
                raise NotFoundError("Note not found", note_id=note_id)
            session.execute(_FTS_DELETE_SQL, {"note_id": note_id})

    def list_tags(self) -> list[TagInfo]:
        """Tags referenced by live notes, by count descending then name."""
        count = func.count(NoteTag.note_id).label("note_count")
        stmt = (
            select(Tag.name, count)
            .join(NoteTag, NoteTag.tag_id == Tag.id)
            .join(Note, Note.id == NoteTag.note_id)
            .where(Note.is_deleted.is_(False))
            .group_by(Tag.id, Tag.name)
            .having(count > 0)
            .order_by(count.desc(), Tag.name.asc())
        )
        with self._transaction("list_tags") as session:
            return [TagInfo(name=name, count=n) for name, n in session.execute(stmt).all()]

    # ── Search index ─────────────────────────────────

    def index_note_text(self, note_id: str, title: str, body: str) -> None:
        """(Re)index a note's searchable text, replacing any previous entry."""
        with self._transaction("index_note_text", note_id=note_id) as session:
            session.execute(_FTS_DELETE_SQL, {"note_id": note_id})
            session.execute(_FTS_INSERT_SQL, {"note_id": note_id, "title": title, "body": body})

    def deindex_note_text(self, note_id: str) -> None:
        with self._transaction("deindex_note_text", note_id=note_id) as session:
            session.execute(_FTS_DELETE_SQL, {"note_id": note_id})

    # ── Auth state ───────────────────────────────────

    def store_token(self, token: str, expires_at: int) -> None:
        with self._transaction("store_token") as session:
            session.add(AuthToken(token=token, created_at=self._clock(), expires_at=expires_at))

    def validate_token(self, token: str) -> bool:
        """Return True if *token* exists and has not expired.

        A successful check records the time in ``last_used``.
        """
        now = self._clock()
        stmt = (
            update(AuthToken)
            .where(AuthToken.token == token, AuthToken.expires_at > now)
            .values(last_used=now)
            .execution_options(synchronize_session=False)
        )
        with self._transaction("validate_token") as session:
            return session.execute(stmt).rowcount == 1  # type: ignore[attr-defined]

    def sweep_expired_tokens(self) -> int:
        """Delete expired tokens. Returns the number removed."""
        stmt = (
            delete(AuthToken)
            .where(AuthToken.expires_at <= self._clock())
            .execution_options(synchronize_session=False)
        )
        with self._transaction("sweep_expired_tokens") as session:
            removed: int = session.execute(stmt).rowcount  # type: ignore[attr-defined]
        if removed:
            logger.info("Swept %d expired tokens", removed)
        return removed

    def store_challenge(self, challenge: str, public_key: str, expires_at: int) -> None:
        with self._transaction("store_challenge") as session:
            session.add(
                AuthChallenge(challenge=challenge, public_key=public_key, expires_at=expires_at)
            )

    def validate_and_consume_challenge(self, challenge: str, public_key: str) -> bool:
        """Consume a live challenge bound to *public_key*.

        Key binding, expiry and consumption are checked by a single DELETE, so a
        challenge can succeed at most once. A mismatched or expired challenge is
        left in place and False is returned.
        """
        stmt = (
            delete(AuthChallenge)
            .where(
                AuthChallenge.challenge == challenge,
                AuthChallenge.public_key == public_key,
                AuthChallenge.expires_at > self._clock(),
            )
            .execution_options(synchronize_session=False)
        )
        with self._transaction("validate_and_consume_challenge") as session:
            return session.execute(stmt).rowcount == 1  # type: ignore[attr-defined]
