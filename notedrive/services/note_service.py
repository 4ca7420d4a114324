"""Note reconciler: note documents on disk, metadata and search in the index."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from notedrive.exceptions import ContentError, DriveError, InvalidInputError, NotFoundError
from notedrive.filesystem.note_codec import (
    NoteDocument,
    generate_preview,
    normalize_tags,
    parse_note,
    serialize_note,
)
from notedrive.services.crypto_service import generate_note_id, hash_content
from notedrive.services.datetime_service import now_ms
from notedrive.services.file_service import ScanReport, SkippedItem
from notedrive.services.index_store import NoteRecord
from notedrive.services.locks import KeyedLock

if TYPE_CHECKING:
    from collections.abc import Callable

    from notedrive.filesystem.content_store import ContentStore
    from notedrive.services.index_store import IndexStore, TagInfo

logger = logging.getLogger(__name__)

NOTE_SUFFIX = ".md"
DEFAULT_PAGE_SIZE = 50


def note_path(note_id: str) -> str:
    return f"{note_id}{NOTE_SUFFIX}"


def note_id_from_path(path: str) -> str:
    return path.removesuffix(NOTE_SUFFIX)


@dataclass
class NoteDetail:
    """A note with its full body."""

    id: str
    title: str
    body: str
    tags: list[str]
    created_at: int
    updated_at: int


@dataclass
class NoteSummary:
    """A listing entry: metadata plus a short preview of the body."""

    id: str
    title: str
    tags: list[str]
    preview: str
    created_at: int
    updated_at: int


@dataclass
class NoteListing:
    notes: list[NoteSummary] = field(default_factory=list)
    total: int = 0


@dataclass
class ListOptions:
    """Listing selector. At most one of ``tag`` and ``search`` may be set."""

    tag: str | None = None
    search: str | None = None
    limit: int = DEFAULT_PAGE_SIZE
    offset: int = 0


class NoteService:
    """Creates, edits and indexes frontmatter notes stored as ``<id>.md``."""

    def __init__(
        self,
        store: IndexStore,
        content: ContentStore,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        self._store = store
        self._content = content
        self._clock = clock
        self._locks = KeyedLock()

    def _read_document(self, path: str) -> tuple[str, NoteDocument]:
        """Read and parse a note file. Returns (raw text, document)."""
        raw = self._content.read_text(path)
        try:
            return raw, parse_note(raw, file_path=path)
        except ValueError as exc:
            raise ContentError(str(exc), path=path) from exc

    def _write_and_index(
        self, note_id: str, document: NoteDocument, created_at: int
    ) -> tuple[NoteRecord, NoteDocument]:
        """Serialize, write, upsert metadata and refresh the search text."""
        path = note_path(note_id)
        raw = serialize_note(document)
        self._content.write(path, raw)
        stored = parse_note(raw, file_path=path)
        record = NoteRecord(
            id=note_id,
            path=path,
            title=stored.title,
            hash=hash_content(raw),
            created_at=created_at,
            updated_at=self._clock(),
            tags=frozenset(stored.tags),
        )
        self._store.upsert_note(record)
        self._store.index_note_text(note_id, stored.title, stored.body)
        return record, stored

    @staticmethod
    def _detail(record: NoteRecord, body: str) -> NoteDetail:
        return NoteDetail(
            id=record.id,
            title=record.title,
            body=body,
            tags=record.sorted_tags,
            created_at=record.created_at,
            updated_at=record.updated_at,
        )

    def _live_record(self, note_id: str) -> NoteRecord:
        record = self._store.get_note(note_id)
        if record is None or record.is_deleted:
            raise NotFoundError("Note not found", note_id=note_id)
        return record

    def create_note(self, title: str, body: str = "", tags: list[str] | None = None) -> NoteDetail:
        """Create a note under a fresh random id."""
        if not title or not title.strip():
            raise InvalidInputError("Note title must not be empty")
        note_id = generate_note_id()
        document = NoteDocument(title=title.strip(), body=body, tags=normalize_tags(tags))
        with self._locks.hold(note_id):
            record, stored = self._write_and_index(note_id, document, created_at=self._clock())
        logger.debug("Created note %s (%s)", note_id, record.title)
        return self._detail(record, stored.body)

    def get_note(self, note_id: str) -> NoteDetail:
        record = self._live_record(note_id)
        _, document = self._read_document(record.path)
        return self._detail(record, document.body)

    def update_note(
        self,
        note_id: str,
        title: str | None = None,
        body: str | None = None,
        tags: list[str] | None = None,
    ) -> NoteDetail:
        """Apply the supplied fields to a note; omitted fields keep their content values."""
        if title is not None and not title.strip():
            raise InvalidInputError("Note title must not be empty", note_id=note_id)
        with self._locks.hold(note_id):
            existing = self._live_record(note_id)
            _, document = self._read_document(existing.path)
            if title is not None:
                document.title = title.strip()
            if body is not None:
                document.body = body
            if tags is not None:
                document.tags = normalize_tags(tags)
            record, stored = self._write_and_index(
                note_id, document, created_at=existing.created_at
            )
        logger.debug("Updated note %s (%s)", note_id, record.title)
        return self._detail(record, stored.body)

    def delete_note(self, note_id: str) -> None:
        """Remove note content (best effort), then tombstone and deindex it.

        Ids the index does not know raise NotFoundError and leave any file
        with a matching name on disk.
        """
        with self._locks.hold(note_id):
            record = self._store.get_note(note_id)
            if record is None:
                raise NotFoundError("Note not found", note_id=note_id)
            try:
                self._content.remove(record.path)
            except DriveError as exc:
                logger.warning("Failed to remove content for note %s: %s", note_id, exc)
            self._store.delete_note(note_id)
        logger.debug("Deleted note %s", note_id)

    def _preview(self, record: NoteRecord) -> str:
        try:
            _, document = self._read_document(record.path)
        except DriveError as exc:
            logger.debug("No preview for note %s: %s", record.id, exc)
            return ""
        return generate_preview(document.body)

    def list(self, options: ListOptions | None = None) -> NoteListing:
        """List notes by search query, by tag, or all of them, paginated."""
        options = options or ListOptions()
        if options.search is not None and options.tag is not None:
            raise InvalidInputError("Specify either a search query or a tag, not both")
        if options.limit < 1 or options.offset < 0:
            raise InvalidInputError(
                "Invalid pagination", limit=options.limit, offset=options.offset
            )

        if options.search is not None:
            records = self._store.search_notes(options.search)
        elif options.tag is not None:
            records = self._store.list_notes_by_tag(options.tag)
        else:
            records = self._store.list_notes()

        page = records[options.offset : options.offset + options.limit]
        summaries = [
            NoteSummary(
                id=record.id,
                title=record.title,
                tags=record.sorted_tags,
                preview=self._preview(record),
                created_at=record.created_at,
                updated_at=record.updated_at,
            )
            for record in page
        ]
        return NoteListing(notes=summaries, total=len(records))

    def list_tags(self) -> list[TagInfo]:
        return self._store.list_tags()

    def search(self, query: str, limit: int = DEFAULT_PAGE_SIZE, offset: int = 0) -> NoteListing:
        return self.list(ListOptions(search=query, limit=limit, offset=offset))

    def notes_by_tag(
        self, tag: str, limit: int = DEFAULT_PAGE_SIZE, offset: int = 0
    ) -> NoteListing:
        return self.list(ListOptions(tag=tag, limit=limit, offset=offset))

    def _index_one(self, path: str) -> None:
        note_id = note_id_from_path(path)
        with self._locks.hold(note_id):
            raw, document = self._read_document(path)
            digest = hash_content(raw)
            existing = self._store.get_note(note_id)
            if existing is not None and not existing.is_deleted and existing.hash == digest:
                return
            now = self._clock()
            self._store.upsert_note(
                NoteRecord(
                    id=note_id,
                    path=path,
                    title=document.title,
                    hash=digest,
                    created_at=existing.created_at if existing is not None else now,
                    updated_at=now,
                    tags=frozenset(document.tags),
                )
            )
            self._store.index_note_text(note_id, document.title, document.body)

    def scan_and_index(self) -> ScanReport:
        """Index every ``*.md`` file in the notes store, skipping unchanged ones."""
        report = ScanReport()
        for path in self._content.list_recursive(suffix=NOTE_SUFFIX):
            try:
                self._index_one(path)
            except DriveError as exc:
                logger.warning("Skipping note %s during scan: %s", path, exc)
                report.skipped.append(SkippedItem(path=path, reason=str(exc)))
                continue
            report.indexed += 1
        logger.info(
            "Note scan complete: %d indexed, %d skipped", report.indexed, len(report.skipped)
        )
        return report
