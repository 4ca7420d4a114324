"""File reconciler: keeps the file content store and the index in step."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from notedrive.exceptions import DriveError, NotFoundError
from notedrive.services.crypto_service import hash_content
from notedrive.services.datetime_service import now_ms
from notedrive.services.index_store import FileRecord
from notedrive.services.locks import KeyedLock

if TYPE_CHECKING:
    from collections.abc import Callable

    from notedrive.filesystem.content_store import ContentStore
    from notedrive.services.index_store import IndexStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SkippedItem:
    path: str
    reason: str


@dataclass
class ScanReport:
    """Outcome of a bulk scan: items indexed and items skipped with reasons."""

    indexed: int = 0
    skipped: list[SkippedItem] = field(default_factory=list)


class FileService:
    """Generic file storage backed by a ContentStore and the IndexStore."""

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

    def put(self, path: str, content: bytes, client_mtime: int | None = None) -> FileRecord:
        """Write a file and record it in the index.

        ``created_at`` of an existing row is preserved. The recorded mtime is
        *client_mtime* when given (and applied to the stored file), otherwise
        the content store's own mtime.
        """
        with self._locks.hold(path):
            existing = self._store.get_file(path)
            now = self._clock()

            self._content.write(path, content)
            if client_mtime is not None:
                self._content.set_mtime(path, client_mtime)
                mtime = client_mtime
            else:
                mtime = self._content.mtime(path)

            record = FileRecord(
                path=path,
                hash=hash_content(content),
                size=len(content),
                mtime=mtime,
                created_at=existing.created_at if existing is not None else now,
                updated_at=now,
            )
            self._store.upsert_file(record)
        logger.debug("Stored file %s (%d bytes)", path, record.size)
        return record

    def get(self, path: str) -> bytes:
        """Return file content. The index is consulted before the content store."""
        record = self._store.get_file(path)
        if record is None or record.is_deleted:
            raise NotFoundError("File not found", path=path)
        return self._content.read(path)

    def get_metadata(self, path: str) -> FileRecord | None:
        return self._store.get_file(path)

    def delete(self, path: str) -> None:
        """Remove content (best effort) and tombstone the index row."""
        with self._locks.hold(path):
            if self._store.get_file(path) is None:
                raise NotFoundError("File not found", path=path)
            try:
                self._content.remove(path)
            except DriveError as exc:
                logger.warning("Failed to remove content for %s: %s", path, exc)
            self._store.mark_file_deleted(path)
        logger.debug("Deleted file %s", path)

    def list_files(self) -> list[FileRecord]:
        """All file records, tombstones included."""
        return self._store.list_files()

    def changed_since(self, since: int) -> list[FileRecord]:
        return self._store.list_files(since=since)

    def _index_one(self, path: str) -> None:
        with self._locks.hold(path):
            data = self._content.read(path)
            mtime = self._content.mtime(path)
            digest = hash_content(data)
            existing = self._store.get_file(path)
            if (
                existing is not None
                and not existing.is_deleted
                and existing.hash == digest
                and existing.mtime == mtime
            ):
                return
            now = self._clock()
            self._store.upsert_file(
                FileRecord(
                    path=path,
                    hash=digest,
                    size=len(data),
                    mtime=mtime,
                    created_at=existing.created_at if existing is not None else now,
                    updated_at=now,
                )
            )

    def scan_and_index(self) -> ScanReport:
        """Index every file in the content store.

        Items that fail are logged and reported as skipped; the scan carries
        on. Only a failure to enumerate the store raises.
        """
        report = ScanReport()
        for path in self._content.list_recursive():
            try:
                self._index_one(path)
            except DriveError as exc:
                logger.warning("Skipping file %s during scan: %s", path, exc)
                report.skipped.append(SkippedItem(path=path, reason=str(exc)))
                continue
            report.indexed += 1
        logger.info(
            "File scan complete: %d indexed, %d skipped", report.indexed, len(report.skipped)
        )
        return report
