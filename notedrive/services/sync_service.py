"""Sync coordinator: snapshot and incremental views of the file index."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from notedrive.services.datetime_service import now_ms

if TYPE_CHECKING:
    from collections.abc import Callable

    from notedrive.services.index_store import FileRecord, IndexStore

logger = logging.getLogger(__name__)


@dataclass
class SyncState:
    """Index state handed to a client.

    Clients pass ``server_time`` back as ``since`` on their next request.
    """

    server_time: int
    files: list[FileRecord] = field(default_factory=list)


class SyncService:
    def __init__(self, store: IndexStore, clock: Callable[[], int] = now_ms) -> None:
        self._store = store
        self._clock = clock

    def get_sync_state(self, since: int | None = None) -> SyncState:
        """Return file records changed after *since*, or every record when omitted.

        Tombstones are included in both modes. ``server_time`` is read before
        the query, so writes stamped after it show up on the next request that
        passes it as *since*. Timestamps have millisecond resolution: a write
        that lands after the query but in the same millisecond as
        ``server_time`` is not returned by that next request.
        """
        server_time = self._clock()
        files = self._store.list_files(since=since)
        logger.debug("Sync state since=%s: %d files", since, len(files))
        return SyncState(server_time=server_time, files=files)
