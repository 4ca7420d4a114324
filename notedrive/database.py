"""Database engine and session management."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import Engine, event
from sqlalchemy import create_engine as sa_create_engine
from sqlalchemy.orm import Session, sessionmaker

if TYPE_CHECKING:
    from notedrive.config import Settings

# Seconds a writer waits on a locked SQLite database before failing.
BUSY_TIMEOUT_SECONDS = 30


def _set_sqlite_pragmas(dbapi_connection: Any, connection_record: Any) -> None:
    """Enable WAL mode and foreign key enforcement on every new connection."""
    _ = connection_record
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def create_engine(
    settings: Settings,
) -> tuple[Engine, sessionmaker[Session]]:
    """Create the engine and session factory.

    Returns (engine, session_factory) tuple. Connections may be used from any
    request thread; each session is still confined to one thread.
    """
    engine = sa_create_engine(
        settings.database_url,
        echo=settings.debug,
        connect_args={"check_same_thread": False, "timeout": BUSY_TIMEOUT_SECONDS},
    )
    event.listen(engine, "connect", _set_sqlite_pragmas)
    session_factory = sessionmaker(
        engine,
        class_=Session,
        expire_on_commit=False,
    )
    return engine, session_factory
