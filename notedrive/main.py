"""FastAPI application entry point."""

from __future__ import annotations

import argparse
import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from notedrive import __version__
from notedrive.api.auth import router as auth_router
from notedrive.api.files import router as files_router
from notedrive.api.health import router as health_router
from notedrive.api.notes import router as notes_router
from notedrive.api.sync import router as sync_router
from notedrive.config import Settings, init_data_dirs, load_settings
from notedrive.database import create_engine
from notedrive.exceptions import DriveError, ErrorKind
from notedrive.filesystem.content_store import ContentStore
from notedrive.services.auth_service import AuthManager
from notedrive.services.file_service import FileService
from notedrive.services.index_store import IndexStore
from notedrive.services.note_service import NoteService
from notedrive.services.sync_service import SyncService

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator, Sequence

logger = logging.getLogger(__name__)

_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.INVALID_INPUT: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.STORAGE: 500,
    ErrorKind.CONTENT: 500,
}

_INTERNAL_MESSAGES: dict[ErrorKind, str] = {
    ErrorKind.STORAGE: "Index operation failed",
    ErrorKind.CONTENT: "Storage operation failed",
}


def _configure_logging(level: int) -> None:
    """Configure application logging."""
    fmt = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        stream=sys.stdout,
        force=True,
    )
    # Quiet noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if level <= logging.DEBUG else logging.WARNING
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan: startup and shutdown."""
    settings: Settings = app.state.settings
    _configure_logging(settings.log_level)
    logger.info("Starting notedrive %s (data_dir=%s)", __version__, settings.data_dir)

    try:
        init_data_dirs(settings)
    except OSError as exc:
        logger.critical("Failed to initialize data directories: %s", exc)
        raise

    try:
        engine, session_factory = create_engine(settings)
        store = IndexStore(session_factory)
        store.ensure_schema()
    except Exception as exc:
        logger.critical(
            "Failed to initialize database: %s. Check database path and permissions.", exc
        )
        raise
    app.state.engine = engine
    app.state.index_store = store

    file_service = FileService(store, ContentStore(settings.files_root))
    note_service = NoteService(store, ContentStore(settings.notes_root))
    auth_manager = AuthManager.from_settings(store, settings.authorized_keys_path, settings.auth)
    app.state.file_service = file_service
    app.state.note_service = note_service
    app.state.sync_service = SyncService(store)
    app.state.auth_manager = auth_manager

    auth_manager.load_authorized_keys()

    file_report = file_service.scan_and_index()
    note_report = note_service.scan_and_index()
    logger.info(
        "Indexed %d files and %d notes from disk", file_report.indexed, note_report.indexed
    )
    auth_manager.cleanup_expired()

    yield

    try:
        engine.dispose()
    except Exception as exc:
        logger.error("Error during engine disposal: %s", exc, exc_info=True)
    logger.info("notedrive stopped")


def _error_response(kind: ErrorKind, message: str) -> JSONResponse:
    headers = {"WWW-Authenticate": "Bearer"} if kind is ErrorKind.UNAUTHORIZED else None
    return JSONResponse(
        status_code=_STATUS_BY_KIND[kind],
        content={"error": str(kind), "message": message},
        headers=headers,
    )


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = load_settings()

    app = FastAPI(
        title="notedrive",
        description="Self-hosted file and note storage with incremental sync",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
    )
    app.state.settings = settings

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(files_router)
    app.include_router(notes_router)
    app.include_router(sync_router)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = []
        for err in exc.errors():
            loc = err.get("loc", ())
            field = str(loc[-1]) if loc else "unknown"
            errors.append(f"{field}: {err.get('msg', 'Invalid value')}")
        logger.warning(
            "RequestValidationError in %s %s: %s",
            request.method,
            request.url.path,
            errors,
        )
        return _error_response(ErrorKind.INVALID_INPUT, "; ".join(errors) or "Invalid request")

    @app.exception_handler(DriveError)
    async def drive_error_handler(request: Request, exc: DriveError) -> JSONResponse:
        if exc.kind in _INTERNAL_MESSAGES:
            logger.error(
                "%s in %s %s: %s",
                type(exc).__name__,
                request.method,
                request.url.path,
                exc,
                exc_info=exc,
            )
            return _error_response(exc.kind, _INTERNAL_MESSAGES[exc.kind])
        logger.debug("%s in %s %s: %s", type(exc).__name__, request.method, request.url.path, exc)
        return _error_response(exc.kind, exc.message)

    return app


def cli_entry(argv: Sequence[str] | None = None) -> None:
    """Run the server with uvicorn."""
    import uvicorn

    parser = argparse.ArgumentParser(prog="notedrive", description="notedrive storage server")
    parser.add_argument("-c", "--config", type=Path, help="path to a TOML config file")
    parser.add_argument("-v", "--version", action="version", version=f"notedrive {__version__}")
    args = parser.parse_args(argv)

    try:
        settings = load_settings(args.config)
    except (OSError, ValueError) as exc:
        parser.exit(1, f"notedrive: {exc}\n")

    uvicorn.run(
        create_app(settings),
        host=settings.server.host,
        port=settings.server.port,
        log_config=None,
    )


if __name__ == "__main__":
    cli_entry()
