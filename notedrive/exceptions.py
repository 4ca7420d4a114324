"""Application-level exception types.

Convention:
- Core code (index store, reconcilers, auth manager) raises a ``DriveError``
  subclass. Each subclass belongs to exactly one ``ErrorKind`` and carries a
  human-readable message plus a structured ``context`` dict.
- Only the HTTP boundary in ``notedrive/main.py`` maps kinds to status codes.
  ``StorageError`` and ``ContentError`` details are logged server-side and
  never forwarded to clients.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any


class ErrorKind(StrEnum):
    """Closed set of failure kinds a core operation can report."""

    NOT_FOUND = "not_found"
    INVALID_INPUT = "invalid_input"
    UNAUTHORIZED = "unauthorized"
    STORAGE = "storage_error"
    CONTENT = "content_error"


class DriveError(Exception):
    """Base class for all typed core failures."""

    kind: ErrorKind

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context: dict[str, Any] = context

    def __str__(self) -> str:
        if not self.context:
            return self.message
        details = ", ".join(f"{key}={value!r}" for key, value in sorted(self.context.items()))
        return f"{self.message} ({details})"


class NotFoundError(DriveError):
    """Missing path, note id or index row."""

    kind = ErrorKind.NOT_FOUND


class InvalidInputError(DriveError):
    """Malformed request, missing required field or bad selector combination."""

    kind = ErrorKind.INVALID_INPUT


class UnauthorizedError(DriveError):
    """Bad, expired or reused challenge, bad signature, bad token or unknown key."""

    kind = ErrorKind.UNAUTHORIZED


class StorageError(DriveError):
    """The index engine failed; the transaction was rolled back."""

    kind = ErrorKind.STORAGE


class ContentError(DriveError):
    """Content store read/write failure or path traversal attempt."""

    kind = ErrorKind.CONTENT
