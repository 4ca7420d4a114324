"""Byte-oriented content store rooted at a directory."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import TYPE_CHECKING

from notedrive.exceptions import ContentError

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass
class ContentStore:
    """Reads and writes files under ``root``.

    Paths are relative, ``/``-separated strings. Any path that resolves
    outside ``root`` is rejected with ContentError, and every ``OSError`` is
    wrapped into ContentError carrying the offending path.
    """

    root: Path

    def _validate_path(self, rel_path: str) -> Path:
        """Resolve *rel_path* and make sure it stays within the root.

        Raises ContentError if the path is empty or escapes the root.
        """
        if not rel_path or not rel_path.strip("/. "):
            raise ContentError("Invalid content path", path=rel_path)
        root = self.root.resolve()
        full_path = (root / rel_path).resolve()
        if full_path == root or not full_path.is_relative_to(root):
            raise ContentError("Content path escapes the store root", path=rel_path)
        return full_path

    def read(self, rel_path: str) -> bytes:
        full_path = self._validate_path(rel_path)
        try:
            return full_path.read_bytes()
        except OSError as exc:
            raise ContentError(f"Failed to read content: {exc.strerror}", path=rel_path) from exc

    def read_text(self, rel_path: str) -> str:
        """Read a UTF-8 text file."""
        data = self.read(rel_path)
        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ContentError("Content is not valid UTF-8", path=rel_path) from exc

    def write(self, rel_path: str, data: bytes | str) -> None:
        """Write *data*, creating parent directories as needed."""
        full_path = self._validate_path(rel_path)
        if isinstance(data, str):
            data = data.encode("utf-8")
        try:
            full_path.parent.mkdir(parents=True, exist_ok=True)
            full_path.write_bytes(data)
        except OSError as exc:
            raise ContentError(f"Failed to write content: {exc.strerror}", path=rel_path) from exc

    def remove(self, rel_path: str) -> bool:
        """Delete a file. Returns True if the file existed."""
        full_path = self._validate_path(rel_path)
        try:
            full_path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise ContentError(f"Failed to remove content: {exc.strerror}", path=rel_path) from exc
        return True

    def exists(self, rel_path: str) -> bool:
        return self._validate_path(rel_path).is_file()

    def size(self, rel_path: str) -> int:
        full_path = self._validate_path(rel_path)
        try:
            return full_path.stat().st_size
        except OSError as exc:
            raise ContentError(f"Failed to stat content: {exc.strerror}", path=rel_path) from exc

    def mtime(self, rel_path: str) -> int:
        """Return the modification time in milliseconds."""
        full_path = self._validate_path(rel_path)
        try:
            return full_path.stat().st_mtime_ns // 1_000_000
        except OSError as exc:
            raise ContentError(f"Failed to stat content: {exc.strerror}", path=rel_path) from exc

    def set_mtime(self, rel_path: str, mtime_ms: int) -> None:
        full_path = self._validate_path(rel_path)
        mtime_ns = mtime_ms * 1_000_000
        try:
            os.utime(full_path, ns=(mtime_ns, mtime_ns))
        except OSError as exc:
            raise ContentError(f"Failed to set mtime: {exc.strerror}", path=rel_path) from exc

    def list_recursive(self, suffix: str | None = None) -> list[str]:
        """List all regular files below the root, sorted.

        Hidden files and anything inside hidden directories are skipped. With
        *suffix*, only names ending in it are returned.

        Raises ContentError if the root itself cannot be enumerated.
        """
        root = self.root.resolve()
        if not root.is_dir():
            raise ContentError("Content root is not a directory", path=str(self.root))
        paths: list[str] = []
        try:
            for dirpath, dirnames, filenames in os.walk(root):
                dirnames[:] = [d for d in dirnames if not d.startswith(".")]
                for name in filenames:
                    if name.startswith("."):
                        continue
                    if suffix is not None and not name.endswith(suffix):
                        continue
                    full_path = os.path.join(dirpath, name)
                    paths.append(os.path.relpath(full_path, root).replace(os.sep, "/"))
        except OSError as exc:
            raise ContentError(
                f"Failed to list content: {exc.strerror}", path=str(self.root)
            ) from exc
        return sorted(paths)
