"""Tests for the byte content store."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from notedrive.exceptions import ContentError
from notedrive.filesystem.content_store import ContentStore

if TYPE_CHECKING:
    from pathlib import Path


@pytest.fixture
def content(tmp_path: Path) -> ContentStore:
    root = tmp_path / "root"
    root.mkdir()
    return ContentStore(root)


class TestReadWrite:
    def test_write_creates_parent_dirs(self, content: ContentStore) -> None:
        content.write("a/b/c.txt", b"data")
        assert content.read("a/b/c.txt") == b"data"
        assert (content.root / "a" / "b" / "c.txt").is_file()

    def test_write_text(self, content: ContentStore) -> None:
        content.write("n.md", "héllo")
        assert content.read_text("n.md") == "héllo"
        assert content.size("n.md") == len("héllo".encode())

    def test_read_missing_is_content_error(self, content: ContentStore) -> None:
        with pytest.raises(ContentError) as exc_info:
            content.read("missing.txt")
        assert exc_info.value.context["path"] == "missing.txt"

    def test_read_text_rejects_invalid_utf8(self, content: ContentStore) -> None:
        content.write("bin.md", b"\xff\xfe")
        with pytest.raises(ContentError, match="UTF-8"):
            content.read_text("bin.md")

    def test_remove(self, content: ContentStore) -> None:
        content.write("x.txt", b"1")
        assert content.remove("x.txt") is True
        assert content.remove("x.txt") is False
        assert not content.exists("x.txt")

    def test_mtime_roundtrip(self, content: ContentStore) -> None:
        content.write("x.txt", b"1")
        content.set_mtime("x.txt", 1_500_000_000_250)
        assert content.mtime("x.txt") == 1_500_000_000_250


class TestPathSafety:
    @pytest.mark.parametrize(
        "path", ["../outside.txt", "a/../../outside.txt", "/etc/passwd", "", ".", "..", "/"]
    )
    def test_rejects_escaping_paths(self, content: ContentStore, path: str) -> None:
        with pytest.raises(ContentError):
            content.write(path, b"x")

    def test_symlink_escape_rejected(self, content: ContentStore, tmp_path: Path) -> None:
        outside = tmp_path / "outside"
        outside.mkdir()
        (content.root / "link").symlink_to(outside)
        with pytest.raises(ContentError, match="escapes"):
            content.write("link/file.txt", b"x")

    def test_inner_dotdot_allowed(self, content: ContentStore) -> None:
        content.write("a/../b.txt", b"x")
        assert content.read("b.txt") == b"x"


class TestListing:
    def test_recursive_sorted_and_hidden_skipped(self, content: ContentStore) -> None:
        for path in ["b.txt", "a/z.md", "a/y.txt", ".git/config", "a/.swp"]:
            content.write(path, b"x")
        assert content.list_recursive() == ["a/y.txt", "a/z.md", "b.txt"]
        assert content.list_recursive(suffix=".md") == ["a/z.md"]

    def test_missing_root_raises(self, tmp_path: Path) -> None:
        with pytest.raises(ContentError):
            ContentStore(tmp_path / "nope").list_recursive()


_SEGMENT = st.text(alphabet="abc./", min_size=1, max_size=20)


@settings(
    max_examples=150,
    deadline=None,
    suppress_health_check=[HealthCheck.too_slow, HealthCheck.function_scoped_fixture],
)
@given(path=_SEGMENT)
def test_written_files_stay_inside_root(content: ContentStore, path: str) -> None:
    root = content.root.resolve()
    try:
        content.write(path, b"x")
    except ContentError:
        return
    assert (root / path).resolve().is_relative_to(root)
