"""Note document format: YAML front matter (title, tags) plus a markdown body."""

from __future__ import annotations

import re
from dataclasses import dataclass, field

import frontmatter
import yaml

_FRONT_MATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(.*?)^---[ \t]*\r?(?:\n|\Z)", re.DOTALL | re.MULTILINE
)
_YAML = frontmatter.YAMLHandler()


@dataclass
class NoteDocument:
    """Parsed note content."""

    title: str
    body: str
    tags: list[str] = field(default_factory=list)


def normalize_tags(raw_tags: object | None) -> list[str]:
    """Normalize front matter tags to a de-duplicated list of non-empty strings.

    Accepts a list or a comma-separated string; first occurrence order is kept.
    """
    if raw_tags is None:
        return []
    if isinstance(raw_tags, str):
        items: list[object] = list(raw_tags.split(","))
    elif isinstance(raw_tags, (list, tuple, set, frozenset)):
        items = list(raw_tags)
    else:
        items = [raw_tags]
    result: list[str] = []
    for item in items:
        if item is None:
            continue
        tag = str(item).strip()
        if tag and tag not in result:
            result.append(tag)
    return result


def extract_title(body: str, file_path: str = "") -> str:
    """Extract title from the first ``# heading`` in the markdown body.

    Falls back to the file name without its extension, then to "Untitled".
    """
    for line in body.strip().split("\n"):
        stripped = line.strip()
        if stripped.startswith("# ") and not stripped.startswith("## "):
            return stripped.removeprefix("# ").strip()
    if file_path:
        name = file_path.rsplit("/", maxsplit=1)[-1].removesuffix(".md").strip()
        if name:
            return name
    return "Untitled"


def strip_leading_heading(body: str, title: str) -> str:
    """Remove the first ``# heading`` from body if it matches the title.

    Skips leading blank lines. If the first non-blank line is not a level-1
    heading or does not match *title*, the body is returned unchanged.
    """
    lines = body.split("\n")
    for i, line in enumerate(lines):
        stripped = line.strip()
        if not stripped:
            continue
        if stripped.startswith("# ") and not stripped.startswith("## "):
            if stripped.removeprefix("# ").strip() == title:
                return "\n".join(lines[i + 1 :])
        break
    return body


def parse_note(raw_content: str, file_path: str = "") -> NoteDocument:
    """Parse a note file into a NoteDocument.

    The body is returned exactly as stored, minus the blank line that
    separates it from the front matter. A level-1 heading is removed from the
    body only when it supplied the title. Raises ValueError if the front
    matter is not valid YAML.
    """
    metadata: dict[str, object] = {}
    content = raw_content
    match = _FRONT_MATTER_RE.match(raw_content)
    if match is not None:
        try:
            loaded = _YAML.load(match.group(1))
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid front matter: {exc}") from exc
        if isinstance(loaded, dict):
            metadata = loaded
        content = raw_content[match.end() :]
        if content.startswith("\n"):
            content = content[1:]
        elif content.startswith("\r\n"):
            content = content[2:]

    fm_title = metadata.get("title")
    if fm_title is not None and not isinstance(fm_title, str):
        fm_title = str(fm_title)
    if fm_title and fm_title.strip():
        return NoteDocument(
            title=fm_title.strip(), body=content, tags=normalize_tags(metadata.get("tags"))
        )

    title = extract_title(content, file_path)
    body = strip_leading_heading(content, title)
    if body != content:
        body = body.lstrip("\r\n")
    return NoteDocument(title=title, body=body, tags=normalize_tags(metadata.get("tags")))


def serialize_note(document: NoteDocument) -> str:
    """Serialize a NoteDocument to markdown with YAML front matter.

    The title always goes into the front matter and the body is written
    verbatim after one blank separator line.
    """
    title = document.title.strip() or "Untitled"
    metadata = _YAML.export({"title": title, "tags": normalize_tags(document.tags)})
    return f"---\n{metadata}\n---\n\n{document.body}"


def generate_preview(body: str, max_length: int = 200) -> str:
    """Generate a short plain preview of a note body.

    Skips headings, code blocks and images; joins the remaining lines and cuts
    at a word boundary.
    """
    lines: list[str] = []
    in_code_block = False
    for line in body.split("\n"):
        stripped = line.strip()
        if stripped.startswith("```"):
            in_code_block = not in_code_block
            continue
        if in_code_block or stripped.startswith(("#", "![")):
            continue
        if stripped:
            lines.append(stripped)

    text = " ".join(lines)
    if len(text) > max_length:
        text = text[:max_length].rsplit(" ", maxsplit=1)[0] + "..."
    return text
