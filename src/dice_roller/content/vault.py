"""Markdown vault: the document store behind table, section, tag and link rolls."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, Sequence

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

logger = logging.getLogger(__name__)

_yaml = YAML(typ="safe")

_FRONTMATTER_RE = re.compile(r"\A---\n(.*?)\n---\n?", re.S)
_BLOCK_ID_RE = re.compile(r"\s\^([\w-]+)\s*$|^\^([\w-]+)\s*$")
_INLINE_TAG_RE = re.compile(r"(?<![\w#])#([\w/-]+)")
_RANGE_RE = re.compile(r"^\s*(\d+)\s*(?:[-–]\s*(\d+))?\s*$")


@dataclass(frozen=True)
class Entry:
    text: str
    weight: int = 1


@dataclass(frozen=True)
class Block:
    type: str
    text: str
    block_id: str | None = None


class DocumentStore(Protocol):
    """What the lookup rollers need from a content source.

    Every method returns ``None`` when the reference cannot be found.
    """

    def resolve_table(
        self, note: str, block_id: str, column: str | None = None
    ) -> list[Entry] | None: ...

    def resolve_section(self, note: str, types: Sequence[str] = ()) -> list[Entry] | None: ...

    def resolve_lines(self, note: str) -> list[Entry] | None: ...

    def resolve_tag(self, tag: str) -> list[str] | None: ...


def split_frontmatter(text: str) -> tuple[str, str]:
    match = _FRONTMATTER_RE.match(text)
    if not match:
        return "", text
    return match.group(1), text[match.end():]


def load_frontmatter(frontmatter: str) -> dict:
    """Parse a frontmatter block; malformed YAML is logged and treated as empty."""
    if not frontmatter.strip():
        return {}
    try:
        data = _yaml.load(frontmatter)
    except YAMLError as e:
        logger.warning("Ignoring malformed frontmatter: %s", e)
        return {}
    return data if isinstance(data, dict) else {}


def frontmatter_tags(frontmatter: str) -> set[str]:
    """Read ``tags`` (or ``tag``) from frontmatter, given as a list or a string."""
    data = load_frontmatter(frontmatter)
    tags: set[str] = set()
    for key in ("tags", "tag"):
        value = data.get(key)
        if value is None:
            continue
        if isinstance(value, str):
            items = re.split(r"[,\s]+", value)
        elif isinstance(value, list):
            items = [str(item) for item in value if item is not None]
        else:
            items = [str(value)]
        tags.update(item.strip().lstrip("#") for item in items)
    return {t for t in tags if t}


def _block_type(lines: list[str]) -> str:
    first = lines[0].lstrip()
    if first.startswith("```") or first.startswith("~~~"):
        return "code"
    if first.startswith("#"):
        return "heading"
    if first.startswith(">"):
        return "blockquote"
    if first.startswith("|"):
        return "table"
    if re.match(r"^([-*+]|\d+[.)])\s", first):
        return "list"
    return "paragraph"


def parse_blocks(body: str) -> list[Block]:
    """Split markdown into blocks separated by blank lines.

    Headings always stand alone, fenced code keeps its blank lines, and a
    ``^id`` line directly below a block names that block.
    """
    blocks: list[Block] = []
    current: list[str] = []
    in_fence = False

    def flush() -> None:
        if not current:
            return
        lines = list(current)
        current.clear()
        block_id = None
        match = _BLOCK_ID_RE.search(lines[-1])
        if match:
            block_id = match.group(1) or match.group(2)
            if match.group(2):
                lines.pop()
                if not lines:
                    if blocks:
                        prev = blocks.pop()
                        blocks.append(Block(prev.type, prev.text, block_id))
                    return
            else:
                lines[-1] = lines[-1][: match.start()]
        blocks.append(Block(_block_type(lines), "\n".join(lines).strip(), block_id))

    for line in body.splitlines():
        stripped = line.strip()
        if stripped.startswith("```") or stripped.startswith("~~~"):
            if not in_fence:
                flush()
            current.append(line)
            in_fence = not in_fence
            if not in_fence:
                flush()
            continue
        if in_fence:
            current.append(line)
            continue
        if not stripped:
            flush()
        elif stripped.startswith("#") and not _INLINE_TAG_RE.match(stripped):
            flush()
            current.append(line)
            flush()
        else:
            current.append(line)
    flush()
    return blocks


def _cells(row: str) -> list[str]:
    row = row.strip()
    if row.startswith("|"):
        row = row[1:]
    if row.endswith("|"):
        row = row[:-1]
    return [c.strip() for c in row.split("|")]


def parse_table(text: str, column: str | None = None) -> list[Entry]:
    """Turn a markdown table into entries.

    A first column of ranges (``1-3``, ``4``) weights each row by its width.
    ``column`` picks a column by header name; otherwise a single remaining
    column is used as-is and several are joined with `` | ``.
    """
    rows = [_cells(line) for line in text.splitlines() if line.strip().startswith("|")]
    if not rows:
        return []
    header, body = rows[0], rows[1:]
    if body and all(re.fullmatch(r":?-+:?", c) for c in body[0] if c):
        body = body[1:]
    ranged = bool(body) and len(header) > 1 and all(_RANGE_RE.match(r[0]) for r in body if r)
    if column is not None:
        lowered = [h.lower() for h in header]
        if column.lower() not in lowered:
            logger.warning("Table has no column %r (columns: %s)", column, header)
            return []
        indexes = [lowered.index(column.lower())]
    elif ranged:
        indexes = list(range(1, len(header)))
    else:
        indexes = list(range(len(header)))
    entries: list[Entry] = []
    for row in body:
        text_cells = [row[i] for i in indexes if i < len(row)]
        weight = 1
        if ranged:
            low, high = _RANGE_RE.match(row[0]).groups()
            weight = abs(int(high) - int(low)) + 1 if high else 1
        entries.append(Entry(" | ".join(text_cells), weight))
    return entries


class VaultStore:
    """Reads notes from a directory of markdown files."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _find(self, note: str) -> Path | None:
        note = note.strip()
        if note.endswith(".md"):
            note = note[:-3]
        direct = self.root / f"{note}.md"
        if direct.is_file():
            return direct
        name = Path(note).name
        for candidate in sorted(self.root.rglob("*.md")):
            if candidate.stem == name:
                return candidate
        logger.warning("Note %r not found under %s", note, self.root)
        return None

    def read(self, note: str) -> str | None:
        path = self._find(note)
        if path is None:
            return None
        return path.read_text(encoding="utf-8")

    def blocks(self, note: str) -> list[Block] | None:
        text = self.read(note)
        if text is None:
            return None
        _, body = split_frontmatter(text)
        return parse_blocks(body)

    def resolve_table(
        self, note: str, block_id: str, column: str | None = None
    ) -> list[Entry] | None:
        blocks = self.blocks(note)
        if blocks is None:
            return None
        for block in blocks:
            if block.block_id == block_id:
                if block.type != "table":
                    logger.warning("Block ^%s in %r is a %s, not a table", block_id, note, block.type)
                    return None
                return parse_table(block.text, column)
        logger.warning("Block ^%s not found in %r", block_id, note)
        return None

    def resolve_section(self, note: str, types: Sequence[str] = ()) -> list[Entry] | None:
        blocks = self.blocks(note)
        if blocks is None:
            return None
        wanted = {t.strip().lower() for t in types if t.strip()}
        return [Entry(b.text) for b in blocks if not wanted or b.type in wanted]

    def resolve_lines(self, note: str) -> list[Entry] | None:
        text = self.read(note)
        if text is None:
            return None
        _, body = split_frontmatter(text)
        return [Entry(line.strip()) for line in body.splitlines() if line.strip()]

    def resolve_tag(self, tag: str) -> list[str] | None:
        tag = tag.lstrip("#")
        notes: list[str] = []
        for path in sorted(self.root.rglob("*.md")):
            frontmatter, body = split_frontmatter(path.read_text(encoding="utf-8"))
            tags = frontmatter_tags(frontmatter) | set(_INLINE_TAG_RE.findall(body))
            if any(t == tag or t.startswith(f"{tag}/") for t in tags):
                notes.append(path.relative_to(self.root).with_suffix("").as_posix())
        if not notes:
            logger.warning("No notes tagged #%s under %s", tag, self.root)
            return None
        return notes
