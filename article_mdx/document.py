"""Portable Markdown documents with a front-matter header."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from .models import ArticleMetadata, Block, SyncState
from .utils import count_words

FENCE = "---"
_KEY_LINE = re.compile(r"^([A-Za-z_][\w-]*):(?:\s+(.*))?$")
_INTEGER = re.compile(r"^-?\d+$")
_QUOTED_ESCAPE = re.compile(r'\\(["\\])')

_HEADING = re.compile(r"^(#{1,6})\s+(.*?)(?:\s+#+)?\s*$")
_RULE = re.compile(r"^(?:-{3,}|\*{3,}|_{3,})$")
_LIST_ITEM = re.compile(r"^\s*(?:[-*+]|\d+[.)])\s+(.*)$")
_IMAGE_LINE = re.compile(r"^!\[[^\]]*\]\([^)]*\)$")
_LINK_LINE = re.compile(r"^\[[^\]]*\]\([^)]*\)$")
_FENCE_OPEN = re.compile(r"^(```|~~~)\s*([\w+#.-]*)\s*$")

_MARKUP_IMAGE = re.compile(r"!\[([^\]]*)\]\([^)]*\)")
_MARKUP_LINK = re.compile(r"\[([^\]]*)\]\([^)]*\)")
_MARKUP_EMPHASIS = re.compile(r"(\*{1,3}|_{1,3}|~~)(?=\S)(.+?)(?<=\S)\1")
_MARKUP_CODE = re.compile(r"`+([^`]*)`+")
_TABLE_SEPARATOR = re.compile(r"^\|?[\s:|-]+\|?$")

KNOWN_KEYS = (
    "title",
    "slug",
    "date",
    "canonical_url",
    "description",
    "category",
    "series_order",
    "categories",
    "tags",
    "sync",
)


def _quote(value: str) -> str:
    value = value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", " ")
    return f'"{value}"'


def _render_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, int):
        return str(value)
    return _quote(str(value))


def _render_entry(key: str, value: Any, indent: str = "") -> List[str]:
    if isinstance(value, dict):
        lines = [f"{indent}{key}:"]
        for child_key, child_value in value.items():
            lines.extend(_render_entry(child_key, child_value, indent + "  "))
        return lines
    if isinstance(value, (list, tuple)):
        lines = [f"{indent}{key}:"]
        lines.extend(f"{indent}  - {_render_scalar(item)}" for item in value)
        return lines
    return [f"{indent}{key}: {_render_scalar(value)}"]


def metadata_to_mapping(metadata: ArticleMetadata) -> Dict[str, Any]:
    """Ordered header mapping; optional fields appear only when set."""
    data: Dict[str, Any] = {
        "title": metadata.title,
        "slug": metadata.slug,
        "date": metadata.date,
        "canonical_url": metadata.canonical_url,
    }
    if metadata.description:
        data["description"] = metadata.description
    if metadata.category:
        data["category"] = metadata.category
    if metadata.series_order is not None:
        data["series_order"] = metadata.series_order
    if metadata.categories:
        data["categories"] = list(metadata.categories)
    if metadata.tags:
        data["tags"] = list(metadata.tags)
    if metadata.sync is not None:
        sync: Dict[str, Any] = {}
        if metadata.sync.post_id is not None:
            sync["post_id"] = metadata.sync.post_id
        sync["category_ids"] = list(metadata.sync.category_ids)
        sync["tag_ids"] = list(metadata.sync.tag_ids)
        if metadata.sync.synced_at:
            sync["synced_at"] = metadata.sync.synced_at
        data["sync"] = sync
    for key, value in metadata.extra.items():
        data.setdefault(key, value)
    return data


def render_front_matter(metadata: ArticleMetadata) -> str:
    lines = [FENCE]
    for key, value in metadata_to_mapping(metadata).items():
        lines.extend(_render_entry(key, value))
    lines.append(FENCE)
    return "\n".join(lines)


def _parse_scalar(raw: str) -> Any:
    raw = raw.strip()
    if len(raw) >= 2 and raw[0] == raw[-1] == '"':
        return _QUOTED_ESCAPE.sub(r"\1", raw[1:-1])
    if len(raw) >= 2 and raw[0] == raw[-1] == "'":
        return raw[1:-1].replace("''", "'")
    if _INTEGER.match(raw):
        return int(raw)
    if raw in ("true", "false"):
        return raw == "true"
    if raw in ("null", "~"):
        return None
    return raw


def _parse_header(lines: List[str]) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    parent: Optional[Dict[str, Any]] = None
    current_key: Optional[str] = None
    nested_key: Optional[str] = None

    for line in lines:
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        indent = len(line) - len(line.lstrip(" "))
        stripped = line.strip()

        if indent == 0:
            match = _KEY_LINE.match(stripped)
            if not match:
                continue
            current_key, value = match.group(1), match.group(2)
            nested_key = None
            parent = None
            if value is None or not value.strip():
                data[current_key] = None
            else:
                data[current_key] = _parse_scalar(value)
            continue

        if current_key is None:
            continue

        if stripped.startswith("- "):
            item = _parse_scalar(stripped[2:])
            if parent is not None and nested_key is not None and indent >= 4:
                if not isinstance(parent.get(nested_key), list):
                    parent[nested_key] = []
                parent[nested_key].append(item)
            else:
                if not isinstance(data.get(current_key), list):
                    data[current_key] = []
                data[current_key].append(item)
            continue

        match = _KEY_LINE.match(stripped)
        if not match:
            continue
        if not isinstance(data.get(current_key), dict):
            data[current_key] = {}
        parent = data[current_key]
        nested_key, value = match.group(1), match.group(2)
        parent[nested_key] = None if value is None or not value.strip() else _parse_scalar(value)
    return data


def parse_front_matter(text: str) -> Tuple[Optional[Dict[str, Any]], str]:
    """Split ``text`` into its header mapping and body.

    Returns ``(None, text)`` when the text has no header block.
    """
    lines = text.split("\n")
    if not lines or lines[0].strip() != FENCE:
        return None, text
    for index in range(1, len(lines)):
        if lines[index].strip() == FENCE:
            header = _parse_header(lines[1:index])
            body = "\n".join(lines[index + 1 :]).lstrip("\n")
            return header, body
    return None, text


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, list):
        return value
    return [value]


def metadata_from_mapping(data: Dict[str, Any]) -> ArticleMetadata:
    sync_data = data.get("sync")
    sync = None
    if isinstance(sync_data, dict):
        sync = SyncState(
            post_id=sync_data.get("post_id"),
            category_ids=_as_list(sync_data.get("category_ids")),
            tag_ids=_as_list(sync_data.get("tag_ids")),
            synced_at=str(sync_data.get("synced_at") or ""),
        )
    series_order = data.get("series_order")
    return ArticleMetadata(
        title=str(data.get("title") or ""),
        slug=str(data.get("slug") or ""),
        date=str(data.get("date") or ""),
        canonical_url=str(data.get("canonical_url") or ""),
        description=str(data.get("description") or ""),
        category=data.get("category") or None,
        series_order=series_order if isinstance(series_order, int) else None,
        categories=[str(item) for item in _as_list(data.get("categories"))],
        tags=[str(item) for item in _as_list(data.get("tags"))],
        sync=sync,
        extra={key: value for key, value in data.items() if key not in KNOWN_KEYS},
    )


def strip_markup(text: str) -> str:
    """Reduce a Markdown fragment to its readable words."""
    text = _MARKUP_IMAGE.sub(r"\1", text)
    text = _MARKUP_LINK.sub(r"\1", text)
    text = _MARKUP_CODE.sub(r"\1", text)
    previous = None
    while previous != text:
        previous = text
        text = _MARKUP_EMPHASIS.sub(r"\2", text)
    return text


@dataclass
class PortableDocument:
    """Front-matter metadata plus a Markdown body."""

    metadata: ArticleMetadata = field(default_factory=ArticleMetadata)
    body: str = ""

    def to_text(self) -> str:
        return f"{render_front_matter(self.metadata)}\n\n{self.body.strip()}\n"

    @classmethod
    def from_text(cls, text: str) -> "PortableDocument":
        header, body = parse_front_matter(text)
        metadata = metadata_from_mapping(header) if header is not None else ArticleMetadata()
        return cls(metadata=metadata, body=body.rstrip("\n"))

    def blocks(self) -> Iterator[Block]:
        """Yield the body's block nodes in document order."""
        lines = self.body.split("\n")
        paragraph: List[str] = []
        index = 0

        def flush() -> Iterator[Block]:
            if paragraph:
                yield Block("paragraph", " ".join(paragraph))
                paragraph.clear()

        while index < len(lines):
            line = lines[index]
            stripped = line.strip()
            fence = _FENCE_OPEN.match(stripped)
            if fence:
                yield from flush()
                marker, language = fence.group(1), fence.group(2) or None
                code: List[str] = []
                index += 1
                while index < len(lines) and not lines[index].strip().startswith(marker):
                    code.append(lines[index])
                    index += 1
                yield Block("code", "\n".join(code), language=language)
                index += 1
                continue
            if not stripped:
                yield from flush()
            elif _HEADING.match(stripped):
                yield from flush()
                heading = _HEADING.match(stripped)
                yield Block("heading", heading.group(2), level=len(heading.group(1)))
            elif _RULE.match(stripped):
                yield from flush()
                yield Block("rule", "")
            elif stripped.startswith(">"):
                yield from flush()
                yield Block("blockquote", stripped.lstrip(">").strip())
            elif stripped.startswith("|"):
                yield from flush()
                table = [stripped]
                while index + 1 < len(lines) and lines[index + 1].strip().startswith("|"):
                    index += 1
                    table.append(lines[index].strip())
                yield Block("table", "\n".join(table))
            elif _LIST_ITEM.match(line):
                yield from flush()
                yield Block("list_item", _LIST_ITEM.match(line).group(1))
            elif _IMAGE_LINE.match(stripped):
                yield from flush()
                yield Block("image", stripped)
            elif _LINK_LINE.match(stripped):
                yield from flush()
                yield Block("link", stripped)
            else:
                paragraph.append(stripped)
            index += 1
        yield from flush()

    def plain_text(self) -> str:
        parts: List[str] = []
        for block in self.blocks():
            if block.kind in ("rule", "code"):
                continue
            if block.kind == "table":
                rows = [
                    row.replace("\\|", " ").replace("|", " ")
                    for row in block.text.split("\n")
                    if not _TABLE_SEPARATOR.match(row)
                ]
                parts.append(strip_markup(" ".join(rows)))
            else:
                parts.append(strip_markup(block.text))
        return "\n".join(part for part in parts if part.strip())

    def word_count(self) -> int:
        return count_words(self.plain_text())
