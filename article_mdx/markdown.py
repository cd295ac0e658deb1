"""HTML to Markdown transcoding built from ordered rewrite passes.

Each pass is a plain function over the working text. The order matters:
code is lifted out before anything else runs, inline constructs are
converted before block containers so that list items and quotes already
hold Markdown, and entities are decoded only after every tag is gone.
"""

from __future__ import annotations

import html as html_lib
import logging
import re
from typing import Dict, List, Optional, Tuple

from .content import extract_metadata, extract_region
from .document import PortableDocument
from .entities import decode_entities
from .utils import slugify

logger = logging.getLogger("article_mdx")

_CODE_TOKEN = "\x00CODEBLOCK{}\x00"
_INLINE_TOKEN = "\x00INLINECODE{}\x00"
_NESTED = "\x01"

_AUTHORING_COMMENT = re.compile(r"<!--\s*/?wp:[\s\S]*?-->")
_COMMENT = re.compile(r"<!--[\s\S]*?-->")
_NON_CONTENT = re.compile(r"<(head|script|style|noscript|template)\b[^>]*>[\s\S]*?</\1\s*>", re.I)
_PRE_BLOCK = re.compile(r"<pre\b([^>]*)>([\s\S]*?)</pre\s*>", re.I)
_INLINE_CODE = re.compile(r"<code\b[^>]*>([\s\S]*?)</code\s*>", re.I)
_LANGUAGE_CLASS = re.compile(r"\b(?:language|lang)-([\w+#.-]+)")
_CLASS_ATTR = re.compile(r"class=[\"']([^\"']*)[\"']", re.I)
_ANY_TAG = re.compile(r"<[^>]+>")
_WHITESPACE = re.compile(r"[ \t\r\n\f\v]+")

_FIGURE = re.compile(r"<figure\b[^>]*>([\s\S]*?)</figure\s*>", re.I)
_FIGCAPTION = re.compile(r"<figcaption\b[^>]*>([\s\S]*?)</figcaption\s*>", re.I)

HEADING_RULES = (
    re.compile(
        r"<h([1-6])\b[^>]*class=[\"'][^\"']*\bwp-block-heading\b[^\"']*[\"'][^>]*>([\s\S]*?)</h\1\s*>",
        re.I,
    ),
    re.compile(r"<h([1-6])\b[^>]*>([\s\S]*?)</h\1\s*>", re.I),
)

_LINK = re.compile(r"<a\b[^>]*?\bhref=([\"'])(.*?)\1[^>]*>([\s\S]*?)</a\s*>", re.I)
_IMAGE = re.compile(r"<img\b[^>]*>", re.I)
_ATTRIBUTE = re.compile(r"([\w:-]+)\s*=\s*(?:\"([^\"]*)\"|'([^']*)')")
_EMPHASIS = re.compile(
    r"<(strong|b|em|i)(?:\s[^>]*)?>"
    r"((?:(?!<(?:strong|b|em|i)(?:\s[^>]*)?>)[\s\S])*?)"
    r"</\1\s*>",
    re.I,
)
_EMPHASIS_MARKERS = {"strong": "**", "b": "**", "em": "*", "i": "*"}

_BLOCKQUOTE = re.compile(r"<blockquote\b[^>]*>([\s\S]*?)</blockquote\s*>", re.I)
_INNERMOST_LIST = re.compile(
    r"<(ul|ol)\b[^>]*>((?:(?!<(?:ul|ol)\b)[\s\S])*?)</\1\s*>", re.I
)
_LIST_ITEM_START = re.compile(r"<li\b[^>]*>", re.I)
_TABLE = re.compile(r"<table\b[^>]*>([\s\S]*?)</table\s*>", re.I)
_TABLE_ROW = re.compile(r"<tr\b[^>]*>([\s\S]*?)</tr\s*>", re.I)
_TABLE_CELL = re.compile(r"<(t[hd])\b([^>]*)>([\s\S]*?)</t[hd]\s*>", re.I)
_TEXT_ALIGN = re.compile(r"text-align:\s*(left|center|right)", re.I)
_ALIGN_ATTR = re.compile(r"\balign=[\"']?(left|center|right)", re.I)

_PARAGRAPH = re.compile(r"</?p(?:\s[^>]*)?>", re.I)
_LINE_BREAK = re.compile(r"<br\s*/?>", re.I)
_RULE = re.compile(r"<hr\b[^>]*>", re.I)
_BLOCK_CONTAINER = re.compile(
    r"</?(?:div|section|article|main|header|footer|aside|nav|dl|dt|dd|center)\b[^>]*>",
    re.I,
)
_BLANK_RUNS = re.compile(r"\n{3,}")
_CODE_LINE = re.compile(r"[ \t]*(\x00CODEBLOCK\d+\x00)[ \t]*")
_BARE_MARKER = re.compile(r"^(?:[-*+>]|\d+[.)])[ \t]*$", re.M)

_SEPARATORS = {None: "---", "left": ":---", "center": ":---:", "right": "---:"}


def _collapse(text: str) -> str:
    return " ".join(text.split())


def _code_text(fragment: str) -> str:
    """Verbatim text of a code fragment: tags dropped, entities decoded once."""
    return html_lib.unescape(_ANY_TAG.sub("", fragment))


def _code_language(attrs: str, inner: str) -> Optional[str]:
    classes = " ".join(_CLASS_ATTR.findall(attrs))
    opening = re.match(r"\s*<code\b([^>]*)>", inner, re.I)
    if opening:
        classes += " " + " ".join(_CLASS_ATTR.findall(opening.group(1)))
    match = _LANGUAGE_CLASS.search(classes)
    return match.group(1) if match else None


def _lift_code(text: str, blocks: List[Tuple[Optional[str], str]], inline: List[str]) -> str:
    def lift_block(match: re.Match) -> str:
        language = _code_language(match.group(1), match.group(2))
        code = _code_text(match.group(2)).strip("\n").rstrip()
        blocks.append((language, code))
        return "\n\n" + _CODE_TOKEN.format(len(blocks) - 1) + "\n\n"

    def lift_inline(match: re.Match) -> str:
        inline.append(_collapse(_code_text(match.group(1))))
        return _INLINE_TOKEN.format(len(inline) - 1)

    text = _PRE_BLOCK.sub(lift_block, text)
    return _INLINE_CODE.sub(lift_inline, text)


def _fence_for(code: str) -> str:
    return "~~~" if "```" in code else "```"


def _restore_code(text: str, blocks: List[Tuple[Optional[str], str]], inline: List[str]) -> str:
    for index, code in enumerate(inline):
        ticks = "``" if "`" in code else "`"
        padding = " " if code.startswith("`") or code.endswith("`") else ""
        text = text.replace(
            _INLINE_TOKEN.format(index), f"{ticks}{padding}{code}{padding}{ticks}"
        )
    for index, (language, code) in enumerate(blocks):
        fence = _fence_for(code)
        text = text.replace(
            _CODE_TOKEN.format(index), f"{fence}{language or ''}\n{code}\n{fence}"
        )
    return text


def _caption_text(fragment: str) -> str:
    return _collapse(decode_entities(_ANY_TAG.sub("", fragment)))


def _convert_figure(match: re.Match) -> str:
    inner = match.group(1)
    images = _IMAGE.findall(inner)
    caption = _FIGCAPTION.search(inner)
    if len(images) == 1 and caption:
        title = _collapse(decode_entities(_attributes(images[0]).get("title", "")))
        # A caption repeating the image title is already carried by the title.
        if title and title == _caption_text(caption.group(1)):
            inner = _FIGCAPTION.sub("", inner)
    return "\n\n" + inner + "\n\n"


def _convert_figures(text: str) -> str:
    text = _FIGURE.sub(_convert_figure, text)
    return _FIGCAPTION.sub(lambda m: _wrap_caption(_collapse(m.group(1))), text)


def _wrap_caption(caption: str) -> str:
    if not caption:
        return ""
    return "\n\n<em>" + caption + "</em>\n\n"


def _convert_headings(text: str) -> str:
    for rule in HEADING_RULES:
        text = rule.sub(
            lambda m: "\n\n" + "#" * int(m.group(1)) + " " + _collapse(m.group(2)) + "\n\n",
            text,
        )
    return text


def _attributes(tag: str) -> Dict[str, str]:
    attrs: Dict[str, str] = {}
    for name, double, single in _ATTRIBUTE.findall(tag):
        attrs.setdefault(name.lower(), double if double or not single else single)
    return attrs


def _convert_image(match: re.Match) -> str:
    attrs = _attributes(match.group(0))
    src = decode_entities(attrs.get("src", "").strip())
    if not src or src.startswith("data:"):
        return ""
    alt = _collapse(decode_entities(attrs.get("alt", "")))
    title = _collapse(decode_entities(attrs.get("title", "")))
    if title:
        escaped = title.replace("\\", "\\\\").replace('"', '\\"')
        return f'![{alt}]({src} "{escaped}")'
    return f"![{alt}]({src})"


def _convert_link(match: re.Match) -> str:
    href = decode_entities(match.group(2).strip())
    label = _collapse(match.group(3))
    if not href:
        return label
    return f"[{label}]({href})"


def _convert_emphasis(text: str) -> str:
    def replace(match: re.Match) -> str:
        marker = _EMPHASIS_MARKERS[match.group(1).lower()]
        inner = match.group(2)
        core = inner.strip()
        if not core:
            return inner
        lead = " " if inner[:1].isspace() else ""
        trail = " " if inner[-1:].isspace() else ""
        return f"{lead}{marker}{core}{marker}{trail}"

    # Innermost spans first so nested emphasis composes.
    previous = None
    while previous != text:
        previous = text
        text = _EMPHASIS.sub(replace, text)
    return text


def _convert_inline(text: str) -> str:
    text = _LINK.sub(_convert_link, text)
    text = _IMAGE.sub(_convert_image, text)
    return _convert_emphasis(text)


def _convert_blockquote(match: re.Match) -> str:
    inner = _LINE_BREAK.sub("\n", match.group(1))
    inner = _PARAGRAPH.sub("\n", inner)
    inner = _BLOCK_CONTAINER.sub("\n", inner)
    lines = [_collapse(line) for line in inner.split("\n")]
    quoted = [f"> {line}" for line in lines if line]
    if not quoted:
        return "\n\n"
    return "\n\n" + "\n".join(quoted) + "\n\n"


def _convert_list(match: re.Match) -> str:
    ordered = match.group(1).lower() == "ol"
    lines: List[str] = []
    number = 0
    for raw_item in _LIST_ITEM_START.split(match.group(2))[1:]:
        raw_item = re.sub(r"</li\s*>", "", raw_item, flags=re.I)
        raw_item = _LINE_BREAK.sub(" ", raw_item)
        raw_item = _PARAGRAPH.sub(" ", raw_item)
        own_text: List[str] = []
        nested: List[str] = []
        for line in raw_item.split("\n"):
            if line.startswith(_NESTED):
                nested.append(line)
            elif line.strip():
                own_text.append(line)
        item_text = _collapse(" ".join(own_text))
        if item_text:
            number += 1
            marker = f"{number}. " if ordered else "- "
            lines.append(_NESTED + marker + item_text)
        lines.extend(nested)
    if not lines:
        return "\n\n"
    return "\n\n" + "\n".join(lines) + "\n\n"


def _convert_lists(text: str) -> str:
    previous = None
    while previous != text:
        previous = text
        text = _INNERMOST_LIST.sub(_convert_list, text)
    return text.replace(_NESTED, "")


def _cell_alignment(attrs: str) -> Optional[str]:
    match = _TEXT_ALIGN.search(attrs) or _ALIGN_ATTR.search(attrs)
    return match.group(1).lower() if match else None


def _cell_text(fragment: str) -> str:
    fragment = _LINE_BREAK.sub(" ", fragment)
    fragment = _PARAGRAPH.sub(" ", fragment)
    return _collapse(fragment).replace("|", "\\|")


def _convert_table(match: re.Match) -> str:
    rows: List[List[str]] = []
    alignments: List[Optional[str]] = []
    for row_match in _TABLE_ROW.finditer(match.group(1)):
        cells = _TABLE_CELL.findall(row_match.group(1))
        if not cells:
            continue
        rows.append([_cell_text(content) for _, _, content in cells])
        for index, (_, attrs, _) in enumerate(cells):
            alignment = _cell_alignment(attrs)
            if index >= len(alignments):
                alignments.append(alignment)
            elif alignments[index] is None:
                alignments[index] = alignment
    if not rows:
        return "\n\n"

    width = max(len(row) for row in rows)
    alignments.extend([None] * (width - len(alignments)))
    lines = []
    for position, row in enumerate(rows):
        row = row + [""] * (width - len(row))
        lines.append("| " + " | ".join(row) + " |")
        if position == 0:
            lines.append("| " + " | ".join(_SEPARATORS[a] for a in alignments) + " |")
    return "\n\n" + "\n".join(lines) + "\n\n"


def _convert_blocks(text: str) -> str:
    text = _BLOCKQUOTE.sub(_convert_blockquote, text)
    text = _convert_lists(text)
    text = _TABLE.sub(_convert_table, text)
    text = _PARAGRAPH.sub("\n\n", text)
    text = _LINE_BREAK.sub("\n", text)
    text = _RULE.sub("\n\n---\n\n", text)
    return _BLOCK_CONTAINER.sub("\n\n", text)


def _tidy_lines(text: str) -> str:
    lines = [_collapse(line) for line in text.split("\n")]
    text = "\n".join(lines)
    return _BLANK_RUNS.sub("\n\n", text).strip()


def _isolate_code_blocks(text: str) -> str:
    """Give every fenced block its own paragraph, even inside list items or quotes."""
    text = _CODE_LINE.sub(r"\n\n\1\n\n", text)
    text = _BARE_MARKER.sub("", text)
    return _BLANK_RUNS.sub("\n\n", text).strip()


def html_to_markdown(region: str) -> str:
    """Convert an article region into a Markdown body."""
    blocks: List[Tuple[Optional[str], str]] = []
    inline: List[str] = []

    text = _AUTHORING_COMMENT.sub("", region)
    text = _COMMENT.sub("", text)
    text = _NON_CONTENT.sub("", text)
    text = _lift_code(text, blocks, inline)
    text = _WHITESPACE.sub(" ", text)

    text = _convert_figures(text)
    text = _convert_headings(text)
    text = _convert_inline(text)
    text = _convert_blocks(text)

    text = _ANY_TAG.sub("", text)
    text = decode_entities(text)
    text = _tidy_lines(text)
    text = _isolate_code_blocks(text)
    markdown = _restore_code(text, blocks, inline)
    logger.debug(
        "Transcoded region: %d code blocks, %d inline code spans", len(blocks), len(inline)
    )
    return markdown


def transcode(html: str, region_only: bool = False, **overrides) -> PortableDocument:
    """Transcode a page (or an already isolated region) into a portable document.

    Metadata always comes from ``html`` itself; keyword overrides such as
    ``slug``, ``title`` or ``category`` win over extracted values.
    """
    region = html if region_only else extract_region(html)
    body = html_to_markdown(region)
    metadata = extract_metadata(html)

    for key, value in overrides.items():
        if value is None or value == "":
            continue
        if not hasattr(metadata, key):
            raise TypeError(f"Unknown metadata override: {key}")
        if key == "slug":
            value = slugify(str(value))
        setattr(metadata, key, value)

    if not metadata.slug:
        metadata.slug = slugify(metadata.title)
    return PortableDocument(metadata=metadata, body=body)
