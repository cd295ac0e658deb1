"""Markdown to publish-ready HTML export.

The conversion runs in three passes. Code is swapped out for indexed
placeholders first, every other rewrite runs against the protected text,
and the code is put back last, escaped, so nothing inside a code block is
ever read as structure.
"""

from __future__ import annotations

import html as html_lib
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .config import MAX_IMAGE_WIDTH, ExportConfig
from .document import PortableDocument, metadata_to_mapping
from .images import cap_dimensions, describe_image, find_local_images
from .models import ExportResult, ImageDescriptor, ImageSize
from .utils import write_text

logger = logging.getLogger("article_mdx")

MONO_FONTS = "'SF Mono',Consolas,Monaco,'Courier New',monospace"
PRE_STYLE = (
    "background:#1e1e1e;border:1px solid #333;border-radius:6px;padding:1.25em;"
    f"overflow-x:auto;font-family:{MONO_FONTS};font-size:0.875em;line-height:1.6;"
    "margin:1.5em 0;color:#e0e0e0;"
)
INLINE_CODE_STYLE = (
    "background:#f5f5f5;padding:0.2em 0.4em;border-radius:3px;"
    f"font-family:{MONO_FONTS};font-size:0.9em;color:#c7254e;"
)
TABLE_STYLE = "border-collapse:collapse;width:100%;margin:1.5em 0;"
TH_STYLE = (
    "border:1px solid #ddd;padding:0.75em;text-align:{align};"
    "background-color:#f8f9fa;font-weight:600;"
)
TD_STYLE = "border:1px solid #ddd;padding:0.75em;text-align:{align};"
IMAGE_STYLE = "max-width: 100%; height: auto;"
FIGURE_OPEN = '<figure class="wp-block-image size-large aligncenter">'

_CODE_TOKEN = "@@CODEBLOCK{}@@"
_INLINE_TOKEN = "@@INLINECODE{}@@"

_FENCED_CODE = re.compile(
    r"^(```|~~~)[ \t]*([\w+#.-]*)[^\n]*\n([\s\S]*?)^\1[ \t]*$", re.M
)
_INLINE_CODE = re.compile(r"(?<!`)(`+)(?!`)(.+?)(?<!`)\1(?!`)")

_BARE_AMPERSAND = re.compile(r"&(?!#\d+;|#[xX][0-9a-fA-F]+;|[a-zA-Z][a-zA-Z0-9]*;)")
_HEADING = re.compile(r"^(#{1,6})[ \t]+(.+?)(?:[ \t]+#+)?[ \t]*$", re.M)
_RULE = re.compile(r"^(?:-{3,}|\*{3,}|_{3,})[ \t]*$", re.M)
_UNORDERED_ITEM = re.compile(r"^[ \t]*[-*+][ \t]+(.*)$")
_ORDERED_ITEM = re.compile(r"^[ \t]*\d+[.)][ \t]+(.*)$")
_QUOTE_LINE = re.compile(r"^>[ \t]?(.*)$")
_TABLE_SEPARATOR = re.compile(r"^\|?[ \t]*:?-+:?[ \t]*(?:\|[ \t]*:?-+:?[ \t]*)*\|?$")
_CELL_SPLIT = re.compile(r"(?<!\\)\|")

_IMAGE_PART = r'!\[([^\]]*)\]\(([^)\s]+)(?:\s+"((?:[^"\\]|\\.)*)")?\)'
_LINKED_IMAGE = re.compile(r"\[" + _IMAGE_PART + r"\]\(([^)\s]+)\)")
_IMAGE = re.compile(_IMAGE_PART)
_LINK = re.compile(r'\[([^\]]*)\]\(([^)\s]+)(?:\s+"(?:[^"\\]|\\.)*")?\)')
_STRONG_EMPHASIS = re.compile(r"\*\*\*(?=\S)([^*\n]+?)(?<=\S)\*\*\*")
_STRONG = re.compile(
    r"\*\*(?=\S)((?:\*(?=\S)[^*\n]+?(?<=\S)\*|[^*\n])+?)(?<=\S)\*\*"
)
_EMPHASIS = re.compile(r"(?<![*\w])\*(?=\S)([^*\n]+?)(?<=\S)\*(?!\w)")

_BLOCK_LINE = re.compile(
    r"^\s*(?:</?(?:h[1-6]|ul|ol|li|table|thead|tbody|tr|th|td|figure|figcaption"
    r"|blockquote|pre|div|p|hr)\b|<!--|@@CODEBLOCK\d+@@)",
    re.I,
)
_IMG_TAG = re.compile(r'<img\s+src="([^"]+)"([^>]*)>')
_TITLE_ESCAPE = re.compile(r'\\(["\\])')

_WRAP_HEADING = re.compile(r"^<h([2-6])>(.*?)</h\1>$", re.M)
_WRAP_PARAGRAPH = re.compile(r"^<p>((?:(?!</p>)[\s\S])*)</p>$", re.M)
_WRAP_LIST = re.compile(r"^<(ul|ol)>\n([\s\S]*?)\n</\1>$", re.M)
_WRAP_CODE = re.compile(r"^(@@CODEBLOCK\d+@@)$", re.M)


@dataclass
class ProtectedText:
    """Markdown with its code spans moved into an indexed side table."""

    text: str
    blocks: List[Tuple[Optional[str], str]] = field(default_factory=list)
    inline: List[str] = field(default_factory=list)


def protect_code(markdown: str) -> ProtectedText:
    protected = ProtectedText(text="")

    def lift_block(match: re.Match) -> str:
        code = match.group(3)
        if code.endswith("\n"):
            code = code[:-1]
        protected.blocks.append((match.group(2) or None, code))
        return _CODE_TOKEN.format(len(protected.blocks) - 1)

    def lift_inline(match: re.Match) -> str:
        code = match.group(2)
        if len(code) > 1 and code.startswith(" ") and code.endswith(" "):
            code = code[1:-1]
        protected.inline.append(code)
        return _INLINE_TOKEN.format(len(protected.inline) - 1)

    text = _FENCED_CODE.sub(lift_block, markdown)
    protected.text = _INLINE_CODE.sub(lift_inline, text)
    return protected


def restore_code(html: str, protected: ProtectedText, wrapped: bool = False) -> str:
    for index, code in enumerate(protected.inline):
        html = html.replace(
            _INLINE_TOKEN.format(index),
            f'<code style="{INLINE_CODE_STYLE}">{html_lib.escape(code, quote=False)}</code>',
        )
    pre_class = ' class="wp-block-code"' if wrapped else ""
    for index, (language, code) in enumerate(protected.blocks):
        code_class = f' class="language-{language}"' if language else ""
        html = html.replace(
            _CODE_TOKEN.format(index),
            f'<pre{pre_class} style="{PRE_STYLE}"><code{code_class}>'
            f"{html_lib.escape(code, quote=False)}</code></pre>",
        )
    return html


def _escape_prose(text: str) -> str:
    # Markdown bodies carry no raw HTML, so every "<" is literal text.
    text = _BARE_AMPERSAND.sub("&amp;", text)
    return text.replace("<", "&lt;")


def _attribute(value: str) -> str:
    return value.replace('"', "&quot;")


def _convert_lists(lines: List[str]) -> List[str]:
    output: List[str] = []
    open_tag: Optional[str] = None
    for line in lines:
        unordered = _UNORDERED_ITEM.match(line)
        ordered = None if unordered else _ORDERED_ITEM.match(line)
        match = unordered or ordered
        tag = "ul" if unordered else "ol" if ordered else None
        if tag != open_tag and open_tag:
            output.append(f"</{open_tag}>")
            open_tag = None
        if match is None:
            output.append(line)
            continue
        if open_tag is None:
            output.append(f"<{tag}>")
            open_tag = tag
        output.append(f"<li>{match.group(1).strip()}</li>")
    if open_tag:
        output.append(f"</{open_tag}>")
    return output


def _convert_quotes(lines: List[str]) -> List[str]:
    output: List[str] = []
    quoted: List[str] = []

    def flush() -> None:
        if quoted:
            paragraphs = "".join(f"<p>{line}</p>" for line in quoted if line.strip())
            output.append(f'<blockquote class="wp-block-quote">{paragraphs}</blockquote>')
            quoted.clear()

    for line in lines:
        match = _QUOTE_LINE.match(line)
        if match:
            quoted.append(match.group(1).strip())
            continue
        flush()
        output.append(line)
    flush()
    return output


def _split_cells(row: str) -> List[str]:
    row = row.strip()
    if row.startswith("|"):
        row = row[1:]
    if row.endswith("|") and not row.endswith("\\|"):
        row = row[:-1]
    return [cell.strip().replace("\\|", "|") for cell in _CELL_SPLIT.split(row)]


def column_alignments(separator: str) -> List[str]:
    """Alignment per column from a separator row; bare dashes mean left."""
    alignments = []
    for cell in _split_cells(separator):
        if cell.startswith(":") and cell.endswith(":"):
            alignments.append("center")
        elif cell.endswith(":"):
            alignments.append("right")
        else:
            alignments.append("left")
    return alignments


def _render_table(rows: List[str]) -> List[str]:
    headers = _split_cells(rows[0])
    alignments = column_alignments(rows[1])

    def align(index: int) -> str:
        return alignments[index] if index < len(alignments) else "left"

    html = [f'<table style="{TABLE_STYLE}">', "<thead>", "<tr>"]
    html.extend(
        f'<th style="{TH_STYLE.format(align=align(i))}">{cell}</th>'
        for i, cell in enumerate(headers)
    )
    html.extend(["</tr>", "</thead>", "<tbody>"])
    for row in rows[2:]:
        html.append("<tr>")
        html.extend(
            f'<td style="{TD_STYLE.format(align=align(i))}">{cell}</td>'
            for i, cell in enumerate(_split_cells(row))
        )
        html.append("</tr>")
    html.extend(["</tbody>", "</table>"])
    return html


def _convert_tables(lines: List[str]) -> List[str]:
    output: List[str] = []
    index = 0
    while index < len(lines):
        if not lines[index].lstrip().startswith("|"):
            output.append(lines[index])
            index += 1
            continue
        end = index
        while end < len(lines) and lines[end].lstrip().startswith("|"):
            end += 1
        block = [line.strip() for line in lines[index:end]]
        if len(block) >= 2 and _TABLE_SEPARATOR.match(block[1]):
            output.extend(_render_table(block))
        else:
            output.extend(lines[index:end])
        index = end
    return output


def _figure(image: str, caption: Optional[str]) -> str:
    if caption:
        caption = _TITLE_ESCAPE.sub(r"\1", caption)
        return f"{FIGURE_OPEN}{image}<figcaption>{caption}</figcaption></figure>"
    return f"{FIGURE_OPEN}{image}</figure>"


def _image_tag(alt: str, src: str, title: Optional[str] = None) -> str:
    title_attr = ""
    if title:
        title = _TITLE_ESCAPE.sub(r"\1", title)
        title_attr = f' title="{_attribute(title)}"'
    return (
        f'<img src="{_attribute(src)}" alt="{_attribute(alt)}"{title_attr} '
        f'style="{IMAGE_STYLE}" loading="lazy" />'
    )


def _convert_images(text: str) -> str:
    text = _LINKED_IMAGE.sub(
        lambda m: _figure(
            f'<a href="{_attribute(m.group(4))}">'
            f"{_image_tag(m.group(1), m.group(2), m.group(3))}</a>",
            m.group(3),
        ),
        text,
    )
    return _IMAGE.sub(
        lambda m: _figure(_image_tag(m.group(1), m.group(2), m.group(3)), m.group(3)), text
    )


def _convert_inline(text: str) -> str:
    text = _convert_images(text)
    text = _LINK.sub(lambda m: f'<a href="{_attribute(m.group(2))}">{m.group(1)}</a>', text)
    text = _STRONG_EMPHASIS.sub(r"<strong><em>\1</em></strong>", text)
    text = _STRONG.sub(r"<strong>\1</strong>", text)
    return _EMPHASIS.sub(r"<em>\1</em>", text)


def _assemble_paragraphs(lines: List[str]) -> List[str]:
    output: List[str] = []
    paragraph: List[str] = []

    def flush() -> None:
        if paragraph:
            output.append("<p>" + "<br />\n".join(paragraph) + "</p>")
            paragraph.clear()

    for line in lines:
        stripped = line.strip()
        if not stripped:
            flush()
        elif _BLOCK_LINE.match(stripped):
            flush()
            output.append(stripped)
        else:
            paragraph.append(stripped)
    flush()
    return output


def _render_protected(text: str) -> str:
    text = _escape_prose(text)
    text = _HEADING.sub(
        lambda m: f"<h{len(m.group(1))}>{m.group(2)}</h{len(m.group(1))}>", text
    )
    text = _RULE.sub("<hr />", text)
    lines = text.split("\n")
    lines = _convert_lists(lines)
    lines = _convert_quotes(lines)
    lines = _convert_tables(lines)
    text = _convert_inline("\n".join(lines))
    return "\n".join(_assemble_paragraphs(text.split("\n")))


def wrap_with_blocks(html: str) -> str:
    """Annotate whole heading, paragraph, list and code units with block comments."""

    def heading(match: re.Match) -> str:
        level = match.group(1)
        attrs = "" if level == "2" else f' {{"level":{level}}}'
        return (
            f"<!-- wp:heading{attrs} -->\n"
            f'<h{level} class="wp-block-heading">{match.group(2)}</h{level}>\n'
            "<!-- /wp:heading -->"
        )

    def listing(match: re.Match) -> str:
        attrs = ' {"ordered":true}' if match.group(1) == "ol" else ""
        tag = match.group(1)
        return (
            f"<!-- wp:list{attrs} -->\n"
            f'<{tag} class="wp-block-list">\n{match.group(2)}\n</{tag}>\n'
            "<!-- /wp:list -->"
        )

    html = _WRAP_HEADING.sub(heading, html)
    html = _WRAP_PARAGRAPH.sub(
        lambda m: f"<!-- wp:paragraph -->\n<p>{m.group(1)}</p>\n<!-- /wp:paragraph -->", html
    )
    html = _WRAP_LIST.sub(listing, html)
    return _WRAP_CODE.sub(lambda m: f"<!-- wp:code -->\n{m.group(1)}\n<!-- /wp:code -->", html)


def markdown_to_html(markdown: str, include_wrapper: bool = False) -> str:
    """Convert a Markdown body (no header) into HTML."""
    protected = protect_code(markdown.strip("\n"))
    html = _render_protected(protected.text)
    if include_wrapper:
        html = wrap_with_blocks(html)
    return restore_code(html, protected, wrapped=include_wrapper)


def add_image_dimensions(
    html: str,
    descriptors: List[ImageDescriptor],
    max_width: int = MAX_IMAGE_WIDTH,
) -> str:
    """Inject width/height on ``<img>`` tags whose source was probed locally."""
    sizes: Dict[str, ImageSize] = {}
    for descriptor in descriptors:
        if descriptor.has_dimensions:
            sizes[descriptor.reference_path] = cap_dimensions(
                ImageSize(descriptor.width, descriptor.height), max_width
            )

    def inject(match: re.Match) -> str:
        src, rest = match.group(1), match.group(2)
        size = sizes.get(html_lib.unescape(src))
        if size is None or re.search(r"\b(?:width|height)=", rest):
            return match.group(0)
        return f'<img src="{src}" width="{size.width}" height="{size.height}"{rest}>'

    return _IMG_TAG.sub(inject, html)


def rewrite_image_urls(html: str, base_url: str) -> str:
    """Point site-absolute ``<img src="/...">`` paths at ``base_url``.

    Remote, protocol-relative and relative sources are left as they are.
    """
    base = base_url.rstrip("/")

    def rewrite(match: re.Match) -> str:
        src = match.group(1)
        if not src.startswith("/") or src.startswith("//"):
            return match.group(0)
        return f'<img src="{base}{src}"{match.group(2)}>'

    return _IMG_TAG.sub(rewrite, html)


def export_document(
    document: PortableDocument,
    base_dir: Optional[Path] = None,
    include_wrapper: bool = False,
    image_root: Optional[Path] = None,
    max_width: int = MAX_IMAGE_WIDTH,
    image_base_url: Optional[str] = None,
) -> ExportResult:
    """Export a portable document; local images are sized when ``base_dir`` is set."""
    html = markdown_to_html(document.body, include_wrapper=include_wrapper)
    if base_dir is not None:
        descriptors = [
            describe_image(descriptor)
            for descriptor in find_local_images(document.body, base_dir, image_root)
        ]
        sized = sum(1 for descriptor in descriptors if descriptor.has_dimensions)
        if descriptors:
            logger.debug("Sized %d/%d local images", sized, len(descriptors))
        html = add_image_dimensions(html, descriptors, max_width)
    if image_base_url:
        html = rewrite_image_urls(html, image_base_url)

    metadata = document.metadata
    return ExportResult(
        title=metadata.title,
        slug=metadata.slug,
        date=metadata.date,
        canonical_url=metadata.canonical_url,
        html=html,
        word_count=document.word_count(),
        metadata=metadata_to_mapping(metadata),
    )


def export_file(
    input_path: Path,
    output_path: Optional[Path] = None,
    config: Optional[ExportConfig] = None,
) -> ExportResult:
    """Export one Markdown document to an HTML file."""
    config = config or ExportConfig()
    if not input_path.is_file():
        raise FileNotFoundError(f"Input Markdown file does not exist: {input_path}")

    logger.info("Exporting %s", input_path)
    document = PortableDocument.from_text(input_path.read_text(encoding="utf-8"))
    if not document.metadata.slug:
        document.metadata.slug = input_path.stem
    result = export_document(
        document,
        base_dir=input_path.parent,
        include_wrapper=config.include_wrapper,
        image_root=config.image_root,
        max_width=config.max_image_width,
        image_base_url=config.image_base_url,
    )
    target = output_path or config.output_root / f"{result.slug}.html"
    write_text(target, result.html)
    result.output_path = target
    logger.info("Saved HTML to %s", target)
    return result


def export_batch(
    input_dir: Path,
    config: Optional[ExportConfig] = None,
    workers: int = 4,
) -> Dict[str, Optional[ExportResult]]:
    """Export every ``*.md`` file in a directory; failures map to None."""
    config = config or ExportConfig()
    if not input_dir.is_dir():
        raise FileNotFoundError(f"Input directory does not exist: {input_dir}")

    paths = sorted(input_dir.glob("*.md"))

    def run(path: Path) -> Optional[ExportResult]:
        try:
            return export_file(path, config=config)
        except (OSError, ValueError, UnicodeDecodeError) as exc:
            logger.error("Failed to export %s: %s", path, exc)
            return None

    with ThreadPoolExecutor(max_workers=max(1, workers)) as pool:
        results = dict(zip((path.stem for path in paths), pool.map(run, paths)))

    succeeded = sum(1 for result in results.values() if result is not None)
    logger.info("Exported %d/%d files", succeeded, len(paths))
    return results
