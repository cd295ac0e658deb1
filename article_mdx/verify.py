"""Independent verification of HTML to Markdown conversions.

Nothing here reuses the converter's extraction code. Text, headings,
links, images, code and list items are re-derived from both the original
page and the produced Markdown with separate routines, so a bug in the
converter cannot hide itself by being repeated on both sides.
"""

from __future__ import annotations

import datetime as dt
import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlparse

from .models import BatchSummary, VerificationReport

logger = logging.getLogger("article_mdx")

WORD_DIFF_ISSUE_PCT = 15
WORD_DIFF_WARNING_PCT = 5
MAX_MISSING_URLS = 5
CODE_COUNT_TOLERANCE = 2
LIST_DIFF_RATIO = 0.2
CODE_SNIPPET_CHARS = 100
CODE_MIN_CHARS = 10
LIST_SNIPPET_CHARS = 50
LIST_MIN_CHARS = 5
HEADING_MATCH_CHARS = 20
HEADING_MIN_CHARS = 5
SENTENCE_SAMPLE_EVERY = 5
SENTENCE_MIN_CHARS = 30
SENTENCE_MAX_CHARS = 200
KEYWORD_MIN_CHARS = 6
KEYWORDS_PER_SENTENCE = 5
KEYWORD_MATCH_RATIO = 0.6
SENTENCE_FAILURE_RATIO = 0.1
LONG_LINE_CHARS = 500

REQUIRED_FIELDS = ("title", "slug", "date", "canonical_url")

SKIP_URL_PATTERNS = (
    "wp-content/themes",
    "wp-content/plugins",
    "wp-json",
    "/feed/",
    "/comments/",
    "/trackback/",
    "?share=",
    "?replytocom=",
    "/page/",
    "/category/",
    "/tag/",
    "/author/",
    "wp-admin",
    "wp-login",
    "xmlrpc.php",
)

# ============================================================================
# ENTITY DECODING
# ============================================================================

ORACLE_ENTITIES = {
    "&#8217;": "'",
    "&#8216;": "'",
    "&#8220;": '"',
    "&#8221;": '"',
    "&#8211;": "–",
    "&#8212;": "—",
    "&#8230;": "...",
    "&#91;": "[",
    "&#93;": "]",
    "&#39;": "'",
    "&#34;": '"',
    "&#160;": " ",
    "&quot;": '"',
    "&apos;": "'",
    "&nbsp;": " ",
    "&hellip;": "...",
    "&mdash;": "—",
    "&ndash;": "–",
    "&lsquo;": "'",
    "&rsquo;": "'",
    "&ldquo;": '"',
    "&rdquo;": '"',
    "&lt;": "<",
    "&gt;": ">",
}
_NUMERIC_ENTITY = re.compile(r"&#(x[0-9a-fA-F]+|\d+);")


def _numeric(match: re.Match) -> str:
    value = match.group(1)
    code_point = int(value[1:], 16) if value[0] in "xX" else int(value)
    if 0 < code_point <= 0x10FFFF and not 0xD800 <= code_point <= 0xDFFF:
        return chr(code_point)
    return match.group(0)


def decode_html_entities(text: str) -> str:
    """Decode entities with the oracle's own table; ``&amp;`` goes first."""
    for _ in range(3):
        decoded = text.replace("&amp;", "&")
        for entity, replacement in ORACLE_ENTITIES.items():
            decoded = decoded.replace(entity, replacement)
        decoded = _NUMERIC_ENTITY.sub(_numeric, decoded)
        if decoded == text:
            break
        text = decoded
    return text


# ============================================================================
# ORIGINAL PAGE EXTRACTION
# ============================================================================

_CHROME = re.compile(
    r"<(head|script|style|noscript|nav|header|footer|aside)\b[^>]*>[\s\S]*?</\1\s*>", re.I
)
_HTML_COMMENT = re.compile(r"<!--[\s\S]*?-->")
_ENTRY_CONTENT = re.compile(r"<[a-z]+\b[^>]*class=\"[^\"]*\bentry-content\b[^\"]*\"[^>]*>", re.I)
_ARTICLE = re.compile(r"<article\b[^>]*>([\s\S]*?)</article\s*>", re.I)
_MAIN = re.compile(r"<main\b[^>]*>([\s\S]*?)</main\s*>", re.I)
_ARTICLE_CUTS = (
    re.compile(r"<div\b[^>]*class=\"[^\"]*sharedaddy", re.I),
    re.compile(r"<div\b[^>]*(?:id|class)=\"[^\"]*jp-relatedposts", re.I),
    re.compile(r"<[a-z]+\b[^>]*class=\"[^\"]*wp-block-comments", re.I),
    re.compile(r"<[a-z]+\b[^>]*id=\"comments\"", re.I),
    re.compile(r"<[a-z]+\b[^>]*class=\"[^\"]*comments-area", re.I),
    re.compile(r"<[a-z]+\b[^>]*class=\"[^\"]*entry-footer", re.I),
    re.compile(r"<[a-z]+\b[^>]*class=\"[^\"]*post-navigation", re.I),
    re.compile(r"</article\s*>", re.I),
    re.compile(r"</main\s*>", re.I),
)
_PRE = re.compile(r"<pre\b[^>]*>([\s\S]*?)</pre\s*>", re.I)
_TAG = re.compile(r"<[^>]+>")
_INLINE_TAG = re.compile(
    r"</?(?:a|abbr|b|cite|code|del|em|i|ins|kbd|mark|q|s|small|span|strong|sub|sup|time|u)\b[^>]*>",
    re.I,
)
_HTML_HEADING = re.compile(r"<h([1-6])\b[^>]*>([\s\S]*?)</h\1\s*>", re.I)
_HTML_LINK = re.compile(r"<a\b[^>]*\bhref=\"([^\"]+)\"[^>]*>([\s\S]*?)</a\s*>", re.I)
_HTML_IMAGE = re.compile(r"<img\b[^>]*\bsrc=\"([^\"]+)\"[^>]*>", re.I)
_HTML_LIST_ITEM = re.compile(r"<li\b[^>]*>((?:(?!</?(?:li|ul|ol)\b)[\s\S])*)", re.I)


def _squash(text: str) -> str:
    return " ".join(text.split())


def extract_article_html(html: str) -> str:
    """The oracle's view of the article body inside a full page."""
    text = _HTML_COMMENT.sub("", html)
    text = _CHROME.sub("", text)

    match = _ENTRY_CONTENT.search(text)
    if match:
        article = text[match.end() :]
    else:
        article_match = _ARTICLE.search(text) or _MAIN.search(text)
        article = article_match.group(1) if article_match else text

    for pattern in _ARTICLE_CUTS:
        cut = pattern.search(article)
        if cut:
            article = article[: cut.start()]
    return article


def _html_to_text(fragment: str) -> str:
    fragment = _INLINE_TAG.sub("", fragment)
    return _squash(decode_html_entities(_TAG.sub(" ", fragment)))


def extract_text_from_html(html: str) -> str:
    return _html_to_text(_PRE.sub(" ", extract_article_html(html)))


def extract_headings_from_html(html: str) -> List[Tuple[int, str]]:
    headings = []
    for level, inner in _HTML_HEADING.findall(extract_article_html(html)):
        text = _html_to_text(inner)
        if text:
            headings.append((int(level), text))
    return headings


def is_content_url(url: str) -> bool:
    if not url or url.startswith("#"):
        return False
    return not any(pattern in url for pattern in SKIP_URL_PATTERNS)


def extract_urls_from_html(html: str) -> Dict[str, str]:
    urls: Dict[str, str] = {}
    for href, label in _HTML_LINK.findall(extract_article_html(html)):
        url = decode_html_entities(href.strip())
        if is_content_url(url):
            urls[url] = _html_to_text(label)
    return urls


def extract_images_from_html(html: str) -> List[str]:
    return [
        src
        for src in _HTML_IMAGE.findall(extract_article_html(html))
        if not src.startswith("data:")
        and "wp-content/themes" not in src
        and "wp-content/plugins" not in src
    ]


def extract_code_from_html(html: str) -> List[str]:
    snippets = []
    for inner in _PRE.findall(extract_article_html(html)):
        code = decode_html_entities(_TAG.sub("", inner)).strip()
        if len(code) > CODE_MIN_CHARS:
            snippets.append(code[:CODE_SNIPPET_CHARS])
    return snippets


def extract_list_items_from_html(html: str) -> List[str]:
    items = []
    for inner in _HTML_LIST_ITEM.findall(extract_article_html(html)):
        text = _html_to_text(inner)
        if len(text) > LIST_MIN_CHARS:
            items.append(text[:LIST_SNIPPET_CHARS])
    return items


# ============================================================================
# MARKDOWN EXTRACTION
# ============================================================================

_HEADER_BLOCK = re.compile(r"\A---[ \t]*\n([\s\S]*?)\n---[ \t]*(?:\n|\Z)")
_MD_FENCED = re.compile(r"^[ \t]*(```|~~~)[^\n]*\n([\s\S]*?)^[ \t]*\1[ \t]*$", re.M)
_MD_INLINE_CODE = re.compile(r"(`+)([^`]+?)\1")
_MD_IMAGE = re.compile(r"!\[[^\]]*\]\([^)]*\)")
_MD_LINK_LABEL = re.compile(r"\[([^\]]*)\]\([^)]*\)")
_MD_LINK = re.compile(r"(!?)\[((?:[^\[\]]|!\[[^\]]*\]\([^)]*\))*)\]\(([^)\s]+)[^)]*\)")
_MD_IMAGE_SRC = re.compile(r"!\[[^\]]*\]\(([^)\s]+)[^)]*\)")
_MD_HEADING = re.compile(r"^(#{1,6})[ \t]+(.+?)[ \t]*$", re.M)
_MD_LIST_ITEM = re.compile(r"^[ \t]*(?:[-*+]|\d+[.)])[ \t]+(.+)$", re.M)
_MD_TABLE_SEPARATOR = re.compile(r"^[ \t]*\|?[ \t]*:?-+:?[ \t]*(?:\|[ \t]*:?-+:?[ \t]*)+\|?[ \t]*$", re.M)
_MD_ASTERISKS = re.compile(r"(?<=\S)\*+|\*+(?=\S)")


def split_front_matter(markdown: str) -> Tuple[Optional[str], str]:
    match = _HEADER_BLOCK.match(markdown)
    if not match:
        return None, markdown
    return match.group(1), markdown[match.end() :]


def _without_code(body: str, keep_inline: bool = True) -> str:
    body = _MD_FENCED.sub(" ", body)
    return _MD_INLINE_CODE.sub(r"\2" if keep_inline else " ", body)


def extract_text_from_markdown(markdown: str) -> str:
    _, body = split_front_matter(markdown)
    text = _without_code(body)
    text = _MD_IMAGE.sub(" ", text)
    text = _MD_LINK_LABEL.sub(r"\1", text)
    text = _MD_TABLE_SEPARATOR.sub(" ", text)
    text = text.replace("\\|", " ").replace("|", " ")
    text = re.sub(r"^[ \t]*#{1,6}[ \t]+", "", text, flags=re.M)
    text = re.sub(r"^[ \t]*>[ \t]?", "", text, flags=re.M)
    text = re.sub(r"^[ \t]*(?:[-*+]|\d+[.)])[ \t]+", "", text, flags=re.M)
    text = re.sub(r"^[ \t]*(?:-{3,}|\*{3,}|_{3,})[ \t]*$", "", text, flags=re.M)
    text = _MD_ASTERISKS.sub("", text)
    return _squash(text)


def _markdown_label(text: str) -> str:
    text = _MD_IMAGE.sub("", text)
    text = _MD_LINK_LABEL.sub(r"\1", text)
    return _squash(text.replace("*", ""))


def extract_headings_from_markdown(markdown: str) -> List[Tuple[int, str]]:
    _, body = split_front_matter(markdown)
    headings = []
    for hashes, text in _MD_HEADING.findall(_without_code(body, keep_inline=True)):
        label = _markdown_label(text)
        if label:
            headings.append((len(hashes), label))
    return headings


def extract_urls_from_markdown(markdown: str) -> Dict[str, str]:
    _, body = split_front_matter(markdown)
    urls: Dict[str, str] = {}
    for bang, label, url in _MD_LINK.findall(_without_code(body, keep_inline=False)):
        if bang:
            continue
        urls[url] = _markdown_label(label)
    return urls


def extract_images_from_markdown(markdown: str) -> List[str]:
    _, body = split_front_matter(markdown)
    return _MD_IMAGE_SRC.findall(_without_code(body, keep_inline=False))


def extract_code_from_markdown(markdown: str) -> List[str]:
    _, body = split_front_matter(markdown)
    snippets = []
    for _, code in _MD_FENCED.findall(body):
        code = code.strip()
        if len(code) > CODE_MIN_CHARS:
            snippets.append(code[:CODE_SNIPPET_CHARS])
    return snippets


def extract_list_items_from_markdown(markdown: str) -> List[str]:
    _, body = split_front_matter(markdown)
    items = []
    for text in _MD_LIST_ITEM.findall(_without_code(body)):
        text = _MD_LINK_LABEL.sub(r"\1", text).strip()
        if len(text) > LIST_MIN_CHARS:
            items.append(text[:LIST_SNIPPET_CHARS])
    return items


# ============================================================================
# VALIDATION
# ============================================================================

_HEADER_KEY = re.compile(r"^([A-Za-z_][\w-]*):[ \t]*(.*?)[ \t]*$")
_ISO_DATE = re.compile(
    r"^\d{4}-\d{2}-\d{2}"
    r"(?:[T ]\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}:?\d{2})?)?$"
)
_SAFE_SLUG = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")
_UNCLOSED_LINK = re.compile(r"\[[^\]\n]+\]\([^)\n]*$", re.M)
_EMPTY_LINK = re.compile(r"\[[^\]\n]*\]\(\s*\)")
_RAW_TAG = re.compile(r"<(?!!)[a-zA-Z][^>]*>")
_RAW_ENTITY = re.compile(r"&(?:#\d+|#[xX][0-9a-fA-F]+|[a-zA-Z][a-zA-Z0-9]*);")
_FENCE_LINE = re.compile(r"^[ \t]*(```|~~~)")


def _header_values(header: str) -> Dict[str, str]:
    """Top-level ``key -> raw value`` pairs; containers map to ``"<nested>"``."""
    lines = header.split("\n")
    values: Dict[str, str] = {}
    for index, line in enumerate(lines):
        if not line or line[0].isspace():
            continue
        match = _HEADER_KEY.match(line)
        if not match:
            continue
        key, raw = match.groups()
        next_line = lines[index + 1] if index + 1 < len(lines) else ""
        if not raw and next_line[:1].isspace() and next_line.strip():
            values[key] = "<nested>"
            continue
        if len(raw) >= 2 and raw[0] == raw[-1] and raw[0] in "\"'":
            raw = raw[1:-1]
        values[key] = raw.strip()
    return values


def _valid_date(value: str) -> bool:
    if not _ISO_DATE.match(value):
        return False
    try:
        dt.date.fromisoformat(value[:10])
    except ValueError:
        return False
    return True


def _valid_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_front_matter(markdown: str) -> Dict[str, List[str]]:
    issues: List[str] = []
    warnings: List[str] = []
    header, _ = split_front_matter(markdown)
    if header is None:
        issues.append("No front matter found")
        return {"issues": issues, "warnings": warnings}

    values = _header_values(header)
    for name in REQUIRED_FIELDS:
        if name not in values:
            issues.append(f"Missing required field: {name}")
    for name, value in values.items():
        if not value:
            warnings.append(f"Empty value for field: {name}")

    date = values.get("date", "")
    if date and not _valid_date(date):
        issues.append(f"Invalid date format: {date}")
    canonical = values.get("canonical_url", "")
    if canonical and not _valid_url(canonical):
        issues.append(f"Invalid canonical URL: {canonical}")
    slug = values.get("slug", "")
    if slug and not _SAFE_SLUG.match(slug):
        warnings.append(f"Slug is not URL-safe: {slug}")
    return {"issues": issues, "warnings": warnings}


def _open_fence(body: str) -> Optional[str]:
    fence: Optional[str] = None
    for line in body.split("\n"):
        match = _FENCE_LINE.match(line)
        if not match:
            continue
        if fence is None:
            fence = match.group(1)
        elif match.group(1) == fence and not line.strip()[len(fence) :].strip():
            fence = None
    return fence


def validate_structure(markdown: str) -> Dict[str, List[str]]:
    issues: List[str] = []
    warnings: List[str] = []
    _, body = split_front_matter(markdown)

    fence = _open_fence(body)
    if fence is not None:
        issues.append(f"Unclosed code block (unmatched {fence} fence)")

    prose = _without_code(body, keep_inline=False)
    unclosed = _UNCLOSED_LINK.findall(prose)
    if unclosed:
        issues.append(f"Unclosed links found: {len(unclosed)}")
    empty = _EMPTY_LINK.findall(prose)
    if empty:
        issues.append(f"Empty link URLs: {len(empty)}")

    tags = _RAW_TAG.findall(prose)
    if tags:
        warnings.append(f"HTML tags found outside code blocks: {len(tags)}")
    entities = _RAW_ENTITY.findall(prose)
    if entities:
        warnings.append(f"Undecoded entities found outside code blocks: {len(entities)}")
    long_lines = [line for line in body.split("\n") if len(line) > LONG_LINE_CHARS]
    if long_lines:
        warnings.append(
            f"Very long lines found: {len(long_lines)} (may indicate parsing issues)"
        )
    return {"issues": issues, "warnings": warnings}


# ============================================================================
# COMPARISON
# ============================================================================


def compare_word_counts(html_text: str, md_text: str) -> Dict[str, Any]:
    html_words = len(html_text.split())
    md_words = len(md_text.split())
    diff = abs(html_words - md_words)
    percent = round(diff / html_words * 100, 1) if html_words else 0.0
    status = "OK"
    if percent > WORD_DIFF_ISSUE_PCT:
        status = "ERROR"
    elif percent > WORD_DIFF_WARNING_PCT:
        status = "WARNING"
    return {
        "html_words": html_words,
        "md_words": md_words,
        "diff": diff,
        "percent_diff": percent,
        "status": status,
    }


def _normalize_heading(text: str) -> str:
    return re.sub(r"[^a-z0-9]", "", text.lower())


def compare_headings(
    html_headings: List[Tuple[int, str]], md_headings: List[Tuple[int, str]]
) -> Dict[str, List[str]]:
    issues: List[str] = []
    warnings: List[str] = []
    original = [text for level, text in html_headings if level >= 2]
    produced = [_normalize_heading(text) for level, text in md_headings if level >= 2]
    if len(original) != len(produced):
        warnings.append(
            f"Heading count mismatch: HTML={len(original)}, MD={len(produced)}"
        )
    for text in original:
        wanted = _normalize_heading(text)
        found = any(
            wanted[:HEADING_MATCH_CHARS] in candidate
            or candidate[:HEADING_MATCH_CHARS] in wanted
            for candidate in produced
        )
        if not found and len(text) > HEADING_MIN_CHARS:
            issues.append(f'Missing heading: "{text[:50]}"')
    return {"issues": issues, "warnings": warnings}


def _normalize_url(url: str) -> str:
    return url.rstrip("/").lower()


def compare_urls(html_urls: Dict[str, str], md_urls: Dict[str, str]) -> Dict[str, List[str]]:
    issues: List[str] = []
    warnings: List[str] = []
    produced = {_normalize_url(url) for url in md_urls}
    missing = [
        (url, label) for url, label in html_urls.items() if _normalize_url(url) not in produced
    ]
    if not missing:
        return {"issues": issues, "warnings": warnings}

    target = issues if len(missing) > MAX_MISSING_URLS else warnings
    target.append(f"Missing {len(missing)} URLs from original")
    for url, label in missing[:MAX_MISSING_URLS]:
        target.append(f'  - "{label[:30]}" -> {url}' if label else f"  - {url}")
    return {"issues": issues, "warnings": warnings}


def sample_sentences(text: str) -> List[str]:
    sentences = [
        sentence.strip()
        for sentence in re.split(r"[.!?]+\s+", text)
        if SENTENCE_MIN_CHARS < len(sentence.strip()) < SENTENCE_MAX_CHARS
    ]
    return sentences[::SENTENCE_SAMPLE_EVERY]


def spot_check_sentences(html_text: str, md_text: str) -> Dict[str, Any]:
    sampled = sample_sentences(html_text)
    haystack = md_text.lower()
    missing = 0
    for sentence in sampled:
        keywords = [
            word for word in sentence.lower().split() if len(word) >= KEYWORD_MIN_CHARS
        ][:KEYWORDS_PER_SENTENCE]
        found = sum(1 for word in keywords if word in haystack)
        if found < len(keywords) * KEYWORD_MATCH_RATIO:
            missing += 1
    warnings = []
    if missing and missing > len(sampled) * SENTENCE_FAILURE_RATIO:
        warnings.append(
            f"Sentence spot-check: {missing}/{len(sampled)} sampled sentences "
            "may be missing or altered"
        )
    return {"sampled": len(sampled), "missing": missing, "issues": [], "warnings": warnings}


# ============================================================================
# MAIN VERIFICATION
# ============================================================================


def verify_conversion(
    original_html: str, produced_markdown: str, strict: bool = False
) -> VerificationReport:
    """Run every check and collect graded findings into one report."""
    issues: List[str] = []
    warnings: List[str] = []
    checks: Dict[str, Any] = {}
    stats: Dict[str, Any] = {
        "html_size": len(original_html),
        "md_size": len(produced_markdown),
    }

    def record(name: str, result: Dict[str, Any]) -> None:
        checks[name] = result
        issues.extend(result.get("issues", []))
        warnings.extend(result.get("warnings", []))

    record("front_matter", validate_front_matter(produced_markdown))
    record("structure", validate_structure(produced_markdown))

    html_text = extract_text_from_html(original_html)
    md_text = extract_text_from_markdown(produced_markdown)
    words = compare_word_counts(html_text, md_text)
    stats["word_comparison"] = words
    checks["word_count"] = words
    summary = (
        f"HTML={words['html_words']}, MD={words['md_words']} ({words['percent_diff']}% diff)"
    )
    if words["status"] == "ERROR":
        issues.append(f"Word count differs significantly: {summary}")
    elif words["status"] == "WARNING":
        warnings.append(f"Word count differs: {summary}")

    html_headings = extract_headings_from_html(original_html)
    md_headings = extract_headings_from_markdown(produced_markdown)
    record(
        "headings",
        {"html": len(html_headings), "md": len(md_headings), **compare_headings(html_headings, md_headings)},
    )

    html_urls = extract_urls_from_html(original_html)
    md_urls = extract_urls_from_markdown(produced_markdown)
    stats["html_urls"] = len(html_urls)
    stats["md_urls"] = len(md_urls)
    record("urls", {"html": len(html_urls), "md": len(md_urls), **compare_urls(html_urls, md_urls)})

    html_images = extract_images_from_html(original_html)
    md_images = extract_images_from_markdown(produced_markdown)
    image_check: Dict[str, Any] = {"html": len(html_images), "md": len(md_images), "warnings": []}
    if html_images and not md_images:
        image_check["warnings"].append(
            f"Images may be missing: {len(html_images)} in HTML, 0 in Markdown"
        )
    record("images", image_check)

    html_code = extract_code_from_html(original_html)
    md_code = extract_code_from_markdown(produced_markdown)
    code_check: Dict[str, Any] = {
        "html": len(html_code),
        "md": len(md_code),
        "issues": [],
        "warnings": [],
    }
    if html_code and not md_code:
        code_check["issues"].append(
            f"Code blocks lost: {len(html_code)} in HTML, 0 in Markdown"
        )
    elif abs(len(html_code) - len(md_code)) > CODE_COUNT_TOLERANCE:
        code_check["warnings"].append(
            f"Code block count mismatch: HTML={len(html_code)}, MD={len(md_code)}"
        )
    record("code", code_check)

    html_items = extract_list_items_from_html(original_html)
    md_items = extract_list_items_from_markdown(produced_markdown)
    list_check: Dict[str, Any] = {"html": len(html_items), "md": len(md_items), "warnings": []}
    if abs(len(html_items) - len(md_items)) > len(html_items) * LIST_DIFF_RATIO:
        list_check["warnings"].append(
            f"List item count mismatch: HTML={len(html_items)}, MD={len(md_items)}"
        )
    record("lists", list_check)

    record("sentences", spot_check_sentences(html_text, md_text))

    return VerificationReport(
        issues=tuple(issues),
        warnings=tuple(warnings),
        stats=stats,
        checks=checks,
        strict=strict,
    )


def verify_files(html_path: Path, md_path: Path, strict: bool = False) -> VerificationReport:
    """Verify a saved conversion; missing inputs raise FileNotFoundError."""
    if not html_path.is_file():
        raise FileNotFoundError(f"HTML file does not exist: {html_path}")
    if not md_path.is_file():
        raise FileNotFoundError(f"Markdown file does not exist: {md_path}")
    report = verify_conversion(
        html_path.read_text(encoding="utf-8"),
        md_path.read_text(encoding="utf-8"),
        strict=strict,
    )
    return replace(report, html_path=html_path, md_path=md_path)


def _failure_report(html_path: Path, md_path: Path, strict: bool, exc: Exception) -> VerificationReport:
    return VerificationReport(
        issues=(f"Could not verify: {exc}",),
        warnings=(),
        stats={},
        checks={},
        strict=strict,
        html_path=html_path,
        md_path=md_path,
    )


def verify_batch(
    html_dir: Path, md_dir: Path, strict: bool = False, workers: int = 4
) -> BatchSummary:
    """Verify every ``<slug>.html`` in ``html_dir`` against ``<slug>.md`` in ``md_dir``."""
    if not html_dir.is_dir():
        raise FileNotFoundError(f"HTML directory does not exist: {html_dir}")

    html_files = sorted(html_dir.glob("*.html"))

    def run(html_path: Path) -> VerificationReport:
        md_path = md_dir / f"{html_path.stem}.md"
        try:
            return verify_files(html_path, md_path, strict=strict)
        except (OSError, ValueError, UnicodeDecodeError) as exc:
            logger.error("Failed to verify %s: %s", html_path.stem, exc)
            return _failure_report(html_path, md_path, strict, exc)

    with ThreadPoolExecutor(max_workers=max(1, workers)) as pool:
        reports = list(pool.map(run, html_files))

    summary = BatchSummary(total=len(html_files))
    for html_path, report in zip(html_files, reports):
        summary.reports[html_path.stem] = report
        if not report.passed:
            summary.failed += 1
        elif report.warnings:
            summary.warnings += 1
        else:
            summary.passed += 1
        summary.total_issues += len(report.issues)
        summary.total_warnings += len(report.warnings)

    logger.info(
        "Verified %d files (%d passed, %d with warnings, %d failed)",
        summary.total,
        summary.passed,
        summary.warnings,
        summary.failed,
    )
    return summary


def format_report(report: VerificationReport) -> str:
    """Human-readable rendering used by the command line."""
    lines = []
    if report.html_path or report.md_path:
        lines.append(f"Verifying {report.html_path} -> {report.md_path}")
    words = report.stats.get("word_comparison")
    if words:
        lines.append(
            f"Words: HTML={words['html_words']} MD={words['md_words']} "
            f"({words['percent_diff']}% diff)"
        )
    for issue in report.issues:
        lines.append(f"ISSUE: {issue}")
    for warning in report.warnings:
        lines.append(f"WARNING: {warning}")
    if report.passed:
        lines.append("PASSED" + (" with warnings" if report.warnings else ""))
    else:
        lines.append("FAILED")
    return "\n".join(lines)
