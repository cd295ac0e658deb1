"""Article region extraction and metadata parsing utilities."""

from __future__ import annotations

import logging
import re
from typing import Callable, Optional, Sequence, Tuple

from bs4 import BeautifulSoup

from .entities import normalize_typography
from .models import ArticleMetadata

logger = logging.getLogger("article_mdx")

CONTENT_MARKERS = (
    "entry-content",
    "post-content",
    "article-content",
    "wp-block-post-content",
)

# Ranked list of markers that close the article body.
END_MARKERS: Sequence[Tuple[str, re.Pattern]] = (
    ("sharing", re.compile(r"<div\b[^>]*class=[\"'][^\"']*\bsharedaddy", re.I)),
    (
        "related-posts",
        re.compile(r"<div\b[^>]*(?:id|class)=[\"'][^\"']*\bjp-relatedposts", re.I),
    ),
    (
        "comments",
        re.compile(
            r"<(?:div|section)\b[^>]*(?:class=[\"'][^\"']*\b(?:wp-block-comments|comments-area)"
            r"|id=[\"']comments[\"'])",
            re.I,
        ),
    ),
    ("footer", re.compile(r"<footer\b", re.I)),
    (
        "post-navigation",
        re.compile(r"<(?:nav|div)\b[^>]*class=[\"'][^\"']*\bpost-navigation", re.I),
    ),
    ("article-end", re.compile(r"</article\s*>", re.I)),
)

_OPENING_TAG = re.compile(
    r"<(?:div|article|section|main)\b[^>]*\bclass=([\"'])(.*?)\1[^>]*>", re.I | re.S
)
_FIRST_PARAGRAPH = re.compile(r"<p(?:\s[^>]*)?>", re.I)
_ISO_DATE = re.compile(r"\d{4}-\d{2}-\d{2}")
_TITLE_SEPARATORS = (" – ", " | ", " - ")

RegionStrategy = Callable[[str], Optional[str]]


def _nearest_end(html: str, start: int) -> Tuple[int, Optional[str]]:
    end = len(html)
    name = None
    for marker_name, pattern in END_MARKERS:
        match = pattern.search(html, start)
        if match and match.start() < end:
            end = match.start()
            name = marker_name
    return end, name


def _container_region(html: str) -> Optional[str]:
    """Capture the first element carrying a known content class."""
    for match in _OPENING_TAG.finditer(html):
        classes = match.group(2).split()
        if not any(marker in classes for marker in CONTENT_MARKERS):
            continue
        end, marker = _nearest_end(html, match.end())
        logger.debug("Content container closed by %s", marker or "end of document")
        return html[match.end() : end]
    return None


def _first_paragraph_region(html: str) -> Optional[str]:
    """Capture from the first paragraph to the nearest end-of-content marker."""
    match = _FIRST_PARAGRAPH.search(html)
    if not match:
        return None
    end, _ = _nearest_end(html, match.start())
    return html[match.start() : end]


REGION_STRATEGIES: Sequence[Tuple[str, RegionStrategy]] = (
    ("container", _container_region),
    ("first_paragraph", _first_paragraph_region),
)


def select_region(html: str) -> Tuple[str, str]:
    """Return ``(strategy_name, region)`` for the first strategy that matches."""
    for name, strategy in REGION_STRATEGIES:
        region = strategy(html)
        if region is not None and region.strip():
            logger.debug("Article region selected by %s strategy", name)
            return name, region
    logger.debug("No region strategy matched; using the whole document")
    return "document", html


def extract_region(html: str) -> str:
    """Isolate the article body from a full page document."""
    return select_region(html)[1]


def _clean(text: str) -> str:
    return " ".join(normalize_typography(text).split())


def _meta_content(soup: BeautifulSoup, **attrs: str) -> str:
    tag = soup.find("meta", attrs=attrs)
    if tag and tag.get("content"):
        return _clean(tag["content"])
    return ""


def strip_title_suffix(title: str) -> str:
    """Drop a trailing site name separated by the last dash or pipe."""
    cut = max(title.rfind(separator) for separator in _TITLE_SEPARATORS)
    if cut > 0:
        return title[:cut].strip()
    return title


def _extract_title(soup: BeautifulSoup) -> str:
    title = _meta_content(soup, property="og:title")
    if title:
        return title
    if soup.title:
        title = _clean(soup.title.get_text())
        if title:
            return strip_title_suffix(title)
    heading = soup.find("h1", class_="entry-title") or soup.find("h1")
    if heading:
        return _clean(heading.get_text(" "))
    return ""


def _extract_date(soup: BeautifulSoup, html: str) -> str:
    candidates = []
    time_tag = soup.find("time", attrs={"datetime": True})
    if time_tag:
        candidates.append(time_tag["datetime"])
    candidates.append(_meta_content(soup, property="article:published_time"))
    for candidate in candidates:
        match = _ISO_DATE.match(candidate.strip())
        if match:
            return match.group(0)
    match = _ISO_DATE.search(html)
    return match.group(0) if match else ""


def extract_metadata(html: str) -> ArticleMetadata:
    """Extract title, date, description and canonical URL from a full page."""
    soup_full = BeautifulSoup(html, "html.parser")

    description = _meta_content(soup_full, property="og:description")
    if not description:
        description = _meta_content(soup_full, name="description")

    canonical_url = ""
    canonical_tag = soup_full.find("link", rel="canonical")
    if canonical_tag and canonical_tag.get("href"):
        canonical_url = canonical_tag["href"].strip()

    return ArticleMetadata(
        title=_extract_title(soup_full),
        date=_extract_date(soup_full, html),
        canonical_url=canonical_url,
        description=description,
    )
