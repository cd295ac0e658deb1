"""Download raw article pages so they can be converted offline."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

import requests

from .utils import write_text

logger = logging.getLogger("article_mdx")

MIN_PAGE_CHARS = 1000
DEFAULT_TIMEOUT = 30.0

SLUG_PATTERNS = (
    re.compile(r"/blog/\d{4}/\d{2}/\d{2}/([^/]+)/?$"),
    re.compile(r"/\d{4}/\d{2}/\d{2}/([^/]+)/?$"),
)
_LAST_SEGMENT = re.compile(r"/([^/]+)/?$")


@dataclass
class FetchResult:
    """Outcome of fetching one URL."""

    url: str
    slug: Optional[str]
    output_path: Optional[Path]
    success: bool
    error: Optional[str] = None


def extract_slug_from_url(url: str) -> Optional[str]:
    """Pull the post slug out of a dated or simple permalink."""
    for pattern in SLUG_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    match = _LAST_SEGMENT.search(url)
    if match and "." not in match.group(1):
        return match.group(1)
    return None


def fetch_article(
    url: str,
    output_path: Path,
    timeout: float = DEFAULT_TIMEOUT,
    session: Optional[requests.Session] = None,
) -> str:
    """Fetch ``url`` and save the page to ``output_path``.

    HTTP failures propagate as ``requests.RequestException``. A body shorter
    than ``MIN_PAGE_CHARS`` raises ValueError and nothing is written.
    """
    session = session or requests.Session()
    logger.info("Fetching %s", url)
    resp = session.get(url, timeout=timeout)
    resp.raise_for_status()
    html = resp.text
    if not html or len(html) < MIN_PAGE_CHARS:
        raise ValueError(f"Retrieved content from {url} seems too short")

    write_text(output_path, html)
    logger.info("Saved %s (%.1f KB)", output_path, len(html) / 1024)
    return html


def fetch_many(
    urls: Iterable[str],
    output_dir: Path,
    timeout: float = DEFAULT_TIMEOUT,
    session: Optional[requests.Session] = None,
) -> List[FetchResult]:
    session = session or requests.Session()
    results: List[FetchResult] = []
    for url in urls:
        slug = extract_slug_from_url(url)
        if not slug:
            logger.warning("Could not extract slug from %s", url)
            results.append(FetchResult(url, None, None, False, "Could not extract slug from URL"))
            continue

        output_path = output_dir / f"{slug}.html"
        try:
            fetch_article(url, output_path, timeout=timeout, session=session)
        except (requests.RequestException, ValueError, OSError) as exc:
            logger.warning("Failed to fetch %s: %s", url, exc)
            results.append(FetchResult(url, slug, output_path, False, str(exc)))
            continue
        results.append(FetchResult(url, slug, output_path, True))
    return results
