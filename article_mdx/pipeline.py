"""Fetch, convert and optionally verify a list of article URLs in one run."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Optional

import requests

from .config import DEFAULT_CONTENT_DIR, DEFAULT_RAW_DIR, ConvertConfig
from .convert import convert_file
from .fetch import DEFAULT_TIMEOUT, FetchResult, extract_slug_from_url, fetch_many
from .models import ConversionResult, VerificationReport
from .verify import verify_files

logger = logging.getLogger("article_mdx")


@dataclass
class PipelineResult:
    """What happened to one URL on its way to Markdown."""

    url: str
    slug: Optional[str]
    success: bool
    conversion: Optional[ConversionResult] = None
    verification: Optional[VerificationReport] = None
    error: Optional[str] = None


def read_url_list(path: Path) -> List[str]:
    """Read one URL per line, skipping blank lines and ``#`` comments."""
    if not path.is_file():
        raise FileNotFoundError(f"URLs file does not exist: {path}")
    urls = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            urls.append(line)
    return urls


def _locate_saved_pages(urls: Iterable[str], raw_dir: Path) -> List[FetchResult]:
    results = []
    for url in urls:
        slug = extract_slug_from_url(url)
        if not slug:
            results.append(FetchResult(url, None, None, False, "Could not extract slug from URL"))
            continue
        path = raw_dir / f"{slug}.html"
        if path.is_file():
            results.append(FetchResult(url, slug, path, True))
        else:
            results.append(
                FetchResult(url, slug, path, False, f"HTML not found and fetching is skipped: {path}")
            )
    return results


def run_pipeline(
    urls: Iterable[str],
    raw_dir: Path = DEFAULT_RAW_DIR,
    output_dir: Path = DEFAULT_CONTENT_DIR,
    skip_fetch: bool = False,
    verify: bool = False,
    timeout: float = DEFAULT_TIMEOUT,
    session: Optional[requests.Session] = None,
) -> List[PipelineResult]:
    """Bring every URL through fetch, conversion and (optionally) verification.

    Each URL is independent: a failed fetch or conversion is recorded on its
    result and the remaining URLs still run.
    """
    urls = list(urls)
    if skip_fetch:
        fetched = _locate_saved_pages(urls, raw_dir)
    else:
        fetched = fetch_many(urls, raw_dir, timeout=timeout, session=session)

    config = ConvertConfig(output_root=output_dir)
    results: List[PipelineResult] = []
    for item in fetched:
        if not item.success:
            logger.warning("Skipping %s: %s", item.url, item.error)
            results.append(PipelineResult(item.url, item.slug, False, error=item.error))
            continue
        try:
            conversion = convert_file(item.output_path, config=config)
            report = verify_files(item.output_path, conversion.output_path) if verify else None
        except (OSError, ValueError, UnicodeDecodeError) as exc:
            logger.error("Failed to convert %s: %s", item.url, exc)
            results.append(PipelineResult(item.url, item.slug, False, error=str(exc)))
            continue
        passed = report is None or report.passed
        results.append(PipelineResult(item.url, conversion.slug, passed, conversion, report))

    succeeded = sum(1 for result in results if result.success)
    logger.info("Pipeline finished: %d/%d succeeded", succeeded, len(results))
    return results
