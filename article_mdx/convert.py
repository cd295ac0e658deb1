"""High-level orchestration for converting saved pages into Markdown."""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Dict, List, Optional

from .config import ConvertConfig
from .markdown import transcode
from .models import ConversionResult
from .utils import slugify, write_text

logger = logging.getLogger("article_mdx")


def convert_html(html: str, config: Optional[ConvertConfig] = None, **overrides) -> ConversionResult:
    """Convert a full page held in memory; nothing is written to disk."""
    config = config or ConvertConfig()
    overrides.setdefault("slug", config.slug)
    overrides.setdefault("category", config.category)
    overrides.setdefault("series_order", config.series_order)
    document = transcode(html, **overrides)
    return ConversionResult(
        title=document.metadata.title,
        slug=document.metadata.slug,
        date=document.metadata.date,
        word_count=document.word_count(),
        markdown=document.to_text(),
    )


def build_output_path(config: ConvertConfig, slug: str) -> Path:
    return config.output_root / f"{slug}.md"


def convert_file(
    input_path: Path,
    output_path: Optional[Path] = None,
    config: Optional[ConvertConfig] = None,
    **overrides,
) -> ConversionResult:
    """Convert one saved HTML page into a Markdown document on disk.

    The slug defaults to the input file name. The input is read before any
    output is produced, so a missing file leaves nothing behind.
    """
    config = config or ConvertConfig()
    if not input_path.is_file():
        raise FileNotFoundError(f"Input HTML file does not exist: {input_path}")

    logger.info("Converting %s", input_path)
    html = input_path.read_text(encoding="utf-8")
    overrides.setdefault("slug", config.slug or slugify(input_path.stem))
    result = convert_html(html, config, **overrides)

    target = output_path or build_output_path(config, result.slug)
    write_text(target, result.markdown)
    result.output_path = target
    logger.info(
        "Saved Markdown to %s (%.1f KB, %d words)",
        target,
        len(result.markdown.encode("utf-8")) / 1024,
        result.word_count,
    )
    return result


def convert_batch(
    input_dir: Path,
    config: Optional[ConvertConfig] = None,
    workers: int = 4,
) -> Dict[str, Optional[ConversionResult]]:
    """Convert every ``*.html`` file in a directory; failures map to None."""
    config = config or ConvertConfig()
    if not input_dir.is_dir():
        raise FileNotFoundError(f"Input directory does not exist: {input_dir}")

    paths: List[Path] = sorted(input_dir.glob("*.html"))
    batch_config = ConvertConfig(
        output_root=config.output_root,
        category=config.category,
        series_order=config.series_order,
    )

    def run(path: Path) -> Optional[ConversionResult]:
        try:
            return convert_file(path, config=batch_config)
        except (OSError, ValueError, UnicodeDecodeError) as exc:
            logger.error("Failed to convert %s: %s", path, exc)
            return None

    with ThreadPoolExecutor(max_workers=max(1, workers)) as pool:
        results = dict(zip((path.stem for path in paths), pool.map(run, paths)))

    succeeded = sum(1 for result in results.values() if result is not None)
    logger.info("Converted %d/%d files", succeeded, len(paths))
    return results
