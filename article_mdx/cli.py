"""Command-line entry point for article-mdx."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import asdict
from pathlib import Path
from typing import Optional, Sequence

import requests

from . import compare
from .config import (
    DEFAULT_CONTENT_DIR,
    DEFAULT_EXPORT_DIR,
    DEFAULT_RAW_DIR,
    ConvertConfig,
    ExportConfig,
    VerifyConfig,
)
from .convert import convert_batch, convert_file
from .export import export_batch, export_file
from .fetch import DEFAULT_TIMEOUT, extract_slug_from_url, fetch_article
from .pipeline import read_url_list, run_pipeline
from .verify import format_report, verify_batch, verify_files

logger = logging.getLogger("article_mdx.cli")


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )


def _add_convert_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("input", type=Path, help="Saved HTML page, or a directory of pages")
    parser.add_argument("output", nargs="?", type=Path, help="Markdown file to write")
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=DEFAULT_CONTENT_DIR,
        help="Directory for Markdown files when OUTPUT is not given",
    )
    parser.add_argument("--slug", help="Override the slug derived from the file name")
    parser.add_argument("--category", help="Category recorded in the front matter")
    parser.add_argument(
        "--series-order",
        type=int,
        help="Position of the article within a series",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=4,
        help="Worker threads when converting a directory",
    )


def _add_export_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("input", type=Path, help="Markdown document, or a directory of documents")
    parser.add_argument("output", nargs="?", type=Path, help="HTML file to write")
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=DEFAULT_EXPORT_DIR,
        help="Directory for HTML files when OUTPUT is not given",
    )
    parser.add_argument(
        "--include-wrapper",
        action="store_true",
        help="Wrap blocks in block-editor comment delimiters",
    )
    parser.add_argument(
        "--image-root",
        type=Path,
        help="Directory that site-absolute image paths resolve against",
    )
    parser.add_argument(
        "--image-base-url",
        help="Rewrite site-absolute image sources onto this base URL",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=4,
        help="Worker threads when exporting a directory",
    )


def _add_verify_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("html", type=Path, help="Original HTML page (or directory with --batch)")
    parser.add_argument("markdown", type=Path, help="Converted Markdown (or directory with --batch)")
    parser.add_argument(
        "--strict",
        action="store_true",
        help="Treat warnings as failures",
    )
    parser.add_argument(
        "--batch",
        action="store_true",
        help="Verify every <slug>.html against <slug>.md",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=4,
        help="Worker threads for batch verification",
    )


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Convert web articles to portable Markdown, export them back to HTML, and verify the result.",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose logging")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--verbose",
        action="store_true",
        default=argparse.SUPPRESS,
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    convert_parser = subparsers.add_parser(
        "convert", parents=[common], help="Convert saved HTML pages to Markdown"
    )
    _add_convert_arguments(convert_parser)

    export_parser = subparsers.add_parser(
        "export", parents=[common], help="Export Markdown documents to HTML"
    )
    _add_export_arguments(export_parser)

    verify_parser = subparsers.add_parser(
        "verify", parents=[common], help="Check a conversion against its source page"
    )
    _add_verify_arguments(verify_parser)

    compare_parser = subparsers.add_parser(
        "compare", parents=[common], help="Compare two Markdown files for content drift"
    )
    compare_parser.add_argument("file1", type=Path)
    compare_parser.add_argument("file2", type=Path)
    compare_parser.add_argument(
        "--normalize",
        action="store_true",
        help="Normalize typography before comparing",
    )
    compare_parser.add_argument("--json", action="store_true", help="Print the result as JSON")

    batch_parser = subparsers.add_parser(
        "compare-batch", parents=[common], help="Compare file pairs listed in a JSON mapping"
    )
    batch_parser.add_argument("mapping", type=Path)
    batch_parser.add_argument(
        "--normalize",
        action="store_true",
        help="Normalize typography before comparing",
    )
    batch_parser.add_argument("--json", action="store_true", help="Print the summary as JSON")

    fetch_parser = subparsers.add_parser(
        "fetch", parents=[common], help="Download an article page as raw HTML"
    )
    fetch_parser.add_argument("url")
    fetch_parser.add_argument("output", nargs="?", type=Path)
    fetch_parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help="Request timeout in seconds",
    )

    pipeline_parser = subparsers.add_parser(
        "batch", parents=[common], help="Fetch, convert and optionally verify a list of URLs"
    )
    pipeline_parser.add_argument("urls_file", type=Path, help="File with one URL per line")
    pipeline_parser.add_argument(
        "--raw-dir",
        type=Path,
        default=DEFAULT_RAW_DIR,
        help="Directory for fetched HTML pages",
    )
    pipeline_parser.add_argument(
        "--output-dir",
        type=Path,
        default=DEFAULT_CONTENT_DIR,
        help="Directory for Markdown files",
    )
    pipeline_parser.add_argument(
        "--skip-fetch",
        action="store_true",
        help="Convert pages already saved in the raw directory",
    )
    pipeline_parser.add_argument(
        "--verify",
        action="store_true",
        help="Verify each conversion against its page",
    )
    pipeline_parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help="Request timeout in seconds",
    )

    argv = list(sys.argv[1:] if argv is None else argv)
    return parser.parse_args(argv)


def _run_convert(args: argparse.Namespace) -> int:
    config = ConvertConfig(
        output_root=args.output_dir,
        slug=args.slug,
        category=args.category,
        series_order=args.series_order,
    )
    if args.input.is_dir():
        results = convert_batch(args.input, config, workers=args.workers)
        return 1 if any(result is None for result in results.values()) else 0
    convert_file(args.input, args.output, config)
    return 0


def _run_export(args: argparse.Namespace) -> int:
    config = ExportConfig(
        output_root=args.output_dir,
        include_wrapper=args.include_wrapper,
        image_root=args.image_root,
        image_base_url=args.image_base_url,
    )
    if args.input.is_dir():
        results = export_batch(args.input, config, workers=args.workers)
        return 1 if any(result is None for result in results.values()) else 0
    export_file(args.input, args.output, config)
    return 0


def _run_verify(args: argparse.Namespace) -> int:
    config = VerifyConfig(strict=args.strict, workers=args.workers)
    if args.batch:
        summary = verify_batch(args.html, args.markdown, strict=config.strict, workers=config.workers)
        for report in summary.reports.values():
            print(format_report(report))
            print()
        print(
            f"Total: {summary.total}  Passed: {summary.passed}  "
            f"Warnings: {summary.warnings}  Failed: {summary.failed}"
        )
        return summary.exit_code

    report = verify_files(args.html, args.markdown, strict=config.strict)
    print(format_report(report))
    return report.exit_code


def _run_compare(args: argparse.Namespace) -> int:
    result = compare.compare_files(args.file1, args.file2, normalize=args.normalize)
    if args.json:
        print(json.dumps(asdict(result), indent=2))
    else:
        print(f"File 1: {args.file1}")
        print(f"File 2: {args.file2}")
        print(compare.format_report(result))
    return 0 if result.identical_after_normalization else 1


def _run_compare_batch(args: argparse.Namespace) -> int:
    batch = compare.compare_batch(args.mapping, normalize=args.normalize)
    if args.json:
        print(json.dumps(compare.batch_as_dict(batch), indent=2))
        return 1 if batch["different"] else 0
    print(f"Total files: {batch['total']}")
    print(f"Identical: {batch['identical']}")
    print(f"Identical (after normalization): {batch['identical_after_normalization']}")
    print(f"Different: {batch['different']}")
    for entry in batch["results"]:
        if entry["error"]:
            print(f"  ERROR {entry['name']}: {entry['error']}")
        elif not entry["result"].identical_after_normalization:
            print(f"  DIFFERENT {entry['name']}")
    return 1 if batch["different"] else 0


def _run_fetch(args: argparse.Namespace) -> int:
    output = args.output
    if output is None:
        slug = extract_slug_from_url(args.url)
        if not slug:
            logger.error("Could not extract slug from %s; pass an output path", args.url)
            return 1
        output = DEFAULT_RAW_DIR / f"{slug}.html"
    try:
        fetch_article(args.url, output, timeout=args.timeout)
    except requests.RequestException as exc:
        logger.error("Failed to fetch %s: %s", args.url, exc)
        return 1
    return 0


def _run_batch(args: argparse.Namespace) -> int:
    urls = read_url_list(args.urls_file)
    if not urls:
        logger.error("No URLs found in %s", args.urls_file)
        return 1
    results = run_pipeline(
        urls,
        raw_dir=args.raw_dir,
        output_dir=args.output_dir,
        skip_fetch=args.skip_fetch,
        verify=args.verify,
        timeout=args.timeout,
    )
    for result in results:
        if result.error:
            print(f"FAILED {result.url}: {result.error}")
            continue
        status = "OK" if result.success else "FAILED"
        line = f"{status} {result.slug} ({result.conversion.word_count} words)"
        if result.verification is not None:
            line += f" verify: {'PASSED' if result.verification.passed else 'FAILED'}"
        print(line)
    succeeded = sum(1 for result in results if result.success)
    print(f"Total: {len(results)}  Succeeded: {succeeded}  Failed: {len(results) - succeeded}")

    if succeeded < len(results):
        return 1
    if any(result.verification is not None and result.verification.warnings for result in results):
        return 2
    return 0


COMMANDS = {
    "convert": _run_convert,
    "export": _run_export,
    "verify": _run_verify,
    "compare": _run_compare,
    "compare-batch": _run_compare_batch,
    "fetch": _run_fetch,
    "batch": _run_batch,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run one command; returns 0 on success, 1 on issues or errors, 2 on warnings only."""
    args = parse_args(argv)
    _configure_logging(args.verbose)
    try:
        return COMMANDS[args.command](args)
    except (FileNotFoundError, ValueError) as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
