"""Content drift comparison between two Markdown documents."""

from __future__ import annotations

import logging
import re
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .config import load_mapping
from .models import ComparisonResult
from .utils import count_words

logger = logging.getLogger("article_mdx")

_HEADER = re.compile(r"^---\n([\s\S]*?)\n---\n?")

TYPOGRAPHY_CHECKS: Tuple[Tuple[str, str, re.Pattern], ...] = (
    ("em_dash", "Em dash", re.compile("—")),
    ("en_dash", "En dash", re.compile("–")),
    ("curly_double_quotes", "Curly double quotes", re.compile("[“”]")),
    ("curly_single_quotes", "Curly single quotes", re.compile("[‘’]")),
    ("straight_double_quotes", "Straight double quotes", re.compile('"')),
    ("straight_single_quotes", "Straight single quotes", re.compile("'")),
    ("non_breaking_space", "Non-breaking space", re.compile(" ")),
    ("ellipsis", "Ellipsis", re.compile("…")),
)

_NORMALIZATION = str.maketrans(
    {
        " ": " ",
        "“": '"',
        "”": '"',
        "‘": "'",
        "’": "'",
        "—": "--",
        "–": "-",
        "…": "...",
    }
)


def split_document(content: str) -> Tuple[str, str]:
    """Return ``(front_matter, body)``; front matter is empty when absent."""
    match = _HEADER.match(content)
    if not match:
        return "", content.strip()
    return match.group(1), content[match.end() :].strip()


def normalize_for_comparison(text: str) -> str:
    return " ".join(text.translate(_NORMALIZATION).split())


def analyze_typography(body1: str, body2: str) -> List[Dict[str, Any]]:
    differences = []
    for name, description, pattern in TYPOGRAPHY_CHECKS:
        count1 = len(pattern.findall(body1))
        count2 = len(pattern.findall(body2))
        if count1 != count2:
            differences.append(
                {
                    "name": name,
                    "description": description,
                    "count1": count1,
                    "count2": count2,
                    "diff": count2 - count1,
                }
            )
    return differences


def find_first_difference(text1: str, text2: str) -> Optional[Dict[str, Any]]:
    shortest = min(len(text1), len(text2))
    for position in range(shortest):
        if text1[position] != text2[position]:
            start = max(0, position - 20)
            return {
                "position": position,
                "char1": text1[position],
                "char2": text2[position],
                "context1": text1[start : position + 30],
                "context2": text2[start : position + 30],
            }
    if len(text1) != len(text2):
        return {"position": shortest, "length1": len(text1), "length2": len(text2)}
    return None


def _stats(content: str, body: str) -> Dict[str, int]:
    return {
        "total_length": len(content),
        "body_length": len(body),
        "word_count": count_words(body),
        "line_count": len(body.split("\n")),
    }


def compare_content(
    content1: str, content2: str, normalize_typography: bool = False
) -> ComparisonResult:
    """Compare two documents' bodies, optionally ignoring typography."""
    header1, body1 = split_document(content1)
    header2, body2 = split_document(content2)

    left, right = body1, body2
    if normalize_typography:
        left, right = normalize_for_comparison(body1), normalize_for_comparison(body2)

    identical = left == right
    return ComparisonResult(
        identical=identical,
        identical_after_normalization=normalize_for_comparison(body1) == normalize_for_comparison(body2),
        stats={"content1": _stats(content1, body1), "content2": _stats(content2, body2)},
        typography=analyze_typography(body1, body2),
        first_difference=None if identical else find_first_difference(left, right),
        front_matter={"content1_has": bool(header1), "content2_has": bool(header2)},
    )


def compare_files(path1: Path, path2: Path, normalize: bool = False) -> ComparisonResult:
    for path in (path1, path2):
        if not path.is_file():
            raise FileNotFoundError(f"Comparison input does not exist: {path}")
    return compare_content(
        path1.read_text(encoding="utf-8"),
        path2.read_text(encoding="utf-8"),
        normalize_typography=normalize,
    )


def compare_batch(mapping_path: Path, normalize: bool = False) -> Dict[str, Any]:
    """Compare every pair listed in a JSON mapping file.

    A malformed mapping raises ValueError; a pair whose files cannot be read
    is recorded with its error and the remaining pairs still run.
    """
    pairs = load_mapping(mapping_path)
    base = mapping_path.parent
    results: List[Dict[str, Any]] = []
    identical = 0
    identical_after_normalization = 0

    for pair in pairs:
        file1 = base / pair["file1"]
        file2 = base / pair["file2"]
        name = pair.get("name") or Path(pair["file1"]).name
        try:
            comparison = compare_files(file1, file2, normalize=normalize)
        except (OSError, UnicodeDecodeError) as exc:
            logger.error("Failed to compare %s: %s", name, exc)
            results.append({"name": name, "file1": str(file1), "file2": str(file2), "error": str(exc)})
            continue
        identical += comparison.identical
        identical_after_normalization += comparison.identical_after_normalization
        results.append(
            {
                "name": name,
                "file1": str(file1),
                "file2": str(file2),
                "result": comparison,
                "error": None,
            }
        )

    return {
        "total": len(pairs),
        "identical": identical,
        "identical_after_normalization": identical_after_normalization,
        "different": len(pairs) - identical_after_normalization,
        "results": results,
    }


def batch_as_dict(batch: Dict[str, Any]) -> Dict[str, Any]:
    """Plain-data copy of a ``compare_batch`` summary, ready for ``json.dumps``."""
    results = []
    for entry in batch["results"]:
        comparison = entry.get("result")
        results.append({**entry, "result": asdict(comparison) if comparison is not None else None})
    return {**batch, "results": results}


def format_report(comparison: ComparisonResult) -> str:
    lines = []
    if comparison.identical:
        lines.append("Status: IDENTICAL")
    elif comparison.identical_after_normalization:
        lines.append("Status: IDENTICAL (after typography normalization)")
        lines.append("  Typography differences only (quotes, spaces, dashes)")
    else:
        lines.append("Status: DIFFERENT")

    stats1 = comparison.stats["content1"]
    stats2 = comparison.stats["content2"]
    lines.append("")
    lines.append("Statistics:")
    lines.append(f"  File 1: {stats1['word_count']} words, {stats1['line_count']} lines")
    lines.append(f"  File 2: {stats2['word_count']} words, {stats2['line_count']} lines")
    word_diff = stats2["word_count"] - stats1["word_count"]
    if word_diff:
        lines.append(f"  Word difference: {word_diff:+d}")

    if comparison.typography:
        lines.append("")
        lines.append("Typography differences:")
        for diff in comparison.typography:
            lines.append(f"  {diff['description']}: {diff['count1']} vs {diff['count2']}")

    first = comparison.first_difference
    if first and not comparison.identical_after_normalization and "context1" in first:
        lines.append("")
        lines.append(f"First difference at position {first['position']}:")
        lines.append(f"  File 1: ...{first['context1']}...")
        lines.append(f"  File 2: ...{first['context2']}...")
    return "\n".join(lines)
