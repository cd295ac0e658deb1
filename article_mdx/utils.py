"""Utility helpers for slug normalization and path handling."""

from __future__ import annotations

import re
from pathlib import Path

SLUG_PATTERN = re.compile(r"[^a-z0-9]+")


def slugify(value: str, fallback: str = "article") -> str:
    """Generate a URL-safe slug using ASCII characters only."""
    normalized = value.encode("ascii", "ignore").decode("ascii")
    normalized = normalized.lower()
    normalized = SLUG_PATTERN.sub("-", normalized).strip("-")
    return normalized or fallback


def count_words(text: str) -> int:
    return len(text.split())


def write_text(path: Path, text: str) -> Path:
    """Write text to a file, creating parent directories first."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path
