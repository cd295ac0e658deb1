"""Configuration objects and constants for conversion and export."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Optional

MAX_IMAGE_WIDTH = 1400
DEFAULT_CONTENT_DIR = Path("content/articles")
DEFAULT_EXPORT_DIR = Path("wordpress-export")
DEFAULT_RAW_DIR = Path("raw")


@dataclass
class ConvertConfig:
    """Settings that control HTML to Markdown conversion."""

    output_root: Path = DEFAULT_CONTENT_DIR
    slug: Optional[str] = None
    category: Optional[str] = None
    series_order: Optional[int] = None


@dataclass
class ExportConfig:
    """Settings that control Markdown to HTML export."""

    output_root: Path = DEFAULT_EXPORT_DIR
    include_wrapper: bool = False
    image_root: Optional[Path] = None
    max_image_width: int = MAX_IMAGE_WIDTH
    image_base_url: Optional[str] = None


@dataclass
class VerifyConfig:
    """Settings for the verification run."""

    strict: bool = False
    workers: int = 4


def load_mapping(path: Path) -> List[Dict[str, str]]:
    """Load a JSON list of ``{"file1", "file2", "name"?}`` comparison pairs.

    Raises FileNotFoundError for a missing file and ValueError when the file
    is not valid JSON or does not have the expected shape.
    """
    if not path.is_file():
        raise FileNotFoundError(f"Mapping file does not exist: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"Mapping file {path} is not valid JSON: {exc}") from exc

    if not isinstance(data, list):
        raise ValueError(f"Mapping file {path} must contain a JSON list")

    pairs: List[Dict[str, str]] = []
    for index, entry in enumerate(data):
        if not isinstance(entry, dict) or "file1" not in entry or "file2" not in entry:
            raise ValueError(
                f"Mapping entry {index} in {path} needs 'file1' and 'file2' keys"
            )
        pair = {"file1": str(entry["file1"]), "file2": str(entry["file2"])}
        if entry.get("name"):
            pair["name"] = str(entry["name"])
        pairs.append(pair)
    return pairs
