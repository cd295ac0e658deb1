"""Data models used throughout the conversion pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple


@dataclass
class SyncState:
    """Remote publishing state recorded after a successful sync."""

    post_id: Optional[int] = None
    category_ids: List[int] = field(default_factory=list)
    tag_ids: List[int] = field(default_factory=list)
    synced_at: str = ""


@dataclass
class ArticleMetadata:
    """Metadata describing a converted article."""

    title: str = ""
    slug: str = ""
    date: str = ""
    canonical_url: str = ""
    description: str = ""
    category: Optional[str] = None
    series_order: Optional[int] = None
    categories: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    sync: Optional[SyncState] = None
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class Block:
    """A single block node of a Markdown body."""

    kind: str
    text: str
    level: int = 0
    language: Optional[str] = None


@dataclass(frozen=True)
class ImageSize:
    """Pixel dimensions recovered from an image header."""

    width: int
    height: int


@dataclass
class ImageDescriptor:
    """Local image reference discovered while scanning a document body."""

    reference_path: str
    resolved_path: Optional[Path] = None
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None

    @property
    def has_dimensions(self) -> bool:
        return bool(self.width and self.height)


@dataclass
class ConversionResult:
    """Outcome of converting one HTML page into a portable document."""

    title: str
    slug: str
    date: str
    word_count: int
    markdown: str
    output_path: Optional[Path] = None


@dataclass
class ExportResult:
    """Publish-ready HTML plus the metadata a publishing client needs."""

    title: str
    slug: str
    date: str
    canonical_url: str
    html: str
    word_count: int
    metadata: Dict[str, Any] = field(default_factory=dict)
    output_path: Optional[Path] = None


@dataclass(frozen=True)
class VerificationReport:
    """Immutable outcome of one verification run."""

    issues: Tuple[str, ...]
    warnings: Tuple[str, ...]
    stats: Dict[str, Any]
    checks: Dict[str, Any]
    strict: bool = False
    html_path: Optional[Path] = None
    md_path: Optional[Path] = None

    @property
    def passed(self) -> bool:
        if self.issues:
            return False
        return not (self.strict and self.warnings)

    @property
    def exit_code(self) -> int:
        """0 when clean, 1 when failed, 2 when passed with warnings."""
        if not self.passed:
            return 1
        if self.warnings:
            return 2
        return 0


@dataclass
class BatchSummary:
    """Aggregate of a batch run over many documents."""

    total: int = 0
    passed: int = 0
    warnings: int = 0
    failed: int = 0
    total_issues: int = 0
    total_warnings: int = 0
    reports: Dict[str, VerificationReport] = field(default_factory=dict)

    @property
    def exit_code(self) -> int:
        if self.failed:
            return 1
        if self.total_warnings:
            return 2
        return 0


@dataclass
class ComparisonResult:
    """Content drift comparison between two Markdown documents."""

    identical: bool
    identical_after_normalization: bool
    stats: Dict[str, Dict[str, int]]
    typography: List[Dict[str, Any]]
    first_difference: Optional[Dict[str, Any]]
    front_matter: Dict[str, bool]
