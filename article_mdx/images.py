"""Image header sniffing and local image discovery utilities."""

from __future__ import annotations

import logging
import re
import struct
from pathlib import Path
from typing import List, Optional, Union

from filetype import guess

from .config import MAX_IMAGE_WIDTH
from .models import ImageDescriptor, ImageSize

logger = logging.getLogger("article_mdx")

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"
JPEG_SOI = b"\xff\xd8\xff"
# SOF0..SOF15 minus DHT (C4), JPG (C8) and DAC (CC).
JPEG_SOF_MARKERS = frozenset(range(0xC0, 0xD0)) - {0xC4, 0xC8, 0xCC}
REMOTE_PREFIXES = ("http://", "https://", "//")

MARKDOWN_IMAGE = re.compile(r'!\[([^\]]*)\]\(([^\s")]+)(?:\s+"(?:[^"\\]|\\.)*")?\)')


def _png_dimensions(data: bytes) -> Optional[ImageSize]:
    if len(data) < 24:
        return None
    width, height = struct.unpack(">II", data[16:24])
    return ImageSize(width, height)


def _jpeg_dimensions(data: bytes) -> Optional[ImageSize]:
    offset = 2
    size = len(data)
    while offset + 1 < size:
        if data[offset] != 0xFF:
            offset += 1
            continue
        marker = data[offset + 1]
        if marker == 0xFF:
            # Fill byte before the real marker.
            offset += 1
            continue
        if marker in JPEG_SOF_MARKERS:
            if offset + 9 > size:
                return None
            height, width = struct.unpack(">HH", data[offset + 5 : offset + 9])
            return ImageSize(width, height)
        if offset + 4 > size:
            return None
        (length,) = struct.unpack(">H", data[offset + 2 : offset + 4])
        if length < 2:
            return None
        offset += 2 + length
    return None


def _webp_dimensions(data: bytes) -> Optional[ImageSize]:
    if len(data) < 16:
        return None
    chunk = data[12:16]
    if chunk == b"VP8 ":
        if len(data) < 30:
            return None
        width, height = struct.unpack("<HH", data[26:30])
        return ImageSize(width & 0x3FFF, height & 0x3FFF)
    if chunk == b"VP8L":
        if len(data) < 25:
            return None
        b0, b1, b2, b3 = data[21:25]
        width = 1 + (((b1 & 0x3F) << 8) | b0)
        height = 1 + (((b3 & 0x0F) << 10) | (b2 << 2) | ((b1 & 0xC0) >> 6))
        return ImageSize(width, height)
    if chunk == b"VP8X":
        if len(data) < 30:
            return None
        width = 1 + int.from_bytes(data[24:27], "little")
        height = 1 + int.from_bytes(data[27:30], "little")
        return ImageSize(width, height)
    return None


def _gif_dimensions(data: bytes) -> Optional[ImageSize]:
    if len(data) < 10:
        return None
    width, height = struct.unpack("<HH", data[6:10])
    return ImageSize(width, height)


def image_dimensions(data: bytes) -> Optional[ImageSize]:
    """Read pixel dimensions from raw image bytes.

    Detection is by magic bytes only (PNG, JPEG, WebP, GIF in that order).
    Unknown formats, truncated buffers and corrupt headers yield None.
    """
    if data.startswith(PNG_SIGNATURE):
        size = _png_dimensions(data)
    elif data.startswith(JPEG_SOI):
        size = _jpeg_dimensions(data)
    elif len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        size = _webp_dimensions(data)
    elif data.startswith(b"GIF"):
        size = _gif_dimensions(data)
    else:
        return None
    if size is None or size.width <= 0 or size.height <= 0:
        return None
    return size


def detect_image_format(data: Union[bytes, str]) -> Optional[str]:
    """Detect image type from bytes or a file path using filetype; returns lowercase extension."""
    kind = guess(data)
    if kind and kind.mime.startswith("image/"):
        ext = kind.extension.lower()
        if ext == "jpeg":
            return "jpg"
        return ext
    return None


def probe_image_file(path: Path) -> Optional[ImageSize]:
    """Return the dimensions of an image on disk, or None when unavailable."""
    try:
        data = path.read_bytes()
    except OSError as exc:
        logger.debug("Cannot read image %s: %s", path, exc)
        return None
    return image_dimensions(data)


def cap_dimensions(size: ImageSize, max_width: int = MAX_IMAGE_WIDTH) -> ImageSize:
    """Scale dimensions down to ``max_width`` keeping the aspect ratio."""
    if size.width <= max_width:
        return size
    scale = max_width / size.width
    return ImageSize(max_width, max(1, int(size.height * scale + 0.5)))


def is_remote_reference(src: str) -> bool:
    return src.startswith(REMOTE_PREFIXES) or src.startswith("data:")


def resolve_image_path(src: str, base_dir: Path, image_root: Optional[Path] = None) -> Path:
    """Resolve an image reference against the document directory.

    Site-absolute references (``/uploads/a.png``) are looked up under
    ``image_root`` (defaulting to ``base_dir``) before the filesystem root.
    """
    if src.startswith("/"):
        candidate = (image_root or base_dir) / src.lstrip("/")
        if candidate.exists():
            return candidate.resolve()
        return Path(src)
    return (base_dir / src).resolve()


def find_local_images(
    markdown: str,
    base_dir: Path,
    image_root: Optional[Path] = None,
) -> List[ImageDescriptor]:
    """Collect local image references from Markdown image syntax."""
    descriptors: List[ImageDescriptor] = []
    seen = set()
    for match in MARKDOWN_IMAGE.finditer(markdown):
        src = match.group(2)
        if is_remote_reference(src) or src in seen:
            continue
        seen.add(src)
        descriptors.append(
            ImageDescriptor(
                reference_path=src,
                resolved_path=resolve_image_path(src, base_dir, image_root),
            )
        )
    return descriptors


def describe_image(descriptor: ImageDescriptor) -> ImageDescriptor:
    """Populate a descriptor's format and dimensions from its file header."""
    path = descriptor.resolved_path
    if path is None:
        return descriptor
    if not path.is_file():
        logger.warning("Image %s not found at %s", descriptor.reference_path, path)
        return descriptor

    size = probe_image_file(path)
    if size is None:
        logger.debug("No dimensions detected for %s", descriptor.reference_path)
        return descriptor
    descriptor.format = detect_image_format(str(path))
    descriptor.width = size.width
    descriptor.height = size.height
    logger.debug(
        "Image %s (%s) is %dx%d",
        descriptor.reference_path,
        descriptor.format or "unknown",
        size.width,
        size.height,
    )
    return descriptor
