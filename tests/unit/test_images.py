"""
Unit tests for the image header sniffer and local image discovery.
"""

import struct
from pathlib import Path

import pytest

from article_mdx.images import (
    cap_dimensions,
    describe_image,
    detect_image_format,
    find_local_images,
    image_dimensions,
    is_remote_reference,
    probe_image_file,
    resolve_image_path,
)
from article_mdx.models import ImageDescriptor, ImageSize


class TestImageDimensions:
    """Tests for image_dimensions on hand-built headers."""

    @pytest.mark.parametrize(
        "fmt,width,height",
        [("png", 640, 480), ("jpeg", 1024, 768), ("gif", 3, 5), ("webp", 4000, 3000)],
    )
    def test_reads_each_format(self, headers, fmt, width, height):
        """Test that each supported header yields its dimensions."""
        assert image_dimensions(headers[fmt](width, height)) == ImageSize(width, height)

    @pytest.mark.parametrize("fmt", ["png", "jpeg", "gif", "webp"])
    def test_deterministic(self, headers, fmt):
        """Test that repeated calls return the same size."""
        data = headers[fmt](321, 123)
        assert image_dimensions(data) == image_dimensions(data) == ImageSize(321, 123)

    @pytest.mark.parametrize("fmt", ["png", "jpeg", "gif", "webp"])
    def test_truncated_to_three_bytes(self, headers, fmt):
        """Test that a header cut to three bytes yields None."""
        assert image_dimensions(headers[fmt](100, 100)[:3]) is None

    def test_unknown_and_empty_input(self):
        assert image_dimensions(b"") is None
        assert image_dimensions(b"%PDF-1.7 not an image at all") is None

    def test_zero_dimensions_rejected(self, headers):
        assert image_dimensions(headers["png"](0, 10)) is None

    def test_jpeg_fill_bytes_skipped(self):
        """Test that 0xFF fill bytes before a marker are ignored."""
        data = b"\xff\xd8\xff\xff\xc2\x00\x11\x08" + struct.pack(">HH", 20, 30) + b"\x00" * 10
        assert image_dimensions(data) == ImageSize(30, 20)

    def test_jpeg_without_frame_header(self):
        data = b"\xff\xd8\xff\xe0\x00\x04\x00\x00\xff\xd9"
        assert image_dimensions(data) is None

    def test_jpeg_truncated_segment(self):
        assert image_dimensions(b"\xff\xd8\xff\xe0\x00\x10JF") is None

    def test_webp_lossless_header(self):
        """Test that VP8L bit-packed dimensions are decoded."""
        packed = (100 - 1) | ((50 - 1) << 14)
        chunk = b"\x2f" + packed.to_bytes(4, "little") + b"\x00" * 4
        body = b"WEBP" + b"VP8L" + struct.pack("<I", len(chunk)) + chunk
        data = b"RIFF" + struct.pack("<I", len(body)) + body
        assert image_dimensions(data) == ImageSize(100, 50)

    def test_webp_lossy_header(self):
        """Test that VP8 key frame dimensions are masked to 14 bits."""
        frame = b"\x00\x00\x00" + b"\x9d\x01\x2a" + struct.pack("<HH", 0xC000 | 300, 200)
        body = b"WEBP" + b"VP8 " + struct.pack("<I", len(frame)) + frame
        data = b"RIFF" + struct.pack("<I", len(body)) + body
        assert image_dimensions(data) == ImageSize(300, 200)


class TestPillowImages:
    """Tests against files encoded by a real imaging library."""

    @pytest.mark.parametrize(
        "fmt,params",
        [("PNG", {}), ("JPEG", {"quality": 80}), ("GIF", {}), ("WEBP", {}), ("WEBP", {"lossless": True})],
    )
    def test_encoded_files(self, make_image, fmt, params):
        data = make_image(fmt, 57, 31, **params)
        assert image_dimensions(data) == ImageSize(57, 31)

    def test_progressive_jpeg(self, make_image):
        data = make_image("JPEG", 90, 45, progressive=True)
        assert image_dimensions(data) == ImageSize(90, 45)

    def test_detect_image_format(self, make_image):
        assert detect_image_format(make_image("PNG", 4, 4)) == "png"
        assert detect_image_format(make_image("JPEG", 4, 4)) == "jpg"
        assert detect_image_format(b"plain text") is None


class TestCapDimensions:
    """Tests for cap_dimensions."""

    def test_small_image_unchanged(self):
        assert cap_dimensions(ImageSize(800, 600), 1400) == ImageSize(800, 600)

    def test_wide_image_scaled(self):
        assert cap_dimensions(ImageSize(2800, 1000), 1400) == ImageSize(1400, 500)

    def test_height_rounds_half_up(self):
        assert cap_dimensions(ImageSize(2800, 1001), 1400) == ImageSize(1400, 501)


class TestLocalImages:
    """Tests for image reference discovery and resolution."""

    def test_remote_references(self):
        assert is_remote_reference("https://example.com/a.png")
        assert is_remote_reference("//cdn.example.com/a.png")
        assert is_remote_reference("data:image/png;base64,AAAA")
        assert not is_remote_reference("images/a.png")

    def test_find_local_images_skips_remote_and_duplicates(self, tmp_path):
        markdown = (
            "![One](images/one.png)\n"
            "![Remote](https://example.com/two.png)\n"
            '![Again](images/one.png "Same file")\n'
            "![Three](three.jpg)\n"
        )
        descriptors = find_local_images(markdown, tmp_path)
        assert [d.reference_path for d in descriptors] == ["images/one.png", "three.jpg"]
        assert descriptors[0].resolved_path == (tmp_path / "images" / "one.png").resolve()

    def test_site_absolute_path_uses_image_root(self, tmp_path):
        root = tmp_path / "site"
        (root / "uploads").mkdir(parents=True)
        (root / "uploads" / "a.png").write_bytes(b"x")
        resolved = resolve_image_path("/uploads/a.png", tmp_path / "docs", image_root=root)
        assert resolved == (root / "uploads" / "a.png").resolve()

    def test_site_absolute_path_missing(self, tmp_path):
        assert resolve_image_path("/nowhere/a.png", tmp_path) == Path("/nowhere/a.png")

    def test_describe_image(self, tmp_path, headers):
        path = tmp_path / "photo.png"
        path.write_bytes(headers["png"](40, 30))
        descriptor = describe_image(ImageDescriptor("photo.png", path))
        assert descriptor.has_dimensions
        assert (descriptor.width, descriptor.height) == (40, 30)
        assert descriptor.format == "png"

    def test_describe_missing_image(self, tmp_path):
        descriptor = describe_image(ImageDescriptor("gone.png", tmp_path / "gone.png"))
        assert not descriptor.has_dimensions

    def test_probe_image_file(self, tmp_path, headers):
        path = tmp_path / "anim.gif"
        path.write_bytes(headers["gif"](12, 9))
        assert probe_image_file(path) == ImageSize(12, 9)
        assert probe_image_file(tmp_path / "missing.gif") is None
