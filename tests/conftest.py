"""
Pytest configuration and shared fixtures.
"""

import io
import struct
import sys
from pathlib import Path

import pytest
import requests

# Add the project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))


# ============================================================================
# Pytest Hooks
# ============================================================================


def pytest_configure(config):
    """Configure custom markers."""
    config.addinivalue_line("markers", "integration: mark as integration test")
    config.addinivalue_line("markers", "slow: mark test as slow running")


# ============================================================================
# Page Fixtures
# ============================================================================

ARTICLE_PAGE = """<!DOCTYPE html>
<html>
<head>
<title>Getting Started With Widgets – Example Blog</title>
<meta name="description" content="A short guide to widgets.">
<link rel="canonical" href="https://blog.example.com/2024/03/05/getting-started-with-widgets/">
<script>var tracking = "ignored";</script>
</head>
<body>
<header><nav><a href="https://blog.example.com/">Home</a></nav></header>
<article>
<h1 class="entry-title">Getting Started With Widgets</h1>
<time datetime="2024-03-05T10:00:00+00:00">March 5, 2024</time>
<div class="entry-content">
<p>Widgets are small components that make dashboards easier to build. This guide walks through installing the toolkit and creating your first widget.</p>
<h2 class="wp-block-heading">Installing the toolkit</h2>
<p>Install the package with <code>pip install widgets</code> and read the <a href="https://docs.example.com/widgets">official documentation</a> before continuing.</p>
<pre class="wp-block-code"><code class="language-python">from widgets import Widget
widget = Widget(name=&quot;clock&quot;)</code></pre>
<h2 class="wp-block-heading">Choosing a layout</h2>
<ul>
<li>Grid layouts suit dense dashboards</li>
<li>Column layouts suit narrow screens</li>
</ul>
<figure class="wp-block-image"><img src="https://blog.example.com/wp-content/uploads/widget.png" alt="A clock widget"><figcaption>The finished clock widget</figcaption></figure>
<p>That&#8217;s all it takes &amp; you are ready to ship.</p>
</div>
<div class="sharedaddy"><a href="https://twitter.com/share">Share on Twitter</a></div>
<div id="comments" class="comments-area"><p>Great post! Thanks for writing it.</p></div>
</article>
<footer><p>Copyright Example Blog</p></footer>
</body>
</html>
"""


@pytest.fixture
def article_page():
    """A full blog page with chrome, sharing buttons and comments."""
    return ARTICLE_PAGE


@pytest.fixture
def article_file(tmp_path):
    """The sample page saved to disk."""
    path = tmp_path / "raw" / "getting-started.html"
    path.parent.mkdir(parents=True)
    path.write_text(ARTICLE_PAGE, encoding="utf-8")
    return path


# ============================================================================
# Image Fixtures
# ============================================================================


@pytest.fixture
def make_image():
    """Encode a real image with Pillow and return its bytes."""
    from PIL import Image

    def _make(fmt, width, height, **params):
        buffer = io.BytesIO()
        Image.new("RGB", (width, height), (200, 80, 40)).save(buffer, format=fmt, **params)
        return buffer.getvalue()

    return _make


def png_header(width, height):
    """Smallest byte sequence the sniffer needs to size a PNG."""
    return (
        b"\x89PNG\r\n\x1a\n"
        + b"\x00\x00\x00\rIHDR"
        + struct.pack(">II", width, height)
        + b"\x08\x02\x00\x00\x00"
    )


def jpeg_header(width, height):
    app0 = b"\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00"
    sof0 = b"\xff\xc0\x00\x11\x08" + struct.pack(">HH", height, width) + b"\x03" + b"\x00" * 9
    return b"\xff\xd8" + app0 + sof0


def gif_header(width, height):
    return b"GIF89a" + struct.pack("<HH", width, height) + b"\x00\x00\x00"


def webp_vp8x_header(width, height):
    chunk = b"\x00\x00\x00\x00" + (width - 1).to_bytes(3, "little") + (height - 1).to_bytes(3, "little")
    body = b"WEBP" + b"VP8X" + struct.pack("<I", len(chunk)) + chunk
    return b"RIFF" + struct.pack("<I", len(body)) + body


@pytest.fixture
def headers():
    """Hand-built headers for each sniffed format."""
    return {
        "png": png_header,
        "jpeg": jpeg_header,
        "gif": gif_header,
        "webp": webp_vp8x_header,
    }


# ============================================================================
# Network Fixtures
# ============================================================================


class FakeResponse:
    def __init__(self, text, status_code=200):
        self.text = text
        self.status_code = status_code

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeSession:
    """Serves canned responses keyed by URL and records each request."""

    def __init__(self, pages):
        self.pages = pages
        self.calls = []

    def get(self, url, timeout=None):
        self.calls.append((url, timeout))
        page = self.pages[url]
        if isinstance(page, Exception):
            raise page
        if isinstance(page, int):
            return FakeResponse("", status_code=page)
        return FakeResponse(page)


@pytest.fixture
def fake_session():
    """Build a session whose pages map URL to body text, status code or exception."""
    return FakeSession
