"""MCP server exposing article-mdx convert/export/verify tools."""

from __future__ import annotations

import logging

from mcp.server.fastmcp import FastMCP

from .convert import convert_html
from .document import PortableDocument
from .export import export_document
from .verify import format_report, verify_conversion

logger = logging.getLogger("article_mdx.mcp")
logger.setLevel(logging.ERROR)

mcp = FastMCP(name="article-mdx")


@mcp.tool()
def convert(html: str, slug: str = "") -> str:
    """Convert a web article's HTML into Markdown with front matter."""
    result = convert_html(html, slug=slug or None)
    return result.markdown


@mcp.tool()
def export(markdown: str) -> str:
    """Render a Markdown document (front matter optional) as publish-ready HTML."""
    document = PortableDocument.from_text(markdown)
    return export_document(document).html


@mcp.tool()
def verify(html: str, markdown: str, strict: bool = False) -> str:
    """Check a Markdown conversion against the HTML it came from and report issues."""
    report = verify_conversion(html, markdown, strict=strict)
    return format_report(report)


def main() -> None:
    """Entry point for running the MCP server."""
    logging.basicConfig(level=logging.ERROR)
    mcp.run()


if __name__ == "__main__":
    main()
