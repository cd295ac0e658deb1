"""
Unit tests for the MCP tool functions.
"""

from article_mdx import mcp_server


class TestTools:
    """Tests for the registered tools called as plain functions."""

    def test_convert(self, article_page):
        markdown = mcp_server.convert(article_page)
        assert 'slug: "getting-started-with-widgets"' in markdown
        assert "## Installing the toolkit" in markdown

    def test_convert_with_slug(self, article_page):
        assert 'slug: "widgets"' in mcp_server.convert(article_page, slug="widgets")

    def test_export(self):
        html = mcp_server.export('---\ntitle: "T"\n---\n\n## Heading\n\nSome *text*.')
        assert html == "<h2>Heading</h2>\n<p>Some <em>text</em>.</p>"

    def test_verify(self, article_page):
        markdown = mcp_server.convert(article_page)
        assert mcp_server.verify(article_page, markdown).endswith("PASSED")
        assert "FAILED" in mcp_server.verify(article_page, "no header", strict=True)
