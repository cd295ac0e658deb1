"""
Unit tests for the verification oracle.
"""

import pytest

from article_mdx.verify import (
    compare_headings,
    compare_urls,
    compare_word_counts,
    decode_html_entities,
    extract_article_html,
    extract_code_from_html,
    extract_code_from_markdown,
    extract_images_from_html,
    extract_list_items_from_html,
    extract_text_from_html,
    extract_text_from_markdown,
    extract_urls_from_html,
    extract_urls_from_markdown,
    format_report,
    is_content_url,
    spot_check_sentences,
    validate_front_matter,
    validate_structure,
    verify_batch,
    verify_conversion,
    verify_files,
)

GOOD_HEADER = (
    "---\n"
    'title: "Post"\n'
    'slug: "post"\n'
    'date: "2024-03-05"\n'
    'canonical_url: "https://example.com/post/"\n'
    "---\n\n"
)


class TestEntityDecoding:
    """Tests for the oracle's own entity table."""

    def test_ampersand_first(self):
        assert decode_html_entities("&amp;lt;b&amp;gt;") == "<b>"

    def test_numeric_and_named(self):
        assert decode_html_entities("It&#8217;s &#x41; &hellip;") == "It's A ..."


class TestHtmlExtraction:
    """Tests for extraction from the original page."""

    def test_article_region_excludes_chrome_and_comments(self, article_page):
        region = extract_article_html(article_page)
        assert "Widgets are small components" in region
        assert "Home" not in region
        assert "Great post" not in region
        assert "Share on Twitter" not in region

    def test_article_fallback(self):
        html = "<nav>Menu</nav><article><p>Inside</p></article><p>Outside</p>"
        assert extract_text_from_html(html) == "Inside"

    def test_text_skips_code_and_joins_inline_tags(self):
        html = (
            '<div class="entry-content"><p>Use <strong>bold</strong>ly and '
            "<code>x</code></p><pre>hidden code</pre></div>"
        )
        assert extract_text_from_html(html) == "Use boldly and x"

    def test_urls_skip_non_content(self):
        html = (
            '<div class="entry-content">'
            '<a href="https://docs.example.com/a?x=1&amp;y=2">Docs</a>'
            '<a href="#top">Top</a>'
            '<a href="https://blog.example.com/category/news/">News</a>'
            "</div>"
        )
        assert extract_urls_from_html(html) == {"https://docs.example.com/a?x=1&y=2": "Docs"}

    def test_is_content_url(self):
        assert is_content_url("https://example.com/post/")
        assert not is_content_url("https://example.com/wp-admin/")
        assert not is_content_url("")

    def test_images_skip_theme_and_data(self):
        html = (
            '<div class="entry-content"><img src="https://e.com/wp-content/uploads/a.png">'
            '<img src="https://e.com/wp-content/themes/t/logo.png">'
            '<img src="data:image/gif;base64,R0lGOD"></div>'
        )
        assert extract_images_from_html(html) == ["https://e.com/wp-content/uploads/a.png"]

    def test_code_snippets(self):
        html = '<div class="entry-content"><pre><code>print(&quot;hello world&quot;)</code></pre><pre>short</pre></div>'
        assert extract_code_from_html(html) == ['print("hello world")']

    def test_list_items_use_own_text(self):
        html = (
            '<div class="entry-content"><ul><li>Parent item text<ul><li>Child item text</li></ul></li>'
            "<li>tiny</li></ul></div>"
        )
        assert extract_list_items_from_html(html) == ["Parent item text", "Child item text"]


class TestMarkdownExtraction:
    """Tests for extraction from the produced Markdown."""

    def test_text_strips_syntax(self):
        markdown = GOOD_HEADER + (
            "## Heading\n\n"
            "Some **bold** and [a link](https://x.y) ![img](a.png)\n\n"
            "> quoted\n\n- item\n1. numbered\n\n---\n\n"
            "| a | b |\n| --- | --- |\n| c | d |\n\n"
            "```\nignored code\n```\n"
        )
        assert extract_text_from_markdown(markdown) == (
            "Heading Some bold and a link quoted item numbered a b c d"
        )

    def test_urls_exclude_images_and_code(self):
        markdown = "[Docs](https://docs.example.com) ![Pic](https://e.com/p.png)\n\n`[x](https://code.example.com)`"
        assert extract_urls_from_markdown(markdown) == {"https://docs.example.com": "Docs"}

    def test_code_blocks(self):
        markdown = "```python\nprint('hello world')\n```\n\n~~~\nx\n~~~"
        assert extract_code_from_markdown(markdown) == ["print('hello world')"]


class TestValidateFrontMatter:
    """Tests for front matter validation."""

    def test_valid_header(self):
        assert validate_front_matter(GOOD_HEADER + "Body") == {"issues": [], "warnings": []}

    def test_missing_header(self):
        assert validate_front_matter("Body only")["issues"] == ["No front matter found"]

    def test_missing_fields(self):
        result = validate_front_matter('---\ntitle: "Post"\n---\n\nBody')
        assert "Missing required field: slug" in result["issues"]
        assert "Missing required field: date" in result["issues"]
        assert "Missing required field: canonical_url" in result["issues"]

    def test_invalid_values(self):
        header = (
            '---\ntitle: "Post"\nslug: "Bad Slug"\ndate: "2024-13-45"\n'
            'canonical_url: "not-a-url"\ndescription: ""\n---\n'
        )
        result = validate_front_matter(header)
        assert "Invalid date format: 2024-13-45" in result["issues"]
        assert "Invalid canonical URL: not-a-url" in result["issues"]
        assert "Slug is not URL-safe: Bad Slug" in result["warnings"]
        assert "Empty value for field: description" in result["warnings"]

    def test_datetime_accepted(self):
        header = GOOD_HEADER.replace("2024-03-05", "2024-03-05T10:00:00+00:00")
        assert validate_front_matter(header)["issues"] == []

    def test_nested_values_are_not_empty(self):
        header = GOOD_HEADER.replace("---\n\n", "sync:\n  post_id: 4\n---\n\n")
        assert validate_front_matter(header)["warnings"] == []


class TestValidateStructure:
    """Tests for structural validation."""

    def test_clean_body(self):
        assert validate_structure(GOOD_HEADER + "Text with `<b>` in code.") == {
            "issues": [],
            "warnings": [],
        }

    def test_unclosed_fence(self):
        result = validate_structure("```python\nprint(1)\n")
        assert result["issues"] == ["Unclosed code block (unmatched ``` fence)"]

    def test_tilde_fence_with_backticks_inside(self):
        assert validate_structure("~~~\n```\n~~~\n")["issues"] == []

    def test_unclosed_and_empty_links(self):
        result = validate_structure("See [docs](https://example.com\n\nAnd [empty]()")
        assert "Unclosed links found: 1" in result["issues"]
        assert "Empty link URLs: 1" in result["issues"]

    def test_raw_markup_warnings(self):
        result = validate_structure("A <span>tag</span> and &amp; entity\n\n" + "x" * 501)
        assert "HTML tags found outside code blocks: 1" in result["warnings"]
        assert "Undecoded entities found outside code blocks: 1" in result["warnings"]
        assert any(w.startswith("Very long lines found: 1") for w in result["warnings"])


class TestComparisons:
    """Tests for the individual comparison checks."""

    @pytest.mark.parametrize(
        "md_words,status",
        [(100, "OK"), (97, "OK"), (95, "OK"), (92, "WARNING"), (85, "WARNING"), (84, "ERROR"), (80, "ERROR")],
    )
    def test_word_count_thresholds(self, md_words, status):
        html_text = " ".join(f"word{i}" for i in range(100))
        md_text = " ".join(f"word{i}" for i in range(md_words))
        assert compare_word_counts(html_text, md_text)["status"] == status

    def test_word_count_empty_html(self):
        assert compare_word_counts("", "some words")["percent_diff"] == 0.0

    def test_missing_heading_is_issue(self):
        result = compare_headings(
            [(2, "Installing things"), (2, "Second section")], [(2, "Installing things")]
        )
        assert result["issues"] == ['Missing heading: "Second section"']
        assert result["warnings"] == ["Heading count mismatch: HTML=2, MD=1"]

    def test_headings_match_loosely(self):
        result = compare_headings([(2, "What's new?")], [(2, "Whats new")])
        assert result == {"issues": [], "warnings": []}

    def test_few_missing_urls_warn(self):
        html_urls = {f"https://e.com/{i}": f"Link {i}" for i in range(3)}
        result = compare_urls(html_urls, {"https://e.com/0/": "Link 0"})
        assert result["issues"] == []
        assert result["warnings"][0] == "Missing 2 URLs from original"

    def test_many_missing_urls_fail(self):
        html_urls = {f"https://e.com/{i}": "" for i in range(8)}
        result = compare_urls(html_urls, {})
        assert result["issues"][0] == "Missing 8 URLs from original"
        assert len(result["issues"]) == 6

    def test_sentence_spot_check(self):
        sentences = [
            f"Sentence number {i} mentions elephants wandering through savanna grasslands" for i in range(10)
        ]
        html_text = ". ".join(sentences) + "."
        assert spot_check_sentences(html_text, html_text)["warnings"] == []
        result = spot_check_sentences(html_text, "nothing relevant")
        assert result["sampled"] == 2
        assert result["missing"] == 2
        assert len(result["warnings"]) == 1


class TestVerifyConversion:
    """Tests for full verification runs."""

    def _page(self, words):
        return '<div class="entry-content"><p>' + " ".join(f"alpha{i}" for i in range(words)) + "</p></div>"

    def _markdown(self, words):
        return GOOD_HEADER + "\n".join(f"alpha{i}" for i in range(words)) + "\n"

    def test_clean_conversion(self):
        report = verify_conversion(self._page(100), self._markdown(100))
        assert report.issues == ()
        assert report.warnings == ()
        assert report.passed
        assert report.exit_code == 0
        assert set(report.checks) == {
            "front_matter",
            "structure",
            "word_count",
            "headings",
            "urls",
            "images",
            "code",
            "lists",
            "sentences",
        }

    def test_word_loss_warning_and_strict_mode(self):
        report = verify_conversion(self._page(100), self._markdown(92))
        assert report.issues == ()
        assert report.passed
        assert report.exit_code == 2
        strict = verify_conversion(self._page(100), self._markdown(92), strict=True)
        assert not strict.passed
        assert strict.exit_code == 1

    def test_lost_code_is_issue(self):
        html = '<div class="entry-content"><p>Intro words.</p><pre>print("hello world")</pre></div>'
        report = verify_conversion(html, GOOD_HEADER + "Intro words.\n")
        assert "Code blocks lost: 1 in HTML, 0 in Markdown" in report.issues

    def test_structure_issue_does_not_stop_other_checks(self):
        report = verify_conversion(self._page(100), self._markdown(100) + "```\nunclosed\n")
        assert any(issue.startswith("Unclosed code block") for issue in report.issues)
        assert report.checks["word_count"]["status"] == "OK"

    def test_missing_images_warn(self):
        html = '<div class="entry-content"><p>Some words here.</p><img src="https://e.com/a.png"></div>'
        report = verify_conversion(html, GOOD_HEADER + "Some words here.\n")
        assert "Images may be missing: 1 in HTML, 0 in Markdown" in report.warnings
        assert report.checks["images"] == {
            "html": 1,
            "md": 0,
            "warnings": ["Images may be missing: 1 in HTML, 0 in Markdown"],
        }

    @pytest.mark.parametrize("html_blocks,warned", [(3, False), (4, True)])
    def test_code_block_count_tolerance(self, html_blocks, warned):
        blocks = "".join(f"<pre>print('block {i}')</pre>" for i in range(html_blocks))
        html = f'<div class="entry-content"><p>Intro words.</p>{blocks}</div>'
        markdown = GOOD_HEADER + "Intro words.\n\n```\nprint('block 0')\n```\n"
        report = verify_conversion(html, markdown)
        assert report.checks["code"]["issues"] == []
        expected = [f"Code block count mismatch: HTML={html_blocks}, MD=1"] if warned else []
        assert report.checks["code"]["warnings"] == expected

    @pytest.mark.parametrize("md_items,warned", [(8, False), (7, True)])
    def test_list_item_count_tolerance(self, md_items, warned):
        items = "".join(f"<li>Item number {i}</li>" for i in range(10))
        html = f'<div class="entry-content"><ul>{items}</ul></div>'
        markdown = GOOD_HEADER + "\n".join(f"- Item number {i}" for i in range(md_items)) + "\n"
        report = verify_conversion(html, markdown)
        expected = [f"List item count mismatch: HTML=10, MD={md_items}"] if warned else []
        assert report.checks["lists"]["warnings"] == expected

    def test_sample_page_round_trip(self, article_page):
        from article_mdx.convert import convert_html

        markdown = convert_html(article_page).markdown
        report = verify_conversion(article_page, markdown)
        assert report.issues == ()
        assert report.checks["word_count"]["status"] == "OK"
        assert report.checks["headings"]["html"] == 2
        assert report.checks["code"]["md"] == 1


class TestVerifyFiles:
    """Tests for file and batch verification."""

    def test_missing_input(self, tmp_path):
        (tmp_path / "a.md").write_text("x", encoding="utf-8")
        with pytest.raises(FileNotFoundError):
            verify_files(tmp_path / "a.html", tmp_path / "a.md")

    def test_paths_recorded(self, tmp_path):
        (tmp_path / "a.html").write_text("<p>Hello there</p>", encoding="utf-8")
        (tmp_path / "a.md").write_text(GOOD_HEADER + "Hello there\n", encoding="utf-8")
        report = verify_files(tmp_path / "a.html", tmp_path / "a.md")
        assert report.html_path == tmp_path / "a.html"
        assert "Verifying" in format_report(report)
        assert format_report(report).endswith("PASSED")

    def test_batch_records_failures(self, tmp_path):
        html_dir = tmp_path / "raw"
        md_dir = tmp_path / "md"
        html_dir.mkdir()
        md_dir.mkdir()
        (html_dir / "good.html").write_text("<p>Hello there</p>", encoding="utf-8")
        (md_dir / "good.md").write_text(GOOD_HEADER + "Hello there\n", encoding="utf-8")
        (html_dir / "orphan.html").write_text("<p>No pair</p>", encoding="utf-8")

        summary = verify_batch(html_dir, md_dir)
        assert summary.total == 2
        assert summary.passed == 1
        assert summary.failed == 1
        assert summary.exit_code == 1
        assert summary.reports["orphan"].issues[0].startswith("Could not verify")
        assert "FAILED" in format_report(summary.reports["orphan"])
