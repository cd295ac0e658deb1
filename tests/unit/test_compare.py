"""
Unit tests for Markdown drift comparison.
"""

import json

import pytest

from article_mdx.compare import (
    analyze_typography,
    compare_batch,
    compare_content,
    compare_files,
    find_first_difference,
    format_report,
    normalize_for_comparison,
    split_document,
)

HEADER_A = '---\ntitle: "A"\n---\n\n'
HEADER_B = '---\ntitle: "B"\nslug: "b"\n---\n\n'


class TestSplitDocument:
    """Tests for front matter splitting."""

    def test_with_header(self):
        assert split_document(HEADER_A + "Body\n") == ('title: "A"', "Body")

    def test_without_header(self):
        assert split_document("  Body only \n") == ("", "Body only")


class TestNormalization:
    """Tests for typography normalization."""

    def test_normalize_for_comparison(self):
        text = "“Quoted” it’s — a test…  done"
        assert normalize_for_comparison(text) == "\"Quoted\" it's -- a test... done"

    def test_analyze_typography_reports_only_differences(self):
        diffs = analyze_typography("It’s here", "It's here")
        assert [diff["name"] for diff in diffs] == ["curly_single_quotes", "straight_single_quotes"]
        assert diffs[0]["diff"] == -1
        assert diffs[1]["diff"] == 1

    def test_first_difference_context(self):
        first = find_first_difference("abcdef", "abcxef")
        assert first["position"] == 3
        assert first["char1"] == "d"
        assert first["char2"] == "x"
        assert first["context1"] == "abcdef"

    def test_first_difference_by_length(self):
        assert find_first_difference("abc", "abcd") == {"position": 3, "length1": 3, "length2": 4}
        assert find_first_difference("same", "same") is None


class TestCompareContent:
    """Tests for compare_content."""

    def test_identical_bodies_ignore_front_matter(self):
        result = compare_content(HEADER_A + "Same body.", HEADER_B + "Same body.\n")
        assert result.identical
        assert result.identical_after_normalization
        assert result.first_difference is None
        assert result.front_matter == {"content1_has": True, "content2_has": True}

    def test_typography_only(self):
        result = compare_content("It’s done — mostly.", "It's done -- mostly.")
        assert not result.identical
        assert result.identical_after_normalization
        assert "Status: IDENTICAL (after typography normalization)" in format_report(result)

    def test_normalized_mode_reports_identical(self):
        result = compare_content("It’s done.", "It's done.", normalize_typography=True)
        assert result.identical

    def test_different(self):
        result = compare_content("The cat sat.", HEADER_A + "The dog sat on the mat.")
        assert not result.identical
        assert not result.identical_after_normalization
        assert result.first_difference["position"] == 4
        assert result.stats["content1"]["word_count"] == 3
        assert result.stats["content2"]["word_count"] == 6
        assert result.front_matter == {"content1_has": False, "content2_has": True}
        report = format_report(result)
        assert report.startswith("Status: DIFFERENT")
        assert "Word difference: +3" in report
        assert "First difference at position 4:" in report


class TestCompareFiles:
    """Tests for file and batch comparison."""

    def test_missing_file(self, tmp_path):
        (tmp_path / "a.md").write_text("x", encoding="utf-8")
        with pytest.raises(FileNotFoundError):
            compare_files(tmp_path / "a.md", tmp_path / "b.md")

    def test_batch_records_missing_pairs(self, tmp_path):
        (tmp_path / "one.md").write_text("Alpha body", encoding="utf-8")
        (tmp_path / "one-copy.md").write_text(HEADER_A + "Alpha body", encoding="utf-8")
        (tmp_path / "two.md").write_text("It’s", encoding="utf-8")
        (tmp_path / "two-copy.md").write_text("It's", encoding="utf-8")
        mapping = tmp_path / "mapping.json"
        mapping.write_text(
            json.dumps(
                [
                    {"file1": "one.md", "file2": "one-copy.md"},
                    {"file1": "two.md", "file2": "two-copy.md", "name": "second"},
                    {"file1": "gone.md", "file2": "one.md"},
                ]
            ),
            encoding="utf-8",
        )

        summary = compare_batch(mapping)
        assert summary["total"] == 3
        assert summary["identical"] == 1
        assert summary["identical_after_normalization"] == 2
        assert summary["different"] == 1
        names = [entry["name"] for entry in summary["results"]]
        assert names == ["one.md", "second", "gone.md"]
        assert summary["results"][2]["error"].startswith("Comparison input does not exist")

    def test_malformed_mapping(self, tmp_path):
        mapping = tmp_path / "mapping.json"
        mapping.write_text('[{"file1": "only-one.md"}]', encoding="utf-8")
        with pytest.raises(ValueError):
            compare_batch(mapping)
