"""Tests for comment and context text helpers."""

from prcritic_core.utils.text import (
    ReferencedLines,
    add_suggestion_formatting,
    diff_anchor,
    get_surrounding_lines,
    link_line_numbers,
    remove_leading_markdown_heading,
    truncate_to_lines,
)

README_ANCHOR = "04c6e90faac2675aa89e2176d2eec7d8"


class TestGetSurroundingLines:
    def test_marks_target_line(self):
        result = get_surrounding_lines("a\nb\nc\nd\ne", [3], 1)
        assert result == "     2: b\n>    3: c\n     4: d"

    def test_gap_between_ranges_is_marked(self):
        content = "\n".join(f"l{i}" for i in range(1, 21))
        result = get_surrounding_lines(content, [2, 15], 1).split("\n")
        assert "..." in result
        assert result[result.index("...") - 1].endswith("3: l3")
        assert result[result.index("...") + 1].endswith("14: l14")

    def test_adjacent_ranges_are_not_split(self):
        content = "\n".join(f"l{i}" for i in range(1, 11))
        assert "..." not in get_surrounding_lines(content, [3, 5], 1)

    def test_clamps_to_file_bounds(self):
        result = get_surrounding_lines("a\nb", [1], 10)
        assert result == ">    1: a\n     2: b"

    def test_empty_content(self):
        assert get_surrounding_lines("", [1]) == ""


class TestLinkLineNumbers:
    def test_diff_anchor_is_md5_of_path(self):
        assert diff_anchor("README.md") == README_ANCHOR

    def test_links_referenced_line(self):
        refs = [ReferencedLines(file="README.md", lines=[3])]
        result = link_line_numbers("See line 3 for details.", refs, "o", "r", 7)
        assert result == (
            f"See [line 3](https://github.com/o/r/pull/7/files#diff-{README_ANCHOR}R3) for details."
        )

    def test_does_not_link_longer_numbers(self):
        refs = [ReferencedLines(file="README.md", lines=[3])]
        assert link_line_numbers("Check line 30.", refs, "o", "r", 7) == "Check line 30."

    def test_existing_link_is_not_relinked(self):
        refs = [ReferencedLines(file="a.py", lines=[3]), ReferencedLines(file="b.py", lines=[3])]
        result = link_line_numbers("Line 3 again", refs, "o", "r", 1)
        assert result.count("](") == 1
        assert diff_anchor("a.py") in result

    def test_no_refs_returns_text_unchanged(self):
        assert link_line_numbers("line 3", [], "o", "r", 1) == "line 3"


class TestCommentFormatting:
    def test_diff_block_becomes_suggestion(self):
        comment = "Use a constant:\n```diff\nMAX = 10\n```"
        assert add_suggestion_formatting(comment) == "Use a constant:\n```suggestion\nMAX = 10\n```"

    def test_patch_block_becomes_suggestion(self):
        assert "```suggestion\nx\n```" in add_suggestion_formatting("```patch\nx\n```")

    def test_other_blocks_untouched(self):
        comment = "```python\nx = 1\n```"
        assert add_suggestion_formatting(comment) == comment

    def test_remove_leading_heading_and_dedent(self):
        assert remove_leading_markdown_heading("# Summary\n\n  first\n  second") == "first\nsecond"

    def test_remove_heading_keeps_text_without_heading(self):
        assert remove_leading_markdown_heading("Plain text") == "Plain text"

    def test_truncate_to_lines(self):
        assert truncate_to_lines("1\n2\n3", 2) == "1\n2\n[... 1 more lines ...]"
        assert truncate_to_lines("1\n2", 2) == "1\n2"
        assert truncate_to_lines(None, 2) == ""
