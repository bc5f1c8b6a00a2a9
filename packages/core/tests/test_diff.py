"""Tests for unified-diff line mapping and windowed re-diffing."""

from prcritic_core.utils.diff import (
    TRUNCATION_MARKER,
    build_context_diff,
    create_two_files_patch,
    get_changed_line_numbers,
    shift_hunk_headers,
    truncate_diff,
)


def _numbered(n: int) -> list[str]:
    return [f"L{i}" for i in range(1, n + 1)]


# ---------------------------------------------------------------------------
# get_changed_line_numbers
# ---------------------------------------------------------------------------


class TestGetChangedLineNumbers:
    def test_single_hunk_addition_and_removal(self):
        patch = "@@ -1,5 +1,5 @@\n A1\n+A5\n A2\n A3\n A4\n-A5\n"
        changed = get_changed_line_numbers(patch)
        assert changed.head_lines == [2]
        assert changed.base_lines == [5]

    def test_hunk_header_resets_cursors(self):
        patch = "@@ -10,3 +12,4 @@\n ctx\n+new\n ctx\n ctx"
        changed = get_changed_line_numbers(patch)
        assert changed.head_lines == [13]
        assert changed.base_lines == []

    def test_multiple_hunks(self):
        patch = "@@ -1,2 +1,2 @@\n-a\n+b\n ctx\n@@ -20,2 +20,3 @@\n ctx\n+x\n+y\n ctx"
        changed = get_changed_line_numbers(patch)
        assert changed.head_lines == [1, 21, 22]
        assert changed.base_lines == [1]

    def test_file_headers_before_first_hunk_are_ignored(self):
        patch = "--- a/f.py\n+++ b/f.py\n@@ -1,2 +1,2 @@\n-old\n+new\n ctx"
        changed = get_changed_line_numbers(patch)
        assert changed.head_lines == [1]
        assert changed.base_lines == [1]

    def test_header_without_lengths(self):
        changed = get_changed_line_numbers("@@ -3 +3 @@\n-x\n+y")
        assert changed.head_lines == [3]
        assert changed.base_lines == [3]

    def test_empty_and_none_patch(self):
        for patch in ("", None):
            changed = get_changed_line_numbers(patch)
            assert changed.head_lines == []
            assert changed.base_lines == []


# ---------------------------------------------------------------------------
# Patch helpers
# ---------------------------------------------------------------------------


class TestPatchHelpers:
    def test_identical_files_produce_empty_patch(self):
        assert create_two_files_patch("f.py", "a\nb", "a\nb") == ""

    def test_patch_has_file_headers_and_hunk(self):
        patch = create_two_files_patch("f.py", "a\nb\nc", "a\nB\nc")
        assert patch.startswith("--- f.py\n+++ f.py\n@@ -1,3 +1,3 @@")
        assert "-b\n+B" in patch

    def test_shift_hunk_headers_keeps_lengths(self):
        patch = "--- f\n+++ f\n@@ -1,3 +1,4 @@\n x"
        assert shift_hunk_headers(patch, 10) == "--- f\n+++ f\n@@ -11,3 +11,4 @@\n x"

    def test_shift_hunk_headers_single_line_ranges(self):
        assert shift_hunk_headers("@@ -1 +1 @@\n-a\n+b", 5) == "@@ -6 +6 @@\n-a\n+b"

    def test_shift_by_zero_is_identity(self):
        patch = "@@ -1,3 +1,4 @@\n x"
        assert shift_hunk_headers(patch, 0) == patch

    def test_truncate_diff(self):
        assert truncate_diff("abcdef", 3) == "abc" + TRUNCATION_MARKER
        assert truncate_diff("abc", 3) == "abc"
        assert truncate_diff("abc", None) == "abc"


# ---------------------------------------------------------------------------
# build_context_diff
# ---------------------------------------------------------------------------


class TestBuildContextDiff:
    def test_window_headers_map_back_to_whole_file(self):
        base_lines = _numbered(100)
        head_lines = list(base_lines)
        head_lines[49] = "CHANGED"
        base, head = "\n".join(base_lines), "\n".join(head_lines)

        diff = build_context_diff(base, head, [50], [50], "f.txt")

        assert "@@ -40,21 +40,21 @@" in diff
        changed = get_changed_line_numbers(diff)
        assert changed.head_lines == [50]
        assert changed.base_lines == [50]

    def test_window_diff_matches_whole_file_diff_for_one_region(self):
        base_lines = _numbered(100)
        head_lines = list(base_lines)
        head_lines[49] = "CHANGED"
        base, head = "\n".join(base_lines), "\n".join(head_lines)

        assert build_context_diff(base, head, [50], [50], "f.txt") == create_two_files_patch("f.txt", base, head)

    def test_files_of_different_length_stay_aligned(self):
        base_lines = _numbered(100)
        head_lines = base_lines[:50] + ["N1", "N2", "N3"] + base_lines[50:]
        base, head = "\n".join(base_lines), "\n".join(head_lines)

        diff = build_context_diff(base, head, [], [51, 52, 53], "f.txt")

        assert "@@ -41,20 +41,23 @@" in diff
        changed = get_changed_line_numbers(diff)
        assert changed.head_lines == [51, 52, 53]
        assert changed.base_lines == []
        # Trailing base lines must not show up as removals.
        assert "\n-L" not in diff

    def test_empty_line_sets_diff_whole_files(self):
        base, head = "a\nb\nc", "a\nx\nc"
        assert build_context_diff(base, head, [], [], "f") == create_two_files_patch("f", base, head)

    def test_respects_max_length(self):
        base_lines = _numbered(100)
        head_lines = [f"X{i}" for i in range(1, 101)]
        diff = build_context_diff("\n".join(base_lines), "\n".join(head_lines), [1], [1], "f", max_length=50)
        assert diff.endswith(TRUNCATION_MARKER)
        assert len(diff) == 50 + len(TRUNCATION_MARKER)

    def test_change_near_start_uses_zero_offset(self):
        base = "a\nb\nc"
        head = "a\nB\nc"
        diff = build_context_diff(base, head, [2], [2], "f")
        assert "@@ -1,3 +1,3 @@" in diff


class TestChangedLineCounts:
    def test_counts_match_added_and_removed_lines(self):
        base = "\n".join(_numbered(40))
        head_lines = _numbered(40)
        head_lines[5] = "X6"
        del head_lines[20]
        head_lines.insert(30, "NEW")
        head_lines.insert(31, "NEW2")
        patch = create_two_files_patch("f", base, "\n".join(head_lines))

        body = [line for line in patch.split("\n")[2:] if not line.startswith("@@")]
        added = sum(1 for line in body if line.startswith("+"))
        removed = sum(1 for line in body if line.startswith("-"))

        changed = get_changed_line_numbers(patch)
        assert len(changed.head_lines) == added == 3
        assert len(changed.base_lines) == removed == 2
