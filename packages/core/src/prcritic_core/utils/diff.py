"""Unified-diff helpers: changed-line mapping and windowed re-diffing."""

from __future__ import annotations

import difflib
import re
from dataclasses import dataclass, field

# Lines of context kept on each side of a change, both when slicing the
# window and when asking difflib for the patch.
DIFF_CONTEXT = 10

TRUNCATION_MARKER = "\n[...truncated...]"

_HUNK_NUMBERS_RE = re.compile(r"-(\d+)(?:,(\d+))?\s+\+(\d+)(?:,(\d+))?")
_HUNK_HEADER_RE = re.compile(r"^@@ -(\d+)(,\d+)? \+(\d+)(,\d+)? @@")


@dataclass
class ChangedLineSet:
    """1-based line numbers touched by a diff, in the order they were scanned."""

    head_lines: list[int] = field(default_factory=list)
    base_lines: list[int] = field(default_factory=list)


def get_changed_line_numbers(patch: str | None) -> ChangedLineSet:
    """Map a unified diff's +/- lines to line numbers in the head and base files.

    Hunk headers reset both cursors; context lines advance both. Headers that
    do not parse leave the cursors where they were. The diff is trusted,
    not validated.
    """
    changed = ChangedLineSet()
    if not patch:
        return changed

    current_base = 0
    current_head = 0
    for line in patch.split("\n"):
        if line.startswith("@@"):
            match = _HUNK_NUMBERS_RE.search(line)
            if match:
                current_base = int(match.group(1)) - 1
                current_head = int(match.group(3)) - 1
            continue
        if line.startswith("+") and not line.startswith("+++"):
            changed.head_lines.append(current_head + 1)
            current_head += 1
        elif line.startswith("-") and not line.startswith("---"):
            changed.base_lines.append(current_base + 1)
            current_base += 1
        else:
            current_base += 1
            current_head += 1

    return changed


def truncate_diff(diff: str, max_length: int | None) -> str:
    if max_length is None or len(diff) <= max_length:
        return diff
    return diff[:max_length] + TRUNCATION_MARKER


def create_two_files_patch(filename: str, base: str, head: str, context: int = DIFF_CONTEXT) -> str:
    """Return a unified diff between two versions of one file ("" when identical)."""
    lines = difflib.unified_diff(
        base.split("\n"),
        head.split("\n"),
        fromfile=filename,
        tofile=filename,
        n=context,
        lineterm="",
    )
    return "\n".join(lines)


def shift_hunk_headers(patch: str, offset: int) -> str:
    """Add ``offset`` to the start line of both ranges in every hunk header.

    Range lengths are kept exactly as written, including when they are
    omitted for single-line ranges.
    """
    if not offset:
        return patch

    def _shift(match: re.Match) -> str:
        old_start = int(match.group(1)) + offset
        new_start = int(match.group(3)) + offset
        return f"@@ -{old_start}{match.group(2) or ''} +{new_start}{match.group(4) or ''} @@"

    return "\n".join(_HUNK_HEADER_RE.sub(_shift, line) for line in patch.split("\n"))


def build_context_diff(
    base_content: str,
    head_content: str,
    base_lines: list[int],
    head_lines: list[int],
    filename: str,
    max_length: int | None = None,
    context: int = DIFF_CONTEXT,
) -> str:
    """Re-diff only the window around the expanded change ranges.

    The window opens ``context`` lines before the first touched line and
    closes ``context`` lines after the last one. Everything before the first
    change lines up in both files, so one ``start`` offset serves both sides.
    After the last change the files only differ by a constant shift, so the
    same number of trailing lines is cut from each. Hunk headers are then
    moved back to whole-file coordinates.
    """
    base = base_content or ""
    head = head_content or ""

    if not base_lines and not head_lines:
        return truncate_diff(create_two_files_patch(filename, base, head, context), max_length)

    base_split = base.split("\n")
    head_split = head.split("\n")
    touched = list(base_lines) + list(head_lines)

    start = max(0, min(touched) - 1 - context)
    end = min(max(len(base_split), len(head_split)) - 1, max(touched) - 1 + context)

    # Lines cut from the tail of each file. Limited by every side that has
    # touched lines so no change falls outside its own window.
    trailing = max(len(base_split), len(head_split)) - 1 - end
    for split, lines in ((base_split, base_lines), (head_split, head_lines)):
        if lines:
            trailing = min(trailing, len(split) - max(lines) - context)
        trailing = min(trailing, len(split) - start)
    trailing = max(0, trailing)

    base_window = "\n".join(base_split[start : len(base_split) - trailing])
    head_window = "\n".join(head_split[start : len(head_split) - trailing])

    patch = create_two_files_patch(filename, base_window, head_window, context)
    return truncate_diff(shift_hunk_headers(patch, start), max_length)
