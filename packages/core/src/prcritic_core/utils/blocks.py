"""Widen changed lines to the enclosing code block.

This is a heuristic, not a parser. Files containing any brace are walked by
brace depth; everything else is walked by indentation. Mixed files (JSX,
Python with dict literals) can over- or under-expand.
"""

from __future__ import annotations

import re

_BLOCK_KEYWORD_RE = re.compile(r"\b(switch|function|def|class|if|for|while)\b")


def _contiguous_runs(line_numbers: list[int]) -> list[tuple[int, int]]:
    runs: list[tuple[int, int]] = []
    for n in sorted(set(line_numbers)):
        if runs and n == runs[-1][1] + 1:
            runs[-1] = (runs[-1][0], n)
        else:
            runs.append((n, n))
    return runs


def _indent_width(line: str) -> int:
    return len(line) - len(line.lstrip())


def _expand_by_braces(lines: list[str], start: int, end: int) -> tuple[int, int]:
    depth = 0
    for i in range(start, -1, -1):
        depth += lines[i].count("}") - lines[i].count("{")
        if depth < 0 or _BLOCK_KEYWORD_RE.search(lines[i]):
            start = i
            break

    depth = 0
    for i in range(end, len(lines)):
        depth += lines[i].count("{") - lines[i].count("}")
        if depth < 0:
            end = i
            break

    return start, end


def _expand_by_indentation(lines: list[str], start: int, end: int) -> tuple[int, int]:
    anchor = next((i for i in range(start, end + 1) if lines[i].strip()), None)
    if anchor is None:
        return start, end
    width = _indent_width(lines[anchor])
    if width == 0:
        # Top-level code has no enclosing block to widen to.
        return start, end

    new_start = 0
    for i in range(start - 1, -1, -1):
        if lines[i].strip() and _indent_width(lines[i]) < width:
            new_start = i + 1
            break

    new_end = len(lines) - 1
    for i in range(end + 1, len(lines)):
        if lines[i].strip() and _indent_width(lines[i]) < width:
            new_end = i - 1
            break

    return min(start, new_start), max(end, new_end)


def expand_line_numbers_to_block(content: str, line_numbers: list[int]) -> list[int]:
    """Return ``line_numbers`` widened to whole blocks, sorted and deduplicated.

    Each contiguous run is expanded on its own, so two distant changes stay
    two ranges unless their blocks touch. Line numbers outside the file are
    passed through untouched.
    """
    if not line_numbers:
        return line_numbers
    if not content:
        return sorted(set(line_numbers))

    lines = content.split("\n")
    use_braces = "{" in content or "}" in content
    expanded: set[int] = set()

    for run_start, run_end in _contiguous_runs(line_numbers):
        start, end = run_start - 1, run_end - 1
        if start < 0 or end >= len(lines):
            expanded.update(range(run_start, run_end + 1))
            continue
        if use_braces:
            start, end = _expand_by_braces(lines, start, end)
        else:
            start, end = _expand_by_indentation(lines, start, end)
        expanded.update(range(start + 1, end + 2))

    return sorted(expanded)
