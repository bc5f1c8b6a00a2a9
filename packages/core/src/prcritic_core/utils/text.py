from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass, field

_LEADING_HEADING_RE = re.compile(r"^\s*#{1,6}\s.*\n+")
_DIFF_FENCE_RE = re.compile(r"```(?:diff|patch)\n([\s\S]*?)```")


@dataclass
class ReferencedLines:
    """Lines of one file that received an inline comment during a run."""

    file: str
    lines: list[int] = field(default_factory=list)


def truncate_to_lines(text: str | None, max_lines: int) -> str:
    if not text:
        return ""
    lines = text.split("\n")
    if len(lines) <= max_lines:
        return text
    return "\n".join(lines[:max_lines]) + f"\n[... {len(lines) - max_lines} more lines ...]"


def get_surrounding_lines(content: str | None, line_numbers: list[int], context_lines: int = 10) -> str:
    """Render a numbered excerpt of ``content`` around ``line_numbers``.

    Target lines are prefixed with ``> ``, the rest with two spaces. A literal
    ``...`` separates non-adjacent runs.
    """
    if not content:
        return ""

    lines = content.split("\n")
    targets = set(line_numbers)
    included: set[int] = set()
    for n in line_numbers:
        start = max(1, n - context_lines)
        end = min(len(lines), n + context_lines)
        included.update(range(start - 1, end))

    result: list[str] = []
    last = None
    for idx in sorted(included):
        if last is not None and idx > last + 1:
            result.append("...")
        number = idx + 1
        prefix = "> " if number in targets else "  "
        result.append(f"{prefix}{number:>4}: {lines[idx]}")
        last = idx

    return "\n".join(result)


def remove_leading_markdown_heading(text: str | None) -> str:
    """Drop a leading ``#`` heading and the indentation shared by the remaining lines."""
    if not text:
        return ""
    body = _LEADING_HEADING_RE.sub("", text, count=1)
    lines = body.split("\n")
    indents = [len(line) - len(line.lstrip()) for line in lines if line.strip()]
    min_indent = min(indents) if indents else 0
    return "\n".join(line[min_indent:] for line in lines)


def diff_anchor(filename: str) -> str:
    """GitHub's per-file anchor on the PR "Files changed" tab."""
    return hashlib.md5(filename.encode("utf-8")).hexdigest()


def link_line_numbers(text: str, refs: list[ReferencedLines], owner: str, repo: str, pr_number: int) -> str:
    """Turn "line N" mentions into links to that line in the PR diff view."""
    if not text or not refs:
        return text
    result = text
    for ref in refs:
        anchor = diff_anchor(ref.file)
        for line in ref.lines:
            link = f"[line {line}](https://github.com/{owner}/{repo}/pull/{pr_number}/files#diff-{anchor}R{line})"
            # Skip mentions that are already inside a link label.
            pattern = re.compile(rf"(?<!\[)\b[Ll]ine\s+{line}\b(?!\])")
            result = pattern.sub(link, result)
    return result


def add_suggestion_formatting(comment: str | None) -> str:
    """Convert ```diff / ```patch blocks into GitHub ```suggestion blocks."""
    if not comment:
        return ""
    return _DIFF_FENCE_RE.sub(lambda m: "```suggestion\n" + m.group(1).strip() + "\n```", comment)
