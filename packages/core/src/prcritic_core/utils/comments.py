"""Shaping line-level findings into inline comments.

Line findings are produced one per sampled line, so neighbouring lines often
get the same remark. merge_line_analyses asks the model to fold those into
groups; should_post_inline_comment drops the "nothing to see here" replies.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Awaitable, Callable

from prcritic_core.prompts import load_prompt

logger = logging.getLogger(__name__)

_SKIP_PHRASES = (
    "no issues",
    "no issue",
    "no suggestions",
    "no suggestion",
    "no improvements",
    "looks good",
    "lgtm",
    "nothing to change",
    "nothing to improve",
    "no feedback",
    "good job",
    "no actionable",
    "no changes",
    "no further action",
)

_MERGED_SECTION_RE = re.compile(r"LINES:\s*([\d,\s]+?)\s*COMMENT:\s*([\s\S]*)", re.IGNORECASE)


@dataclass
class LineFinding:
    line: int
    comment: str


@dataclass
class MergedFinding:
    lines: list[int] = field(default_factory=list)
    comment: str = ""


def should_post_inline_comment(comment: str | None) -> bool:
    """Return False for empty comments and for comments that report no problem."""
    if not comment:
        return False
    text = comment.lower()
    return not any(phrase in text for phrase in _SKIP_PHRASES)


def normalize_comment(comment: str) -> str:
    """Key used to spot the same comment text posted twice in one run."""
    return " ".join(comment.lower().split())


def parse_merged_findings(raw: str, known_lines: set[int]) -> list[MergedFinding]:
    """Parse ``LINES: … / COMMENT: … / END_COMMENT`` blocks.

    Line numbers the model invents (not in ``known_lines``) are dropped, and
    so is any group left without lines or text.
    """
    merged: list[MergedFinding] = []
    for section in raw.split("END_COMMENT"):
        match = _MERGED_SECTION_RE.search(section)
        if not match:
            continue
        lines = []
        for token in match.group(1).split(","):
            token = token.strip()
            if token.isdigit() and int(token) in known_lines and int(token) not in lines:
                lines.append(int(token))
        comment = match.group(2).strip()
        if lines and comment:
            merged.append(MergedFinding(lines=lines, comment=comment))
    return merged


async def merge_line_analyses(
    findings: list[LineFinding],
    file_name: str,
    plan: str,
    generate: Callable[[str], Awaitable[str]],
    prompts_dir: str | None = None,
) -> list[MergedFinding]:
    """Consolidate overlapping line findings with one extra model call.

    Never raises: a failed call or an unparsable answer falls back to one
    group per finding.
    """
    if not findings:
        return []
    identity = [MergedFinding(lines=[f.line], comment=f.comment) for f in findings]
    if len(findings) == 1:
        return identity

    prompt = load_prompt(
        "merger",
        {
            "filename": file_name,
            "plan": plan or "No review plan available.",
            "findings": "\n".join(f"Line {f.line}: {f.comment}" for f in findings),
        },
        prompts_dir,
    )
    try:
        raw = await generate(prompt)
    except Exception as e:
        logger.warning("Merging line comments for %s failed, keeping them separate: %s", file_name, e)
        return identity

    merged = parse_merged_findings(raw or "", {f.line for f in findings})
    if not merged:
        logger.debug("No mergeable groups parsed for %s; keeping %d separate comments", file_name, len(findings))
        return identity
    return merged
