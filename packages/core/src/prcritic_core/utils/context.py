"""Per-file review context assembly.

For every changed file we build two bounded strings for the prompt: a
windowed diff and a Markdown "context" block with numbered source excerpts.
Base content is fetched at the PR's base SHA and head content at its head
SHA, so both sides describe exactly the commits being compared.

Fetch failures never raise out of this module. A missing or unreadable file
shows up as a bracketed placeholder inside the context, and the review goes on
with whatever else is available.
"""

from __future__ import annotations

import asyncio
import json
import logging
import posixpath
import time
from dataclasses import dataclass, field

from github import GithubException

from prcritic_core.config import ReviewSettings
from prcritic_core.gh.pull_request import get_file
from prcritic_core.utils.blocks import expand_line_numbers_to_block
from prcritic_core.utils.code import is_binary_file
from prcritic_core.utils.diff import build_context_diff, get_changed_line_numbers, truncate_diff
from prcritic_core.utils.text import get_surrounding_lines

logger = logging.getLogger(__name__)

BINARY_FILE_ERROR = "Binary file - skipped"
NOT_FOUND_PLACEHOLDER = "[File not found or deleted]"
DIRECTORY_PLACEHOLDER = "[Directory content not supported]"
SIZE_TRUNCATION_MARKER = "\n[...truncated due to size...]"

# Deleted files only show their head; the full text adds little to a review
# of a removal.
_DELETED_FILE_PREVIEW_LINES = 100

_SURROUNDING_CONTEXT_LINES = 10

_DEPENDENCY_SECTIONS = ("dependencies", "devDependencies", "peerDependencies", "optionalDependencies")


@dataclass
class FileReviewContext:
    """Everything the reviewer passes need to know about one changed file."""

    filename: str
    status: str
    diff: str = ""
    context: str = ""
    changed_lines: list[int] = field(default_factory=list)
    head_content: str = ""
    instructions: str = ""
    error: str | None = None
    changes: int = 0
    additions: int = 0
    deletions: int = 0
    processing_time: float = 0.0


async def get_file_content(
    repo,
    path: str,
    ref: str,
    max_size: int,
    start_line: int | None = None,
    end_line: int | None = None,
    context_lines: int = 0,
) -> str:
    """Fetch ``path`` at ``ref`` as text, or a placeholder when that is not possible.

    With ``start_line``/``end_line`` only that slice (plus ``context_lines``
    around it) is returned, with ``...`` marking cut-off ends.
    """
    try:
        text, size = await asyncio.to_thread(get_file, repo, path, ref)
    except IsADirectoryError:
        return DIRECTORY_PLACEHOLDER
    except GithubException as e:
        if e.status == 404:
            logger.info("File not found: %s at %s", path, ref)
            return NOT_FOUND_PLACEHOLDER
        logger.warning("Error getting file content for %s: %s", path, e)
        return f"[Error retrieving file: {e}]"
    except Exception as e:
        logger.warning("Error getting file content for %s: %s", path, e)
        return f"[Error retrieving file: {e}]"

    if size > max_size or len(text) > max_size:
        logger.info("File %s is too large (%d bytes), truncating content", path, size)
        return text[:max_size] + SIZE_TRUNCATION_MARKER

    if start_line is not None and end_line is not None:
        lines = text.split("\n")
        start = max(0, start_line - context_lines - 1)
        end = min(len(lines), end_line + context_lines)
        text = "\n".join(lines[start:end])
        if start > 0:
            text = "...\n" + text
        if end < len(lines):
            text += "\n..."

    return text


def _load_dependencies(raw: str) -> dict | None:
    try:
        data = json.loads(raw or "{}")
    except ValueError:
        return None
    return data if isinstance(data, dict) else None


def summarize_package_json_changes(base_json: str, head_json: str) -> str:
    """Describe dependency additions, removals and version bumps between two package.json files.

    Returns "" when either side is not valid JSON (e.g. a fetch placeholder)
    or nothing changed.
    """
    base = _load_dependencies(base_json)
    head = _load_dependencies(head_json)
    if base is None or head is None:
        return ""

    lines: list[str] = []
    for section in _DEPENDENCY_SECTIONS:
        old = base.get(section) or {}
        new = head.get(section) or {}
        added = [f"{name}@{new[name]}" for name in new if name not in old]
        removed = [f"{name}@{old[name]}" for name in old if name not in new]
        updated = [f"{name} ({old[name]} -> {new[name]})" for name in new if name in old and old[name] != new[name]]
        if added:
            lines.append(f"Added {section}: {', '.join(added)}")
        if removed:
            lines.append(f"Removed {section}: {', '.join(removed)}")
        if updated:
            lines.append(f"Updated {section}: {', '.join(updated)}")

    return "\n".join(lines)


def _dependency_section(base_json: str, head_json: str) -> str:
    summary = summarize_package_json_changes(base_json, head_json)
    return f"\n\n### Dependency Changes\n{summary}" if summary else ""


async def get_repo_instructions(repo, filename: str, ref: str, settings: ReviewSettings) -> str:
    """Collect review instructions committed to the repository.

    The instructions file next to the changed file comes first, then the
    repository-wide one. Missing files are simply skipped.
    """
    if not settings.repo_instructions:
        return ""

    folder = posixpath.dirname(filename)
    paths = []
    if folder:
        paths.append(posixpath.join(folder, settings.instructions_file))
    paths.append(settings.instructions_file)

    found = []
    for path in paths:
        try:
            text, _ = await asyncio.to_thread(get_file, repo, path, ref)
        except (GithubException, IsADirectoryError):
            continue
        if text.strip():
            found.append(text.strip())

    return "\n\n".join(found)


async def process_file_diff(repo, file, pr, settings: ReviewSettings) -> FileReviewContext:
    """Build the review context for one changed file.

    Never raises; unexpected failures are recorded in ``error``.
    """
    started = time.monotonic()
    info = FileReviewContext(
        filename=file.filename,
        status=file.status,
        changes=getattr(file, "changes", 0) or 0,
        additions=getattr(file, "additions", 0) or 0,
        deletions=getattr(file, "deletions", 0) or 0,
    )

    try:
        if is_binary_file(file.filename):
            info.error = BINARY_FILE_ERROR
            return info

        patch = file.patch or ""
        info.diff = truncate_diff(patch, settings.max_diff_length)
        is_package_json = file.filename.endswith("package.json")

        if file.status == "added":
            content = await get_file_content(repo, file.filename, pr.head.sha, settings.max_file_size)
            info.head_content = content
            info.changed_lines = get_changed_line_numbers(patch).head_lines
            info.context = f"## New File: {file.filename}\n\nFile content (truncated if large):\n```\n{content}\n```"
            if is_package_json:
                info.context += _dependency_section("{}", content)

        elif file.status == "removed":
            content = await get_file_content(
                repo,
                file.filename,
                pr.base.sha,
                settings.max_file_size,
                start_line=1,
                end_line=_DELETED_FILE_PREVIEW_LINES,
                context_lines=0,
            )
            info.context = (
                f"## Deleted File: {file.filename}\n\n"
                f"Original file content (first {_DELETED_FILE_PREVIEW_LINES} lines):\n```\n{content}\n```"
            )
            if is_package_json:
                info.context += _dependency_section(content, "{}")

        elif file.status in ("modified", "renamed"):
            changed = get_changed_line_numbers(patch)
            base_path = getattr(file, "previous_filename", None) or file.filename
            base_content = await get_file_content(repo, base_path, pr.base.sha, settings.max_file_size)
            head_content = await get_file_content(repo, file.filename, pr.head.sha, settings.max_file_size)
            info.head_content = head_content

            expanded_base = expand_line_numbers_to_block(base_content, changed.base_lines)
            expanded_head = expand_line_numbers_to_block(head_content, changed.head_lines)

            info.context = (
                f"## Modified File: {file.filename}\n\n"
                f"### Changed lines with context ({_SURROUNDING_CONTEXT_LINES} lines before/after):\n\n"
                f"#### Base ({pr.base.sha[:7]}):\n```\n"
                f"{get_surrounding_lines(base_content, expanded_base, _SURROUNDING_CONTEXT_LINES)}\n```\n\n"
                f"#### Head ({pr.head.sha[:7]}):\n```\n"
                f"{get_surrounding_lines(head_content, expanded_head, _SURROUNDING_CONTEXT_LINES)}\n```"
            )

            context_diff = build_context_diff(base_content, head_content, expanded_base, expanded_head, file.filename)
            if context_diff:
                info.diff = truncate_diff(context_diff, settings.max_diff_length)
                info.changed_lines = get_changed_line_numbers(context_diff).head_lines
            else:
                info.changed_lines = changed.head_lines

            if is_package_json:
                info.context += _dependency_section(base_content, head_content)

        info.instructions = await get_repo_instructions(repo, file.filename, pr.head.sha, settings)

        if pr.body:
            quoted = pr.body.replace("\n", "\n> ")
            info.context += f"\n\n### PR Description/Context:\n> {quoted}"

    except Exception as e:
        logger.error("Error processing diff for %s: %s", file.filename, e)
        info.error = f"Processing error: {e}"
    finally:
        info.processing_time = time.monotonic() - started

    return info
