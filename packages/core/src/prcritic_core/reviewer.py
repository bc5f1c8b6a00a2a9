"""Core PR review orchestration.

A review run moves through a fixed sequence of stages:

    start comment → filter files → build contexts (sequential)
      → manager plan → per-file review + line review (bounded fan-out)
      → merge line findings → post inline comments → final summary
      → update start comment

Every stage after the start comment tolerates failure of its parts: a file
whose context or analysis fails is listed as an error, a failed plan or
summary degrades to placeholder text, and a failed post is logged. Anything
that still escapes is caught once at the top and turned into an error body,
so a run always ends by updating (or creating) exactly one comment.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field

from github import GithubException
from rich.console import Console

from prcritic_core.config import ReviewSettings
from prcritic_core.gh.pull_request import (
    build_pr_diff,
    create_issue_comment,
    create_review_comment,
    get_commit_messages,
    get_diff,
    get_head_commit,
    get_issue_comment,
    get_pull,
    get_repo,
    update_issue_comment,
)
from prcritic_core.prompts import load_prompt
from prcritic_core.providers.anthropic import AnthropicProvider
from prcritic_core.providers.base import BaseProvider, LLMError
from prcritic_core.providers.google import GoogleProvider
from prcritic_core.providers.openai import OpenAIProvider
from prcritic_core.utils.code import is_binary_file
from prcritic_core.utils.comments import (
    LineFinding,
    MergedFinding,
    merge_line_analyses,
    normalize_comment,
    should_post_inline_comment,
)
from prcritic_core.utils.context import FileReviewContext, process_file_diff
from prcritic_core.utils.text import (
    ReferencedLines,
    add_suggestion_formatting,
    diff_anchor,
    get_surrounding_lines,
    link_line_numbers,
    remove_leading_markdown_heading,
    truncate_to_lines,
)

console = Console()
logger = logging.getLogger(__name__)

STARTING_REVIEW_BODY = "Starting AI code review... This may take a few minutes."
ANALYZING_BODY = "Analyzing changes..."
NO_ISSUES_MARKER = "no issues found"

_LINE_SNIPPET_CONTEXT = 3


@dataclass
class FileReviewResult:
    filename: str
    status: str  # "reviewed" | "error"
    analysis: str | None = None
    error: str | None = None
    posted_comments: int = 0


@dataclass
class ReviewRunState:
    """Mutable state owned by one review run.

    Fan-out tasks share this object. They only touch it between awaits on the
    event-loop thread, so no lock is needed.
    """

    contexts: list[FileReviewContext] = field(default_factory=list)
    results: list[FileReviewResult] = field(default_factory=list)
    skipped_files: list[str] = field(default_factory=list)
    plan: str = ""
    posted_line_analyses: set[str] = field(default_factory=set)
    referenced_lines: list[ReferencedLines] = field(default_factory=list)

    def claim_comment(self, comment: str) -> bool:
        """Record ``comment`` as posted; False if the same text was already claimed."""
        key = normalize_comment(comment)
        if key in self.posted_line_analyses:
            return False
        self.posted_line_analyses.add(key)
        return True


@dataclass
class ReviewSummary:
    """What a finished run reports back to the CLI."""

    repo: str
    pr_number: int
    head_sha: str
    reviewed_files: list[str] = field(default_factory=list)
    files_with_issues: list[str] = field(default_factory=list)
    error_files: list[str] = field(default_factory=list)
    skipped_files: list[str] = field(default_factory=list)
    inline_comments: int = 0
    processing_time: float = 0.0


def get_provider(config: dict) -> BaseProvider:
    model = config["model"]
    model_name = config.get("model_name")
    timeout = float(config.get("request_timeout") or 30)
    if model == "google":
        return GoogleProvider(
            api_key=config.get("gemini_api_key"),
            project=config.get("google_cloud_project"),
            location=config.get("google_cloud_location"),
            model=model_name,
            timeout=timeout,
        )
    if model == "openai":
        return OpenAIProvider(api_key=config["openai_api_key"], model=model_name, timeout=timeout)
    if model == "anthropic":
        return AnthropicProvider(api_key=config["anthropic_api_key"], model=model_name, timeout=timeout)
    raise ValueError(f"Unknown model provider: {model!r}. Choose 'google', 'openai' or 'anthropic'.")


def select_files(files, max_files: int) -> tuple[list, list[str]]:
    """Drop removed and binary files, then cap the rest at ``max_files``.

    Returns ``(to_review, over_limit_filenames)``.
    """
    candidates = [f for f in files if f.status != "removed" and not is_binary_file(f.filename)]
    return candidates[:max_files], [f.filename for f in candidates[max_files:]]


def build_error_body(message: str) -> str:
    return (
        "## Error During Review\n\n"
        "An error occurred while processing your review request:\n\n"
        f"```\n{message}\n```\n\n"
        "Please try again later or contact support if the issue persists."
    )


class ReviewOrchestrator:
    """Runs the review pipeline for one pull request.

    The provider and settings are fixed at construction; per-run state lives
    in a fresh ReviewRunState for every call to process_review_command.
    """

    def __init__(self, repo, pr, provider: BaseProvider, settings: ReviewSettings):
        self.repo = repo
        self.pr = pr
        self.provider = provider
        self.settings = settings
        self.owner, _, self.repo_name = (repo.full_name or "").partition("/")

    # ------------------------------------------------------------------ #
    # Commands                                                             #
    # ------------------------------------------------------------------ #

    async def process_review_command(self, files, comment_id: int | None = None) -> ReviewSummary | None:
        """Review ``files`` and report the result in a single PR comment.

        With ``comment_id`` the existing comment is reused as the progress
        comment instead of posting a new one. Returns None when the run
        failed and an error body was posted instead.
        """
        started = time.monotonic()
        comment = None
        try:
            comment = await self._start_comment(comment_id)
            state = ReviewRunState()

            to_review, state.skipped_files = select_files(files, self.settings.max_files)
            if state.skipped_files:
                console.print(f"[yellow]Reviewing the first {len(to_review)} file(s); "
                              f"{len(state.skipped_files)} over the limit.[/yellow]")

            await self._build_contexts(to_review, state)
            reviewable = [ctx for ctx in state.contexts if ctx.error is None]

            if reviewable:
                state.plan = await self._manager_pass(reviewable)
                await self._review_files(reviewable, state)
                summary = await self._final_pass(state)
            else:
                summary = ""

            elapsed = time.monotonic() - started
            body = self._render_review_body(state, summary, elapsed)
            await asyncio.to_thread(update_issue_comment, comment, body)
            console.print(f"[green]Review posted for PR #{self.pr.number} in {elapsed:.1f}s.[/green]")
            return self._summarize(state, elapsed)

        except Exception as e:
            logger.error("Error in review run for PR #%s: %s", self.pr.number, e)
            await self._report_failure(comment, build_error_body(str(e) or "Unknown error occurred"))
            return None

    async def process_what_command(self, files) -> str | None:
        """Post a short natural-language summary of the whole PR."""
        comment = None
        try:
            comment = await asyncio.to_thread(create_issue_comment, self.pr, ANALYZING_BODY)
            diff = build_pr_diff(files)
            prompt = load_prompt(
                "what",
                {
                    "title": self.pr.title,
                    "author": self._author(),
                    "file_count": len(files),
                    "change_count": sum(getattr(f, "changes", 0) or 0 for f in files),
                    "diff": truncate_to_lines(diff, self.settings.max_diff_lines),
                },
                self.settings.prompts_dir,
            )
            analysis = await self.provider.generate(prompt)
            body = f"## PR Summary\n\n{analysis}\n\n_Summary generated by AI._"
            await asyncio.to_thread(update_issue_comment, comment, body)
            return analysis
        except Exception as e:
            logger.error("Error generating PR summary for #%s: %s", self.pr.number, e)
            await self._report_failure(comment, f"Error generating PR summary: {e or 'Unknown error'}")
            return None

    # ------------------------------------------------------------------ #
    # Stages                                                               #
    # ------------------------------------------------------------------ #

    async def _start_comment(self, comment_id: int | None):
        if comment_id is not None:
            comment = await asyncio.to_thread(get_issue_comment, self.pr, comment_id)
            await asyncio.to_thread(update_issue_comment, comment, STARTING_REVIEW_BODY)
            return comment
        return await asyncio.to_thread(create_issue_comment, self.pr, STARTING_REVIEW_BODY)

    async def _build_contexts(self, files, state: ReviewRunState) -> None:
        # Sequential on purpose: each file costs several content fetches.
        total = len(files)
        for i, file in enumerate(files, 1):
            console.print(f"[[{i}/{total}]] Building context: {file.filename}")
            ctx = await process_file_diff(self.repo, file, self.pr, self.settings)
            if ctx.error:
                console.print(f"  [red]{ctx.error}[/red]")
            state.contexts.append(ctx)

    async def _manager_pass(self, contexts: list[FileReviewContext]) -> str:
        try:
            messages = await asyncio.to_thread(get_commit_messages, self.pr)
        except GithubException as e:
            logger.warning("Could not fetch commit messages: %s", e)
            messages = []

        diffs = "\n\n".join(f"### {ctx.filename} ({ctx.status})\n```diff\n{ctx.diff}\n```" for ctx in contexts)
        try:
            prompt = load_prompt(
                "manager",
                {
                    "title": self.pr.title,
                    "author": self._author(),
                    "commit_messages": "\n".join(f"- {m.splitlines()[0]}" for m in messages if m) or "None",
                    "diffs": diffs,
                },
                self.settings.prompts_dir,
            )
            return await self.provider.generate(prompt)
        except Exception as e:
            logger.warning("Manager pass failed, continuing without a review plan: %s", e)
            return ""

    async def _review_files(self, contexts: list[FileReviewContext], state: ReviewRunState) -> None:
        try:
            commit = await asyncio.to_thread(get_head_commit, self.repo, self.pr)
        except GithubException as e:
            logger.warning("Could not load head commit; inline comments will be skipped: %s", e)
            commit = None

        semaphore = asyncio.Semaphore(self.settings.concurrency_limit)

        async def _bounded(ctx: FileReviewContext) -> FileReviewResult:
            async with semaphore:
                console.print(f"Reviewing: {ctx.filename}")
                return await self._review_file(ctx, state, commit)

        outcomes = await asyncio.gather(*(_bounded(ctx) for ctx in contexts), return_exceptions=True)

        reviewed = {}
        for ctx, outcome in zip(contexts, outcomes):
            if isinstance(outcome, BaseException):
                logger.error("Error processing %s: %s", ctx.filename, outcome)
                outcome = FileReviewResult(filename=ctx.filename, status="error", error=str(outcome))
            reviewed[ctx.filename] = outcome

        # Keep the original file order; assembly errors go in as-is.
        for ctx in state.contexts:
            if ctx.error is not None:
                state.results.append(FileReviewResult(filename=ctx.filename, status="error", error=ctx.error))
            else:
                state.results.append(reviewed[ctx.filename])

    async def _review_file(self, ctx: FileReviewContext, state: ReviewRunState, commit) -> FileReviewResult:
        prompt = load_prompt(
            "reviewer",
            {
                "filename": ctx.filename,
                "status": ctx.status,
                "changes": ctx.changes,
                "additions": ctx.additions,
                "deletions": ctx.deletions,
                "plan": state.plan or "No review plan available.",
                "instructions": ctx.instructions or "None provided.",
                "context": truncate_to_lines(ctx.context, self.settings.max_context_lines) or "No context available",
                "diff": truncate_to_lines(ctx.diff, self.settings.max_diff_lines),
            },
            self.settings.prompts_dir,
        )
        try:
            analysis = await self.provider.generate(prompt)
        except LLMError as e:
            return FileReviewResult(filename=ctx.filename, status="error", error=str(e))

        findings = await self._review_lines(ctx, state.plan)
        merged = await merge_line_analyses(
            findings, ctx.filename, state.plan, self.provider.generate, self.settings.prompts_dir
        )
        posted = await self._post_inline_comments(ctx, merged, state, commit)
        return FileReviewResult(filename=ctx.filename, status="reviewed", analysis=analysis, posted_comments=posted)

    async def _review_lines(self, ctx: FileReviewContext, plan: str) -> list[LineFinding]:
        findings = []
        # One line at a time; the file-level semaphore bounds the overall load.
        for line in ctx.changed_lines[: self.settings.line_review_samples]:
            prompt = load_prompt(
                "line_reviewer",
                {
                    "filename": ctx.filename,
                    "line": line,
                    "plan": plan or "No review plan available.",
                    "snippet": get_surrounding_lines(ctx.head_content, [line], _LINE_SNIPPET_CONTEXT),
                },
                self.settings.prompts_dir,
            )
            try:
                comment = await self.provider.generate(prompt)
            except LLMError as e:
                logger.warning("Line review of %s:%d failed: %s", ctx.filename, line, e)
                continue
            if comment and comment.strip():
                findings.append(LineFinding(line=line, comment=comment.strip()))
        return findings

    async def _post_inline_comments(
        self,
        ctx: FileReviewContext,
        merged: list[MergedFinding],
        state: ReviewRunState,
        commit,
    ) -> int:
        posted = 0
        for finding in merged:
            text = finding.comment.strip()
            if not should_post_inline_comment(text):
                continue
            if commit is None:
                logger.debug("No head commit; not posting comment on %s:%d", ctx.filename, finding.lines[0])
                continue
            if not state.claim_comment(text):
                logger.debug("Skipping duplicate comment on %s:%d", ctx.filename, finding.lines[0])
                continue
            try:
                await asyncio.to_thread(
                    create_review_comment,
                    self.pr,
                    commit,
                    ctx.filename,
                    finding.lines[0],
                    add_suggestion_formatting(text),
                )
            except Exception as e:
                logger.warning("Could not post inline comment on %s:%d: %s", ctx.filename, finding.lines[0], e)
                continue
            state.referenced_lines.append(ReferencedLines(file=ctx.filename, lines=list(finding.lines)))
            posted += 1
        return posted

    async def _final_pass(self, state: ReviewRunState) -> str:
        reviewed = [r for r in state.results if r.status == "reviewed" and r.analysis]
        if not reviewed:
            return ""
        analyses = "\n\n".join(f"### {r.filename}\n{r.analysis}" for r in reviewed)
        try:
            prompt = load_prompt(
                "final",
                {"title": self.pr.title, "plan": state.plan or "No review plan available.", "analyses": analyses},
                self.settings.prompts_dir,
            )
            return remove_leading_markdown_heading(await self.provider.generate(prompt))
        except Exception as e:
            logger.warning("Final summary pass failed: %s", e)
            return f"_Final summary unavailable: {e}_"

    # ------------------------------------------------------------------ #
    # Rendering                                                            #
    # ------------------------------------------------------------------ #

    def _render_review_body(self, state: ReviewRunState, summary: str, elapsed: float) -> str:
        reviewed = [r for r in state.results if r.status == "reviewed" and r.analysis]
        with_issues = [r for r in reviewed if NO_ISSUES_MARKER not in r.analysis.lower()]
        errors = [r for r in state.results if r.status == "error"]

        lines = [
            "## AI Code Review Summary\n",
            f"Processed {len(reviewed)} files in {elapsed:.1f}s",
            f"Found potential issues in {len(with_issues)} files",
            f"{len(errors)} files had errors\n",
        ]

        if summary:
            linked = link_line_numbers(summary, state.referenced_lines, self.owner, self.repo_name, self.pr.number)
            lines.append(f"### Overview\n\n{linked}\n")

        if state.referenced_lines:
            lines.append("### Inline Comments\n")
            for ref in state.referenced_lines:
                anchor = diff_anchor(ref.file)
                links = ", ".join(
                    f"[line {n}](https://github.com/{self.owner}/{self.repo_name}/pull/{self.pr.number}"
                    f"/files#diff-{anchor}R{n})"
                    for n in ref.lines
                )
                lines.append(f"- `{ref.file}`: {links}")
            lines.append("")

        if with_issues:
            lines.append("## Files with Potential Issues\n")
            for r in with_issues:
                lines.append(f"### {r.filename}\n{r.analysis}\n")
        elif reviewed:
            lines.append("No potential issues found in the reviewed files!\n")

        if errors:
            lines.append("## Processing Errors\n")
            lines.append("The following files could not be processed:")
            lines.extend(f"- {r.filename}: {r.error or 'Unknown error'}" for r in errors)
            lines.append("")

        if state.skipped_files:
            lines.append(f"_{len(state.skipped_files)} file(s) not reviewed (file limit "
                         f"{self.settings.max_files}): " + ", ".join(f"`{f}`" for f in state.skipped_files) + "_\n")

        lines.append(
            "---\n"
            f"This is an automated review powered by `{self.provider.model}`.\n"
            "It is a best-effort review and may not catch all issues.\n"
            "Always perform your own thorough review before merging.\n"
            f"Total processing time: {elapsed:.1f}s"
        )
        return "\n".join(lines)

    def _summarize(self, state: ReviewRunState, elapsed: float) -> ReviewSummary:
        reviewed = [r for r in state.results if r.status == "reviewed"]
        return ReviewSummary(
            repo=f"{self.owner}/{self.repo_name}",
            pr_number=self.pr.number,
            head_sha=self.pr.head.sha,
            reviewed_files=[r.filename for r in reviewed],
            files_with_issues=[
                r.filename for r in reviewed if r.analysis and NO_ISSUES_MARKER not in r.analysis.lower()
            ],
            error_files=[r.filename for r in state.results if r.status == "error"],
            skipped_files=list(state.skipped_files),
            inline_comments=sum(r.posted_comments for r in reviewed),
            processing_time=elapsed,
        )

    # ------------------------------------------------------------------ #
    # Helpers                                                              #
    # ------------------------------------------------------------------ #

    async def _report_failure(self, comment, body: str) -> None:
        try:
            if comment is not None:
                await asyncio.to_thread(update_issue_comment, comment, body)
            else:
                await asyncio.to_thread(create_issue_comment, self.pr, body)
        except Exception as e:
            logger.error("Failed to post error comment on PR #%s: %s", self.pr.number, e)

    def _author(self) -> str:
        user = getattr(self.pr, "user", None)
        return getattr(user, "login", None) or "Unknown"


def _load_pull(repo: str, pr_number: int, config: dict, repo_obj=None):
    this_repo = repo_obj if repo_obj is not None else get_repo(repo, token=config["github_token"])
    try:
        this_pr = get_pull(this_repo, pr_number)
    except GithubException:
        raise ValueError(f"PR #{pr_number} not found in {repo}.")
    return this_repo, this_pr


def run_review(
    repo: str,
    pr_number: int,
    config: dict,
    comment_id: int | None = None,
    repo_obj=None,
) -> ReviewSummary | None:
    """Run the full review pipeline for one PR and return its summary.

    Returns None when the run failed; the failure has already been reported
    on the PR as an error comment.
    """
    this_repo, this_pr = _load_pull(repo, pr_number, config, repo_obj)
    provider = get_provider(config)
    settings = ReviewSettings.from_config(config)
    files = get_diff(this_pr)
    console.print(f"[cyan]Reviewing {repo}#{pr_number}: {len(files)} changed file(s)[/cyan]")

    orchestrator = ReviewOrchestrator(this_repo, this_pr, provider, settings)
    return asyncio.run(orchestrator.process_review_command(files, comment_id=comment_id))


def run_what(repo: str, pr_number: int, config: dict, repo_obj=None) -> str | None:
    """Post a one-comment summary of a PR and return the generated text."""
    this_repo, this_pr = _load_pull(repo, pr_number, config, repo_obj)
    provider = get_provider(config)
    settings = ReviewSettings.from_config(config)
    files = get_diff(this_pr)

    orchestrator = ReviewOrchestrator(this_repo, this_pr, provider, settings)
    return asyncio.run(orchestrator.process_what_command(files))
