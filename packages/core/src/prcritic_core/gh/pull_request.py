"""Thin PyGithub wrappers.

Every function here is blocking. The review pipeline calls them through
``asyncio.to_thread`` so each one is a single suspension point.
"""

from __future__ import annotations

from github import Github


def get_repo(repo_name: str, token: str):
    return Github(token).get_repo(repo_name)


def get_pull(repo, pr_number: int):
    return repo.get_pull(pr_number)


def get_pull_requests(repo, state: str = "open"):
    return repo.get_pulls(state=state)


def get_diff(pr):
    return list(pr.get_files())


def get_commit_messages(pr) -> list[str]:
    return [c.commit.message for c in pr.get_commits()]


def get_file(repo, path: str, ref: str) -> tuple[str, int]:
    """Return ``(text, size_in_bytes)`` for ``path`` at ``ref``.

    Raises GithubException when the path does not exist, and IsADirectoryError
    when it names a directory.
    """
    contents = repo.get_contents(path, ref=ref)
    if isinstance(contents, list):
        raise IsADirectoryError(path)
    text = contents.decoded_content.decode("utf-8", errors="replace")
    return text, contents.size


def create_issue_comment(pr, body: str):
    return pr.create_issue_comment(body)


def get_issue_comment(pr, comment_id: int):
    return pr.get_issue_comment(comment_id)


def update_issue_comment(comment, body: str) -> None:
    comment.edit(body)


def get_head_commit(repo, pr):
    return repo.get_commit(pr.head.sha)


def create_review_comment(pr, commit, path: str, line: int, body: str, side: str = "RIGHT"):
    """Post one inline comment anchored to ``line`` of ``path``."""
    return pr.create_review_comment(body, commit, path, line=line, side=side)


def build_pr_diff(files) -> str:
    """Reassemble a multi-file unified diff from per-file patches."""
    parts = []
    for f in files:
        if not f.patch:
            continue
        parts.append(f"diff --git a/{f.filename} b/{f.filename}\n--- a/{f.filename}\n+++ b/{f.filename}\n{f.patch}")
    return "\n".join(parts)
