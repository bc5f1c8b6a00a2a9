"""review command: run the multi-pass AI review on a pull request."""

from __future__ import annotations

import click
from rich.console import Console

from prcritic_core.gh.pull_request import get_pull_requests, get_repo
from prcritic_core.reviewer import run_review

console = Console()

MODEL_CHOICES = ["google", "openai", "anthropic"]


def pick_pull_request(this_repo) -> int | None:
    """List open PRs and prompt for one. None when there are none."""
    prs = list(get_pull_requests(this_repo))
    if not prs:
        console.print("[yellow]No open pull requests found.[/yellow]")
        return None
    console.print("\nOpen pull requests:")
    for pr in prs:
        console.print(f"  [bold]#{pr.number}[/bold]  {pr.title}")
    return click.prompt("\nEnter the pull request number", type=int)


@click.command("review")
@click.option("--repo", required=True, help="GitHub repository in owner/name format.")
@click.option(
    "--pr",
    "pr_number",
    type=int,
    default=None,
    help="Pull request number. Omit to list open PRs interactively.",
)
@click.option(
    "--model",
    type=click.Choice(MODEL_CHOICES),
    default=None,
    help="AI model provider. Overrides config file.",
)
@click.option("--model-name", default=None, help="Provider model id. Overrides config file.")
@click.option(
    "--comment-id",
    type=int,
    default=None,
    help="Reuse this existing PR comment as the progress comment.",
)
@click.pass_context
def review_cmd(
    ctx,
    repo: str,
    pr_number: int | None,
    model: str | None,
    model_name: str | None,
    comment_id: int | None,
):
    """Review a pull request with a manager → reviewer → summarizer pipeline.

    Posts a progress comment, reviews each changed file, leaves inline
    comments on specific lines and finally replaces the progress comment
    with a summary.

    \b
    Required environment variables:
      GITHUB_TOKEN         GitHub personal access token (or use gh CLI)
      GEMINI_API_KEY       Required when using --model google
      OPENAI_API_KEY       Required when using --model openai
      ANTHROPIC_API_KEY    Required when using --model anthropic
    """
    from prcritic_cli.auth import require_credentials
    from prcritic_core.config import load_config

    config_path = (ctx.obj or {}).get("config_path", ".prcritic.yml")
    config = load_config(config_path, cli_overrides={"model": model, "model_name": model_name})
    require_credentials(config)

    this_repo = get_repo(repo, token=config["github_token"])

    if pr_number is None:
        pr_number = pick_pull_request(this_repo)
        if pr_number is None:
            return

    try:
        summary = run_review(
            repo=repo,
            pr_number=pr_number,
            config=config,
            comment_id=comment_id,
            repo_obj=this_repo,
        )
    except ValueError as e:
        raise click.ClickException(str(e))

    if summary is None:
        raise click.ClickException("Review failed; the error was posted to the pull request.")

    console.print(
        f"[bold]{len(summary.reviewed_files)}[/bold] file(s) reviewed, "
        f"[bold]{len(summary.files_with_issues)}[/bold] with potential issues, "
        f"[bold]{summary.inline_comments}[/bold] inline comment(s)."
    )
    if summary.error_files:
        console.print(f"[red]{len(summary.error_files)} file(s) could not be processed.[/red]")
