"""what command: post a short AI summary of a pull request."""

from __future__ import annotations

import click
from rich.console import Console

from prcritic_cli.commands.review import MODEL_CHOICES, pick_pull_request
from prcritic_core.gh.pull_request import get_repo
from prcritic_core.reviewer import run_what

console = Console()


@click.command("what")
@click.option("--repo", required=True, help="GitHub repository in owner/name format.")
@click.option("--pr", "pr_number", type=int, default=None, help="Pull request number.")
@click.option("--model", type=click.Choice(MODEL_CHOICES), default=None, help="AI model provider.")
@click.pass_context
def what_cmd(ctx, repo: str, pr_number: int | None, model: str | None):
    """Explain what a pull request changes, as a single PR comment."""
    from prcritic_cli.auth import require_credentials
    from prcritic_core.config import load_config

    config_path = (ctx.obj or {}).get("config_path", ".prcritic.yml")
    config = load_config(config_path, cli_overrides={"model": model})
    require_credentials(config)

    this_repo = get_repo(repo, token=config["github_token"])
    if pr_number is None:
        pr_number = pick_pull_request(this_repo)
        if pr_number is None:
            return

    try:
        analysis = run_what(repo=repo, pr_number=pr_number, config=config, repo_obj=this_repo)
    except ValueError as e:
        raise click.ClickException(str(e))

    if analysis is None:
        raise click.ClickException("Summary failed; the error was posted to the pull request.")
    console.print(analysis)
