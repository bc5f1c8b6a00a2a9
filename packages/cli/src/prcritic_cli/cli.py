"""CLI entry point for prcritic.

Commands:
  review   run the multi-pass AI review on a pull request
  what     post a short AI summary of a pull request
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from prcritic_cli.commands.review import review_cmd
from prcritic_cli.commands.what import what_cmd

console = Console()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    # The SDKs are chatty at DEBUG; keep their output to warnings.
    for noisy in ("github", "urllib3", "httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


@click.group()
@click.version_option(
    version=importlib.metadata.version("prcritic"),
    prog_name="prcritic",
)
@click.option(
    "--config",
    "config_path",
    default=".prcritic.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PRCRITIC_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Log every pipeline stage.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """Multi-pass AI code reviewer for GitHub pull requests."""
    _configure_logging(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path


main.add_command(review_cmd)
main.add_command(what_cmd)
