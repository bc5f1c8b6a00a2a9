"""Credential resolution for the CLI.

GitHub token resolution order (stops at first success):
  1. GITHUB_TOKEN environment variable (CI / explicit override)
  2. `gh auth token` (GitHub CLI session, works after `gh auth login`)
"""

from __future__ import annotations

import logging
import os
import subprocess

import click

logger = logging.getLogger(__name__)

_PROVIDER_KEYS = {
    "openai": ("openai_api_key", "OPENAI_API_KEY"),
    "anthropic": ("anthropic_api_key", "ANTHROPIC_API_KEY"),
}


def resolve_github_token() -> str | None:
    """Return a GitHub token or None if no valid source is available.

    Never raises; callers check for None and emit a UsageError.
    """
    token = os.environ.get("GITHUB_TOKEN")
    if token:
        return token

    try:
        result = subprocess.run(
            ["gh", "auth", "token"],
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            gh_token = result.stdout.strip()
            if gh_token:
                logger.debug("Resolved GitHub token via gh CLI session.")
                return gh_token
    except (FileNotFoundError, subprocess.TimeoutExpired):
        pass

    return None


def require_credentials(config: dict) -> dict:
    """Fill in the GitHub token and check the selected provider has credentials.

    Raises click.UsageError naming the missing variable.
    """
    token = config.get("github_token") or resolve_github_token()
    if not token:
        raise click.UsageError(
            "No GitHub token found. Set GITHUB_TOKEN or run `gh auth login` first.\n"
            "Create a token at https://github.com/settings/tokens"
        )
    config["github_token"] = token

    model = config["model"]
    if model == "google":
        if not config.get("gemini_api_key") and not config.get("google_cloud_project"):
            raise click.UsageError("GEMINI_API_KEY (or GOOGLE_CLOUD_PROJECT for Vertex AI) is not set.")
    elif model in _PROVIDER_KEYS:
        key, env_var = _PROVIDER_KEYS[model]
        if not config.get(key):
            raise click.UsageError(f"{env_var} environment variable is not set.")
    return config
