import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import yaml

DEFAULT_CONFIG: dict = {
    "model": "google",  # google | openai | anthropic
    "model_name": None,  # None = provider default
    "max_files": 20,
    "max_file_size": 100_000,  # bytes of fetched content kept per file
    "max_diff_length": 8_000,  # characters of diff kept per file
    "max_diff_lines": 500,
    "max_context_lines": 200,
    "request_timeout": 30,  # seconds per LLM call
    "concurrency_limit": 3,
    "line_review_samples": 3,
    "repo_instructions": True,
    "instructions_file": "AI_REVIEW_INSTRUCTIONS.md",
    "prompts_dir": None,  # None = use built-in templates
}


@dataclass(frozen=True)
class ReviewSettings:
    """Immutable limits handed to the orchestrator at construction.

    Built once from the merged config dict so the core never reads the
    environment or the YAML file on its own.
    """

    max_files: int = 20
    max_file_size: int = 100_000
    max_diff_length: int = 8_000
    max_diff_lines: int = 500
    max_context_lines: int = 200
    request_timeout: float = 30
    concurrency_limit: int = 3
    line_review_samples: int = 3
    repo_instructions: bool = True
    instructions_file: str = "AI_REVIEW_INSTRUCTIONS.md"
    prompts_dir: Optional[str] = None

    @classmethod
    def from_config(cls, config: dict) -> "ReviewSettings":
        merged = {**DEFAULT_CONFIG, **{k: v for k, v in config.items() if v is not None}}
        return cls(
            max_files=int(merged["max_files"]),
            max_file_size=int(merged["max_file_size"]),
            max_diff_length=int(merged["max_diff_length"]),
            max_diff_lines=int(merged["max_diff_lines"]),
            max_context_lines=int(merged["max_context_lines"]),
            request_timeout=float(merged["request_timeout"]),
            concurrency_limit=max(1, int(merged["concurrency_limit"])),
            line_review_samples=int(merged["line_review_samples"]),
            repo_instructions=bool(merged["repo_instructions"]),
            instructions_file=merged["instructions_file"],
            prompts_dir=merged.get("prompts_dir"),
        )


def load_config(config_path: str = ".prcritic.yml", cli_overrides: Optional[dict] = None) -> dict:
    """
    Load configuration by merging (in order of precedence):
      1. Built-in defaults
      2. .prcritic.yml in the current directory
      3. CLI argument overrides
    """
    config = dict(DEFAULT_CONFIG)

    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            file_config = yaml.safe_load(f) or {}
        config.update(file_config)

    if cli_overrides:
        for key, value in cli_overrides.items():
            if value is not None:
                config[key] = value

    # Resolve credentials from environment variables
    config["github_token"] = os.environ.get("GITHUB_TOKEN")
    config["anthropic_api_key"] = os.environ.get("ANTHROPIC_API_KEY")
    config["openai_api_key"] = os.environ.get("OPENAI_API_KEY")
    config["gemini_api_key"] = os.environ.get("GEMINI_API_KEY") or os.environ.get("GOOGLE_API_KEY")
    config["google_cloud_project"] = os.environ.get("GOOGLE_CLOUD_PROJECT")
    config["google_cloud_location"] = os.environ.get("GOOGLE_CLOUD_LOCATION")

    return config
