"""Prompt template loading.

Templates are plain Markdown files with ``{{key}}`` placeholders. Keys that
have no value in the substitution map are left in place verbatim.
"""

from __future__ import annotations

import re
from pathlib import Path

BUILTIN_PROMPTS_DIR = Path(__file__).parent / "prompts"

_PLACEHOLDER_RE = re.compile(r"\{\{\s*(\w+)\s*\}\}")


def render_template(template: str, values: dict) -> str:
    def _replace(match: re.Match) -> str:
        key = match.group(1)
        if key not in values:
            return match.group(0)
        value = values[key]
        return "" if value is None else str(value)

    return _PLACEHOLDER_RE.sub(_replace, template)


def load_prompt(name: str, values: dict | None = None, prompts_dir: str | None = None) -> str:
    """
    Load ``<name>.md`` and substitute ``{{key}}`` placeholders.

    A custom ``prompts_dir`` takes precedence; templates missing there fall
    back to the built-in copy.
    """
    filename = name if name.endswith(".md") else f"{name}.md"
    candidates = []
    if prompts_dir:
        candidates.append(Path(prompts_dir) / filename)
    candidates.append(BUILTIN_PROMPTS_DIR / filename)

    for path in candidates:
        if path.exists():
            return render_template(path.read_text(encoding="utf-8"), values or {})

    raise FileNotFoundError(f"Prompt template not found: {filename}")
