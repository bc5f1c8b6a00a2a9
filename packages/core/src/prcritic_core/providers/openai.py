from __future__ import annotations

try:
    from openai import OpenAI as _OpenAI
except ImportError:
    _OpenAI = None  # type: ignore[assignment,misc]

from prcritic_core.providers.base import BaseProvider


class OpenAIProvider(BaseProvider):
    MODEL = "gpt-4o"

    def __init__(self, api_key: str, model: str | None = None, timeout: float = 30.0):
        if _OpenAI is None:
            raise ImportError(
                "The 'openai' package is required for this provider. " "Install it with: pip install 'prcritic[openai]'"
            )
        super().__init__(model=model, timeout=timeout)
        self.client = _OpenAI(api_key=api_key, timeout=timeout)

    def _call_api(self, prompt: str, options: dict) -> str:
        response = self.client.chat.completions.create(
            model=self._option(options, "model", self.model),
            messages=[{"role": "user", "content": prompt}],
            temperature=self._option(options, "temperature", self.TEMPERATURE),
            max_tokens=self._option(options, "max_tokens", self.MAX_TOKENS),
        )
        return response.choices[0].message.content or ""
