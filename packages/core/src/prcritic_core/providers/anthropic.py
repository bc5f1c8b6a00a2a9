from __future__ import annotations

from prcritic_core.providers.base import BaseProvider


class AnthropicProvider(BaseProvider):
    MODEL = "claude-sonnet-4-20250514"

    def __init__(self, api_key: str, model: str | None = None, timeout: float = 30.0):
        try:
            from anthropic import Anthropic
        except ImportError:
            raise ImportError(
                "The 'anthropic' package is required for this provider. "
                "Install it with: pip install 'prcritic[anthropic]'"
            )
        super().__init__(model=model, timeout=timeout)
        self.client = Anthropic(api_key=api_key, timeout=timeout)

    def _call_api(self, prompt: str, options: dict) -> str:
        # Imported inside the method because the anthropic package is optional;
        # __init__ already validated it is installed before we reach here.
        from anthropic.types import TextBlock

        response = self.client.messages.create(
            model=self._option(options, "model", self.model),
            messages=[{"role": "user", "content": prompt}],
            temperature=self._option(options, "temperature", self.TEMPERATURE),
            max_tokens=self._option(options, "max_tokens", self.MAX_TOKENS),
        )
        text_blocks = [block.text for block in response.content if isinstance(block, TextBlock)]
        return "".join(text_blocks).strip()
