from __future__ import annotations

from prcritic_core.providers.base import BaseProvider


class GoogleProvider(BaseProvider):
    MODEL = "gemini-2.5-flash"
    TOP_P = 0.8
    TOP_K = 40

    def __init__(
        self,
        api_key: str | None = None,
        project: str | None = None,
        location: str | None = None,
        model: str | None = None,
        timeout: float = 30.0,
    ):
        try:
            from google import genai
            from google.genai import types
        except ImportError:
            raise ImportError(
                "The 'google-genai' package is required for this provider. "
                "Install it with: pip install 'prcritic[google]'"
            )
        super().__init__(model=model, timeout=timeout)
        # HttpOptions.timeout is in milliseconds.
        http_options = types.HttpOptions(timeout=int(timeout * 1000))
        if project:
            # Vertex AI; credentials come from GOOGLE_APPLICATION_CREDENTIALS.
            self.client = genai.Client(vertexai=True, project=project, location=location, http_options=http_options)
        else:
            self.client = genai.Client(api_key=api_key, http_options=http_options)

    def _call_api(self, prompt: str, options: dict) -> str:
        from google.genai import types

        response = self.client.models.generate_content(
            model=self._option(options, "model", self.model),
            contents=prompt,
            config=types.GenerateContentConfig(
                max_output_tokens=self._option(options, "max_tokens", self.MAX_TOKENS),
                temperature=self._option(options, "temperature", self.TEMPERATURE),
                top_p=self.TOP_P,
                top_k=self.TOP_K,
            ),
        )
        return response.text or self._candidate_text(response)

    @staticmethod
    def _candidate_text(response) -> str:
        """Join the text parts of the first candidate when ``.text`` is empty."""
        candidates = getattr(response, "candidates", None) or []
        if not candidates or candidates[0].content is None:
            return ""
        parts = candidates[0].content.parts or []
        return "".join(part.text for part in parts if getattr(part, "text", None))
