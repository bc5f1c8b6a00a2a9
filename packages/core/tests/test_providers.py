"""Tests for AI provider implementations.

Shared behaviour (timeouts, error mapping, empty-response handling) lives in
BaseProvider.generate and is tested once via a lightweight stub. Provider-
specific tests cover only the SDK client setup and _call_api.
"""

import time
from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from prcritic_core.providers.anthropic import AnthropicProvider
from prcritic_core.providers.base import BaseProvider, LLMError, LLMTimeoutError
from prcritic_core.providers.google import GoogleProvider
from prcritic_core.providers.openai import OpenAIProvider


class _StubProvider(BaseProvider):
    """Concrete subclass whose _call_api behaviour is injected per test."""

    MODEL = "stub-model"

    def __init__(self, respond, timeout: float = 5.0):
        super().__init__(timeout=timeout)
        self._respond = respond
        self.calls = []

    def _call_api(self, prompt: str, options: dict) -> str:
        self.calls.append((prompt, options))
        return self._respond(prompt)


def _raise(exc):
    def _respond(prompt):
        raise exc

    return _respond


# ---------------------------------------------------------------------------
# Shared behaviour, tested once through the stub, not per provider
# ---------------------------------------------------------------------------


class TestBaseProviderGenerate:
    @pytest.mark.asyncio
    async def test_returns_stripped_text(self):
        provider = _StubProvider(lambda p: "  answer\n")
        assert await provider.generate("q") == "answer"

    @pytest.mark.asyncio
    async def test_passes_prompt_and_options_through(self):
        provider = _StubProvider(lambda p: "ok")
        await provider.generate("the prompt", temperature=0.7)
        assert provider.calls == [("the prompt", {"temperature": 0.7})]

    @pytest.mark.asyncio
    async def test_empty_response_raises(self):
        provider = _StubProvider(lambda p: "")
        with pytest.raises(LLMError):
            await provider.generate("q")

    @pytest.mark.asyncio
    async def test_timeout_raises_llm_timeout_error(self):
        def _slow(prompt):
            time.sleep(0.3)
            return "late"

        provider = _StubProvider(_slow, timeout=0.05)
        with pytest.raises(LLMTimeoutError, match="timed out after 0.05s"):
            await provider.generate("q")

    def test_timeout_is_an_llm_error(self):
        assert issubclass(LLMTimeoutError, LLMError)

    @pytest.mark.asyncio
    async def test_token_limit_error_is_mapped(self):
        provider = _StubProvider(_raise(RuntimeError("This model's maximum context length is 8192 tokens")))
        with pytest.raises(LLMError, match="token limit exceeded"):
            await provider.generate("q")

    @pytest.mark.asyncio
    async def test_other_errors_are_wrapped(self):
        provider = _StubProvider(_raise(RuntimeError("503 service unavailable")))
        with pytest.raises(LLMError, match="LLM request failed: 503 service unavailable"):
            await provider.generate("q")

    @pytest.mark.asyncio
    async def test_no_retry_after_failure(self):
        provider = _StubProvider(_raise(RuntimeError("boom")))
        with pytest.raises(LLMError):
            await provider.generate("q")
        assert len(provider.calls) == 1

    def test_model_defaults_to_class_model(self):
        assert _StubProvider(lambda p: "x").model == "stub-model"


# ---------------------------------------------------------------------------
# Provider-specific: SDK setup and _call_api only
# ---------------------------------------------------------------------------


class TestAnthropicProvider:
    def test_raises_import_error_without_sdk(self):
        """AnthropicProvider.__init__ must raise if the anthropic package is absent."""
        with patch.dict("sys.modules", {"anthropic": None}):
            with pytest.raises(ImportError, match="prcritic\\[anthropic\\]"):
                AnthropicProvider(api_key="key")

    def test_model_is_claude(self):
        assert "claude" in AnthropicProvider.MODEL

    def test_model_override(self):
        with patch("anthropic.Anthropic"):
            provider = AnthropicProvider(api_key="key", model="claude-custom")
        assert provider.model == "claude-custom"

    def test_client_gets_request_timeout(self):
        with patch("anthropic.Anthropic") as mock_cls:
            AnthropicProvider(api_key="key", timeout=12.5)
        mock_cls.assert_called_once_with(api_key="key", timeout=12.5)

    def test_call_api_joins_text_blocks(self):
        from anthropic.types import TextBlock

        with patch("anthropic.Anthropic") as mock_cls:
            provider = AnthropicProvider(api_key="key")
        mock_cls.return_value.messages.create.return_value = SimpleNamespace(
            content=[TextBlock(type="text", text="first "), TextBlock(type="text", text="second")]
        )

        assert provider._call_api("prompt", {}) == "first second"
        kwargs = mock_cls.return_value.messages.create.call_args.kwargs
        assert kwargs["messages"] == [{"role": "user", "content": "prompt"}]
        assert kwargs["temperature"] == 0.2


class TestOpenAIProvider:
    def test_raises_import_error_without_sdk(self):
        """OpenAIProvider.__init__ must raise if the openai package is absent."""
        with patch("prcritic_core.providers.openai._OpenAI", None):
            with pytest.raises(ImportError, match="prcritic\\[openai\\]"):
                OpenAIProvider(api_key="key")

    def test_model_is_gpt(self):
        assert "gpt" in OpenAIProvider.MODEL

    def test_client_gets_request_timeout(self):
        with patch("prcritic_core.providers.openai._OpenAI") as mock_cls:
            OpenAIProvider(api_key="key", timeout=7.0)
        mock_cls.assert_called_once_with(api_key="key", timeout=7.0)

    def test_call_api_returns_message_content(self):
        with patch("prcritic_core.providers.openai._OpenAI") as mock_cls:
            provider = OpenAIProvider(api_key="key")
        mock_cls.return_value.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content="review text"))]
        )

        assert provider._call_api("prompt", {"max_tokens": 100}) == "review text"
        kwargs = mock_cls.return_value.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o"
        assert kwargs["max_tokens"] == 100

    def test_none_content_becomes_empty_string(self):
        with patch("prcritic_core.providers.openai._OpenAI") as mock_cls:
            provider = OpenAIProvider(api_key="key")
        mock_cls.return_value.chat.completions.create.return_value = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=None))]
        )
        assert provider._call_api("prompt", {}) == ""


class TestGoogleProvider:
    def test_raises_import_error_without_sdk(self):
        with patch.dict("sys.modules", {"google": None, "google.genai": None}):
            with pytest.raises(ImportError, match="prcritic\\[google\\]"):
                GoogleProvider(api_key="key")

    def test_model_is_gemini(self):
        assert "gemini" in GoogleProvider.MODEL

    def test_api_key_client(self):
        with patch("google.genai.Client") as mock_client:
            GoogleProvider(api_key="key")
        mock_client.assert_called_once()
        assert mock_client.call_args.kwargs["api_key"] == "key"

    def test_vertex_client_when_project_is_set(self):
        with patch("google.genai.Client") as mock_client:
            GoogleProvider(project="my-project", location="us-central1")
        kwargs = mock_client.call_args.kwargs
        assert kwargs["vertexai"] is True
        assert kwargs["project"] == "my-project"
        assert kwargs["location"] == "us-central1"

    @pytest.mark.parametrize("project", [None, "my-project"])
    def test_client_gets_request_timeout_in_ms(self, project):
        with patch("google.genai.Client") as mock_client:
            GoogleProvider(api_key="key", project=project, timeout=2.5)
        assert mock_client.call_args.kwargs["http_options"].timeout == 2500

    def test_call_api_returns_response_text(self):
        with patch("google.genai.Client") as mock_client:
            provider = GoogleProvider(api_key="key")
        mock_client.return_value.models.generate_content.return_value = MagicMock(text="gemini says hi")

        assert provider._call_api("prompt", {}) == "gemini says hi"
        kwargs = mock_client.return_value.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-2.5-flash"
        assert kwargs["contents"] == "prompt"
        assert kwargs["config"].temperature == 0.2
        assert kwargs["config"].top_k == 40

    def test_falls_back_to_candidate_parts(self):
        response = SimpleNamespace(
            text=None,
            candidates=[
                SimpleNamespace(content=SimpleNamespace(parts=[SimpleNamespace(text="a"), SimpleNamespace(text="b")]))
            ],
        )
        assert GoogleProvider._candidate_text(response) == "ab"

    def test_no_candidates_yields_empty_text(self):
        assert GoogleProvider._candidate_text(SimpleNamespace(candidates=[])) == ""
