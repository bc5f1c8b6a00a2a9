"""Base provider implementing the Template Method pattern.

All providers expose the same single capability:
    generate(prompt) → _call_api()   ← only this differs per provider

``generate`` is a coroutine. It runs the blocking SDK call in a worker thread,
bounds it with the configured timeout, and maps every failure onto
LLMTimeoutError or LLMError so callers never see SDK-specific exceptions.
Subclasses must build their SDK client with the same timeout so the worker
thread itself stops once the limit passes.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod

logger = logging.getLogger(__name__)

_MAX_TOKENS = 4096
_TEMPERATURE = 0.2
_REQUEST_TIMEOUT = 30.0

_TOKEN_LIMIT_MARKERS = ("token limit", "maximum context length", "context_length_exceeded", "too many tokens")


class LLMError(Exception):
    """A single LLM call failed."""


class LLMTimeoutError(LLMError):
    """A single LLM call exceeded its timeout."""


def _is_token_limit_error(error: Exception) -> bool:
    message = str(error).lower()
    if "token" in message and "limit" in message:
        return True
    return any(marker in message for marker in _TOKEN_LIMIT_MARKERS)


class BaseProvider(ABC):
    MODEL: str = ""
    MAX_TOKENS: int = _MAX_TOKENS
    TEMPERATURE: float = _TEMPERATURE

    def __init__(self, model: str | None = None, timeout: float = _REQUEST_TIMEOUT):
        self.model = model or self.MODEL
        self.timeout = timeout

    # ------------------------------------------------------------------ #
    # Public interface                                                     #
    # ------------------------------------------------------------------ #

    async def generate(self, prompt: str, **options) -> str:
        """Send one prompt and return the model's text.

        Timeouts only abort this call; sibling calls in flight are unaffected.
        """
        try:
            text = await asyncio.wait_for(asyncio.to_thread(self._call_api, prompt, options), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.error("%s request timed out after %ss", self.__class__.__name__, self.timeout)
            raise LLMTimeoutError(
                f"LLM request timed out after {self.timeout:g}s. "
                "The diff might be too large or the service might be busy."
            ) from None
        except Exception as e:
            if _is_token_limit_error(e):
                logger.error("%s token limit exceeded: %s", self.__class__.__name__, e)
                raise LLMError("LLM token limit exceeded") from e
            logger.error("%s request failed: %s", self.__class__.__name__, e)
            raise LLMError(f"LLM request failed: {e}") from e

        if not text:
            raise LLMError(f"{self.__class__.__name__} returned an empty response")
        return text.strip()

    # ------------------------------------------------------------------ #
    # Abstract: implement in each provider                                #
    # ------------------------------------------------------------------ #

    @abstractmethod
    def _call_api(self, prompt: str, options: dict) -> str:
        """Make a single blocking API call and return the raw text response.

        Recognised options: ``model``, ``temperature``, ``max_tokens``.
        Raise on failure; generate() handles timeouts and error mapping.
        """

    def _option(self, options: dict, key: str, default):
        value = options.get(key)
        return default if value is None else value
