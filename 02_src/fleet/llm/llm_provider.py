"""LLM Provider implementation using Anthropic Claude API."""

import os
from typing import Protocol

import anthropic

from ..config import DEFAULT_MODEL
from ..errors import ModelCallFailure


class ILLMProvider(Protocol):
    """Abstraction for model completion."""

    async def complete(
        self,
        prompt: str,
        model: str | None = None,
        system: str | None = None,
        max_tokens: int = 1024,
    ) -> str:
        """Generate a completion for a single prompt."""
        ...


class LLMProvider:
    """Anthropic Claude API provider."""

    def __init__(self, api_key: str | None = None, default_model: str | None = None):
        self._api_key = api_key or os.getenv("ANTHROPIC_API_KEY")
        if not self._api_key:
            raise ValueError("ANTHROPIC_API_KEY environment variable not set")

        self._default_model = default_model or os.getenv(
            "FLEET_DEFAULT_MODEL", DEFAULT_MODEL
        )
        self._client = anthropic.AsyncAnthropic(api_key=self._api_key)

    async def complete(
        self,
        prompt: str,
        model: str | None = None,
        system: str | None = None,
        max_tokens: int = 1024,
    ) -> str:
        """Generate completion using Claude API."""
        kwargs = {
            "model": model or self._default_model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": max_tokens,
        }
        if system:
            kwargs["system"] = system

        try:
            response = await self._client.messages.create(**kwargs)
        except Exception as e:
            # Re-raise for handling by caller
            raise ModelCallFailure(f"LLM API error: {e}") from e

        text = "".join(
            block.text for block in response.content if hasattr(block, "text")
        )
        if not text:
            raise ModelCallFailure("LLM API returned an empty response")
        return text

    async def close(self) -> None:
        await self._client.close()
