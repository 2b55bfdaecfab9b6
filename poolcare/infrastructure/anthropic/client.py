"""
Anthropic Claude API client wrapper.

This module provides a thin wrapper around the Anthropic SDK that:
1. Implements our TextModelClient protocol
2. Provides consistent error handling
3. Enables easy mocking for tests

The wrapper is intentionally thin. It sends a system prompt and one user
message and hands back the text; it knows nothing about pools.
"""

import logging
from dataclasses import dataclass

import anthropic
from anthropic import APIError, RateLimitError

from poolcare.core.recommendations.advisor import TextModelClient


logger = logging.getLogger(__name__)


class AnthropicClientError(Exception):
    """Raised when API calls fail."""
    pass


class RateLimitExceeded(AnthropicClientError):
    """Raised when we hit rate limits."""
    pass


@dataclass
class AnthropicConfig:
    """Configuration for the Anthropic client."""
    api_key: str
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 2048
    temperature: float = 0.2

    def __post_init__(self) -> None:
        if not self.api_key:
            raise ValueError("API key is required")
        if self.max_tokens < 1:
            raise ValueError("max_tokens must be positive")
        if not 0 <= self.temperature <= 1:
            raise ValueError("temperature must be between 0 and 1")


class AnthropicTextClient(TextModelClient):
    """
    Implementation of TextModelClient using Claude.

    One request per call. Retries are switched off so a failed call
    surfaces immediately and the caller decides what to show.
    """

    def __init__(self, config: AnthropicConfig) -> None:
        self._config = config
        self._client = anthropic.AsyncAnthropic(api_key=config.api_key, max_retries=0)

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        if not user_prompt:
            raise ValueError("A user prompt is required")

        try:
            response = await self._client.messages.create(
                model=self._config.model,
                max_tokens=self._config.max_tokens,
                temperature=self._config.temperature,
                system=system_prompt,
                messages=[
                    {"role": "user", "content": user_prompt}
                ],
            )
        except RateLimitError as e:
            logger.warning("Rate limit hit", extra={"error": str(e)})
            raise RateLimitExceeded("API rate limit exceeded. Please try again later.")
        except APIError as e:
            logger.error("API error", extra={"error": str(e)})
            raise AnthropicClientError(f"API error: {e.message}")

        return self._extract_text_response(response)

    def _extract_text_response(self, response) -> str:
        """Extract text content from API response."""
        if not response.content:
            return ""

        text_blocks = [
            block.text
            for block in response.content
            if hasattr(block, 'text')
        ]

        return "\n".join(text_blocks)

