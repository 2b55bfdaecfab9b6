"""
Anthropic Claude API client wrapper.

Implements the TextModelClient protocol from core.recommendations.advisor.
"""

from .client import (
    AnthropicClientError,
    AnthropicConfig,
    AnthropicTextClient,
    RateLimitExceeded,
)

__all__ = [
    "AnthropicClientError",
    "AnthropicConfig",
    "AnthropicTextClient",
    "RateLimitExceeded",
]
