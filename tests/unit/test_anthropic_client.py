"""
Unit tests for the Claude wrapper.

The SDK client is swapped for a stub, so nothing leaves the process.
"""

from types import SimpleNamespace

import pytest

from poolcare.infrastructure.anthropic import AnthropicConfig, AnthropicTextClient


class StubMessages:
    def __init__(self, blocks):
        self.blocks = blocks
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        return SimpleNamespace(content=self.blocks)


def make_client(blocks) -> tuple[AnthropicTextClient, StubMessages]:
    client = AnthropicTextClient(AnthropicConfig(api_key="sk-test", temperature=0.1))
    messages = StubMessages(blocks)
    client._client = SimpleNamespace(messages=messages)
    return client, messages


class TestAnthropicConfig:

    def test_requires_api_key(self):
        with pytest.raises(ValueError):
            AnthropicConfig(api_key="")

    def test_rejects_out_of_range_temperature(self):
        with pytest.raises(ValueError):
            AnthropicConfig(api_key="sk-test", temperature=1.5)


@pytest.mark.anyio
class TestComplete:

    async def test_sends_system_and_user_prompt(self):
        client, messages = make_client([SimpleNamespace(type="text", text="{}")])

        reply = await client.complete("system", "Pool Size: 1000 liters")

        assert reply == "{}"
        assert messages.kwargs["system"] == "system"
        assert messages.kwargs["temperature"] == 0.1
        assert messages.kwargs["messages"] == [{"role": "user", "content": "Pool Size: 1000 liters"}]

    async def test_joins_text_blocks(self):
        client, _ = make_client([
            SimpleNamespace(type="text", text="first"),
            SimpleNamespace(type="tool_use"),
            SimpleNamespace(type="text", text="second"),
        ])

        assert await client.complete("s", "u") == "first\nsecond"

    async def test_empty_prompt_is_rejected(self):
        client, _ = make_client([])

        with pytest.raises(ValueError):
            await client.complete("s", "")
