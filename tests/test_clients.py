"""Tests for gridmark.llm.clients.

All tests are mock-based: the SDK client is replaced, no network calls.
"""

from __future__ import annotations

import asyncio
import base64
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from gridmark.config import LLMConfig
from gridmark.errors import BackendError, ConfigError
from gridmark.llm.base import VisionBackend
from gridmark.llm.clients import AnthropicVisionClient, OpenAIVisionClient, create_backend


@pytest.fixture(autouse=True)
def _no_env_keys(monkeypatch):
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)


def _anthropic_response(text: str) -> SimpleNamespace:
    return SimpleNamespace(
        content=[SimpleNamespace(type="text", text=text)],
        usage=SimpleNamespace(input_tokens=120, output_tokens=30),
    )


def _openai_response(text: str | None) -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=text))],
        usage=SimpleNamespace(prompt_tokens=200, completion_tokens=40),
    )


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------


class TestAnthropicVisionClient:
    def _client(self, response=None, side_effect=None) -> AnthropicVisionClient:
        client = AnthropicVisionClient(api_key="test-key")
        sdk = MagicMock()
        sdk.messages.create = AsyncMock(return_value=response, side_effect=side_effect)
        client._client = sdk
        return client

    def test_protocol(self):
        assert isinstance(AnthropicVisionClient(api_key="k"), VisionBackend)

    def test_defaults(self):
        client = AnthropicVisionClient(api_key="k")
        assert client.model == "claude-3-7-sonnet-latest"
        assert client.provider == "anthropic"
        assert client.temperature_range == (0.2, 0.8)

    def test_missing_key(self):
        with pytest.raises(ConfigError, match="ANTHROPIC_API_KEY"):
            AnthropicVisionClient()

    def test_key_from_env(self, monkeypatch):
        monkeypatch.setenv("MY_KEY", "secret")
        client = AnthropicVisionClient(api_key_env_var="MY_KEY")
        assert client._api_key == "secret"

    def test_analyze_pair(self):
        client = self._client(_anthropic_response('{"cells": ["A1"]}'))
        resp = asyncio.run(
            client.analyze_pair(b"orig", b"grid", "Find rust", temperature=0.4, system="SYS")
        )
        assert resp.text == '{"cells": ["A1"]}'
        assert resp.usage.input_tokens == 120
        assert resp.usage.output_tokens == 30

        kwargs = client._client.messages.create.call_args.kwargs
        assert kwargs["temperature"] == 0.4
        assert kwargs["system"] == "SYS"
        assert kwargs["max_tokens"] == 4096
        content = kwargs["messages"][0]["content"]
        assert "Find rust" in content[0]["text"]
        assert "second image shows the grid overlay" in content[0]["text"]
        assert content[1]["source"]["data"] == base64.b64encode(b"orig").decode()
        assert content[2]["source"]["data"] == base64.b64encode(b"grid").decode()

    def test_analyze_single_without_system(self):
        client = self._client(_anthropic_response("{}"))
        asyncio.run(client.analyze_single(b"img", "Verify", temperature=0.7))
        kwargs = client._client.messages.create.call_args.kwargs
        assert "system" not in kwargs
        assert kwargs["messages"][0]["content"][0]["text"] == "Verify"

    def test_sdk_error_wrapped(self):
        client = self._client(side_effect=RuntimeError("429 rate limit exceeded"))
        with pytest.raises(BackendError) as excinfo:
            asyncio.run(client.analyze_single(b"img", "x", temperature=0.5))
        assert excinfo.value.provider == "anthropic"
        assert excinfo.value.retryable is True

    def test_rate_limiter_timeout_skips_request(self):
        client = self._client(_anthropic_response("{}"))
        client._rate_limiter = MagicMock()
        client._rate_limiter.acquire = AsyncMock(return_value=False)
        with pytest.raises(BackendError, match="Rate limiter timeout") as excinfo:
            asyncio.run(client.analyze_single(b"img", "x", temperature=0.5))
        assert excinfo.value.retryable is True
        assert client._client.messages.create.await_count == 0

    def test_non_retryable_error(self):
        client = self._client(side_effect=RuntimeError("invalid api key"))
        with pytest.raises(BackendError) as excinfo:
            asyncio.run(client.analyze_single(b"img", "x", temperature=0.5))
        assert excinfo.value.retryable is False


# ---------------------------------------------------------------------------
# OpenAI
# ---------------------------------------------------------------------------


class TestOpenAIVisionClient:
    def _client(self, response=None, side_effect=None) -> OpenAIVisionClient:
        client = OpenAIVisionClient(api_key="test-key")
        sdk = MagicMock()
        sdk.chat.completions.create = AsyncMock(return_value=response, side_effect=side_effect)
        client._client = sdk
        return client

    def test_protocol(self):
        assert isinstance(OpenAIVisionClient(api_key="k"), VisionBackend)

    def test_defaults(self):
        client = OpenAIVisionClient(api_key="k")
        assert client.model == "gpt-4o"
        assert client.temperature_range == (0.4, 1.0)

    def test_missing_key(self):
        with pytest.raises(ConfigError, match="OPENAI_API_KEY"):
            OpenAIVisionClient()

    def test_analyze_pair(self):
        client = self._client(_openai_response('{"cells": ["B2"]}'))
        resp = asyncio.run(
            client.analyze_pair(b"orig", b"grid", "Find rust", temperature=0.6, system="SYS")
        )
        assert resp.text == '{"cells": ["B2"]}'
        assert resp.usage.input_tokens == 200
        assert resp.usage.output_tokens == 40

        kwargs = client._client.chat.completions.create.call_args.kwargs
        assert kwargs["response_format"] == {"type": "json_object"}
        assert kwargs["temperature"] == 0.6
        messages = kwargs["messages"]
        assert messages[0] == {"role": "system", "content": "SYS"}
        user = messages[1]["content"]
        assert user[0] == {"type": "text", "text": "Find rust"}
        expected = "data:image/png;base64," + base64.b64encode(b"orig").decode()
        assert user[1]["image_url"]["url"] == expected
        assert len(user) == 3

    def test_empty_content(self):
        client = self._client(_openai_response(None))
        resp = asyncio.run(client.analyze_single(b"img", "x", temperature=0.5))
        assert resp.text == ""

    def test_rate_limiter_timeout_skips_request(self):
        client = self._client(_openai_response("{}"))
        client._rate_limiter = MagicMock()
        client._rate_limiter.acquire = AsyncMock(return_value=False)
        with pytest.raises(BackendError, match=r"\[openai\] Rate limiter timeout"):
            asyncio.run(client.analyze_pair(b"a", b"b", "x", temperature=0.5))
        assert client._client.chat.completions.create.await_count == 0

    def test_sdk_error_wrapped(self):
        client = self._client(side_effect=RuntimeError("503 unavailable"))
        with pytest.raises(BackendError, match=r"\[openai\]"):
            asyncio.run(client.analyze_single(b"img", "x", temperature=0.5))


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------


class TestCreateBackend:
    def test_anthropic_default(self, monkeypatch):
        monkeypatch.setenv("ANTHROPIC_API_KEY", "k")
        backend = create_backend(LLMConfig())
        assert isinstance(backend, AnthropicVisionClient)
        assert backend.model == "claude-3-7-sonnet-latest"

    def test_openai_with_model(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "k")
        backend = create_backend(LLMConfig(provider="openai", model="gpt-4.1-mini"))
        assert isinstance(backend, OpenAIVisionClient)
        assert backend.model == "gpt-4.1-mini"

    def test_unknown_provider(self):
        with pytest.raises(ConfigError, match="Unsupported"):
            create_backend(LLMConfig(provider="gemini"))

    def test_empty_model(self, monkeypatch):
        monkeypatch.setenv("OPENAI_API_KEY", "k")
        with pytest.raises(ConfigError):
            create_backend(LLMConfig(provider="openai", model="  "))

    def test_missing_credentials(self):
        with pytest.raises(ConfigError):
            create_backend(LLMConfig(provider="openai"))
