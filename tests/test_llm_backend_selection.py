"""Tests for LLM backend selection and the Anthropic client.

Verifies that:
1. The deterministic client is the default backend
2. The anthropic backend fails closed without ANTHROPIC_API_KEY
3. Unknown backend names are rejected
4. The Anthropic client retries transient errors and stops on client errors
"""

from __future__ import annotations

import os
from unittest.mock import MagicMock, patch

import httpx
import pytest

from framescan.providers.analysis_provider import (
    FRAMESCAN_LLM_BACKEND_ENV,
    LLMAnalysisProvider,
    build_analysis_provider,
    build_llm_client,
)
from framescan.providers.llm_client import DeterministicFrameScanLLMClient


class TestBuildLLMClient:
    def test_default_is_deterministic(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv(FRAMESCAN_LLM_BACKEND_ENV, raising=False)
        assert isinstance(build_llm_client(), DeterministicFrameScanLLMClient)

    def test_anthropic_without_key_fails_closed(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(FRAMESCAN_LLM_BACKEND_ENV, "anthropic")
        with pytest.raises(ValueError, match="ANTHROPIC_API_KEY"):
            build_llm_client()

    def test_anthropic_with_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(FRAMESCAN_LLM_BACKEND_ENV, "anthropic")
        monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")

        from framescan.providers.anthropic_client import (
            DEFAULT_ANTHROPIC_MODEL,
            AnthropicLLMClient,
        )

        client = build_llm_client()
        assert isinstance(client, AnthropicLLMClient)
        assert client.model == DEFAULT_ANTHROPIC_MODEL

    def test_unknown_backend_rejected(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv(FRAMESCAN_LLM_BACKEND_ENV, "oracle")
        with pytest.raises(ValueError, match="oracle"):
            build_llm_client()

    def test_build_analysis_provider(self) -> None:
        assert isinstance(build_analysis_provider(), LLMAnalysisProvider)


class TestAnthropicClient:
    def _make_client(self, model: str | None = None) -> MagicMock:
        """Create an AnthropicLLMClient with a mocked SDK transport."""
        with patch.dict(os.environ, {"ANTHROPIC_API_KEY": "test-key"}):
            from framescan.providers.anthropic_client import AnthropicLLMClient

            client = AnthropicLLMClient(model=model)
        client._client.messages.create = MagicMock()
        return client

    @staticmethod
    def _response(text: str) -> MagicMock:
        response = MagicMock()
        response.content = [MagicMock(text=text)]
        return response

    @staticmethod
    def _status_error(status_code: int) -> Exception:
        import anthropic

        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        response = httpx.Response(status_code, request=request)
        return anthropic.APIStatusError("error", response=response, body=None)

    def test_model_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("FRAMESCAN_ANTHROPIC_MODEL", "claude-test-model")
        client = self._make_client()
        assert client.model == "claude-test-model"

    def test_call_uses_zero_temperature_and_json_system_prompt(self) -> None:
        client = self._make_client(model="claude-x")
        client._client.messages.create.return_value = self._response('{"status": "ok"}')

        assert client.call("prompt", json_mode=True) == '{"status": "ok"}'

        kwargs = client._client.messages.create.call_args.kwargs
        assert kwargs["model"] == "claude-x"
        assert kwargs["temperature"] == 0
        assert "valid JSON" in kwargs["system"]

    @patch("framescan.providers.anthropic_client._backoff")
    def test_server_errors_are_retried(self, backoff: MagicMock) -> None:
        client = self._make_client()
        client._client.messages.create.side_effect = [
            self._status_error(503),
            self._response("{}"),
        ]

        assert client.call("prompt") == "{}"
        assert client._client.messages.create.call_count == 2
        backoff.assert_called_once_with(0)

    @patch("framescan.providers.anthropic_client._backoff")
    def test_client_errors_are_not_retried(self, backoff: MagicMock) -> None:
        client = self._make_client()
        client._client.messages.create.side_effect = self._status_error(400)

        with pytest.raises(RuntimeError, match="non-retryable"):
            client.call("prompt")
        assert client._client.messages.create.call_count == 1
        backoff.assert_not_called()

    @patch("framescan.providers.anthropic_client._backoff")
    def test_gives_up_after_max_retries(self, backoff: MagicMock) -> None:
        from framescan.providers.anthropic_client import MAX_RETRIES

        client = self._make_client()
        client._client.messages.create.side_effect = self._status_error(500)

        with pytest.raises(RuntimeError, match="failed after"):
            client.call("prompt")
        assert client._client.messages.create.call_count == MAX_RETRIES + 1
