"""
Visitor Insight Gateway Tests - Backend Selection, Retry, Providers

Tests provider selection from configuration, lazy one-time backend
construction, the retry policy, and the Ollama/OpenAI adapters against
mocked transports. No network calls.

Run with: pytest tests/test_gateway.py -v
"""

import sys
import json
import os
import threading
import time
from pathlib import Path
from types import SimpleNamespace
from unittest import mock

sys.path.insert(0, str(Path(__file__).parent.parent))

import httpx
import openai
import pytest

from insight_engine.core.config import InsightConfig
from insight_engine.core.llm import MockLLMProvider, UnconfiguredProvider
from insight_engine.core.providers import (
    OllamaProvider,
    OpenAIProvider,
    ProviderGateway,
    create_provider,
    load_env_file,
)
from insight_engine.core.providers.factory import resolve_provider_name
from insight_engine.core.types import ProviderKind
from insight_engine.errors import (
    ConfigurationError,
    ProviderError,
    ProviderNotConfiguredError,
    ProviderTimeoutError,
)
from insight_engine.status import StatusReporter


# =============================================================================
# SELECTION
# =============================================================================

class TestProviderSelection:
    """Tests for create_provider / resolve_provider_name."""

    def test_nothing_configured_is_fallback(self):
        provider = create_provider(InsightConfig.from_env({}))

        assert isinstance(provider, UnconfiguredProvider)
        assert provider.kind == ProviderKind.FALLBACK
        assert provider.model == "none"

    def test_auto_detect_prefers_cloud(self):
        config = InsightConfig.from_env({
            "OPENAI_API_KEY": "sk-test",
            "OLLAMA_HOST": "http://localhost:11434",
        })
        assert resolve_provider_name(config) == "openai"

    def test_auto_detect_local(self):
        provider = create_provider(InsightConfig.from_env({"OLLAMA_HOST": "http://ollama:11434"}))

        assert isinstance(provider, OllamaProvider)
        assert provider.model == "llama3.2"

    def test_explicit_choice_wins(self):
        config = InsightConfig.from_env({
            "AI_PROVIDER": "ollama",
            "OPENAI_API_KEY": "sk-test",
            "OLLAMA_HOST": "http://ollama:11434",
        })
        assert resolve_provider_name(config) == "ollama"

    def test_aliases(self):
        assert resolve_provider_name(InsightConfig(provider="cloud")) == "openai"
        assert resolve_provider_name(InsightConfig(provider="LOCAL")) == "ollama"
        assert resolve_provider_name(InsightConfig(provider="none")) == "fallback"

    def test_selected_but_unconfigured_degrades(self):
        provider = create_provider(InsightConfig.from_env({"AI_PROVIDER": "openai"}))
        assert isinstance(provider, UnconfiguredProvider)

    def test_unknown_provider_rejected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            resolve_provider_name(InsightConfig(provider="gemini"))
        assert exc_info.value.setting == "AI_PROVIDER"

    def test_load_env_file_keeps_existing(self, tmp_path, monkeypatch):
        env_file = tmp_path / ".env"
        env_file.write_text('# comment\nINSIGHT_TEST_A="quoted"\nINSIGHT_TEST_B=new\n')
        monkeypatch.setenv("INSIGHT_TEST_B", "existing")
        monkeypatch.delenv("INSIGHT_TEST_A", raising=False)

        loaded = load_env_file(env_file)

        assert loaded == {"INSIGHT_TEST_A": "quoted"}
        assert os.environ["INSIGHT_TEST_B"] == "existing"
        monkeypatch.delenv("INSIGHT_TEST_A")


def test_config_masks_secrets():
    config = InsightConfig.from_env({"OPENAI_API_KEY": "sk-secret", "FP_SECRET_KEY": "fp"})
    data = config.to_dict()

    assert data["openai_api_key"] == "***"
    assert data["fp_secret_key"] == "***"
    assert "sk-secret" not in json.dumps(data)


# =============================================================================
# GATEWAY
# =============================================================================

class TestGateway:
    """Lazy initialisation and retry policy."""

    def test_backend_built_once(self):
        built = []

        def factory(config):
            built.append(config)
            return MockLLMProvider()

        gateway = ProviderGateway(InsightConfig.for_testing(), factory)
        assert built == []

        threads = [threading.Thread(target=lambda: gateway.provider) for _ in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        gateway.complete("system", "user")

        assert len(built) == 1

    def test_not_configured_is_not_retried(self):
        calls = []

        class CountingProvider(UnconfiguredProvider):
            def complete(self, system_prompt, user_prompt, timeout=None):
                calls.append(user_prompt)
                return super().complete(system_prompt, user_prompt, timeout)

        gateway = ProviderGateway.for_provider(CountingProvider())

        with pytest.raises(ProviderNotConfiguredError):
            gateway.complete("system", "user")
        assert len(calls) == 1

    def test_retry_budget_is_one(self):
        provider = MockLLMProvider(failures=[ProviderError("mock", str(i)) for i in range(5)])
        gateway = ProviderGateway.for_provider(provider)

        with pytest.raises(ProviderError) as exc_info:
            gateway.complete("system", "user")

        assert exc_info.value.reason == "1"
        assert len(provider.get_calls()) == 2

    def test_timeout_passed_through(self):
        provider = MockLLMProvider()
        ProviderGateway.for_provider(provider).complete("s", "u", timeout=4.5)

        assert provider.get_calls()[0]["timeout"] == 4.5

    def test_status_report(self):
        gateway = ProviderGateway.for_provider(MockLLMProvider(kind=ProviderKind.CLOUD))
        status = StatusReporter(gateway).report()

        assert status.to_dict() == {"provider": "cloud", "isAvailable": True, "model": "mock-model"}

    def test_status_for_fallback(self):
        status = StatusReporter(ProviderGateway.for_provider(UnconfiguredProvider())).report()

        assert status.to_dict() == {"provider": "fallback", "isAvailable": False, "model": "none"}

    def test_status_survives_bad_configuration(self):
        gateway = ProviderGateway(InsightConfig(provider="gemini"))
        status = StatusReporter(gateway).report()

        assert status.provider == ProviderKind.FALLBACK
        assert status.is_available is False

    def test_rejected_configuration_resolved_once(self):
        attempts = []

        def factory(config):
            attempts.append(config)
            raise ConfigurationError("AI_PROVIDER", "unknown provider 'gemini'")

        gateway = ProviderGateway(InsightConfig.for_testing(), factory)

        assert gateway.is_configured is False
        assert gateway.kind == ProviderKind.FALLBACK
        with pytest.raises(ProviderNotConfiguredError):
            gateway.complete("system", "user")

        assert len(attempts) == 1
        assert gateway.configuration_error.setting == "AI_PROVIDER"


# =============================================================================
# OLLAMA
# =============================================================================

class _TrickleStream(httpx.SyncByteStream):
    """Response body delivered one byte at a time."""

    def __init__(self, body: bytes, delay: float):
        self.body = body
        self.delay = delay

    def __iter__(self):
        for i in range(len(self.body)):
            time.sleep(self.delay)
            yield self.body[i:i + 1]


def _ollama(handler):
    return OllamaProvider("http://ollama.test:11434", transport=httpx.MockTransport(handler))


class TestOllamaProvider:
    """Ollama adapter against httpx.MockTransport."""

    def test_chat_request_and_answer(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"message": {"role": "assistant", "content": " Hi. "}})

        answer = _ollama(handler).complete("system text", "user text")

        assert answer == "Hi."
        assert seen["path"] == "/api/chat"
        assert seen["body"]["model"] == "llama3.2"
        assert seen["body"]["stream"] is False
        assert [m["role"] for m in seen["body"]["messages"]] == ["system", "user"]

    def test_error_status(self):
        provider = _ollama(lambda request: httpx.Response(500, text="model not loaded"))

        with pytest.raises(ProviderError) as exc_info:
            provider.complete("s", "u")
        assert "500" in exc_info.value.reason

    def test_empty_content(self):
        provider = _ollama(lambda request: httpx.Response(200, json={"message": {"content": "  "}}))

        with pytest.raises(ProviderError):
            provider.complete("s", "u")

    def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(ProviderTimeoutError):
            _ollama(handler).complete("s", "u", timeout=2)

    @pytest.mark.parametrize("body", [
        {"message": "just a string"},
        {"message": {"content": ["a", "b"]}},
        ["not", "an", "object"],
    ])
    def test_malformed_reply(self, body):
        provider = _ollama(lambda request: httpx.Response(200, json=body))

        with pytest.raises(ProviderError) as exc_info:
            provider.complete("s", "u")
        assert exc_info.value.reason == "malformed response"

    def test_trickling_body_hits_deadline(self):
        body = json.dumps({"message": {"content": "slow answer"}}).encode()
        provider = _ollama(lambda request: httpx.Response(200, stream=_TrickleStream(body, 0.05)))

        started = time.monotonic()
        with pytest.raises(ProviderTimeoutError):
            provider.complete("s", "u", timeout=0.3)

        # Full body takes about 2 seconds
        assert time.monotonic() - started < 1.5

    def test_ping(self):
        assert _ollama(lambda request: httpx.Response(200, json={"models": []})).ping() is True

        def refuse(request):
            raise httpx.ConnectError("refused", request=request)

        assert _ollama(refuse).ping() is False


# =============================================================================
# OPENAI
# =============================================================================

class _ChunkStream:
    """Stand-in for openai.Stream: a closable iterable of delta chunks."""

    def __init__(self, pieces, delay: float = 0.0):
        self.pieces = pieces
        self.delay = delay
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.closed = True

    def __iter__(self):
        for piece in self.pieces:
            time.sleep(self.delay)
            if piece is None:
                yield SimpleNamespace(choices=[])
            else:
                yield SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=piece))])


class TestOpenAIProvider:
    """OpenAI adapter with a mocked SDK client."""

    def _provider(self, create):
        provider = OpenAIProvider(api_key="sk-test")
        client = mock.MagicMock()
        client.chat.completions.create.side_effect = create
        provider._client = client
        return provider, client

    def test_answer(self):
        provider, client = self._provider(lambda **kwargs: _ChunkStream([" Cloud", None, " answer "]))

        assert provider.complete("s", "u") == "Cloud answer"
        kwargs = client.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-4o-mini"
        assert kwargs["timeout"] == 15.0
        assert kwargs["stream"] is True

    def test_timeout_mapped(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")

        def create(**kwargs):
            raise openai.APITimeoutError(request=request)

        provider, _ = self._provider(create)
        with pytest.raises(ProviderTimeoutError):
            provider.complete("s", "u")

    def test_api_error_mapped(self):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")

        def create(**kwargs):
            raise openai.APIConnectionError(request=request)

        provider, _ = self._provider(create)
        with pytest.raises(ProviderError):
            provider.complete("s", "u")

    def test_empty_stream(self):
        provider, _ = self._provider(lambda **kwargs: _ChunkStream([None, ""]))

        with pytest.raises(ProviderError) as exc_info:
            provider.complete("s", "u")
        assert exc_info.value.reason == "empty response"

    def test_slow_stream_hits_deadline(self):
        stream = _ChunkStream(["word "] * 40, delay=0.05)
        provider, _ = self._provider(lambda **kwargs: stream)

        started = time.monotonic()
        with pytest.raises(ProviderTimeoutError):
            provider.complete("s", "u", timeout=0.3)

        assert time.monotonic() - started < 1.5
        assert stream.closed

    def test_is_configured_requires_key(self):
        assert OpenAIProvider(api_key="").is_configured is False
