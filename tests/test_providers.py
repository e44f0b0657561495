"""
Tests for the LLM provider chain.

HTTP is replaced with mocked sessions; the chain is exercised with a fake
caller so no network access happens.
"""

import json
from unittest.mock import MagicMock

import pytest
import requests

from src.screening.errors import ProviderError
from src.screening.providers import (
    KIND_GEMINI,
    ProviderChain,
    ProviderConfig,
    call_provider,
    default_providers,
)


OPENAI_CONFIG = ProviderConfig(
    name="deepseek", url="https://api.example.com/v1/chat/completions",
    api_key="sk-test", model="deepseek-chat",
)
GEMINI_CONFIG = ProviderConfig(
    name="gemini", url="https://gemini.example.com/generateContent",
    api_key="g-test", model="gemini-2.0-flash", kind=KIND_GEMINI,
)


def _session_returning(payload):
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    session = MagicMock()
    session.post.return_value = response
    return session


class TestCallProvider:
    def test_openai_request_and_response(self):
        session = _session_returning({"choices": [{"message": {"content": '{"a": 1}'}}]})

        text = call_provider(OPENAI_CONFIG, "prompt text", session=session)

        assert text == '{"a": 1}'
        kwargs = session.post.call_args.kwargs
        assert kwargs["url"] == OPENAI_CONFIG.url
        assert kwargs["headers"]["Authorization"] == "Bearer sk-test"
        assert kwargs["json"]["model"] == "deepseek-chat"
        assert kwargs["json"]["messages"] == [{"role": "user", "content": "prompt text"}]
        assert kwargs["json"]["temperature"] == 0.1
        assert kwargs["timeout"] == 60

    def test_gemini_request_and_response(self):
        session = _session_returning({"candidates": [{"content": {"parts": [{"text": "hello"}]}}]})

        text = call_provider(GEMINI_CONFIG, "prompt text", session=session)

        assert text == "hello"
        kwargs = session.post.call_args.kwargs
        assert kwargs["params"] == {"key": "g-test"}
        assert kwargs["json"]["contents"] == [{"parts": [{"text": "prompt text"}]}]
        assert "Authorization" not in kwargs["headers"]

    def test_http_error(self):
        session = _session_returning({})
        session.post.return_value.raise_for_status.side_effect = requests.HTTPError("429 Too Many Requests")

        with pytest.raises(ProviderError, match="deepseek"):
            call_provider(OPENAI_CONFIG, "p", session=session)

    def test_timeout(self):
        session = MagicMock()
        session.post.side_effect = requests.Timeout("timed out")

        with pytest.raises(ProviderError):
            call_provider(OPENAI_CONFIG, "p", session=session)

    def test_unexpected_shape(self):
        session = _session_returning({"error": "quota"})

        with pytest.raises(ProviderError, match="Unexpected response shape"):
            call_provider(OPENAI_CONFIG, "p", session=session)

    def test_empty_content(self):
        session = _session_returning({"choices": [{"message": {"content": ""}}]})

        with pytest.raises(ProviderError, match="Empty response"):
            call_provider(OPENAI_CONFIG, "p", session=session)

    def test_non_json_body(self):
        session = _session_returning(None)
        session.post.return_value.json.side_effect = ValueError("not json")

        with pytest.raises(ProviderError, match="not JSON"):
            call_provider(OPENAI_CONFIG, "p", session=session)


class TestProviderChain:
    """Providers are tried strictly in order."""

    def _chain(self, responses):
        calls = []

        def caller(provider, prompt):
            calls.append(provider.name)
            result = responses[provider.name]
            if isinstance(result, Exception):
                raise result
            return result

        providers = [
            ProviderConfig(name=name, url="u", api_key="k", model="m")
            for name in responses
        ]
        return ProviderChain(providers, caller=caller), calls

    def test_first_success_wins(self):
        chain, calls = self._chain({"kimi": '{"headline": "k"}', "deepseek": '{"headline": "d"}'})

        assert chain.complete_json("p") == {"headline": "k"}
        assert calls == ["kimi"]

    def test_falls_through_on_exception(self):
        chain, calls = self._chain({
            "kimi": ProviderError("kimi", "timeout"),
            "deepseek": '```json\n{"headline": "d"}\n```',
        })

        assert chain.complete_json("p") == {"headline": "d"}
        assert calls == ["kimi", "deepseek"]

    def test_falls_through_on_unparseable(self):
        chain, calls = self._chain({"kimi": "Sorry, I cannot help.", "deepseek": '{"headline": "d"}'})

        assert chain.complete_json("p") == {"headline": "d"}
        assert calls == ["kimi", "deepseek"]

    def test_falls_through_on_failed_validation(self):
        chain, calls = self._chain({"kimi": '{"other": 1}', "deepseek": '{"headline": "d"}'})

        result = chain.complete_json("p", validate=lambda d: "headline" in d)

        assert result == {"headline": "d"}
        assert calls == ["kimi", "deepseek"]

    def test_all_fail_returns_none(self):
        chain, calls = self._chain({
            "kimi": ProviderError("kimi", "down"),
            "deepseek": "not json",
        })

        assert chain.complete_json("p") is None
        assert calls == ["kimi", "deepseek"]

    def test_empty_chain(self):
        chain = ProviderChain()
        assert len(chain) == 0
        assert chain.complete_json("p") is None

    def test_uses_session_without_caller(self):
        session = _session_returning({"choices": [{"message": {"content": json.dumps({"x": 1})}}]})
        chain = ProviderChain([OPENAI_CONFIG], session=session)

        assert chain.complete_json("p") == {"x": 1}
        session.post.assert_called_once()


class TestDefaultProviders:
    @pytest.fixture(autouse=True)
    def _clear_keys(self, monkeypatch):
        for name in ("GEMINI_API_KEY", "DEEPSEEK_API_KEY", "KIMI_API_KEY"):
            monkeypatch.delenv(name, raising=False)

    def test_no_keys(self):
        assert default_providers() == []

    def test_skips_missing_keys(self, monkeypatch):
        monkeypatch.setenv("DEEPSEEK_API_KEY", "sk-deep")

        providers = default_providers(["kimi", "deepseek"])

        assert [p.name for p in providers] == ["deepseek"]
        assert providers[0].api_key == "sk-deep"
        assert providers[0].model == "deepseek-chat"

    def test_respects_order_and_timeout(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "g")
        monkeypatch.setenv("KIMI_API_KEY", "k")

        providers = default_providers(["kimi", "gemini"], timeout=15)

        assert [p.name for p in providers] == ["kimi", "gemini"]
        assert providers[1].kind == KIND_GEMINI
        assert all(p.timeout == 15 for p in providers)

    def test_unknown_provider_skipped(self, monkeypatch):
        monkeypatch.setenv("KIMI_API_KEY", "k")
        assert [p.name for p in default_providers(["openai", "kimi"])] == ["kimi"]
