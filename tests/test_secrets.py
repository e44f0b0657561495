"""Tests for provider API key lookup."""

import pytest

from src.config.secrets import (
    PROVIDER_KEY_NAMES,
    MissingAPIKeyError,
    check_keys,
    get_api_key,
    get_optional_key,
)


@pytest.fixture(autouse=True)
def clear_keys(monkeypatch):
    for env_name in PROVIDER_KEY_NAMES.values():
        monkeypatch.delenv(env_name, raising=False)


class TestKeys:
    def test_optional_key_missing(self):
        assert get_optional_key("KIMI_API_KEY") == ""

    def test_optional_key_stripped(self, monkeypatch):
        monkeypatch.setenv("KIMI_API_KEY", "  sk-kimi \n")
        assert get_optional_key("KIMI_API_KEY") == "sk-kimi"

    def test_required_key_missing_raises(self):
        with pytest.raises(MissingAPIKeyError, match="DEEPSEEK_API_KEY"):
            get_api_key("DEEPSEEK_API_KEY")

    def test_required_key_present(self, monkeypatch):
        monkeypatch.setenv("DEEPSEEK_API_KEY", "sk-deep")
        assert get_api_key("DEEPSEEK_API_KEY") == "sk-deep"

    def test_check_keys(self, monkeypatch):
        monkeypatch.setenv("GEMINI_API_KEY", "g")

        assert check_keys() == {
            "GEMINI_API_KEY": "OK",
            "DEEPSEEK_API_KEY": "MISSING",
            "KIMI_API_KEY": "MISSING",
        }
