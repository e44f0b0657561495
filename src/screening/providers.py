"""
LLM provider chain.

Providers are capability-equivalent fallbacks: a chain tries them strictly in
order and returns the first response that yields a usable JSON object.
Network errors, timeouts, HTTP errors and unparseable responses all count as
that provider failing.

Endpoints, keys and models live on explicit ``ProviderConfig`` objects so
tests can build chains without touching the environment; only
``default_providers()`` reads API keys.
"""

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence

import requests

from src.config.secrets import PROVIDER_KEY_NAMES, get_optional_key

from .errors import ProviderError
from .llm_json import extract_json_object

logger = logging.getLogger(__name__)


KIND_OPENAI = "openai"
KIND_GEMINI = "gemini"

DEFAULT_TIMEOUT_SECONDS = 60
DEFAULT_TEMPERATURE = 0.1
DEFAULT_MAX_TOKENS = 4096

GEMINI_URL_TEMPLATE = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

# name -> (kind, url, model)
KNOWN_PROVIDERS = {
    "gemini": (KIND_GEMINI, GEMINI_URL_TEMPLATE.format(model="gemini-2.0-flash"), "gemini-2.0-flash"),
    "deepseek": (KIND_OPENAI, "https://api.deepseek.com/v1/chat/completions", "deepseek-chat"),
    "kimi": (KIND_OPENAI, "https://api.moonshot.ai/v1/chat/completions", "moonshot-v1-8k"),
}

CONSOLIDATION_ORDER = ["kimi", "deepseek"]
CLUSTERING_ORDER = ["gemini", "deepseek", "kimi"]


@dataclass(frozen=True)
class ProviderConfig:
    """Connection details for one LLM provider."""
    name: str
    url: str
    api_key: str
    model: str
    kind: str = KIND_OPENAI
    timeout: float = DEFAULT_TIMEOUT_SECONDS
    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS


def _build_request(config: ProviderConfig, prompt: str) -> Dict[str, Any]:
    if config.kind == KIND_GEMINI:
        return {
            "url": config.url,
            "params": {"key": config.api_key},
            "headers": {"Content-Type": "application/json"},
            "json": {
                "contents": [{"parts": [{"text": prompt}]}],
                "generationConfig": {
                    "temperature": config.temperature,
                    "maxOutputTokens": config.max_tokens,
                },
            },
        }
    return {
        "url": config.url,
        "headers": {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {config.api_key}",
        },
        "json": {
            "model": config.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": config.temperature,
            "max_tokens": config.max_tokens,
        },
    }


def _response_text(config: ProviderConfig, data: Dict[str, Any]) -> str:
    try:
        if config.kind == KIND_GEMINI:
            return data["candidates"][0]["content"]["parts"][0]["text"] or ""
        return data["choices"][0]["message"]["content"] or ""
    except (KeyError, IndexError, TypeError) as e:
        raise ProviderError(config.name, f"Unexpected response shape: {e}")


def call_provider(
    config: ProviderConfig,
    prompt: str,
    session: Optional[requests.Session] = None,
) -> str:
    """
    Send ``prompt`` to one provider and return the raw response text.

    Raises:
        ProviderError: On network, HTTP or response-shape failure
    """
    http = session or requests
    request = _build_request(config, prompt)
    try:
        response = http.post(timeout=config.timeout, **request)
        response.raise_for_status()
        data = response.json()
    except requests.RequestException as e:
        raise ProviderError(config.name, str(e))
    except ValueError as e:
        raise ProviderError(config.name, f"Response is not JSON: {e}")

    text = _response_text(config, data)
    if not text.strip():
        raise ProviderError(config.name, "Empty response")
    return text


class ProviderChain:
    """Try providers in order until one returns a usable JSON object."""

    def __init__(
        self,
        providers: Sequence[ProviderConfig] = (),
        session: Optional[requests.Session] = None,
        caller: Optional[Callable[[ProviderConfig, str], str]] = None,
    ):
        self.providers = list(providers)
        self.session = session
        self._caller = caller

    def __len__(self) -> int:
        return len(self.providers)

    def _call(self, provider: ProviderConfig, prompt: str) -> str:
        if self._caller is not None:
            return self._caller(provider, prompt)
        return call_provider(provider, prompt, session=self.session)

    def complete_json(
        self,
        prompt: str,
        validate: Optional[Callable[[Dict[str, Any]], bool]] = None,
        tag: str = "LLM",
    ) -> Optional[Dict[str, Any]]:
        """
        Return the first parsed JSON object any provider produces.

        Args:
            prompt: Prompt text
            validate: Optional check on the parsed object; False counts as failure
            tag: Log prefix identifying the calling stage

        Returns:
            Parsed dict, or None if every provider failed
        """
        for provider in self.providers:
            logger.info("[%s] Trying %s (%s)...", tag, provider.name, provider.model)
            try:
                text = self._call(provider, prompt)
            except Exception as e:
                logger.warning("[%s] %s failed: %s", tag, provider.name, e)
                continue

            parsed = extract_json_object(text)
            if parsed is None:
                logger.warning("[%s] %s returned no parseable JSON", tag, provider.name)
                continue
            if validate is not None and not validate(parsed):
                logger.warning("[%s] %s returned JSON with unexpected structure", tag, provider.name)
                continue

            logger.info("[%s] %s succeeded", tag, provider.name)
            return parsed

        return None


def default_providers(
    order: Optional[Sequence[str]] = None,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> List[ProviderConfig]:
    """
    Build provider configs for every known provider with an API key set.

    Args:
        order: Provider names in priority order (defaults to consolidation order)
        timeout: Per-request timeout in seconds

    Returns:
        Configs for providers whose keys are present, in ``order``
    """
    providers = []
    for name in order or CONSOLIDATION_ORDER:
        if name not in KNOWN_PROVIDERS:
            logger.warning("Unknown LLM provider %r in configuration; skipping", name)
            continue
        key = get_optional_key(PROVIDER_KEY_NAMES[name])
        if not key:
            logger.debug("No API key for %s; skipping", name)
            continue
        kind, url, model = KNOWN_PROVIDERS[name]
        providers.append(ProviderConfig(
            name=name, url=url, api_key=key, model=model, kind=kind, timeout=timeout,
        ))
    return providers
