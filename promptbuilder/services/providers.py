"""
Prompt Builder — LLM Providers
One client per supported vendor behind a common interface.

Providers are a closed set (ProviderName); callers never branch on vendor
strings themselves, they resolve a name once and talk to an LLMProvider.
"""

import logging
from enum import Enum
from typing import Any, Dict, List, Optional

import httpx

from promptbuilder.core.config import settings

logger = logging.getLogger(__name__)


class ProviderName(str, Enum):
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"

    @property
    def label(self) -> str:
        return {"openai": "OpenAI", "anthropic": "Anthropic", "google": "Google"}[self.value]


class UnsupportedProviderError(ValueError):
    def __init__(self, provider: Optional[str]):
        super().__init__(f"Unsupported provider: {provider}")
        self.provider = provider


class ProviderNotConfiguredError(RuntimeError):
    def __init__(self, provider: ProviderName):
        super().__init__(f"{provider.label} API key not configured on server.")
        self.provider = provider


class ProviderError(RuntimeError):
    """An upstream LLM API call failed."""

    def __init__(self, provider: ProviderName, status_code: int, message: str):
        super().__init__(f"{provider.label} API error ({status_code}): {message}")
        self.provider = provider
        self.status_code = status_code
        self.message = message


def parse_provider(name: Optional[str]) -> ProviderName:
    try:
        return ProviderName((name or "").strip().lower())
    except ValueError:
        raise UnsupportedProviderError(name)


OPENAI_EXCLUDED_MARKERS = ("vision", "embed", "instruct", "0125", "1106", "0613", "0314")

ANTHROPIC_DEFAULT_MODELS = sorted([
    "claude-3-opus-20240229",
    "claude-3-sonnet-20240229",
    "claude-3-haiku-20240307",
    "claude-2.1",
    "claude-instant-1.2",
])

GOOGLE_DEFAULT_MODELS = sorted([
    "gemini-pro",
    "gemini-1.0-pro",
    "gemini-1.5-pro-latest",
    "gemini-1.5-flash-latest",
])


def filter_openai_models(model_ids: List[str]) -> List[str]:
    return sorted(
        m for m in model_ids
        if "gpt" in m and not any(marker in m for marker in OPENAI_EXCLUDED_MARKERS)
    )


def filter_anthropic_models(model_ids: List[str]) -> List[str]:
    return sorted(m for m in model_ids if m and "claude" in m.lower())


def filter_google_models(model_names: List[str]) -> List[str]:
    ids = []
    for name in model_names:
        parts = (name or "").split("/")
        if len(parts) > 1 and ("gemini" in parts[1] or "text-bison" in parts[1]):
            ids.append(parts[1])
    return sorted(ids)


class LLMProvider:
    """Base class: subclasses implement the vendor wire format."""

    name: ProviderName

    def __init__(self, api_key: str, base_url: str, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = api_key.strip()
        self.base_url = base_url.rstrip("/")
        self._transport = transport

    @property
    def default_model(self) -> str:
        raise NotImplementedError

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=settings.PROVIDER_TIMEOUT_SECONDS, transport=self._transport)

    async def _request(self, method: str, url: str, **kwargs) -> Dict[str, Any]:
        try:
            async with self._client() as client:
                response = await client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            logger.error(f"{self.name.label} request failed: {e}")
            raise ProviderError(self.name, 0, str(e) or e.__class__.__name__)

        if response.status_code >= 300:
            raise ProviderError(self.name, response.status_code, self._error_message(response))
        return response.json()

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return response.text or response.reason_phrase
        error = body.get("error") if isinstance(body, dict) else None
        if isinstance(error, dict):
            return error.get("message") or error.get("type") or response.text
        if isinstance(error, str):
            return error
        return response.text

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        model: Optional[str] = None,
        temperature: float = 0.5,
        max_tokens: int = 1000,
        json_mode: bool = False,
    ) -> Optional[str]:
        raise NotImplementedError

    async def list_models(self) -> List[str]:
        raise NotImplementedError


class OpenAIProvider(LLMProvider):
    name = ProviderName.OPENAI

    def __init__(self, api_key: str, base_url: Optional[str] = None, transport=None):
        super().__init__(api_key, base_url or settings.OPENAI_BASE_URL, transport)

    @property
    def default_model(self) -> str:
        return settings.DEFAULT_OPENAI_MODEL

    @property
    def _headers(self) -> dict:
        return {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

    async def complete(self, system_prompt, user_prompt, model=None, temperature=0.5, max_tokens=1000, json_mode=False):
        body = {
            "model": model or self.default_model,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            "temperature": temperature,
            "max_tokens": max_tokens,
        }
        if json_mode:
            body["response_format"] = {"type": "json_object"}

        data = await self._request("POST", f"{self.base_url}/chat/completions", headers=self._headers, json=body)
        choices = data.get("choices") or []
        content = (choices[0].get("message") or {}).get("content") if choices else None
        return content.strip() if content else None

    async def list_models(self) -> List[str]:
        data = await self._request("GET", f"{self.base_url}/models", headers=self._headers)
        return filter_openai_models([m.get("id", "") for m in data.get("data") or []])


class AnthropicProvider(LLMProvider):
    name = ProviderName.ANTHROPIC

    def __init__(self, api_key: str, base_url: Optional[str] = None, transport=None):
        super().__init__(api_key, base_url or settings.ANTHROPIC_BASE_URL, transport)

    @property
    def default_model(self) -> str:
        return settings.DEFAULT_ANTHROPIC_MODEL

    @property
    def _headers(self) -> dict:
        return {
            "x-api-key": self.api_key,
            "anthropic-version": settings.ANTHROPIC_VERSION,
            "Content-Type": "application/json",
        }

    async def complete(self, system_prompt, user_prompt, model=None, temperature=0.5, max_tokens=1024, json_mode=False):
        body = {
            "model": model or self.default_model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_prompt}],
        }
        data = await self._request("POST", f"{self.base_url}/messages", headers=self._headers, json=body)
        content = data.get("content") or []
        if content and content[0].get("type") == "text":
            return content[0].get("text", "").strip() or None
        logger.warning(f"Unexpected Anthropic response structure: {content}")
        return None

    async def list_models(self) -> List[str]:
        data = await self._request("GET", f"{self.base_url}/models", headers=self._headers)
        models = data.get("data") if isinstance(data, dict) else data
        ids = filter_anthropic_models([m.get("id") or m.get("name") for m in models or []])
        return ids or list(ANTHROPIC_DEFAULT_MODELS)


class GoogleProvider(LLMProvider):
    name = ProviderName.GOOGLE

    def __init__(self, api_key: str, base_url: Optional[str] = None, transport=None):
        super().__init__(api_key, base_url or settings.GOOGLE_BASE_URL, transport)

    @property
    def default_model(self) -> str:
        return settings.DEFAULT_GOOGLE_MODEL

    async def complete(self, system_prompt, user_prompt, model=None, temperature=0.5, max_tokens=1000, json_mode=False):
        generation_config = {"temperature": temperature, "maxOutputTokens": max_tokens}
        if json_mode:
            generation_config["responseMimeType"] = "application/json"
        body = {
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "contents": [{"role": "user", "parts": [{"text": user_prompt}]}],
            "generationConfig": generation_config,
        }
        data = await self._request(
            "POST",
            f"{self.base_url}/models/{model or self.default_model}:generateContent",
            params={"key": self.api_key},
            json=body,
        )
        candidates = data.get("candidates") or []
        if not candidates:
            return None
        parts = (candidates[0].get("content") or {}).get("parts") or []
        text = "".join(p.get("text", "") for p in parts).strip()
        return text or None

    async def list_models(self) -> List[str]:
        try:
            data = await self._request("GET", f"{self.base_url}/models", params={"key": self.api_key})
        except ProviderError as e:
            # Key problems must still surface (validation relies on it)
            if e.status_code in (400, 401, 403):
                raise
            logger.error(f"Google model listing failed, using defaults: {e}")
            return list(GOOGLE_DEFAULT_MODELS)
        ids = filter_google_models([m.get("name", "") for m in data.get("models") or []])
        if not ids:
            logger.warning("Google models list empty, using defaults")
        return ids or list(GOOGLE_DEFAULT_MODELS)


PROVIDER_CLASSES = {
    ProviderName.OPENAI: OpenAIProvider,
    ProviderName.ANTHROPIC: AnthropicProvider,
    ProviderName.GOOGLE: GoogleProvider,
}


def _managed_key(provider: ProviderName) -> str:
    return {
        ProviderName.OPENAI: settings.OPENAI_API_KEY,
        ProviderName.ANTHROPIC: settings.ANTHROPIC_API_KEY,
        ProviderName.GOOGLE: settings.GOOGLE_API_KEY,
    }[provider]


def managed_provider(provider: ProviderName) -> LLMProvider:
    """Client using the operator's own key for this provider."""
    api_key = _managed_key(provider)
    if not api_key:
        logger.error(f"{provider.label} API key not configured")
        raise ProviderNotConfiguredError(provider)
    return PROVIDER_CLASSES[provider](api_key)


def user_provider(provider: ProviderName, api_key: str) -> LLMProvider:
    """Client using a key supplied by the end user for this request only."""
    return PROVIDER_CLASSES[provider](api_key)
