"""Multi-provider LLM adapter used by the change classifier.

Every provider returns ``None`` instead of raising when the call fails, so
the caller can degrade to "non-breaking" without a try/except per provider.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from . import config

logger = logging.getLogger(__name__)

DEFAULT_MODEL_MARKER = "qwen2.5-coder:7b"


class LLMProvider:
    """Base class for LLM providers."""

    name = "base"
    timeout = 30

    def __init__(self, model: str, api_key: str = "", endpoint: str = ""):
        self.model = model
        self.api_key = api_key
        self.endpoint = endpoint

    def requires_key(self) -> bool:
        return True

    def url(self) -> str:
        return self.endpoint

    def headers(self) -> Dict[str, str]:
        return {"Content-Type": "application/json"}

    def payload(self, prompt: str) -> Dict[str, Any]:
        raise NotImplementedError

    def extract(self, body: Dict[str, Any]) -> Optional[str]:
        raise NotImplementedError

    def generate(self, prompt: str) -> Optional[str]:
        """Generate a response, or ``None`` when the provider is unavailable."""
        if self.requires_key() and not self.api_key:
            logger.warning("LLM provider '%s' has no API key configured", self.name)
            return None
        try:
            response = requests.post(
                self.url(),
                headers=self.headers(),
                json=self.payload(prompt),
                timeout=self.timeout,
            )
            response.raise_for_status()
            return self.extract(response.json())
        except (requests.RequestException, ValueError, KeyError, IndexError, TypeError) as exc:
            logger.warning("LLM provider '%s' call failed: %s", self.name, exc)
            return None


class OllamaProvider(LLMProvider):
    """Ollama local LLM provider."""

    name = "ollama"

    def requires_key(self) -> bool:
        return False

    def payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": 0.1},
        }

    def extract(self, body: Dict[str, Any]) -> Optional[str]:
        return body.get("response")


class OpenAIProvider(LLMProvider):
    """OpenAI chat completions (and any compatible endpoint)."""

    name = "openai"

    def headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }

    def payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "temperature": 0.1,
            "max_tokens": 1024,
        }

    def extract(self, body: Dict[str, Any]) -> Optional[str]:
        return body["choices"][0]["message"]["content"]


class GroqProvider(OpenAIProvider):
    """Groq cloud API provider (OpenAI-compatible)."""

    name = "groq"
    timeout = 20


class OpenRouterProvider(OpenAIProvider):
    """OpenRouter multi-model gateway."""

    name = "openrouter"
    timeout = 60

    def extract(self, body: Dict[str, Any]) -> Optional[str]:
        # reasoning models may leave ``content`` empty
        msg = body["choices"][0]["message"]
        for candidate in (msg.get("content"), msg.get("reasoning")):
            if candidate and candidate.strip():
                return candidate
        return msg.get("content") or None


class AnthropicProvider(LLMProvider):
    """Anthropic messages API provider."""

    name = "anthropic"

    def headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "x-api-key": self.api_key,
            "anthropic-version": "2023-06-01",
        }

    def payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": 1024,
            "temperature": 0.1,
        }

    def extract(self, body: Dict[str, Any]) -> Optional[str]:
        return body["content"][0]["text"]


class GeminiProvider(LLMProvider):
    """Google Gemini API provider."""

    name = "gemini"

    def url(self) -> str:
        return (
            "https://generativelanguage.googleapis.com/v1beta/models/"
            f"{self.model}:generateContent?key={self.api_key}"
        )

    def payload(self, prompt: str) -> Dict[str, Any]:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"temperature": 0.1, "maxOutputTokens": 1024},
        }

    def extract(self, body: Dict[str, Any]) -> Optional[str]:
        return body["candidates"][0]["content"]["parts"][0]["text"]


# provider name -> (class, default model, default endpoint)
PROVIDERS = {
    "ollama": (OllamaProvider, DEFAULT_MODEL_MARKER, "http://127.0.0.1:11434/api/generate"),
    "groq": (GroqProvider, "llama-3.3-70b-versatile", "https://api.groq.com/openai/v1/chat/completions"),
    "openai": (OpenAIProvider, "gpt-4o-mini", "https://api.openai.com/v1/chat/completions"),
    "anthropic": (AnthropicProvider, "claude-3-5-sonnet-20241022", "https://api.anthropic.com/v1/messages"),
    "gemini": (GeminiProvider, "gemini-2.0-flash", ""),
    "openrouter": (
        OpenRouterProvider,
        "google/gemini-2.0-flash-exp:free",
        "https://openrouter.ai/api/v1/chat/completions",
    ),
}


class LocalLLM:
    """Provider selected from arguments or ``config.toml``."""

    def __init__(
        self,
        model: Optional[str] = None,
        provider: Optional[str] = None,
        api_key: Optional[str] = None,
        endpoint: Optional[str] = None,
    ):
        """Initialize LLM with provider selection.

        Args:
            model: Model name (defaults to config, then the provider default)
            provider: ollama, groq, openai, anthropic, gemini or openrouter
            api_key: API key for cloud providers (defaults to config)
            endpoint: Custom endpoint (defaults to config, then provider default)
        """
        self.provider_name = (provider or config.LLM_PROVIDER).lower()
        self.model = model or config.LLM_MODEL
        self.api_key = api_key or config.LLM_API_KEY
        self.endpoint = endpoint or ""
        self.provider = self._create_provider()

    def _create_provider(self) -> LLMProvider:
        cls, default_model, default_endpoint = PROVIDERS.get(self.provider_name, PROVIDERS["ollama"])
        model = self.model
        if model == DEFAULT_MODEL_MARKER and cls is not OllamaProvider:
            model = default_model
        endpoint = self.endpoint
        if not endpoint and self.provider_name == config.LLM_PROVIDER.lower():
            endpoint = config.LLM_ENDPOINT
        return cls(model, api_key=self.api_key, endpoint=endpoint or default_endpoint)

    def generate(self, prompt: str) -> Optional[str]:
        return self.provider.generate(prompt)
