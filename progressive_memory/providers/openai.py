"""OpenAIProvider: OpenAI-compatible chat completions via httpx (no SDK dependency).

Works with the OpenAI API, Ollama, vLLM, LM Studio, or any server exposing
/v1/chat/completions.
"""

from __future__ import annotations

import os

from .base import BaseProvider
from ..types import LLMProviderError

DEFAULT_BASE_URL = "https://api.openai.com/v1"


class OpenAIProvider(BaseProvider):
    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        model: str = "gpt-4.1-nano",
        temperature: float = 0.3,
        api_key: str | None = None,
        api_key_env: str = "OPENAI_API_KEY",
        timeout: float = 60.0,
        max_retries: int = 3,
    ) -> None:
        super().__init__(timeout=timeout, max_retries=max_retries)
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.temperature = temperature
        self.api_key = api_key or os.environ.get(api_key_env, "")
        # Local OpenAI-compatible servers accept any key
        if not self.api_key and self.base_url == DEFAULT_BASE_URL:
            raise LLMProviderError(
                f"No API key found. Set {api_key_env} env var or pass api_key.",
                provider="openai",
            )

    def _provider_name(self) -> str:
        return "openai"

    def _get_url(self) -> str:
        return f"{self.base_url}/chat/completions"

    def _get_headers(self) -> dict:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key or 'not-needed'}",
        }

    def _build_payload(self, system: str, user: str, max_tokens: int) -> dict:
        return {
            "model": self.model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user},
            ],
            "max_tokens": max_tokens,
            "temperature": self.temperature,
        }

    def _extract_text(self, data: dict) -> str:
        choices = data.get("choices", [])
        if choices:
            return choices[0].get("message", {}).get("content") or ""
        return ""

    def _extract_usage(self, data: dict) -> dict[str, int]:
        usage = data.get("usage") or {}
        return {
            "input_tokens": usage.get("prompt_tokens", 0),
            "output_tokens": usage.get("completion_tokens", 0),
        }
