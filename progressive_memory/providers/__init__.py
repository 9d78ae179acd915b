from __future__ import annotations

from ..types import LLMProviderError, SummarizationConfig
from .anthropic import AnthropicProvider
from .base import BaseProvider
from .openai import OpenAIProvider

__all__ = [
    "AnthropicProvider",
    "BaseProvider",
    "LLMProviderError",
    "OpenAIProvider",
    "build_provider",
]


def build_provider(
    provider_name: str,
    provider_config: dict,
    summarization: SummarizationConfig,
) -> BaseProvider:
    """Build an LLM provider from its ``providers`` config entry.

    Raises LLMProviderError when the provider type is unknown or its API
    key is missing.
    """
    ptype = provider_config.get("type", provider_name)
    model = provider_config.get("model", summarization.model)
    timeout = provider_config.get("timeout", summarization.timeout_seconds)
    max_retries = provider_config.get("max_retries", 1)

    if ptype in ("openai", "generic_openai", "ollama"):
        return OpenAIProvider(
            base_url=provider_config.get("base_url", "https://api.openai.com/v1"),
            model=model,
            temperature=summarization.temperature,
            api_key=provider_config.get("api_key"),
            api_key_env=provider_config.get("api_key_env", "OPENAI_API_KEY"),
            timeout=timeout,
            max_retries=max_retries,
        )

    if ptype == "anthropic":
        return AnthropicProvider(
            api_key=provider_config.get("api_key"),
            api_key_env=provider_config.get("api_key_env", "ANTHROPIC_API_KEY"),
            model=model,
            temperature=summarization.temperature,
            timeout=timeout,
            max_retries=max_retries,
        )

    raise LLMProviderError(f"Unknown provider type: {ptype}", provider=provider_name)
