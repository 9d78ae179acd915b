"""BaseProvider: one summarization request over httpx, retried on transient errors."""

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod

import httpx

from ..types import LLMProviderError

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
RETRY_BACKOFF = [1.0, 2.0, 4.0]


def _is_transient(status_code: int) -> bool:
    return status_code == 429 or status_code >= 500


class BaseProvider(ABC):
    """Shared request loop for the summarizer's LLM backends.

    Subclasses describe the wire format through the hook methods. Rate
    limits, 5xx responses and transport errors are retried up to
    ``max_retries`` attempts in total; any other status raises at once.
    After a successful call ``last_usage`` holds ``input_tokens`` and
    ``output_tokens`` for the summary just produced.
    """

    def __init__(self, timeout: float = 60.0, max_retries: int = MAX_RETRIES) -> None:
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.last_usage: dict[str, int] = {}

    @abstractmethod
    def _provider_name(self) -> str: ...

    @abstractmethod
    def _get_url(self) -> str: ...

    @abstractmethod
    def _get_headers(self) -> dict: ...

    @abstractmethod
    def _build_payload(self, system: str, user: str, max_tokens: int) -> dict: ...

    @abstractmethod
    def _extract_text(self, data: dict) -> str: ...

    @abstractmethod
    def _extract_usage(self, data: dict) -> dict[str, int]: ...

    def complete(self, system: str, user: str, max_tokens: int) -> str:
        """Return the completion text for one summarization prompt."""
        url = self._get_url()
        headers = self._get_headers()
        payload = self._build_payload(system, user, max_tokens)
        self.last_usage = {}

        last_error: LLMProviderError | None = None
        for attempt in range(self.max_retries):
            if attempt:
                delay = RETRY_BACKOFF[min(attempt - 1, len(RETRY_BACKOFF) - 1)]
                logger.debug(
                    "%s attempt %d/%d failed (%s); retrying in %.0fs",
                    self._provider_name(), attempt, self.max_retries, last_error, delay,
                )
                time.sleep(delay)

            try:
                with httpx.Client(timeout=self.timeout) as client:
                    response = client.post(url, headers=headers, json=payload)
            except httpx.HTTPError as e:
                last_error = LLMProviderError(f"HTTP error: {e}", provider=self._provider_name())
                continue

            if response.status_code == 200:
                data = response.json()
                self.last_usage = self._extract_usage(data)
                return self._extract_text(data)

            last_error = LLMProviderError(
                f"HTTP {response.status_code}: {response.text}",
                provider=self._provider_name(),
                status_code=response.status_code,
            )
            if not _is_transient(response.status_code):
                raise last_error

        raise last_error or LLMProviderError(
            "Max retries exceeded", provider=self._provider_name()
        )
