"""Shared fixtures and fakes for progressive-memory tests."""

from __future__ import annotations

import threading
from datetime import datetime, timedelta, timezone

import pytest

from progressive_memory.types import (
    CompactionConfig,
    LLMProviderError,
    MemoryConfig,
    Message,
    Role,
    SummarizationConfig,
)


class FakeSummarizer:
    """Deterministic summarizer: returns a short tagged prefix of the input."""

    def __init__(self, prefix: str = "SUMMARY"):
        self.prefix = prefix
        self.calls: list[dict] = []
        self._lock = threading.Lock()

    def summarize(self, text: str, target_tokens: int) -> str:
        with self._lock:
            self.calls.append({"text": text, "target_tokens": target_tokens})
        # Stay within the requested size so merge tests converge
        body = text[: max(0, target_tokens * 4 - len(self.prefix) - 1)]
        return f"{self.prefix} {body}".strip()


class FixedSummarizer:
    """Always returns the same text regardless of input."""

    def __init__(self, response: str):
        self.response = response
        self.calls: list[dict] = []

    def summarize(self, text: str, target_tokens: int) -> str:
        self.calls.append({"text": text, "target_tokens": target_tokens})
        return self.response


class FailingSummarizer:
    """Raises on every call, like a provider outage."""

    def __init__(self, error: Exception | None = None):
        self.error = error or LLMProviderError("HTTP 503: unavailable", provider="fake", status_code=503)
        self.calls = 0

    def summarize(self, text: str, target_tokens: int) -> str:
        self.calls += 1
        raise self.error


class SlowSummarizer:
    """Blocks until released (or ``delay`` elapses), simulating a hung request."""

    def __init__(self, delay: float = 5.0, response: str = "late summary"):
        self.delay = delay
        self.response = response
        self.release = threading.Event()
        self.calls = 0
        self._lock = threading.Lock()

    def summarize(self, text: str, target_tokens: int) -> str:
        with self._lock:
            self.calls += 1
        self.release.wait(self.delay)
        return self.response


class MockLLMProvider:
    """Mock LLM provider for testing LLMSummarizer."""

    def __init__(self, response: str | None = None):
        self.calls: list[dict] = []
        self.response = response if response is not None else "User wants to save $500/month."

    def complete(self, system: str, user: str, max_tokens: int) -> str:
        self.calls.append({"system": system, "user": user, "max_tokens": max_tokens})
        return self.response


def make_log(n_cycles: int, text_len: int = 40, start: datetime | None = None) -> list[Message]:
    """Build a log of ``n_cycles`` user/assistant pairs with distinct texts."""
    ts = start or datetime(2026, 1, 15, 10, 0, tzinfo=timezone.utc)
    messages: list[Message] = []
    for i in range(n_cycles):
        user = f"Q{i:03d} " + ("u" * max(0, text_len - 5))
        reply = f"A{i:03d} " + ("a" * max(0, text_len - 5))
        messages.append(Message(Role.USER, user, ts + timedelta(minutes=2 * i)))
        messages.append(Message(Role.ASSISTANT, reply, ts + timedelta(minutes=2 * i, seconds=30)))
    return messages


def make_config(**compaction) -> MemoryConfig:
    return MemoryConfig(
        compaction=CompactionConfig(**compaction),
        summarization=SummarizationConfig(timeout_seconds=1.0, max_concurrent_summaries=4),
    )


@pytest.fixture
def ts() -> datetime:
    return datetime(2026, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def finance_messages(ts) -> list[Message]:
    return [
        Message(Role.USER, "Hi! How much did I spend on groceries in March?", ts),
        Message(Role.ASSISTANT, "You spent $642.18 on groceries in March, across 14 transactions.", ts + timedelta(seconds=20)),
        Message(Role.USER, "Set a monthly grocery budget of $550 then.", ts + timedelta(minutes=1)),
        Message(Role.ASSISTANT, "Done. Your grocery budget is now $550 per month starting April.", ts + timedelta(minutes=1, seconds=15)),
        Message(Role.USER, "I prefer low-risk investments. Where should my $5,000 emergency fund go?", ts + timedelta(minutes=3)),
        Message(Role.ASSISTANT, "For low risk and liquidity, a high-yield savings account or a 12-month CD fits.", ts + timedelta(minutes=3, seconds=30)),
    ]


@pytest.fixture
def fake_summarizer() -> FakeSummarizer:
    return FakeSummarizer()


@pytest.fixture
def no_api_keys(monkeypatch):
    monkeypatch.delenv("OPENAI_API_KEY", raising=False)
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)

