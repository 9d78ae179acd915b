"""All dataclasses, Protocols, and exceptions for progressive-memory."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Protocol, runtime_checkable


# ---------------------------------------------------------------------------
# Messages & Cycles
# ---------------------------------------------------------------------------

class Role(str, Enum):
    """Author of a conversational turn."""
    USER = "user"
    ASSISTANT = "assistant"

    @classmethod
    def parse(cls, value: object) -> Role | None:
        """Map a raw role string onto a Role, or None when it is not a turn."""
        if isinstance(value, Role):
            return value
        if not isinstance(value, str):
            return None
        return _ROLE_ALIASES.get(value.strip().lower())


_ROLE_ALIASES = {
    "user": Role.USER,
    "human": Role.USER,
    "assistant": Role.ASSISTANT,
    "ai": Role.ASSISTANT,
    "bot": Role.ASSISTANT,
}


@dataclass
class Message:
    role: Role
    content: str
    timestamp: datetime | None = None


@dataclass
class Cycle:
    """Atomic unit: one user message and the assistant reply paired with it."""
    index: int
    user_text: str
    assistant_text: str
    timestamp: datetime | None = None
    is_verbatim: bool = False


# ---------------------------------------------------------------------------
# Compaction
# ---------------------------------------------------------------------------

@dataclass
class Layer:
    """Compressed text covering a contiguous range of older cycles."""
    cycle_range_start: int
    cycle_range_end: int
    depth: int
    compression_ratio: float
    original_cycle_count: int
    summary_text: str = ""
    merged: bool = False    # produced by OverflowMerger
    fallback: bool = False  # deterministic truncation, not a summarizer result


@dataclass
class CompactionResult:
    verbatim_cycles: list[Cycle] = field(default_factory=list)
    layers: list[Layer] = field(default_factory=list)  # oldest first
    estimated_tokens: int = 0
    merge_count: int = 0
    cancelled: bool = False


@dataclass(frozen=True)
class CompactionStats:
    total_cycles: int = 0
    verbatim_count: int = 0
    compressed_count: int = 0
    layer_count: int = 0
    estimated_tokens: int = 0
    fallback_count: int = 0
    merge_count: int = 0


@dataclass
class FormattedContext:
    context: str = ""
    stats: CompactionStats = field(default_factory=CompactionStats)
    result: CompactionResult = field(default_factory=CompactionResult)


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------

class ConfigError(ValueError):
    """Static configuration is invalid; raised at construction time."""

    def __init__(self, errors: list[str]):
        super().__init__("Invalid configuration: " + "; ".join(errors))
        self.errors = errors


class SummarizerError(Exception):
    """A summarizer call did not produce usable text."""


class SummarizerTimeout(SummarizerError):
    def __init__(self, timeout: float):
        super().__init__(f"Summarizer did not respond within {timeout:.1f}s")
        self.timeout = timeout


class LLMProviderError(SummarizerError):
    def __init__(self, message: str, provider: str, status_code: int | None = None):
        super().__init__(message)
        self.provider = provider
        self.status_code = status_code


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------

@runtime_checkable
class Summarizer(Protocol):
    def summarize(self, text: str, target_tokens: int) -> str: ...


@runtime_checkable
class LLMProvider(Protocol):
    def complete(self, system: str, user: str, max_tokens: int) -> str: ...


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

@dataclass
class CompactionConfig:
    max_token_budget: int = 3000
    verbatim_tail_size: int = 4          # cycles kept verbatim
    layer_group_size: int = 3            # cycles per compressed layer
    base_compression_ratio: float = 0.25  # ratio = base ** depth
    merge_ratio: float = 0.5
    chars_per_token: int = 4


@dataclass
class SummarizationConfig:
    provider: str = "openai"
    model: str = "gpt-4.1-nano"
    temperature: float = 0.3
    timeout_seconds: float = 30.0
    max_concurrent_summaries: int = 4
    token_overhead: int = 50  # headroom so the model can finish its sentence


@dataclass
class MemoryConfig:
    version: str = "0.1"
    compaction: CompactionConfig = field(default_factory=CompactionConfig)
    summarization: SummarizationConfig = field(default_factory=SummarizationConfig)
    providers: dict[str, dict] = field(default_factory=dict)
