"""progressive-memory: bounded conversational memory through layered compaction."""

from .config import load_config, validate_config
from .core.cache import ContextCache
from .core.cancellation import CancellationToken, Deadline
from .engine import MemoryCompactionEngine
from .types import (
    CompactionConfig,
    CompactionResult,
    CompactionStats,
    ConfigError,
    Cycle,
    FormattedContext,
    Layer,
    MemoryConfig,
    Message,
    Role,
    SummarizationConfig,
    Summarizer,
    SummarizerError,
    SummarizerTimeout,
)

__version__ = "0.1.0"

__all__ = [
    "MemoryCompactionEngine",
    "ContextCache",
    "CancellationToken",
    "Deadline",
    "load_config",
    "validate_config",
    "CompactionConfig",
    "CompactionResult",
    "CompactionStats",
    "ConfigError",
    "Cycle",
    "FormattedContext",
    "Layer",
    "MemoryConfig",
    "Message",
    "Role",
    "SummarizationConfig",
    "Summarizer",
    "SummarizerError",
    "SummarizerTimeout",
]
