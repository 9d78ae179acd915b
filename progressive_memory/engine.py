"""MemoryCompactionEngine: main orchestrator wiring all components together."""

from __future__ import annotations

import logging
from pathlib import Path

from .config import load_config, validate_config
from .core.cache import ContextCache, fingerprint_messages
from .core.cancellation import CancellationToken, Deadline
from .core.compactor import TieredCompactor
from .core.cycles import CycleAssembler, coerce_messages
from .core.formatter import ContextFormatter
from .core.merger import OverflowMerger
from .core.runner import SummaryRunner
from .core.summarizer import LLMSummarizer
from .providers import build_provider
from .token_counter import create_token_counter
from .types import (
    CompactionResult,
    CompactionStats,
    ConfigError,
    FormattedContext,
    LLMProviderError,
    MemoryConfig,
    Message,
    Summarizer,
)

logger = logging.getLogger(__name__)


class MemoryCompactionEngine:
    """Turns an unbounded message log into a bounded context string.

    Pipeline: messages -> cycles -> tiered layers -> overflow merge -> text.
    The engine holds configuration and collaborators only; every call is
    recomputed from the log it is given.

    Usage:
        engine = MemoryCompactionEngine(config_path="./progressive-memory.yaml")
        built = engine.build_context(chat_messages, session_id=chat_id)
        prompt = built.context
    """

    def __init__(
        self,
        config_path: str | Path | None = None,
        config: MemoryConfig | None = None,
        summarizer: Summarizer | None = None,
        cache: ContextCache | None = None,
    ) -> None:
        self.config = config or load_config(config_path)
        errors = validate_config(self.config)
        if errors:
            raise ConfigError(errors)

        compaction = self.config.compaction
        self._token_counter = create_token_counter(compaction.chars_per_token)
        self._assembler = CycleAssembler()
        self._compactor = TieredCompactor(compaction, token_counter=self._token_counter)
        self._merger = OverflowMerger(compaction, token_counter=self._token_counter)
        self._formatter = ContextFormatter()
        self._summarizer = summarizer if summarizer is not None else self._build_summarizer()
        self._cache = cache
        self._fingerprint_salt = repr(compaction)

    def _build_summarizer(self) -> Summarizer | None:
        """Build an LLMSummarizer from the summarization/providers config."""
        summarization = self.config.summarization
        provider_config = self.config.providers.get(summarization.provider, {})
        try:
            provider = build_provider(summarization.provider, provider_config, summarization)
        except LLMProviderError as e:
            logger.warning(
                "No summarizer available (%s); older cycles will be truncated instead", e
            )
            return None
        return LLMSummarizer(
            provider, summarization, chars_per_token=self.config.compaction.chars_per_token
        )

    @property
    def summarizer(self) -> Summarizer | None:
        return self._summarizer

    def compact(
        self,
        messages,
        deadline: Deadline | float | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> tuple[CompactionResult, CompactionStats]:
        """Compact a message log; returns the structured result and its stats."""
        built = self._run(coerce_messages(messages), deadline, cancel_token)
        return built.result, built.stats

    def build_context(
        self,
        messages,
        session_id: str | None = None,
        deadline: Deadline | float | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> FormattedContext:
        """Build the prompt-ready context for a message log.

        With a cache and a session id, an unchanged log returns the cached
        context and concurrent calls for the same session are serialized.
        """
        log = coerce_messages(messages)
        if self._cache is None or session_id is None:
            return self._run(log, deadline, cancel_token)

        fingerprint = fingerprint_messages(log, salt=self._fingerprint_salt)
        return self._cache.get_or_build(
            session_id,
            fingerprint,
            lambda: self._run(log, deadline, cancel_token),
        )

    def invalidate(self, session_id: str) -> None:
        if self._cache is not None:
            self._cache.clear(session_id)

    def invalidate_all(self) -> None:
        if self._cache is not None:
            self._cache.clear_all()

    def _run(
        self,
        messages: list[Message],
        deadline: Deadline | float | None,
        cancel_token: CancellationToken | None,
    ) -> FormattedContext:
        cycles = self._assembler.assemble(messages)
        if not cycles:
            return self._formatter.format(CompactionResult(), total_cycles=0)

        summarization = self.config.summarization
        with SummaryRunner(
            self._summarizer,
            chars_per_token=self.config.compaction.chars_per_token,
            timeout=summarization.timeout_seconds,
            max_workers=summarization.max_concurrent_summaries,
            deadline=Deadline.coerce(deadline),
            cancel_token=cancel_token,
        ) as runner:
            tail, layers = self._compactor.compact(cycles, runner)
            layers, merges = self._merger.merge(tail, layers, runner)
            interrupted = runner.interrupted

        result = CompactionResult(
            verbatim_cycles=tail,
            layers=layers,
            estimated_tokens=self._merger.total_tokens(tail, layers),
            merge_count=merges,
            cancelled=interrupted,
        )
        built = self._formatter.format(result, total_cycles=len(cycles))

        stats = built.stats
        logger.info(
            f"Context built: {stats.total_cycles} cycles "
            f"({stats.verbatim_count} verbatim, {stats.compressed_count} compressed), "
            f"{stats.layer_count} layers, ~{stats.estimated_tokens} tokens"
            + (" [cancelled]" if interrupted else "")
        )
        return built
