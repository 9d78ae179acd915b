"""OverflowMerger: fuse the oldest layers until the context fits the budget."""

from __future__ import annotations

import logging
import math
from typing import Callable

from .runner import SummaryRunner
from ..token_counter import estimate_tokens
from ..types import CompactionConfig, Cycle, Layer

logger = logging.getLogger(__name__)


class OverflowMerger:
    """Merge the two oldest layers repeatedly while over ``max_token_budget``.

    Every merge removes one layer, so the loop runs at most
    ``len(layers) - 1`` times. A single remaining layer that is still over
    budget is accepted as is.
    """

    def __init__(
        self,
        config: CompactionConfig,
        token_counter: Callable[[str], int] | None = None,
    ) -> None:
        self.config = config
        self.token_counter = token_counter or (
            lambda text: estimate_tokens(text, config.chars_per_token)
        )

    def tail_tokens(self, verbatim_cycles: list[Cycle]) -> int:
        return sum(
            self.token_counter(c.user_text) + self.token_counter(c.assistant_text)
            for c in verbatim_cycles
        )

    def total_tokens(self, verbatim_cycles: list[Cycle], layers: list[Layer]) -> int:
        return self.tail_tokens(verbatim_cycles) + sum(
            self.token_counter(layer.summary_text) for layer in layers
        )

    def merge(
        self,
        verbatim_cycles: list[Cycle],
        layers: list[Layer],
        runner: SummaryRunner | None = None,
    ) -> tuple[list[Layer], int]:
        """Return ``(layers, merge_count)``; the input list is not modified."""
        runner = runner or SummaryRunner(None, self.config.chars_per_token)
        layers = list(layers)
        budget = self.config.max_token_budget
        total = self.total_tokens(verbatim_cycles, layers)
        merges = 0

        while total > budget and len(layers) > 1:
            logger.info(
                f"Context at {total} tokens exceeds budget {budget}; "
                f"merging oldest of {len(layers)} layers"
            )
            oldest, second = layers[0], layers[1]
            merged = self._merge_pair(oldest, second, runner)
            layers = [merged] + layers[2:]
            merges += 1
            total = self.total_tokens(verbatim_cycles, layers)

        if total > budget:
            logger.info(
                "Context still over budget after merging: %d > %d tokens (%d layers)",
                total, budget, len(layers),
            )
        return layers, merges

    def _merge_pair(self, first: Layer, second: Layer, runner: SummaryRunner) -> Layer:
        combined = f"{first.summary_text}\n{second.summary_text}"
        target_tokens = max(1, math.ceil(self.token_counter(combined) * self.config.merge_ratio))
        start = min(first.cycle_range_start, second.cycle_range_start)
        end = max(first.cycle_range_end, second.cycle_range_end)

        outcome = runner.summarize(combined, target_tokens, label=f"merge of cycles {start}-{end}")

        return Layer(
            cycle_range_start=start,
            cycle_range_end=end,
            depth=min(first.depth, second.depth),
            compression_ratio=min(first.compression_ratio, second.compression_ratio)
            * self.config.merge_ratio,
            original_cycle_count=first.original_cycle_count + second.original_cycle_count,
            summary_text=outcome.text,
            merged=True,
            fallback=outcome.fallback,
        )
