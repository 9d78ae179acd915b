"""TieredCompactor: compress older cycles in depth-ordered layers."""

from __future__ import annotations

import logging
import math
from dataclasses import replace
from typing import Callable

from .runner import SummaryRunner
from ..token_counter import estimate_tokens
from ..types import CompactionConfig, Cycle, Layer

logger = logging.getLogger(__name__)


def format_cycles(cycles: list[Cycle]) -> str:
    """Render cycles as 'User: ... / Assistant: ...' blocks separated by blank lines."""
    return "\n\n".join(
        f"User: {c.user_text}\nAssistant: {c.assistant_text}" for c in cycles
    )


class TieredCompactor:
    """Keep the most recent cycles verbatim and summarize the rest in layers.

    Older cycles are split into consecutive groups of ``layer_group_size``.
    The group adjacent to the verbatim tail has depth 1; each older group
    is one level deeper and is compressed to ``base_compression_ratio ** depth``
    of its original size.
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

    def split_tail(self, cycles: list[Cycle]) -> tuple[list[Cycle], list[Cycle]]:
        """Return ``(head, tail)``; tail cycles are marked verbatim copies."""
        boundary = len(cycles) - min(len(cycles), self.config.verbatim_tail_size)
        head = list(cycles[:boundary])
        tail = [replace(c, is_verbatim=True) for c in cycles[boundary:]]
        return head, tail

    def partition(self, head: list[Cycle]) -> list[list[Cycle]]:
        """Consecutive groups, oldest first; only the newest group may be short."""
        size = self.config.layer_group_size
        return [head[i:i + size] for i in range(0, len(head), size)]

    def target_ratio(self, depth: int) -> float:
        return self.config.base_compression_ratio ** depth

    def compact(
        self,
        cycles: list[Cycle],
        runner: SummaryRunner | None = None,
    ) -> tuple[list[Cycle], list[Layer]]:
        """Split cycles into a verbatim tail and compressed layers (oldest first)."""
        head, tail = self.split_tail(cycles)
        if not head:
            return tail, []

        runner = runner or SummaryRunner(None, self.config.chars_per_token)
        groups = self.partition(head)

        requests: list[tuple[str, int]] = []
        labels: list[str] = []
        meta: list[tuple[list[Cycle], int, float]] = []
        for i, group in enumerate(groups):
            depth = len(groups) - i
            ratio = self.target_ratio(depth)
            text = format_cycles(group)
            target_tokens = max(1, math.ceil(self.token_counter(text) * ratio))
            requests.append((text, target_tokens))
            labels.append(f"cycles {group[0].index}-{group[-1].index} (depth {depth})")
            meta.append((group, depth, ratio))

        outcomes = runner.summarize_many(requests, labels=labels)

        layers: list[Layer] = []
        for (group, depth, ratio), outcome in zip(meta, outcomes):
            layers.append(Layer(
                cycle_range_start=group[0].index,
                cycle_range_end=group[-1].index,
                depth=depth,
                compression_ratio=ratio,
                original_cycle_count=len(group),
                summary_text=outcome.text,
                fallback=outcome.fallback,
            ))

        logger.debug(
            "Compacted %d cycles into %d layers (%d verbatim)",
            len(head), len(layers), len(tail),
        )
        return tail, layers
