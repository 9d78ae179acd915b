"""ContextFormatter: serialize a compaction result into prompt-ready text."""

from __future__ import annotations

from ..types import (
    CompactionResult,
    CompactionStats,
    FormattedContext,
    Layer,
    Message,
    Role,
)

COMPRESSED_HEADER = "### Compressed History:"
RECENT_HEADER = "### Recent Conversation:"


class ContextFormatter:
    """Render layers and verbatim cycles into one context string.

    Output order (top to bottom):
    1. Compressed History - one line per layer, oldest first
    2. Recent Conversation - verbatim cycles, most recent at bottom
    """

    def format(self, result: CompactionResult, total_cycles: int) -> FormattedContext:
        sections: list[str] = []

        if result.layers:
            lines = [COMPRESSED_HEADER]
            lines.extend(f"{self._layer_label(layer)} {layer.summary_text}" for layer in result.layers)
            sections.append("\n".join(lines))

        if result.verbatim_cycles:
            blocks = [
                f"User: {c.user_text}\nAssistant: {c.assistant_text}"
                for c in result.verbatim_cycles
            ]
            sections.append(RECENT_HEADER + "\n" + "\n\n".join(blocks))

        return FormattedContext(
            context="\n\n".join(sections),
            stats=self.build_stats(result, total_cycles),
            result=result,
        )

    @staticmethod
    def build_stats(result: CompactionResult, total_cycles: int) -> CompactionStats:
        verbatim = len(result.verbatim_cycles)
        return CompactionStats(
            total_cycles=total_cycles,
            verbatim_count=verbatim,
            compressed_count=total_cycles - verbatim,
            layer_count=len(result.layers),
            estimated_tokens=result.estimated_tokens,
            fallback_count=sum(1 for layer in result.layers if layer.fallback),
            merge_count=result.merge_count,
        )

    @staticmethod
    def _layer_label(layer: Layer) -> str:
        # Cycle numbers are shown 1-based
        span = f"Cycles {layer.cycle_range_start + 1}-{layer.cycle_range_end + 1}"
        if layer.merged:
            return f"[{span}, merged]"
        saved = round((1 - layer.compression_ratio) * 100)
        return f"[{span}, depth {layer.depth}, ~{saved}% compressed]"


def format_simple_history(messages: list[Message], max_messages: int = 10) -> str:
    """Plain 'U:'/'A:' transcript of the last ``max_messages`` messages, no compression."""
    if not messages or max_messages <= 0:
        return ""
    lines = [
        f"{'U:' if m.role is Role.USER else 'A:'} {m.content}"
        for m in messages[-max_messages:]
    ]
    return "\n".join(lines)
