"""LLMSummarizer: compress conversation text with a configurable LLM."""

from __future__ import annotations

import logging
import re

from ..types import LLMProvider, SummarizationConfig, SummarizerError

logger = logging.getLogger(__name__)

TRUNCATION_MARKER = " ... "

SUMMARY_SYSTEM = (
    "You are a conversational memory compressor for a personal-finance assistant. "
    "Output the summary text only. No markdown fences, no preamble."
)

SUMMARY_PROMPT = """\
Summarize the conversation below in approximately {target_tokens} tokens \
({target_chars} characters).

PRIORITIZE:
- What was decided
- What the user wants or needs
- What has already been tried
- Important changes in direction
- Critical facts (amounts, dates, names, accounts)
- Persistent user preferences
- Commitments made by either side

DISCARD:
- Greetings and social phrases
- Repetition
- Throwaway examples
- Details that do not affect future decisions
- Conversational redundancy

FORMAT: compact narrative prose, third person.
Example: "User wants to invest $5,000. Preference: low risk. Chose a 12-month CD."

Conversation:
{text}

Summary:"""

_THINK_RE = re.compile(r"<think>.*?</think>", re.DOTALL)


def truncate_text(text: str, target_tokens: int, chars_per_token: int) -> str:
    """Deterministic fallback: keep a head and a tail slice of ``text``.

    The result, marker included, never exceeds ``target_tokens *
    chars_per_token`` characters. Text already within that limit is returned
    unchanged; a limit too small to hold the marker keeps only the head.
    """
    limit = max(1, target_tokens) * chars_per_token
    if len(text) <= limit:
        return text
    keep = limit - len(TRUNCATION_MARKER)
    if keep < 2:
        return text[:limit]
    tail_len = keep // 2
    head_len = keep - tail_len
    return text[:head_len] + TRUNCATION_MARKER + text[-tail_len:]


class LLMSummarizer:
    """Summarizer backed by an LLMProvider's ``complete()`` call."""

    def __init__(
        self,
        llm_provider: LLMProvider,
        config: SummarizationConfig,
        chars_per_token: int = 4,
    ) -> None:
        self.llm = llm_provider
        self.config = config
        self.chars_per_token = chars_per_token

    def summarize(self, text: str, target_tokens: int) -> str:
        prompt = SUMMARY_PROMPT.format(
            target_tokens=target_tokens,
            target_chars=target_tokens * self.chars_per_token,
            text=text,
        )
        response = self.llm.complete(
            system=SUMMARY_SYSTEM,
            user=prompt,
            max_tokens=target_tokens + self.config.token_overhead,
        )
        summary = self._clean_response(response)
        if not summary:
            raise SummarizerError("LLM returned an empty summary")
        usage = getattr(self.llm, "last_usage", None) or {}
        logger.debug(
            "Summary generated: %d chars -> %d chars (target %d tokens, used %s in / %s out)",
            len(text), len(summary), target_tokens,
            usage.get("input_tokens", "?"), usage.get("output_tokens", "?"),
        )
        return summary

    @staticmethod
    def _clean_response(response: str | None) -> str:
        """Strip thinking blocks and markdown fences from a raw completion."""
        text = (response or "").strip()

        if "<think>" in text:
            text = _THINK_RE.sub("", text).strip()

        if text.startswith("```"):
            lines = text.split("\n")[1:]
            if lines and lines[-1].strip() == "```":
                lines = lines[:-1]
            text = "\n".join(lines).strip()

        return text
