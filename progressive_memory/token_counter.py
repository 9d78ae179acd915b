"""Token counting utilities."""

from __future__ import annotations

import math
from functools import partial
from typing import Callable

DEFAULT_CHARS_PER_TOKEN = 4


def estimate_tokens(text: str, chars_per_token: int = DEFAULT_CHARS_PER_TOKEN) -> int:
    """Rough estimate: ceil(len / chars_per_token). Empty text is 0 tokens."""
    if not text:
        return 0
    return math.ceil(len(text) / chars_per_token)


def create_token_counter(chars_per_token: int = DEFAULT_CHARS_PER_TOKEN) -> Callable[[str], int]:
    """Factory for a fixed-ratio token counter.

    Every pipeline stage receives the same counter so that summarizer
    targets and the final budget check agree with each other.
    """
    if chars_per_token <= 0:
        raise ValueError(f"chars_per_token must be positive, got {chars_per_token}")
    return partial(estimate_tokens, chars_per_token=chars_per_token)
