"""SummaryRunner: bounded, failure-tolerant summarizer calls."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from dataclasses import dataclass

from .cancellation import CancellationToken, Deadline
from .summarizer import truncate_text
from ..types import Summarizer, SummarizerTimeout

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.05


@dataclass
class SummaryOutcome:
    text: str
    fallback: bool = False


class SummaryRunner:
    """Runs summarizer calls on worker threads with a timeout per call.

    Any failure (timeout, provider error, empty output, cancellation or an
    expired deadline) is converted into the deterministic truncation of the
    input, so callers always get text back. There is no retry here.

    One runner serves one compaction call; ``close()`` abandons overrunning
    workers instead of joining them.
    """

    def __init__(
        self,
        summarizer: Summarizer | None,
        chars_per_token: int,
        timeout: float = 30.0,
        max_workers: int = 4,
        deadline: Deadline | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> None:
        self.summarizer = summarizer
        self.chars_per_token = chars_per_token
        self.timeout = timeout
        self.max_workers = max(1, max_workers)
        self.deadline = deadline or Deadline(None)
        self.cancel_token = cancel_token
        self._executor: ThreadPoolExecutor | None = None
        self._abandoned: list[Future] = []
        self.fallbacks = 0
        self.interrupted = False  # some request was cut short by cancel or deadline

    def __enter__(self) -> SummaryRunner:
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    @property
    def stopped(self) -> bool:
        """True once the caller cancelled or the call deadline passed."""
        if self.cancel_token is not None and self.cancel_token.cancelled:
            return True
        return self.deadline.expired

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None

    def fallback(self, text: str, target_tokens: int) -> SummaryOutcome:
        self.fallbacks += 1
        return SummaryOutcome(
            text=truncate_text(text, target_tokens, self.chars_per_token),
            fallback=True,
        )

    def summarize(self, text: str, target_tokens: int, label: str = "") -> SummaryOutcome:
        return self.summarize_many([(text, target_tokens)], labels=[label])[0]

    def summarize_many(
        self,
        requests: list[tuple[str, int]],
        labels: list[str] | None = None,
    ) -> list[SummaryOutcome]:
        """Summarize each ``(text, target_tokens)`` pair, preserving order.

        Every request's timeout runs from submission, so a batch queued
        behind hung workers still returns after about one timeout.
        """
        labels = labels or [""] * len(requests)
        if self.stopped:
            self.interrupted = True
            return [self.fallback(text, target) for text, target in requests]
        if self.summarizer is None:
            return [self.fallback(text, target) for text, target in requests]

        self._abandoned = [f for f in self._abandoned if not f.done()]
        if len(self._abandoned) >= self.max_workers:
            logger.warning(
                "All %d summarizer workers are stuck on overrunning calls; "
                "truncating %d request(s)", self.max_workers, len(requests),
            )
            return [self.fallback(text, target) for text, target in requests]

        executor = self._get_executor()
        submitted = time.monotonic()
        futures = [
            executor.submit(self.summarizer.summarize, text, target)
            for text, target in requests
        ]

        outcomes: list[SummaryOutcome] = []
        for (text, target), future, label in zip(requests, futures, labels):
            outcomes.append(self._collect(future, submitted, text, target, label))
        return outcomes

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers,
                thread_name_prefix="summarizer",
            )
        return self._executor

    def _collect(
        self, future: Future, submitted: float, text: str, target: int, label: str
    ) -> SummaryOutcome:
        try:
            summary = self._await(future, submitted)
        except SummarizerTimeout as e:
            logger.warning(f"Summarizer timed out for {label or 'request'}: {e}")
            return self.fallback(text, target)
        except Exception as e:
            logger.warning(f"Summarizer failed for {label or 'request'}: {e}")
            return self.fallback(text, target)

        if summary is None:
            self.interrupted = True
            logger.info("Compaction stopped early; truncating %s", label or "request")
            return self.fallback(text, target)

        if not isinstance(summary, str) or not summary.strip():
            logger.warning(f"Summarizer returned no text for {label or 'request'}")
            return self.fallback(text, target)

        return SummaryOutcome(text=summary.strip())

    def _await(self, future: Future, submitted: float) -> str | None:
        """Wait for ``future``; None means the call was cancelled or hit its deadline."""
        while True:
            if future.done():
                return future.result()
            if self.stopped:
                self._abandon(future)
                return None

            budget = self.timeout - (time.monotonic() - submitted)
            if budget <= 0:
                self._abandon(future)
                raise SummarizerTimeout(self.timeout)

            remaining = self.deadline.remaining()
            if remaining is not None:
                budget = min(budget, remaining)

            try:
                return future.result(timeout=min(budget, POLL_INTERVAL))
            except FuturesTimeout:
                if future.done():
                    raise
                continue

    def _abandon(self, future: Future) -> None:
        # Queued calls cancel cleanly; running ones keep their worker busy
        if not future.cancel():
            self._abandoned.append(future)
