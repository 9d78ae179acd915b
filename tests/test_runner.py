"""Tests for SummaryRunner timeouts, failures, and cancellation."""

import threading
import time

import pytest

from conftest import FailingSummarizer, FakeSummarizer, FixedSummarizer, SlowSummarizer
from progressive_memory.core.cancellation import CancellationToken, Deadline
from progressive_memory.core.runner import SummaryRunner
from progressive_memory.core.summarizer import truncate_text

LONG_TEXT = "User: I want to pay off my credit card.\nAssistant: Your balance is $3,200. " * 5


def test_results_keep_request_order():
    summarizer = FakeSummarizer()
    requests = [(f"group {i} " * 20, 5) for i in range(6)]
    with SummaryRunner(summarizer, chars_per_token=4, max_workers=3) as runner:
        outcomes = runner.summarize_many(requests)
    assert [o.text for o in outcomes] == [
        f"SUMMARY {text[: 5 * 4 - 8]}".strip() for text, _ in requests
    ]
    assert not any(o.fallback for o in outcomes)
    assert len(summarizer.calls) == 6


def test_provider_error_falls_back_to_truncation():
    summarizer = FailingSummarizer()
    with SummaryRunner(summarizer, chars_per_token=4) as runner:
        outcome = runner.summarize(LONG_TEXT, 10)
    assert outcome.fallback
    assert outcome.text == truncate_text(LONG_TEXT, 10, 4)
    assert runner.fallbacks == 1
    assert not runner.interrupted


def test_builtin_timeout_error_falls_back_without_waiting():
    summarizer = FailingSummarizer(TimeoutError("read timed out"))
    start = time.monotonic()
    with SummaryRunner(summarizer, chars_per_token=4, timeout=5.0) as runner:
        outcome = runner.summarize(LONG_TEXT, 10)
    assert outcome.fallback
    assert time.monotonic() - start < 2.0


def test_timeout_falls_back_without_blocking():
    summarizer = SlowSummarizer(delay=10.0)
    start = time.monotonic()
    try:
        with SummaryRunner(summarizer, chars_per_token=4, timeout=0.2) as runner:
            outcome = runner.summarize(LONG_TEXT, 10)
        elapsed = time.monotonic() - start
    finally:
        summarizer.release.set()
    assert outcome.fallback
    assert elapsed < 2.0


def test_empty_summary_falls_back():
    with SummaryRunner(FixedSummarizer("  "), chars_per_token=4) as runner:
        outcome = runner.summarize(LONG_TEXT, 10)
    assert outcome.fallback


def test_no_summarizer_truncates():
    with SummaryRunner(None, chars_per_token=4) as runner:
        outcomes = runner.summarize_many([(LONG_TEXT, 10), ("tiny", 10)])
    assert outcomes[0].text == truncate_text(LONG_TEXT, 10, 4)
    assert outcomes[1].text == "tiny"
    assert all(o.fallback for o in outcomes)
    assert not runner.interrupted


def test_cancelled_before_call_skips_summarizer():
    summarizer = FakeSummarizer()
    token = CancellationToken()
    token.cancel()
    with SummaryRunner(summarizer, chars_per_token=4, cancel_token=token) as runner:
        outcome = runner.summarize(LONG_TEXT, 10)
    assert outcome.fallback
    assert summarizer.calls == []
    assert runner.interrupted


def test_cancel_while_waiting_returns_promptly():
    summarizer = SlowSummarizer(delay=10.0)
    token = CancellationToken()
    timer = threading.Timer(0.1, token.cancel)
    start = time.monotonic()
    timer.start()
    try:
        with SummaryRunner(summarizer, chars_per_token=4, timeout=10.0, cancel_token=token) as runner:
            outcome = runner.summarize(LONG_TEXT, 10)
        elapsed = time.monotonic() - start
    finally:
        timer.cancel()
        summarizer.release.set()
    assert outcome.fallback
    assert runner.interrupted
    assert elapsed < 2.0


def test_expired_deadline_skips_summarizer():
    summarizer = FakeSummarizer()
    with SummaryRunner(summarizer, chars_per_token=4, deadline=Deadline(0)) as runner:
        outcome = runner.summarize(LONG_TEXT, 10)
    assert outcome.fallback
    assert summarizer.calls == []


@pytest.mark.parametrize("value, expected", [(None, None), (0, 0.0)])
def test_deadline_coerce(value, expected):
    deadline = Deadline.coerce(value)
    assert deadline.remaining() == expected
    assert Deadline.coerce(deadline) is deadline


def test_queued_requests_share_one_timeout():
    summarizer = SlowSummarizer(delay=10.0)
    requests = [(f"group {i} " * 40, 10) for i in range(12)]
    start = time.monotonic()
    try:
        with SummaryRunner(summarizer, chars_per_token=4, timeout=0.2, max_workers=4) as runner:
            outcomes = runner.summarize_many(requests)
        elapsed = time.monotonic() - start
    finally:
        summarizer.release.set()
    assert all(o.fallback for o in outcomes)
    assert summarizer.calls <= 4
    assert elapsed < 1.0


def test_stuck_workers_truncate_later_requests_immediately():
    summarizer = SlowSummarizer(delay=10.0)
    try:
        with SummaryRunner(summarizer, chars_per_token=4, timeout=0.5, max_workers=2) as runner:
            runner.summarize_many([(LONG_TEXT, 10), (LONG_TEXT, 10)])
            start = time.monotonic()
            outcome = runner.summarize(LONG_TEXT, 10, label="merge")
            elapsed = time.monotonic() - start
    finally:
        summarizer.release.set()
    assert outcome.fallback
    assert outcome.text == truncate_text(LONG_TEXT, 10, 4)
    assert summarizer.calls == 2
    assert elapsed < 0.3
