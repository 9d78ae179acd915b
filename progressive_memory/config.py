"""Configuration loading, validation, and defaults."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

import yaml

from .types import CompactionConfig, MemoryConfig, SummarizationConfig

CONFIG_FILENAMES = [
    "progressive-memory.yaml",
    "progressive-memory.yml",
    "progressive-memory.json",
]


def _discover_config() -> Path | None:
    """Search CWD then parent dirs up to home for a config file."""
    cwd = Path.cwd()
    home = Path.home()
    search = cwd
    while True:
        for name in CONFIG_FILENAMES:
            candidate = search / name
            if candidate.is_file():
                return candidate
        if search == home or search == search.parent:
            break
        search = search.parent
    return None


def _build_config(raw: dict[str, Any]) -> MemoryConfig:
    """Build a MemoryConfig from a raw dict."""
    defaults = CompactionConfig()
    comp_raw = raw.get("compaction", {}) or {}
    compaction = CompactionConfig(
        max_token_budget=comp_raw.get("max_token_budget", defaults.max_token_budget),
        verbatim_tail_size=comp_raw.get("verbatim_tail_size", defaults.verbatim_tail_size),
        layer_group_size=comp_raw.get("layer_group_size", defaults.layer_group_size),
        base_compression_ratio=comp_raw.get(
            "base_compression_ratio", defaults.base_compression_ratio
        ),
        merge_ratio=comp_raw.get("merge_ratio", defaults.merge_ratio),
        chars_per_token=comp_raw.get("chars_per_token", defaults.chars_per_token),
    )

    summ_defaults = SummarizationConfig()
    summ_raw = raw.get("summarization", {}) or {}
    summarization = SummarizationConfig(
        provider=summ_raw.get("provider", summ_defaults.provider),
        model=summ_raw.get("model", summ_defaults.model),
        temperature=summ_raw.get("temperature", summ_defaults.temperature),
        timeout_seconds=summ_raw.get("timeout_seconds", summ_defaults.timeout_seconds),
        max_concurrent_summaries=summ_raw.get(
            "max_concurrent_summaries", summ_defaults.max_concurrent_summaries
        ),
        token_overhead=summ_raw.get("token_overhead", summ_defaults.token_overhead),
    )

    return MemoryConfig(
        version=str(raw.get("version", "0.1")),
        compaction=compaction,
        summarization=summarization,
        providers=raw.get("providers", {}) or {},
    )


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_config(config: MemoryConfig) -> list[str]:
    """Validate a config. Returns list of error strings (empty = valid)."""
    errors: list[str] = []
    c = config.compaction

    if not isinstance(c.max_token_budget, int) or c.max_token_budget <= 0:
        errors.append(f"max_token_budget must be a positive integer, got {c.max_token_budget!r}")

    if not isinstance(c.verbatim_tail_size, int) or c.verbatim_tail_size < 0:
        errors.append(f"verbatim_tail_size must be >= 0, got {c.verbatim_tail_size!r}")

    if not isinstance(c.layer_group_size, int) or c.layer_group_size < 1:
        errors.append(f"layer_group_size must be >= 1, got {c.layer_group_size!r}")

    if not isinstance(c.chars_per_token, int) or c.chars_per_token < 1:
        errors.append(f"chars_per_token must be >= 1, got {c.chars_per_token!r}")

    for name in ("base_compression_ratio", "merge_ratio"):
        value = getattr(c, name)
        if not _is_number(value) or not 0 < value <= 1:
            errors.append(f"{name} must be in (0, 1], got {value!r}")

    s = config.summarization
    if not _is_number(s.timeout_seconds) or s.timeout_seconds <= 0:
        errors.append(f"timeout_seconds must be positive, got {s.timeout_seconds!r}")

    if not isinstance(s.max_concurrent_summaries, int) or s.max_concurrent_summaries < 1:
        errors.append(
            f"max_concurrent_summaries must be >= 1, got {s.max_concurrent_summaries!r}"
        )

    if not isinstance(s.token_overhead, int) or s.token_overhead < 0:
        errors.append(f"token_overhead must be >= 0, got {s.token_overhead!r}")

    # Check that summarization provider exists in providers
    if config.providers and s.provider not in config.providers:
        errors.append(
            f"Summarization provider '{s.provider}' "
            f"not found in providers section"
        )

    return errors


def load_config(
    config_path: str | Path | None = None,
    config_dict: dict | None = None,
) -> MemoryConfig:
    """Load config from dict, explicit path, or auto-discover."""
    if config_dict is not None:
        return _build_config(config_dict)

    if config_path is not None:
        path = Path(config_path)
    else:
        path = _discover_config()

    if path is None:
        # Return defaults
        return _build_config({})

    if not path.is_file():
        raise FileNotFoundError(f"Config file not found: {path}")

    text = path.read_text()
    if path.suffix == ".json":
        raw = json.loads(text)
    else:
        raw = yaml.safe_load(text) or {}

    return _build_config(raw)
