"""CycleAssembler: pair an ordered message log into interaction cycles."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime

from ..types import Cycle, Message, Role

logger = logging.getLogger(__name__)


def _parse_timestamp(value: object) -> datetime | None:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        try:
            # fromisoformat() rejects the "Z" suffix before 3.11
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    return None


def _coerce_one(raw: object) -> Message | None:
    if isinstance(raw, Message):
        role = Role.parse(raw.role)
        if role is None or not isinstance(raw.content, str):
            return None
        return raw if role is raw.role else Message(role, raw.content, raw.timestamp)

    if not isinstance(raw, Mapping):
        return None

    role = Role.parse(raw.get("role", raw.get("type")))
    content = raw.get("content", raw.get("text"))
    if role is None or not isinstance(content, str):
        return None
    return Message(role=role, content=content, timestamp=_parse_timestamp(raw.get("timestamp")))


def coerce_messages(raw_messages: object) -> list[Message]:
    """Normalize a raw message log into Messages.

    Accepts Message objects or dicts shaped like the chat store's documents
    (``role``/``type`` and ``content``/``text`` keys). Malformed entries are
    skipped; a log that is not iterable at all is treated as empty.
    """
    if raw_messages is None or isinstance(raw_messages, (str, bytes, Mapping)):
        return []
    if not isinstance(raw_messages, Iterable):
        return []

    messages: list[Message] = []
    for i, raw in enumerate(raw_messages):
        msg = _coerce_one(raw)
        if msg is None:
            logger.debug("Skipping malformed or non-turn message at position %d", i)
            continue
        messages.append(msg)
    return messages


class CycleAssembler:
    """Groups user/assistant messages into fully paired cycles."""

    def assemble(self, messages: Iterable[Message]) -> list[Cycle]:
        """Scan messages in order and emit one Cycle per answered user turn.

        A user message that is followed by another user message before any
        reply is dropped. Assistant messages without a pending user turn are
        ignored. Blank messages count as absent: a blank reply leaves the
        user turn waiting for the next one.
        """
        cycles: list[Cycle] = []
        pending: Message | None = None

        for msg in messages:
            if not msg.content.strip():
                logger.debug("Skipping blank %s message", msg.role.value)
                continue
            if msg.role is Role.USER:
                if pending is not None:
                    logger.debug(
                        "Dropping unanswered user message before cycle %d", len(cycles)
                    )
                pending = msg
            elif pending is not None:
                cycles.append(Cycle(
                    index=len(cycles),
                    user_text=pending.content,
                    assistant_text=msg.content,
                    timestamp=pending.timestamp,
                ))
                pending = None

        return cycles
