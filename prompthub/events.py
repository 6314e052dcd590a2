"""Execution record for prompt and DAG runs, kept in memory and optionally as JSONL.

Event types are dotted (`prompt.executed`, `dag.node.failed`); readers and live
subscribers can narrow to a type prefix such as `dag.`.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections import deque
from pathlib import Path

from prompthub.models import Event

logger = logging.getLogger(__name__)

SUBSCRIBER_QUEUE_SIZE = 1000


def type_matches(event_type: str, prefix: str | None) -> bool:
    return not prefix or event_type == prefix or event_type.startswith(prefix.rstrip(".") + ".")


class EventBus:
    """Bounded execution history with per-prefix live subscriptions."""

    def __init__(self, log_file: Path | None = None, max_history: int = 10000):
        self.log_file = log_file
        self._history: deque[Event] = deque(maxlen=max_history)
        self._subscriptions: dict[asyncio.Queue, str | None] = {}

        if log_file:
            log_file.parent.mkdir(parents=True, exist_ok=True)

    def emit(self, event: Event):
        self._history.append(event)
        if self.log_file:
            with open(self.log_file, "a") as f:
                f.write(json.dumps(event.to_dict(), default=str) + "\n")
        for queue, prefix in self._subscriptions.items():
            if not type_matches(event.type, prefix):
                continue
            try:
                queue.put_nowait(event)
            except asyncio.QueueFull:
                logger.warning(f"Dropping {event.type} for {event.subject_id}: subscriber queue full")
        logger.debug(f"{event.type} [{event.subject_id}] {event.data}")

    def emit_simple(self, type: str, subject_id: str, **data):
        self.emit(Event(type=type, subject_id=subject_id, data=data))

    def recent(self, limit: int = 50, offset: int = 0, type_prefix: str | None = None) -> list[Event]:
        """Newest-last page of history, counted back from the end."""
        events = [e for e in self._history if type_matches(e.type, type_prefix)]
        end = max(0, len(events) - offset)
        return events[max(0, end - limit):end]

    def subscribe(self, type_prefix: str | None = None) -> asyncio.Queue:
        """Queue that receives every later event whose type falls under `type_prefix`."""
        queue: asyncio.Queue = asyncio.Queue(maxsize=SUBSCRIBER_QUEUE_SIZE)
        self._subscriptions[queue] = type_prefix
        return queue

    def unsubscribe(self, queue: asyncio.Queue):
        self._subscriptions.pop(queue, None)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscriptions)
