"""Bounded in-memory buffer of recent ad-hoc webhook messages."""

import time
from collections import deque
from dataclasses import dataclass
from datetime import datetime

from cronwatch.core.datetime_utils import utc_now


@dataclass(frozen=True)
class WebhookMessage:
    id: str
    message: str
    source: str
    timestamp: datetime


class WebhookInbox:
    """
    Last N webhook messages plus process start time.

    Created in the FastAPI lifespan and stored on app.state; nothing here
    is persisted.
    """

    def __init__(self, max_size: int = 50) -> None:
        self._messages: deque[WebhookMessage] = deque(maxlen=max_size)
        self._counter = 0
        self.started_at = time.monotonic()

    def add(self, message: str, source: str) -> WebhookMessage:
        self._counter += 1
        now = utc_now()
        entry = WebhookMessage(
            id=f"{time.time_ns() // 1_000_000}-{self._counter}",
            message=message,
            source=source,
            timestamp=now,
        )
        self._messages.append(entry)
        return entry

    def clear(self) -> None:
        self._messages.clear()

    def all(self) -> list[WebhookMessage]:
        """All buffered messages, oldest first."""
        return list(self._messages)

    def recent(self, n: int = 5) -> list[WebhookMessage]:
        """Newest `n` messages, newest first."""
        return list(reversed(self._messages))[:n]

    @property
    def uptime_seconds(self) -> float:
        return time.monotonic() - self.started_at

    def __len__(self) -> int:
        return len(self._messages)
