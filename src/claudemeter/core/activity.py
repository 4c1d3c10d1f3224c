"""Bounded activity log shown alongside the usage view."""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from claudemeter.config.settings import DEFAULT_MAX_LOG_ENTRIES
from claudemeter.core.clock import Clock
from claudemeter.core.clock import SystemClock

logger = logging.getLogger("claudemeter.activity")

LogListener = Callable[[str, datetime], None]


@dataclass(frozen=True)
class LogEntry:
    timestamp: datetime
    message: str


class ActivityLog:
    """Keep the most recent messages and mirror them to the stdlib logger.

    The log is advisory: a failing listener is reported and otherwise
    ignored.
    """

    def __init__(
        self,
        max_entries: int = DEFAULT_MAX_LOG_ENTRIES,
        clock: Clock | None = None,
        listener: LogListener | None = None,
    ):
        self._entries: deque[LogEntry] = deque(maxlen=max(1, max_entries))
        self._clock = clock or SystemClock()
        self.listener = listener

    def add(self, message: str, level: int = logging.INFO) -> LogEntry:
        """Append a message, forward it to the logger and the listener."""
        entry = LogEntry(timestamp=self._clock.now(), message=message)
        self._entries.append(entry)
        logger.log(level, message)

        if self.listener is not None:
            try:
                self.listener(entry.message, entry.timestamp)
            except Exception:
                logger.exception("Log listener failed")
        return entry

    def entries(self, limit: int | None = None) -> list[LogEntry]:
        """Return entries oldest first, optionally only the last ``limit``."""
        items = list(self._entries)
        if limit is not None:
            return items[-limit:] if limit > 0 else []
        return items

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
