"""Bounded, timestamped log of relay output."""

from __future__ import annotations

from collections import deque
from datetime import datetime
from typing import Callable

from talkbridge.common.settings import settings

__all__ = ["ServerLogBuffer"]


class ServerLogBuffer:
    """Ring buffer keeping the most recent relay log lines (FIFO eviction)."""

    def __init__(
        self,
        capacity: int | None = None,
        now: Callable[[], datetime] = datetime.now,
    ) -> None:
        """
        Initialize buffer.

        Args:
            capacity:
                Maximum retained lines.
            now:
                Wall-clock source used for line timestamps.
        """
        self.capacity: int = settings.LOG_CAPACITY if capacity is None else capacity
        if self.capacity < 1:
            raise ValueError("Log capacity must be at least 1")
        self._lines: deque[str] = deque(maxlen=self.capacity)
        self._now: Callable[[], datetime] = now

    def line_append(self, line: str) -> str:
        """
        Timestamp and store one line, evicting the oldest when full.

        Args:
            line:
                Raw log text.

        Returns:
            The stored, timestamped line.
        """
        formatted: str = f"[{self._now().strftime('%H:%M:%S')}] {line}"
        self._lines.append(formatted)
        return formatted

    def lines_get(self) -> list[str]:
        """Return a copy of the retained lines, oldest first."""
        return list(self._lines)

    def __len__(self) -> int:
        return len(self._lines)
