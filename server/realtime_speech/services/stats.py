"""Usage counters fed by the orchestrators."""
from __future__ import annotations

import threading
from typing import Protocol


class StatsSink(Protocol):
    def record_audio_chars(self, count: int) -> None: ...


class InMemoryStatsSink:
    """Process-wide character counter; safe to share across concurrent requests."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._audio_chars = 0
        self._requests = 0

    def record_audio_chars(self, count: int) -> None:
        with self._lock:
            self._audio_chars += count
            self._requests += 1

    @property
    def audio_chars(self) -> int:
        with self._lock:
            return self._audio_chars

    def snapshot(self) -> dict[str, int]:
        with self._lock:
            return {"audio_chars": self._audio_chars, "synthesis_requests": self._requests}


stats_sink = InMemoryStatsSink()
