"""In-memory failed-attempt counter with lockout, keyed by a normalized identifier."""

import math
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

MAX_ATTEMPTS = 5
LOCKOUT_SECONDS = 15 * 60


@dataclass(frozen=True)
class RateLimitStatus:
    """Result of RateLimiter.check."""

    blocked: bool
    retry_after_seconds: int | None = None


@dataclass
class _Entry:
    count: int = 0
    blocked_until: float = 0.0


class RateLimiter:
    """
    Per-process lockout table. State is lost on restart, and each process of a
    multi-instance deployment counts independently.

    Failures accumulate per key; from the max_attempts-th failure on, every
    failure (re)starts a lockout of lockout_seconds. clear() forgets the key.
    """

    def __init__(
        self,
        max_attempts: int = MAX_ATTEMPTS,
        lockout_seconds: float = LOCKOUT_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_attempts = max_attempts
        self.lockout_seconds = lockout_seconds
        self._clock = clock
        self._entries: dict[str, _Entry] = {}
        self._lock = threading.Lock()

    def check(self, key: str) -> RateLimitStatus:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and entry.blocked_until > now:
                return RateLimitStatus(
                    blocked=True,
                    retry_after_seconds=math.ceil(entry.blocked_until - now),
                )
        return RateLimitStatus(blocked=False)

    def record_failure(self, key: str) -> int:
        """Count one failure for key; return the updated count."""
        now = self._clock()
        with self._lock:
            entry = self._entries.setdefault(key, _Entry())
            entry.count += 1
            if entry.count >= self.max_attempts:
                entry.blocked_until = now + self.lockout_seconds
            return entry.count

    def clear(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
