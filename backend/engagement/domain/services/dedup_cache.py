"""
TTL Dedup Cache
Time-windowed "already handled" cache shared by the lifecycle handler
and the verification notifier
"""
import logging
from typing import Dict, Optional

from engagement.domain.services.clock import Clock

logger = logging.getLogger(__name__)


class TTLDedupCache:
    """
    Remembers when a key was last accepted and rejects repeats inside the window.

    A rejected repeat does not refresh the entry: the window is measured from
    the last accepted occurrence, so a steady stream of duplicates cannot keep
    a key blocked forever.

    All operations are synchronous, so within one event loop a
    check-and-record cannot interleave with another.
    """

    # Expired entries are swept once the cache grows past this size
    PURGE_THRESHOLD = 1000

    def __init__(self, ttl_seconds: float, clock: Clock, name: str = "dedup"):
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self.ttl_seconds = ttl_seconds
        self.name = name
        self._clock = clock
        self._entries: Dict[str, float] = {}  # key -> accepted at (monotonic seconds)

    def _is_live(self, accepted_at: float, now: float) -> bool:
        return now - accepted_at < self.ttl_seconds

    def seen_recently(self, key: str) -> bool:
        """True if `key` was accepted inside the current window."""
        accepted_at = self._entries.get(key)
        if accepted_at is None:
            return False
        return self._is_live(accepted_at, self._clock.monotonic())

    def check_and_add(self, key: str) -> bool:
        """
        Accept `key` unless it was accepted inside the window.

        Returns:
            True if accepted (first occurrence), False if it is a duplicate
        """
        now = self._clock.monotonic()
        accepted_at = self._entries.get(key)

        if accepted_at is not None and self._is_live(accepted_at, now):
            logger.debug(
                f"[{self.name}] duplicate {key} within {self.ttl_seconds:.0f}s window "
                f"({now - accepted_at:.1f}s since last)"
            )
            return False

        self._entries[key] = now
        if len(self._entries) > self.PURGE_THRESHOLD:
            self.purge_expired()
        return True

    def add(self, key: str) -> None:
        """Record `key` as handled now, regardless of prior state."""
        self._entries[key] = self._clock.monotonic()

    def discard(self, key: str) -> None:
        """Forget `key` so the next occurrence is accepted."""
        self._entries.pop(key, None)

    def expires_in(self, key: str) -> Optional[float]:
        """Seconds until `key` may be accepted again, None if it already may."""
        accepted_at = self._entries.get(key)
        if accepted_at is None:
            return None
        remaining = self.ttl_seconds - (self._clock.monotonic() - accepted_at)
        return remaining if remaining > 0 else None

    def purge_expired(self) -> int:
        """Drop expired entries. Returns how many were removed."""
        now = self._clock.monotonic()
        expired = [k for k, t in self._entries.items() if not self._is_live(t, now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"[{self.name}] purged {len(expired)} expired entries")
        return len(expired)

    def clear(self) -> None:
        self._entries.clear()

    def __contains__(self, key: str) -> bool:
        return self.seen_recently(key)

    def __len__(self) -> int:
        return len(self._entries)
