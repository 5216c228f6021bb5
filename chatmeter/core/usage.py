"""Period-keyed usage counters.

Counters are keyed by ``(period, token)`` where the period is the UTC calendar
month (``YYYY-MM``). Nothing resets them explicitly: when the month changes the
gateway starts reading a key that does not exist yet, so usage starts at zero.
Entries for past periods are inert and only dropped by :meth:`UsageCounter.prune`.

Counters live in process memory only. A restart resets current-period usage.
"""
from __future__ import annotations

import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Iterator

CounterKey = tuple[str, str]


def current_period(now: datetime | None = None) -> str:
    """Return the ``YYYY-MM`` billing period for ``now`` (UTC)."""
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return now.strftime("%Y-%m")


class UsageCounter:
    """Thread-safe counters with one lock per key."""

    def __init__(self) -> None:
        self._counts: dict[CounterKey, int] = {}
        self._locks: dict[CounterKey, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, key: CounterKey) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(key)
            if lock is None:
                lock = self._locks[key] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, period: str, token: str) -> Iterator[None]:
        """Hold the lock of a single key."""
        with self._lock_for((period, token)):
            yield

    @contextmanager
    def hold_many(self, period: str, *tokens: str) -> Iterator[None]:
        # fixed acquisition order so two multi-key holders cannot deadlock
        locks = [self._lock_for((period, token)) for token in sorted(set(tokens))]
        for index, lock in enumerate(locks):
            try:
                lock.acquire()
            except BaseException:
                for acquired in reversed(locks[:index]):
                    acquired.release()
                raise
        try:
            yield
        finally:
            for lock in reversed(locks):
                lock.release()

    def peek(self, period: str, token: str) -> int:
        return self._counts.get((period, token), 0)

    def increment(self, period: str, token: str) -> int:
        with self.hold(period, token):
            return self.increment_held(period, token)

    def increment_held(self, period: str, token: str) -> int:
        """Increment a key whose lock the caller already holds via :meth:`hold`."""
        key = (period, token)
        value = self._counts.get(key, 0) + 1
        self._counts[key] = value
        return value

    def _forget_lock(self, key: CounterKey) -> None:
        with self._guard:
            self._locks.pop(key, None)

    def discard(self, period: str, token: str) -> int:
        """Drop a key and its lock.

        Callers must keep new increments of the same key out while this runs;
        the registry does so by holding its own lock.
        """
        key = (period, token)
        with self.hold(period, token):
            value = self._counts.pop(key, 0)
            self._forget_lock(key)
        return value

    def move(self, period: str, old_token: str, new_token: str) -> int:
        """Move the count of ``old_token`` onto ``new_token`` and drop the old key."""
        with self.hold_many(period, old_token, new_token):
            value = self._counts.pop((period, old_token), 0)
            if value:
                self._counts[(period, new_token)] = value
            else:
                self._counts.pop((period, new_token), None)
            self._forget_lock((period, old_token))
            return value

    def report(self, period: str) -> dict[str, int]:
        with self._guard:
            items = self._counts.copy().items()
        return {token: count for (key_period, token), count in items if key_period == period}

    def prune(self, keep_period: str) -> int:
        """Drop every key outside ``keep_period``; returns the number of counters removed."""
        with self._guard:
            stale = [key for key in self._counts.copy() if key[0] != keep_period]
            for key in stale:
                self._counts.pop(key, None)
            for key in [key for key in self._locks if key[0] != keep_period]:
                self._locks.pop(key, None)
        return len(stale)


__all__ = ["CounterKey", "UsageCounter", "current_period"]
