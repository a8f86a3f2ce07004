"""Pluggable key/value cache with expiry.

The core never keeps process-local state of its own; collaborators that
want a cache (the identity oracle, for instance) receive one of these.
``InMemoryCache`` suits a single instance; a shared backend can be
dropped in for several instances by implementing ``Cache``.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any

from orchestration.clock import Clock, SystemClock


class Cache(ABC):
    """Minimal async cache interface."""

    @abstractmethod
    async def get(self, key: str) -> Any | None:
        """Return the cached value, or None if missing or expired."""
        ...

    @abstractmethod
    async def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        ...

    @abstractmethod
    async def expire(self, key: str) -> None:
        """Drop *key* immediately."""
        ...


class InMemoryCache(Cache):
    """Dict-backed cache for a single process."""

    def __init__(self, clock: Clock | None = None, max_entries: int = 10_000) -> None:
        self._clock = clock or SystemClock()
        self._max_entries = max_entries
        self._entries: dict[str, tuple[Any, int | None]] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> Any | None:
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and expires_at <= self._clock.now():
                del self._entries[key]
                return None
            return value

    async def set(self, key: str, value: Any, ttl_seconds: float | None = None) -> None:
        async with self._lock:
            if len(self._entries) >= self._max_entries and key not in self._entries:
                self._purge_expired()
                if len(self._entries) >= self._max_entries:
                    # Oldest insertion goes first.
                    self._entries.pop(next(iter(self._entries)))
            expires_at = (
                self._clock.now() + int(ttl_seconds * 1000) if ttl_seconds is not None else None
            )
            self._entries[key] = (value, expires_at)

    async def expire(self, key: str) -> None:
        async with self._lock:
            self._entries.pop(key, None)

    def _purge_expired(self) -> int:
        now = self._clock.now()
        stale = [k for k, (_, exp) in self._entries.items() if exp is not None and exp <= now]
        for k in stale:
            del self._entries[k]
        return len(stale)

    def __len__(self) -> int:
        return len(self._entries)
