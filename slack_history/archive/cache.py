"""Caches owned by a single :class:`ArchiveStore`.

Values stored here are immutable snapshots that are replaced whole, so the
caches need no locking: a reader racing a writer sees either the old or the
new value.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Hashable
from typing import Generic, TypeVar

from slack_history.models.message import MessageInfo

DEFAULT_MESSAGE_CACHE_SIZE = 50

T = TypeVar("T")


class MessageCache:
    """Fully loaded, ts-sorted message lists, evicted in insertion order."""

    def __init__(self, max_size: int = DEFAULT_MESSAGE_CACHE_SIZE) -> None:
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._max_size = max_size
        self._entries: dict[Hashable, tuple[MessageInfo, ...]] = {}

    def get(self, key: Hashable) -> tuple[MessageInfo, ...] | None:
        return self._entries.get(key)

    def put(self, key: Hashable, messages: tuple[MessageInfo, ...]) -> None:
        self._entries.pop(key, None)
        self._entries[key] = messages
        while len(self._entries) > self._max_size:
            oldest = next(iter(self._entries))
            del self._entries[oldest]

    def clear(self) -> None:
        self._entries = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries


class TtlCache(Generic[T]):
    """Single value that expires ``ttl`` seconds after it was stored."""

    def __init__(
        self,
        ttl: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._ttl = ttl
        self._clock = clock
        self._value: T | None = None
        self._stored_at: float | None = None

    def get(self) -> T | None:
        if self._stored_at is None:
            return None
        if self._clock() - self._stored_at >= self._ttl:
            return None
        return self._value

    def set(self, value: T) -> None:
        self._value = value
        self._stored_at = self._clock()

    def clear(self) -> None:
        self._value = None
        self._stored_at = None
