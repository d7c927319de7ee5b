"""Read-through cache with per-key freshness windows."""

from __future__ import annotations

import time
from dataclasses import dataclass
from threading import RLock
from typing import Any, Callable, Hashable, Iterable, Optional, TypeVar

from workload.utils.logger import get_logger


logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class _Entry:
    value: Any
    stored_at: float


class FreshnessCache:
    """Serves a cached value until its freshness window lapses.

    Never authoritative: entries are dropped on expiry or on explicit
    invalidation after a mutation, and a loader failure never leaves a
    stale value in place of a fresh read.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None) -> None:
        self._clock = clock or time.monotonic
        self._entries: dict[tuple[Hashable, ...], _Entry] = {}
        self._lock = RLock()

    def get_or_load(
        self,
        key: tuple[Hashable, ...],
        loader: Callable[[], T],
        *,
        max_age_seconds: float,
        refresh: bool = False,
    ) -> T:
        now = self._clock()
        if not refresh:
            with self._lock:
                entry = self._entries.get(key)
            if entry is not None and now - entry.stored_at < max_age_seconds:
                return entry.value

        value = loader()
        with self._lock:
            self._entries[key] = _Entry(value=value, stored_at=self._clock())
        return value

    def peek(self, key: tuple[Hashable, ...]) -> Any:
        with self._lock:
            entry = self._entries.get(key)
        return None if entry is None else entry.value

    def invalidate(self, keys: Iterable[tuple[Hashable, ...]]) -> list[tuple[Hashable, ...]]:
        """Drop ``keys``; returns the ones that were actually cached."""
        dropped: list[tuple[Hashable, ...]] = []
        with self._lock:
            for key in keys:
                if self._entries.pop(key, None) is not None:
                    dropped.append(key)
        if dropped:
            logger.debug("Cache invalidated | keys=%s", dropped)
        return dropped

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries
