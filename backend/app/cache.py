"""Time-boxed memoization for read-only queries.

Entries are keyed explicitly and may carry tags so writers can drop every
entry derived from data they just changed. Two callers missing the same key
at once both compute; the sources are idempotent reads, so the later write
simply wins.
"""

import time
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from backend.app.utils.metrics import memo_cache_hits_total

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 60


@dataclass
class CacheEntry(Generic[T]):
    """Cached value with its absolute expiry."""

    value: T
    expires_at: float

    def is_fresh(self, now: float) -> bool:
        """Check if cache entry is still valid."""
        return now < self.expires_at


class MemoCache:
    """In-process key → (value, expiry) cache with get-or-compute."""

    def __init__(
        self,
        default_ttl_seconds: int = DEFAULT_TTL_SECONDS,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize cache.

        Args:
            default_ttl_seconds: TTL used when a call does not pass one
            clock: Monotonic seconds source (injectable for tests)
        """
        self._default_ttl = default_ttl_seconds
        self._clock = clock or time.monotonic
        self._entries: dict[str, CacheEntry[Any]] = {}
        self._tags: dict[str, set[str]] = {}

    def get(self, key: str) -> Any | None:
        """Get cached value if fresh, None otherwise."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_fresh(self._clock()):
            return entry.value
        del self._entries[key]
        return None

    def set(
        self,
        key: str,
        value: Any,
        ttl_seconds: int | None = None,
        tags: Iterable[str] = (),
    ) -> None:
        """Store value with a TTL and optional invalidation tags."""
        ttl = self._default_ttl if ttl_seconds is None else ttl_seconds
        self._entries[key] = CacheEntry(value=value, expires_at=self._clock() + ttl)
        for tag in tags:
            self._tags.setdefault(tag, set()).add(key)

    async def get_or_compute(
        self,
        key: str,
        compute: Callable[[], Awaitable[T]],
        *,
        ttl_seconds: int | None = None,
        tags: Iterable[str] = (),
    ) -> T:
        """Return the cached value for ``key`` or await ``compute`` and cache it."""
        entry = self._entries.get(key)
        if entry is not None and entry.is_fresh(self._clock()):
            memo_cache_hits_total.labels(namespace=key.split(":", 1)[0]).inc()
            return entry.value  # type: ignore[no-any-return]

        value = await compute()
        self.set(key, value, ttl_seconds=ttl_seconds, tags=tags)
        return value

    def invalidate(self, key: str) -> None:
        """Drop a single key."""
        self._entries.pop(key, None)

    def invalidate_tag(self, tag: str) -> None:
        """Drop every key stored under ``tag``."""
        for key in self._tags.pop(tag, set()):
            self._entries.pop(key, None)

    def clear(self) -> None:
        """Drop everything (useful for testing)."""
        self._entries.clear()
        self._tags.clear()

    def __len__(self) -> int:
        return len(self._entries)
