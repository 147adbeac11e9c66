"""In-memory TTL cache used to avoid repeated product-recognition calls.

Scanner clients often resend the same photo (double taps, retries). Caching
by image digest keeps those off the provider throttle entirely.
"""

from __future__ import annotations

import logging
import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from hashlib import sha256
from typing import Any, Callable

logger = logging.getLogger(__name__)


@dataclass
class CacheItem:
    value: Any
    expires_at: float


class SimpleTTLCache:
    """Thread-safe, in-memory TTL cache with LRU eviction.

    Attributes:
        ttl_seconds: Time-to-live applied to all entries.
        max_entries: Maximum number of cached items (None for unlimited).
    """

    def __init__(
        self,
        ttl_seconds: int = 3600,
        max_entries: int | None = 512,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be > 0")
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._clock = clock
        self._store: OrderedDict[str, CacheItem] = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def __len__(self) -> int:
        with self._lock:
            return len(self._store)

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None if missing or expired."""

        with self._lock:
            item = self._store.get(key)
            if item is not None and item.expires_at <= self._clock():
                self._evict(key)
                item = None

            if item is None:
                self._misses += 1
                logger.debug("cache.miss", extra={"cache_key": key[:16]})
                return None

            self._hits += 1
            self._store.move_to_end(key)
            logger.debug("cache.hit", extra={"cache_key": key[:16]})
            return item.value

    def set(self, key: str, value: Any) -> None:
        """Store a value, dropping expired entries and the LRU overflow."""

        with self._lock:
            now = self._clock()
            for stale in [k for k, it in self._store.items() if it.expires_at <= now]:
                self._evict(stale)

            self._store[key] = CacheItem(value=value, expires_at=now + self._ttl)
            self._store.move_to_end(key)

            if self._max_entries is not None:
                while len(self._store) > self._max_entries:
                    self._store.popitem(last=False)
                    self._evictions += 1

            logger.debug(
                "cache.set",
                extra={"cache_key": key[:16], "size": len(self._store), "ttl_s": self._ttl},
            )

    def clear(self) -> None:
        """Remove all cached entries and reset counters."""

        with self._lock:
            self._store.clear()
            self._hits = self._misses = self._evictions = 0

    def stats(self) -> dict[str, int | None]:
        """Return lightweight cache metrics without exposing values."""

        with self._lock:
            return {
                "ttl_seconds": self._ttl,
                "max_entries": self._max_entries,
                "entries": len(self._store),
                "hits": self._hits,
                "misses": self._misses,
                "evictions": self._evictions,
            }

    def _evict(self, key: str) -> None:
        if self._store.pop(key, None) is not None:
            self._evictions += 1


def build_cache_key(image_bytes: bytes, *, namespace: str, salt: str | None = None) -> str:
    """Stable cache key for an image under a namespace (e.g. prompt version).

    Args:
        image_bytes: Decoded image bytes.
        namespace: Partition such as ``product:v1``; bump it when prompts change.
        salt: Optional extra partition, e.g. the model name.

    Returns:
        Hex-encoded SHA-256 digest string.
    """

    hasher = sha256()
    hasher.update(namespace.encode())
    hasher.update(b"\x00")
    if salt:
        hasher.update(salt.encode())
        hasher.update(b"\x00")
    hasher.update(image_bytes)
    return hasher.hexdigest()
