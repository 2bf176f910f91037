"""TTL cache for paid API responses."""

import time
from threading import Lock
from typing import Any, Callable, Dict, Generic, NamedTuple, Optional, TypeVar
from urllib.parse import parse_qsl, urlencode, urlsplit


V = TypeVar("V")


class CacheEntry(NamedTuple):
    value: Any
    expires_at: float


class TtlCache(Generic[V]):
    """Thread-safe key/value store with a fixed time-to-live per entry.

    Expiry is checked lazily on ``get``; there is no background sweep, no
    capacity bound and no LRU.

    Example:
        cache = TtlCache(ttl_ms=60_000)
        cache.set(build_cache_key(url), payload)
    """

    def __init__(self, ttl_ms: int, clock: Callable[[], float] = time.monotonic):
        """Initialize cache.

        Args:
            ttl_ms: Lifetime of each entry in milliseconds
            clock: Seconds source, monotonic by default
        """
        if ttl_ms <= 0:
            raise ValueError(f"ttl_ms must be positive, got {ttl_ms}")
        self.ttl_ms = ttl_ms
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = Lock()

    def get(self, key: str, default: Any = None) -> Optional[V]:
        """Return the cached value, or ``default`` if absent or expired.

        Pass a sentinel as ``default`` to tell a cached None from a miss.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return default
            if entry.expires_at <= self._clock():
                del self._entries[key]
                return default
            return entry.value

    def set(self, key: str, value: V) -> None:
        expires_at = self._clock() + self.ttl_ms / 1000.0
        with self._lock:
            self._entries[key] = CacheEntry(value, expires_at)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def build_cache_key(url: Any, namespace: Optional[str] = None) -> str:
    """Build a cache key from a request URL.

    The key is the path plus the query parameters sorted by name and value,
    so parameter order does not matter but every path or value difference
    does.

    Args:
        url: Request URL (str or httpx.URL)
        namespace: Optional prefix, e.g. the tool name

    Returns:
        Cache key string
    """
    parts = urlsplit(str(url))
    query = urlencode(sorted(parse_qsl(parts.query, keep_blank_values=True)))
    key = f"{parts.path or '/'}?{query}"
    if namespace:
        return f"{namespace}:{key}"
    return key
