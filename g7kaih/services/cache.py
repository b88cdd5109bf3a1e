from threading import Lock
import time
from typing import Any, Optional, Protocol

# Read-through cache for reporting views. TTL <= 0 means "do not cache".


class Cache(Protocol):
    def get(self, key: str) -> Optional[Any]:
        ...

    def put(self, key: str, value: Any, ttl: float) -> None:
        ...


class NullCache:
    def get(self, key: str) -> Optional[Any]:
        return None

    def put(self, key: str, value: Any, ttl: float) -> None:
        return None


class TTLCache:
    """In-memory TTL cache. Per process; suitable for short bursts of repeated loads."""

    def __init__(self):
        self._lock = Lock()
        self._entries = {}  # key -> (value, expires_at)

    def get(self, key: str) -> Optional[Any]:
        now = time.monotonic()
        with self._lock:
            entry = self._entries.get(key)
            if not entry:
                return None
            value, expires_at = entry
            if expires_at <= now:
                del self._entries[key]
                return None
            return value

    def put(self, key: str, value: Any, ttl: float) -> None:
        if ttl <= 0:
            return
        now = time.monotonic()
        with self._lock:
            self._prune(now)
            self._entries[key] = (value, now + ttl)

    def _prune(self, now: float) -> None:
        expired = [k for k, (_, expires_at) in self._entries.items() if expires_at <= now]
        for k in expired:
            del self._entries[k]


def make_cache(ttl: float) -> Cache:
    return TTLCache() if ttl > 0 else NullCache()
