from __future__ import annotations

import hashlib
import json
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

T = TypeVar("T")


def _now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class CacheEntry(Generic[T]):
    key: str
    value: T
    ttl_ms: int
    created_at_ms: int

    def is_expired(self, now_ms: int) -> bool:
        return self.created_at_ms + self.ttl_ms < now_ms

    def to_dict(self) -> Dict[str, Any]:
        return {
            "key": self.key,
            "value": self.value,
            "ttl_ms": self.ttl_ms,
            "created_at_epoch_ms": self.created_at_ms,
        }


class TTLCache(Generic[T]):
    """
    In-memory cache with per-entry TTL.

    - Expired entries are dropped lazily on get() or eagerly on cleanup()
    - stats() never mutates state
    - Thread-safe operations
    """

    def __init__(self, clock: Callable[[], int] = _now_ms) -> None:
        self._cache: Dict[str, CacheEntry[T]] = {}
        self._lock = threading.Lock()
        self._clock = clock
        self.hits = 0
        self.misses = 0

    @staticmethod
    def make_key(prefix: str, params: Dict[str, Any]) -> str:
        """
        Build a cache key that is stable regardless of parameter order.

        Nested structures are serialized with sorted keys, then hashed.
        """
        try:
            json_str = json.dumps(params, sort_keys=True, separators=(",", ":"), default=str)
        except (TypeError, ValueError):
            json_str = str(sorted(params.items()))
        return f"{prefix}:{hashlib.md5(json_str.encode()).hexdigest()}"

    def set(self, key: str, value: T, ttl_ms: int) -> None:
        entry = CacheEntry(key=key, value=value, ttl_ms=int(ttl_ms), created_at_ms=self._clock())
        with self._lock:
            self._cache[key] = entry

    def get(self, key: str) -> Optional[T]:
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self.misses += 1
                return None
            if entry.is_expired(self._clock()):
                self._cache.pop(key, None)
                self.misses += 1
                return None
            self.hits += 1
            return entry.value

    def delete(self, key: str) -> None:
        with self._lock:
            self._cache.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self.hits = 0
            self.misses = 0

    def cleanup(self) -> int:
        """Remove every expired entry. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired_keys = [k for k, v in self._cache.items() if v.is_expired(now)]
            for key in expired_keys:
                self._cache.pop(key, None)
        return len(expired_keys)

    def stats(self) -> Dict[str, int]:
        now = self._clock()
        with self._lock:
            total = len(self._cache)
            expired = sum(1 for entry in self._cache.values() if entry.is_expired(now))
        return {"total": total, "expired": expired}

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)
