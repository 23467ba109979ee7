"""
Cache - bounded TTL store for provider results

Quotes and news are keyed by (kind, provider, symbol). Every entry carries
its own deadline; the oldest-used entry is dropped when the store is full.
"""

import time
from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from threading import RLock
from typing import Any, Dict, Generic, Optional, Tuple, TypeVar


T = TypeVar('T')


class CacheKind(str, Enum):
    """What is being cached"""
    QUOTE = "quote"
    NEWS = "news"


@dataclass
class CacheConfig:
    max_size: int = 512
    default_ttl: int = 60
    # seconds per CacheKind value; 0 keeps an entry until it is evicted
    kind_ttls: Dict[str, int] = field(default_factory=lambda: {
        CacheKind.QUOTE.value: 30,
        CacheKind.NEWS.value: 900,
    })

    def ttl_for(self, kind: Optional[CacheKind]) -> int:
        if kind is None:
            return self.default_ttl
        return self.kind_ttls.get(kind.value, self.default_ttl)


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    expired: int = 0
    evictions: int = 0
    size: int = 0

    @property
    def hit_rate(self) -> float:
        lookups = self.hits + self.misses
        return self.hits / lookups if lookups else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "expired": self.expired,
            "evictions": self.evictions,
            "size": self.size,
            "hit_rate": round(self.hit_rate * 100, 2),
        }


class LRUCache(Generic[T]):
    """
    Thread-safe LRU cache with per-entry deadlines

    The gateway reads through it before calling a provider and writes
    successful results back; failures are never stored.
    """

    def __init__(self, config: Optional[CacheConfig] = None):
        self.config = config or CacheConfig()
        # key -> (deadline or None, value)
        self._entries: "OrderedDict[str, Tuple[Optional[float], T]]" = OrderedDict()
        self._lock = RLock()
        self._stats = CacheStats()

    @staticmethod
    def make_key(kind: CacheKind, provider: str, symbol: str) -> str:
        return f"{kind.value}:{provider}:{symbol.upper()}"

    def get(self, key: str) -> Optional[T]:
        """
        Look up a live entry

        Args:
            key: value from make_key

        Returns:
            the stored value, or None when missing or past its deadline
        """
        with self._lock:
            found = self._entries.get(key)
            if found is None:
                self._stats.misses += 1
                return None

            deadline, value = found
            if deadline is not None and time.time() > deadline:
                del self._entries[key]
                self._stats.misses += 1
                self._stats.expired += 1
                return None

            self._entries.move_to_end(key)
            self._stats.hits += 1
            return value

    def set(
        self,
        key: str,
        value: T,
        ttl: Optional[int] = None,
        kind: Optional[CacheKind] = None
    ) -> None:
        """
        Store a value

        Args:
            key: value from make_key
            value: provider result
            ttl: explicit lifetime in seconds, wins over kind
            kind: picks the lifetime from config.kind_ttls
        """
        lifetime = ttl if ttl is not None else self.config.ttl_for(kind)
        deadline = time.time() + lifetime if lifetime > 0 else None

        with self._lock:
            self._entries.pop(key, None)
            while self._entries and len(self._entries) >= self.config.max_size:
                self._entries.popitem(last=False)
                self._stats.evictions += 1
            self._entries[key] = (deadline, value)

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    @property
    def stats(self) -> CacheStats:
        with self._lock:
            self._stats.size = len(self._entries)
            return self._stats
