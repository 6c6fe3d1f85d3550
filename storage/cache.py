"""
Cache
TTL caches for web-search results
"""
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional
from datetime import datetime, timedelta
import logging


logger = logging.getLogger(__name__)


class BaseCache(ABC):
    """
    Cache interface
    """

    def __init__(self, ttl: Optional[int] = None):
        """
        Args:
            ttl: default expiry in seconds, None = never expires
        """
        self.ttl = ttl

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        pass

    @abstractmethod
    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        pass

    @abstractmethod
    def clear(self) -> None:
        pass


class MemoryCache(BaseCache):
    """
    In-process dict cache with TTL and a size cap.
    Oldest entries are evicted first once ``max_size`` is exceeded.
    """

    def __init__(
        self,
        ttl: Optional[int] = None,
        max_size: int = 1000,
        clock: Callable[[], datetime] = datetime.now,
    ):
        super().__init__(ttl)
        self.max_size = max_size
        self._clock = clock
        self._cache: Dict[str, Dict] = {}

    def _is_expired(self, entry: Dict) -> bool:
        if entry.get("expires_at") is None:
            return False
        return self._clock() > entry["expires_at"]

    def _cleanup(self):
        expired_keys = [k for k, v in self._cache.items() if self._is_expired(v)]
        for key in expired_keys:
            del self._cache[key]

        # leave room for the entry about to be inserted
        overflow = len(self._cache) - self.max_size + 1
        if overflow > 0:
            sorted_keys = sorted(self._cache.keys(), key=lambda k: self._cache[k]["created_at"])
            for key in sorted_keys[:overflow]:
                del self._cache[key]
            logger.debug(f"[Cache] Evicted {overflow} entries")

    def get(self, key: str) -> Optional[Any]:
        entry = self._cache.get(key)
        if entry is None:
            return None

        if self._is_expired(entry):
            del self._cache[key]
            return None

        return entry["value"]

    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        if key not in self._cache:
            self._cleanup()

        ttl = ttl or self.ttl
        now = self._clock()
        self._cache[key] = {
            "value": value,
            "created_at": now,
            "expires_at": now + timedelta(seconds=ttl) if ttl else None,
        }

    def clear(self) -> None:
        self._cache.clear()

    def size(self) -> int:
        return len(self._cache)


_search_cache: Optional[MemoryCache] = None


def search_cache_key(query: str) -> str:
    return " ".join(str(query or "").lower().split())


def get_search_cache() -> MemoryCache:
    """Process-wide cache for formatted web-search results."""
    global _search_cache

    if _search_cache is None:
        from config import get_storage_settings

        settings = get_storage_settings()
        _search_cache = MemoryCache(ttl=settings.search_cache_ttl, max_size=settings.search_cache_size)
    return _search_cache
