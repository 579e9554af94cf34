"""
TTL cache of completed searches.

Values are stored as JSON strings in a key/value store, so whatever a caller
reads back is a fresh copy; a cached result set is replaced, never edited.
Writers to the same key race with last-write-wins.
"""

import threading
import time
from typing import Callable, Optional, Protocol

from loguru import logger
from pydantic import ValidationError

from rentscout.models import SearchResultSet
from rentscout.search_url import normalize_cache_key


class KVStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def put(self, key: str, value: str, expiration_ttl: Optional[int] = None) -> None: ...


class InMemoryKVStore:
    """
    Process-local KVStore with per-key expiry.

    Expired entries are dropped when read, and swept in bulk by the first
    write after the earliest deadline has passed.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._data: dict[str, tuple[str, Optional[float]]] = {}
        self._next_expiry: Optional[float] = None
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at is not None and self._clock() >= expires_at:
                del self._data[key]
                return None
            return value

    def put(self, key: str, value: str, expiration_ttl: Optional[int] = None) -> None:
        now = self._clock()
        expires_at = now + expiration_ttl if expiration_ttl else None
        with self._lock:
            if self._next_expiry is not None and now >= self._next_expiry:
                self._purge_expired(now)
            self._data[key] = (value, expires_at)
            if expires_at is not None and (self._next_expiry is None or expires_at < self._next_expiry):
                self._next_expiry = expires_at

    def _purge_expired(self, now: float) -> None:
        """Drop every expired entry and reset the next deadline. Caller holds the lock."""
        expired = [k for k, (_, at) in self._data.items() if at is not None and now >= at]
        for key in expired:
            del self._data[key]
        deadlines = [at for _, at in self._data.values() if at is not None]
        self._next_expiry = min(deadlines, default=None)
        if expired:
            logger.debug(f"Swept {len(expired)} expired cache entries")

    def __len__(self) -> int:
        return len(self._data)


class ResultCache:
    def __init__(self, store: Optional[KVStore] = None, default_ttl: int = 3600):
        self.store = store if store is not None else InMemoryKVStore()
        self.default_ttl = default_ttl

    def get(self, key: str) -> Optional[SearchResultSet]:
        cache_key = normalize_cache_key(key)
        raw = self.store.get(cache_key)
        if raw is None:
            return None
        try:
            return SearchResultSet.model_validate_json(raw)
        except ValidationError as e:
            logger.warning(f"Discarding unreadable cache entry {cache_key}: {e}")
            return None

    def put(self, key: str, value: SearchResultSet, ttl: Optional[int] = None) -> None:
        cache_key = normalize_cache_key(key)
        self.store.put(cache_key, value.model_dump_json(by_alias=True), expiration_ttl=ttl or self.default_ttl)
        logger.debug(f"Cached {value.total_listings} listings under {cache_key} (enriched={value.enriched})")

    def put_if_present(self, key: str, value: SearchResultSet, ttl: Optional[int] = None) -> bool:
        """Replace an entry only if it is still live. Returns False when the write was dropped."""
        if self.store.get(normalize_cache_key(key)) is None:
            logger.info(f"Cache entry for {key} expired before enrichment finished; dropping write")
            return False
        self.put(key, value, ttl)
        return True
