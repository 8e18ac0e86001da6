"""
Domain Resolution Cache

Process-local, time-bounded map of normalized domain → tenant slug.
A ``None`` slug is stored as ``NOT_FOUND`` (negative caching) so domains that
do not resolve don't hit the directory on every request.

- Expired entries are treated as misses on read (lazy eviction).
- When the table grows past ``max_entries`` a ``set`` sweeps all expired
  entries once; there is no background timer.
- Each entry is an immutable tuple replaced in one dict assignment, so a
  reader never sees half an entry.
"""

import logging
import threading
import time
from typing import Callable, Dict, Optional, Tuple, Union

from app.config import settings

logger = logging.getLogger("storefront.domain_cache")


class _Sentinel:
    def __init__(self, name: str) -> None:
        self._name = name

    def __repr__(self) -> str:
        return self._name

    def __bool__(self) -> bool:
        return False


MISS = _Sentinel("MISS")
NOT_FOUND = _Sentinel("NOT_FOUND")

CacheResult = Union[str, _Sentinel]


class DomainResolutionCache:
    def __init__(
        self,
        ttl: float = settings.DOMAIN_CACHE_TTL_SECONDS,
        negative_ttl: float = settings.DOMAIN_CACHE_NEGATIVE_TTL_SECONDS,
        max_entries: int = settings.DOMAIN_CACHE_MAX_ENTRIES,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl = ttl
        self.negative_ttl = min(negative_ttl, ttl)
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, Tuple[CacheResult, float]] = {}
        self._lock = threading.Lock()

    def get(self, domain: str) -> CacheResult:
        """Return the cached slug, ``NOT_FOUND``, or ``MISS`` when absent/expired."""
        with self._lock:
            entry = self._entries.get(domain)
            if entry is None:
                return MISS
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[domain]
                return MISS
            return value

    def set(self, domain: str, slug: Optional[str], ttl: Optional[float] = None) -> None:
        if ttl is None:
            ttl = self.ttl if slug is not None else self.negative_ttl
        value: CacheResult = slug if slug is not None else NOT_FOUND
        with self._lock:
            now = self._clock()
            self._entries[domain] = (value, now + ttl)
            if len(self._entries) > self.max_entries:
                self._sweep(now)

    def invalidate(self, domain: str) -> None:
        with self._lock:
            self._entries.pop(domain, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def _sweep(self, now: float) -> None:
        expired = [key for key, (_, expires_at) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]
        logger.debug("Swept %d expired domain cache entries (%d remain)", len(expired), len(self._entries))


# Shared by the router and the provisioning flow for the life of the process
domain_cache = DomainResolutionCache()
