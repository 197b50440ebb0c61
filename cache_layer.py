from __future__ import annotations

import threading
from typing import Any, Callable, Optional

from cachetools import TTLCache


EMPLOYEE_NS = "EMPLOYEE"
CANDIDATE_NS = "CANDIDATE"


def make_cache_key(namespace: str, entity_id: str, view: str = "") -> str:
    parts = [str(namespace or "").strip().upper(), str(entity_id or "").strip()]
    if view:
        parts.append(str(view).strip().lower())
    return ":".join(parts)


class _EntityViewCache:
    """
    Read-through cache for serialized entity views, keyed by entity id.

    Mutating operations invalidate the owning entity's keys explicitly. Invalidation only
    reaches the process that made the change, so entries also carry the row version they
    were built from; a reader that knows the current version never gets an older view.
    """

    def __init__(self, *, ttl: int = 60, max_items: int = 50000):
        self._lock = threading.RLock()
        self._hits = 0
        self._misses = 0
        self._cache: TTLCache = TTLCache(maxsize=100, ttl=1)
        self.configure(ttl=ttl, max_items=max_items)

    def configure(self, *, ttl: int, max_items: int) -> None:
        ttl = max(1, min(3600, int(ttl)))
        max_items = max(100, min(500_000, int(max_items)))
        with self._lock:
            self._cache = TTLCache(maxsize=max_items, ttl=ttl)
            self._hits = 0
            self._misses = 0

    def get_or_set(self, key: str, factory: Callable[[], Any], *, version: Optional[int] = None) -> Any:
        with self._lock:
            entry = self._cache.get(key)
            if entry is not None and (version is None or entry[0] == version):
                self._hits += 1
                return entry[1]
            self._misses += 1
        computed = factory()
        if computed is None:
            return None
        with self._lock:
            held = self._cache.get(key)
            # never replace a view built from a newer row
            if not (held is not None and version is not None and held[0] is not None and held[0] > version):
                self._cache[key] = (version, computed)
        return computed

    def invalidate_prefix(self, prefix: str) -> int:
        pfx = str(prefix or "")
        if not pfx:
            return 0
        with self._lock:
            keys = [k for k in list(self._cache.keys()) if str(k).startswith(pfx)]
            for k in keys:
                self._cache.pop(k, None)
        return len(keys)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()
            self._hits = 0
            self._misses = 0

    def stats(self) -> dict[str, Any]:
        with self._lock:
            total = self._hits + self._misses
            hit_rate = (self._hits / total * 100) if total > 0 else 0.0
            return {
                "size": len(self._cache),
                "maxsize": self._cache.maxsize,
                "hits": self._hits,
                "misses": self._misses,
                "hit_rate": round(hit_rate, 2),
            }


_cache = _EntityViewCache()


def configure_cache(*, ttl: int, max_items: int) -> None:
    _cache.configure(ttl=ttl, max_items=max_items)


def cache_get_or_set(key: str, factory: Callable[[], Any], *, version: Optional[int] = None) -> Any:
    return _cache.get_or_set(key, factory, version=version)


_PENDING_KEY = "cache_invalidations"


def defer_invalidation(db, namespace: str, entity_id: str) -> None:
    """Queue an invalidation on the session; applied by `flush_invalidations` after commit."""
    pending = db.info.setdefault(_PENDING_KEY, set())
    pending.add(make_cache_key(namespace, entity_id))


def flush_invalidations(db) -> int:
    pending = db.info.pop(_PENDING_KEY, None) or set()
    return sum(_cache.invalidate_prefix(p) for p in pending)


def discard_invalidations(db) -> None:
    db.info.pop(_PENDING_KEY, None)


def cache_clear() -> None:
    _cache.clear()


def cache_stats() -> dict[str, Any]:
    return _cache.stats()
