"""TTL cache used for cluster feature probes."""

from __future__ import annotations

import time
from typing import Any, Optional

from .. import config

# Cache with TTL support
_cache: dict[str, tuple[Any, float]] = {}


def get_cached_object(key: str, ttl: Optional[float] = None) -> Optional[Any]:
    """Get an object from cache if it hasn't expired.

    Args:
        key: Cache key
        ttl: Time to live in seconds, defaults to FEATURE_PROBE_TTL_SECONDS

    Returns:
        Cached object or None if not found or expired
    """
    if key not in _cache:
        return None

    if ttl is None:
        ttl = config.feature_probe_ttl_seconds()

    obj, timestamp = _cache[key]
    if time.time() - timestamp > ttl:
        # Expired, remove from cache
        _cache.pop(key, None)
        return None

    return obj


def set_cached_object(key: str, obj: Any) -> None:
    """Store an object in cache with current timestamp."""
    _cache[key] = (obj, time.time())


def invalidate_cache(pattern: Optional[str] = None) -> None:
    """Invalidate cache entries.

    Args:
        pattern: Optional substring to match keys (if None, clears all)
    """
    if pattern is None:
        _cache.clear()
    else:
        keys_to_remove = [key for key in list(_cache.keys()) if pattern in key]
        for key in keys_to_remove:
            _cache.pop(key, None)


def make_cache_key(kind: str, *parts: str) -> str:
    """Create a cache key, e.g. make_cache_key("apigroup", "route.openshift.io")."""
    return ":".join((kind, *parts))
