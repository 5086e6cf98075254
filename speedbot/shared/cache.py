"""In-process TTL cache with stale fallback for Helix lookups.

Game ids and the tag catalog change rarely, so they are cached with
cachetools.TTLCache. When a refresh fails with a transport error, the
last-known-good value is served instead of failing the poll.
"""

import asyncio
import functools
import logging
from collections import OrderedDict
from collections.abc import Callable
from typing import Any, TypeVar

from cachetools import TTLCache  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

# Distinguishes "not in cache" from cached None values
_MISSING = object()

F = TypeVar("F", bound=Callable[..., Any])


class AsyncTTLCache:
    """Async-aware TTL cache with a stale fallback store.

    ``_cache`` holds fresh values governed by *ttl*; ``_stale`` keeps the
    last value written for each key (LRU-bounded by *maxsize*) and is read
    only when a refresh fails.
    """

    def __init__(self, maxsize: int = 128, ttl: float = 60.0):
        self._maxsize = maxsize
        self._cache: TTLCache = TTLCache(maxsize=maxsize, ttl=ttl)
        self._stale: OrderedDict[str, Any] = OrderedDict()
        self._locks: dict[str, asyncio.Lock] = {}

    def _get_lock(self, key: str) -> asyncio.Lock:
        if key not in self._locks:
            self._locks[key] = asyncio.Lock()
        return self._locks[key]

    def get(self, key: str) -> Any:
        return self._cache.get(key, _MISSING)

    def set(self, key: str, value: Any) -> None:
        self._cache[key] = value
        self._stale[key] = value
        self._stale.move_to_end(key)
        while len(self._stale) > self._maxsize:
            self._stale.popitem(last=False)

    def invalidate(self, key: str) -> None:
        self._cache.pop(key, None)

    def clear(self) -> None:
        self._cache.clear()

    def get_stale(self, key: str) -> Any:
        return self._stale.get(key, _MISSING)


def cached(
    cache: AsyncTTLCache,
    key_func: Callable[..., str],
    *,
    cache_if: Callable[[Any], bool] = bool,
):
    """Cache the results of an async lookup.

    Parameters
    ----------
    cache : AsyncTTLCache
        The cache instance to use.
    key_func : callable
        Receives the decorated function's arguments, returns the cache key.
    cache_if : callable
        Results failing this predicate (by default: empty results, which is
        what an upstream error status maps to) are returned but not cached.

    Concurrent misses on one key wait for a single call. If that call raises
    and a stale value exists, the stale value is returned with a warning.
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            cache_key = key_func(*args, **kwargs)

            result = cache.get(cache_key)
            if result is not _MISSING:
                return result

            async with cache._get_lock(cache_key):
                result = cache.get(cache_key)
                if result is not _MISSING:
                    return result

                try:
                    result = await func(*args, **kwargs)
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    stale = cache.get_stale(cache_key)
                    if stale is _MISSING:
                        raise
                    logger.warning(f"Returning stale data for {cache_key} ({type(exc).__name__})")
                    return stale

                if cache_if(result):
                    cache.set(cache_key, result)
                return result

        wrapper.cache = cache  # type: ignore[attr-defined]
        return wrapper  # type: ignore[return-value]

    return decorator
