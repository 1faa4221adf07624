"""
In-process memoisation for pure derivations, backed by cachetools.

The engine lives for one host event, so these caches only save repeated
work inside a single invocation (the same hook command parsed by the
registry, bypass policy and diagnostics). Nothing read from the environment
is ever stored here.
"""
from typing import Callable, Hashable, TypeVar

from cachetools import LRUCache

T = TypeVar('T')


def create_lru_cache(maxsize: int = 256) -> LRUCache:
    """Bounded LRU cache; a registry rarely holds more than a few dozen hooks."""
    return LRUCache(maxsize=maxsize)


def cached_call(cache: LRUCache, key: Hashable, loader: Callable[[], T]) -> T:
    """Return cache[key], computing it with loader() on a miss.

    A None result is cached too (a command with no hooks/ category).
    Exceptions from loader() propagate and nothing is stored.
    """
    try:
        return cache[key]
    except KeyError:
        pass
    value = cache[key] = loader()
    return value
