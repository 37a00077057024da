"""
Keyed read-through cache for paginated collections and single resources
"""

import asyncio
import time
from dataclasses import dataclass, replace
from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set, Tuple

from core.logging_config import get_logger
from events import EventBus, EventTypes
from .keys import QueryKey

Fetcher = Callable[[], Awaitable[Any]]


@dataclass(frozen=True)
class CacheEntry:
    """A completed fetch. Entries are replaced, never edited."""
    value: Any
    fetched_at: float
    stale: bool = False

    def mark_stale(self) -> 'CacheEntry':
        return replace(self, stale=True)


class CachePatch:
    """Handle on an optimistic patch so it can be undone"""

    def __init__(self, cache: 'ResourceQueryCache', kind: str,
                 replaced: Dict[QueryKey, Tuple[CacheEntry, CacheEntry]]):
        self.cache = cache
        self.kind = kind
        self._replaced = replaced

    @property
    def keys(self) -> List[QueryKey]:
        return list(self._replaced)

    def rollback(self) -> int:
        """
        Restore the entries the patch replaced.

        Entries that were refetched or removed since the patch are left alone.

        Returns:
            Number of entries restored
        """
        restored = self.cache._restore(self._replaced)
        self._replaced = {}
        return restored


class ResourceQueryCache:
    """
    Deduplicating cache of read results.

    * A fresh entry is served without calling the fetcher.
    * Concurrent reads of one key share a single in-flight fetch.
    * Failed fetches store nothing, so the next read retries.
    * invalidate(kind) marks every entry of a kind stale; stale entries stay
      readable through peek() and are refetched on the next fetch().
    """

    def __init__(self,
                 max_age: Optional[float] = None,
                 event_bus: Optional[EventBus] = None,
                 clock: Callable[[], float] = time.monotonic):
        """
        Args:
            max_age: Seconds after which an entry counts as stale (None = never)
            event_bus: Receives cache.invalidated events
            clock: Time source, injectable for tests
        """
        self.logger = get_logger(__name__)
        self.max_age = max_age
        self.event_bus = event_bus
        self._clock = clock

        self._entries: Dict[QueryKey, CacheEntry] = {}
        self._in_flight: Dict[QueryKey, asyncio.Task] = {}
        # Loads whose key was removed while they ran; their results are dropped
        self._discarded: Set[asyncio.Task] = set()

        # Stats
        self.hits = 0
        self.misses = 0
        self.shared_fetches = 0
        self.fetch_errors = 0

    async def fetch(self, key: QueryKey, fetcher: Fetcher) -> Any:
        """
        Return the value for key, fetching it at most once at a time.

        Args:
            key: Cache slot
            fetcher: Coroutine function performing the network read

        Raises:
            Whatever the fetcher raises; nothing is cached in that case
        """
        entry = self._entries.get(key)
        if entry is not None and self._is_fresh(entry):
            self.hits += 1
            return entry.value

        task = self._in_flight.get(key)
        if task is None:
            self.misses += 1
            task = asyncio.ensure_future(self._load(key, fetcher))
            self._in_flight[key] = task
            task.add_done_callback(partial(self._settle, key))
        else:
            self.shared_fetches += 1
            self.logger.debug(f"Joining in-flight fetch for {key}")

        # Shielded so one cancelled waiter does not cancel the shared fetch
        return await asyncio.shield(task)

    async def _load(self, key: QueryKey, fetcher: Fetcher) -> Any:
        value = await fetcher()

        current = asyncio.current_task()
        if current in self._discarded:
            return value

        if self._in_flight.get(key) is current:
            self._entries[key] = CacheEntry(value, self._clock())
        else:
            # Detached by an invalidation while loading: the value may predate
            # the write, so it is only kept as a stale placeholder
            existing = self._entries.get(key)
            if existing is None or existing.stale:
                self._entries[key] = CacheEntry(value, self._clock(), stale=True)
        return value

    def _settle(self, key: QueryKey, task: asyncio.Task):
        if self._in_flight.get(key) is task:
            del self._in_flight[key]
        self._discarded.discard(task)

        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            self.fetch_errors += 1
            self.logger.debug(f"Fetch for {key} failed: {type(error).__name__}")

    def _is_fresh(self, entry: CacheEntry) -> bool:
        if entry.stale:
            return False
        if self.max_age is None:
            return True
        return (self._clock() - entry.fetched_at) < self.max_age

    def peek(self, key: QueryKey) -> Any:
        """Last good value for key, stale or not, without fetching"""
        entry = self._entries.get(key)
        return entry.value if entry is not None else None

    def contains(self, key: QueryKey) -> bool:
        return key in self._entries

    def is_stale(self, key: QueryKey) -> bool:
        """True when a read of key would go to the network"""
        entry = self._entries.get(key)
        return entry is None or not self._is_fresh(entry)

    def is_fetching(self, key: QueryKey) -> bool:
        return key in self._in_flight

    def keys(self, kind: Optional[str] = None) -> List[QueryKey]:
        return [key for key in self._entries if kind is None or key.kind == kind]

    def invalidate(self, kind: str) -> int:
        """
        Mark every entry of a resource kind stale, whatever its parameters.

        In-flight fetches of the kind are detached so that the next read
        starts a fresh one.

        Returns:
            Number of entries of the kind
        """
        affected = 0
        for key, entry in list(self._entries.items()):
            if key.kind == kind:
                affected += 1
                if not entry.stale:
                    self._entries[key] = entry.mark_stale()

        for key in [k for k in self._in_flight if k.kind == kind]:
            del self._in_flight[key]

        self.logger.debug(f"Invalidated {affected} '{kind}' entries")
        if self.event_bus:
            self.event_bus.emit(EventTypes.CACHE_INVALIDATED, {"kind": kind, "entries": affected},
                                source="query_cache")
        return affected

    def invalidate_key(self, key: QueryKey) -> bool:
        """Mark one entry stale; returns False when it was not cached"""
        self._in_flight.pop(key, None)
        entry = self._entries.get(key)
        if entry is None:
            return False
        self._entries[key] = entry.mark_stale()
        return True

    def remove(self, key: QueryKey) -> bool:
        """Evict one entry and drop the result of any fetch in flight for it"""
        task = self._in_flight.pop(key, None)
        if task is not None:
            self._discarded.add(task)
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        """Evict everything, including results of fetches still in flight"""
        self._discarded.update(self._in_flight.values())
        self._in_flight.clear()
        self._entries.clear()
        self.logger.debug("Query cache cleared")

    def patch(self, kind: str, transform: Callable[[Any], Any]) -> CachePatch:
        """
        Optimistically replace every entry of a kind with transform(value).

        transform must return a new value (or the same object to leave the
        entry alone); it must not modify its argument.
        """
        replaced: Dict[QueryKey, Tuple[CacheEntry, CacheEntry]] = {}
        for key, entry in list(self._entries.items()):
            if key.kind != kind:
                continue
            new_value = transform(entry.value)
            if new_value is entry.value:
                continue
            patched = replace(entry, value=new_value)
            self._entries[key] = patched
            replaced[key] = (entry, patched)

        return CachePatch(self, kind, replaced)

    def _restore(self, replaced: Dict[QueryKey, Tuple[CacheEntry, CacheEntry]]) -> int:
        restored = 0
        for key, (original, patched) in replaced.items():
            if self._entries.get(key) is patched:
                self._entries[key] = original
                restored += 1
        return restored

    def get_stats(self) -> Dict[str, Any]:
        return {
            "entries": len(self._entries),
            "stale_entries": sum(1 for e in self._entries.values() if not self._is_fresh(e)),
            "in_flight": len(self._in_flight),
            "hits": self.hits,
            "misses": self.misses,
            "shared_fetches": self.shared_fetches,
            "fetch_errors": self.fetch_errors,
        }
