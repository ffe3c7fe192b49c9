"""Short-lived listing cache with tag invalidation."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Iterable, Optional

logger = logging.getLogger("dashboard.cache")


def path_tag(path: str) -> str:
    """Tag used for everything rendered under a dashboard path."""
    return f"path:{path.rstrip('/') or '/'}"


class ListingCache:
    """Cache listing results for at most `max_age` seconds.

    Entries are stored under an exact key (the query shape) together with
    the tags they belong to. `invalidate(tag)` drops every entry carrying
    that tag, so a mutation does not need to know which pages were read.
    One instance is created per application and handed to the services.
    """

    def __init__(self, max_age: float = 1.0, clock: Optional[Callable[[], float]] = None):
        self.max_age = max_age
        self._clock = clock or time.monotonic
        self._entries: dict[str, tuple[Any, float, frozenset]] = {}
        # bumped on every invalidation of a tag; "*" is bumped by clear()
        self._generations: dict[str, int] = {}
        self._lock = threading.Lock()

    def _snapshot(self, tags: frozenset) -> tuple:
        return tuple(self._generations.get(t, 0) for t in sorted(tags | {"*"}))

    def get_or_load(self, key: str, loader: Callable[[], Any], tags: Iterable[str] = ()) -> Any:
        """Return the fresh cached value for `key` or call `loader` and store it.

        The loader runs outside the lock. If any of the entry's tags is
        invalidated while it runs, the loaded value is returned but not
        stored, so reads after an invalidation never see an older load.
        """
        entry_tags = frozenset(tags) | {key}
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and now - entry[1] < self.max_age:
                return entry[0]
            before = self._snapshot(entry_tags)
        value = loader()
        if self.max_age > 0:
            with self._lock:
                if self._snapshot(entry_tags) != before:
                    logger.debug("cache store skipped key=%s: invalidated during load", key)
                    return value
                stored_at = self._clock()
                self._purge_expired(stored_at)
                self._entries[key] = (value, stored_at, entry_tags)
        return value

    def _purge_expired(self, now: float) -> None:
        expired = [k for k, (_, stored_at, _) in self._entries.items() if now - stored_at >= self.max_age]
        for k in expired:
            del self._entries[k]

    def invalidate(self, *tags: str) -> int:
        """Drop all entries carrying any of `tags`; return how many were removed."""
        wanted = set(tags)
        with self._lock:
            for tag in wanted:
                self._generations[tag] = self._generations.get(tag, 0) + 1
            stale = [k for k, (_, _, entry_tags) in self._entries.items() if entry_tags & wanted]
            for k in stale:
                self._entries.pop(k, None)
        logger.debug("cache invalidated tags=%s entries=%d", sorted(wanted), len(stale))
        return len(stale)

    def invalidate_path(self, path: str) -> int:
        return self.invalidate(path_tag(path))

    def clear(self) -> None:
        with self._lock:
            self._generations["*"] = self._generations.get("*", 0) + 1
            self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
