"""
POS Core Caching - Read Views
=============================
The till keeps recent read views (the menu, the favorites strip)
in a small LRU map with a time-to-live. Nothing in here is a source
of truth: any view can be dropped and rebuilt from the store.

speculative_update() edits cached views ahead of a store write and
puts the old views back if the write raises. Use it only for
low-stakes edits such as toggling a favorite; money never goes
through it.
"""

from __future__ import annotations

import copy
import logging
from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Iterable, Mapping, Optional, TypeVar, Union

from core.time.clock import Clock

logger = logging.getLogger("pos.cache")

T = TypeVar("T")

# key -> (value, expires_at), or None where the key was not cached
ViewSnapshot = Dict[str, Optional[tuple]]


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    evictions: int = 0
    rollbacks: int = 0


@dataclass
class _View:
    value: Any
    expires_at: datetime


class ViewCache:
    def __init__(
        self,
        clock: Clock,
        max_size: int = 500,
        default_ttl_seconds: int = 300,
    ) -> None:
        self._clock = clock
        self._capacity = max_size
        self._ttl = timedelta(seconds=default_ttl_seconds)
        self._views: "OrderedDict[str, _View]" = OrderedDict()
        self.stats = CacheStats()

    @property
    def size(self) -> int:
        return len(self._views)

    def _live(self, key: str) -> Optional[_View]:
        view = self._views.get(key)
        if view is not None and self._clock.now_utc() >= view.expires_at:
            self._drop(key)
            view = None
        return view

    def _drop(self, key: str) -> None:
        if self._views.pop(key, None) is not None:
            self.stats.evictions += 1

    def get(self, key: str) -> Optional[Any]:
        view = self._live(key)
        if view is None:
            self.stats.misses += 1
            return None
        self.stats.hits += 1
        self._views.move_to_end(key)
        return view.value

    def put(self, key: str, value: Any, ttl_seconds: Optional[int] = None) -> None:
        lifetime = timedelta(seconds=ttl_seconds) if ttl_seconds else self._ttl
        self._views[key] = _View(value, self._clock.now_utc() + lifetime)
        self._views.move_to_end(key)
        while len(self._views) > self._capacity:
            oldest = next(iter(self._views))
            self._drop(oldest)

    def update(self, key: str, apply: Callable[[Any], Any]) -> bool:
        """Replace a live view with apply(view); False when not cached."""
        view = self._live(key)
        if view is None:
            return False
        view.value = apply(view.value)
        return True

    def invalidate(self, key: str) -> bool:
        present = key in self._views
        self._drop(key)
        return present

    def snapshot(self, keys: Iterable[str]) -> ViewSnapshot:
        taken: ViewSnapshot = {}
        for key in keys:
            view = self._views.get(key)
            taken[key] = (
                None if view is None
                else (copy.deepcopy(view.value), view.expires_at)
            )
        return taken

    def restore(self, snapshot: ViewSnapshot) -> None:
        for key, saved in snapshot.items():
            if saved is None:
                self._views.pop(key, None)
            else:
                self._views[key] = _View(*saved)
        self.stats.rollbacks += 1


def speculative_update(
    cache: ViewCache,
    keys: Iterable[str],
    apply: Union[Callable[[Any], Any], Mapping[str, Callable[[Any], Any]]],
    write: Callable[[], T],
) -> T:
    """
    Apply `apply` to each cached view in `keys`, then run `write`.
    `apply` is either one edit for every view or a mapping from view
    key to that view's edit; keys without an edit are only snapshotted.
    If `write` raises, the views go back to how they were and the
    error propagates.
    """
    keys = list(keys)
    saved = cache.snapshot(keys)
    for key in keys:
        edit = apply.get(key) if isinstance(apply, Mapping) else apply
        if edit is not None:
            cache.update(key, edit)
    try:
        return write()
    except Exception:
        cache.restore(saved)
        logger.info(f"Rolled back cached views {keys} after failed write")
        raise


__all__ = [
    "CacheStats",
    "ViewCache",
    "speculative_update",
]
