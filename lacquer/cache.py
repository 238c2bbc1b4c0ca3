"""Per-user cache of read views, invalidated by path after mutations."""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import Any, Callable, Dict, Hashable, Tuple

logger = logging.getLogger(__name__)

HOME = "/"
PROJECTS = "/projects"
LOCATIONS = "/locations"
SETTINGS = "/settings"

DEFAULT_MAX_ENTRIES = 2048

_Key = Tuple[str, str, Hashable]


class ViewCache:
    """Least-recently-used views, at most ``max_entries`` across all users.

    A view computed while a ``revalidate`` of its path ran is returned to the
    caller but not stored.
    """

    def __init__(self, enabled: bool = True, max_entries: int = DEFAULT_MAX_ENTRIES) -> None:
        self.enabled = enabled
        self.max_entries = max(1, max_entries)
        self._data: "OrderedDict[_Key, Any]" = OrderedDict()
        # (user_id, path) -> revalidation count; only needed while a compute is in flight
        self._generations: Dict[Tuple[str, str], int] = {}
        self._in_flight = 0
        self._lock = threading.Lock()

    def get_or_compute(self, user_id: str, path: str, compute: Callable[[], Any], variant: Hashable = None) -> Any:
        if not self.enabled:
            return compute()
        key = (user_id, path, variant)
        with self._lock:
            if key in self._data:
                self._data.move_to_end(key)
                return self._data[key]
            generation = self._generations.get((user_id, path), 0)
            self._in_flight += 1
        stored = False
        try:
            value = compute()
            with self._lock:
                if self._generations.get((user_id, path), 0) == generation:
                    self._data[key] = value
                    self._data.move_to_end(key)
                    stored = True
                    self._evict()
            if not stored:
                logger.debug("discarded %s for user %s: revalidated while computing", path, user_id)
            return value
        finally:
            with self._lock:
                self._in_flight -= 1
                if not self._in_flight:
                    self._generations.clear()

    def _bump(self, user_id: str, paths) -> None:
        if self._in_flight:
            for p in paths:
                self._generations[(user_id, p)] = self._generations.get((user_id, p), 0) + 1

    def _evict(self) -> None:
        while len(self._data) > self.max_entries:
            self._data.popitem(last=False)

    def revalidate(self, user_id: str, *paths: str) -> None:
        """Drop every cached variant of ``paths`` for this user."""
        targets = set(paths)
        with self._lock:
            self._bump(user_id, targets)
            stale = [k for k in self._data if k[0] == user_id and k[1] in targets]
            for k in stale:
                del self._data[k]
        if stale:
            logger.debug("revalidated %s for user %s (%d entries)", sorted(targets), user_id, len(stale))

    def forget(self, user_id: str) -> None:
        """Drop everything cached for a user (on logout)."""
        with self._lock:
            stale = [k for k in self._data if k[0] == user_id]
            self._bump(user_id, {HOME, PROJECTS, LOCATIONS, SETTINGS} | {k[1] for k in stale})
            for k in stale:
                del self._data[k]

    def __len__(self) -> int:
        return len(self._data)
