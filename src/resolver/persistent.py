"""Persistent resolution cache surviving process restarts.

Each coordinate maps to a node in the key-value store derived by splitting
its canonical form on ``.``, ``:`` and ``-``. A node holds the resolved
``url`` and an ``expires`` timestamp (epoch milliseconds).
"""
from __future__ import annotations

import logging
import re
import sqlite3
import time
from typing import Callable, List, Optional

from common.kv_store import KeyValueStore
from constants import Constants
from errors import PersistenceError

from .coordinate import Coordinate

logger = logging.getLogger(__name__)

CACHE_URL = "url"
CACHE_EXPIRES = "expires"
CACHE_KEY = "coordinate"
RE_COORD_SPLIT = re.compile(r"[.:-]")


def node_path(coordinate: Coordinate) -> List[str]:
    """Hierarchical store path for ``coordinate``."""
    return RE_COORD_SPLIT.split(str(coordinate))


class PersistentCache:
    """Coordinate -> base URL with a fixed time-to-live."""

    def __init__(self, store: KeyValueStore, ttl: float = Constants.CACHE_TTL_SEC,
                 clock: Callable[[], float] = time.time):
        self._store = store
        self._ttl = ttl
        self._clock = clock

    def _now_ms(self) -> int:
        return int(self._clock() * 1000)

    def get(self, coordinate: Coordinate) -> Optional[str]:
        """Return the cached URL, or None when missing or expired."""
        node = node_path(coordinate)
        try:
            expires = self._store.get(node, CACHE_EXPIRES)
            if expires is None:
                return None
            if self._store.get(node, CACHE_KEY) not in (None, str(coordinate)):
                # another coordinate splits onto the same node
                return None
            if self._now_ms() >= int(expires):
                logger.debug("Persistent cache entry for %s expired", coordinate)
                return None
            return self._store.get(node, CACHE_URL)
        except (sqlite3.Error, ValueError) as exc:
            logger.warning("Persistent cache read failed for %s: %s", coordinate, exc)
            return None

    def put(self, coordinate: Coordinate, url: str) -> bool:
        """Save ``url`` for ``coordinate``, valid for the configured TTL.

        Failures are logged and reported through the return value only; the
        resolved value stays valid for the in-memory cache.
        """
        node = node_path(coordinate)
        expires = self._now_ms() + int(self._ttl * 1000)
        try:
            self._store.put(node, CACHE_KEY, str(coordinate))
            self._store.put(node, CACHE_URL, url)
            self._store.put(node, CACHE_EXPIRES, str(expires))
            self._store.flush()
        except sqlite3.Error as exc:
            err = PersistenceError(f"Cannot persist resolution of {coordinate}: {exc}", coordinate)
            logger.warning("%s", err)
            return False
        return True

    def drop_all(self) -> None:
        """Drop every cached lookup.

        Raises:
            PersistenceError: if the store cannot be cleared.
        """
        try:
            removed = self._store.remove_subtree(())
            self._store.flush()
        except sqlite3.Error as exc:
            raise PersistenceError(f"Cannot clear resolution cache: {exc}") from exc
        logger.info("Dropped %d persistent cache entries", removed)

    def close(self) -> None:
        """Release the underlying store."""
        self._store.close()
