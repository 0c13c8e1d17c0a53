"""TTL cache for slow-changing sheet data.

Settings, categories, trucks, and the static part fields (name, category,
barcode, image) live here between sessions. Quantities never do: they are
always fetched fresh from the remote sheet.
"""

import logging
from typing import Any, Iterable, Optional

from field_stock.config import Config
from field_stock.utils.clock import Clock, now_ms

from .store import KeyValueStore

logger = logging.getLogger(__name__)

# Stored under a prefix so cache purges never touch lockout state
_PREFIX = "cache:"


class TieredCache:
    """Key/value cache whose entries expire ``ttl_ms`` after being set."""

    def __init__(self, store: KeyValueStore, ttl_ms: Optional[int] = None,
                 clock: Clock = now_ms):
        self.store = store
        self.ttl_ms = ttl_ms if ttl_ms is not None else Config.cache_ttl_ms()
        self._clock = clock

    def get(self, key: str) -> Any:
        """Return the cached value, or None once it has expired."""
        entry = self.store.get_entry(_PREFIX + key)
        if entry is None:
            return None
        if not entry.is_fresh(self._clock(), self.ttl_ms):
            logger.debug("Cache entry %r expired", key)
            self.store.delete([_PREFIX + key])
            return None
        return entry.value

    def set(self, key: str, value: Any):
        self.store.set(_PREFIX + key, value, stored_at=self._clock())

    def purge(self, keys: Optional[Iterable[str]] = None):
        """Drop the given keys, or every known cache key when omitted."""
        targets = list(keys) if keys is not None else self.cached_keys()
        if targets:
            self.store.delete(_PREFIX + k for k in targets)
            logger.info("Purged cache keys: %s", ", ".join(targets))

    def cached_keys(self) -> list[str]:
        return [
            k[len(_PREFIX):] for k in self.store.keys()
            if k.startswith(_PREFIX)
        ]
