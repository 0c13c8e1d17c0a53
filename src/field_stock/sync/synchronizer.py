"""QuantitySynchronizer: keeps the mirror's stock levels current.

A full ``load()`` pulls every table. Settings, categories, and trucks
come from the static-data cache when it is still fresh; the inventory
sheet is always read from the remote store. Later ``poll()`` calls re-read
only the inventory and overlay quantities and minimums onto the parts
already mirrored, leaving names, categories, barcodes, and images alone.

Polls back off after repeated failures:
    - each remote failure adds 1 to a consecutive-failure counter,
      a rate-limit response adds ``rate_limit_penalty``
    - once the counter reaches ``failure_threshold`` polling is suspended
      for ``cooldown_ms``; afterwards the counter resets and polls resume
    - any successful poll resets the counter to 0
"""

import logging
import threading
from typing import Callable, Optional

from field_stock.config import Config
from field_stock.database.cache import TieredCache
from field_stock.database.mirror import InventoryMirror
from field_stock.database.models import Part
from field_stock.errors import RateLimited, RemoteError
from field_stock.inventory.categories import CategoryTree
from field_stock.io.decoders import (
    decode_categories,
    decode_history,
    decode_inventory,
    decode_settings,
    decode_trucks,
)
from field_stock.remote.client import RemoteStore
from field_stock.utils.clock import Clock, now_ms
from field_stock.utils.constants import (
    CACHE_CATEGORIES,
    CACHE_PARTS_STATIC,
    CACHE_SETTINGS,
    CACHE_TRUCKS,
)

logger = logging.getLogger(__name__)

# poll() outcomes
POLL_OK = "ok"
POLL_FAILED = "failed"
POLL_SKIPPED = "skipped"
POLL_SUSPENDED = "suspended"


class QuantitySynchronizer:
    """Loads the mirror and keeps its quantities fresh."""

    def __init__(self, remote: RemoteStore, mirror: InventoryMirror,
                 cache: TieredCache, clock: Clock = now_ms,
                 failure_threshold: Optional[int] = None,
                 cooldown_ms: Optional[int] = None,
                 rate_limit_penalty: Optional[int] = None):
        self.remote = remote
        self.mirror = mirror
        self.cache = cache
        self._clock = clock
        self.failure_threshold = (
            failure_threshold if failure_threshold is not None
            else Config.SYNC_FAILURE_THRESHOLD
        )
        self.cooldown_ms = (
            cooldown_ms if cooldown_ms is not None
            else Config.SYNC_COOLDOWN_SECONDS * 1000
        )
        self.rate_limit_penalty = (
            rate_limit_penalty if rate_limit_penalty is not None
            else Config.SYNC_RATE_LIMIT_PENALTY
        )

        self.consecutive_failures = 0
        self.suspended_until = 0
        self.last_success_at = 0
        self.last_error = ""
        self._in_flight = False
        self._lock = threading.Lock()
        self._poll_generation = 0

    # ── Full load ───────────────────────────────────────────────

    def load(self):
        """Populate the mirror from cache + remote.

        Nothing in the mirror changes unless every table was read and
        decoded; a failure leaves the previous state in place.
        """
        settings = decode_settings(
            self._static_table(CACHE_SETTINGS, self.remote.read_settings)
        )
        # A cyclic table raises CategoryCycleError and is never cached
        categories = decode_categories(self._static_table(
            CACHE_CATEGORIES, self.remote.read_categories,
            validate=_check_categories,
        ))
        trucks = decode_trucks(
            self._static_table(CACHE_TRUCKS, self.remote.read_trucks)
        )
        parts = decode_inventory(self._read_inventory(), list(trucks))
        self._merge_static(parts)
        history = decode_history(self.remote.read_history())

        self.mirror.settings = settings
        self.mirror.categories = categories
        self.mirror.trucks.replace(trucks.values())
        self.mirror.parts = parts
        self.mirror.history = history
        self.mirror.loaded = True
        self.mirror.mark_changed()
        self.last_success_at = self._clock()
        logger.info(
            "Loaded %d parts, %d categories, %d trucks, %d history entries",
            len(parts), len(categories), len(trucks), len(history),
        )

    def refresh(self):
        """User-requested refresh: drop all cached tables, then reload."""
        self.cache.purge()
        self.load()

    def reload_table(self, cache_key: str):
        """Drop one cached table and reload, e.g. after an admin edit."""
        self.cache.purge([cache_key])
        self.load()

    def _static_table(self, key: str, fetch: Callable[[], list],
                      validate: Optional[Callable[[list], None]] = None
                      ) -> list:
        table = self.cache.get(key)
        if table is None:
            table = fetch()
            if validate is not None:
                validate(table)
            self.cache.set(key, table)
        return table

    def _read_inventory(self) -> list:
        table = self.remote.read_inventory()
        if len(table) < 2:
            # A header-only or empty table is a failed read, not an empty sheet
            raise RemoteError("readInventory returned no part rows")
        return table

    def _merge_static(self, parts: dict[str, Part]):
        cached = self.cache.get(CACHE_PARTS_STATIC)
        if cached is None:
            self.cache.set(
                CACHE_PARTS_STATIC,
                {pid: p.static_fields() for pid, p in parts.items()},
            )
            return
        for pid, part in parts.items():
            if pid in cached:
                part.apply_static(cached[pid])

    # ── Quantity overlay ────────────────────────────────────────

    def fetch_quantities(self) -> dict[str, Part]:
        """Read and decode the inventory sheet; the mirror is not touched."""
        return decode_inventory(
            self._read_inventory(), self.mirror.trucks.ids
        )

    def apply_quantities(self, fresh: dict[str, Part]):
        """Overlay quantity fields of ``fresh`` onto the mirrored parts.

        Parts new on the remote sheet are added whole; parts no longer on
        it are dropped.
        """
        parts = self.mirror.parts
        for pid, part in fresh.items():
            current = parts.get(pid)
            if current is None:
                parts[pid] = part
            else:
                current.quantities = part.quantities
                current.minimums = part.minimums
        for pid in [pid for pid in parts if pid not in fresh]:
            del parts[pid]

    # ── Polling ─────────────────────────────────────────────────

    def now(self) -> int:
        return self._clock()

    def is_suspended(self, now: Optional[int] = None) -> bool:
        now = self._clock() if now is None else now
        return bool(self.suspended_until) and now < self.suspended_until

    def resume_if_due(self, now: Optional[int] = None) -> bool:
        """End an elapsed suspension; returns True if one ended."""
        now = self._clock() if now is None else now
        if self.suspended_until and now >= self.suspended_until:
            self.suspended_until = 0
            self.consecutive_failures = 0
            logger.info("Quantity polling resumed after cool-down")
            return True
        return False

    def begin_poll(self) -> str:
        """Claim the single poll slot.

        Returns ``POLL_OK`` when the caller may fetch, otherwise the
        reason it may not. A claimed slot must be released through
        ``finish_poll`` or ``abort_poll``.
        """
        now = self._clock()
        with self._lock:
            if self._in_flight:
                logger.debug("Poll skipped: previous poll still running")
                return POLL_SKIPPED
            if self.is_suspended(now):
                return POLL_SUSPENDED
            self.resume_if_due(now)
            self._in_flight = True
            self._poll_generation = self.mirror.generation
            return POLL_OK

    def finish_poll(self, fresh: Optional[dict[str, Part]] = None,
                    error: Optional[RemoteError] = None) -> str:
        """Release the poll slot, applying ``fresh`` or counting ``error``."""
        try:
            if error is not None:
                return self._record_failure(error)
            self._record_success()
            if self.mirror.generation != self._poll_generation:
                # Snapshot predates a local write
                logger.debug("Poll result dropped: mirror changed meanwhile")
                return POLL_SKIPPED
            self.apply_quantities(fresh or {})
            return POLL_OK
        finally:
            self._in_flight = False

    def abort_poll(self):
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    def poll(self) -> str:
        """Run one guarded poll in the calling thread."""
        if not self.mirror.loaded:
            return POLL_SKIPPED
        claim = self.begin_poll()
        if claim != POLL_OK:
            return claim
        try:
            fresh = self.fetch_quantities()
        except RemoteError as exc:
            return self.finish_poll(error=exc)
        except Exception:
            self.abort_poll()
            raise
        return self.finish_poll(fresh)

    def _record_success(self):
        self.consecutive_failures = 0
        self.last_error = ""
        self.last_success_at = self._clock()

    def _record_failure(self, error: RemoteError) -> str:
        weight = self.rate_limit_penalty if isinstance(error, RateLimited) else 1
        self.consecutive_failures += weight
        self.last_error = str(error)
        logger.warning(
            "Quantity poll failed (%d consecutive): %s",
            self.consecutive_failures, error,
        )
        if self.consecutive_failures >= self.failure_threshold:
            self.suspended_until = self._clock() + self.cooldown_ms
            logger.warning(
                "Suspending quantity polling for %d s",
                self.cooldown_ms // 1000,
            )
            return POLL_SUSPENDED
        return POLL_FAILED

    def get_status(self) -> dict:
        """Current polling state for status displays."""
        return {
            "loaded": self.mirror.loaded,
            "consecutive_failures": self.consecutive_failures,
            "suspended": self.is_suspended(),
            "suspended_until": self.suspended_until,
            "last_success_at": self.last_success_at,
            "last_error": self.last_error,
        }


def _check_categories(table: list):
    CategoryTree(decode_categories(table))
