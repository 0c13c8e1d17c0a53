"""In-memory mirror of the remote sheet.

The mirror is the single object the synchronizer writes and the alert,
category, and transfer code read. It is disposable: a refresh rebuilds it
entirely from the remote store and the static-data cache.
"""

from typing import Iterable, Iterator, Optional

from field_stock.utils.constants import (
    ACTIVE_SEASONS_KEY,
    DEFAULT_ACTIVE_SEASONS,
    SHOP,
    SHOP_LABEL,
)

from .models import Category, HistoryEntry, Part, Truck, User


class TruckRegistry:
    """Known trucks in sheet order, active or not."""

    def __init__(self, trucks: Iterable[Truck] = ()):
        self._trucks: dict[str, Truck] = {}
        self.replace(trucks)

    def replace(self, trucks: Iterable[Truck]):
        self._trucks = {t.id: t for t in trucks}

    @property
    def ids(self) -> list[str]:
        return list(self._trucks)

    def active(self) -> list[Truck]:
        return [t for t in self._trucks.values() if t.active]

    def get(self, truck_id: str) -> Optional[Truck]:
        return self._trucks.get(truck_id)

    def is_active(self, truck_id: str) -> bool:
        truck = self._trucks.get(truck_id)
        return truck is not None and truck.active

    def label(self, location: str) -> str:
        """Display name for a location id ("shop" or a truck id)."""
        if location == SHOP:
            return SHOP_LABEL
        truck = self._trucks.get(location)
        return truck.name if truck else location

    def as_dict(self) -> dict[str, Truck]:
        return dict(self._trucks)

    def __contains__(self, truck_id) -> bool:
        return truck_id in self._trucks

    def __iter__(self) -> Iterator[Truck]:
        return iter(list(self._trucks.values()))

    def __len__(self) -> int:
        return len(self._trucks)


class InventoryMirror:
    """Local copy of parts, categories, trucks, users, settings, history."""

    def __init__(self):
        # Bumped on every local write
        self.generation = 0
        self.clear()

    def clear(self):
        self.parts: dict[str, Part] = {}
        self.categories: dict[str, Category] = {}
        self.trucks = TruckRegistry()
        self.users: dict[str, User] = {}
        self.settings: dict[str, str] = {}
        self.history: list[HistoryEntry] = []  # newest first
        self.loaded = False
        self.mark_changed()

    def mark_changed(self):
        self.generation += 1

    # ── Settings ────────────────────────────────────────────────

    @property
    def active_seasons(self) -> list[str]:
        raw = self.settings.get(ACTIVE_SEASONS_KEY) or DEFAULT_ACTIVE_SEASONS
        return [s.strip() for s in raw.split(",") if s.strip()]

    # ── Parts ───────────────────────────────────────────────────

    def get_part(self, part_id: str) -> Optional[Part]:
        return self.parts.get(part_id)

    def find_by_barcode(self, barcode: str) -> Optional[Part]:
        barcode = (barcode or "").strip()
        if not barcode:
            return None
        for part in self.parts.values():
            if part.barcode == barcode:
                return part
        return None

    def search_parts(self, term: str = "") -> list[Part]:
        """Parts whose name, id, or barcode contains ``term``, by name."""
        term = (term or "").strip().lower()
        parts = [
            p for p in self.parts.values()
            if not term
            or term in p.name.lower()
            or term in p.id.lower()
            or (p.barcode and term in p.barcode.lower())
        ]
        return sorted(parts, key=lambda p: (p.name, p.id))

    def apply_quantity_updates(self, part_id: str, updates: dict[str, int]):
        """Write absolute per-location values into a mirrored part."""
        part = self.parts.get(part_id)
        if part is not None:
            part.quantities.update(updates)
            self.mark_changed()

    # ── History ─────────────────────────────────────────────────

    def record_history(self, entry: HistoryEntry):
        self.history.insert(0, entry)

    def history_for(self, user_name: str, is_owner: bool) -> list[HistoryEntry]:
        """Owners see every entry; everyone else sees their own."""
        if is_owner:
            return list(self.history)
        return [e for e in self.history if e.tech == user_name]

    def part_history(self, part: Part, limit: int = 10) -> list[HistoryEntry]:
        return [
            e for e in self.history if part.name and part.name in e.details
        ][:limit]
