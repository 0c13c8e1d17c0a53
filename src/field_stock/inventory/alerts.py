"""Low-stock alerts per location, filtered by the active seasons."""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from field_stock.database.mirror import InventoryMirror
from field_stock.database.models import Part
from field_stock.utils.constants import SHOP

STATUS_NO_DATA = "no_data"
STATUS_ALL_GOOD = "all_good"
STATUS_LOW = "low"


@dataclass
class LowStockItem:
    part: Part
    current: int
    minimum: int

    @property
    def needed(self) -> int:
        return self.minimum - self.current

    @property
    def critical(self) -> bool:
        return self.current == 0


@dataclass
class AlertSection:
    location: str          # "shop" or a truck id
    label: str
    is_user_truck: bool = False
    items: list[LowStockItem] = field(default_factory=list)


@dataclass
class AlertReport:
    status: str
    sections: list[AlertSection] = field(default_factory=list)

    @property
    def all_good(self) -> bool:
        return self.status == STATUS_ALL_GOOD

    @property
    def message(self) -> str:
        if self.status == STATUS_NO_DATA:
            return "Inventory has not been loaded yet."
        if self.status == STATUS_ALL_GOOD:
            return "All stock levels are good!"
        count = sum(len(s.items) for s in self.sections)
        return f"{count} low-stock item{'s' if count != 1 else ''}"


def evaluate_low_stock(mirror: InventoryMirror,
                       user_truck: Optional[str] = None,
                       active_seasons: Optional[Iterable[str]] = None
                       ) -> AlertReport:
    """Build the low-stock sections for every active location.

    Order: the user's own truck (when assigned and active), the other
    active trucks in registry order, then the shop. Empty sections are
    left out; when none remain the report says everything is stocked.
    """
    if not mirror.loaded:
        return AlertReport(status=STATUS_NO_DATA)

    seasons = set(active_seasons if active_seasons is not None
                  else mirror.active_seasons)
    parts = [p for p in mirror.parts.values() if p.season in seasons]

    locations = []
    if user_truck and mirror.trucks.is_active(user_truck):
        locations.append((user_truck, True))
    locations.extend(
        (t.id, False) for t in mirror.trucks.active() if t.id != user_truck
    )
    locations.append((SHOP, False))

    sections = []
    for location, is_user_truck in locations:
        items = low_items_at(parts, location)
        if items:
            sections.append(AlertSection(
                location=location,
                label=mirror.trucks.label(location),
                is_user_truck=is_user_truck,
                items=items,
            ))

    if not sections:
        return AlertReport(status=STATUS_ALL_GOOD)
    return AlertReport(status=STATUS_LOW, sections=sections)


def low_items_at(parts: Iterable[Part], location: str) -> list[LowStockItem]:
    """Parts strictly below their minimum at ``location``, by name."""
    items = [
        LowStockItem(
            part=p,
            current=p.quantity_at(location),
            minimum=p.minimum_at(location),
        )
        for p in parts if p.is_low_at(location)
    ]
    items.sort(key=lambda i: (i.part.name, i.part.id))
    return items


def quick_load_candidates(mirror: InventoryMirror, low_stock_view: dict,
                          location: str) -> list[dict]:
    """Filter the remote precomputed low-stock view for one location.

    Items whose part is unknown to the mirror or out of season are dropped.
    Each kept item is the view's dict (``id``, ``current``, ``minimum``,
    ``needed``, and for trucks ``shopQty``).
    """
    if location == SHOP:
        items = low_stock_view.get("shop") or []
    else:
        items = (low_stock_view.get("trucks") or {}).get(location) or []
    seasons = set(mirror.active_seasons)
    candidates = []
    for item in items:
        part = mirror.get_part(str(item.get("id", "")))
        if part is not None and part.season in seasons:
            candidates.append(item)
    return candidates
