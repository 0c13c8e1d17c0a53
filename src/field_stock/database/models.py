"""Data models for the inventory mirror."""

from dataclasses import dataclass, field
from typing import Any, Optional

from field_stock.utils.constants import DEFAULT_SEASON, OTHER_CATEGORY, SHOP


@dataclass
class Category:
    id: str = ""
    name: str = ""
    parent_id: Optional[str] = None
    order: int = 0
    image_url: str = ""

    @property
    def is_root(self) -> bool:
        return not self.parent_id


@dataclass
class Truck:
    id: str = ""
    name: str = ""
    active: bool = True


@dataclass
class User:
    pin: str = ""
    name: str = ""
    truck_id: str = ""
    is_owner: bool = False
    can_edit_pin: bool = False


@dataclass
class Part:
    id: str = ""
    name: str = ""
    category_id: str = OTHER_CATEGORY
    barcode: str = ""
    image_url: str = ""
    # Location -> on-hand count ("shop" plus one key per truck id)
    quantities: dict[str, int] = field(default_factory=dict)
    # Location -> configured minimum (wire fields minStock / minTruck_<id>)
    minimums: dict[str, int] = field(default_factory=dict)
    price: float = 0.0
    purchase_link: str = ""
    season: str = DEFAULT_SEASON

    STATIC_FIELDS = ("name", "category_id", "barcode", "image_url")

    @property
    def shop(self) -> int:
        return self.quantities.get(SHOP, 0)

    @property
    def min_stock(self) -> int:
        return self.minimums.get(SHOP, 0)

    def quantity_at(self, location: str) -> int:
        return self.quantities.get(location, 0)

    def minimum_at(self, location: str) -> int:
        return self.minimums.get(location, 0)

    def is_low_at(self, location: str) -> bool:
        return self.quantity_at(location) < self.minimum_at(location)

    @property
    def total_quantity(self) -> int:
        return sum(self.quantities.values())

    def static_fields(self) -> dict[str, Any]:
        """The slow-changing subset that is safe to cache."""
        return {name: getattr(self, name) for name in self.STATIC_FIELDS}

    def apply_static(self, values: dict[str, Any]):
        for name in self.STATIC_FIELDS:
            if name in values:
                setattr(self, name, values[name])


@dataclass
class HistoryEntry:
    timestamp: str = ""
    tech: str = ""
    action: str = ""
    details: str = ""
    quantity: int = 0
    source: str = ""
    destination: str = ""
    job_name: str = ""
    address: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    def to_payload(self) -> dict:
        """Serialize for the addTransaction command."""
        payload = {
            "timestamp": self.timestamp,
            "tech": self.tech,
            "action": self.action,
            "details": self.details,
            "quantity": self.quantity,
            "from": self.source,
            "to": self.destination,
        }
        if self.job_name:
            payload["jobName"] = self.job_name
        if self.address or self.latitude is not None:
            payload["address"] = self.address
            payload["latitude"] = self.latitude
            payload["longitude"] = self.longitude
        return payload


@dataclass
class LockoutState:
    attempts: int = 0
    locked_until: int = 0  # epoch ms, 0 = not locked

    def is_locked(self, now: int) -> bool:
        return bool(self.locked_until) and now < self.locked_until

    def remaining_ms(self, now: int) -> int:
        return max(0, self.locked_until - now) if self.locked_until else 0


@dataclass
class CacheEntry:
    value: Any = None
    stored_at: int = 0  # epoch ms

    def is_fresh(self, now: int, ttl_ms: int) -> bool:
        return now - self.stored_at < ttl_ms
