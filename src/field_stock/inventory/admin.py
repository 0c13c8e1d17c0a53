"""Catalog administration: parts, categories, trucks, users, settings.

Every operation validates locally, issues a single remote command, then
reloads the affected table so the mirror reflects what the sheet holds.
"""

import logging
from typing import Optional

from field_stock.auth.session import Session
from field_stock.database.models import Category, HistoryEntry, Truck, User
from field_stock.errors import PermissionDenied, RemoteError, ValidationError
from field_stock.io.decoders import decode_users
from field_stock.io.validators import (
    slugify,
    validate_image_size,
    validate_part_fields,
    validate_pin,
    validate_seasons,
)
from field_stock.sync.synchronizer import QuantitySynchronizer
from field_stock.utils.clock import Clock, now_ms
from field_stock.utils.constants import (
    ACTION_ADD_PART,
    ACTIVE_SEASONS_KEY,
    CACHE_CATEGORIES,
    CACHE_PARTS_STATIC,
    CACHE_SETTINGS,
    CACHE_TRUCKS,
    DEFAULT_SEASON,
    SEASONS,
    SHOP_LABEL,
)
from field_stock.utils.formatters import format_timestamp

logger = logging.getLogger(__name__)


class CatalogAdmin:
    """Owner-facing edits to the shared catalog."""

    def __init__(self, synchronizer: QuantitySynchronizer, session: Session,
                 clock: Clock = now_ms):
        self.sync = synchronizer
        self.remote = synchronizer.remote
        self.mirror = synchronizer.mirror
        self.session = session
        self._clock = clock

    # ── Parts ───────────────────────────────────────────────────

    def add_part(self, part_id: str, name: str, category_id: str,
                 barcode: str = "", image_url: str = "",
                 season: str = DEFAULT_SEASON, shop_quantity: int = 0,
                 min_stock: int = 0, price: float = 0.0,
                 purchase_link: str = "",
                 truck_minimums: Optional[dict[str, int]] = None):
        """Add a part to the inventory sheet, then log an ``Added Part``."""
        self.session.require_owner("Adding parts")
        part_id = (part_id or "").strip()
        name = (name or "").strip()
        errors = validate_part_fields(part_id, name, category_id)
        if errors:
            raise ValidationError("; ".join(errors))
        if part_id in self.mirror.parts:
            raise ValidationError("Part number already exists")
        if category_id not in self.mirror.categories:
            raise ValidationError(f"Unknown category: {category_id}")
        if season not in SEASONS:
            raise ValidationError(f"Unknown season: {season}")
        if shop_quantity < 0 or min_stock < 0:
            raise ValidationError("Quantities cannot be negative")

        payload = {
            "partNumber": part_id,
            "name": name,
            "category": category_id,
            "barcode": (barcode or "").strip(),
            "imageUrl": (image_url or "").strip(),
            "season": season,
            "shop": shop_quantity,
            "minStock": min_stock,
            "price": price,
            "purchaseLink": (purchase_link or "").strip(),
        }
        truck_minimums = truck_minimums or {}
        for truck_id in self.mirror.trucks.ids:
            payload[truck_id] = 0
        for truck_id in self.mirror.trucks.ids:
            payload[f"minTruck_{truck_id}"] = max(
                0, int(truck_minimums.get(truck_id, 0))
            )

        self.remote.add_part(payload)
        category = self.mirror.categories[category_id]
        entry = HistoryEntry(
            timestamp=format_timestamp(self._clock()),
            tech=self.session.name,
            action=ACTION_ADD_PART,
            details=f"{name} ({category.name})",
            quantity=shop_quantity,
            source="",
            destination=SHOP_LABEL,
        )
        try:
            self.remote.add_transaction(entry.to_payload())
        except RemoteError as e:
            logger.warning("Part %s added but not logged: %s", part_id, e)
        self.sync.reload_table(CACHE_PARTS_STATIC)
        logger.info("Added part %s (%s)", part_id, name)

    def upload_image(self, image_data: str, size_bytes: int,
                     file_name: Optional[str] = None) -> str:
        """Upload a base64 data URL; returns the hosted image URL."""
        validate_image_size(size_bytes)
        file_name = file_name or f"part_{self._clock()}.jpg"
        url = self.remote.upload_image(image_data, file_name)
        if not url:
            raise RemoteError("Upload succeeded but no image URL was returned")
        return url

    # ── Categories ──────────────────────────────────────────────

    def save_category(self, name: str, parent_id: Optional[str] = None,
                      category_id: Optional[str] = None) -> Category:
        """Create a category, or rename/move one when ``category_id`` is set."""
        self.session.require_owner("Editing categories")
        name = (name or "").strip()
        if not name:
            raise ValidationError("Enter category name")
        if parent_id and parent_id not in self.mirror.categories:
            raise ValidationError(f"Unknown parent category: {parent_id}")

        if category_id is None:
            category_id = slugify(name)
            if category_id in self.mirror.categories:
                raise ValidationError("Category already exists")
            order = len(self.mirror.categories)
        else:
            existing = self.mirror.categories.get(category_id)
            if existing is None:
                raise ValidationError(f"Unknown category: {category_id}")
            if parent_id and self._is_within(parent_id, category_id):
                raise ValidationError(
                    "A category cannot be moved under itself"
                )
            order = existing.order

        self.remote.save_category(category_id, name, parent_id or "", order)
        self.sync.reload_table(CACHE_CATEGORIES)
        return self.mirror.categories.get(category_id) or Category(
            id=category_id, name=name, parent_id=parent_id, order=order
        )

    def delete_category(self, category_id: str):
        """Remove a category; its parts fall back to ``other`` remotely."""
        self.session.require_owner("Deleting categories")
        if category_id not in self.mirror.categories:
            raise ValidationError(f"Unknown category: {category_id}")
        self.remote.delete_category(category_id)
        self.sync.cache.purge([CACHE_PARTS_STATIC])
        self.sync.reload_table(CACHE_CATEGORIES)

    def _is_within(self, node: str, ancestor: str) -> bool:
        seen = set()
        while node and node not in seen:
            if node == ancestor:
                return True
            seen.add(node)
            category = self.mirror.categories.get(node)
            node = category.parent_id if category else None
        return False

    # ── Trucks ──────────────────────────────────────────────────

    def add_truck(self, name: str) -> Truck:
        self.session.require_owner("Adding trucks")
        name = (name or "").strip()
        if not name:
            raise ValidationError("Enter truck name")
        truck_id = slugify(name)
        if truck_id in self.mirror.trucks:
            raise ValidationError("Truck already exists")
        self.remote.save_truck(truck_id, name, True)
        self.sync.reload_table(CACHE_TRUCKS)
        return self.mirror.trucks.get(truck_id) or Truck(truck_id, name)

    def set_truck_active(self, truck_id: str, active: bool):
        self.session.require_owner("Editing trucks")
        truck = self.mirror.trucks.get(truck_id)
        if truck is None:
            raise ValidationError(f"Unknown truck: {truck_id}")
        self.remote.save_truck(truck_id, truck.name, active)
        self.sync.reload_table(CACHE_TRUCKS)

    def toggle_truck(self, truck_id: str):
        truck = self.mirror.trucks.get(truck_id)
        if truck is None:
            raise ValidationError(f"Unknown truck: {truck_id}")
        self.set_truck_active(truck_id, not truck.active)

    def delete_truck(self, truck_id: str):
        """Remove a truck; the sheet returns its stock to the shop."""
        self.session.require_owner("Deleting trucks")
        if truck_id not in self.mirror.trucks:
            raise ValidationError(f"Unknown truck: {truck_id}")
        self.remote.delete_truck(truck_id)
        self.sync.reload_table(CACHE_TRUCKS)

    # ── Users ───────────────────────────────────────────────────

    def refresh_users(self) -> dict[str, User]:
        self.mirror.users = decode_users(self.remote.read_users())
        return self.mirror.users

    def add_user(self, name: str, pin: str, truck_id: str) -> User:
        self.session.require_owner("Adding users")
        name = (name or "").strip()
        if not name or not truck_id:
            raise ValidationError("Fill all fields")
        pin = validate_pin(pin)
        if truck_id not in self.mirror.trucks:
            raise ValidationError(f"Unknown truck: {truck_id}")
        if pin in self.mirror.users:
            raise ValidationError("PIN already in use")
        self.remote.save_user(pin, name, truck_id)
        users = self.refresh_users()
        return users.get(pin) or User(pin=pin, name=name, truck_id=truck_id)

    def delete_user(self, pin: str):
        self.session.require_owner("Deleting users")
        user = self.mirror.users.get(pin)
        if user is None:
            raise ValidationError("Unknown user")
        if user.is_owner:
            raise ValidationError("Owners cannot be deleted")
        self.remote.delete_user(pin)
        self.mirror.users.pop(pin, None)

    def change_pin(self, old_pin: str, new_pin: str, confirm_pin: str):
        """Change the signed-in user's own PIN."""
        if not self.session.can_edit_pin:
            raise PermissionDenied(
                "You do not have permission to change PIN"
            )
        if old_pin != self.session.pin:
            raise ValidationError("Incorrect current PIN")
        new_pin = validate_pin(new_pin)
        if new_pin != confirm_pin:
            raise ValidationError("PINs do not match")
        if new_pin in decode_users(self.remote.read_users()):
            raise ValidationError("PIN already in use")

        self.remote.change_pin(old_pin, new_pin)
        self.mirror.users.pop(old_pin, None)
        self.session.pin = new_pin
        self.session.user.pin = new_pin
        self.mirror.users[new_pin] = self.session.user
        logger.info("%s changed their PIN", self.session.name)

    # ── Settings ────────────────────────────────────────────────

    def save_active_seasons(self, seasons: list[str]) -> list[str]:
        self.session.require_owner("Changing seasons")
        selected = validate_seasons(seasons)
        self.remote.save_setting(ACTIVE_SEASONS_KEY, ",".join(selected))
        self.sync.reload_table(CACHE_SETTINGS)
        return self.mirror.active_seasons
