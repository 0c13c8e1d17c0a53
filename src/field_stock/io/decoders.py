"""Sheet layouts for the five remote tables and their typed decoders."""

from typing import Any, Sequence

from field_stock.database.models import Category, HistoryEntry, Part, Truck, User
from field_stock.utils.constants import MIN_STOCK_HEADER, OTHER_CATEGORY, SHOP

from .tabular import (
    TableDecoder,
    TableSchema,
    TruckColumns,
    by_index,
    by_offset,
)

SETTINGS_SCHEMA = TableSchema("settings", (
    by_index("key", 0),
    by_index("value", 1),
))

CATEGORIES_SCHEMA = TableSchema("categories", (
    by_index("id", 0),
    by_index("name", 1),
    by_index("parent", 2),
    by_index("order", 3, "int"),
    by_index("image_url", 4),
))

TRUCKS_SCHEMA = TableSchema("trucks", (
    by_index("id", 0),
    by_index("name", 1),
    by_index("active", 2, "bool"),
))

USERS_SCHEMA = TableSchema("users", (
    by_index("pin", 0),
    by_index("name", 1),
    by_index("truck", 2),
    by_index("is_owner", 3, "bool"),
    by_index("can_edit_pin", 4, "bool"),
))

# Columns A-F are fixed; truck quantity columns are headed by the truck id;
# after MinStock come one minimum per truck (registry order), then price,
# purchase link, and season.
INVENTORY_SCHEMA = TableSchema("inventory", (
    by_index("id", 0),
    by_index("name", 1),
    by_index("category_id", 2, default=OTHER_CATEGORY),
    by_index("barcode", 3),
    by_index("image_url", 4),
    by_index("shop", 5, "count"),
    TruckColumns("truck_quantities", "count", header_template="{truck_id}"),
    by_offset("min_stock", MIN_STOCK_HEADER, 0, "count"),
    TruckColumns("truck_minimums", "count", anchor=MIN_STOCK_HEADER, delta=1),
    by_offset("price", MIN_STOCK_HEADER, 1, "float", after_trucks=True),
    by_offset("purchase_link", MIN_STOCK_HEADER, 2, after_trucks=True),
    by_offset("season", MIN_STOCK_HEADER, 3, "season", after_trucks=True),
))

HISTORY_SCHEMA = TableSchema("history", (
    by_index("timestamp", 0),
    by_index("tech", 1),
    by_index("action", 2),
    by_index("details", 3),
    by_index("quantity", 4, "int"),
    by_index("source", 5),
    by_index("destination", 6),
    by_index("job_name", 7),
    by_index("address", 8),
    by_index("latitude", 9, "opt_float"),
    by_index("longitude", 10, "opt_float"),
))

Table = Sequence[Sequence[Any]]


def decode_settings(table: Table) -> dict[str, str]:
    records = TableDecoder(SETTINGS_SCHEMA).decode(table)
    return {r["key"]: r["value"] for r in records}


def decode_categories(table: Table) -> dict[str, Category]:
    """Categories keyed by id.

    The parent column is carried raw; ``CategoryTree`` resolves it to an
    id (older sheets stored the parent's display name instead).
    """
    categories = {}
    for r in TableDecoder(CATEGORIES_SCHEMA).decode(table):
        categories[r["id"]] = Category(
            id=r["id"],
            name=r["name"],
            parent_id=r["parent"] or None,
            order=r["order"],
            image_url=r["image_url"],
        )
    return categories


def decode_trucks(table: Table) -> dict[str, Truck]:
    """Trucks keyed by id, in sheet order."""
    return {
        r["id"]: Truck(id=r["id"], name=r["name"], active=r["active"])
        for r in TableDecoder(TRUCKS_SCHEMA).decode(table)
    }


def decode_users(table: Table) -> dict[str, User]:
    """Users keyed by PIN."""
    return {
        r["pin"]: User(
            pin=r["pin"],
            name=r["name"],
            truck_id=r["truck"],
            is_owner=r["is_owner"],
            can_edit_pin=r["can_edit_pin"],
        )
        for r in TableDecoder(USERS_SCHEMA).decode(table)
    }


def decode_inventory(table: Table,
                     truck_ids: Sequence[str]) -> dict[str, Part]:
    """Parts keyed by id, with an entry for every known truck."""
    parts = {}
    for r in TableDecoder(INVENTORY_SCHEMA, truck_ids).decode(table):
        truck_qty = r.get("truck_quantities", {})
        truck_min = r.get("truck_minimums", {})
        quantities = {SHOP: r["shop"]}
        minimums = {SHOP: r["min_stock"]}
        for truck_id in truck_ids:
            quantities[truck_id] = truck_qty.get(truck_id, 0)
            minimums[truck_id] = truck_min.get(truck_id, 0)
        parts[r["id"]] = Part(
            id=r["id"],
            name=r["name"],
            category_id=r["category_id"],
            barcode=r["barcode"],
            image_url=r["image_url"],
            quantities=quantities,
            minimums=minimums,
            price=r["price"],
            purchase_link=r["purchase_link"],
            season=r["season"],
        )
    return parts


def decode_history(table: Table) -> list[HistoryEntry]:
    """History entries, newest first."""
    entries = [
        HistoryEntry(**r) for r in TableDecoder(HISTORY_SCHEMA).decode(table)
    ]
    entries.reverse()
    return entries
