"""Shared test fixtures."""

import json
import os

import httpx
import pytest

# Run Qt headless so the suite works without a display.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from field_stock.auth.session import Session
from field_stock.database.cache import TieredCache
from field_stock.database.connection import DatabaseConnection
from field_stock.database.mirror import InventoryMirror
from field_stock.database.models import User
from field_stock.database.schema import initialize_database
from field_stock.database.store import KeyValueStore
from field_stock.remote.client import RemoteStore
from field_stock.sync.synchronizer import QuantitySynchronizer

SHEET_URL = "https://sheet.example/exec"

INVENTORY_HEADER = [
    "ID", "Name", "Category", "Barcode", "ImageURL", "Shop",
    "t1", "t2", "t3",
    "MinStock", "MinTruck-t1", "MinTruck-t2", "MinTruck-t3",
    "Price", "PurchaseLink", "Season",
]


class FakeClock:
    """Manually advanced epoch-ms clock."""

    def __init__(self, start: int = 1_700_000_000_000):
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int):
        self.now += ms


class FakeSheet:
    """In-memory stand-in for the remote sheet service.

    Serves the same query/command protocol through ``httpx.MockTransport``
    and records every call. ``fail(action, mode)`` makes the next call to
    ``action`` fail with ``"transport"``, ``"429"``, ``"500"``, or
    ``"error"`` (a ``success: false`` body).
    """

    def __init__(self):
        self.settings = [
            ["Setting", "Value"],
            ["ActiveSeasons", "heating,cooling,year-round"],
        ]
        self.categories = [
            ["ID", "Name", "Parent", "Order", "ImageURL"],
            ["fittings", "Fittings", "", 0, ""],
            ["electrical", "Electrical", "", 1, ""],
            ["caps", "Capacitors", "electrical", 2, ""],
        ]
        self.trucks = [
            ["ID", "Name", "Active"],
            ["t1", "Truck 1", True],
            ["t2", "Truck 2", "TRUE"],
            ["t3", "Old Van", "FALSE"],
        ]
        self.inventory = [
            list(INVENTORY_HEADER),
            ["P1", "Copper Fitting", "fittings", "111", "", 10, 2, 0, 0,
             5, 3, 1, 0, 1.5, "", "year-round"],
            ["P2", "Capacitor", "caps", "222", "", 0, 4, 5, 0,
             2, 1, 1, 0, 12, "", "cooling"],
            ["P3", "Igniter", "electrical", "333", "", 3, 0, 0, 0,
             1, 2, 0, 0, 20, "", "heating"],
        ]
        self.users = [
            ["PIN", "Name", "Truck", "IsOwner", "CanEditPIN"],
            ["1234", "Dana", "t1", "FALSE", "FALSE"],
            ["5678", "Sam", "t2", False, "TRUE"],
            ["9999", "Morgan", "t1", "TRUE", "FALSE"],
        ]
        self.history = [
            ["Timestamp", "Tech", "Action", "Details", "Quantity",
             "From", "To", "JobName"],
            ["1/1/2024, 9:00:00 AM", "Dana", "Loaded Truck",
             "Copper Fitting: 2 loaded onto Truck 1", 2, "Shop", "Truck 1", ""],
        ]
        self.calls: list[tuple[str, dict]] = []
        self._failures: dict[str, list[str]] = {}

    # ── Test controls ───────────────────────────────────────────

    def fail(self, action: str, mode: str = "transport", times: int = 1):
        self._failures.setdefault(action, []).extend([mode] * times)

    def actions(self) -> list[str]:
        return [action for action, _ in self.calls]

    def commands(self) -> list[str]:
        return [a for a, body in self.calls if body is not None]

    def row(self, part_id: str) -> list:
        for row in self.inventory[1:]:
            if row[0] == part_id:
                return row
        raise KeyError(part_id)

    def quantity(self, part_id: str, location: str) -> int:
        header = self.inventory[0]
        column = 5 if location == "shop" else header.index(location)
        return self.row(part_id)[column]

    # ── Transport ───────────────────────────────────────────────

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            action = request.url.params["action"]
            body = None
        else:
            body = json.loads(request.content)
            action = body["action"]
        self.calls.append((action, body))

        pending = self._failures.get(action)
        if pending:
            mode = pending.pop(0)
            if mode == "transport":
                raise httpx.ConnectError("connection refused", request=request)
            if mode == "429":
                return httpx.Response(429, text="Too Many Requests")
            if mode == "500":
                return httpx.Response(500, text="Server Error")
            return httpx.Response(
                200, json={"success": False, "error": "Sheet error"}
            )

        if body is None:
            return httpx.Response(
                200, json={"success": True, "data": self._query(action)}
            )
        result = {"success": True}
        result.update(getattr(self, "_cmd_" + action)(body) or {})
        return httpx.Response(200, json=result)

    def _query(self, action: str):
        if action == "getLowStockItems":
            return self._low_stock()
        table = {
            "readSettings": self.settings,
            "readCategories": self.categories,
            "readTrucks": self.trucks,
            "readInventory": self.inventory,
            "readHistory": self.history,
            "readUsers": self.users,
        }[action]
        return json.loads(json.dumps(table))

    def _low_stock(self) -> dict:
        header = self.inventory[0]
        min_at = header.index("MinStock")
        truck_ids = [r[0] for r in self.trucks[1:]]
        view = {"shop": [], "trucks": {t: [] for t in truck_ids}}
        for row in self.inventory[1:]:
            if row[5] < row[min_at]:
                view["shop"].append({
                    "id": row[0], "current": row[5], "minimum": row[min_at],
                    "needed": row[min_at] - row[5],
                })
            for i, truck_id in enumerate(truck_ids):
                qty = row[header.index(truck_id)]
                minimum = row[min_at + 1 + i]
                if qty < minimum:
                    view["trucks"][truck_id].append({
                        "id": row[0], "current": qty, "minimum": minimum,
                        "needed": minimum - qty, "shopQty": row[5],
                    })
        return view

    # ── Commands ────────────────────────────────────────────────

    def _cmd_updatePartQuantity(self, body):
        row = self.row(body["partId"])
        header = self.inventory[0]
        for location, value in body["updates"].items():
            column = 5 if location == "shop" else header.index(location)
            row[column] = value

    def _cmd_addTransaction(self, body):
        t = body["transaction"]
        self.history.append([
            t["timestamp"], t["tech"], t["action"], t["details"],
            t["quantity"], t["from"], t["to"], t.get("jobName", ""),
        ])

    def _cmd_addPart(self, body):
        p = body["part"]
        truck_ids = [r[0] for r in self.trucks[1:]]
        self.inventory.append(
            [p["partNumber"], p["name"], p["category"], p["barcode"],
             p["imageUrl"], p["shop"]]
            + [p.get(t, 0) for t in truck_ids]
            + [p["minStock"]]
            + [p.get(f"minTruck_{t}", 0) for t in truck_ids]
            + [p["price"], p["purchaseLink"], p["season"]]
        )

    def _cmd_saveCategory(self, body):
        row = [body["id"], body["name"], body["parentId"], body["order"], ""]
        for i, existing in enumerate(self.categories[1:], start=1):
            if existing[0] == body["id"]:
                self.categories[i] = row
                return
        self.categories.append(row)

    def _cmd_deleteCategory(self, body):
        self.categories = [
            r for r in self.categories if r[0] != body["id"]
        ]
        for row in self.inventory[1:]:
            if row[2] == body["id"]:
                row[2] = "other"

    def _cmd_saveTruck(self, body):
        for row in self.trucks[1:]:
            if row[0] == body["id"]:
                row[1], row[2] = body["name"], body["active"]
                return
        n_trucks = len(self.trucks) - 1
        self.trucks.append([body["id"], body["name"], body["active"]])
        header = self.inventory[0]
        qty_at = header.index("MinStock")
        min_at = qty_at + 1 + 1 + n_trucks
        for i, row in enumerate(self.inventory):
            row.insert(qty_at, body["id"] if i == 0 else 0)
            row.insert(min_at, f"MinTruck-{body['id']}" if i == 0 else 0)

    def _cmd_deleteTruck(self, body):
        truck_ids = [r[0] for r in self.trucks[1:]]
        position = truck_ids.index(body["id"])
        header = self.inventory[0]
        qty_at = header.index(body["id"])
        min_at = header.index("MinStock") + 1 + position
        for i, row in enumerate(self.inventory):
            if i:
                row[5] += row[qty_at]
            del row[min_at]
            del row[qty_at]
        self.trucks = [r for r in self.trucks if r[0] != body["id"]]

    def _cmd_saveUser(self, body):
        self.users.append([
            body["pin"], body["name"], body["truck"],
            body["isOwner"], body["canEditPIN"],
        ])

    def _cmd_deleteUser(self, body):
        self.users = [r for r in self.users if r[0] != body["pin"]]

    def _cmd_changePIN(self, body):
        for row in self.users[1:]:
            if row[0] == body["oldPIN"]:
                row[0] = body["newPIN"]

    def _cmd_saveSetting(self, body):
        for row in self.settings[1:]:
            if row[0] == body["setting"]:
                row[1] = body["value"]
                return
        self.settings.append([body["setting"], body["value"]])

    def _cmd_logLogin(self, body):
        pass

    def _cmd_uploadImage(self, body):
        return {"imageUrl": f"https://img.example/{body['fileName']}"}


@pytest.fixture
def db_path(tmp_path):
    """Provide a temporary database path."""
    return tmp_path / "test.db"


@pytest.fixture
def db(db_path):
    """Provide an initialized database connection."""
    conn = DatabaseConnection(db_path)
    initialize_database(conn)
    return conn


@pytest.fixture
def store(db):
    return KeyValueStore(db)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(store, clock):
    """A cache with a one-hour TTL on the fake clock."""
    return TieredCache(store, ttl_ms=60 * 60 * 1000, clock=clock)


@pytest.fixture
def sheet():
    return FakeSheet()


@pytest.fixture
def remote(sheet):
    """A RemoteStore wired to the fake sheet."""
    client = httpx.Client(transport=httpx.MockTransport(sheet.handler))
    store = RemoteStore(base_url=SHEET_URL, client=client)
    yield store
    store.close()


@pytest.fixture
def mirror():
    return InventoryMirror()


@pytest.fixture
def synchronizer(remote, mirror, cache, clock):
    return QuantitySynchronizer(
        remote, mirror, cache, clock=clock,
        failure_threshold=3, cooldown_ms=300_000, rate_limit_penalty=2,
    )


@pytest.fixture
def loaded(synchronizer, sheet):
    """Synchronizer whose mirror holds a full load; call log cleared."""
    synchronizer.load()
    sheet.calls.clear()
    return synchronizer


@pytest.fixture
def tech_session():
    """Non-owner technician assigned to truck t1."""
    return Session(
        user=User(pin="1234", name="Dana", truck_id="t1"), pin="1234"
    )


@pytest.fixture
def owner_session():
    return Session(
        user=User(pin="9999", name="Morgan", truck_id="t1", is_owner=True),
        pin="9999",
    )
