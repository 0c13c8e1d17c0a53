"""Tests for low-stock alert evaluation."""

from field_stock.database.mirror import InventoryMirror
from field_stock.database.models import Part, Truck
from field_stock.inventory.alerts import (
    STATUS_ALL_GOOD,
    STATUS_LOW,
    STATUS_NO_DATA,
    evaluate_low_stock,
    quick_load_candidates,
)


def _mirror(parts, trucks=()):
    mirror = InventoryMirror()
    mirror.parts = {p.id: p for p in parts}
    mirror.trucks.replace(trucks)
    mirror.loaded = True
    return mirror


class TestSeasonFilter:
    def test_only_active_season_reported(self):
        mirror = _mirror([
            Part(id="A", name="A", season="heating",
                 quantities={"shop": 2}, minimums={"shop": 5}),
            Part(id="B", name="B", season="cooling",
                 quantities={"shop": 5}, minimums={"shop": 5}),
        ])
        report = evaluate_low_stock(mirror, active_seasons=["heating"])
        assert report.status == STATUS_LOW
        assert len(report.sections) == 1
        shop = report.sections[0]
        assert shop.location == "shop"
        assert [i.part.id for i in shop.items] == ["A"]
        assert shop.items[0].needed == 3

    def test_out_of_season_low_part_ignored(self):
        mirror = _mirror([
            Part(id="A", season="cooling",
                 quantities={"shop": 0}, minimums={"shop": 5}),
        ])
        report = evaluate_low_stock(mirror, active_seasons=["heating"])
        assert report.status == STATUS_ALL_GOOD

    def test_seasons_default_to_settings(self):
        mirror = _mirror([
            Part(id="A", season="cooling",
                 quantities={"shop": 0}, minimums={"shop": 5}),
        ])
        mirror.settings["ActiveSeasons"] = "heating"
        assert evaluate_low_stock(mirror).all_good


class TestSections:
    def _fleet(self):
        trucks = [Truck("t1", "Truck 1"), Truck("t2", "Truck 2"),
                  Truck("t3", "Truck 3", active=False)]
        parts = [
            Part(id="P", name="Pipe",
                 quantities={"shop": 0, "t1": 0, "t2": 1, "t3": 0},
                 minimums={"shop": 1, "t1": 1, "t2": 2, "t3": 4}),
        ]
        return _mirror(parts, trucks)

    def test_user_truck_first_then_registry_then_shop(self):
        report = evaluate_low_stock(self._fleet(), user_truck="t2")
        assert [s.location for s in report.sections] == ["t2", "t1", "shop"]
        assert report.sections[0].is_user_truck
        assert report.sections[0].label == "Truck 2"

    def test_inactive_truck_excluded(self):
        report = evaluate_low_stock(self._fleet(), user_truck="t3")
        assert "t3" not in [s.location for s in report.sections]

    def test_critical_flag(self):
        report = evaluate_low_stock(self._fleet())
        by_location = {s.location: s.items[0] for s in report.sections}
        assert by_location["t1"].critical
        assert not by_location["t2"].critical

    def test_items_sorted_by_name(self):
        mirror = _mirror([
            Part(id="2", name="beta", quantities={"shop": 0},
                 minimums={"shop": 1}),
            Part(id="1", name="Alpha", quantities={"shop": 0},
                 minimums={"shop": 1}),
            Part(id="0", name="Alpha", quantities={"shop": 0},
                 minimums={"shop": 1}),
        ])
        items = evaluate_low_stock(mirror).sections[0].items
        assert [i.part.id for i in items] == ["0", "1", "2"]


class TestStatus:
    def test_no_data_before_load(self):
        report = evaluate_low_stock(InventoryMirror())
        assert report.status == STATUS_NO_DATA
        assert not report.all_good

    def test_all_good_message(self):
        report = evaluate_low_stock(_mirror([]))
        assert report.all_good
        assert report.message == "All stock levels are good!"


class TestQuickLoad:
    def test_filters_view_by_season(self, loaded, mirror, remote):
        mirror.settings["ActiveSeasons"] = "heating"
        view = remote.read_low_stock()
        items = quick_load_candidates(mirror, view, "t1")
        assert [i["id"] for i in items] == ["P3"]

    def test_shop_section(self, loaded, mirror, remote):
        items = quick_load_candidates(mirror, remote.read_low_stock(), "shop")
        assert [i["id"] for i in items] == ["P2"]

    def test_unknown_location_empty(self, loaded, mirror, remote):
        assert quick_load_candidates(
            mirror, remote.read_low_stock(), "t9"
        ) == []
