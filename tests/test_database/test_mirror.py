"""Tests for the in-memory mirror and truck registry."""

from field_stock.database.mirror import InventoryMirror, TruckRegistry
from field_stock.database.models import HistoryEntry, Part, Truck


def _registry():
    return TruckRegistry([
        Truck("t1", "Truck 1"),
        Truck("t2", "Truck 2", active=False),
        Truck("t3", "Truck 3"),
    ])


class TestTruckRegistry:
    def test_order_preserved(self):
        assert _registry().ids == ["t1", "t2", "t3"]

    def test_active_filter(self):
        assert [t.id for t in _registry().active()] == ["t1", "t3"]

    def test_is_active(self):
        reg = _registry()
        assert reg.is_active("t1")
        assert not reg.is_active("t2")
        assert not reg.is_active("zz")

    def test_labels(self):
        reg = _registry()
        assert reg.label("shop") == "Shop"
        assert reg.label("t3") == "Truck 3"
        assert reg.label("gone") == "gone"

    def test_membership_and_len(self):
        reg = _registry()
        assert "t2" in reg
        assert len(reg) == 3


class TestInventoryMirror:
    def _mirror(self):
        mirror = InventoryMirror()
        mirror.parts = {
            "P1": Part(id="P1", name="Valve", barcode="111"),
            "P2": Part(id="P2", name="Anode", barcode="222"),
            "P3": Part(id="P3", name="valve seat"),
        }
        return mirror

    def test_default_active_seasons(self):
        assert InventoryMirror().active_seasons == [
            "heating", "cooling", "year-round"
        ]

    def test_active_seasons_from_settings(self):
        mirror = InventoryMirror()
        mirror.settings["ActiveSeasons"] = "heating, cooling"
        assert mirror.active_seasons == ["heating", "cooling"]

    def test_find_by_barcode(self):
        mirror = self._mirror()
        assert mirror.find_by_barcode(" 222 ").id == "P2"
        assert mirror.find_by_barcode("") is None
        assert mirror.find_by_barcode("999") is None

    def test_search_case_insensitive_sorted(self):
        found = self._mirror().search_parts("VALVE")
        assert [p.id for p in found] == ["P1", "P3"]

    def test_search_blank_returns_all(self):
        assert len(self._mirror().search_parts("")) == 3

    def test_apply_quantity_updates(self):
        mirror = self._mirror()
        mirror.parts["P1"].quantities = {"shop": 5, "t1": 1}
        mirror.apply_quantity_updates("P1", {"shop": 3, "t1": 3})
        assert mirror.parts["P1"].quantities == {"shop": 3, "t1": 3}

    def test_history_newest_first_and_filtered(self):
        mirror = self._mirror()
        mirror.record_history(HistoryEntry(tech="Dana", details="Valve: 1"))
        mirror.record_history(HistoryEntry(tech="Sam", details="Anode: 2"))
        assert [e.tech for e in mirror.history_for("Dana", True)] == [
            "Sam", "Dana"
        ]
        assert [e.tech for e in mirror.history_for("Dana", False)] == ["Dana"]
        assert len(mirror.part_history(mirror.parts["P2"])) == 1

    def test_clear(self):
        mirror = self._mirror()
        mirror.loaded = True
        mirror.clear()
        assert mirror.parts == {}
        assert not mirror.loaded
