"""Stock movements between the shop, trucks, suppliers, and job sites.

Every movement follows the same sequence:
    1. validate the request locally (no remote call on failure)
    2. re-read the inventory sheet and check the source has enough stock
    3. write the new absolute quantities for every location touched
    4. append the history entry

Steps 3 and 4 are separate remote commands. If step 4 fails after step 3
succeeded, ``PartialWriteError`` is raised and the quantities stand without
an audit entry. Two technicians moving the same part at the same moment
can overwrite each other's quantity write; the last write wins.

Failed movements are never retried here and never touch the mirror.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from field_stock.auth.session import Session
from field_stock.database.mirror import InventoryMirror
from field_stock.database.models import HistoryEntry, Part
from field_stock.errors import PartialWriteError, RemoteError, ValidationError
from field_stock.io.decoders import decode_inventory
from field_stock.io.validators import validate_quantity
from field_stock.remote.client import RemoteStore
from field_stock.utils.clock import Clock, now_ms
from field_stock.utils.constants import (
    ACTION_LOAD,
    ACTION_QUICK_LOAD,
    ACTION_RECEIVE,
    ACTION_RESTOCK,
    ACTION_RETURN,
    ACTION_TRANSFER,
    ACTION_USE,
    CUSTOMER_LABEL,
    DEFAULT_JOB_NAME,
    SHOP,
    SUPPLIER_LABEL,
)
from field_stock.utils.formatters import format_timestamp
from field_stock.utils.location import (
    LocationProvider,
    ReverseGeocoder,
    capture_geolocation,
)

logger = logging.getLogger(__name__)

SCAN_SUFFIX = " (Scan)"

SCAN_ACTIONS = ("use", "load", "return", "receive")


@dataclass
class TransferResult:
    part_id: str
    quantity: int
    updates: dict[str, int]  # absolute values written, by location
    entry: HistoryEntry


@dataclass
class QuickLoadOutcome:
    part_id: str
    quantity: int
    result: Optional[TransferResult] = None
    skipped: str = ""  # reason, when nothing was written

    @property
    def ok(self) -> bool:
        return self.result is not None


@dataclass
class _Move:
    """One requested movement; ``None`` endpoints are off-site."""
    part_id: str
    quantity: int
    source: Optional[str]
    destination: Optional[str]
    action: str
    details: str  # format string: {name}, {qty}, {source}, {destination}
    job_name: str = ""


class TransferEngine:
    """Business actions that move stock, as the signed-in technician."""

    def __init__(self, remote: RemoteStore, mirror: InventoryMirror,
                 session: Session,
                 locator: Optional[LocationProvider] = None,
                 geocoder: Optional[ReverseGeocoder] = None,
                 clock: Clock = now_ms):
        self.remote = remote
        self.mirror = mirror
        self.session = session
        self.locator = locator
        self.geocoder = geocoder
        self._clock = clock

    # ── Business actions ────────────────────────────────────────

    def load(self, part_id: str, quantity: int, truck_id: str,
             via_scan: bool = False) -> TransferResult:
        """Shop -> truck."""
        self._require_truck(truck_id)
        return self._execute(_Move(
            part_id, quantity, SHOP, truck_id,
            _label(ACTION_LOAD, via_scan),
            "{name}: {qty} loaded onto {destination}",
        ))

    def return_to_shop(self, part_id: str, quantity: int, truck_id: str,
                       via_scan: bool = False) -> TransferResult:
        """Truck -> shop."""
        self._require_truck(truck_id)
        return self._execute(_Move(
            part_id, quantity, truck_id, SHOP,
            _label(ACTION_RETURN, via_scan),
            "{name}: {qty} returned from {source}",
        ))

    def transfer(self, part_id: str, quantity: int, from_truck: str,
                 to_truck: str) -> TransferResult:
        """Truck -> truck."""
        if from_truck == to_truck:
            raise ValidationError("Cannot transfer to same truck")
        self._require_truck(from_truck)
        self._require_truck(to_truck)
        return self._execute(_Move(
            part_id, quantity, from_truck, to_truck, ACTION_TRANSFER,
            "{name}: {qty} from {source} to {destination}",
        ))

    def receive(self, part_id: str, quantity: int,
                via_scan: bool = False) -> TransferResult:
        """Supplier -> shop."""
        return self._execute(_Move(
            part_id, quantity, None, SHOP,
            _label(ACTION_RECEIVE, via_scan),
            "{name}: {qty} received to shop",
        ))

    def use_on_job(self, part_id: str, quantity: int, truck_id: str,
                   job_name: str = "", via_scan: bool = False
                   ) -> TransferResult:
        """Truck -> customer."""
        self._require_truck(truck_id)
        return self._execute(_Move(
            part_id, quantity, truck_id, None,
            _label(ACTION_USE, via_scan),
            "{name}: {qty} used from {source}",
            job_name=(job_name or "").strip() or DEFAULT_JOB_NAME,
        ))

    def scan(self, barcode: str, action: str, truck_id: str = "",
             job_name: str = "") -> TransferResult:
        """Move a single unit of the part carrying ``barcode``."""
        if action not in SCAN_ACTIONS:
            raise ValidationError(f"Unknown scan action: {action}")
        part = self.mirror.find_by_barcode(barcode)
        if part is None:
            raise ValidationError(f"Part not found for barcode: {barcode}")
        if action == "receive":
            return self.receive(part.id, 1, via_scan=True)
        if not truck_id:
            raise ValidationError("Select a truck first")
        if action == "use":
            return self.use_on_job(part.id, 1, truck_id, job_name,
                                   via_scan=True)
        if action == "load":
            return self.load(part.id, 1, truck_id, via_scan=True)
        return self.return_to_shop(part.id, 1, truck_id, via_scan=True)

    def quick_load(self, location: str,
                   quantities: dict[str, int]) -> list[QuickLoadOutcome]:
        """Restock several parts at one location from a single snapshot.

        For the shop every item is a supplier receipt; for a truck every
        item is loaded from the shop and items the shop cannot cover are
        skipped. A remote failure stops the batch; items already written
        stay written.
        """
        if location != SHOP:
            self._require_truck(location)
        wanted = {pid: qty for pid, qty in quantities.items() if qty > 0}
        if not wanted:
            raise ValidationError("Select at least one item")

        snapshot = self._snapshot()
        outcomes = []
        for part_id, qty in wanted.items():
            if location == SHOP:
                move = _Move(
                    part_id, qty, None, SHOP, ACTION_RESTOCK,
                    "{name}: {qty} added to shop",
                )
            else:
                move = _Move(
                    part_id, qty, SHOP, location, ACTION_QUICK_LOAD,
                    "{name}: {qty} loaded onto {destination}",
                )
            try:
                result = self._execute(move, snapshot)
            except ValidationError as e:
                outcomes.append(
                    QuickLoadOutcome(part_id, qty, skipped=str(e))
                )
                continue
            outcomes.append(QuickLoadOutcome(part_id, qty, result=result))
        return outcomes

    # ── Internals ───────────────────────────────────────────────

    def _require_truck(self, truck_id: str):
        truck = self.mirror.trucks.get(truck_id)
        if truck is None:
            raise ValidationError(f"Unknown truck: {truck_id}")
        if not truck.active:
            raise ValidationError(f"{truck.name} is not active")

    def _snapshot(self) -> dict[str, Part]:
        return decode_inventory(
            self.remote.read_inventory(), self.mirror.trucks.ids
        )

    def _execute(self, move: _Move,
                 snapshot: Optional[dict[str, Part]] = None
                 ) -> TransferResult:
        qty = validate_quantity(move.quantity)
        if snapshot is None:
            snapshot = self._snapshot()
        part = snapshot.get(move.part_id)
        if part is None:
            raise ValidationError(f"Unknown part: {move.part_id}")

        updates = {}
        if move.source is not None:
            available = part.quantity_at(move.source)
            if available < qty:
                where = (
                    "in shop" if move.source == SHOP
                    else f"on {self._label(move.source)}"
                )
                raise ValidationError(f"Only {available} available {where}")
            updates[move.source] = available - qty
        if move.destination is not None:
            updates[move.destination] = part.quantity_at(move.destination) + qty

        source = self._label(move.source, SUPPLIER_LABEL)
        destination = self._label(move.destination, CUSTOMER_LABEL)
        geo = capture_geolocation(self.locator, self.geocoder)
        entry = HistoryEntry(
            timestamp=format_timestamp(self._clock()),
            tech=self.session.name,
            action=move.action,
            details=move.details.format(
                name=part.name, qty=qty,
                source=source, destination=destination,
            ),
            quantity=qty,
            source=source,
            destination=destination,
            job_name=move.job_name,
            address=geo.address,
            latitude=geo.latitude,
            longitude=geo.longitude,
        )

        self.remote.set_quantities(part.id, updates)
        try:
            self.remote.add_transaction(entry.to_payload())
        except RemoteError as e:
            logger.error(
                "Quantities for %s written %s but history append failed: %s",
                part.id, updates, e,
            )
            raise PartialWriteError(
                f"Stock for {part.name} was updated but the history entry "
                f"was not saved ({e})",
                part.id, updates,
            ) from e

        # Keep the snapshot consistent for later items in a batch
        part.quantities.update(updates)
        self.mirror.apply_quantity_updates(part.id, updates)
        self.mirror.record_history(entry)
        logger.info("%s by %s: %s", move.action, self.session.name,
                    entry.details)
        return TransferResult(part.id, qty, updates, entry)

    def _label(self, location: Optional[str], external: str = "") -> str:
        if location is None:
            return external
        return self.mirror.trucks.label(location)


def _label(action: str, via_scan: bool) -> str:
    return action + SCAN_SUFFIX if via_scan else action
