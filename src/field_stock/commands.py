"""One-shot stock and catalog commands, e.g. ``field-stock load P1 3 t1``.

Arguments are positional, read straight from ``sys.argv``. ``--job NAME``
names the job for ``use`` and ``scan use``. Every command returns the
lines to print; bad arguments raise ``ValidationError``.
"""

import logging
from typing import Callable

from field_stock.errors import ValidationError
from field_stock.inventory.admin import CatalogAdmin
from field_stock.inventory.transfers import TransferEngine, TransferResult

logger = logging.getLogger(__name__)

Handler = Callable[[list[str]], list[str]]


class CommandRunner:
    """Dispatches a command line to the transfer engine or catalog admin."""

    def __init__(self, engine: TransferEngine, admin: CatalogAdmin):
        self.engine = engine
        self.admin = admin
        self._job_name = ""
        # name -> (argument synopsis, min args, max args, handler)
        self._commands: dict[str, tuple[str, int, int, Handler]] = {
            "load": ("PART QTY TRUCK", 3, 3, self._load),
            "return": ("PART QTY TRUCK", 3, 3, self._return),
            "transfer": ("PART QTY FROM_TRUCK TO_TRUCK", 4, 4,
                         self._transfer),
            "receive": ("PART QTY", 2, 2, self._receive),
            "use": ("PART QTY TRUCK [--job NAME]", 3, 3, self._use),
            "scan": ("BARCODE use|load|return|receive [TRUCK] [--job NAME]",
                     2, 3, self._scan),
            "quick-load": ("LOCATION PART=QTY...", 2, 99, self._quick_load),
            "add-part": ("PART NAME CATEGORY [SHOP_QTY] [MIN_STOCK]", 3, 5,
                         self._add_part),
            "add-category": ("NAME [PARENT_ID]", 1, 2, self._add_category),
            "delete-category": ("CATEGORY_ID", 1, 1, self._delete_category),
            "add-truck": ("NAME", 1, 1, self._add_truck),
            "toggle-truck": ("TRUCK", 1, 1, self._toggle_truck),
            "delete-truck": ("TRUCK", 1, 1, self._delete_truck),
            "add-user": ("NAME PIN TRUCK", 3, 3, self._add_user),
            "delete-user": ("PIN", 1, 1, self._delete_user),
            "change-pin": ("OLD_PIN NEW_PIN CONFIRM_PIN", 3, 3,
                           self._change_pin),
            "seasons": ("SEASON[,SEASON...]", 1, 1, self._seasons),
        }

    def names(self) -> list[str]:
        return list(self._commands)

    def usage(self) -> list[str]:
        return [
            f"  field-stock {name} {synopsis}"
            for name, (synopsis, *_rest) in self._commands.items()
        ]

    def run(self, argv: list[str]) -> list[str]:
        if not argv or argv[0] not in self._commands:
            raise ValidationError(
                f"Unknown command: {argv[0] if argv else '(none)'}"
            )
        name, args = argv[0], list(argv[1:])
        synopsis, low, high, handler = self._commands[name]
        job_name = _pop_option(args, "--job")
        if job_name and name not in ("use", "scan"):
            raise ValidationError(f"{name} does not take --job")
        if not low <= len(args) <= high:
            raise ValidationError(f"Usage: field-stock {name} {synopsis}")
        logger.debug("Running %s %s", name, args)
        self._job_name = job_name
        return handler(args)

    # ── Stock movements ─────────────────────────────────────────

    def _load(self, args):
        part_id, qty, truck_id = args
        return _moved(self.engine.load(part_id, _quantity(qty), truck_id))

    def _return(self, args):
        part_id, qty, truck_id = args
        return _moved(
            self.engine.return_to_shop(part_id, _quantity(qty), truck_id)
        )

    def _transfer(self, args):
        part_id, qty, from_truck, to_truck = args
        return _moved(self.engine.transfer(
            part_id, _quantity(qty), from_truck, to_truck
        ))

    def _receive(self, args):
        part_id, qty = args
        return _moved(self.engine.receive(part_id, _quantity(qty)))

    def _use(self, args):
        part_id, qty, truck_id = args
        return _moved(self.engine.use_on_job(
            part_id, _quantity(qty), truck_id, self._job_name
        ))

    def _scan(self, args):
        barcode, action = args[0], args[1]
        truck_id = args[2] if len(args) > 2 else ""
        return _moved(
            self.engine.scan(barcode, action, truck_id, self._job_name)
        )

    def _quick_load(self, args):
        location, pairs = args[0], args[1:]
        quantities = {}
        for pair in pairs:
            part_id, sep, qty = pair.partition("=")
            if not sep or not part_id:
                raise ValidationError(f"Expected PART=QTY, got {pair!r}")
            quantities[part_id] = _quantity(qty, allow_zero=True)
        lines = []
        for outcome in self.engine.quick_load(location, quantities):
            if outcome.ok:
                lines.extend(_moved(outcome.result))
            else:
                lines.append(f"Skipped {outcome.part_id}: {outcome.skipped}")
        return lines

    # ── Catalog ─────────────────────────────────────────────────

    def _add_part(self, args):
        part_id, name, category_id = args[:3]
        shop = _quantity(args[3], allow_zero=True) if len(args) > 3 else 0
        minimum = _quantity(args[4], allow_zero=True) if len(args) > 4 else 0
        self.admin.add_part(part_id, name, category_id,
                            shop_quantity=shop, min_stock=minimum)
        return [f"Added part {part_id} ({name})"]

    def _add_category(self, args):
        parent_id = args[1] if len(args) > 1 else None
        category = self.admin.save_category(args[0], parent_id=parent_id)
        return [f"Saved category {category.id} ({category.name})"]

    def _delete_category(self, args):
        self.admin.delete_category(args[0])
        return [f"Deleted category {args[0]}"]

    def _add_truck(self, args):
        truck = self.admin.add_truck(args[0])
        return [f"Added truck {truck.id} ({truck.name})"]

    def _toggle_truck(self, args):
        self.admin.toggle_truck(args[0])
        trucks = self.admin.mirror.trucks
        state = "active" if trucks.is_active(args[0]) else "inactive"
        return [f"{trucks.label(args[0])} is now {state}"]

    def _delete_truck(self, args):
        self.admin.delete_truck(args[0])
        return [f"Deleted truck {args[0]}; its stock returned to the shop"]

    def _add_user(self, args):
        name, pin, truck_id = args
        self.admin.refresh_users()
        user = self.admin.add_user(name, pin, truck_id)
        return [f"Added user {user.name} on {user.truck_id}"]

    def _delete_user(self, args):
        self.admin.refresh_users()
        self.admin.delete_user(args[0])
        return ["User deleted"]

    def _change_pin(self, args):
        self.admin.change_pin(*args)
        return ["PIN changed"]

    def _seasons(self, args):
        seasons = self.admin.save_active_seasons(args[0].split(","))
        return ["Active seasons: " + ", ".join(seasons)]


def _pop_option(args: list[str], flag: str) -> str:
    """Remove ``flag VALUE`` from ``args`` and return VALUE."""
    if flag not in args:
        return ""
    at = args.index(flag)
    if at + 1 >= len(args):
        raise ValidationError(f"{flag} needs a value")
    value = args[at + 1]
    del args[at:at + 2]
    return value


def _quantity(text: str, allow_zero: bool = False) -> int:
    try:
        value = int(text)
    except ValueError:
        raise ValidationError("Quantity must be a whole number")
    if value < 0 or (value == 0 and not allow_zero):
        raise ValidationError("Quantity must be greater than zero")
    return value


def _moved(result: TransferResult) -> list[str]:
    return [result.entry.details]
