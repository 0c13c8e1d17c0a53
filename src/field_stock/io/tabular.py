"""Schema-driven decoding of sheet tables into plain records.

Each remote table arrives as a header row followed by data rows. Most
columns sit at fixed positions, truck quantity columns are found by header
name, and the block after the ``MinStock`` column is positional: one
minimum per known truck, then price, purchase link, and season. A
``TableSchema`` spells that layout out column by column so the positional
contract with the sheet lives in one declarative table.

Decoding is lenient. Missing or unparseable cells fall back to a default
and are logged rather than raised.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from field_stock.utils.constants import DEFAULT_SEASON, SEASONS

logger = logging.getLogger(__name__)

_INT_RE = re.compile(r"^\s*([+-]?\d+)")
_FLOAT_RE = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")

# Value kinds and their defaults
KIND_DEFAULTS = {
    "str": "",
    "int": 0,
    "count": 0,         # non-negative int
    "float": 0.0,
    "opt_float": None,
    "bool": False,
    "season": DEFAULT_SEASON,
}


@dataclass(frozen=True)
class Column:
    """Where one field lives in the sheet and how to read it.

    Exactly one locator applies: ``index`` (fixed position), ``header``
    (column whose header equals this text), or ``anchor`` + ``delta``
    (position relative to the anchor header). With ``after_trucks`` the
    offset is further shifted by the number of known trucks.
    """

    name: str
    kind: str = "str"
    index: Optional[int] = None
    header: Optional[str] = None
    anchor: Optional[str] = None
    delta: int = 0
    after_trucks: bool = False
    default: Any = None


@dataclass(frozen=True)
class TruckColumns:
    """One column per known truck, decoded into ``{truck_id: value}``.

    With ``header_template`` each truck's column is found by header name;
    with ``anchor`` the i-th registered truck sits at ``anchor + delta + i``.
    """

    name: str
    kind: str = "count"
    header_template: Optional[str] = None
    anchor: Optional[str] = None
    delta: int = 0


@dataclass(frozen=True)
class TableSchema:
    name: str
    columns: tuple = ()


def by_index(name: str, index: int, kind: str = "str",
             default: Any = None) -> Column:
    return Column(name=name, kind=kind, index=index, default=default)


def by_header(name: str, header: str, kind: str = "str",
              default: Any = None) -> Column:
    return Column(name=name, kind=kind, header=header, default=default)


def by_offset(name: str, anchor: str, delta: int, kind: str = "str",
              after_trucks: bool = False, default: Any = None) -> Column:
    return Column(
        name=name, kind=kind, anchor=anchor, delta=delta,
        after_trucks=after_trucks, default=default,
    )


@dataclass
class DecodeStats:
    """Anomalies seen while decoding one table."""

    missing_anchors: set[str] = field(default_factory=set)
    missing_headers: set[str] = field(default_factory=set)
    unparseable: int = 0

    @property
    def clean(self) -> bool:
        return not (self.missing_anchors or self.missing_headers
                    or self.unparseable)


def coerce(raw: Any, kind: str, default: Any = None,
           stats: Optional[DecodeStats] = None) -> Any:
    """Convert one cell to ``kind``, falling back to the kind's default."""
    fallback = default if default is not None else KIND_DEFAULTS[kind]
    if raw is None or (isinstance(raw, str) and not raw.strip()):
        return fallback

    if kind == "str":
        if isinstance(raw, float) and raw.is_integer():
            return str(int(raw))
        return str(raw).strip()

    if kind == "bool":
        if isinstance(raw, bool):
            return raw
        return str(raw).strip().lower() == "true"

    if kind == "season":
        season = str(raw).strip().lower()
        if season in SEASONS:
            return season
        logger.debug("Unknown season %r, using %s", raw, fallback)
        return fallback

    if kind in ("int", "count"):
        value = _parse_int(raw)
        if value is None:
            _note_unparseable(raw, kind, stats)
            return fallback
        if kind == "count" and value < 0:
            _note_unparseable(raw, kind, stats)
            return 0
        return value

    if kind in ("float", "opt_float"):
        value = _parse_float(raw)
        if value is None:
            _note_unparseable(raw, kind, stats)
            return fallback
        return value

    raise ValueError(f"Unknown column kind: {kind}")


def _parse_int(raw: Any) -> Optional[int]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return int(raw)
    match = _INT_RE.match(str(raw))
    return int(match.group(1)) if match else None


def _parse_float(raw: Any) -> Optional[float]:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, (int, float)):
        return float(raw)
    match = _FLOAT_RE.match(str(raw))
    return float(match.group(1)) if match else None


def _note_unparseable(raw: Any, kind: str, stats: Optional[DecodeStats]):
    logger.debug("Unparseable %s cell %r", kind, raw)
    if stats is not None:
        stats.unparseable += 1


class TableDecoder:
    """Decode a header + rows table according to a ``TableSchema``."""

    def __init__(self, schema: TableSchema, truck_ids: Sequence[str] = ()):
        self.schema = schema
        self.truck_ids = list(truck_ids)
        self.last_stats = DecodeStats()

    def decode(self, table: Sequence[Sequence[Any]]) -> list[dict]:
        """Return one record per data row whose first cell is non-empty."""
        stats = DecodeStats()
        self.last_stats = stats
        if not table:
            return []

        header = [str(h).strip() if h is not None else "" for h in table[0]]
        plan = self._plan(header, stats)

        records = []
        for row in table[1:]:
            if not row or _blank(row[0]):
                continue
            record: dict[str, Any] = {}
            for name, truck_id, index, kind, default in plan:
                raw = row[index] if index is not None and index < len(row) \
                    else None
                value = coerce(raw, kind, default, stats)
                if truck_id is None:
                    record[name] = value
                else:
                    record.setdefault(name, {})[truck_id] = value
            records.append(record)

        self._report(stats)
        return records

    def _plan(self, header: list[str], stats: DecodeStats) -> list[tuple]:
        """Resolve every column to a concrete row index (or None)."""
        positions = {}
        for i, text in enumerate(header):
            positions.setdefault(text, i)
        truck_count = len(self.truck_ids)

        def anchored(anchor: str, delta: int) -> Optional[int]:
            if anchor not in positions:
                stats.missing_anchors.add(anchor)
                return None
            return positions[anchor] + delta

        plan = []
        for col in self.schema.columns:
            if isinstance(col, TruckColumns):
                if not self.truck_ids:
                    continue
                for i, truck_id in enumerate(self.truck_ids):
                    if col.header_template is not None:
                        text = col.header_template.format(truck_id=truck_id)
                        index = positions.get(text)
                        if index is None:
                            stats.missing_headers.add(text)
                    else:
                        index = anchored(col.anchor, col.delta + i)
                    plan.append((col.name, truck_id, index, col.kind, None))
                continue

            if col.index is not None:
                index = col.index
            elif col.header is not None:
                index = positions.get(col.header)
                if index is None:
                    stats.missing_headers.add(col.header)
            else:
                shift = truck_count if col.after_trucks else 0
                index = anchored(col.anchor, col.delta + shift)
            plan.append((col.name, None, index, col.kind, col.default))
        return plan

    def _report(self, stats: DecodeStats):
        table = self.schema.name
        if stats.missing_anchors:
            logger.warning(
                "%s table has no %s column; dependent fields default to 0",
                table, ", ".join(sorted(stats.missing_anchors)),
            )
        if stats.missing_headers:
            logger.info(
                "%s table is missing columns %s; values default to 0",
                table, ", ".join(sorted(stats.missing_headers)),
            )
        if stats.unparseable:
            logger.warning(
                "%s table: %d unparseable cell(s) defaulted",
                table, stats.unparseable,
            )


def _blank(cell: Any) -> bool:
    return cell is None or (isinstance(cell, str) and not cell.strip()) \
        or cell is False
