# mixing_BatchReporter/core/filters.py
from __future__ import annotations
from datetime import date, datetime, time, timedelta
from typing import Iterable, Sequence

from .errors import ConfigError
from .model import FacetField, FilterState, GroupedBatch, RawRow

_FACET_FIELDS: tuple[str, ...] = ("lot", "batch")

# ---------- date bounds ----------
def day_bounds(start: date | None, end: date | None) -> tuple[datetime | None, datetime | None]:
    """Inclusive instants [start 00:00:00.000, end 23:59:59.999]."""
    lo = datetime.combine(start, time.min) if start is not None else None
    hi = datetime.combine(end, time(23, 59, 59, 999000)) if end is not None else None
    return lo, hi

def _date_match(row: RawRow, lo: datetime | None, hi: datetime | None) -> bool:
    if lo is None and hi is None:
        return True
    if row.date is None:
        return False
    return (lo is None or row.date >= lo) and (hi is None or row.date <= hi)

def _text_match(value: str, fragment: str) -> bool:
    return not fragment or fragment.casefold() in str(value or "").casefold()

# ---------- stages ----------
def filter_upstream(rows: Iterable[RawRow], state: FilterState) -> list[RawRow]:
    """
    Date, machine and rubber predicates (AND). These run on raw rows because
    they decide which rows are summed into a batch.
    """
    lo, hi = day_bounds(state.start_date, state.end_date)
    return [
        r for r in rows
        if _date_match(r, lo, hi)
        and _text_match(r.machine, state.machine)
        and _text_match(r.rubber, state.rubber)
    ]

def filter_by_facets(rows: Iterable[RawRow], facet_field: FacetField,
                     selection: frozenset[str] | None) -> list[RawRow]:
    # None: no facet list offered yet, nothing to constrain on
    if selection is None:
        return list(rows)
    return [r for r in rows if str(r.facet_value(facet_field)).strip() in selection]

def filter_by_lot_text(batches: Iterable[GroupedBatch], fragment: str) -> list[GroupedBatch]:
    """Post-grouping refinement: hides batches, never changes their sums."""
    return [b for b in batches if _text_match(b.lot_number, fragment)]

# ---------- config ----------
def _to_date(value, key: str) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError as e:
        raise ConfigError(f"filters.{key}: expected YYYY-MM-DD, got {value!r}") from e

def prepare_filters(global_cfg: dict | None, today: date | None = None) -> FilterState:
    """
    Read the ``filters`` section into a FilterState.
    When neither date is given, ``window_days`` (if set) yields the window
    [today - window_days, today].
    """
    flt = (global_cfg or {}).get("filters", {}) or {}

    start = _to_date(flt.get("start_date"), "start_date")
    end = _to_date(flt.get("end_date"), "end_date")
    window = flt.get("window_days")
    if start is None and end is None and window is not None:
        try:
            days = int(window)
        except (TypeError, ValueError) as e:
            raise ConfigError(f"filters.window_days must be an integer, got {window!r}") from e
        if days < 0:
            raise ConfigError("filters.window_days must not be negative")
        end = today or date.today()
        start = end - timedelta(days=days)

    facet_field = str(flt.get("facet_field", "lot")).lower().strip()
    if facet_field not in _FACET_FIELDS:
        raise ConfigError(f"filters.facet_field must be one of {_FACET_FIELDS}, got {facet_field!r}")

    raw_sel = flt.get("selection")
    selection: frozenset[str] | None = None
    if raw_sel is not None:
        if isinstance(raw_sel, (str, bytes)) or not isinstance(raw_sel, Sequence):
            raise ConfigError("filters.selection must be a list of identifiers")
        selection = frozenset(str(x).strip() for x in raw_sel if str(x).strip())

    return FilterState(
        start_date=start,
        end_date=end,
        machine=str(flt.get("machine") or ""),
        rubber=str(flt.get("rubber") or ""),
        lot_number=str(flt.get("lot_number") or ""),
        facet_field=facet_field,
        selection=selection,
    )
