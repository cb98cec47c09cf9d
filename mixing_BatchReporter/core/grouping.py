# mixing_BatchReporter/core/grouping.py
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import datetime
import logging
from typing import Iterable

from .model import BatchConflict, GroupedBatch, RawRow, StepReading

_LOG = logging.getLogger(__name__)

STEP_MIN = 1
STEP_MAX = 99

def is_valid_step(step: int) -> bool:
    return STEP_MIN <= step <= STEP_MAX

@dataclass
class _Accumulator:
    first: RawRow
    mx: float = 0.0
    steps: dict[int, StepReading] = field(default_factory=dict)
    rows: list[RawRow] = field(default_factory=list)

    def add(self, row: RawRow) -> None:
        self.mx += row.time_value
        if is_valid_step(row.step_number):
            # same step twice in one batch: the later reading replaces the earlier
            self.steps[row.step_number] = StepReading(time=row.time_value, temp=row.temp_value)
        self.rows.append(row)

    def freeze(self) -> GroupedBatch:
        f = self.first
        return GroupedBatch(
            lot_number=str(f.lot_number),
            batch_number=str(f.batch_number),
            rubber=str(f.rubber),
            machine=str(f.machine),
            date=f.date,
            ct=str(f.ct or "0"),
            mx=self.mx,
            steps=dict(self.steps),
            original_rows=tuple(self.rows),
        )

def group_batches(rows: Iterable[RawRow]) -> dict[tuple[str, str], GroupedBatch]:
    """
    Fold per-step rows into one GroupedBatch per (lot, batch).
    The first row of a key fixes rubber/machine/date/ct; every row adds its
    time to mx; valid steps (1..99) record {time, temp}.
    Result keeps first-seen key order.
    """
    acc: dict[tuple[str, str], _Accumulator] = {}
    for row in rows:
        a = acc.get(row.key)
        if a is None:
            a = acc[row.key] = _Accumulator(first=row)
        a.add(row)
    return {k: a.freeze() for k, a in acc.items()}

def displayable_batches(groups: dict[tuple[str, str], GroupedBatch]) -> list[GroupedBatch]:
    """Drop incomplete batches (mx exactly zero); they are computed but never shown."""
    out = [b for b in groups.values() if b.mx != 0]
    hidden = len(groups) - len(out)
    if hidden:
        _LOG.debug("hiding %d batch(es) with zero mx", hidden)
    return out

# ---------- conflict detection ----------
_CONFLICT_ATTRS: tuple[str, ...] = ("machine", "rubber", "ct", "date")

def _as_text(value) -> str:
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    return "" if value is None else str(value)

def detect_conflicts(rows: Iterable[RawRow]) -> list[BatchConflict]:
    """
    Report batches whose rows disagree on a batch-level attribute.
    Grouping still takes the first-seen value; this only makes the
    disagreement visible.
    """
    seen: dict[tuple[str, str], dict[str, list[str]]] = {}
    for row in rows:
        per_attr = seen.setdefault(row.key, {a: [] for a in _CONFLICT_ATTRS})
        for attr in _CONFLICT_ATTRS:
            val = _as_text(getattr(row, attr))
            if val not in per_attr[attr]:
                per_attr[attr].append(val)

    conflicts: list[BatchConflict] = []
    for (lot, batch), per_attr in seen.items():
        for attr in _CONFLICT_ATTRS:
            vals = per_attr[attr]
            if len(vals) > 1:
                conflicts.append(BatchConflict(lot, batch, attr, tuple(vals)))
    return conflicts
