# mixing_BatchReporter/core/model.py
from __future__ import annotations
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Literal

FacetField = Literal["lot", "batch"]

@dataclass(frozen=True)
class RawRow:
    date: datetime | None     # None when the source value did not parse
    machine: str
    lot_number: str
    batch_number: str
    rubber: str
    ct: str                   # reference value per (lot, batch), kept as text
    step_number: int          # valid range 1..99
    time_value: float
    temp_value: float

    @property
    def key(self) -> tuple[str, str]:
        return (self.lot_number, self.batch_number)

    def facet_value(self, facet_field: FacetField) -> str:
        return self.lot_number if facet_field == "lot" else self.batch_number

@dataclass(frozen=True)
class StepReading:
    time: float
    temp: float

@dataclass(frozen=True)
class GroupedBatch:
    lot_number: str
    batch_number: str
    rubber: str
    machine: str
    date: datetime | None
    ct: str
    mx: float                                 # sum of time_value over the group
    steps: dict[int, StepReading] = field(default_factory=dict)
    original_rows: tuple[RawRow, ...] = ()

    @property
    def key(self) -> tuple[str, str]:
        return (self.lot_number, self.batch_number)

@dataclass(frozen=True)
class BatchConflict:
    lot_number: str
    batch_number: str
    attribute: str           # machine | rubber | ct | date
    values: tuple[str, ...]   # distinct values in first-seen order

@dataclass(frozen=True)
class FilterState:
    start_date: date | None = None
    end_date: date | None = None
    machine: str = ""
    rubber: str = ""
    lot_number: str = ""
    facet_field: FacetField = "lot"
    selection: frozenset[str] | None = None   # None until a facet list was offered
