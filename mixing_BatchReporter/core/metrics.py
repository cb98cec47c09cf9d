# mixing_BatchReporter/core/metrics.py
from __future__ import annotations
from dataclasses import dataclass
from typing import Sequence
import numpy as np

from .model import GroupedBatch
from .normalize import parse_decimal

MISSING = "—"

@dataclass(frozen=True)
class StepAverage:
    time: float | None      # None: no visible batch has this step
    temp: float | None

@dataclass(frozen=True)
class AggregateStats:
    batch_count: int
    mx: float
    ct: float
    steps: dict[int, StepAverage]

def _mean2(values: list[float]) -> float | None:
    if not values:
        return None
    return round(float(np.mean(values)), 2)

def format_mean(value: float | None) -> str:
    return MISSING if value is None else f"{value:.2f}"

def step_columns(batches: Sequence[GroupedBatch], limit: int = 10) -> list[int]:
    """First ``limit`` distinct step numbers present, ascending."""
    present = {s for b in batches for s in b.steps}
    return sorted(present)[:max(limit, 0)]

def compute_aggregates(batches: Sequence[GroupedBatch],
                       columns: Sequence[int]) -> AggregateStats | None:
    """
    Means over the visible batches. Step means only count batches that
    carry the step, so a missing step never drags the average towards zero.
    Empty input -> None (no aggregate row at all).
    """
    if not batches:
        return None

    mx_vals = [b.mx for b in batches]
    ct_vals = [parse_decimal(b.ct) for b in batches]

    steps: dict[int, StepAverage] = {}
    for step in columns:
        readings = [b.steps[step] for b in batches if step in b.steps]
        steps[step] = StepAverage(
            time=_mean2([r.time for r in readings]),
            temp=_mean2([r.temp for r in readings]),
        )

    return AggregateStats(
        batch_count=len(batches),
        mx=_mean2(mx_vals),
        ct=_mean2(ct_vals),
        steps=steps,
    )
