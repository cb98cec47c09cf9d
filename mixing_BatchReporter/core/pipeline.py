# mixing_BatchReporter/core/pipeline.py
from __future__ import annotations
from dataclasses import dataclass
import logging
from typing import Sequence

from .display import DisplayCfg, govern
from .facets import derive_facets, reconcile_selection
from .filters import filter_by_facets, filter_by_lot_text, filter_upstream
from .grouping import detect_conflicts, displayable_batches, group_batches
from .metrics import AggregateStats, compute_aggregates, step_columns
from .model import BatchConflict, FilterState, GroupedBatch, RawRow

_LOG = logging.getLogger(__name__)

@dataclass(frozen=True)
class PipelineResult:
    batches: tuple[GroupedBatch, ...]       # visible rows, after the display limit
    truncated: bool
    total_batches: int                      # qualifying batches before the display limit
    facets: tuple[str, ...]
    selection: frozenset[str]
    step_columns: tuple[int, ...]
    aggregates: AggregateStats | None
    conflicts: tuple[BatchConflict, ...] = ()

EMPTY_RESULT = PipelineResult(
    batches=(), truncated=False, total_batches=0, facets=(),
    selection=frozenset(), step_columns=(), aggregates=None,
)

def run_pipeline(rows: Sequence[RawRow], state: FilterState,
                 display: DisplayCfg | None = None) -> PipelineResult:
    """
    One full pass, recomputed from scratch for every snapshot or filter change.

    Stages (order matters):
      1) date / machine / rubber on raw rows
      2) facets derived from (1); previous selection reconciled against them
      3) facet selection on raw rows
      4) group per (lot, batch), drop zero-mx batches
      5) lot text on the grouped batches
      6) display limit
      7) step columns + averages over exactly the visible batches
    """
    display = display or DisplayCfg()

    upstream = filter_upstream(rows, state)
    facets = derive_facets(upstream, state.facet_field)
    selection = reconcile_selection(state.selection, facets)
    selected = filter_by_facets(upstream, state.facet_field, selection)

    groups = group_batches(selected)
    conflicts = detect_conflicts(selected)
    if conflicts:
        _LOG.warning("%d batch attribute conflict(s); first-seen values are shown", len(conflicts))

    batches = filter_by_lot_text(displayable_batches(groups), state.lot_number)
    visible, truncated = govern(batches, display.max_rows)

    columns = step_columns(visible, display.max_step_columns)
    aggregates = compute_aggregates(visible, columns)

    _LOG.debug("pipeline: %d rows → %d upstream → %d selected → %d batches (%d shown)",
               len(rows), len(upstream), len(selected), len(batches), len(visible))

    return PipelineResult(
        batches=tuple(visible),
        truncated=truncated,
        total_batches=len(batches),
        facets=facets,
        selection=selection,
        step_columns=tuple(columns),
        aggregates=aggregates,
        conflicts=tuple(conflicts),
    )
