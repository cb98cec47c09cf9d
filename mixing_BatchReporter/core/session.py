# mixing_BatchReporter/core/session.py
from __future__ import annotations
from dataclasses import replace
from enum import Enum
import logging
from typing import Callable, Iterable, Sequence

from .display import DisplayCfg
from .errors import ProviderUnavailable
from .facets import restrict_selection
from .model import FilterState, RawRow
from .pipeline import EMPTY_RESULT, PipelineResult, run_pipeline

_LOG = logging.getLogger(__name__)

Provider = Callable[[], Sequence[RawRow]]

class SessionStatus(Enum):
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"

class ReportSession:
    """
    Owns the raw-row snapshot and the filter state for one viewer.

    Every snapshot arrival or filter change re-runs the whole pipeline.
    A run either publishes (state, result) together or leaves both untouched
    and switches the status to ERROR, so the last good report stays consistent.
    """

    def __init__(self, provider: Provider | None = None, *,
                 state: FilterState | None = None,
                 display: DisplayCfg | None = None) -> None:
        self.provider = provider
        self.display = display or DisplayCfg()
        self._rows: tuple[RawRow, ...] = ()
        self._state = state or FilterState()
        self._result: PipelineResult = EMPTY_RESULT
        self.status = SessionStatus.IDLE
        self.error: str | None = None

    # ---------- read side ----------
    @property
    def rows(self) -> tuple[RawRow, ...]:
        return self._rows

    @property
    def state(self) -> FilterState:
        return self._state

    @property
    def result(self) -> PipelineResult:
        return self._result

    # ---------- snapshot ----------
    def load(self) -> SessionStatus:
        """Fetch a fresh snapshot from the provider and recompute."""
        if self.provider is None:
            raise ValueError("ReportSession.load() needs a provider")
        self.status = SessionStatus.LOADING
        self.error = None
        try:
            rows = self.provider()
        except ProviderUnavailable as e:
            _LOG.warning("provider unavailable: %s", e)
            return self._fail(f"Fetch failure: {e}")
        except Exception as e:
            _LOG.exception("provider failed")
            return self._fail(f"Fetch failure: {e}")
        return self.set_snapshot(rows)

    def set_snapshot(self, rows: Iterable[RawRow]) -> SessionStatus:
        """
        Replace the snapshot atomically. On the very first snapshot nothing has
        been offered yet, so the selection defaults to every observed facet.
        """
        snapshot = tuple(rows)
        _LOG.info("snapshot: %d raw row(s)", len(snapshot))
        return self._publish(snapshot, self._state)

    # ---------- filter-change events ----------
    def update_filters(self, **changes) -> SessionStatus:
        """Change date/text filters or facet field; selection is reconciled by the run."""
        if "selection" in changes:
            raise TypeError("use set_selection() to change the facet selection")
        new_state = replace(self._state, **changes)
        if new_state.facet_field not in ("lot", "batch"):
            raise ValueError(f"facet_field must be 'lot' or 'batch', got {new_state.facet_field!r}")
        if new_state.facet_field != self._state.facet_field:
            new_state = replace(new_state, selection=None)
        return self._publish(self._rows, new_state)

    def set_selection(self, ids: Iterable[str]) -> SessionStatus:
        chosen = restrict_selection(ids, self._result.facets)
        return self._publish(self._rows, replace(self._state, selection=chosen))

    def toggle(self, ident: str) -> SessionStatus:
        current = set(self._result.selection)
        current.symmetric_difference_update({ident})
        return self.set_selection(current)

    def select_all(self) -> SessionStatus:
        return self.set_selection(self._result.facets)

    def select_none(self) -> SessionStatus:
        return self._publish(self._rows, replace(self._state, selection=frozenset()))

    # ---------- internals ----------
    def _publish(self, rows: tuple[RawRow, ...], state: FilterState) -> SessionStatus:
        try:
            result = run_pipeline(rows, state, self.display)
        except Exception as e:
            _LOG.exception("pipeline failed; keeping previous report")
            return self._fail(f"Processing error: {e}")

        # an empty facet list offers nothing: the selection goes back to unset
        # so the next non-empty facet list starts fully selected
        selection = result.selection if result.facets else None
        self._rows = rows
        self._state = replace(state, selection=selection)
        self._result = result
        self.status = SessionStatus.READY
        self.error = None
        return self.status

    def _fail(self, message: str) -> SessionStatus:
        self.status = SessionStatus.ERROR
        self.error = message
        return self.status
