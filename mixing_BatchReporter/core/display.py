# mixing_BatchReporter/core/display.py
from __future__ import annotations
from dataclasses import dataclass
import logging
from typing import Sequence

from .errors import ConfigError
from .model import GroupedBatch

_LOG = logging.getLogger(__name__)

ROW_DISPLAY_LIMIT = 500
MAX_STEP_COLUMNS = 10

@dataclass(frozen=True)
class DisplayCfg:
    max_rows: int = ROW_DISPLAY_LIMIT
    max_step_columns: int = MAX_STEP_COLUMNS

def govern(batches: Sequence[GroupedBatch], max_rows: int = ROW_DISPLAY_LIMIT
           ) -> tuple[list[GroupedBatch], bool]:
    """Keep the first ``max_rows`` batches in grouping order; flag when rows were cut."""
    if len(batches) > max_rows:
        _LOG.info("display limit: showing %d of %d batches", max_rows, len(batches))
        return list(batches[:max_rows]), True
    return list(batches), False

def prepare_display(global_cfg: dict | None) -> DisplayCfg:
    disp = (global_cfg or {}).get("display", {}) or {}
    try:
        max_rows = int(disp.get("max_rows", ROW_DISPLAY_LIMIT))
        max_cols = int(disp.get("max_step_columns", MAX_STEP_COLUMNS))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"display: limits must be integers ({e})") from e
    if max_rows <= 0 or max_cols <= 0:
        raise ConfigError("display: max_rows and max_step_columns must be positive")
    return DisplayCfg(max_rows=max_rows, max_step_columns=max_cols)
