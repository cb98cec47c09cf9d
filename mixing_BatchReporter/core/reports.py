# mixing_BatchReporter/core/reports.py
from __future__ import annotations
from pathlib import Path
from typing import Literal
import numpy as np
import pandas as pd
from scipy.io import savemat

from .errors import ConfigError
from .metrics import MISSING, format_mean
from .pipeline import PipelineResult

ReportFormat = Literal["csv", "mat", "both"]
REPORT_FORMATS: tuple[str, ...] = ("csv", "mat", "both")

BASE_COLUMNS = ["row", "date", "machine", "lot_number", "batch_number", "rubber", "ct", "mx"]

def _step_cols(steps) -> list[str]:
    cols: list[str] = []
    for s in steps:
        cols += [f"step{s}_time", f"step{s}_temp"]
    return cols

def build_report_frame(result: PipelineResult) -> pd.DataFrame:
    """
    One row per visible batch, preceded by an AVERAGE row when there is
    anything to average. Batch values are rounded the way the table shows
    them (mx / step time: 1 decimal, temperature: whole degrees); averages
    keep 2 decimals. Missing steps are NaN.
    """
    steps = list(result.step_columns)
    cols = BASE_COLUMNS + _step_cols(steps)
    rows: list[dict] = []

    agg = result.aggregates
    if agg is not None:
        avg = {
            "row": "AVERAGE", "date": "", "machine": "", "lot_number": "",
            "batch_number": f"{agg.batch_count} batches", "rubber": "",
            "ct": format_mean(agg.ct), "mx": agg.mx,
        }
        for s in steps:
            sa = agg.steps.get(s)
            avg[f"step{s}_time"] = np.nan if sa is None or sa.time is None else sa.time
            avg[f"step{s}_temp"] = np.nan if sa is None or sa.temp is None else sa.temp
        rows.append(avg)

    for b in result.batches:
        r = {
            "row": "BATCH",
            "date": b.date.strftime("%Y-%m-%d %H:%M:%S") if b.date is not None else "",
            "machine": b.machine,
            "lot_number": b.lot_number,
            "batch_number": b.batch_number,
            "rubber": b.rubber,
            "ct": b.ct or "0",
            "mx": round(b.mx, 1),
        }
        for s in steps:
            reading = b.steps.get(s)
            r[f"step{s}_time"] = round(reading.time, 1) if reading is not None else np.nan
            r[f"step{s}_temp"] = round(reading.temp, 0) if reading is not None else np.nan
        rows.append(r)

    return pd.DataFrame(rows, columns=cols)

def _csv_view(df_out: pd.DataFrame) -> pd.DataFrame:
    """Average row shows MISSING for steps nobody reported; batch rows stay blank."""
    view = df_out.astype(object)
    is_avg = view["row"] == "AVERAGE"
    for c in view.columns:
        if c.startswith("step"):
            view.loc[is_avg & view[c].isna(), c] = MISSING
    return view

def _write_csv(df_out: pd.DataFrame, out_csv: Path, title: str) -> None:
    out_csv.parent.mkdir(parents=True, exist_ok=True)
    _csv_view(df_out).to_csv(out_csv, index=False, encoding="utf-8", na_rep="")
    print(f"[OK] wrote report: {title} → {out_csv}")

def _to_mat_cellstr(seq: list[str]) -> np.ndarray:
    """Make a MATLAB column cell array from a list of strings."""
    seq2 = [("" if s is None else str(s)) for s in seq]
    arr = np.empty((len(seq2), 1), dtype=object)
    arr[:, 0] = seq2
    return arr

def _write_mat(df_out: pd.DataFrame, out_mat: Path, varname: str, title: str) -> None:
    """
    Save a MATLAB struct with fields matching the CSV columns.
    Strings become cell arrays (Nx1), numerics become double (Nx1, NaN = missing).
    """
    out_mat.parent.mkdir(parents=True, exist_ok=True)

    def numcol(name: str) -> np.ndarray:
        return pd.to_numeric(df_out[name], errors="coerce").to_numpy(dtype=float).reshape(-1, 1)

    def strcol(name: str) -> np.ndarray:
        return _to_mat_cellstr(df_out[name].astype(str).replace("nan", "", regex=False).tolist())

    mat_struct = {c: strcol(c) for c in BASE_COLUMNS if c != "mx"}
    mat_struct["mx"] = numcol("mx")
    for c in df_out.columns:
        if c.startswith("step"):
            mat_struct[c] = numcol(c)

    savemat(out_mat, {varname: mat_struct})
    print(f"[OK] wrote report: {title} → {out_mat}")

def prepare_report_format(global_cfg: dict | None) -> tuple[ReportFormat, str, bool]:
    """``reports`` section → (format, MATLAB variable name, write step chart)."""
    rep = (global_cfg or {}).get("reports", {}) or {}
    fmt = str(rep.get("format", "csv")).lower().strip()
    if fmt not in REPORT_FORMATS:
        raise ConfigError(f"reports.format must be one of {REPORT_FORMATS}, got {fmt!r}")
    return fmt, str(rep.get("mat_variable", "report")), bool(rep.get("plot", True))

def write_report(result: PipelineResult,
                 out_base: Path,
                 title: str,
                 fmt: ReportFormat = "csv",
                 mat_variable: str = "report") -> pd.DataFrame | None:
    """
    Write the visible report in the requested format.
    - out_base is a *base path without extension* (e.g., .../report)
    - fmt: "csv" | "mat" | "both"
    Returns the written frame, or None when there were no batches.
    """
    if not result.batches:
        print(f"[INFO] {title}: no batches to report.")
        return None
    df_out = build_report_frame(result)

    if fmt in ("csv", "both"):
        _write_csv(df_out, out_base.with_suffix(".csv"), title)
    if fmt in ("mat", "both"):
        _write_mat(df_out, out_base.with_suffix(".mat"), mat_variable, title)
    return df_out
