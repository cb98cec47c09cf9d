# mixing_BatchReporter/core/normalize.py
from __future__ import annotations
from datetime import date, datetime
import math
import re
import pandas as pd

# leading-number semantics: "12.5 min" -> 12.5, "7a" -> 7, "abc" -> unparsable
_DECIMAL_PREFIX = r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)"
_INTEGER_PREFIX = r"^\s*([+-]?\d+)"

def _blank(value) -> bool:
    if value is None:
        return True
    return isinstance(value, float) and math.isnan(value)

def parse_decimal(value, default: float = 0.0) -> float:
    """Scalar decimal parse; anything unparsable (or non-finite) gives ``default``."""
    if _blank(value) or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else default
    m = re.match(_DECIMAL_PREFIX, str(value))
    if m is None:
        return default
    out = float(m.group(1))
    return out if math.isfinite(out) else default

def parse_timestamp(value) -> datetime | None:
    """
    Parse a sheet date cell into a naive local datetime.
    Zone-aware inputs (e.g. ISO strings ending in 'Z') are converted to the
    local zone first so day bounds compare the way an operator reads them.
    """
    if _blank(value):
        return None
    if isinstance(value, datetime):
        ts = pd.Timestamp(value)
    elif isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            ts = pd.Timestamp(text)
        except (ValueError, TypeError, OverflowError):
            return None
    if ts is pd.NaT or pd.isna(ts):
        return None
    if ts.tzinfo is not None:
        return ts.to_pydatetime().astimezone().replace(tzinfo=None)
    return ts.to_pydatetime()

def to_abs_time(series: pd.Series) -> pd.Series:
    return series.map(parse_timestamp)

def to_float(s: pd.Series) -> pd.Series:
    if pd.api.types.is_numeric_dtype(s) and not pd.api.types.is_bool_dtype(s):
        return s.astype(float).fillna(0.0)
    extracted = s.map(lambda v: "" if _blank(v) else str(v)).str.extract(_DECIMAL_PREFIX, expand=False)
    return pd.to_numeric(extracted, errors="coerce").fillna(0.0).astype(float)

def to_step(s: pd.Series) -> pd.Series:
    """Integer-prefix parse of the step column; unparsable cells become 0 (invalid step)."""
    extracted = s.map(lambda v: "" if _blank(v) else str(v)).str.extract(_INTEGER_PREFIX, expand=False)
    return pd.to_numeric(extracted, errors="coerce").fillna(0).astype(int)

def to_str(s: pd.Series) -> pd.Series:
    return s.map(lambda v: "" if _blank(v) else str(v))
