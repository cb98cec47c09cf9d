# mixing_BatchReporter/loaders/sheet_loader.py
from __future__ import annotations
from pathlib import Path
import io, json, logging, re
from typing import Sequence
import pandas as pd

from ..core.errors import ProviderUnavailable
from ..core.model import RawRow
from ..core.normalize import to_abs_time, to_float, to_step, to_str

_LOG = logging.getLogger(__name__)

# ---------- sheet layout (0-based column index, A..Y) ----------
COL_MACHINE = 0    # A
COL_DATE    = 1    # B
COL_LOT     = 2    # C
COL_RUBBER  = 3    # D
COL_BATCH   = 5    # F
COL_STEP    = 6    # G
COL_TIME    = 9    # J
COL_TEMP    = 11   # L
COL_CT      = 21   # V  reference value ...
COL_CT_LOT  = 23   # X  ... keyed by lot
COL_CT_BATCH = 24  # Y  ... and batch
N_COLUMNS   = 25

_QUOTES = re.compile(r'^"|"$')

# ---------- table -> rows ----------
def _py_datetime(value):
    # pandas may have coerced the column to datetime64 (None -> NaT)
    if value is None or pd.isna(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    return value

def _frame_from_table(table: Sequence[Sequence]) -> pd.DataFrame:
    body = [list(r)[:N_COLUMNS] + [None] * (N_COLUMNS - len(r)) for r in table[1:]]
    return pd.DataFrame(body, columns=range(N_COLUMNS), dtype=object)

def _ct_lookup(df: pd.DataFrame) -> dict[tuple[str, str], str]:
    """Reference pairs from X/Y → V; a later row overwrites an earlier one."""
    lots = to_str(df[COL_CT_LOT]).str.strip()
    batches = to_str(df[COL_CT_BATCH]).str.strip()
    values = to_str(df[COL_CT]).replace({"": "0"})
    lookup: dict[tuple[str, str], str] = {}
    for lot, batch, val in zip(lots, batches, values):
        if lot and batch:
            lookup[(lot, batch)] = val
    return lookup

def rows_from_table(table: Sequence[Sequence]) -> list[RawRow]:
    """
    Convert a sheet dump (header row first) into RawRows.
    Malformed numbers become 0 (step 0 is never a valid step); an
    unparsable date becomes None.
    """
    if len(table) < 2:
        return []
    df = _frame_from_table(table)
    lookup = _ct_lookup(df)

    lots = to_str(df[COL_LOT])
    batches = to_str(df[COL_BATCH])
    cols = pd.DataFrame({
        "date":         to_abs_time(df[COL_DATE]),
        "machine":      to_str(df[COL_MACHINE]),
        "lot_number":   lots,
        "batch_number": batches,
        "rubber":       to_str(df[COL_RUBBER]),
        "ct":           [lookup.get((l.strip(), b.strip()), "0") for l, b in zip(lots, batches)],
        "step_number":  to_step(df[COL_STEP]),
        "time_value":   to_float(df[COL_TIME]),
        "temp_value":   to_float(df[COL_TEMP]),
    })
    out = [
        RawRow(
            date=_py_datetime(r.date),
            machine=r.machine,
            lot_number=r.lot_number,
            batch_number=r.batch_number,
            rubber=r.rubber,
            ct=r.ct,
            step_number=int(r.step_number),
            time_value=float(r.time_value),
            temp_value=float(r.temp_value),
        )
        for r in cols.itertuples(index=False)
    ]
    _LOG.debug("parsed %d sheet row(s), %d ct reference pair(s)", len(out), len(lookup))
    return out

# ---------- payload parsing ----------
def _table_from_csv_text(text: str) -> list[list[str]]:
    lines = text.strip().splitlines()
    return [[_QUOTES.sub("", c.strip()) for c in line.split(",")] for line in lines]

def parse_text(text: str) -> list[RawRow]:
    """
    Parse a provider payload: a JSON array of rows, or plain CSV text when the
    payload is not JSON. A JSON object with an ``error`` key is a provider failure.
    """
    try:
        payload = json.loads(text)
    except json.JSONDecodeError:
        return rows_from_table(_table_from_csv_text(text))

    if isinstance(payload, dict):
        raise ProviderUnavailable(str(payload.get("error") or "unexpected JSON object from provider"))
    if not isinstance(payload, list) or not all(isinstance(r, list) for r in payload):
        raise ProviderUnavailable("provider JSON must be an array of row arrays")
    return rows_from_table(payload)

def _table_from_csv_bytes(buff: bytes) -> list[list]:
    df = pd.read_csv(io.BytesIO(buff), header=None, dtype=str, keep_default_na=False,
                     skip_blank_lines=True)
    return df.values.tolist()

# ---------- public loader ----------
SUFFIXES = (".csv", ".json")

def discover_inputs(root: Path, recurse: bool = True) -> list[Path]:
    """
    Sheet dumps under ``root``: the file itself when it is one, otherwise every
    .csv/.json below it. Ordered by suffix, then path, so concatenation is stable.
    """
    if root.is_file():
        return [root.resolve()] if root.suffix.lower() in SUFFIXES else []
    if not root.is_dir():
        return []
    it = root.rglob("*") if recurse else root.glob("*")
    found = [p.resolve() for p in it if p.is_file() and p.suffix.lower() in SUFFIXES]
    return sorted(found, key=lambda p: (p.suffix.lower(), str(p)))

def load(path: Path) -> list[RawRow]:
    """
    Accepts: a .json sheet dump or a .csv export of the same sheet.
    Raises ProviderUnavailable when the file cannot be read or parsed.
    """
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise ProviderUnavailable(f"cannot read {path}: {e}") from e

    suffix = path.suffix.lower()
    try:
        if suffix == ".csv":
            return rows_from_table(_table_from_csv_bytes(raw))
        if suffix == ".json":
            return parse_text(raw.decode("utf-8-sig"))
    except (UnicodeDecodeError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
        raise ProviderUnavailable(f"{path.name}: {e}") from e
    raise ProviderUnavailable(f"unsupported input type: {path.name}")
