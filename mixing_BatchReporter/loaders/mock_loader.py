# mixing_BatchReporter/loaders/mock_loader.py
from __future__ import annotations
from datetime import date, datetime, timedelta
import numpy as np

from ..core.model import RawRow

MACHINES: tuple[str, ...] = ("MIXER", "PREPARATION")
RUBBERS: tuple[str, ...] = ("Natural Rubber", "Synthetic SBR", "EPDM Compound", "Nitrile")

def generate_rows(n: int = 2000, seed: int | None = None, today: date | None = None) -> list[RawRow]:
    """
    Synthetic staging data with the shape of a real sheet dump:
    ten batches per lot, five steps per batch, one day every 50 rows.
    """
    rng = np.random.default_rng(seed)
    today = today or date.today()
    base = datetime(today.year, today.month, today.day)

    ct = rng.uniform(15.0, 25.0, n)
    time_v = rng.uniform(2.0, 10.0, n)
    temp_v = rng.uniform(50.0, 100.0, n)

    rows: list[RawRow] = []
    for i in range(n):
        rows.append(RawRow(
            date=base - timedelta(days=i // 50),
            machine=MACHINES[i % len(MACHINES)],
            lot_number=f"LOT-{3000 + i // 10}",
            batch_number=f"B{i % 10 + 1}",
            rubber=RUBBERS[i % len(RUBBERS)],
            ct=f"{ct[i]:.1f}",
            step_number=i % 5 + 1,
            time_value=float(time_v[i]),
            temp_value=float(temp_v[i]),
        ))
    return rows
