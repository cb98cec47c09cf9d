# mixing_BatchReporter/main.py
from __future__ import annotations
from dataclasses import dataclass
from pathlib import Path
import logging
import sys
import yaml

from .core.errors import ConfigError, ProviderUnavailable, ReportError
from .core.display import prepare_display
from .core.filters import prepare_filters
from .core.metrics import format_mean
from .core.model import RawRow
from .core.plotting import save_step_profile_plot
from .core.reports import prepare_report_format, write_report
from .core.session import ReportSession, SessionStatus
from .loaders import mock_loader, sheet_loader

@dataclass(frozen=True)
class InputCfg:
    path: Path
    recurse: bool = True
    mock_fallback: bool = False
    mock_rows: int = 2000
    mock_seed: int | None = None

def load_config(cfg_path: Path) -> dict:
    with cfg_path.open("r", encoding="utf-8") as f:
        return yaml.safe_load(f) or {}

def prepare_input(global_cfg: dict | None) -> InputCfg:
    inp = (global_cfg or {}).get("input", {}) or {}
    seed = inp.get("mock_seed")
    try:
        mock_rows = int(inp.get("mock_rows", 2000))
        mock_seed = None if seed is None else int(seed)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"input: mock_rows/mock_seed must be integers ({e})") from e
    if mock_rows < 0:
        raise ConfigError("input: mock_rows must not be negative")
    return InputCfg(
        path=Path(inp.get("path", ".")).resolve(),
        recurse=bool(inp.get("recurse", True)),
        mock_fallback=bool(inp.get("mock_fallback", False)),
        mock_rows=mock_rows,
        mock_seed=mock_seed,
    )

def make_provider(inp: InputCfg, verbose: bool = True):
    """
    Provider for ReportSession: all discovered sheet dumps concatenated in
    discovery order. Files that fail to load are skipped with a warning;
    no usable input at all is a ProviderUnavailable.
    """
    def provide() -> list[RawRow]:
        found = sheet_loader.discover_inputs(inp.path, recurse=inp.recurse)
        if not found:
            raise ProviderUnavailable(f"no JSON/CSV inputs found under: {inp.path}")
        if verbose:
            print(f"[detector] found {len(found)} input(s) under {inp.path}")

        rows: list[RawRow] = []
        loaded = 0
        for path in found:
            if verbose:
                print(f"  [load] {path.suffix.lstrip('.'):5} {path.name}")
            try:
                part = sheet_loader.load(path)
            except ProviderUnavailable as e:
                print(f"[WARN] loader failed for {path.name}: {e}")
                continue
            loaded += 1
            rows.extend(part)
        if loaded == 0:
            raise ProviderUnavailable("every input failed to load")
        return rows

    return provide

def with_mock_fallback(provider, inp: InputCfg):
    """Swap in synthetic rows when the real provider is unavailable (staging only)."""
    def provide() -> list[RawRow]:
        try:
            return provider()
        except ProviderUnavailable as e:
            print(f"[WARN] {e}; simulation active: using {inp.mock_rows} synthetic rows")
            return mock_loader.generate_rows(inp.mock_rows, seed=inp.mock_seed)

    return provide

def print_summary(session: ReportSession) -> None:
    res = session.result
    st = session.state
    print(f"[filters] dates={st.start_date or '*'}..{st.end_date or '*'} "
          f"machine={st.machine!r} rubber={st.rubber!r} lot={st.lot_number!r}")
    print(f"[facets] {st.facet_field}: {len(res.facets)} offered, {len(res.selection)} selected")
    shown = len(res.batches)
    note = f" (display limit, {res.total_batches} qualifying)" if res.truncated else ""
    print(f"[report] {shown} batch(es){note}")
    agg = res.aggregates
    if agg is not None:
        print(f"[report] mean MX={format_mean(agg.mx)} mean CT={format_mean(agg.ct)}")
        for step, avg in agg.steps.items():
            print(f"  step {step:>2}: time={format_mean(avg.time):>8} temp={format_mean(avg.temp):>8}")
    for c in res.conflicts:
        print(f"[WARN] {c.lot_number}/{c.batch_number}: {c.attribute} differs across rows {list(c.values)}")

def main(argv: list[str] | None = None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    # ---------- config ----------
    here = Path(__file__).resolve().parent
    cfg_path = Path(argv[0]) if argv else here / "config.yaml"
    cfg = load_config(cfg_path)

    log_cfg = cfg.get("logging", {}) or {}
    verbose = bool(log_cfg.get("verbose", True))
    logging.basicConfig(
        level=getattr(logging, str(log_cfg.get("level", "WARNING")).upper(), logging.WARNING),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    try:
        inp = prepare_input(cfg)
        state = prepare_filters(cfg)
        display = prepare_display(cfg)
        fmt, mat_var, do_plot = prepare_report_format(cfg)
    except ReportError as e:
        print(f"[ERROR] invalid config {cfg_path}: {e}")
        return 2

    out_root = Path((cfg.get("output", {}) or {}).get("root", "out")).resolve()
    out_root.mkdir(parents=True, exist_ok=True)
    if verbose:
        print(f"[cfg] input={inp.path} output={out_root}")

    # ---------- load + run ----------
    provider = make_provider(inp, verbose=verbose)
    if inp.mock_fallback:
        provider = with_mock_fallback(provider, inp)

    session = ReportSession(provider, state=state, display=display)
    status = session.load()
    if status is SessionStatus.ERROR:
        print(f"[ERROR] {session.error}")
        return 1

    print_summary(session)

    # ---------- outputs ----------
    write_report(session.result, out_root / "report", "batch report", fmt=fmt, mat_variable=mat_var)
    if do_plot:
        save_step_profile_plot(session.result, out_root, "batch report")
    return 0

if __name__ == "__main__":
    sys.exit(main())
