from datetime import date, datetime
import json
from pathlib import Path
import tempfile
import math
import unittest

import pandas as pd
import yaml
from scipy.io import loadmat

from mixing_BatchReporter import main as cli
from mixing_BatchReporter.core.errors import ProviderUnavailable
from mixing_BatchReporter.core.metrics import AggregateStats, MISSING, StepAverage
from mixing_BatchReporter.core.model import FilterState
from mixing_BatchReporter.core.pipeline import EMPTY_RESULT, PipelineResult, run_pipeline
from mixing_BatchReporter.core.plotting import save_step_profile_plot
from mixing_BatchReporter.core.reports import build_report_frame, write_report
from mixing_BatchReporter.loaders import mock_loader
from mixing_BatchReporter.loaders.sheet_loader import discover_inputs, load, parse_text, rows_from_table

HEADER = [f"col{i}" for i in range(25)]


def _sheet_row(machine="MIXER-1", when="2024-03-10 08:00:00", lot="L1", rubber="EPDM", batch="B1",
               step=1, time=5, temp=60, ct=None, ct_lot="", ct_batch=""):
    row = [""] * 25
    row[0], row[1], row[2], row[3], row[5] = machine, when, lot, rubber, batch
    row[6], row[9], row[11] = step, time, temp
    row[21] = "" if ct is None else ct
    row[23], row[24] = ct_lot, ct_batch
    return row


def _table():
    return [
        HEADER,
        _sheet_row(step=1, time=5, temp=60, ct="20", ct_lot=" L1 ", ct_batch="B1"),
        _sheet_row(step=2, time=3, temp=70),
        _sheet_row(lot="L2", step="x", time="4.5 min", temp="n/a", when="not a date"),
    ]


class SheetLoaderTests(unittest.TestCase):
    def test_columns_map_onto_raw_rows(self):
        rows = rows_from_table(_table())
        self.assertEqual(3, len(rows))
        r = rows[0]
        self.assertEqual(("MIXER-1", "L1", "B1", "EPDM"), (r.machine, r.lot_number, r.batch_number, r.rubber))
        self.assertEqual(datetime(2024, 3, 10, 8, 0), r.date)
        self.assertEqual((1, 5.0, 60.0), (r.step_number, r.time_value, r.temp_value))

    def test_ct_is_looked_up_per_lot_and_batch(self):
        rows = rows_from_table(_table())
        self.assertEqual(["20", "20", "0"], [r.ct for r in rows])

    def test_malformed_scalars_become_zero_or_none(self):
        r = rows_from_table(_table())[2]
        self.assertEqual(0, r.step_number)
        self.assertEqual(4.5, r.time_value)
        self.assertEqual(0.0, r.temp_value)
        self.assertIsNone(r.date)

    def test_short_and_header_only_tables(self):
        self.assertEqual([], rows_from_table([]))
        self.assertEqual([], rows_from_table([HEADER]))
        rows = rows_from_table([HEADER, ["M", "2024-01-01", "L9"]])
        self.assertEqual(("L9", "", 0, 0.0, "0"), (rows[0].lot_number, rows[0].batch_number,
                                                   rows[0].step_number, rows[0].time_value, rows[0].ct))

    def test_parse_text_json_and_csv_fallback(self):
        rows = parse_text(json.dumps(_table()))
        self.assertEqual(3, len(rows))

        csv_text = "\n".join([
            ",".join(HEADER),
            ",".join(f'"{c}"' for c in _sheet_row(step=4, time=2, temp=90)),
        ])
        rows = parse_text(csv_text)
        self.assertEqual(1, len(rows))
        self.assertEqual((4, 2.0, 90.0, "MIXER-1"),
                         (rows[0].step_number, rows[0].time_value, rows[0].temp_value, rows[0].machine))

    def test_provider_error_payload(self):
        with self.assertRaises(ProviderUnavailable):
            parse_text(json.dumps({"error": "Sheet not found"}))
        with self.assertRaises(ProviderUnavailable):
            parse_text(json.dumps([1, 2, 3]))

    def test_load_files(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            (root / "dump.json").write_text(json.dumps(_table()), encoding="utf-8")
            pd.DataFrame(_table()).to_csv(root / "export.csv", index=False, header=False)
            (root / "notes.txt").write_text("ignore me", encoding="utf-8")

            self.assertEqual(3, len(load(root / "dump.json")))
            csv_rows = load(root / "export.csv")
            self.assertEqual(3, len(csv_rows))
            self.assertEqual("20", csv_rows[1].ct)

            with self.assertRaises(ProviderUnavailable):
                load(root / "notes.txt")
            with self.assertRaises(ProviderUnavailable):
                load(root / "missing.json")

            found = discover_inputs(root)
            self.assertEqual(["export.csv", "dump.json"], [p.name for p in found])
            self.assertEqual([], discover_inputs(root / "notes.txt"))
            self.assertEqual([], discover_inputs(root / "nowhere"))


class MockLoaderTests(unittest.TestCase):
    def test_shape_and_determinism(self):
        rows = mock_loader.generate_rows(100, seed=7, today=date(2024, 5, 1))
        self.assertEqual(100, len(rows))
        self.assertEqual(rows, mock_loader.generate_rows(100, seed=7, today=date(2024, 5, 1)))
        self.assertEqual(("LOT-3000", "B1", 1), (rows[0].lot_number, rows[0].batch_number, rows[0].step_number))
        self.assertEqual(("LOT-3009", "B10"), (rows[99].lot_number, rows[99].batch_number))
        self.assertEqual(datetime(2024, 4, 30), rows[50].date)
        self.assertTrue(all(15.0 <= float(r.ct) <= 25.0 for r in rows))

    def test_synthetic_rows_run_through_the_pipeline(self):
        rows = mock_loader.generate_rows(200, seed=1, today=date(2024, 5, 1))
        res = run_pipeline(rows, FilterState(start_date=date(2024, 4, 30), end_date=date(2024, 5, 1)))
        self.assertEqual(100, len(res.batches))
        self.assertEqual(10, len(res.facets))


class ReportTests(unittest.TestCase):
    def setUp(self):
        rows = rows_from_table(_table())
        self.result = run_pipeline(rows, FilterState())

    def test_frame_has_average_row_first(self):
        df = build_report_frame(self.result)
        self.assertEqual(["AVERAGE", "BATCH", "BATCH"], df["row"].tolist())
        self.assertEqual(["L1", "L2"], df["lot_number"].tolist()[1:])
        self.assertEqual(8.0, df.loc[1, "mx"])
        self.assertEqual(6.25, df.loc[0, "mx"])
        self.assertIn("step2_temp", df.columns)
        self.assertTrue(math.isnan(df.loc[2, "step1_time"]))

    def test_missing_step_average_is_marked(self):
        agg = AggregateStats(batch_count=1, mx=8.0, ct=20.0, steps={1: StepAverage(5.0, 60.0), 4: StepAverage(None, None)})
        result = PipelineResult(
            batches=self.result.batches[:1], truncated=False, total_batches=1, facets=("L1",),
            selection=frozenset({"L1"}), step_columns=(1, 4), aggregates=agg,
        )
        with tempfile.TemporaryDirectory() as tmpdir:
            write_report(result, Path(tmpdir) / "report", "test", fmt="csv")
            out = pd.read_csv(Path(tmpdir) / "report.csv", dtype=str, keep_default_na=False)
        self.assertEqual(MISSING, out.loc[0, "step4_time"])
        self.assertEqual("", out.loc[1, "step4_time"])

    def test_write_csv_and_mat(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            base = Path(tmpdir) / "out" / "report"
            df = write_report(self.result, base, "test", fmt="both", mat_variable="rep")
            self.assertIsNotNone(df)
            self.assertTrue(base.with_suffix(".csv").exists())
            m = loadmat(base.with_suffix(".mat"), squeeze_me=True, struct_as_record=False)
            self.assertEqual(3, len(m["rep"].mx))

    def test_nothing_to_write_for_empty_result(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            self.assertIsNone(write_report(EMPTY_RESULT, Path(tmpdir) / "report", "empty"))
            self.assertFalse((Path(tmpdir) / "report.csv").exists())

    def test_step_profile_plot(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            out = save_step_profile_plot(self.result, Path(tmpdir), "batch report")
            self.assertTrue(out is not None and out.exists())
            self.assertIsNone(save_step_profile_plot(EMPTY_RESULT, Path(tmpdir), "empty"))


class CliTests(unittest.TestCase):
    def _write_cfg(self, root: Path, **overrides) -> Path:
        cfg = {
            "input": {"path": str(root / "data"), "recurse": True},
            "output": {"root": str(root / "out")},
            "filters": {"window_days": None},
            "reports": {"format": "csv", "plot": False},
            "logging": {"level": "WARNING", "verbose": False},
        }
        cfg.update(overrides)
        path = root / "config.yaml"
        path.write_text(yaml.safe_dump(cfg), encoding="utf-8")
        return path

    def test_end_to_end_from_json_dump(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            (root / "data").mkdir()
            (root / "data" / "sheet.json").write_text(json.dumps(_table()), encoding="utf-8")
            self.assertEqual(0, cli.main([str(self._write_cfg(root))]))
            report = pd.read_csv(root / "out" / "report.csv")
            self.assertEqual(["AVERAGE", "BATCH", "BATCH"], report["row"].tolist())

    def test_missing_inputs_fail_without_mock(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            self.assertEqual(1, cli.main([str(self._write_cfg(root))]))

    def test_mock_fallback(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            cfg = self._write_cfg(root, input={"path": str(root / "nowhere"), "mock_fallback": True,
                                               "mock_rows": 100, "mock_seed": 3})
            self.assertEqual(0, cli.main([str(cfg)]))
            self.assertTrue((root / "out" / "report.csv").exists())

    def test_invalid_config(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            cfg = self._write_cfg(root, reports={"format": "xlsx"})
            self.assertEqual(2, cli.main([str(cfg)]))

    def test_invalid_mock_settings_are_config_errors(self):
        with tempfile.TemporaryDirectory() as tmpdir:
            root = Path(tmpdir)
            for bad in ({"mock_rows": "lots"}, {"mock_seed": "abc"}, {"mock_rows": -1}):
                cfg = self._write_cfg(root, input={"path": str(root / "nowhere"), "mock_fallback": True, **bad})
                self.assertEqual(2, cli.main([str(cfg)]))

    def test_prepare_input_defaults(self):
        inp = cli.prepare_input({"input": {"path": "data", "mock_seed": "7"}})
        self.assertEqual((True, False, 2000, 7), (inp.recurse, inp.mock_fallback, inp.mock_rows, inp.mock_seed))
        self.assertEqual(Path("data").resolve(), inp.path)
