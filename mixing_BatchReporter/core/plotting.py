# mixing_BatchReporter/core/plotting.py
from __future__ import annotations
from pathlib import Path
import re
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt

from .pipeline import PipelineResult

def _sanitize(name: str) -> str:
    s = re.sub(r"[^A-Za-z0-9._-]+", "_", name).strip("_")
    return s[:120] if len(s) > 120 else s

def save_step_profile_plot(result: PipelineResult, out_dir: Path, title: str) -> Path | None:
    """
    Per-step averages of the visible batches: mean step time as bars (left
    axis), mean temperature as a line (right axis). Steps without data are
    left out of the chart.
    """
    agg = result.aggregates
    if agg is None or not agg.steps:
        print(f"[INFO] {title}: no step averages; skipping step profile plot.")
        return None

    t_steps = [s for s, a in agg.steps.items() if a.time is not None]
    p_steps = [s for s, a in agg.steps.items() if a.temp is not None]
    if not t_steps and not p_steps:
        print(f"[INFO] {title}: steps carry no readings; skipping step profile plot.")
        return None

    out_dir.mkdir(parents=True, exist_ok=True)
    fig, ax_time = plt.subplots(figsize=(11, 5))
    ax_time.bar(t_steps, [agg.steps[s].time for s in t_steps], color="tab:blue", alpha=0.6,
                label="mean step time")
    ax_time.set_xlabel("Step")
    ax_time.set_ylabel("Time")
    ax_time.set_xticks(list(agg.steps))

    ax_temp = ax_time.twinx()
    ax_temp.plot(p_steps, [agg.steps[s].temp for s in p_steps], color="tab:red", marker="o",
                 label="mean temperature")
    ax_temp.set_ylabel("Temperature")

    trunc = " (truncated)" if result.truncated else ""
    ax_time.set_title(f"{title}: {agg.batch_count} batches{trunc}, mean MX {agg.mx:.2f}")
    ax_time.grid(True, alpha=0.3)
    handles = ax_time.get_legend_handles_labels()[0] + ax_temp.get_legend_handles_labels()[0]
    labels = ax_time.get_legend_handles_labels()[1] + ax_temp.get_legend_handles_labels()[1]
    ax_time.legend(handles, labels, fontsize=8, loc="upper center",
                   bbox_to_anchor=(0.5, -0.12), ncol=2, frameon=False)
    fig.tight_layout(rect=[0, 0.05, 1, 1])

    out_path = out_dir / f"{_sanitize(title) or 'report'}_step_profile.png"
    fig.savefig(out_path, dpi=160)
    plt.close(fig)
    print(f"[OK] {title}: step profile → {out_path}")
    return out_path
