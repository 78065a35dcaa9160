"""
Dashboard builder — reduces every benchmark's time series to one summary.

Reads rubies.yml, benchmarks.yml and results/ruby-bench/*.yml and produces:
  - results/dashboard.yml  — per category: no_jit / yjit / zjit / benchmarks
                             (speed ratios vs no-JIT), plus a <category>_memory
                             twin holding peak memory in MiB
  - results/dashboard.csv  — the same numbers as a flat table
  - Printed human-readable summary

Run directly:
    python -m rubybench.benchmark.dashboard
    python scripts/build_dashboard.py
"""

from __future__ import annotations

import logging

import pandas as pd
import yaml

from rubybench.data.config import (
    BenchmarkInfo,
    InterpreterRegistry,
    Paths,
    format_date_key,
    load_benchmarks,
    load_registry,
)
from rubybench.data.store import ResultsStore

log = logging.getLogger(__name__)

MIB = 1024.0 * 1024.0
SEED_CATEGORIES = ["headline", "other", "micro"]
SLOTS = ["no_jit", "yjit", "zjit"]


class DashboardError(Exception):
    """No date can be reported on."""


def format_float(value: float) -> float:
    """Round to 2 places the way '%0.2f' does (exact binary value)."""
    return round(float(value), 2)


def _ratio(baseline: float, value) -> float:
    if value is None or value == 0:
        return 0.0
    return format_float(baseline / value)


def _mib(value) -> float:
    if value is None:
        return 0.0
    return format_float(value / MIB)


def _slots(entry) -> list:
    values = list(entry or [])
    return (values + [None] * len(SLOTS))[:len(SLOTS)]


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

def dashboard_benchmarks(benchmarks: list[BenchmarkInfo]) -> list[BenchmarkInfo]:
    # Ractor benchmarks are reported separately.
    return [b for b in benchmarks if "ractor/" not in b.name]


def select_reporting_date(registry: InterpreterRegistry, probe_series: dict) -> int:
    """Latest registry date present in the probe benchmark's series."""
    candidates = [date for date in registry.dates() if date in probe_series]
    if not candidates:
        raise DashboardError("No date in rubies.yml has results for the probe benchmark")
    return max(candidates)


# ---------------------------------------------------------------------------
# Document
# ---------------------------------------------------------------------------

def _empty_bucket() -> dict:
    return {"no_jit": [], "yjit": [], "zjit": [], "benchmarks": []}


def _bucket(doc: dict, name: str) -> dict:
    if name not in doc:
        doc[name] = _empty_bucket()
    return doc[name]


def make_rows(
    benchmarks: list[BenchmarkInfo],
    series: dict[str, dict],
    memory: dict[str, dict],
    date: int,
) -> pd.DataFrame:
    """
    One row per (benchmark, metric) with a no-JIT baseline on `date`.

    metric "time" rows hold ratios vs no-JIT; "memory" rows hold MiB values.
    """
    rows = []
    for info in sorted(benchmarks, key=lambda b: b.name):
        no_jit, yjit, zjit = _slots(series.get(info.name, {}).get(date))
        if no_jit is not None:
            rows.append({
                "benchmark": info.name,
                "category": info.category,
                "metric": "time",
                "no_jit": 1.0,
                "yjit": _ratio(no_jit, yjit),
                "zjit": _ratio(no_jit, zjit),
            })

        no_jit_mem, yjit_mem, zjit_mem = _slots(memory.get(info.name, {}).get(date))
        if no_jit_mem is not None:
            rows.append({
                "benchmark": info.name,
                "category": f"{info.category}_memory",
                "metric": "memory",
                "no_jit": _mib(no_jit_mem),
                "yjit": _mib(yjit_mem),
                "zjit": _mib(zjit_mem),
            })
    return pd.DataFrame(rows, columns=["benchmark", "category", "metric", *SLOTS])


def make_document(rows: pd.DataFrame, date: int) -> dict:
    doc: dict = {"date": format_date_key(date)}
    for category in SEED_CATEGORIES:
        _bucket(doc, category)
        _bucket(doc, f"{category}_memory")

    for row in rows.itertuples(index=False):
        bucket = _bucket(doc, str(row.category))
        for slot in SLOTS:
            bucket[slot].append(float(getattr(row, slot)))
        bucket["benchmarks"].append(str(row.benchmark))
    return doc


def build(paths: Paths) -> tuple[dict, pd.DataFrame]:
    registry = load_registry(paths.rubies_file)
    benchmarks = dashboard_benchmarks(load_benchmarks(paths.benchmarks_file))
    if not benchmarks:
        raise DashboardError("benchmarks.yml lists no benchmarks")

    store = ResultsStore(paths)
    series = {b.name: store.load_series(b.name) for b in benchmarks}
    memory = {b.name: store.load_memory(b.name) for b in benchmarks}

    # TODO: probe all series instead of the first benchmark's once every
    # benchmark is run on the same dates.
    date = select_reporting_date(registry, series[benchmarks[0].name])
    log.info(f"Reporting date: {date} ({len(benchmarks)} benchmarks)")

    rows = make_rows(benchmarks, series, memory, date)
    return make_document(rows, date), rows


# ---------------------------------------------------------------------------
# Human-readable report
# ---------------------------------------------------------------------------

def print_summary(doc: dict, rows: pd.DataFrame) -> None:
    SEP = "=" * 72

    print(f"\n{SEP}")
    print(f"  RUBY BENCH DASHBOARD — {doc['date']}")
    print(SEP)

    if rows.empty:
        print("  No results with a no-JIT baseline on this date.")
        return

    for metric, title in (("time", "SPEEDUP vs no-JIT (x)"), ("memory", "PEAK MEMORY (MiB)")):
        frame = rows[rows["metric"] == metric]
        if frame.empty:
            continue
        print(f"\n{'-' * 72}")
        print(f"  {title}")
        print(f"{'-' * 72}")
        print(frame.drop(columns=["metric"]).to_string(index=False))

    print(f"\n{SEP}\n")


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def run(paths: Paths | None = None, quiet: bool = False) -> dict:
    """Build the dashboard, write YAML + CSV, print report."""
    paths = paths or Paths.from_root()
    doc, rows = build(paths)

    paths.results_dir.mkdir(parents=True, exist_ok=True)
    with open(paths.dashboard_file, "w") as f:
        yaml.safe_dump(doc, f, sort_keys=False)
    log.info(f"{paths.dashboard_file.name} written")

    rows.assign(date=doc["date"]).to_csv(paths.dashboard_csv, index=False)
    log.info(f"{paths.dashboard_csv.name} written ({len(rows)} rows)")

    if not quiet:
        print_summary(doc, rows)
    return doc


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    run()
