"""
Results Store — per-benchmark time series on disk.

File format
-----------
One line per date, ascending::

    20250801: [1234.5, 987.6, null]
    20250815: [1220.1, 950.2, 880.0]

Each line is ``<date>: <json>``; the file reads as a YAML mapping for external
tooling, but this module parses the values as JSON. Keys are the integer
Date Key.

Namespaces
----------
results/ruby-bench/<name>.yml                  execution time per JIT config
results/ruby-bench/<name>_memory.yml           peak RSS bytes per JIT config
results/ruby-bench-ractor/[ractor_only_]<name>.yml
                                               {baseline|yjit|zjit: {workers: [ms, ...]}}

Every save rewrites the whole file from the in-memory mapping; the write goes
to a temporary sibling first and is moved into place with os.replace.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from rubybench.data.config import Paths

log = logging.getLogger(__name__)


class StoreError(Exception):
    """A results file exists but cannot be read back as a date mapping."""


# ---------------------------------------------------------------------------
# Raw load / save
# ---------------------------------------------------------------------------

def loads(text: str, source: str = "<string>") -> dict:
    """
    Parse ``<date>: <json>`` lines.

    Values go through json rather than a YAML loader: json.dumps writes
    floats such as 5e-05 without a dot, which YAML 1.1 reads as strings.
    """
    series: dict = {}
    for lineno, line in enumerate(text.splitlines(), start=1):
        if not line.strip():
            continue
        key, sep, value = line.partition(": ")
        if not sep or not key.strip().isdigit():
            raise StoreError(f"Corrupt results file {source}, line {lineno}: expected '<date>: <json>'")
        try:
            series[int(key)] = json.loads(value)
        except json.JSONDecodeError as e:
            raise StoreError(f"Corrupt results file {source}, line {lineno}: {e}") from e
    return series


def load(path: Path) -> dict:
    """Load a results file. Absent or empty file -> {}."""
    if not path.exists():
        return {}
    with open(path) as f:
        return loads(f.read(), source=str(path))


def dumps(series: dict) -> str:
    # NaN/Infinity are not JSON; refuse them rather than write an unreadable line.
    return "".join(
        f"{date}: {json.dumps(values, allow_nan=False)}\n"
        for date, values in sorted(series.items(), key=lambda item: item[0])
    )


def save(path: Path, series: dict) -> Path:
    """Write the full mapping, sorted by date, replacing the file atomically."""
    path.parent.mkdir(parents=True, exist_ok=True)
    text = dumps(series)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", dir=path.parent)
    try:
        with os.fdopen(fd, "w") as f:
            f.write(text)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
    log.debug(f"{path.name}: {len(series)} date(s) written")
    return path


# ---------------------------------------------------------------------------
# Namespaced access
# ---------------------------------------------------------------------------

class ResultsStore:
    def __init__(self, paths: Paths):
        self.paths = paths

    def series_path(self, benchmark: str) -> Path:
        return self.paths.series_dir / f"{benchmark}.yml"

    def memory_path(self, benchmark: str) -> Path:
        return self.paths.series_dir / f"{benchmark}_memory.yml"

    def ractor_path(self, benchmark: str, ractor_only: bool = False) -> Path:
        safe_name = benchmark.replace("/", "_")
        prefix = "ractor_only_" if ractor_only else ""
        return self.paths.ractor_dir / f"{prefix}{safe_name}.yml"

    def load_series(self, benchmark: str) -> dict:
        return load(self.series_path(benchmark))

    def save_series(self, benchmark: str, series: dict) -> Path:
        return save(self.series_path(benchmark), series)

    def load_memory(self, benchmark: str) -> dict:
        return load(self.memory_path(benchmark))

    def save_memory(self, benchmark: str, series: dict) -> Path:
        return save(self.memory_path(benchmark), series)

    def load_ractor(self, benchmark: str, ractor_only: bool = False) -> dict:
        return load(self.ractor_path(benchmark, ractor_only))

    def save_ractor(self, benchmark: str, results: dict, ractor_only: bool = False) -> Path:
        return save(self.ractor_path(benchmark, ractor_only), results)
