"""
Configuration layer — project paths and the two read-only input documents.

Inputs
------
results/rubies.yml
    Interpreter Registry: ``YYYYMMDD: <ruby commit sha>``. The set of dates a
    benchmark may be run against.
benchmark/ruby-bench/benchmarks.yml
    Benchmark Metadata: ``<name>: {category: ..., ractor: true, desc: ...}``.
benchmark/ruby-bench/benchmarks-ractor/**/benchmark.rb
    Ractor-only benchmarks, named by their directory.

Both documents are validated at load time; anything unexpected raises
ConfigError before the caller touches a container or a results file.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml

log = logging.getLogger(__name__)

ROOT = Path(__file__).resolve().parents[2]

DEFAULT_CATEGORY = "other"
KNOWN_BENCHMARK_FIELDS = {"desc", "category", "ractor", "single_file", "default_harness"}

_DATE_KEY_RE = re.compile(r"^\d{8}$")


class ConfigError(Exception):
    """A registry or metadata document is missing or malformed."""


# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Paths:
    root: Path

    @classmethod
    def from_root(cls, root: Path | str | None = None) -> "Paths":
        return cls(Path(root).resolve() if root is not None else ROOT)

    @property
    def results_dir(self) -> Path:
        return self.root / "results"

    @property
    def rubies_file(self) -> Path:
        return self.results_dir / "rubies.yml"

    @property
    def ruby_bench_dir(self) -> Path:
        return self.root / "benchmark" / "ruby-bench"

    @property
    def benchmarks_file(self) -> Path:
        return self.ruby_bench_dir / "benchmarks.yml"

    @property
    def ractor_benchmarks_dir(self) -> Path:
        return self.ruby_bench_dir / "benchmarks-ractor"

    @property
    def series_dir(self) -> Path:
        return self.results_dir / "ruby-bench"

    @property
    def ractor_dir(self) -> Path:
        return self.results_dir / "ruby-bench-ractor"

    @property
    def dashboard_file(self) -> Path:
        return self.results_dir / "dashboard.yml"

    @property
    def dashboard_csv(self) -> Path:
        return self.results_dir / "dashboard.csv"


# ---------------------------------------------------------------------------
# Date keys
# ---------------------------------------------------------------------------

def parse_date_key(value) -> int:
    """Return an 8-digit YYYYMMDD date key as int, or raise ConfigError."""
    text = str(value).strip()
    if not _DATE_KEY_RE.match(text):
        raise ConfigError(f"Invalid date '{value}': expected YYYYMMDD")
    return int(text)


def format_date_key(date: int) -> str:
    """20250908 -> '2025-09-08'"""
    year = date // 10000
    month = date // 100 % 100
    day = date % 100
    return f"{year:04d}-{month:02d}-{day:02d}"


# ---------------------------------------------------------------------------
# Interpreter Registry
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class InterpreterRegistry:
    builds: dict[int, str]

    def __contains__(self, date: int) -> bool:
        return date in self.builds

    def __len__(self) -> int:
        return len(self.builds)

    def sha(self, date: int) -> str:
        return self.builds[date]

    def dates(self) -> list[int]:
        return sorted(self.builds)

    def date_range(self) -> tuple[int, int] | None:
        dates = self.dates()
        return (dates[0], dates[-1]) if dates else None


def _read_yaml(path: Path, what: str):
    if not path.exists():
        raise ConfigError(f"{what} not found at {path}")
    try:
        with open(path) as f:
            return yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Cannot parse {what} at {path}: {e}") from e


def load_registry(path: Path) -> InterpreterRegistry:
    doc = _read_yaml(path, "rubies.yml")
    if doc is None:
        doc = {}
    if not isinstance(doc, dict):
        raise ConfigError(f"{path}: expected a mapping of YYYYMMDD -> sha")

    builds: dict[int, str] = {}
    for key, sha in doc.items():
        date = parse_date_key(key)
        if not isinstance(sha, str) or not sha.strip():
            raise ConfigError(f"{path}: entry {key} has no build sha")
        builds[date] = sha.strip()

    log.debug(f"Registry loaded: {len(builds)} builds from {path}")
    return InterpreterRegistry(builds)


# ---------------------------------------------------------------------------
# Benchmark Metadata
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class BenchmarkInfo:
    name: str
    category: str = DEFAULT_CATEGORY
    ractor: bool = False
    desc: str | None = None
    single_file: bool = False
    extra: dict = field(default_factory=dict, compare=False)


def _benchmark_from_entry(name, entry, path: Path) -> BenchmarkInfo:
    if not isinstance(name, str) or not name:
        raise ConfigError(f"{path}: benchmark names must be non-empty strings, got {name!r}")
    if entry is None:
        entry = {}
    if not isinstance(entry, dict):
        raise ConfigError(f"{path}: benchmark '{name}' must map to a mapping")

    unknown = set(entry) - KNOWN_BENCHMARK_FIELDS
    if unknown:
        raise ConfigError(
            f"{path}: benchmark '{name}' has unrecognised field(s): {', '.join(sorted(map(str, unknown)))}"
        )

    category = entry.get("category", DEFAULT_CATEGORY)
    if not isinstance(category, str) or not category:
        raise ConfigError(f"{path}: benchmark '{name}' category must be a string")
    ractor = entry.get("ractor", False)
    if not isinstance(ractor, bool):
        raise ConfigError(f"{path}: benchmark '{name}' ractor must be true/false")
    single_file = entry.get("single_file", False)
    if not isinstance(single_file, bool):
        raise ConfigError(f"{path}: benchmark '{name}' single_file must be true/false")

    extra = {k: v for k, v in entry.items() if k == "default_harness"}
    return BenchmarkInfo(
        name=name,
        category=category,
        ractor=ractor,
        desc=entry.get("desc"),
        single_file=single_file,
        extra=extra,
    )


def load_benchmarks(path: Path) -> list[BenchmarkInfo]:
    """Load benchmarks.yml in document order."""
    doc = _read_yaml(path, "benchmarks.yml")
    if not isinstance(doc, dict):
        raise ConfigError(f"{path}: expected a mapping of benchmark name -> metadata")
    return [_benchmark_from_entry(name, entry, path) for name, entry in doc.items()]


def list_ractor_only(paths: Paths) -> list[str]:
    return sorted(p.parent.name for p in paths.ractor_benchmarks_dir.glob("**/benchmark.rb"))
