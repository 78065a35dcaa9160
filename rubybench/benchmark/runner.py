"""
Benchmark runner — runs one ruby-bench benchmark for one historical Ruby build.

For the requested date the runner:
  - refuses dates missing from rubies.yml (before touching docker or results)
  - short-circuits when results for the date already exist (unless forced)
  - runs the benchmark under no-JIT, --yjit and --zjit inside one container
  - scrapes time / memory (or ractor iteration timings) from the output
  - rewrites the benchmark's result files with the new date entry
  - resets the container's checkout, whatever happened above

Usage:
    python scripts/run_benchmark.py -d 20250815 activerecord
    python scripts/run_benchmark.py -d 20250815 --ractor-only knucleotide
"""

from __future__ import annotations

import logging
import shlex
from dataclasses import dataclass

from rubybench.benchmark.container import ContainerSession
from rubybench.benchmark.parsing import parse_ractor_output, parse_run_output, summarize_ractor
from rubybench.data.config import ConfigError, InterpreterRegistry, Paths
from rubybench.data.store import ResultsStore

log = logging.getLogger(__name__)

# Fixed slot order of every result entry: [no-JIT, YJIT, ZJIT]
JIT_CONFIGS: list[str | None] = [None, "--yjit", "--zjit"]


class UnknownDateError(ConfigError):
    def __init__(self, date: int, date_range: tuple[int, int] | None):
        self.date = date
        self.date_range = date_range
        if date_range:
            available = f"{date_range[0]}..{date_range[1]}"
        else:
            available = "none"
        super().__init__(f"Date {date} not found in rubies.yml (available dates: {available})")


def jit_label(opts: str | None) -> str:
    return "no-jit" if opts is None else opts


def config_name(opts: str | None) -> str:
    return "baseline" if opts is None else opts.removeprefix("--")


@dataclass
class RunResult:
    benchmark: str
    date: int
    times: list
    memory: list
    cached: bool = False


@dataclass
class RactorRunResult:
    benchmark: str
    date: int
    result: dict
    cached: bool = False


class BenchmarkRunner:
    def __init__(
        self,
        paths: Paths,
        registry: InterpreterRegistry,
        session: ContainerSession,
        store: ResultsStore | None = None,
    ):
        self.paths = paths
        self.registry = registry
        self.session = session
        self.store = store or ResultsStore(paths)

    def _check_date(self, date: int) -> None:
        if date not in self.registry:
            raise UnknownDateError(date, self.registry.date_range())

    def _run_config(self, container: str, command: str, label: str) -> str | None:
        """Run one configuration; returns the output, or None on failure."""
        log.info(f"Running with {label}...")
        res = self.session.exec_benchmark(container, command)
        if res.output:
            log.info(res.output.rstrip())
        if not res.ok:
            reason = "timed out" if res.timed_out else f"exit {res.returncode}"
            log.error(f"Benchmark failed with {label} ({reason})")
            return None
        return res.output

    # -----------------------------------------------------------------------
    # Regular benchmarks
    # -----------------------------------------------------------------------

    def run(self, benchmark: str, date: int, force: bool = False) -> RunResult:
        self._check_date(date)
        results = self.store.load_series(benchmark)
        memory_results = self.store.load_memory(benchmark)

        if date in results and not force:
            log.info(f"Benchmark for {date} already exists. Use --force to re-run.")
            log.info(f"Existing results: {results[date]}")
            return RunResult(benchmark, date, results[date], memory_results.get(date), cached=True)

        log.info("=" * 65)
        log.info(f"Running {benchmark} for date: {date}")
        log.info(f"Ruby SHA: {self.registry.sha(date)}")
        log.info("=" * 65)

        container = self.session.acquire(date, self.registry.sha(date))
        times: list[float | None] = []
        memory: list[int | None] = []
        try:
            for opts in JIT_CONFIGS:
                command = f"./run_benchmarks.rb {shlex.quote(benchmark)} --rss -e 'ruby {opts or ''}'"
                out = self._run_config(container, command, jit_label(opts))
                if out is None:
                    times.append(None)
                    memory.append(None)
                    continue

                m = parse_run_output(out, benchmark)
                times.append(m.time)
                memory.append(m.memory)
                if m.time is not None:
                    log.info(f"Result: {m.time}")
                if m.memory is not None:
                    log.info(f"Memory: {m.memory / 1024.0 / 1024.0} MiB")

            results[date] = times
            memory_results[date] = memory
            series_file = self.store.save_series(benchmark, results)
            memory_file = self.store.save_memory(benchmark, memory_results)
        finally:
            self.session.reset_worktree(container)

        log.info(f"Results written to: {series_file}")
        log.info(f"Memory results written to: {memory_file}")
        log.info(f"Final results: {times}")
        return RunResult(benchmark, date, times, memory)

    # -----------------------------------------------------------------------
    # Ractor benchmarks
    # -----------------------------------------------------------------------

    def run_ractor(
        self,
        benchmark: str,
        date: int,
        force: bool = False,
        ractor_only: bool = False,
    ) -> RactorRunResult:
        category = "ractor-only" if ractor_only else "ractor"
        self._check_date(date)
        results = self.store.load_ractor(benchmark, ractor_only)

        if date in results and not force:
            log.info(f"Ractor benchmark for {date} already exists. Use --force to re-run.")
            log.info(f"Existing results: {results[date]}")
            return RactorRunResult(benchmark, date, results[date], cached=True)

        log.info("=" * 65)
        log.info(f"Running ractor:{benchmark} for date: {date}")
        log.info(f"Ruby SHA: {self.registry.sha(date)}")
        log.info(f"Category: {category}")
        log.info("=" * 65)

        container = self.session.acquire(date, self.registry.sha(date))
        result: dict[str, dict | None] = {}
        try:
            for opts in JIT_CONFIGS:
                name = config_name(opts)
                command = (
                    f"./run_benchmarks.rb {shlex.quote(benchmark)} --category {category} "
                    f"--rss -e 'ruby {opts or ''}'"
                )
                out = self._run_config(container, command, name if opts is None else opts)
                if out is None:
                    result[name] = None
                    continue

                grouped = parse_ractor_output(out)
                result[name] = grouped
                if grouped is None:
                    log.warning(f"No ractor iteration lines found for {benchmark} ({name})")
                else:
                    log.info(f"Result (median ms per ractor count): {summarize_ractor(grouped)}")

            results[date] = result
            results_file = self.store.save_ractor(benchmark, results, ractor_only)
        finally:
            self.session.reset_worktree(container)

        log.info(f"Results written to: {results_file}")
        log.info(f"Final results: {result}")
        return RactorRunResult(benchmark, date, result)
