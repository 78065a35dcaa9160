"""
Scraping of run_benchmarks.rb output.

Everything that depends on the textual format of the harness lives here, so
the runners only see numbers (or None for an absent measurement).

Formats relied on
-----------------
timing   : the last line starting with the benchmark's short name, e.g.
           ``fib    123.4   ...`` -> 123.4
memory   : ``MAXRSS: 150.0MiB`` (preferred) or ``RSS: 100.0MiB``
ractor   : ``4 #2: 350ms``  (worker count, iteration index, elapsed ms)
"""

from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass

import numpy as np

log = logging.getLogger(__name__)

MIB = 1024 * 1024

RSS_PATTERN = re.compile(r"(?:MAX)?RSS:\s*(\d+(?:\.\d+)?)\s*MiB")
RACTOR_ITERATION_PATTERN = re.compile(r"^\s*(\d+)\s+#\d+:\s*(\d+)ms")


@dataclass(frozen=True)
class Measurement:
    time: float | None
    memory: int | None


def short_name(benchmark: str) -> str:
    return benchmark.rsplit("/", 1)[-1]


def find_benchmark_line(output: str, benchmark: str) -> str | None:
    prefix = short_name(benchmark)
    for line in reversed(output.splitlines()):
        if line.startswith(prefix):
            return line
    return None


def parse_timing(output: str, benchmark: str) -> float | None:
    line = find_benchmark_line(output, benchmark)
    if line is None:
        log.warning(f"benchmark output for {benchmark} not found")
        return None
    try:
        value = float(line.split()[1])
    except (IndexError, ValueError):
        log.warning(f"Unparseable result line for {benchmark}: {line!r}")
        return None
    if not math.isfinite(value):
        log.warning(f"Non-finite result for {benchmark}: {line!r}")
        return None
    return value


def parse_memory(output: str) -> int | None:
    """Peak memory in bytes, preferring MAXRSS over RSS."""
    lines = output.splitlines()
    maxrss_line = next((line for line in lines if "MAXRSS:" in line), None)
    rss_line = next((line for line in lines if "RSS:" in line), None)
    target = maxrss_line or rss_line
    if target is None:
        return None
    match = RSS_PATTERN.search(target)
    if not match:
        return None
    return int(float(match.group(1)) * MIB)


def parse_run_output(output: str, benchmark: str) -> Measurement:
    return Measurement(time=parse_timing(output, benchmark), memory=parse_memory(output))


def parse_ractor_output(output: str) -> dict[str, list[float]] | None:
    """
    Group iteration timings by worker count.

    Returns None (not {}) when the output holds no iteration lines.
    """
    grouped: dict[str, list[float]] = {}
    for line in output.splitlines():
        match = RACTOR_ITERATION_PATTERN.match(line)
        if match:
            grouped.setdefault(match.group(1), []).append(float(match.group(2)))
    return grouped or None


def summarize_ractor(grouped: dict[str, list[float]] | None) -> dict[str, float]:
    """Median elapsed ms per worker count."""
    if not grouped:
        return {}
    return {
        workers: round(float(np.median(samples)), 1)
        for workers, samples in grouped.items()
        if samples
    }
