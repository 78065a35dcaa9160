#!/usr/bin/env python3
"""
CLI: Run a ruby-bench benchmark against the Ruby build of a given date.

Examples
--------
# List all available benchmarks
python scripts/run_benchmark.py -l

# Run a regular benchmark for a specific date
python scripts/run_benchmark.py -d 20250815 activerecord

# Force re-run even if results exist
python scripts/run_benchmark.py -d 20250815 --force activerecord

# Run a ractor-compatible benchmark
python scripts/run_benchmark.py -d 20250815 --ractor erubi

# Run a ractor-only benchmark
python scripts/run_benchmark.py -d 20250815 --ractor-only knucleotide
"""

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from rubybench.benchmark.container import ContainerError, ContainerSession
from rubybench.benchmark.runner import BenchmarkRunner
from rubybench.data.config import (
    ConfigError,
    Paths,
    list_ractor_only,
    load_benchmarks,
    load_registry,
    parse_date_key,
)
from rubybench.data.store import StoreError

log = logging.getLogger("run_benchmark")


def list_benchmarks(paths: Paths) -> None:
    benchmarks = load_benchmarks(paths.benchmarks_file)

    print("\n=== Regular Benchmarks ===")
    for name in sorted(b.name for b in benchmarks):
        print(f"  {name}")

    print("\n=== Ractor-Compatible Benchmarks ===")
    for name in sorted(b.name for b in benchmarks if b.ractor):
        print(f"  {name} (ractor-compatible)")

    print("\n=== Ractor-Only Benchmarks ===")
    for name in list_ractor_only(paths):
        print(f"  {name} (ractor-only)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run a benchmark for one historical Ruby build under no-JIT, YJIT and ZJIT.",
    )
    parser.add_argument("benchmark", nargs="?", help="Benchmark name (as in benchmarks.yml)")
    parser.add_argument("--date", "-d", help="Target date (YYYYMMDD format)")
    parser.add_argument("--force", "-f", action="store_true",
                        help="Force re-run even if results exist")
    parser.add_argument("--ractor", "-r", action="store_true",
                        help="Run as ractor benchmark")
    parser.add_argument("--ractor-only", action="store_true",
                        help="Run as ractor-only benchmark")
    parser.add_argument("--list", "-l", action="store_true",
                        help="List available benchmarks")
    parser.add_argument("--root", default=None,
                        help="Project root holding benchmark/ and results/ (default: repository root)")
    parser.add_argument("--verbose", "-v", action="store_true")
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stdout,
    )
    paths = Paths.from_root(args.root)

    if args.list:
        try:
            list_benchmarks(paths)
        except ConfigError as e:
            log.error(f"ERROR: {e}")
            return 1
        return 0

    if not args.benchmark:
        print("Error: Please specify a benchmark name")
        return 1
    if args.date is None:
        print("Error: Please specify a date with -d or --date")
        return 1

    try:
        date = parse_date_key(args.date)
        registry = load_registry(paths.rubies_file)
    except ConfigError as e:
        log.error(f"ERROR: {e}")
        return 1

    try:
        with ContainerSession(paths.root) as session:
            runner = BenchmarkRunner(paths, registry, session)
            if args.ractor or args.ractor_only:
                runner.run_ractor(args.benchmark, date, force=args.force,
                                  ractor_only=args.ractor_only)
            else:
                runner.run(args.benchmark, date, force=args.force)
    except (ConfigError, StoreError) as e:
        log.error(f"Error: {e}")
        return 1
    except ContainerError as e:
        log.error(f"Container setup failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
