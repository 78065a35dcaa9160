#!/usr/bin/env python3
"""
CLI: Rebuild results/dashboard.yml from every benchmark's results.

Usage:
    python scripts/build_dashboard.py
    python scripts/build_dashboard.py --root /srv/rubybench --quiet
"""

import argparse
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from rubybench.benchmark import dashboard
from rubybench.benchmark.dashboard import DashboardError
from rubybench.data.config import ConfigError, Paths
from rubybench.data.store import StoreError


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Build the JIT comparison dashboard.")
    parser.add_argument("--root", default=None,
                        help="Project root holding benchmark/ and results/ (default: repository root)")
    parser.add_argument("--quiet", "-q", action="store_true",
                        help="Do not print the summary tables")
    parser.add_argument("--verbose", "-v", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        stream=sys.stdout,
    )

    try:
        dashboard.run(Paths.from_root(args.root), quiet=args.quiet)
    except (ConfigError, StoreError, DashboardError) as e:
        logging.getLogger(__name__).error(f"ERROR: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
