"""
Pytest configuration: on-disk project trees and a docker-free session.
"""

import pytest

from rubybench.benchmark.container import ExecResult
from rubybench.data.config import Paths


def write_tree(root, rubies=None, benchmarks=None):
    """Write rubies.yml / benchmarks.yml under `root` and return Paths."""
    paths = Paths.from_root(root)
    paths.results_dir.mkdir(parents=True, exist_ok=True)
    paths.ruby_bench_dir.mkdir(parents=True, exist_ok=True)
    if rubies is not None:
        paths.rubies_file.write_text(rubies)
    if benchmarks is not None:
        paths.benchmarks_file.write_text(benchmarks)
    return paths


class FakeSession:
    """Stands in for ContainerSession; replays canned outputs per call."""

    def __init__(self, outputs=None):
        self.outputs = list(outputs or [])
        self.acquired = []
        self.commands = []
        self.resets = []

    def acquire(self, date, sha):
        self.acquired.append((date, sha))
        return f"rubybench-{date}"

    def exec_benchmark(self, container, command, timeout_sec=None):
        self.commands.append(command)
        return self.outputs.pop(0)

    def reset_worktree(self, container):
        self.resets.append(container)


@pytest.fixture
def project(tmp_path):
    return write_tree(
        tmp_path,
        rubies="20250801: sha1\n20250815: sha2\n",
        benchmarks="fib:\n  category: micro\nerubi:\n  category: headline\n  ractor: true\n",
    )


@pytest.fixture
def ok():
    def make(output, returncode=0):
        return ExecResult(returncode=returncode, output=output)
    return make
