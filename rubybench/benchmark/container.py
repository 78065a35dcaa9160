"""
Docker container lifecycle for benchmark runs.

One container per date, pinned to the Ruby build for that date and reused
across the JIT configurations of a run. The session owns every container it
starts and force-removes them on close:

    with ContainerSession(paths.root) as session:
        container = session.acquire(20250815, "abc123")
        res = session.exec_benchmark(container, "./run_benchmarks.rb fib --rss -e 'ruby '")
        session.reset_worktree(container)
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path

log = logging.getLogger(__name__)

IMAGE = "ghcr.io/ruby/ruby:master-{sha}"
CONTAINER_NAME = "rubybench-{date}"
MOUNT_POINT = "/rubybench"
BENCH_DIR = f"{MOUNT_POINT}/benchmark/ruby-bench"

BENCHMARK_TIMEOUT_SEC = 10 * 60
HOST_TIMEOUT_GRACE_SEC = 60
BUNDLE_JOBS = 8

APT_PACKAGES = [
    "build-essential", "git", "libsqlite3-dev", "libyaml-dev",
    "nodejs", "pkg-config", "sudo", "xz-utils",
]


class ContainerError(RuntimeError):
    """A docker command needed to provision a container failed."""


@dataclass(frozen=True)
class ExecResult:
    returncode: int
    output: str
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return self.returncode == 0 and not self.timed_out


def _docker(*args: str, check: bool = True, quiet: bool = False) -> subprocess.CompletedProcess:
    cmd = ["docker", *args]
    log.debug(f"$ {shlex.join(cmd)}")
    try:
        return subprocess.run(
            cmd,
            check=check,
            stdout=subprocess.DEVNULL if quiet else None,
            stderr=subprocess.DEVNULL if quiet else None,
        )
    except subprocess.CalledProcessError as e:
        raise ContainerError(f"docker {args[0]} failed (exit {e.returncode}): {shlex.join(cmd)}") from e
    except FileNotFoundError as e:
        raise ContainerError("docker executable not found on PATH") from e


class ContainerSession:
    """Owns the containers started during one invocation."""

    def __init__(self, root: Path, timeout_sec: int = BENCHMARK_TIMEOUT_SEC):
        self.root = Path(root)
        self.timeout_sec = timeout_sec
        self._started: list[str] = []

    def __enter__(self) -> "ContainerSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def started(self) -> list[str]:
        return list(self._started)

    def acquire(self, date: int, sha: str) -> str:
        """Create the container for `date` on first use; reuse it afterwards."""
        container = CONTAINER_NAME.format(date=date)
        if container in self._started:
            return container

        log.info(f"Starting container {container} ({IMAGE.format(sha=sha)})")
        _docker("rm", "-f", container, check=False, quiet=True)
        _docker(
            "run", "-d", "--privileged", "--name", container,
            "-v", f"{self.root}:{MOUNT_POINT}",
            IMAGE.format(sha=sha),
            "bash", "-c", "while true; do sleep 100000; done",
        )
        # Registered before provisioning so a failed apt step still gets cleaned up.
        self._started.append(container)

        install = f"apt-get update && apt install -y {' '.join(APT_PACKAGES)}"
        _docker("exec", container, "bash", "-c", install)
        return container

    def exec_benchmark(self, container: str, command: str, timeout_sec: int | None = None) -> ExecResult:
        """Run `command` in the ruby-bench checkout, killed after the timeout."""
        timeout = timeout_sec if timeout_sec is not None else self.timeout_sec
        script = (
            f"cd {BENCH_DIR} && env BUNDLE_JOBS={BUNDLE_JOBS} "
            f"timeout --signal=KILL {timeout} {command}"
        )
        cmd = ["docker", "exec", container, "bash", "-c", script]
        log.debug(f"$ {shlex.join(cmd)}")
        try:
            proc = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=timeout + HOST_TIMEOUT_GRACE_SEC,
            )
        except subprocess.TimeoutExpired as e:
            output = e.output or ""
            if isinstance(output, bytes):
                output = output.decode(errors="replace")
            log.error(f"{container}: benchmark killed after {timeout}s")
            return ExecResult(returncode=-9, output=output, timed_out=True)
        return ExecResult(returncode=proc.returncode, output=proc.stdout or "")

    def reset_worktree(self, container: str) -> None:
        """Discard every file the run created in the mounted checkout."""
        try:
            _docker("exec", container, "git", "config", "--global", "--add", "safe.directory", "*")
            _docker("exec", container, "git", "-C", BENCH_DIR, "clean", "-dfx")
        except ContainerError as e:
            log.warning(f"Worktree reset failed for {container}: {e}")

    def close(self) -> None:
        while self._started:
            container = self._started.pop()
            try:
                _docker("rm", "-f", container, check=False, quiet=True)
                log.debug(f"Removed container {container}")
            except ContainerError as e:
                log.warning(f"Could not remove {container}: {e}")
