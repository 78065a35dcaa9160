"""Tests for the benchmark and ractor runners (docker replaced by FakeSession)"""

import pytest

from conftest import FakeSession
from rubybench.benchmark.container import ExecResult
from rubybench.benchmark.parsing import MIB
from rubybench.benchmark.runner import BenchmarkRunner, UnknownDateError, config_name
from rubybench.data.config import load_registry
from rubybench.data.store import ResultsStore


def make_runner(paths, outputs=None):
    session = FakeSession(outputs)
    runner = BenchmarkRunner(paths, load_registry(paths.rubies_file), session)
    return runner, session


def fib_output(ms, maxrss):
    return f"MAXRSS: {maxrss}MiB\nfib  {ms}  1.0\n"


class TestRegularRunner:
    def test_runs_three_configs_and_persists(self, project, ok):
        runner, session = make_runner(project, [
            ok(fib_output(100.0, 10.0)),
            ok(fib_output(50.0, 12.0)),
            ok(fib_output(40.0, 14.0)),
        ])

        result = runner.run("fib", 20250801)

        assert result.cached is False
        assert result.times == [100.0, 50.0, 40.0]
        assert result.memory == [10 * MIB, 12 * MIB, 14 * MIB]
        assert session.acquired == [(20250801, "sha1")]
        assert session.commands == [
            "./run_benchmarks.rb fib --rss -e 'ruby '",
            "./run_benchmarks.rb fib --rss -e 'ruby --yjit'",
            "./run_benchmarks.rb fib --rss -e 'ruby --zjit'",
        ]
        store = ResultsStore(project)
        assert store.load_series("fib") == {20250801: [100.0, 50.0, 40.0]}
        assert store.load_memory("fib") == {20250801: [10 * MIB, 12 * MIB, 14 * MIB]}
        assert session.resets == ["rubybench-20250801"]

    def test_failed_config_is_absent_and_others_continue(self, project, ok):
        runner, session = make_runner(project, [
            ok(fib_output(100.0, 10.0)),
            ok("segfault\n", returncode=1),
            ExecResult(returncode=-9, output="", timed_out=True),
        ])

        result = runner.run("fib", 20250801)

        assert result.times == [100.0, None, None]
        assert result.memory == [10 * MIB, None, None]
        assert len(session.commands) == 3

    def test_parse_miss_is_absent(self, project, ok):
        runner, _ = make_runner(project, [ok("no table\n"), ok("no table\n"), ok("no table\n")])

        result = runner.run("fib", 20250801)

        assert result.times == [None, None, None]
        assert result.memory == [None, None, None]

    def test_cache_hit_does_no_container_work(self, project):
        store = ResultsStore(project)
        store.save_series("fib", {20250801: [1.0, 2.0, 3.0]})
        store.save_memory("fib", {20250801: [MIB, MIB, MIB]})
        runner, session = make_runner(project)

        result = runner.run("fib", 20250801)

        assert result.cached is True
        assert result.times == [1.0, 2.0, 3.0]
        assert session.acquired == [] and session.commands == [] and session.resets == []
        assert store.load_series("fib") == {20250801: [1.0, 2.0, 3.0]}

    def test_force_overwrites_only_that_date(self, project, ok):
        store = ResultsStore(project)
        store.save_series("fib", {20250815: [9.0, 9.0, 9.0], 20250801: [1.0, 2.0, 3.0]})
        runner, _ = make_runner(project, [
            ok(fib_output(100.0, 10.0)), ok(fib_output(50.0, 10.0)), ok(fib_output(40.0, 10.0)),
        ])

        runner.run("fib", 20250801, force=True)

        assert store.load_series("fib") == {20250801: [100.0, 50.0, 40.0], 20250815: [9.0, 9.0, 9.0]}

    def test_unknown_date_touches_nothing(self, project):
        runner, session = make_runner(project)

        with pytest.raises(UnknownDateError) as exc:
            runner.run("fib", 20240101)

        assert "20250801..20250815" in str(exc.value)
        assert session.acquired == []
        assert not ResultsStore(project).series_path("fib").exists()

    def test_unknown_date_reported_before_corrupt_results(self, project):
        path = ResultsStore(project).series_path("fib")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("not a results file\n")
        runner, _ = make_runner(project)

        with pytest.raises(UnknownDateError, match="20250801..20250815"):
            runner.run("fib", 20240101)

    def test_benchmark_name_is_shell_quoted(self, project, ok):
        runner, session = make_runner(project, [ok("x\n")] * 3)

        runner.run("fib; rm -rf /", 20250801)

        assert session.commands[0] == "./run_benchmarks.rb 'fib; rm -rf /' --rss -e 'ruby '"

    def test_worktree_reset_when_save_fails(self, project, ok, monkeypatch):
        runner, session = make_runner(project, [ok("x\n"), ok("x\n"), ok("x\n")])

        def boom(*args, **kwargs):
            raise OSError("disk full")

        monkeypatch.setattr(runner.store, "save_series", boom)
        with pytest.raises(OSError):
            runner.run("fib", 20250801)

        assert session.resets == ["rubybench-20250801"]


class TestRactorRunner:
    def test_grouped_results_per_config(self, project, ok):
        runner, session = make_runner(project, [
            ok("1 #1: 100ms\n4 #1: 360ms\n4 #2: 350ms\n"),
            ok("nothing parsable\n"),
            ok("boom\n", returncode=2),
        ])

        result = runner.run_ractor("erubi", 20250815)

        assert result.result == {
            "baseline": {"1": [100.0], "4": [360.0, 350.0]},
            "yjit": None,
            "zjit": None,
        }
        assert all("--category ractor " in c for c in session.commands)
        stored = ResultsStore(project).load_ractor("erubi")
        assert stored == {20250815: result.result}

    def test_ractor_only_namespace(self, project, ok):
        runner, session = make_runner(project, [ok("2 #1: 10ms\n")] * 3)

        runner.run_ractor("knucleotide", 20250801, ractor_only=True)

        store = ResultsStore(project)
        assert store.ractor_path("knucleotide", ractor_only=True).exists()
        assert not store.ractor_path("knucleotide").exists()
        assert all("--category ractor-only " in c for c in session.commands)

    def test_cache_hit(self, project):
        ResultsStore(project).save_ractor("erubi", {20250801: {"baseline": None}})
        runner, session = make_runner(project)

        result = runner.run_ractor("erubi", 20250801)

        assert result.cached is True
        assert result.result == {"baseline": None}
        assert session.commands == []

    def test_unknown_date_reported_before_corrupt_results(self, project):
        path = ResultsStore(project).ractor_path("erubi")
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("{{{\n")
        runner, session = make_runner(project)

        with pytest.raises(UnknownDateError):
            runner.run_ractor("erubi", 20240101)
        assert session.acquired == []

    def test_benchmark_name_is_shell_quoted(self, project, ok):
        runner, session = make_runner(project, [ok("x\n")] * 3)

        runner.run_ractor("it's", 20250801)

        assert session.commands[0].startswith("./run_benchmarks.rb 'it'\"'\"'s' --category ractor ")

    def test_config_names(self):
        assert [config_name(o) for o in (None, "--yjit", "--zjit")] == ["baseline", "yjit", "zjit"]
