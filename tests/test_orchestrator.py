import subprocess
import threading
import time

from codescanner.domain.models import ScanJob
from codescanner.services.orchestrator import ScanOrchestrator, progress_after
from codescanner.services.repositories import InMemoryJobRepository
from fakes import FakeAdapter, cmd_result, make_finding, scanner_settings


class RecordingJobRepository(InMemoryJobRepository):
    def __init__(self, fail_progress: bool = False):
        super().__init__()
        self.progress: list[int] = []
        self.fail_progress = fail_progress

    def update_scan_progress(self, scan_id, status, progress):
        if self.fail_progress:
            raise RuntimeError("store unavailable")
        self.progress.append(progress)
        return super().update_scan_progress(scan_id, status, progress)


def _jobs(**kw) -> RecordingJobRepository:
    jobs = RecordingJobRepository(**kw)
    jobs.create_scan(ScanJob(scan_id="s1", tools=[], status="in_progress"))
    return jobs


def test_progress_formula():
    assert [progress_after(k, 3) for k in (1, 2, 3)] == [40, 60, 80]
    assert progress_after(1, 7) == 28
    assert progress_after(0, 0) == 80


def test_runs_adapters_in_order_and_reports_progress(tmp_path, src_dir):
    jobs = _jobs()
    adapters = [
        (FakeAdapter(name="cppcheck", findings=[make_finding(tool="cppcheck")]), "cppcheck"),
        (FakeAdapter(name="semgrep", findings=[make_finding(tool="semgrep", severity="high")]), "semgrep"),
    ]

    results = ScanOrchestrator(jobs).run("s1", adapters, src_dir, tmp_path / "results")

    assert [r.scanner for r in results] == ["cppcheck", "semgrep"]
    assert results[1].summary.high == 1
    assert jobs.progress == [50, 80]
    assert jobs.get_scan("s1").progress == 80
    assert (tmp_path / "results" / "cppcheck-results.json").exists()
    assert (tmp_path / "results" / "semgrep-results.json").exists()


def test_hung_adapter_times_out_and_next_adapter_runs(tmp_path, src_dir):
    def hang(ctx):
        time.sleep(1.5)
        return []

    slow = FakeAdapter(scanner_settings(timeout_ms=100), behaviour=hang, name="snyk")
    fast = FakeAdapter(name="cppcheck", findings=[make_finding()])

    started = time.monotonic()
    results = ScanOrchestrator().run("s1", [(slow, "snyk"), (fast, "cppcheck")], src_dir, tmp_path / "results")
    elapsed = time.monotonic() - started

    assert elapsed < 1.0
    assert results[0].error == "snyk scan timed out after 100ms"
    assert results[0].vulnerabilities == []
    assert results[0].summary.total == 0
    assert results[1].summary.total == 1


def test_timed_out_adapter_starts_no_commands_after_its_budget(tmp_path, src_dir, monkeypatch):
    second_running = threading.Event()
    overlapping: list[int] = []

    def fake_run_cmd(cmd, cwd, timeout_sec=60, env=None):
        if second_running.is_set():
            overlapping.append(cmd[1])
        if timeout_sec < 0.1:
            time.sleep(timeout_sec)
            raise subprocess.TimeoutExpired(cmd, timeout_sec)
        time.sleep(0.1)
        return cmd_result()

    monkeypatch.setattr("codescanner.analyzers.base.run_cmd", fake_run_cmd)

    def per_file_steps(ctx):
        for step in range(6):
            slow.execute(["clang-tidy", step], cwd=ctx.source_dir)
        return []

    def second(ctx):
        second_running.set()
        time.sleep(0.4)
        second_running.clear()
        return []

    slow = FakeAdapter(scanner_settings(timeout_ms=150), behaviour=per_file_steps, name="clangTidy")
    fast = FakeAdapter(behaviour=second, name="cppcheck")

    results = ScanOrchestrator().run("s1", [(slow, "clangTidy"), (fast, "cppcheck")], src_dir, tmp_path / "results")

    assert results[0].error == "clangTidy scan timed out after 150ms"
    assert overlapping == []


def test_execute_outside_a_scan_uses_the_full_timeout(src_dir, monkeypatch):
    seen = []
    monkeypatch.setattr(
        "codescanner.analyzers.base.run_cmd",
        lambda cmd, cwd, timeout_sec=60, env=None: seen.append(timeout_sec) or cmd_result(),
    )
    FakeAdapter(scanner_settings(timeout_ms=2000)).execute(["true"], cwd=src_dir)
    assert seen == [2.0]


def test_adapter_exception_becomes_placeholder(tmp_path, src_dir):
    class Exploding(FakeAdapter):
        def scan_directory(self, source_dir, output_path):
            raise RuntimeError("docker daemon not running")

    results = ScanOrchestrator().run(
        "s1",
        [(Exploding(name="cppcheckCustom"), "cppcheckCustom"), (FakeAdapter(findings=[make_finding()]), "fake")],
        src_dir,
        tmp_path / "results",
    )
    assert results[0].error == "docker daemon not running"
    assert results[0].metadata["tool"] == "cppcheckCustom"
    assert results[1].summary.total == 1


def test_progress_write_failure_does_not_stop_the_run(tmp_path, src_dir):
    jobs = _jobs(fail_progress=True)
    results = ScanOrchestrator(jobs).run("s1", [(FakeAdapter(), "fake")], src_dir, tmp_path / "results")
    assert len(results) == 1
    assert results[0].error is None
