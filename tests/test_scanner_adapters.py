import json
from pathlib import Path

from codescanner.analyzers.clang_static_analyzer import ClangStaticAnalyzerAdapter
from codescanner.analyzers.clang_tidy import COMPILE_DB, ClangTidyAdapter
from codescanner.analyzers.semgrep import SemgrepAdapter
from codescanner.analyzers.snyk import SnykAdapter
from fakes import cmd_result, scanner_settings

SEMGREP_RESULT = {
    "results": [
        {
            "check_id": "c.lang.security.insecure-use-strcpy-fn",
            "path": "{path}",
            "start": {"line": 5, "col": 5},
            "end": {"line": 5, "col": 40},
            "extra": {"message": "strcpy is insecure", "severity": "ERROR", "metadata": {}},
        }
    ]
}


def _semgrep_json(path: str) -> str:
    return json.dumps(SEMGREP_RESULT).replace("{path}", path)


# ── Semgrep ──────────────────────────────────────────────────────
def test_semgrep_native_scan(tmp_path, src_dir, monkeypatch):
    monkeypatch.setattr("codescanner.analyzers.base.shutil.which", lambda name: f"/usr/bin/{name}")
    calls = []

    def fake_run_cmd(cmd, cwd, timeout_sec=60, env=None):
        calls.append(cmd)
        return cmd_result(_semgrep_json(str(src_dir / "main.c")), exit_code=1)

    monkeypatch.setattr("codescanner.analyzers.base.run_cmd", fake_run_cmd)

    result = SemgrepAdapter(scanner_settings(path="semgrep")).scan_directory(src_dir, tmp_path / "out" / "semgrep-results.json")

    assert calls[0][:3] == ["semgrep", "--config", "auto"]
    assert "--json" in calls[0]
    assert result.summary.critical == 1
    assert result.vulnerabilities[0].file.file_path == "main.c"


def test_semgrep_uses_docker_when_not_installed(tmp_path, src_dir, monkeypatch):
    monkeypatch.setattr("codescanner.analyzers.base.shutil.which", lambda name: None)
    calls = []

    def fake_run_cmd(cmd, cwd, timeout_sec=60, env=None):
        calls.append(cmd)
        (tmp_path / "out" / "semgrep-raw.json").write_text(_semgrep_json("/src/main.c"), encoding="utf-8")
        return cmd_result()

    monkeypatch.setattr("codescanner.analyzers.base.run_cmd", fake_run_cmd)

    adapter = SemgrepAdapter(scanner_settings(path="semgrep", docker_image="returntocorp/semgrep"))
    assert [s.name for s in adapter.strategies()] == ["docker"]
    result = adapter.scan_directory(src_dir, tmp_path / "out" / "semgrep-results.json")

    assert calls[0][0] == "docker"
    assert "returntocorp/semgrep" in calls[0]
    assert result.vulnerabilities[0].file.file_path == "main.c"


def test_semgrep_installation_needs_semgrep_or_docker(monkeypatch):
    monkeypatch.setattr("codescanner.analyzers.base.shutil.which", lambda name: None)
    assert SemgrepAdapter(scanner_settings(path="semgrep")).check_installation() is False


# ── Snyk ─────────────────────────────────────────────────────────
def test_snyk_tries_strategies_until_findings(tmp_path, src_dir, monkeypatch):
    sarif = {
        "runs": [
            {
                "results": [
                    {
                        "ruleId": "cpp/BufferOverflow",
                        "level": "warning",
                        "message": {"text": "Possible overflow"},
                        "locations": [
                            {"physicalLocation": {"artifactLocation": {"uri": "main.c"}, "region": {"startLine": 5}}}
                        ],
                    }
                ]
            }
        ]
    }
    calls = []

    def fake_run_cmd(cmd, cwd, timeout_sec=60, env=None):
        calls.append(cmd)
        if "--sarif" in cmd:
            return cmd_result(json.dumps(sarif), exit_code=1)
        return cmd_result(json.dumps({"vulnerabilities": []}))

    monkeypatch.setattr("codescanner.analyzers.base.run_cmd", fake_run_cmd)

    result = SnykAdapter(scanner_settings(path="snyk")).scan_directory(src_dir, tmp_path / "snyk-results.json")

    assert len(calls) == 3
    assert calls[1][-1] == "--severity-threshold=low"
    assert result.summary.medium == 1
    assert result.vulnerabilities[0].type == "Security"


def test_snyk_installation_ignores_failed_auth_check(monkeypatch):
    monkeypatch.setattr("codescanner.analyzers.base.shutil.which", lambda name: "/usr/bin/snyk")

    def fake_run_cmd(cmd, cwd, timeout_sec=60, env=None):
        if "whoami" in cmd:
            return cmd_result(stderr="not authenticated", exit_code=2)
        return cmd_result("1.1290.0\n")

    monkeypatch.setattr("codescanner.analyzers.base.run_cmd", fake_run_cmd)
    assert SnykAdapter(scanner_settings(path="snyk")).check_installation() is True


# ── clang-tidy ───────────────────────────────────────────────────
def test_clang_tidy_writes_compile_db_and_scans_each_file(tmp_path, src_dir, monkeypatch):
    (src_dir / "util.h").write_text("int helper(void);\n", encoding="utf-8")
    calls = []

    def fake_run_cmd(cmd, cwd, timeout_sec=60, env=None):
        calls.append((cmd, env))
        if cmd[-2].endswith("main.c"):
            return cmd_result(
                f"{src_dir / 'main.c'}:5:5: warning: Call to function 'strcpy' is insecure "
                "[clang-analyzer-security.insecureAPI.strcpy]\n",
                stderr="1 warning generated.",
            )
        return cmd_result()

    monkeypatch.setattr("codescanner.analyzers.base.run_cmd", fake_run_cmd)

    result = ClangTidyAdapter(scanner_settings(path="clang-tidy")).scan_directory(src_dir, tmp_path / "ct.json")

    db = json.loads((src_dir / COMPILE_DB).read_text(encoding="utf-8"))
    assert {Path(e["file"]).name for e in db} == {"main.c", "util.h"}
    assert len(calls) == 2
    cmd, env = calls[0]
    assert cmd[1].startswith("-checks=bugprone-*")
    assert env == {"LC_ALL": "C"}
    assert result.summary.medium == 1
    assert result.vulnerabilities[0].code_snippet.line.strip().startswith("strcpy")


# ── Clang Static Analyzer ────────────────────────────────────────
def test_clang_sa_per_file_strategy_and_temp_cleanup(tmp_path, src_dir, monkeypatch):
    calls = []

    def fake_run_cmd(cmd, cwd, timeout_sec=60, env=None):
        calls.append((cmd, timeout_sec))
        return cmd_result(stderr=f"{src_dir / 'main.c'}:5:5: warning: Potential buffer overflow\n")

    monkeypatch.setattr("codescanner.analyzers.base.run_cmd", fake_run_cmd)

    out = tmp_path / "results" / "clangStaticAnalyzer-results.json"
    adapter = ClangStaticAnalyzerAdapter(scanner_settings(path="scan-build", clang_path="clang"))
    result = adapter.scan_directory(src_dir, out)

    # no build file, so the make strategy is skipped without running anything
    cmd, timeout = calls[0]
    assert cmd[0] == "scan-build"
    assert cmd[3:5] == ["clang", "-c"]
    assert timeout == 30
    assert result.summary.medium == 1
    assert result.vulnerabilities[0].name == "Clang Static Analyzer: buffer overflow"
    assert not (out.parent / "clang-static-analyzer-temp").exists()


def test_clang_sa_installation_checks_both_tools(monkeypatch):
    monkeypatch.setattr("codescanner.analyzers.base.shutil.which", lambda name: f"/usr/bin/{name}")

    def fake_run_cmd(cmd, cwd, timeout_sec=60, env=None):
        if cmd[0] == "scan-build":
            return cmd_result("USAGE: scan-build [options] <build command>")
        return cmd_result("Ubuntu clang version 17.0.6\nTarget: x86_64-pc-linux-gnu\n")

    monkeypatch.setattr("codescanner.analyzers.base.run_cmd", fake_run_cmd)
    assert ClangStaticAnalyzerAdapter(scanner_settings(path="scan-build")).check_installation() is True

    monkeypatch.setattr("codescanner.analyzers.base.run_cmd", lambda cmd, cwd, timeout_sec=60, env=None: cmd_result("gcc"))
    assert ClangStaticAnalyzerAdapter(scanner_settings(path="scan-build")).check_installation() is False


def test_semgrep_unparseable_output_is_an_empty_result(tmp_path, src_dir, monkeypatch):
    monkeypatch.setattr("codescanner.analyzers.base.shutil.which", lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr(
        "codescanner.analyzers.base.run_cmd",
        lambda cmd, cwd, timeout_sec=60, env=None: cmd_result("Traceback (most recent call last): ...", exit_code=2),
    )

    result = SemgrepAdapter(scanner_settings(path="semgrep")).scan_directory(src_dir, tmp_path / "out" / "s.json")
    assert result.vulnerabilities == []
    assert result.error is None
