import json

import pytest

from codescanner.analyzers.clang_tidy import ClangTidyAdapter
from codescanner.analyzers.cppcheck import CppcheckAdapter
from codescanner.core.config import ScannerConfigStore
from codescanner.core.containers import build_scanner_registry
from codescanner.core.errors import ConfigError, ScannerDisabledError, UnknownScannerError
from codescanner.core.util import CmdResult


def test_registry_lists_all_scanners(config_store):
    registry = build_scanner_registry(config_store)
    assert registry.list() == [
        "semgrep",
        "snyk",
        "clangTidy",
        "cppcheck",
        "clangStaticAnalyzer",
        "cppcheckCustom",
    ]


@pytest.mark.parametrize(
    "alias, expected",
    [
        ("clang-tidy", "clangTidy"),
        ("CLANG_TIDY", "clangTidy"),
        ("scan-build", "clangStaticAnalyzer"),
        ("cppcheck-custom", "cppcheckCustom"),
        ("Semgrep", "semgrep"),
    ],
)
def test_registry_normalizes_aliases(config_store, alias, expected):
    registry = build_scanner_registry(config_store)
    assert registry.normalize_name(alias) == expected
    assert registry.is_supported(alias)


def test_registry_creates_configured_adapter(config_store):
    registry = build_scanner_registry(config_store)
    adapter = registry.create_scanner("clang-tidy")
    assert isinstance(adapter, ClangTidyAdapter)
    assert adapter.tool_name() == "clangTidy"


def test_registry_rejects_unknown_and_disabled(config_store):
    registry = build_scanner_registry(config_store)
    with pytest.raises(UnknownScannerError):
        registry.create_scanner("pylint")

    config_store.update("cppcheck", enabled=False)
    with pytest.raises(ScannerDisabledError):
        registry.create_scanner("cppcheck")


def test_registry_selects_scanners_by_extension(config_store):
    registry = build_scanner_registry(config_store)
    names = [a.tool_name() for a in registry.get_scanners_for_file_types([".py"])]
    assert names == ["semgrep", "snyk"]
    assert any(isinstance(a, CppcheckAdapter) for a in registry.get_scanners_for_file_types(["c"]))


def test_registry_info_uses_settings(config_store):
    info = build_scanner_registry(config_store).info("cppcheck")
    assert info["name"] == "cppcheck"
    assert info["timeoutMs"] == 180000
    assert "c" in info["supportedLanguages"]
    assert build_scanner_registry(config_store).info("nope") is None


def test_check_all_installation_reports_disabled(config_store, monkeypatch):
    monkeypatch.setattr("codescanner.analyzers.base.shutil.which", lambda _: None)
    config_store.update("snyk", enabled=False)
    status = build_scanner_registry(config_store).check_all_installation()
    assert status["snyk"]["enabled"] is False
    assert status["cppcheck"] == {"name": "cppcheck", "installed": False, "enabled": True, "version": "2.0"}


# ── config store ─────────────────────────────────────────────────
def test_config_overlay_and_reload(tmp_path):
    path = tmp_path / "scanners.json"
    path.write_text(json.dumps({"cppcheck": {"timeoutMs": 1000, "path": "/opt/cppcheck"}}), encoding="utf-8")

    store = ScannerConfigStore(path)
    assert store.get("cppcheck").timeout_ms == 1000
    assert store.get("cppcheck").path == "/opt/cppcheck"
    assert store.get("cppcheck").supported_languages  # defaults kept

    path.write_text(json.dumps({"cppcheck": {"timeout_ms": 2000}}), encoding="utf-8")
    assert store.get("cppcheck").timeout_ms == 1000
    store.reload()
    assert store.get("cppcheck").timeout_ms == 2000


def test_config_invalid_json_raises(tmp_path):
    path = tmp_path / "scanners.json"
    path.write_text("{not json", encoding="utf-8")
    with pytest.raises(ConfigError):
        ScannerConfigStore(path)


def test_config_update_persists_only_updatable_fields(config_store):
    config_store.update("semgrep", timeout_ms=42, description="ignored")
    assert config_store.get("semgrep").timeout_ms == 42
    assert config_store.get("semgrep").description != "ignored"

    saved = json.loads(config_store.path.read_text(encoding="utf-8"))
    assert saved["semgrep"]["timeoutMs"] == 42
    assert ScannerConfigStore(config_store.path).get("semgrep").timeout_ms == 42


def test_config_update_unknown_scanner(config_store):
    with pytest.raises(ConfigError):
        config_store.update("pylint", enabled=False)


def test_ready_scanners_only_lists_installed(config_store, monkeypatch):
    monkeypatch.setattr("codescanner.analyzers.base.shutil.which", lambda name: f"/usr/bin/{name}" if name == "cppcheck" else None)
    monkeypatch.setattr(
        "codescanner.analyzers.base.run_cmd",
        lambda cmd, cwd, timeout_sec=60, env=None: CmdResult(0, "Cppcheck 2.13.0", ""),
    )
    assert build_scanner_registry(config_store).ready_scanners() == ["cppcheck"]
