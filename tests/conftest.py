from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from codescanner.api.scan_routes import get_scan_service
from codescanner.core.config import ScannerConfigStore, settings
from codescanner.main import app


@pytest.fixture(autouse=True)
def _use_tmp_data(tmp_path, monkeypatch):
    """Redirect all scan data to a temp directory so tests never touch real data."""
    monkeypatch.setattr(settings, "DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setattr(settings, "SCANNER_CONFIG_PATH", None)


@pytest.fixture
def client():
    get_scan_service.cache_clear()
    yield TestClient(app)
    app.dependency_overrides.clear()
    get_scan_service.cache_clear()


@pytest.fixture
def src_dir(tmp_path) -> Path:
    """A small C tree with one obvious strcpy overflow."""
    d = tmp_path / "src"
    d.mkdir()
    (d / "main.c").write_text(
        "#include <string.h>\n"
        "\n"
        "int main(void) {\n"
        "    char buf[8];\n"
        '    strcpy(buf, "this string is far too long");\n'
        "    return 0;\n"
        "}\n",
        encoding="utf-8",
    )
    return d


@pytest.fixture
def config_store(tmp_path) -> ScannerConfigStore:
    return ScannerConfigStore(tmp_path / "scanners.json")
