from __future__ import annotations

from pathlib import Path

from codescanner.analyzers.clang_static_analyzer import ClangStaticAnalyzerAdapter
from codescanner.analyzers.clang_tidy import ClangTidyAdapter
from codescanner.analyzers.cppcheck import CppcheckAdapter
from codescanner.analyzers.cppcheck_custom import CppcheckCustomAdapter
from codescanner.analyzers.registry import ScannerRegistry
from codescanner.analyzers.semgrep import SemgrepAdapter
from codescanner.analyzers.snyk import SnykAdapter
from codescanner.core.config import ScannerConfigStore, settings
from codescanner.services.repositories import (
    FindingRepository,
    InMemoryFindingRepository,
    InMemoryJobRepository,
    JobRepository,
    LocalFindingRepository,
    LocalJobRepository,
)
from codescanner.services.scan_service import ScanService

ADAPTERS = [
    ("semgrep", SemgrepAdapter),
    ("snyk", SnykAdapter),
    ("clangTidy", ClangTidyAdapter),
    ("cppcheck", CppcheckAdapter),
    ("clangStaticAnalyzer", ClangStaticAnalyzerAdapter),
    ("cppcheckCustom", CppcheckCustomAdapter),
]


def build_scanner_config() -> ScannerConfigStore:
    path = Path(settings.SCANNER_CONFIG_PATH) if settings.SCANNER_CONFIG_PATH else None
    return ScannerConfigStore(path)


def build_scanner_registry(config: ScannerConfigStore | None = None) -> ScannerRegistry:
    return ScannerRegistry(ADAPTERS, config or build_scanner_config())


def build_repositories() -> tuple[JobRepository, FindingRepository]:
    """Job and finding stores for the configured ``STORAGE_BACKEND``."""
    if settings.STORAGE_BACKEND == "memory":
        return InMemoryJobRepository(), InMemoryFindingRepository()
    base = Path(settings.DATA_DIR) / "scans"
    return LocalJobRepository(base), LocalFindingRepository(base)


def build_scan_service(registry: ScannerRegistry | None = None) -> ScanService:
    jobs, findings = build_repositories()
    return ScanService(registry or build_scanner_registry(), jobs, findings)
