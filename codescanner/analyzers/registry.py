from __future__ import annotations

import logging
from typing import Iterable, Type

from codescanner.core.config import ScannerConfigStore
from codescanner.core.errors import ScannerDisabledError, UnknownScannerError

from .base import ScannerAdapter

logger = logging.getLogger(__name__)

# common spellings -> registered name (keys are lower-cased)
ALIASES = {
    "clangtidy": "clangTidy",
    "clang-tidy": "clangTidy",
    "clang_tidy": "clangTidy",
    "clangtidyscanner": "clangTidy",
    "clangstaticanalyzer": "clangStaticAnalyzer",
    "clang-static-analyzer": "clangStaticAnalyzer",
    "clang_static_analyzer": "clangStaticAnalyzer",
    "clangstatic": "clangStaticAnalyzer",
    "staticanalyzer": "clangStaticAnalyzer",
    "static-analyzer": "clangStaticAnalyzer",
    "clang-analyzer": "clangStaticAnalyzer",
    "scan-build": "clangStaticAnalyzer",
    "cppcheck": "cppcheck",
    "cpp-check": "cppcheck",
    "cpp_check": "cppcheck",
    "cppc": "cppcheck",
    "cppcheckcustom": "cppcheckCustom",
    "cppcheck-custom": "cppcheckCustom",
    "cppcheck_custom": "cppcheckCustom",
    "semgrep": "semgrep",
    "snyk": "snyk",
}


class ScannerRegistry:
    """
    Maps tool names to adapter classes and builds adapters from the
    current ``ScannerConfigStore`` settings.
    """

    def __init__(self, adapters: Iterable[tuple[str, Type[ScannerAdapter]]], config: ScannerConfigStore):
        self._by_name = dict(adapters)
        self.config = config

    def list(self) -> list[str]:
        return list(self._by_name.keys())

    def normalize_name(self, name: str) -> str:
        key = (name or "").strip()
        if key in self._by_name:
            return key
        lowered = key.lower()
        if lowered in ALIASES:
            return ALIASES[lowered]
        # case-insensitive match against registered names
        for registered in self._by_name:
            if registered.lower() == lowered:
                return registered
        return key

    def is_supported(self, name: str) -> bool:
        return self.normalize_name(name) in self._by_name

    def create_scanner(self, name: str) -> ScannerAdapter:
        canonical = self.normalize_name(name)
        adapter_cls = self._by_name.get(canonical)
        if adapter_cls is None:
            raise UnknownScannerError(name)

        settings = self.config.get(canonical)
        if settings is None or not settings.enabled:
            raise ScannerDisabledError(canonical)
        return adapter_cls(settings)

    def get_scanners_for_file_types(self, extensions: Iterable[str]) -> list[ScannerAdapter]:
        wanted = {e.lower() if e.startswith(".") else f".{e.lower()}" for e in extensions}
        out: list[ScannerAdapter] = []
        for name in self._by_name:
            settings = self.config.get(name)
            if settings is None or not settings.enabled:
                continue
            if wanted & set(settings.extensions):
                out.append(self.create_scanner(name))
        return out

    def info(self, name: str) -> dict | None:
        canonical = self.normalize_name(name)
        settings = self.config.get(canonical)
        if canonical not in self._by_name or settings is None:
            return None
        return {
            "name": canonical,
            "description": settings.description,
            "version": settings.version,
            "supportedLanguages": list(settings.supported_languages),
            "website": settings.website,
            "enabled": settings.enabled,
            "timeoutMs": settings.timeout_ms,
        }

    def check_all_installation(self) -> dict[str, dict]:
        results: dict[str, dict] = {}
        for name in self._by_name:
            try:
                adapter = self.create_scanner(name)
            except ScannerDisabledError as e:
                results[name] = {"name": name, "installed": False, "enabled": False, "error": str(e)}
                continue
            installed = adapter.check_installation()
            results[name] = {
                "name": name,
                "installed": installed,
                "enabled": True,
                "version": adapter.settings.version,
            }
            logger.info("Scanner %s installed=%s", name, installed, extra={"tool": name})
        return results

    def ready_scanners(self, status: dict[str, dict] | None = None) -> list[str]:
        status = self.check_all_installation() if status is None else status
        return [name for name, r in status.items() if r["installed"]]
