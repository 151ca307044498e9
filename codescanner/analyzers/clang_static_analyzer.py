from __future__ import annotations

import logging
import shutil
from pathlib import Path

from codescanner.core.config import ScannerSettings
from codescanner.domain.models import Finding
from codescanner.normalizers.base import NormalizationContext
from codescanner.normalizers.clang_sa_normalizer import ClangSANormalizer

from .base import ScanContext, ScannerAdapter, Strategy

logger = logging.getLogger(__name__)

BUILD_FILES = ("Makefile", "makefile", "CMakeLists.txt", "build.sh")
PER_FILE_LIMIT = 5
PER_FILE_TIMEOUT_SEC = 30


class ClangStaticAnalyzerAdapter(ScannerAdapter):
    """Clang Static Analyzer driven through ``scan-build``."""

    normalizer = ClangSANormalizer()

    def __init__(self, settings: ScannerSettings):
        super().__init__(settings)
        self.clang_path = settings.clang_path or "clang"

    def tool_name(self) -> str:
        return "clangStaticAnalyzer"

    def check_installation(self) -> bool:
        if self.probe([self.settings.path, "--help"], expect="scan-build") is None:
            return False
        out = self.probe([self.clang_path, "--version"], expect="clang version")
        if out is None:
            return False
        logger.info("Found %s", out.splitlines()[0])
        return True

    def strategies(self) -> list[Strategy]:
        return [
            Strategy("make", self._scan_make),
            Strategy("per-file", self._scan_files),
            Strategy("batch-compile", self._scan_batch),
        ]

    def _report_dir(self, ctx: ScanContext) -> Path:
        d = ctx.work_dir / "clang-static-analyzer-temp"
        d.mkdir(parents=True, exist_ok=True)
        return d

    def _scan_make(self, ctx: ScanContext) -> list[Finding]:
        if not any((ctx.source_dir / name).exists() for name in BUILD_FILES):
            return []
        try:
            r = self.execute(
                [self.settings.path, "-o", str(self._report_dir(ctx).resolve()), "make"],
                cwd=ctx.source_dir,
            )
        finally:
            shutil.rmtree(ctx.work_dir / "clang-static-analyzer-temp", ignore_errors=True)
        return self.normalizer.parse(r.output, NormalizationContext(source_dir=ctx.source_dir))

    def _scan_files(self, ctx: ScanContext) -> list[Finding]:
        nctx = NormalizationContext(source_dir=ctx.source_dir)
        findings: list[Finding] = []
        try:
            for f in ctx.files[:PER_FILE_LIMIT]:
                r = self.execute(
                    [self.settings.path, "-o", str(self._report_dir(ctx).resolve()), self.clang_path, "-c", str(f.resolve())],
                    cwd=ctx.work_dir,
                    timeout_sec=PER_FILE_TIMEOUT_SEC,
                )
                findings.extend(self.normalizer.parse(r.output, nctx, file_hint=str(f.resolve())))
        finally:
            shutil.rmtree(ctx.work_dir / "clang-static-analyzer-temp", ignore_errors=True)
        return findings

    def _scan_batch(self, ctx: ScanContext) -> list[Finding]:
        c_files = [str(f.resolve()) for f in ctx.files if f.suffix == ".c"]
        if not c_files:
            return []
        try:
            r = self.execute(
                [self.settings.path, "-o", str(self._report_dir(ctx).resolve()), self.clang_path, "-c", *c_files],
                cwd=ctx.work_dir,
            )
        finally:
            shutil.rmtree(ctx.work_dir / "clang-static-analyzer-temp", ignore_errors=True)
        return self.normalizer.parse(r.output, NormalizationContext(source_dir=ctx.source_dir))
