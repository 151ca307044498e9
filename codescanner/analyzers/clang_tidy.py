from __future__ import annotations

import json
import logging
from pathlib import Path

from codescanner.domain.models import Finding
from codescanner.normalizers.base import NormalizationContext
from codescanner.normalizers.clang_tidy_normalizer import DEFAULT_CHECKS, ClangTidyNormalizer

from .base import ScanContext, ScannerAdapter, Strategy

logger = logging.getLogger(__name__)

CXX_SUFFIXES = {".cpp", ".cc", ".cxx", ".hpp", ".hxx"}
COMPILE_DB = "compile_commands.json"


def compile_commands(source_dir: Path, files: list[Path]) -> list[dict]:
    """A minimal compilation database so clang-tidy can parse each file standalone."""
    root = source_dir.resolve()
    entries = []
    for f in files:
        f = f.resolve()
        rel = f.relative_to(root).as_posix()
        if f.suffix.lower() in CXX_SUFFIXES:
            compiler, flags = "g++", "-std=c++17 -Wall -Wextra"
        else:
            compiler, flags = "gcc", "-std=c11 -Wall -Wextra"
        obj = f"{f.stem}.o"
        entries.append(
            {
                "directory": str(root),
                "file": str(f),
                "command": f'{compiler} {flags} -c "{rel}" -o "{obj}"',
                "output": obj,
            }
        )
    return entries


class ClangTidyAdapter(ScannerAdapter):
    normalizer = ClangTidyNormalizer()

    def tool_name(self) -> str:
        return "clangTidy"

    def check_installation(self) -> bool:
        return self.probe([self.settings.path, "--version"]) is not None

    def strategies(self) -> list[Strategy]:
        return [Strategy("per-file", self._scan_files)]

    def ensure_compile_db(self, source_dir: Path, files: list[Path]) -> Path:
        db = source_dir / COMPILE_DB
        if not db.exists():
            db.write_text(json.dumps(compile_commands(source_dir, files), indent=2), encoding="utf-8")
        return db

    def _scan_files(self, ctx: ScanContext) -> list[Finding]:
        self.ensure_compile_db(ctx.source_dir, ctx.files)
        nctx = NormalizationContext(source_dir=ctx.source_dir)
        checks = self.settings.checks or DEFAULT_CHECKS

        findings: list[Finding] = []
        for f in ctx.files:
            r = self.execute(
                [
                    self.settings.path,
                    f"-checks={checks}",
                    "-p", str(ctx.source_dir.resolve()),
                    str(f.resolve()),
                    "--format-style=file",
                ],
                cwd=ctx.source_dir,
                env={"LC_ALL": "C"},
            )
            # diagnostics go to stdout, the "N warnings generated" summary to stderr
            findings.extend(self.normalizer.parse(r.output, nctx))
        return findings
