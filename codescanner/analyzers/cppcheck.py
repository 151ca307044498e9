from __future__ import annotations

import logging
import re
from pathlib import Path

from codescanner.domain.models import Finding
from codescanner.normalizers.base import NormalizationContext
from codescanner.normalizers.cppcheck_normalizer import TEMPLATE, CppcheckNormalizer

from .base import ScanContext, ScannerAdapter, Strategy

logger = logging.getLogger(__name__)

_VERSION_RE = re.compile(r"Cppcheck\s+(\d+\.\d+)")


class CppcheckAdapter(ScannerAdapter):
    normalizer = CppcheckNormalizer()

    def tool_name(self) -> str:
        return "cppcheck"

    def check_installation(self) -> bool:
        out = self.probe([self.settings.path, "--version"])
        if out is None:
            return False
        m = _VERSION_RE.search(out)
        if not m:
            logger.warning("Unexpected cppcheck version output: %s", out.strip()[:80])
            return False
        logger.info("Cppcheck version %s found", m.group(1))
        return True

    def strategies(self) -> list[Strategy]:
        return [
            Strategy("xml", self._scan_xml),
            Strategy("template", self._scan_template),
        ]

    def _scan_xml(self, ctx: ScanContext) -> list[Finding]:
        xml_path = (ctx.work_dir / f"{self.tool_name()}-results.xml").resolve()
        # a report left by an earlier run must not pass for this one
        xml_path.unlink(missing_ok=True)
        r = self.execute(
            [
                self.settings.path,
                "--enable=all",
                "--xml",
                "--xml-version=2",
                f"--output-file={xml_path}",
                str(ctx.source_dir.resolve()),
            ],
            cwd=ctx.source_dir,
        )
        if xml_path.exists():
            return self.normalizer.parse(xml_path.read_text(encoding="utf-8", errors="replace"), self._ctx(ctx))
        # older cppcheck without --output-file writes the XML report to stderr
        return self.normalizer.parse(r.stderr, self._ctx(ctx))

    def _scan_template(self, ctx: ScanContext) -> list[Finding]:
        r = self.execute(
            [self.settings.path, "--enable=all", f"--template={TEMPLATE}", str(ctx.source_dir.resolve())],
            cwd=ctx.source_dir,
        )
        return self.normalizer.parse(r.stderr or r.stdout, self._ctx(ctx))

    @staticmethod
    def _ctx(ctx: ScanContext) -> NormalizationContext:
        return NormalizationContext(source_dir=Path(ctx.source_dir))
