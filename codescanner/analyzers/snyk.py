from __future__ import annotations

import logging

from codescanner.domain.models import Finding
from codescanner.normalizers.base import NormalizationContext
from codescanner.normalizers.snyk_normalizer import SnykNormalizer

from .base import ScanContext, ScannerAdapter, Strategy

logger = logging.getLogger(__name__)

PER_FILE_LIMIT = 3


class SnykAdapter(ScannerAdapter):
    """Snyk Code (``snyk code test``). The CLI must already be authenticated."""

    normalizer = SnykNormalizer()

    def tool_name(self) -> str:
        return "snyk"

    def check_installation(self) -> bool:
        if self.probe([self.settings.path, "--version"], timeout_sec=10) is None:
            return False
        # auth state is informational only; an unauthenticated CLI fails at scan time
        if self.probe([self.settings.path, "whoami", "--experimental"], timeout_sec=10) is None:
            logger.warning("Snyk CLI found but authentication could not be confirmed")
        return True

    def strategies(self) -> list[Strategy]:
        return [
            Strategy("json", lambda ctx: self._code_test(ctx, ["--json"])),
            Strategy("json-low-threshold", lambda ctx: self._code_test(ctx, ["--json", "--severity-threshold=low"])),
            Strategy("sarif", lambda ctx: self._code_test(ctx, ["--sarif"])),
            Strategy("per-file", self._scan_files),
        ]

    def _code_test(self, ctx: ScanContext, flags: list[str]) -> list[Finding]:
        # snyk exits 1 when issues are found; the report is still on stdout
        r = self.execute(
            [self.settings.path, "code", "test", str(ctx.source_dir.resolve()), *flags],
            cwd=ctx.source_dir,
        )
        return self._parse(r.stdout, ctx)

    def _scan_files(self, ctx: ScanContext) -> list[Finding]:
        findings: list[Finding] = []
        for f in ctx.files[:PER_FILE_LIMIT]:
            r = self.execute(
                [self.settings.path, "code", "test", str(f.resolve()), "--json"],
                cwd=f.parent,
            )
            findings.extend(self._parse(r.stdout, ctx))
        return findings

    def _parse(self, output: str, ctx: ScanContext) -> list[Finding]:
        return self.normalizer.parse(output, NormalizationContext(source_dir=ctx.source_dir))
