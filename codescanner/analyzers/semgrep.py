from __future__ import annotations

import logging
import shutil
from pathlib import Path

from codescanner.domain.models import Finding
from codescanner.normalizers.base import NormalizationContext
from codescanner.normalizers.semgrep_normalizer import SemgrepNormalizer

from .base import ScanContext, ScannerAdapter, Strategy

logger = logging.getLogger(__name__)

SRC_MOUNT = "/src"
RULES_MOUNT = "/rules"
OUTPUT_MOUNT = "/output"


class SemgrepAdapter(ScannerAdapter):
    """
    Semgrep, either from a local install or from the ``returntocorp/semgrep``
    image. Rules come from ``settings.rules`` when set, ``--config auto`` otherwise.
    """

    normalizer = SemgrepNormalizer()

    def tool_name(self) -> str:
        return "semgrep"

    def _native_available(self) -> bool:
        return shutil.which(self.settings.path) is not None

    def check_installation(self) -> bool:
        if self._native_available() and self.probe([self.settings.path, "--version"]) is not None:
            return True

        # fall back to the container image
        if self.probe([self.settings.docker_path, "--version"]) is None:
            logger.info("Neither semgrep nor docker is available")
            return False
        images = self.probe([self.settings.docker_path, "images", self.settings.docker_image or ""])
        if images is None or (self.settings.docker_image or "") not in images:
            logger.info("Image %s not present locally, it will be pulled on first use", self.settings.docker_image)
        return True

    def strategies(self) -> list[Strategy]:
        strategies = []
        if self._native_available():
            strategies.append(Strategy("native", self._scan_native))
        strategies.append(Strategy("docker", self._scan_docker))
        return strategies

    def _scan_native(self, ctx: ScanContext) -> list[Finding]:
        config = self.settings.rules or "auto"
        r = self.execute(
            [self.settings.path, "--config", config, "--json", "--quiet", str(ctx.source_dir.resolve())],
            cwd=ctx.source_dir,
        )
        return self.normalizer.parse(r.stdout, NormalizationContext(source_dir=ctx.source_dir))

    def _scan_docker(self, ctx: ScanContext) -> list[Finding]:
        output = ctx.work_dir.resolve()
        json_name = "semgrep-raw.json"
        cmd = [self.settings.docker_path, "run", "--rm", "-v", f"{ctx.source_dir.resolve()}:{SRC_MOUNT}"]
        if self.settings.rules and Path(self.settings.rules).exists():
            cmd += ["-v", f"{Path(self.settings.rules).resolve()}:{RULES_MOUNT}"]
            config = RULES_MOUNT
        else:
            config = "auto"
        cmd += [
            "-v", f"{output}:{OUTPUT_MOUNT}",
            self.settings.docker_image or "returntocorp/semgrep",
            "semgrep", "--config", config, SRC_MOUNT,
            "--json", "--output", f"{OUTPUT_MOUNT}/{json_name}",
        ]
        r = self.execute(cmd, cwd=ctx.work_dir)

        raw = output / json_name
        text = raw.read_text(encoding="utf-8", errors="replace") if raw.exists() else r.stdout
        return self.normalizer.parse(text, NormalizationContext(source_dir=ctx.source_dir, container_root=SRC_MOUNT))
