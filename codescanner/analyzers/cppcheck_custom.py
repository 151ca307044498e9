from __future__ import annotations

import logging
from pathlib import Path

from codescanner.core.config import ScannerSettings
from codescanner.domain.models import Finding
from codescanner.normalizers.base import NormalizationContext
from codescanner.normalizers.cppcheck_normalizer import CppcheckCustomNormalizer

from .base import ScanContext, ScannerAdapter, Strategy

logger = logging.getLogger(__name__)

RULE_SUFFIXES = (".xml", ".rule", ".cfg")
DEFAULT_RULE_FILE = "default-buffer-overflow.xml"
DEFAULT_RULE = """<?xml version="1.0" encoding="UTF-8"?>
<rule version="1">
  <tokenlist>strcpy ( %var% , %str% )</tokenlist>
  <message>
    <id>customBufferOverflow</id>
    <severity>error</severity>
    <msg>Potential buffer overflow with strcpy. Use strncpy instead.</msg>
  </message>
</rule>
"""

SRC_MOUNT = "/src"
RULES_MOUNT = "/rules"
OUTPUT_MOUNT = "/output"


class CppcheckCustomAdapter(ScannerAdapter):
    """Cppcheck run inside a container, with user supplied rule files mounted at /rules."""

    def __init__(self, settings: ScannerSettings):
        super().__init__(settings)
        self.normalizer = CppcheckCustomNormalizer(settings.docker_image)

    def tool_name(self) -> str:
        return "cppcheckCustom"

    @property
    def rules_dir(self) -> Path:
        return Path(self.settings.rules or "rules/cppcheck-custom")

    def rule_files(self) -> list[str]:
        if not self.rules_dir.is_dir():
            return []
        return sorted(p.name for p in self.rules_dir.iterdir() if p.suffix in RULE_SUFFIXES)

    def ensure_default_rules(self) -> None:
        if self.rules_dir.is_dir():
            return
        self.rules_dir.mkdir(parents=True, exist_ok=True)
        (self.rules_dir / DEFAULT_RULE_FILE).write_text(DEFAULT_RULE, encoding="utf-8")
        logger.info("Created default cppcheck rule in %s", self.rules_dir)

    def check_installation(self) -> bool:
        docker = self.settings.docker_path
        if self.probe([docker, "--version"]) is None:
            logger.info("Docker not available for %s", self.tool_name())
            return False

        images = self.probe([docker, "images", self.settings.docker_image or ""])
        if images is None or (self.settings.docker_image or "") not in images:
            logger.info("Image %s not present locally, it will be pulled on first use", self.settings.docker_image)

        try:
            self.ensure_default_rules()
        except OSError as e:
            logger.warning("Could not create default rules: %s", e)
        return True

    def strategies(self) -> list[Strategy]:
        return [
            Strategy("custom-rules", self._scan_custom_rules),
            Strategy("builtin-rules", self._scan_builtin),
            Strategy("basic", self._scan_basic),
        ]

    def _docker(self, ctx: ScanContext, cppcheck_args: list[str], with_rules: bool = False) -> list[Finding]:
        source = ctx.source_dir.resolve()
        output = ctx.work_dir.resolve()
        xml_name = f"{self.tool_name()}-results.xml"
        xml_path = output / xml_name
        if xml_path.exists():
            xml_path.unlink()

        cmd = [self.settings.docker_path, "run", "--rm", "-v", f"{source}:{SRC_MOUNT}"]
        if with_rules:
            cmd += ["-v", f"{self.rules_dir.resolve()}:{RULES_MOUNT}"]
        cmd += ["-v", f"{output}:{OUTPUT_MOUNT}", self.settings.docker_image or "", "cppcheck"]
        cmd += cppcheck_args + [f"--output-file={OUTPUT_MOUNT}/{xml_name}", SRC_MOUNT]

        r = self.execute(cmd, cwd=ctx.work_dir)
        ectx = NormalizationContext(source_dir=ctx.source_dir, container_root=SRC_MOUNT)
        if xml_path.exists():
            return self.normalizer.parse(xml_path.read_text(encoding="utf-8", errors="replace"), ectx)
        logger.info("%s produced no XML report (exit %s)", self.tool_name(), r.exit_code)
        return self.normalizer.parse(r.output, ectx)

    def _scan_custom_rules(self, ctx: ScanContext) -> list[Finding]:
        rules = self.rule_files()
        if not rules:
            logger.info("No custom rule files in %s", self.rules_dir)
            return []
        args = [f"--rule-file={RULES_MOUNT}/{name}" for name in rules]
        return self._docker(ctx, args + ["--xml", "--xml-version=2", "--enable=all"], with_rules=True)

    def _scan_builtin(self, ctx: ScanContext) -> list[Finding]:
        return self._docker(ctx, ["--xml", "--xml-version=2", "--enable=all"])

    def _scan_basic(self, ctx: ScanContext) -> list[Finding]:
        return self._docker(ctx, ["--xml", "--enable=error,warning"])
