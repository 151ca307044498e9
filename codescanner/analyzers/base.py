from __future__ import annotations

import json
import logging
import shutil
import subprocess
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Mapping, Sequence

from codescanner.core.config import ScannerSettings
from codescanner.core.errors import AdapterParseFailure, AdapterTimeout
from codescanner.core.util import CmdResult, find_source_files, run_cmd
from codescanner.domain.models import AdapterResult, Finding, Summary

logger = logging.getLogger(__name__)


@dataclass
class ScanContext:
    source_dir: Path
    files: list[Path]
    # directory of the result artifact; adapters may put scratch files here
    work_dir: Path
    extra: dict = field(default_factory=dict)


@dataclass
class Strategy:
    """One way of invoking a tool and parsing what it prints."""

    name: str
    run: Callable[[ScanContext], list[Finding]]


class ScannerAdapter(ABC):
    """
    Wraps one external static-analysis tool.

    Subclasses provide ``check_installation`` and an ordered list of
    strategies. ``scan_directory`` enumerates eligible files, tries each
    strategy until one yields findings, and writes the result artifact.
    """

    def __init__(self, settings: ScannerSettings):
        self.settings = settings
        # monotonic time by which the current scan_directory call must finish
        self.deadline: float | None = None

    @abstractmethod
    def tool_name(self) -> str: ...

    @abstractmethod
    def check_installation(self) -> bool: ...

    @abstractmethod
    def strategies(self) -> list[Strategy]: ...

    @property
    def timeout_ms(self) -> int:
        return self.settings.timeout_ms

    @property
    def timeout_sec(self) -> float:
        return self.settings.timeout_ms / 1000

    # ── subprocess boundary ──────────────────────────────────
    def execute(
        self,
        cmd: Sequence[str],
        cwd: Path,
        timeout_sec: float | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CmdResult:
        """Run ``cmd``; a timeout surfaces as ``AdapterTimeout``.

        Inside ``scan_directory`` the timeout is clamped to what is left of the
        adapter's budget, so a worker abandoned by the orchestrator stops at its
        next subprocess instead of starting new ones.
        """
        requested = timeout_sec if timeout_sec is not None else self.timeout_sec
        timeout = requested
        if self.deadline is not None:
            timeout = min(requested, self.check_deadline())
        try:
            return run_cmd(cmd, cwd=cwd, timeout_sec=timeout, env=env)
        except subprocess.TimeoutExpired as e:
            raise AdapterTimeout(self.tool_name(), int(requested * 1000)) from e

    def check_deadline(self) -> float:
        """Seconds left of the current scan; raises ``AdapterTimeout`` when none are."""
        if self.deadline is None:
            return self.timeout_sec
        remaining = self.deadline - time.monotonic()
        if remaining <= 0:
            raise AdapterTimeout(self.tool_name(), self.timeout_ms)
        return remaining

    def probe(self, cmd: Sequence[str], expect: str | None = None, timeout_sec: float = 30) -> str | None:
        """Run a version/help probe. Returns its output, or None if unusable."""
        if not cmd or shutil.which(cmd[0]) is None:
            return None
        try:
            r = run_cmd(cmd, cwd=Path.cwd(), timeout_sec=timeout_sec)
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("%s installation check failed: %s", self.tool_name(), e)
            return None
        if r.exit_code != 0:
            return None
        if expect and expect not in r.output:
            return None
        return r.output

    # ── scanning ─────────────────────────────────────────────
    def scan_directory(self, source_dir: Path, output_path: Path) -> AdapterResult:
        tool = self.tool_name()
        source_dir = Path(source_dir)
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        files = find_source_files(source_dir, self.settings.extensions)
        if not files:
            logger.info("No eligible files for %s in %s", tool, source_dir, extra={"tool": tool})
            result = AdapterResult.empty(tool, self.settings.version)
            self.write_artifact(result, output_path)
            return result

        ctx = ScanContext(source_dir=source_dir, files=files, work_dir=output_path.parent)
        self.deadline = time.monotonic() + self.timeout_sec
        try:
            findings = self._run_strategies(ctx)
        finally:
            self.deadline = None

        result = AdapterResult(
            scanner=tool,
            vulnerabilities=findings,
            summary=Summary.from_findings(findings),
            metadata={
                "scannedFiles": len(files),
                "totalFiles": len(files),
                "tool": tool,
                "version": self.settings.version,
            },
        )
        self.write_artifact(result, output_path)
        return result

    def _run_strategies(self, ctx: ScanContext) -> list[Finding]:
        tool = self.tool_name()
        findings: list[Finding] = []
        for strategy in self.strategies():
            self.check_deadline()
            logger.info("%s: trying strategy %s", tool, strategy.name, extra={"tool": tool})
            try:
                findings = strategy.run(ctx)
            except AdapterTimeout:
                raise
            except AdapterParseFailure as e:
                # indistinguishable from "no findings" to callers; only the log tells them apart
                logger.warning("%s strategy %s: unparseable output: %s", tool, strategy.name, e, extra={"tool": tool})
                continue
            except Exception as e:
                logger.warning("%s strategy %s failed: %s", tool, strategy.name, e, extra={"tool": tool})
                continue
            if findings:
                logger.info(
                    "%s: strategy %s found %d issues", tool, strategy.name, len(findings), extra={"tool": tool}
                )
                break
        return findings

    @staticmethod
    def write_artifact(result: AdapterResult, output_path: Path) -> None:
        output_path.write_text(json.dumps(result.to_dict(), indent=2), encoding="utf-8")
