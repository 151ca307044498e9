from __future__ import annotations

import logging
import re

from codescanner.domain.models import Finding

from .base import FindingNormalizer, NormalizationContext, RawIssue
from .severity import map_severity
from .util import to_int, xml_attrs

logger = logging.getLogger(__name__)

CPPCHECK_SEVERITY = {
    "error": "high",
    "warning": "medium",
    "style": "low",
    "performance": "low",
    "portability": "low",
    "information": "low",
    "debug": "low",
}

# keyword (matched against lower-cased id + message) -> advice
REMEDIATIONS = {
    "doublefree": "Ensure memory is not freed multiple times. Set pointers to NULL after freeing.",
    "deallocuse": "Do not access memory after it has been freed. Check pointer validity.",
    "memoryleak": "Ensure all allocated memory is properly freed when no longer needed.",
    "arrayindexoutofbounds": "Add proper bounds checking before accessing arrays.",
    "bufferaccessoutofbounds": "Validate buffer bounds before access.",
    "uninitvar": "Initialize all variables before use.",
    "nullpointer": "Check for null pointers before dereferencing.",
    "unusedfunction": "Remove unused functions or mark them as used if needed.",
    "unusedallocatedmemory": "Use allocated memory or free it if not needed.",
    "constvariable": "Declare variables as const when they are not modified.",
}

TEMPLATE = "{file}:{line}:{severity}:{id}:{message}"

_ERROR_BLOCK_RE = re.compile(r"<error\b[^>]*?(?:/>|>[\s\S]*?</error>)")
_ERROR_TAG_RE = re.compile(r"<error\b[^>]*>")
_LOCATION_TAG_RE = re.compile(r"<location\b[^>]*>")

# file:line:severity:id:message  (the --template above)
_TEMPLATE_RE = re.compile(r"^([^:]+):(\d+):([A-Za-z]+):([^:\s]+):(.+)$")
# [file:line]: (severity) message  (legacy default format)
_LEGACY_RE = re.compile(r"^\[([^:]+):(\d+)\]: \((\w+)\) (.+)$")
# file:line[:col]: severity: message [id]
_GCC_RE = re.compile(r"^([^:]+):(\d+):(?:(\d+):)? (\w+): (.+?)(?: \[(\w+)\])?$")

_NOISE = ("Include file:", "not found", "checkers:")


class CppcheckNormalizer(FindingNormalizer):
    label = "Cppcheck"

    def tool_name(self) -> str:
        return "cppcheck"

    def map_severity(self, token: str | None, issue: RawIssue | None = None) -> str:
        return map_severity(CPPCHECK_SEVERITY, token, default="medium")

    def parse(self, output: str, ctx: NormalizationContext) -> list[Finding]:
        if not output or not output.strip():
            return []
        if "<error" in output and ("<results" in output or "<location" in output):
            issues = self.parse_xml(output)
        else:
            issues = self.parse_text(output)
        return [self.to_finding(i, ctx) for i in issues]

    # ── XML (--xml --xml-version=2) ──────────────────────────
    def parse_xml(self, xml: str) -> list[RawIssue]:
        issues: list[RawIssue] = []
        for block in _ERROR_BLOCK_RE.findall(xml):
            issue = self._parse_error_block(block)
            if issue:
                issues.append(issue)
        return issues

    def _parse_error_block(self, block: str) -> RawIssue | None:
        head = _ERROR_TAG_RE.search(block)
        loc = _LOCATION_TAG_RE.search(block)
        if not head or not loc:
            return None

        attrs = xml_attrs(head.group(0))
        where = xml_attrs(loc.group(0))
        rule_id, severity, msg = attrs.get("id"), attrs.get("severity"), attrs.get("msg")
        if not rule_id or not severity or not msg or "file" not in where or "line" not in where:
            return None

        if severity == "information" and any(n in msg for n in _NOISE):
            return None

        return RawIssue(
            file=where["file"],
            line=to_int(where["line"]),
            column=to_int(where.get("column")),
            severity=severity,
            rule_id=rule_id,
            message=attrs.get("verbose") or msg,
            cwe=attrs.get("cwe"),
        )

    # ── Text (template / legacy / gcc style) ─────────────────
    def parse_text(self, output: str) -> list[RawIssue]:
        issues: list[RawIssue] = []
        for line in output.splitlines():
            line = line.strip()
            if not line or line.startswith("Checking ") or any(n in line for n in _NOISE):
                continue

            m = _TEMPLATE_RE.match(line)
            if m:
                file, lineno, severity, rule_id, message = m.groups()
                issues.append(RawIssue(file, to_int(lineno), severity, rule_id.strip(), message.strip()))
                continue

            m = _LEGACY_RE.match(line)
            if m:
                file, lineno, severity, message = m.groups()
                issues.append(RawIssue(file, to_int(lineno), severity, "general", message.strip()))
                continue

            m = _GCC_RE.match(line)
            if m:
                file, lineno, col, severity, message, rule_id = m.groups()
                if severity.lower() == "note":
                    continue
                issues.append(
                    RawIssue(
                        file,
                        to_int(lineno),
                        severity,
                        rule_id or "general",
                        message.strip(),
                        column=to_int(col),
                    )
                )

        logger.debug("Parsed %d cppcheck diagnostics from text output", len(issues))
        return issues

    def issue_name(self, issue: RawIssue) -> str:
        return f"{self.label}: {format_issue_name(issue.rule_id)}"

    def remediation(self, issue: RawIssue) -> str:
        text = f"{issue.rule_id} {issue.message}".lower()
        for pattern, advice in REMEDIATIONS.items():
            if pattern in text:
                return advice
        return f"Fix the {issue.rule_id or 'issue'} according to Cppcheck recommendations."

    def references(self, issue: RawIssue) -> list[str]:
        return ["https://cppcheck.sourceforge.io/", "https://cppcheck.sourceforge.io/manual.pdf"]

    def to_finding(self, issue: RawIssue, ctx: NormalizationContext) -> Finding:
        finding = super().to_finding(issue, ctx)
        finding.metadata["cppcheckId"] = issue.rule_id
        return finding


class CppcheckCustomNormalizer(CppcheckNormalizer):
    """Same grammar as cppcheck; findings are attributed to the Docker variant."""

    label = "Cppcheck Custom"

    def __init__(self, docker_image: str | None = None):
        self.docker_image = docker_image

    def tool_name(self) -> str:
        return "cppcheckCustom"

    def references(self, issue: RawIssue) -> list[str]:
        return ["https://cppcheck.sourceforge.io/", "https://github.com/neszt/cppcheck-docker"]

    def to_finding(self, issue: RawIssue, ctx: NormalizationContext) -> Finding:
        finding = super().to_finding(issue, ctx)
        if self.docker_image:
            finding.metadata["dockerImage"] = self.docker_image
        return finding


def format_issue_name(rule_id: str) -> str:
    """``bufferAccessOutOfBounds`` -> ``Buffer Access Out Of Bounds``."""
    if not rule_id or rule_id == "general":
        return "Code Issue"
    spaced = re.sub(r"([a-z0-9])([A-Z])", r"\1 \2", rule_id)
    return " ".join(w.capitalize() for w in spaced.split())
