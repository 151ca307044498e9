from __future__ import annotations

import re

from codescanner.domain.models import Finding

from .base import FindingNormalizer, NormalizationContext, RawIssue
from .severity import map_severity
from .util import to_int

CLANG_SA_SEVERITY = {"error": "high", "warning": "medium", "note": "low"}

ISSUE_PATTERNS = [
    re.compile(p, re.IGNORECASE)
    for p in (
        r"use after free",
        r"memory leak",
        r"null pointer dereference",
        r"buffer overflow",
        r"division by zero",
        r"uninitialized variable",
        r"dead assignment",
        r"unreachable code",
    )
]

_WITH_COL_RE = re.compile(r"^([^:]+):(\d+):(\d+): (warning|error): (.+)$")
_NO_COL_RE = re.compile(r"^([^:]+):(\d+): (warning|error): (.+)$")

GENERIC = "generic"


def extract_issue_type(message: str) -> str:
    for pattern in ISSUE_PATTERNS:
        m = pattern.search(message)
        if m:
            return m.group(0)
    return " ".join(message.split(" ")[:3]) or "Static Analysis Issue"


class ClangSANormalizer(FindingNormalizer):
    """Parses ``scan-build``/``clang --analyze`` diagnostics from compiler text output."""

    def tool_name(self) -> str:
        return "clangStaticAnalyzer"

    def map_severity(self, token: str | None, issue: RawIssue | None = None) -> str:
        return map_severity(CLANG_SA_SEVERITY, token, default="medium")

    def parse(self, output: str, ctx: NormalizationContext, file_hint: str = "") -> list[Finding]:
        return [self.to_finding(i, ctx) for i in self.parse_issues(output, file_hint)]

    def parse_issues(self, output: str, file_hint: str = "") -> list[RawIssue]:
        """``file_hint`` attributes unstructured analyzer lines to the file being compiled."""
        issues: list[RawIssue] = []
        for line in (output or "").splitlines():
            if not line.strip():
                continue

            m = _WITH_COL_RE.match(line)
            if m:
                file, lineno, col, severity, message = m.groups()
                issues.append(RawIssue(file, to_int(lineno), severity, "", message, column=to_int(col)))
                continue

            m = _NO_COL_RE.match(line)
            if m:
                file, lineno, severity, message = m.groups()
                issues.append(RawIssue(file, to_int(lineno), severity, "", message))
                continue

            if "analyzer" in line and ("warning" in line or "error" in line):
                issues.append(
                    RawIssue(
                        file=file_hint or "unknown",
                        line=1,
                        severity="warning",
                        rule_id=GENERIC,
                        message=line.strip(),
                        # no location in the text; line 1 stands in for "somewhere in file_hint"
                        extra={"rawOutput": line, "approximateLocation": True},
                    )
                )
        return issues

    def issue_name(self, issue: RawIssue) -> str:
        if issue.rule_id == GENERIC:
            return "Clang Static Analyzer Issue"
        return f"Clang Static Analyzer: {extract_issue_type(issue.message)}"

    def remediation(self, issue: RawIssue) -> str:
        if issue.rule_id == GENERIC:
            return "Review and fix the issue identified by Clang Static Analyzer"
        return f"Fix the {extract_issue_type(issue.message)} issue identified by Clang Static Analyzer"

    def references(self, issue: RawIssue) -> list[str]:
        refs = ["https://clang-analyzer.llvm.org/"]
        if issue.rule_id != GENERIC:
            refs.append("https://clang-analyzer.llvm.org/available_checks.html")
        return refs

    def to_finding(self, issue: RawIssue, ctx: NormalizationContext) -> Finding:
        finding = super().to_finding(issue, ctx)
        if issue.rule_id != GENERIC:
            finding.metadata["issueType"] = extract_issue_type(issue.message)
        return finding
