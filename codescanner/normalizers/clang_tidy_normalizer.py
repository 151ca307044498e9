from __future__ import annotations

import re

from codescanner.domain.models import Finding

from .base import FindingNormalizer, NormalizationContext, RawIssue
from .util import to_int

DEFAULT_CHECKS = (
    "bugprone-*,clang-analyzer-*,cppcoreguidelines-*,performance-*,readability-*,"
    "-readability-magic-numbers,-cppcoreguidelines-avoid-magic-numbers"
)

SECURITY_KEYWORDS = (
    "security", "buffer", "overflow", "underflow", "memory", "use-after",
    "double-free", "null-dereference", "uninitialized", "bounds",
)

REMEDIATIONS = {
    "bugprone-use-after-move": "Don't use objects after they have been moved. Initialize the variable after the move operation.",
    "bugprone-sizeof-expression": "Check your sizeof expressions carefully. Make sure you're getting the size of the intended type.",
    "bugprone-use-after-free": "Don't access memory after it has been freed. Set pointers to NULL after freeing.",
    "bugprone-infinite-loop": "Ensure loop conditions can eventually become false to prevent infinite loops.",
    "cppcoreguidelines-no-malloc": "Use C++ memory management (new/delete) or smart pointers instead of malloc/free.",
    "cppcoreguidelines-owning-memory": "Use RAII and smart pointers to manage resource ownership.",
    "cppcoreguidelines-pro-bounds-array-to-pointer-decay": "Use containers or gsl::span instead of raw arrays.",
    "clang-analyzer-security.insecureAPI": "Use secure alternatives to the insecure API functions.",
    "clang-analyzer-deadcode": "Remove or fix the dead code to improve maintainability.",
    "clang-analyzer-cplusplus.NewDelete": "Ensure proper matching of new and delete operations to prevent memory leaks.",
    "clang-analyzer-unix.Malloc": "Ensure proper malloc/free handling to prevent memory leaks.",
    "performance-unnecessary-copy-initialization": "Use const references or move semantics to avoid unnecessary copies.",
    "performance-for-range-copy": "Use const references in range-based for loops to avoid copying.",
    "readability-inconsistent-declaration-parameter-name": "Use consistent parameter names between declaration and definition.",
    "readability-misleading-indentation": "Fix indentation to match the intended control flow.",
}

CATEGORY_REMEDIATIONS = (
    ("performance", "Optimize the code according to the suggestions for better performance."),
    ("readability", "Improve code readability by following the suggested guidelines."),
    ("bugprone", "Fix the potential bug to improve code reliability."),
    ("cppcoreguidelines", "Follow C++ Core Guidelines recommendations for better code quality."),
)

GENERIC_REMEDIATION = "Review the issue and fix according to C++ best practices."

# file:line:col: level: message [check-name]
_DIAG_RE = re.compile(r"^(.+?):(\d+):(\d+):\s+(warning|error|note):\s+(.+?)\s+\[([^\]]+)\]$")
_PLAIN_RE = re.compile(r"^(.+?):(\d+):(\d+):\s+(warning|error):\s+(.+)$")
_CHECK_PREFIX_RE = re.compile(r"^(bugprone|clang-analyzer|cppcoreguidelines|performance|readability)-")


def is_security_check(check: str) -> bool:
    c = check.lower()
    return any(k in c for k in SECURITY_KEYWORDS)


def is_performance_check(check: str) -> bool:
    return "performance" in check.lower()


class ClangTidyNormalizer(FindingNormalizer):
    """Parses clang-tidy diagnostics; the source line after each diagnostic becomes the snippet."""

    def tool_name(self) -> str:
        return "clangTidy"

    def parse(self, output: str, ctx: NormalizationContext) -> list[Finding]:
        return [self.to_finding(i, ctx) for i in self.parse_issues(output)]

    def parse_issues(self, output: str) -> list[RawIssue]:
        if not output:
            return []

        issues: list[RawIssue] = []
        lines = output.splitlines()
        i = 0
        while i < len(lines):
            line = lines[i].strip()
            i += 1
            if not line:
                continue

            m = _DIAG_RE.match(line)
            if m:
                file, lineno, col, level, message, check = m.groups()
            else:
                m = _PLAIN_RE.match(line)
                if not m:
                    continue
                file, lineno, col, level, message = m.groups()
                check = "clang-tidy-check"

            if level == "note":
                continue

            snippet = ""
            if i < len(lines):
                nxt = lines[i].strip()
                if nxt and not _DIAG_RE.match(nxt) and not _PLAIN_RE.match(nxt):
                    snippet = nxt
                    # skip the caret marker line too
                    i += 2 if i + 1 < len(lines) and "^" in lines[i + 1] else 1

            issues.append(
                RawIssue(
                    file=file,
                    line=to_int(lineno),
                    column=to_int(col),
                    severity=level,
                    rule_id=check,
                    message=message.strip(),
                    snippet=snippet,
                )
            )
        return issues

    def map_severity(self, token: str | None, issue: RawIssue | None = None) -> str:
        if (token or "").lower() == "error":
            return "high"
        check = issue.rule_id if issue else ""
        if check and (is_security_check(check) or is_performance_check(check)):
            return "medium"
        return "low"

    def issue_type(self, issue: RawIssue) -> str:
        c = issue.rule_id.lower()
        if any(k in c for k in ("security", "buffer", "overflow", "memory", "use-after", "double-free")):
            return "Security"
        if "performance" in c:
            return "Performance"
        if any(k in c for k in ("leak", "malloc", "free")):
            return "Memory Safety"
        if any(k in c for k in ("thread", "concurrency", "race")):
            return "Concurrency"
        return "Code Quality"

    def issue_name(self, issue: RawIssue) -> str:
        if not issue.rule_id:
            return "ClangTidy Issue"
        name = _CHECK_PREFIX_RE.sub("", issue.rule_id).replace("-", " ")
        return re.sub(r"\b\w", lambda m: m.group(0).upper(), name)

    def remediation(self, issue: RawIssue) -> str:
        check = issue.rule_id
        if not check:
            return GENERIC_REMEDIATION
        if check in REMEDIATIONS:
            return REMEDIATIONS[check]
        for key, advice in REMEDIATIONS.items():
            if key in check or check in key:
                return advice
        for category, advice in CATEGORY_REMEDIATIONS:
            if category in check:
                return advice
        return GENERIC_REMEDIATION

    def references(self, issue: RawIssue) -> list[str]:
        return ["https://clang.llvm.org/extra/clang-tidy/checks/list.html"]

    def to_finding(self, issue: RawIssue, ctx: NormalizationContext) -> Finding:
        finding = super().to_finding(issue, ctx)
        finding.metadata["checkName"] = issue.rule_id
        return finding
