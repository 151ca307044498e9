from __future__ import annotations

import json
import logging

from codescanner.core.errors import AdapterParseFailure
from codescanner.domain.models import Finding

from .base import FindingNormalizer, NormalizationContext, RawIssue
from .severity import map_severity
from .util import to_int

logger = logging.getLogger(__name__)

SEMGREP_SEVERITY = {
    "error": "critical",
    "warning": "high",
    "info": "medium",
    "critical": "critical",
    "high": "high",
    "medium": "medium",
    "low": "low",
}


class SemgrepNormalizer(FindingNormalizer):
    """Parses ``semgrep --json`` output (``{"results": [...], "errors": [...]}``)."""

    def tool_name(self) -> str:
        return "semgrep"

    def parse(self, output: str, ctx: NormalizationContext) -> list[Finding]:
        if not output or not output.strip():
            return []
        try:
            data = json.loads(output)
        except json.JSONDecodeError as e:
            raise AdapterParseFailure(f"Error parsing Semgrep JSON: {e}") from e

        results = data.get("results") if isinstance(data, dict) else None
        if not isinstance(results, list):
            logger.warning("No valid results found in Semgrep output")
            return []

        return [self.to_finding(self._raw_issue(r), ctx) for r in results if isinstance(r, dict)]

    def _raw_issue(self, r: dict) -> RawIssue:
        extra = r.get("extra") or {}
        meta = extra.get("metadata") or {}
        start = r.get("start") or {}
        end = r.get("end") or {}

        cwe = meta.get("cwe")
        if isinstance(cwe, list):
            cwe = ", ".join(str(c) for c in cwe)

        lines = extra.get("lines") or ""
        if lines == "requires login":
            lines = ""

        return RawIssue(
            file=r.get("path") or "",
            line=to_int(start.get("line")),
            column=to_int(start.get("col")),
            end_line=to_int(end.get("line"), None),
            end_column=to_int(end.get("col"), None),
            severity=extra.get("severity") or "",
            rule_id=r.get("check_id") or "",
            message=extra.get("message") or "No description provided",
            cwe=str(cwe) if cwe else None,
            snippet=lines.strip("\n"),
            extra={
                "metaSeverity": meta.get("severity"),
                "fix": meta.get("fix"),
                "references": meta.get("references") or [],
            },
        )

    def map_severity(self, token: str | None, issue: RawIssue | None = None) -> str:
        token = (token or "").lower()
        if token in SEMGREP_SEVERITY:
            return SEMGREP_SEVERITY[token]

        meta_sev = (issue.extra.get("metaSeverity") if issue else None) or ""
        if meta_sev:
            return map_severity(SEMGREP_SEVERITY, meta_sev, default="medium")

        rule_id = (issue.rule_id if issue else "").lower()
        if "security" in rule_id or "cwe" in rule_id:
            return "high"
        return "medium"

    def issue_type(self, issue: RawIssue) -> str:
        rule_id = issue.rule_id.lower()
        if "security" in rule_id or issue.cwe:
            return "Security"
        if "performance" in rule_id:
            return "Performance"
        if "memory" in rule_id or "leak" in rule_id:
            return "Memory Safety"
        if "concurrency" in rule_id or "race" in rule_id:
            return "Concurrency"
        return "Code Quality"

    def issue_name(self, issue: RawIssue) -> str:
        return issue.rule_id.split(".")[-1].replace("-", " ") or "Semgrep Issue"

    def remediation(self, issue: RawIssue) -> str:
        return issue.extra.get("fix") or "No specific remediation provided"

    def references(self, issue: RawIssue) -> list[str]:
        refs = issue.extra.get("references") or []
        return [str(r) for r in (refs if isinstance(refs, list) else [refs])]

    def to_finding(self, issue: RawIssue, ctx: NormalizationContext) -> Finding:
        finding = super().to_finding(issue, ctx)
        for key in ("metaSeverity", "fix", "references"):
            finding.metadata.pop(key, None)
        finding.metadata["ruleId"] = issue.rule_id
        return finding
