from __future__ import annotations

import json
import logging
import re

from codescanner.domain.models import Finding

from .base import FindingNormalizer, NormalizationContext, RawIssue
from .severity import map_severity
from .util import to_int

logger = logging.getLogger(__name__)

SNYK_SEVERITY = {
    "error": "high",
    "warning": "medium",
    "note": "low",
    "info": "low",
    "critical": "critical",
    "high": "high",
    "medium": "medium",
    "low": "low",
}

_BRACKET_SEV_RE = re.compile(r"\[(High|Medium|Low|Critical)\]", re.IGNORECASE)
_TITLE_NOISE_RE = re.compile(r"✗|\[.*?\]|Path:|Info:|Severity:")
_PATH_RE = re.compile(r"(?:Path|File):\s*([^,]+)(?:,\s*line\s*(\d+))?", re.IGNORECASE)
_SOURCE_HINT = (".c", ".cpp", ".h")


class SnykNormalizer(FindingNormalizer):
    """
    Snyk Code output comes in three shapes depending on CLI version and flags:
    legacy ``{"vulnerabilities": [...]}`` JSON, SARIF ``{"runs": [...]}``, or
    human-readable text with ``✗ [High] title`` / ``Path:`` / ``Info:`` blocks.
    """

    def tool_name(self) -> str:
        return "snyk"

    def map_severity(self, token: str | None, issue: RawIssue | None = None) -> str:
        return map_severity(SNYK_SEVERITY, token, default="low")

    def parse(self, output: str, ctx: NormalizationContext) -> list[Finding]:
        return [self.to_finding(i, ctx) for i in self.parse_issues(output)]

    def parse_issues(self, output: str) -> list[RawIssue]:
        if not output or not output.strip():
            return []
        try:
            data = json.loads(output)
        except json.JSONDecodeError:
            logger.debug("Snyk output is not JSON, falling back to text parsing")
            return dedupe(self.parse_text(output))
        if not isinstance(data, dict):
            return []
        return dedupe(self.parse_json(data))

    def parse_json(self, data: dict) -> list[RawIssue]:
        issues: list[RawIssue] = []

        for v in data.get("vulnerabilities") or []:
            if not isinstance(v, dict):
                continue
            title = v.get("title") or v.get("name") or "Unknown"
            origin = v.get("from") or []
            issues.append(
                RawIssue(
                    file=v.get("filePath") or (origin[0] if origin else "") or "unknown",
                    line=to_int(v.get("line")),
                    severity=v.get("severity") or "medium",
                    rule_id=v.get("id") or "",
                    message=v.get("description") or "",
                    extra={"title": title},
                )
            )

        for run in data.get("runs") or []:
            rules = _sarif_rules(run)
            for r in run.get("results") or []:
                issues.append(self._sarif_issue(r, rules))

        return issues

    def _sarif_issue(self, r: dict, rules: dict[str, dict]) -> RawIssue:
        locs = r.get("locations") or [{}]
        phys = locs[0].get("physicalLocation") or {}
        region = phys.get("region") or {}
        rule_id = r.get("ruleId") or "unknown-rule"
        text = (r.get("message") or {}).get("text") or ""

        rule = rules.get(rule_id, {})
        props = rule.get("properties") or {}
        cwe = props.get("cwe")
        if isinstance(cwe, list):
            cwe = ", ".join(str(c) for c in cwe)

        return RawIssue(
            file=(phys.get("artifactLocation") or {}).get("uri") or "unknown",
            line=to_int(region.get("startLine")),
            column=to_int(region.get("startColumn")),
            end_line=to_int(region.get("endLine"), None),
            end_column=to_int(region.get("endColumn"), None),
            severity=r.get("level") or "info",
            rule_id=rule_id,
            message=text or "No description available",
            cwe=str(cwe) if cwe else None,
            extra={"title": text or rule.get("name") or rule_id},
        )

    def parse_text(self, output: str) -> list[RawIssue]:
        issues: list[RawIssue] = []
        lines = output.splitlines()
        current: dict | None = None

        for i, raw in enumerate(lines):
            line = raw.strip()

            if "✗" in line or _BRACKET_SEV_RE.search(line) or "Severity:" in line or "Issue:" in line:
                sev = _BRACKET_SEV_RE.search(line)
                title = _TITLE_NOISE_RE.sub("", line).strip()
                title = re.sub(r"^\s*[-•]\s*", "", title).strip()
                if title:
                    current = {
                        "title": title,
                        "severity": sev.group(1).lower() if sev else "medium",
                        "file": "",
                        "line": 1,
                    }

            if current is not None and ("Path:" in line or "File:" in line):
                m = _PATH_RE.search(line)
                if m:
                    current["file"] = m.group(1).strip()
                    current["line"] = int(m.group(2)) if m.group(2) else 1

            if current is not None and ("Info:" in line or "Description:" in line):
                description = re.sub(r"Info:|Description:", "", line, count=1, flags=re.IGNORECASE).strip()
                if not current["file"]:
                    for nxt in lines[i + 1:i + 3]:
                        nxt = nxt.strip()
                        if any(h in nxt for h in _SOURCE_HINT):
                            current["file"] = re.sub(r"[^\w.\-/]", "", nxt)
                            break
                issues.append(
                    RawIssue(
                        file=current["file"] or "unknown",
                        line=current["line"],
                        severity=current["severity"],
                        rule_id="",
                        message=description,
                        extra={"title": current["title"]},
                    )
                )
                current = None

        return issues

    def issue_type(self, issue: RawIssue) -> str:
        return "Security"

    def issue_name(self, issue: RawIssue) -> str:
        return issue.extra.get("title") or "Unknown Vulnerability"

    def remediation(self, issue: RawIssue) -> str:
        return "Review and fix the security issue according to best practices"

    def to_finding(self, issue: RawIssue, ctx: NormalizationContext) -> Finding:
        finding = super().to_finding(issue, ctx)
        finding.metadata.pop("title", None)
        if issue.rule_id:
            finding.metadata["ruleId"] = issue.rule_id
        return finding


def _sarif_rules(run: dict) -> dict[str, dict]:
    driver = (run.get("tool") or {}).get("driver") or {}
    return {r["id"]: r for r in driver.get("rules") or [] if isinstance(r, dict) and r.get("id")}


def dedupe(issues: list[RawIssue]) -> list[RawIssue]:
    """Drop repeats of the same title at the same file and line, keeping the first."""
    seen: set[tuple] = set()
    out: list[RawIssue] = []
    for i in issues:
        key = (i.extra.get("title"), i.file, i.line)
        if key in seen:
            continue
        seen.add(key)
        out.append(i)
    return out
