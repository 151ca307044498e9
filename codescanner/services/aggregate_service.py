from __future__ import annotations

from dataclasses import dataclass, field

from codescanner.domain.models import AdapterResult, Finding, Summary


@dataclass
class Aggregate:
    issues_counts: Summary
    scanner_breakdown: dict[str, dict[str, int]] = field(default_factory=dict)


class AggregateService:
    """Per-tool and combined severity histograms for one job."""

    @staticmethod
    def aggregate(results: list[AdapterResult]) -> Aggregate:
        # counts come from each adapter's own summary, before deduplication
        total = Summary()
        breakdown: dict[str, dict[str, int]] = {}
        for r in results:
            s = Summary.from_dict(r.summary.to_dict()) if r.summary else Summary.from_findings(r.vulnerabilities)
            name = r.scanner or "unknown"
            if name in breakdown:
                merged = Summary.from_dict(breakdown[name])
                merged.merge(s)
                breakdown[name] = merged.to_dict()
            else:
                breakdown[name] = s.to_dict()
            total.merge(s)
        return Aggregate(issues_counts=total, scanner_breakdown=breakdown)

    @staticmethod
    def summarize(findings: list[Finding]) -> dict:
        by_sev = Summary.from_findings(findings).to_dict()
        by_type: dict[str, int] = {}
        by_tool: dict[str, int] = {}
        for f in findings:
            by_type[f.type] = by_type.get(f.type, 0) + 1
            by_tool[f.tool] = by_tool.get(f.tool, 0) + 1
        return {
            "total": len(findings),
            "by_severity": {k: v for k, v in by_sev.items() if k != "total"},
            "by_type": by_type,
            "by_tool": by_tool,
        }
