"""
Cross-tool deduplication of findings.

Findings reported by several tools at the same location collapse into one:
the most severe report wins and keeps a record of every tool that saw it.
"""

from __future__ import annotations

import re

from codescanner.domain.models import SEVERITY_RANK, Finding

_NOTE_RE = re.compile(r"\s*\[Detected by: [^\]]*\]$")


def _tools_of(f: Finding) -> list[str]:
    return list(f.metadata.get("detectedBy") or [f.tool])


def _count_of(f: Finding) -> int:
    return int(f.metadata.get("duplicateCount") or 1)


def _key(f: Finding) -> str:
    if f.metadata.get("approximateLocation"):
        # the line is a placeholder, so only identical messages are the same issue
        return f"{f.dedup_key}:{_NOTE_RE.sub('', f.description)}"
    return f.dedup_key


class FindingDeduplicator:
    """
    Strategy:
    1. Group findings by ``filePath:line`` in encounter order; findings whose
       line is only a placeholder (``approximateLocation``) also need the same
       description
    2. Keep the highest-ranked severity, first seen on ties
    3. Merge ``detectedBy`` across the group and record the group size
    4. Append a ``[Detected by: ...]`` note when more than one report merged

    Already-deduplicated findings carry their ``detectedBy`` and
    ``duplicateCount`` forward, so running this twice changes nothing.
    """

    def deduplicate(self, findings: list[Finding]) -> list[Finding]:
        groups: dict[str, list[Finding]] = {}
        for f in findings:
            groups.setdefault(_key(f), []).append(f)
        return [self._merge(group) for group in groups.values()]

    def _merge(self, group: list[Finding]) -> Finding:
        best = group[0]
        for f in group[1:]:
            if SEVERITY_RANK.get(f.severity, 0) > SEVERITY_RANK.get(best.severity, 0):
                best = f

        tools: list[str] = []
        for f in group:
            for t in _tools_of(f):
                if t not in tools:
                    tools.append(t)
        count = sum(_count_of(f) for f in group)

        kept = best.copy()
        kept.metadata["detectedBy"] = tools
        kept.metadata["duplicateCount"] = count

        description = _NOTE_RE.sub("", kept.description)
        if count > 1:
            description = f"{description} [Detected by: {', '.join(tools)}]"
        kept.description = description
        return kept

    @staticmethod
    def stats(before: list[Finding], after: list[Finding]) -> dict[str, int]:
        return {"total": len(before), "unique": len(after), "merged": len(before) - len(after)}
