"""Canonical severity and issue-type helpers shared by the tool normalizers.

Each tool keeps its own token table (next to its parser); this module only
provides the lookup and the keyword classifier.
"""

from __future__ import annotations

from codescanner.domain.models import SEVERITIES

SECURITY_WORDS = ("security", "vulnerable", "overflow", "double", "use after", "use-after")
MEMORY_WORDS = ("memory", "buffer", "null", "uninit", "leak", "free")
PERFORMANCE_WORDS = ("performance", "slow", "inefficient")
QUALITY_WORDS = ("style", "unused", "const")


def map_severity(table: dict[str, str], token: str | None, default: str = "low") -> str:
    """Look ``token`` up in a tool table; unknown or empty tokens give ``default``.

    The result is always one of the four canonical severities.
    """
    sev = table.get((token or "").strip().lower(), default)
    return sev if sev in SEVERITIES else "low"


def classify_issue_type(text: str, cwe: str | None = None, default: str = "Static Analysis") -> str:
    t = (text or "").lower()
    if cwe or any(w in t for w in SECURITY_WORDS):
        return "Security"
    if any(w in t for w in MEMORY_WORDS):
        return "Memory Safety"
    if any(w in t for w in PERFORMANCE_WORDS):
        return "Performance"
    if any(w in t for w in QUALITY_WORDS):
        return "Code Quality"
    return default
