from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from codescanner.domain.models import CodeSnippet, Finding, Location

from .severity import classify_issue_type
from .util import file_ref, get_snippet, to_int


@dataclass
class RawIssue:
    """One diagnostic as reported by a tool, before canonicalisation."""

    file: str
    line: int
    severity: str
    rule_id: str
    message: str
    column: int = 1
    end_line: int | None = None
    end_column: int | None = None
    cwe: str | None = None
    snippet: str = ""
    extra: dict[str, Any] = field(default_factory=dict)


@dataclass
class NormalizationContext:
    source_dir: Path
    # mount point of source_dir inside a container, stripped from reported paths
    container_root: str | None = None
    with_snippets: bool = True


class FindingNormalizer(ABC):
    """Pure ``raw tool output -> list[Finding]`` parser for one tool."""

    @abstractmethod
    def tool_name(self) -> str: ...

    @abstractmethod
    def parse(self, output: str, ctx: NormalizationContext) -> list[Finding]: ...

    # severity token -> canonical severity, tool specific
    @abstractmethod
    def map_severity(self, token: str | None, issue: RawIssue | None = None) -> str: ...

    def issue_type(self, issue: RawIssue) -> str:
        return classify_issue_type(f"{issue.rule_id} {issue.message}", issue.cwe)

    def issue_name(self, issue: RawIssue) -> str:
        return issue.rule_id or "Static Analysis Issue"

    def remediation(self, issue: RawIssue) -> str:
        return f"Fix the {issue.rule_id or 'issue'} issue identified by {self.tool_name()}"

    def references(self, issue: RawIssue) -> list[str]:
        return []

    def to_finding(self, issue: RawIssue, ctx: NormalizationContext) -> Finding:
        ref = file_ref(ctx.source_dir, issue.file, ctx.container_root)
        line = max(to_int(issue.line), 1)

        snippet = None
        if ctx.with_snippets:
            snippet = get_snippet(ctx.source_dir, ref.file_path, line)
        if snippet is None:
            snippet = CodeSnippet(line=issue.snippet)
        elif issue.snippet and not snippet.line:
            snippet.line = issue.snippet

        metadata: dict[str, Any] = {"originalSeverity": issue.severity}
        if issue.cwe:
            metadata["cwe"] = issue.cwe
        metadata.update(issue.extra)

        return Finding(
            tool=self.tool_name(),
            name=self.issue_name(issue),
            severity=self.map_severity(issue.severity, issue),
            type=self.issue_type(issue),
            file=ref,
            location=Location(
                line=line,
                column=issue.column or 1,
                end_line=issue.end_line,
                end_column=issue.end_column,
            ),
            description=issue.message or "No description provided",
            code_snippet=snippet,
            remediation=self.remediation(issue),
            references=self.references(issue),
            metadata=metadata,
        )
