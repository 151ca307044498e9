from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from hashlib import sha1
from typing import Any, Literal

Severity = Literal["critical", "high", "medium", "low"]
FindingType = Literal[
    "Security", "Memory Safety", "Performance", "Code Quality", "Static Analysis", "Concurrency"
]
JobStatus = Literal["pending", "in_progress", "completed", "failed", "cancelled"]

SEVERITIES: tuple[str, ...] = ("critical", "high", "medium", "low")
SEVERITY_RANK = {"critical": 4, "high": 3, "medium": 2, "low": 1}


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class FileRef:
    file_name: str
    file_path: str
    file_ext: str = ""


@dataclass
class Location:
    line: int = 1
    column: int = 1
    end_line: int | None = None
    end_column: int | None = None


@dataclass
class CodeSnippet:
    line: str = ""
    before: list[str] = field(default_factory=list)
    after: list[str] = field(default_factory=list)


@dataclass
class Finding:
    tool: str
    name: str
    severity: Severity
    type: FindingType
    file: FileRef
    location: Location
    description: str
    code_snippet: CodeSnippet = field(default_factory=CodeSnippet)
    remediation: str = "No remediation provided"
    references: list[str] = field(default_factory=list)
    status: str = "open"
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def id(self) -> str:
        base = (
            f"{self.tool}|{self.file.file_path}|{self.location.line}|{self.location.column}"
            f"|{self.name}|{self.description}"
        )
        return sha1(base.encode("utf-8")).hexdigest()

    @property
    def dedup_key(self) -> str:
        return f"{self.file.file_path}:{self.location.line}"

    def copy(self) -> "Finding":
        return replace(
            self,
            code_snippet=replace(self.code_snippet, before=list(self.code_snippet.before), after=list(self.code_snippet.after)),
            references=list(self.references),
            metadata={k: list(v) if isinstance(v, list) else v for k, v in self.metadata.items()},
        )

    def to_dict(self) -> dict[str, Any]:
        location: dict[str, Any] = {"line": self.location.line, "column": self.location.column}
        if self.location.end_line is not None:
            location["endLine"] = self.location.end_line
        if self.location.end_column is not None:
            location["endColumn"] = self.location.end_column

        return {
            "id": self.id,
            "name": self.name,
            "severity": self.severity,
            "type": self.type,
            "tool": self.tool,
            "file": {
                "fileName": self.file.file_name,
                "filePath": self.file.file_path,
                "fileExt": self.file.file_ext,
            },
            "location": location,
            "description": self.description,
            "codeSnippet": {
                "line": self.code_snippet.line,
                "before": list(self.code_snippet.before),
                "after": list(self.code_snippet.after),
            },
            "remediation": {"description": self.remediation},
            "references": list(self.references),
            "status": self.status,
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "Finding":
        f = d.get("file") or {}
        loc = d.get("location") or {}
        snip = d.get("codeSnippet") or {}
        return cls(
            tool=d.get("tool", ""),
            name=d.get("name", ""),
            severity=d.get("severity", "low"),
            type=d.get("type", "Static Analysis"),
            file=FileRef(f.get("fileName", ""), f.get("filePath", ""), f.get("fileExt", "")),
            location=Location(
                line=int(loc.get("line") or 1),
                column=int(loc.get("column") or 1),
                end_line=loc.get("endLine"),
                end_column=loc.get("endColumn"),
            ),
            description=d.get("description", ""),
            code_snippet=CodeSnippet(
                line=snip.get("line", ""),
                before=list(snip.get("before") or []),
                after=list(snip.get("after") or []),
            ),
            remediation=(d.get("remediation") or {}).get("description", "No remediation provided"),
            references=list(d.get("references") or []),
            status=d.get("status", "open"),
            metadata=dict(d.get("metadata") or {}),
        )


@dataclass
class Summary:
    total: int = 0
    critical: int = 0
    high: int = 0
    medium: int = 0
    low: int = 0

    @classmethod
    def from_findings(cls, findings: list[Finding]) -> "Summary":
        s = cls()
        for f in findings:
            s.add(f.severity)
        return s

    @classmethod
    def from_dict(cls, d: dict[str, Any] | None) -> "Summary":
        d = d or {}
        s = cls(**{k: int(d.get(k) or 0) for k in SEVERITIES})
        s.total = s.critical + s.high + s.medium + s.low
        return s

    def add(self, severity: str, count: int = 1) -> None:
        if severity in SEVERITIES:
            setattr(self, severity, getattr(self, severity) + count)
            self.total += count

    def merge(self, other: "Summary") -> None:
        for sev in SEVERITIES:
            self.add(sev, getattr(other, sev))

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "critical": self.critical,
            "high": self.high,
            "medium": self.medium,
            "low": self.low,
        }


@dataclass
class AdapterResult:
    scanner: str
    vulnerabilities: list[Finding] = field(default_factory=list)
    summary: Summary = field(default_factory=Summary)
    metadata: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    @classmethod
    def empty(cls, scanner: str, version: str = "1.0", scanned_files: int = 0, error: str | None = None) -> "AdapterResult":
        return cls(
            scanner=scanner,
            metadata={
                "scannedFiles": scanned_files,
                "totalFiles": scanned_files,
                "tool": scanner,
                "version": version,
            },
            error=error,
        )

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "scanner": self.scanner,
            "vulnerabilities": [v.to_dict() for v in self.vulnerabilities],
            "summary": self.summary.to_dict(),
            "metadata": dict(self.metadata),
        }
        if self.error:
            d["error"] = self.error
        return d


@dataclass
class ScanJob:
    scan_id: str
    tools: list[str]
    name: str = ""
    status: JobStatus = "pending"
    progress: int = 0
    uploaded_files: list[dict[str, Any]] = field(default_factory=list)
    scan_directory: str = ""
    start_time: datetime | None = None
    end_time: datetime | None = None
    files_scanned: int = 0
    lines_of_code: int = 0
    issues_counts: Summary = field(default_factory=Summary)
    scanner_breakdown: dict[str, dict[str, int]] = field(default_factory=dict)
    error: dict[str, str] | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "scanId": self.scan_id,
            "name": self.name,
            "status": self.status,
            "tools": list(self.tools),
            "progress": self.progress,
            "uploadedFiles": list(self.uploaded_files),
            "scanDirectory": self.scan_directory,
            "startTime": _iso(self.start_time),
            "endTime": _iso(self.end_time),
            "filesScanned": self.files_scanned,
            "linesOfCode": self.lines_of_code,
            "issuesCounts": self.issues_counts.to_dict(),
            "scannerBreakdown": dict(self.scanner_breakdown),
            "error": self.error,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "ScanJob":
        return cls(
            scan_id=d["scanId"],
            tools=list(d.get("tools") or []),
            name=d.get("name", ""),
            status=d.get("status", "pending"),
            progress=int(d.get("progress") or 0),
            uploaded_files=list(d.get("uploadedFiles") or []),
            scan_directory=d.get("scanDirectory", ""),
            start_time=_parse(d.get("startTime")),
            end_time=_parse(d.get("endTime")),
            files_scanned=int(d.get("filesScanned") or 0),
            lines_of_code=int(d.get("linesOfCode") or 0),
            issues_counts=Summary.from_dict(d.get("issuesCounts")),
            scanner_breakdown=dict(d.get("scannerBreakdown") or {}),
            error=d.get("error"),
            created_at=_parse(d.get("createdAt")) or utcnow(),
            updated_at=_parse(d.get("updatedAt")) or utcnow(),
        )


def _iso(ts: datetime | None) -> str | None:
    return ts.isoformat() if ts else None


def _parse(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None
