"""Scanner domain exceptions.

Orchestration code raises typed exceptions so the scan service and the API
can map each failure to a job state or an HTTP status.
"""

from __future__ import annotations


class CodeScannerError(Exception):
    """Root exception for all scanner errors."""


# ── Configuration / registry ───────────────────────────────
class ConfigError(CodeScannerError):
    """The scanner configuration file could not be read or validated."""


class UnknownScannerError(CodeScannerError):
    """A tool name that no adapter is registered for."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Unknown scanner type: {name}")
        self.name = name


class ScannerDisabledError(CodeScannerError):
    """The scanner exists but is switched off in the configuration."""

    def __init__(self, name: str) -> None:
        super().__init__(f"Scanner {name} is not enabled or configured")
        self.name = name


class InstallationUnavailable(CodeScannerError):
    """The tool binary (or its container runtime) is not usable on this host."""


class NoValidScanners(CodeScannerError):
    """Every requested tool was unknown, disabled or not installed."""

    def __init__(self, invalid_tools: list[str]) -> None:
        super().__init__(f"No valid scanners available. Invalid tools: {', '.join(invalid_tools)}")
        self.invalid_tools = invalid_tools


# ── Adapter execution ──────────────────────────────────────
class AdapterTimeout(CodeScannerError):
    """A scanner subprocess (or the whole adapter call) exceeded its timeout."""

    def __init__(self, tool: str, timeout_ms: int) -> None:
        super().__init__(f"{tool} scan timed out after {timeout_ms}ms")
        self.tool = tool
        self.timeout_ms = timeout_ms


class AdapterParseFailure(CodeScannerError):
    """Tool output could not be parsed. Adapters log and swallow this."""


# ── Job lifecycle ──────────────────────────────────────────
class ScanNotFoundError(CodeScannerError):
    def __init__(self, scan_id: str) -> None:
        super().__init__(f"Scan not found: {scan_id}")
        self.scan_id = scan_id


class JobAlreadyInProgress(CodeScannerError):
    def __init__(self, scan_id: str) -> None:
        super().__init__(f"Scan already in progress: {scan_id}")
        self.scan_id = scan_id


class JobAlreadyCompleted(CodeScannerError):
    def __init__(self, scan_id: str) -> None:
        super().__init__(f"Scan already completed: {scan_id}")
        self.scan_id = scan_id
