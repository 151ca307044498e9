from __future__ import annotations

import logging
from datetime import timedelta

from codescanner.analyzers.base import ScannerAdapter
from codescanner.analyzers.registry import ScannerRegistry
from codescanner.core.config import settings
from codescanner.core.errors import (
    InstallationUnavailable,
    JobAlreadyCompleted,
    JobAlreadyInProgress,
    NoValidScanners,
    ScannerDisabledError,
    ScanNotFoundError,
    UnknownScannerError,
)
from codescanner.core.util import count_lines, find_source_files
from codescanner.domain.models import Finding, ScanJob, Summary, utcnow
from codescanner.services.aggregate_service import AggregateService
from codescanner.services.dedup_service import FindingDeduplicator
from codescanner.services.orchestrator import PROGRESS_START, ScanOrchestrator
from codescanner.services.repositories import FindingRepository, JobRepository
from codescanner.services.workspace_service import WorkspaceService

logger = logging.getLogger(__name__)


class ScanService:
    """
    Job state tracker: owns the pending -> in_progress -> completed/failed
    lifecycle and drives one job end to end.
    """

    def __init__(
        self,
        registry: ScannerRegistry,
        jobs: JobRepository,
        findings: FindingRepository,
        orchestrator: ScanOrchestrator | None = None,
        deduplicator: FindingDeduplicator | None = None,
        stale_minutes: int | None = None,
    ):
        self.registry = registry
        self.jobs = jobs
        self.findings = findings
        self.orchestrator = orchestrator or ScanOrchestrator(jobs)
        self.deduplicator = deduplicator or FindingDeduplicator()
        self.stale_after = timedelta(
            minutes=stale_minutes if stale_minutes is not None else settings.STALE_SCAN_MINUTES
        )

    # ── creation / lookup ────────────────────────────────────
    def create_scan(self, tools: list[str] | None = None, name: str | None = None) -> ScanJob:
        """Create a pending job and its workspace. Unknown tool names are rejected here."""
        requested = tools or list(settings.DEFAULT_TOOLS)
        canonical: list[str] = []
        for tool in requested:
            if not self.registry.is_supported(tool):
                raise UnknownScannerError(tool)
            n = self.registry.normalize_name(tool)
            if n not in canonical:
                canonical.append(n)

        scan_id = WorkspaceService.new_scan_id()
        sdir = WorkspaceService.create(scan_id)
        job = ScanJob(
            scan_id=scan_id,
            tools=canonical,
            name=name or f"Scan {utcnow().isoformat()}",
            scan_directory=str(sdir),
        )
        self.jobs.create_scan(job)
        logger.info("Scan created", extra={"scan_id": scan_id})
        return job

    def get_scan(self, scan_id: str) -> ScanJob:
        job = self.jobs.get_scan(scan_id)
        if job is None:
            raise ScanNotFoundError(scan_id)
        return job

    def list_findings(self, scan_id: str) -> list[Finding]:
        self.get_scan(scan_id)
        return self.findings.list_by_scan(scan_id)

    # ── lifecycle ────────────────────────────────────────────
    def begin_scan(self, scan_id: str) -> ScanJob:
        """Validate the transition and mark the job ``in_progress``."""
        job = self.get_scan(scan_id)

        if job.status == "in_progress":
            if utcnow() - job.updated_at > self.stale_after:
                logger.warning("Resetting stale in-progress scan", extra={"scan_id": scan_id})
                job = self.jobs.update_scan(scan_id, status="pending")
            else:
                raise JobAlreadyInProgress(scan_id)

        if job.status == "completed":
            raise JobAlreadyCompleted(scan_id)

        return self.jobs.update_scan(
            scan_id, status="in_progress", start_time=utcnow(), end_time=None, progress=0, error=None
        )

    def start_scan(self, scan_id: str) -> ScanJob:
        self.begin_scan(scan_id)
        self.run_scan(scan_id)
        return self.get_scan(scan_id)

    def run_in_background(self, scan_id: str) -> None:
        """Entry point for background tasks; the failure is already recorded on the job."""
        try:
            self.run_scan(scan_id)
        except Exception:
            logger.exception("Background scan failed", extra={"scan_id": scan_id})

    def run_scan(self, scan_id: str) -> None:
        try:
            self._run(scan_id)
        except Exception as e:
            logger.error("Error running scan: %s", e, extra={"scan_id": scan_id})
            self.jobs.fail_scan(scan_id, e)
            raise

    def _run(self, scan_id: str) -> None:
        job = self.get_scan(scan_id)
        upload_dir = WorkspaceService.upload_dir(job.scan_directory)
        results_dir = WorkspaceService.results_dir(job.scan_directory)
        if not upload_dir.exists():
            raise FileNotFoundError(f"Upload directory not found: {upload_dir}")
        results_dir.mkdir(parents=True, exist_ok=True)

        self._progress(scan_id, 5)
        files = find_source_files(upload_dir, self._source_extensions())
        if not files:
            logger.warning("No source code files found", extra={"scan_id": scan_id})
            self.jobs.complete_scan(
                scan_id, {"filesScanned": 0, "linesOfCode": 0, "issuesCounts": Summary().to_dict()}
            )
            return

        file_count, loc = count_lines(files)
        self.jobs.update_scan(scan_id, uploaded_files=WorkspaceService.list_uploaded_files(job.scan_directory))
        self._progress(scan_id, 10)

        adapters = self.resolve_adapters(job.tools, scan_id=scan_id)
        self._progress(scan_id, 15)

        self._progress(scan_id, PROGRESS_START)
        results = self.orchestrator.run(scan_id, adapters, upload_dir, results_dir)
        self._progress(scan_id, 85)

        self.findings.delete_by_scan(scan_id)
        combined = [f for r in results for f in r.vulnerabilities]
        unique = self.deduplicator.deduplicate(combined)
        self.findings.create_bulk(scan_id, unique)
        stats = self.deduplicator.stats(combined, unique)
        logger.info(
            "Stored %d findings (%d before deduplication, %d merged)",
            stats["unique"],
            stats["total"],
            stats["merged"],
            extra={"scan_id": scan_id},
        )
        self._progress(scan_id, 95)

        agg = AggregateService.aggregate(results)
        self.jobs.complete_scan(
            scan_id,
            {
                "filesScanned": file_count,
                "linesOfCode": loc,
                "issuesCounts": agg.issues_counts.to_dict(),
                "scannerBreakdown": agg.scanner_breakdown,
            },
        )
        logger.info("Scan completed", extra={"scan_id": scan_id})

    def reset_scan(self, scan_id: str) -> ScanJob:
        """Drop a job's findings and put it back to ``pending`` with zeroed counters."""
        self.get_scan(scan_id)
        self.findings.delete_by_scan(scan_id)
        job = self.jobs.update_scan(
            scan_id,
            status="pending",
            progress=0,
            start_time=None,
            end_time=None,
            error=None,
            files_scanned=0,
            lines_of_code=0,
            issues_counts=Summary(),
            scanner_breakdown={},
        )
        logger.info("Reset stuck scan", extra={"scan_id": scan_id})
        return job

    # ── helpers ──────────────────────────────────────────────
    def resolve_adapters(self, tools: list[str], scan_id: str | None = None) -> list[tuple[ScannerAdapter, str]]:
        """Build an adapter per tool, skipping unknown, disabled or missing tools."""
        valid: list[tuple[ScannerAdapter, str]] = []
        invalid: list[str] = []
        for tool in tools:
            try:
                adapter = self.registry.create_scanner(tool)
                if not adapter.check_installation():
                    raise InstallationUnavailable(f"{tool} scanner is not properly installed")
            except (UnknownScannerError, ScannerDisabledError, InstallationUnavailable) as e:
                logger.warning("Skipping %s: %s", tool, e, extra={"scan_id": scan_id, "tool": tool})
                invalid.append(tool)
                continue
            valid.append((adapter, adapter.tool_name()))

        if not valid:
            raise NoValidScanners(invalid)
        return valid

    def _source_extensions(self) -> set[str]:
        exts: set[str] = set()
        for name in self.registry.list():
            s = self.registry.config.get(name)
            if s is not None:
                exts.update(s.extensions)
        return exts

    def _progress(self, scan_id: str, pct: int) -> None:
        try:
            self.jobs.update_scan_progress(scan_id, "in_progress", pct)
        except Exception as e:
            logger.error("Error updating scan progress: %s", e, extra={"scan_id": scan_id})

