from __future__ import annotations

from functools import lru_cache
from typing import Any

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from pydantic import BaseModel, Field

from codescanner.core.containers import build_scan_service
from codescanner.core.errors import (
    JobAlreadyCompleted,
    JobAlreadyInProgress,
    ScanNotFoundError,
    UnknownScannerError,
)
from codescanner.services.aggregate_service import AggregateService
from codescanner.services.scan_service import ScanService
from codescanner.services.workspace_service import WorkspaceService

router = APIRouter(prefix="/api/scans", tags=["scans"])


@lru_cache(maxsize=1)
def get_scan_service() -> ScanService:
    """Build the scan service on first use and share it between requests."""
    return build_scan_service()


# ── Request / Response schemas ────────────────────────────────────
class CreateScanRequest(BaseModel):
    """Request body for creating a scan job."""

    tools: list[str] | None = Field(
        None,
        description="Scanner names to run. Aliases such as `clang-tidy` are accepted. "
        "If omitted, the default tool set runs.",
        json_schema_extra={"examples": [["semgrep", "cppcheck", "clangTidy"]]},
    )
    name: str | None = Field(None, description="Human readable label for the scan.")


class ScanCreatedResponse(BaseModel):
    """Returned after a scan job has been created."""

    scan_id: str = Field(..., description="UUID identifying this scan job.")
    status: str
    tools: list[str] = Field(..., description="Canonical scanner names.")
    upload_dir: str = Field(..., description="Directory the sources to scan must be placed in.")


class StartScanResponse(BaseModel):
    scan_id: str
    status: str = Field(..., description="Job status once the run has been scheduled.")


class FindingSummary(BaseModel):
    """Aggregate counts by severity, type and tool."""

    total: int
    by_severity: dict[str, int]
    by_type: dict[str, int]
    by_tool: dict[str, int]


class FindingsResponse(BaseModel):
    """Deduplicated findings of a completed scan."""

    scan_id: str
    status: str
    summary: FindingSummary
    findings: list[dict[str, Any]] = Field(..., description="Unified findings from all tools.")


# ── Endpoints ─────────────────────────────────────────────────────
@router.post(
    "",
    response_model=ScanCreatedResponse,
    status_code=201,
    summary="Create a scan job",
    response_description="The new scan ID and its upload directory",
)
def create_scan(req: CreateScanRequest, service: ScanService = Depends(get_scan_service)) -> dict[str, Any]:
    """Create a `pending` scan job and its workspace.

    Copy the sources to analyse into `upload_dir`, then call
    `POST /api/scans/{scan_id}/start`.
    """
    try:
        job = service.create_scan(req.tools, req.name)
    except UnknownScannerError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return {
        "scan_id": job.scan_id,
        "status": job.status,
        "tools": job.tools,
        "upload_dir": str(WorkspaceService.upload_dir(job.scan_directory)),
    }


@router.post(
    "/{scan_id}/start",
    response_model=StartScanResponse,
    status_code=202,
    summary="Start a scan job",
    response_description="The scan has been accepted and runs in the background",
)
def start_scan(
    scan_id: str,
    background_tasks: BackgroundTasks,
    service: ScanService = Depends(get_scan_service),
) -> dict[str, Any]:
    """Move the job to `in_progress` and run every selected scanner in the background.

    Poll `GET /api/scans/{scan_id}` for progress.
    """
    try:
        job = service.begin_scan(scan_id)
    except ScanNotFoundError:
        raise HTTPException(status_code=404, detail="Scan not found")
    except (JobAlreadyInProgress, JobAlreadyCompleted) as e:
        raise HTTPException(status_code=409, detail=str(e))

    background_tasks.add_task(service.run_in_background, scan_id)
    return {"scan_id": job.scan_id, "status": job.status}


@router.post(
    "/{scan_id}/reset",
    summary="Reset a stuck scan",
    response_description="The job document, back in `pending`",
)
def reset_scan(scan_id: str, service: ScanService = Depends(get_scan_service)) -> dict[str, Any]:
    """Drop the job's findings and zero its counters so it can be started again."""
    try:
        return service.reset_scan(scan_id).to_dict()
    except ScanNotFoundError:
        raise HTTPException(status_code=404, detail="Scan not found")


@router.get(
    "/{scan_id}",
    summary="Get a scan job",
    response_description="Job status, progress and severity counts",
)
def get_scan(scan_id: str, service: ScanService = Depends(get_scan_service)) -> dict[str, Any]:
    """Return the job document including progress and the per-tool breakdown."""
    try:
        return service.get_scan(scan_id).to_dict()
    except ScanNotFoundError:
        raise HTTPException(status_code=404, detail="Scan not found")


@router.get(
    "/{scan_id}/findings",
    response_model=FindingsResponse,
    summary="List scan findings",
    response_description="Deduplicated findings with a summary",
)
def list_findings(scan_id: str, service: ScanService = Depends(get_scan_service)) -> dict[str, Any]:
    """Return the deduplicated findings stored for a scan.

    Findings only exist once the job is `completed`; earlier calls return an
    empty list.
    """
    try:
        job = service.get_scan(scan_id)
        findings = service.list_findings(scan_id)
    except ScanNotFoundError:
        raise HTTPException(status_code=404, detail="Scan not found")

    return {
        "scan_id": scan_id,
        "status": job.status,
        "summary": AggregateService.summarize(findings),
        "findings": [f.to_dict() for f in findings],
    }
