from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from codescanner.api.scan_routes import get_scan_service
from codescanner.services.scan_service import ScanService

router = APIRouter(prefix="/api/scanners", tags=["scanners"])


class ScannerStatus(BaseModel):
    name: str
    installed: bool
    enabled: bool
    version: str | None = None
    error: str | None = None


class ScannerListResponse(BaseModel):
    """Registered scanners and whether each one can run on this host."""

    scanners: list[ScannerStatus]
    ready: list[str] = Field(..., description="Scanners that are enabled and installed.")


@router.get(
    "",
    response_model=ScannerListResponse,
    summary="List scanners",
    response_description="Registered scanners with installation status",
)
def list_scanners(service: ScanService = Depends(get_scan_service)) -> dict[str, Any]:
    """Probe every registered scanner (binary or Docker image) and report its status."""
    status = service.registry.check_all_installation()
    return {
        "scanners": list(status.values()),
        "ready": service.registry.ready_scanners(status),
    }


@router.get(
    "/{name}",
    summary="Get scanner info",
    response_description="Static scanner metadata",
)
def get_scanner(name: str, service: ScanService = Depends(get_scan_service)) -> dict[str, Any]:
    """Return description, supported languages and timeout of one scanner. Aliases are accepted."""
    info = service.registry.info(name)
    if info is None:
        raise HTTPException(status_code=404, detail=f"Unknown scanner type: {name}")
    return info
