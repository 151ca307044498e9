from __future__ import annotations

from fastapi import FastAPI
from fastapi.responses import RedirectResponse

from codescanner.api.scan_routes import router as scan_router
from codescanner.api.scanner_routes import router as scanner_router
from codescanner.core.logging import setup_logging

__version__ = "0.3.0"

setup_logging()

tags_metadata = [
    {
        "name": "health",
        "description": "Liveness probe for container orchestration.",
    },
    {
        "name": "scanners",
        "description": "Registered static analysis tools (Semgrep, Snyk, clang-tidy, Cppcheck, "
        "Clang Static Analyzer and the Dockerised custom Cppcheck) and their installation status.",
    },
    {
        "name": "scans",
        "description": "Create scan jobs, run the selected scanners over the uploaded sources "
        "and read back the deduplicated findings.",
    },
]

app = FastAPI(
    title="Code Scanner",
    version=__version__,
    description="Runs several static analysis tools over a source tree and merges their "
    "findings into one normalised, deduplicated report.",
    openapi_tags=tags_metadata,
)

app.include_router(scanner_router)
app.include_router(scan_router)


@app.get("/", include_in_schema=False)
def index():
    return RedirectResponse(url="/docs")


@app.get("/health", tags=["health"], summary="Health check")
def health() -> dict[str, str]:
    """Return service status and version."""
    return {"status": "healthy", "version": __version__}
