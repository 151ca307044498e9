from __future__ import annotations

import json
import logging
import threading
import traceback
from abc import ABC, abstractmethod
from dataclasses import replace
from pathlib import Path
from typing import Any

from codescanner.core.errors import ScanNotFoundError
from codescanner.domain.models import Finding, ScanJob, Summary, utcnow

logger = logging.getLogger(__name__)


def error_payload(error: BaseException | str) -> dict[str, str]:
    if isinstance(error, BaseException):
        stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        return {"message": str(error) or type(error).__name__, "stack": stack}
    return {"message": str(error), "stack": ""}


class JobRepository(ABC):
    """Persistence boundary for scan jobs."""

    @abstractmethod
    def create_scan(self, job: ScanJob) -> ScanJob: ...

    @abstractmethod
    def get_scan(self, scan_id: str) -> ScanJob | None: ...

    @abstractmethod
    def _save(self, job: ScanJob) -> None: ...

    def _require(self, scan_id: str) -> ScanJob:
        job = self.get_scan(scan_id)
        if job is None:
            raise ScanNotFoundError(scan_id)
        return job

    def update_scan(self, scan_id: str, **fields: Any) -> ScanJob:
        job = replace(self._require(scan_id), **fields, updated_at=utcnow())
        self._save(job)
        return job

    def update_scan_progress(self, scan_id: str, status: str, progress: int) -> ScanJob:
        job = self._require(scan_id)
        # progress never moves backwards while a job runs
        pct = max(job.progress, int(progress)) if job.status == status == "in_progress" else int(progress)
        return self.update_scan(scan_id, status=status, progress=min(pct, 100))

    def complete_scan(self, scan_id: str, results: dict[str, Any]) -> ScanJob:
        return self.update_scan(
            scan_id,
            status="completed",
            progress=100,
            end_time=utcnow(),
            files_scanned=int(results.get("filesScanned") or 0),
            lines_of_code=int(results.get("linesOfCode") or 0),
            issues_counts=Summary.from_dict(results.get("issuesCounts")),
            scanner_breakdown=dict(results.get("scannerBreakdown") or {}),
            error=None,
        )

    def fail_scan(self, scan_id: str, error: BaseException | str) -> ScanJob:
        return self.update_scan(scan_id, status="failed", end_time=utcnow(), error=error_payload(error))


class FindingRepository(ABC):
    """Persistence boundary for the deduplicated findings of each job."""

    @abstractmethod
    def create_bulk(self, scan_id: str, findings: list[Finding]) -> int: ...

    @abstractmethod
    def delete_by_scan(self, scan_id: str) -> int: ...

    @abstractmethod
    def list_by_scan(self, scan_id: str) -> list[Finding]: ...

    def count_by_scan(self, scan_id: str) -> int:
        return len(self.list_by_scan(scan_id))


# ── in-memory ────────────────────────────────────────────────
class InMemoryJobRepository(JobRepository):
    def __init__(self):
        self._jobs: dict[str, ScanJob] = {}
        self._lock = threading.Lock()

    def create_scan(self, job: ScanJob) -> ScanJob:
        self._save(job)
        return job

    def get_scan(self, scan_id: str) -> ScanJob | None:
        with self._lock:
            return self._jobs.get(scan_id)

    def _save(self, job: ScanJob) -> None:
        with self._lock:
            self._jobs[job.scan_id] = job


class InMemoryFindingRepository(FindingRepository):
    def __init__(self):
        self._by_scan: dict[str, list[Finding]] = {}
        self._lock = threading.Lock()

    def create_bulk(self, scan_id: str, findings: list[Finding]) -> int:
        with self._lock:
            self._by_scan.setdefault(scan_id, []).extend(f.copy() for f in findings)
        return len(findings)

    def delete_by_scan(self, scan_id: str) -> int:
        with self._lock:
            return len(self._by_scan.pop(scan_id, []))

    def list_by_scan(self, scan_id: str) -> list[Finding]:
        with self._lock:
            return [f.copy() for f in self._by_scan.get(scan_id, [])]


# ── JSON files under DATA_DIR ────────────────────────────────
class LocalJobRepository(JobRepository):
    """One ``scan.json`` per job under ``<base>/<scan_id>/``."""

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)
        self._lock = threading.Lock()

    def _path(self, scan_id: str) -> Path:
        return self.base_dir / scan_id / "scan.json"

    def create_scan(self, job: ScanJob) -> ScanJob:
        self._save(job)
        return job

    def get_scan(self, scan_id: str) -> ScanJob | None:
        p = self._path(scan_id)
        if not p.exists():
            return None
        with self._lock:
            return ScanJob.from_dict(json.loads(p.read_text(encoding="utf-8")))

    def _save(self, job: ScanJob) -> None:
        p = self._path(job.scan_id)
        p.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            tmp = p.with_suffix(".tmp")
            tmp.write_text(json.dumps(job.to_dict(), indent=2), encoding="utf-8")
            tmp.replace(p)


class LocalFindingRepository(FindingRepository):
    """Findings of a job in ``<base>/<scan_id>/findings.json``."""

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)
        self._lock = threading.Lock()

    def _path(self, scan_id: str) -> Path:
        return self.base_dir / scan_id / "findings.json"

    def _read(self, scan_id: str) -> list[dict]:
        p = self._path(scan_id)
        if not p.exists():
            return []
        return json.loads(p.read_text(encoding="utf-8") or "[]")

    def create_bulk(self, scan_id: str, findings: list[Finding]) -> int:
        p = self._path(scan_id)
        p.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            rows = self._read(scan_id) + [f.to_dict() for f in findings]
            p.write_text(json.dumps(rows, indent=2), encoding="utf-8")
        logger.info("Saved %d findings", len(findings), extra={"scan_id": scan_id})
        return len(findings)

    def delete_by_scan(self, scan_id: str) -> int:
        p = self._path(scan_id)
        with self._lock:
            removed = len(self._read(scan_id))
            p.unlink(missing_ok=True)
        return removed

    def list_by_scan(self, scan_id: str) -> list[Finding]:
        with self._lock:
            return [Finding.from_dict(d) for d in self._read(scan_id)]
