from __future__ import annotations

import uuid
from pathlib import Path

from codescanner.core.config import settings


class WorkspaceService:
    """
    Owns the on-disk layout of a scan:

        <DATA_DIR>/scans/<scan_id>/uploads/    files to analyse
        <DATA_DIR>/scans/<scan_id>/results/    one <tool>-results.json per adapter
    """

    @staticmethod
    def _base_dir() -> Path:
        return Path(settings.DATA_DIR) / "scans"

    @staticmethod
    def new_scan_id() -> str:
        return str(uuid.uuid4())

    @staticmethod
    def scan_dir(scan_id: str) -> Path:
        return WorkspaceService._base_dir() / scan_id

    @staticmethod
    def upload_dir(scan_dir: Path | str) -> Path:
        return Path(scan_dir) / "uploads"

    @staticmethod
    def results_dir(scan_dir: Path | str) -> Path:
        return Path(scan_dir) / "results"

    @staticmethod
    def create(scan_id: str) -> Path:
        sdir = WorkspaceService.scan_dir(scan_id)
        WorkspaceService.upload_dir(sdir).mkdir(parents=True, exist_ok=True)
        WorkspaceService.results_dir(sdir).mkdir(parents=True, exist_ok=True)
        return sdir

    @staticmethod
    def list_uploaded_files(scan_dir: Path | str) -> list[dict]:
        """Uploaded files as ``{fileName, filePath, fileSize, fileExt}``, sorted by path."""
        root = WorkspaceService.upload_dir(scan_dir)
        if not root.exists():
            return []
        files = []
        for p in sorted(root.rglob("*")):
            if p.is_file():
                files.append(
                    {
                        "fileName": p.name,
                        "filePath": p.relative_to(root).as_posix(),
                        "fileSize": p.stat().st_size,
                        "fileExt": p.suffix,
                    }
                )
        return files
