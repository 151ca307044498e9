from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from pathlib import Path

from codescanner.analyzers.base import ScannerAdapter
from codescanner.core.errors import AdapterTimeout
from codescanner.domain.models import AdapterResult, Summary
from codescanner.services.repositories import JobRepository

logger = logging.getLogger(__name__)

PROGRESS_START = 20
PROGRESS_SPAN = 60


def progress_after(k: int, n: int) -> int:
    """Job progress once adapter ``k`` of ``n`` has finished."""
    if n <= 0:
        return PROGRESS_START + PROGRESS_SPAN
    return PROGRESS_START + (PROGRESS_SPAN * k) // n


class ScanOrchestrator:
    """
    Runs adapters over one job strictly one after another.

    Each adapter call is raced against its own ``timeout_ms`` in a worker
    thread, so a hung tool costs at most its timeout. Failures and timeouts
    become placeholder results; the remaining adapters still run.
    """

    def __init__(self, jobs: JobRepository | None = None):
        self.jobs = jobs

    def run(
        self,
        scan_id: str,
        adapters: list[tuple[ScannerAdapter, str]],
        upload_dir: Path,
        results_dir: Path,
    ) -> list[AdapterResult]:
        results_dir.mkdir(parents=True, exist_ok=True)
        results: list[AdapterResult] = []
        total = len(adapters)

        for k, (adapter, tool) in enumerate(adapters, start=1):
            logger.info("Running %s (%d/%d)", tool, k, total, extra={"scan_id": scan_id, "tool": tool})
            output_path = results_dir / f"{tool}-results.json"
            result = self.run_adapter(adapter, tool, upload_dir, output_path, scan_id=scan_id)
            results.append(result)
            logger.info(
                "%s finished with %d issues%s",
                tool,
                result.summary.total,
                f" ({result.error})" if result.error else "",
                extra={"scan_id": scan_id, "tool": tool},
            )
            self._report_progress(scan_id, progress_after(k, total))

        return results

    def run_adapter(
        self,
        adapter: ScannerAdapter,
        tool: str,
        upload_dir: Path,
        output_path: Path,
        scan_id: str | None = None,
    ) -> AdapterResult:
        timeout_ms = adapter.timeout_ms
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"scan-{tool}")
        future = executor.submit(adapter.scan_directory, upload_dir, output_path)
        try:
            result = future.result(timeout=timeout_ms / 1000)
        except (FuturesTimeout, AdapterTimeout):
            message = str(AdapterTimeout(tool, timeout_ms))
            logger.warning(message, extra={"scan_id": scan_id, "tool": tool})
            return AdapterResult.empty(tool, error=message)
        except Exception as e:
            logger.exception("%s scanner error: %s", tool, e, extra={"scan_id": scan_id, "tool": tool})
            return AdapterResult.empty(tool, error=str(e) or type(e).__name__)
        finally:
            # do not wait for a timed-out worker; its subprocess has its own timeout
            executor.shutdown(wait=False, cancel_futures=True)

        return normalize_result(tool, result)

    def _report_progress(self, scan_id: str, pct: int) -> None:
        if self.jobs is None:
            return
        try:
            self.jobs.update_scan_progress(scan_id, "in_progress", pct)
        except Exception as e:
            logger.error("Error updating scan progress: %s", e, extra={"scan_id": scan_id})


def normalize_result(tool: str, result: AdapterResult | None) -> AdapterResult:
    """Fill in what an adapter left out: no findings list, no summary."""
    if result is None:
        return AdapterResult.empty(tool, error=f"{tool} returned invalid result format")
    if result.vulnerabilities is None:
        result.vulnerabilities = []
    if result.summary is None:
        result.summary = Summary.from_findings(result.vulnerabilities)
    if not result.scanner:
        result.scanner = tool
    return result
