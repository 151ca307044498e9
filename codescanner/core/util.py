import os
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Sequence

SKIP_DIRS = {".git", "node_modules", "build", "dist", ".vscode", "__pycache__"}


@dataclass
class CmdResult:
    exit_code: int
    stdout: str
    stderr: str

    @property
    def output(self) -> str:
        # several tools report diagnostics on stderr and exit non-zero on findings
        return "\n".join(part for part in (self.stdout, self.stderr) if part)


def run_cmd(
    cmd: Sequence[str],
    cwd: Path,
    timeout_sec: float = 60,
    env: Mapping[str, str] | None = None,
) -> CmdResult:
    """Run a command and capture its output.

    Raises ``subprocess.TimeoutExpired`` when the command outlives
    ``timeout_sec``; the caller decides what a timeout means.
    """
    p = subprocess.run(
        list(cmd),
        cwd=str(cwd),
        capture_output=True,
        text=True,
        errors="replace",
        timeout=timeout_sec,
        env={**os.environ, **env} if env else None,
    )
    return CmdResult(p.returncode, p.stdout or "", p.stderr or "")


def find_source_files(directory: Path, extensions: Iterable[str]) -> list[Path]:
    """Walk ``directory`` and return files whose suffix is in ``extensions``.

    Extensions are compared lower-cased and may be given with or without
    the leading dot. VCS, dependency and build output directories are skipped.
    """
    wanted = {e.lower() if e.startswith(".") else f".{e.lower()}" for e in extensions}
    if not directory.is_dir():
        return []

    files: list[Path] = []
    for root, dirs, names in os.walk(directory):
        dirs[:] = sorted(d for d in dirs if d not in SKIP_DIRS)
        for name in sorted(names):
            if Path(name).suffix.lower() in wanted:
                files.append(Path(root) / name)
    return files


def count_lines(files: Iterable[Path]) -> tuple[int, int]:
    """Return ``(file_count, line_count)`` for the given files."""
    total_files = 0
    total_lines = 0
    for f in files:
        text = f.read_text(encoding="utf-8", errors="replace")
        total_lines += len(text.split("\n"))
        total_files += 1
    return total_files, total_lines
