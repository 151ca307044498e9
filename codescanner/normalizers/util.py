from __future__ import annotations

import re
from pathlib import Path, PurePosixPath

from codescanner.domain.models import CodeSnippet, FileRef

_ENTITIES = {"&lt;": "<", "&gt;": ">", "&quot;": '"', "&apos;": "'"}
_ATTR_RE = re.compile(r'([\w:-]+)="([^"]*)"')


def get_snippet(source_dir: Path, rel_file: str, line: int | None, context: int = 2) -> CodeSnippet | None:
    if not rel_file or not line or line < 1:
        return None

    fp = source_dir / rel_file
    if not fp.exists() or not fp.is_file():
        return None

    try:
        lines = fp.read_text(encoding="utf-8", errors="replace").splitlines()
    except OSError:
        return None
    if line > len(lines):
        return None

    idx = line - 1
    return CodeSnippet(
        line=lines[idx],
        before=lines[max(0, idx - context):idx],
        after=lines[idx + 1:idx + 1 + context],
    )


def get_rel_path(source_dir: Path, filename: str, container_root: str | None = None) -> str:
    """
    Convert a tool-reported filename to a source-relative posix path.

    Handles four cases:
    1. Absolute path inside source_dir     → strip source_dir prefix
    2. Path under a container mount point  → strip the mount point (e.g. /src/)
    3. Relative path with ./               → strip leading ./
    4. Fallback                            → return cleaned posix path
    """
    if not filename:
        return ""

    s = filename.strip().replace("\\", "/")
    ws = source_dir.resolve()
    f = Path(s)

    if f.is_absolute():
        try:
            return f.resolve().relative_to(ws).as_posix()
        except ValueError:
            pass

    if container_root:
        prefix = container_root.rstrip("/") + "/"
        if s.startswith(prefix):
            return s[len(prefix):]

    if f.is_absolute():
        # Absolute but outside the tree: keep the basename as best effort
        return f.name

    while s.startswith("./"):
        s = s[2:]
    return PurePosixPath(s).as_posix()


def file_ref(source_dir: Path, filename: str, container_root: str | None = None) -> FileRef:
    rel = get_rel_path(source_dir, filename, container_root) or "unknown"
    p = PurePosixPath(rel)
    return FileRef(file_name=p.name, file_path=rel, file_ext=p.suffix)


def decode_xml_entities(s: str) -> str:
    for entity, char in _ENTITIES.items():
        s = s.replace(entity, char)
    # &amp; last so "&amp;lt;" decodes to "&lt;"
    return s.replace("&amp;", "&")


def xml_attrs(tag: str) -> dict[str, str]:
    """Attributes of a single XML start tag, e.g. ``<error id="x" ...>``."""
    return {k: decode_xml_entities(v) for k, v in _ATTR_RE.findall(tag)}


def to_int(value, default: int | None = 1) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default
