from __future__ import annotations

from datetime import datetime
from pathlib import Path

from .models import RetrievedFile


def list_retrieved_files(directory: Path | str) -> list[RetrievedFile]:
    """
    Downloaded documents, most recently modified first.

    Dot-files (the session store and quarantined copies of it) are never listed.
    """
    root = Path(directory)
    root.mkdir(parents=True, exist_ok=True)

    out: list[RetrievedFile] = []
    for p in root.iterdir():
        if p.name.startswith(".") or not p.is_file():
            continue
        st = p.stat()
        out.append(
            RetrievedFile(
                name=p.name,
                path=str(p),
                size_bytes=st.st_size,
                modified=datetime.fromtimestamp(st.st_mtime),
            )
        )
    out.sort(key=lambda f: (f.modified, f.name), reverse=True)
    return out


def resolve_document_path(directory: Path | str, value: str) -> Path:
    """
    Accept either a path or a bare file name; bare names are looked up in the downloads directory.
    """
    raw = (value or "").strip()
    if not raw:
        raise FileNotFoundError("No file given. Run `list-files` to see downloaded documents.")
    if "/" in raw or "\\" in raw:
        return Path(raw)

    p = Path(directory) / raw
    if not p.exists():
        raise FileNotFoundError(
            f"File {raw!r} not found in {directory}. Run `list-files` to see downloaded documents."
        )
    return p
