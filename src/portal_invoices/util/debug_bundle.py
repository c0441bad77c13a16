from __future__ import annotations

import time
import zipfile
from pathlib import Path
from typing import Optional


DIAGNOSTIC_SUFFIXES = (".png",)


def create_debug_bundle(
    *,
    downloads_dir: str,
    log_file: str = "",
    out_dir: str = "data",
    include_documents: bool = False,
    extra_paths: Optional[list[str]] = None,
) -> Path:
    """
    Zip the diagnostic screenshots (and optionally the downloaded documents) plus the log file.

    Dot-files are never included: `.session.json` holds live portal cookies.
    """
    out_root = Path(out_dir)
    out_root.mkdir(parents=True, exist_ok=True)

    stamp = time.strftime("%Y%m%d_%H%M%S")
    out_path = out_root / f"debug_bundle_{stamp}.zip"

    src = Path(downloads_dir)

    def _add_file(z: zipfile.ZipFile, file_path: Path, arcname: str) -> None:
        if file_path.name.startswith("."):
            return
        try:
            if file_path.is_file():
                z.write(file_path, arcname=arcname)
        except OSError:
            # a file vanished between listing and zipping
            return

    with zipfile.ZipFile(out_path, "w", compression=zipfile.ZIP_DEFLATED) as z:
        if log_file:
            log = Path(log_file)
            _add_file(z, log, arcname=log.name)

        if src.is_dir():
            for p in sorted(src.iterdir()):
                if p.suffix.lower() in DIAGNOSTIC_SUFFIXES:
                    _add_file(z, p, arcname=str(Path("diagnostics") / p.name))
                elif include_documents:
                    _add_file(z, p, arcname=str(Path("documents") / p.name))

        for raw in extra_paths or []:
            p = Path(raw)
            if p.is_file():
                _add_file(z, p, arcname=str(Path("extra") / p.name))

    return out_path
