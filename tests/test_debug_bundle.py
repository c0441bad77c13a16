from __future__ import annotations

import zipfile
from pathlib import Path

from portal_invoices.util.debug_bundle import create_debug_bundle


def _downloads(tmp_path: Path) -> Path:
    d = tmp_path / "downloads"
    d.mkdir()
    (d / "login_debug.png").write_bytes(b"png")
    (d / "debug_invoices.png").write_bytes(b"png")
    (d / "107.00-2026-01.pdf").write_bytes(b"%PDF-1.4")
    (d / ".session.json").write_text('[{"name": "sid", "value": "live"}]', encoding="utf-8")
    (d / ".session.json.corrupt-20260101T000000Z").write_text("{", encoding="utf-8")
    return d


def test_create_debug_bundle_includes_screenshots_and_log(tmp_path: Path) -> None:
    downloads = _downloads(tmp_path)
    log_file = tmp_path / "portal.log"
    log_file.write_text("hello", encoding="utf-8")

    out = create_debug_bundle(downloads_dir=str(downloads), log_file=str(log_file), out_dir=str(tmp_path / "out"))
    assert out.exists()
    assert out.suffix == ".zip"

    with zipfile.ZipFile(out, "r") as z:
        names = set(z.namelist())
    assert "portal.log" in names
    assert "diagnostics/login_debug.png" in names
    assert "diagnostics/debug_invoices.png" in names
    assert not any(n.startswith("documents/") for n in names)


def test_debug_bundle_never_contains_session_store(tmp_path: Path) -> None:
    downloads = _downloads(tmp_path)

    out = create_debug_bundle(downloads_dir=str(downloads), out_dir=str(tmp_path), include_documents=True)
    with zipfile.ZipFile(out, "r") as z:
        names = set(z.namelist())
    assert "documents/107.00-2026-01.pdf" in names
    assert not any(".session" in n for n in names)


def test_debug_bundle_tolerates_missing_downloads_dir(tmp_path: Path) -> None:
    out = create_debug_bundle(downloads_dir=str(tmp_path / "nope"), out_dir=str(tmp_path))
    with zipfile.ZipFile(out, "r") as z:
        assert z.namelist() == []
