from __future__ import annotations

import asyncio
from pathlib import Path

import httpx
import pytest

from fakes import BASE_URL, DOWNLOAD_URL, PDF_BYTES, FakeEngine, FakePortal, make_config
from portal_invoices.errors import DownloadError
from portal_invoices.portal.retrieval import (
    cookie_header,
    extension_from_url,
    filename_from_content_disposition,
    sanitize_name,
)
from portal_invoices.service import PortalService


def _service(tmp_path: Path, portal: FakePortal, transport: httpx.AsyncBaseTransport | None = None) -> PortalService:
    cfg = make_config(tmp_path)
    return PortalService(
        cfg,
        engine=FakeEngine(portal, cfg.browser),
        http_transport=transport or portal.http_transport(),
    )


def test_cookie_header() -> None:
    cookies = [
        {"name": "sid", "value": "abc", "domain": "www.bvod.by"},
        {"name": "lang", "value": "ru"},
        {"name": "", "value": "ignored"},
    ]
    assert cookie_header(cookies) == "sid=abc; lang=ru"
    assert cookie_header([]) == ""


def test_filename_helpers() -> None:
    assert filename_from_content_disposition('attachment; filename="107.00-2026-01.pdf"') == "107.00-2026-01.pdf"
    assert filename_from_content_disposition("attachment; filename*=UTF-8''%D0%B0%D0%BA%D1%82.xls") == "акт.xls"
    assert filename_from_content_disposition("inline") == ""
    assert extension_from_url("https://x/files/report.XLSX?x=1") == ".xlsx"
    assert extension_from_url("https://x/index.php?format=pdf") == ""


def test_sanitize_name() -> None:
    assert sanitize_name("../../etc/passwd") == "passwd"
    assert sanitize_name(".session.json") == "session.json"
    assert sanitize_name('счет:январь?') == "счет_январь_"
    assert sanitize_name(None) == ""


def test_browser_download_saved_under_given_name(tmp_path: Path) -> None:
    portal = FakePortal()
    svc = _service(tmp_path, portal)

    path = asyncio.run(svc.download_document(DOWNLOAD_URL, "january", method="browser"))

    assert path == tmp_path / "downloads" / "january.pdf"
    assert path.read_bytes() == PDF_BYTES


def test_extension_not_doubled(tmp_path: Path) -> None:
    svc = _service(tmp_path, FakePortal())
    path = asyncio.run(svc.download_document(DOWNLOAD_URL, "january.pdf"))
    assert path.name == "january.pdf"


def test_same_name_twice_keeps_both_files(tmp_path: Path) -> None:
    svc = _service(tmp_path, FakePortal())

    async def _run():
        first = await svc.download_document(DOWNLOAD_URL, "january")
        first.write_bytes(b"edited locally")
        second = await svc.download_document(DOWNLOAD_URL, "january.pdf")
        return first, second

    first, second = asyncio.run(_run())

    assert first.name == "january.pdf"
    assert second.name == "january_1.pdf"
    assert first.read_bytes() == b"edited locally"
    assert second.read_bytes() == PDF_BYTES


def test_fallback_name_when_none_given(tmp_path: Path) -> None:
    svc = _service(tmp_path, FakePortal())
    path = asyncio.run(svc.download_document(DOWNLOAD_URL))
    assert path.name.startswith("invoice_")
    assert path.suffix == ".pdf"


def test_http_fallback_matches_browser_download(tmp_path: Path) -> None:
    portal = FakePortal()
    svc = _service(tmp_path, portal)
    via_browser = asyncio.run(svc.download_document(DOWNLOAD_URL, "a"))

    portal.browser_download_broken = True
    via_http = asyncio.run(svc.download_document(DOWNLOAD_URL, "b"))

    assert via_browser.read_bytes() == via_http.read_bytes() == PDF_BYTES
    assert via_http.name == "b.pdf"
    # one credential login, reused by the second download
    assert portal.login_submissions == 1


def test_http_download_sends_session_cookies(tmp_path: Path) -> None:
    portal = FakePortal()
    seen: list[httpx.Request] = []
    inner = portal.http_transport()

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return inner.handle_request(request)

    svc = _service(tmp_path, portal, transport=httpx.MockTransport(handler))
    path = asyncio.run(svc.download_document(DOWNLOAD_URL, "c", method="http"))

    assert path.read_bytes() == PDF_BYTES
    assert seen[0].headers["cookie"].startswith("sid=tok")
    assert seen[0].headers["user-agent"].startswith("Mozilla/5.0")


def test_http_error_status_raises(tmp_path: Path) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404, text="not found")

    svc = _service(tmp_path, FakePortal(), transport=httpx.MockTransport(handler))

    with pytest.raises(DownloadError) as ei:
        asyncio.run(svc.download_document(f"{BASE_URL}/missing", "x", method="http"))

    assert ei.value.status_code == 404
    assert "HTTP 404" in str(ei.value)
    assert not (tmp_path / "downloads" / "x.pdf").exists()


def test_both_paths_failing_raises_download_error(tmp_path: Path) -> None:
    portal = FakePortal()
    portal.browser_download_broken = True

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    svc = _service(tmp_path, portal, transport=httpx.MockTransport(handler))
    with pytest.raises(DownloadError):
        asyncio.run(svc.download_document(DOWNLOAD_URL))


def test_empty_url_rejected(tmp_path: Path) -> None:
    svc = _service(tmp_path, FakePortal())
    with pytest.raises(DownloadError):
        asyncio.run(svc.download_document("  "))
