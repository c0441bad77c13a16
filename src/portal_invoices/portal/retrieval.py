from __future__ import annotations

import logging
import re
import time
from pathlib import Path
from typing import Any, Literal, Optional
from urllib.parse import unquote, urlparse

import httpx

from ..errors import DownloadError
from .session import AuthenticatedSession, SessionController


logger = logging.getLogger(__name__)

FALLBACK_EXTENSION = ".pdf"
_URL_EXT_RE = re.compile(r"\.(pdf|xlsx|xls|csv|txt|zip)$", re.I)
_CONTENT_DISPOSITION_RE = re.compile(r"filename\*?=(?:UTF-8'')?[\"']?([^\"';]+)[\"']?", re.I)
_UNSAFE_NAME_CHARS_RE = re.compile(r'[<>:"/\\|?*\x00-\x1f]+')

Method = Literal["auto", "browser", "http"]


def cookie_header(cookies: list[dict]) -> str:
    """
    Format browser cookies as a `Cookie` request header: "name1=value1; name2=value2".
    """
    return "; ".join(f"{c['name']}={c.get('value', '')}" for c in cookies if c.get("name"))


def extension_from_url(url: str) -> str:
    m = _URL_EXT_RE.search(urlparse(url or "").path)
    return f".{m.group(1).lower()}" if m else ""


def filename_from_content_disposition(value: str) -> str:
    """
    `attachment; filename="107.00-2026-01.pdf"` -> `107.00-2026-01.pdf`
    """
    m = _CONTENT_DISPOSITION_RE.search(value or "")
    return unquote(m.group(1).strip()) if m else ""


def sanitize_name(name: Optional[str]) -> str:
    """
    Reduce a caller-supplied name to a bare, visible file name (no directories, no leading dot).
    """
    raw = Path((name or "").replace("\\", "/")).name
    cleaned = _UNSAFE_NAME_CHARS_RE.sub("_", raw).strip().lstrip(".")
    return cleaned


class RetrievalEngine:
    """
    Downloads a portal document into the downloads directory.

    The browser's native download is tried first; any failure there falls back to a plain HTTP GET that
    replays the context's cookies. Both paths write the response body verbatim.
    """

    def __init__(
        self,
        controller: SessionController,
        *,
        downloads_dir: Path | str = "downloads",
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.controller = controller
        self.downloads_dir = Path(downloads_dir)
        self.browser_cfg = controller.browser_cfg
        self._http_transport = http_transport

    async def retrieve(self, url: str, name: Optional[str] = None, *, method: Method = "auto") -> Path:
        if not (url or "").strip():
            raise DownloadError("No download URL given.", hint="Take target_url from `list-documents` output.")

        self.downloads_dir.mkdir(parents=True, exist_ok=True)
        async with self.controller.session() as s:
            if method == "http":
                path = await self._download_via_http(s, url, name)
            elif method == "browser":
                path = await self._download_via_browser(s, url, name)
            else:
                try:
                    path = await self._download_via_browser(s, url, name)
                except Exception as e:
                    logger.warning(
                        "Browser download failed; retrying over HTTP with session cookies. (%s)",
                        str(e).splitlines()[0] if str(e) else type(e).__name__,
                    )
                    path = await self._download_via_http(s, url, name)

        logger.info("Saved %s (%d bytes)", path, path.stat().st_size)
        return path

    def _destination(self, name: Optional[str], ext: str) -> Path:
        ext = ext or FALLBACK_EXTENSION
        base = sanitize_name(name)
        if not base:
            base = f"invoice_{int(time.time() * 1000)}"
        if base.lower().endswith(ext.lower()):
            base, ext = base[: -len(ext)], base[-len(ext):]
        dest = self.downloads_dir / f"{base}{ext}"
        # Earlier downloads are never overwritten.
        n = 0
        while dest.exists():
            n += 1
            dest = self.downloads_dir / f"{base}_{n}{ext}"
        return dest

    async def _download_via_browser(self, s: AuthenticatedSession, url: str, name: Optional[str]) -> Path:
        page = s.page
        async with page.expect_download(timeout=self.browser_cfg.download_timeout_ms) as download_info:
            try:
                await page.goto(url, wait_until="domcontentloaded", timeout=self.browser_cfg.navigation_timeout_ms)
            except Exception as e:
                # Chromium aborts a navigation whose response becomes a download; the download event still fires.
                logger.debug("Navigation to download URL ended with: %s", e)
        download = await download_info.value

        suggested = download.suggested_filename or ""
        dest = self._destination(name, Path(suggested).suffix.lower())
        await download.save_as(str(dest))
        logger.debug("Browser download %r saved as %s", suggested, dest)
        return dest

    async def _download_via_http(self, s: AuthenticatedSession, url: str, name: Optional[str]) -> Path:
        cookies = await s.context.cookies()
        headers = {
            "Cookie": cookie_header(cookies),
            "User-Agent": self.browser_cfg.user_agent,
            "Accept-Language": self.browser_cfg.accept_language,
        }

        client_kwargs: dict[str, Any] = {
            "follow_redirects": True,
            "timeout": httpx.Timeout(self.browser_cfg.navigation_timeout_ms / 1000),
        }
        if self._http_transport is not None:
            client_kwargs["transport"] = self._http_transport

        try:
            async with httpx.AsyncClient(**client_kwargs) as client:
                resp = await client.get(url, headers=headers)
        except httpx.HTTPError as e:
            raise DownloadError(
                f"Failed to download file: {type(e).__name__}: {e}",
                url=url,
                hint="Check network access to the portal and retry.",
            ) from e

        if not resp.is_success:
            raise DownloadError(
                f"Failed to download file: HTTP {resp.status_code}",
                status_code=resp.status_code,
                url=url,
            )

        served_name = filename_from_content_disposition(resp.headers.get("content-disposition", ""))
        ext = extension_from_url(served_name) or extension_from_url(url)
        dest = self._destination(name, ext)
        dest.write_bytes(resp.content)
        logger.debug("HTTP download (%d bytes, status=%s) saved as %s", len(resp.content), resp.status_code, dest)
        return dest
