from __future__ import annotations

import asyncio
import logging
from typing import Optional

from playwright.async_api import Browser, BrowserContext, Playwright, async_playwright

from ..config import BrowserConfig


logger = logging.getLogger(__name__)


LAUNCH_ARGS = (
    "--no-sandbox",
    "--disable-setuid-sandbox",
    # Hides navigator.webdriver at the Blink level and the "controlled by automated software" banner.
    "--disable-blink-features=AutomationControlled",
    "--disable-infobars",
)

# Runs before any page script in every context. Sites fingerprint headless Chromium by an empty
# plugin list, a bare `languages` array and `navigator.webdriver === true`.
FINGERPRINT_INIT_SCRIPT = """
(() => {
  Object.defineProperty(navigator, 'webdriver', { get: () => undefined });
  Object.defineProperty(navigator, 'plugins', { get: () => [1, 2, 3] });
  Object.defineProperty(navigator, 'languages', { get: () => ['ru-RU', 'ru', 'en-US'] });
})();
"""


class BrowserEngine:
    """
    Owns the single long-lived Chromium process for the hosting process.

    Lifecycle: `acquire()` lazily launches (or relaunches after a disconnect) and returns the browser;
    `release()` closes it. Every operation works in its own `new_context()` so cookies and cache never
    leak between operations.
    """

    def __init__(self, cfg: Optional[BrowserConfig] = None) -> None:
        self.cfg = cfg or BrowserConfig()
        self._playwright: Optional[Playwright] = None
        self._browser: Optional[Browser] = None
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._browser is not None and self._browser.is_connected()

    async def acquire(self) -> Browser:
        async with self._lock:
            if self._browser is not None and self._browser.is_connected():
                return self._browser

            if self._browser is not None:
                logger.warning("Browser process disconnected; launching a new one.")
                await self._close_browser()

            if self._playwright is None:
                self._playwright = await async_playwright().start()

            self._browser = await self._launch(self._playwright)
            logger.info("Browser launched (headless=%s)", self.cfg.headless)
            return self._browser

    async def _launch(self, p: Playwright) -> Browser:
        kwargs: dict = {"headless": self.cfg.headless, "args": list(LAUNCH_ARGS)}

        executable_path = (self.cfg.executable_path or "").strip()
        if executable_path:
            logger.info("Using browser executable from config: %s", executable_path)
            return await p.chromium.launch(executable_path=executable_path, **kwargs)

        # Prefer Playwright's bundled Chromium, but fall back to a system-installed browser if the
        # Playwright browser cache is missing (`playwright install` never ran).
        try:
            return await p.chromium.launch(**kwargs)
        except Exception as e:
            msg = str(e)
            if "Executable doesn't exist" not in msg:
                raise
            logger.warning(
                "Playwright Chromium executable missing; falling back to system browser channel. (%s)",
                msg.splitlines()[0] if msg else msg,
            )

        try:
            return await p.chromium.launch(channel="chrome", **kwargs)
        except Exception:
            logger.debug("System Chrome channel unavailable; trying Edge.", exc_info=True)
            return await p.chromium.launch(channel="msedge", **kwargs)

    async def new_context(self) -> BrowserContext:
        browser = await self.acquire()
        ctx = await browser.new_context(
            accept_downloads=True,
            user_agent=self.cfg.user_agent,
            locale=self.cfg.locale,
            timezone_id=self.cfg.timezone_id,
            viewport={"width": 1280, "height": 800},
            extra_http_headers={"Accept-Language": self.cfg.accept_language},
        )
        try:
            await ctx.add_init_script(FINGERPRINT_INIT_SCRIPT)
        except Exception:
            await ctx.close()
            raise
        return ctx

    async def release(self) -> None:
        async with self._lock:
            await self._close_browser()
            if self._playwright is not None:
                p, self._playwright = self._playwright, None
                try:
                    await p.stop()
                except Exception:
                    logger.debug("Failed to stop Playwright driver.", exc_info=True)

    async def _close_browser(self) -> None:
        browser, self._browser = self._browser, None
        if browser is None:
            return
        try:
            await browser.close()
            logger.info("Browser closed.")
        except Exception:
            logger.debug("Failed to close browser (already gone?).", exc_info=True)
