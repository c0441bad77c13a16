from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, AsyncIterator, Optional

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from ..config import BrowserConfig, PortalConfig
from ..errors import (
    LoginFailedError,
    LoginFormNotFoundError,
    LoginRejectedError,
    PortalConfigError,
    SubmitControlNotFoundError,
)
from ..models import LoginResult
from .cookie_store import CookieStore
from .engine import BrowserEngine
from .matchers import first_match, has_match
from .selectors import PortalSelectors


logger = logging.getLogger(__name__)

LOGIN_SCREENSHOT_NAME = "login_debug.png"


@dataclass
class AuthenticatedSession:
    context: Any
    page: Any
    # True when credentials were submitted during this call (callers may tell the user they were re-logged in).
    is_new_login: bool


class SessionController:
    """
    Produces authenticated browser contexts for the portal.

    Flow per call: restore cookies from the store -> validate by loading the account page ->
    on a login form, drop the store and submit credentials -> persist the fresh cookies.
    Validity is purely structural (is a login form on the page?); cookie expiry is never consulted.
    A page that fails to load says nothing about the session, so the store is kept in that case.
    """

    def __init__(
        self,
        *,
        engine: BrowserEngine,
        store: CookieStore,
        portal: PortalConfig,
        browser: Optional[BrowserConfig] = None,
        diagnostics_dir: Path | str = "downloads",
        selectors: Optional[PortalSelectors] = None,
    ) -> None:
        self.engine = engine
        self.store = store
        self.portal = portal
        self.browser_cfg = browser or engine.cfg
        self.diagnostics_dir = Path(diagnostics_dir)
        self.selectors = selectors or PortalSelectors()

    @asynccontextmanager
    async def session(self) -> AsyncIterator[AuthenticatedSession]:
        """
        Yield an authenticated session in a brand-new context; the context is closed on exit, whatever happened.
        """
        ctx = await self.engine.new_context()
        try:
            page = await ctx.new_page()
            is_new_login = await self._authenticate(ctx, page)
            yield AuthenticatedSession(context=ctx, page=page, is_new_login=is_new_login)
        finally:
            try:
                await ctx.close()
            except Exception:
                logger.debug("Failed to close browser context.", exc_info=True)

    async def login(self) -> LoginResult:
        async with self.session() as s:
            return LoginResult(authenticated=True, is_new_login=s.is_new_login)

    async def login_form_present(self, page: Any) -> bool:
        return await has_match(page, self.selectors.login_form)

    def invalidate(self) -> None:
        self.store.clear()

    async def _authenticate(self, ctx: Any, page: Any) -> bool:
        cookies = self.store.load()
        if cookies:
            if await self._restore_session(ctx, page, cookies):
                logger.info("Stored session is valid; credential login skipped.")
                return False

            logger.info("Stored session is no longer valid; logging in with credentials.")
            self.store.clear()
            try:
                await ctx.clear_cookies()
            except Exception:
                logger.debug("Failed to clear stale cookies from context.", exc_info=True)
        else:
            logger.info("No stored session; logging in with credentials.")

        await self._credential_login(page)

        # Cookies can rotate even with unchanged credentials: always overwrite.
        try:
            self.store.save(await ctx.cookies())
        except OSError:
            logger.warning("Failed to persist session cookies; next run will log in again.", exc_info=True)
        logger.info("Login successful; session saved to %s", self.store.path)
        return True

    async def _restore_session(self, ctx: Any, page: Any, cookies: list[dict]) -> bool:
        try:
            await ctx.add_cookies(cookies)
        except Exception:
            logger.warning("Browser rejected stored cookies; treating session as invalid.", exc_info=True)
            return False

        # Raises LoginFailedError with the store untouched when the portal cannot be reached.
        await self._goto_login_page(page, hint_suffix=" The stored session was kept.")
        return not await self.login_form_present(page)

    async def _credential_login(self, page: Any) -> None:
        if not self.portal.has_credentials:
            raise PortalConfigError("Portal credentials are not configured.")

        logger.info("Navigating to login page: %s", self.portal.login_url)
        await self._goto_login_page(page)
        logger.info("Login page loaded (url=%s)", getattr(page, "url", ""))

        user_input = await first_match(page, self.selectors.username_candidates)
        pwd_input = await first_match(page, self.selectors.password_candidates)
        if user_input is None or pwd_input is None:
            shot = await self._save_login_screenshot(page)
            raise LoginFormNotFoundError("Login form not found on the portal page.", screenshot=shot)

        logger.debug("Login fields: username=%s password=%s", user_input.selector, pwd_input.selector)
        await user_input.handle.fill(self.portal.username)
        await pwd_input.handle.fill(self.portal.password)

        submit = await first_match(page, self.selectors.submit_candidates, require_visible=True)
        if submit is None:
            shot = await self._save_login_screenshot(page)
            raise SubmitControlNotFoundError("Login button not found on the portal page.", screenshot=shot)

        await self._click_and_wait_for_navigation(page, submit.handle)

        if await self.login_form_present(page):
            shot = await self._save_login_screenshot(page)
            hint = "Check PORTAL_USERNAME and PORTAL_PASSWORD."
            if shot:
                hint += f" Screenshot: {shot}"
            raise LoginRejectedError(
                "Portal login did not complete: the login form is still shown after submitting.",
                screenshot=shot,
                hint=hint,
            )

    async def _goto_login_page(self, page: Any, *, hint_suffix: str = "") -> None:
        timeout = self.browser_cfg.navigation_timeout_ms
        try:
            await page.goto(self.portal.login_url, wait_until="domcontentloaded", timeout=timeout)
            return
        except PlaywrightTimeoutError as e:
            logger.warning("Login page did not reach DOMContentLoaded; retrying with wait_until=commit. (%s)", e)

        try:
            await page.goto(self.portal.login_url, wait_until="commit", timeout=timeout)
            await page.wait_for_timeout(self.browser_cfg.commit_settle_ms)
        except Exception as e:
            shot = await self._save_login_screenshot(page)
            raise LoginFailedError(
                f"Login page did not load: {self.portal.login_url}",
                screenshot=shot,
                hint="Check PORTAL_LOGIN_URL and network access to the portal." + hint_suffix,
            ) from e

    async def _click_and_wait_for_navigation(self, page: Any, handle: Any) -> None:
        # AJAX-style forms may not navigate at all; a timeout after the click is not a failure by itself.
        clicked = False
        try:
            async with page.expect_navigation(
                wait_until="domcontentloaded",
                timeout=self.browser_cfg.submit_navigation_timeout_ms,
            ):
                await handle.click()
                clicked = True
        except PlaywrightTimeoutError as e:
            if clicked:
                logger.info("No navigation after submitting the login form; checking page state.")
                return
            error: Exception = e
        except Exception as e:
            error = e
        else:
            return

        shot = await self._save_login_screenshot(page)
        hint = "The button may be covered by an overlay or replaced while the page loads."
        if shot:
            hint += f" Screenshot: {shot}"
        raise LoginFailedError(
            f"Clicking the login button failed: {type(error).__name__}: {error}",
            screenshot=shot,
            hint=hint,
        ) from error

    async def _save_login_screenshot(self, page: Any) -> str:
        out = self.diagnostics_dir / LOGIN_SCREENSHOT_NAME
        try:
            self.diagnostics_dir.mkdir(parents=True, exist_ok=True)
            await page.screenshot(path=str(out))
        except Exception:
            logger.debug("Failed to save login screenshot.", exc_info=True)
            return ""
        logger.info("Saved login diagnostic screenshot: %s", out)
        return str(out)
