from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Iterable, Optional

from ..errors import SessionExpiredError
from ..models import DiscoveryResult, DocumentLink, PageLink
from .selectors import PortalSelectors
from .session import SessionController


logger = logging.getLogger(__name__)

DOCUMENT_EXTENSIONS = ("pdf", "xlsx", "xls", "csv", "txt", "zip")
_EXT_GROUP = "|".join(DOCUMENT_EXTENSIONS)

# Extension at the end of the URL, ignoring a trailing query string / fragment.
URL_EXT_RE = re.compile(rf"\.({_EXT_GROUP})(?:[?#].*)?$", re.I)
# The portal serves extensionless Joomla URLs but labels links with the real file name
# (e.g. `107.00-2026-01.pdf`), so the label is checked too.
LABEL_EXT_RE = re.compile(rf"\.({_EXT_GROUP})$", re.I)
BILLING_VOCABULARY_RE = re.compile(
    r"счёт|счет|фактур|invoice|\bакт|квитанция|скачать|download|\bbill|receipt", re.I
)
PERIOD_RE = re.compile(r"[_-](\d{4})[_-](\d{2})\.")

MAX_OTHER_LINKS = 30
MAX_PAGE_TEXT = 3000
DISCOVERY_SCREENSHOT_NAME = "debug_invoices.png"

_COLLECT_ANCHORS_JS = """
els => els.map(a => ({
  href: a.href || '',
  text: (a.textContent || '').trim() || a.getAttribute('title') || '',
}))
"""
_ANCHOR_TEXTS_JS = "els => els.map(a => (a.textContent || '').trim())"
_CLICK_ANCHOR_JS = """
(i) => {
  const a = document.querySelectorAll('a')[i];
  if (!a) return false;
  a.click();
  return true;
}
"""


def collapse_text(text: str, limit: int = MAX_PAGE_TEXT) -> str:
    return re.sub(r"\s+", " ", text or "").strip()[:limit]


def is_navigable_href(href: str) -> bool:
    h = (href or "").strip()
    if not h:
        return False
    if h.lower().startswith("javascript:"):
        return False
    # Bare same-page anchors: `#` or `page#`.
    return not (h.startswith("#") or h.endswith("#"))


def collect_links(raw: Iterable[dict]) -> list[PageLink]:
    out: list[PageLink] = []
    for item in raw:
        href = str(item.get("href") or "").strip()
        label = str(item.get("text") or "").strip()
        if not label or not is_navigable_href(href):
            continue
        out.append(PageLink(url=href, label=label))
    return out


def is_document_candidate(link: PageLink) -> bool:
    return bool(
        URL_EXT_RE.search(link.url)
        or LABEL_EXT_RE.search(link.label)
        or BILLING_VOCABULARY_RE.search(link.label)
    )


def infer_file_type(label: str, url: str) -> str:
    m = LABEL_EXT_RE.search(label or "") or URL_EXT_RE.search(url or "")
    return m.group(1).lower() if m else "file"


def infer_period(label: str) -> str:
    m = PERIOD_RE.search(label or "")
    return f"{m.group(1)}-{m.group(2)}" if m else ""


def to_document(link: PageLink) -> DocumentLink:
    return DocumentLink(
        label=link.label,
        target_url=link.url,
        file_type=infer_file_type(link.label, link.url),
        period=infer_period(link.label),
    )


def classify_links(
    links: Iterable[PageLink], *, max_other: int = MAX_OTHER_LINKS
) -> tuple[list[DocumentLink], list[PageLink]]:
    documents: list[DocumentLink] = []
    other: list[PageLink] = []
    for link in links:
        if is_document_candidate(link):
            documents.append(to_document(link))
        else:
            other.append(link)
    return documents, other[:max_other]


def choose_nav_link(labels: list[str], keywords: Iterable[str]) -> Optional[int]:
    """
    Index of the anchor to click for the documents section, or None.

    Exact (case-insensitive) matches anywhere on the page beat substring matches; within each pass,
    keyword order decides.
    """
    normalized = [(t or "").strip().lower() for t in labels]
    kws = [k.strip().lower() for k in keywords if k and k.strip()]
    for kw in kws:
        for i, text in enumerate(normalized):
            if text == kw:
                return i
    for kw in kws:
        for i, text in enumerate(normalized):
            if text and kw in text:
                return i
    return None


class DocumentDiscovery:
    def __init__(
        self,
        controller: SessionController,
        *,
        diagnostics_dir: Path | str = "downloads",
        selectors: Optional[PortalSelectors] = None,
    ) -> None:
        self.controller = controller
        self.diagnostics_dir = Path(diagnostics_dir)
        self.selectors = selectors or controller.selectors
        self.browser_cfg = controller.browser_cfg

    async def discover(self) -> DiscoveryResult:
        async with self.controller.session() as s:
            page = s.page

            if await self._open_documents_section(page):
                try:
                    await page.wait_for_load_state(
                        "domcontentloaded", timeout=self.browser_cfg.navigation_timeout_ms
                    )
                except Exception:
                    logger.debug("wait_for_load_state after nav click failed (AJAX section?).", exc_info=True)
                await page.wait_for_timeout(self.browser_cfg.settle_ms)

            if await self.controller.login_form_present(page):
                self.controller.invalidate()
                raise SessionExpiredError("The portal session expired while opening the documents page.")

            await self._save_screenshot(page)

            raw = await page.eval_on_selector_all(self.selectors.anchors, _COLLECT_ANCHORS_JS)
            documents, other = classify_links(collect_links(raw or []))

            try:
                body = await page.inner_text("body")
            except Exception:
                logger.debug("Failed to read page body text.", exc_info=True)
                body = ""

            result = DiscoveryResult(
                documents=documents,
                other_links=other,
                page_text=collapse_text(body),
                source_url=getattr(page, "url", "") or "",
            )
            logger.info(
                "Discovery found %d document link(s) and %d other link(s) at %s",
                len(result.documents),
                len(result.other_links),
                result.source_url,
            )
            return result

    async def _open_documents_section(self, page: Any) -> bool:
        try:
            labels = await page.eval_on_selector_all("a", _ANCHOR_TEXTS_JS)
        except Exception:
            logger.warning("Could not read page anchors; staying on the current page.", exc_info=True)
            return False

        idx = choose_nav_link(labels or [], self.selectors.documents_nav_keywords)
        if idx is None:
            logger.info("No documents/invoices navigation link found; using the current page.")
            return False

        label = labels[idx]
        try:
            clicked = await page.evaluate(_CLICK_ANCHOR_JS, idx)
        except Exception:
            # "Execution context was destroyed" means the click already navigated; let the caller settle.
            logger.warning("Clicking navigation link %r raised; waiting for the page to settle.", label, exc_info=True)
            return True
        if clicked:
            logger.info("Opened documents section via link %r", label)
        return bool(clicked)

    async def _save_screenshot(self, page: Any) -> None:
        out = self.diagnostics_dir / DISCOVERY_SCREENSHOT_NAME
        try:
            self.diagnostics_dir.mkdir(parents=True, exist_ok=True)
            await page.screenshot(path=str(out), full_page=True)
        except Exception:
            logger.debug("Failed to save discovery screenshot.", exc_info=True)
