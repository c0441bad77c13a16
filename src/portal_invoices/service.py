from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

import httpx

from .config import AppConfig
from .models import DiscoveryResult, LoginResult, RetrievedFile
from .normalizer import extract_text
from .portal.cookie_store import CookieStore
from .portal.discovery import DocumentDiscovery
from .portal.engine import BrowserEngine
from .portal.retrieval import Method, RetrievalEngine
from .portal.selectors import PortalSelectors
from .portal.session import SessionController
from .storage import list_retrieved_files, resolve_document_path


logger = logging.getLogger(__name__)


class PortalService:
    """
    Entry point for collaborators (CLI, web app, scheduler).

    One instance per hosting process: it owns the shared browser engine. Call `shutdown()` (or use
    `async with`) when done.
    """

    def __init__(
        self,
        cfg: AppConfig,
        *,
        engine: Optional[BrowserEngine] = None,
        selectors: Optional[PortalSelectors] = None,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.cfg = cfg
        self.downloads_dir = cfg.storage.root
        self.engine = engine or BrowserEngine(cfg.browser)
        self.store = CookieStore(self.downloads_dir)
        self.controller = SessionController(
            engine=self.engine,
            store=self.store,
            portal=cfg.portal,
            browser=cfg.browser,
            diagnostics_dir=self.downloads_dir,
            selectors=selectors,
        )
        self.discovery = DocumentDiscovery(self.controller, diagnostics_dir=self.downloads_dir)
        self.retrieval = RetrievalEngine(
            self.controller,
            downloads_dir=self.downloads_dir,
            http_transport=http_transport,
        )

    async def __aenter__(self) -> "PortalService":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.shutdown()

    async def login(self) -> LoginResult:
        return await self.controller.login()

    async def list_documents(self) -> DiscoveryResult:
        return await self.discovery.discover()

    async def download_document(self, url: str, name: Optional[str] = None, *, method: Method = "auto") -> Path:
        return await self.retrieval.retrieve(url, name, method=method)

    def read_document(self, path: str) -> str:
        return extract_text(resolve_document_path(self.downloads_dir, path))

    def list_retrieved_files(self) -> list[RetrievedFile]:
        return list_retrieved_files(self.downloads_dir)

    async def shutdown(self) -> None:
        await self.engine.release()
