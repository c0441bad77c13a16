from .cookie_store import CookieStore
from .discovery import DocumentDiscovery
from .engine import BrowserEngine
from .retrieval import RetrievalEngine
from .selectors import PortalSelectors
from .session import AuthenticatedSession, SessionController

__all__ = [
    "BrowserEngine",
    "CookieStore",
    "SessionController",
    "AuthenticatedSession",
    "DocumentDiscovery",
    "RetrievalEngine",
    "PortalSelectors",
]
