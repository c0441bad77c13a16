from .config import AppConfig, load_config
from .errors import (
    DownloadError,
    LoginFailedError,
    LoginFormNotFoundError,
    LoginRejectedError,
    PortalConfigError,
    PortalError,
    SessionExpiredError,
    SubmitControlNotFoundError,
)
from .models import DiscoveryResult, DocumentLink, LoginResult, PageLink, RetrievedFile
from .service import PortalService

__all__ = [
    "AppConfig",
    "load_config",
    "PortalService",
    "DiscoveryResult",
    "DocumentLink",
    "LoginResult",
    "PageLink",
    "RetrievedFile",
    "PortalError",
    "PortalConfigError",
    "LoginFailedError",
    "LoginFormNotFoundError",
    "SubmitControlNotFoundError",
    "LoginRejectedError",
    "SessionExpiredError",
    "DownloadError",
]
