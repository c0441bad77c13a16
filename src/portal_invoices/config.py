from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Union
from urllib.parse import urljoin, urlparse

import yaml
from pydantic import BaseModel, Field, model_validator


_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z0-9_]+)\}")

DEFAULT_BASE_URL = "https://www.bvod.by"
DEFAULT_LOGIN_URL = (
    "https://www.bvod.by/index.php/325-brestvodokanal/icefilter-homepage/"
    "lichnyj-kabinet-yuridicheskikh-lits/654-lichnyj-kabinet-yuridicheskikh-lits"
)


def _expand_env_vars(value: object) -> object:
    if isinstance(value, str):
        def repl(match: re.Match[str]) -> str:
            var = match.group(1)
            return os.getenv(var, "")

        return _ENV_VAR_PATTERN.sub(repl, value)
    if isinstance(value, list):
        return [_expand_env_vars(v) for v in value]
    if isinstance(value, dict):
        return {k: _expand_env_vars(v) for k, v in value.items()}
    return value


def _env_bool(name: str, default: bool = False) -> bool:
    raw = (os.getenv(name, "") or "").strip().lower()
    if not raw:
        return bool(default)
    return raw in {"1", "true", "t", "yes", "y", "on"}


def _deep_merge(base: object, override: object) -> object:
    if isinstance(base, dict) and isinstance(override, dict):
        out = dict(base)
        for k, v in override.items():
            if k in out:
                out[k] = _deep_merge(out[k], v)
            else:
                out[k] = v
        return out
    return override


def _default_config_from_env() -> dict:
    """
    Env-only config so most deployments only need `.env`.

    YAML remains an optional override for timeouts and browser tuning.
    """
    return {
        "portal": {
            "base_url": os.getenv("PORTAL_BASE_URL", DEFAULT_BASE_URL),
            "login_url": os.getenv("PORTAL_LOGIN_URL", ""),
            "username": os.getenv("PORTAL_USERNAME", ""),
            "password": os.getenv("PORTAL_PASSWORD", ""),
        },
        "browser": {
            # Constrained images (e.g. Alpine) ship their own Chromium; absent means Playwright's bundled build.
            "executable_path": os.getenv("PLAYWRIGHT_CHROMIUM_EXECUTABLE_PATH", ""),
            "headless": _env_bool("BROWSER_HEADLESS", default=True),
        },
        "storage": {
            "downloads_dir": os.getenv("DOWNLOADS_DIR", "downloads"),
        },
        "logging": {
            "level": os.getenv("LOG_LEVEL", "INFO"),
            "file_path": os.getenv("LOG_FILE", ""),
        },
    }


class PortalConfig(BaseModel):
    """
    Customer portal endpoints and credentials.

    `login_url` is also the authenticated landing page: the portal serves the login form there
    when the session is missing and the account area otherwise.
    """

    base_url: str = DEFAULT_BASE_URL
    login_url: str = ""
    username: str = ""
    password: str = Field(default="", repr=False)

    @model_validator(mode="after")
    def _normalize_urls(self) -> "PortalConfig":
        base_url = (self.base_url or "").strip().rstrip("/") or DEFAULT_BASE_URL
        parsed = urlparse(base_url)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError(f"portal.base_url must be a full URL like {DEFAULT_BASE_URL!r} (got {base_url!r})")

        login_url = (self.login_url or "").strip()
        if not login_url:
            login_url = DEFAULT_LOGIN_URL if base_url == DEFAULT_BASE_URL else base_url
        elif not urlparse(login_url).scheme:
            login_url = urljoin(base_url + "/", login_url.lstrip("/"))

        self.base_url = base_url
        self.login_url = login_url.rstrip("/")
        return self

    @property
    def has_credentials(self) -> bool:
        return bool(self.username.strip() and self.password)


class BrowserConfig(BaseModel):
    executable_path: str = ""
    headless: bool = True
    locale: str = "ru-RU"
    timezone_id: str = "Europe/Minsk"
    accept_language: str = "ru-RU,ru;q=0.9,en-US;q=0.8,en;q=0.7"
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )

    navigation_timeout_ms: int = 60_000
    download_timeout_ms: int = 30_000
    submit_navigation_timeout_ms: int = 30_000
    # Client-rendered sections load after DOMContentLoaded.
    settle_ms: int = 1_500
    # Extra wait after a lenient `commit` navigation, before the DOM is queried.
    commit_settle_ms: int = 3_000


class StorageConfig(BaseModel):
    downloads_dir: str = "downloads"

    @property
    def root(self) -> Path:
        return Path(self.downloads_dir)


class LoggingConfig(BaseModel):
    level: str = "INFO"
    file_path: str = ""


class AppConfig(BaseModel):
    portal: PortalConfig = PortalConfig()
    browser: BrowserConfig = BrowserConfig()
    storage: StorageConfig = StorageConfig()
    logging: LoggingConfig = LoggingConfig()


def load_config(path: Union[str, Path, None] = None) -> AppConfig:
    raw: dict = {}
    if path:
        p = Path(path)
        if p.exists():
            raw = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
            raw = _expand_env_vars(raw)  # supports ${ENV_VAR} in YAML

    merged = _deep_merge(_default_config_from_env(), raw)
    return AppConfig.model_validate(merged)
