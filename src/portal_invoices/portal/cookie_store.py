from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional


logger = logging.getLogger(__name__)

SESSION_FILE_NAME = ".session.json"

Cookie = dict[str, Any]


def _parse_cookies(raw: str) -> Optional[list[Cookie]]:
    """
    Return the cookie list if `raw` is a JSON array of cookie objects, else None.
    """
    try:
        data = json.loads(raw)
    except ValueError:
        return None
    if not isinstance(data, list):
        return None
    if not all(isinstance(c, dict) and c.get("name") and "value" in c for c in data):
        return None
    return data


class CookieStore:
    """
    The portal session (Playwright cookie records) persisted as one JSON array.

    The file lives inside the downloads directory but is dot-prefixed so it never shows up as a
    retrieved document. No cross-process locking: two processes refreshing the session at once
    simply race, and the last writer wins.
    """

    def __init__(self, directory: Path | str, *, file_name: str = SESSION_FILE_NAME) -> None:
        self.path = Path(directory) / file_name

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> list[Cookie]:
        """
        Return the stored cookies, or [] when there is no usable session.

        A corrupted store is moved aside so the next login goes through credentials.
        """
        if not self.path.exists():
            return []

        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError:
            logger.warning("Session store unreadable; ignoring it. (%s)", self.path, exc_info=True)
            return []

        cookies = _parse_cookies(raw)
        if cookies is not None:
            return cookies

        logger.warning("Session store is not a valid cookie array; moving it aside: %s", self.path)
        self._quarantine(self.path)
        return []

    def save(self, cookies: list[Cookie]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(json.dumps(cookies, ensure_ascii=False, indent=2), encoding="utf-8")
        tmp.replace(self.path)
        logger.debug("Saved %d session cookies to %s", len(cookies), self.path)

    def clear(self) -> None:
        try:
            self.path.unlink()
            logger.info("Deleted stored session file: %s", self.path)
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning("Failed to delete stored session file: %s", self.path, exc_info=True)

    def _quarantine(self, path: Path) -> None:
        try:
            stamp = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%SZ")
            path.replace(path.with_name(f"{path.name}.corrupt-{stamp}"))
        except OSError:
            logger.debug("Failed to quarantine file=%s", path, exc_info=True)
