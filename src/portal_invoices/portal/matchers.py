from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Optional


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Match:
    selector: str
    handle: Any


async def first_match(scope: Any, candidates: Iterable[str], *, require_visible: bool = False) -> Optional[Match]:
    """
    Return the first candidate selector that resolves to an element in `scope` (a Page or Frame).

    With `require_visible`, attached-but-hidden elements (template inputs, collapsed menus) are skipped
    and the next candidate is tried.
    """
    for selector in candidates:
        try:
            handle = await scope.query_selector(selector)
        except Exception:
            logger.debug("Selector candidate raised; trying next. (selector=%s)", selector, exc_info=True)
            continue
        if handle is None:
            continue

        if require_visible:
            try:
                visible = await handle.is_visible()
            except Exception:
                logger.debug("Visibility check failed; trying next. (selector=%s)", selector, exc_info=True)
                continue
            if not visible:
                logger.debug("Selector matched a hidden element; trying next. (selector=%s)", selector)
                continue

        return Match(selector=selector, handle=handle)
    return None


async def has_match(scope: Any, selector: str) -> bool:
    try:
        return await scope.query_selector(selector) is not None
    except Exception:
        logger.debug("Presence check failed. (selector=%s)", selector, exc_info=True)
        return False
