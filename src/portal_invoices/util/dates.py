from __future__ import annotations

import re
from datetime import datetime

from dateutil import parser as date_parser


_ISO_PERIOD_RE = re.compile(r"^(\d{4})[-_./](\d{1,2})$")
_MONTH_FIRST_RE = re.compile(r"^(\d{1,2})[-_./](\d{4})$")


def parse_period(value: str) -> str:
    """
    Normalize a billing month to "YYYY-MM".

    Accepts e.g.:
    - "2026-01", "2026_1"
    - "01/2026", "1.2026"
    - "Jan 2026", "January 2026"
    """
    if value is None:
        raise ValueError("parse_period: value is None")
    s = value.strip()
    if not s:
        raise ValueError("parse_period: empty string")

    # Explicit numeric forms first: dateutil would read "01/2026" as Jan 1 of the *current* month.
    m = _ISO_PERIOD_RE.match(s)
    if m:
        year, month = int(m.group(1)), int(m.group(2))
    else:
        m = _MONTH_FIRST_RE.match(s)
        if m:
            month, year = int(m.group(1)), int(m.group(2))
        else:
            dt = date_parser.parse(s, default=datetime(2000, 1, 1))
            year, month = dt.year, dt.month

    if not 1 <= month <= 12:
        raise ValueError(f"parse_period: month out of range in {value!r}")
    return f"{year:04d}-{month:02d}"
