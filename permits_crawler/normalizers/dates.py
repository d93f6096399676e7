"""Date parsing for portal text and caller input."""

from __future__ import annotations

import re
from datetime import date, datetime
from typing import Optional, Union

from permits_crawler.schemas.search import PORTAL_DATE_FORMAT


_PORTAL_DATE_RE = re.compile(r"^\s*(\d{1,2})/(\d{1,2})/(\d{4})\b")
_MIN_YEAR = 1900
_MAX_YEAR = 2099


def parse_date(raw: Optional[str]) -> Optional[date]:
    """Parse a portal ``MM/DD/YYYY`` string.

    Trailing time components are ignored. Anything that is not a real
    calendar date returns ``None``; this function never raises.

    Examples
    --------
    >>> parse_date("01/15/2025")
    datetime.date(2025, 1, 15)
    >>> parse_date("13/40/2024") is None
    True
    """
    if not raw:
        return None
    m = _PORTAL_DATE_RE.match(raw)
    if not m:
        return None
    month, day, year = (int(g) for g in m.groups())
    if not _MIN_YEAR <= year <= _MAX_YEAR:
        return None
    try:
        return date(year, month, day)
    except ValueError:
        return None


def format_portal_date(d: date) -> str:
    return d.strftime(PORTAL_DATE_FORMAT)


def coerce_date(value: Union[date, datetime, str, None]) -> Optional[date]:
    """Turn caller input into a ``date``.

    Accepts ``date``/``datetime`` objects and ISO (``YYYY-MM-DD``) or portal
    (``MM/DD/YYYY``) strings.

    Raises
    ------
    ValueError
        If a string matches none of the supported formats.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = value.strip()
    if not s:
        return None
    for fmt in ("%Y-%m-%d", PORTAL_DATE_FORMAT, "%m-%d-%Y"):
        try:
            return datetime.strptime(s, fmt).date()
        except ValueError:
            continue
    raise ValueError(f"Unsupported date format: {value}")
