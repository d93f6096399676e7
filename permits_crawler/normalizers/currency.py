"""Currency parsing."""

from __future__ import annotations

import re
from typing import Optional


_AMOUNT_RE = re.compile(r"-?\d[\d,]*(?:\.\d+)?")


def parse_currency(raw: Optional[str], positive_only: bool = False) -> Optional[float]:
    """Parse the first amount in ``raw`` after stripping ``$`` and commas.

    Parameters
    ----------
    raw : Optional[str]
        Text such as ``"$24,000.00"``.
    positive_only : bool, default=False
        Reject zero as well as negative amounts.

    Returns
    -------
    Optional[float]
        The amount, or ``None`` when nothing parseable (or negative) is found.

    Examples
    --------
    >>> parse_currency("$24,000.00")
    24000.0
    >>> parse_currency("N/A") is None
    True
    """
    if not raw:
        return None
    m = _AMOUNT_RE.search(raw.replace("$", ""))
    if not m:
        return None
    try:
        amount = float(m.group(0).replace(",", ""))
    except ValueError:
        return None
    if amount < 0 or (positive_only and amount == 0):
        return None
    return amount
