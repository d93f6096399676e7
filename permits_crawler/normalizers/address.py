"""Address parsing."""

from __future__ import annotations

import re
from typing import Optional

from pydantic import BaseModel


_TRAILING_ZIP_RE = re.compile(r"\b(\d{5})(?:-\d{4})?\s*$")
_CITY_STATE_ZIP_RE = re.compile(r"^([A-Z ]+) ([A-Z]{2}) (\d{5})$")


class ParsedAddress(BaseModel):
    """Address split into the parts a permit record stores.

    Parameters
    ----------
    address : Optional[str]
        Street address (or the full trimmed string when it cannot be split).
    zip_code : Optional[str]
        Five digit postal code.
    city : Optional[str]
        City named inside the address, when the format carries one.
    state : Optional[str]
        Two letter state named inside the address, when the format carries one.
    """

    address: Optional[str] = None
    zip_code: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None


def parse_address(raw: Optional[str]) -> ParsedAddress:
    """Isolate the postal code from a one-line address.

    The full trimmed string is kept as the address.

    Examples
    --------
    >>> parse_address("1067 PAINTBRUSH DR SUNNYVALE CA 94086")
    ParsedAddress(address='1067 PAINTBRUSH DR SUNNYVALE CA 94086', zip_code='94086', city=None, state=None)
    """
    if raw is None:
        return ParsedAddress()
    text = raw.strip()
    if not text:
        return ParsedAddress()
    m = _TRAILING_ZIP_RE.search(text)
    return ParsedAddress(address=text, zip_code=m.group(1) if m else None)


def split_street_city_state_zip(raw: Optional[str]) -> ParsedAddress:
    """Split ``"STREET, CITY NAME ST 12345"`` addresses.

    The last comma-separated part must match ``CITY ST 12345``; when it does
    not, the trimmed string is returned as the address with only the trailing
    postal code (if any) isolated.

    Examples
    --------
    >>> split_street_city_state_zip("123 MAIN ST, LOS GATOS CA 95032")
    ParsedAddress(address='123 MAIN ST', zip_code='95032', city='LOS GATOS', state='CA')
    """
    if raw is None or not raw.strip():
        return ParsedAddress()
    parts = [p.strip() for p in raw.split(",")]
    if len(parts) >= 2:
        m = _CITY_STATE_ZIP_RE.match(parts[-1])
        if m:
            return ParsedAddress(
                address=parts[0],
                city=m.group(1).strip(),
                state=m.group(2),
                zip_code=m.group(3),
            )
    return parse_address(raw)
