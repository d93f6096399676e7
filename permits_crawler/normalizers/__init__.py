"""Pure functions turning scraped text into structured values."""

from .address import ParsedAddress, parse_address, split_street_city_state_zip
from .currency import parse_currency
from .dates import coerce_date, format_portal_date, parse_date
from .status import (
    ACCELA_STATUS_VOCABULARY,
    ENERGOV_STATUS_VOCABULARY,
    StatusVocabulary,
    resolve_status,
)

__all__ = [
    "ACCELA_STATUS_VOCABULARY",
    "ENERGOV_STATUS_VOCABULARY",
    "ParsedAddress",
    "StatusVocabulary",
    "coerce_date",
    "format_portal_date",
    "parse_address",
    "parse_currency",
    "parse_date",
    "resolve_status",
    "split_street_city_state_zip",
]
