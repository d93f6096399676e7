"""Test date, address and currency normalizers."""

from datetime import date, datetime

import pytest

from permits_crawler.normalizers import (
    coerce_date,
    format_portal_date,
    parse_address,
    parse_currency,
    parse_date,
    split_street_city_state_zip,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("01/15/2025", date(2025, 1, 15)),
        ("1/5/2025", date(2025, 1, 5)),
        ("01/15/2025 10:32 AM", date(2025, 1, 15)),
        ("02/30/2025", None),
        ("13/40/2024", None),
        ("01/15/1850", None),
        ("2025-01-15", None),
        ("", None),
        (None, None),
    ],
)
def test_parse_date(raw, expected):
    assert parse_date(raw) == expected


@pytest.mark.parametrize(
    "value,expected",
    [
        (date(2025, 1, 2), date(2025, 1, 2)),
        (datetime(2025, 1, 2, 15, 30), date(2025, 1, 2)),
        ("2025-01-02", date(2025, 1, 2)),
        ("01/02/2025", date(2025, 1, 2)),
        ("01-02-2025", date(2025, 1, 2)),
        ("  ", None),
        (None, None),
    ],
)
def test_coerce_date(value, expected):
    assert coerce_date(value) == expected


def test_coerce_date_rejects_garbage():
    with pytest.raises(ValueError):
        coerce_date("yesterday")


def test_format_portal_date():
    assert format_portal_date(date(2025, 3, 7)) == "03/07/2025"


def test_parse_address_keeps_full_text():
    parsed = parse_address("  1067 PAINTBRUSH DR SUNNYVALE CA 94086 ")
    assert parsed.address == "1067 PAINTBRUSH DR SUNNYVALE CA 94086"
    assert parsed.zip_code == "94086"


def test_parse_address_zip_plus_four():
    assert parse_address("10 ELM ST GILROY CA 95020-1234").zip_code == "95020"


def test_parse_address_without_zip():
    parsed = parse_address("10 ELM ST")
    assert parsed.address == "10 ELM ST"
    assert parsed.zip_code is None


@pytest.mark.parametrize("raw", [None, "", "   "])
def test_parse_address_blank(raw):
    assert parse_address(raw).address is None


def test_split_street_city_state_zip():
    parsed = split_street_city_state_zip("123 MAIN ST, LOS GATOS CA 95032")
    assert (parsed.address, parsed.city, parsed.state, parsed.zip_code) == ("123 MAIN ST", "LOS GATOS", "CA", "95032")


def test_split_street_falls_back_to_whole_string():
    parsed = split_street_city_state_zip("123 MAIN ST, UNIT 4")
    assert parsed.address == "123 MAIN ST, UNIT 4"
    assert parsed.city is None
    assert parsed.zip_code is None


@pytest.mark.parametrize(
    "raw,positive_only,expected",
    [
        ("$24,000.00", False, 24000.0),
        ("USD 1,234.5 total", False, 1234.5),
        ("$0.00", False, 0.0),
        ("$0.00", True, None),
        ("-$50.00", False, None),
        ("N/A", False, None),
        ("", False, None),
        (None, False, None),
    ],
)
def test_parse_currency(raw, positive_only, expected):
    assert parse_currency(raw, positive_only=positive_only) == expected
