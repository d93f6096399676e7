"""Test CLI helpers."""

from datetime import date

import pandas as pd
import pytest

from permits_crawler.persistence import JsonPermitSink
from permits_crawler.schemas.permit_record import ExtractedPermitRecord
from permits_crawler.ui.utils import convert_json_folder_to_csv, flatten, parse_date_flexible, parse_optional_int


def test_parse_date_flexible():
    assert parse_date_flexible(" 2025-01-15 ") == date(2025, 1, 15)
    assert parse_date_flexible("01-15-2025") == date(2025, 1, 15)
    assert parse_date_flexible("") is None
    with pytest.raises(ValueError):
        parse_date_flexible("15.01.2025")


def test_parse_optional_int():
    assert parse_optional_int("25") == 25
    assert parse_optional_int("  ") is None
    with pytest.raises(ValueError):
        parse_optional_int("0")


def test_flatten():
    out = {}
    flatten("", {"a": {"b": 1}, "c": [1, 2]}, out)
    assert out == {"a.b": 1, "c": "[1, 2]"}


def test_convert_json_folder_to_csv(tmp_path):
    sink = JsonPermitSink(tmp_path / "json")
    sink.write([
        ExtractedPermitRecord(permit_number="B-2", city="Gilroy", state="CA", description="Reroof"),
        ExtractedPermitRecord(permit_number="B-1", city="Sunnyvale", state="CA"),
    ])
    out_csv = tmp_path / "export" / "permits.csv"

    assert convert_json_folder_to_csv(tmp_path / "json", out_csv) == 2

    df = pd.read_csv(out_csv)
    assert df.columns[0] == "permit_number"
    assert sorted(df["permit_number"]) == ["B-1", "B-2"]


def test_convert_missing_folder(tmp_path):
    with pytest.raises(FileNotFoundError):
        convert_json_folder_to_csv(tmp_path / "nope", tmp_path / "out.csv")
