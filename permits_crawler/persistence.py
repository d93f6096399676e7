"""Permit sinks: where crawl results go.

Both sinks upsert by the record's natural key ``(permit_number, city,
state)``: writing a record that already exists replaces it, while the same
permit number in another jurisdiction is stored separately.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import json
import logging
import os
from pathlib import Path
import re
from typing import List
from uuid import uuid4

import pandas as pd

from permits_crawler.schemas.permit_record import ExtractedPermitRecord


NATURAL_KEY_COLUMNS = ["permit_number", "city", "state"]

_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]+")


def _safe_token(value: str) -> str:
    return _UNSAFE_CHARS_RE.sub("_", value.strip()).strip("_") or "_"


class PermitSink(ABC):
    """Consumer of a batch of extracted permits."""

    name: str = "sink"

    @abstractmethod
    def write(self, records: List[ExtractedPermitRecord]) -> int:
        """Upsert ``records``; return how many were written."""


class JsonPermitSink(PermitSink):
    """One JSON file per permit under ``<root>/<state>/<city>/``.

    Files are written to a temporary name first and atomically moved into
    place, so readers never observe partial writes.

    Parameters
    ----------
    root : Path
        Output root directory; created on demand.
    """

    name = "json"

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def path_for(self, record: ExtractedPermitRecord) -> Path:
        return (
            self.root
            / _safe_token(record.state).lower()
            / _safe_token(record.city).lower()
            / f"{_safe_token(record.permit_number)}.json"
        )

    def write(self, records: List[ExtractedPermitRecord]) -> int:
        written = 0
        for record in records:
            try:
                self.persist_result(record)
                written += 1
            except OSError as e:
                logging.error("Failed to persist permit %s: %s", record.permit_number, e)
        return written

    def persist_result(self, record: ExtractedPermitRecord) -> Path:
        """Atomically write a single permit to its JSON file.

        Returns
        -------
        Path
            Final path of the JSON file.
        """
        final_path = self.path_for(record)
        out_dir = final_path.parent
        out_dir.mkdir(parents=True, exist_ok=True)

        payload = json.dumps(record.model_dump(mode="json"), ensure_ascii=False, sort_keys=True, indent=2)

        tmp_path = out_dir / f".{final_path.stem}.{uuid4().hex}.tmp"
        tmp_path.write_text(payload, encoding="utf-8")
        os.replace(tmp_path, final_path)
        return final_path


class CsvPermitSink(PermitSink):
    """Single CSV file holding every permit, upserted by natural key.

    Parameters
    ----------
    path : Path
        CSV file; created with its parent directory on first write.
    """

    name = "csv"

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def read(self) -> pd.DataFrame:
        if not self.path.exists():
            return pd.DataFrame(columns=NATURAL_KEY_COLUMNS)
        return pd.read_csv(self.path, dtype=str, keep_default_na=False)

    def write(self, records: List[ExtractedPermitRecord]) -> int:
        if not records:
            return 0
        incoming = pd.DataFrame([r.model_dump(mode="json") for r in records]).astype(str)
        incoming = incoming.replace({"None": "", "nan": ""})
        existing = self.read()
        merged = pd.concat([existing, incoming], ignore_index=True)
        merged = merged.drop_duplicates(subset=NATURAL_KEY_COLUMNS, keep="last")

        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.parent / f".{self.path.stem}.{uuid4().hex}.tmp"
        merged.to_csv(tmp_path, index=False)
        os.replace(tmp_path, self.path)
        logging.info("Wrote %s permits to %s (%s rows total)", len(records), self.path, len(merged))
        return len(records)
