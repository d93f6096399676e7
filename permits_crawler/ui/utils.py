"""UI utilities: logging setup, connection checks, date prompts and JSON export."""

from __future__ import annotations

import json
import logging
from pathlib import Path
import ssl
from typing import Any, Dict, Optional
import urllib.request
from datetime import date, datetime

import pandas as pd
from tqdm import tqdm


GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
CYAN = "\033[96m"
BOLD = "\033[1m"
RESET = "\033[0m"


def setup_file_logging(log_file: Path) -> None:
    """Configure file-only logging for the CLI."""
    log_file.parent.mkdir(parents=True, exist_ok=True)
    log_file.touch(exist_ok=True)
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        handlers=[logging.FileHandler(log_file, encoding="utf-8")],
        force=True,
    )


def check_connection(url: str, timeout: float = 5.0) -> bool:
    """Check reachability of a portal via a HEAD request.

    Parameters
    ----------
    url : str
        Endpoint to check.
    timeout : float, default=5.0
        Timeout in seconds for the network check.

    Returns
    -------
    bool
        ``True`` if the endpoint answered with a status below 500.
    """
    try:
        req = urllib.request.Request(url, method="HEAD", headers={"User-Agent": "Mozilla/5.0"})
        with urllib.request.urlopen(req, timeout=timeout, context=ssl.create_default_context()) as resp:
            return 200 <= getattr(resp, "status", 200) < 500
    except Exception as e:
        logging.info("Connection check failed for %s: %s", url, e)
        return False


def connection_status_text(url: str, is_up: bool) -> str:
    if is_up:
        return f"{url} Connection status: {GREEN}available{RESET}"
    return (
        f"{url} Connection status: {RED}unavailable{RESET}"
        f" {YELLOW}(hint: try to use a proxy or VPN){RESET}"
    )


def parse_date_flexible(s: str) -> Optional[date]:
    """Parse a prompted date; blank input means "not given".

    Examples
    --------
    >>> parse_date_flexible("2025-01-15")
    datetime.date(2025, 1, 15)
    >>> parse_date_flexible("01/15/2025")
    datetime.date(2025, 1, 15)
    >>> parse_date_flexible("") is None
    True
    """
    s = s.strip()
    if not s:
        return None
    fmts = [
        "%Y-%m-%d",
        "%m/%d/%Y",
        "%m-%d-%Y",
    ]
    for f in fmts:
        try:
            return datetime.strptime(s, f).date()
        except ValueError:
            continue
    raise ValueError(f"Unsupported date format: {s}")


def parse_optional_int(s: str) -> Optional[int]:
    s = s.strip()
    if not s:
        return None
    value = int(s)
    if value < 1:
        raise ValueError("Limit must be a positive number")
    return value


def flatten(prefix: str, obj: Any, out: Dict[str, Any]) -> None:
    """Flatten a JSON-like object into a single-level dict with dotted keys.

    Lists are serialized to JSON strings to preserve order and structure.
    """
    if isinstance(obj, dict):
        for k, v in obj.items():
            key = f"{prefix}.{k}" if prefix else str(k)
            flatten(key, v, out)
    elif isinstance(obj, list):
        out[prefix] = json.dumps(obj, ensure_ascii=False)
    else:
        out[prefix] = obj


def convert_json_folder_to_csv(folder: Path, out_csv: Path) -> int:
    """Collect every permit JSON file below ``folder`` into one CSV.

    Returns
    -------
    int
        Number of JSON files converted.

    Raises
    ------
    FileNotFoundError
        If ``folder`` is not a directory.
    """
    if not folder.exists() or not folder.is_dir():
        raise FileNotFoundError(f"Folder not found or not a directory: {folder}")
    rows = []
    files = sorted(p for p in folder.rglob("*.json") if p.is_file() and not p.name.startswith("."))
    for fp in tqdm(files, desc="Converting JSON", leave=True):
        try:
            data = json.loads(fp.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logging.warning("Skipping unreadable JSON file %s: %s", fp, e)
            continue
        flat: Dict[str, Any] = {}
        flatten("", data, flat)
        rows.append(flat)
    out_csv.parent.mkdir(parents=True, exist_ok=True)
    if not rows:
        pd.DataFrame(columns=["permit_number"]).to_csv(out_csv, index=False)
        return 0
    df = pd.DataFrame(rows)
    cols = df.columns.tolist()
    if "permit_number" in cols:
        df = df[["permit_number"] + [c for c in cols if c != "permit_number"]]
    df.to_csv(out_csv, index=False)
    return len(rows)
