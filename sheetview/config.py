from __future__ import annotations

import os
import re
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv


GVIZ_BASE_URL = "https://docs.google.com/spreadsheets/d/{sheet_id}/gviz/tq"
DEFAULT_TIMEOUT = 60.0


@dataclass(frozen=True)
class SheetSource:
    sheet_id: str
    sheet_name: Optional[str] = None
    base_url: str = GVIZ_BASE_URL
    timeout: Optional[float] = DEFAULT_TIMEOUT


def extract_sheet_id(value: str) -> str:
    """Accept either a bare spreadsheet id or a full spreadsheet URL."""
    value = (value or "").strip()
    match = re.search(r"/spreadsheets/d/([^/?#]+)", value)
    if match:
        return match.group(1)
    return value


def source_from_env(environ: Optional[Mapping[str, str]] = None) -> SheetSource:
    if environ is None:
        load_dotenv()
        environ = os.environ

    sheet_id = extract_sheet_id(environ.get("SHEET_ID", ""))
    if not sheet_id:
        raise ValueError("SHEET_ID is not set. Put the spreadsheet id (or URL) in the environment or a .env file.")

    sheet_name = (environ.get("SHEET_NAME") or "").strip() or None

    timeout: Optional[float] = DEFAULT_TIMEOUT
    raw_timeout = environ.get("SHEET_TIMEOUT")
    if raw_timeout:
        try:
            timeout = float(raw_timeout)
        except ValueError:
            raise ValueError(f"SHEET_TIMEOUT must be a number of seconds, got {raw_timeout!r}")
        if timeout <= 0:
            timeout = None

    return SheetSource(sheet_id=sheet_id, sheet_name=sheet_name, timeout=timeout)
