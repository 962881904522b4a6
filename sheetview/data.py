from __future__ import annotations

import json
import logging
import math
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

import pandas as pd
import requests

from sheetview.config import SheetSource


logger = logging.getLogger(__name__)

# A cell is already flattened by the source: text, a number, or absent.
Cell = Union[str, int, float, None]
Row = List[Cell]

SOURCE_EDIT_URL = "https://docs.google.com/spreadsheets/d/{sheet_id}/edit"
NO_CACHE_HEADERS = {"Cache-Control": "no-cache", "Pragma": "no-cache"}


class ParseError(ValueError):
    """The payload does not hold a recoverable table."""


class FetchError(RuntimeError):
    def __init__(self, message: str, *, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


@dataclass(frozen=True)
class Table:
    headers: List[str] = field(default_factory=list)
    rows: List[Row] = field(default_factory=list)


# ---------------- Cell helpers ----------------
def format_number(value: Union[int, float]) -> str:
    """Default decimal rendering of a number.

    Uses the shortest round-trip digits (``repr``) and places the decimal point
    the way spreadsheet front ends print numbers: plain notation while the
    decimal exponent is between -7 and 20, exponent notation (``1e-7``,
    ``1e+21``) outside that range.
    """
    if isinstance(value, int):
        return str(value)
    if math.isnan(value):
        return "NaN"
    if math.isinf(value):
        return "Infinity" if value > 0 else "-Infinity"
    if value == 0:
        return "0"

    sign = "-" if value < 0 else ""
    mantissa, _, exp = repr(abs(value)).partition("e")
    int_part, _, frac_part = mantissa.partition(".")
    digits = int_part + frac_part
    # value == 0.<digits> * 10**point
    point = len(int_part) + int(exp or 0)
    stripped = digits.lstrip("0")
    point -= len(digits) - len(stripped)
    digits = stripped.rstrip("0")
    k = len(digits)

    if k <= point <= 21:
        out = digits + "0" * (point - k)
    elif 0 < point <= 21:
        out = digits[:point] + "." + digits[point:]
    elif -6 < point <= 0:
        out = "0." + "0" * -point + digits
    else:
        e = point - 1
        head = digits if k == 1 else digits[0] + "." + digits[1:]
        out = f"{head}e{'+' if e >= 0 else '-'}{abs(e)}"
    return sign + out


def cell_text(cell: Cell) -> str:
    if cell is None:
        return ""
    if isinstance(cell, bool):
        return "true" if cell else "false"
    if isinstance(cell, (int, float)):
        return format_number(cell)
    return str(cell)


def is_blank(cell: Cell) -> bool:
    return cell is None or cell == ""


def display_headers(headers: Sequence[str]) -> List[str]:
    return [h if h else f"Column {idx + 1}" for idx, h in enumerate(headers)]


def cell_at(row: Sequence[Cell], index: int) -> Cell:
    if 0 <= index < len(row):
        return row[index]
    return None


# ---------------- Parsing ----------------
def _extract_json_text(raw: str) -> str:
    start = raw.find("{")
    end = raw.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise ParseError("Response does not contain a JSON object.")
    return raw[start : end + 1]


def _source_error_message(payload: Dict[str, Any]) -> Optional[str]:
    if payload.get("status") != "error":
        return None
    messages = []
    for err in payload.get("errors") or []:
        if not isinstance(err, dict):
            continue
        msg = err.get("detailed_message") or err.get("message") or err.get("reason")
        if msg:
            messages.append(str(msg))
    return "; ".join(messages) or "Data source reported an error."


def _cell_value(slot: Any) -> Cell:
    if not isinstance(slot, dict):
        return None
    # Formatted text wins over the raw value when both are present.
    value = slot.get("f")
    if value is None:
        value = slot.get("v")
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return value
    return json.dumps(value)


def parse_response(raw: str) -> Table:
    text = _extract_json_text(raw or "")
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Response JSON is invalid: {exc}") from exc

    if not isinstance(payload, dict):
        raise ParseError("Response JSON is not an object.")
    source_error = _source_error_message(payload)
    if source_error:
        raise ParseError(source_error)

    table = payload.get("table")
    if not isinstance(table, dict):
        raise ParseError("Response has no table.")
    cols = table.get("cols")
    rows = table.get("rows")
    if not isinstance(cols, list) or not isinstance(rows, list):
        raise ParseError("Response table is missing cols/rows.")

    headers: List[str] = []
    for col in cols:
        label = col.get("label") if isinstance(col, dict) else None
        headers.append(str(label).strip() if label is not None else "")

    parsed_rows: List[Row] = []
    for row in rows:
        slots = row.get("c") if isinstance(row, dict) else None
        parsed_rows.append([_cell_value(slot) for slot in (slots or [])])

    return Table(headers=headers, rows=parsed_rows)


# ---------------- Fetching ----------------
def build_query_url(source: SheetSource, cache_token: Optional[str] = None) -> str:
    params = {"tqx": "out:json"}
    if source.sheet_name:
        params["sheet"] = source.sheet_name
    params["_"] = cache_token or str(int(time.time() * 1000))
    base = source.base_url.format(sheet_id=source.sheet_id)
    return requests.Request("GET", base, params=params).prepare().url


def source_url(sheet_id: str) -> str:
    return SOURCE_EDIT_URL.format(sheet_id=sheet_id)


def fetch_payload(source: SheetSource) -> str:
    url = build_query_url(source)
    logger.debug("GET %s", url)
    try:
        response = requests.get(url, headers=NO_CACHE_HEADERS, timeout=source.timeout)
    except requests.RequestException as exc:
        raise FetchError(f"Could not reach data source: {exc}") from exc
    if not 200 <= response.status_code < 300:
        raise FetchError(
            f"Data source returned HTTP {response.status_code}.",
            status_code=response.status_code,
        )
    return response.text


def fetch_table(source: SheetSource) -> Table:
    return parse_response(fetch_payload(source))


# ---------------- Export ----------------
def table_to_frame(headers: Sequence[str], rows: Sequence[Row]) -> pd.DataFrame:
    columns = display_headers(headers)
    width = len(columns)
    padded = [[cell_at(row, idx) for idx in range(width)] for row in rows]
    # Duplicate header labels are legal in a sheet.
    frame = pd.DataFrame(padded, columns=range(width), dtype=object)
    frame.columns = columns
    return frame
