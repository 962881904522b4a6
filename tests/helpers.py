"""Payload builders for GViz-style responses."""

from __future__ import annotations

import json
from typing import Any, Sequence

from sheetview.data import Cell

GVIZ_PREFIX = "/*O_o*/\ngoogle.visualization.Query.setResponse("
GVIZ_SUFFIX = ");"


def wrap_payload(obj: Any) -> str:
    return GVIZ_PREFIX + json.dumps(obj) + GVIZ_SUFFIX


def table_payload(headers: Sequence[str], rows: Sequence[Sequence[Cell]]) -> str:
    cols = [{"id": chr(ord("A") + i), "label": h, "type": "string"} for i, h in enumerate(headers)]
    out_rows = [{"c": [None if cell is None else {"v": cell} for cell in row]} for row in rows]
    return wrap_payload({"version": "0.6", "status": "ok", "table": {"cols": cols, "rows": out_rows}})


class FakeResponse:
    def __init__(self, text: str = "", status_code: int = 200) -> None:
        self.text = text
        self.status_code = status_code
