from __future__ import annotations

from dataclasses import dataclass
from typing import List, Literal, Optional, Sequence

from sheetview.data import Row, cell_at, cell_text


SortDirection = Literal["asc", "desc"]


@dataclass(frozen=True)
class ViewState:
    query: str = ""
    sort_column: Optional[int] = None
    sort_direction: SortDirection = "asc"


def normalize_view_state(raw: dict, *, column_count: Optional[int] = None) -> ViewState:
    query = raw.get("query")
    query = "" if query is None else str(query)

    sort_column = raw.get("sort_column")
    try:
        sort_column = int(sort_column) if sort_column is not None else None
    except (TypeError, ValueError):
        sort_column = None
    if sort_column is not None:
        if sort_column < 0 or (column_count is not None and sort_column >= column_count):
            sort_column = None

    direction = str(raw.get("sort_direction") or "asc").lower()
    if direction not in ("asc", "desc"):
        direction = "asc"

    return ViewState(query=query, sort_column=sort_column, sort_direction=direction)  # type: ignore[arg-type]


def filter_rows(rows: Sequence[Row], query: str) -> Sequence[Row]:
    """Keep rows where any cell contains ``query``, case-insensitively.

    Matching is a plain substring test on ``str.lower()`` output, so there is
    no locale-aware folding for non-ASCII text (e.g. "ß" does not match "ss").
    """
    if not query:
        return rows
    needle = query.lower()
    return [row for row in rows if any(needle in cell_text(cell).lower() for cell in row)]


def _sort_key(row: Row, column: int) -> bytes:
    # UTF-16 big-endian bytes compare in code-unit order.
    return cell_text(cell_at(row, column)).lower().encode("utf-16-be")


def sort_rows(rows: Sequence[Row], column: Optional[int], direction: SortDirection = "asc") -> Sequence[Row]:
    if column is None:
        return rows
    # sorted() is stable and keeps ties in input order even with reverse=True.
    return sorted(rows, key=lambda row: _sort_key(row, column), reverse=direction == "desc")


def apply_view(rows: Sequence[Row], state: ViewState) -> List[Row]:
    filtered = filter_rows(rows, state.query)
    return list(sort_rows(filtered, state.sort_column, state.sort_direction))


def toggle_sort(state: ViewState, column: int) -> ViewState:
    if state.sort_column == column:
        direction: SortDirection = "desc" if state.sort_direction == "asc" else "asc"
        return ViewState(query=state.query, sort_column=column, sort_direction=direction)
    return ViewState(query=state.query, sort_column=column, sort_direction="asc")
