from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional

from sheetview.cells import NormalizedCell, render_cell
from sheetview.config import SheetSource
from sheetview.data import FetchError, ParseError, Row, Table, fetch_table, source_url
from sheetview.filters import ViewState, apply_view, toggle_sort


logger = logging.getLogger(__name__)

Fetcher = Callable[[SheetSource], Table]


class TableView:
    """Owns one table, its view state, and the rows derived from them.

    Loads are tagged with a generation number. A result is applied only if no
    newer load (or ``cancel``) happened since it started.
    """

    def __init__(self, source: SheetSource, *, fetcher: Fetcher = fetch_table, state: Optional[ViewState] = None) -> None:
        self.source = source
        self._fetcher = fetcher
        self._state = state or ViewState()
        self._table: Optional[Table] = None
        self._generation = 0
        self._pending: Optional[int] = None
        self._error: Optional[str] = None
        self._visible: Optional[List[Row]] = None

    # ---------- state ----------
    @property
    def state(self) -> ViewState:
        return self._state

    @property
    def table(self) -> Optional[Table]:
        return self._table

    @property
    def headers(self) -> List[str]:
        return list(self._table.headers) if self._table else []

    @property
    def loading(self) -> bool:
        return self._pending is not None

    @property
    def error(self) -> Optional[str]:
        return self._error

    @property
    def source_url(self) -> str:
        return source_url(self.source.sheet_id)

    def set_query(self, query: str) -> None:
        if query != self._state.query:
            self._set_state(replace(self._state, query=query))

    def toggle_sort(self, column: int) -> None:
        self._set_state(toggle_sort(self._state, column))

    def set_state(self, state: ViewState) -> None:
        self._set_state(state)

    def _set_state(self, state: ViewState) -> None:
        self._state = state
        self._visible = None

    # ---------- loading ----------
    def begin_load(self) -> int:
        self._generation += 1
        self._pending = self._generation
        return self._generation

    def cancel(self) -> None:
        self._generation += 1
        self._pending = None

    def is_current(self, generation: int) -> bool:
        return generation == self._generation

    def apply_table(self, generation: int, table: Table) -> bool:
        if not self.is_current(generation):
            logger.warning("Discarding superseded load %s for sheet %s", generation, self.source.sheet_id)
            return False
        self._table = table
        self._error = None
        self._pending = None
        self._visible = None
        return True

    def apply_error(self, generation: int, exc: Exception) -> bool:
        if not self.is_current(generation):
            logger.warning("Discarding superseded load error %s for sheet %s", generation, self.source.sheet_id)
            return False
        self._error = str(exc) or type(exc).__name__
        self._pending = None
        return True

    def load(self) -> bool:
        """Fetch and parse the sheet. Returns True when a new table was applied."""
        generation = self.begin_load()
        logger.info("Loading sheet %s (generation %s)", self.source.sheet_id, generation)
        try:
            table = self._fetcher(self.source)
        except (FetchError, ParseError) as exc:
            logger.warning("Loading sheet %s failed: %s", self.source.sheet_id, exc)
            self.apply_error(generation, exc)
            return False
        applied = self.apply_table(generation, table)
        if applied:
            logger.info("Loaded sheet %s: %d columns, %d rows", self.source.sheet_id, len(table.headers), len(table.rows))
        return applied

    # ---------- derived ----------
    @property
    def visible_rows(self) -> List[Row]:
        if self._table is None:
            return []
        if self._visible is None:
            self._visible = apply_view(self._table.rows, self._state)
        return list(self._visible)

    def render_rows(self) -> List[List[Optional[NormalizedCell]]]:
        width = len(self.headers)
        out = []
        for row in self.visible_rows:
            cells = list(row[:width]) + [None] * (width - len(row))
            out.append([render_cell(cell) for cell in cells])
        return out

    def snapshot(self) -> Dict[str, Any]:
        return {
            "headers": self.headers,
            "visible_rows": self.visible_rows,
            "loading": self.loading,
            "error": self.error,
        }
