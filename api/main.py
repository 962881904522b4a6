from __future__ import annotations

import logging
import math
from functools import lru_cache
from typing import Optional

from fastapi import FastAPI, Query
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response

from api.schemas import SourceResponse, TableResponse, ViewStateModel
from sheetview.config import SheetSource, source_from_env
from sheetview.data import display_headers, table_to_frame
from sheetview.filters import normalize_view_state
from sheetview.pipeline import TableView


app = FastAPI(title="Sheet Table API", version="0.1.0")
logger = logging.getLogger(__name__)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000", "http://localhost:8501"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@lru_cache(maxsize=1)
def get_source() -> SheetSource:
    return source_from_env()


def _json(data: object, status_code: int = 200) -> JSONResponse:
    """Return JSON with NaN/inf cells mapped to null."""

    def _safe_float(value: float) -> Optional[float]:
        if math.isnan(value) or math.isinf(value):
            return None
        return value

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(data, custom_encoder={float: _safe_float}),
    )


def _error(exc: Exception) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


def _load_view(raw_state: dict) -> TableView:
    view = TableView(get_source())
    view.load()
    if view.table is not None:
        view.set_state(normalize_view_state(raw_state, column_count=len(view.headers)))
    return view


def _table_payload(view: TableView) -> dict:
    rendered = [[cell.to_dict() if cell is not None else None for cell in row] for row in view.render_rows()]
    payload = TableResponse(
        headers=view.headers,
        display_headers=display_headers(view.headers),
        rows=rendered,
        total_rows=len(view.table.rows) if view.table else 0,
        loading=view.loading,
        error=view.error,
        source_url=view.source_url,
    )
    return payload.model_dump()


def _table_response(raw_state: dict) -> JSONResponse:
    view = _load_view(raw_state)
    # The coordinator already turned fetch/parse failures into a message.
    return _json(_table_payload(view), status_code=502 if view.error else 200)


@app.get("/meta/source")
def meta_source():
    try:
        source = get_source()
        payload = SourceResponse(sheet_id=source.sheet_id, sheet_name=source.sheet_name, source_url=TableView(source).source_url)
        return _json(payload.model_dump())
    except Exception as exc:
        logger.exception("meta_source failed")
        return _error(exc)


@app.get("/table")
def table_get(
    q: str = Query(default=""),
    sort_column: Optional[int] = Query(default=None),
    sort_direction: str = Query(default="asc"),
):
    try:
        return _table_response({"query": q, "sort_column": sort_column, "sort_direction": sort_direction})
    except Exception as exc:
        logger.exception("table_get failed")
        return _error(exc)


@app.post("/table")
def table_post(state: ViewStateModel):
    try:
        return _table_response(state.model_dump())
    except Exception as exc:
        logger.exception("table_post failed")
        return _error(exc)


@app.get("/export")
def export_csv(
    q: str = Query(default=""),
    sort_column: Optional[int] = Query(default=None),
    sort_direction: str = Query(default="asc"),
):
    try:
        view = _load_view({"query": q, "sort_column": sort_column, "sort_direction": sort_direction})
        if view.error:
            return JSONResponse(status_code=502, content={"error": view.error, "type": "LoadError"})
        export_df = table_to_frame(view.headers, view.visible_rows)
        csv_bytes = export_df.to_csv(index=False).encode("utf-8")
        filename = f"{view.source.sheet_name or 'sheet'}.csv"
        return Response(
            content=csv_bytes,
            media_type="text/csv",
            headers={"Content-Disposition": f"attachment; filename={filename}"},
        )
    except Exception as exc:
        logger.exception("export failed")
        return _error(exc)
