from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel


class ViewStateModel(BaseModel):
    query: str = ""
    sort_column: Optional[int] = None
    sort_direction: Literal["asc", "desc"] = "asc"


class SourceResponse(BaseModel):
    sheet_id: str
    sheet_name: Optional[str] = None
    source_url: str


class TableResponse(BaseModel):
    headers: List[str]
    display_headers: List[str]
    rows: List[List[Optional[Dict[str, Any]]]]
    total_rows: int
    loading: bool = False
    error: Optional[str] = None
    source_url: str
