import html
import logging
from contextlib import contextmanager
from dataclasses import replace
from typing import List, Optional

import pandas as pd
import streamlit as st

from sheetview.cells import PLACEHOLDER, Link, NormalizedCell, PlainText, RichHtmlFragment
from sheetview.config import SheetSource, extract_sheet_id, source_from_env
from sheetview.data import display_headers, table_to_frame
from sheetview.pipeline import TableView

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")


# ---------- UI / layout helpers ----------
def inject_base_styles():
    if st.session_state.get("_base_css_injected"):
        return
    st.markdown(
        """
        <style>
        .app-top-bar {padding: 6px 0 4px;border-bottom: 1px solid #e5e7eb;margin-bottom: 10px;}
        .app-top-bar .breadcrumb {color: #6b7280;font-size: 0.9rem;margin-bottom: 2px;}
        .app-top-bar .page-title {font-size: 1.4rem;font-weight: 700;color: #111827;}
        .card {border: 1px solid #e5e7eb;border-radius: 12px;padding: 16px;background: #ffffff;
               box-shadow: 0 1px 2px rgba(0,0,0,0.04); margin-bottom: 12px;}
        .card-header {display: flex;justify-content: space-between;align-items: center;margin-bottom: 8px;}
        .card-title {font-weight: 600;font-size: 1.0rem;color: #111827;}
        .card-actions {font-size: 0.9rem;color: #2563eb;}
        .chip-row {display: flex;flex-wrap: wrap;gap: 6px;margin-top: 6px;}
        .chip {background: #f3f4f6;border: 1px solid #e5e7eb;border-radius: 14px;padding: 4px 10px;font-size: 0.85rem;color: #374151;}
        table.sheet {border-collapse: collapse;width: 100%;font-size: 0.9rem;}
        table.sheet th {background: #f9fafb;text-align: left;padding: 6px 8px;border-bottom: 2px solid #e5e7eb;}
        table.sheet td {padding: 6px 8px;border-bottom: 1px solid #f3f4f6;vertical-align: top;}
        table.sheet td.empty {color: #9ca3af;}
        </style>
        """,
        unsafe_allow_html=True,
    )
    st.session_state["_base_css_injected"] = True


@contextmanager
def card(title: str, actions: Optional[str] = None):
    container = st.container()
    container.markdown(
        f"""
        <div class="card">
          <div class="card-header">
            <div class="card-title">{html.escape(title)}</div>
            <div class="card-actions">{actions or ""}</div>
          </div>
        """,
        unsafe_allow_html=True,
    )
    body = container.container()
    with body:
        yield body
    container.markdown("</div>", unsafe_allow_html=True)


def format_view_summary(view: TableView) -> str:
    state = view.state
    headers = display_headers(view.headers)
    query_chip = f"Search: {state.query}" if state.query else "Search: none"
    if state.sort_column is not None and state.sort_column < len(headers):
        arrow = "▲" if state.sort_direction == "asc" else "▼"
        sort_chip = f"Sort: {headers[state.sort_column]} {arrow}"
    else:
        sort_chip = "Sort: source order"
    total = len(view.table.rows) if view.table else 0
    rows_chip = f"Rows: {len(view.visible_rows)} of {total}"
    return "".join([f"<span class='chip'>{html.escape(txt)}</span>" for txt in [query_chip, sort_chip, rows_chip]])


def render_page_header(title: str, breadcrumb: str, summary_html: str, view: TableView, export_df: Optional[pd.DataFrame] = None):
    inject_base_styles()
    top = st.container()
    c1, c2, c3 = top.columns([6, 2, 2])
    with c1:
        st.markdown(
            f"<div class='app-top-bar'><div class='breadcrumb'>{html.escape(breadcrumb)}</div>"
            f"<div class='page-title'>{html.escape(title)}</div></div>",
            unsafe_allow_html=True,
        )
    with c2:
        btn_cols = st.columns(2)
        if btn_cols[0].button("Refresh"):
            view.load()
            st.rerun()
        if export_df is not None and not export_df.empty:
            btn_cols[1].download_button(
                "Export CSV",
                data=export_df.to_csv(index=False).encode("utf-8"),
                file_name=f"{view.source.sheet_name or 'sheet'}.csv",
                mime="text/csv",
            )
    with c3:
        st.link_button("Open sheet", view.source_url)
    st.markdown(f"<div class='chip-row'>{summary_html}</div>", unsafe_allow_html=True)


def cell_html(cell: Optional[NormalizedCell]) -> str:
    if cell is None:
        return f"<td class='empty'>{PLACEHOLDER}</td>"
    if isinstance(cell, RichHtmlFragment):
        return f"<td>{cell.html}</td>"
    if isinstance(cell, Link):
        return (
            f"<td><a href=\"{html.escape(cell.url, quote=True)}\" target=\"_blank\" rel=\"noopener noreferrer\">"
            f"{html.escape(cell.label)}</a></td>"
        )
    if isinstance(cell, PlainText):
        return f"<td>{html.escape(cell.text)}</td>"
    raise TypeError(f"Unexpected cell type: {type(cell).__name__}")


def render_table(headers: List[str], rows: List[List[Optional[NormalizedCell]]]) -> str:
    head = "".join(f"<th>{html.escape(h)}</th>" for h in headers)
    body = "".join("<tr>" + "".join(cell_html(c) for c in row) + "</tr>" for row in rows)
    return f"<table class='sheet'><thead><tr>{head}</tr></thead><tbody>{body}</tbody></table>"


def render_sort_controls(view: TableView):
    headers = display_headers(view.headers)
    if not headers:
        return
    state = view.state
    cols = st.columns(len(headers))
    for idx, label in enumerate(headers):
        arrow = ""
        if state.sort_column == idx:
            arrow = " ▲" if state.sort_direction == "asc" else " ▼"
        if cols[idx].button(f"{label}{arrow}", key=f"sort_{idx}", use_container_width=True):
            view.toggle_sort(idx)
            st.rerun()


def default_source() -> Optional[SheetSource]:
    try:
        return source_from_env()
    except ValueError:
        return None


def get_view(source: SheetSource) -> TableView:
    current: Optional[TableView] = st.session_state.get("table_view")
    if current is not None and current.source == source:
        return current
    if current is not None:
        current.cancel()
    st.session_state.pop("query", None)
    view = TableView(source)
    st.session_state["table_view"] = view
    view.load()
    return view


# ---------- UI setup ----------
st.set_page_config(page_title="Sheet Table", layout="wide")
inject_base_styles()

env_source = default_source()
with st.sidebar:
    st.markdown("### Data source")
    sheet_input = st.text_input("Spreadsheet id or URL", env_source.sheet_id if env_source else "")
    sheet_name = st.text_input("Sheet name (optional)", (env_source.sheet_name or "") if env_source else "")

sheet_id = extract_sheet_id(sheet_input)
if not sheet_id:
    st.info("Enter a spreadsheet id or URL in the sidebar, or set SHEET_ID in the environment.")
    st.stop()

source = SheetSource(sheet_id=sheet_id, sheet_name=sheet_name.strip() or None)
if env_source:
    source = replace(source, timeout=env_source.timeout)
view = get_view(source)

st.session_state.setdefault("query", view.state.query)
st.text_input("Search", key="query", placeholder="Filter rows by any cell")
view.set_query(st.session_state["query"])

export_df = table_to_frame(view.headers, view.visible_rows) if view.table else None
render_page_header(
    title=source.sheet_name or "Sheet",
    breadcrumb=f"Sheets / {sheet_id}",
    summary_html=format_view_summary(view),
    view=view,
    export_df=export_df,
)

if view.error:
    st.error(f"Could not load the sheet: {view.error}")
if view.table is None:
    st.stop()

with card("Rows", actions="Click a column to sort"):
    render_sort_controls(view)
    if not view.visible_rows:
        st.info("No rows match the search.")
    else:
        st.markdown(render_table(display_headers(view.headers), view.render_rows()), unsafe_allow_html=True)
