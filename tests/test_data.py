from __future__ import annotations

from urllib.parse import parse_qs, urlparse

import pytest
import requests

from sheetview.config import SheetSource
from sheetview.data import (
    FetchError,
    ParseError,
    Table,
    build_query_url,
    cell_text,
    display_headers,
    fetch_table,
    parse_response,
    source_url,
    table_to_frame,
)
from tests.helpers import table_payload, wrap_payload

RAW_BOB = (
    'google.visualization.Query.setResponse({"table":{"cols":[{"label":"Name"},{"label":"Site"}],'
    '"rows":[{"c":[{"v":"Bob"},{"v":"www.bob.com"}]}]}});'
)


def test_parse_end_to_end_payload():
    table = parse_response(RAW_BOB)
    assert table.headers == ["Name", "Site"]
    assert table.rows == [["Bob", "www.bob.com"]]


def test_parse_recovers_serialized_table():
    original = Table(
        headers=["Name", "Notes", ""],
        rows=[["Ann", "likes {braces}", 3], [None, "x", 2.5], []],
    )
    assert parse_response(table_payload(original.headers, original.rows)) == original


def test_parse_is_indifferent_to_wrapper():
    body = {"table": {"cols": [{"label": "A"}], "rows": [{"c": [{"v": 1}]}]}}
    raw = "while(1);\n" + wrap_payload(body).replace("setResponse", "handle") + "\n// trailer"
    assert parse_response(raw).rows == [[1]]


@pytest.mark.parametrize("raw", ["", "setResponse();", "no json here", "} backwards {"])
def test_parse_without_object_fails(raw):
    with pytest.raises(ParseError):
        parse_response(raw)


def test_parse_invalid_json_fails():
    with pytest.raises(ParseError, match="invalid"):
        parse_response("cb({table: {cols: []}});")


@pytest.mark.parametrize(
    "body",
    [
        {"status": "ok"},
        {"table": {"cols": []}},
        {"table": {"rows": []}},
        {"table": {"cols": {}, "rows": []}},
    ],
)
def test_parse_missing_structure_fails(body):
    with pytest.raises(ParseError):
        parse_response(wrap_payload(body))


def test_parse_surfaces_source_error_message():
    body = {
        "status": "error",
        "errors": [{"reason": "invalid_query", "message": "INVALID_QUERY", "detailed_message": "Invalid query: NO_COLUMN: Z"}],
    }
    with pytest.raises(ParseError, match="NO_COLUMN"):
        parse_response(wrap_payload(body))


def test_parse_header_labels_trimmed_and_absent_become_empty():
    body = {"table": {"cols": [{"label": "  Name "}, {"id": "B"}, {"label": None}], "rows": []}}
    assert parse_response(wrap_payload(body)).headers == ["Name", "", ""]


def test_parse_prefers_formatted_value():
    body = {
        "table": {
            "cols": [{"label": "When"}, {"label": "Pct"}, {"label": "Raw"}, {"label": "Empty"}],
            "rows": [
                {
                    "c": [
                        {"v": "Date(2024,0,5)", "f": "1/5/2024"},
                        {"v": 0.25, "f": "25%"},
                        {"v": 7},
                        {"v": None},
                    ]
                }
            ],
        }
    }
    assert parse_response(wrap_payload(body)).rows == [["1/5/2024", "25%", 7, None]]


def test_parse_null_slots_and_short_rows():
    body = {"table": {"cols": [{"label": "A"}, {"label": "B"}, {"label": "C"}], "rows": [{"c": [None, {"v": "x"}]}, {"c": None}]}}
    assert parse_response(wrap_payload(body)).rows == [[None, "x"], []]


def test_parse_booleans_become_text():
    body = {"table": {"cols": [{"label": "Flag"}], "rows": [{"c": [{"v": True}]}]}}
    assert parse_response(wrap_payload(body)).rows == [["true"]]


@pytest.mark.parametrize(
    "cell, expected",
    [
        (None, ""),
        ("x", "x"),
        (3, "3"),
        (3.0, "3"),
        (2.5, "2.5"),
        (-0.5, "-0.5"),
        (0.001, "0.001"),
        (0.00001, "0.00001"),
        (0.000001, "0.000001"),
        (1e-7, "1e-7"),
        (1.5e-7, "1.5e-7"),
        (123.456, "123.456"),
        (1e16, "10000000000000000"),
        (1.2345678901234568e20, "123456789012345680000"),
        (1e21, "1e+21"),
        (1.25e22, "1.25e+22"),
        (-0.0, "0"),
    ],
)
def test_cell_text(cell, expected):
    assert cell_text(cell) == expected


def test_display_headers_positional_fallback():
    assert display_headers(["Name", "", "Age"]) == ["Name", "Column 2", "Age"]


def test_build_query_url_has_cache_buster_and_sheet():
    url = build_query_url(SheetSource(sheet_id="abc", sheet_name="My Tab"), cache_token="42")
    parsed = urlparse(url)
    assert parsed.path == "/spreadsheets/d/abc/gviz/tq"
    assert parse_qs(parsed.query) == {"tqx": ["out:json"], "sheet": ["My Tab"], "_": ["42"]}


def test_build_query_url_default_token_changes_nothing_else():
    url = build_query_url(SheetSource(sheet_id="abc"))
    query = parse_qs(urlparse(url).query)
    assert "sheet" not in query
    assert query["_"][0].isdigit()


def test_source_url():
    assert source_url("abc") == "https://docs.google.com/spreadsheets/d/abc/edit"


def test_fetch_table_parses_body(fake_get, source):
    seen = fake_get(RAW_BOB)
    table = fetch_table(source)
    assert table.headers == ["Name", "Site"]
    assert seen[0]["headers"]["Cache-Control"] == "no-cache"
    assert seen[0]["timeout"] == source.timeout


def test_fetch_non_2xx_is_fetch_error(fake_get, source):
    fake_get("<html>nope</html>", status_code=404)
    with pytest.raises(FetchError) as info:
        fetch_table(source)
    assert info.value.status_code == 404


def test_fetch_transport_failure_is_fetch_error(fake_get, source):
    fake_get(requests.ConnectionError("boom"))
    with pytest.raises(FetchError, match="boom"):
        fetch_table(source)


def test_table_to_frame_pads_rows_and_labels_columns():
    frame = table_to_frame(["Name", ""], [["Ann"], ["Bob", 2]])
    assert list(frame.columns) == ["Name", "Column 2"]
    assert frame.iloc[0].tolist() == ["Ann", None]
    assert frame.iloc[1].tolist() == ["Bob", 2]
