"""Shared fixtures: view sources, sample tables, and fake fetchers (no network)."""

from __future__ import annotations

from typing import Any, Callable, List, Optional

import pytest

from sheetview.config import SheetSource
from sheetview.data import Table
from tests.helpers import FakeResponse


@pytest.fixture
def source() -> SheetSource:
    return SheetSource(sheet_id="abc123", sheet_name="People")


@pytest.fixture
def people_table() -> Table:
    return Table(
        headers=["Name", "Site", "Age"],
        rows=[
            ["bob", "www.bob.com", 30],
            ["Alice", None, 25],
            ["carol", "https://carol.dev", 41],
            ["Bob", "bob again", 19],
        ],
    )


@pytest.fixture
def make_fetcher() -> Callable[..., Callable[[SheetSource], Table]]:
    def _make(*results: Any) -> Callable[[SheetSource], Table]:
        queue: List[Any] = list(results)
        calls: List[SheetSource] = []

        def fetch(src: SheetSource) -> Table:
            calls.append(src)
            result = queue.pop(0)
            if isinstance(result, Exception):
                raise result
            return result

        fetch.calls = calls  # type: ignore[attr-defined]
        return fetch

    return _make


@pytest.fixture
def fake_get(monkeypatch: pytest.MonkeyPatch) -> Callable[[str, int], List[dict]]:
    """Patch ``requests.get``; returns a function that sets the next response."""
    seen: List[dict] = []
    state: dict = {"response": FakeResponse()}

    def _get(url: str, headers: Optional[dict] = None, timeout: Optional[float] = None) -> FakeResponse:
        seen.append({"url": url, "headers": headers, "timeout": timeout})
        response = state["response"]
        if isinstance(response, Exception):
            raise response
        return response

    monkeypatch.setattr("sheetview.data.requests.get", _get)

    def _set(text: Any, status_code: int = 200) -> List[dict]:
        state["response"] = text if isinstance(text, Exception) else FakeResponse(text, status_code)
        return seen

    return _set
