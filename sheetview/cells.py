from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from sheetview.data import Cell, cell_text, is_blank


PLACEHOLDER = "—"

LABEL_LIMIT = 200
LABEL_THRESHOLD = 204
ELLIPSIS = "..."

_ANCHOR_MARKER = re.compile(r"<a[\s>]", re.IGNORECASE)
_ANCHOR_TAG = re.compile(r"<a\b[^>]*>", re.IGNORECASE)
_TARGET_ATTR = re.compile(r"""\s+target\s*=\s*(?:"[^"]*"|'[^']*'|[^\s>]+)""", re.IGNORECASE)
_REL_ATTR = re.compile(r"""\s+rel\s*=\s*(?:"[^"]*"|'[^']*'|[^\s>]+)""", re.IGNORECASE)
_URL_TOKEN = re.compile(r"(https?://[^\s<>\"']+)|(www\.[^\s<>\"']+)", re.IGNORECASE)

_NEW_WINDOW = ' target="_blank" rel="noopener noreferrer"'


@dataclass(frozen=True)
class PlainText:
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": "text", "text": self.text}


@dataclass(frozen=True)
class Link:
    url: str
    label: str

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": "link", "url": self.url, "label": self.label}


@dataclass(frozen=True)
class RichHtmlFragment:
    html: str

    def to_dict(self) -> Dict[str, Any]:
        return {"kind": "html", "html": self.html}


NormalizedCell = Union[PlainText, Link, RichHtmlFragment]


def _open_in_new_window(match: "re.Match[str]") -> str:
    tag = match.group(0)
    closing = "/>" if tag.endswith("/>") else ">"
    body = tag[: -len(closing)]
    body = _TARGET_ATTR.sub("", body)
    body = _REL_ATTR.sub("", body)
    return body + _NEW_WINDOW + closing


def rewrite_anchors(fragment: str) -> str:
    """Force every anchor to open in a new window without referrer or opener.

    An anchor with no target opens in the same window, so it is rewritten too.
    No other markup is touched.
    """
    return _ANCHOR_TAG.sub(_open_in_new_window, fragment)


def truncate_label(text: str) -> str:
    if len(text) > LABEL_THRESHOLD:
        return text[:LABEL_LIMIT] + ELLIPSIS
    return text


def first_url(text: str) -> Optional[str]:
    match = _URL_TOKEN.search(text)
    if not match:
        return None
    if match.group(1):
        return match.group(1)
    return "https://" + match.group(2)


def normalize(value: Cell) -> NormalizedCell:
    """Classify a non-empty cell for display.

    Blank cells are rendered as ``PLACEHOLDER`` by the caller and never reach
    this function. Plain text is never truncated; only link labels are.
    """
    text = cell_text(value)
    if isinstance(value, str):
        if _ANCHOR_MARKER.search(text):
            return RichHtmlFragment(rewrite_anchors(text))
        url = first_url(text)
        if url:
            return Link(url=url, label=truncate_label(text))
    return PlainText(text)


def render_cell(value: Cell) -> Optional[NormalizedCell]:
    if is_blank(value):
        return None
    return normalize(value)
