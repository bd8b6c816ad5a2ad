"""Shared limit/offset/sort rules for the thread and post listings.

Raw query-string values go in, validated values come out. Nothing here
raises: malformed input is treated as if it had not been sent.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Union

from app.config import FORUM_DEFAULT_PAGE_SIZE, FORUM_MAX_PAGE_SIZE

RawParam = Union[str, int, None]

_INT_RE = re.compile(r"\d+", re.ASCII)
_FALSY = {"false", "0", "no", "off"}
# LIMIT/OFFSET are bound as signed 64-bit integers
_MAX_SQL_INT = 2**63 - 1


@dataclass(frozen=True)
class SortStrategy:
    name: str
    key: str          # created_at | last_activity | view_count | reaction_count
    descending: bool


SORT_STRATEGIES = {
    "newest": SortStrategy("newest", "created_at", True),
    "oldest": SortStrategy("oldest", "created_at", False),
    "active": SortStrategy("active", "last_activity", True),
    "popular": SortStrategy("popular", "view_count", True),
    "engaging": SortStrategy("engaging", "reaction_count", True),
}
DEFAULT_SORT = "active"


@dataclass(frozen=True)
class PageParams:
    limit: int
    offset: int
    sort: SortStrategy


def _coerce_int(raw: RawParam, default: int, minimum: int) -> int:
    if raw is None or isinstance(raw, bool):
        return default
    if isinstance(raw, int):
        value = raw
    else:
        text = str(raw).strip()
        if not _INT_RE.fullmatch(text):
            return default
        digits = text.lstrip("0") or "0"
        # no 64-bit value has more than 19 digits
        if len(digits) > 19:
            return default
        value = int(digits)
    if value < minimum or value > _MAX_SQL_INT:
        return default
    return value


def coerce_limit(raw: RawParam) -> int:
    limit = _coerce_int(raw, FORUM_DEFAULT_PAGE_SIZE, 1)
    return min(limit, FORUM_MAX_PAGE_SIZE)


def coerce_offset(raw: RawParam) -> int:
    return _coerce_int(raw, 0, 0)


def resolve_sort(raw: Optional[str]) -> SortStrategy:
    key = (raw or "").strip().lower()
    return SORT_STRATEGIES.get(key, SORT_STRATEGIES[DEFAULT_SORT])


def resolve_page_params(
    limit: RawParam = None,
    offset: RawParam = None,
    sort: Optional[str] = None,
) -> PageParams:
    return PageParams(
        limit=coerce_limit(limit),
        offset=coerce_offset(offset),
        sort=resolve_sort(sort),
    )


def parse_include_replies(raw: Union[str, bool, None]) -> bool:
    """Default true; only an explicit false-ish value turns replies off."""
    if raw is None:
        return True
    if isinstance(raw, bool):
        return raw
    return str(raw).strip().lower() not in _FALSY
