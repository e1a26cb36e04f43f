from __future__ import annotations

import logging
from typing import Any

from cargo_tracker.core.errors import ValidationError
from cargo_tracker.store.base import DocumentStore, Entity, Query

logger = logging.getLogger(__name__)

NEXT_KEY = "next"
TOTAL_KEYS = ("totalBoats", "totalLoads", "totalUsers")

INVALID_PAGE = "The page number must be an integer."


def parse_page(raw: str | None) -> int:
    """``?page=`` to a 1-based page number. Absent means 1 and anything below 1 is clamped to 1."""
    if raw is None or not raw.strip():
        return 1
    try:
        page = int(raw.strip(), 10)
    except ValueError:
        raise ValidationError(INVALID_PAGE)
    return max(1, page)


def paginate(store: DocumentStore, query: Query, page_number: int | None, page_size: int) -> tuple[list[Entity], bool]:
    """
    Fetch one page of ``query``.

    Whether a next page exists is decided by running the query again for the
    following window rather than trusting the backend's continuation
    metadata. Costs a second query per listing.
    """
    page = max(1, page_number or 1)
    offset = page_size * (page - 1)

    items = store.run_query(query.window(offset, page_size))
    lookahead = store.run_query(query.window(offset + page_size, page_size))

    logger.debug("%s page %d: %d items, next=%s", query.kind, page, len(items), bool(lookahead))
    return items, bool(lookahead)


def next_link(base_url: str, collection: str, page_number: int) -> str:
    return f"{base_url}/{collection}?page={page_number + 1}"


def with_sentinels(
    entries: list[dict[str, Any]],
    *,
    next_url: str | None = None,
    totals: dict[str, int] | None = None,
) -> list[dict[str, Any]]:
    """Append the totals entry (if any) and then the ``{"next": url}`` entry, which is always last."""
    out = list(entries)
    if totals:
        out.append(dict(totals))
    if next_url:
        out.append({NEXT_KEY: next_url})
    return out


def is_sentinel(entry: dict[str, Any]) -> bool:
    return NEXT_KEY in entry or any(k in entry for k in TOTAL_KEYS)


def strip_sentinels(entries: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """The domain entries of a listing, without the next/total markers."""
    return [e for e in entries if not is_sentinel(e)]
