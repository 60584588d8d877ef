"""Request ordering within a scope.

A scope is the set of requests sharing one owning collection id (``None``
is the unfiled scope). Positions are contiguous and 0-based once a scope
is normalized. Normalization is lazy: writes that leave gaps (deletes,
moves out of a scope, imports from older versions) are repaired the next
time the scope is read or repositioned.
"""

from __future__ import annotations

from typing import Any, List, Mapping, Optional, Tuple
import logging

from sqlalchemy.engine import Connection

from curlew.db.base import transaction
from curlew.logic import repository_requests as repo
from curlew.logic.errors import NotFound
from curlew.logic.events import REQUESTS_REORDERED, publish
from curlew.models.collections import RequestSummary

logger = logging.getLogger(__name__)


def _ordering_key(row: Tuple[int, Optional[int]]) -> Tuple[bool, int, int]:
    # Positioned before unpositioned, then by position, then by id
    request_id, position = row
    return (position is None, position if position is not None else 0, request_id)


def to_summary(row: Mapping[str, Any]) -> RequestSummary:
    return RequestSummary(
        id=int(row["id"]),
        collection_id=row.get("collection_id"),
        collection_name=row.get("collection_name"),
        name=row.get("name") or "",
        description=row.get("description") or "",
        method=row.get("method") or "",
        url=row.get("url") or "",
        sort_order=row.get("sort_order"),
    )


def normalize_scope(conn: Connection, scope: Optional[str]) -> int:
    """Rewrite a scope's positions to 0..n-1; returns the number of rows changed.

    Only rows whose position differs are written, so a second call with no
    intervening writes is a no-op.
    """
    rows = sorted(repo.list_scope_positions(conn, scope), key=_ordering_key)
    changes = {request_id: idx for idx, (request_id, position) in enumerate(rows) if position != idx}
    if changes:
        repo.write_positions(conn, changes)
        logger.info("scope_normalized scope=%s rows=%s changed=%s", scope, len(rows), len(changes))
    return len(changes)


def normalize(scope: Optional[str]) -> int:
    with transaction() as conn:
        return normalize_scope(conn, scope)


def next_position(conn: Connection, scope: Optional[str]) -> int:
    """Return the position a newly appended request in ``scope`` should take."""
    current = repo.max_sort_order(conn, scope)
    return (current if current is not None else -1) + 1


def append_new(scope: Optional[str]) -> int:
    with transaction() as conn:
        return next_position(conn, scope)


def set_position(request_id: int, target_position: int) -> int:
    """Move one request to ``target_position`` within its scope.

    The scope is normalized first so the shift arithmetic runs on a dense
    sequence. Requests between the old and new slot move by one; the
    target is clamped into ``[0, n-1]``. Returns the final position. All
    writes share one transaction, so a failure leaves the scope untouched.
    """
    with transaction() as conn:
        located = repo.get_request_position(conn, request_id)
        if located is None:
            raise NotFound(f"request {request_id} not found")
        scope = located[0]
        normalize_scope(conn, scope)

        _, current = repo.get_request_position(conn, request_id)  # type: ignore[misc]
        size = repo.count_scope(conn, scope)
        final = max(0, min(int(target_position), size - 1))
        if current == final:
            return final

        if current < final:
            shifted = repo.shift_positions(conn, scope, request_id, current + 1, final, -1)
        else:
            shifted = repo.shift_positions(conn, scope, request_id, final, current - 1, 1)
        repo.write_positions(conn, {request_id: final})
        logger.info(
            "request_repositioned id=%s scope=%s from=%s to=%s shifted=%s",
            request_id,
            scope,
            current,
            final,
            shifted,
        )

    publish(REQUESTS_REORDERED, {"request_id": request_id, "collection_id": scope, "sort_order": final})
    return final


def list_ordered() -> List[RequestSummary]:
    """All requests grouped by scope then position, after normalizing every scope."""
    with transaction() as conn:
        for scope in repo.list_scopes(conn):
            normalize_scope(conn, scope)
        rows = repo.list_requests_ordered(conn)
    return [to_summary(r) for r in rows]


__all__ = [
    "to_summary",
    "normalize_scope",
    "normalize",
    "next_position",
    "append_new",
    "set_position",
    "list_ordered",
]
