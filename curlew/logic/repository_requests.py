"""Request and response data access helpers.

A *scope* is the owning collection id of a request, with ``None`` standing
for unfiled requests. All helpers take an open connection; none of them
decide ordering, they only read and write what the sequencer asks for.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy import insert
from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection

from curlew.db.schema import requests as requests_table
from curlew.db.schema import responses as responses_table

_SUMMARY_COLUMNS = (
    "r.id, r.collection_id, c.name AS collection_name, r.name, r.description, "
    "r.method, r.url, r.sort_order"
)
_DETAIL_COLUMNS = _SUMMARY_COLUMNS + ", r.headers, r.body, r.body_type, r.body_format, r.auth"

CONTENT_FIELDS = (
    "name",
    "description",
    "method",
    "url",
    "headers",
    "body",
    "body_type",
    "body_format",
    "auth",
)


def scope_clause(scope: Optional[str], column: str = "collection_id") -> Tuple[str, Dict[str, Any]]:
    """Return a WHERE fragment selecting one scope plus its bind params."""
    if scope is None:
        return f"{column} IS NULL", {}
    return f"{column} = :scope", {"scope": scope}


def _blank_to_null(value: Optional[str]) -> Optional[str]:
    return value if value else None


def get_request(conn: Connection, request_id: int) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        sql_text(
            f"SELECT {_DETAIL_COLUMNS} FROM requests r "
            "LEFT JOIN collections c ON c.id = r.collection_id WHERE r.id = :id"
        ),
        {"id": request_id},
    ).mappings().fetchone()
    return dict(row) if row else None


def get_request_position(conn: Connection, request_id: int) -> Optional[Tuple[Optional[str], Optional[int]]]:
    """Return ``(scope, sort_order)`` for a request, or None when absent."""
    row = conn.execute(
        sql_text("SELECT collection_id, sort_order FROM requests WHERE id = :id"),
        {"id": request_id},
    ).fetchone()
    if row is None:
        return None
    scope = str(row[0]) if row[0] is not None else None
    return scope, (int(row[1]) if row[1] is not None else None)


def list_scope_positions(conn: Connection, scope: Optional[str]) -> List[Tuple[int, Optional[int]]]:
    where, params = scope_clause(scope)
    rows = conn.execute(
        sql_text(f"SELECT id, sort_order FROM requests WHERE {where}"),
        params,
    ).fetchall()
    return [(int(r[0]), int(r[1]) if r[1] is not None else None) for r in rows]


def list_scopes(conn: Connection) -> List[Optional[str]]:
    rows = conn.execute(sql_text("SELECT DISTINCT collection_id FROM requests")).fetchall()
    return [str(r[0]) if r[0] is not None else None for r in rows]


def max_sort_order(conn: Connection, scope: Optional[str]) -> Optional[int]:
    where, params = scope_clause(scope)
    row = conn.execute(
        sql_text(f"SELECT MAX(sort_order) FROM requests WHERE {where}"),
        params,
    ).fetchone()
    return int(row[0]) if row and row[0] is not None else None


def count_scope(conn: Connection, scope: Optional[str]) -> int:
    where, params = scope_clause(scope)
    row = conn.execute(sql_text(f"SELECT COUNT(*) FROM requests WHERE {where}"), params).fetchone()
    return int(row[0]) if row else 0


def write_positions(conn: Connection, positions: Mapping[int, int]) -> int:
    """Persist ``{request_id: sort_order}``; returns the number of rows written."""
    for request_id, position in positions.items():
        conn.execute(
            sql_text("UPDATE requests SET sort_order = :pos WHERE id = :id"),
            {"pos": int(position), "id": int(request_id)},
        )
    return len(positions)


def shift_positions(
    conn: Connection,
    scope: Optional[str],
    exclude_id: int,
    low: int,
    high: int,
    delta: int,
) -> int:
    """Add ``delta`` to every position in ``[low, high]`` of a scope except ``exclude_id``."""
    where, params = scope_clause(scope)
    result = conn.execute(
        sql_text(
            f"UPDATE requests SET sort_order = sort_order + :delta "
            f"WHERE {where} AND id <> :exclude AND sort_order >= :low AND sort_order <= :high"
        ),
        {**params, "delta": int(delta), "exclude": int(exclude_id), "low": int(low), "high": int(high)},
    )
    return int(result.rowcount or 0)


def set_scope(conn: Connection, request_id: int, scope: Optional[str], position: Optional[int]) -> int:
    result = conn.execute(
        sql_text("UPDATE requests SET collection_id = :scope, sort_order = :pos WHERE id = :id"),
        {"scope": scope, "pos": position, "id": request_id},
    )
    return int(result.rowcount or 0)


def list_requests_ordered(conn: Connection) -> List[Dict[str, Any]]:
    """All requests grouped by scope (unfiled first), then by position."""
    rows = conn.execute(
        sql_text(
            f"SELECT {_SUMMARY_COLUMNS} FROM requests r "
            "LEFT JOIN collections c ON c.id = r.collection_id "
            "ORDER BY CASE WHEN r.collection_id IS NULL THEN 0 ELSE 1 END, r.collection_id ASC, "
            "CASE WHEN r.sort_order IS NULL THEN 1 ELSE 0 END, r.sort_order ASC, r.id ASC"
        )
    ).mappings().all()
    return [dict(r) for r in rows]


def insert_request(conn: Connection, scope: Optional[str], position: Optional[int], fields: Mapping[str, Any]) -> int:
    values = {name: _blank_to_null(fields.get(name)) for name in CONTENT_FIELDS}
    result = conn.execute(
        insert(requests_table).values(collection_id=scope, sort_order=position, **values)
    )
    return int(result.inserted_primary_key[0])


def update_content(conn: Connection, request_id: int, fields: Mapping[str, Any]) -> int:
    values = {name: _blank_to_null(fields.get(name)) for name in CONTENT_FIELDS}
    assignments = ", ".join(f"{name} = :{name}" for name in CONTENT_FIELDS)
    result = conn.execute(
        sql_text(f"UPDATE requests SET {assignments} WHERE id = :id"),
        {**values, "id": request_id},
    )
    return int(result.rowcount or 0)


def delete_request(conn: Connection, request_id: int) -> int:
    conn.execute(sql_text("DELETE FROM responses WHERE request_id = :id"), {"id": request_id})
    result = conn.execute(sql_text("DELETE FROM requests WHERE id = :id"), {"id": request_id})
    return int(result.rowcount or 0)


def delete_requests_in_scopes(conn: Connection, scopes: Iterable[str]) -> int:
    deleted = 0
    for scope in scopes:
        conn.execute(
            sql_text(
                "DELETE FROM responses WHERE request_id IN (SELECT id FROM requests WHERE collection_id = :scope)"
            ),
            {"scope": scope},
        )
        result = conn.execute(sql_text("DELETE FROM requests WHERE collection_id = :scope"), {"scope": scope})
        deleted += int(result.rowcount or 0)
    return deleted


def search_requests(conn: Connection, term: str) -> List[Dict[str, Any]]:
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    like = f"%{escaped}%"
    rows = conn.execute(
        sql_text(
            f"SELECT {_SUMMARY_COLUMNS} FROM requests r "
            "LEFT JOIN collections c ON c.id = r.collection_id "
            "WHERE r.name = :term OR r.url = :term "
            "OR r.name LIKE :like ESCAPE '\\' OR r.url LIKE :like ESCAPE '\\' OR r.body LIKE :like ESCAPE '\\' "
            "ORDER BY r.id ASC"
        ),
        {"term": term, "like": like},
    ).mappings().all()
    return [dict(r) for r in rows]


def insert_response(
    conn: Connection,
    request_id: int,
    status_code: int,
    headers: str,
    body: str,
    runtime_ms: int,
) -> int:
    result = conn.execute(
        insert(responses_table).values(
            request_id=request_id,
            status_code=status_code,
            headers=headers,
            body=body,
            runtime_ms=runtime_ms,
        )
    )
    return int(result.inserted_primary_key[0])


def latest_response(conn: Connection, request_id: int) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        sql_text(
            "SELECT id, request_id, status_code, headers, body, runtime_ms FROM responses "
            "WHERE request_id = :id ORDER BY id DESC LIMIT 1"
        ),
        {"id": request_id},
    ).mappings().fetchone()
    return dict(row) if row else None


def prune_responses(conn: Connection, request_id: int, keep: int) -> int:
    """Delete all but the newest ``keep`` responses of a request."""
    rows = conn.execute(
        sql_text("SELECT id FROM responses WHERE request_id = :id ORDER BY id DESC"),
        {"id": request_id},
    ).fetchall()
    stale = [int(r[0]) for r in rows[keep:]]
    for response_id in stale:
        conn.execute(sql_text("DELETE FROM responses WHERE id = :id"), {"id": response_id})
    return len(stale)


__all__ = [
    "CONTENT_FIELDS",
    "scope_clause",
    "get_request",
    "get_request_position",
    "list_scope_positions",
    "list_scopes",
    "max_sort_order",
    "count_scope",
    "write_positions",
    "shift_positions",
    "set_scope",
    "list_requests_ordered",
    "insert_request",
    "update_content",
    "delete_request",
    "delete_requests_in_scopes",
    "search_requests",
    "insert_response",
    "latest_response",
    "prune_responses",
]
