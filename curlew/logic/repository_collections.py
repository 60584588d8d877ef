"""Collection data access helpers.

Thin textual-SQL wrappers over the ``collections`` table. Every function
takes an open connection so callers control the transaction boundary.
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection

_COLUMNS = "id, name, description, parent_collection"


def _row_to_dict(row: Any) -> Dict[str, Any]:
    return {
        "id": str(row["id"]),
        "name": row["name"] or "",
        "description": row["description"] or "",
        "parent_collection": row["parent_collection"],
    }


def get_collection(conn: Connection, collection_id: str) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        sql_text(f"SELECT {_COLUMNS} FROM collections WHERE id = :id"),
        {"id": collection_id},
    ).mappings().fetchone()
    return _row_to_dict(row) if row else None


def collection_exists(conn: Connection, collection_id: str) -> bool:
    row = conn.execute(
        sql_text("SELECT 1 FROM collections WHERE id = :id"),
        {"id": collection_id},
    ).fetchone()
    return row is not None


def get_parent_id(conn: Connection, collection_id: str) -> tuple[bool, Optional[str]]:
    """Return ``(found, parent_id)`` for one collection."""
    row = conn.execute(
        sql_text("SELECT parent_collection FROM collections WHERE id = :id"),
        {"id": collection_id},
    ).fetchone()
    if row is None:
        return False, None
    return True, (str(row[0]) if row[0] is not None else None)


def list_collections(conn: Connection) -> List[Dict[str, Any]]:
    rows = conn.execute(
        sql_text(f"SELECT {_COLUMNS} FROM collections ORDER BY name ASC, id ASC")
    ).mappings().all()
    return [_row_to_dict(r) for r in rows]


def list_child_ids(conn: Connection, collection_id: str) -> List[str]:
    rows = conn.execute(
        sql_text("SELECT id FROM collections WHERE parent_collection = :id AND id <> :id ORDER BY id ASC"),
        {"id": collection_id},
    ).fetchall()
    return [str(r[0]) for r in rows]


def insert_collection(
    conn: Connection,
    collection_id: str,
    name: str,
    description: str,
    parent_id: Optional[str],
    *,
    schema: Optional[str] = None,
    version_major: Optional[int] = None,
    version_minor: Optional[int] = None,
    version_patch: Optional[int] = None,
    version_identifier: Optional[str] = None,
) -> None:
    conn.execute(
        sql_text(
            """
            INSERT INTO collections (id, name, description, schema, version_major, version_minor,
                                     version_patch, version_identifier, parent_collection)
            VALUES (:id, :name, :description, :schema, :vmaj, :vmin, :vpat, :vid, :parent)
            """
        ),
        {
            "id": collection_id,
            "name": name,
            "description": description or None,
            "schema": schema or None,
            "vmaj": version_major,
            "vmin": version_minor,
            "vpat": version_patch,
            "vid": version_identifier or None,
            "parent": parent_id,
        },
    )


def update_parent(conn: Connection, collection_id: str, parent_id: Optional[str]) -> int:
    result = conn.execute(
        sql_text("UPDATE collections SET parent_collection = :parent WHERE id = :id"),
        {"parent": parent_id, "id": collection_id},
    )
    return int(result.rowcount or 0)


def update_details(conn: Connection, collection_id: str, name: Optional[str], description: Optional[str]) -> int:
    result = conn.execute(
        sql_text(
            """
            UPDATE collections
               SET name = COALESCE(:name, name),
                   description = CASE WHEN :set_desc = 1 THEN :description ELSE description END
             WHERE id = :id
            """
        ),
        {
            "name": name,
            "set_desc": 1 if description is not None else 0,
            "description": description or None,
            "id": collection_id,
        },
    )
    return int(result.rowcount or 0)


def clear_self_references(conn: Connection) -> List[str]:
    """Null out every ``parent_collection`` that points at its own row."""
    rows = conn.execute(
        sql_text("SELECT id FROM collections WHERE parent_collection = id")
    ).fetchall()
    repaired = [str(r[0]) for r in rows]
    if repaired:
        conn.execute(sql_text("UPDATE collections SET parent_collection = NULL WHERE parent_collection = id"))
    return repaired


def delete_collections(conn: Connection, collection_ids: List[str]) -> int:
    deleted = 0
    for cid in collection_ids:
        result = conn.execute(sql_text("DELETE FROM collections WHERE id = :id"), {"id": cid})
        deleted += int(result.rowcount or 0)
    return deleted


__all__ = [
    "get_collection",
    "collection_exists",
    "get_parent_id",
    "list_collections",
    "list_child_ids",
    "insert_collection",
    "update_parent",
    "update_details",
    "clear_self_references",
    "delete_collections",
]
