"""Table definitions for collections, requests and responses.

No foreign keys are declared: a request or collection may legitimately
point at a deleted collection (orphan delete policy), and SQLite would
not enforce them anyway.
"""

from __future__ import annotations

import logging

from sqlalchemy import Column, Index, Integer, MetaData, String, Table, Text, inspect
from sqlalchemy import text as sql_text
from sqlalchemy.engine import Engine

logger = logging.getLogger(__name__)

metadata = MetaData()

collections = Table(
    "collections",
    metadata,
    Column("id", String(36), primary_key=True),
    Column("name", Text, nullable=False),
    Column("description", Text, nullable=True),
    Column("schema", Text, nullable=True),
    Column("version_major", Integer, nullable=True),
    Column("version_minor", Integer, nullable=True),
    Column("version_patch", Integer, nullable=True),
    Column("version_identifier", Text, nullable=True),
    Column("parent_collection", String(36), nullable=True),
)

requests = Table(
    "requests",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("collection_id", String(36), nullable=True),
    Column("name", Text, nullable=True),
    Column("description", Text, nullable=True),
    Column("method", Text, nullable=True),
    Column("url", Text, nullable=True),
    Column("headers", Text, nullable=True),
    Column("body", Text, nullable=True),
    Column("body_type", Text, nullable=True),
    Column("body_format", Text, nullable=True),
    Column("auth", Text, nullable=True),
    Column("sort_order", Integer, nullable=True),
    Index("ix_requests_scope_order", "collection_id", "sort_order"),
)

responses = Table(
    "responses",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("request_id", Integer, nullable=False),
    Column("status_code", Integer, nullable=True),
    Column("headers", Text, nullable=True),
    Column("body", Text, nullable=True),
    Column("runtime_ms", Integer, nullable=True),
    Index("ix_responses_request", "request_id"),
)

# Columns that older desktop databases were created without
_LEGACY_COLUMNS = {
    "requests": {"sort_order": "INTEGER"},
    "collections": {"parent_collection": "TEXT"},
}


def create_schema(engine: Engine) -> None:
    """Create missing tables, then add columns absent from legacy databases."""
    metadata.create_all(engine)
    upgrade_legacy_columns(engine)


def upgrade_legacy_columns(engine: Engine) -> list[str]:
    """Add columns that pre-ordering releases did not create.

    Returns the ``table.column`` names that were added.
    """
    added: list[str] = []
    insp = inspect(engine)
    with engine.begin() as conn:
        for table_name, columns in _LEGACY_COLUMNS.items():
            if not insp.has_table(table_name):
                continue
            present = {c["name"] for c in insp.get_columns(table_name)}
            for column_name, ddl_type in columns.items():
                if column_name in present:
                    continue
                conn.execute(
                    sql_text(f"ALTER TABLE {table_name} ADD COLUMN {column_name} {ddl_type}")
                )
                added.append(f"{table_name}.{column_name}")
    if added:
        logger.warning("legacy_schema_upgraded columns=%s", added)
    return added


__all__ = ["metadata", "collections", "requests", "responses", "create_schema", "upgrade_legacy_columns"]
