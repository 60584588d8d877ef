"""SQLAlchemy engine and transaction helpers.

The desktop build runs against a local SQLite file; PostgreSQL is supported
for shared installs. Repositories issue textual SQL through connections
handed out by :func:`transaction`.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool

from curlew.logic.errors import StoreError

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./curlew_db.db"


def _db_url() -> str:
    return (
        os.getenv("TEST_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or DEFAULT_DATABASE_URL
    )


# Module-level cached Engine so every repository call shares one pool
_ENGINE: Engine | None = None
_ENGINE_URL: str | None = None


def get_engine(url: str | None = None) -> Engine:
    """Return the process-wide SQLAlchemy Engine.

    Called without a URL, returns the cached engine (building one from the
    environment on first use). Called with a URL that differs from the
    cached one, the old engine is disposed and replaced. In-memory SQLite
    uses a StaticPool so every session sees the same database.
    """
    global _ENGINE, _ENGINE_URL
    if url is None and _ENGINE is not None:
        return _ENGINE
    resolved_url = url or _db_url()

    if _ENGINE is None or _ENGINE_URL != resolved_url:
        kwargs: dict = {"future": True, "pool_pre_ping": True}
        if resolved_url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if ":memory:" in resolved_url:
                kwargs["poolclass"] = StaticPool
        if _ENGINE is not None:
            _ENGINE.dispose()
        _ENGINE = create_engine(resolved_url, **kwargs)
        _ENGINE_URL = resolved_url
        logger.info("engine_created dialect=%s", _ENGINE.dialect.name)

    return _ENGINE


def dispose_engine() -> None:
    """Drop the cached engine (used between test databases)."""
    global _ENGINE, _ENGINE_URL
    if _ENGINE is not None:
        _ENGINE.dispose()
    _ENGINE = None
    _ENGINE_URL = None


@contextmanager
def transaction(engine: Engine | None = None) -> Iterator[Connection]:
    """Yield a connection inside a single transaction.

    Commits on normal exit. Any SQLAlchemy failure rolls the transaction
    back and is re-raised as :class:`StoreError`; domain errors raised by
    the caller roll back and propagate unchanged.
    """
    eng = engine or get_engine()
    try:
        with eng.begin() as conn:
            yield conn
    except SQLAlchemyError as exc:
        logger.error("store transaction failed; rolled back", exc_info=True)
        raise StoreError("storage operation failed", cause=exc) from exc
