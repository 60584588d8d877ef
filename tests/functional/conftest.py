"""Functional test bootstrap.

Each test gets its own file-backed SQLite database under pytest's tmp_path,
bound as the process-wide engine so logic modules and the FastAPI app see
the same store.
"""

from __future__ import annotations

from typing import Callable, Optional

import pytest
from sqlalchemy import text as sql_text
from sqlalchemy.engine import Engine

from curlew.config import AppConfig, CollectionsConfig, DatabaseConfig, DeletePolicy, ImportConfig
from curlew.db.base import dispose_engine, get_engine
from curlew.db.schema import create_schema
from curlew.logic.events import get_buffered_events


@pytest.fixture()
def db_url(tmp_path, monkeypatch) -> str:
    url = f"sqlite:///{tmp_path / 'curlew_test.db'}"
    monkeypatch.delenv("TEST_DATABASE_URL", raising=False)
    monkeypatch.setenv("DATABASE_URL", url)
    return url


@pytest.fixture()
def engine(db_url: str) -> Engine:
    eng = get_engine(db_url)
    create_schema(eng)
    get_buffered_events(clear=True)
    yield eng
    dispose_engine()


@pytest.fixture()
def sql(engine: Engine) -> Callable:
    """Run raw SQL against the test store (used to stage corrupt rows)."""

    def _run(statement: str, **params):
        with engine.begin() as conn:
            result = conn.execute(sql_text(statement), params)
            return result.fetchall() if result.returns_rows else None

    return _run


@pytest.fixture()
def make_client(engine: Engine, db_url: str):
    from fastapi.testclient import TestClient

    from curlew.main import create_app

    def _make(delete_policy: DeletePolicy = DeletePolicy.ORPHAN, atomic: bool = True, max_bytes: Optional[int] = None):
        imports = ImportConfig(atomic=atomic) if max_bytes is None else ImportConfig(atomic=atomic, max_bytes=max_bytes)
        config = AppConfig(
            database=DatabaseConfig(dsn=db_url),
            collections=CollectionsConfig(delete_policy=delete_policy),
            imports=imports,
        )
        return TestClient(create_app(config))

    return _make


@pytest.fixture()
def client(make_client):
    return make_client()
