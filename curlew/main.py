from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text as sql_text
from sqlalchemy.exc import SQLAlchemyError

from curlew.config import AppConfig, load_config
from curlew.db.base import get_engine
from curlew.db.schema import create_schema
from curlew.http.problem import (
    handle_domain_error,
    handle_http_exception,
    handle_request_validation_error,
    handle_unexpected_error,
)
from curlew.logging_setup import configure_logging
from curlew.logic.errors import CurlewError
from curlew.routes import api_router

logger = logging.getLogger(__name__)


def _health() -> JSONResponse:
    try:
        with get_engine().connect() as conn:
            conn.execute(sql_text("SELECT 1"))
        return JSONResponse({"status": "ok", "db": True})
    except SQLAlchemyError as e:
        logger.error("Health DB check failed", exc_info=True)
        return JSONResponse({"status": "degraded", "db": False, "reason": str(e)}, status_code=503)


def create_app(config: Optional[AppConfig] = None) -> FastAPI:
    """Build the FastAPI application consumed by the GUI shell.

    Loads configuration (unless given), binds the shared engine to the
    configured database and creates any missing tables before routes are
    mounted.
    """
    configure_logging()
    config = config or load_config()
    engine = get_engine(config.database.dsn)
    create_schema(engine)

    app = FastAPI(title="curlew", version="0.4.0")
    app.state.config = config
    app.add_exception_handler(CurlewError, handle_domain_error)
    app.add_exception_handler(HTTPException, handle_http_exception)
    app.add_exception_handler(RequestValidationError, handle_request_validation_error)
    app.add_exception_handler(Exception, handle_unexpected_error)

    app.include_router(api_router, prefix="/api/v1")

    @app.get("/health")
    def health():  # pragma: no cover - trivial
        return _health()

    logger.info(
        "app_created dialect=%s delete_policy=%s atomic_import=%s",
        engine.dialect.name,
        config.collections.delete_policy.value,
        config.imports.atomic,
    )
    return app


# Intentionally do not instantiate the app at import time to prevent side effects.
