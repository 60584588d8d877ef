"""Problem+JSON utilities and global exception handlers.

Defines the RFC7807 media type and the handler callables registered by
``create_app``. Domain errors keep their human-readable message in
``detail``; nothing here re-raises.
"""

from __future__ import annotations

import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from curlew.logic.errors import CurlewError, StoreError
from curlew.logic.problem_factory import problem_for

PROBLEM_MEDIA_TYPE = "application/problem+json"

logger = logging.getLogger(__name__)


async def handle_domain_error(request: Request, exc: CurlewError) -> JSONResponse:  # noqa: D401
    if isinstance(exc, StoreError):
        logger.error("store_error path=%s cause=%r", request.url.path, exc.cause)
    problem = problem_for(exc)
    return JSONResponse(problem, status_code=int(problem["status"]), media_type=PROBLEM_MEDIA_TYPE)


async def handle_http_exception(request: Request, exc: HTTPException) -> JSONResponse:  # noqa: D401
    status = int(getattr(exc, "status_code", 500) or 500)
    if isinstance(exc.detail, dict):
        detail = exc.detail
    else:
        detail = {
            "type": "about:blank",
            "title": "Error",
            "status": status,
            "detail": str(exc.detail or ""),
            "code": "http_error",
        }
    return JSONResponse(
        detail,
        status_code=status,
        media_type=PROBLEM_MEDIA_TYPE,
        headers=getattr(exc, "headers", None),
    )


async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:  # noqa: D401
    problem = {
        "type": "about:blank",
        "title": "Invalid Request",
        "status": 422,
        "detail": "Request validation failed",
        "code": "request_invalid",
        "errors": [
            {"loc": list(err.get("loc", ())), "msg": str(err.get("msg", "")), "type": str(err.get("type", ""))}
            for err in exc.errors()
        ],
    }
    return JSONResponse(problem, status_code=422, media_type=PROBLEM_MEDIA_TYPE)


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:  # noqa: D401
    logger.error("unexpected_error path=%s", request.url.path, exc_info=exc)
    return JSONResponse(
        {
            "type": "about:blank",
            "title": "Internal Server Error",
            "status": 500,
            "detail": "An unexpected error occurred",
            "code": "unexpected_error",
        },
        status_code=500,
        media_type=PROBLEM_MEDIA_TYPE,
    )


__all__ = [
    "PROBLEM_MEDIA_TYPE",
    "handle_domain_error",
    "handle_http_exception",
    "handle_request_validation_error",
    "handle_unexpected_error",
]
