"""Centralised construction of problem+json payloads for domain errors.

Single source of truth for mapping error classes to HTTP statuses and
stable ``code`` values so route modules never hardcode them.
"""

from __future__ import annotations

from typing import Dict
import logging

from curlew.logic.errors import (
    CurlewError,
    ImportFormatError,
    InvalidHierarchy,
    NotFound,
    StoreError,
)

logger = logging.getLogger(__name__)

ERROR_MAP: Dict[type, Dict[str, object]] = {
    NotFound: {"title": "Not Found", "status": 404, "code": "not_found"},
    InvalidHierarchy: {"title": "Conflict", "status": 409, "code": "invalid_hierarchy"},
    ImportFormatError: {"title": "Unprocessable Entity", "status": 422, "code": "import_format_error"},
    StoreError: {"title": "Internal Server Error", "status": 500, "code": "store_error"},
}

_FALLBACK = {"title": "Bad Request", "status": 400, "code": "error"}


def problem_for(exc: CurlewError) -> Dict[str, object]:
    """Return the problem body for a domain error."""
    entry = _FALLBACK
    for cls in type(exc).__mro__:
        if cls in ERROR_MAP:
            entry = ERROR_MAP[cls]
            break
    problem = {
        "type": "about:blank",
        "title": entry["title"],
        "status": entry["status"],
        "detail": exc.message,
        "code": entry["code"],
    }
    logger.info("error_handler.handle code=%s detail=%s", problem["code"], exc.message)
    return problem


__all__ = ["ERROR_MAP", "problem_for"]
