"""Saved request operations.

New requests are appended to the end of their scope. Moving a request to
another collection appends it there and closes the gap it left behind.
Deleting a request does not renumber its siblings; the next read of the
scope does.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional
import logging

from curlew.db.base import transaction
from curlew.logic import repository_collections as collection_repo
from curlew.logic import repository_requests as repo
from curlew.logic.errors import NotFound
from curlew.logic.events import REQUEST_DELETED, REQUEST_SAVED, REQUESTS_REORDERED, publish
from curlew.logic.order_sequences import next_position, normalize_scope, to_summary
from curlew.models.collections import (
    RequestDetail,
    RequestSummary,
    RequestWrite,
    ResponseCreate,
    ResponseRecord,
)

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 5


def _to_detail(row: Mapping[str, Any], response: Optional[Mapping[str, Any]]) -> RequestDetail:
    summary = to_summary(row)
    return RequestDetail(
        **summary.model_dump(),
        headers=row.get("headers") or "",
        body=row.get("body") or "",
        body_type=row.get("body_type") or "",
        body_format=row.get("body_format") or "",
        auth=row.get("auth") or "",
        response=_to_response(response) if response else None,
    )


def _to_response(row: Mapping[str, Any]) -> ResponseRecord:
    return ResponseRecord(
        id=int(row["id"]),
        request_id=int(row["request_id"]),
        status_code=int(row.get("status_code") or 0),
        headers=row.get("headers") or "",
        body=row.get("body") or "",
        runtime_ms=int(row.get("runtime_ms") or 0),
    )


def _content(payload: RequestWrite) -> Dict[str, Any]:
    return {name: getattr(payload, name) for name in repo.CONTENT_FIELDS}


def _require_scope(conn, collection_id: Optional[str]) -> None:  # type: ignore[no-untyped-def]
    if collection_id is not None and not collection_repo.collection_exists(conn, collection_id):
        raise NotFound(f"collection {collection_id} not found")


def _append_response(conn, request_id: int, response: ResponseCreate, history_limit: int) -> None:  # type: ignore[no-untyped-def]
    repo.insert_response(
        conn,
        request_id,
        response.status_code,
        response.headers,
        response.body,
        response.runtime_ms,
    )
    pruned = repo.prune_responses(conn, request_id, history_limit)
    if pruned:
        logger.info("response_history_pruned request_id=%s removed=%s", request_id, pruned)


def get_request(request_id: int) -> RequestDetail:
    with transaction() as conn:
        row = repo.get_request(conn, request_id)
        if row is None:
            raise NotFound(f"request {request_id} not found")
        response = repo.latest_response(conn, request_id)
    return _to_detail(row, response)


def save_request(payload: RequestWrite, history_limit: int = DEFAULT_HISTORY_LIMIT) -> RequestDetail:
    with transaction() as conn:
        _require_scope(conn, payload.collection_id)
        position = next_position(conn, payload.collection_id)
        request_id = repo.insert_request(conn, payload.collection_id, position, _content(payload))
        if payload.response is not None:
            _append_response(conn, request_id, payload.response, history_limit)
        row = repo.get_request(conn, request_id)
        response = repo.latest_response(conn, request_id)
    logger.info("request_saved id=%s scope=%s position=%s", request_id, payload.collection_id, position)
    publish(REQUEST_SAVED, {"request_id": request_id, "collection_id": payload.collection_id})
    return _to_detail(row, response)  # type: ignore[arg-type]


def update_request(
    request_id: int,
    payload: RequestWrite,
    history_limit: int = DEFAULT_HISTORY_LIMIT,
) -> RequestDetail:
    with transaction() as conn:
        located = repo.get_request_position(conn, request_id)
        if located is None:
            raise NotFound(f"request {request_id} not found")
        old_scope = located[0]
        if payload.collection_id != old_scope:
            _require_scope(conn, payload.collection_id)
            repo.set_scope(conn, request_id, payload.collection_id, next_position(conn, payload.collection_id))
            normalize_scope(conn, old_scope)
        repo.update_content(conn, request_id, _content(payload))
        if payload.response is not None:
            _append_response(conn, request_id, payload.response, history_limit)
        row = repo.get_request(conn, request_id)
        response = repo.latest_response(conn, request_id)
    publish(REQUEST_SAVED, {"request_id": request_id, "collection_id": payload.collection_id})
    return _to_detail(row, response)  # type: ignore[arg-type]


def delete_request(request_id: int) -> None:
    with transaction() as conn:
        if not repo.delete_request(conn, request_id):
            raise NotFound(f"request {request_id} not found")
    logger.info("request_deleted id=%s", request_id)
    publish(REQUEST_DELETED, {"request_id": request_id})


def set_request_collection(request_id: int, collection_id: Optional[str]) -> RequestSummary:
    """File a request under ``collection_id`` (or unfile it with None).

    The request goes to the end of the target scope; the source scope is
    renumbered in the same transaction.
    """
    with transaction() as conn:
        located = repo.get_request_position(conn, request_id)
        if located is None:
            raise NotFound(f"request {request_id} not found")
        old_scope = located[0]
        moved = collection_id != old_scope
        if moved:
            _require_scope(conn, collection_id)
            position = next_position(conn, collection_id)
            repo.set_scope(conn, request_id, collection_id, position)
            normalize_scope(conn, old_scope)
            logger.info(
                "request_collection_set id=%s from=%s to=%s position=%s",
                request_id,
                old_scope,
                collection_id,
                position,
            )
        row = repo.get_request(conn, request_id)
    if moved:
        publish(REQUESTS_REORDERED, {"request_id": request_id, "collection_id": collection_id})
    return to_summary(row)  # type: ignore[arg-type]


def search_requests(term: str) -> List[RequestSummary]:
    term = (term or "").strip()
    if not term:
        return []
    with transaction() as conn:
        rows = repo.search_requests(conn, term)
    return [to_summary(r) for r in rows]


def record_response(
    request_id: int,
    response: ResponseCreate,
    history_limit: int = DEFAULT_HISTORY_LIMIT,
) -> ResponseRecord:
    """Append an execution result, keeping only the newest ``history_limit``."""
    with transaction() as conn:
        if repo.get_request_position(conn, request_id) is None:
            raise NotFound(f"request {request_id} not found")
        _append_response(conn, request_id, response, history_limit)
        latest = repo.latest_response(conn, request_id)
    return _to_response(latest)  # type: ignore[arg-type]


__all__ = [
    "get_request",
    "save_request",
    "update_request",
    "delete_request",
    "set_request_collection",
    "search_requests",
    "record_response",
]
