"""Saved request endpoints: listing, CRUD, filing and ordering."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, Query, Response

from curlew.config import AppConfig
from curlew.logic import order_sequences, requests
from curlew.models.collections import (
    RequestCollectionUpdate,
    RequestDetail,
    RequestPositionUpdate,
    RequestSummary,
    RequestWrite,
    ResponseCreate,
    ResponseRecord,
)
from curlew.routes.dependencies import get_config

router = APIRouter()


@router.get(
    "/requests",
    summary="List all requests grouped by collection in display order",
    operation_id="getAllRequestsList",
    response_model=List[RequestSummary],
)
def get_all_requests_list() -> List[RequestSummary]:
    return order_sequences.list_ordered()


@router.get(
    "/requests/search",
    summary="Search requests by name, URL or body",
    operation_id="searchRequests",
    response_model=List[RequestSummary],
)
def search_requests(q: str = Query(default="")) -> List[RequestSummary]:
    return requests.search_requests(q)


@router.post(
    "/requests",
    summary="Save a new request at the end of its collection",
    operation_id="saveRequest",
    status_code=201,
    response_model=RequestDetail,
)
def save_request(payload: RequestWrite, config: AppConfig = Depends(get_config)) -> RequestDetail:
    return requests.save_request(payload, config.responses.history_limit)


@router.get(
    "/requests/{request_id}",
    summary="Get a request with its latest response",
    operation_id="getRequest",
    response_model=RequestDetail,
)
def get_request(request_id: int) -> RequestDetail:
    return requests.get_request(request_id)


@router.put(
    "/requests/{request_id}",
    summary="Update a saved request",
    operation_id="updateRequest",
    response_model=RequestDetail,
)
def update_request(request_id: int, payload: RequestWrite, config: AppConfig = Depends(get_config)) -> RequestDetail:
    return requests.update_request(request_id, payload, config.responses.history_limit)


@router.delete(
    "/requests/{request_id}",
    summary="Delete a request and its responses",
    operation_id="deleteRequest",
    status_code=204,
)
def delete_request(request_id: int) -> Response:
    requests.delete_request(request_id)
    return Response(status_code=204)


@router.patch(
    "/requests/{request_id}/collection",
    summary="File a request under a collection (null to unfile)",
    operation_id="setRequestCollection",
    response_model=RequestSummary,
)
def set_request_collection(request_id: int, payload: RequestCollectionUpdate) -> RequestSummary:
    return requests.set_request_collection(request_id, payload.collection_id)


@router.patch(
    "/requests/{request_id}/position",
    summary="Move a request to a position within its collection",
    operation_id="setRequestSortOrder",
)
def set_request_sort_order(request_id: int, payload: RequestPositionUpdate) -> dict:
    final = order_sequences.set_position(request_id, payload.sort_order)
    return {"id": request_id, "sortOrder": final}


@router.post(
    "/requests/{request_id}/responses",
    summary="Record an execution result for a request",
    operation_id="recordResponse",
    status_code=201,
    response_model=ResponseRecord,
)
def record_response(request_id: int, payload: ResponseCreate, config: AppConfig = Depends(get_config)) -> ResponseRecord:
    return requests.record_response(request_id, payload, config.responses.history_limit)


__all__ = ["router"]
