"""Collection hierarchy and import endpoints."""

from __future__ import annotations

import functools
import logging
from typing import List

import anyio.to_thread
from fastapi import APIRouter, Depends, Request, Response
from starlette.datastructures import UploadFile

from curlew.config import AppConfig
from curlew.logic import collection_tree, postman_import
from curlew.logic.errors import ImportFormatError
from curlew.models.collections import (
    Collection,
    CollectionCreate,
    CollectionTree,
    CollectionUpdate,
    ImportSummary,
    ParentUpdate,
)
from curlew.routes.dependencies import get_config

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get(
    "/collections",
    summary="List all collections (flat, parent links resolved)",
    operation_id="getAllCollections",
    response_model=List[Collection],
)
def get_all_collections() -> List[Collection]:
    return collection_tree.list_all()


@router.get(
    "/collections/tree",
    summary="Nested collections with their ordered requests",
    operation_id="getCollectionTree",
    response_model=CollectionTree,
)
def get_collection_tree() -> CollectionTree:
    return collection_tree.collection_tree()


@router.post(
    "/collections",
    summary="Create a collection",
    operation_id="createCollection",
    status_code=201,
    response_model=Collection,
)
def create_collection(payload: CollectionCreate) -> Collection:
    return collection_tree.create_collection(payload.name, payload.description, payload.parent_collection_id)


@router.post(
    "/collections/import",
    summary="Import a Postman collection export",
    operation_id="importCollection",
    status_code=201,
    response_model=ImportSummary,
)
async def import_collection(request: Request, config: AppConfig = Depends(get_config)) -> ImportSummary:
    content_type = (request.headers.get("content-type") or "").split(";", 1)[0].strip().lower()
    if content_type == "multipart/form-data":
        form = await request.form()
        upload = form.get("file")
        if not isinstance(upload, UploadFile):
            raise ImportFormatError("multipart import requires a 'file' part")
        data = await upload.read()
        source = "multipart"
    else:
        data = await request.body()
        source = "raw"
    logger.info("import_collection_request source=%s size_bytes=%s", source, len(data))
    # Parsing and inserts are blocking; keep them off the event loop
    run = functools.partial(
        postman_import.import_collection,
        data,
        atomic=config.imports.atomic,
        max_bytes=config.imports.max_bytes,
    )
    return await anyio.to_thread.run_sync(run)


@router.patch(
    "/collections/{collection_id}/parent",
    summary="Move a collection under another collection (or to the root)",
    operation_id="updateCollectionParent",
    response_model=Collection,
)
def update_collection_parent(collection_id: str, payload: ParentUpdate) -> Collection:
    return collection_tree.update_parent(collection_id, payload.parent_collection_id)


@router.patch(
    "/collections/{collection_id}",
    summary="Rename a collection or edit its description",
    operation_id="updateCollection",
    response_model=Collection,
)
def update_collection(collection_id: str, payload: CollectionUpdate) -> Collection:
    return collection_tree.update_collection(collection_id, payload.name, payload.description)


@router.delete(
    "/collections/{collection_id}",
    summary="Delete a collection using the configured delete policy",
    operation_id="deleteCollection",
    status_code=204,
)
def delete_collection(collection_id: str, config: AppConfig = Depends(get_config)) -> Response:
    collection_tree.delete_collection(collection_id, config.collections.delete_policy)
    return Response(status_code=204)


__all__ = ["router"]
