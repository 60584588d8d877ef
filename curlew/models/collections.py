"""Collection, request and response shapes exchanged with the GUI shell.

Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _Wire(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Collection(_Wire):
    id: str
    name: str
    description: str = ""
    parent_collection_id: Optional[str] = None


class CollectionCreate(_Wire):
    name: str = Field(min_length=1)
    description: str = ""
    parent_collection_id: Optional[str] = None


class CollectionUpdate(_Wire):
    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None


class ParentUpdate(_Wire):
    parent_collection_id: Optional[str] = None


class ResponseRecord(_Wire):
    id: int
    request_id: int
    status_code: int
    headers: str = ""
    body: str = ""
    runtime_ms: int = 0


class ResponseCreate(_Wire):
    status_code: int
    headers: str = ""
    body: str = ""
    runtime_ms: int = Field(default=0, ge=0)


class RequestSummary(_Wire):
    id: int
    collection_id: Optional[str] = None
    collection_name: Optional[str] = None
    name: str = ""
    description: str = ""
    method: str = ""
    url: str = ""
    sort_order: Optional[int] = None


class RequestDetail(RequestSummary):
    headers: str = ""
    body: str = ""
    body_type: str = ""
    body_format: str = ""
    auth: str = ""
    response: Optional[ResponseRecord] = None


class RequestWrite(_Wire):
    collection_id: Optional[str] = None
    name: str = ""
    description: str = ""
    method: str = "GET"
    url: str = ""
    headers: str = ""
    body: str = ""
    body_type: str = ""
    body_format: str = ""
    auth: str = ""
    response: Optional[ResponseCreate] = None


class RequestCollectionUpdate(_Wire):
    collection_id: Optional[str] = None


class RequestPositionUpdate(_Wire):
    sort_order: int = Field(ge=0)


class CollectionNode(Collection):
    children: List["CollectionNode"] = Field(default_factory=list)
    requests: List[RequestSummary] = Field(default_factory=list)


class CollectionTree(_Wire):
    roots: List[CollectionNode] = Field(default_factory=list)
    unfiled: List[RequestSummary] = Field(default_factory=list)
    orphaned: List[RequestSummary] = Field(default_factory=list)


class ImportSummary(_Wire):
    collection_id: str
    name: str
    collections_created: int
    requests_created: int


CollectionNode.model_rebuild()


__all__ = [
    "Collection",
    "CollectionCreate",
    "CollectionUpdate",
    "ParentUpdate",
    "ResponseRecord",
    "ResponseCreate",
    "RequestSummary",
    "RequestDetail",
    "RequestWrite",
    "RequestCollectionUpdate",
    "RequestPositionUpdate",
    "CollectionNode",
    "CollectionTree",
    "ImportSummary",
]
