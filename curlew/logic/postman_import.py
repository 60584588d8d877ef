"""Postman collection import.

Walks a Postman v2.x export depth-first and writes it into the flat
collections/requests model: the export's info block becomes a root
collection, every folder a child collection, every request item a request
positioned in document order within its folder.

The document is parsed and validated in full before the first write, so a
malformed export never leaves a half-created root behind.
"""

from __future__ import annotations

import json
import logging
import uuid
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, ContextManager, Dict, Iterator, List, Optional, Union

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.engine import Connection

from curlew.db.base import transaction
from curlew.logic import repository_collections as collection_repo
from curlew.logic import repository_requests as request_repo
from curlew.logic.errors import ImportFormatError
from curlew.logic.events import COLLECTION_IMPORTED, publish
from curlew.models.collections import ImportSummary
from curlew.models.postman import PostmanCollection, PostmanItem, PostmanRequest, extract_text

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 10 * 1024 * 1024
# Deeper folder nesting is rejected before validation; keeps the walk bounded
MAX_FOLDER_DEPTH = 64

_BODY_FORMATS = {
    "json": "JSON",
    "html": "HTML",
    "xml": "XML",
    "javascript": "JavaScript",
    "text": "Text",
}

Step = Callable[[], ContextManager[Connection]]


def canonical_json(value: Any) -> Optional[str]:
    """Encode a sub-document for storage as opaque text; None stays None."""
    if value is None:
        return None
    return json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False)


def _folder_depth(data: Dict[str, Any]) -> int:
    """Deepest chain of nested ``item`` lists, walked without recursion."""
    deepest = 0
    stack = [(data, 0)]
    while stack:
        node, depth = stack.pop()
        children = node.get("item")
        if not isinstance(children, list):
            continue
        deepest = max(deepest, depth + 1)
        stack.extend((child, depth + 1) for child in children if isinstance(child, dict))
    return deepest


def parse_document(raw: Union[str, bytes]) -> PostmanCollection:
    try:
        data = json.loads(raw)
    except RecursionError as exc:
        raise ImportFormatError("import document is nested too deeply") from exc
    except (ValueError, TypeError) as exc:
        raise ImportFormatError(f"error parsing JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ImportFormatError("import document must be a JSON object")
    depth = _folder_depth(data)
    if depth > MAX_FOLDER_DEPTH:
        raise ImportFormatError(f"folders are nested {depth} levels deep; the limit is {MAX_FOLDER_DEPTH}")
    try:
        return PostmanCollection.model_validate(data)
    except PydanticValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        where = ".".join(str(p) for p in first.get("loc", ()))
        raise ImportFormatError(f"unsupported collection document at '{where}': {first.get('msg', exc)}") from exc


def _body_kind(body: Any) -> tuple[str, str]:
    if not isinstance(body, dict):
        return ("none", "")
    mode = body.get("mode")
    body_type = mode if isinstance(mode, str) and mode else "none"
    language = ""
    options = body.get("options")
    if isinstance(options, dict) and isinstance(options.get("raw"), dict):
        lang = options["raw"].get("language")
        language = lang if isinstance(lang, str) else ""
    return body_type, _BODY_FORMATS.get(language.lower(), "")


def request_fields(item: PostmanItem, request: PostmanRequest) -> Dict[str, Any]:
    """Map one request item onto request columns."""
    description = extract_text(item.description, "content") or extract_text(request.description, "content")
    body_type, body_format = _body_kind(request.body)
    return {
        "name": item.name,
        "description": description,
        "method": (request.method or "GET").upper(),
        "url": extract_text(request.url, "raw"),
        "headers": canonical_json(request.header),
        "body": canonical_json(request.body),
        "body_type": body_type,
        "body_format": body_format,
        "auth": canonical_json(request.auth),
    }


@dataclass
class _Walker:
    step: Step
    collections: int = 0
    requests: int = 0

    def walk(self, parent_id: str, items: List[PostmanItem]) -> None:
        # Each folder numbers its own requests from zero
        position = 0
        for item in items:
            request = item.resolved_request()
            if request is None and item.children:
                folder_id = str(uuid.uuid4())
                with self.step() as conn:
                    collection_repo.insert_collection(
                        conn,
                        folder_id,
                        item.name,
                        extract_text(item.description, "content"),
                        parent_id,
                    )
                self.collections += 1
                logger.debug("import_folder name=%s id=%s parent=%s", item.name, folder_id, parent_id)
                self.walk(folder_id, item.children)
            elif request is not None:
                with self.step() as conn:
                    request_repo.insert_request(conn, parent_id, position, request_fields(item, request))
                self.requests += 1
                position += 1
            else:
                logger.debug("import_item_skipped name=%s reason=empty", item.name)


def import_collection(
    raw: Union[str, bytes],
    *,
    atomic: bool = True,
    max_bytes: int = DEFAULT_MAX_BYTES,
) -> ImportSummary:
    """Import a Postman export; returns what was created.

    With ``atomic`` the whole walk is one transaction and a failure leaves
    nothing behind. Without it every insert commits on its own and the
    first failure stops the walk, keeping what was already written.
    """
    size = len(raw.encode("utf-8") if isinstance(raw, str) else raw)
    if size > max_bytes:
        raise ImportFormatError(f"import document is {size} bytes; the limit is {max_bytes}")
    document = parse_document(raw)
    info = document.info
    version = info.semantic_version()
    root_id = str(uuid.uuid4())

    def _insert_root(conn: Connection) -> None:
        collection_repo.insert_collection(
            conn,
            root_id,
            info.name,
            extract_text(info.description, "content"),
            None,
            schema=info.schema_url,
            version_major=version.major if version else None,
            version_minor=version.minor if version else None,
            version_patch=version.patch if version else None,
            version_identifier=version.identifier if version else None,
        )

    if atomic:
        with transaction() as conn:

            @contextmanager
            def _shared() -> Iterator[Connection]:
                yield conn

            walker = _Walker(step=_shared)
            _insert_root(conn)
            walker.walk(root_id, document.item)
    else:
        walker = _Walker(step=transaction)
        with transaction() as conn:
            _insert_root(conn)
        walker.walk(root_id, document.item)

    summary = ImportSummary(
        collection_id=root_id,
        name=info.name,
        collections_created=walker.collections + 1,
        requests_created=walker.requests,
    )
    logger.info(
        "collection_imported name=%s id=%s collections=%s requests=%s atomic=%s",
        info.name,
        root_id,
        summary.collections_created,
        summary.requests_created,
        atomic,
    )
    publish(COLLECTION_IMPORTED, summary.model_dump())
    return summary


__all__ = ["canonical_json", "parse_document", "request_fields", "import_collection"]
