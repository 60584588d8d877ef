"""Collection hierarchy management.

Collections form a forest through ``parent_collection``. Parent changes
are validated by walking the ancestor chain of the proposed parent before
anything is written. Rows that name themselves as parent are corrupt
leftovers of older releases; they are repaired whenever a sweep or an
ancestor walk comes across them.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Set
import logging
import uuid

from sqlalchemy.engine import Connection

from curlew.config import DeletePolicy
from curlew.db.base import transaction
from curlew.logic import repository_collections as repo
from curlew.logic import repository_requests as request_repo
from curlew.logic.errors import InvalidHierarchy, NotFound
from curlew.logic.events import COLLECTIONS_CHANGED, publish
from curlew.logic.order_sequences import normalize_scope, to_summary
from curlew.models.collections import Collection, CollectionNode, CollectionTree

logger = logging.getLogger(__name__)


def _to_model(row: Dict[str, object]) -> Collection:
    parent = row.get("parent_collection")
    return Collection(
        id=str(row["id"]),
        name=str(row.get("name") or ""),
        description=str(row.get("description") or ""),
        parent_collection_id=str(parent) if parent is not None else None,
    )


def create_collection(name: str, description: str = "", parent_id: Optional[str] = None) -> Collection:
    collection_id = str(uuid.uuid4())
    with transaction() as conn:
        if parent_id is not None and not repo.collection_exists(conn, parent_id):
            raise NotFound(f"parent collection {parent_id} not found")
        repo.insert_collection(conn, collection_id, name, description, parent_id)
    logger.info("collection_created id=%s parent=%s", collection_id, parent_id)
    publish(COLLECTIONS_CHANGED, {"collection_id": collection_id, "action": "created"})
    return Collection(id=collection_id, name=name, description=description, parent_collection_id=parent_id)


def check_ancestors(conn: Connection, collection_id: str, new_parent_id: str) -> None:
    """Walk upward from ``new_parent_id``; raise if ``collection_id`` is met.

    A node that is its own parent is repaired in place and ends the walk as
    if it were a root. A missing row also ends the walk. A node seen twice
    means a loop already exists above the target, which is rejected.
    """
    seen: Set[str] = set()
    current: Optional[str] = new_parent_id
    while current is not None:
        if current == collection_id:
            raise InvalidHierarchy("circular hierarchy detected")
        if current in seen:
            raise InvalidHierarchy("circular hierarchy detected")
        seen.add(current)
        found, parent = repo.get_parent_id(conn, current)
        if not found:
            break
        if parent == current:
            repo.update_parent(conn, current, None)
            logger.warning("collection_self_reference_repaired id=%s during=ancestor_walk", current)
            break
        current = parent


def update_parent(collection_id: str, new_parent_id: Optional[str]) -> Collection:
    if new_parent_id is not None and new_parent_id == collection_id:
        raise InvalidHierarchy("a collection cannot be its own parent")
    with transaction() as conn:
        row = repo.get_collection(conn, collection_id)
        if row is None:
            raise NotFound(f"collection {collection_id} not found")
        if new_parent_id is not None:
            if not repo.collection_exists(conn, new_parent_id):
                raise NotFound(f"parent collection {new_parent_id} not found")
            check_ancestors(conn, collection_id, new_parent_id)
        repo.update_parent(conn, collection_id, new_parent_id)
    logger.info("collection_parent_updated id=%s parent=%s", collection_id, new_parent_id)
    publish(COLLECTIONS_CHANGED, {"collection_id": collection_id, "action": "moved"})
    row["parent_collection"] = new_parent_id
    return _to_model(row)


def update_collection(collection_id: str, name: Optional[str] = None, description: Optional[str] = None) -> Collection:
    with transaction() as conn:
        if not repo.update_details(conn, collection_id, name, description):
            raise NotFound(f"collection {collection_id} not found")
        row = repo.get_collection(conn, collection_id)
    publish(COLLECTIONS_CHANGED, {"collection_id": collection_id, "action": "updated"})
    return _to_model(row)  # type: ignore[arg-type]


def _sweep_self_references(conn: Connection) -> None:
    repaired = repo.clear_self_references(conn)
    if repaired:
        logger.warning("collection_self_reference_repaired ids=%s during=sweep", repaired)


def list_all() -> List[Collection]:
    """Return every collection after clearing self-parent rows.

    Parents that point at deleted collections are returned as stored.
    """
    with transaction() as conn:
        _sweep_self_references(conn)
        rows = repo.list_collections(conn)
    return [_to_model(r) for r in rows]


def _descendants(conn: Connection, collection_id: str) -> List[str]:
    found: List[str] = []
    seen: Set[str] = {collection_id}
    frontier = [collection_id]
    while frontier:
        current = frontier.pop()
        for child in repo.list_child_ids(conn, current):
            if child in seen:
                continue
            seen.add(child)
            found.append(child)
            frontier.append(child)
    return found


def delete_collection(collection_id: str, policy: DeletePolicy = DeletePolicy.ORPHAN) -> List[str]:
    """Delete a collection according to ``policy``; returns the deleted ids.

    ``orphan`` leaves children and requests pointing at the deleted id.
    ``cascade`` removes the subtree and every request filed under it.
    ``reject`` refuses while child collections exist.
    """
    policy = DeletePolicy(policy)
    with transaction() as conn:
        if not repo.collection_exists(conn, collection_id):
            raise NotFound(f"collection {collection_id} not found")
        doomed = [collection_id]
        if policy is DeletePolicy.REJECT and repo.list_child_ids(conn, collection_id):
            raise InvalidHierarchy("collection has child collections")
        if policy is DeletePolicy.CASCADE:
            doomed.extend(_descendants(conn, collection_id))
            removed = request_repo.delete_requests_in_scopes(conn, doomed)
            logger.info("collection_cascade_requests_removed id=%s requests=%s", collection_id, removed)
        repo.delete_collections(conn, doomed)
    logger.info("collection_deleted id=%s policy=%s removed=%s", collection_id, policy.value, len(doomed))
    publish(COLLECTIONS_CHANGED, {"collection_id": collection_id, "action": "deleted", "removed": doomed})
    return doomed


def collection_tree() -> CollectionTree:
    """Nested sidebar listing with each collection's ordered requests.

    Collections whose parent no longer exists are shown as roots, as are
    nodes that cannot be reached from any root. Requests filed under a
    deleted collection are listed as orphaned.
    """
    with transaction() as conn:
        _sweep_self_references(conn)
        rows = repo.list_collections(conn)
        for scope in request_repo.list_scopes(conn):
            normalize_scope(conn, scope)
        request_rows = request_repo.list_requests_ordered(conn)

    nodes: Dict[str, CollectionNode] = {
        str(r["id"]): CollectionNode(**_to_model(r).model_dump()) for r in rows
    }
    tree = CollectionTree()
    for row in request_rows:
        summary = to_summary(row)
        owner = nodes.get(summary.collection_id) if summary.collection_id else None
        if owner is not None:
            owner.requests.append(summary)
        elif summary.collection_id is None:
            tree.unfiled.append(summary)
        else:
            tree.orphaned.append(summary)

    children: Dict[str, List[str]] = {}
    roots: List[str] = []
    for node in nodes.values():
        parent = node.parent_collection_id
        if parent is not None and parent in nodes:
            children.setdefault(parent, []).append(node.id)
        else:
            roots.append(node.id)

    attached: Set[str] = set()

    def _attach(node_id: str) -> CollectionNode:
        attached.add(node_id)
        node = nodes[node_id]
        node.children = [_attach(c) for c in children.get(node_id, []) if c not in attached]
        return node

    tree.roots = [_attach(r) for r in roots]
    for node_id in nodes:
        if node_id not in attached:
            tree.roots.append(_attach(node_id))
    return tree


__all__ = [
    "create_collection",
    "check_ancestors",
    "update_parent",
    "update_collection",
    "list_all",
    "delete_collection",
    "collection_tree",
]
