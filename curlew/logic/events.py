"""Domain event constants and publisher.

The GUI shell refreshes its sidebar when it sees one of these events.
publish() logs the event and buffers it until the shell drains it. The
buffer is bounded; when the shell stops polling the oldest events go first.
Route handlers run on worker threads, so every buffer access holds the lock.
"""

from __future__ import annotations

from collections import deque
from typing import Any, Deque, Dict, List
import logging
import threading

logger = logging.getLogger(__name__)

COLLECTIONS_CHANGED = "collections.changed"
REQUESTS_REORDERED = "requests.reordered"
COLLECTION_IMPORTED = "collection.imported"
REQUEST_SAVED = "request.saved"
REQUEST_DELETED = "request.deleted"

EVENT_BUFFER_LIMIT = 1000

# Pending events for the GUI shell
EVENT_BUFFER: Deque[Dict[str, Any]] = deque(maxlen=EVENT_BUFFER_LIMIT)
_LOCK = threading.Lock()


def publish(event_type: str, payload: Dict[str, Any]) -> None:
    """Publish a domain event."""
    logger.info("event_publish type=%s payload=%s", event_type, payload)
    with _LOCK:
        if len(EVENT_BUFFER) == EVENT_BUFFER.maxlen:
            logger.warning("event_buffer_full limit=%s dropped=%s", EVENT_BUFFER.maxlen, EVENT_BUFFER[0]["type"])
        EVENT_BUFFER.append({"type": event_type, "payload": payload})


def get_buffered_events(clear: bool = True) -> List[Dict[str, Any]]:
    """Return buffered domain events oldest first; optionally clear the buffer."""
    with _LOCK:
        events = list(EVENT_BUFFER)
        if clear:
            EVENT_BUFFER.clear()
    return events


__all__ = [
    "COLLECTIONS_CHANGED",
    "REQUESTS_REORDERED",
    "COLLECTION_IMPORTED",
    "REQUEST_SAVED",
    "REQUEST_DELETED",
    "EVENT_BUFFER_LIMIT",
    "publish",
    "get_buffered_events",
    "EVENT_BUFFER",
]
