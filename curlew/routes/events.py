"""Notification channel polled by the GUI shell."""

from __future__ import annotations

from fastapi import APIRouter

from curlew.logic.events import get_buffered_events

router = APIRouter()


@router.get("/events", summary="Drain pending domain events", operation_id="drainEvents")
def drain_events() -> dict:
    return {"events": get_buffered_events(clear=True)}


__all__ = ["router"]
