"""APIRouter registration for the collection service."""

from __future__ import annotations

from fastapi import APIRouter

from curlew.routes.collections import router as collections_router
from curlew.routes.events import router as events_router
from curlew.routes.requests import router as requests_router

api_router = APIRouter()
api_router.include_router(collections_router, tags=["Collections", "Import"])
api_router.include_router(requests_router, tags=["Requests"])
api_router.include_router(events_router, tags=["Events"])

__all__ = ["api_router"]
