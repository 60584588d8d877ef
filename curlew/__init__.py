"""curlew collection service.

Backs the desktop API client's sidebar: a nested, re-orderable tree of
collections holding saved requests, plus Postman collection import.
Business logic lives in `curlew/logic/` and route handlers in
`curlew/routes/`.
"""

from __future__ import annotations

from curlew.main import create_app

__all__ = ["create_app"]
