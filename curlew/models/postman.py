"""Postman v2.x collection export document.

Only the fields that map onto collections and requests are modelled;
everything else is ignored. Several fields are duck-typed in real exports
(description and url may be a string or an object), so they are kept as
``TextOrObject`` and resolved with :func:`extract_text`.
"""

from __future__ import annotations

import re
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError

TextOrObject = Union[str, Dict[str, Any], None]

_SEMVER = re.compile(r"^\s*v?(\d+)(?:\.(\d+))?(?:\.(\d+))?(?:[-+](.+))?\s*$")


def extract_text(value: TextOrObject, key: str) -> str:
    """Return the plain-text form of a string-or-object field.

    A string wins; otherwise ``value[key]`` when it is a string; otherwise "".
    """
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        inner = value.get(key)
        if isinstance(inner, str):
            return inner
    return ""


class _Doc(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class PostmanVersion(_Doc):
    major: int = 0
    minor: int = 0
    patch: int = 0
    identifier: str = ""

    @classmethod
    def parse(cls, value: Any) -> Optional["PostmanVersion"]:
        """Read an object or semver string; any other shape yields None."""
        if isinstance(value, PostmanVersion):
            return value
        if isinstance(value, dict):
            try:
                return cls.model_validate(value)
            except ValidationError:
                return None
        if not isinstance(value, str):
            return None
        match = _SEMVER.match(str(value))
        if not match:
            return cls(identifier=str(value))
        major, minor, patch, ident = match.groups()
        return cls(major=int(major), minor=int(minor or 0), patch=int(patch or 0), identifier=ident or "")


class PostmanInfo(_Doc):
    name: str = ""
    postman_id: str = Field(default="", alias="_postman_id")
    description: TextOrObject = None
    schema_url: str = Field(default="", alias="schema")
    # Left untyped: a malformed version never fails the import
    version: Any = None

    def semantic_version(self) -> Optional[PostmanVersion]:
        return PostmanVersion.parse(self.version)


class PostmanRequest(_Doc):
    method: Optional[str] = None
    url: TextOrObject = None
    header: Any = None
    body: Any = None
    auth: Any = None
    description: TextOrObject = None


class PostmanItem(_Doc):
    name: str = ""
    description: TextOrObject = None
    request: Union[PostmanRequest, str, None] = None
    item: Optional[List["PostmanItem"]] = None

    @property
    def children(self) -> List["PostmanItem"]:
        return self.item or []

    def resolved_request(self) -> Optional[PostmanRequest]:
        """Return the request payload; a bare string is a GET to that URL."""
        if isinstance(self.request, str):
            return PostmanRequest(method="GET", url=self.request)
        return self.request


class PostmanCollection(_Doc):
    info: PostmanInfo
    item: List[PostmanItem] = Field(default_factory=list)


PostmanItem.model_rebuild()


__all__ = [
    "TextOrObject",
    "extract_text",
    "PostmanVersion",
    "PostmanInfo",
    "PostmanRequest",
    "PostmanItem",
    "PostmanCollection",
]
