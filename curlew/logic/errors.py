"""Domain error taxonomy.

Every failure surfaced to the GUI shell is one of these classes; the
message is the human-readable text shown to the user.
"""

from __future__ import annotations

from typing import Optional


class CurlewError(Exception):
    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFound(CurlewError):
    """A referenced collection or request does not exist."""


class InvalidHierarchy(CurlewError):
    """A parent assignment would make a collection its own ancestor."""


class ImportFormatError(CurlewError):
    """The import document could not be parsed or has the wrong shape."""


class StoreError(CurlewError):
    """The underlying store failed; ``cause`` holds the driver exception."""

    def __init__(self, message: str, cause: Optional[BaseException] = None) -> None:
        super().__init__(message)
        self.cause = cause

    def __str__(self) -> str:
        if self.cause is None:
            return self.message
        return f"{self.message}: {self.cause}"


__all__ = [
    "CurlewError",
    "NotFound",
    "InvalidHierarchy",
    "ImportFormatError",
    "StoreError",
]
