"""Configuration utilities.

This module loads application configuration with the following rules:
- Primary source: `curlew_config.json` at the working directory root.
- Overrides: environment variables, then optional text files under `config/`.
- Validation: Pydantic models enforce value constraints.
"""

from __future__ import annotations

import json
import logging
import os
from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator

from curlew.db.base import DEFAULT_DATABASE_URL


CONFIG_DIR = Path("config")
ROOT_CONFIG = Path("curlew_config.json")
logger = logging.getLogger(__name__)


class DeletePolicy(str, Enum):
    """What happens to child collections when their parent is deleted."""

    ORPHAN = "orphan"
    CASCADE = "cascade"
    REJECT = "reject"


def _read_config_file(rel_path: str) -> Optional[str]:
    path = CONFIG_DIR / rel_path
    try:
        if path.exists():
            return path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Failed to read override %s: %s", path, e)
        return None
    return None


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key, default)


class DatabaseConfig(BaseModel):
    dsn: str

    @field_validator("dsn")
    @classmethod
    def dsn_must_be_non_empty(cls, v: str) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("database.dsn must be a non-empty string")
        return v


class CollectionsConfig(BaseModel):
    delete_policy: DeletePolicy = DeletePolicy.ORPHAN


class ImportConfig(BaseModel):
    atomic: bool = Field(default=True)
    max_bytes: int = Field(default=10 * 1024 * 1024, gt=0)


class ResponsesConfig(BaseModel):
    history_limit: int = Field(default=5, ge=1)


class AppConfig(BaseModel):
    database: DatabaseConfig
    collections: CollectionsConfig = Field(default_factory=CollectionsConfig)
    imports: ImportConfig = Field(default_factory=ImportConfig)
    responses: ResponsesConfig = Field(default_factory=ResponsesConfig)


def _read_json_file(path: Path) -> dict:
    try:
        if path.exists():
            data = json.loads(path.read_text(encoding="utf-8"))
            return data if isinstance(data, dict) else {}
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error("Failed to read JSON config %s: %s", path, e)
    return {}


def _truthy(value: str) -> bool:
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def load_config() -> AppConfig:
    """Load configuration with validation.

    Precedence (highest first):
    1) Environment variables
    2) Text files in `config/` (optional)
    3) curlew_config.json at the working directory root
    4) Defaults suitable for the desktop build
    """

    base = _read_json_file(ROOT_CONFIG)

    def _base(path: str, default: Optional[str] = None) -> Optional[str]:
        cur: object = base
        for key in path.split("."):
            if not isinstance(cur, dict) or key not in cur:
                return default
            cur = cur[key]
        return str(cur) if cur is not None else default

    dsn = (
        _env("TEST_DATABASE_URL")
        or _env("DATABASE_URL")
        or _read_config_file("database.url")
        or _base("database.dsn")
        or DEFAULT_DATABASE_URL
    )
    delete_policy = (
        _env("COLLECTION_DELETE_POLICY")
        or _read_config_file("collections.delete_policy")
        or _base("collections.delete_policy", DeletePolicy.ORPHAN.value)
    )
    atomic_text = _env("IMPORT_ATOMIC") or _read_config_file("imports.atomic") or _base("imports.atomic", "true")
    max_bytes_text = (
        _env("IMPORT_MAX_BYTES") or _read_config_file("imports.max_bytes") or _base("imports.max_bytes", "10485760")
    )
    history_text = (
        _env("RESPONSE_HISTORY_LIMIT")
        or _read_config_file("responses.history_limit")
        or _base("responses.history_limit", "5")
    )

    try:
        return AppConfig(
            database=DatabaseConfig(dsn=dsn),
            collections=CollectionsConfig(delete_policy=str(delete_policy).strip().lower()),
            imports=ImportConfig(atomic=_truthy(atomic_text), max_bytes=int(str(max_bytes_text).strip())),
            responses=ResponsesConfig(history_limit=int(str(history_text).strip())),
        )
    except (PydanticValidationError, ValueError) as e:
        logger.error("Invalid application configuration: %s", e)
        raise


__all__ = [
    "AppConfig",
    "DatabaseConfig",
    "CollectionsConfig",
    "ImportConfig",
    "ResponsesConfig",
    "DeletePolicy",
    "load_config",
]
