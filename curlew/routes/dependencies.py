"""Shared route dependencies."""

from __future__ import annotations

from fastapi import Request

from curlew.config import AppConfig


def get_config(request: Request) -> AppConfig:
    return request.app.state.config
