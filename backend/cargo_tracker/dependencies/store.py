from __future__ import annotations

from fastapi import Request

from cargo_tracker.core.config import Settings
from cargo_tracker.store.base import DocumentStore


def get_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_base_url(request: Request) -> str:
    """``{protocol}://{host}`` of the current request, used to build ``self`` links."""
    return str(request.base_url).rstrip("/")
