"""Shared FastAPI dependencies for the access API."""

from __future__ import annotations

from fastapi import Request

from medisync.access.registry import DocumentAccessRegistry


def get_registry(request: Request) -> DocumentAccessRegistry:
    """Return the registry created in the application lifespan."""
    return request.app.state.access_registry
