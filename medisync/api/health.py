"""Liveness endpoint."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from medisync.access.registry import DocumentAccessRegistry
from medisync.api.dependencies import get_registry

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(registry: DocumentAccessRegistry = Depends(get_registry)) -> dict[str, Any]:
    return {"status": "ok", "requests": len(registry)}
