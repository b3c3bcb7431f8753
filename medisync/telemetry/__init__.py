"""Telemetry package: structured logging and request correlation."""

from __future__ import annotations

from medisync.telemetry.logging import (
    RequestIdMiddleware,
    bind_actor_context,
    clear_context,
    configure_logging,
)

__all__ = [
    "RequestIdMiddleware",
    "bind_actor_context",
    "clear_context",
    "configure_logging",
]
