"""Periodic expiry sweep for approved access grants.

The sweep only refreshes status labels. Liveness is always decided by
DocumentAccessRegistry.has_active_access(), so a late or skipped tick never
extends access.

Example usage:
    sweeper = ExpirySweeper(registry, interval_seconds=60)
    await sweeper.start()
    ...
    await sweeper.shutdown()
"""

from __future__ import annotations

import asyncio

import structlog

from medisync.access.models import AccessRequest
from medisync.access.registry import DocumentAccessRegistry

log = structlog.get_logger(__name__)


class ExpirySweeper:
    """Runs DocumentAccessRegistry.expire_stale() on a fixed interval."""

    def __init__(
        self,
        registry: DocumentAccessRegistry,
        *,
        interval_seconds: float = 60.0,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be positive")
        self._registry = registry
        self._interval = interval_seconds
        self._task: asyncio.Task[None] | None = None
        self._ticks = 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def ticks(self) -> int:
        """Number of completed sweep ticks since start."""
        return self._ticks

    async def start(self) -> None:
        """Sweep once immediately, then keep sweeping in the background."""
        if self.running:
            log.warning("expiry_sweeper.already_running")
            return

        self._tick()
        self._task = asyncio.create_task(self._loop())
        log.info("expiry_sweeper.started", interval_seconds=self._interval)

    async def shutdown(self) -> None:
        if self._task is None:
            return

        self._task.cancel()
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        log.info("expiry_sweeper.stopped", ticks=self._ticks)

    def run_once(self) -> list[AccessRequest]:
        """Run a single sweep tick and return the requests it expired."""
        expired = self._registry.expire_stale()
        self._ticks += 1
        return expired

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            self._tick()

    def _tick(self) -> None:
        try:
            self.run_once()
        except Exception:
            log.exception("expiry_sweeper.tick_failed")
