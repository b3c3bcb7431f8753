"""Webhook delivery of access request events.

NotificationDispatcher is registered as a registry listener. Events are
queued and posted by a background coroutine, so registry calls never wait on
the network.

Delivery signing uses HMAC-SHA256 over the raw JSON body, sent as
``X-MediSync-Signature-256: sha256=<hex>`` when a secret is configured.

Retry policy: 3 attempts maximum.
  Attempt 1: immediate
  Attempt 2: 2 s delay
  Attempt 3: 10 s delay
A delivery that fails every attempt is logged and dropped.
"""

from __future__ import annotations

import asyncio
import hashlib
import hmac
import json

import httpx
import structlog

from medisync.access.events import AccessEvent

log = structlog.get_logger(__name__)

_RETRY_DELAYS: tuple[float, ...] = (0.0, 2.0, 10.0)


def _running_loop() -> asyncio.AbstractEventLoop | None:
    try:
        return asyncio.get_running_loop()
    except RuntimeError:
        return None


def sign_payload(body: str, secret: str) -> str:
    """Return the hex HMAC-SHA256 signature of a delivery body."""
    return hmac.new(secret.encode(), body.encode(), hashlib.sha256).hexdigest()


class NotificationDispatcher:
    """Queues AccessEvents and posts them to a webhook."""

    def __init__(
        self,
        url: str,
        *,
        secret: str | None = None,
        timeout_seconds: float = 10.0,
        retry_delays: tuple[float, ...] = _RETRY_DELAYS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            url: Webhook endpoint
            secret: Optional HMAC signing secret
            timeout_seconds: Per-attempt HTTP timeout
            retry_delays: Delay before each attempt; its length is the attempt limit
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        self._url = url
        self._secret = secret
        self._timeout = timeout_seconds
        self._retry_delays = retry_delays
        self._transport = transport
        self._queue: asyncio.Queue[AccessEvent] = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._worker: asyncio.Task[None] | None = None
        self.delivered = 0
        self.failed = 0

    def __call__(self, event: AccessEvent) -> None:
        """Registry listener entry point. Safe to call from any thread."""
        if self._loop is None:
            log.warning(
                "notifications.dropped",
                event_type=str(event.type),
                request_id=event.request.id,
                reason="not_started",
            )
            return
        if _running_loop() is self._loop:
            self._queue.put_nowait(event)
        else:
            self._loop.call_soon_threadsafe(self._queue.put_nowait, event)

    async def start(self) -> None:
        if self._worker is not None:
            log.warning("notifications.already_running")
            return
        self._loop = asyncio.get_running_loop()
        self._worker = asyncio.create_task(self._worker_loop())
        log.info("notifications.started", host=httpx.URL(self._url).host)

    async def shutdown(self, *, drain: bool = True) -> None:
        """Stop the worker, optionally waiting for queued events first."""
        if self._worker is None:
            return
        if drain:
            # Let events handed over from other threads reach the queue
            await asyncio.sleep(0)
            await self._queue.join()
        self._worker.cancel()
        await asyncio.gather(self._worker, return_exceptions=True)
        self._worker = None
        self._loop = None
        log.info(
            "notifications.stopped",
            delivered=self.delivered,
            failed=self.failed,
        )

    async def _worker_loop(self) -> None:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            while True:
                event = await self._queue.get()
                try:
                    await self.deliver(client, event)
                finally:
                    self._queue.task_done()

    async def deliver(self, client: httpx.AsyncClient, event: AccessEvent) -> bool:
        """Post one event, retrying per the retry policy.

        Returns:
            True if the webhook acknowledged with a 2xx status
        """
        body = json.dumps(event.to_dict())
        headers = {
            "Content-Type": "application/json",
            "X-MediSync-Event": str(event.type),
        }
        if self._secret:
            headers["X-MediSync-Signature-256"] = f"sha256={sign_payload(body, self._secret)}"

        for attempt, delay in enumerate(self._retry_delays, start=1):
            if delay:
                await asyncio.sleep(delay)

            status_code: int | None = None
            try:
                response = await client.post(self._url, content=body, headers=headers)
                status_code = response.status_code
            except httpx.HTTPError as exc:
                log.warning(
                    "notifications.delivery_error",
                    event_type=str(event.type),
                    request_id=event.request.id,
                    attempt=attempt,
                    error=str(exc),
                )

            if status_code is not None and 200 <= status_code < 300:
                self.delivered += 1
                log.info(
                    "notifications.delivered",
                    event_type=str(event.type),
                    request_id=event.request.id,
                    attempt=attempt,
                    status_code=status_code,
                )
                return True

            if status_code is not None:
                log.warning(
                    "notifications.delivery_rejected",
                    event_type=str(event.type),
                    request_id=event.request.id,
                    attempt=attempt,
                    status_code=status_code,
                )

        self.failed += 1
        log.error(
            "notifications.delivery_failed_permanently",
            event_type=str(event.type),
            request_id=event.request.id,
            attempts=len(self._retry_delays),
        )
        return False
