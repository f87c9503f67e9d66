"""
The contents of this file are property of Doorman Dev, LLC
Review the Apache License 2.0 for valid authorization of use
See https://github.com/apidoorman/doorman for more information
"""

import asyncio
import logging
from collections.abc import Callable
from typing import Any

import httpx

from models.alert_models import Alert, AlertKind
from utils.alert_format_util import build_webhook_body
from utils.geo_lookup import GeoLookup

logger = logging.getLogger('turnstile.alerts')

SUPPRESSED_ACTIVITY_STATUSES = (404, 429)


class AlertDispatcher:
    """Queue operational events and deliver them to chat webhooks.

    ``emit`` never blocks and never raises: it only puts the alert on an
    asyncio queue. A single background worker (started on first emit) builds
    the payload, enriches abuse alerts with geolocation and POSTs it. Delivery
    failures are logged and counted, nothing is retried.
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        resolve_url: Callable[[AlertKind], str | None],
        geo: GeoLookup | None = None,
        creator: str = 'Turnstile',
        timeout: float = 8.0,
        queue_size: int = 1000,
    ):
        self.client = client
        self.resolve_url = resolve_url
        self.geo = geo
        self.creator = creator
        self.timeout = timeout
        self.queue_size = queue_size
        self._queue: asyncio.Queue | None = None
        self._worker: asyncio.Task | None = None
        self.delivered = 0
        self.failed = 0
        self.dropped = 0

    def emit(self, kind: AlertKind, payload: dict[str, Any] | None = None) -> bool:
        """Hand an alert to the background worker. Returns True when queued."""
        try:
            payload = dict(payload or {})
            if not self.resolve_url(kind):
                return False
            if kind == AlertKind.REQUEST_COMPLETED and payload.get('status_code') in SUPPRESSED_ACTIVITY_STATUSES:
                return False
            self._ensure_worker()
            self._queue.put_nowait(Alert(kind=kind, payload=payload))
            return True
        except asyncio.QueueFull:
            self.dropped += 1
            logger.warning(f'Alert queue full, dropped {kind.value} alert')
        except Exception as e:
            self.dropped += 1
            logger.error(f'Alert emit failed for {getattr(kind, "value", kind)}: {e}')
        return False

    def _ensure_worker(self) -> None:
        if self._queue is None:
            self._queue = asyncio.Queue(maxsize=self.queue_size)
        if self._worker is None or self._worker.done():
            self._worker = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        while True:
            alert = await self._queue.get()
            try:
                await self.deliver(alert)
            except Exception as e:
                self.failed += 1
                logger.error(f'Alert worker error for {alert.kind.value}: {e}')
            finally:
                self._queue.task_done()

    async def deliver(self, alert: Alert) -> bool:
        url = self.resolve_url(alert.kind)
        if not url:
            return False
        payload = alert.payload
        if alert.kind == AlertKind.RATE_LIMIT_TRIPPED and self.geo is not None and 'ip_info' not in payload:
            payload['ip_info'] = await self.geo.get_ip_info(payload.get('ip'))
        body = build_webhook_body(alert.kind, payload, self.creator)
        try:
            response = await self.client.post(url, json=body, timeout=self.timeout)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            self.failed += 1
            logger.error(f'Alert {alert.kind.value} rejected by webhook: HTTP {e.response.status_code}')
            return False
        except httpx.HTTPError as e:
            self.failed += 1
            logger.error(f'Alert {alert.kind.value} delivery failed: {type(e).__name__}: {e}')
            return False
        self.delivered += 1
        if alert.kind != AlertKind.REQUEST_COMPLETED:
            logger.info(f'Alert {alert.kind.value} delivered')
        return True

    async def drain(self, timeout: float = 2.0) -> bool:
        """Wait for queued alerts to be processed. Returns False on timeout."""
        if self._queue is None:
            return True
        try:
            await asyncio.wait_for(self._queue.join(), timeout=timeout)
            return True
        except asyncio.TimeoutError:
            return False

    async def close(self, drain_timeout: float = 2.0) -> None:
        if not await self.drain(drain_timeout):
            logger.warning(f'Alert queue not drained at shutdown, {self._queue.qsize()} alert(s) dropped')
        if self._worker is not None:
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                pass
            self._worker = None
