"""Notification webhook client with exponential backoff retry logic"""

import asyncio
import logging
import httpx
from typing import Any, Dict, Optional
from fastapi import BackgroundTasks
from credit_engine.config import settings
from credit_engine.infrastructure.observability.metrics import (
    notification_latency_histogram,
    notification_failure_counter,
)

logger = logging.getLogger(__name__)


class NotificationClient:
    """Client for sending domain events to the notification service"""

    def __init__(
        self,
        webhook_url: str | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.webhook_url = webhook_url or settings.notification_webhook_url
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base
        self.timeout = settings.http_timeout_seconds
        self.transport = transport

    async def emit(self, event_type: str, payload: Dict[str, Any]) -> bool:
        """
        Deliver one event, retrying on failure.

        Retry strategy:
        - Exponential backoff: base, 2x, 4x, ... (base * 2^(attempt-1))
        - Retries on 5xx/4xx responses and network failures
        - Final failure is logged and reported as False: delivery runs after
          the financial transaction committed and must never undo it

        Returns:
            True when the webhook accepted the event
        """
        body = {"event": event_type, **payload}
        attempt = 0
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            while attempt < self.max_retries:
                try:
                    with notification_latency_histogram.time():
                        response = await client.post(self.webhook_url, json=body)
                        response.raise_for_status()
                        return True

                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    attempt += 1
                    notification_failure_counter.inc()

                    if attempt >= self.max_retries:
                        logger.error(
                            f"Notification delivery failed after {attempt} attempts: {e}",
                            extra={"event_type": event_type},
                        )
                        return False

                    backoff = self.backoff_base * (2 ** (attempt - 1))
                    await asyncio.sleep(backoff)
        return False


class BackgroundNotificationSink:
    """Notification sink that defers delivery to FastAPI background tasks (after the response)"""

    def __init__(
        self,
        background_tasks: BackgroundTasks,
        client: NotificationClient,
        enabled: bool | None = None,
    ):
        self.background_tasks = background_tasks
        self.client = client
        self.enabled = settings.notifications_enabled if enabled is None else enabled

    def emit(self, event_type: str, payload: Dict[str, Any]) -> None:
        if not self.enabled:
            logger.debug(f"Notifications disabled, dropping {event_type}")
            return
        self.background_tasks.add_task(self.client.emit, event_type, payload)
