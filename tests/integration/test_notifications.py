"""Tests for the notification webhook client"""

import asyncio
import json
import httpx
from fastapi import BackgroundTasks
from credit_engine.infrastructure.clients.notifications import BackgroundNotificationSink, NotificationClient


def make_client(handler) -> NotificationClient:
    client = NotificationClient(webhook_url="http://notify.test/events", transport=httpx.MockTransport(handler))
    client.backoff_base = 0
    client.max_retries = 3
    return client


def test_event_is_posted_as_json():
    received = []

    def handler(request: httpx.Request) -> httpx.Response:
        received.append(json.loads(request.content))
        return httpx.Response(202)

    delivered = asyncio.run(make_client(handler).emit("approval.pending", {"approval_request_id": 7}))

    assert delivered is True
    assert received == [{"event": "approval.pending", "approval_request_id": 7}]


def test_transient_failure_is_retried():
    attempts = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(request)
        return httpx.Response(503) if len(attempts) < 3 else httpx.Response(200)

    assert asyncio.run(make_client(handler).emit("payment.recorded", {})) is True
    assert len(attempts) == 3


def test_exhausted_retries_report_failure_without_raising(caplog):
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    delivered = asyncio.run(make_client(handler).emit("credit.blocked", {"customer_id": "c1"}))

    assert delivered is False
    assert "Notification delivery failed after 3 attempts" in caplog.text


def test_background_sink_schedules_delivery():
    tasks = BackgroundTasks()
    client = make_client(lambda request: httpx.Response(200))

    BackgroundNotificationSink(tasks, client, enabled=True).emit("credit.blocked", {"customer_id": "c1"})

    assert len(tasks.tasks) == 1
    assert tasks.tasks[0].args == ("credit.blocked", {"customer_id": "c1"})


def test_disabled_sink_drops_events():
    tasks = BackgroundTasks()
    client = make_client(lambda request: httpx.Response(200))

    BackgroundNotificationSink(tasks, client, enabled=False).emit("credit.blocked", {"customer_id": "c1"})

    assert tasks.tasks == []
