"""Dependency injection for FastAPI endpoints"""

from fastapi import BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session
from credit_engine.infrastructure.database.session import get_db
from credit_engine.infrastructure.clients.notifications import BackgroundNotificationSink, NotificationClient
from credit_engine.services.orchestrator import TransactionOrchestrator


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_notification_client() -> NotificationClient:
    """Provide notification webhook client instance"""
    return NotificationClient()


def get_notification_sink(
    background_tasks: BackgroundTasks,
    client: NotificationClient = Depends(get_notification_client),
) -> BackgroundNotificationSink:
    """Events are delivered after the response, never inside the database transaction"""
    return BackgroundNotificationSink(background_tasks, client)


def get_orchestrator(
    db: Session = Depends(get_db),
    sink=Depends(get_notification_sink),
) -> TransactionOrchestrator:
    return TransactionOrchestrator(db, sink)
