"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pythonjsonlogger import jsonlogger
from credit_engine.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


def log_credit_sale(customer_id: str, origin_ref: str, amount_cents: int, outcome: str) -> None:
    """Log credit sale outcome (committed | approval_required | rejected)"""
    logging.info(
        "Credit sale processed",
        extra={
            "customer_id": customer_id,
            "origin_ref": origin_ref,
            "amount_cents": amount_cents,
            "step": "credit_sale",
            "outcome": outcome,
        },
    )


def log_payment(
    customer_id: str,
    amount_cents: int,
    allocations: int,
    unapplied_cents: int,
    outstanding_balance_cents: int,
) -> None:
    """Log a committed payment waterfall"""
    logging.info(
        "Payment allocated",
        extra={
            "customer_id": customer_id,
            "amount_cents": amount_cents,
            "allocation_count": allocations,
            "unapplied_cents": unapplied_cents,
            "outstanding_balance_cents": outstanding_balance_cents,
            "step": "payment_recorded",
        },
    )


def log_approval_event(
    request_id: Optional[int],
    module: str,
    status: str,
    actor: str,
    required_role: str,
    escalation_level: int = 0,
) -> None:
    """Log an approval workflow transition"""
    logging.info(
        "Approval request updated",
        extra={
            "approval_request_id": request_id,
            "approval_module": module,
            "status": status,
            "actor": actor,
            "required_role": required_role,
            "escalation_level": escalation_level,
            "step": "approval",
        },
    )
