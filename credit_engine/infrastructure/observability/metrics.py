"""Prometheus metrics for credit sales, payments, approvals and notifications"""

from prometheus_client import Counter, Histogram

# Credit sale metrics
credit_sale_counter = Counter(
    "credit_sale_total",
    "Credit sales processed",
    ["outcome"],  # committed | approval_required | rejected
)

# Payment metrics
payment_allocation_counter = Counter(
    "credit_payment_allocations_total",
    "Receivables touched by payment waterfalls",
)

payment_amount_histogram = Histogram(
    "credit_payment_amount_cents",
    "Payment amounts recorded",
    buckets=[10_000, 100_000, 1_000_000, 10_000_000, 100_000_000],
)

reconciliation_clamp_counter = Counter(
    "credit_reconciliation_clamps_total",
    "Ledger credits clamped at zero (ledger drifted from receivables)",
)

overpayment_counter = Counter(
    "credit_overpayments_total",
    "Payments exceeding the open balance",
    ["handling"],  # rejected | held_as_credit
)

# Approval metrics
approval_decision_counter = Counter(
    "approval_decisions_total",
    "Approval workflow transitions",
    ["module", "status"],
)

approval_escalation_counter = Counter(
    "approval_escalations_total",
    "Stale approval requests escalated",
    ["module"],
)

# Notification metrics
notification_latency_histogram = Histogram(
    "notification_latency_seconds",
    "Notification webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

notification_failure_counter = Counter(
    "notification_failures_total",
    "Failed notification deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_credit_sale(outcome: str) -> None:
    credit_sale_counter.labels(outcome=outcome).inc()


def record_payment(amount_cents: int, allocations: int, clamped: bool) -> None:
    """Record waterfall metrics; a clamp means manual reconciliation is needed"""
    payment_amount_histogram.observe(amount_cents)
    payment_allocation_counter.inc(allocations)
    if clamped:
        reconciliation_clamp_counter.inc()


def record_approval(module: str, status: str) -> None:
    approval_decision_counter.labels(module=module, status=status).inc()
