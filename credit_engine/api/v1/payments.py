"""POST /v1/payments - record a customer payment against open receivables"""

from fastapi import APIRouter, Depends

from credit_engine.api.v1.schemas import (
    AllocationSchema,
    CreditScoreSchema,
    PaymentRequest,
    PaymentResponse,
)
from credit_engine.api.dependencies import get_orchestrator
from credit_engine.services.orchestrator import TransactionOrchestrator

router = APIRouter()


@router.post("/payments", response_model=PaymentResponse)
def record_payment(
    body: PaymentRequest,
    orchestrator: TransactionOrchestrator = Depends(get_orchestrator),
):
    """
    Apply a payment oldest-due-first (or to the given receivables).

    An amount larger than the open balance is refused with 422 unless the
    credit settings hold overpayments as customer credit.
    """
    options = dict(method=body.method, reference=body.reference, received_by=body.received_by)
    if body.transaction_id is not None:
        outcome = orchestrator.record_transaction_payment(body.transaction_id, body.amount_cents, **options)
    else:
        outcome = orchestrator.record_payment(
            body.customer_id, body.amount_cents, target_ids=body.target_ids, **options
        )

    return PaymentResponse(
        customer_id=outcome.customer_id,
        amount_cents=outcome.plan.amount_cents,
        allocations=[AllocationSchema.model_validate(a) for a in outcome.plan.allocations],
        held_as_credit_cents=outcome.held_as_credit_cents,
        outstanding_balance_cents=outcome.outstanding_balance_cents,
        score=CreditScoreSchema.model_validate(outcome.score) if outcome.score else None,
    )
