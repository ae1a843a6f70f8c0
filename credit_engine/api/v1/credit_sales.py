"""POST /v1/credit-sales - book a sale on customer credit"""

from fastapi import APIRouter, Depends

from credit_engine.api.v1.schemas import (
    ApprovalSchema,
    CreditSaleRequest,
    CreditSaleResponse,
    TransactionSchema,
)
from credit_engine.api.dependencies import get_orchestrator
from credit_engine.domain.models import ApprovalRequired
from credit_engine.services.orchestrator import TransactionOrchestrator

router = APIRouter()


@router.post("/credit-sales", response_model=CreditSaleResponse)
def create_credit_sale(
    body: CreditSaleRequest,
    orchestrator: TransactionOrchestrator = Depends(get_orchestrator),
):
    """
    Book a credit sale.

    Returns outcome "committed" with the new balance, or "approval_required"
    with the pending approval request when the amount falls in a band that
    needs sign-off. Credit gate failures surface as 422.
    """
    result = orchestrator.create_credit_sale(
        customer_id=body.customer_id,
        amount_cents=body.amount_cents,
        origin_ref=body.origin_ref,
        booked_by=body.booked_by,
        due_date=body.due_date,
    )

    if isinstance(result, ApprovalRequired):
        return CreditSaleResponse(
            outcome="approval_required",
            transaction=TransactionSchema.model_validate(result.transaction),
            approval=ApprovalSchema.model_validate(result.approval),
        )

    return CreditSaleResponse(
        outcome="committed",
        transaction=TransactionSchema.model_validate(result.transaction),
        outstanding_balance_cents=result.outstanding_balance_cents,
    )
