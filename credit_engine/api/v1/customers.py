"""Customer credit endpoints - summary, facility, block, score, overdue and alerts"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query

from credit_engine.api.v1.schemas import (
    CreditAlertSchema,
    CreditBlockRequest,
    CreditFacilityRequest,
    CreditScoreSchema,
    CreditSummaryResponse,
    CustomerCreditSchema,
    OpenAccountRequest,
    OverdueSweepResponse,
    OverdueTransactionsResponse,
    ReconciliationResponse,
    TransactionSchema,
)
from credit_engine.api.dependencies import get_orchestrator
from credit_engine.services.orchestrator import TransactionOrchestrator
from credit_engine.utils.date_utils import utc_now

router = APIRouter()


def _customer_schema(customer) -> CustomerCreditSchema:
    return CustomerCreditSchema.model_validate(customer)


@router.post("/customers", response_model=CustomerCreditSchema, status_code=201)
def open_credit_account(body: OpenAccountRequest, orchestrator: TransactionOrchestrator = Depends(get_orchestrator)):
    customer = orchestrator.open_credit_account(
        body.customer_id, body.name, body.credit_limit_cents, body.payment_terms_days
    )
    return _customer_schema(customer)


@router.get("/customers/{customer_id}/credit", response_model=CreditSummaryResponse)
def get_credit_summary(customer_id: str, orchestrator: TransactionOrchestrator = Depends(get_orchestrator)):
    """
    Credit position of one customer.

    Returns:
        Limit, balance, headroom, utilization, provisional (pending approval)
        amount, overdue totals and the latest score snapshot
    """
    return CreditSummaryResponse.model_validate(orchestrator.get_credit_summary(customer_id))


@router.put("/customers/{customer_id}/credit-block", response_model=CustomerCreditSchema)
def set_credit_block(
    customer_id: str,
    body: CreditBlockRequest,
    orchestrator: TransactionOrchestrator = Depends(get_orchestrator),
):
    return _customer_schema(orchestrator.set_credit_block(customer_id, body.blocked, body.reason))


@router.put("/customers/{customer_id}/credit-facility", response_model=CustomerCreditSchema)
def update_credit_facility(
    customer_id: str,
    body: CreditFacilityRequest,
    orchestrator: TransactionOrchestrator = Depends(get_orchestrator),
):
    """Change limit and terms; a limit below the outstanding balance is refused with 422"""
    customer = orchestrator.update_credit_facility(customer_id, body.credit_limit_cents, body.payment_terms_days)
    return _customer_schema(customer)


@router.get("/customers/{customer_id}/credit-score", response_model=CreditScoreSchema)
def get_credit_score(customer_id: str, orchestrator: TransactionOrchestrator = Depends(get_orchestrator)):
    return CreditScoreSchema.model_validate(orchestrator.get_credit_score(customer_id))


@router.post("/customers/{customer_id}/credit-score", response_model=CreditScoreSchema)
def refresh_credit_score(customer_id: str, orchestrator: TransactionOrchestrator = Depends(get_orchestrator)):
    return CreditScoreSchema.model_validate(orchestrator.refresh_credit_score(customer_id))


@router.post("/customers/{customer_id}/credit-recommendations/apply", response_model=CustomerCreditSchema)
def apply_recommendations(customer_id: str, orchestrator: TransactionOrchestrator = Depends(get_orchestrator)):
    return _customer_schema(orchestrator.apply_recommendations(customer_id))


@router.get("/customers/{customer_id}/reconciliation", response_model=ReconciliationResponse)
def reconcile(customer_id: str, orchestrator: TransactionOrchestrator = Depends(get_orchestrator)):
    report = orchestrator.reconcile(customer_id)
    return ReconciliationResponse(
        customer_id=report.customer_id,
        outstanding_balance_cents=report.outstanding_balance_cents,
        receivable_total_cents=report.receivable_total_cents,
        drift_cents=report.drift_cents,
        balanced=report.balanced,
    )


@router.get("/credit/overdue", response_model=OverdueTransactionsResponse)
def get_overdue_transactions(
    customer_id: Optional[str] = Query(None, description="Limit to one customer"),
    orchestrator: TransactionOrchestrator = Depends(get_orchestrator),
):
    now = utc_now()
    transactions = orchestrator.get_overdue_transactions(customer_id, now)
    return OverdueTransactionsResponse(
        as_of=now.date(),
        transactions=[TransactionSchema.model_validate(t) for t in transactions],
    )


@router.post("/credit/overdue-sweep", response_model=OverdueSweepResponse)
def mark_overdue_transactions(orchestrator: TransactionOrchestrator = Depends(get_orchestrator)):
    """Sweep invoked by an external scheduler"""
    return OverdueSweepResponse.model_validate(orchestrator.mark_overdue_transactions())


@router.get("/credit/alerts", response_model=List[CreditAlertSchema])
def get_credit_alerts(orchestrator: TransactionOrchestrator = Depends(get_orchestrator)):
    return [CreditAlertSchema.model_validate(a) for a in orchestrator.get_credit_alerts()]
