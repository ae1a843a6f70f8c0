"""Pydantic schemas for API request/response validation"""

from datetime import date, datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator

from credit_engine.domain.states import (
    ApprovalModule,
    ApprovalStatus,
    DecisionOutcome,
    PaymentMethod,
    RiskLevel,
    TransactionStatus,
)


class CreditSaleRequest(BaseModel):
    """Request body for POST /v1/credit-sales"""

    customer_id: str = Field(..., min_length=1)
    amount_cents: int = Field(..., gt=0, description="Sale amount in cents")
    origin_ref: str = Field(..., min_length=1, description="Sales order reference")
    booked_by: str = Field(..., min_length=1)
    due_date: Optional[date] = None


class TransactionSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    customer_id: str
    origin_ref: str
    original_amount_cents: int
    balance_cents: int
    transaction_date: date
    due_date: date
    status: TransactionStatus
    paid_date: Optional[date] = None


class ApprovalSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    module: ApprovalModule
    subject_id: str
    amount_cents: int
    required_role: str
    status: ApprovalStatus
    escalation_level: int
    submitted_by: str
    submitted_at: datetime
    pending_since: datetime
    first_approved_by: Optional[str] = None
    decided_by: Optional[str] = None
    decided_at: Optional[datetime] = None
    decision_reason: Optional[str] = None
    credit_transaction_id: Optional[int] = None


class CreditSaleResponse(BaseModel):
    """Response for POST /v1/credit-sales"""

    outcome: str  # committed | approval_required
    transaction: TransactionSchema
    outstanding_balance_cents: Optional[int] = None
    approval: Optional[ApprovalSchema] = None


class PaymentRequest(BaseModel):
    """Request body for POST /v1/payments (by customer waterfall or by single transaction)"""

    customer_id: Optional[str] = None
    transaction_id: Optional[int] = None
    amount_cents: int = Field(..., gt=0)
    target_ids: Optional[List[int]] = None
    method: PaymentMethod = PaymentMethod.CASH
    reference: Optional[str] = None
    received_by: Optional[str] = None

    @model_validator(mode="after")
    def check_target(self):
        if (self.customer_id is None) == (self.transaction_id is None):
            raise ValueError("Exactly one of customer_id or transaction_id is required")
        if self.transaction_id is not None and self.target_ids:
            raise ValueError("target_ids cannot be combined with transaction_id")
        return self


class AllocationSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    transaction_id: int
    amount_cents: int
    balance_after_cents: int
    status_after: TransactionStatus


class ScoreFactorsSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    on_time_ratio: float
    utilization: float
    overdue_severity: float
    account_age_factor: float
    total_transactions: int
    on_time_payments: int
    late_payments: int
    avg_days_to_pay: float
    current_overdue_count: int
    current_overdue_amount_cents: int
    longest_overdue_days: int


class CreditScoreSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    customer_id: str
    score: int
    risk_level: RiskLevel
    recommended_limit_cents: int
    recommended_terms_days: int
    factors: ScoreFactorsSchema
    notes: str
    computed_at: datetime


class PaymentResponse(BaseModel):
    """Response for POST /v1/payments"""

    customer_id: str
    amount_cents: int
    allocations: List[AllocationSchema]
    held_as_credit_cents: int
    outstanding_balance_cents: int
    score: Optional[CreditScoreSchema] = None


class ApprovalSubmitRequest(BaseModel):
    """Request body for POST /v1/approvals"""

    module: ApprovalModule
    subject_id: str = Field(..., min_length=1)
    amount_cents: int = Field(..., gt=0)
    submitted_by: str = Field(..., min_length=1)


class ApprovalSubmitResponse(BaseModel):
    approval_required: bool
    approval: Optional[ApprovalSchema] = None


class ApprovalDecisionRequest(BaseModel):
    """Request body for POST /v1/approvals/{id}/decision"""

    decided_by: str = Field(..., min_length=1)
    outcome: DecisionOutcome
    reason: Optional[str] = None


class EscalationResponse(BaseModel):
    escalated: List[ApprovalSchema]


class ActorRoleRequest(BaseModel):
    role: str = Field(..., min_length=1)


class PurchaseOrderReceiptRequest(BaseModel):
    received_by: str = Field(..., min_length=1)


class CustomerCreditSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    name: str
    credit_limit_cents: int
    outstanding_balance_cents: int
    available_credit_cents: int
    credit_blocked: bool
    payment_terms_days: int
    unapplied_credit_cents: int


class CreditSummaryResponse(BaseModel):
    """Response for GET /v1/customers/{customer_id}/credit"""

    model_config = ConfigDict(from_attributes=True)

    customer_id: str
    credit_limit_cents: int
    outstanding_balance_cents: int
    available_credit_cents: int
    utilization_pct: float
    pending_approval_cents: int
    payment_terms_days: int
    credit_blocked: bool
    unapplied_credit_cents: int
    overdue_count: int
    overdue_amount_cents: int
    score: Optional[CreditScoreSchema] = None


class OpenAccountRequest(BaseModel):
    """Request body for POST /v1/customers"""

    customer_id: str = Field(..., min_length=1, max_length=64)
    name: str = ""
    credit_limit_cents: Optional[int] = Field(None, ge=0, description="Defaults to the credit settings limit")
    payment_terms_days: Optional[int] = Field(None, gt=0)


class CreditBlockRequest(BaseModel):
    blocked: bool
    reason: str = Field(..., min_length=1)


class CreditFacilityRequest(BaseModel):
    credit_limit_cents: int = Field(..., ge=0)
    payment_terms_days: Optional[int] = Field(None, gt=0)


class OverdueTransactionsResponse(BaseModel):
    as_of: date
    transactions: List[TransactionSchema]


class OverdueSweepResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    marked_overdue: int
    blocked_customer_ids: List[str]


class CreditAlertSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    customer_id: str
    alert_type: str
    utilization_pct: float
    available_credit_cents: int


class ReconciliationResponse(BaseModel):
    customer_id: str
    outstanding_balance_cents: int
    receivable_total_cents: int
    drift_cents: int
    balanced: bool


class SettingsResponse(BaseModel):
    group: str
    values: Dict[str, Any]
