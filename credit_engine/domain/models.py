"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional
from credit_engine.domain.states import (
    ApprovalModule,
    ApprovalStatus,
    OPEN_APPROVAL_STATUSES,
    OUTSTANDING_STATUSES,
    PaymentMethod,
    RiskLevel,
    TransactionStatus,
)


@dataclass
class Customer:
    """Customer credit account. Amounts are in cents."""

    id: str
    credit_limit_cents: int
    outstanding_balance_cents: int = 0
    credit_blocked: bool = False
    payment_terms_days: int = 30
    name: str = ""
    credit_since: Optional[date] = None
    unapplied_credit_cents: int = 0
    version: int = 1

    @property
    def available_credit_cents(self) -> int:
        return max(0, self.credit_limit_cents - self.outstanding_balance_cents)


@dataclass
class CreditTransaction:
    """Receivable created by a credit sale"""

    id: Optional[int]
    customer_id: str
    origin_ref: str
    original_amount_cents: int
    balance_cents: int
    transaction_date: date
    due_date: date
    status: TransactionStatus = TransactionStatus.OPEN
    paid_date: Optional[date] = None

    @property
    def is_outstanding(self) -> bool:
        return self.status in OUTSTANDING_STATUSES and self.balance_cents > 0

    def days_overdue(self, as_of: date) -> int:
        if not self.is_outstanding or self.due_date >= as_of:
            return 0
        return (as_of - self.due_date).days


@dataclass
class CreditPayment:
    """Immutable payment leg against a single receivable"""

    id: Optional[int]
    credit_transaction_id: int
    customer_id: str
    amount_cents: int
    payment_date: date
    method: PaymentMethod = PaymentMethod.CASH
    reference: Optional[str] = None
    is_on_time: bool = True
    days_late: int = 0
    received_by: Optional[str] = None


@dataclass
class Allocation:
    """Share of a payment applied to one receivable"""

    transaction_id: int
    amount_cents: int
    balance_after_cents: int
    status_after: TransactionStatus


@dataclass
class AllocationPlan:
    """Output of the payment waterfall"""

    amount_cents: int
    allocations: List[Allocation]
    unapplied_remainder_cents: int

    @property
    def allocated_cents(self) -> int:
        return sum(a.amount_cents for a in self.allocations)


@dataclass
class AvailabilityCheck:
    """Result of a read-only credit availability check"""

    allowed: bool
    reason: Optional[str]
    attempted_cents: int
    available_cents: int
    credit_limit_cents: int


@dataclass
class LedgerCredit:
    """Result of decreasing an outstanding balance"""

    balance_before_cents: int
    balance_after_cents: int
    dropped_cents: int  # excess clamped away by the zero floor


@dataclass
class ScoreFactors:
    """Metrics derived from payment history used for scoring"""

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


@dataclass
class CreditScore:
    """Snapshot of a customer's computed credit score"""

    customer_id: str
    score: int
    risk_level: RiskLevel
    recommended_limit_cents: int
    recommended_terms_days: int
    factors: ScoreFactors
    notes: str
    computed_at: datetime


@dataclass(frozen=True)
class ApprovalBand:
    """Amount range [min_cents, max_cents] mapped to an approver role"""

    min_cents: int
    max_cents: Optional[int]
    role: str
    auto_approve: bool = False

    def contains(self, amount_cents: int) -> bool:
        if amount_cents < self.min_cents:
            return False
        return self.max_cents is None or amount_cents <= self.max_cents


@dataclass
class ApprovalRequest:
    """Approval workflow item for a sales order, purchase order or expense"""

    id: Optional[int]
    module: ApprovalModule
    subject_id: str
    amount_cents: int
    required_role: str
    submitted_by: str
    submitted_at: datetime
    pending_since: datetime
    status: ApprovalStatus = ApprovalStatus.PENDING
    escalation_level: int = 0
    first_approved_by: Optional[str] = None
    decided_by: Optional[str] = None
    decided_at: Optional[datetime] = None
    decision_reason: Optional[str] = None
    credit_transaction_id: Optional[int] = None
    version: int = 1

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_APPROVAL_STATUSES


@dataclass
class CreditSaleCommitted:
    """Credit sale debited and receivable opened"""

    transaction: CreditTransaction
    outstanding_balance_cents: int


@dataclass
class ApprovalRequired:
    """Credit sale parked as a provisional receivable pending approval"""

    transaction: CreditTransaction
    approval: ApprovalRequest


@dataclass
class PaymentOutcome:
    """Committed payment: allocations, payment rows and refreshed score"""

    customer_id: str
    plan: AllocationPlan
    payments: List[CreditPayment]
    outstanding_balance_cents: int
    held_as_credit_cents: int = 0
    score: Optional[CreditScore] = None


@dataclass
class CreditSummary:
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
    score: Optional[CreditScore] = None


@dataclass
class CreditAlert:
    customer_id: str
    alert_type: str  # blocked | near_limit
    utilization_pct: float
    available_credit_cents: int


@dataclass
class ReconciliationReport:
    customer_id: str
    outstanding_balance_cents: int
    receivable_total_cents: int

    @property
    def drift_cents(self) -> int:
        return self.outstanding_balance_cents - self.receivable_total_cents

    @property
    def balanced(self) -> bool:
        return self.drift_cents == 0


@dataclass
class DomainEvent:
    """Event handed to the notification sink after commit"""

    event_type: str
    payload: dict = field(default_factory=dict)


@dataclass
class OverdueSweep:
    marked_overdue: int
    blocked_customer_ids: List[str] = field(default_factory=list)
