"""Status enumerations and their transition tables"""

from enum import Enum
from typing import Dict, FrozenSet
from credit_engine.domain.exceptions import IllegalTransitionError


class TransactionStatus(str, Enum):
    """Lifecycle of a receivable (credit transaction)"""

    PROVISIONAL = "provisional"  # awaiting approval, ledger not debited
    OPEN = "open"
    PARTIAL = "partial"
    OVERDUE = "overdue"
    PAID = "paid"
    CANCELLED = "cancelled"


class ApprovalStatus(str, Enum):
    """Lifecycle of an approval request"""

    PENDING = "pending"
    ESCALATED = "escalated"
    AWAITING_SECOND_APPROVAL = "awaiting_second_approval"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalModule(str, Enum):
    SALES_ORDER = "sales_order"
    PURCHASE_ORDER = "purchase_order"
    EXPENSE = "expense"


class DecisionOutcome(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


class Duty(str, Enum):
    """Duties an actor can hold on a subject, checked by role separation rules"""

    BOOKING = "booking"
    CASHIER = "cashier"
    ACCOUNTING = "accounting"
    PO_ORDERING = "po_ordering"
    PO_RECEIVING = "po_receiving"


class PaymentMethod(str, Enum):
    CASH = "cash"
    TRANSFER = "transfer"
    POS = "pos"
    CHEQUE = "cheque"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


TRANSACTION_TRANSITIONS: Dict[TransactionStatus, FrozenSet[TransactionStatus]] = {
    TransactionStatus.PROVISIONAL: frozenset({TransactionStatus.OPEN, TransactionStatus.CANCELLED}),
    TransactionStatus.OPEN: frozenset(
        {TransactionStatus.PARTIAL, TransactionStatus.PAID, TransactionStatus.OVERDUE}
    ),
    TransactionStatus.PARTIAL: frozenset(
        {TransactionStatus.PARTIAL, TransactionStatus.PAID, TransactionStatus.OVERDUE}
    ),
    TransactionStatus.OVERDUE: frozenset({TransactionStatus.OVERDUE, TransactionStatus.PAID}),
    TransactionStatus.PAID: frozenset(),
    TransactionStatus.CANCELLED: frozenset(),
}

APPROVAL_TRANSITIONS: Dict[ApprovalStatus, FrozenSet[ApprovalStatus]] = {
    ApprovalStatus.PENDING: frozenset(
        {
            ApprovalStatus.ESCALATED,
            ApprovalStatus.AWAITING_SECOND_APPROVAL,
            ApprovalStatus.APPROVED,
            ApprovalStatus.REJECTED,
        }
    ),
    ApprovalStatus.ESCALATED: frozenset(
        {
            ApprovalStatus.ESCALATED,
            ApprovalStatus.AWAITING_SECOND_APPROVAL,
            ApprovalStatus.APPROVED,
            ApprovalStatus.REJECTED,
        }
    ),
    ApprovalStatus.AWAITING_SECOND_APPROVAL: frozenset({ApprovalStatus.APPROVED, ApprovalStatus.REJECTED}),
    ApprovalStatus.APPROVED: frozenset(),
    ApprovalStatus.REJECTED: frozenset(),
}

# Receivables that count towards the customer's outstanding balance
OUTSTANDING_STATUSES = frozenset({TransactionStatus.OPEN, TransactionStatus.PARTIAL, TransactionStatus.OVERDUE})

# Escalated is a sub-state of pending: still undecided
OPEN_APPROVAL_STATUSES = frozenset(
    {ApprovalStatus.PENDING, ApprovalStatus.ESCALATED, ApprovalStatus.AWAITING_SECOND_APPROVAL}
)


def ensure_transaction_transition(current: TransactionStatus, target: TransactionStatus) -> TransactionStatus:
    if target not in TRANSACTION_TRANSITIONS[current]:
        raise IllegalTransitionError("credit transaction", current.value, target.value)
    return target


def ensure_approval_transition(current: ApprovalStatus, target: ApprovalStatus) -> ApprovalStatus:
    if target not in APPROVAL_TRANSITIONS[current]:
        raise IllegalTransitionError("approval request", current.value, target.value)
    return target
