"""Data access layer for credit entities"""

from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional, Set
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from credit_engine.infrastructure.database.models import (
    ActorRecord,
    ApprovalRequestRecord,
    CreditPaymentRecord,
    CreditScoreRecord,
    CreditTransactionRecord,
    CustomerRecord,
    SubjectDutyRecord,
)
from credit_engine.domain.models import (
    ApprovalRequest,
    CreditPayment,
    CreditScore,
    CreditTransaction,
    Customer,
    ScoreFactors,
)
from credit_engine.domain.states import (
    ApprovalModule,
    ApprovalStatus,
    Duty,
    OPEN_APPROVAL_STATUSES,
    OUTSTANDING_STATUSES,
    PaymentMethod,
    RiskLevel,
    TransactionStatus,
)
from credit_engine.domain.exceptions import ConcurrentModificationError, NotFoundError

_OUTSTANDING = [s.value for s in OUTSTANDING_STATUSES]


def _flush(db: Session, what: str) -> None:
    try:
        db.flush()
    except StaleDataError as e:
        raise ConcurrentModificationError(f"{what} was modified by another operation") from e


class CustomerRepository:
    """Repository for customer credit facilities"""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def _to_domain(row: CustomerRecord) -> Customer:
        return Customer(
            id=row.id,
            name=row.name,
            credit_limit_cents=row.credit_limit_cents,
            outstanding_balance_cents=row.outstanding_balance_cents,
            credit_blocked=row.credit_blocked,
            payment_terms_days=row.payment_terms_days,
            credit_since=row.credit_since,
            unapplied_credit_cents=row.unapplied_credit_cents,
            version=row.version,
        )

    def add(self, customer: Customer) -> Customer:
        row = CustomerRecord(
            id=customer.id,
            name=customer.name,
            credit_limit_cents=customer.credit_limit_cents,
            outstanding_balance_cents=customer.outstanding_balance_cents,
            credit_blocked=customer.credit_blocked,
            payment_terms_days=customer.payment_terms_days,
            credit_since=customer.credit_since,
            unapplied_credit_cents=customer.unapplied_credit_cents,
        )
        self.db.add(row)
        self.db.flush()
        return self._to_domain(row)

    def get(self, customer_id: str, for_update: bool = False) -> Customer:
        """Load a customer; ``for_update`` takes a row lock for the rest of the transaction"""
        query = self.db.query(CustomerRecord).filter(CustomerRecord.id == customer_id)
        if for_update:
            query = query.with_for_update()
        row = query.first()
        if row is None:
            raise NotFoundError(f"Customer {customer_id} not found")
        return self._to_domain(row)

    def exists(self, customer_id: str) -> bool:
        return self.db.get(CustomerRecord, customer_id) is not None

    def save(self, customer: Customer) -> Customer:
        """Write back a modified customer, failing on a stale version"""
        row = self.db.get(CustomerRecord, customer.id)
        if row is None:
            raise NotFoundError(f"Customer {customer.id} not found")
        if row.version != customer.version:
            raise ConcurrentModificationError(f"Customer {customer.id} was modified by another operation")

        row.credit_limit_cents = customer.credit_limit_cents
        row.outstanding_balance_cents = customer.outstanding_balance_cents
        row.credit_blocked = customer.credit_blocked
        row.payment_terms_days = customer.payment_terms_days
        row.unapplied_credit_cents = customer.unapplied_credit_cents
        _flush(self.db, f"Customer {customer.id}")

        customer.version = row.version
        return customer

    def list_all(self) -> List[Customer]:
        return [self._to_domain(r) for r in self.db.query(CustomerRecord).order_by(CustomerRecord.id).all()]


class CreditTransactionRepository:
    """Repository for receivables (the order-side collaborator)"""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def _to_domain(row: CreditTransactionRecord) -> CreditTransaction:
        return CreditTransaction(
            id=row.id,
            customer_id=row.customer_id,
            origin_ref=row.origin_ref,
            original_amount_cents=row.original_amount_cents,
            balance_cents=row.balance_cents,
            transaction_date=row.transaction_date,
            due_date=row.due_date,
            status=TransactionStatus(row.status),
            paid_date=row.paid_date,
        )

    def create_receivable(self, txn: CreditTransaction) -> CreditTransaction:
        row = CreditTransactionRecord(
            customer_id=txn.customer_id,
            origin_ref=txn.origin_ref,
            original_amount_cents=txn.original_amount_cents,
            balance_cents=txn.balance_cents,
            transaction_date=txn.transaction_date,
            due_date=txn.due_date,
            status=txn.status.value,
            paid_date=txn.paid_date,
        )
        self.db.add(row)
        self.db.flush()  # Get ID without committing
        return self._to_domain(row)

    def get(self, transaction_id: int) -> CreditTransaction:
        row = self.db.get(CreditTransactionRecord, transaction_id)
        if row is None:
            raise NotFoundError(f"Credit transaction {transaction_id} not found")
        return self._to_domain(row)

    def save(self, txn: CreditTransaction) -> CreditTransaction:
        row = self.db.get(CreditTransactionRecord, txn.id)
        if row is None:
            raise NotFoundError(f"Credit transaction {txn.id} not found")
        row.balance_cents = txn.balance_cents
        row.status = txn.status.value
        row.paid_date = txn.paid_date
        row.transaction_date = txn.transaction_date
        row.due_date = txn.due_date
        self.db.flush()
        return txn

    def has_live_origin(self, origin_ref: str) -> bool:
        """True while a provisional or outstanding receivable carries this origin reference"""
        live = [TransactionStatus.PROVISIONAL.value, *_OUTSTANDING]
        row = (
            self.db.query(CreditTransactionRecord.id)
            .filter(
                CreditTransactionRecord.origin_ref == origin_ref,
                CreditTransactionRecord.status.in_(live),
            )
            .first()
        )
        return row is not None

    def list_for_customer(self, customer_id: str) -> List[CreditTransaction]:
        rows = (
            self.db.query(CreditTransactionRecord)
            .filter(CreditTransactionRecord.customer_id == customer_id)
            .order_by(CreditTransactionRecord.id)
            .all()
        )
        return [self._to_domain(r) for r in rows]

    def find_open_receivables(self, customer_id: str) -> List[CreditTransaction]:
        """Outstanding receivables ordered oldest obligation first"""
        rows = (
            self.db.query(CreditTransactionRecord)
            .filter(
                CreditTransactionRecord.customer_id == customer_id,
                CreditTransactionRecord.status.in_(_OUTSTANDING),
                CreditTransactionRecord.balance_cents > 0,
            )
            .order_by(CreditTransactionRecord.due_date, CreditTransactionRecord.id)
            .all()
        )
        return [self._to_domain(r) for r in rows]

    def find_overdue(self, as_of: date, customer_id: Optional[str] = None) -> List[CreditTransaction]:
        query = self.db.query(CreditTransactionRecord).filter(
            CreditTransactionRecord.status.in_(_OUTSTANDING),
            CreditTransactionRecord.balance_cents > 0,
            CreditTransactionRecord.due_date < as_of,
        )
        if customer_id:
            query = query.filter(CreditTransactionRecord.customer_id == customer_id)
        rows = query.order_by(CreditTransactionRecord.due_date, CreditTransactionRecord.id).all()
        return [self._to_domain(r) for r in rows]

    def provisional_total(self, customer_id: str) -> int:
        rows = (
            self.db.query(CreditTransactionRecord)
            .filter(
                CreditTransactionRecord.customer_id == customer_id,
                CreditTransactionRecord.status == TransactionStatus.PROVISIONAL.value,
            )
            .all()
        )
        return sum(r.original_amount_cents for r in rows)


class PaymentRepository:
    """Repository for payment legs"""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def _to_domain(row: CreditPaymentRecord) -> CreditPayment:
        return CreditPayment(
            id=row.id,
            credit_transaction_id=row.credit_transaction_id,
            customer_id=row.customer_id,
            amount_cents=row.amount_cents,
            payment_date=row.payment_date,
            method=PaymentMethod(row.method),
            reference=row.reference,
            is_on_time=row.is_on_time,
            days_late=row.days_late,
            received_by=row.received_by,
        )

    def add(self, payment: CreditPayment) -> CreditPayment:
        row = CreditPaymentRecord(
            credit_transaction_id=payment.credit_transaction_id,
            customer_id=payment.customer_id,
            amount_cents=payment.amount_cents,
            payment_date=payment.payment_date,
            method=payment.method.value,
            reference=payment.reference,
            is_on_time=payment.is_on_time,
            days_late=payment.days_late,
            received_by=payment.received_by,
        )
        self.db.add(row)
        self.db.flush()
        return self._to_domain(row)

    def list_for_transaction(self, transaction_id: int) -> List[CreditPayment]:
        rows = (
            self.db.query(CreditPaymentRecord)
            .filter(CreditPaymentRecord.credit_transaction_id == transaction_id)
            .order_by(CreditPaymentRecord.id)
            .all()
        )
        return [self._to_domain(r) for r in rows]


class ScoreRepository:
    """Repository for credit score snapshots (one row per customer)"""

    def __init__(self, db: Session):
        self.db = db

    def save_snapshot(self, score: CreditScore) -> CreditScore:
        row = self.db.get(CreditScoreRecord, score.customer_id)
        if row is None:
            row = CreditScoreRecord(customer_id=score.customer_id)
            self.db.add(row)

        f = score.factors
        row.score = score.score
        row.risk_level = score.risk_level.value
        row.recommended_limit_cents = score.recommended_limit_cents
        row.recommended_terms_days = score.recommended_terms_days
        row.on_time_ratio = f.on_time_ratio
        row.utilization = f.utilization
        row.overdue_severity = f.overdue_severity
        row.account_age_factor = f.account_age_factor
        row.factors = {
            "total_transactions": f.total_transactions,
            "on_time_payments": f.on_time_payments,
            "late_payments": f.late_payments,
            "avg_days_to_pay": f.avg_days_to_pay,
            "current_overdue_count": f.current_overdue_count,
            "current_overdue_amount_cents": f.current_overdue_amount_cents,
            "longest_overdue_days": f.longest_overdue_days,
        }
        row.notes = score.notes
        row.computed_at = score.computed_at
        self.db.flush()
        return score

    def get(self, customer_id: str) -> Optional[CreditScore]:
        row = self.db.get(CreditScoreRecord, customer_id)
        if row is None:
            return None

        extra = row.factors or {}
        return CreditScore(
            customer_id=row.customer_id,
            score=row.score,
            risk_level=RiskLevel(row.risk_level),
            recommended_limit_cents=row.recommended_limit_cents,
            recommended_terms_days=row.recommended_terms_days,
            factors=ScoreFactors(
                on_time_ratio=row.on_time_ratio,
                utilization=row.utilization,
                overdue_severity=row.overdue_severity,
                account_age_factor=row.account_age_factor,
                total_transactions=extra.get("total_transactions", 0),
                on_time_payments=extra.get("on_time_payments", 0),
                late_payments=extra.get("late_payments", 0),
                avg_days_to_pay=extra.get("avg_days_to_pay", 0.0),
                current_overdue_count=extra.get("current_overdue_count", 0),
                current_overdue_amount_cents=extra.get("current_overdue_amount_cents", 0),
                longest_overdue_days=extra.get("longest_overdue_days", 0),
            ),
            notes=row.notes or "",
            computed_at=row.computed_at,
        )


class ApprovalRepository:
    """Repository for approval requests"""

    def __init__(self, db: Session):
        self.db = db

    @staticmethod
    def _to_domain(row: ApprovalRequestRecord) -> ApprovalRequest:
        return ApprovalRequest(
            id=row.id,
            module=ApprovalModule(row.module),
            subject_id=row.subject_id,
            amount_cents=row.amount_cents,
            required_role=row.required_role,
            submitted_by=row.submitted_by,
            submitted_at=row.submitted_at,
            pending_since=row.pending_since,
            status=ApprovalStatus(row.status),
            escalation_level=row.escalation_level,
            first_approved_by=row.first_approved_by,
            decided_by=row.decided_by,
            decided_at=row.decided_at,
            decision_reason=row.decision_reason,
            credit_transaction_id=row.credit_transaction_id,
            version=row.version,
        )

    def add(self, request: ApprovalRequest) -> ApprovalRequest:
        row = ApprovalRequestRecord(
            module=request.module.value,
            subject_id=request.subject_id,
            amount_cents=request.amount_cents,
            status=request.status.value,
            required_role=request.required_role,
            submitted_by=request.submitted_by,
            submitted_at=request.submitted_at,
            pending_since=request.pending_since,
            escalation_level=request.escalation_level,
            credit_transaction_id=request.credit_transaction_id,
        )
        self.db.add(row)
        self.db.flush()
        return self._to_domain(row)

    def get(self, request_id: int, for_update: bool = False) -> ApprovalRequest:
        query = self.db.query(ApprovalRequestRecord).filter(ApprovalRequestRecord.id == request_id)
        if for_update:
            query = query.with_for_update()
        row = query.first()
        if row is None:
            raise NotFoundError(f"Approval request {request_id} not found")
        return self._to_domain(row)

    def save(self, request: ApprovalRequest) -> ApprovalRequest:
        row = self.db.get(ApprovalRequestRecord, request.id)
        if row is None:
            raise NotFoundError(f"Approval request {request.id} not found")
        if row.version != request.version:
            raise ConcurrentModificationError(f"Approval request {request.id} was modified by another operation")

        row.status = request.status.value
        row.required_role = request.required_role
        row.pending_since = request.pending_since
        row.escalation_level = request.escalation_level
        row.first_approved_by = request.first_approved_by
        row.decided_by = request.decided_by
        row.decided_at = request.decided_at
        row.decision_reason = request.decision_reason
        _flush(self.db, f"Approval request {request.id}")

        request.version = row.version
        return request

    def list_open(self, module: Optional[ApprovalModule] = None) -> List[ApprovalRequest]:
        query = self.db.query(ApprovalRequestRecord).filter(
            ApprovalRequestRecord.status.in_([s.value for s in OPEN_APPROVAL_STATUSES])
        )
        if module:
            query = query.filter(ApprovalRequestRecord.module == module.value)
        return [self._to_domain(r) for r in query.order_by(ApprovalRequestRecord.id).all()]


class DutyRepository:
    """Role history per subject for role separation checks"""

    def __init__(self, db: Session):
        self.db = db

    def duties_for(self, module: ApprovalModule, subject_id: str) -> Dict[str, Set[Duty]]:
        rows = (
            self.db.query(SubjectDutyRecord)
            .filter(SubjectDutyRecord.module == module.value, SubjectDutyRecord.subject_id == subject_id)
            .all()
        )
        history: Dict[str, Set[Duty]] = defaultdict(set)
        for row in rows:
            history[row.user_id].add(Duty(row.duty))
        return dict(history)

    def record(self, module: ApprovalModule, subject_id: str, user_id: str, duty: Duty) -> None:
        if duty in self.duties_for(module, subject_id).get(user_id, set()):
            return
        self.db.add(SubjectDutyRecord(module=module.value, subject_id=subject_id, user_id=user_id, duty=duty.value))
        self.db.flush()


class ActorRepository:
    """Actor directory backed by the actor table"""

    def __init__(self, db: Session):
        self.db = db

    def role_of(self, user_id: str) -> Optional[str]:
        row = self.db.get(ActorRecord, user_id)
        return row.role if row else None

    def set_role(self, user_id: str, role: str) -> None:
        row = self.db.get(ActorRecord, user_id)
        if row is None:
            self.db.add(ActorRecord(user_id=user_id, role=role))
        else:
            row.role = role
        self.db.flush()
