"""Transaction orchestrator - composes ledger, allocation, scoring and approvals per operation"""

import logging
from datetime import date, datetime
from typing import List, Optional, Sequence, Union
from sqlalchemy.orm import Session

from credit_engine.domain import ledger
from credit_engine.domain.allocation import allocate_payment
from credit_engine.domain.scoring import calculate_credit_score
from credit_engine.domain.workflow import SUBMISSION_DUTIES, ApprovalWorkflowEngine
from credit_engine.domain.policy import EngineConfig
from credit_engine.domain.models import (
    ApprovalRequest,
    ApprovalRequired,
    CreditAlert,
    CreditPayment,
    CreditSaleCommitted,
    CreditScore,
    CreditSummary,
    CreditTransaction,
    Customer,
    DomainEvent,
    OverdueSweep,
    PaymentOutcome,
    ReconciliationReport,
)
from credit_engine.domain.states import (
    ApprovalModule,
    ApprovalStatus,
    DecisionOutcome,
    Duty,
    PaymentMethod,
    TransactionStatus,
    ensure_transaction_transition,
)
from credit_engine.domain.exceptions import (
    ConcurrentModificationError,
    CreditBlockedError,
    CreditLimitExceededError,
    CreditSalesDisabledError,
    CustomerAlreadyExistsError,
    DuplicateOriginReferenceError,
    InvalidAmountError,
    NotFoundError,
    OverpaymentUnappliedError,
)
from credit_engine.infrastructure.database.config_store import ConfigurationStore
from credit_engine.infrastructure.database.session import unit_of_work
from credit_engine.infrastructure.database.repositories import (
    ActorRepository,
    ApprovalRepository,
    CreditTransactionRepository,
    CustomerRepository,
    DutyRepository,
    PaymentRepository,
    ScoreRepository,
)
from credit_engine.infrastructure.observability.logging import (
    log_approval_event,
    log_credit_sale,
    log_payment,
)
from credit_engine.infrastructure.observability.metrics import (
    approval_escalation_counter,
    overpayment_counter,
    record_approval,
    record_credit_sale,
    record_payment,
)
from credit_engine.utils.date_utils import add_days, days_between, utc_now

logger = logging.getLogger(__name__)

CreditSaleOutcome = Union[CreditSaleCommitted, ApprovalRequired]


def _utilization_pct(customer: Customer) -> float:
    if customer.credit_limit_cents <= 0:
        return 100.0 if customer.outstanding_balance_cents > 0 else 0.0
    return round(customer.outstanding_balance_cents / customer.credit_limit_cents * 100, 1)


class TransactionOrchestrator:
    """
    Entry point for every credit operation.

    Each public mutating method is one unit of work: it reads a fresh
    configuration snapshot, takes row locks on the customer (or approval
    request) it changes, commits once, and only then hands domain events to
    the notification sink. ``sink`` is any object with
    ``emit(event_type, payload)``; ``None`` disables notifications.
    """

    def __init__(self, db: Session, sink=None):
        self.db = db
        self.sink = sink
        self.config_store = ConfigurationStore(db)
        self.customers = CustomerRepository(db)
        self.transactions = CreditTransactionRepository(db)
        self.payments = PaymentRepository(db)
        self.scores = ScoreRepository(db)
        self.approvals = ApprovalRepository(db)
        self.duties = DutyRepository(db)
        self.actors = ActorRepository(db)

    def _config(self) -> EngineConfig:
        return self.config_store.snapshot()

    def _dispatch(self, events: Sequence[DomainEvent]) -> None:
        """Hand committed events to the sink; delivery problems never undo the commit"""
        if self.sink is None:
            return
        for event in events:
            try:
                self.sink.emit(event.event_type, event.payload)
            except Exception as e:
                logger.error(
                    f"Notification sink failed: {e}",
                    extra={"event_type": event.event_type},
                )

    def _approval_event(self, config: EngineConfig, request: ApprovalRequest) -> Optional[DomainEvent]:
        policy = config.approvals
        status = request.status
        if status in (ApprovalStatus.PENDING, ApprovalStatus.ESCALATED, ApprovalStatus.AWAITING_SECOND_APPROVAL):
            enabled = policy.notify_on_pending_approval
        elif status == ApprovalStatus.APPROVED:
            enabled = policy.notify_on_approval_complete
        else:
            enabled = policy.notify_on_rejection
        if not enabled:
            return None

        return DomainEvent(
            f"approval.{status.value}",
            {
                "approval_request_id": request.id,
                "module": request.module.value,
                "subject_id": request.subject_id,
                "amount_cents": request.amount_cents,
                "required_role": request.required_role,
                "escalation_level": request.escalation_level,
                "decided_by": request.decided_by,
            },
        )

    def _refresh_score(self, customer: Customer, config: EngineConfig, now: datetime) -> CreditScore:
        transactions = self.transactions.list_for_customer(customer.id)
        score = calculate_credit_score(customer, transactions, config.scoring, now.date(), now)
        return self.scores.save_snapshot(score)

    # Credit sales

    def create_credit_sale(
        self,
        customer_id: str,
        amount_cents: int,
        origin_ref: str,
        booked_by: str,
        due_date: date | None = None,
        now: datetime | None = None,
    ) -> CreditSaleOutcome:
        """
        Book a sale on credit.

        Flow:
        1. Check availability under a row lock (blocked / over limit fail closed)
        2. If the sales-order band needs approval, park a provisional
           receivable and open an approval request; the ledger is untouched
        3. Otherwise debit the ledger and open the receivable
        """
        config = self._config()
        if not config.credit.enable_credit_sales:
            raise CreditSalesDisabledError("Credit sales are disabled")

        now = now or utc_now()
        today = now.date()
        engine = ApprovalWorkflowEngine(config.approvals)
        module = ApprovalModule.SALES_ORDER
        events: List[DomainEvent] = []

        try:
            with unit_of_work(self.db):
                customer = self.customers.get(customer_id, for_update=True)
                if self.transactions.has_live_origin(origin_ref):
                    raise DuplicateOriginReferenceError(origin_ref)
                ledger.require_availability(customer, amount_cents)

                terms = customer.payment_terms_days or config.credit.credit_period_days
                receivable = CreditTransaction(
                    id=None,
                    customer_id=customer.id,
                    origin_ref=origin_ref,
                    original_amount_cents=amount_cents,
                    balance_cents=amount_cents,
                    transaction_date=today,
                    due_date=due_date or add_days(today, terms),
                )
                duties = self.duties.duties_for(module, origin_ref)

                if engine.requires_approval(module, amount_cents, on_credit=True):
                    request = engine.submit(module, origin_ref, amount_cents, booked_by, duties, now)
                    receivable.status = TransactionStatus.PROVISIONAL
                    receivable = self.transactions.create_receivable(receivable)
                    request.credit_transaction_id = receivable.id
                    request = self.approvals.add(request)
                    self.duties.record(module, origin_ref, booked_by, Duty.BOOKING)

                    result = ApprovalRequired(transaction=receivable, approval=request)
                    pending = self._approval_event(config, request)
                    if pending:
                        events.append(pending)
                else:
                    engine.check_role_separation(booked_by, Duty.BOOKING, origin_ref, duties)
                    ledger.apply_debit(customer, amount_cents)
                    self.customers.save(customer)
                    receivable = self.transactions.create_receivable(receivable)
                    self.duties.record(module, origin_ref, booked_by, Duty.BOOKING)

                    result = CreditSaleCommitted(
                        transaction=receivable,
                        outstanding_balance_cents=customer.outstanding_balance_cents,
                    )
                    events.append(
                        DomainEvent(
                            "credit_sale.committed",
                            {
                                "customer_id": customer.id,
                                "transaction_id": receivable.id,
                                "origin_ref": origin_ref,
                                "amount_cents": amount_cents,
                                "outstanding_balance_cents": customer.outstanding_balance_cents,
                            },
                        )
                    )

        except (CreditBlockedError, CreditLimitExceededError):
            record_credit_sale("rejected")
            log_credit_sale(customer_id, origin_ref, amount_cents, "rejected")
            raise

        outcome = "approval_required" if isinstance(result, ApprovalRequired) else "committed"
        record_credit_sale(outcome)
        log_credit_sale(customer_id, origin_ref, amount_cents, outcome)
        if isinstance(result, ApprovalRequired):
            record_approval(module.value, result.approval.status.value)
        self._dispatch(events)
        return result

    def _apply_decision(self, request: ApprovalRequest, config: EngineConfig, today: date) -> List[DomainEvent]:
        """Ledger side of a decided sales-order request; no-op for other modules and open states"""
        if request.module != ApprovalModule.SALES_ORDER or request.is_open:
            return []

        if request.credit_transaction_id is None:
            logger.info(
                "Decided sales-order request gates no receivable",
                extra={"approval_request_id": request.id, "subject_id": request.subject_id},
            )
            return []

        receivable = self.transactions.get(request.credit_transaction_id)
        if receivable.status != TransactionStatus.PROVISIONAL:
            # Already opened or cancelled by an earlier call
            return []

        if request.status == ApprovalStatus.REJECTED:
            receivable.status = ensure_transaction_transition(receivable.status, TransactionStatus.CANCELLED)
            self.transactions.save(receivable)
            return [
                DomainEvent(
                    "credit_sale.cancelled",
                    {
                        "customer_id": receivable.customer_id,
                        "transaction_id": receivable.id,
                        "origin_ref": receivable.origin_ref,
                    },
                )
            ]

        customer = self.customers.get(receivable.customer_id, for_update=True)
        ledger.apply_debit(customer, receivable.original_amount_cents, override=True)
        self.customers.save(customer)

        # Terms run from the approval date, not the booking date
        terms = customer.payment_terms_days or config.credit.credit_period_days
        receivable.status = ensure_transaction_transition(receivable.status, TransactionStatus.OPEN)
        receivable.transaction_date = today
        receivable.due_date = add_days(today, terms)
        self.transactions.save(receivable)

        return [
            DomainEvent(
                "credit_sale.committed",
                {
                    "customer_id": customer.id,
                    "transaction_id": receivable.id,
                    "origin_ref": receivable.origin_ref,
                    "amount_cents": receivable.original_amount_cents,
                    "outstanding_balance_cents": customer.outstanding_balance_cents,
                },
            )
        ]

    def on_approval_decided(self, request_id: int, now: datetime | None = None) -> ApprovalRequest:
        """
        Apply a decision recorded elsewhere to the ledger.

        Idempotent: once the provisional receivable has been opened or
        cancelled there is nothing left to do.
        """
        config = self._config()
        now = now or utc_now()
        with unit_of_work(self.db):
            request = self.approvals.get(request_id, for_update=True)
            events = self._apply_decision(request, config, now.date())
        self._dispatch(events)
        return request

    # Approvals

    def submit_for_approval(
        self,
        module: ApprovalModule,
        subject_id: str,
        amount_cents: int,
        submitted_by: str,
        now: datetime | None = None,
    ) -> Optional[ApprovalRequest]:
        """Route an expense or purchase order; None means no approval is needed"""
        config = self._config()
        engine = ApprovalWorkflowEngine(config.approvals)

        duty = SUBMISSION_DUTIES[module]

        with unit_of_work(self.db):
            duties = self.duties.duties_for(module, subject_id)
            if engine.requires_approval(module, amount_cents):
                request = self.approvals.add(engine.submit(module, subject_id, amount_cents, submitted_by, duties, now))
            else:
                engine.check_role_separation(submitted_by, duty, subject_id, duties)
                request = None
            self.duties.record(module, subject_id, submitted_by, duty)

        if request is None:
            logger.info(
                "Submission below approval requirements",
                extra={"approval_module": module.value, "subject_id": subject_id, "amount_cents": amount_cents},
            )
            return None

        record_approval(module.value, request.status.value)
        log_approval_event(request.id, module.value, request.status.value, submitted_by, request.required_role)
        event = self._approval_event(config, request)
        self._dispatch([event] if event else [])
        return request

    def decide_approval(
        self,
        request_id: int,
        decided_by: str,
        outcome: DecisionOutcome,
        reason: Optional[str] = None,
        now: datetime | None = None,
    ) -> ApprovalRequest:
        """Approve or reject under a row lock, then apply the ledger effect in the same transaction"""
        config = self._config()
        engine = ApprovalWorkflowEngine(config.approvals)
        now = now or utc_now()

        with unit_of_work(self.db):
            request = self.approvals.get(request_id, for_update=True)
            duties = self.duties.duties_for(request.module, request.subject_id)
            decided = engine.decide(
                request,
                decided_by,
                outcome,
                decider_role=self.actors.role_of(decided_by),
                reason=reason,
                duties=duties,
                now=now,
            )
            decided = self.approvals.save(decided)
            self.duties.record(request.module, request.subject_id, decided_by, Duty.ACCOUNTING)
            events = self._apply_decision(decided, config, now.date())

        record_approval(decided.module.value, decided.status.value)
        log_approval_event(
            decided.id,
            decided.module.value,
            decided.status.value,
            decided_by,
            decided.required_role,
            decided.escalation_level,
        )
        event = self._approval_event(config, decided)
        self._dispatch(([event] if event else []) + events)
        return decided

    def escalate_stale_approvals(self, now: datetime | None = None) -> List[ApprovalRequest]:
        """
        Escalate every stale open request.

        Each request commits on its own; one that was decided concurrently is
        skipped instead of failing the whole sweep.
        """
        config = self._config()
        engine = ApprovalWorkflowEngine(config.approvals)
        now = now or utc_now()
        escalated: List[ApprovalRequest] = []

        candidates = [r.id for r in self.approvals.list_open() if engine.can_escalate(r, now)]
        self.db.rollback()  # release the read snapshot before taking locks

        for request_id in candidates:
            try:
                with unit_of_work(self.db):
                    request = self.approvals.get(request_id, for_update=True)
                    if not engine.can_escalate(request, now):
                        continue
                    request = self.approvals.save(engine.escalate(request, now))
            except ConcurrentModificationError:
                logger.warning(
                    "Approval request changed during escalation, skipped",
                    extra={"approval_request_id": request_id},
                )
                continue

            approval_escalation_counter.labels(module=request.module.value).inc()
            log_approval_event(
                request.id,
                request.module.value,
                request.status.value,
                "system",
                request.required_role,
                request.escalation_level,
            )
            escalated.append(request)

        self._dispatch([e for e in (self._approval_event(config, r) for r in escalated) if e])
        return escalated

    def assign_role(self, user_id: str, role: str) -> None:
        """Record an approver role in the actor directory"""
        with unit_of_work(self.db):
            self.actors.set_role(user_id, role)
        logger.info("Actor role assigned", extra={"user_id": user_id, "role": role})

    def get_approval(self, request_id: int) -> ApprovalRequest:
        return self.approvals.get(request_id)

    def list_open_approvals(self, module: Optional[ApprovalModule] = None) -> List[ApprovalRequest]:
        return self.approvals.list_open(module)

    def record_po_receipt(self, po_id: str, received_by: str) -> None:
        """Register goods receipt for a purchase order (not by the user who ordered it)"""
        config = self._config()
        engine = ApprovalWorkflowEngine(config.approvals)
        module = ApprovalModule.PURCHASE_ORDER

        with unit_of_work(self.db):
            duties = self.duties.duties_for(module, po_id)
            engine.check_role_separation(received_by, Duty.PO_RECEIVING, po_id, duties)
            self.duties.record(module, po_id, received_by, Duty.PO_RECEIVING)

        logger.info("Purchase order received", extra={"po_id": po_id, "received_by": received_by})

    # Payments

    def record_payment(
        self,
        customer_id: str,
        amount_cents: int,
        target_ids: Optional[Sequence[int]] = None,
        method: PaymentMethod = PaymentMethod.CASH,
        reference: Optional[str] = None,
        received_by: Optional[str] = None,
        now: datetime | None = None,
    ) -> PaymentOutcome:
        """
        Apply a payment across the customer's open receivables.

        Waterfall, payment rows, ledger credits and the score refresh commit
        together. An overpayment is rejected before anything is written
        unless the credit policy holds the remainder as customer credit.
        """
        config = self._config()
        engine = ApprovalWorkflowEngine(config.approvals)
        now = now or utc_now()
        today = now.date()

        with unit_of_work(self.db):
            customer = self.customers.get(customer_id, for_update=True)
            open_receivables = self.transactions.find_open_receivables(customer_id)
            plan = allocate_payment(amount_cents, open_receivables, target_ids, today)

            held = plan.unapplied_remainder_cents
            if held:
                if not config.credit.hold_overpayment_as_credit:
                    overpayment_counter.labels(handling="rejected").inc()
                    raise OverpaymentUnappliedError(customer_id, amount_cents, held)
                overpayment_counter.labels(handling="held_as_credit").inc()
                logger.warning(
                    "Overpayment held as customer credit",
                    extra={"customer_id": customer_id, "amount_cents": amount_cents, "held_cents": held},
                )

            by_id = {t.id: t for t in open_receivables}
            if received_by:
                sales_order = ApprovalModule.SALES_ORDER
                for allocation in plan.allocations:
                    origin_ref = by_id[allocation.transaction_id].origin_ref
                    duties = self.duties.duties_for(sales_order, origin_ref)
                    engine.check_role_separation(received_by, Duty.CASHIER, origin_ref, duties)

            payments: List[CreditPayment] = []
            clamped = False
            for allocation in plan.allocations:
                receivable = by_id[allocation.transaction_id]
                payments.append(
                    self.payments.add(
                        CreditPayment(
                            id=None,
                            credit_transaction_id=receivable.id,
                            customer_id=customer_id,
                            amount_cents=allocation.amount_cents,
                            payment_date=today,
                            method=method,
                            reference=reference,
                            is_on_time=today <= receivable.due_date,
                            days_late=days_between(receivable.due_date, today),
                            received_by=received_by,
                        )
                    )
                )

                receivable.balance_cents = allocation.balance_after_cents
                receivable.status = allocation.status_after
                if receivable.status == TransactionStatus.PAID:
                    receivable.paid_date = today
                self.transactions.save(receivable)

                credit = ledger.apply_credit(customer, allocation.amount_cents)
                clamped = clamped or credit.dropped_cents > 0

                if received_by:
                    self.duties.record(ApprovalModule.SALES_ORDER, receivable.origin_ref, received_by, Duty.CASHIER)

            customer.unapplied_credit_cents += held
            self.customers.save(customer)
            score = self._refresh_score(customer, config, now)

        record_payment(amount_cents, len(plan.allocations), clamped)
        log_payment(customer_id, amount_cents, len(plan.allocations), held, customer.outstanding_balance_cents)
        self._dispatch(
            [
                DomainEvent(
                    "payment.recorded",
                    {
                        "customer_id": customer_id,
                        "amount_cents": amount_cents,
                        "transaction_ids": [a.transaction_id for a in plan.allocations],
                        "held_as_credit_cents": held,
                        "outstanding_balance_cents": customer.outstanding_balance_cents,
                    },
                )
            ]
        )

        return PaymentOutcome(
            customer_id=customer_id,
            plan=plan,
            payments=payments,
            outstanding_balance_cents=customer.outstanding_balance_cents,
            held_as_credit_cents=held,
            score=score,
        )

    def record_transaction_payment(self, transaction_id: int, amount_cents: int, **kwargs) -> PaymentOutcome:
        """Pay one receivable; anything beyond its balance is treated as an overpayment"""
        receivable = self.transactions.get(transaction_id)
        return self.record_payment(receivable.customer_id, amount_cents, target_ids=[transaction_id], **kwargs)

    # Customer credit facility

    def open_credit_account(
        self,
        customer_id: str,
        name: str = "",
        credit_limit_cents: Optional[int] = None,
        payment_terms_days: Optional[int] = None,
        now: datetime | None = None,
    ) -> Customer:
        """Open a facility; limit and terms fall back to the credit settings defaults"""
        config = self._config()
        today = (now or utc_now()).date()
        customer = Customer(
            id=customer_id,
            name=name,
            credit_limit_cents=config.credit.default_credit_limit_cents if credit_limit_cents is None else credit_limit_cents,
            payment_terms_days=payment_terms_days or config.credit.credit_period_days,
            credit_since=today,
        )
        if customer.credit_limit_cents < 0:
            raise InvalidAmountError(f"Credit limit cannot be negative, got {customer.credit_limit_cents}")

        with unit_of_work(self.db):
            if self.customers.exists(customer_id):
                raise CustomerAlreadyExistsError(f"Customer {customer_id} already has a credit account")
            customer = self.customers.add(customer)

        logger.info(
            "Credit account opened",
            extra={
                "customer_id": customer_id,
                "credit_limit_cents": customer.credit_limit_cents,
                "payment_terms_days": customer.payment_terms_days,
            },
        )
        return customer

    def refresh_credit_score(self, customer_id: str, now: datetime | None = None) -> CreditScore:
        config = self._config()
        now = now or utc_now()
        with unit_of_work(self.db):
            customer = self.customers.get(customer_id)
            score = self._refresh_score(customer, config, now)
        return score

    def get_credit_score(self, customer_id: str) -> CreditScore:
        self.customers.get(customer_id)
        score = self.scores.get(customer_id)
        if score is None:
            raise NotFoundError(f"No credit score computed for customer {customer_id}")
        return score

    def apply_recommendations(self, customer_id: str, now: datetime | None = None) -> Customer:
        """
        Adopt the latest recommended limit and terms.

        A recommended limit below the current balance is raised to the
        balance so the facility stays consistent.
        """
        config = self._config()
        now = now or utc_now()
        with unit_of_work(self.db):
            customer = self.customers.get(customer_id, for_update=True)
            score = self._refresh_score(customer, config, now)

            limit = score.recommended_limit_cents
            if limit < customer.outstanding_balance_cents:
                logger.warning(
                    "Recommended limit below outstanding balance, using balance",
                    extra={
                        "customer_id": customer_id,
                        "recommended_limit_cents": limit,
                        "outstanding_balance_cents": customer.outstanding_balance_cents,
                    },
                )
                limit = customer.outstanding_balance_cents

            ledger.set_limit(customer, limit, score.recommended_terms_days)
            self.customers.save(customer)

        logger.info(
            "Credit recommendations applied",
            extra={
                "customer_id": customer_id,
                "credit_limit_cents": customer.credit_limit_cents,
                "payment_terms_days": customer.payment_terms_days,
                "score": score.score,
            },
        )
        return customer

    def set_credit_block(self, customer_id: str, blocked: bool, reason: str) -> Customer:
        with unit_of_work(self.db):
            customer = self.customers.get(customer_id, for_update=True)
            changed = ledger.set_block(customer, blocked, reason)
            self.customers.save(customer)

        if changed:
            self._dispatch(
                [
                    DomainEvent(
                        "credit.blocked" if blocked else "credit.unblocked",
                        {"customer_id": customer_id, "reason": reason},
                    )
                ]
            )
        return customer

    def update_credit_facility(
        self,
        customer_id: str,
        credit_limit_cents: int,
        payment_terms_days: Optional[int] = None,
    ) -> Customer:
        with unit_of_work(self.db):
            customer = self.customers.get(customer_id, for_update=True)
            ledger.set_limit(customer, credit_limit_cents, payment_terms_days)
            self.customers.save(customer)

        logger.info(
            "Credit facility updated",
            extra={
                "customer_id": customer_id,
                "credit_limit_cents": customer.credit_limit_cents,
                "payment_terms_days": customer.payment_terms_days,
            },
        )
        return customer

    # Reporting and sweeps

    def get_credit_summary(self, customer_id: str, now: datetime | None = None) -> CreditSummary:
        today = (now or utc_now()).date()
        customer = self.customers.get(customer_id)
        overdue = self.transactions.find_overdue(today, customer_id)

        return CreditSummary(
            customer_id=customer.id,
            credit_limit_cents=customer.credit_limit_cents,
            outstanding_balance_cents=customer.outstanding_balance_cents,
            available_credit_cents=customer.available_credit_cents,
            utilization_pct=_utilization_pct(customer),
            pending_approval_cents=self.transactions.provisional_total(customer_id),
            payment_terms_days=customer.payment_terms_days,
            credit_blocked=customer.credit_blocked,
            unapplied_credit_cents=customer.unapplied_credit_cents,
            overdue_count=len(overdue),
            overdue_amount_cents=sum(t.balance_cents for t in overdue),
            score=self.scores.get(customer_id),
        )

    def get_overdue_transactions(
        self, customer_id: Optional[str] = None, now: datetime | None = None
    ) -> List[CreditTransaction]:
        today = (now or utc_now()).date()
        return self.transactions.find_overdue(today, customer_id)

    def mark_overdue_transactions(self, now: datetime | None = None) -> OverdueSweep:
        """Materialise the overdue status and, if configured, block customers past the grace period"""
        config = self._config()
        today = (now or utc_now()).date()
        marked = 0
        newly_blocked: List[str] = []

        with unit_of_work(self.db):
            overdue = self.transactions.find_overdue(today)
            for receivable in overdue:
                if receivable.status != TransactionStatus.OVERDUE:
                    receivable.status = ensure_transaction_transition(receivable.status, TransactionStatus.OVERDUE)
                    self.transactions.save(receivable)
                    marked += 1

            if config.credit.auto_block_overdue:
                limit_days = config.credit.overdue_block_days
                to_block = sorted(
                    {t.customer_id for t in overdue if t.days_overdue(today) > limit_days}
                )
                for customer_id in to_block:
                    customer = self.customers.get(customer_id, for_update=True)
                    reason = f"Auto-blocked: receivables overdue more than {limit_days} days"
                    if ledger.set_block(customer, True, reason):
                        self.customers.save(customer)
                        newly_blocked.append(customer_id)

        logger.info(
            "Overdue sweep completed",
            extra={"marked_overdue": marked, "blocked_customers": len(newly_blocked), "as_of": today.isoformat()},
        )
        self._dispatch(
            [
                DomainEvent("credit.blocked", {"customer_id": c, "reason": "overdue"})
                for c in newly_blocked
            ]
        )
        return OverdueSweep(marked_overdue=marked, blocked_customer_ids=newly_blocked)

    def get_credit_alerts(self) -> List[CreditAlert]:
        """Customers that are blocked or at/above the utilization alert threshold"""
        threshold = self._config().credit.credit_alert_threshold_pct
        alerts: List[CreditAlert] = []

        for customer in self.customers.list_all():
            utilization = _utilization_pct(customer)
            if customer.credit_blocked:
                alert_type = "blocked"
            elif customer.credit_limit_cents > 0 and utilization >= threshold:
                alert_type = "near_limit"
            else:
                continue
            alerts.append(
                CreditAlert(
                    customer_id=customer.id,
                    alert_type=alert_type,
                    utilization_pct=utilization,
                    available_credit_cents=customer.available_credit_cents,
                )
            )
        return alerts

    def reconcile(self, customer_id: str) -> ReconciliationReport:
        """Compare the ledger balance with the sum of open receivable balances"""
        customer = self.customers.get(customer_id)
        receivables = self.transactions.find_open_receivables(customer_id)
        report = ReconciliationReport(
            customer_id=customer_id,
            outstanding_balance_cents=customer.outstanding_balance_cents,
            receivable_total_cents=sum(t.balance_cents for t in receivables),
        )
        if not report.balanced:
            logger.warning(
                "Reconciliation drift detected",
                extra={"customer_id": customer_id, "drift_cents": report.drift_cents},
            )
        return report
