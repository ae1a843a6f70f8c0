"""Unit tests for credit scoring logic"""

import pytest
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from credit_engine.domain.models import CreditTransaction, Customer
from credit_engine.domain.policy import ScoringPolicy
from credit_engine.domain.scoring import (
    analyze_history,
    calculate_credit_score,
    calculate_score,
    determine_risk_level,
)
from credit_engine.domain.states import RiskLevel, TransactionStatus

AS_OF = date(2024, 3, 1)
NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def paid_receivable(txn_id, amount, days_ago, days_to_pay, terms=30):
    txn_date = AS_OF - timedelta(days=days_ago)
    return CreditTransaction(
        id=txn_id,
        customer_id="c1",
        origin_ref=f"SO-{txn_id}",
        original_amount_cents=amount,
        balance_cents=0,
        transaction_date=txn_date,
        due_date=txn_date + timedelta(days=terms),
        status=TransactionStatus.PAID,
        paid_date=txn_date + timedelta(days=days_to_pay),
    )


@pytest.fixture
def seasoned_customer() -> Customer:
    return Customer(
        id="c1",
        credit_limit_cents=100_000,
        outstanding_balance_cents=0,
        credit_since=AS_OF - timedelta(days=180),
    )


def test_reliable_payer_scores_excellent(seasoned_customer):
    """All paid on time, no balance, 180 days of tenure -> 925"""
    history = [paid_receivable(i, 20_000, 150 - i * 30, 20) for i in range(4)]

    score = calculate_credit_score(seasoned_customer, history, as_of=AS_OF, now=NOW)

    assert score.factors.on_time_ratio == 1.0
    assert score.factors.account_age_factor == 0.5
    assert score.score == 925
    assert score.risk_level == RiskLevel.LOW
    assert score.recommended_limit_cents == 125_000
    assert score.recommended_terms_days == 45


def test_no_history_uses_neutral_on_time_ratio():
    customer = Customer(id="new", credit_limit_cents=50_000)

    score = calculate_credit_score(customer, [], as_of=AS_OF, now=NOW)

    assert score.factors.on_time_ratio == 0.5
    assert score.factors.account_age_factor == 0.0
    assert score.score == 650
    assert score.risk_level == RiskLevel.MEDIUM
    assert score.recommended_limit_cents == 50_000


def test_overdue_balance_drags_score_down(seasoned_customer):
    """Full utilization with the whole balance 45 days late -> severity 0.5, score 400"""
    seasoned_customer.outstanding_balance_cents = 100_000
    overdue = CreditTransaction(
        id=1,
        customer_id="c1",
        origin_ref="SO-1",
        original_amount_cents=100_000,
        balance_cents=100_000,
        transaction_date=AS_OF - timedelta(days=75),
        due_date=AS_OF - timedelta(days=45),
        status=TransactionStatus.OVERDUE,
    )

    score = calculate_credit_score(seasoned_customer, [overdue], as_of=AS_OF, now=NOW)

    assert score.factors.utilization == 1.0
    assert score.factors.overdue_severity == 0.5
    assert score.factors.longest_overdue_days == 45
    assert score.score == 400
    assert score.risk_level == RiskLevel.HIGH
    assert score.recommended_limit_cents == 75_000
    assert score.recommended_terms_days == 15
    assert "overdue" in score.notes


def test_late_payments_lower_on_time_ratio(seasoned_customer):
    history = [
        paid_receivable(1, 10_000, 120, 20),
        paid_receivable(2, 10_000, 90, 45),
    ]

    factors = analyze_history(seasoned_customer, history, AS_OF, ScoringPolicy())

    assert factors.on_time_payments == 1
    assert factors.late_payments == 1
    assert factors.on_time_ratio == 0.5
    assert factors.avg_days_to_pay == 32.5


def test_provisional_and_cancelled_receivables_are_ignored(seasoned_customer):
    provisional = paid_receivable(1, 10_000, 10, 0)
    provisional.status = TransactionStatus.PROVISIONAL
    provisional.paid_date = None
    cancelled = paid_receivable(2, 10_000, 10, 0)
    cancelled.status = TransactionStatus.CANCELLED
    cancelled.paid_date = None

    factors = analyze_history(seasoned_customer, [provisional, cancelled], AS_OF, ScoringPolicy())

    assert factors.total_transactions == 0


def test_scoring_is_idempotent(seasoned_customer):
    history = [paid_receivable(i, 15_000, 100 - i * 20, 35) for i in range(3)]

    first = calculate_credit_score(seasoned_customer, history, as_of=AS_OF, now=NOW)
    second = calculate_credit_score(seasoned_customer, history, as_of=AS_OF, now=NOW)

    assert first == second


def test_weights_come_from_policy(seasoned_customer):
    factors = analyze_history(seasoned_customer, [], AS_OF, ScoringPolicy())
    on_time_only = ScoringPolicy(
        on_time_weight=Decimal("1"),
        utilization_weight=Decimal("0"),
        overdue_weight=Decimal("0"),
        account_age_weight=Decimal("0"),
    )

    assert calculate_score(factors, on_time_only) == 500


def test_risk_level_critical_with_many_overdue():
    factors = analyze_history(
        Customer(id="c1", credit_limit_cents=10_000),
        [],
        AS_OF,
        ScoringPolicy(),
    )
    factors.current_overdue_count = 5
    factors.current_overdue_amount_cents = 9_000

    assert determine_risk_level(300, factors, 10_000) == RiskLevel.CRITICAL
