"""Credit scoring engine - payment history to score and recommendations"""

from datetime import date, datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Sequence, Tuple
from credit_engine.domain.models import CreditScore, CreditTransaction, Customer, ScoreFactors
from credit_engine.domain.policy import ScoringPolicy
from credit_engine.domain.states import RiskLevel, TransactionStatus
from credit_engine.utils.date_utils import days_between, utc_now

SCORE_MAX = 1000
DEFAULT_TERMS_DAYS = 30
MAX_TERMS_DAYS = 90
MIN_TERMS_DAYS = 7
CRITICAL_TERMS_DAYS = 14


def analyze_history(
    customer: Customer,
    transactions: Sequence[CreditTransaction],
    as_of: date,
    policy: ScoringPolicy,
) -> ScoreFactors:
    """
    Extract scoring metrics from a customer's receivables.

    Requirements:
    - On-time ratio over paid receivables (settled on or before due date)
    - Utilization = outstanding / limit (0 when the limit is 0)
    - Overdue severity = sum(days overdue x balance), normalised to 0-1
    - Account age factor grows with tenure, with diminishing returns
    """
    history = [
        t for t in transactions
        if t.status not in (TransactionStatus.PROVISIONAL, TransactionStatus.CANCELLED)
    ]

    paid = [t for t in history if t.status == TransactionStatus.PAID and t.paid_date is not None]
    on_time = sum(1 for t in paid if t.paid_date <= t.due_date)
    late = len(paid) - on_time
    on_time_ratio = on_time / len(paid) if paid else float(policy.neutral_on_time_ratio)

    avg_days_to_pay = (
        sum(days_between(t.transaction_date, t.paid_date) for t in paid) / len(paid) if paid else 0.0
    )

    utilization = (
        customer.outstanding_balance_cents / customer.credit_limit_cents
        if customer.credit_limit_cents > 0
        else 0.0
    )

    overdue = [t for t in history if t.days_overdue(as_of) > 0]
    overdue_amount = sum(t.balance_cents for t in overdue)
    weighted_days = sum(t.days_overdue(as_of) * t.balance_cents for t in overdue)
    denominator = max(customer.credit_limit_cents, overdue_amount) * policy.severity_horizon_days
    overdue_severity = min(1.0, weighted_days / denominator) if denominator else 0.0

    credit_start = customer.credit_since
    if credit_start is None and history:
        credit_start = min(t.transaction_date for t in history)
    age_days = days_between(credit_start, as_of) if credit_start else 0
    account_age_factor = age_days / (age_days + policy.account_age_saturation_days) if age_days else 0.0

    return ScoreFactors(
        on_time_ratio=round(on_time_ratio, 4),
        utilization=round(utilization, 4),
        overdue_severity=round(overdue_severity, 4),
        account_age_factor=round(account_age_factor, 4),
        total_transactions=len(history),
        on_time_payments=on_time,
        late_payments=late,
        avg_days_to_pay=round(avg_days_to_pay, 2),
        current_overdue_count=len(overdue),
        current_overdue_amount_cents=overdue_amount,
        longest_overdue_days=max((t.days_overdue(as_of) for t in overdue), default=0),
    )


def calculate_score(factors: ScoreFactors, policy: ScoringPolicy) -> int:
    """
    Weighted mean of four goodness components scaled to 0-1000.

    Components (each 0-1, higher is better):
    - on-time ratio
    - 1 - utilization (capped at 100%)
    - 1 - overdue severity
    - account age factor
    """
    components = [
        (policy.on_time_weight, factors.on_time_ratio),
        (policy.utilization_weight, 1.0 - min(factors.utilization, 1.0)),
        (policy.overdue_weight, 1.0 - factors.overdue_severity),
        (policy.account_age_weight, factors.account_age_factor),
    ]
    total_weight = sum(w for w, _ in components)
    if total_weight <= 0:
        return 0

    weighted = sum(w * Decimal(str(value)) for w, value in components) / total_weight
    score = (weighted * SCORE_MAX).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return max(0, min(SCORE_MAX, int(score)))


def determine_risk_level(score: int, factors: ScoreFactors, credit_limit_cents: int) -> RiskLevel:
    overdue_count = factors.current_overdue_count
    overdue_ratio = factors.current_overdue_amount_cents / max(1, credit_limit_cents)

    if score >= 800 and overdue_count == 0:
        return RiskLevel.LOW
    if score >= 600 and overdue_count <= 1:
        return RiskLevel.MEDIUM
    if score >= 400 or (overdue_count <= 3 and overdue_ratio < 0.5):
        return RiskLevel.HIGH
    return RiskLevel.CRITICAL


def _scale(amount_cents: int, multiplier: str) -> int:
    return int((Decimal(amount_cents) * Decimal(multiplier)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def recommend_terms(
    customer: Customer,
    score: int,
    factors: ScoreFactors,
    policy: ScoringPolicy,
) -> Tuple[int, int, str]:
    """
    Bucket the score into limit/terms recommendations.

    Tiers:
    - excellent (and on-time ratio high): limit +25%, terms +15 days (max 90)
    - very good: limit +10%
    - fair: keep current terms
    - poor: limit -25%, terms -15 days (min 7)
    - critical: limit -50%, terms 14 days

    Returns: (recommended_limit_cents, recommended_terms_days, notes)
    """
    limit = customer.credit_limit_cents
    terms = customer.payment_terms_days or DEFAULT_TERMS_DAYS
    notes: List[str] = []

    if score >= policy.excellent_score and Decimal(str(factors.on_time_ratio)) >= policy.excellent_on_time_ratio:
        limit = _scale(limit, "1.25")
        terms = min(MAX_TERMS_DAYS, terms + 15)
        notes.append("Excellent payment history. Consider increasing credit limit by 25%.")
    elif score >= policy.very_good_score:
        limit = _scale(limit, "1.10")
        notes.append("Very good payment record. May qualify for 10% limit increase.")
    elif score >= policy.fair_score:
        notes.append("Maintain current terms. Monitor payment patterns.")
    elif score >= policy.poor_score:
        limit = _scale(limit, "0.75")
        terms = max(MIN_TERMS_DAYS, terms - 15)
        notes.append("Payment issues detected. Consider reducing credit limit.")
    else:
        limit = _scale(limit, "0.50")
        terms = CRITICAL_TERMS_DAYS
        notes.append("Significant credit risk. Strongly recommend reducing limits or requiring cash.")

    if factors.current_overdue_count > 0:
        notes.append(
            f"Customer has {factors.current_overdue_count} overdue transaction(s). Follow up on collections."
        )

    current_terms = customer.payment_terms_days or DEFAULT_TERMS_DAYS
    if factors.avg_days_to_pay > current_terms * 1.5:
        notes.append("Customer consistently pays beyond terms. Consider shorter payment periods.")

    return limit, terms, " ".join(notes)


def calculate_credit_score(
    customer: Customer,
    transactions: Sequence[CreditTransaction],
    policy: ScoringPolicy | None = None,
    as_of: date | None = None,
    now: datetime | None = None,
) -> CreditScore:
    """
    Main entry point: full recomputation of a customer's score snapshot.

    Pure over its inputs; never mutates the customer or the receivables.
    """
    policy = policy or ScoringPolicy()
    now = now or utc_now()
    as_of = as_of or now.date()

    factors = analyze_history(customer, transactions, as_of, policy)
    score = calculate_score(factors, policy)
    risk_level = determine_risk_level(score, factors, customer.credit_limit_cents)
    recommended_limit, recommended_terms, notes = recommend_terms(customer, score, factors, policy)

    return CreditScore(
        customer_id=customer.id,
        score=score,
        risk_level=risk_level,
        recommended_limit_cents=recommended_limit,
        recommended_terms_days=recommended_terms,
        factors=factors,
        notes=notes,
        computed_at=now,
    )
