"""Credit ledger - customer balance, limit and block rules"""

import logging
from credit_engine.domain.models import Customer, AvailabilityCheck, LedgerCredit
from credit_engine.domain.exceptions import (
    CreditBlockedError,
    CreditLimitExceededError,
    InvalidAmountError,
    LimitBelowOutstandingError,
)

logger = logging.getLogger(__name__)

REASON_BLOCKED = "credit blocked"
REASON_LIMIT_EXCEEDED = "limit exceeded"


def _require_positive(amount_cents: int) -> None:
    if not isinstance(amount_cents, int) or isinstance(amount_cents, bool) or amount_cents <= 0:
        raise InvalidAmountError(f"Amount must be a positive number of cents, got {amount_cents!r}")


def check_availability(customer: Customer, amount_cents: int) -> AvailabilityCheck:
    """
    Decide whether a credit purchase of ``amount_cents`` fits the facility.

    Read-only. Fails closed when the facility is blocked or when the
    resulting balance would exceed the limit. ``attempted_cents`` is the
    balance the purchase would produce, ``available_cents`` the headroom left
    before it.
    """
    _require_positive(amount_cents)
    attempted = customer.outstanding_balance_cents + amount_cents
    available = customer.available_credit_cents

    if customer.credit_blocked:
        reason = REASON_BLOCKED
    elif attempted > customer.credit_limit_cents:
        reason = REASON_LIMIT_EXCEEDED
    else:
        reason = None

    return AvailabilityCheck(
        allowed=reason is None,
        reason=reason,
        attempted_cents=attempted,
        available_cents=available,
        credit_limit_cents=customer.credit_limit_cents,
    )


def require_availability(customer: Customer, amount_cents: int) -> AvailabilityCheck:
    """Same as check_availability but raises the typed error when disallowed"""
    check = check_availability(customer, amount_cents)
    if check.reason == REASON_BLOCKED:
        raise CreditBlockedError(customer.id)
    if check.reason == REASON_LIMIT_EXCEEDED:
        raise CreditLimitExceededError(
            customer.id, check.attempted_cents, check.available_cents, check.credit_limit_cents
        )
    return check


def apply_debit(customer: Customer, amount_cents: int, override: bool = False) -> int:
    """
    Increase the outstanding balance. Rejects (never clamps) a debit that
    would break ``outstanding <= limit`` unless ``override`` is set by the
    post-approval path.

    Returns the new outstanding balance.
    """
    check = check_availability(customer, amount_cents) if override else require_availability(customer, amount_cents)

    if not check.allowed:
        logger.warning(
            "Debit applied under approval override",
            extra={
                "customer_id": customer.id,
                "reason": check.reason,
                "attempted_cents": check.attempted_cents,
                "credit_limit_cents": check.credit_limit_cents,
            },
        )

    customer.outstanding_balance_cents = check.attempted_cents
    return customer.outstanding_balance_cents


def apply_credit(customer: Customer, amount_cents: int) -> LedgerCredit:
    """
    Decrease the outstanding balance, floored at zero.

    A clamp means the ledger and the receivables have drifted apart; it is
    reported as a reconciliation warning instead of being absorbed silently.
    """
    _require_positive(amount_cents)
    before = customer.outstanding_balance_cents
    after = max(0, before - amount_cents)
    dropped = amount_cents - (before - after)

    if dropped:
        logger.warning(
            "Reconciliation: credit exceeds outstanding balance, excess dropped",
            extra={
                "customer_id": customer.id,
                "balance_before_cents": before,
                "credit_cents": amount_cents,
                "dropped_cents": dropped,
            },
        )

    customer.outstanding_balance_cents = after
    return LedgerCredit(balance_before_cents=before, balance_after_cents=after, dropped_cents=dropped)


def set_block(customer: Customer, blocked: bool, reason: str) -> bool:
    """Toggle the credit block. Returns True when the flag actually changed."""
    changed = customer.credit_blocked != blocked
    customer.credit_blocked = blocked
    logger.info(
        "Credit block updated",
        extra={
            "customer_id": customer.id,
            "credit_blocked": blocked,
            "changed": changed,
            "reason": reason,
        },
    )
    return changed


def set_limit(customer: Customer, credit_limit_cents: int, payment_terms_days: int | None = None) -> None:
    """Change the facility. The limit may never drop below what is already owed."""
    if credit_limit_cents < 0:
        raise InvalidAmountError(f"Credit limit cannot be negative, got {credit_limit_cents}")
    if credit_limit_cents < customer.outstanding_balance_cents:
        raise LimitBelowOutstandingError(customer.id, credit_limit_cents, customer.outstanding_balance_cents)

    customer.credit_limit_cents = credit_limit_cents
    if payment_terms_days is not None:
        customer.payment_terms_days = payment_terms_days
