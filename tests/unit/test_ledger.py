"""Unit tests for credit ledger rules"""

import logging
import pytest
from credit_engine.domain.models import Customer
from credit_engine.domain.ledger import (
    REASON_BLOCKED,
    REASON_LIMIT_EXCEEDED,
    apply_credit,
    apply_debit,
    check_availability,
    set_block,
    set_limit,
)
from credit_engine.domain.exceptions import (
    CreditBlockedError,
    CreditLimitExceededError,
    InvalidAmountError,
    LimitBelowOutstandingError,
)


def test_check_availability_rejects_purchase_over_limit():
    """limit 100000, outstanding 90000, purchase 20000 -> disallowed"""
    customer = Customer(id="c1", credit_limit_cents=100_000, outstanding_balance_cents=90_000)

    check = check_availability(customer, 20_000)

    assert check.allowed is False
    assert check.reason == REASON_LIMIT_EXCEEDED
    assert check.attempted_cents == 110_000
    assert check.available_cents == 10_000


def test_check_availability_allows_purchase_up_to_limit():
    customer = Customer(id="c1", credit_limit_cents=100_000, outstanding_balance_cents=90_000)

    check = check_availability(customer, 10_000)

    assert check.allowed is True
    assert check.reason is None


def test_check_availability_fails_closed_when_blocked():
    customer = Customer(id="c1", credit_limit_cents=100_000, credit_blocked=True)

    check = check_availability(customer, 1)

    assert check.allowed is False
    assert check.reason == REASON_BLOCKED


@pytest.mark.parametrize("amount", [0, -5, 10.5, True])
def test_amounts_must_be_positive_integer_cents(amount):
    customer = Customer(id="c1", credit_limit_cents=100_000)

    with pytest.raises(InvalidAmountError):
        check_availability(customer, amount)


def test_apply_debit_increases_balance():
    customer = Customer(id="c1", credit_limit_cents=100_000, outstanding_balance_cents=40_000)

    new_balance = apply_debit(customer, 60_000)

    assert new_balance == 100_000
    assert customer.outstanding_balance_cents == 100_000
    assert customer.available_credit_cents == 0


def test_apply_debit_rejects_instead_of_clamping():
    customer = Customer(id="c1", credit_limit_cents=100_000, outstanding_balance_cents=90_000)

    with pytest.raises(CreditLimitExceededError) as exc_info:
        apply_debit(customer, 20_000)

    assert exc_info.value.attempted_cents == 110_000
    assert exc_info.value.available_cents == 10_000
    assert customer.outstanding_balance_cents == 90_000


def test_apply_debit_rejects_blocked_customer():
    customer = Customer(id="c1", credit_limit_cents=100_000, credit_blocked=True)

    with pytest.raises(CreditBlockedError):
        apply_debit(customer, 1_000)


def test_apply_debit_override_exceeds_limit_with_warning(caplog):
    customer = Customer(id="c1", credit_limit_cents=100_000, outstanding_balance_cents=90_000)

    with caplog.at_level(logging.WARNING):
        apply_debit(customer, 20_000, override=True)

    assert customer.outstanding_balance_cents == 110_000
    assert "override" in caplog.text


def test_apply_credit_reduces_balance():
    customer = Customer(id="c1", credit_limit_cents=100_000, outstanding_balance_cents=70_000)

    result = apply_credit(customer, 30_000)

    assert result.balance_before_cents == 70_000
    assert result.balance_after_cents == 40_000
    assert result.dropped_cents == 0
    assert customer.outstanding_balance_cents == 40_000


def test_apply_credit_clamps_at_zero_and_reports_drift(caplog):
    customer = Customer(id="c1", credit_limit_cents=100_000, outstanding_balance_cents=5_000)

    with caplog.at_level(logging.WARNING):
        result = apply_credit(customer, 8_000)

    assert customer.outstanding_balance_cents == 0
    assert result.dropped_cents == 3_000
    assert "Reconciliation" in caplog.text


def test_set_block_reports_change():
    customer = Customer(id="c1", credit_limit_cents=100_000)

    assert set_block(customer, True, "manual review") is True
    assert set_block(customer, True, "manual review") is False
    assert customer.credit_blocked is True


def test_set_limit_cannot_drop_below_outstanding():
    customer = Customer(id="c1", credit_limit_cents=100_000, outstanding_balance_cents=60_000)

    with pytest.raises(LimitBelowOutstandingError):
        set_limit(customer, 50_000)

    set_limit(customer, 60_000, payment_terms_days=45)
    assert customer.credit_limit_cents == 60_000
    assert customer.payment_terms_days == 45
