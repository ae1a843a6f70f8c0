"""Unit tests for the payment waterfall"""

import pytest
from datetime import date, timedelta
from credit_engine.domain.models import CreditTransaction
from credit_engine.domain.allocation import allocate_payment, status_after_payment, waterfall_order
from credit_engine.domain.states import TransactionStatus
from credit_engine.domain.exceptions import IllegalTransitionError, InvalidAmountError, NotFoundError

AS_OF = date(2024, 3, 1)


def receivable(txn_id, balance, due_in_days, status=TransactionStatus.OPEN):
    due = AS_OF + timedelta(days=due_in_days)
    return CreditTransaction(
        id=txn_id,
        customer_id="c1",
        origin_ref=f"SO-{txn_id}",
        original_amount_cents=balance,
        balance_cents=balance,
        transaction_date=due - timedelta(days=30),
        due_date=due,
        status=status,
    )


def test_fifo_by_due_date():
    """balances 100/50/200 due d1<d2<d3, payment 120 -> 100 to d1, 20 to d2"""
    transactions = [receivable(3, 200, 30), receivable(1, 100, 10), receivable(2, 50, 20)]

    plan = allocate_payment(120, transactions, as_of=AS_OF)

    assert [(a.transaction_id, a.amount_cents) for a in plan.allocations] == [(1, 100), (2, 20)]
    assert plan.allocations[0].status_after == TransactionStatus.PAID
    assert plan.allocations[1].balance_after_cents == 30
    assert plan.allocations[1].status_after == TransactionStatus.PARTIAL
    assert plan.unapplied_remainder_cents == 0


def test_allocation_conserves_amount_with_remainder():
    transactions = [receivable(1, 100, 10), receivable(2, 50, 20)]

    plan = allocate_payment(175, transactions, as_of=AS_OF)

    assert plan.allocated_cents == 150
    assert plan.unapplied_remainder_cents == 25
    assert plan.allocated_cents + plan.unapplied_remainder_cents == plan.amount_cents


def test_allocation_does_not_mutate_inputs():
    transactions = [receivable(1, 100, 10)]

    allocate_payment(60, transactions, as_of=AS_OF)

    assert transactions[0].balance_cents == 100
    assert transactions[0].status == TransactionStatus.OPEN


def test_same_due_date_breaks_tie_by_id():
    transactions = [receivable(7, 40, 10), receivable(5, 40, 10)]

    assert [t.id for t in waterfall_order(transactions)] == [5, 7]


def test_closed_receivables_are_skipped():
    paid = receivable(1, 100, 5)
    paid.balance_cents = 0
    paid.status = TransactionStatus.PAID
    provisional = receivable(2, 100, 6, status=TransactionStatus.PROVISIONAL)
    open_txn = receivable(3, 100, 7)

    plan = allocate_payment(50, [paid, provisional, open_txn], as_of=AS_OF)

    assert [a.transaction_id for a in plan.allocations] == [3]


def test_past_due_partial_payment_stays_overdue():
    overdue = receivable(1, 100, -10, status=TransactionStatus.OVERDUE)

    plan = allocate_payment(40, [overdue], as_of=AS_OF)

    assert plan.allocations[0].status_after == TransactionStatus.OVERDUE


def test_explicit_targets_are_paid_in_given_order():
    transactions = [receivable(1, 100, 10), receivable(2, 50, 20), receivable(3, 200, 30)]

    plan = allocate_payment(120, transactions, target_ids=[3, 1], as_of=AS_OF)

    assert [(a.transaction_id, a.amount_cents) for a in plan.allocations] == [(3, 120)]


def test_unknown_target_is_rejected():
    with pytest.raises(NotFoundError):
        allocate_payment(10, [receivable(1, 100, 10)], target_ids=[99], as_of=AS_OF)


def test_payment_must_be_positive():
    with pytest.raises(InvalidAmountError):
        allocate_payment(0, [receivable(1, 100, 10)], as_of=AS_OF)


def test_paid_receivable_cannot_be_paid_again():
    paid = receivable(1, 100, 10, status=TransactionStatus.PAID)

    with pytest.raises(IllegalTransitionError):
        status_after_payment(paid, 0, AS_OF)


OPEN, PARTIAL, OVERDUE = TransactionStatus.OPEN, TransactionStatus.PARTIAL, TransactionStatus.OVERDUE

RECEIVABLE_SETS = {
    "single_cent": [(1, 0, OPEN)],
    "fifo_example": [(100, 10, OPEN), (50, 20, OPEN), (200, 30, OPEN)],
    "overdue_first": [(999, 5, OPEN), (100, -10, OVERDUE), (1, 5, OPEN)],
    "mixed_statuses": [(33, 3, PARTIAL), (67, -1, OVERDUE), (1, 40, OPEN)],
    "many_small": [(7, days, OPEN) for days in range(1, 13)],
}


def build_receivables(spec):
    return [receivable(i, balance, due, status) for i, (balance, due, status) in enumerate(spec, start=1)]


@pytest.mark.parametrize("name", sorted(RECEIVABLE_SETS))
@pytest.mark.parametrize("targeted", [False, True])
def test_allocation_conserves_every_payment_amount(name, targeted):
    transactions = build_receivables(RECEIVABLE_SETS[name])
    balances = {t.id: t.balance_cents for t in transactions}
    total = sum(balances.values())
    target_ids = [t.id for t in reversed(transactions)] if targeted else None

    for amount in list(range(1, total + 3)) + [total * 3 + 11]:
        plan = allocate_payment(amount, transactions, target_ids=target_ids, as_of=AS_OF)

        assert plan.allocated_cents + plan.unapplied_remainder_cents == amount
        assert plan.allocated_cents == min(amount, total)
        assert plan.unapplied_remainder_cents == max(0, amount - total)
        for allocation in plan.allocations:
            assert allocation.amount_cents > 0
            assert allocation.balance_after_cents >= 0
            assert allocation.balance_after_cents == balances[allocation.transaction_id] - allocation.amount_cents
