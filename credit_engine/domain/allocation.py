"""Payment waterfall - distributes a payment over open receivables"""

from datetime import date
from typing import Dict, List, Optional, Sequence
from credit_engine.domain.models import Allocation, AllocationPlan, CreditTransaction
from credit_engine.domain.states import TransactionStatus, ensure_transaction_transition
from credit_engine.domain.exceptions import InvalidAmountError, NotFoundError


def waterfall_order(transactions: Sequence[CreditTransaction]) -> List[CreditTransaction]:
    """Open receivables, oldest obligation first: due date, then creation order"""
    return sorted(
        (t for t in transactions if t.is_outstanding),
        key=lambda t: (t.due_date, t.id if t.id is not None else 0),
    )


def status_after_payment(transaction: CreditTransaction, balance_after: int, as_of: date) -> TransactionStatus:
    if balance_after == 0:
        target = TransactionStatus.PAID
    elif transaction.due_date < as_of:
        target = TransactionStatus.OVERDUE
    else:
        target = TransactionStatus.PARTIAL
    return ensure_transaction_transition(transaction.status, target)


def allocate_payment(
    amount_cents: int,
    transactions: Sequence[CreditTransaction],
    target_ids: Optional[Sequence[int]] = None,
    as_of: date | None = None,
) -> AllocationPlan:
    """
    Apply a payment to receivables using a FIFO-by-due-date waterfall.

    Requirements:
    - Each receivable absorbs min(remaining, balance) before moving on
    - Explicit ``target_ids`` are paid in the order given
    - Anything left once receivables are exhausted is reported as
      ``unapplied_remainder_cents``, never spread or dropped

    The input transactions are not mutated; the plan carries the balances
    and statuses to persist.

    Example:
        balances 100 (due d1), 50 (d2), 200 (d3); payment 120
        -> [100 to d1, 20 to d2], d2 left at 30, d3 untouched
    """
    if not isinstance(amount_cents, int) or isinstance(amount_cents, bool) or amount_cents <= 0:
        raise InvalidAmountError(f"Payment must be a positive number of cents, got {amount_cents!r}")

    as_of = as_of or date.today()

    if target_ids is None:
        queue = waterfall_order(transactions)
    else:
        by_id: Dict[int, CreditTransaction] = {t.id: t for t in transactions if t.is_outstanding}
        missing = [tid for tid in target_ids if tid not in by_id]
        if missing:
            raise NotFoundError(f"No open receivables with ids {missing}")
        queue = [by_id[tid] for tid in dict.fromkeys(target_ids)]

    remaining = amount_cents
    allocations: List[Allocation] = []

    for txn in queue:
        if remaining == 0:
            break

        applied = min(remaining, txn.balance_cents)
        balance_after = txn.balance_cents - applied
        allocations.append(
            Allocation(
                transaction_id=txn.id,
                amount_cents=applied,
                balance_after_cents=balance_after,
                status_after=status_after_payment(txn, balance_after, as_of),
            )
        )
        remaining -= applied

    return AllocationPlan(
        amount_cents=amount_cents,
        allocations=allocations,
        unapplied_remainder_cents=remaining,
    )
