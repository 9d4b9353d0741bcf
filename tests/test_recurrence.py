from datetime import date
from decimal import Decimal

import pytest

from errors import TransactionValidationError
from models import Transaction, TransactionKind, TransactionType, flags_for
from recurrence import FixedTransactionProjector, add_months, days_in_month
from repository import InMemoryTransactionRepository


def _row(repo, kind=TransactionKind.simple, user_id=1, **fields) -> Transaction:
    row = dict(
        user_id=user_id,
        title="Row",
        value=Decimal("10.00"),
        type=TransactionType.expense,
        category="Misc",
        date=date(2025, 1, 10),
    )
    row.update(flags_for(kind))
    row.update(fields)
    return repo.create(Transaction(**row))


def test_days_in_month_handles_leap_years() -> None:
    assert days_in_month(2024, 2) == 29
    assert days_in_month(2025, 2) == 28
    assert days_in_month(2025, 12) == 31


@pytest.mark.parametrize(
    "base,months,expected",
    [
        (date(2024, 1, 31), 1, date(2024, 2, 29)),
        (date(2025, 1, 31), 1, date(2025, 2, 28)),
        (date(2024, 3, 31), 1, date(2024, 4, 30)),
        (date(2024, 12, 15), 1, date(2025, 1, 15)),
        (date(2024, 5, 20), 0, date(2024, 5, 20)),
        (date(2024, 1, 31), 13, date(2025, 2, 28)),
    ],
)
def test_add_months_snaps_to_month_end(base, months, expected) -> None:
    assert add_months(base, months) == expected


def test_projection_merges_month_rows_with_fixed_origins() -> None:
    repo = InMemoryTransactionRepository()
    salary = _row(
        repo,
        title="Salary",
        value=Decimal("100.00"),
        type=TransactionType.income,
        date=date(2025, 1, 5),
    )
    rent = _row(
        repo,
        TransactionKind.fixed_origin,
        title="Rent",
        value=Decimal("50.00"),
        date=date(2025, 3, 1),
    )
    _row(repo, date=date(2025, 2, 1))

    rows = FixedTransactionProjector(repo).rows_for_month(1, 2025, 1)
    assert sorted(txn.id for txn in rows) == sorted([salary.id, rent.id])


def test_projection_does_not_double_count_origin_in_its_own_month() -> None:
    repo = InMemoryTransactionRepository()
    rent = _row(repo, TransactionKind.fixed_origin, date=date(2025, 1, 1))

    rows = FixedTransactionProjector(repo).rows_for_month(1, 2025, 1)
    assert [txn.id for txn in rows] == [rent.id]


def test_projection_skips_hidden_rows_and_other_users() -> None:
    repo = InMemoryTransactionRepository()
    _row(repo, TransactionKind.installment_parent, date=date(2025, 1, 3))
    _row(repo, TransactionKind.fixed_origin, user_id=2)
    child = _row(
        repo,
        TransactionKind.installment_child,
        parent_id=1,
        installment_index=1,
        installment_total=2,
        date=date(2025, 1, 3),
    )

    rows = FixedTransactionProjector(repo).rows_for_month(1, 2025, 1)
    assert [txn.id for txn in rows] == [child.id]


def test_projection_rejects_invalid_month() -> None:
    repo = InMemoryTransactionRepository()
    with pytest.raises(TransactionValidationError, match="Month"):
        FixedTransactionProjector(repo).rows_for_month(1, 2025, 13)
