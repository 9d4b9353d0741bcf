import logging
from datetime import date

from models import Transaction
from periods import month_period
from repository import TransactionFilter, TransactionRepository

logger = logging.getLogger(__name__)


def days_in_month(year: int, month: int) -> int:
    if month == 12:
        next_month = date(year + 1, 1, 1)
    else:
        next_month = date(year, month + 1, 1)
    return (next_month - date(year, month, 1)).days


def add_months(base: date, months: int) -> date:
    """Shift ``base`` by whole calendar months, snapping to the month end.

    Jan 31 + 1 month is Feb 29 in a leap year, Feb 28 otherwise.
    """
    total_months = base.month - 1 + months
    year = base.year + total_months // 12
    month = total_months % 12 + 1
    day = min(base.day, days_in_month(year, month))
    return date(year, month, day)


class FixedTransactionProjector:
    """Read-time view of a month: its concrete rows plus every fixed origin.

    Fixed origins are standing definitions, so they count towards every
    month regardless of their own date. Nothing is materialised.
    """

    def __init__(self, repo: TransactionRepository) -> None:
        self.repo = repo

    def rows_for_month(self, user_id: int, year: int, month: int) -> list[Transaction]:
        period = month_period(year, month)
        concrete = self.repo.find(
            TransactionFilter(user_id=user_id, start=period.start, end=period.end)
        )
        origins = self.repo.find(TransactionFilter(user_id=user_id, fixed_origin=True))

        seen = {txn.id for txn in concrete}
        rows = list(concrete)
        for txn in origins:
            if txn.id not in seen:
                seen.add(txn.id)
                rows.append(txn)
        logger.debug(
            f"projection_rows: user_id={user_id} period={period.slug} "
            f"concrete={len(concrete)} total={len(rows)}"
        )
        return rows
