from datetime import date

import pytest

from errors import TransactionValidationError
from periods import current_month_period, month_period


def test_month_period_covers_whole_month() -> None:
    period = month_period(2024, 2)
    assert period.slug == "2024-02"
    assert period.start == date(2024, 2, 1)
    assert period.end == date(2024, 2, 29)


def test_month_period_december() -> None:
    period = month_period(2025, 12)
    assert (period.start, period.end) == (date(2025, 12, 1), date(2025, 12, 31))


@pytest.mark.parametrize("year,month", [(2025, 0), (2025, 13), (0, 5)])
def test_month_period_rejects_out_of_range(year, month) -> None:
    with pytest.raises(TransactionValidationError):
        month_period(year, month)


def test_current_month_period_uses_given_day() -> None:
    period = current_month_period(today=date(2025, 3, 18))
    assert (period.start, period.end) == (date(2025, 3, 1), date(2025, 3, 31))
