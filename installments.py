import logging
from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from errors import TransactionValidationError
from models import Transaction, TransactionKind, flags_for
from recurrence import add_months
from repository import TransactionRepository
from schemas import TransactionIn

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


@dataclass
class InstallmentPlan:
    parent: Transaction
    installments: list[Transaction]


def split_value(value: Decimal, total: int) -> list[Decimal]:
    """Split ``value`` into ``total`` shares of whole cents.

    Every share but the last is ``value / total`` rounded half-up; the last
    one takes whatever is left so the shares always add up to ``value``.
    """
    if total < 1:
        raise TransactionValidationError("Installment total must be positive")
    value = Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
    share = (value / total).quantize(CENT, rounding=ROUND_HALF_UP)
    last = value - share * (total - 1)
    if share <= 0 or last <= 0:
        raise TransactionValidationError(
            f"Value {value} is too small to split into {total} installments"
        )
    return [share] * (total - 1) + [last]


def last_installment_date(start: date, total: int) -> date:
    try:
        return add_months(start, total - 1)
    except ValueError as exc:
        raise TransactionValidationError(
            "Installment schedule runs past the last supported date"
        ) from exc


class InstallmentPlanGenerator:
    def __init__(self, repo: TransactionRepository, user_id: int) -> None:
        self.repo = repo
        self.user_id = user_id

    def build_parent(self, data: TransactionIn) -> Transaction:
        return Transaction(
            user_id=self.user_id,
            title=data.title,
            value=data.value,
            type=data.type,
            category=data.category,
            date=data.date,
            **flags_for(TransactionKind.installment_parent),
        )

    def build_installments(
        self, data: TransactionIn, parent_id: int
    ) -> list[Transaction]:
        total = data.installment_total
        shares = split_value(data.value, total)
        return [
            Transaction(
                user_id=self.user_id,
                title=f"{data.title} ({index}/{total})",
                value=share,
                type=data.type,
                category=data.category,
                date=add_months(data.date, index - 1),
                parent_id=parent_id,
                installment_index=index,
                installment_total=total,
                **flags_for(TransactionKind.installment_child),
            )
            for index, share in enumerate(shares, start=1)
        ]

    def generate(self, data: TransactionIn) -> InstallmentPlan:
        # Fail on an unsplittable value or schedule before anything is written.
        split_value(data.value, data.installment_total)
        last_installment_date(data.date, data.installment_total)
        with self.repo.atomic():
            parent = self.repo.create(self.build_parent(data))
            installments = self.repo.save_all(
                self.build_installments(data, parent.id)
            )
        logger.info(
            f"installment_plan_created: user_id={self.user_id} parent_id={parent.id} "
            f"installments={len(installments)} value={data.value}"
        )
        return InstallmentPlan(parent=parent, installments=installments)
