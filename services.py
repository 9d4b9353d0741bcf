from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional, Union

from rapidfuzz.distance import Levenshtein

from classification import TransactionClassifier
from config import Settings, get_settings
from errors import TransactionNotFound, TransactionValidationError
from installments import InstallmentPlan, InstallmentPlanGenerator
from models import Transaction, TransactionKind, TransactionType, flags_for
from periods import month_period
from recurrence import FixedTransactionProjector
from repository import TransactionFilter, TransactionRepository
from schemas import TransactionIn, TransactionPatch

logger = logging.getLogger(__name__)

ZERO = Decimal("0.00")


@dataclass
class TransactionPage:
    page: int
    limit: int
    total: int
    total_pages: int
    data: list[Transaction]


@dataclass(frozen=True)
class Dashboard:
    total_income: Decimal
    total_expense: Decimal
    total_balance: Decimal


@dataclass(frozen=True)
class Projection:
    income_projected: Decimal
    expense_projected: Decimal
    balance_projected: Decimal


@dataclass(frozen=True)
class CategoryRanking:
    category: str
    total: Decimal


def sum_by_type(rows: Iterable[Transaction]) -> tuple[Decimal, Decimal]:
    income = ZERO
    expense = ZERO
    for txn in rows:
        if txn.type == TransactionType.income:
            income += Decimal(txn.value)
        elif txn.type == TransactionType.expense:
            expense += Decimal(txn.value)
    return income, expense


class CategoryResolver:
    """Maps a free-text category label onto one the user already uses.

    Exact matches ignore case and surrounding whitespace. With fuzzy
    matching on, a label one edit away from exactly one known label is
    mapped to it as well; anything else is kept as typed.
    """

    def __init__(
        self,
        repo: TransactionRepository,
        user_id: int,
        fuzzy: bool = False,
    ) -> None:
        self.repo = repo
        self.user_id = user_id
        self.fuzzy = fuzzy

    def known_categories(self) -> list[str]:
        rows = self.repo.find(
            TransactionFilter(user_id=self.user_id, include_hidden=True)
        )
        seen: dict[str, str] = {}
        for txn in rows:
            seen.setdefault(txn.category.strip().lower(), txn.category)
        return list(seen.values())

    def resolve(self, label: str) -> str:
        label = label.strip()
        if not label:
            raise TransactionValidationError("Category cannot be empty")
        input_lower = label.lower()
        known = self.known_categories()
        for name in known:
            if name.strip().lower() == input_lower:
                return name
        if not self.fuzzy:
            return label

        best_distance: Optional[int] = None
        best: list[str] = []
        for name in known:
            dist = int(Levenshtein.distance(input_lower, name.strip().lower()))
            if best_distance is None or dist < best_distance:
                best_distance = dist
                best = [name]
            elif dist == best_distance:
                best.append(name)
        if best_distance is not None and best_distance <= 1 and len(best) == 1:
            logger.info(f"category_matched: input={label!r} category={best[0]!r}")
            return best[0]
        return label


class TransactionService:
    def __init__(
        self,
        repo: TransactionRepository,
        user_id: int,
        settings: Optional[Settings] = None,
    ) -> None:
        self.repo = repo
        self.user_id = user_id
        self.settings = settings or get_settings()

    def _resolver(self) -> CategoryResolver:
        return CategoryResolver(
            self.repo, self.user_id, fuzzy=self.settings.category_fuzzy_match
        )

    def create(self, data: TransactionIn) -> Union[Transaction, InstallmentPlan]:
        classification = TransactionClassifier(self.repo, self.user_id).classify(data)
        data = data.model_copy(
            update={"category": self._resolver().resolve(data.category)}
        )
        kind = classification.kind

        if kind == TransactionKind.installment_parent:
            return InstallmentPlanGenerator(self.repo, self.user_id).generate(data)

        txn = Transaction(
            user_id=self.user_id,
            title=data.title,
            value=data.value,
            type=data.type,
            category=data.category,
            date=data.date,
            **flags_for(kind),
        )
        if kind == TransactionKind.fixed_occurrence:
            txn.origin_id = classification.origin.id
        elif kind == TransactionKind.installment_child:
            txn.parent_id = classification.parent.id
            txn.installment_index = data.installment_index
            txn.installment_total = data.installment_total

        with self.repo.atomic():
            self.repo.create(txn)
        logger.info(
            f"transaction_created: user_id={self.user_id} id={txn.id} kind={kind.value}"
        )
        return txn

    def get(self, transaction_id: int) -> Transaction:
        txn = self.repo.find_by_id(transaction_id, self.user_id)
        if txn is None:
            raise TransactionNotFound()
        return txn

    def list(self) -> list[Transaction]:
        return self.repo.find(TransactionFilter(user_id=self.user_id))

    def list_paged(self, page: int = 1, limit: Optional[int] = None) -> TransactionPage:
        if limit is None:
            limit = self.settings.default_page_limit
        if page < 1:
            raise TransactionValidationError("Page must be at least 1")
        if limit < 1:
            raise TransactionValidationError("Limit must be at least 1")
        limit = min(limit, self.settings.max_page_limit)

        data, total = self.repo.find_and_count(
            TransactionFilter(user_id=self.user_id),
            offset=(page - 1) * limit,
            limit=limit,
        )
        return TransactionPage(
            page=page,
            limit=limit,
            total=total,
            total_pages=math.ceil(total / limit),
            data=data,
        )

    def update(self, transaction_id: int, patch: TransactionPatch) -> Transaction:
        changes = patch.model_dump(exclude_unset=True)
        nulls = sorted(name for name, value in changes.items() if value is None)
        if nulls:
            raise TransactionValidationError(
                "Fields cannot be cleared: " + ", ".join(nulls)
            )
        with self.repo.atomic():
            txn = self.get(transaction_id)
            if "category" in changes:
                changes["category"] = self._resolver().resolve(changes["category"])
            for name, value in changes.items():
                setattr(txn, name, value)
            self.repo.save(txn)
        logger.info(
            f"transaction_updated: user_id={self.user_id} id={txn.id} "
            f"fields={','.join(sorted(changes))}"
        )
        return txn

    def delete(self, transaction_id: int) -> None:
        with self.repo.atomic():
            txn = self.get(transaction_id)
            kind = txn.kind
            # Installment children and fixed occurrences are left in place.
            self.repo.remove(txn)
        logger.info(
            f"transaction_deleted: user_id={self.user_id} id={transaction_id} "
            f"kind={kind.value}"
        )


class MetricsService:
    def __init__(self, repo: TransactionRepository, user_id: int) -> None:
        self.repo = repo
        self.user_id = user_id

    def dashboard(self, year: int, month: int) -> Dashboard:
        period = month_period(year, month)
        rows = self.repo.find(
            TransactionFilter(
                user_id=self.user_id,
                start=period.start,
                end=period.end,
                fixed_origin=False,
            )
        )
        income, expense = sum_by_type(rows)
        return Dashboard(
            total_income=income,
            total_expense=expense,
            total_balance=income - expense,
        )

    def projection(self, year: int, month: int) -> Projection:
        rows = FixedTransactionProjector(self.repo).rows_for_month(
            self.user_id, year, month
        )
        income, expense = sum_by_type(rows)
        return Projection(
            income_projected=income,
            expense_projected=expense,
            balance_projected=income - expense,
        )

    def top_expense_category(self) -> Optional[CategoryRanking]:
        rows = self.repo.find(
            TransactionFilter(user_id=self.user_id, type=TransactionType.expense)
        )
        if not rows:
            return None

        totals: dict[str, Decimal] = {}
        for txn in rows:
            totals[txn.category] = totals.get(txn.category, ZERO) + Decimal(txn.value)

        best_category: Optional[str] = None
        best_total = ZERO
        for category, total in totals.items():
            if best_category is None or total > best_total:
                best_category = category
                best_total = total
        return CategoryRanking(category=best_category, total=best_total)
