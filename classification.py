"""Decides which kind of transaction a creation request describes.

The request flags (``is_fixed``, ``is_installment``) and relation fields
(``origin_id``, ``parent_id``, ``installment_index``, ``installment_total``)
are folded into one :class:`~models.TransactionKind`. Contradictory or
dangling combinations are rejected with
:class:`~errors.TransactionValidationError`. Nothing is written here; the
caller persists the outcome.
"""

from dataclasses import dataclass
from typing import Optional

from errors import TransactionValidationError
from models import Transaction, TransactionKind
from repository import TransactionRepository
from schemas import TransactionIn

RELATION_FIELDS = ("origin_id", "parent_id", "installment_index", "installment_total")
INSTALLMENT_FIELDS = ("parent_id", "installment_index", "installment_total")


@dataclass(frozen=True)
class Classification:
    kind: TransactionKind
    data: TransactionIn
    parent: Optional[Transaction] = None
    origin: Optional[Transaction] = None


def _present(data: TransactionIn, fields: tuple[str, ...]) -> list[str]:
    return [name for name in fields if getattr(data, name) is not None]


class TransactionClassifier:
    def __init__(self, repo: TransactionRepository, user_id: int) -> None:
        self.repo = repo
        self.user_id = user_id

    def classify(self, data: TransactionIn) -> Classification:
        if data.value is None or data.value <= 0:
            raise TransactionValidationError("Value must be greater than zero")
        if data.is_fixed and data.is_installment:
            raise TransactionValidationError(
                "A transaction cannot be both fixed and installment"
            )
        if data.is_installment and data.parent_id is None:
            return self._installment_plan(data)
        if data.is_installment:
            return self._installment_child(data)
        if data.is_fixed:
            return self._fixed(data)
        return self._simple(data)

    def _installment_plan(self, data: TransactionIn) -> Classification:
        if data.installment_total is None or data.installment_total < 2:
            raise TransactionValidationError("Installment total must be at least 2")
        if data.origin_id is not None:
            raise TransactionValidationError(
                "Installment transactions cannot have origin_id"
            )
        if data.installment_index is not None:
            raise TransactionValidationError(
                "installment_index is assigned by the plan, not the request"
            )
        return Classification(TransactionKind.installment_parent, data)

    def _installment_child(self, data: TransactionIn) -> Classification:
        if data.origin_id is not None:
            raise TransactionValidationError(
                "Installment transactions cannot have origin_id"
            )
        parent = self.repo.find_by_id(data.parent_id, self.user_id)
        if parent is None or not parent.is_hidden:
            raise TransactionValidationError("Invalid parent transaction")
        index = data.installment_index
        total = data.installment_total
        if index is None or total is None or index < 1 or index > total:
            raise TransactionValidationError("Invalid installment data")
        return Classification(TransactionKind.installment_child, data, parent=parent)

    def _fixed(self, data: TransactionIn) -> Classification:
        present = _present(data, INSTALLMENT_FIELDS)
        if present:
            raise TransactionValidationError(
                "Fixed transactions cannot have installment fields: "
                + ", ".join(present)
            )
        if data.origin_id is None:
            return Classification(TransactionKind.fixed_origin, data)
        origin = self.repo.find_by_id(data.origin_id, self.user_id)
        if origin is None or not origin.is_fixed_origin:
            raise TransactionValidationError("Invalid origin transaction")
        return Classification(TransactionKind.fixed_occurrence, data, origin=origin)

    def _simple(self, data: TransactionIn) -> Classification:
        present = _present(data, RELATION_FIELDS)
        if present:
            raise TransactionValidationError(
                "Simple transactions cannot have fixed or installment fields: "
                + ", ".join(present)
            )
        return Classification(TransactionKind.simple, data)
