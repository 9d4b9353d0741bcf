from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from database import Base


class TransactionType(str, Enum):
    income = "income"
    expense = "expense"


class TransactionKind(str, Enum):
    simple = "simple"
    fixed_origin = "fixed_origin"
    fixed_occurrence = "fixed_occurrence"
    installment_parent = "installment_parent"
    installment_child = "installment_child"


# kind -> (is_fixed, is_installment, is_hidden)
KIND_FLAGS: dict[TransactionKind, tuple[bool, bool, bool]] = {
    TransactionKind.simple: (False, False, False),
    TransactionKind.fixed_origin: (True, False, False),
    TransactionKind.fixed_occurrence: (True, False, False),
    TransactionKind.installment_parent: (False, False, True),
    TransactionKind.installment_child: (False, True, False),
}


def flags_for(kind: TransactionKind) -> dict[str, bool]:
    is_fixed, is_installment, is_hidden = KIND_FLAGS[kind]
    return {
        "is_fixed": is_fixed,
        "is_installment": is_installment,
        "is_hidden": is_hidden,
    }


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    user_id: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    value: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        SAEnum(TransactionType), nullable=False
    )
    category: Mapped[str] = mapped_column(String(100), nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)

    is_fixed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_installment: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )
    is_hidden: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Plain columns, not foreign keys: children and occurrences outlive
    # their parent or origin.
    origin_id: Mapped[Optional[int]] = mapped_column(Integer)
    parent_id: Mapped[Optional[int]] = mapped_column(Integer)
    installment_index: Mapped[Optional[int]] = mapped_column(Integer)
    installment_total: Mapped[Optional[int]] = mapped_column(Integer)

    __table_args__ = (
        Index("ix_transactions_user_date", "user_id", "date"),
        Index("ix_transactions_origin", "origin_id"),
        Index("ix_transactions_parent", "parent_id"),
        CheckConstraint("value > 0", name="ck_transactions_value_positive"),
        CheckConstraint(
            "NOT (is_fixed AND is_installment)",
            name="ck_transactions_fixed_xor_installment",
        ),
        CheckConstraint(
            "origin_id IS NULL OR is_fixed", name="ck_transactions_origin_fixed"
        ),
        CheckConstraint(
            "parent_id IS NULL OR is_installment",
            name="ck_transactions_parent_installment",
        ),
        CheckConstraint(
            "NOT (is_hidden AND (is_fixed OR is_installment))",
            name="ck_transactions_hidden_plain",
        ),
        CheckConstraint(
            "installment_index IS NULL OR "
            "(installment_index >= 1 AND installment_index <= installment_total)",
            name="ck_transactions_installment_index_range",
        ),
    )

    @property
    def kind(self) -> TransactionKind:
        if self.is_hidden:
            return TransactionKind.installment_parent
        if self.is_installment:
            return TransactionKind.installment_child
        if self.is_fixed:
            if self.origin_id is None:
                return TransactionKind.fixed_origin
            return TransactionKind.fixed_occurrence
        return TransactionKind.simple

    @property
    def is_fixed_origin(self) -> bool:
        return bool(self.is_fixed) and self.origin_id is None
