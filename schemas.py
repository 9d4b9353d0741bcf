import datetime as dt
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from models import TransactionKind, TransactionType

MAX_INSTALLMENTS = 360


class TransactionIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str = Field(..., min_length=1, max_length=200)
    value: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    type: TransactionType
    category: str = Field(..., min_length=1, max_length=100)
    date: dt.date
    is_fixed: bool = False
    is_installment: bool = False
    origin_id: Optional[int] = None
    parent_id: Optional[int] = None
    installment_index: Optional[int] = Field(default=None, le=MAX_INSTALLMENTS)
    installment_total: Optional[int] = Field(default=None, le=MAX_INSTALLMENTS)


class TransactionPatch(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    value: Optional[Decimal] = Field(
        default=None, gt=0, max_digits=12, decimal_places=2
    )
    type: Optional[TransactionType] = None
    category: Optional[str] = Field(default=None, min_length=1, max_length=100)
    date: Optional[dt.date] = None


class TransactionOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    value: Decimal
    type: TransactionType
    category: str
    date: dt.date
    kind: TransactionKind
    is_fixed: bool
    is_installment: bool
    is_hidden: bool
    origin_id: Optional[int] = None
    parent_id: Optional[int] = None
    installment_index: Optional[int] = None
    installment_total: Optional[int] = None
    user_id: int


class InstallmentPlanOut(BaseModel):
    parent: TransactionOut
    installments: list[TransactionOut]


class TransactionPageOut(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    data: list[TransactionOut]


class DashboardOut(BaseModel):
    total_income: Decimal
    total_expense: Decimal
    total_balance: Decimal


class ProjectionOut(BaseModel):
    income_projected: Decimal
    expense_projected: Decimal
    balance_projected: Decimal


class CategoryRankingOut(BaseModel):
    category: str
    total: Decimal


class HealthCheck(BaseModel):
    service_name: str
    status: str
