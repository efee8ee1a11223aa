from datetime import date as dt_date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from models import AlertType, Category, Transaction, TransactionType


class CategoryIn(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    type: TransactionType


class TransactionIn(BaseModel):
    type: TransactionType
    category_id: int = Field(..., gt=0)
    amount: Decimal = Field(..., ge=Decimal("0.01"), max_digits=15, decimal_places=2)
    date: dt_date
    description: Optional[str] = Field(default=None, max_length=500)
    payment_method: Optional[str] = Field(default=None, max_length=50)


class BudgetIn(BaseModel):
    category_id: int = Field(..., gt=0)
    amount: Decimal = Field(..., ge=Decimal("0.01"), max_digits=15, decimal_places=2)
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=2000, le=2100)


class BudgetAmountIn(BaseModel):
    amount: Decimal = Field(..., max_digits=15, decimal_places=2)


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True)


class CategoryOut(_Frozen):
    id: int
    name: str
    type: TransactionType
    is_system: bool

    @classmethod
    def from_model(cls, category: Category) -> "CategoryOut":
        return cls(
            id=category.id,
            name=category.name,
            type=category.type,
            is_system=category.is_system,
        )


class TransactionOut(_Frozen):
    id: int
    type: TransactionType
    category_id: int
    category_name: str
    amount: Decimal
    date: dt_date
    description: Optional[str] = None
    payment_method: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, txn: Transaction) -> "TransactionOut":
        return cls(
            id=txn.id,
            type=txn.type,
            category_id=txn.category_id,
            category_name=txn.category.name,
            amount=txn.amount,
            date=txn.date,
            description=txn.description,
            payment_method=txn.payment_method,
            created_at=txn.created_at,
            updated_at=txn.updated_at,
        )


class TransactionPageOut(_Frozen):
    items: list[TransactionOut]
    page: int
    size: int
    total: int


class BudgetOut(_Frozen):
    id: int
    category_id: int
    category_name: str
    budget_amount: Decimal
    spent_amount: Decimal
    remaining_amount: Decimal
    percentage_used: float
    month: int
    year: int


class BudgetAlertOut(_Frozen):
    category_id: int
    category_name: str
    budget_amount: Decimal
    spent_amount: Decimal
    percentage_used: float
    alert_type: AlertType
    message: str


class MonthlySummaryOut(_Frozen):
    month: int
    year: int
    total_income: Decimal
    total_expenses: Decimal
    net_savings: Decimal
    transaction_count: int
    average_transaction_amount: Decimal
    largest_expense: Optional[TransactionOut] = None


class CategoryExpenseOut(_Frozen):
    category_id: int
    category_name: str
    total_amount: Decimal
    transaction_count: int
    percentage_of_total: float


class CategoryWiseOut(_Frozen):
    month: int
    year: int
    total_expenses: Decimal
    categories: list[CategoryExpenseOut]


class TrendOut(_Frozen):
    month: int
    year: int
    total_income: Decimal
    total_expenses: Decimal
    net_savings: Decimal


class TrendsOut(_Frozen):
    months: int
    start_date: dt_date
    trends: list[TrendOut]


class TopExpensesOut(_Frozen):
    month: int
    year: int
    limit: int
    top_expenses: list[TransactionOut]
