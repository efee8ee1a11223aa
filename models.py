from datetime import date, datetime
from enum import Enum
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from database import Base
from money import from_cents


class TransactionType(str, Enum):
    income = "INCOME"
    expense = "EXPENSE"


class AlertType(str, Enum):
    warning = "WARNING"
    limit_reached = "LIMIT_REACHED"
    exceeded = "EXCEEDED"


TRANSACTION_TYPE_ENUM = SAEnum(
    TransactionType,
    name="transactiontype",
    values_callable=lambda enum_cls: [member.value for member in enum_cls],
)


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class Category(Base, TimestampMixin):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    # NULL owner marks a system category shared by every owner.
    owner_id: Mapped[Optional[int]] = mapped_column(Integer)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[TransactionType] = mapped_column(
        TRANSACTION_TYPE_ENUM, nullable=False
    )

    __table_args__ = (
        UniqueConstraint("owner_id", "name", name="uq_category_owner_name"),
        Index("ix_categories_owner_type", "owner_id", "type"),
    )

    @property
    def is_system(self) -> bool:
        return self.owner_id is None


# System category names must stay unique even though owner_id is NULL.
Index(
    "uq_category_system_name",
    func.lower(Category.name),
    unique=True,
    sqlite_where=Category.owner_id.is_(None),
    postgresql_where=Category.owner_id.is_(None),
)


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    owner_id: Mapped[int] = mapped_column(Integer, nullable=False)
    category_id: Mapped[int] = mapped_column(
        ForeignKey("categories.id"), nullable=False
    )
    type: Mapped[TransactionType] = mapped_column(
        TRANSACTION_TYPE_ENUM, nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    date: Mapped[date] = mapped_column(Date, nullable=False)
    description: Mapped[Optional[str]] = mapped_column(String(500))
    payment_method: Mapped[Optional[str]] = mapped_column(String(50))
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime)

    category: Mapped["Category"] = relationship("Category")

    __table_args__ = (
        Index("ix_transactions_owner_date", "owner_id", "date"),
        Index("ix_transactions_owner_category_date", "owner_id", "category_id", "date"),
        Index("ix_transactions_owner_type_date", "owner_id", "type", "date"),
        CheckConstraint("amount_cents > 0", name="ck_transactions_amount_positive"),
    )

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def amount(self):
        return from_cents(self.amount_cents)


class Budget(Base, TimestampMixin):
    __tablename__ = "budgets"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    owner_id: Mapped[int] = mapped_column(Integer, nullable=False)
    category_id: Mapped[int] = mapped_column(
        ForeignKey("categories.id"), nullable=False
    )
    amount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    year: Mapped[int] = mapped_column(Integer, nullable=False)

    category: Mapped["Category"] = relationship("Category")

    __table_args__ = (
        UniqueConstraint(
            "owner_id",
            "category_id",
            "month",
            "year",
            name="uq_budget_owner_category_month",
        ),
        Index("ix_budgets_owner_month", "owner_id", "year", "month"),
        CheckConstraint("amount_cents > 0", name="ck_budgets_amount_positive"),
        CheckConstraint("month BETWEEN 1 AND 12", name="ck_budgets_month_range"),
        CheckConstraint("year BETWEEN 2000 AND 2100", name="ck_budgets_year_range"),
    )

    @property
    def amount(self):
        return from_cents(self.amount_cents)
