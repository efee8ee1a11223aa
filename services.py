from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import and_, case, delete, extract, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, joinedload

from budget_math import classify_budget, derive_budget_figures, percentage_of
from config import get_settings
from errors import ConflictError, ForbiddenError, InvalidRequestError, NotFoundError
from models import Budget, Category, Transaction, TransactionType
from money import ZERO, from_cents, quantize_amount, to_cents
from periods import (
    MAX_YEAR,
    MIN_YEAR,
    MonthPeriod,
    is_past_month,
    local_today,
    month_period,
    normalize_trend_months,
    resolve_month,
    trend_start,
)
from schemas import (
    BudgetAlertOut,
    BudgetIn,
    BudgetOut,
    CategoryExpenseOut,
    CategoryIn,
    CategoryWiseOut,
    MonthlySummaryOut,
    TopExpensesOut,
    TransactionIn,
    TransactionOut,
    TrendOut,
    TrendsOut,
)

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100

DEFAULT_TOP_EXPENSES = 10
MAX_TOP_EXPENSES = 50


def sum_transactions(
    session: Session,
    owner_id: int,
    *,
    year: int,
    month: int,
    category_id: Optional[int] = None,
    transaction_type: Optional[TransactionType] = None,
) -> Decimal:
    """Exact sum of the owner's non-deleted transactions in one calendar month.

    Omitting ``category_id`` or ``transaction_type`` aggregates across all of
    them. Returns ``Decimal("0.00")`` when nothing matches.
    """
    period = month_period(year, month)
    stmt = select(func.coalesce(func.sum(Transaction.amount_cents), 0)).where(
        Transaction.owner_id == owner_id,
        Transaction.deleted_at.is_(None),
        Transaction.date.between(period.start, period.end),
    )
    if category_id is not None:
        stmt = stmt.where(Transaction.category_id == category_id)
    if transaction_type is not None:
        stmt = stmt.where(Transaction.type == transaction_type)
    return from_cents(session.execute(stmt).scalar_one())


def spent_for_budget(
    session: Session, owner_id: int, category_id: int, year: int, month: int
) -> Decimal:
    return sum_transactions(
        session,
        owner_id,
        year=year,
        month=month,
        category_id=category_id,
        transaction_type=TransactionType.expense,
    )


def normalize_page_size(size: Optional[int]) -> int:
    if size is None or size < 1:
        return DEFAULT_PAGE_SIZE
    return min(size, MAX_PAGE_SIZE)


def normalize_top_limit(limit: Optional[int]) -> int:
    if limit is None or limit < 1:
        return DEFAULT_TOP_EXPENSES
    return min(limit, MAX_TOP_EXPENSES)


class CategoryService:
    def __init__(self, session: Session, owner_id: int) -> None:
        self.session = session
        self.owner_id = owner_id

    def _visible(self):
        return or_(Category.owner_id.is_(None), Category.owner_id == self.owner_id)

    def _name_taken(self, name: str, *, exclude_id: Optional[int] = None) -> bool:
        stmt = select(Category.id).where(
            self._visible(), func.lower(Category.name) == name.lower()
        )
        if exclude_id is not None:
            stmt = stmt.where(Category.id != exclude_id)
        return self.session.scalar(stmt.limit(1)) is not None

    def _active_transaction_count(self, category_id: int) -> int:
        stmt = select(func.count(Transaction.id)).where(
            Transaction.category_id == category_id,
            Transaction.deleted_at.is_(None),
        )
        return int(self.session.execute(stmt).scalar_one() or 0)

    def _commit_name(self, name: str) -> None:
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            raise ConflictError(
                f"Category with name '{name}' already exists"
            ) from exc

    def _owned(self, category_id: int, action: str) -> Category:
        category = self.session.get(Category, category_id)
        if not category:
            raise NotFoundError("Category not found")
        if category.is_system:
            raise ForbiddenError(f"Cannot {action} system categories")
        if category.owner_id != self.owner_id:
            raise ForbiddenError(f"Cannot {action} another owner's category")
        return category

    def list_available(
        self, transaction_type: Optional[TransactionType] = None
    ) -> list[Category]:
        stmt = (
            select(Category)
            .where(self._visible())
            .order_by(Category.owner_id.is_(None).desc(), Category.name)
        )
        if transaction_type:
            stmt = stmt.where(Category.type == transaction_type)
        return list(self.session.scalars(stmt).all())

    def get(self, category_id: int) -> Category:
        category = self.session.scalar(
            select(Category).where(Category.id == category_id, self._visible())
        )
        if not category:
            raise NotFoundError("Category not found or not available")
        return category

    def create(self, data: CategoryIn) -> Category:
        name = data.name.strip()
        if self._name_taken(name):
            raise ConflictError(f"Category with name '{name}' already exists")
        category = Category(owner_id=self.owner_id, name=name, type=data.type)
        self.session.add(category)
        self._commit_name(name)
        self.session.refresh(category)
        logger.info(
            f"category_created: owner_id={self.owner_id} category_id={category.id}"
        )
        return category

    def update(self, category_id: int, data: CategoryIn) -> Category:
        category = self._owned(category_id, "update")
        name = data.name.strip()
        if name.lower() != category.name.lower() and self._name_taken(
            name, exclude_id=category.id
        ):
            raise ConflictError(f"Category with name '{name}' already exists")

        if category.type != data.type:
            if self._active_transaction_count(category.id):
                raise InvalidRequestError(
                    "Cannot change category type as it has existing transactions"
                )
            has_budgets = self.session.scalar(
                select(Budget.id).where(Budget.category_id == category.id).limit(1)
            )
            if has_budgets is not None:
                raise InvalidRequestError(
                    "Cannot change category type as it has budgets"
                )

        category.name = name
        category.type = data.type
        self._commit_name(name)
        self.session.refresh(category)
        logger.info(
            f"category_updated: owner_id={self.owner_id} category_id={category.id}"
        )
        return category

    def delete(self, category_id: int) -> None:
        category = self._owned(category_id, "delete")
        count = self._active_transaction_count(category.id)
        if count:
            raise InvalidRequestError(
                f"Cannot delete category with {count} existing transaction(s)"
            )
        # Soft-deleted rows still reference the category.
        self.session.execute(
            delete(Transaction).where(Transaction.category_id == category.id)
        )
        self.session.execute(delete(Budget).where(Budget.category_id == category.id))
        self.session.delete(category)
        self.session.commit()
        logger.info(
            f"category_deleted: owner_id={self.owner_id} category_id={category_id}"
        )


@dataclass
class TransactionFilters:
    type: Optional[TransactionType] = None
    category_id: Optional[int] = None
    date_from: Optional[date] = None
    date_to: Optional[date] = None
    min_amount: Optional[Decimal] = None
    max_amount: Optional[Decimal] = None


@dataclass(frozen=True)
class TransactionPage:
    items: list[Transaction]
    page: int
    size: int
    total: int


class TransactionService:
    SORT_COLUMNS = {
        "date": Transaction.date,
        "amount": Transaction.amount_cents,
        "created_at": Transaction.created_at,
    }

    def __init__(self, session: Session, owner_id: int) -> None:
        self.session = session
        self.owner_id = owner_id

    def _validated_category(
        self, data: TransactionIn, today: Optional[date]
    ) -> Category:
        category = CategoryService(self.session, self.owner_id).get(data.category_id)
        if category.type != data.type:
            raise InvalidRequestError(
                f"Category type ({category.type.value}) does not match "
                f"transaction type ({data.type.value})"
            )
        if data.date > (today or local_today()):
            raise InvalidRequestError("Transaction date cannot be in the future")
        return category

    def create(self, data: TransactionIn, *, today: Optional[date] = None) -> Transaction:
        category = self._validated_category(data, today)
        txn = Transaction(
            owner_id=self.owner_id,
            category_id=category.id,
            type=data.type,
            amount_cents=to_cents(data.amount),
            date=data.date,
            description=data.description,
            payment_method=data.payment_method,
        )
        self.session.add(txn)
        self.session.commit()
        self.session.refresh(txn)
        logger.info(
            f"transaction_created: owner_id={self.owner_id} transaction_id={txn.id} "
            f"type={txn.type.value}"
        )
        return txn

    def get(self, transaction_id: int) -> Transaction:
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(
                Transaction.owner_id == self.owner_id,
                Transaction.id == transaction_id,
                Transaction.deleted_at.is_(None),
            )
        )
        txn = self.session.scalar(stmt)
        if not txn:
            raise NotFoundError("Transaction not found")
        return txn

    def update(
        self,
        transaction_id: int,
        data: TransactionIn,
        *,
        today: Optional[date] = None,
    ) -> Transaction:
        txn = self.get(transaction_id)
        category = self._validated_category(data, today)

        txn.category_id = category.id
        txn.category = category
        txn.type = data.type
        txn.amount_cents = to_cents(data.amount)
        txn.date = data.date
        txn.description = data.description
        txn.payment_method = data.payment_method

        self.session.commit()
        self.session.refresh(txn)
        logger.info(
            f"transaction_updated: owner_id={self.owner_id} transaction_id={txn.id}"
        )
        return txn

    def soft_delete(self, transaction_id: int) -> None:
        txn = self.get(transaction_id)
        txn.deleted_at = datetime.utcnow()
        self.session.commit()
        logger.info(
            f"transaction_deleted: owner_id={self.owner_id} transaction_id={txn.id}"
        )

    def list(
        self,
        filters: Optional[TransactionFilters] = None,
        *,
        sort_by: Optional[str] = None,
        sort_order: Optional[str] = None,
        page: int = 1,
        size: Optional[int] = DEFAULT_PAGE_SIZE,
    ) -> TransactionPage:
        filters = filters or TransactionFilters()
        if filters.date_from and filters.date_to and filters.date_from > filters.date_to:
            raise InvalidRequestError("Start date cannot be after end date")
        if (
            filters.min_amount is not None
            and filters.max_amount is not None
            and filters.min_amount > filters.max_amount
        ):
            raise InvalidRequestError(
                "Minimum amount cannot be greater than maximum amount"
            )

        size = normalize_page_size(size)
        page = max(page or 1, 1)

        conditions = [
            Transaction.owner_id == self.owner_id,
            Transaction.deleted_at.is_(None),
        ]
        if filters.type:
            conditions.append(Transaction.type == filters.type)
        if filters.category_id:
            conditions.append(Transaction.category_id == filters.category_id)
        if filters.date_from:
            conditions.append(Transaction.date >= filters.date_from)
        if filters.date_to:
            conditions.append(Transaction.date <= filters.date_to)
        if filters.min_amount is not None:
            conditions.append(Transaction.amount_cents >= to_cents(filters.min_amount))
        if filters.max_amount is not None:
            conditions.append(Transaction.amount_cents <= to_cents(filters.max_amount))

        total = int(
            self.session.execute(
                select(func.count(Transaction.id)).where(*conditions)
            ).scalar_one()
            or 0
        )

        column = self.SORT_COLUMNS.get(sort_by or "date", Transaction.date)
        ascending = (sort_order or "").lower() == "asc"
        order = (
            (column.asc(), Transaction.id.asc())
            if ascending
            else (column.desc(), Transaction.id.desc())
        )
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(*conditions)
            .order_by(*order)
            .offset((page - 1) * size)
            .limit(size)
        )
        items = self.session.scalars(stmt).all()
        return TransactionPage(items=list(items), page=page, size=size, total=total)


class BudgetService:
    def __init__(
        self,
        session: Session,
        owner_id: int,
        *,
        currency_symbol: Optional[str] = None,
    ) -> None:
        self.session = session
        self.owner_id = owner_id
        if currency_symbol is None:
            currency_symbol = get_settings().currency_symbol
        self.currency_symbol = currency_symbol

    def _find(self, category_id: int, month: int, year: int) -> Optional[Budget]:
        return self.session.scalar(
            select(Budget).where(
                Budget.owner_id == self.owner_id,
                Budget.category_id == category_id,
                Budget.month == month,
                Budget.year == year,
            )
        )

    def _owned(self, budget_id: int) -> Budget:
        budget = self.session.get(Budget, budget_id)
        if not budget or budget.owner_id != self.owner_id:
            raise NotFoundError("Budget not found")
        return budget

    def snapshot(self, budget: Budget) -> BudgetOut:
        spent = spent_for_budget(
            self.session, self.owner_id, budget.category_id, budget.year, budget.month
        )
        figures = derive_budget_figures(budget.amount, spent)
        return BudgetOut(
            id=budget.id,
            category_id=budget.category_id,
            category_name=budget.category.name,
            budget_amount=budget.amount,
            spent_amount=spent,
            remaining_amount=figures.remaining_amount,
            percentage_used=figures.percentage_used,
            month=budget.month,
            year=budget.year,
        )

    def set_budget(self, data: BudgetIn, *, today: Optional[date] = None) -> BudgetOut:
        if is_past_month(data.month, data.year, today=today):
            raise InvalidRequestError("Cannot set budget for past months")

        category = CategoryService(self.session, self.owner_id).get(data.category_id)
        if category.type != TransactionType.expense:
            raise InvalidRequestError("Budget can only be set for expense categories")

        amount_cents = to_cents(data.amount)
        budget = self._find(category.id, data.month, data.year)
        created = budget is None
        if budget is None:
            budget = Budget(
                owner_id=self.owner_id,
                category_id=category.id,
                amount_cents=amount_cents,
                month=data.month,
                year=data.year,
            )
            self.session.add(budget)
            try:
                self.session.flush()
            except IntegrityError:
                # Another writer inserted the same key first; update theirs.
                self.session.rollback()
                budget = self._find(category.id, data.month, data.year)
                if budget is None:
                    raise
                created = False
        budget.amount_cents = amount_cents

        self.session.commit()
        self.session.refresh(budget)
        logger.info(
            f"budget_set: owner_id={self.owner_id} category_id={category.id} "
            f"month={data.month} year={data.year} created={created}"
        )
        return self.snapshot(budget)

    def list_for_month(
        self,
        month: Optional[int] = None,
        year: Optional[int] = None,
        *,
        today: Optional[date] = None,
    ) -> list[BudgetOut]:
        period = resolve_month(month, year, today=today)
        budgets = self.session.scalars(
            select(Budget)
            .options(joinedload(Budget.category))
            .where(
                Budget.owner_id == self.owner_id,
                Budget.month == period.month,
                Budget.year == period.year,
            )
        ).all()
        budgets = sorted(budgets, key=lambda b: (b.category.name.lower(), b.id))
        return [self.snapshot(budget) for budget in budgets]

    def get(self, budget_id: int) -> BudgetOut:
        return self.snapshot(self._owned(budget_id))

    def update_amount(self, budget_id: int, amount: Optional[Decimal]) -> BudgetOut:
        if amount is None or amount <= 0:
            raise InvalidRequestError("Budget amount must be greater than 0")
        budget = self._owned(budget_id)
        budget.amount_cents = to_cents(amount)
        self.session.commit()
        self.session.refresh(budget)
        logger.info(f"budget_updated: owner_id={self.owner_id} budget_id={budget.id}")
        return self.snapshot(budget)

    def delete(self, budget_id: int) -> None:
        budget = self._owned(budget_id)
        self.session.delete(budget)
        self.session.commit()
        logger.info(f"budget_deleted: owner_id={self.owner_id} budget_id={budget_id}")

    def alerts(self, *, today: Optional[date] = None) -> list[BudgetAlertOut]:
        """Alerts for the current month's budgets that have reached 80% or more."""
        period = resolve_month(None, None, today=today)
        spent = func.coalesce(func.sum(Transaction.amount_cents), 0).label("spent_cents")
        stmt = (
            select(
                Budget.amount_cents.label("budget_cents"),
                Category.id.label("category_id"),
                Category.name.label("category_name"),
                spent,
            )
            .select_from(Budget)
            .join(Category, Category.id == Budget.category_id)
            .outerjoin(
                Transaction,
                and_(
                    Transaction.category_id == Budget.category_id,
                    Transaction.owner_id == Budget.owner_id,
                    Transaction.type == TransactionType.expense,
                    Transaction.deleted_at.is_(None),
                    Transaction.date.between(period.start, period.end),
                ),
            )
            .where(
                Budget.owner_id == self.owner_id,
                Budget.month == period.month,
                Budget.year == period.year,
            )
            .group_by(Budget.id, Budget.amount_cents, Category.id, Category.name)
            .order_by(Category.name, Budget.id)
        )

        alerts: list[BudgetAlertOut] = []
        for row in self.session.execute(stmt):
            alert = classify_budget(
                row.category_id,
                row.category_name,
                from_cents(row.budget_cents),
                from_cents(row.spent_cents),
                currency_symbol=self.currency_symbol,
            )
            if alert:
                alerts.append(BudgetAlertOut(**asdict(alert)))
        logger.info(
            f"budget_alerts: owner_id={self.owner_id} month={period.month} "
            f"year={period.year} alerts={len(alerts)}"
        )
        return alerts


class ReportService:
    def __init__(self, session: Session, owner_id: int) -> None:
        self.session = session
        self.owner_id = owner_id

    def _expenses_by_amount(self, period: MonthPeriod, limit: int) -> list[Transaction]:
        stmt = (
            select(Transaction)
            .options(joinedload(Transaction.category))
            .where(
                Transaction.owner_id == self.owner_id,
                Transaction.deleted_at.is_(None),
                Transaction.type == TransactionType.expense,
                Transaction.date.between(period.start, period.end),
            )
            .order_by(Transaction.amount_cents.desc(), Transaction.id.asc())
            .limit(limit)
        )
        return list(self.session.scalars(stmt).all())

    def monthly_summary(
        self, month: Optional[int], year: Optional[int]
    ) -> MonthlySummaryOut:
        if month is None or not 1 <= month <= 12:
            raise InvalidRequestError("Month must be between 1 and 12")
        if year is None or not MIN_YEAR <= year <= MAX_YEAR:
            raise InvalidRequestError(
                f"Year must be between {MIN_YEAR} and {MAX_YEAR}"
            )
        period = month_period(year, month)

        total_income = sum_transactions(
            self.session,
            self.owner_id,
            year=year,
            month=month,
            transaction_type=TransactionType.income,
        )
        total_expenses = sum_transactions(
            self.session,
            self.owner_id,
            year=year,
            month=month,
            transaction_type=TransactionType.expense,
        )

        count, total_cents = self.session.execute(
            select(
                func.count(Transaction.id),
                func.coalesce(func.sum(Transaction.amount_cents), 0),
            ).where(
                Transaction.owner_id == self.owner_id,
                Transaction.deleted_at.is_(None),
                Transaction.date.between(period.start, period.end),
            )
        ).one()
        count = int(count or 0)
        average = (
            quantize_amount(Decimal(int(total_cents)) / Decimal(count) / 100)
            if count
            else ZERO
        )

        largest = self._expenses_by_amount(period, 1)
        logger.info(
            f"report_monthly_summary: owner_id={self.owner_id} month={month} "
            f"year={year} transactions={count}"
        )
        return MonthlySummaryOut(
            month=month,
            year=year,
            total_income=total_income,
            total_expenses=total_expenses,
            net_savings=total_income - total_expenses,
            transaction_count=count,
            average_transaction_amount=average,
            largest_expense=TransactionOut.from_model(largest[0]) if largest else None,
        )

    def category_wise(
        self,
        month: Optional[int] = None,
        year: Optional[int] = None,
        *,
        today: Optional[date] = None,
    ) -> CategoryWiseOut:
        period = resolve_month(month, year, today=today)
        total_col = func.sum(Transaction.amount_cents)
        stmt = (
            select(
                Category.id.label("category_id"),
                Category.name.label("category_name"),
                total_col.label("total_cents"),
                func.count(Transaction.id).label("transaction_count"),
            )
            .select_from(Transaction)
            .join(Category, Category.id == Transaction.category_id)
            .where(
                Transaction.owner_id == self.owner_id,
                Transaction.deleted_at.is_(None),
                Transaction.type == TransactionType.expense,
                Transaction.date.between(period.start, period.end),
            )
            .group_by(Category.id, Category.name)
            .order_by(total_col.desc(), Category.name)
        )
        rows = self.session.execute(stmt).all()

        total_expenses = from_cents(sum(int(row.total_cents or 0) for row in rows))
        categories = []
        for row in rows:
            amount = from_cents(row.total_cents)
            categories.append(
                CategoryExpenseOut(
                    category_id=row.category_id,
                    category_name=row.category_name,
                    total_amount=amount,
                    transaction_count=int(row.transaction_count or 0),
                    percentage_of_total=percentage_of(amount, total_expenses),
                )
            )
        logger.info(
            f"report_category_wise: owner_id={self.owner_id} month={period.month} "
            f"year={period.year} categories={len(categories)}"
        )
        return CategoryWiseOut(
            month=period.month,
            year=period.year,
            total_expenses=total_expenses,
            categories=categories,
        )

    def trends(
        self, months: Optional[int] = None, *, today: Optional[date] = None
    ) -> TrendsOut:
        effective_months = normalize_trend_months(months)
        start = trend_start(effective_months, today=today)

        year_col = extract("year", Transaction.date).label("year")
        month_col = extract("month", Transaction.date).label("month")
        income_col = func.coalesce(
            func.sum(
                case(
                    (
                        Transaction.type == TransactionType.income,
                        Transaction.amount_cents,
                    ),
                    else_=0,
                )
            ),
            0,
        ).label("income_cents")
        expense_col = func.coalesce(
            func.sum(
                case(
                    (
                        Transaction.type == TransactionType.expense,
                        Transaction.amount_cents,
                    ),
                    else_=0,
                )
            ),
            0,
        ).label("expense_cents")
        stmt = (
            select(year_col, month_col, income_col, expense_col)
            .where(
                Transaction.owner_id == self.owner_id,
                Transaction.deleted_at.is_(None),
                Transaction.date >= start,
            )
            .group_by(year_col, month_col)
        )

        trends = []
        for row in self.session.execute(stmt):
            income = from_cents(row.income_cents)
            expenses = from_cents(row.expense_cents)
            trends.append(
                TrendOut(
                    month=int(row.month),
                    year=int(row.year),
                    total_income=income,
                    total_expenses=expenses,
                    net_savings=income - expenses,
                )
            )
        trends.sort(key=lambda t: (t.year, t.month), reverse=True)
        logger.info(
            f"report_trends: owner_id={self.owner_id} months={effective_months} "
            f"start={start.isoformat()} buckets={len(trends)}"
        )
        return TrendsOut(months=effective_months, start_date=start, trends=trends)

    def top_expenses(
        self,
        limit: Optional[int] = None,
        month: Optional[int] = None,
        year: Optional[int] = None,
        *,
        today: Optional[date] = None,
    ) -> TopExpensesOut:
        effective_limit = normalize_top_limit(limit)
        period = resolve_month(month, year, today=today)
        rows = self._expenses_by_amount(period, effective_limit)
        logger.info(
            f"report_top_expenses: owner_id={self.owner_id} month={period.month} "
            f"year={period.year} limit={effective_limit} returned={len(rows)}"
        )
        return TopExpensesOut(
            month=period.month,
            year=period.year,
            limit=effective_limit,
            top_expenses=[TransactionOut.from_model(txn) for txn in rows],
        )
