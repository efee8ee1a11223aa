from datetime import date, datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session

from database import Base
from errors import InvalidRequestError
from models import Category, Transaction, TransactionType
from money import to_cents
from services import ReportService

TODAY = date(2025, 6, 18)
OWNER = 1


def _session() -> Session:
    engine = create_engine("sqlite:///:memory:")
    Base.metadata.create_all(engine)
    return Session(engine, expire_on_commit=False)


def _category(session: Session, name: str, type_: TransactionType) -> Category:
    category = Category(owner_id=None, name=name, type=type_)
    session.add(category)
    session.commit()
    return category


def _add(
    session: Session,
    category: Category,
    amount: str,
    on: date,
    *,
    owner_id: int = OWNER,
    deleted: bool = False,
) -> Transaction:
    txn = Transaction(
        owner_id=owner_id,
        category_id=category.id,
        type=category.type,
        amount_cents=to_cents(amount),
        date=on,
        deleted_at=datetime(2025, 6, 1) if deleted else None,
    )
    session.add(txn)
    session.commit()
    return txn


def test_monthly_summary_totals() -> None:
    with _session() as session:
        salary = _category(session, "Salary", TransactionType.income)
        food = _category(session, "Food", TransactionType.expense)
        rent = _category(session, "Rent", TransactionType.expense)
        _add(session, salary, "5000.00", date(2025, 3, 1))
        _add(session, food, "400.00", date(2025, 3, 5))
        largest = _add(session, rent, "1000.00", date(2025, 3, 31))
        _add(session, food, "250.00", date(2025, 3, 10))
        _add(session, food, "9999.00", date(2025, 3, 10), deleted=True)
        _add(session, food, "9999.00", date(2025, 4, 1))
        _add(session, food, "9999.00", date(2025, 3, 2), owner_id=2)

        summary = ReportService(session, OWNER).monthly_summary(3, 2025)
        assert summary.total_income == Decimal("5000.00")
        assert summary.total_expenses == Decimal("1650.00")
        assert summary.net_savings == Decimal("3350.00")
        assert summary.transaction_count == 4
        assert summary.average_transaction_amount == Decimal("1662.50")
        assert summary.largest_expense.id == largest.id
        assert summary.largest_expense.category_name == "Rent"


def test_monthly_summary_average_rounds_to_cents() -> None:
    with _session() as session:
        food = _category(session, "Food", TransactionType.expense)
        for amount in ("10.00", "10.00", "10.01"):
            _add(session, food, amount, date(2025, 2, 1))

        summary = ReportService(session, OWNER).monthly_summary(2, 2025)
        assert summary.average_transaction_amount == Decimal("10.00")
        assert summary.net_savings == Decimal("-30.01")


def test_monthly_summary_of_empty_month() -> None:
    with _session() as session:
        summary = ReportService(session, OWNER).monthly_summary(1, 2024)
        assert summary.total_income == Decimal("0.00")
        assert summary.total_expenses == Decimal("0.00")
        assert summary.transaction_count == 0
        assert summary.average_transaction_amount == Decimal("0.00")
        assert summary.largest_expense is None


@pytest.mark.parametrize(
    "month, year",
    [(0, 2025), (13, 2025), (None, 2025), (6, 1999), (6, 2101), (6, None)],
)
def test_monthly_summary_rejects_out_of_range(month, year) -> None:
    with _session() as session:
        with pytest.raises(InvalidRequestError):
            ReportService(session, OWNER).monthly_summary(month, year)


def test_category_wise_breakdown() -> None:
    with _session() as session:
        food = _category(session, "Food", TransactionType.expense)
        rent = _category(session, "Rent", TransactionType.expense)
        travel = _category(session, "Travel", TransactionType.expense)
        salary = _category(session, "Salary", TransactionType.income)
        _add(session, rent, "600.00", date(2025, 6, 1))
        _add(session, food, "200.00", date(2025, 6, 2))
        _add(session, food, "100.00", date(2025, 6, 3))
        _add(session, travel, "100.00", date(2025, 6, 4))
        _add(session, salary, "3000.00", date(2025, 6, 1))
        _add(session, travel, "500.00", date(2025, 5, 4))

        report = ReportService(session, OWNER).category_wise(today=TODAY)
        assert (report.month, report.year) == (6, 2025)
        assert report.total_expenses == Decimal("1000.00")
        assert [c.category_name for c in report.categories] == [
            "Rent",
            "Food",
            "Travel",
        ]
        assert sum(c.total_amount for c in report.categories) == report.total_expenses
        assert [c.percentage_of_total for c in report.categories] == [60.0, 30.0, 10.0]
        assert report.categories[1].transaction_count == 2

        may = ReportService(session, OWNER).category_wise(5, 2025, today=TODAY)
        assert [c.category_name for c in may.categories] == ["Travel"]
        assert may.categories[0].percentage_of_total == 100.0


def test_category_wise_percentages_sum_close_to_hundred() -> None:
    with _session() as session:
        names = ["A1", "B2", "C3"]
        for name in names:
            category = _category(session, name, TransactionType.expense)
            _add(session, category, "1.00", date(2025, 6, 1))

        report = ReportService(session, OWNER).category_wise(today=TODAY)
        total = sum(c.percentage_of_total for c in report.categories)
        assert abs(total - 100.0) <= 0.01 * len(names)


def test_category_wise_empty_month() -> None:
    with _session() as session:
        report = ReportService(session, OWNER).category_wise(today=TODAY)
        assert report.total_expenses == Decimal("0.00")
        assert report.categories == []


def test_trends_group_by_month_newest_first() -> None:
    with _session() as session:
        salary = _category(session, "Salary", TransactionType.income)
        food = _category(session, "Food", TransactionType.expense)
        _add(session, salary, "3000.00", date(2025, 6, 1))
        _add(session, food, "500.00", date(2025, 6, 10))
        _add(session, food, "700.00", date(2025, 4, 10))
        _add(session, salary, "3000.00", date(2025, 1, 1))
        _add(session, salary, "3000.00", date(2024, 12, 31))
        _add(session, food, "100.00", date(2025, 6, 11), deleted=True)

        report = ReportService(session, OWNER).trends(today=TODAY)
        assert report.months == 6
        assert report.start_date == date(2025, 1, 1)
        assert [(t.year, t.month) for t in report.trends] == [
            (2025, 6),
            (2025, 4),
            (2025, 1),
        ]
        june = report.trends[0]
        assert june.total_income == Decimal("3000.00")
        assert june.total_expenses == Decimal("500.00")
        assert june.net_savings == Decimal("2500.00")
        april = report.trends[1]
        assert april.total_income == Decimal("0.00")
        assert april.net_savings == Decimal("-700.00")


def test_trends_clamp_months() -> None:
    with _session() as session:
        food = _category(session, "Food", TransactionType.expense)
        _add(session, food, "10.00", date(2024, 7, 1))
        _add(session, food, "10.00", date(2024, 6, 30))

        reports = ReportService(session, OWNER)
        clamped = reports.trends(15, today=TODAY)
        assert clamped.months == 12
        assert clamped.start_date == date(2024, 7, 1)
        assert clamped == reports.trends(12, today=TODAY)
        assert [(t.year, t.month) for t in clamped.trends] == [(2024, 7)]

        assert reports.trends(0, today=TODAY).months == 6
        assert reports.trends(-3, today=TODAY).start_date == date(2025, 1, 1)


def test_top_expenses_ordering_and_limits() -> None:
    with _session() as session:
        food = _category(session, "Food", TransactionType.expense)
        salary = _category(session, "Salary", TransactionType.income)
        session.add_all(
            Transaction(
                owner_id=OWNER,
                category_id=food.id,
                type=TransactionType.expense,
                amount_cents=(i + 1) * 100,
                date=date(2025, 6, 1 + i % 28),
            )
            for i in range(60)
        )
        session.commit()
        _add(session, salary, "100000.00", date(2025, 6, 1))
        _add(session, food, "100000.00", date(2025, 5, 1))

        reports = ReportService(session, OWNER)
        top = reports.top_expenses(3, today=TODAY)
        assert top.limit == 3
        assert [t.amount for t in top.top_expenses] == [
            Decimal("60.00"),
            Decimal("59.00"),
            Decimal("58.00"),
        ]

        assert len(reports.top_expenses(100, today=TODAY).top_expenses) == 50
        assert reports.top_expenses(100, today=TODAY).limit == 50
        assert len(reports.top_expenses(0, today=TODAY).top_expenses) == 10
        assert len(reports.top_expenses(None, today=TODAY).top_expenses) == 10

        may = reports.top_expenses(5, 5, 2025, today=TODAY)
        assert [t.amount for t in may.top_expenses] == [Decimal("100000.00")]


def test_top_expenses_ties_break_by_id() -> None:
    with _session() as session:
        food = _category(session, "Food", TransactionType.expense)
        first = _add(session, food, "50.00", date(2025, 6, 2))
        second = _add(session, food, "50.00", date(2025, 6, 1))

        top = ReportService(session, OWNER).top_expenses(2, today=TODAY)
        assert [t.id for t in top.top_expenses] == [first.id, second.id]
