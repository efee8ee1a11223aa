import logging
from datetime import date
from decimal import Decimal
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Response
from sqlalchemy.orm import Session

from config import get_settings
from database import get_db
from errors import (
    ConflictError,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
    ServiceError,
)
from models import TransactionType
from periods import local_today, normalize_trend_months, resolve_month, trend_start
from report_cache import ReportCache
from schemas import (
    BudgetAlertOut,
    BudgetAmountIn,
    BudgetIn,
    BudgetOut,
    CategoryIn,
    CategoryOut,
    CategoryWiseOut,
    MonthlySummaryOut,
    TopExpensesOut,
    TransactionIn,
    TransactionOut,
    TransactionPageOut,
    TrendsOut,
)
from services import (
    BudgetService,
    CategoryService,
    ReportService,
    TransactionFilters,
    TransactionService,
    normalize_top_limit,
)
from tokens import resolve_access_token

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Finance Tracker")
report_cache = ReportCache(settings.report_cache_ttl_secs)

ERROR_STATUS: dict[type[ServiceError], int] = {
    NotFoundError: 404,
    InvalidRequestError: 400,
    ForbiddenError: 403,
    ConflictError: 409,
}


def http_error(exc: ServiceError) -> HTTPException:
    status = next(
        (code for kind, code in ERROR_STATUS.items() if isinstance(exc, kind)), 400
    )
    logger.warning(f"request_rejected: status={status} detail={exc}")
    return HTTPException(status_code=status, detail=str(exc))


def current_owner_id(authorization: Optional[str] = Header(default=None)) -> int:
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        raise HTTPException(status_code=401, detail="Missing bearer token")
    owner_id = resolve_access_token(token.strip())
    if owner_id is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return owner_id


@app.get("/health")
def health():
    return {"status": "ok"}


# Categories


@app.get("/api/categories", response_model=list[CategoryOut])
def list_categories(
    type: Optional[TransactionType] = None,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    categories = CategoryService(db, owner_id).list_available(type)
    return [CategoryOut.from_model(c) for c in categories]


@app.get("/api/categories/{category_id}", response_model=CategoryOut)
def get_category(
    category_id: int,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    try:
        category = CategoryService(db, owner_id).get(category_id)
    except ServiceError as exc:
        raise http_error(exc) from exc
    return CategoryOut.from_model(category)


@app.post("/api/categories", response_model=CategoryOut, status_code=201)
def create_category(
    data: CategoryIn,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    try:
        category = CategoryService(db, owner_id).create(data)
    except ServiceError as exc:
        raise http_error(exc) from exc
    return CategoryOut.from_model(category)


@app.put("/api/categories/{category_id}", response_model=CategoryOut)
def update_category(
    category_id: int,
    data: CategoryIn,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    try:
        category = CategoryService(db, owner_id).update(category_id, data)
    except ServiceError as exc:
        raise http_error(exc) from exc
    report_cache.invalidate_owner(owner_id)
    return CategoryOut.from_model(category)


@app.delete("/api/categories/{category_id}", status_code=204)
def delete_category(
    category_id: int,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    try:
        CategoryService(db, owner_id).delete(category_id)
    except ServiceError as exc:
        raise http_error(exc) from exc
    report_cache.invalidate_owner(owner_id)
    return Response(status_code=204)


# Transactions


@app.get("/api/transactions", response_model=TransactionPageOut)
def list_transactions(
    type: Optional[TransactionType] = None,
    category_id: Optional[int] = None,
    date_from: Optional[date] = None,
    date_to: Optional[date] = None,
    min_amount: Optional[Decimal] = None,
    max_amount: Optional[Decimal] = None,
    sort_by: Optional[str] = None,
    sort_order: Optional[str] = None,
    page: int = 1,
    size: int = 20,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    filters = TransactionFilters(
        type=type,
        category_id=category_id,
        date_from=date_from,
        date_to=date_to,
        min_amount=min_amount,
        max_amount=max_amount,
    )
    try:
        result = TransactionService(db, owner_id).list(
            filters, sort_by=sort_by, sort_order=sort_order, page=page, size=size
        )
    except ServiceError as exc:
        raise http_error(exc) from exc
    return TransactionPageOut(
        items=[TransactionOut.from_model(txn) for txn in result.items],
        page=result.page,
        size=result.size,
        total=result.total,
    )


@app.get("/api/transactions/{transaction_id}", response_model=TransactionOut)
def get_transaction(
    transaction_id: int,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    try:
        txn = TransactionService(db, owner_id).get(transaction_id)
    except ServiceError as exc:
        raise http_error(exc) from exc
    return TransactionOut.from_model(txn)


@app.post("/api/transactions", response_model=TransactionOut, status_code=201)
def create_transaction(
    data: TransactionIn,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    try:
        txn = TransactionService(db, owner_id).create(data, today=local_today())
    except ServiceError as exc:
        raise http_error(exc) from exc
    report_cache.invalidate_owner(owner_id)
    return TransactionOut.from_model(txn)


@app.put("/api/transactions/{transaction_id}", response_model=TransactionOut)
def update_transaction(
    transaction_id: int,
    data: TransactionIn,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    try:
        txn = TransactionService(db, owner_id).update(
            transaction_id, data, today=local_today()
        )
    except ServiceError as exc:
        raise http_error(exc) from exc
    report_cache.invalidate_owner(owner_id)
    return TransactionOut.from_model(txn)


@app.delete("/api/transactions/{transaction_id}", status_code=204)
def delete_transaction(
    transaction_id: int,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    try:
        TransactionService(db, owner_id).soft_delete(transaction_id)
    except ServiceError as exc:
        raise http_error(exc) from exc
    report_cache.invalidate_owner(owner_id)
    return Response(status_code=204)


# Budgets


@app.post("/api/budgets", response_model=BudgetOut, status_code=201)
def set_budget(
    data: BudgetIn,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    try:
        return BudgetService(db, owner_id).set_budget(data, today=local_today())
    except ServiceError as exc:
        raise http_error(exc) from exc


@app.get("/api/budgets", response_model=list[BudgetOut])
def list_budgets(
    month: Optional[int] = None,
    year: Optional[int] = None,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    return BudgetService(db, owner_id).list_for_month(month, year, today=local_today())


@app.get("/api/budgets/alerts", response_model=list[BudgetAlertOut])
def budget_alerts(
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    return BudgetService(db, owner_id).alerts(today=local_today())


@app.get("/api/budgets/{budget_id}", response_model=BudgetOut)
def get_budget(
    budget_id: int,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    try:
        return BudgetService(db, owner_id).get(budget_id)
    except ServiceError as exc:
        raise http_error(exc) from exc


@app.put("/api/budgets/{budget_id}", response_model=BudgetOut)
def update_budget(
    budget_id: int,
    data: BudgetAmountIn,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    try:
        return BudgetService(db, owner_id).update_amount(budget_id, data.amount)
    except ServiceError as exc:
        raise http_error(exc) from exc


@app.delete("/api/budgets/{budget_id}", status_code=204)
def delete_budget(
    budget_id: int,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    try:
        BudgetService(db, owner_id).delete(budget_id)
    except ServiceError as exc:
        raise http_error(exc) from exc
    return Response(status_code=204)


# Reports


@app.get("/api/reports/monthly-summary", response_model=MonthlySummaryOut)
def monthly_summary(
    month: int,
    year: int,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    try:
        return report_cache.get_or_compute(
            owner_id,
            "monthly_summary",
            (month, year),
            lambda: ReportService(db, owner_id).monthly_summary(month, year),
        )
    except ServiceError as exc:
        raise http_error(exc) from exc


@app.get("/api/reports/category-wise", response_model=CategoryWiseOut)
def category_wise(
    month: Optional[int] = None,
    year: Optional[int] = None,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    period = resolve_month(month, year, today=local_today())
    return report_cache.get_or_compute(
        owner_id,
        "category_wise",
        (period.month, period.year),
        lambda: ReportService(db, owner_id).category_wise(period.month, period.year),
    )


@app.get("/api/reports/trends", response_model=TrendsOut)
def trends(
    months: Optional[int] = 6,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    today = local_today()
    effective_months = normalize_trend_months(months)
    return report_cache.get_or_compute(
        owner_id,
        "trends",
        (effective_months, trend_start(effective_months, today=today)),
        lambda: ReportService(db, owner_id).trends(effective_months, today=today),
    )


@app.get("/api/reports/top-expenses", response_model=TopExpensesOut)
def top_expenses(
    limit: Optional[int] = 10,
    month: Optional[int] = None,
    year: Optional[int] = None,
    owner_id: int = Depends(current_owner_id),
    db: Session = Depends(get_db),
):
    effective_limit = normalize_top_limit(limit)
    period = resolve_month(month, year, today=local_today())
    return report_cache.get_or_compute(
        owner_id,
        "top_expenses",
        (effective_limit, period.month, period.year),
        lambda: ReportService(db, owner_id).top_expenses(
            effective_limit, period.month, period.year
        ),
    )


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
