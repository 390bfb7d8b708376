import logging
from dataclasses import asdict
from datetime import date
from typing import Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request
from fastapi.responses import JSONResponse, Response
from sqlalchemy.orm import Session

from config import get_settings
from csv_utils import export_transactions
from database import dispose_engine, get_session_factory, init_engine
from identity import read_user_token
from models import TransactionType
from periods import Period, resolve_period
from schemas import (
    BudgetIn,
    BudgetOut,
    BudgetOverviewOut,
    BudgetStatusOut,
    BudgetUpdate,
    SummaryOut,
    TransactionIn,
    TransactionOut,
    TransactionUpdate,
)
from services import (
    BudgetService,
    BudgetView,
    NotFoundError,
    SORT_KEYS,
    SummaryService,
    TransactionFilters,
    TransactionService,
    local_now,
)
from validation import ValidationError


logger = logging.getLogger(__name__)

app = FastAPI(title="Budget Ledger")


@app.on_event("startup")
def startup_event():
    settings = get_settings()
    logging.basicConfig(level=settings.log_level)
    init_engine(settings.database_url)
    logger.info("Budget ledger started")


@app.on_event("shutdown")
def shutdown_event():
    dispose_engine()


@app.exception_handler(ValidationError)
def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=400,
        content={"detail": exc.message, "suggestions": exc.suggestions},
    )


def budget_out(view: BudgetView) -> BudgetOut:
    return BudgetOut(
        id=view.id,
        category=view.category,
        limit_cents=view.limit_cents,
        icon=view.icon,
        color=view.color,
        spent_cents=view.spent_cents,
        remaining_cents=view.remaining_cents,
        percentage=view.percentage,
        over_budget=view.over_budget,
    )


def get_db():
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()


def current_user_id(x_user_token: Optional[str] = Header(default=None)) -> int:
    settings = get_settings()
    if x_user_token:
        user_id = read_user_token(x_user_token)
        if user_id is None:
            raise HTTPException(status_code=401, detail="Invalid user token")
        return user_id
    if settings.single_user:
        return settings.default_user_id
    raise HTTPException(status_code=401, detail="Missing user token")


def period_from_request(request: Request) -> Period:
    period_slug = request.query_params.get("period")
    start = request.query_params.get("start")
    end = request.query_params.get("end")
    try:
        return resolve_period(period_slug, start, end, today=local_now().date())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def filters_from_request(request: Request) -> TransactionFilters:
    type_param = request.query_params.get("type")
    txn_type = None
    if type_param and type_param != "all":
        try:
            txn_type = TransactionType(type_param)
        except ValueError as exc:
            raise HTTPException(status_code=400, detail="Unknown type") from exc
    category = request.query_params.get("category")
    if category == "all":
        category = None
    sort = request.query_params.get("sort") or "date-desc"
    if sort not in SORT_KEYS:
        raise HTTPException(status_code=400, detail="Unknown sort")
    return TransactionFilters(
        type=txn_type,
        category=category or None,
        query=request.query_params.get("q") or None,
        sort=sort,
    )


@app.get("/healthz")
def healthz():
    return {"status": "ok"}


@app.get("/api/transactions")
def api_transactions(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    period = period_from_request(request)
    filters = filters_from_request(request)
    offset = (page - 1) * limit
    service = TransactionService(db, user_id)
    items = service.list(period, filters, limit=limit + 1, offset=offset)
    has_more = len(items) > limit
    items = items[:limit]
    return {
        "items": [TransactionOut.model_validate(txn) for txn in items],
        "totals": service.totals(period, filters),
        "page": page,
        "limit": limit,
        "has_more": has_more,
    }


@app.post("/api/transactions", status_code=201, response_model=TransactionOut)
def create_transaction(
    data: TransactionIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    return TransactionService(db, user_id).create(data)


@app.get("/api/transactions/export.csv")
def export_transactions_endpoint(
    db: Session = Depends(get_db), user_id: int = Depends(current_user_id)
):
    transactions = TransactionService(db, user_id).list_all()
    try:
        content = export_transactions(transactions)
    except Exception as exc:
        logging.exception("Error exporting transactions")
        raise HTTPException(status_code=500, detail=str(exc)) from exc
    filename = f"transactions-{date.today().isoformat()}.csv"
    logging.info(f"export_csv: user_id={user_id} rows={len(transactions)}")
    return Response(
        content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/api/transactions/{transaction_id}", response_model=TransactionOut)
def get_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    try:
        return TransactionService(db, user_id).get(transaction_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.put("/api/transactions/{transaction_id}", response_model=TransactionOut)
def update_transaction(
    transaction_id: int,
    data: TransactionUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    try:
        return TransactionService(db, user_id).update(transaction_id, data)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@app.delete("/api/transactions/{transaction_id}")
def delete_transaction(
    transaction_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    try:
        TransactionService(db, user_id).delete(transaction_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"message": "Transaction deleted successfully"}


@app.get("/api/budgets", response_model=list[BudgetOut])
def list_budgets(
    db: Session = Depends(get_db), user_id: int = Depends(current_user_id)
):
    views = BudgetService(db, user_id).list_with_spent(local_now())
    return [budget_out(view) for view in views]


@app.get("/api/budgets/overview", response_model=BudgetOverviewOut)
def budgets_overview(
    db: Session = Depends(get_db), user_id: int = Depends(current_user_id)
):
    overview = BudgetService(db, user_id).overview(local_now())
    return BudgetOverviewOut(
        total_limit_cents=overview["total_limit_cents"],
        total_spent_cents=overview["total_spent_cents"],
        over_budget_count=overview["over_budget_count"],
        budgets=[budget_out(view) for view in overview["budgets"]],
    )


@app.post("/api/budgets", status_code=201, response_model=BudgetOut)
def create_budget(
    data: BudgetIn,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    service = BudgetService(db, user_id)
    budget = service.create(data)
    return budget_out(service.get_with_spent(budget.id, local_now()))


@app.get("/api/budgets/{budget_id}", response_model=BudgetOut)
def get_budget(
    budget_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    try:
        view = BudgetService(db, user_id).get_with_spent(budget_id, local_now())
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return budget_out(view)


@app.put("/api/budgets/{budget_id}", response_model=BudgetOut)
def update_budget(
    budget_id: int,
    data: BudgetUpdate,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    service = BudgetService(db, user_id)
    try:
        service.update(budget_id, data)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return budget_out(service.get_with_spent(budget_id, local_now()))


@app.delete("/api/budgets/{budget_id}")
def delete_budget(
    budget_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    try:
        BudgetService(db, user_id).delete(budget_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"message": "Budget deleted successfully"}


@app.get("/api/summary", response_model=SummaryOut)
def api_summary(
    window_months: Optional[int] = Query(None, ge=1, le=120),
    db: Session = Depends(get_db),
    user_id: int = Depends(current_user_id),
):
    window = window_months or get_settings().summary_window_months
    summary, statuses = SummaryService(db, user_id).summary(window, local_now())
    return SummaryOut(
        window_months=window,
        monthly_income_cents=summary.monthly_income_cents,
        monthly_expenses_cents=summary.monthly_expenses_cents,
        savings_rate=summary.savings_rate,
        category_spending=summary.category_spending,
        total_transactions=summary.total_transactions,
        budget_status=[BudgetStatusOut(**asdict(s)) for s in statuses],
    )


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
