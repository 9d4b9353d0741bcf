import logging
from typing import Iterator, Optional, Union

from fastapi import Depends, FastAPI, Header, HTTPException, Response
from sqlalchemy.orm import Session

from config import get_settings
from database import SessionLocal
from errors import TransactionNotFound, TransactionValidationError
from installments import InstallmentPlan
from periods import current_month_period
from repository import SqlTransactionRepository
from schemas import (
    CategoryRankingOut,
    DashboardOut,
    HealthCheck,
    InstallmentPlanOut,
    ProjectionOut,
    TransactionIn,
    TransactionOut,
    TransactionPageOut,
    TransactionPatch,
)
from services import MetricsService, TransactionService

settings = get_settings()
logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="Ledger API")


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_repository(db: Session = Depends(get_db)) -> SqlTransactionRepository:
    return SqlTransactionRepository(db)


def get_current_user_id(x_user_id: Optional[int] = Header(default=None)) -> int:
    # Set by the upstream auth layer once the caller is authenticated.
    if x_user_id is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return x_user_id


def _out(txn) -> TransactionOut:
    return TransactionOut.model_validate(txn)


def _client_error(exc: ValueError) -> HTTPException:
    if isinstance(exc, TransactionNotFound):
        return HTTPException(status_code=404, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))


@app.get("/health", response_model=HealthCheck)
def health_check():
    return HealthCheck(service_name="ledger-api", status="ok")


@app.post("/transactions", status_code=201)
def create_transaction(
    data: TransactionIn,
    repo: SqlTransactionRepository = Depends(get_repository),
    user_id: int = Depends(get_current_user_id),
) -> Union[TransactionOut, InstallmentPlanOut]:
    try:
        result = TransactionService(repo, user_id).create(data)
    except TransactionValidationError as exc:
        raise _client_error(exc) from exc
    if isinstance(result, InstallmentPlan):
        return InstallmentPlanOut(
            parent=_out(result.parent),
            installments=[_out(txn) for txn in result.installments],
        )
    return _out(result)


@app.get("/transactions")
def list_transactions(
    page: Optional[int] = None,
    limit: Optional[int] = None,
    repo: SqlTransactionRepository = Depends(get_repository),
    user_id: int = Depends(get_current_user_id),
) -> Union[TransactionPageOut, list[TransactionOut]]:
    service = TransactionService(repo, user_id)
    if page is None and limit is None:
        return [_out(txn) for txn in service.list()]
    try:
        result = service.list_paged(page if page is not None else 1, limit)
    except TransactionValidationError as exc:
        raise _client_error(exc) from exc
    return TransactionPageOut(
        page=result.page,
        limit=result.limit,
        total=result.total,
        total_pages=result.total_pages,
        data=[_out(txn) for txn in result.data],
    )


@app.get("/transactions/dashboard", response_model=DashboardOut)
def current_dashboard(
    repo: SqlTransactionRepository = Depends(get_repository),
    user_id: int = Depends(get_current_user_id),
):
    period = current_month_period()
    return dashboard(period.start.year, period.start.month, repo, user_id)


@app.get("/transactions/dashboard/{year}/{month}", response_model=DashboardOut)
@app.get("/transactions/summary/{year}/{month}", response_model=DashboardOut)
def dashboard(
    year: int,
    month: int,
    repo: SqlTransactionRepository = Depends(get_repository),
    user_id: int = Depends(get_current_user_id),
):
    try:
        result = MetricsService(repo, user_id).dashboard(year, month)
    except TransactionValidationError as exc:
        raise _client_error(exc) from exc
    return DashboardOut(
        total_income=result.total_income,
        total_expense=result.total_expense,
        total_balance=result.total_balance,
    )


@app.get(
    "/transactions/projection-monthly/{year}/{month}", response_model=ProjectionOut
)
def projection(
    year: int,
    month: int,
    repo: SqlTransactionRepository = Depends(get_repository),
    user_id: int = Depends(get_current_user_id),
):
    try:
        result = MetricsService(repo, user_id).projection(year, month)
    except TransactionValidationError as exc:
        raise _client_error(exc) from exc
    return ProjectionOut(
        income_projected=result.income_projected,
        expense_projected=result.expense_projected,
        balance_projected=result.balance_projected,
    )


@app.get(
    "/transactions/category-most-expensive",
    response_model=Optional[CategoryRankingOut],
)
def category_most_expensive(
    repo: SqlTransactionRepository = Depends(get_repository),
    user_id: int = Depends(get_current_user_id),
):
    ranking = MetricsService(repo, user_id).top_expense_category()
    if ranking is None:
        return None
    return CategoryRankingOut(category=ranking.category, total=ranking.total)


@app.get("/transactions/{transaction_id}", response_model=TransactionOut)
def get_transaction(
    transaction_id: int,
    repo: SqlTransactionRepository = Depends(get_repository),
    user_id: int = Depends(get_current_user_id),
):
    try:
        return _out(TransactionService(repo, user_id).get(transaction_id))
    except TransactionNotFound as exc:
        raise _client_error(exc) from exc


@app.patch("/transactions/{transaction_id}", response_model=TransactionOut)
def update_transaction(
    transaction_id: int,
    patch: TransactionPatch,
    repo: SqlTransactionRepository = Depends(get_repository),
    user_id: int = Depends(get_current_user_id),
):
    try:
        return _out(TransactionService(repo, user_id).update(transaction_id, patch))
    except (TransactionNotFound, TransactionValidationError) as exc:
        raise _client_error(exc) from exc


@app.delete("/transactions/{transaction_id}", status_code=204)
def delete_transaction(
    transaction_id: int,
    repo: SqlTransactionRepository = Depends(get_repository),
    user_id: int = Depends(get_current_user_id),
):
    try:
        TransactionService(repo, user_id).delete(transaction_id)
    except TransactionNotFound as exc:
        raise _client_error(exc) from exc
    return Response(status_code=204)


def main():
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    main()
