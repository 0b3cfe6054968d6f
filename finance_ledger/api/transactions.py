"""
Transaction API endpoints.

The API layer is thin - it handles HTTP concerns and commits
or rolls back; all business rules live in the services.
"""

from datetime import date
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.orm import Session

from finance_ledger.api.dependencies import (
    commit,
    get_owner_id,
    require_operator,
    to_http_exception,
)
from finance_ledger.exceptions import LedgerError
from finance_ledger.models.base import get_db
from finance_ledger.services.recurrence_service import RecurrenceEngine
from finance_ledger.services.transaction_service import (
    TransactionResult,
    TransactionService,
)
from finance_ledger.schemas.transaction import (
    DeleteResultResponse,
    RunDueResponse,
    ScanRequest,
    TransactionResponse,
    TransactionResultResponse,
)

router = APIRouter(prefix="/transactions", tags=["Transactions"])
recurring_router = APIRouter(
    prefix="/recurring",
    tags=["Recurring"],
    dependencies=[Depends(require_operator)],
)


def _result(result: TransactionResult) -> TransactionResultResponse:
    return TransactionResultResponse(
        transaction=TransactionResponse.from_model(result.transaction),
        account_id=result.account_id,
    )


@router.post("", response_model=TransactionResultResponse, status_code=201)
def create_transaction(
    payload: dict[str, Any] = Body(...),
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """
    Create a transaction from the form payload.

    The payload is validated by the ledger (not by FastAPI) so
    every field error comes back at once.
    """
    service = TransactionService(db)
    try:
        result = service.create_transaction(payload, owner_id)
        commit(db)
        return _result(result)
    except LedgerError as e:
        db.rollback()
        raise to_http_exception(e)


@router.post("/scan", response_model=TransactionResultResponse, status_code=201)
def create_from_scan(
    request: ScanRequest,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """Create a transaction prefilled from a receipt scan."""
    service = TransactionService(db)
    try:
        result = service.create_from_extraction(
            request.extracted, request.payload, owner_id
        )
        commit(db)
        return _result(result)
    except LedgerError as e:
        db.rollback()
        raise to_http_exception(e)


@router.get("/{transaction_id}", response_model=TransactionResponse)
def get_transaction(
    transaction_id: int,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    service = TransactionService(db)
    try:
        return TransactionResponse.from_model(
            service.get_transaction(transaction_id, owner_id)
        )
    except LedgerError as e:
        raise to_http_exception(e)


@router.put("/{transaction_id}", response_model=TransactionResultResponse)
def update_transaction(
    transaction_id: int,
    payload: dict[str, Any] = Body(...),
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """Replace a transaction's fields."""
    service = TransactionService(db)
    try:
        result = service.update_transaction(transaction_id, payload, owner_id)
        commit(db)
        return _result(result)
    except LedgerError as e:
        db.rollback()
        raise to_http_exception(e)


@router.delete("/{transaction_id}", response_model=DeleteResultResponse)
def delete_transaction(
    transaction_id: int,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    service = TransactionService(db)
    try:
        account_id = service.delete_transaction(transaction_id, owner_id)
        commit(db)
        return DeleteResultResponse(account_id=account_id)
    except LedgerError as e:
        db.rollback()
        raise to_http_exception(e)


@recurring_router.post("/run-due", response_model=RunDueResponse)
def run_due(
    now: date | None = None,
    db: Session = Depends(get_db),
):
    """
    Materialize due recurring occurrences.

    Normally the scheduler does this; the endpoint lets an
    external cron trigger a pass. `now` may replay a past date
    but never run ahead of today.
    """
    today = date.today()
    if now is not None and now > today:
        raise HTTPException(status_code=422, detail="now cannot be in the future")

    engine = RecurrenceEngine(db)
    try:
        created = engine.run_due(now or today)
        commit(db)
    except LedgerError as e:
        db.rollback()
        raise to_http_exception(e)
    return RunDueResponse(created_ids=created, count=len(created))
