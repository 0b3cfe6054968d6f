"""
Account API endpoints.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from finance_ledger.api.dependencies import commit, get_owner_id, to_http_exception
from finance_ledger.exceptions import LedgerError
from finance_ledger.models.base import get_db
from finance_ledger.services.account_service import AccountService
from finance_ledger.services.ledger_service import LedgerService
from finance_ledger.services.transaction_service import TransactionService
from finance_ledger.schemas.account import (
    AccountCreate,
    AccountResponse,
    IntegrityReport,
)
from finance_ledger.schemas.transaction import TransactionResponse

router = APIRouter(prefix="/accounts", tags=["Accounts"])


@router.post("", response_model=AccountResponse, status_code=201)
def create_account(
    request: AccountCreate,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """Create an account. It starts with a zero balance."""
    service = AccountService(db)
    try:
        account = service.create_account(request, owner_id)
        commit(db)
        return account
    except LedgerError as e:
        db.rollback()
        raise to_http_exception(e)


@router.get("", response_model=list[AccountResponse])
def list_accounts(
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    return AccountService(db).list_accounts(owner_id)


@router.get("/{account_id}", response_model=AccountResponse)
def get_account(
    account_id: str,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    try:
        return AccountService(db).get_account(account_id, owner_id)
    except LedgerError as e:
        raise to_http_exception(e)


@router.post("/{account_id}/default", response_model=AccountResponse)
def set_default_account(
    account_id: str,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    service = AccountService(db)
    try:
        account = service.set_default(account_id, owner_id)
        commit(db)
        return account
    except LedgerError as e:
        db.rollback()
        raise to_http_exception(e)


@router.get(
    "/{account_id}/transactions",
    response_model=list[TransactionResponse],
)
def list_account_transactions(
    account_id: str,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """All transactions of an account, newest first."""
    service = TransactionService(db)
    try:
        transactions = service.list_by_account(account_id, owner_id)
    except LedgerError as e:
        raise to_http_exception(e)
    return [TransactionResponse.from_model(t) for t in transactions]


@router.post("/{account_id}/reconcile", response_model=IntegrityReport)
def reconcile_account(
    account_id: str,
    owner_id: str = Depends(get_owner_id),
    db: Session = Depends(get_db),
):
    """
    Audit the cached balance against the account's transactions
    and repair it if they disagree.
    """
    try:
        AccountService(db).get_account(account_id, owner_id)
        report = LedgerService(db).reconcile(account_id)
        commit(db)
        return report
    except LedgerError as e:
        db.rollback()
        raise to_http_exception(e)
