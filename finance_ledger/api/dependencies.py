"""
Shared API plumbing: caller identity, operator access,
commits and error mapping.
"""

import secrets

from fastapi import Header, HTTPException
from sqlalchemy.orm import Session

from finance_ledger.config import get_settings
from finance_ledger.exceptions import (
    LedgerError,
    ValidationError,
    NotFoundError,
    ConflictError,
    user_message,
)
from finance_ledger.services.ledger_service import translate_store_errors


def get_owner_id(x_owner_id: str = Header(min_length=1)) -> str:
    """
    The calling user's id.

    Authentication happens upstream; by the time a request
    reaches the ledger the session layer has resolved the
    user and forwards the id in X-Owner-Id.
    """
    return x_owner_id


def require_operator(x_operator_token: str | None = Header(default=None)) -> None:
    """
    Guard for maintenance endpoints that act on every owner.

    The token comes from OPERATOR_TOKEN. Without one configured
    the endpoints are closed.
    """
    expected = get_settings().OPERATOR_TOKEN
    if not expected or x_operator_token is None:
        raise HTTPException(status_code=403, detail="Operator access required")
    if not secrets.compare_digest(x_operator_token, expected):
        raise HTTPException(status_code=403, detail="Operator access required")


def commit(db: Session) -> None:
    """Commit, reporting database failures as ledger errors."""
    with translate_store_errors("commit"):
        db.commit()


def to_http_exception(exc: LedgerError) -> HTTPException:
    """
    Map a ledger error to an HTTP response.

    Validation errors keep their per-field messages. Store
    failures get the generic message; their details are in
    the log, not the response.
    """
    if isinstance(exc, ValidationError):
        return HTTPException(status_code=422, detail={"errors": user_message(exc)})
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=500, detail=user_message(exc))
