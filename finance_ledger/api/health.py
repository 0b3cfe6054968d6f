"""
Health check endpoint.

Used by load balancers and monitoring to verify the service
is up and can reach its database.
"""

from fastapi import APIRouter, Depends
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from finance_ledger.logging import get_logger
from finance_ledger.models.base import get_db

router = APIRouter(tags=["Health"])

logger = get_logger(__name__)


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """
    Return service health including database connectivity.

    A failed probe query reports the instance as degraded
    instead of raising.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "healthy"
    except SQLAlchemyError:
        logger.warning("Database health probe failed", exc_info=True)
        db_status = "unhealthy"

    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "service": "finance-ledger",
        "database": db_status,
    }
