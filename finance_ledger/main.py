"""
Finance Ledger - FastAPI Application.

This is the entry point for the application.
All routers are registered here.
"""

from fastapi import FastAPI

from finance_ledger.config import get_settings
from finance_ledger.logging import setup_logging
from finance_ledger.api.health import router as health_router
from finance_ledger.api.accounts import router as accounts_router
from finance_ledger.api.transactions import (
    router as transactions_router,
    recurring_router,
)

settings = get_settings()

setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Transaction ledger with cached balances and recurring schedules",
)

# Register routers
app.include_router(health_router)
app.include_router(accounts_router)
app.include_router(transactions_router)
app.include_router(recurring_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "finance_ledger.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
