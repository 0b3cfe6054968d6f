"""
Periodic driver for recurring transactions.

Runs independently of user requests. Each due origin is
processed in its own session and committed on its own, so a
failure on one origin never holds back the others and a crash
mid-run loses at most the origin in flight. Re-running is
safe: occurrences carry an idempotency key.
"""

import argparse
import time
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime

from sqlalchemy.orm import Session

from finance_ledger.config import get_settings
from finance_ledger.exceptions import LedgerError
from finance_ledger.logging import get_logger, setup_logging
from finance_ledger.services.recurrence_service import RecurrenceEngine

logger = get_logger(__name__)

SessionFactory = Callable[[], Session]


def _process_one(session_factory: SessionFactory, origin_id: int, now: date) -> list[int]:
    db = session_factory()
    try:
        created = RecurrenceEngine(db).process_origin(origin_id, now)
        db.commit()
        return created
    except LedgerError:
        db.rollback()
        logger.exception("Recurring origin %s failed; will retry next run", origin_id)
        return []
    finally:
        db.close()


def run_due_once(
    session_factory: SessionFactory,
    now: date | datetime | None = None,
    workers: int = 1,
) -> list[int]:
    """
    Materialize everything due by `now` (default: today).

    With workers > 1, distinct origins are processed in
    parallel, each with its own session.
    """
    today = now.date() if isinstance(now, datetime) else (now or date.today())

    db = session_factory()
    try:
        origin_ids = RecurrenceEngine(db).due_origin_ids(today)
    finally:
        db.close()

    if not origin_ids:
        logger.debug("No recurring transactions due on %s", today)
        return []

    created: list[int] = []
    if workers <= 1:
        for origin_id in origin_ids:
            created.extend(_process_one(session_factory, origin_id, today))
    else:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            results = pool.map(
                lambda origin_id: _process_one(session_factory, origin_id, today),
                origin_ids,
            )
            for ids in results:
                created.extend(ids)

    logger.info(
        "Processed %d recurring origin(s) for %s, created %d occurrence(s)",
        len(origin_ids), today, len(created),
    )
    return created


def run_forever(
    session_factory: SessionFactory,
    poll_seconds: int,
    workers: int = 1,
) -> None:
    """Run a pass, sleep, repeat. Stops on KeyboardInterrupt."""
    logger.info("Recurring driver started (every %ss)", poll_seconds)
    try:
        while True:
            run_due_once(session_factory, workers=workers)
            time.sleep(poll_seconds)
    except KeyboardInterrupt:
        logger.info("Recurring driver stopped")


def main(argv: list[str] | None = None) -> None:
    """Entry point for the finance-ledger-recurring command."""
    settings = get_settings()

    parser = argparse.ArgumentParser(
        description="Materialize due recurring transactions"
    )
    parser.add_argument(
        "--once", action="store_true", help="Run a single pass and exit"
    )
    parser.add_argument(
        "--now",
        type=date.fromisoformat,
        default=None,
        help="Process as of this date, YYYY-MM-DD (default: today)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=settings.RECURRING_WORKERS,
        help=f"Parallel workers (default: {settings.RECURRING_WORKERS})",
    )
    args = parser.parse_args(argv)

    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

    from finance_ledger.models.base import SessionLocal

    if args.once or args.now is not None:
        run_due_once(SessionLocal, args.now, workers=args.workers)
    else:
        run_forever(SessionLocal, settings.RECURRING_POLL_SECONDS, workers=args.workers)


if __name__ == "__main__":
    main()
