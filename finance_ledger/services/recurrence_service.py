"""
Recurrence engine - schedules and materializes recurring transactions.

A recurring transaction (the origin) carries next_occurrence_at.
Whenever that date is on or before "now", the engine creates a
plain copy of the origin dated at the due date and advances the
origin's schedule by one interval. It repeats until the schedule
is in the future, so a driver that was down for a week catches
up on every missed occurrence, in order.

Each (create copy, advance schedule) pair runs inside one
SAVEPOINT and the copy carries an idempotency key built from
(origin id, due date). A crash between the two steps cannot
commit one without the other, and re-running after a partial
failure finds the existing copy instead of creating a second.
"""

import calendar
from datetime import date, datetime, timedelta

from sqlalchemy import select
from sqlalchemy.orm import Session

from finance_ledger.exceptions import LedgerError, NotFoundError
from finance_ledger.logging import get_logger
from finance_ledger.models.enums import RecurringInterval
from finance_ledger.models.transaction import Transaction
from finance_ledger.services.audit import record_event
from finance_ledger.services.ledger_service import (
    LedgerService,
    translate_store_errors,
)

logger = get_logger(__name__)


def _clamp_day(year: int, month: int, day: int) -> int:
    """Clamp day to the last valid day of the given month."""
    return min(day, calendar.monthrange(year, month)[1])


def add_months(d: date, n: int) -> date:
    """Add n months to d, clamping the day to the target month's end."""
    month = d.month - 1 + n
    year = d.year + month // 12
    month = month % 12 + 1
    return d.replace(year=year, month=month, day=_clamp_day(year, month, d.day))


def next_occurrence(d: date, interval: RecurringInterval) -> date:
    """
    Return the occurrence one interval after d.

    MONTHLY keeps the day of month where the target month has
    it (Jan 31 -> Feb 29 in a leap year, Feb 28 otherwise).
    YEARLY maps Feb 29 to Feb 28 in non-leap years.
    The result is always strictly later than d.
    """
    interval = RecurringInterval(interval)
    if interval == RecurringInterval.DAILY:
        return d + timedelta(days=1)
    if interval == RecurringInterval.WEEKLY:
        return d + timedelta(days=7)
    if interval == RecurringInterval.MONTHLY:
        return add_months(d, 1)
    if interval == RecurringInterval.YEARLY:
        return add_months(d, 12)
    raise ValueError(f"Unknown recurring interval: {interval}")


def occurrence_key(origin_id: int, due: date) -> str:
    """Idempotency key for the occurrence of origin_id due on `due`."""
    return f"{origin_id}:{due.isoformat()}"


def _as_date(now: date | datetime) -> date:
    if isinstance(now, datetime):
        return now.date()
    return now


class RecurrenceEngine:
    """
    Materializes due occurrences of recurring transactions.

    Like the ledger service, the engine never commits; the
    caller (the scheduler, or an API endpoint) does.
    """

    def __init__(self, db: Session):
        self.db = db
        self.ledger = LedgerService(db)

    def due_origin_ids(self, now: date | datetime) -> list[int]:
        """Ids of recurring transactions with an occurrence due by `now`."""
        today = _as_date(now)
        ids = self.db.execute(
            select(Transaction.id)
            .where(
                Transaction.is_recurring.is_(True),
                Transaction.next_occurrence_at.is_not(None),
                Transaction.next_occurrence_at <= today,
            )
            .order_by(Transaction.next_occurrence_at, Transaction.id)
        ).scalars().all()
        return list(ids)

    def process_origin(self, origin_id: int, now: date | datetime) -> list[int]:
        """
        Materialize every occurrence of one origin due by `now`.

        Returns the ids of the occurrences created by this call.
        Occurrences that already existed (from an interrupted
        earlier run) are not returned and not created again.
        """
        today = _as_date(now)
        created: list[int] = []

        origin = self.db.get(Transaction, origin_id)
        if origin is None:
            raise NotFoundError(f"Transaction {origin_id} not found")

        while True:
            with translate_store_errors("materialize occurrence"):
                with self.db.begin_nested():
                    # Re-read the schedule under the account lock so a
                    # concurrent edit of the origin is seen.
                    self.ledger.lock_accounts(origin.account_id)
                    self.db.refresh(origin)
                    due = origin.next_occurrence_at
                    if not origin.is_recurring or due is None or due > today:
                        break
                    occurrence_id = self._materialize(origin, due, today)
            if occurrence_id is not None:
                created.append(occurrence_id)

        return created

    def _materialize(self, origin: Transaction, due: date, today: date) -> int | None:
        """Create one occurrence (unless it exists) and advance the origin."""
        key = occurrence_key(origin.id, due)
        existing = self.ledger.find_by_idempotency_key(key)

        occurrence_id = None
        if existing is None:
            occurrence = Transaction(
                transaction_type=origin.transaction_type,
                amount=origin.amount,
                description=origin.description,
                date=due,
                category_id=origin.category_id,
                account_id=origin.account_id,
                is_recurring=False,
                origin_id=origin.id,
                idempotency_key=key,
            )
            occurrence_id = self.ledger.create(occurrence)
            record_event(
                self.db,
                "occurrence.materialized",
                occurrence_id,
                origin_id=origin.id,
                due=due,
            )
        else:
            logger.info(
                "Occurrence %s already exists for origin %s; advancing schedule only",
                key, origin.id,
            )

        origin.next_occurrence_at = next_occurrence(due, origin.recurring_interval)
        origin.last_processed_at = today
        self.db.flush()
        return occurrence_id

    def run_due(self, now: date | datetime) -> list[int]:
        """
        Process every origin with a due occurrence.

        An origin that fails is logged and skipped; its savepoint
        is rolled back so the others still go through.
        Returns the ids of all occurrences created.
        """
        created: list[int] = []
        for origin_id in self.due_origin_ids(now):
            try:
                created.extend(self.process_origin(origin_id, now))
            except LedgerError:
                logger.exception("Skipping recurring origin %s", origin_id)

        logger.info(
            "Recurring run for %s created %d occurrence(s)",
            _as_date(now), len(created),
        )
        return created
