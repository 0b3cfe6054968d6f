"""
Ledger service - the only writer of transactions and balances.

This service enforces the fundamental rules:
1. An account's cached balance equals the signed sum of its
   transactions (INCOME positive, EXPENSE negative)
2. A row mutation and its balance adjustment are flushed in
   the same unit of work, so they commit or roll back together
3. Mutations touching an account lock that account's row first,
   which serializes writers per account and leaves other
   accounts untouched
4. The balance is maintained incrementally; it is only
   recomputed from rows by the offline integrity check

The caller controls the transaction boundary - every method
flushes, none commits.
"""

from contextlib import contextmanager
from decimal import Decimal
from typing import Any, Iterator

from sqlalchemy import select, func, case, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from finance_ledger.exceptions import (
    LedgerError,
    NotFoundError,
    ConflictError,
    StoreError,
)
from finance_ledger.logging import get_logger
from finance_ledger.models.account import Account
from finance_ledger.models.enums import TransactionType
from finance_ledger.models.transaction import Transaction
from finance_ledger.schemas.account import IntegrityReport
from finance_ledger.services.audit import record_event

logger = get_logger(__name__)

CENT_PRECISION = Decimal("0.0001")

# Columns a caller may replace through update()
MUTABLE_FIELDS = frozenset({
    "transaction_type",
    "amount",
    "description",
    "date",
    "category_id",
    "account_id",
    "is_recurring",
    "recurring_interval",
    "next_occurrence_at",
    "last_processed_at",
})


@contextmanager
def translate_store_errors(operation: str) -> Iterator[None]:
    """
    Map persistence failures onto the ledger's error taxonomy.

    A version mismatch on an account row means another writer
    got there first (ConflictError, retryable). Any other
    database failure is a StoreError and is logged here.
    """
    try:
        yield
    except LedgerError:
        raise
    except StaleDataError as e:
        logger.warning("Concurrent modification during %s: %s", operation, e)
        raise ConflictError(
            f"Account was modified concurrently during {operation}; retry"
        ) from e
    except SQLAlchemyError as e:
        logger.exception("Store failure during %s", operation)
        raise StoreError(f"Store failure during {operation}") from e


class LedgerService:
    """
    All transaction writes pass through this service.

    The service takes a database session as a constructor
    argument so the caller decides when to commit or rollback.
    """

    def __init__(self, db: Session):
        self.db = db

    # --- Locking ---

    def lock_accounts(self, *account_ids: str) -> dict[str, Account]:
        """
        Lock account rows in id order and return them fresh.

        Sorting the ids keeps two multi-account updates from
        deadlocking each other. populate_existing refreshes
        any copy already in the session so the balance we add
        to is the one we hold the lock on.
        """
        ids = sorted(set(account_ids))
        accounts = self.db.execute(
            select(Account)
            .where(Account.id.in_(ids))
            .order_by(Account.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()

        accounts_by_id = {a.id: a for a in accounts}
        missing = set(ids) - set(accounts_by_id)
        if missing:
            raise NotFoundError(f"Accounts not found: {sorted(missing)}")
        return accounts_by_id

    # --- Mutations ---

    def create(self, transaction: Transaction) -> int:
        """
        Insert a transaction and apply its signed amount to
        the owning account's balance.

        Raises NotFoundError if the account does not exist.
        """
        with translate_store_errors("create"):
            accounts = self.lock_accounts(transaction.account_id)
            account = accounts[transaction.account_id]

            self.db.add(transaction)
            account.balance = account.balance + transaction.signed_amount
            self.db.flush()

            record_event(
                self.db,
                "transaction.created",
                transaction.id,
                account_id=account.id,
                type=transaction.transaction_type.value,
                amount=transaction.amount,
                origin_id=transaction.origin_id,
            )
            self.db.flush()

        logger.info(
            "Created transaction %s on account %s (%s %s)",
            transaction.id, account.id,
            transaction.transaction_type.value, transaction.amount,
        )
        return transaction.id

    def update(
        self,
        transaction_id: int,
        fields: dict[str, Any],
        owner_id: str | None = None,
    ) -> Transaction:
        """
        Replace the mutable fields of a transaction.

        The balance moves by (new signed amount - old signed
        amount). If the account changes, the old signed amount
        leaves the old account and the new one lands on the new
        account; both rows are locked together.
        """
        unknown = set(fields) - MUTABLE_FIELDS
        if unknown:
            raise ValueError(f"Fields cannot be updated: {sorted(unknown)}")

        with translate_store_errors("update"):
            transaction = self.get(transaction_id, owner_id)
            old_account_id = transaction.account_id
            new_account_id = fields.get("account_id", old_account_id)

            accounts = self.lock_accounts(old_account_id, new_account_id)
            if owner_id is not None and accounts[new_account_id].owner_id != owner_id:
                raise NotFoundError(f"Account {new_account_id} not found")

            # Re-read under the lock
            self.db.refresh(transaction)
            if transaction.account_id != old_account_id:
                raise ConflictError(
                    f"Transaction {transaction_id} moved concurrently; retry"
                )
            old_signed = transaction.signed_amount

            for name, value in fields.items():
                setattr(transaction, name, value)
            new_signed = transaction.signed_amount

            if old_account_id == new_account_id:
                account = accounts[old_account_id]
                account.balance = account.balance + (new_signed - old_signed)
            else:
                old_account = accounts[old_account_id]
                new_account = accounts[new_account_id]
                old_account.balance = old_account.balance - old_signed
                new_account.balance = new_account.balance + new_signed

            record_event(
                self.db,
                "transaction.updated",
                transaction.id,
                old_account_id=old_account_id,
                new_account_id=new_account_id,
                old_signed_amount=old_signed,
                new_signed_amount=new_signed,
            )
            self.db.flush()

        logger.info(
            "Updated transaction %s (account %s -> %s, delta %s -> %s)",
            transaction_id, old_account_id, new_account_id,
            old_signed, new_signed,
        )
        return transaction

    def delete(self, transaction_id: int, owner_id: str | None = None) -> str:
        """
        Remove a transaction and reverse its effect on the balance.

        Occurrences already materialized from it (when it is a
        recurring origin) are kept and detached from it.
        Returns the account id the transaction belonged to.
        """
        with translate_store_errors("delete"):
            transaction = self.get(transaction_id, owner_id)
            account_id = transaction.account_id
            accounts = self.lock_accounts(account_id)
            self.db.refresh(transaction)
            account = accounts[account_id]

            self.db.execute(
                update(Transaction)
                .where(Transaction.origin_id == transaction.id)
                .values(origin_id=None)
            )
            account.balance = account.balance - transaction.signed_amount
            record_event(
                self.db,
                "transaction.deleted",
                transaction.id,
                account_id=account_id,
                signed_amount=transaction.signed_amount,
                was_recurring=transaction.is_recurring,
            )
            self.db.delete(transaction)
            self.db.flush()

        logger.info("Deleted transaction %s from account %s", transaction_id, account_id)
        return account_id

    # --- Reads ---

    def get(self, transaction_id: int, owner_id: str | None = None) -> Transaction:
        """
        Get a transaction by id.

        When owner_id is given, a transaction on someone else's
        account is reported as not found.
        """
        transaction = self.db.get(Transaction, transaction_id)
        if not transaction:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        if owner_id is not None and transaction.account.owner_id != owner_id:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        return transaction

    def list_by_account(self, account_id: str) -> list[Transaction]:
        """Return an account's transactions, newest date first."""
        transactions = self.db.execute(
            select(Transaction)
            .where(Transaction.account_id == account_id)
            .order_by(Transaction.date.desc(), Transaction.id.desc())
        ).scalars().all()
        return list(transactions)

    def find_by_idempotency_key(self, key: str) -> Transaction | None:
        return self.db.execute(
            select(Transaction).where(Transaction.idempotency_key == key)
        ).scalar_one_or_none()

    # --- Offline audit ---

    def computed_balance(self, account_id: str) -> Decimal:
        """Sum the signed amounts of an account's transactions."""
        signed_amount = case(
            (Transaction.transaction_type == TransactionType.INCOME, Transaction.amount),
            else_=-Transaction.amount,
        )
        total = self.db.execute(
            select(func.coalesce(func.sum(signed_amount), 0))
            .where(Transaction.account_id == account_id)
        ).scalar()
        return Decimal(str(total)).quantize(CENT_PRECISION)

    def check_integrity(self, account_id: str) -> IntegrityReport:
        """
        Compare an account's cached balance with its transactions.

        This scans every row of the account and is meant for
        auditing, never for the request path.
        """
        account = self.db.get(Account, account_id)
        if not account:
            raise NotFoundError(f"Account {account_id} not found")

        cached = Decimal(str(account.balance)).quantize(CENT_PRECISION)
        computed = self.computed_balance(account_id)
        return IntegrityReport(
            account_id=account_id,
            cached_balance=cached,
            computed_balance=computed,
            difference=cached - computed,
            is_balanced=cached == computed,
        )

    def reconcile(self, account_id: str) -> IntegrityReport:
        """Repair a drifted cached balance from the transaction rows."""
        with translate_store_errors("reconcile"):
            accounts = self.lock_accounts(account_id)
            report = self.check_integrity(account_id)
            if report.is_balanced:
                return report

            account = accounts[account_id]
            account.balance = report.computed_balance
            record_event(
                self.db,
                "account.reconciled",
                account_id,
                cached_balance=report.cached_balance,
                computed_balance=report.computed_balance,
            )
            self.db.flush()

        logger.warning(
            "Reconciled account %s: cached %s, computed %s",
            account_id, report.cached_balance, report.computed_balance,
        )
        return report.model_copy(update={"repaired": True})
