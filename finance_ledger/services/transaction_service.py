"""
Transaction service - the create/update entry points used by
the web client.

Each operation:
1. Validates the raw payload (every field problem is collected)
2. Resolves the account (must exist and belong to the caller)
3. Checks the category exists and matches the transaction type
4. Computes the recurrence schedule
5. Hands the row to LedgerService, which applies the balance
   delta in the same unit of work

Validation errors never reach the ledger. The caller controls
the commit.
"""

from dataclasses import dataclass
from typing import Any, Mapping

from sqlalchemy.orm import Session

from finance_ledger.exceptions import FieldError, ValidationError
from finance_ledger.logging import get_logger
from finance_ledger.models.transaction import Transaction
from finance_ledger.schemas.transaction import ValidTransaction
from finance_ledger.services.account_service import (
    AccountDirectory,
    CategoryDirectory,
)
from finance_ledger.services.ledger_service import LedgerService
from finance_ledger.services.recurrence_service import next_occurrence
from finance_ledger.services.validation import Fields, TransactionValidator

logger = get_logger(__name__)


# Keys a receipt scan may fill in. Anything else it sends is ignored.
EXTRACTABLE_FIELDS = ("amount", "date", "description", "category")


@dataclass(frozen=True)
class TransactionResult:
    """The saved transaction and the account the client should show next."""
    transaction: Transaction
    account_id: str


class TransactionService:

    def __init__(self, db: Session, validator: TransactionValidator | None = None):
        self.db = db
        self.validator = validator or TransactionValidator()
        self.ledger = LedgerService(db)
        self.accounts = AccountDirectory(db)
        self.categories = CategoryDirectory(db)

    def _category_errors(self, fields: Fields) -> list[FieldError]:
        """The category must exist and be of the transaction's type."""
        if "category" not in fields:
            return []
        category = self.categories.get(fields["category"])
        if category is None:
            return [FieldError("category", "category not found")]
        transaction_type = fields.get("type")
        if transaction_type is None:
            return []
        if category.category_type.value != transaction_type.value:
            return [FieldError(
                "category",
                f"category {category.id} cannot be used for "
                f"{transaction_type.value} transactions",
            )]
        return []

    def _validate(self, payload: Mapping[str, Any], owner_id: str) -> ValidTransaction:
        """
        Field errors and category errors are reported together;
        the account is only resolved once the payload is clean.
        """
        fields, errors = self.validator.collect_errors(payload)
        errors.extend(self._category_errors(fields))
        if errors:
            raise ValidationError(errors)
        valid = self.validator.build(fields)
        self.accounts.resolve(valid.account_id, owner_id)
        return valid

    def create_transaction(
        self, payload: Mapping[str, Any], owner_id: str
    ) -> TransactionResult:
        """
        Validate and record a new transaction.

        A recurring transaction gets its first next_occurrence_at
        one interval after its own date.
        """
        valid = self._validate(payload, owner_id)

        transaction = Transaction(
            transaction_type=valid.transaction_type,
            amount=valid.amount,
            description=valid.description,
            date=valid.date,
            category_id=valid.category_id,
            account_id=valid.account_id,
            is_recurring=valid.is_recurring,
            recurring_interval=valid.recurring_interval,
            next_occurrence_at=(
                next_occurrence(valid.date, valid.recurring_interval)
                if valid.is_recurring else None
            ),
        )
        self.ledger.create(transaction)
        return TransactionResult(transaction=transaction, account_id=transaction.account_id)

    def update_transaction(
        self, transaction_id: int, payload: Mapping[str, Any], owner_id: str
    ) -> TransactionResult:
        """
        Replace a transaction's fields with a validated payload.

        The schedule is recomputed when recurrence is switched on
        or its date or interval changes, kept when nothing about
        it changed, and cleared when recurrence is switched off.
        """
        valid = self._validate(payload, owner_id)
        existing = self.ledger.get(transaction_id, owner_id)

        fields: dict[str, Any] = {
            "transaction_type": valid.transaction_type,
            "amount": valid.amount,
            "description": valid.description,
            "date": valid.date,
            "category_id": valid.category_id,
            "account_id": valid.account_id,
            "is_recurring": valid.is_recurring,
            "recurring_interval": valid.recurring_interval,
        }
        if not valid.is_recurring:
            fields["next_occurrence_at"] = None
            fields["last_processed_at"] = None
        elif (
            not existing.is_recurring
            or existing.recurring_interval != valid.recurring_interval
            or existing.date != valid.date
        ):
            fields["next_occurrence_at"] = next_occurrence(
                valid.date, valid.recurring_interval
            )

        transaction = self.ledger.update(transaction_id, fields, owner_id)
        return TransactionResult(transaction=transaction, account_id=transaction.account_id)

    def delete_transaction(self, transaction_id: int, owner_id: str) -> str:
        """
        Delete a transaction; returns its account id.

        Deleting a recurring origin cancels its future
        occurrences. Occurrences already materialized stay.
        """
        return self.ledger.delete(transaction_id, owner_id)

    def get_transaction(self, transaction_id: int, owner_id: str) -> Transaction:
        return self.ledger.get(transaction_id, owner_id)

    def list_by_account(self, account_id: str, owner_id: str) -> list[Transaction]:
        self.accounts.resolve(account_id, owner_id)
        return self.ledger.list_by_account(account_id)

    def create_from_extraction(
        self,
        extracted: Mapping[str, Any],
        payload: Mapping[str, Any],
        owner_id: str,
    ) -> TransactionResult:
        """
        Create a transaction prefilled from a receipt scan.

        The scan is untrusted: only its amount, date, description
        and category are taken, they override the form values,
        and the result goes through the same validation as a
        manual entry.
        """
        merged = dict(payload)
        for key in EXTRACTABLE_FIELDS:
            if extracted.get(key) not in (None, ""):
                merged[key] = extracted[key]
        ignored = set(extracted) - set(EXTRACTABLE_FIELDS)
        if ignored:
            logger.info("Ignoring extracted fields: %s", sorted(ignored))
        return self.create_transaction(merged, owner_id)
