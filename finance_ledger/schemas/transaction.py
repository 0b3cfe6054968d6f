"""
Pydantic schemas for transaction operations.

The incoming form payload is deliberately NOT a schema here:
it is an untyped mapping that goes through the validator,
which collects every problem instead of stopping at the first.
"""

from datetime import date as date_type, datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from finance_ledger.models.enums import TransactionType, RecurringInterval


class ValidTransaction(BaseModel):
    """A payload that passed every validation rule."""
    transaction_type: TransactionType
    amount: Decimal = Field(gt=0)
    description: str | None = None
    date: date_type
    account_id: str = Field(min_length=1)
    category_id: str = Field(min_length=1)
    is_recurring: bool = False
    recurring_interval: RecurringInterval | None = None

    model_config = ConfigDict(frozen=True)


class TransactionResponse(BaseModel):
    """Transaction in API responses, camelCased for the web client."""
    id: int
    type: TransactionType
    amount: Decimal
    description: str | None
    date: date_type
    account_id: str
    category: str
    is_recurring: bool
    recurring_interval: RecurringInterval | None
    next_occurrence_at: date_type | None
    last_processed_at: date_type | None
    origin_id: int | None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    @classmethod
    def from_model(cls, txn) -> "TransactionResponse":
        return cls(
            id=txn.id,
            type=txn.transaction_type,
            amount=txn.amount,
            description=txn.description,
            date=txn.date,
            account_id=txn.account_id,
            category=txn.category_id,
            is_recurring=txn.is_recurring,
            recurring_interval=txn.recurring_interval,
            next_occurrence_at=txn.next_occurrence_at,
            last_processed_at=txn.last_processed_at,
            origin_id=txn.origin_id,
            created_at=txn.created_at,
            updated_at=txn.updated_at,
        )


class TransactionResultResponse(BaseModel):
    """
    Result of a create or update.

    account_id is part of the contract: the client navigates
    to that account's view after saving.
    """
    transaction: TransactionResponse
    account_id: str

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DeleteResultResponse(BaseModel):
    account_id: str

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ScanRequest(BaseModel):
    """
    A receipt scan result plus the rest of the form.

    `extracted` comes from an untrusted OCR source; only its
    amount, date, description and category are used.
    """
    extracted: dict[str, Any] = Field(default_factory=dict)
    payload: dict[str, Any] = Field(default_factory=dict)


class RunDueResponse(BaseModel):
    created_ids: list[int]
    count: int

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
