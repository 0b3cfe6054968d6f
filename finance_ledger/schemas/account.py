"""
Pydantic schemas for account operations.
"""

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from finance_ledger.models.enums import AccountType


class AccountCreate(BaseModel):
    """Request to create an account. Accounts always start at zero."""
    name: str = Field(min_length=1, max_length=100)
    type: AccountType
    is_default: bool = False

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class AccountResponse(BaseModel):
    id: str
    owner_id: str
    name: str
    account_type: AccountType = Field(serialization_alias="type")
    balance: Decimal
    is_default: bool
    created_at: datetime

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class IntegrityReport(BaseModel):
    """Cached balance compared against the sum of live transactions."""
    account_id: str
    cached_balance: Decimal
    computed_balance: Decimal
    difference: Decimal
    is_balanced: bool
    repaired: bool = False

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
