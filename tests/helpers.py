"""Payload and amount helpers shared by the test modules."""

from datetime import date
from decimal import Decimal

OWNER = "user-1"
OTHER_OWNER = "user-2"


def payload(account_id, **overrides):
    """A valid form payload for an expense; override any field."""
    data = {
        "type": "EXPENSE",
        "amount": "50.00",
        "description": "Groceries",
        "date": date(2024, 1, 15).isoformat(),
        "accountId": account_id,
        "category": "groceries",
        "isRecurring": False,
    }
    data.update(overrides)
    return data


def money(value) -> Decimal:
    return Decimal(str(value)).quantize(Decimal("0.0001"))
