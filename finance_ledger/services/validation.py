"""
Transaction payload validation.

Validation runs in two passes over the raw form payload:

1. FIELD PASS - every field is coerced on its own with a
   Pydantic TypeAdapter. A failing field records an error and
   the pass carries on, so the caller sees every problem at once.

2. RULE PASS - cross-field rules run over whatever fields
   parsed. Each rule is a plain callable; new constraints are
   added by appending to the rule list, not by editing the
   validator.

Validation is pure: no database, no clock. Checks that need
I/O (does the account exist, does the category type match)
belong to the transaction service.
"""

from collections.abc import Callable, Mapping, Sequence
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Any

from pydantic import Field, StringConstraints, TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from finance_ledger.exceptions import FieldError, ValidationError
from finance_ledger.models.enums import TransactionType, RecurringInterval
from finance_ledger.schemas.transaction import ValidTransaction


RECURRING_INTERVAL_REQUIRED = "recurring interval is required for recurring transactions"

# Transaction.amount is Numeric(19, 4)
AMOUNT_DECIMAL_PLACES = 4
AMOUNT_INTEGER_DIGITS = 15

_type_adapter = TypeAdapter(TransactionType)
_number_adapter = TypeAdapter(Annotated[Decimal, Field(allow_inf_nan=False)])
_date_adapter = TypeAdapter(date)
_datetime_adapter = TypeAdapter(datetime)
_identifier_adapter = TypeAdapter(
    Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
)
_bool_adapter = TypeAdapter(bool)
_interval_adapter = TypeAdapter(RecurringInterval)

# A parsed field set: payload key -> coerced value (missing if it failed)
Fields = dict[str, Any]
Rule = Callable[[Fields, list[FieldError]], None]


def _coerce_type(value: Any) -> TransactionType:
    return _type_adapter.validate_python(value)


def _coerce_amount(value: Any) -> Decimal:
    """
    A positive number that fits the stored Numeric(19, 4) column
    exactly: at most 4 decimal places and 15 integer digits.
    """
    if isinstance(value, bool):
        raise ValueError("amount must be a number")
    try:
        amount = _number_adapter.validate_python(value)
    except PydanticValidationError:
        raise ValueError("amount must be a number")
    if amount <= 0:
        raise ValueError("amount must be greater than 0")
    if -amount.normalize().as_tuple().exponent > AMOUNT_DECIMAL_PLACES:
        raise ValueError(
            f"amount can have at most {AMOUNT_DECIMAL_PLACES} decimal places"
        )
    if amount.adjusted() + 1 > AMOUNT_INTEGER_DIGITS:
        raise ValueError("amount is too large")
    return amount


def _coerce_date(value: Any) -> date:
    """
    Accept a date, a datetime, or their ISO text forms.

    A datetime keeps its own calendar date; the current
    time is never consulted.
    """
    if isinstance(value, datetime):
        return value.date()
    try:
        return _date_adapter.validate_python(value)
    except PydanticValidationError:
        pass
    try:
        return _datetime_adapter.validate_python(value).date()
    except PydanticValidationError:
        raise ValueError("date must be a valid date")


def _identifier(message: str) -> Callable[[Any], str]:
    def coerce(value: Any) -> str:
        try:
            return _identifier_adapter.validate_python(value)
        except PydanticValidationError:
            raise ValueError(message)
    return coerce


def _coerce_is_recurring(value: Any) -> bool:
    if value is None:
        return False
    return _bool_adapter.validate_python(value)


def _coerce_description(value: Any) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError("description must be text")
    return value.strip() or None


def _coerce_interval(value: Any) -> RecurringInterval | None:
    if value is None or value == "":
        return None
    try:
        return _interval_adapter.validate_python(value)
    except PydanticValidationError:
        raise ValueError(
            "recurring interval must be one of DAILY, WEEKLY, MONTHLY, YEARLY"
        )


# payload key -> (coercer, message used when the coercer gives none)
FIELD_RULES: dict[str, tuple[Callable[[Any], Any], str]] = {
    "type": (_coerce_type, "type must be INCOME or EXPENSE"),
    "amount": (_coerce_amount, "amount must be greater than 0"),
    "date": (_coerce_date, "date is required"),
    "accountId": (_identifier("account is required"), "account is required"),
    "category": (_identifier("category is required"), "category is required"),
    "description": (_coerce_description, "description must be text"),
    "isRecurring": (_coerce_is_recurring, "isRecurring must be true or false"),
    "recurringInterval": (_coerce_interval, "invalid recurring interval"),
}

# Fields that may be left out of the payload entirely
OPTIONAL_FIELDS = {"description", "isRecurring", "recurringInterval"}


def recurring_interval_required(fields: Fields, errors: list[FieldError]) -> None:
    """A recurring transaction must say how often it recurs."""
    if "recurringInterval" not in fields:
        # The interval itself was malformed; already reported.
        return
    if fields.get("isRecurring") and fields["recurringInterval"] is None:
        errors.append(FieldError("recurringInterval", RECURRING_INTERVAL_REQUIRED))


DEFAULT_RULES: tuple[Rule, ...] = (recurring_interval_required,)


class TransactionValidator:
    """
    Validates a raw transaction payload.

    Extra cross-field rules can be passed in; they run after
    the built-in ones.
    """

    def __init__(self, rules: Sequence[Rule] = ()):
        self.rules: list[Rule] = [*DEFAULT_RULES, *rules]

    def collect_errors(self, payload: Mapping[str, Any]) -> tuple[Fields, list[FieldError]]:
        """Run both passes and return the parsed fields plus every error."""
        fields: Fields = {}
        errors: list[FieldError] = []

        for key, (coerce, fallback_message) in FIELD_RULES.items():
            value = payload.get(key)
            if key == "recurringInterval" and fields.get("isRecurring") is False:
                # Not recurring: a supplied interval is dropped, not an error
                fields[key] = None
                continue
            if value is None and key not in OPTIONAL_FIELDS:
                errors.append(FieldError(key, fallback_message))
                continue
            try:
                fields[key] = coerce(value)
            except (ValueError, PydanticValidationError) as e:
                errors.append(FieldError(key, _message(e, fallback_message)))

        for rule in self.rules:
            rule(fields, errors)

        return fields, errors

    def validate(self, payload: Mapping[str, Any]) -> ValidTransaction:
        """
        Return the validated transaction or raise ValidationError
        carrying every problem found.
        """
        fields, errors = self.collect_errors(payload)
        if errors:
            raise ValidationError(errors)
        return self.build(fields)

    def build(self, fields: Fields) -> ValidTransaction:
        """Assemble the validated transaction from an error-free field set."""
        is_recurring = fields["isRecurring"]
        return ValidTransaction(
            transaction_type=fields["type"],
            amount=fields["amount"],
            description=fields["description"],
            date=fields["date"],
            account_id=fields["accountId"],
            category_id=fields["category"],
            is_recurring=is_recurring,
            recurring_interval=fields["recurringInterval"] if is_recurring else None,
        )


def _message(exc: Exception, fallback: str) -> str:
    if isinstance(exc, PydanticValidationError):
        return fallback
    return str(exc) or fallback


_default_validator = TransactionValidator()


def validate_transaction(payload: Mapping[str, Any]) -> ValidTransaction:
    """Validate with the default rule set."""
    return _default_validator.validate(payload)
