"""
Exception hierarchy for the ledger.

Validation errors are collected and reported per field.
Everything else collapses to a single generic message
for the end user (see user_message).
"""

from dataclasses import dataclass


GENERIC_FAILURE_MESSAGE = "Failed to save transaction"


@dataclass(frozen=True)
class FieldError:
    """A single validation problem attached to a form field."""
    field: str
    message: str


class LedgerError(Exception):
    """Base exception for all ledger errors."""


class ValidationError(LedgerError):
    """Raised with every field problem found in a payload."""

    def __init__(self, errors: list[FieldError]):
        self.errors = list(errors)
        summary = "; ".join(f"{e.field}: {e.message}" for e in self.errors)
        super().__init__(summary or "invalid transaction")

    def as_dict(self) -> dict[str, str]:
        """Map field name to message; first message wins per field."""
        result: dict[str, str] = {}
        for error in self.errors:
            result.setdefault(error.field, error.message)
        return result


class NotFoundError(LedgerError):
    """Raised when an id does not exist or is not owned by the caller."""


class ConflictError(LedgerError):
    """Raised when a concurrent write won the race. Safe to retry."""


class StoreError(LedgerError):
    """Raised when the underlying persistence layer fails."""


def user_message(exc: Exception) -> str | dict[str, str]:
    """
    Translate an exception into what the form shows.

    Validation errors map one-to-one to form fields. All other
    failures become the generic fallback message.
    """
    if isinstance(exc, ValidationError):
        return exc.as_dict()
    return GENERIC_FAILURE_MESSAGE
