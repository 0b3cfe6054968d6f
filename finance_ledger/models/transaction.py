"""
Transaction model.

A single income or expense entry against an account. The
amount is always positive; the direction comes from
transaction_type.

A recurring transaction (the "origin") carries its schedule.
Occurrences materialized from it are plain, non-recurring
rows that point back at the origin and carry an idempotency
key derived from (origin id, due date), so the same due date
can never be materialized twice.
"""

from datetime import date as date_type, datetime
from decimal import Decimal

from sqlalchemy import (
    String, Boolean, Date, DateTime, Numeric, Text, ForeignKey,
    CheckConstraint, Enum as SAEnum,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from finance_ledger.models.base import Base
from finance_ledger.models.enums import TransactionType, RecurringInterval


class Transaction(Base):
    __tablename__ = "transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_transactions_amount_positive"),
        CheckConstraint(
            "(is_recurring AND recurring_interval IS NOT NULL) OR "
            "(NOT is_recurring AND recurring_interval IS NULL "
            "AND next_occurrence_at IS NULL)",
            name="ck_transactions_recurrence_consistent",
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    transaction_type: Mapped[TransactionType] = mapped_column(
        SAEnum(
            TransactionType,
            name="transaction_type_enum",
            create_constraint=True,
        ),
        nullable=False,
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(19, 4), nullable=False
    )
    description: Mapped[str | None] = mapped_column(
        Text, nullable=True
    )
    date: Mapped[date_type] = mapped_column(Date, nullable=False, index=True)
    category_id: Mapped[str] = mapped_column(
        ForeignKey("categories.id"), nullable=False
    )
    account_id: Mapped[str] = mapped_column(
        ForeignKey("accounts.id"), nullable=False, index=True
    )

    # Recurrence rule (only meaningful on origins)
    is_recurring: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )
    recurring_interval: Mapped[RecurringInterval | None] = mapped_column(
        SAEnum(
            RecurringInterval,
            name="recurring_interval_enum",
            create_constraint=True,
        ),
        nullable=True,
    )
    next_occurrence_at: Mapped[date_type | None] = mapped_column(
        Date, nullable=True, index=True
    )
    last_processed_at: Mapped[date_type | None] = mapped_column(
        Date, nullable=True
    )

    # Set on materialized occurrences
    origin_id: Mapped[int | None] = mapped_column(
        ForeignKey("transactions.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    idempotency_key: Mapped[str | None] = mapped_column(
        String(100), unique=True, nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # Relationships
    account: Mapped["Account"] = relationship(back_populates="transactions")
    category: Mapped["Category"] = relationship()
    origin: Mapped["Transaction | None"] = relationship(
        remote_side=[id]
    )

    @property
    def signed_amount(self) -> Decimal:
        """Amount as it contributes to the account balance."""
        return signed(self.transaction_type, self.amount)

    def __repr__(self) -> str:
        return (
            f"<Transaction {self.transaction_type.value} "
            f"{self.amount} on {self.date}>"
        )


def signed(transaction_type: TransactionType, amount: Decimal) -> Decimal:
    """INCOME adds to the balance, EXPENSE subtracts from it."""
    if transaction_type == TransactionType.INCOME:
        return amount
    return -amount
