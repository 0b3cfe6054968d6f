"""
Category model.

Categories are owned by an external collaborator; the ledger
only reads them to check that a transaction's type matches
its category's type.
"""

from sqlalchemy import String, Enum as SAEnum
from sqlalchemy.orm import Mapped, mapped_column

from finance_ledger.models.base import Base
from finance_ledger.models.enums import CategoryType


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    category_type: Mapped[CategoryType] = mapped_column(
        SAEnum(
            CategoryType,
            name="category_type_enum",
            create_constraint=True,
        ),
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<Category {self.id} ({self.category_type.value})>"
