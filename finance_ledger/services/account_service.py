"""
Account service - accounts, categories, and the lookups the
transaction service needs from them.

Accounts are created at a zero balance; money only reaches an
account through the ledger service, which keeps the cached
balance equal to the sum of the account's transactions.
"""

from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from finance_ledger.exceptions import NotFoundError
from finance_ledger.logging import get_logger
from finance_ledger.models.account import Account
from finance_ledger.models.category import Category
from finance_ledger.models.enums import CategoryType
from finance_ledger.schemas.account import AccountCreate

logger = get_logger(__name__)


# Built-in categories of the web client, keyed by id
DEFAULT_CATEGORIES: list[tuple[str, str, CategoryType]] = [
    ("salary", "Salary", CategoryType.INCOME),
    ("freelance", "Freelance", CategoryType.INCOME),
    ("investments", "Investments", CategoryType.INCOME),
    ("business", "Business", CategoryType.INCOME),
    ("rental", "Rental", CategoryType.INCOME),
    ("other-income", "Other Income", CategoryType.INCOME),
    ("housing", "Housing", CategoryType.EXPENSE),
    ("transportation", "Transportation", CategoryType.EXPENSE),
    ("groceries", "Groceries", CategoryType.EXPENSE),
    ("utilities", "Utilities", CategoryType.EXPENSE),
    ("entertainment", "Entertainment", CategoryType.EXPENSE),
    ("food", "Food", CategoryType.EXPENSE),
    ("shopping", "Shopping", CategoryType.EXPENSE),
    ("healthcare", "Healthcare", CategoryType.EXPENSE),
    ("education", "Education", CategoryType.EXPENSE),
    ("personal", "Personal Care", CategoryType.EXPENSE),
    ("travel", "Travel", CategoryType.EXPENSE),
    ("insurance", "Insurance", CategoryType.EXPENSE),
    ("gifts", "Gifts & Donations", CategoryType.EXPENSE),
    ("bills", "Bills & Fees", CategoryType.EXPENSE),
    ("other-expense", "Other Expenses", CategoryType.EXPENSE),
]


class AccountDirectory:
    """Read-only account lookups with an ownership check."""

    def __init__(self, db: Session):
        self.db = db

    def resolve(self, account_id: str, owner_id: str | None = None) -> Account:
        """
        Return the account, or raise NotFoundError if it does not
        exist or belongs to a different owner.
        """
        account = self.db.get(Account, account_id)
        if not account:
            raise NotFoundError(f"Account {account_id} not found")
        if owner_id is not None and account.owner_id != owner_id:
            raise NotFoundError(f"Account {account_id} not found")
        return account


class CategoryDirectory:
    """Read-only category lookups."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, category_id: str) -> Category | None:
        return self.db.get(Category, category_id)

    def list(self, category_type: CategoryType | None = None) -> list[Category]:
        query = select(Category).order_by(Category.name)
        if category_type is not None:
            query = query.where(Category.category_type == category_type)
        return list(self.db.execute(query).scalars().all())

    def seed_defaults(self) -> int:
        """Insert the built-in categories that are missing. Returns how many."""
        added = 0
        for category_id, name, category_type in DEFAULT_CATEGORIES:
            if self.db.get(Category, category_id) is None:
                self.db.add(Category(
                    id=category_id, name=name, category_type=category_type,
                ))
                added += 1
        self.db.flush()
        return added


class AccountService:

    def __init__(self, db: Session):
        self.db = db
        self.directory = AccountDirectory(db)

    def create_account(self, request: AccountCreate, owner_id: str) -> Account:
        """
        Create an account for an owner.

        An owner's first account becomes the default one.
        Asking for a new default clears the previous default.
        """
        has_accounts = self.db.execute(
            select(Account.id).where(Account.owner_id == owner_id).limit(1)
        ).scalar_one_or_none() is not None

        is_default = request.is_default or not has_accounts
        if is_default:
            self._clear_default(owner_id)

        account = Account(
            owner_id=owner_id,
            name=request.name,
            account_type=request.type,
            balance=Decimal("0"),
            is_default=is_default,
        )
        self.db.add(account)
        self.db.flush()
        logger.info("Created account %s for owner %s", account.id, owner_id)
        return account

    def set_default(self, account_id: str, owner_id: str) -> Account:
        """Make an account the owner's only default account."""
        account = self.directory.resolve(account_id, owner_id)
        self._clear_default(owner_id)
        self.db.refresh(account)
        account.is_default = True
        self.db.flush()
        return account

    def _clear_default(self, owner_id: str) -> None:
        # Bulk UPDATE bypasses the version counter; balance is untouched.
        self.db.execute(
            update(Account)
            .where(Account.owner_id == owner_id, Account.is_default.is_(True))
            .values(is_default=False)
            .execution_options(synchronize_session="fetch")
        )

    def get_account(self, account_id: str, owner_id: str | None = None) -> Account:
        return self.directory.resolve(account_id, owner_id)

    def get_balance(self, account_id: str, owner_id: str | None = None) -> Decimal:
        """Cached balance; the ledger keeps it current."""
        return self.directory.resolve(account_id, owner_id).balance

    def list_accounts(self, owner_id: str) -> list[Account]:
        accounts = self.db.execute(
            select(Account)
            .where(Account.owner_id == owner_id)
            .order_by(Account.created_at, Account.name)
        ).scalars().all()
        return list(accounts)
