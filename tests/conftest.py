"""
Shared test fixtures.

Sets up an isolated SQLite database so tests never touch the
real one. Tables are created before each test and dropped
after it, so no test data leaks between tests.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

import finance_ledger.models  # noqa: F401  registers every table
from finance_ledger.main import app
from finance_ledger.models.base import Base, build_engine, get_db
from finance_ledger.models.enums import AccountType
from finance_ledger.schemas.account import AccountCreate
from finance_ledger.services.account_service import AccountService, CategoryDirectory

from helpers import OWNER


# SQLite keeps the suite free of database infrastructure.
# build_engine applies the same SAVEPOINT fix-ups as production.
TEST_DATABASE_URL = "sqlite:///./test_ledger.db"

engine = build_engine(TEST_DATABASE_URL)

TestSessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test, drop them after."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory():
    """Session factory for code that opens its own sessions."""
    return TestSessionLocal


@pytest.fixture
def db_session():
    """Provide a database session for direct service testing."""
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def categories(db_session):
    """Seed the built-in income and expense categories."""
    CategoryDirectory(db_session).seed_defaults()
    db_session.commit()


@pytest.fixture
def make_account(db_session, categories):
    """Return a helper that creates and commits an account."""
    def _make(name="Main", owner_id=OWNER, account_type=AccountType.CURRENT):
        account = AccountService(db_session).create_account(
            AccountCreate(name=name, type=account_type), owner_id
        )
        db_session.commit()
        return account
    return _make


@pytest.fixture
def client(db_session):
    """
    Provide a test client bound to the test session.

    get_db is overridden so the app uses our session instead
    of the real database.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
