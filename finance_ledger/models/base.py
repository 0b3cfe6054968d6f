"""
Database engine, session management, and base model.

Every model inherits from Base. Every request gets a session
from get_db().
"""

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from finance_ledger.config import get_settings

settings = get_settings()


def configure_sqlite(engine: Engine) -> Engine:
    """
    Let SQLAlchemy drive BEGIN/SAVEPOINT on SQLite.

    The pysqlite driver issues its own BEGIN lazily, which breaks
    SAVEPOINT handling. Disabling it and emitting BEGIN ourselves
    makes begin_nested() behave the same as on PostgreSQL.

    BEGIN IMMEDIATE takes the write lock up front, so concurrent
    writers (the recurring driver's workers) queue on the busy
    timeout instead of failing on a read-to-write lock upgrade.
    """

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def build_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine, applying the SQLite fix-ups when needed."""
    if url.startswith("sqlite"):
        return configure_sqlite(create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
        ))
    # pool_pre_ping tests connections before use, so a restarted
    # database does not fail the first request after it.
    return create_engine(url, echo=echo, pool_pre_ping=True)


# --- Engine ---
engine = build_engine(settings.DATABASE_URL, echo=settings.SQL_ECHO)

# --- Session Factory ---
# autocommit=False: the caller decides when a ledger mutation
# and its balance adjustment are committed together.
# autoflush=False: SQL is only sent on explicit flush/commit.
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
)


# --- Base Model Class ---
class Base(DeclarativeBase):
    pass


# --- Dependency for FastAPI ---
def get_db():
    """
    Provide a database session for a single request.

    The try/finally guarantees the session is closed even if
    the endpoint raises, so connections are never leaked.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
