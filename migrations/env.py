"""
Alembic environment for the ledger schema.

The database URL comes from the application settings, not
alembic.ini, so migrations always target the same database
as the service. Importing finance_ledger.models registers
every table on Base.metadata for autogenerate.
"""

from logging.config import fileConfig

from alembic import context

from finance_ledger.config import get_settings
from finance_ledger.models import Base
from finance_ledger.models.base import build_engine

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)

target_metadata = Base.metadata

settings = get_settings()
config.set_main_option("sqlalchemy.url", settings.DATABASE_URL)

# SQLite cannot ALTER most things in place; batch mode
# rebuilds the table instead.
RENDER_AS_BATCH = settings.is_sqlite


def run_migrations_offline() -> None:
    """Emit the migration SQL to stdout without a connection."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        render_as_batch=RENDER_AS_BATCH,
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply migrations over a live connection."""
    connectable = build_engine(settings.DATABASE_URL)

    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=RENDER_AS_BATCH,
        )

        with context.begin_transaction():
            context.run_migrations()

    connectable.dispose()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
