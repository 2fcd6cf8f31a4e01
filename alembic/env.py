import os
from logging.config import fileConfig
from sqlalchemy import pool, create_engine
from sqlalchemy.engine import make_url
from alembic import context
from tierlist.database import Base  # ✅ Import your SQLAlchemy models
from tierlist import models  # noqa: F401  (registers the tables on Base.metadata)

# Load Alembic Config
config = context.config
if config.config_file_name is not None:
    fileConfig(config.config_file_name)
target_metadata = Base.metadata

ASYNC_TO_SYNC_DRIVERS = {
    "postgresql+asyncpg": "postgresql+psycopg2",
    "sqlite+aiosqlite": "sqlite",
}


def get_sync_url() -> str:
    """DATABASE_URL (async driver) turned into a sync URL, else alembic.ini's url."""
    url = os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url")
    parsed = make_url(url)
    sync_driver = ASYNC_TO_SYNC_DRIVERS.get(parsed.drivername)
    if sync_driver:
        parsed = parsed.set(drivername=sync_driver)
    return parsed.render_as_string(hide_password=False)


def run_migrations_offline():
    """Emit SQL to stdout instead of running it."""
    context.configure(url=get_sync_url(), target_metadata=target_metadata, literal_binds=True)

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online():
    """Run migrations using a synchronous database engine."""
    # ✅ Use a **SYNC** engine for Alembic migrations
    connectable = create_engine(get_sync_url(), poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, target_metadata=target_metadata)

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
