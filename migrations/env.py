"""
Alembic environment configuration (SQLite / PostgreSQL через async драйверы)
"""
import asyncio
from logging.config import fileConfig

from alembic import context
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import async_engine_from_config

from pharmacy_delivery.core.config import Config
from pharmacy_delivery.database.orm_models import Base

# this is the Alembic Config object, which provides
# access to the values within the .ini file in use.
config = context.config

# URL базы данных из конфигурации (DATABASE_URL или DATABASE_PATH)
config.set_main_option("sqlalchemy.url", Config.get_database_url())

# Interpret the config file for Python logging.
if config.config_file_name is not None:
    fileConfig(config.config_file_name)

# Импортируем ORM модели для автогенерации миграций
target_metadata = Base.metadata


def include_name(name, type_, parent_names):
    """Фильтр для игнорирования некоторых объектов при автогенерации"""
    # Игнорируем временные таблицы Alembic
    if type_ == "table" and name.startswith("_alembic"):
        return False
    return True


def _configure_options() -> dict:
    is_sqlite = config.get_main_option("sqlalchemy.url").startswith("sqlite")
    return {
        "target_metadata": target_metadata,
        "render_as_batch": is_sqlite,  # Важно для SQLite при ALTER TABLE
        "compare_type": not is_sqlite,
        "include_name": include_name,
    }


def run_migrations_offline() -> None:
    """Run migrations in 'offline' mode (генерация SQL без подключения)."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_options(),
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(connection=connection, **_configure_options())

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    """Run migrations in 'online' mode через async engine."""
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def run_migrations_online() -> None:
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
